"""Run a headless game locally (no server needed)."""
import logging
import random
import sys

from sanguo import commands as cmds
from sanguo.game import Simulation
from sanguo.tech import available_techs, can_research
from sanguo.types import Tactic


def random_commands(sim: Simulation, rng: random.Random) -> list[cmds.Command]:
    """Somewhat sensible random orders for the player faction."""
    w = sim.world
    pid = sim.player_faction_id
    out: list[cmds.Command] = []
    faction = w.factions.get(pid)
    leader = w.characters.get(faction.leader_id)
    techs = [t for t in available_techs(faction) if can_research(faction, t)]
    if techs and leader and leader.city_id and w.city_faction(w.cities[leader.city_id]) == pid:
        out.append(cmds.StartResearch(leader.id, leader.city_id, tech_id=rng.choice(techs)))
    for char in w.alive_members(pid):
        if char.city_id is None or w.is_travelling(char.id):
            continue
        home = w.cities[char.city_id]
        neighbors = w.roads.reachable_neighbors(home.id, w.cities)
        enemies = [n for n in neighbors if w.city_faction(w.cities[n]) != pid]
        if enemies and char.military >= 7 and rng.random() < 0.3:
            target = min(enemies, key=lambda n: w.cities[n].garrison)
            out.append(cmds.Attack(char.id, target, tactic=rng.choice(list(Tactic))))
        elif w.city_faction(home) == pid and rng.random() < 0.4:
            if home.garrison < 6:
                out.append(cmds.Reinforce(char.id, home.id))
            else:
                out.append(cmds.Develop(char.id, home.id))
    return out


def main(seed: int = 42, difficulty: str = "normal", max_ticks: int = 200):
    logging.basicConfig(level=logging.WARNING)
    rng = random.Random(seed)
    sim = Simulation.create(seed=seed, difficulty=difficulty)
    w = sim.world

    print(f"=== SANGUO — {difficulty} ===")
    for f in sim.get_factions():
        print(f"  {f['id']}: {', '.join(w.cities[c].name for c in f['cities'])}")
    print()

    while not w.game.terminal and w.tick < max_ticks:
        for cmd in random_commands(sim, rng):
            sim.queue_command(cmd)
        if w.pending_event_card:
            sim.resolve_event_card(rng.randrange(len(w.pending_event_card.choices)))

        result = sim.advance_day()
        counts = ' '.join(f"{f.id}:{len(w.faction_cities(f.id))}" for f in w.factions)
        print(f"T{result.tick:3d} {result.season.value:6s} | {counts}", end="")
        for e in result.events:
            if '⚔️' in e or '💀' in e or '🗡️' in e or '☠️' in e or '🏆' in e:
                print(f"\n     {e}", end="")
        print()

    print("\n=== FINAL ===")
    for f in sim.get_factions():
        print(f"  {f['id']}: {len(f['cities'])} cities | {len(f['members'])} members | "
              f"morale={f['morale']} | techs={f['techs']}")
    g = sim.get_game_state()
    print(f"\n🏆 {g['status']} ({g['win_type']}) winner={g['winner_faction_id']} at tick {g['tick']}")


if __name__ == "__main__":
    main(*(int(a) for a in sys.argv[1:2]))
