"""NPC factions: the decision policy interface, a default policy, and NPC upkeep."""
from __future__ import annotations
import logging
import random
from typing import Protocol

from . import commands as cmds
from .balance import BalanceConfig
from .types import Character, City, Movement, Recruitment, Role, Tactic, season_of
from .world import WorldState

logger = logging.getLogger("sanguo.npc")

IDLE_MOVE_CHANCE = 0.2
HIRE_CHANCE = 0.1
UNDERDOG_INTERVAL = 8

#                 trait         weight
AGGRESSION_TRAITS = {"brave": 2, "ambitious": 1, "impulsive": 3, "proud": 1, "treacherous": 1}
CAUTION_TRAITS = {"cautious": 2, "strategic": 2, "wise": 1, "humble": 1, "loyal": 1}


class NpcPolicy(Protocol):
    """Proposes commands for one NPC faction. Must not mutate the world."""

    def decide(self, world: WorldState, faction_id: str, rng: random.Random) -> list[cmds.Command]:
        ...

    def spend(self, world: WorldState, faction_id: str, rng: random.Random) -> list[cmds.Command]:
        ...


def personality(char: Character) -> tuple[int, int]:
    """(aggression, caution), each 0..6."""
    aggression = sum(AGGRESSION_TRAITS.get(t, 0) for t in char.traits) + char.military // 4
    caution = sum(CAUTION_TRAITS.get(t, 0) for t in char.traits) + char.intelligence // 4
    return min(6, aggression), min(6, caution)


def pick_tactic(char: Character) -> Tactic:
    aggression, caution = personality(char)
    if aggression >= 4 or aggression > caution + 1:
        return Tactic.AGGRESSIVE
    if caution > aggression + 1:
        return Tactic.DEFENSIVE
    return Tactic.BALANCED


def enemy_cities(world: WorldState, fid: str) -> list[City]:
    out = []
    for c in world.cities.values():
        if c.dead or c.controller_id is None:
            continue
        owner = world.city_faction(c)
        if owner == fid or world.is_allied(fid, owner):
            continue
        out.append(c)
    return out


def strategic_intent(world: WorldState, fid: str) -> str:
    owned = world.faction_cities(fid)
    if not owned:
        return "defend"
    members = world.alive_members(fid)
    avg_garrison = sum(c.garrison for c in owned) / len(owned)
    threatened = any(c.garrison <= 1 or not world.defenders_of(c) or c.siege for c in owned)
    if threatened and len(members) <= 2:
        return "defend"
    enemies = enemy_cities(world, fid)
    if len(members) >= 3 and avg_garrison >= 3 and enemies:
        return "expand"
    avg_dev = sum(c.development for c in owned) / len(owned)
    if avg_dev < 2 and avg_garrison >= 2:
        return "develop"
    return "expand" if avg_garrison >= 2 and enemies else "defend"


class DefaultNpcPolicy:
    """Trait-driven expansion, opportunistic spying, and simple city spending."""

    def __init__(self, balance: BalanceConfig):
        self.balance = balance

    def decide(self, world: WorldState, faction_id: str, rng: random.Random) -> list[cmds.Command]:
        faction = world.factions.get(faction_id)
        if faction is None:
            return []
        out: list[cmds.Command] = []
        intent = strategic_intent(world, faction_id)
        enemies = {c.id for c in enemy_cities(world, faction_id)}
        aggression_scale = self.balance.npc.npc_expansion_aggression

        busy = set()
        if enemies and rng.random() < self.balance.npc.spy_chance_per_tick:
            spy = self._pick_spy(world, faction_id)
            if spy is not None:
                reachable = [c for c in world.roads.reachable_neighbors(spy.city_id, world.cities)
                             if c in enemies]
                if reachable:
                    target = world.cities[rng.choice(reachable)]
                    kind = cmds.Sabotage if target.garrison >= 4 else cmds.Spy
                    out.append(kind(character_id=spy.id, target_city_id=target.id))
                    busy.add(spy.id)

        if intent != "expand":
            return out
        for char in world.alive_members(faction_id):
            if char.id in busy or char.city_id is None or world.is_travelling(char.id):
                continue
            home = world.cities.get(char.city_id)
            if home is None or world.city_faction(home) != faction_id:
                continue
            if char.id == faction.leader_id and len(world.defenders_of(home)) <= 1:
                continue
            aggression, caution = personality(char)
            if rng.random() >= 0.1 * (1 + aggression - caution / 2) * aggression_scale:
                continue
            targets = [world.cities[c] for c in world.roads.reachable_neighbors(char.city_id, world.cities)
                       if c in enemies]
            targets = [t for t in targets
                       if world.get_intimacy(char.id, t.controller_id) < 70]
            if not targets:
                continue
            target = min(targets, key=lambda c: (c.garrison + len(world.defenders_of(c)), c.id))
            out.append(cmds.Attack(character_id=char.id, target_city_id=target.id,
                                   tactic=pick_tactic(char)))
        return out

    def _pick_spy(self, world: WorldState, fid: str) -> Character | None:
        scored = []
        for c in world.alive_members(fid):
            if c.city_id is None or world.is_travelling(c.id):
                continue
            score = c.intelligence + 3 * c.skills.espionage + (5 if c.role == Role.SPYMASTER else 0)
            if score >= 3:
                scored.append((score, c.id, c))
        if not scored:
            return None
        return max(scored, key=lambda s: (s[0], s[1]))[2]

    def spend(self, world: WorldState, faction_id: str, rng: random.Random) -> list[cmds.Command]:
        costs = self.balance.costs
        scale = self.balance.npc.npc_cost_multiplier
        intent = strategic_intent(world, faction_id)
        out: list[cmds.Command] = []
        for city in world.faction_cities(faction_id):
            present = [c for c in world.defenders_of(city) if not world.is_travelling(c.id)]
            if not present:
                continue
            actor = present[0].id
            if (intent == "develop" and city.development < 5
                    and city.gold >= round(costs.develop * scale)):
                out.append(cmds.Develop(character_id=actor, target_city_id=city.id))
            elif city.garrison < 5 and city.gold >= round(costs.reinforce * scale):
                out.append(cmds.Reinforce(character_id=actor, target_city_id=city.id))
            elif city.gold >= round(costs.develop * scale) * 2 and city.development < 5:
                out.append(cmds.Develop(character_id=actor, target_city_id=city.id))
        return out


class NpcDirector:
    """World-side NPC upkeep: free garrisons, idle wandering and hiring."""

    def __init__(self, world: WorldState, balance: BalanceConfig, player_faction_id: str,
                 rng: random.Random, garrison_cap):
        self.world = world
        self.balance = balance
        self.player_faction_id = player_faction_id
        self.rng = rng
        self.garrison_cap = garrison_cap

    def npc_factions(self) -> list[str]:
        return [f for f in self.world.factions.ids() if f != self.player_faction_id]

    def apply_bonuses(self, events: list[str]):
        w = self.world
        free = self.balance.npc.free_garrison_per_4_ticks
        if free > 0 and w.tick % 4 == 0:
            for fid in self.npc_factions():
                for city in w.faction_cities(fid):
                    w.adjust_garrison(city, free, cap=self.garrison_cap(city))
        if w.tick % UNDERDOG_INTERVAL != 0:
            return
        player_count = len(w.faction_cities(self.player_faction_id))
        for fid in self.npc_factions():
            if len(w.faction_cities(fid)) < player_count:
                capital = w.capital(fid)
                if capital is not None:
                    w.adjust_garrison(capital, 1, cap=self.garrison_cap(capital))
                    events.append(f"📯 {fid} rallies fresh troops at {capital.name}")

    def _is_idle(self, char) -> bool:
        w = self.world
        if not char.alive or char.city_id is None or w.is_travelling(char.id):
            return False
        fid = w.faction_of(char.id)
        if fid == self.player_faction_id:
            return False
        faction = w.factions.get(fid)
        if faction is not None and faction.leader_id == char.id:
            return False
        city = w.cities.get(char.city_id)
        if city is not None and city.siege and city.siege.faction_id == fid and fid is not None:
            return False
        return True

    def idle_movement(self, events: list[str]):
        w = self.world
        for char in sorted(w.characters.values(), key=lambda c: c.id):
            if not self._is_idle(char) or self.rng.random() >= IDLE_MOVE_CHANCE:
                continue
            fid = w.faction_of(char.id)
            options = []
            for nb in w.roads.reachable_neighbors(char.city_id, w.cities):
                owner = w.city_faction(w.cities[nb])
                if owner is None or (fid is not None and (owner == fid or w.is_allied(fid, owner))):
                    options.append(nb)
            if not options:
                continue
            dest = self.rng.choice(options)
            road = w.roads.find_road(char.city_id, dest, w.cities)
            t = w.roads.travel_time(road, season_of(w.tick))
            w.movements.append(Movement(char.id, char.city_id, dest, w.tick, w.tick + t, hostile=False))
            w.move_character(char, None)
            logger.debug("%s wanders toward %s", char.id, dest)

    def hire_neutrals(self, events: list[str]) -> list:
        w = self.world
        cost = round(self.balance.costs.hire_neutral * self.balance.npc.npc_cost_multiplier)
        hired = []
        for fid in self.npc_factions():
            if self.rng.random() >= HIRE_CHANCE:
                continue
            for city in w.faction_cities(fid):
                neutrals = [c for c in w.characters_in(city.id) if w.faction_of(c.id) is None]
                if not neutrals or city.gold < cost:
                    continue
                pick = sorted(neutrals, key=lambda c: c.id)[0]
                w.adjust_gold(city, -cost)
                w.join_faction(fid, pick.id)
                hired.append(Recruitment(pick.id, fid, city.id))
                events.append(f"💼 {fid} hires {pick.name} at {city.name}")
                break
        return hired
