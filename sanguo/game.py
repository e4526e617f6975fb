"""Simulation: owns one world and advances it one tick at a time."""
from __future__ import annotations
import logging
import random
from dataclasses import asdict, replace

from .balance import BalanceConfig, get_balance_config
from .battle import BattleResolver
from .commands import DEFERRED_TYPES, Command, Demand, command_from_dict, command_to_dict
from .diplomacy import DiplomacyEngine
from .economy import EconomyEngine
from .events import EventEngine
from .lifecycle import LifecycleEngine
from .npc import DefaultNpcPolicy, NpcDirector, NpcPolicy
from .orders import CommandExecutor
from .scenario import generate_world
from .tech import TECH_INFO, advance_research
from .types import TickResult, season_of
from .victory import VictoryEvaluator
from .world import WorldState

logger = logging.getLogger("sanguo.game")

# One tick runs these steps in exactly this order; each sees the previous steps' writes.
PIPELINE = (
    "relationship_decay",
    "relationship_sync",
    "gold_production",
    "food_production",
    "garrison_recovery",
    "player_commands",
    "npc_decisions",
    "npc_spending",
    "npc_bonuses",
    "specialty_passives",
    "siege_attrition",
    "treaties",
    "idle_movement",
    "troop_transfers",
    "battle_resolution",
    "captive_recruitment",
    "spy_missions",
    "diplomacy_evaluation",
    "demands_and_discord",
    "trust_drift",
    "betrayal",
    "research",
    "npc_hiring",
    "world_events",
    "seasonal_event",
    "death_processing",
    "trade_routes",
    "supply_effects",
    "morale_update",
    "war_exhaustion",
    "prestige_update",
    "city_paths",
    "favorability_update",
    "mentorship",
    "event_card_draw",
    "loyalty_rebellion",
    "traditions",
    "elimination_sweep",
    "victory_check",
    "history_snapshot",
)


class Simulation:
    def __init__(self, world: WorldState, balance: BalanceConfig, player_faction_id: str,
                 rng: random.Random | None = None, npc_policy: NpcPolicy | None = None):
        if player_faction_id not in world.factions:
            raise ValueError(f"Unknown player faction: {player_faction_id}")
        self.world = world
        self.balance = balance
        self.player_faction_id = player_faction_id
        self.rng = rng or random.Random()
        self.npc_policy = npc_policy or DefaultNpcPolicy(balance)
        self.command_queue: list[Command] = []
        self.last_result: TickResult | None = None
        self._deferred: list[Command] = []

        args = (world, balance, player_faction_id, self.rng)
        self.economy = EconomyEngine(*args)
        self.battle = BattleResolver(*args)
        self.diplomacy = DiplomacyEngine(*args, garrison_cap=self.economy.garrison_cap)
        self.lifecycle = LifecycleEngine(*args)
        self.events = EventEngine(*args)
        self.victory = VictoryEvaluator(world, balance, player_faction_id)
        self.executor = CommandExecutor(*args, economy=self.economy, diplomacy=self.diplomacy)
        self.npc = NpcDirector(*args, garrison_cap=self.economy.garrison_cap)

    @classmethod
    def create(cls, seed: int | None = None, difficulty: str = "normal",
               player_faction_id: str = "shu") -> Simulation:
        balance = get_balance_config(difficulty)
        return cls(generate_world(), balance, player_faction_id, random.Random(seed),
                   DefaultNpcPolicy(balance))

    # ── Command queue ────────────────────────────────────────────────────

    def queue_command(self, command: Command | dict) -> Command | None:
        """Queue a command for the next tick. Malformed dicts are dropped like failing commands."""
        if isinstance(command, dict):
            try:
                command = command_from_dict(command)
            except ValueError as e:
                logger.debug("dropped %s from %s: %s", command.get("type"),
                             command.get("character_id"), e)
                return None
        self.command_queue.append(command)
        return command

    def get_command_queue(self) -> list[dict]:
        return [command_to_dict(c) for c in self.command_queue]

    def clear_command_queue(self):
        self.command_queue = []

    # ── Tick ─────────────────────────────────────────────────────────────

    def advance_day(self) -> TickResult:
        w = self.world
        if w.game.terminal:
            if self.last_result is None or not self.last_result.status.terminal:
                self.last_result = TickResult(tick=w.tick, season=season_of(w.tick),
                                              status=replace(w.game))
            return self.last_result

        w.tick += 1
        result = TickResult(tick=w.tick, season=season_of(w.tick))
        self.battle.begin_tick()
        self.executor.begin_tick()
        for step in PIPELINE:
            getattr(self, f"_step_{step}")(result)

        result.recruitments = self.executor.recruitments + result.recruitments
        result.spy_reports = list(self.executor.spy_reports)
        result.diplomacy = self.battle.diplomacy + self.executor.diplomacy_events + result.diplomacy
        result.pending_event_card = w.pending_event_card
        result.status = replace(w.game)
        result.summary = (f"Tick {w.tick} ({result.season.value}): {len(result.battles)} battles, "
                          f"{len(result.deaths)} deaths, {len(result.events)} events")
        self.last_result = result
        return result

    def _step_relationship_decay(self, r: TickResult):
        self.diplomacy.relationship_decay()

    def _step_relationship_sync(self, r: TickResult):
        self.diplomacy.relationship_sync()

    def _step_gold_production(self, r: TickResult):
        self.economy.produce_gold(r.events)

    def _step_food_production(self, r: TickResult):
        self.economy.produce_food(r.events)

    def _step_garrison_recovery(self, r: TickResult):
        self.economy.recover_garrisons()

    def _step_player_commands(self, r: TickResult):
        queue, self.command_queue = self.command_queue, []
        self._deferred = []
        for cmd in queue:
            if self.world.faction_of(cmd.character_id) != self.player_faction_id:
                logger.debug("dropped %s: %s is not a player character", cmd.type, cmd.character_id)
                continue
            if cmd.type in DEFERRED_TYPES:
                self._deferred.append(cmd)
                continue
            self.executor.execute(cmd, r.events)

    def _step_npc_decisions(self, r: TickResult):
        for fid in self.npc.npc_factions():
            for cmd in self.npc_policy.decide(self.world, fid, self.rng):
                self.executor.execute(cmd, r.events)

    def _step_npc_spending(self, r: TickResult):
        for fid in self.npc.npc_factions():
            for cmd in self.npc_policy.spend(self.world, fid, self.rng):
                self.executor.execute(cmd, r.events)

    def _step_npc_bonuses(self, r: TickResult):
        self.npc.apply_bonuses(r.events)

    def _step_specialty_passives(self, r: TickResult):
        self.economy.specialty_passives(r.events)

    def _step_siege_attrition(self, r: TickResult):
        self.battle.resolve_sieges(r.events)

    def _step_treaties(self, r: TickResult):
        r.diplomacy.extend(self.diplomacy.update_treaties(r.events))

    def _step_idle_movement(self, r: TickResult):
        self.npc.idle_movement(r.events)

    def _step_troop_transfers(self, r: TickResult):
        self.executor.resolve_transfers(r.events)

    def _step_battle_resolution(self, r: TickResult):
        r.battles = self.battle.resolve_arrivals(r.events)

    def _step_captive_recruitment(self, r: TickResult):
        self.executor.recruit_captives(self.battle.captives, r.events)

    def _step_spy_missions(self, r: TickResult):
        self.executor.resolve_spy_missions(r.events)

    def _step_diplomacy_evaluation(self, r: TickResult):
        r.diplomacy.extend(self.diplomacy.evaluate_alliances(r.events))

    def _step_demands_and_discord(self, r: TickResult):
        deferred, self._deferred = self._deferred, []
        for cmd in deferred:
            if isinstance(cmd, Demand):
                outcome = self.diplomacy.resolve_demand(cmd, r.events)
            else:
                outcome = self.diplomacy.resolve_sow_discord(cmd, r.events)
            if outcome is not None:
                r.diplomacy.append(outcome)

    def _step_trust_drift(self, r: TickResult):
        self.diplomacy.trust_drift()

    def _step_betrayal(self, r: TickResult):
        r.betrayals = self.diplomacy.evaluate_betrayals(r.events)

    def _step_research(self, r: TickResult):
        for faction in self.world.factions:
            advance_research(faction, self.world.faction_cities(faction.id), r.events)

    def _step_npc_hiring(self, r: TickResult):
        r.recruitments.extend(self.npc.hire_neutrals(r.events))

    def _step_world_events(self, r: TickResult):
        r.world_events = self.events.world_event(r.events)

    def _step_seasonal_event(self, r: TickResult):
        r.seasonal_events = self.events.seasonal_event(r.events)

    def _step_death_processing(self, r: TickResult):
        r.deaths = self.lifecycle.process_deaths(self.battle.casualties, r.events)

    def _step_trade_routes(self, r: TickResult):
        self.economy.update_trade_routes(r.events)

    def _step_supply_effects(self, r: TickResult):
        self.economy.apply_supply(r.events)

    def _step_morale_update(self, r: TickResult):
        w = self.world
        for fid in w.factions.ids():
            morale = w.get_morale(fid)
            if morale != 50:
                w.adjust_morale(fid, 1 if morale < 50 else -1)

    def _step_war_exhaustion(self, r: TickResult):
        w = self.world
        for fid in w.factions.ids():
            if fid not in self.battle.fought:
                w.adjust_exhaustion(fid, -1)
        r.diplomacy.extend(self.diplomacy.ceasefires(r.events))

    def _step_prestige_update(self, r: TickResult):
        self.lifecycle.update_prestige(r.events)

    def _step_city_paths(self, r: TickResult):
        self.economy.city_path_bonuses(r.events)

    def _step_favorability_update(self, r: TickResult):
        self.lifecycle.update_favorability()

    def _step_mentorship(self, r: TickResult):
        self.lifecycle.mentorship(r.events)

    def _step_event_card_draw(self, r: TickResult):
        self.events.draw_event_card(r.events)

    def _step_loyalty_rebellion(self, r: TickResult):
        r.rebellions = self.events.update_loyalty(r.events)

    def _step_traditions(self, r: TickResult):
        self.events.update_traditions(r.events)

    def _step_elimination_sweep(self, r: TickResult):
        self.victory.eliminate(r.events)

    def _step_victory_check(self, r: TickResult):
        self.victory.check(r.events)

    def _step_history_snapshot(self, r: TickResult):
        w = self.world
        w.history.append({
            "tick": w.tick,
            "factions": {
                f.id: {
                    "cities": len(w.faction_cities(f.id)),
                    "members": len(w.alive_members(f.id)),
                    "gold": sum(c.gold for c in w.faction_cities(f.id)),
                    "morale": w.get_morale(f.id),
                }
                for f in w.factions
            },
        })

    # ── Queries ──────────────────────────────────────────────────────────

    def get_factions(self) -> list[dict]:
        w = self.world
        out = []
        for f in w.factions:
            out.append({
                "id": f.id,
                "name": f.name,
                "leader_id": f.leader_id,
                "members": list(f.members),
                "color": f.color,
                "heir_id": f.heir_id,
                "cities": [c.id for c in w.faction_cities(f.id)],
                "legacy_bonus": f.legacy_bonus,
                "traditions": [t.value for t in f.traditions],
                "techs": list(f.techs),
                "research": asdict(f.research) if f.research else None,
                "morale": w.get_morale(f.id),
                "exhaustion": w.get_exhaustion(f.id),
                "player": f.id == self.player_faction_id,
            })
        return out

    def get_game_state(self) -> dict:
        g = self.world.game
        return {
            "status": g.status.value,
            "winner_faction_id": g.winner_faction_id,
            "win_type": g.win_type.value if g.win_type else None,
            "tick": self.world.tick,
            "diplomatic_streak": self.world.diplomatic_streak,
            "economic_streak": self.world.economic_streak,
        }

    def get_alliances(self) -> list[list[str]]:
        return [list(p) for p in sorted(self.world.alliances)]

    def predict_battle(self, attacker_ids: list[str], city_id: str, trials: int = 200) -> float:
        return self.battle.predict(attacker_ids, city_id, trials)

    def resolve_event_card(self, choice_index: int) -> list[str]:
        return self.events.resolve_event_card(choice_index)

    def get_full_state(self) -> dict:
        """Everything a spectator or client needs to draw the world."""
        w = self.world
        cities = {}
        for cid, c in w.cities.items():
            entry = asdict(c)
            entry["faction_id"] = w.city_faction(c)
            entry["loyalty"] = w.get_loyalty(cid)
            entry["supplied"] = cid not in w.unsupplied
            cities[cid] = entry

        characters = {}
        for cid, ch in w.characters.items():
            entry = asdict(ch)
            entry["faction_id"] = w.faction_of(cid)
            entry["age"] = ch.age(w.tick)
            entry["prestige"] = w.get_prestige(cid)
            entry["favorability"] = w.get_favorability(cid)
            entry["achievements"] = list(w.achievements.get(cid, []))
            characters[cid] = entry

        return {
            "tick": w.tick,
            "season": season_of(w.tick).value,
            "player_faction_id": self.player_faction_id,
            "difficulty": self.balance.difficulty,
            "game": self.get_game_state(),
            "factions": self.get_factions(),
            "cities": cities,
            "characters": characters,
            "roads": [asdict(r) for r in w.roads.roads],
            "alliances": self.get_alliances(),
            "treaties": [asdict(t) for t in w.treaties],
            "trade_routes": [asdict(t) for t in w.trade_routes],
            "movements": [asdict(m) for m in w.movements],
            "trust": {f"{a}:{b}": v for (a, b), v in sorted(w.trust.items())},
            "relations": {f"{a}:{b}": v for (a, b), v in sorted(w.relations.items())},
            "techs": {t: info["name"] for t, info in TECH_INFO.items()},
            "pending_event_card": asdict(w.pending_event_card) if w.pending_event_card else None,
            "history": list(w.history),
        }
