"""Command execution for player and NPC orders, and the missions they launch."""
from __future__ import annotations
import logging
import random

from . import commands as cmds
from .balance import BalanceConfig
from .diplomacy import DiplomacyEngine
from .economy import EconomyEngine
from .tech import can_research, research_cost, start_research
from .types import (
    Character, City, Movement, Recruitment, Role, SpyMission, SpyMissionType, SpyReport,
    TradeRoute, TreatyType, TroopTransfer, season_of,
    MAX_DEVELOPMENT, MAX_DISTRICTS,
)
from .world import WorldState

logger = logging.getLogger("sanguo.orders")

BLOCKADE_TICKS = 5
SABOTAGE_GARRISON = 2
SABOTAGE_FOOD = 30
SPY_FAILURE_TRUST = -10


class CommandExecutor:
    """Validates and applies one command at a time. Failing commands are dropped."""

    def __init__(self, world: WorldState, balance: BalanceConfig, player_faction_id: str,
                 rng: random.Random, economy: EconomyEngine, diplomacy: DiplomacyEngine):
        self.world = world
        self.balance = balance
        self.player_faction_id = player_faction_id
        self.rng = rng
        self.economy = economy
        self.diplomacy = diplomacy
        self.recruitments: list[Recruitment] = []
        self.spy_reports: list[SpyReport] = []
        self.diplomacy_events = []

    def begin_tick(self):
        self.recruitments = []
        self.spy_reports = []
        self.diplomacy_events = []

    def _drop(self, cmd: cmds.Command, reason: str) -> bool:
        logger.debug("dropped %s from %s: %s", cmd.type, cmd.character_id, reason)
        return False

    def cost(self, base: int, fid: str) -> int:
        if fid == self.player_faction_id:
            return base
        return round(base * self.balance.npc.npc_cost_multiplier)

    def travel_time(self, fid: str, origin: str, dest: str) -> int | None:
        w = self.world
        road = w.roads.find_road(origin, dest, w.cities)
        if road is None:
            return None
        faction = w.factions.get(fid)
        logistics = faction is not None and "logistics" in faction.techs
        return w.roads.travel_time(road, season_of(w.tick), logistics)

    # ── Dispatch ─────────────────────────────────────────────────────────

    def execute(self, cmd: cmds.Command, events: list[str]) -> bool:
        w = self.world
        actor = w.characters.get(cmd.character_id)
        if actor is None or not actor.alive:
            return self._drop(cmd, "actor missing or dead")
        fid = w.faction_of(actor.id)
        if fid is None:
            return self._drop(cmd, "actor has no faction")
        if w.is_travelling(actor.id):
            return self._drop(cmd, "actor is travelling")
        handler = getattr(self, f"_do_{cmd.type}", None)
        if handler is None:
            return self._drop(cmd, "no handler")
        return handler(cmd, actor, fid, events)

    def _own_city(self, cmd: cmds.Command, actor: Character, fid: str) -> City | None:
        """The target city, if the actor stands in it and the faction holds it."""
        city = self.world.cities.get(cmd.target_city_id)
        if city is None or city.dead or self.world.city_faction(city) != fid:
            return None
        if actor.city_id != city.id:
            return None
        return city

    def _pay(self, city: City, amount: int) -> bool:
        if city.gold < amount:
            return False
        self.world.adjust_gold(city, -amount)
        return True

    # ── Movement ─────────────────────────────────────────────────────────

    def _depart(self, cmd: cmds.Command, actor: Character, fid: str, hostile: bool) -> bool:
        w = self.world
        dest = w.cities.get(cmd.target_city_id)
        if dest is None or dest.dead or actor.city_id is None or actor.city_id == dest.id:
            return self._drop(cmd, "bad destination")
        t = self.travel_time(fid, actor.city_id, dest.id)
        if t is None:
            return self._drop(cmd, "no road")
        w.movements.append(Movement(actor.id, actor.city_id, dest.id, w.tick, w.tick + t, hostile))
        w.move_character(actor, None)
        return True

    def _do_move(self, cmd, actor, fid, events):
        if not self._depart(cmd, actor, fid, hostile=False):
            return False
        events.append(f"🚶 {actor.name} sets out for {self.world.cities[cmd.target_city_id].name}")
        return True

    def _do_attack(self, cmd: cmds.Attack, actor, fid, events):
        w = self.world
        dest = w.cities.get(cmd.target_city_id)
        if dest is None or w.city_faction(dest) == fid:
            return self._drop(cmd, "not an enemy city")
        if not self._depart(cmd, actor, fid, hostile=True):
            return False
        if cmd.tactic is not None:
            w.queued_tactics[actor.id] = cmd.tactic
        events.append(f"🏹 {actor.name} marches on {dest.name}")
        return True

    # ── Characters ───────────────────────────────────────────────────────

    def _do_recruit(self, cmd: cmds.Recruit, actor, fid, events):
        w = self.world
        target = w.characters.get(cmd.target_character_id)
        if target is None or not target.alive or w.faction_of(target.id) is not None:
            return self._drop(cmd, "target not recruitable")
        if target.city_id is None or target.city_id != actor.city_id:
            return self._drop(cmd, "target not in the same city")
        p = 0.3 + 0.05 * actor.charm + (w.get_intimacy(actor.id, target.id) - 50) / 100
        if self.rng.random() >= max(0.05, min(0.95, p)):
            events.append(f"🙅 {target.name} declines {actor.name}'s offer")
            return True
        w.join_faction(fid, target.id)
        self.recruitments.append(Recruitment(target.id, fid, target.city_id))
        events.append(f"🤝 {actor.name} recruits {target.name}")
        return True

    def _do_hire_neutral(self, cmd: cmds.HireNeutral, actor, fid, events):
        w = self.world
        city = self._own_city(cmd, actor, fid)
        target = w.characters.get(cmd.target_character_id)
        if city is None or target is None or not target.alive:
            return self._drop(cmd, "bad city or target")
        if w.faction_of(target.id) is not None or target.city_id != city.id:
            return self._drop(cmd, "target is not a neutral in this city")
        if not self._pay(city, self.cost(self.balance.costs.hire_neutral, fid)):
            return self._drop(cmd, "not enough gold")
        w.join_faction(fid, target.id)
        self.recruitments.append(Recruitment(target.id, fid, city.id))
        events.append(f"💼 {actor.name} hires {target.name} at {city.name}")
        return True

    def _do_assign_role(self, cmd: cmds.AssignRole, actor, fid, events):
        actor.role = cmd.role
        events.append(f"📋 {actor.name} takes the role of {cmd.role.value}")
        return True

    def _do_assign_mentor(self, cmd: cmds.AssignMentor, actor, fid, events):
        w = self.world
        apprentice = w.characters.get(cmd.target_character_id)
        if apprentice is None or not apprentice.alive or apprentice.id == actor.id:
            return self._drop(cmd, "bad apprentice")
        if w.faction_of(apprentice.id) != fid:
            return self._drop(cmd, "apprentice from another faction")
        if any(a == apprentice.id for _, a in w.mentorships):
            return self._drop(cmd, "apprentice already has a mentor")
        w.mentorships.append((actor.id, apprentice.id))
        events.append(f"🎓 {actor.name} takes {apprentice.name} as apprentice")
        return True

    def _do_designate_heir(self, cmd: cmds.DesignateHeir, actor, fid, events):
        w = self.world
        faction = w.factions.get(fid)
        heir = w.characters.get(cmd.target_character_id)
        if faction.leader_id != actor.id:
            return self._drop(cmd, "only the leader names an heir")
        if heir is None or not heir.alive or heir.id == actor.id or w.faction_of(heir.id) != fid:
            return self._drop(cmd, "bad heir")
        faction.heir_id = heir.id
        events.append(f"👑 {actor.name} names {heir.name} as heir")
        return True

    # ── City economy ─────────────────────────────────────────────────────

    def _do_reinforce(self, cmd, actor, fid, events):
        city = self._own_city(cmd, actor, fid)
        if city is None:
            return self._drop(cmd, "not in an own city")
        if city.garrison >= self.economy.garrison_cap(city):
            return self._drop(cmd, "garrison at cap")
        if not self._pay(city, self.cost(self.balance.costs.reinforce, fid)):
            return self._drop(cmd, "not enough gold")
        self.world.adjust_garrison(city, 1, cap=self.economy.garrison_cap(city))
        events.append(f"🛡️ {city.name} reinforced (garrison {city.garrison})")
        return True

    def _do_develop(self, cmd, actor, fid, events):
        city = self._own_city(cmd, actor, fid)
        if city is None or city.development >= MAX_DEVELOPMENT:
            return self._drop(cmd, "cannot develop")
        if not self._pay(city, self.cost(self.balance.costs.develop, fid)):
            return self._drop(cmd, "not enough gold")
        self.world.adjust_development(city, 1)
        events.append(f"🏗️ {city.name} develops to level {city.development}")
        return True

    def _do_build_improvement(self, cmd: cmds.BuildImprovement, actor, fid, events):
        city = self._own_city(cmd, actor, fid)
        if city is None or city.specialty is not None:
            return self._drop(cmd, "city already specialised")
        if not self._pay(city, self.cost(self.balance.costs.build_improvement, fid)):
            return self._drop(cmd, "not enough gold")
        city.specialty = cmd.specialty
        events.append(f"🏛️ {city.name} builds a {cmd.specialty.value}")
        return True

    def _do_build_district(self, cmd: cmds.BuildDistrict, actor, fid, events):
        city = self._own_city(cmd, actor, fid)
        if city is None or len(city.districts) >= MAX_DISTRICTS or city.has_district(cmd.district):
            return self._drop(cmd, "district not allowed")
        if not self._pay(city, self.cost(self.balance.costs.build_district, fid)):
            return self._drop(cmd, "not enough gold")
        city.districts.append(cmd.district)
        events.append(f"🏘️ {city.name} builds a {cmd.district.value} district")
        return True

    def _do_set_path(self, cmd: cmds.SetPath, actor, fid, events):
        city = self._own_city(cmd, actor, fid)
        if city is None or city.path == cmd.path:
            return self._drop(cmd, "path unchanged")
        if not self._pay(city, self.cost(self.balance.costs.set_path, fid)):
            return self._drop(cmd, "not enough gold")
        city.path = cmd.path
        events.append(f"🧭 {city.name} follows the {cmd.path.value.replace('_', ' ')} path")
        return True

    def _do_train_unit(self, cmd: cmds.TrainUnit, actor, fid, events):
        city = self._own_city(cmd, actor, fid)
        if city is None:
            return self._drop(cmd, "not in an own city")
        if not self._pay(city, self.cost(self.balance.costs.train_unit, fid)):
            return self._drop(cmd, "not enough gold")
        field_name = cmd.unit_type.value
        setattr(city.units, field_name, getattr(city.units, field_name) + 1)
        events.append(f"🐴 {city.name} trains {field_name}")
        return True

    def _do_start_research(self, cmd: cmds.StartResearch, actor, fid, events):
        faction = self.world.factions.get(fid)
        city = self._own_city(cmd, actor, fid)
        if city is None or not can_research(faction, cmd.tech_id):
            return self._drop(cmd, "cannot research")
        if not self._pay(city, self.cost(research_cost(cmd.tech_id, self.balance), fid)):
            return self._drop(cmd, "not enough gold")
        start_research(faction, cmd.tech_id, self.balance)
        events.append(f"📖 {faction.name} begins researching {cmd.tech_id.replace('_', ' ')}")
        return True

    def _do_establish_trade(self, cmd: cmds.EstablishTrade, actor, fid, events):
        w = self.world
        city = self._own_city(cmd, actor, fid)
        other = w.cities.get(cmd.trade_city_id)
        if city is None or other is None or other.dead or other.id == city.id:
            return self._drop(cmd, "bad trade partner")
        owner = w.city_faction(other)
        if owner != fid and not w.is_allied(owner, fid):
            return self._drop(cmd, "partner city not friendly")
        if w.roads.find_road(city.id, other.id, w.cities) is None:
            return self._drop(cmd, "no road")
        pair = {city.id, other.id}
        if any({r.city_a, r.city_b} == pair for r in w.trade_routes + w.pending_routes):
            return self._drop(cmd, "duplicate route")
        if not self._pay(city, self.cost(self.balance.costs.establish_trade, fid)):
            return self._drop(cmd, "not enough gold")
        a, b = sorted(pair)
        w.pending_routes.append(TradeRoute(f"tr_{a}_{b}", fid, a, b, w.tick))
        events.append(f"🐪 {actor.name} negotiates a trade route {city.name} ↔ {other.name}")
        return True

    def _do_transfer_troops(self, cmd: cmds.TransferTroops, actor, fid, events):
        w = self.world
        origin = self._own_city(cmd, actor, fid)
        dest = w.cities.get(cmd.trade_city_id)
        if origin is None or dest is None or w.city_faction(dest) != fid or dest.id == origin.id:
            return self._drop(cmd, "bad transfer endpoints")
        if cmd.amount < 1 or origin.garrison <= cmd.amount:
            return self._drop(cmd, "not enough troops")
        t = self.travel_time(fid, origin.id, dest.id)
        if t is None:
            return self._drop(cmd, "no road")
        w.adjust_garrison(origin, -cmd.amount)
        w.transfers.append(TroopTransfer(fid, origin.id, dest.id, cmd.amount, w.tick, w.tick + t))
        events.append(f"🚚 {cmd.amount} troops leave {origin.name} for {dest.name}")
        return True

    def _do_build_siege(self, cmd, actor, fid, events):
        w = self.world
        city = w.cities.get(cmd.target_city_id)
        if city is None or city.siege is None or city.siege.faction_id != fid or city.siege.engines:
            return self._drop(cmd, "no siege of ours to equip")
        if actor.city_id != city.id:
            return self._drop(cmd, "actor not at the siege")
        capital = w.capital(fid)
        if capital is None or not self._pay(capital, self.cost(self.balance.costs.build_siege, fid)):
            return self._drop(cmd, "not enough gold")
        city.siege.engines = True
        events.append(f"🪵 {actor.name} builds siege engines before {city.name}")
        return True

    # ── Espionage ────────────────────────────────────────────────────────

    def _launch_spy(self, cmd, actor, fid, events, mission: SpyMissionType) -> bool:
        w = self.world
        target = w.cities.get(cmd.target_city_id)
        home = w.cities.get(actor.city_id) if actor.city_id else None
        if target is None or target.dead or w.city_faction(target) in (None, fid):
            return self._drop(cmd, "not an enemy city")
        if home is None or w.city_faction(home) != fid:
            return self._drop(cmd, "spy must leave from an own city")
        t = self.travel_time(fid, home.id, target.id)
        if t is None:
            return self._drop(cmd, "no road")
        if not self._pay(home, self.cost(self.balance.costs.spy_mission, fid)):
            return self._drop(cmd, "not enough gold")
        w.spy_missions.append(SpyMission(actor.id, fid, target.id, mission, w.tick, w.tick + t))
        w.move_character(actor, None)
        events.append(f"🕵️ {actor.name} slips away toward {target.name}")
        return True

    def _do_spy(self, cmd, actor, fid, events):
        return self._launch_spy(cmd, actor, fid, events, SpyMissionType.INTEL)

    def _do_sabotage(self, cmd, actor, fid, events):
        return self._launch_spy(cmd, actor, fid, events, SpyMissionType.SABOTAGE)

    def _do_blockade(self, cmd, actor, fid, events):
        return self._launch_spy(cmd, actor, fid, events, SpyMissionType.BLOCKADE)

    # ── Diplomacy ────────────────────────────────────────────────────────

    def _propose(self, cmd, actor, fid, events, kind: TreatyType) -> bool:
        outcome = self.diplomacy.propose_treaty(actor, fid, cmd.target_faction_id, kind, events)
        if outcome is None:
            return self._drop(cmd, "treaty proposal invalid")
        self.diplomacy_events.append(outcome)
        return True

    def _do_propose_nap(self, cmd, actor, fid, events):
        return self._propose(cmd, actor, fid, events, TreatyType.NON_AGGRESSION)

    def _do_propose_defense_pact(self, cmd, actor, fid, events):
        return self._propose(cmd, actor, fid, events, TreatyType.MUTUAL_DEFENSE)

    # ── Missions in flight ───────────────────────────────────────────────

    def spy_chance(self, spy: Character, fid: str, target: City) -> float:
        p = 0.4 + 0.05 * spy.skills.espionage + 0.02 * spy.intelligence - 0.03 * target.garrison
        if spy.role == Role.SPYMASTER:
            p += 0.1
        faction = self.world.factions.get(fid)
        if faction and "espionage" in faction.techs:
            p += 0.1
        return max(0.05, min(0.95, p))

    def resolve_spy_missions(self, events: list[str]) -> list[SpyReport]:
        w = self.world
        due = [s for s in w.spy_missions if s.arrival_tick <= w.tick]
        w.spy_missions = [s for s in w.spy_missions if s.arrival_tick > w.tick]
        for s in due:
            spy = w.characters.get(s.character_id)
            target = w.cities.get(s.target_city_id)
            if spy is None or not spy.alive or target is None:
                continue
            owner = w.city_faction(target)
            success = self.spy_chance(spy, s.faction_id, target) > self.rng.random()
            detail = ""
            if success:
                if s.mission == SpyMissionType.INTEL:
                    detail = f"garrison {target.garrison}, gold {target.gold}, food {target.food}"
                elif s.mission == SpyMissionType.SABOTAGE:
                    w.adjust_garrison(target, -SABOTAGE_GARRISON)
                    w.adjust_food(target, -SABOTAGE_FOOD)
                    detail = f"garrison -{SABOTAGE_GARRISON}, food -{SABOTAGE_FOOD}"
                else:
                    target.blockaded_until = w.tick + BLOCKADE_TICKS
                    detail = f"trade halted for {BLOCKADE_TICKS} ticks"
                events.append(f"🕵️ {spy.name} succeeds ({s.mission.value}) at {target.name}: {detail}")
            else:
                if owner:
                    w.adjust_trust(s.faction_id, owner, SPY_FAILURE_TRUST)
                detail = "caught"
                events.append(f"🚨 {spy.name} is caught spying on {target.name}")
            self.spy_reports.append(SpyReport(spy.id, s.faction_id, target.id, s.mission, success, detail))
            home = w.capital(s.faction_id) if w.faction_of(spy.id) == s.faction_id else None
            w.move_character(spy, home.id if home else target.id)
        return self.spy_reports

    def resolve_transfers(self, events: list[str]):
        w = self.world
        due = [t for t in w.transfers if t.arrival_tick <= w.tick]
        w.transfers = [t for t in w.transfers if t.arrival_tick > w.tick]
        for t in due:
            dest = w.cities.get(t.destination_id)
            origin = w.cities.get(t.origin_id)
            if dest is not None and w.city_faction(dest) == t.faction_id:
                w.adjust_garrison(dest, t.amount)
                events.append(f"🚚 {t.amount} troops arrive at {dest.name}")
            elif origin is not None and w.city_faction(origin) == t.faction_id:
                w.adjust_garrison(origin, t.amount)
                events.append(f"🚚 {t.amount} troops turn back to {origin.name}")
            else:
                events.append(f"🚚 {t.amount} troops are lost on the road")

    def recruit_captives(self, captives: list[tuple[str, str, str]],
                         events: list[str]) -> list[Recruitment]:
        """Captured defenders either join the captor or flee to their capital."""
        w = self.world
        out = []
        for cid, captor_fid, city_id in captives:
            char = w.characters.get(cid)
            if char is None or not char.alive or captor_fid not in w.factions:
                continue
            own = w.faction_of(cid)
            faction = w.factions.get(own)
            is_leader = faction is not None and faction.leader_id == cid
            city = w.cities.get(city_id)
            captor = w.characters.get(city.controller_id) if city else None
            charm = captor.charm if captor else 5
            if not is_leader and self.rng.random() < 0.3 + 0.05 * charm:
                w.join_faction(captor_fid, cid)
                w.mentorships = [m for m in w.mentorships if cid not in m]
                out.append(Recruitment(cid, captor_fid, city_id))
                events.append(f"⛓️ {char.name} swears allegiance to {captor_fid}")
                continue
            capital = w.capital(own) if own else None
            if capital is not None:
                w.move_character(char, capital.id)
            elif not is_leader:
                w.factions.remove_member(cid)
            events.append(f"🏃 {char.name} flees from {city.name if city else city_id}")
        self.recruitments.extend(out)
        return out
