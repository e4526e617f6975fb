"""Economy: gold and food production, garrisons, supply lines, trade routes."""
from __future__ import annotations
import logging
import random
from collections import deque
from dataclasses import asdict

from .balance import BalanceConfig
from .types import (
    City, CityPath, District, Role, Season, Specialty, Tier, Tradition, season_of,
    FOOD_PER_GARRISON, GARRISON_CAP, HARBOR_GOLD, MAX_SKILL, TRADE_ROUTE_LIFETIME,
    UNSUPPLIED_ATTRITION_INTERVAL,
)
from .world import WorldState

logger = logging.getLogger("sanguo.economy")


class EconomyEngine:
    def __init__(self, world: WorldState, balance: BalanceConfig, player_faction_id: str,
                 rng: random.Random):
        self.world = world
        self.balance = balance
        self.player_faction_id = player_faction_id
        self.rng = rng

    # ── Helpers ──────────────────────────────────────────────────────────

    def garrison_cap(self, city: City) -> int:
        cap = GARRISON_CAP[city.tier]
        if city.path == CityPath.FORTRESS:
            cap += 2
        faction = self.world.factions.get(self.world.city_faction(city))
        if faction and "fortification" in faction.techs:
            cap += 2
        return cap

    def route_count(self, city_id: str) -> int:
        return sum(1 for r in self.world.trade_routes if r.touches(city_id))

    def gold_multiplier(self, city: City) -> float:
        w = self.world
        eco = self.balance.economy
        fid = w.city_faction(city)
        faction = w.factions.get(fid)
        defenders = w.defenders_of(city)

        mult = 1.0 + city.development * eco.development_multiplier_per_level
        if city.specialty == Specialty.MARKET:
            mult += 0.5
        if defenders:
            mult += 0.1 * max(c.skills.commerce for c in defenders)
            if any(c.role == Role.GOVERNOR for c in defenders):
                mult += 0.2
        if city.has_district(District.COMMERCE):
            mult += eco.commerce_district_bonus
        if city.path == CityPath.TRADE_HUB:
            mult += 0.3
        if faction and Tradition.MERCANTILE in faction.traditions:
            mult += 0.1
        if city.id in w.unsupplied:
            mult -= 0.3
        if fid and w.get_exhaustion(fid) > 50:
            mult -= 0.2
        return max(0.1, mult)

    def gold_income(self, city: City) -> int:
        w = self.world
        if city.blockaded_until >= w.tick:
            return 0
        income = 0
        if city.siege is None:
            eco = self.balance.economy
            base = eco.major_city_base_income if city.tier == Tier.MAJOR else eco.minor_city_base_income
            raw = base * self.gold_multiplier(city)
            if w.city_faction(city) != self.player_faction_id:
                raw *= self.balance.npc.npc_income_multiplier
            income = round(raw)
        income += self.route_count(city.id) * self.balance.economy.trade_route_gold_bonus
        return income

    def food_income(self, city: City) -> int:
        food = self.balance.food
        base = food.major_city_food_income if city.tier == Tier.MAJOR else food.minor_city_food_income
        mult = 1.0
        if city.specialty == Specialty.GRANARY:
            mult += 0.5
        if city.has_district(District.AGRICULTURE):
            mult += 0.5
        if city.path == CityPath.BREADBASKET:
            mult += 0.3
        faction = self.world.factions.get(self.world.city_faction(city))
        if faction and "agriculture" in faction.techs:
            mult += 0.2
        if season_of(self.world.tick) == Season.WINTER:
            mult -= 0.4
        if city.drought_until >= self.world.tick:
            mult -= 0.5
        return round(base * max(0.0, mult))

    def food_consumption(self, city: City) -> int:
        eaten = city.garrison * FOOD_PER_GARRISON
        return eaten * 2 if city.siege else eaten

    # ── Pipeline steps ───────────────────────────────────────────────────

    def produce_gold(self, events: list[str]) -> dict[str, int]:
        collected: dict[str, int] = {}
        for city in self.world.controlled_cities():
            income = self.gold_income(city)
            self.world.adjust_gold(city, income)
            fid = self.world.city_faction(city)
            if fid:
                collected[fid] = collected.get(fid, 0) + income
        return collected

    def produce_food(self, events: list[str]):
        for city in self.world.controlled_cities():
            delta = self.food_income(city) - self.food_consumption(city)
            self.world.adjust_food(city, delta)
            if city.food == 0:
                self.world.adjust_garrison(city, -1)
                events.append(f"🌾 {city.name} is starving (garrison {city.garrison})")

    def recover_garrisons(self):
        interval = self.balance.economy.garrison_recovery_interval
        if interval <= 0 or self.world.tick % interval != 0:
            return
        for city in self.world.controlled_cities():
            if city.siege or city.food == 0:
                continue
            self.world.adjust_garrison(city, 1, cap=self.garrison_cap(city))

    def specialty_passives(self, events: list[str]):
        w = self.world
        for city in w.controlled_cities():
            if city.specialty == Specialty.HARBOR and city.siege is None:
                w.adjust_gold(city, HARBOR_GOLD)
            elif city.specialty == Specialty.ACADEMY and w.tick % 10 == 0:
                students = [c for c in w.defenders_of(city)
                            if min(asdict(c.skills).values()) < MAX_SKILL]
                if not students:
                    continue
                student = self.rng.choice(students)
                levels = asdict(student.skills)
                skill = min(levels, key=levels.get)
                w.adjust_skill(student, skill, 1)
                events.append(f"📚 {student.name} studies {skill} at {city.name}")

    def supplied_cities(self, fid: str) -> set[str]:
        w = self.world
        capital = w.capital(fid)
        if capital is None:
            return set()
        owned = {c.id for c in w.faction_cities(fid)}
        adjacency: dict[str, list[str]] = {}
        for r in w.trade_routes:
            if r.city_a in owned and r.city_b in owned:
                adjacency.setdefault(r.city_a, []).append(r.city_b)
                adjacency.setdefault(r.city_b, []).append(r.city_a)
        visited = {capital.id}
        queue = deque([capital.id])
        while queue:
            node = queue.popleft()
            for nb in adjacency.get(node, []):
                if nb not in visited:
                    visited.add(nb)
                    queue.append(nb)
        return visited

    def apply_supply(self, events: list[str]):
        w = self.world
        unsupplied: set[str] = set()
        for fid in w.factions.ids():
            supplied = self.supplied_cities(fid)
            unsupplied.update(c.id for c in w.faction_cities(fid) if c.id not in supplied)
        w.unsupplied = unsupplied
        if w.tick % UNSUPPLIED_ATTRITION_INTERVAL != 0:
            return
        for cid in sorted(unsupplied):
            city = w.cities[cid]
            if city.garrison > 0:
                w.adjust_garrison(city, -1)
                events.append(f"📉 {city.name} is cut off from supply (garrison {city.garrison})")

    def _route_endpoint_ok(self, fid: str, city_id: str) -> bool:
        city = self.world.cities.get(city_id)
        if city is None or city.dead or city.siege is not None:
            return False
        owner = self.world.city_faction(city)
        return owner == fid or self.world.is_allied(owner, fid)

    def update_trade_routes(self, events: list[str]):
        w = self.world
        kept = []
        for r in w.trade_routes:
            alive = r.faction_id in w.factions
            fresh = w.tick - r.established_tick <= TRADE_ROUTE_LIFETIME
            if alive and fresh and self._route_endpoint_ok(r.faction_id, r.city_a) \
                    and self._route_endpoint_ok(r.faction_id, r.city_b):
                kept.append(r)
            else:
                events.append(f"🚫 Trade route {w.cities[r.city_a].name} ↔ {w.cities[r.city_b].name} closed")
        w.trade_routes = kept

        limit = self.balance.economy.max_trade_routes_per_city
        for r in w.pending_routes:
            if not (self._route_endpoint_ok(r.faction_id, r.city_a)
                    and self._route_endpoint_ok(r.faction_id, r.city_b)):
                logger.debug("pending route %s dropped: endpoint lost", r.id)
                continue
            if self.route_count(r.city_a) >= limit or self.route_count(r.city_b) >= limit:
                logger.debug("pending route %s dropped: route limit", r.id)
                continue
            if any({x.city_a, x.city_b} == {r.city_a, r.city_b} for x in w.trade_routes):
                continue
            r.established_tick = w.tick
            w.trade_routes.append(r)
            events.append(f"📦 Trade route opened: {w.cities[r.city_a].name} ↔ {w.cities[r.city_b].name}")
        w.pending_routes = []

    def city_path_bonuses(self, events: list[str]):
        w = self.world
        for city in w.controlled_cities():
            if city.path == CityPath.CULTURAL:
                w.adjust_loyalty(city.id, 1)
            elif city.path == CityPath.FORTRESS and w.tick % 8 == 0 and city.siege is None:
                w.adjust_garrison(city, 1, cap=self.garrison_cap(city))
