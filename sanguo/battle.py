"""Battle resolution: arrivals, attack/defense power, captures and sieges."""
from __future__ import annotations
import logging
import random

from .balance import BalanceConfig
from .types import (
    BattleResult, BattleRound, Character, City, CityPath, DiplomacyEvent, District, Movement,
    Role, Season, Specialty, Tactic, Tradition, TreatyType, Units, season_of,
    CONQUEST_GARRISON_PENALTY, CONQUEST_LOYALTY, COUNTER_WEIGHT, COUNTERS, MAX_SKILL,
    NAP_VIOLATION_TRUST, NPC_TACTIC_WEIGHTS, SALLY_CHANCE, TACTIC_MODIFIERS,
    TIER_DEFENSE_BONUS, WINTER_DEFENSE_BONUS,
)
from .world import WorldState

logger = logging.getLogger("sanguo.battle")


def counter_advantage(x: Units, y: Units) -> float:
    """How strongly composition x counters composition y (0..1)."""
    rx, ry = x.ratios(), y.ratios()
    return sum(rx[strong] * ry[weak] for strong, weak in COUNTERS.items())


class BattleResolver:
    def __init__(self, world: WorldState, balance: BalanceConfig, player_faction_id: str,
                 rng: random.Random):
        self.world = world
        self.balance = balance
        self.player_faction_id = player_faction_id
        self.rng = rng
        self.casualties: list[tuple[str, Tactic | None]] = []   # battle-death candidates
        self.captives: list[tuple[str, str, str]] = []          # (character, captor faction, city)
        self.fought: set[str] = set()
        self.diplomacy: list[DiplomacyEvent] = []
        self.fallen: set[str] = set()                           # cities captured this tick

    def begin_tick(self):
        self.casualties = []
        self.captives = []
        self.fought = set()
        self.diplomacy = []
        self.fallen = set()

    # ── Power ────────────────────────────────────────────────────────────

    def pick_tactic(self, lead: Character, fid: str) -> Tactic:
        queued = self.world.queued_tactics.pop(lead.id, None)
        if queued is not None:
            return queued
        if fid == self.player_faction_id:
            return Tactic.BALANCED
        tactics, weights = zip(*NPC_TACTIC_WEIGHTS)
        return self.rng.choices(tactics, weights=weights)[0]

    def attack_power(self, attackers: list[Character], fid: str, tactic: Tactic,
                     attacker_units: Units, defender_units: Units,
                     rng: random.Random | None = None) -> float:
        rng = rng or self.rng
        w = self.world
        total = 0.0
        for c in attackers:
            p = c.military + 0.5 * c.intelligence + 0.5 * c.skills.tactics + rng.uniform(-1, 1)
            if c.role == Role.GENERAL:
                p *= 1.2
            total += p
        faction = w.factions.get(fid)
        if faction:
            if "iron_weapons" in faction.techs:
                total *= 1.1
            total *= 1 + faction.legacy_bonus
            if Tradition.MARTIAL in faction.traditions:
                total *= 1.1
        total *= 0.8 + w.get_morale(fid) / 250
        total *= TACTIC_MODIFIERS[tactic][0]
        total *= 1 + COUNTER_WEIGHT * counter_advantage(attacker_units, defender_units)
        return max(0.0, total)

    def defense_power(self, city: City, tactic: Tactic, attacker_units: Units,
                      rng: random.Random | None = None) -> float:
        rng = rng or self.rng
        garrison_mult = 1.0
        if city.specialty == Specialty.FORGE:
            garrison_mult += 0.2
        if city.has_district(District.DEFENSE):
            garrison_mult += 0.3
        if city.path == CityPath.FORTRESS:
            garrison_mult += 0.3
        power = city.garrison * garrison_mult + TIER_DEFENSE_BONUS[city.tier]
        if season_of(self.world.tick) == Season.WINTER:
            power += WINTER_DEFENSE_BONUS
        power += rng.uniform(0, 2)
        for d in self.world.defenders_of(city):
            power += 0.5 * d.military + 0.25 * d.intelligence
        power *= 1 - TACTIC_MODIFIERS[tactic][1]
        power *= 1 + COUNTER_WEIGHT * counter_advantage(city.units, attacker_units)
        return power

    def attacker_units(self, origins: list[str]) -> Units:
        units = Units()
        for cid in dict.fromkeys(origins):
            city = self.world.cities.get(cid)
            if city:
                units = units + city.units
        return units

    # ── Sieges ───────────────────────────────────────────────────────────

    def recall(self, fid: str, city: City):
        """Send a faction's characters camped in a city back to their capital."""
        capital = self.world.capital(fid)
        for c in self.world.characters_in(city.id):
            if self.world.faction_of(c.id) == fid:
                self.world.move_character(c, capital.id if capital else None)

    def resolve_sieges(self, events: list[str]):
        w = self.world
        combat = self.balance.combat
        for city in list(w.cities.values()):
            s = city.siege
            if s is None:
                continue
            owner = w.city_faction(city)
            besiegers = [c for c in w.characters_in(city.id) if w.faction_of(c.id) == s.faction_id]
            if (city.controller_id is None or s.faction_id not in w.factions
                    or owner == s.faction_id or w.is_allied(owner, s.faction_id) or not besiegers):
                w.clear_siege(city)
                if s.faction_id in w.factions:
                    self.recall(s.faction_id, city)
                events.append(f"🏳️ Siege of {city.name} lifted")
                continue

            delay = combat.base_siege_delay
            if city.specialty == Specialty.CITADEL:
                delay += 2
            if city.has_district(District.DEFENSE):
                delay += 1
            if w.tick - s.started_tick < delay:
                continue

            if self.rng.random() < SALLY_CHANCE:
                d_power = city.garrison + sum(0.5 * d.military for d in w.defenders_of(city))
                b_power = sum(c.military for c in besiegers)
                if d_power > b_power:
                    w.adjust_garrison(city, -1)
                    w.clear_siege(city)
                    self.recall(s.faction_id, city)
                    events.append(f"🐎 {city.name} sallies forth and breaks the siege")
                    continue
                w.adjust_garrison(city, -2)
                events.append(f"🩸 Sally from {city.name} repulsed (garrison {city.garrison})")
            else:
                w.adjust_garrison(city, -2 if s.engines else -1)

            if city.garrison == 0:
                lead = sorted(besiegers, key=lambda c: (-c.military, c.id))[0]
                events.append(f"🏯 {city.name} falls to the siege of {lead.name}")
                self.capture(city, besiegers, s.faction_id, owner, events)
                self.fallen.add(city.id)

    # ── Arrivals ─────────────────────────────────────────────────────────

    def _send_back(self, moves: list[Movement]):
        for m in moves:
            char = self.world.characters.get(m.character_id)
            if char and char.alive:
                self.world.move_character(char, m.origin_id)

    def resolve_arrivals(self, events: list[str]) -> list[BattleResult]:
        w = self.world
        due = [m for m in w.movements if m.arrival_tick <= w.tick]
        w.movements = [m for m in w.movements if m.arrival_tick > w.tick]

        # destination -> attacking faction -> movements, in first-arrival order
        contests: dict[str, dict[str, list[Movement]]] = {}
        for m in due:
            char = w.characters.get(m.character_id)
            dest = w.cities.get(m.destination_id)
            if not char or not char.alive or dest is None:
                continue
            fid = w.faction_of(char.id)
            if not m.hostile or fid is None or dest.dead:
                if not dest.dead:
                    w.move_character(char, dest.id)
                continue
            contests.setdefault(dest.id, {}).setdefault(fid, []).append(m)

        results = []
        for city_id, by_faction in contests.items():
            city = w.cities[city_id]
            captured = city_id in self.fallen
            for fid, moves in by_faction.items():
                if captured:
                    self._send_back(moves)
                    continue
                result = self._contest(city, fid, moves, events)
                if result is None:
                    continue
                results.append(result)
                captured = result.captured
        return results

    def _contest(self, city: City, fid: str, moves: list[Movement],
                 events: list[str]) -> BattleResult | None:
        w = self.world
        defender_fid = w.city_faction(city)
        chars = [w.characters[m.character_id] for m in moves]

        if defender_fid == fid or w.is_allied(fid, defender_fid):
            for c in chars:
                w.move_character(c, city.id)
            return None
        if defender_fid is not None:
            nap = w.treaty_between(fid, defender_fid, TreatyType.NON_AGGRESSION)
            if nap is not None:
                w.treaties.remove(nap)
                w.adjust_trust(fid, defender_fid, NAP_VIOLATION_TRUST)
                self._send_back(moves)
                self.diplomacy.append(DiplomacyEvent("nap_broken", fid, defender_fid,
                                                     f"{fid} marched on {city.name}"))
                events.append(f"💔 {fid} broke its non-aggression pact with {defender_fid}")
                return None

        lead = sorted(chars, key=lambda c: (-c.military, c.id))[0]
        tactic = self.pick_tactic(lead, fid)
        for c in chars:
            w.queued_tactics.pop(c.id, None)
        att_units = self.attacker_units([m.origin_id for m in moves])
        defenders = w.defenders_of(city)
        atk = self.attack_power(chars, fid, tactic, att_units, city.units)
        dfn = self.defense_power(city, tactic, att_units)
        rounds = self.battle_rounds(chars, defenders, city)

        for f in (fid, defender_fid):
            if f is not None:
                self.fought.add(f)
                w.adjust_exhaustion(f, 3)
        for c in chars + defenders:
            w.bump_battle_stat(c.id, "battles")

        captured = atk > dfn
        if captured:
            events.append(f"⚔️ {lead.name} captures {city.name} (atk {atk:.1f} vs def {dfn:.1f})")
            self.capture(city, chars, fid, defender_fid, events)
        else:
            events.append(f"🛡️ {city.name} repels {lead.name} (atk {atk:.1f} vs def {dfn:.1f})")
            w.adjust_morale(fid, -5)
            if defender_fid:
                w.adjust_morale(defender_fid, 3)
            if defender_fid is not None and city.garrison > 0 and (
                    city.siege is None or city.siege.faction_id == fid):
                w.start_siege(city, fid)
                for c in chars:
                    w.move_character(c, city.id)
            else:
                self._send_back(moves)
            for c in chars:
                self.casualties.append((c.id, tactic))

        return BattleResult(
            city_id=city.id, attacker_faction=fid, defender_faction=defender_fid,
            attacker_ids=[c.id for c in chars], tactic=tactic,
            attack_power=round(atk, 2), defense_power=round(dfn, 2),
            captured=captured, rounds=rounds,
        )

    def capture(self, city: City, winners: list[Character], fid: str,
                defender_fid: str | None, events: list[str]):
        w = self.world
        lead = sorted(winners, key=lambda c: (-c.military, c.id))[0]
        defenders = w.defenders_of(city)
        old_siege = city.siege

        w.set_controller(city, lead.id)
        w.clear_siege(city)
        w.adjust_garrison(city, -CONQUEST_GARRISON_PENALTY)
        w.set_loyalty(city.id, CONQUEST_LOYALTY)
        if old_siege and old_siege.faction_id != fid and old_siege.faction_id in w.factions:
            self.recall(old_siege.faction_id, city)

        for c in winners:
            w.move_character(c, city.id)
            w.adjust_stat(c, "military", 1)
            w.adjust_skill(c, "tactics", 1, cap=MAX_SKILL)
            w.adjust_prestige(c.id, 2)
            w.bump_battle_stat(c.id, "wins")
            w.bump_battle_stat(c.id, "captures")
        w.faction_wins[fid] = w.faction_wins.get(fid, 0) + 1
        w.adjust_morale(fid, 5)
        if defender_fid:
            w.adjust_morale(defender_fid, -5)
        for d in defenders:
            self.captives.append((d.id, fid, city.id))
            self.casualties.append((d.id, None))
        logger.info("%s captured %s", fid, city.id)

    def battle_rounds(self, attackers: list[Character], defenders: list[Character],
                      city: City) -> list[BattleRound]:
        """Three reporting rounds. They never change the outcome."""
        stand_in = city.garrison / 2
        specs = [
            ("vanguard clash", lambda c: c.military),
            ("tactical duel", lambda c: c.skills.tactics),
            ("wisdom exchange", lambda c: c.intelligence),
        ]
        rounds = []
        for name, stat in specs:
            a = max(stat(c) for c in attackers)
            d = max((stat(c) for c in defenders), default=stand_in)
            rounds.append(BattleRound(name, a, d, "attacker" if a > d else "defender"))
        return rounds

    # ── Prediction ───────────────────────────────────────────────────────

    def predict(self, attacker_ids: list[str], city_id: str, trials: int = 200) -> float:
        """Estimated attacker win rate. Reads the world, never writes it."""
        w = self.world
        city = w.cities.get(city_id)
        chars = [w.characters[c] for c in attacker_ids
                 if c in w.characters and w.characters[c].alive]
        if city is None or not chars or trials <= 0:
            return 0.0
        fid = w.faction_of(chars[0].id)
        if fid is None:
            return 0.0
        lead = sorted(chars, key=lambda c: (-c.military, c.id))[0]
        tactic = w.queued_tactics.get(lead.id, Tactic.BALANCED)
        att_units = self.attacker_units([c.city_id for c in chars if c.city_id])
        rng = random.Random(f"{city_id}:{w.tick}:{','.join(sorted(attacker_ids))}")
        wins = 0
        for _ in range(trials):
            atk = self.attack_power(chars, fid, tactic, att_units, city.units, rng=rng)
            if atk > self.defense_power(city, tactic, att_units, rng=rng):
                wins += 1
        return wins / trials
