"""Character lifecycle: aging, deaths, succession, heirs, prestige and mentorship."""
from __future__ import annotations
import logging
import random

from .balance import BalanceConfig
from .types import (
    Character, Death, Skills, Tactic,
    ACHIEVEMENT_PRESTIGE, ACHIEVEMENTS, GIVEN_NAMES, HEIR_AGE, HEIR_CHANCE, HEIR_MIN_PRESTIGE,
    LEGACY_CAP, LEGACY_PER_POINT, LEGACY_PRESTIGE_FLOOR, MENTOR_INTERVAL, TICKS_PER_YEAR,
    TRAIT_POOL,
)
from .world import WorldState

logger = logging.getLogger("sanguo.lifecycle")


def old_age_death_chance(age: int) -> float:
    if age < 60:
        return 0.0
    if age <= 70:
        return 0.05 + 0.03 * (age - 60)
    return 0.35


class LifecycleEngine:
    def __init__(self, world: WorldState, balance: BalanceConfig, player_faction_id: str,
                 rng: random.Random):
        self.world = world
        self.balance = balance
        self.player_faction_id = player_faction_id
        self.rng = rng

    def battle_death_chance(self, tactic: Tactic | None) -> float:
        combat = self.balance.combat
        if tactic == Tactic.AGGRESSIVE:
            return combat.aggressive_death_chance
        if tactic == Tactic.DEFENSIVE:
            return combat.base_death_chance / 2
        return combat.base_death_chance

    # ── Deaths ───────────────────────────────────────────────────────────

    def process_deaths(self, casualties: list[tuple[str, Tactic | None]],
                       events: list[str]) -> list[Death]:
        """Roll battle deaths for this tick's candidates, then aging on year boundaries."""
        w = self.world
        deaths = []
        for cid, tactic in casualties:
            char = w.characters.get(cid)
            if char is None or not char.alive:
                continue
            if self.rng.random() < self.battle_death_chance(tactic):
                deaths.append(self.kill(char, "battle", events))

        if w.tick % TICKS_PER_YEAR != 0:
            return deaths
        for char in list(w.characters.values()):
            if not char.alive or char.birth_tick is None:
                continue
            age = char.age(w.tick)
            if 20 <= age <= 35 and self.rng.random() < 0.3:
                stat = self.rng.choice(["military", "intelligence", "charm"])
                w.adjust_stat(char, stat, 1)
            elif age > 55 and self.rng.random() < 0.3:
                w.adjust_stat(char, "military", -1)
            if self.rng.random() < old_age_death_chance(age):
                deaths.append(self.kill(char, "age", events))
        return deaths

    def kill(self, char: Character, cause: str, events: list[str]) -> Death:
        w = self.world
        fid = w.faction_of(char.id)
        faction = w.factions.get(fid)
        was_leader = faction is not None and faction.leader_id == char.id
        designated = faction.heir_id if faction else None
        last_city = char.city_id

        char.alive = False
        char.death_tick = w.tick
        w.move_character(char, None)
        w.factions.remove_member(char.id)
        w.mentorships = [m for m in w.mentorships if char.id not in m]
        w.queued_tactics.pop(char.id, None)
        w.movements = [m for m in w.movements if m.character_id != char.id]
        w.spy_missions = [s for s in w.spy_missions if s.character_id != char.id]
        verb = "falls in battle" if cause == "battle" else "dies of old age"
        events.append(f"💀 {char.name} {verb}")
        logger.info("%s died (%s)", char.id, cause)

        successor = None
        if was_leader:
            successor = self.pick_successor(fid, designated)
        heir = None
        if fid and w.get_prestige(char.id) >= HEIR_MIN_PRESTIGE and self.rng.random() < HEIR_CHANCE:
            heir = self.spawn_heir(char, fid, last_city, events)
            if was_leader and successor is None:
                successor = heir

        if was_leader:
            w.adjust_morale(fid, -10)
            surplus = w.get_prestige(char.id) - LEGACY_PRESTIGE_FLOOR
            if surplus > 0:
                faction.legacy_bonus = min(LEGACY_CAP, faction.legacy_bonus + LEGACY_PER_POINT * surplus)
            if successor is not None:
                faction.leader_id = successor.id
                if faction.heir_id == successor.id:
                    faction.heir_id = None
                events.append(f"👑 {successor.name} succeeds {char.name} as leader of {faction.name}")

        if was_leader:
            new_holder = successor
        else:
            new_holder = w.characters.get(faction.leader_id) if faction else None
            if new_holder is not None and not new_holder.alive:
                new_holder = None
        for city in w.cities.values():
            if city.controller_id == char.id:
                w.set_controller(city, new_holder.id if new_holder else None)

        return Death(character_id=char.id, cause=cause,
                     successor_id=successor.id if successor else None,
                     heir_id=heir.id if heir else None)

    def pick_successor(self, fid: str, designated: str | None) -> Character | None:
        w = self.world
        members = w.alive_members(fid)
        for m in members:
            if m.id == designated:
                return m
        if not members:
            return None
        return sorted(members, key=lambda c: (-(c.military + c.intelligence), c.id))[0]

    def spawn_heir(self, parent: Character, fid: str, last_city: str | None,
                   events: list[str]) -> Character:
        w = self.world
        rng = self.rng
        inherited = rng.sample(parent.traits, k=min(len(parent.traits), rng.randint(1, 2)))
        fresh = rng.choice([t for t in TRAIT_POOL if t not in inherited])
        surname = parent.name.split()[0]
        heir = Character(
            id=f"{parent.id}_heir_{w.tick}",
            name=f"{surname} {rng.choice(GIVEN_NAMES)}",
            traits=inherited + [fresh],
            military=round(parent.military * rng.uniform(0.6, 0.8)),
            intelligence=round(parent.intelligence * rng.uniform(0.6, 0.8)),
            charm=round(parent.charm * rng.uniform(0.6, 0.8)),
            skills=Skills(),
            birth_tick=w.tick - HEIR_AGE * TICKS_PER_YEAR,
            parent_id=parent.id,
        )
        city = w.cities.get(last_city) if last_city else None
        if city is None or (w.city_faction(city) != fid and city.controller_id != parent.id):
            city = w.capital(fid)
        heir.city_id = city.id if city else None
        w.characters[heir.id] = heir
        w.factions.add_member(fid, heir.id)
        w.adjust_prestige(heir.id, round(0.3 * w.get_prestige(parent.id)))
        events.append(f"👶 {heir.name}, heir of {parent.name}, comes of age")
        return heir

    # ── Prestige, favorability, mentorship ───────────────────────────────

    def update_prestige(self, events: list[str]):
        w = self.world
        for cid, stats in w.battle_stats.items():
            char = w.characters.get(cid)
            if char is None or not char.alive:
                continue
            earned = w.achievements.setdefault(cid, [])
            for name, (stat, threshold) in ACHIEVEMENTS.items():
                if name not in earned and stats.get(stat, 0) >= threshold:
                    earned.append(name)
                    w.adjust_prestige(cid, ACHIEVEMENT_PRESTIGE)
                    events.append(f"🏅 {char.name} earns {name.replace('_', ' ')}")
        if w.tick % TICKS_PER_YEAR == 0:
            for faction in w.factions:
                leader = w.characters.get(faction.leader_id)
                if leader and leader.alive:
                    w.adjust_prestige(leader.id, 1)

    def update_favorability(self):
        w = self.world
        for faction in w.factions:
            leader = w.characters.get(faction.leader_id)
            if leader is None or not leader.alive:
                continue
            for m in w.alive_members(faction.id):
                if m.id == leader.id:
                    continue
                target = w.get_intimacy(m.id, leader.id)
                fav = w.get_favorability(m.id)
                if fav < target:
                    w.adjust_favorability(m.id, 1)
                elif fav > target:
                    w.adjust_favorability(m.id, -1)

    def mentorship(self, events: list[str]):
        w = self.world
        kept = []
        for mentor_id, apprentice_id in w.mentorships:
            mentor = w.characters.get(mentor_id)
            apprentice = w.characters.get(apprentice_id)
            if (mentor is None or apprentice is None or not mentor.alive or not apprentice.alive
                    or w.faction_of(mentor_id) is None
                    or w.faction_of(mentor_id) != w.faction_of(apprentice_id)):
                continue
            kept.append((mentor_id, apprentice_id))
            if w.tick % MENTOR_INTERVAL != 0:
                continue
            skill, level = mentor.skills.best()
            if getattr(apprentice.skills, skill) < level:
                w.adjust_skill(apprentice, skill, 1, cap=level)
                events.append(f"🎓 {mentor.name} teaches {apprentice.name} {skill}")
        w.mentorships = kept
