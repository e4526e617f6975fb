"""World state: entity tables, faction registry and clamped ledgers.

Everything an engine is allowed to change goes through a named setter here,
so a tick's side effects can be audited by grepping for the setter.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterator, Optional

from .roads import RoadNetwork
from .types import (
    Character, City, EventCard, Faction, GameState, Movement, SpyMission, Siege, Tactic,
    TradeRoute, Treaty, TreatyType, TroopTransfer, Tier,
    LEDGER_MIN, LEDGER_MAX, MAX_DEVELOPMENT, MAX_FOOD, MAX_GARRISON, MAX_SKILL, MAX_STAT,
    START_FAVORABILITY, START_INTIMACY, START_LOYALTY, START_MORALE, START_TRUST,
)


def clamp(value: float, lo: int = LEDGER_MIN, hi: int = LEDGER_MAX) -> int:
    return max(lo, min(hi, round(value)))


def pair_key(a: str, b: str) -> tuple[str, str]:
    return (a, b) if a <= b else (b, a)


class FactionRegistry:
    """Owns the faction list for one simulation. Membership is a partition."""

    def __init__(self, factions: list[Faction] | None = None):
        self._factions: dict[str, Faction] = {}
        for f in factions or []:
            self.add(f)

    def __iter__(self) -> Iterator[Faction]:
        return iter(list(self._factions.values()))

    def __len__(self) -> int:
        return len(self._factions)

    def __contains__(self, fid: object) -> bool:
        return fid in self._factions

    def get(self, fid: str | None) -> Faction | None:
        if fid is None:
            return None
        return self._factions.get(fid)

    def ids(self) -> list[str]:
        return list(self._factions)

    def add(self, faction: Faction):
        members = list(faction.members)
        faction.members = []
        self._factions[faction.id] = faction
        for m in members:
            self.add_member(faction.id, m)

    def remove(self, fid: str) -> Faction | None:
        return self._factions.pop(fid, None)

    def faction_of(self, cid: str | None) -> str | None:
        if cid is None:
            return None
        for f in self._factions.values():
            if cid in f.members:
                return f.id
        return None

    def add_member(self, fid: str, cid: str):
        self.remove_member(cid)
        faction = self._factions[fid]
        faction.members.append(cid)

    def remove_member(self, cid: str) -> str | None:
        for f in self._factions.values():
            if cid in f.members:
                f.members.remove(cid)
                if f.heir_id == cid:
                    f.heir_id = None
                return f.id
        return None


@dataclass
class WorldState:
    cities: dict[str, City]
    characters: dict[str, Character]
    factions: FactionRegistry
    roads: RoadNetwork = field(default_factory=RoadNetwork)
    tick: int = 0
    movements: list[Movement] = field(default_factory=list)
    spy_missions: list[SpyMission] = field(default_factory=list)
    transfers: list[TroopTransfer] = field(default_factory=list)
    trade_routes: list[TradeRoute] = field(default_factory=list)
    pending_routes: list[TradeRoute] = field(default_factory=list)
    treaties: list[Treaty] = field(default_factory=list)
    intimacy: dict[tuple[str, str], int] = field(default_factory=dict)
    relations: dict[tuple[str, str], str] = field(default_factory=dict)  # friend | rival | neutral
    alliances: set[tuple[str, str]] = field(default_factory=set)
    morale: dict[str, int] = field(default_factory=dict)
    exhaustion: dict[str, int] = field(default_factory=dict)
    trust: dict[tuple[str, str], int] = field(default_factory=dict)
    prestige: dict[str, int] = field(default_factory=dict)
    favorability: dict[str, int] = field(default_factory=dict)
    loyalty: dict[str, int] = field(default_factory=dict)
    unsupplied: set[str] = field(default_factory=set)
    mentorships: list[tuple[str, str]] = field(default_factory=list)  # (mentor, apprentice)
    queued_tactics: dict[str, Tactic] = field(default_factory=dict)
    battle_stats: dict[str, dict[str, int]] = field(default_factory=dict)
    achievements: dict[str, list[str]] = field(default_factory=dict)
    faction_wins: dict[str, int] = field(default_factory=dict)
    game: GameState = field(default_factory=GameState)
    diplomatic_streak: int = 0
    economic_streak: int = 0
    history: list[dict] = field(default_factory=list)
    pending_event_card: Optional[EventCard] = None
    recent_cards: list[str] = field(default_factory=list)
    card_counter: int = 0

    # ── Queries ──────────────────────────────────────────────────────────

    def faction_of(self, cid: str | None) -> str | None:
        return self.factions.faction_of(cid)

    def city_faction(self, city: City) -> str | None:
        return self.faction_of(city.controller_id)

    def faction_cities(self, fid: str) -> list[City]:
        return [c for c in self.cities.values()
                if c.controller_id and not c.dead and self.faction_of(c.controller_id) == fid]

    def controlled_cities(self) -> list[City]:
        return [c for c in self.cities.values() if c.controller_id and not c.dead]

    def alive_members(self, fid: str) -> list[Character]:
        faction = self.factions.get(fid)
        if not faction:
            return []
        return [self.characters[m] for m in faction.members
                if m in self.characters and self.characters[m].alive]

    def characters_in(self, city_id: str) -> list[Character]:
        return [c for c in self.characters.values() if c.alive and c.city_id == city_id]

    def defenders_of(self, city: City) -> list[Character]:
        fid = self.city_faction(city)
        if fid is None:
            return []
        return [c for c in self.characters_in(city.id) if self.faction_of(c.id) == fid]

    def capital(self, fid: str) -> City | None:
        faction = self.factions.get(fid)
        if not faction:
            return None
        owned = self.faction_cities(fid)
        if not owned:
            return None
        leader = self.characters.get(faction.leader_id)
        if leader and leader.city_id:
            for c in owned:
                if c.id == leader.city_id:
                    return c
        for c in owned:
            if c.tier == Tier.MAJOR:
                return c
        return owned[0]

    def is_allied(self, a: str | None, b: str | None) -> bool:
        if a is None or b is None or a == b:
            return False
        return pair_key(a, b) in self.alliances

    def treaty_between(self, a: str, b: str, kind: TreatyType | None = None) -> Treaty | None:
        for t in self.treaties:
            if t.involves(a) and t.involves(b) and a != b and (kind is None or t.kind == kind):
                return t
        return None

    def rivals_of(self, fid: str) -> list[str]:
        return [f for f in self.factions.ids() if f != fid]

    def is_travelling(self, cid: str) -> bool:
        return (any(m.character_id == cid for m in self.movements)
                or any(s.character_id == cid for s in self.spy_missions))

    # ── City setters ─────────────────────────────────────────────────────

    def adjust_garrison(self, city: City, delta: int, cap: int = MAX_GARRISON):
        if delta >= 0:
            # never pushes a city over the cap, never trims one already above it
            city.garrison = max(city.garrison, min(cap, MAX_GARRISON, city.garrison + delta))
        else:
            city.garrison = max(0, city.garrison + delta)

    def adjust_gold(self, city: City, delta: int):
        city.gold = max(0, city.gold + round(delta))

    def adjust_food(self, city: City, delta: int):
        city.food = max(0, min(MAX_FOOD, city.food + round(delta)))

    def adjust_development(self, city: City, delta: int):
        city.development = max(0, min(MAX_DEVELOPMENT, city.development + delta))

    def set_controller(self, city: City, cid: str | None):
        city.controller_id = cid
        if city.siege and self.faction_of(cid) == city.siege.faction_id:
            city.siege = None

    def start_siege(self, city: City, fid: str):
        if city.siege is None and self.city_faction(city) != fid:
            city.siege = Siege(faction_id=fid, started_tick=self.tick)

    def clear_siege(self, city: City):
        city.siege = None

    # ── Character setters ────────────────────────────────────────────────

    def adjust_stat(self, char: Character, stat: str, delta: int):
        setattr(char, stat, max(0, min(MAX_STAT, getattr(char, stat) + delta)))

    def adjust_skill(self, char: Character, skill: str, delta: int, cap: int = MAX_SKILL):
        cur = getattr(char.skills, skill)
        setattr(char.skills, skill, max(0, min(cap, cur + delta)))

    def move_character(self, char: Character, city_id: str | None):
        char.city_id = city_id

    def join_faction(self, fid: str, cid: str):
        """Move a character into a faction; its cities stop being besieged by its new side."""
        self.factions.add_member(fid, cid)
        for city in self.cities.values():
            if city.controller_id == cid and city.siege and city.siege.faction_id == fid:
                city.siege = None

    # ── Ledgers ──────────────────────────────────────────────────────────

    def get_morale(self, fid: str) -> int:
        return self.morale.get(fid, START_MORALE)

    def adjust_morale(self, fid: str, delta: float):
        self.morale[fid] = clamp(self.get_morale(fid) + delta)

    def get_exhaustion(self, fid: str) -> int:
        return self.exhaustion.get(fid, 0)

    def adjust_exhaustion(self, fid: str, delta: float):
        self.exhaustion[fid] = clamp(self.get_exhaustion(fid) + delta)

    def get_trust(self, a: str, b: str) -> int:
        return self.trust.get(pair_key(a, b), START_TRUST)

    def adjust_trust(self, a: str, b: str, delta: float):
        if a == b:
            return
        self.trust[pair_key(a, b)] = clamp(self.get_trust(a, b) + delta)

    def get_prestige(self, cid: str) -> int:
        return self.prestige.get(cid, 0)

    def adjust_prestige(self, cid: str, delta: float):
        self.prestige[cid] = clamp(self.get_prestige(cid) + delta)

    def get_favorability(self, cid: str) -> int:
        return self.favorability.get(cid, START_FAVORABILITY)

    def adjust_favorability(self, cid: str, delta: float):
        self.favorability[cid] = clamp(self.get_favorability(cid) + delta)

    def get_loyalty(self, city_id: str) -> int:
        return self.loyalty.get(city_id, START_LOYALTY)

    def set_loyalty(self, city_id: str, value: float):
        self.loyalty[city_id] = clamp(value)

    def adjust_loyalty(self, city_id: str, delta: float):
        self.set_loyalty(city_id, self.get_loyalty(city_id) + delta)

    def get_intimacy(self, a: str, b: str) -> int:
        return self.intimacy.get(pair_key(a, b), START_INTIMACY)

    def adjust_intimacy(self, a: str, b: str, delta: float):
        if a == b:
            return
        self.intimacy[pair_key(a, b)] = clamp(self.get_intimacy(a, b) + delta)

    def set_alliance(self, a: str, b: str, allied: bool):
        key = pair_key(a, b)
        if allied and a != b:
            self.alliances.add(key)
        else:
            self.alliances.discard(key)

    def bump_battle_stat(self, cid: str, stat: str, amount: int = 1):
        stats = self.battle_stats.setdefault(cid, {"wins": 0, "captures": 0, "battles": 0})
        stats[stat] = stats.get(stat, 0) + amount
