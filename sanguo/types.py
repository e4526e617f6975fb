"""Core data types for the Sanguo simulation."""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Tier(str, Enum):
    MAJOR = "major"
    MINOR = "minor"


class Role(str, Enum):
    GENERAL = "general"
    GOVERNOR = "governor"
    DIPLOMAT = "diplomat"
    SPYMASTER = "spymaster"


class Tactic(str, Enum):
    AGGRESSIVE = "aggressive"
    DEFENSIVE = "defensive"
    BALANCED = "balanced"


class UnitType(str, Enum):
    INFANTRY = "infantry"
    CAVALRY = "cavalry"
    ARCHERS = "archers"


class Specialty(str, Enum):
    MARKET = "market"
    GRANARY = "granary"
    FORGE = "forge"
    HARBOR = "harbor"
    ACADEMY = "academy"
    CITADEL = "citadel"


class District(str, Enum):
    DEFENSE = "defense"
    COMMERCE = "commerce"
    AGRICULTURE = "agriculture"
    RECRUITMENT = "recruitment"


class CityPath(str, Enum):
    FORTRESS = "fortress"
    TRADE_HUB = "trade_hub"
    CULTURAL = "cultural"
    BREADBASKET = "breadbasket"


class Season(str, Enum):
    SPRING = "spring"
    SUMMER = "summer"
    AUTUMN = "autumn"
    WINTER = "winter"


class RoadType(str, Enum):
    OFFICIAL = "official"
    MOUNTAIN = "mountain"
    WATERWAY = "waterway"


class TreatyType(str, Enum):
    NON_AGGRESSION = "non_aggression"
    MUTUAL_DEFENSE = "mutual_defense"


class SpyMissionType(str, Enum):
    INTEL = "intel"
    SABOTAGE = "sabotage"
    BLOCKADE = "blockade"


class DemandType(str, Enum):
    TRIBUTE = "tribute"
    WITHDRAW = "withdraw"


class GameStatus(str, Enum):
    ONGOING = "ongoing"
    VICTORY = "victory"
    DEFEAT = "defeat"


class WinType(str, Enum):
    CONQUEST = "conquest"
    DIPLOMACY = "diplomacy"
    ECONOMY = "economy"


class Tradition(str, Enum):
    MARTIAL = "martial"
    MERCANTILE = "mercantile"
    SCHOLARLY = "scholarly"


# ── Calendar ────────────────────────────────────────────────────────────────

TICKS_PER_SEASON = 4
TICKS_PER_YEAR = 16
SEASON_ORDER = [Season.SPRING, Season.SUMMER, Season.AUTUMN, Season.WINTER]


def season_of(tick: int) -> Season:
    return SEASON_ORDER[(tick // TICKS_PER_SEASON) % 4]


# ── Bounds ──────────────────────────────────────────────────────────────────

MAX_STAT = 10
MAX_SKILL = 5
MAX_GARRISON = 30
MAX_DEVELOPMENT = 5
MAX_FOOD = 200
MAX_DISTRICTS = 2
LEDGER_MIN, LEDGER_MAX = 0, 100

START_MORALE = 60
START_TRUST = 50
START_FAVORABILITY = 50
START_LOYALTY = 60
START_INTIMACY = 50

# ── Economy ─────────────────────────────────────────────────────────────────

GARRISON_CAP = {Tier.MAJOR: 10, Tier.MINOR: 6}
FOOD_PER_GARRISON = 5
UNSUPPLIED_ATTRITION_INTERVAL = 3
TRADE_ROUTE_LIFETIME = 60
HARBOR_GOLD = 5

# ── Combat ──────────────────────────────────────────────────────────────────

#                      attack mult  defense reduction
TACTIC_MODIFIERS = {
    Tactic.AGGRESSIVE: (1.30, 0.00),
    Tactic.BALANCED:   (1.00, 0.15),
    Tactic.DEFENSIVE:  (0.85, 0.30),
}
NPC_TACTIC_WEIGHTS = [(Tactic.AGGRESSIVE, 0.3), (Tactic.DEFENSIVE, 0.3), (Tactic.BALANCED, 0.4)]

# X beats Y
COUNTERS = {
    UnitType.CAVALRY: UnitType.INFANTRY,
    UnitType.INFANTRY: UnitType.ARCHERS,
    UnitType.ARCHERS: UnitType.CAVALRY,
}
COUNTER_WEIGHT = 0.2

TIER_DEFENSE_BONUS = {Tier.MAJOR: 3, Tier.MINOR: 1}
WINTER_DEFENSE_BONUS = 1
CONQUEST_GARRISON_PENALTY = 2
CONQUEST_LOYALTY = 30
SALLY_CHANCE = 0.2

# ── Diplomacy ───────────────────────────────────────────────────────────────

ALLIANCE_FORM_INTIMACY = 65
ALLIANCE_BREAK_INTIMACY = 25
NAP_VIOLATION_TRUST = -30
TREATY_DURATION = {TreatyType.NON_AGGRESSION: 10, TreatyType.MUTUAL_DEFENSE: 20}
TREATY_TRUST_THRESHOLD = {TreatyType.NON_AGGRESSION: 40, TreatyType.MUTUAL_DEFENSE: 60}
CEASEFIRE_EXHAUSTION = 70

# ── Lifecycle ───────────────────────────────────────────────────────────────

TRAIT_POOL = [
    "brave", "loyal", "wise", "cautious", "strategic", "ambitious", "cunning",
    "charismatic", "diplomatic", "proud", "impulsive", "humble", "benevolent",
    "treacherous",
]
GIVEN_NAMES = ["Xing", "Bao", "Tong", "Ping", "Yi", "Jun", "Zhan", "Ling", "Hao", "Shu"]
HEIR_CHANCE = 0.6
HEIR_MIN_PRESTIGE = 5
HEIR_AGE = 18
LEGACY_PRESTIGE_FLOOR = 10
LEGACY_PER_POINT = 0.01
LEGACY_CAP = 0.2
MENTOR_INTERVAL = 10

ACHIEVEMENTS = {
    #  name          stat          threshold
    "first_blood": ("wins", 1),
    "conqueror":   ("captures", 3),
    "veteran":     ("battles", 10),
}
ACHIEVEMENT_PRESTIGE = 3


@dataclass
class Skills:
    leadership: int = 0
    tactics: int = 0
    commerce: int = 0
    espionage: int = 0

    def best(self) -> tuple[str, int]:
        items = [("leadership", self.leadership), ("tactics", self.tactics),
                 ("commerce", self.commerce), ("espionage", self.espionage)]
        return max(items, key=lambda kv: kv[1])


@dataclass
class Character:
    id: str
    name: str
    traits: list[str] = field(default_factory=list)
    military: int = 5
    intelligence: int = 5
    charm: int = 5
    skills: Skills = field(default_factory=Skills)
    role: Optional[Role] = None
    city_id: Optional[str] = None
    birth_tick: Optional[int] = None
    parent_id: Optional[str] = None
    alive: bool = True
    death_tick: Optional[int] = None

    def age(self, tick: int) -> int | None:
        if self.birth_tick is None:
            return None
        return (tick - self.birth_tick) // TICKS_PER_YEAR


@dataclass
class Units:
    infantry: int = 0
    cavalry: int = 0
    archers: int = 0

    @property
    def total(self) -> int:
        return self.infantry + self.cavalry + self.archers

    def ratios(self) -> dict[UnitType, float]:
        t = self.total
        if t == 0:
            return {u: 0.0 for u in UnitType}
        return {UnitType.INFANTRY: self.infantry / t,
                UnitType.CAVALRY: self.cavalry / t,
                UnitType.ARCHERS: self.archers / t}

    def __add__(self, other: Units) -> Units:
        return Units(self.infantry + other.infantry, self.cavalry + other.cavalry,
                     self.archers + other.archers)


@dataclass
class Siege:
    faction_id: str
    started_tick: int
    engines: bool = False


@dataclass
class City:
    id: str
    name: str
    tier: Tier = Tier.MINOR
    controller_id: Optional[str] = None
    gold: int = 0
    garrison: int = 0
    development: int = 0
    food: int = 100
    units: Units = field(default_factory=Units)
    specialty: Optional[Specialty] = None
    siege: Optional[Siege] = None
    districts: list[District] = field(default_factory=list)
    path: Optional[CityPath] = None
    dead: bool = False
    blockaded_until: int = -1
    drought_until: int = -1

    def has_district(self, d: District) -> bool:
        return d in self.districts


@dataclass
class Research:
    tech_id: str
    progress: int = 0
    required: int = 1


@dataclass
class Faction:
    id: str
    name: str
    leader_id: str
    members: list[str] = field(default_factory=list)
    color: str = "#888888"
    heir_id: Optional[str] = None
    legacy_bonus: float = 0.0
    traditions: list[Tradition] = field(default_factory=list)
    techs: list[str] = field(default_factory=list)
    research: Optional[Research] = None


@dataclass
class Movement:
    character_id: str
    origin_id: str
    destination_id: str
    departure_tick: int
    arrival_tick: int
    hostile: bool = False


@dataclass
class SpyMission:
    character_id: str
    faction_id: str
    target_city_id: str
    mission: SpyMissionType
    departure_tick: int
    arrival_tick: int


@dataclass
class TroopTransfer:
    faction_id: str
    origin_id: str
    destination_id: str
    amount: int
    departure_tick: int
    arrival_tick: int


@dataclass
class TradeRoute:
    id: str
    faction_id: str
    city_a: str
    city_b: str
    established_tick: int

    def touches(self, city_id: str) -> bool:
        return city_id in (self.city_a, self.city_b)


@dataclass
class Treaty:
    kind: TreatyType
    faction_a: str
    faction_b: str
    started_tick: int
    expires_tick: int

    def involves(self, fid: str) -> bool:
        return fid in (self.faction_a, self.faction_b)


@dataclass
class GameState:
    status: GameStatus = GameStatus.ONGOING
    winner_faction_id: Optional[str] = None
    win_type: Optional[WinType] = None
    tick: int = 0

    @property
    def terminal(self) -> bool:
        return self.status != GameStatus.ONGOING


# ── Per-tick result records ─────────────────────────────────────────────────

@dataclass
class BattleRound:
    name: str
    attacker_score: float
    defender_score: float
    winner: str  # "attacker" | "defender"


@dataclass
class BattleResult:
    city_id: str
    attacker_faction: str
    defender_faction: Optional[str]
    attacker_ids: list[str]
    tactic: Tactic
    attack_power: float
    defense_power: float
    captured: bool
    rounds: list[BattleRound] = field(default_factory=list)


@dataclass
class DiplomacyEvent:
    kind: str
    faction_a: str
    faction_b: str
    detail: str = ""


@dataclass
class Recruitment:
    character_id: str
    faction_id: str
    city_id: Optional[str] = None


@dataclass
class Betrayal:
    character_id: str
    from_faction: str
    to_faction: str


@dataclass
class SpyReport:
    character_id: str
    faction_id: str
    target_city_id: str
    mission: SpyMissionType
    success: bool
    detail: str = ""


@dataclass
class Death:
    character_id: str
    cause: str  # "battle" | "age"
    successor_id: Optional[str] = None
    heir_id: Optional[str] = None


@dataclass
class GameEvent:
    kind: str
    detail: str
    city_id: Optional[str] = None
    faction_id: Optional[str] = None


@dataclass
class EventCardChoice:
    label: str
    effect: dict[str, int | str]


@dataclass
class EventCard:
    id: str
    title: str
    description: str
    choices: list[EventCardChoice]


@dataclass
class TickResult:
    tick: int
    season: Season
    events: list[str] = field(default_factory=list)
    summary: str = ""
    battles: list[BattleResult] = field(default_factory=list)
    diplomacy: list[DiplomacyEvent] = field(default_factory=list)
    recruitments: list[Recruitment] = field(default_factory=list)
    betrayals: list[Betrayal] = field(default_factory=list)
    spy_reports: list[SpyReport] = field(default_factory=list)
    deaths: list[Death] = field(default_factory=list)
    world_events: list[GameEvent] = field(default_factory=list)
    seasonal_events: list[GameEvent] = field(default_factory=list)
    rebellions: list[GameEvent] = field(default_factory=list)
    pending_event_card: Optional[EventCard] = None
    status: GameState = field(default_factory=GameState)
