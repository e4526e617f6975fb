"""Default scenario: the Central Plains at the end of the Han."""
from __future__ import annotations

from .roads import Road, RoadNetwork
from .types import (
    Character, City, Faction, Role, RoadType, Skills, Specialty, Tier, Units, TICKS_PER_YEAR,
)
from .world import FactionRegistry, WorldState, pair_key

# ── City table ───────────────────────────────────────────────────────────────
#  id, name, tier, controller, gold, garrison, dev, (inf, cav, arch), specialty
CITIES = [
    ("xuchang",   "Xuchang",   Tier.MAJOR, "liu_bei",  500, 6, 2, (3, 2, 1), Specialty.MARKET),
    ("ye",        "Ye",        Tier.MAJOR, "cao_cao",  600, 7, 3, (2, 4, 1), Specialty.FORGE),
    ("jianye",    "Jianye",    Tier.MAJOR, "sun_quan", 500, 6, 2, (2, 1, 3), Specialty.HARBOR),
    ("xiapi",     "Xiapi",     Tier.MAJOR, "lu_bu",    400, 6, 1, (1, 4, 1), Specialty.CITADEL),
    ("xinye",     "Xinye",     Tier.MINOR, "liu_bei",  200, 3, 1, (2, 0, 1), None),
    ("longzhong", "Longzhong", Tier.MINOR, "liu_bei",  150, 2, 1, (1, 0, 1), Specialty.ACADEMY),
    ("beihai",    "Beihai",    Tier.MINOR, "liu_bei",  150, 3, 0, (2, 0, 1), Specialty.HARBOR),
    ("wancheng",  "Wancheng",  Tier.MINOR, "cao_cao",  200, 3, 1, (2, 1, 0), None),
    ("chaisang",  "Chaisang",  Tier.MINOR, "sun_quan", 200, 3, 1, (1, 0, 2), None),
    ("changsha",  "Changsha",  Tier.MINOR, None,       100, 2, 0, (1, 0, 1), Specialty.GRANARY),
    ("jiaozhou",  "Jiaozhou",  Tier.MINOR, None,       100, 2, 0, (1, 0, 1), None),
    ("nanman",    "Nanman",    Tier.MINOR, None,         0, 0, 0, (0, 0, 0), None),
]
DEAD_CITIES = {"nanman"}

#  from, to, travel time, road type
ROADS = [
    ("xuchang",  "xinye",     1, RoadType.OFFICIAL),
    ("xuchang",  "longzhong", 2, RoadType.OFFICIAL),
    ("xuchang",  "beihai",    2, RoadType.OFFICIAL),
    ("xuchang",  "ye",        2, RoadType.OFFICIAL),
    ("xuchang",  "wancheng",  1, RoadType.OFFICIAL),
    ("wancheng", "ye",        1, RoadType.OFFICIAL),
    ("wancheng", "xinye",     1, RoadType.OFFICIAL),
    ("xinye",    "changsha",  2, RoadType.OFFICIAL),
    ("longzhong", "changsha", 2, RoadType.MOUNTAIN),
    ("changsha", "jianye",    2, RoadType.OFFICIAL),
    ("changsha", "chaisang",  2, RoadType.MOUNTAIN),
    ("jianye",   "chaisang",  1, RoadType.OFFICIAL),
    ("jianye",   "xiapi",     2, RoadType.OFFICIAL),
    ("xiapi",    "ye",        2, RoadType.OFFICIAL),
    ("xiapi",    "beihai",    2, RoadType.OFFICIAL),
    ("beihai",   "jianye",    3, RoadType.WATERWAY),
    ("jiaozhou", "changsha",  3, RoadType.MOUNTAIN),
    ("jiaozhou", "chaisang",  2, RoadType.WATERWAY),
    ("nanman",   "jiaozhou",  2, RoadType.MOUNTAIN),
]

#  id, name, traits, (mil, int, charm), (lead, tac, com, esp), role, city, age
CHARACTERS = [
    ("liu_bei",     "Liu Bei",     ["benevolent", "ambitious", "charismatic"], (6, 6, 9), (4, 2, 2, 1), None, "xuchang", 40),
    ("guan_yu",     "Guan Yu",     ["loyal", "brave", "proud"],               (9, 6, 7), (3, 4, 0, 0), Role.GENERAL, "xuchang", 38),
    ("zhang_fei",   "Zhang Fei",   ["brave", "impulsive", "loyal"],           (9, 3, 4), (2, 3, 0, 0), Role.GENERAL, "xinye", 36),
    ("zhuge_liang", "Zhuge Liang", ["wise", "cautious", "strategic"],         (4, 10, 8), (4, 5, 3, 3), Role.DIPLOMAT, "longzhong", 27),
    ("zhao_yun",    "Zhao Yun",    ["loyal", "brave", "humble"],              (9, 6, 7), (2, 4, 0, 1), None, "xuchang", 30),
    ("cao_cao",     "Cao Cao",     ["ambitious", "cunning", "charismatic"],   (8, 9, 8), (5, 4, 3, 2), None, "ye", 45),
    ("sun_quan",    "Sun Quan",    ["cautious", "diplomatic", "ambitious"],   (6, 7, 8), (4, 2, 3, 1), Role.GOVERNOR, "jianye", 26),
    ("zhou_yu",     "Zhou Yu",     ["strategic", "proud", "ambitious"],       (7, 9, 7), (3, 5, 1, 2), Role.GENERAL, "chaisang", 32),
    ("lu_bu",       "Lu Bu",       ["brave", "treacherous", "impulsive"],     (10, 3, 4), (2, 3, 0, 0), Role.GENERAL, "xiapi", 42),
    ("diao_chan",   "Diao Chan",   ["charismatic", "cunning", "diplomatic"],  (2, 8, 10), (1, 0, 1, 4), Role.SPYMASTER, "xiapi", 22),
    ("hua_tuo",     "Hua Tuo",     ["wise", "humble", "benevolent"],          (1, 8, 6), (0, 0, 2, 0), None, "changsha", 55),
    ("ma_chao",     "Ma Chao",     ["brave", "proud", "impulsive"],           (9, 4, 5), (2, 3, 0, 0), None, "jiaozhou", 25),
]

#  id, name, leader, members, color
FACTIONS = [
    ("shu", "Shu", "liu_bei",  ["liu_bei", "guan_yu", "zhang_fei", "zhuge_liang", "zhao_yun"], "#2e8b57"),
    ("wei", "Wei", "cao_cao",  ["cao_cao"], "#4169e1"),
    ("wu",  "Wu",  "sun_quan", ["sun_quan", "zhou_yu"], "#dc143c"),
    ("lu",  "Lu",  "lu_bu",    ["lu_bu", "diao_chan"], "#8b008b"),
]

RELATIONSHIPS = [
    ("liu_bei", "guan_yu", 95), ("liu_bei", "zhang_fei", 90), ("guan_yu", "zhang_fei", 85),
    ("liu_bei", "zhuge_liang", 92), ("liu_bei", "zhao_yun", 88), ("zhuge_liang", "zhao_yun", 70),
    ("liu_bei", "cao_cao", 20), ("guan_yu", "cao_cao", 45), ("zhuge_liang", "zhou_yu", 35),
    ("liu_bei", "sun_quan", 50), ("zhuge_liang", "sun_quan", 55), ("zhou_yu", "sun_quan", 80),
    ("lu_bu", "cao_cao", 15), ("lu_bu", "liu_bei", 25), ("lu_bu", "diao_chan", 85),
    ("diao_chan", "cao_cao", 40),
]


def generate_world() -> WorldState:
    """Build the default scenario at tick 0."""
    cities: dict[str, City] = {}
    for cid, name, tier, ctrl, gold, garrison, dev, (inf, cav, arch), spec in CITIES:
        cities[cid] = City(
            id=cid, name=name, tier=tier, controller_id=ctrl, gold=gold, garrison=garrison,
            development=dev, units=Units(inf, cav, arch), specialty=spec,
            dead=cid in DEAD_CITIES,
        )

    characters: dict[str, Character] = {}
    for cid, name, traits, (mil, intel, charm), (lead, tac, com, esp), role, city, age in CHARACTERS:
        characters[cid] = Character(
            id=cid, name=name, traits=list(traits), military=mil, intelligence=intel,
            charm=charm, skills=Skills(lead, tac, com, esp), role=role, city_id=city,
            birth_tick=-age * TICKS_PER_YEAR,
        )

    registry = FactionRegistry([
        Faction(id=fid, name=name, leader_id=leader, members=list(members), color=color)
        for fid, name, leader, members, color in FACTIONS
    ])

    roads = RoadNetwork([Road(a, b, t, rt) for a, b, t, rt in ROADS])
    world = WorldState(cities=cities, characters=characters, factions=registry, roads=roads)
    for a, b, value in RELATIONSHIPS:
        world.intimacy[pair_key(a, b)] = value
    return world
