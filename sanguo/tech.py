"""Technology tree and research progress."""
from __future__ import annotations
import logging
import math

from .balance import BalanceConfig
from .types import Faction, Research, Specialty, Tradition

logger = logging.getLogger("sanguo.tech")

#                 name                  base ticks  base cost  description
TECH_INFO = {
    "iron_weapons":  {"name": "Iron Weapons",  "ticks": 8,  "cost": 300, "desc": "Attack power x1.1"},
    "fortification": {"name": "Fortification", "ticks": 8,  "cost": 300, "desc": "Garrison cap +2"},
    "logistics":     {"name": "Logistics",     "ticks": 6,  "cost": 250, "desc": "Travel time -1"},
    "agriculture":   {"name": "Agriculture",   "ticks": 6,  "cost": 200, "desc": "Food income +20%"},
    "espionage":     {"name": "Espionage",     "ticks": 10, "cost": 350, "desc": "Spy success +10%"},
}


def research_cost(tech_id: str, balance: BalanceConfig) -> int:
    return round(TECH_INFO[tech_id]["cost"] * balance.tech.research_cost_multiplier)


def research_ticks(tech_id: str, balance: BalanceConfig) -> int:
    return math.ceil(TECH_INFO[tech_id]["ticks"] * balance.tech.research_time_multiplier)


def can_research(faction: Faction, tech_id: str) -> bool:
    """Unknown, already known, or a research already running all block a new start."""
    if tech_id not in TECH_INFO:
        return False
    if tech_id in faction.techs:
        return False
    return faction.research is None


def available_techs(faction: Faction) -> list[str]:
    return [t for t in TECH_INFO if t not in faction.techs]


def start_research(faction: Faction, tech_id: str, balance: BalanceConfig):
    faction.research = Research(tech_id=tech_id, required=research_ticks(tech_id, balance))


def advance_research(faction: Faction, cities: list, events: list[str]) -> str | None:
    """Progress the running research by one tick. Returns the tech id on completion."""
    r = faction.research
    if r is None:
        return None
    step = 1
    if any(c.specialty == Specialty.ACADEMY for c in cities):
        step += 1
    if Tradition.SCHOLARLY in faction.traditions:
        step += 1
    r.progress += step
    if r.progress < r.required:
        return None
    faction.techs.append(r.tech_id)
    faction.research = None
    events.append(f"🔬 {faction.name} researched {TECH_INFO[r.tech_id]['name']}")
    logger.info("%s completed %s", faction.id, r.tech_id)
    return r.tech_id
