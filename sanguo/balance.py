"""Game balance configuration: numeric constants per difficulty."""
from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class EconomyBalance:
    major_city_base_income: int
    minor_city_base_income: int
    development_multiplier_per_level: float
    commerce_district_bonus: float  # 0.5 = +50%
    trade_route_gold_bonus: int
    max_trade_routes_per_city: int
    garrison_recovery_interval: int


@dataclass(frozen=True)
class CostBalance:
    reinforce: int
    develop: int
    build_improvement: int
    build_district: int
    hire_neutral: int
    spy_mission: int
    establish_trade: int
    build_siege: int
    set_path: int
    sow_discord: int = 200
    train_unit: int = 100


@dataclass(frozen=True)
class VictoryBalance:
    diplomatic_consecutive_ticks: int
    economic_gold_share_threshold: float  # 0.90 = 90%
    economic_consecutive_ticks: int


@dataclass(frozen=True)
class TechBalance:
    research_time_multiplier: float
    research_cost_multiplier: float


@dataclass(frozen=True)
class CombatBalance:
    base_death_chance: float
    aggressive_death_chance: float
    base_siege_delay: int


@dataclass(frozen=True)
class EventBalance:
    world_event_chance: float
    event_card_chance: float
    event_card_gold_scale: float
    winter_food_loss: int


@dataclass(frozen=True)
class NpcBalance:
    npc_income_multiplier: float
    npc_cost_multiplier: float
    spy_chance_per_tick: float
    npc_expansion_aggression: float
    free_garrison_per_4_ticks: int


@dataclass(frozen=True)
class FoodBalance:
    major_city_food_income: int
    minor_city_food_income: int


@dataclass(frozen=True)
class BalanceConfig:
    difficulty: str
    economy: EconomyBalance
    costs: CostBalance
    victory: VictoryBalance
    tech: TechBalance
    combat: CombatBalance
    events: EventBalance
    npc: NpcBalance
    food: FoodBalance


BALANCE_EASY = BalanceConfig(
    difficulty="easy",
    economy=EconomyBalance(60, 30, 0.3, 0.8, 10, 3, 3),
    costs=CostBalance(reinforce=100, develop=300, build_improvement=500, build_district=400,
                      hire_neutral=200, spy_mission=100, establish_trade=200,
                      build_siege=300, set_path=400),
    victory=VictoryBalance(15, 0.80, 8),
    tech=TechBalance(0.9, 0.9),
    combat=CombatBalance(0.15, 0.25, 2),
    events=EventBalance(0.15, 0.30, 1.0, 10),
    npc=NpcBalance(0.85, 1.15, 0.10, 0.7, 0),
    food=FoodBalance(30, 15),
)

BALANCE_NORMAL = BalanceConfig(
    difficulty="normal",
    economy=EconomyBalance(40, 20, 0.2, 0.5, 7, 2, 4),
    costs=CostBalance(reinforce=150, develop=400, build_improvement=600, build_district=500,
                      hire_neutral=200, spy_mission=100, establish_trade=200,
                      build_siege=300, set_path=400),
    victory=VictoryBalance(30, 0.90, 15),
    tech=TechBalance(1.3, 1.2),
    combat=CombatBalance(0.15, 0.25, 2),
    events=EventBalance(0.20, 0.25, 0.7, 15),
    npc=NpcBalance(1.0, 1.0, 0.15, 1.0, 0),
    food=FoodBalance(30, 15),
)

BALANCE_HARD = BalanceConfig(
    difficulty="hard",
    economy=EconomyBalance(30, 15, 0.15, 0.4, 5, 2, 5),
    costs=CostBalance(reinforce=200, develop=500, build_improvement=700, build_district=600,
                      hire_neutral=200, spy_mission=100, establish_trade=200,
                      build_siege=300, set_path=400),
    victory=VictoryBalance(40, 0.92, 20),
    tech=TechBalance(1.5, 1.4),
    combat=CombatBalance(0.15, 0.25, 2),
    events=EventBalance(0.25, 0.20, 0.5, 20),
    npc=NpcBalance(1.25, 0.8, 0.20, 1.3, 1),
    food=FoodBalance(30, 15),
)

BALANCE_CONFIGS = {
    "easy": BALANCE_EASY,
    "normal": BALANCE_NORMAL,
    "hard": BALANCE_HARD,
}


def get_balance_config(difficulty: str) -> BalanceConfig:
    try:
        return BALANCE_CONFIGS[difficulty]
    except KeyError:
        raise ValueError(f"Unknown difficulty: {difficulty}") from None
