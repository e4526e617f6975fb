import pytest

from sanguo.balance import BALANCE_CONFIGS, BALANCE_HARD, BALANCE_NORMAL, get_balance_config


@pytest.mark.parametrize("difficulty", ["easy", "normal", "hard"])
def test_presets(difficulty):
    cfg = get_balance_config(difficulty)
    assert cfg.difficulty == difficulty
    assert cfg is BALANCE_CONFIGS[difficulty]


def test_unknown_difficulty():
    with pytest.raises(ValueError, match="nightmare"):
        get_balance_config("nightmare")


def test_harder_games_cost_more():
    easy = get_balance_config("easy")
    assert easy.costs.reinforce < BALANCE_NORMAL.costs.reinforce < BALANCE_HARD.costs.reinforce
    assert easy.economy.major_city_base_income > BALANCE_HARD.economy.major_city_base_income
    assert BALANCE_HARD.npc.free_garrison_per_4_ticks == 1


def test_presets_are_frozen():
    with pytest.raises(AttributeError):
        BALANCE_NORMAL.costs.reinforce = 1
