import pytest

from sanguo import commands as cmds
from sanguo.types import DemandType, Tactic, UnitType


def test_every_command_kind_is_registered():
    assert set(cmds.COMMAND_TYPES) == {
        "move", "attack", "recruit", "reinforce", "develop", "build_improvement", "spy",
        "sabotage", "blockade", "hire_neutral", "assign_role", "start_research",
        "establish_trade", "build_district", "assign_mentor", "build_siege", "demand",
        "sow_discord", "train_unit", "set_path", "propose_nap", "propose_defense_pact",
        "designate_heir", "transfer_troops",
    }


def test_from_dict_coerces_enums():
    cmd = cmds.command_from_dict({
        "type": "attack", "character_id": "guan_yu", "target_city_id": "ye", "tactic": "aggressive",
    })
    assert isinstance(cmd, cmds.Attack)
    assert cmd.tactic is Tactic.AGGRESSIVE


def test_from_dict_ignores_foreign_fields():
    cmd = cmds.command_from_dict({
        "type": "train_unit", "character_id": "sun_quan", "target_city_id": "jianye",
        "unit_type": "archers", "tactic": "balanced", "amount": 4,
    })
    assert cmd == cmds.TrainUnit("sun_quan", "jianye", unit_type=UnitType.ARCHERS)


def test_to_dict_round_trip():
    cmd = cmds.Demand("liu_bei", "xuchang", target_faction_id="wei",
                      demand_type=DemandType.WITHDRAW, amount=0)
    data = cmds.command_to_dict(cmd)
    assert data["type"] == "demand"
    assert data["demand_type"] == "withdraw"
    assert cmds.command_from_dict(data) == cmd


@pytest.mark.parametrize("data", [
    {"type": "teleport", "character_id": "a", "target_city_id": "b"},
    {"type": "move", "character_id": "a"},
    {"character_id": "a", "target_city_id": "b"},
    {"type": "attack", "character_id": "a", "target_city_id": "b", "tactic": "reckless"},
])
def test_parser_rejects_malformed_commands(data):
    with pytest.raises(ValueError):
        cmds.command_from_dict(data)


def test_deferred_kinds():
    assert cmds.DEFERRED_TYPES == {"demand", "sow_discord"}
