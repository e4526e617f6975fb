"""Player / NPC command variants. One dataclass per command kind."""
from __future__ import annotations
from dataclasses import dataclass, fields
from typing import ClassVar, Optional

from .types import CityPath, DemandType, District, Role, Specialty, Tactic, UnitType


@dataclass
class Command:
    character_id: str
    target_city_id: str
    type: ClassVar[str] = ""


@dataclass
class Move(Command):
    type: ClassVar[str] = "move"


@dataclass
class Attack(Command):
    tactic: Optional[Tactic] = None
    type: ClassVar[str] = "attack"


@dataclass
class Recruit(Command):
    target_character_id: str = ""
    type: ClassVar[str] = "recruit"


@dataclass
class Reinforce(Command):
    type: ClassVar[str] = "reinforce"


@dataclass
class Develop(Command):
    type: ClassVar[str] = "develop"


@dataclass
class BuildImprovement(Command):
    specialty: Specialty = Specialty.MARKET
    type: ClassVar[str] = "build_improvement"


@dataclass
class Spy(Command):
    type: ClassVar[str] = "spy"


@dataclass
class Sabotage(Command):
    type: ClassVar[str] = "sabotage"


@dataclass
class Blockade(Command):
    type: ClassVar[str] = "blockade"


@dataclass
class HireNeutral(Command):
    target_character_id: str = ""
    type: ClassVar[str] = "hire_neutral"


@dataclass
class AssignRole(Command):
    role: Role = Role.GENERAL
    type: ClassVar[str] = "assign_role"


@dataclass
class StartResearch(Command):
    tech_id: str = ""
    type: ClassVar[str] = "start_research"


@dataclass
class EstablishTrade(Command):
    trade_city_id: str = ""
    type: ClassVar[str] = "establish_trade"


@dataclass
class BuildDistrict(Command):
    district: District = District.DEFENSE
    type: ClassVar[str] = "build_district"


@dataclass
class AssignMentor(Command):
    target_character_id: str = ""  # apprentice
    type: ClassVar[str] = "assign_mentor"


@dataclass
class BuildSiege(Command):
    type: ClassVar[str] = "build_siege"


@dataclass
class Demand(Command):
    target_faction_id: str = ""
    demand_type: DemandType = DemandType.TRIBUTE
    amount: int = 0
    type: ClassVar[str] = "demand"


@dataclass
class SowDiscord(Command):
    target_faction_id: str = ""
    type: ClassVar[str] = "sow_discord"


@dataclass
class TrainUnit(Command):
    unit_type: UnitType = UnitType.INFANTRY
    type: ClassVar[str] = "train_unit"


@dataclass
class SetPath(Command):
    path: CityPath = CityPath.FORTRESS
    type: ClassVar[str] = "set_path"


@dataclass
class ProposeNap(Command):
    target_faction_id: str = ""
    type: ClassVar[str] = "propose_nap"


@dataclass
class ProposeDefensePact(Command):
    target_faction_id: str = ""
    type: ClassVar[str] = "propose_defense_pact"


@dataclass
class DesignateHeir(Command):
    target_character_id: str = ""
    type: ClassVar[str] = "designate_heir"


@dataclass
class TransferTroops(Command):
    trade_city_id: str = ""  # destination
    amount: int = 1
    type: ClassVar[str] = "transfer_troops"


COMMAND_TYPES: dict[str, type[Command]] = {
    cls.type: cls for cls in (
        Move, Attack, Recruit, Reinforce, Develop, BuildImprovement, Spy, Sabotage,
        Blockade, HireNeutral, AssignRole, StartResearch, EstablishTrade, BuildDistrict,
        AssignMentor, BuildSiege, Demand, SowDiscord, TrainUnit, SetPath, ProposeNap,
        ProposeDefensePact, DesignateHeir, TransferTroops,
    )
}

# Field name -> enum used to coerce raw request values
_ENUM_FIELDS = {
    "tactic": Tactic, "role": Role, "specialty": Specialty, "district": District,
    "demand_type": DemandType, "unit_type": UnitType, "path": CityPath,
}

# Commands resolved by the diplomacy step rather than the command step
DEFERRED_TYPES = {Demand.type, SowDiscord.type}


def command_from_dict(data: dict) -> Command:
    """Build a command from a plain dict with a ``type`` discriminator."""
    kind = data.get("type")
    cls = COMMAND_TYPES.get(kind)
    if cls is None:
        raise ValueError(f"Unknown command type: {kind!r}")
    if not data.get("character_id") or not data.get("target_city_id"):
        raise ValueError("character_id and target_city_id are required")
    kwargs = {}
    for f in fields(cls):
        if f.name not in data or data[f.name] is None:
            continue
        value = data[f.name]
        if f.name in _ENUM_FIELDS:
            value = _ENUM_FIELDS[f.name](value)
        kwargs[f.name] = value
    return cls(**kwargs)


def command_to_dict(cmd: Command) -> dict:
    out: dict = {"type": cmd.type}
    for f in fields(cmd):
        v = getattr(cmd, f.name)
        out[f.name] = v.value if hasattr(v, "value") else v
    return out
