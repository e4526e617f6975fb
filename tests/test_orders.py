import random

import pytest

from sanguo import commands as cmds
from sanguo.balance import BALANCE_NORMAL
from sanguo.diplomacy import DiplomacyEngine
from sanguo.economy import EconomyEngine
from sanguo.orders import CommandExecutor
from sanguo.types import (
    Character, CityPath, District, Role, Siege, SpyMission, SpyMissionType, Tactic,
    TroopTransfer, UnitType,
)


class FixedRng(random.Random):
    def __init__(self, value):
        super().__init__(0)
        self.value = value

    def random(self):
        return self.value


def make_executor(world, rng=None):
    rng = rng or random.Random(0)
    args = (world, BALANCE_NORMAL, "p1", rng)
    return CommandExecutor(*args, economy=EconomyEngine(*args), diplomacy=DiplomacyEngine(*args))


def run(world, cmd, rng=None):
    ex = make_executor(world, rng)
    events: list[str] = []
    return ex.execute(cmd, events), ex, events


# ── Dispatch and preconditions ──────────────────────────────────────────────

class TestDispatch:
    def test_dead_actor_is_dropped(self, small_world):
        small_world.characters["hero"].alive = False
        ok, _, events = run(small_world, cmds.Develop("hero", "alpha"))
        assert not ok and events == []

    def test_unaffiliated_actor_is_dropped(self, small_world):
        small_world.factions.remove_member("aide")
        ok, _, _ = run(small_world, cmds.Develop("aide", "alpha"))
        assert not ok

    def test_travelling_actor_is_dropped(self, small_world):
        w = small_world
        ok, _, _ = run(w, cmds.Move("aide", "beta"))
        assert ok
        ok, _, _ = run(w, cmds.Move("aide", "gamma"))
        assert not ok

    def test_economy_orders_need_presence(self, small_world):
        small_world.characters["hero"].city_id = "gamma"
        ok, _, _ = run(small_world, cmds.Develop("hero", "alpha"))
        assert not ok
        assert small_world.cities["alpha"].development == 0


# ── Movement ────────────────────────────────────────────────────────────────

class TestMovement:
    def test_move_schedules_arrival(self, small_world):
        w = small_world
        w.tick = 3
        ok, _, _ = run(w, cmds.Move("aide", "gamma"))
        assert ok
        m = w.movements[0]
        assert (m.origin_id, m.destination_id, m.departure_tick, m.arrival_tick, m.hostile) == \
            ("alpha", "gamma", 3, 5, False)
        assert w.characters["aide"].city_id is None

    def test_attack_queues_tactic(self, small_world):
        w = small_world
        ok, _, _ = run(w, cmds.Attack("hero", "beta", tactic=Tactic.DEFENSIVE))
        assert ok
        assert w.movements[0].hostile
        assert w.queued_tactics["hero"] == Tactic.DEFENSIVE

    def test_cannot_attack_own_city(self, small_world):
        ok, _, _ = run(small_world, cmds.Attack("aide", "alpha"))
        assert not ok

    def test_winter_slows_travel(self, small_world):
        w = small_world
        w.tick = 12
        run(w, cmds.Move("aide", "beta"))
        assert w.movements[0].arrival_tick == 14

    def test_logistics_speeds_travel(self, small_world):
        w = small_world
        w.factions.get("p1").techs.append("logistics")
        run(w, cmds.Move("aide", "gamma"))
        assert w.movements[0].arrival_tick == 1


# ── City economy ────────────────────────────────────────────────────────────

class TestCityOrders:
    def test_reinforce(self, small_world):
        ok, _, _ = run(small_world, cmds.Reinforce("hero", "alpha"))
        assert ok
        alpha = small_world.cities["alpha"]
        assert alpha.garrison == 6
        assert alpha.gold == 1000 - BALANCE_NORMAL.costs.reinforce

    def test_reinforce_at_cap_is_dropped(self, small_world):
        small_world.cities["alpha"].garrison = 10
        ok, _, _ = run(small_world, cmds.Reinforce("hero", "alpha"))
        assert not ok
        assert small_world.cities["alpha"].gold == 1000

    def test_insufficient_gold_has_no_effect(self, small_world):
        small_world.cities["alpha"].gold = 10
        ok, _, _ = run(small_world, cmds.Develop("hero", "alpha"))
        assert not ok
        assert small_world.cities["alpha"].development == 0
        assert small_world.cities["alpha"].gold == 10

    def test_districts_are_limited(self, small_world):
        w = small_world
        assert run(w, cmds.BuildDistrict("hero", "alpha", district=District.DEFENSE))[0]
        assert not run(w, cmds.BuildDistrict("hero", "alpha", district=District.DEFENSE))[0]
        w.cities["alpha"].gold = 5000
        assert run(w, cmds.BuildDistrict("hero", "alpha", district=District.COMMERCE))[0]
        assert not run(w, cmds.BuildDistrict("hero", "alpha", district=District.AGRICULTURE))[0]
        assert w.cities["alpha"].districts == [District.DEFENSE, District.COMMERCE]

    def test_set_path_and_train(self, small_world):
        w = small_world
        assert run(w, cmds.SetPath("hero", "alpha", path=CityPath.CULTURAL))[0]
        assert w.cities["alpha"].path == CityPath.CULTURAL
        assert run(w, cmds.TrainUnit("hero", "alpha", unit_type=UnitType.CAVALRY))[0]
        assert w.cities["alpha"].units.cavalry == 1

    def test_research_starts_once(self, small_world):
        w = small_world
        assert run(w, cmds.StartResearch("hero", "alpha", tech_id="iron_weapons"))[0]
        assert w.factions.get("p1").research.tech_id == "iron_weapons"
        assert not run(w, cmds.StartResearch("hero", "alpha", tech_id="logistics"))[0]

    def test_trade_route_is_pending_until_the_trade_step(self, small_world):
        w = small_world
        w.cities["gamma"].controller_id = "aide"
        assert run(w, cmds.EstablishTrade("hero", "alpha", trade_city_id="gamma"))[0]
        assert [r.id for r in w.pending_routes] == ["tr_alpha_gamma"]
        assert w.trade_routes == []
        assert not run(w, cmds.EstablishTrade("hero", "alpha", trade_city_id="gamma"))[0]

    def test_trade_with_hostile_city_is_dropped(self, small_world):
        assert not run(small_world, cmds.EstablishTrade("hero", "alpha", trade_city_id="beta"))[0]

    def test_transfer_troops(self, small_world):
        w = small_world
        w.cities["gamma"].controller_id = "aide"
        assert run(w, cmds.TransferTroops("hero", "alpha", trade_city_id="gamma", amount=3))[0]
        assert w.cities["alpha"].garrison == 2
        assert w.transfers[0].arrival_tick == 2
        assert not run(w, cmds.TransferTroops("hero", "alpha", trade_city_id="gamma", amount=2))[0]

    def test_transfers_land_or_turn_back(self, small_world):
        w = small_world
        w.tick = 2
        w.transfers.append(TroopTransfer("p1", "alpha", "beta", 2, 0, 2))
        make_executor(w).resolve_transfers([])
        assert w.cities["alpha"].garrison == 7
        assert w.cities["beta"].garrison == 5
        assert w.transfers == []

    def test_build_siege_paid_from_capital(self, small_world):
        w = small_world
        w.cities["beta"].siege = Siege(faction_id="p1", started_tick=0)
        w.characters["aide"].city_id = "beta"
        assert run(w, cmds.BuildSiege("aide", "beta"))[0]
        assert w.cities["beta"].siege.engines
        assert w.cities["alpha"].gold == 1000 - BALANCE_NORMAL.costs.build_siege


# ── Characters ──────────────────────────────────────────────────────────────

class TestCharacterOrders:
    def test_recruit_unaffiliated_in_same_city(self, small_world):
        w = small_world
        w.characters["drifter"] = Character(id="drifter", name="Drifter Lu", city_id="alpha")
        ok, ex, _ = run(w, cmds.Recruit("hero", "alpha", target_character_id="drifter"), FixedRng(0.0))
        assert ok
        assert w.faction_of("drifter") == "p1"
        assert ex.recruitments[0].character_id == "drifter"

    def test_cannot_recruit_rival_members(self, small_world):
        w = small_world
        w.characters["villain"].city_id = "alpha"
        ok, _, _ = run(w, cmds.Recruit("hero", "alpha", target_character_id="villain"), FixedRng(0.0))
        assert not ok

    def test_hire_neutral_costs_gold(self, small_world):
        w = small_world
        w.characters["drifter"] = Character(id="drifter", name="Drifter Lu", city_id="alpha")
        assert run(w, cmds.HireNeutral("hero", "alpha", target_character_id="drifter"))[0]
        assert w.faction_of("drifter") == "p1"
        assert w.cities["alpha"].gold == 1000 - BALANCE_NORMAL.costs.hire_neutral

    def test_assign_role_and_mentor(self, small_world):
        w = small_world
        assert run(w, cmds.AssignRole("aide", "alpha", role=Role.GOVERNOR))[0]
        assert w.characters["aide"].role == Role.GOVERNOR
        assert run(w, cmds.AssignMentor("hero", "alpha", target_character_id="aide"))[0]
        assert w.mentorships == [("hero", "aide")]
        assert not run(w, cmds.AssignMentor("hero", "alpha", target_character_id="aide"))[0]

    def test_only_leader_designates_heir(self, small_world):
        w = small_world
        assert not run(w, cmds.DesignateHeir("aide", "alpha", target_character_id="aide"))[0]
        assert run(w, cmds.DesignateHeir("hero", "alpha", target_character_id="aide"))[0]
        assert w.factions.get("p1").heir_id == "aide"


# ── Espionage ───────────────────────────────────────────────────────────────

class TestEspionage:
    def test_spy_leaves_and_reports(self, small_world):
        w = small_world
        ok, _, _ = run(w, cmds.Spy("aide", "beta"))
        assert ok
        assert w.characters["aide"].city_id is None
        assert w.cities["alpha"].gold == 1000 - BALANCE_NORMAL.costs.spy_mission

        w.tick = 1
        ex = make_executor(w, FixedRng(0.0))
        reports = ex.resolve_spy_missions([])
        assert reports[0].success
        assert "garrison 5" in reports[0].detail
        assert w.characters["aide"].city_id == "alpha"
        assert w.spy_missions == []

    def test_sabotage_and_blockade(self, small_world):
        w = small_world
        w.tick = 1
        w.spy_missions.append(SpyMission("aide", "p1", "beta", SpyMissionType.SABOTAGE, 0, 1))
        w.spy_missions.append(SpyMission("hero", "p1", "beta", SpyMissionType.BLOCKADE, 0, 1))
        w.characters["aide"].city_id = None
        w.characters["hero"].city_id = None
        make_executor(w, FixedRng(0.0)).resolve_spy_missions([])
        beta = w.cities["beta"]
        assert beta.garrison == 3
        assert beta.food == 70
        assert beta.blockaded_until == 6

    def test_caught_spy_costs_trust(self, small_world):
        w = small_world
        w.tick = 1
        w.spy_missions.append(SpyMission("aide", "p1", "beta", SpyMissionType.INTEL, 0, 1))
        reports = make_executor(w, FixedRng(0.99)).resolve_spy_missions([])
        assert not reports[0].success
        assert w.get_trust("p1", "p2") == 40

    def test_spy_needs_enemy_target(self, small_world):
        assert not run(small_world, cmds.Spy("aide", "gamma"))[0]

    @pytest.mark.parametrize("techs, expected", [([], 0.47), (["espionage"], 0.57)])
    def test_spy_chance(self, small_world, techs, expected):
        w = small_world
        w.factions.get("p1").techs.extend(techs)
        ex = make_executor(w)
        # 0.4 + 0.02 * 5 intelligence - 0.03 * 1 garrison
        w.cities["beta"].garrison = 1
        assert ex.spy_chance(w.characters["aide"], "p1", w.cities["beta"]) == pytest.approx(expected)


# ── Captives ────────────────────────────────────────────────────────────────

class TestCaptives:
    def test_captive_can_join_captor(self, small_world):
        w = small_world
        w.characters["drifter"] = Character(id="drifter", name="Drifter Lu", city_id="beta")
        w.factions.add_member("p2", "drifter")
        w.cities["beta"].controller_id = "hero"
        out = make_executor(w, FixedRng(0.0)).recruit_captives([("drifter", "p1", "beta")], [])
        assert [r.character_id for r in out] == ["drifter"]
        assert w.faction_of("drifter") == "p1"

    def test_leader_captive_flees_to_capital(self, small_world):
        w = small_world
        w.cities["gamma"].controller_id = "villain"
        w.cities["beta"].controller_id = "hero"
        make_executor(w, FixedRng(0.0)).recruit_captives([("villain", "p1", "beta")], [])
        assert w.faction_of("villain") == "p2"
        assert w.characters["villain"].city_id == "gamma"
