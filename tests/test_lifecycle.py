import random

import pytest

from sanguo.balance import BALANCE_NORMAL
from sanguo.lifecycle import LifecycleEngine, old_age_death_chance
from sanguo.types import Character, Tactic


class FixedRng(random.Random):
    def __init__(self, value):
        super().__init__(0)
        self.value = value

    def random(self):
        return self.value


def make_engine(world, rng=None):
    return LifecycleEngine(world, BALANCE_NORMAL, "p1", rng or FixedRng(0.99))


@pytest.mark.parametrize("age, chance", [(30, 0.0), (59, 0.0), (60, 0.05), (65, 0.20), (70, 0.35), (85, 0.35)])
def test_old_age_death_chance(age, chance):
    assert old_age_death_chance(age) == pytest.approx(chance)


def test_battle_death_chance_by_tactic(small_world):
    eng = make_engine(small_world)
    assert eng.battle_death_chance(Tactic.AGGRESSIVE) == 0.25
    assert eng.battle_death_chance(Tactic.BALANCED) == 0.15
    assert eng.battle_death_chance(Tactic.DEFENSIVE) == 0.075
    assert eng.battle_death_chance(None) == 0.15


# ── Death and succession ────────────────────────────────────────────────────

class TestSuccession:
    def test_designated_heir_takes_over(self, small_world):
        w = small_world
        w.factions.get("p1").heir_id = "aide"
        hero = w.characters["hero"]
        events: list[str] = []

        death = make_engine(w).kill(hero, "battle", events)

        faction = w.factions.get("p1")
        assert death.successor_id == "aide"
        assert faction.leader_id == "aide"
        assert faction.heir_id is None
        assert faction.members == ["aide"]
        assert not hero.alive and hero.city_id is None and hero.death_tick == 0
        assert w.cities["alpha"].controller_id == "aide"
        assert w.get_morale("p1") == 50

    def test_strongest_member_succeeds_without_heir(self, small_world):
        w = small_world
        w.characters["sage"] = Character(id="sage", name="Sage Pang", military=2, intelligence=10,
                                         city_id="alpha")
        w.factions.add_member("p1", "sage")
        make_engine(w).kill(w.characters["hero"], "age", [])
        assert w.factions.get("p1").leader_id == "sage"

    def test_prestigious_leader_leaves_heir_and_legacy(self, small_world):
        w = small_world
        w.tick = 5
        w.prestige["hero"] = 12
        events: list[str] = []

        death = make_engine(w, FixedRng(0.0)).kill(w.characters["hero"], "battle", events)

        heir = w.characters["hero_heir_5"]
        assert death.heir_id == heir.id
        assert death.successor_id == "aide"
        assert heir.parent_id == "hero"
        assert heir.name.startswith("Hero ")
        assert heir.city_id == "alpha"
        assert heir.military == 5
        assert heir.age(w.tick) == 18
        assert w.faction_of(heir.id) == "p1"
        assert w.get_prestige(heir.id) == 4
        assert w.factions.get("p1").legacy_bonus == pytest.approx(0.02)

    def test_lone_leader_death_frees_cities(self, small_world):
        w = small_world
        make_engine(w).kill(w.characters["villain"], "battle", [])
        assert w.cities["beta"].controller_id is None
        assert w.alive_members("p2") == []

    def test_member_death_returns_city_to_leader(self, small_world):
        w = small_world
        w.cities["gamma"].controller_id = "aide"
        make_engine(w).kill(w.characters["aide"], "battle", [])
        assert w.cities["gamma"].controller_id == "hero"

    def test_death_cancels_travel_and_mentorship(self, small_world):
        w = small_world
        w.mentorships.append(("hero", "aide"))
        w.queued_tactics["aide"] = Tactic.AGGRESSIVE
        make_engine(w).kill(w.characters["aide"], "battle", [])
        assert w.mentorships == []
        assert w.queued_tactics == {}


class TestProcessDeaths:
    def test_casualties_roll_for_death(self, small_world):
        w = small_world
        w.tick = 1
        deaths = make_engine(w, FixedRng(0.0)).process_deaths([("aide", Tactic.AGGRESSIVE)], [])
        assert [d.character_id for d in deaths] == ["aide"]
        assert deaths[0].cause == "battle"

    def test_survivors_stay_alive(self, small_world):
        w = small_world
        w.tick = 1
        assert make_engine(w).process_deaths([("aide", Tactic.AGGRESSIVE)], []) == []
        assert w.characters["aide"].alive

    def test_old_age_on_year_boundary(self, small_world):
        w = small_world
        w.tick = 16
        w.characters["villain"].birth_tick = 16 - 75 * 16
        deaths = make_engine(w, FixedRng(0.1)).process_deaths([], [])
        assert [(d.character_id, d.cause) for d in deaths] == [("villain", "age")]

    def test_no_aging_between_years(self, small_world):
        w = small_world
        w.tick = 15
        w.characters["villain"].birth_tick = -75 * 16
        assert make_engine(w, FixedRng(0.0)).process_deaths([], []) == []


# ── Prestige, favorability, mentorship ──────────────────────────────────────

class TestGrowth:
    def test_achievement_grants_prestige_once(self, small_world):
        w = small_world
        w.tick = 1
        w.bump_battle_stat("hero", "wins")
        eng = make_engine(w)
        eng.update_prestige([])
        eng.update_prestige([])
        assert w.achievements["hero"] == ["first_blood"]
        assert w.get_prestige("hero") == 3

    def test_leaders_gain_prestige_each_year(self, small_world):
        w = small_world
        w.tick = 16
        make_engine(w).update_prestige([])
        assert w.get_prestige("hero") == 1
        assert w.get_prestige("aide") == 0

    def test_favorability_tracks_intimacy_with_leader(self, small_world):
        w = small_world
        w.intimacy[("aide", "hero")] = 70
        make_engine(w).update_favorability()
        assert w.get_favorability("aide") == 51

    def test_mentor_teaches_best_skill(self, small_world):
        w = small_world
        w.tick = 10
        w.mentorships.append(("hero", "aide"))
        make_engine(w).mentorship([])
        assert w.characters["aide"].skills.tactics == 1

    def test_mentor_cannot_teach_past_own_level(self, small_world):
        w = small_world
        w.tick = 10
        w.characters["aide"].skills.tactics = 4
        w.mentorships.append(("hero", "aide"))
        make_engine(w).mentorship([])
        assert w.characters["aide"].skills.tactics == 4

    def test_cross_faction_pairs_dissolve(self, small_world):
        w = small_world
        w.mentorships.append(("hero", "villain"))
        make_engine(w).mentorship([])
        assert w.mentorships == []
