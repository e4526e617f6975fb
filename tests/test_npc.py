import random

import pytest

from sanguo import commands as cmds
from sanguo.balance import BALANCE_HARD, BALANCE_NORMAL
from sanguo.npc import DefaultNpcPolicy, NpcDirector, personality, pick_tactic, strategic_intent
from sanguo.types import Character, Siege, Tactic


class FixedRng(random.Random):
    def __init__(self, value):
        super().__init__(0)
        self.value = value

    def random(self):
        return self.value


def add_member(world, cid, fid, city_id, **kw):
    world.characters[cid] = Character(id=cid, name=cid.title(), city_id=city_id, **kw)
    if fid is not None:
        world.factions.add_member(fid, cid)
    return world.characters[cid]


# ── Personality ─────────────────────────────────────────────────────────────

@pytest.mark.parametrize("traits, military, intelligence, expected", [
    (["brave"], 9, 6, (4, 1)),
    (["loyal"], 6, 5, (1, 2)),
    (["impulsive", "brave", "ambitious"], 10, 0, (6, 0)),
    (["cautious", "wise"], 2, 8, (0, 5)),
])
def test_personality(traits, military, intelligence, expected):
    char = Character(id="x", name="X", traits=traits, military=military, intelligence=intelligence)
    assert personality(char) == expected


@pytest.mark.parametrize("traits, military, intelligence, tactic", [
    (["brave"], 9, 6, Tactic.AGGRESSIVE),
    (["loyal"], 6, 5, Tactic.BALANCED),
    (["cautious", "wise"], 2, 8, Tactic.DEFENSIVE),
])
def test_pick_tactic(traits, military, intelligence, tactic):
    char = Character(id="x", name="X", traits=traits, military=military, intelligence=intelligence)
    assert pick_tactic(char) == tactic


# ── Strategic intent ────────────────────────────────────────────────────────

class TestIntent:
    def test_cityless_faction_defends(self, small_world):
        assert strategic_intent(small_world, "p3") == "defend"

    def test_small_undeveloped_faction_develops(self, small_world):
        assert strategic_intent(small_world, "p2") == "develop"

    def test_threatened_small_faction_defends(self, small_world):
        small_world.cities["alpha"].siege = Siege("p2", 0)
        assert strategic_intent(small_world, "p1") == "defend"

    def test_strong_faction_expands(self, small_world):
        add_member(small_world, "third", "p1", "alpha")
        assert strategic_intent(small_world, "p1") == "expand"


# ── Default policy ──────────────────────────────────────────────────────────

class TestDefaultPolicy:
    def test_spy_goes_after_the_nearest_enemy(self, small_world):
        out = DefaultNpcPolicy(BALANCE_NORMAL).decide(small_world, "p1", FixedRng(0.0))
        assert out == [cmds.Sabotage(character_id="hero", target_city_id="beta")]

    def test_expanding_faction_attacks(self, small_world):
        add_member(small_world, "third", "p1", "alpha", traits=["impulsive"], military=8)
        out = DefaultNpcPolicy(BALANCE_NORMAL).decide(small_world, "p1", FixedRng(0.0))
        assert out == [
            cmds.Sabotage(character_id="hero", target_city_id="beta"),
            cmds.Attack(character_id="aide", target_city_id="beta", tactic=Tactic.BALANCED),
            cmds.Attack(character_id="third", target_city_id="beta", tactic=Tactic.AGGRESSIVE),
        ]

    def test_close_friends_are_not_attacked(self, small_world):
        w = small_world
        add_member(w, "third", "p1", "alpha", traits=["impulsive"], military=8)
        w.adjust_intimacy("aide", "villain", 30)
        out = DefaultNpcPolicy(BALANCE_NORMAL).decide(w, "p1", FixedRng(0.0))
        assert [c.character_id for c in out] == ["hero", "third"]

    def test_decide_does_not_touch_the_world(self, small_world):
        DefaultNpcPolicy(BALANCE_NORMAL).decide(small_world, "p1", FixedRng(0.0))
        assert small_world.movements == []
        assert small_world.spy_missions == []

    def test_spending(self, small_world):
        policy = DefaultNpcPolicy(BALANCE_NORMAL)
        assert policy.spend(small_world, "p1", FixedRng(0.0)) == [
            cmds.Develop(character_id="hero", target_city_id="alpha")]
        beta = small_world.cities["beta"]
        beta.garrison, beta.gold = 3, 200
        assert policy.spend(small_world, "p2", FixedRng(0.0)) == [
            cmds.Reinforce(character_id="villain", target_city_id="beta")]

    def test_unknown_faction(self, small_world):
        assert DefaultNpcPolicy(BALANCE_NORMAL).decide(small_world, "p9", FixedRng(0.0)) == []


# ── Director ────────────────────────────────────────────────────────────────

def make_director(world, balance=BALANCE_NORMAL, rng=None):
    return NpcDirector(world, balance, "p1", rng or FixedRng(0.0), lambda city: 10)


class TestDirector:
    def test_npc_factions_exclude_the_player(self, small_world):
        assert make_director(small_world).npc_factions() == ["p2", "p3"]

    def test_free_garrison_on_hard(self, small_world):
        w = small_world
        w.tick = 4
        make_director(w, BALANCE_HARD).apply_bonuses([])
        assert w.cities["beta"].garrison == 6
        assert w.cities["alpha"].garrison == 5

    def test_no_free_garrison_on_normal(self, small_world):
        small_world.tick = 4
        make_director(small_world).apply_bonuses([])
        assert small_world.cities["beta"].garrison == 5

    def test_underdog_rally(self, small_world):
        w = small_world
        w.tick = 8
        w.cities["gamma"].controller_id = "aide"
        events: list[str] = []
        make_director(w).apply_bonuses(events)
        assert w.cities["beta"].garrison == 6
        assert len(events) == 1

    def test_idle_characters_wander_to_safe_cities(self, small_world):
        w = small_world
        add_member(w, "drifter", None, "alpha")
        add_member(w, "lackey", "p2", "beta")
        make_director(w).idle_movement([])
        moves = {m.character_id: m for m in w.movements}
        assert set(moves) == {"drifter", "lackey"}
        assert moves["drifter"].destination_id == "gamma"
        assert moves["drifter"].arrival_tick == 2
        assert moves["lackey"].arrival_tick == 1
        assert not moves["lackey"].hostile
        assert w.characters["drifter"].city_id is None

    def test_no_wandering_when_roll_fails(self, small_world):
        add_member(small_world, "drifter", None, "alpha")
        make_director(small_world, rng=FixedRng(0.99)).idle_movement([])
        assert small_world.movements == []

    def test_hire_neutrals(self, small_world):
        w = small_world
        add_member(w, "drifter", None, "beta")
        hired = make_director(w).hire_neutrals([])
        assert [(r.character_id, r.faction_id, r.city_id) for r in hired] == [("drifter", "p2", "beta")]
        assert w.faction_of("drifter") == "p2"
        assert w.cities["beta"].gold == 300
