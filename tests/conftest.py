import random

import pytest

from sanguo.balance import BALANCE_NORMAL
from sanguo.game import Simulation
from sanguo.roads import Road, RoadNetwork
from sanguo.scenario import generate_world
from sanguo.types import Character, City, Faction, Skills, Tier, Units
from sanguo.world import FactionRegistry, WorldState


def build_small_world() -> WorldState:
    """Three cities on a triangle of roads.

    alpha (major) belongs to p1, beta (minor) to p2, gamma (minor) is unowned.
    p3 has a single character in gamma and no cities.
    """
    cities = {
        "alpha": City(id="alpha", name="Alpha", tier=Tier.MAJOR, controller_id="hero",
                      gold=1000, garrison=5, food=100),
        "beta": City(id="beta", name="Beta", tier=Tier.MINOR, controller_id="villain",
                     gold=500, garrison=5, food=100),
        "gamma": City(id="gamma", name="Gamma", tier=Tier.MINOR, gold=100, garrison=2, food=100),
    }
    characters = {
        "hero": Character(id="hero", name="Hero Han", traits=["brave"], military=9,
                          intelligence=6, charm=7, skills=Skills(2, 4, 0, 0), city_id="alpha",
                          birth_tick=-30 * 16),
        "aide": Character(id="aide", name="Aide Wu", traits=["loyal"], military=6,
                          intelligence=5, charm=5, city_id="alpha", birth_tick=-25 * 16),
        "villain": Character(id="villain", name="Villain Dong", traits=["treacherous"],
                             military=3, intelligence=3, charm=3, city_id="beta",
                             birth_tick=-40 * 16),
        "rogue": Character(id="rogue", name="Rogue Ma", traits=["proud"], military=8,
                           intelligence=4, charm=4, city_id="gamma", birth_tick=-28 * 16),
    }
    registry = FactionRegistry([
        Faction(id="p1", name="First", leader_id="hero", members=["hero", "aide"]),
        Faction(id="p2", name="Second", leader_id="villain", members=["villain"]),
        Faction(id="p3", name="Third", leader_id="rogue", members=["rogue"]),
    ])
    roads = RoadNetwork([
        Road("alpha", "beta", 1),
        Road("beta", "gamma", 1),
        Road("alpha", "gamma", 2),
    ])
    for c in cities.values():
        c.units = Units()
    return WorldState(cities=cities, characters=characters, factions=registry, roads=roads)


@pytest.fixture
def small_world():
    return build_small_world()


@pytest.fixture
def world():
    return generate_world()


@pytest.fixture
def balance():
    return BALANCE_NORMAL


@pytest.fixture
def rng():
    return random.Random(7)


@pytest.fixture
def sim():
    return Simulation.create(seed=1)


@pytest.fixture
def small_sim(small_world, balance):
    return Simulation(small_world, balance, "p1", random.Random(3))
