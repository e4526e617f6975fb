from sanguo.roads import Road, RoadNetwork
from sanguo.scenario import generate_world
from sanguo.types import RoadType, Season, Specialty


def test_neighbors_skip_dead_cities(world):
    assert "nanman" not in world.roads.reachable_neighbors("jiaozhou", world.cities)
    assert world.roads.reachable_neighbors("nanman", world.cities) == ["jiaozhou"]


def test_waterway_needs_a_harbor(world):
    # beihai and jianye are both harbors
    road = world.roads.find_road("beihai", "jianye", world.cities)
    assert road is not None and road.type == RoadType.WATERWAY
    world.cities["beihai"].specialty = None
    world.cities["jianye"].specialty = None
    assert world.roads.find_road("beihai", "jianye", world.cities) is None
    assert "jianye" not in world.roads.reachable_neighbors("beihai", world.cities)


def test_fastest_road_wins():
    w = generate_world()
    w.roads.add(Road("xuchang", "ye", 1, RoadType.MOUNTAIN))
    assert w.roads.find_road("ye", "xuchang", w.cities).travel_time == 1


def test_no_road():
    w = generate_world()
    assert w.roads.find_road("xuchang", "jiaozhou", w.cities) is None


def test_travel_time_modifiers():
    official = Road("a", "b", 2)
    mountain = Road("a", "b", 2, RoadType.MOUNTAIN)
    assert RoadNetwork.travel_time(official, Season.SUMMER) == 2
    assert RoadNetwork.travel_time(official, Season.WINTER) == 3
    assert RoadNetwork.travel_time(mountain, Season.WINTER) == 4
    assert RoadNetwork.travel_time(official, Season.SUMMER, logistics=True) == 1
    assert RoadNetwork.travel_time(Road("a", "b", 1), Season.SUMMER, logistics=True) == 1


def test_other_end():
    road = Road("a", "b")
    assert road.other_end("a") == "b"
    assert road.other_end("b") == "a"


def test_harbor_at_one_end_is_enough():
    w = generate_world()
    w.cities["chaisang"].specialty = Specialty.HARBOR
    assert w.roads.find_road("jiaozhou", "chaisang", w.cities) is not None
