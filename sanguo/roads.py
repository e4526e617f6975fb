"""Road network: reachability and travel time between cities."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .types import RoadType, Season, Specialty

if TYPE_CHECKING:
    from .types import City


@dataclass
class Road:
    from_city: str
    to_city: str
    travel_time: int = 1
    type: RoadType = RoadType.OFFICIAL

    def other_end(self, city_id: str) -> str:
        return self.to_city if self.from_city == city_id else self.from_city


@dataclass
class RoadNetwork:
    roads: list[Road] = field(default_factory=list)
    _adjacency: dict[str, list[Road]] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self):
        for road in self.roads:
            self._index(road)

    def _index(self, road: Road):
        self._adjacency.setdefault(road.from_city, []).append(road)
        self._adjacency.setdefault(road.to_city, []).append(road)

    def add(self, road: Road):
        self.roads.append(road)
        self._index(road)

    @staticmethod
    def waterway_usable(road: Road, cities: dict[str, City]) -> bool:
        if road.type != RoadType.WATERWAY:
            return True
        ends = [cities.get(road.from_city), cities.get(road.to_city)]
        return any(c is not None and c.specialty == Specialty.HARBOR for c in ends)

    def find_road(self, a: str, b: str, cities: dict[str, City]) -> Road | None:
        """Fastest usable road between two cities, or None."""
        matching = [r for r in self._adjacency.get(a, []) if r.other_end(a) == b]
        usable = [r for r in matching if self.waterway_usable(r, cities)]
        if not usable:
            return None
        return min(usable, key=lambda r: r.travel_time)

    def reachable_neighbors(self, city_id: str, cities: dict[str, City]) -> list[str]:
        seen: list[str] = []
        for road in self._adjacency.get(city_id, []):
            nb = road.other_end(city_id)
            if nb in seen:
                continue
            city = cities.get(nb)
            if city is None or city.dead:
                continue
            if not self.waterway_usable(road, cities):
                continue
            seen.append(nb)
        return seen

    @staticmethod
    def travel_time(road: Road, season: Season, logistics: bool = False) -> int:
        t = road.travel_time
        if season == Season.WINTER:
            t += 2 if road.type == RoadType.MOUNTAIN else 1
        if logistics:
            t -= 1
        return max(1, t)
