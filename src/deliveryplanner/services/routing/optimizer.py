"""Nearest-neighbour stop sequencing and route metrics.

Distances are great-circle (haversine) distances, a proxy for relative
ordering only; there is no road network behind them. Sequencing is a greedy
nearest-neighbour walk from the depot and is O(n^2) in the number of stops
with coordinates, which is fine for the tens of stops an agent carries per
day but not for thousands.
"""

from __future__ import annotations

import math
from typing import Callable, Optional, Sequence, TypeVar

from ...config import settings
from ...models.domain import Coordinate
from ..geospatial import distance_km, resolve_depot
from .models import RouteLeg, RouteMetrics

StopT = TypeVar("StopT")


def _default_coordinate(stop) -> Optional[Coordinate]:
    return getattr(stop, "coordinate", None)


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def optimize_route(
    stops: Sequence[StopT],
    depot: Coordinate | None = None,
    *,
    coordinate_of: Callable[[StopT], Optional[Coordinate]] = _default_coordinate,
) -> list[StopT]:
    """Order stops by repeatedly visiting the nearest unvisited one.

    Stops without a coordinate keep their relative order and go last. When no
    stop has a coordinate the input order is returned unchanged. Ties are won
    by the stop that appears first in the input.
    """
    if not stops:
        return []

    located: list[tuple[StopT, Coordinate]] = []
    unlocated: list[StopT] = []
    for stop in stops:
        coordinate = coordinate_of(stop)
        if coordinate is None:
            unlocated.append(stop)
        else:
            located.append((stop, coordinate))

    if not located:
        return list(stops)

    current = resolve_depot(depot)
    ordered: list[StopT] = []
    remaining = located
    while remaining:
        nearest_index = 0
        nearest_distance = math.inf
        for index, (_, coordinate) in enumerate(remaining):
            distance = distance_km(current, coordinate)
            # strict comparison keeps the earliest stop on ties
            if distance < nearest_distance:
                nearest_distance = distance
                nearest_index = index
        stop, current = remaining.pop(nearest_index)
        ordered.append(stop)

    return ordered + unlocated


def route_legs(
    ordered_stops: Sequence[StopT],
    depot: Coordinate | None = None,
    *,
    coordinate_of: Callable[[StopT], Optional[Coordinate]] = _default_coordinate,
    average_speed_kmh: float | None = None,
    per_stop_minutes: int | None = None,
) -> list[RouteLeg]:
    """Per-stop distance from the previous located point and cumulative arrival minutes.

    Arrival time at a stop includes the service time spent at every earlier stop.
    """
    speed = average_speed_kmh if average_speed_kmh is not None else settings.average_speed_kmh
    service = per_stop_minutes if per_stop_minutes is not None else settings.per_stop_minutes

    current = resolve_depot(depot)
    elapsed = 0.0
    legs: list[RouteLeg] = []
    for stop in ordered_stops:
        coordinate = coordinate_of(stop)
        step = 0.0
        if coordinate is not None:
            step = distance_km(current, coordinate)
            current = coordinate
        elapsed += step / speed * 60.0
        legs.append(RouteLeg(distance_from_prev_km=step, arrival_min=elapsed))
        elapsed += service
    return legs


def compute_route_metrics(
    ordered_stops: Sequence[StopT],
    depot: Coordinate | None = None,
    *,
    coordinate_of: Callable[[StopT], Optional[Coordinate]] = _default_coordinate,
    average_speed_kmh: float | None = None,
    per_stop_minutes: int | None = None,
) -> RouteMetrics:
    """Total closed-loop distance and estimated duration for an ordering.

    The loop runs depot -> each located stop -> depot. Stops without a
    coordinate add no distance (an approximation) but still count towards the
    per-stop service time.
    """
    speed = average_speed_kmh if average_speed_kmh is not None else settings.average_speed_kmh
    service = per_stop_minutes if per_stop_minutes is not None else settings.per_stop_minutes

    if not ordered_stops:
        return RouteMetrics(total_distance_km=0.0, estimated_minutes=0, stop_count=0, raw_distance_km=0.0)

    start = resolve_depot(depot)
    current = start
    total = 0.0
    for stop in ordered_stops:
        coordinate = coordinate_of(stop)
        if coordinate is None:
            continue
        total += distance_km(current, coordinate)
        current = coordinate
    total += distance_km(current, start)

    stop_count = len(ordered_stops)
    travel_minutes = int(round_half_up(total / speed * 60.0))
    return RouteMetrics(
        total_distance_km=round_half_up(total, 2),
        estimated_minutes=travel_minutes + stop_count * service,
        stop_count=stop_count,
        raw_distance_km=total,
    )
