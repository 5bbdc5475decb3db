import math
from dataclasses import dataclass
from typing import Optional

from deliveryplanner.models.domain import Coordinate
from deliveryplanner.services.geospatial import distance_km, haversine_km, parse_coordinate
from deliveryplanner.services.routing.optimizer import compute_route_metrics, optimize_route, route_legs

DEPOT = Coordinate(latitude=11.0168, longitude=76.9558)


@dataclass
class Stop:
    id: str
    coordinate: Optional[Coordinate]


def _stop(sid: str, lat: float | None = None, lon: float | None = None) -> Stop:
    return Stop(id=sid, coordinate=parse_coordinate(lat, lon))


def _ids(stops) -> list[str]:
    return [stop.id for stop in stops]


def test_haversine_is_symmetric_and_zero_on_self():
    a = Coordinate(11.0168, 76.9558)
    b = Coordinate(13.0827, 80.2707)

    assert distance_km(a, b) == distance_km(b, a)
    assert distance_km(a, a) == 0.0
    # Coimbatore to Chennai, great-circle
    assert 420 < distance_km(a, b) < 440


def test_haversine_one_degree_of_latitude():
    assert math.isclose(haversine_km(0.0, 0.0, 1.0, 0.0), 6371.0 * math.pi / 180, rel_tol=1e-9)


def test_parse_coordinate_handles_loose_values():
    assert parse_coordinate("11.05", "77.0") == Coordinate(11.05, 77.0)
    assert parse_coordinate(0, 0) == Coordinate(0.0, 0.0)
    assert parse_coordinate(None, "77.0") is None
    assert parse_coordinate("", "77.0") is None
    assert parse_coordinate("north", "77.0") is None
    assert parse_coordinate("nan", "77.0") is None
    assert parse_coordinate(91, 10) is None
    assert parse_coordinate(10, -181) is None


def test_greedy_chaining_visits_nearest_each_time():
    depot = Coordinate(0.0, 0.0)
    a = _stop("A", 0.0, 0.01)  # next to the depot
    b = _stop("B", 0.0, 1.0)  # far from everything
    c = _stop("C", 0.0, 0.05)  # closer to A than B is

    ordered = optimize_route([b, c, a], depot)

    assert _ids(ordered) == ["A", "C", "B"]


def test_optimize_is_deterministic_and_a_permutation():
    stops = [
        _stop("S1", 11.05, 77.0),
        _stop("S2", 11.02, 76.96),
        _stop("S3"),
        _stop("S4", 11.10, 76.90),
        _stop("S5", "bad", 76.9),
        _stop("S6", 10.99, 76.95),
    ]

    first = optimize_route(stops, DEPOT)
    second = optimize_route(list(stops), DEPOT)

    assert _ids(first) == _ids(second)
    assert sorted(_ids(first)) == sorted(_ids(stops))
    assert len(first) == len(stops)
    # stops without coordinates trail in input order
    assert _ids(first)[-2:] == ["S3", "S5"]


def test_optimize_keeps_input_order_when_no_coordinates():
    stops = [_stop("X"), _stop("Y", "", ""), _stop("Z", None, 77.0)]

    assert _ids(optimize_route(stops, DEPOT)) == ["X", "Y", "Z"]


def test_optimize_breaks_ties_by_input_order():
    stops = [_stop("first", 11.05, 77.0), _stop("second", 11.05, 77.0)]

    assert _ids(optimize_route(stops, DEPOT)) == ["first", "second"]


def test_optimize_empty_input():
    assert optimize_route([], DEPOT) == []


def test_optimize_uses_configured_depot_when_missing(monkeypatch):
    from deliveryplanner.config import settings

    monkeypatch.setattr(settings, "default_depot_latitude", 0.0)
    monkeypatch.setattr(settings, "default_depot_longitude", 0.0)
    near_origin = _stop("near", 0.0, 0.1)
    far_origin = _stop("far", 0.0, 0.5)

    assert _ids(optimize_route([far_origin, near_origin])) == ["near", "far"]


def test_metrics_single_stop_round_trip():
    stop = _stop("S1", 11.05, 77.0)

    metrics = compute_route_metrics([stop], DEPOT)

    one_way = distance_km(DEPOT, stop.coordinate)
    assert math.isclose(metrics.raw_distance_km, 2 * one_way)
    assert abs(metrics.total_distance_km - metrics.raw_distance_km) <= 0.005
    assert metrics.total_distance_km > 0
    assert metrics.estimated_minutes >= 5
    assert metrics.estimated_minutes == math.floor(metrics.raw_distance_km / 30 * 60 + 0.5) + 5
    assert metrics.stop_count == 1


def test_metrics_skip_missing_coordinates_but_count_stop_time():
    located = _stop("S1", 11.05, 77.0)
    missing = _stop("S2")

    with_missing = compute_route_metrics([located, missing], DEPOT)
    without = compute_route_metrics([located], DEPOT)

    assert with_missing.raw_distance_km == without.raw_distance_km
    assert with_missing.estimated_minutes == without.estimated_minutes + 5


def test_metrics_use_overridden_speed_and_service_time():
    stop = _stop("S1", 11.05, 77.0)

    slow = compute_route_metrics([stop], DEPOT, average_speed_kmh=15, per_stop_minutes=0)
    fast = compute_route_metrics([stop], DEPOT, average_speed_kmh=60, per_stop_minutes=0)

    assert slow.estimated_minutes > fast.estimated_minutes


def test_metrics_empty_route():
    metrics = compute_route_metrics([], DEPOT)

    assert metrics.total_distance_km == 0.0
    assert metrics.estimated_minutes == 0


def test_route_legs_accumulate_arrival_times():
    stops = [_stop("A", 11.02, 76.96), _stop("B", 11.05, 77.0), _stop("C")]

    legs = route_legs(stops, DEPOT, average_speed_kmh=30, per_stop_minutes=5)

    assert len(legs) == 3
    assert math.isclose(legs[0].distance_from_prev_km, distance_km(DEPOT, stops[0].coordinate))
    assert legs[1].arrival_min > legs[0].arrival_min + 5
    assert legs[2].distance_from_prev_km == 0.0
    assert math.isclose(legs[2].arrival_min, legs[1].arrival_min + 5)
