"""Geospatial helper functions."""

from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from ..config import settings
from ..models.domain import Coordinate

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_km(origin: Coordinate, destination: Coordinate) -> float:
    return haversine_km(origin.latitude, origin.longitude, destination.latitude, destination.longitude)


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(Decimal(str(value)))
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not math.isfinite(number):
        return None
    return number


def parse_coordinate(latitude: Any, longitude: Any) -> Optional[Coordinate]:
    """Build a Coordinate from loosely typed values, or None when unusable.

    Accepts floats, ints, Decimals and numeric strings (database decimals come
    back as strings). Missing, blank, non-numeric or out-of-range components
    yield None instead of raising.
    """
    lat = _to_float(latitude)
    lon = _to_float(longitude)
    if lat is None or lon is None:
        return None
    if not -90.0 <= lat <= 90.0 or not -180.0 <= lon <= 180.0:
        return None
    return Coordinate(latitude=lat, longitude=lon)


def resolve_depot(depot: Optional[Coordinate] = None) -> Coordinate:
    """Return the given depot or the configured fallback depot."""
    if depot is not None:
        return depot

    return Coordinate(latitude=settings.default_depot_latitude, longitude=settings.default_depot_longitude)
