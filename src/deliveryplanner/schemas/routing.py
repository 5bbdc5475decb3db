"""Routing request/response schemas."""

from __future__ import annotations

import datetime as dt
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from ..models.domain import Coordinate
from ..services.geospatial import parse_coordinate


class DepotLocation(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    def to_coordinate(self) -> Coordinate:
        return Coordinate(latitude=self.latitude, longitude=self.longitude)


class RoutePlanningRequest(BaseModel):
    date: dt.date
    agent_ids: List[str] = Field(..., min_length=1, description="Agents to plan routes for, in processing order.")
    depot: Optional[DepotLocation] = Field(
        default=None,
        description="Depot the routes start and end at. Falls back to the configured depot.",
    )
    order_ids: Optional[Dict[str, List[str]]] = Field(
        default=None,
        description="One-time order ids to fold into each agent's route, keyed by agent id.",
    )


class RouteStopModel(BaseModel):
    id: str
    sequence: int
    address_id: str
    delivery_id: Optional[str] = None
    order_id: Optional[str] = None
    status: str
    delivered_at: Optional[dt.datetime] = None
    estimated_minutes: Optional[int] = None
    actual_minutes: Optional[int] = None
    distance_from_prev_km: float


class RouteModel(BaseModel):
    id: str
    agent_id: str
    date: dt.date
    depot: DepotLocation
    status: str
    total_distance_km: float
    estimated_minutes: int
    stops: List[RouteStopModel]


class AgentRouteOutcomeModel(BaseModel):
    agent_id: str
    status: Literal["planned", "empty", "failed"]
    route: Optional[RouteModel] = None
    error: Optional[str] = None


class RoutePlanningResponse(BaseModel):
    date: dt.date
    planned: int
    empty: int
    failed: int
    outcomes: List[AgentRouteOutcomeModel]


class MetricsStop(BaseModel):
    id: str
    latitude: Optional[float | str] = None
    longitude: Optional[float | str] = None

    @property
    def coordinate(self) -> Optional[Coordinate]:
        return parse_coordinate(self.latitude, self.longitude)


class RouteMetricsRequest(BaseModel):
    depot: Optional[DepotLocation] = None
    stops: List[MetricsStop] = Field(default_factory=list, description="Stops in visiting order.")
    optimize: bool = Field(default=False, description="Re-order the stops with nearest neighbour first.")


class RouteMetricsResponse(BaseModel):
    stop_ids: List[str]
    total_distance_km: float
    estimated_minutes: int
