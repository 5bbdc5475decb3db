"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import List, Literal, Optional

from ...models.domain import DeliveryRoute, RouteStop

AgentOutcomeStatus = Literal["planned", "empty", "failed"]


@dataclass(frozen=True, slots=True)
class RouteMetrics:
    total_distance_km: float
    estimated_minutes: int
    stop_count: int
    raw_distance_km: float


@dataclass(frozen=True, slots=True)
class RouteLeg:
    distance_from_prev_km: float
    arrival_min: float


@dataclass(slots=True)
class AgentRouteOutcome:
    """Result of planning one agent's route: planned, empty, or failed."""

    agent_id: str
    status: AgentOutcomeStatus
    route: Optional[DeliveryRoute] = None
    stops: List[RouteStop] = field(default_factory=list)
    metrics: Optional[RouteMetrics] = None
    error: Optional[str] = None


@dataclass(slots=True)
class RoutePlanningReport:
    date: date
    outcomes: List[AgentRouteOutcome]

    def count(self, status: AgentOutcomeStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)
