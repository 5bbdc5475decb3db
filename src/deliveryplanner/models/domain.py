"""Domain models for subscriptions, deliveries and delivery routes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Literal, Optional

SubscriptionStatus = Literal["active", "paused", "cancelled"]
DeliveryStatus = Literal["pending", "in_transit", "delivered", "failed"]
RouteStatus = Literal["pending", "active", "completed"]

DELIVERY_STATUSES: tuple[str, ...] = ("pending", "in_transit", "delivered", "failed")


@dataclass(frozen=True, slots=True)
class Coordinate:
    """A validated latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float


@dataclass(slots=True)
class Subscription:
    """A standing recurring order owned by a customer."""

    id: str
    user_id: str
    product_id: str
    address_id: str
    quantity: int
    days_of_week: Any
    start_date: date
    status: SubscriptionStatus = "active"


@dataclass(frozen=True, slots=True)
class SubscriptionDeliveryRequest:
    """Request to materialize one subscription delivery on one date."""

    subscription_id: str
    scheduled_date: datetime
    status: DeliveryStatus = "pending"


@dataclass(slots=True)
class SubscriptionDelivery:
    """One concrete delivery obligation for a subscription on a date."""

    id: str
    subscription_id: str
    scheduled_date: datetime
    status: DeliveryStatus = "pending"
    delivered_at: Optional[datetime] = None
    agent_id: Optional[str] = None


@dataclass(slots=True)
class Order:
    """A one-time order that can be folded into an agent's route."""

    id: str
    address_id: str
    status: str = "pending"


@dataclass(slots=True)
class Address:
    id: str
    coordinate: Optional[Coordinate] = None


@dataclass(slots=True)
class RouteCandidate:
    """A stop waiting to be sequenced: either a subscription delivery or a one-time order."""

    candidate_id: str
    address_id: str
    coordinate: Optional[Coordinate]
    delivery_id: Optional[str] = None
    order_id: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.delivery_id is None) == (self.order_id is None):
            raise ValueError(
                f"Route candidate '{self.candidate_id}' must reference exactly one of delivery_id or order_id"
            )


@dataclass(slots=True)
class DeliveryRoute:
    """One agent's plan for one date."""

    id: str
    agent_id: str
    date: date
    depot: Coordinate
    status: RouteStatus = "pending"
    total_distance_km: float = 0.0
    estimated_minutes: int = 0


@dataclass(slots=True)
class RouteStop:
    """One visit within a delivery route."""

    id: str
    route_id: str
    sequence: int
    address_id: str
    delivery_id: Optional[str] = None
    order_id: Optional[str] = None
    status: DeliveryStatus = "pending"
    delivered_at: Optional[datetime] = None
    estimated_minutes: Optional[int] = None
    actual_minutes: Optional[int] = None
    distance_from_prev_km: float = 0.0
