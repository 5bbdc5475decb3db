"""Persistence interface consumed by the planning services."""

from __future__ import annotations

import logging
from datetime import date, datetime
from functools import lru_cache
from typing import Optional, Protocol, Sequence

from ..models.domain import (
    DeliveryRoute,
    RouteCandidate,
    RouteStatus,
    RouteStop,
    Subscription,
    SubscriptionDelivery,
    SubscriptionDeliveryRequest,
)


class PersistenceError(RuntimeError):
    """Raised when the storage backend cannot complete a read or write."""


class DuplicateDeliveryError(PersistenceError):
    """A delivery already exists for the same subscription and date."""

    def __init__(self, subscription_id: str, scheduled_on: date) -> None:
        super().__init__(f"Delivery for subscription '{subscription_id}' on {scheduled_on.isoformat()} already exists")
        self.subscription_id = subscription_id
        self.scheduled_on = scheduled_on


class RouteAlreadyExistsError(PersistenceError):
    def __init__(self, agent_id: str, route_date: date) -> None:
        super().__init__(f"Route for agent '{agent_id}' on {route_date.isoformat()} already exists")
        self.agent_id = agent_id
        self.route_date = route_date


class RecordNotFoundError(PersistenceError):
    def __init__(self, kind: str, record_id: str) -> None:
        super().__init__(f"{kind} '{record_id}' not found")
        self.kind = kind
        self.record_id = record_id


def validate_stop_sequence(stops: Sequence[RouteStop]) -> None:
    """Ensure stop sequence numbers are exactly 1..N in order."""
    expected = list(range(1, len(stops) + 1))
    actual = [stop.sequence for stop in stops]
    if actual != expected:
        raise ValueError(f"Route stop sequences must be contiguous from 1, got {actual}")


class DeliveryRepository(Protocol):
    def list_active_subscriptions(self) -> list[Subscription]: ...

    def list_deliveries_for_date(self, target_date: date) -> list[SubscriptionDelivery]: ...

    def create_subscription_delivery(self, request: SubscriptionDeliveryRequest) -> SubscriptionDelivery: ...

    def list_route_candidates(
        self,
        target_date: date,
        agent_id: str,
        order_ids: Sequence[str] = (),
    ) -> list[RouteCandidate]: ...

    def get_route(self, agent_id: str, route_date: date) -> Optional[DeliveryRoute]: ...

    def get_route_stops(self, route_id: str) -> list[RouteStop]: ...

    def create_route_with_stops(self, route: DeliveryRoute, stops: Sequence[RouteStop]) -> DeliveryRoute: ...

    def get_delivery(self, delivery_id: str) -> SubscriptionDelivery: ...

    def update_delivery_status(
        self, delivery_id: str, status: str, delivered_at: Optional[datetime]
    ) -> SubscriptionDelivery: ...

    def get_route_stop(self, stop_id: str) -> RouteStop: ...

    def list_route_stops_for_delivery(self, delivery_id: str) -> list[RouteStop]: ...

    def update_route_stop_status(self, stop_id: str, status: str, delivered_at: Optional[datetime]) -> RouteStop: ...

    def update_route_status(self, route_id: str, status: RouteStatus) -> None: ...


@lru_cache()
def get_repository() -> DeliveryRepository:
    """Return the configured repository.

    Supabase when credentials are configured, otherwise a process-wide
    in-memory store.
    """
    from ..db.supabase import get_supabase_client

    client = get_supabase_client()
    if client is not None:
        from .database import SupabaseRepository

        return SupabaseRepository(client)

    from .memory import InMemoryRepository

    logging.warning("Supabase not configured - using in-memory repository, data will not survive restarts")
    return InMemoryRepository()
