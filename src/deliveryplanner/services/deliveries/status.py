"""Delivery and route stop status transitions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Sequence

from ...models.domain import DELIVERY_STATUSES, RouteStatus, RouteStop, SubscriptionDelivery
from ...persistence.repository import DeliveryRepository, get_repository

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"in_transit", "delivered", "failed"}),
    "in_transit": frozenset({"delivered", "failed", "pending"}),
    "failed": frozenset({"pending", "in_transit"}),
    "delivered": frozenset(),
}
TERMINAL_STATUSES = frozenset({"delivered", "failed"})


class InvalidStatusTransition(ValueError):
    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"Cannot change status from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def check_transition(current: str, requested: str) -> bool:
    """Return True when the change must be written, False for a same-status no-op."""
    if requested not in DELIVERY_STATUSES:
        raise InvalidStatusTransition(current, requested)
    if current == requested:
        return False
    if requested not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise InvalidStatusTransition(current, requested)
    return True


def rollup_route_status(stops: Sequence[RouteStop]) -> RouteStatus:
    if stops and all(stop.status in TERMINAL_STATUSES for stop in stops):
        return "completed"
    if any(stop.status != "pending" for stop in stops):
        return "active"
    return "pending"


def _sync_route_statuses(repo: DeliveryRepository, route_ids: Iterable[str]) -> None:
    for route_id in dict.fromkeys(route_ids):
        repo.update_route_status(route_id, rollup_route_status(repo.get_route_stops(route_id)))


def update_delivery_status(
    delivery_id: str,
    status: str,
    *,
    repository: DeliveryRepository | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> SubscriptionDelivery:
    """Change a delivery's status and carry it onto the route stops that visit it."""
    repo = repository or get_repository()
    delivery = repo.get_delivery(delivery_id)
    if not check_transition(delivery.status, status):
        return delivery

    stops = [stop for stop in repo.list_route_stops_for_delivery(delivery_id) if stop.status != status]
    for stop in stops:
        check_transition(stop.status, status)

    delivered_at: Optional[datetime] = clock() if status == "delivered" else None
    updated = repo.update_delivery_status(delivery_id, status, delivered_at)
    for stop in stops:
        repo.update_route_stop_status(stop.id, status, delivered_at)
    _sync_route_statuses(repo, (stop.route_id for stop in stops))
    return updated


def update_route_stop_status(
    stop_id: str,
    status: str,
    *,
    repository: DeliveryRepository | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> RouteStop:
    """Change a stop's status, mirror it on its delivery and roll up the route status.

    A change the linked delivery cannot follow is rejected before anything is
    written, so a stop never disagrees with its delivery.
    """
    repo = repository or get_repository()
    stop = repo.get_route_stop(stop_id)
    if not check_transition(stop.status, status):
        return stop

    delivery: Optional[SubscriptionDelivery] = None
    if stop.delivery_id:
        delivery = repo.get_delivery(stop.delivery_id)
        if delivery.status == status:
            delivery = None
        else:
            check_transition(delivery.status, status)

    delivered_at: Optional[datetime] = clock() if status == "delivered" else None
    updated = repo.update_route_stop_status(stop_id, status, delivered_at)
    if delivery is not None:
        repo.update_delivery_status(delivery.id, status, delivered_at)
    _sync_route_statuses(repo, [updated.route_id])
    return updated
