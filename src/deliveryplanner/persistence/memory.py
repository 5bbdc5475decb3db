"""In-memory repository used for local runs and tests."""

from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from datetime import date, datetime
from typing import Iterable, Optional, Sequence

from ..models.domain import (
    Address,
    DeliveryRoute,
    Order,
    RouteCandidate,
    RouteStatus,
    RouteStop,
    Subscription,
    SubscriptionDelivery,
    SubscriptionDeliveryRequest,
)
from .repository import (
    DuplicateDeliveryError,
    RecordNotFoundError,
    RouteAlreadyExistsError,
    validate_stop_sequence,
)


def _new_id() -> str:
    return str(uuid.uuid4())


class InMemoryRepository:
    """Dict-backed store enforcing the same invariants as the database.

    Deliveries are unique per (subscription, scheduled day) and a route is
    written together with all of its stops or not at all.
    """

    def __init__(
        self,
        *,
        subscriptions: Iterable[Subscription] = (),
        addresses: Iterable[Address] = (),
        orders: Iterable[Order] = (),
        deliveries: Iterable[SubscriptionDelivery] = (),
    ) -> None:
        self._lock = threading.RLock()
        self.subscriptions: dict[str, Subscription] = {item.id: item for item in subscriptions}
        self.addresses: dict[str, Address] = {item.id: item for item in addresses}
        self.orders: dict[str, Order] = {item.id: item for item in orders}
        self.deliveries: dict[str, SubscriptionDelivery] = {}
        self.routes: dict[str, DeliveryRoute] = {}
        self.stops: dict[str, RouteStop] = {}
        for delivery in deliveries:
            self._insert_delivery(delivery)

    def _insert_delivery(self, delivery: SubscriptionDelivery) -> None:
        key_day = delivery.scheduled_date.date()
        for existing in self.deliveries.values():
            if existing.subscription_id == delivery.subscription_id and existing.scheduled_date.date() == key_day:
                raise DuplicateDeliveryError(delivery.subscription_id, key_day)
        self.deliveries[delivery.id] = delivery

    def list_active_subscriptions(self) -> list[Subscription]:
        with self._lock:
            return [item for item in self.subscriptions.values() if item.status == "active"]

    def list_deliveries_for_date(self, target_date: date) -> list[SubscriptionDelivery]:
        with self._lock:
            return [item for item in self.deliveries.values() if item.scheduled_date.date() == target_date]

    def create_subscription_delivery(self, request: SubscriptionDeliveryRequest) -> SubscriptionDelivery:
        delivery = SubscriptionDelivery(
            id=_new_id(),
            subscription_id=request.subscription_id,
            scheduled_date=request.scheduled_date,
            status=request.status,
        )
        with self._lock:
            self._insert_delivery(delivery)
        return delivery

    def assign_delivery(self, delivery_id: str, agent_id: str) -> SubscriptionDelivery:
        with self._lock:
            delivery = self.get_delivery(delivery_id)
            delivery.agent_id = agent_id
            return delivery

    def list_route_candidates(
        self,
        target_date: date,
        agent_id: str,
        order_ids: Sequence[str] = (),
    ) -> list[RouteCandidate]:
        with self._lock:
            candidates: list[RouteCandidate] = []
            for delivery in self.deliveries.values():
                if delivery.agent_id != agent_id or delivery.status != "pending":
                    continue
                if delivery.scheduled_date.date() != target_date:
                    continue
                subscription = self.subscriptions.get(delivery.subscription_id)
                if subscription is None:
                    raise RecordNotFoundError("Subscription", delivery.subscription_id)
                address = self.addresses.get(subscription.address_id)
                candidates.append(
                    RouteCandidate(
                        candidate_id=delivery.id,
                        address_id=subscription.address_id,
                        coordinate=address.coordinate if address else None,
                        delivery_id=delivery.id,
                    )
                )
            for order_id in order_ids:
                order = self.orders.get(order_id)
                if order is None:
                    raise RecordNotFoundError("Order", order_id)
                address = self.addresses.get(order.address_id)
                candidates.append(
                    RouteCandidate(
                        candidate_id=order.id,
                        address_id=order.address_id,
                        coordinate=address.coordinate if address else None,
                        order_id=order.id,
                    )
                )
            return candidates

    def get_route(self, agent_id: str, route_date: date) -> Optional[DeliveryRoute]:
        with self._lock:
            for route in self.routes.values():
                if route.agent_id == agent_id and route.date == route_date:
                    return route
            return None

    def get_route_by_id(self, route_id: str) -> DeliveryRoute:
        with self._lock:
            route = self.routes.get(route_id)
            if route is None:
                raise RecordNotFoundError("Route", route_id)
            return route

    def get_route_stops(self, route_id: str) -> list[RouteStop]:
        with self._lock:
            stops = [stop for stop in self.stops.values() if stop.route_id == route_id]
        return sorted(stops, key=lambda stop: stop.sequence)

    def create_route_with_stops(self, route: DeliveryRoute, stops: Sequence[RouteStop]) -> DeliveryRoute:
        validate_stop_sequence(stops)
        with self._lock:
            if self.get_route(route.agent_id, route.date) is not None:
                raise RouteAlreadyExistsError(route.agent_id, route.date)
            stored = replace(route, id=route.id or _new_id())
            staged = [replace(stop, id=stop.id or _new_id(), route_id=stored.id) for stop in stops]
            self.routes[stored.id] = stored
            for stop in staged:
                self.stops[stop.id] = stop
            return stored

    def get_delivery(self, delivery_id: str) -> SubscriptionDelivery:
        with self._lock:
            delivery = self.deliveries.get(delivery_id)
            if delivery is None:
                raise RecordNotFoundError("Delivery", delivery_id)
            return delivery

    def update_delivery_status(
        self, delivery_id: str, status: str, delivered_at: Optional[datetime]
    ) -> SubscriptionDelivery:
        with self._lock:
            delivery = self.get_delivery(delivery_id)
            delivery.status = status
            delivery.delivered_at = delivered_at
            return delivery

    def get_route_stop(self, stop_id: str) -> RouteStop:
        with self._lock:
            stop = self.stops.get(stop_id)
            if stop is None:
                raise RecordNotFoundError("Route stop", stop_id)
            return stop

    def list_route_stops_for_delivery(self, delivery_id: str) -> list[RouteStop]:
        with self._lock:
            return [stop for stop in self.stops.values() if stop.delivery_id == delivery_id]

    def update_route_stop_status(self, stop_id: str, status: str, delivered_at: Optional[datetime]) -> RouteStop:
        with self._lock:
            stop = self.get_route_stop(stop_id)
            stop.status = status
            stop.delivered_at = delivered_at
            return stop

    def update_route_status(self, route_id: str, status: RouteStatus) -> None:
        with self._lock:
            self.get_route_by_id(route_id).status = status
