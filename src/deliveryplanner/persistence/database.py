"""Supabase persistence for subscriptions, deliveries and routes."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Optional, Sequence

from postgrest.exceptions import APIError

from ..models.domain import (
    Coordinate,
    DeliveryRoute,
    RouteCandidate,
    RouteStatus,
    RouteStop,
    Subscription,
    SubscriptionDelivery,
    SubscriptionDeliveryRequest,
)
from ..services.geospatial import parse_coordinate
from .repository import (
    DuplicateDeliveryError,
    PersistenceError,
    RecordNotFoundError,
    RouteAlreadyExistsError,
    validate_stop_sequence,
)

UNIQUE_VIOLATION = "23505"


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _subscription_from_row(row: dict[str, Any]) -> Subscription:
    return Subscription(
        id=str(row["id"]),
        user_id=str(row.get("user_id") or ""),
        product_id=str(row.get("product_id") or ""),
        address_id=str(row.get("address_id") or ""),
        quantity=int(row.get("quantity") or 0),
        days_of_week=row.get("days_of_week"),
        start_date=_parse_date(row["start_date"]),
        status=row.get("status", "active"),
    )


def _delivery_from_row(row: dict[str, Any]) -> SubscriptionDelivery:
    return SubscriptionDelivery(
        id=str(row["id"]),
        subscription_id=str(row["subscription_id"]),
        scheduled_date=_parse_datetime(row["scheduled_date"]),
        status=row.get("status", "pending"),
        delivered_at=_parse_datetime(row.get("delivered_at")),
        agent_id=row.get("agent_id"),
    )


def _route_from_row(row: dict[str, Any]) -> DeliveryRoute:
    depot = parse_coordinate(row.get("depot_latitude"), row.get("depot_longitude"))
    if depot is None:
        raise PersistenceError(f"Route '{row.get('id')}' has no usable depot coordinate")
    return DeliveryRoute(
        id=str(row["id"]),
        agent_id=str(row["agent_id"]),
        date=_parse_date(row["date"]),
        depot=depot,
        status=row.get("status") or "pending",
        total_distance_km=float(row.get("total_distance_km") or 0.0),
        estimated_minutes=int(row.get("estimated_minutes") or 0),
    )


def _stop_from_row(row: dict[str, Any]) -> RouteStop:
    return RouteStop(
        id=str(row["id"]),
        route_id=str(row["route_id"]),
        sequence=int(row["sequence"]),
        address_id=str(row["address_id"]),
        delivery_id=row.get("delivery_id"),
        order_id=row.get("order_id"),
        status=row.get("status", "pending"),
        delivered_at=_parse_datetime(row.get("delivered_at")),
        estimated_minutes=row.get("estimated_minutes"),
        actual_minutes=row.get("actual_minutes"),
        distance_from_prev_km=float(row.get("distance_from_prev_km") or 0.0),
    )


def _address_coordinate(address: Any) -> Optional[Coordinate]:
    if not isinstance(address, dict):
        return None
    return parse_coordinate(address.get("latitude"), address.get("longitude"))


def _first_row(data: Any) -> Any:
    if isinstance(data, list):
        return data[0] if data else None
    return data


class SupabaseRepository:
    """Repository backed by Supabase tables.

    Uniqueness of deliveries per (subscription_id, scheduled_on) and of routes
    per (agent_id, date) is enforced by database constraints.
    """

    def __init__(self, client) -> None:
        self.client = client

    def list_active_subscriptions(self) -> list[Subscription]:
        response = self.client.table("subscriptions").select("*").eq("status", "active").execute()
        return [_subscription_from_row(row) for row in (response.data or [])]

    def list_deliveries_for_date(self, target_date: date) -> list[SubscriptionDelivery]:
        response = (
            self.client.table("subscription_deliveries")
            .select("*")
            .eq("scheduled_on", target_date.isoformat())
            .execute()
        )
        return [_delivery_from_row(row) for row in (response.data or [])]

    def create_subscription_delivery(self, request: SubscriptionDeliveryRequest) -> SubscriptionDelivery:
        scheduled_on = request.scheduled_date.date()
        payload = {
            "subscription_id": request.subscription_id,
            "scheduled_date": request.scheduled_date.isoformat(),
            "scheduled_on": scheduled_on.isoformat(),
            "status": request.status,
        }
        response = (
            self.client.table("subscription_deliveries")
            .upsert(payload, on_conflict="subscription_id,scheduled_on", ignore_duplicates=True)
            .execute()
        )
        row = _first_row(response.data)
        if not row:
            raise DuplicateDeliveryError(request.subscription_id, scheduled_on)
        return _delivery_from_row(row)

    def list_route_candidates(
        self,
        target_date: date,
        agent_id: str,
        order_ids: Sequence[str] = (),
    ) -> list[RouteCandidate]:
        response = (
            self.client.table("subscription_deliveries")
            .select("id, subscription_id, subscriptions(address_id, addresses(latitude, longitude))")
            .eq("agent_id", agent_id)
            .eq("status", "pending")
            .eq("scheduled_on", target_date.isoformat())
            .order("scheduled_date")
            .order("id")
            .execute()
        )
        candidates: list[RouteCandidate] = []
        for row in response.data or []:
            subscription = row.get("subscriptions") or {}
            address_id = subscription.get("address_id")
            if not address_id:
                raise PersistenceError(f"Delivery '{row['id']}' has no delivery address")
            candidates.append(
                RouteCandidate(
                    candidate_id=str(row["id"]),
                    address_id=str(address_id),
                    coordinate=_address_coordinate(subscription.get("addresses")),
                    delivery_id=str(row["id"]),
                )
            )

        if order_ids:
            order_response = (
                self.client.table("orders")
                .select("id, address_id, addresses(latitude, longitude)")
                .in_("id", list(order_ids))
                .execute()
            )
            orders_by_id = {str(row["id"]): row for row in (order_response.data or [])}
            for order_id in order_ids:
                row = orders_by_id.get(order_id)
                if row is None:
                    raise RecordNotFoundError("Order", order_id)
                candidates.append(
                    RouteCandidate(
                        candidate_id=order_id,
                        address_id=str(row["address_id"]),
                        coordinate=_address_coordinate(row.get("addresses")),
                        order_id=order_id,
                    )
                )
        return candidates

    def get_route(self, agent_id: str, route_date: date) -> Optional[DeliveryRoute]:
        response = (
            self.client.table("delivery_routes")
            .select("*")
            .eq("agent_id", agent_id)
            .eq("date", route_date.isoformat())
            .limit(1)
            .execute()
        )
        row = _first_row(response.data)
        return _route_from_row(row) if row else None

    def get_route_stops(self, route_id: str) -> list[RouteStop]:
        response = (
            self.client.table("route_stops").select("*").eq("route_id", route_id).order("sequence").execute()
        )
        return [_stop_from_row(row) for row in (response.data or [])]

    def create_route_with_stops(self, route: DeliveryRoute, stops: Sequence[RouteStop]) -> DeliveryRoute:
        validate_stop_sequence(stops)
        route_payload = {
            "agent_id": route.agent_id,
            "date": route.date.isoformat(),
            "depot_latitude": route.depot.latitude,
            "depot_longitude": route.depot.longitude,
            "status": route.status,
            "total_distance_km": route.total_distance_km,
            "estimated_minutes": route.estimated_minutes,
        }
        stops_payload = [
            {
                "delivery_id": stop.delivery_id,
                "order_id": stop.order_id,
                "sequence": stop.sequence,
                "address_id": stop.address_id,
                "status": stop.status,
                "estimated_minutes": stop.estimated_minutes,
                "distance_from_prev_km": stop.distance_from_prev_km,
            }
            for stop in stops
        ]
        try:
            response = self.client.rpc(
                "create_route_with_stops",
                {"p_route": route_payload, "p_stops": stops_payload},
            ).execute()
        except APIError as exc:
            if getattr(exc, "code", None) == UNIQUE_VIOLATION:
                raise RouteAlreadyExistsError(route.agent_id, route.date) from exc
            logging.error(f"Failed to create route for agent {route.agent_id} on {route.date}: {exc}")
            raise PersistenceError(f"Failed to create route: {exc}") from exc

        created = _first_row(response.data)
        route_id = created.get("id") if isinstance(created, dict) else created
        if not route_id:
            raise PersistenceError("create_route_with_stops returned no route id")
        route.id = str(route_id)
        return route

    def get_delivery(self, delivery_id: str) -> SubscriptionDelivery:
        response = self.client.table("subscription_deliveries").select("*").eq("id", delivery_id).limit(1).execute()
        row = _first_row(response.data)
        if not row:
            raise RecordNotFoundError("Delivery", delivery_id)
        return _delivery_from_row(row)

    def update_delivery_status(
        self, delivery_id: str, status: str, delivered_at: Optional[datetime]
    ) -> SubscriptionDelivery:
        response = (
            self.client.table("subscription_deliveries")
            .update({"status": status, "delivered_at": delivered_at.isoformat() if delivered_at else None})
            .eq("id", delivery_id)
            .execute()
        )
        row = _first_row(response.data)
        if not row:
            raise RecordNotFoundError("Delivery", delivery_id)
        return _delivery_from_row(row)

    def get_route_stop(self, stop_id: str) -> RouteStop:
        response = self.client.table("route_stops").select("*").eq("id", stop_id).limit(1).execute()
        row = _first_row(response.data)
        if not row:
            raise RecordNotFoundError("Route stop", stop_id)
        return _stop_from_row(row)

    def list_route_stops_for_delivery(self, delivery_id: str) -> list[RouteStop]:
        response = self.client.table("route_stops").select("*").eq("delivery_id", delivery_id).execute()
        return [_stop_from_row(row) for row in (response.data or [])]

    def update_route_stop_status(self, stop_id: str, status: str, delivered_at: Optional[datetime]) -> RouteStop:
        response = (
            self.client.table("route_stops")
            .update({"status": status, "delivered_at": delivered_at.isoformat() if delivered_at else None})
            .eq("id", stop_id)
            .execute()
        )
        row = _first_row(response.data)
        if not row:
            raise RecordNotFoundError("Route stop", stop_id)
        return _stop_from_row(row)

    def update_route_status(self, route_id: str, status: RouteStatus) -> None:
        response = self.client.table("delivery_routes").update({"status": status}).eq("id", route_id).execute()
        if not response.data:
            raise RecordNotFoundError("Route", route_id)
