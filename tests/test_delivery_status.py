from datetime import date, datetime, timezone

import pytest

from deliveryplanner.models.domain import Address, Coordinate, Subscription, SubscriptionDelivery, SubscriptionDeliveryRequest
from deliveryplanner.persistence.memory import InMemoryRepository
from deliveryplanner.persistence.repository import RecordNotFoundError
from deliveryplanner.services.deliveries.status import (
    InvalidStatusTransition,
    update_delivery_status,
    update_route_stop_status,
)
from deliveryplanner.services.routing.service import plan_routes

ROUTE_DATE = date(2026, 10, 21)
DELIVERED_AT = datetime(2026, 10, 21, 7, 30, tzinfo=timezone.utc)


def _clock() -> datetime:
    return DELIVERED_AT


def _repository_with_route() -> tuple[InMemoryRepository, str]:
    subscriptions = [
        Subscription(
            id=sid,
            user_id="U1",
            product_id="P1",
            address_id=f"A-{sid}",
            quantity=1,
            days_of_week='["wed"]',
            start_date=date(2026, 1, 1),
        )
        for sid in ("S1", "S2")
    ]
    repo = InMemoryRepository(
        subscriptions=subscriptions,
        addresses=[Address(id="A-S1", coordinate=Coordinate(0.0, 0.1)), Address(id="A-S2", coordinate=Coordinate(0.0, 0.2))],
        deliveries=[
            SubscriptionDelivery(
                id=f"D-{sid}",
                subscription_id=sid,
                scheduled_date=datetime(2026, 10, 21, 6, tzinfo=timezone.utc),
                agent_id="agent-1",
            )
            for sid in ("S1", "S2")
        ],
    )
    report = plan_routes(ROUTE_DATE, ["agent-1"], depot=Coordinate(0.0, 0.0), repository=repo)
    return repo, report.outcomes[0].route.id


def test_delivered_sets_timestamp_and_repeat_is_noop():
    repo, _ = _repository_with_route()

    delivered = update_delivery_status("D-S1", "delivered", repository=repo, clock=_clock)
    again = update_delivery_status(
        "D-S1", "delivered", repository=repo, clock=lambda: datetime(2030, 1, 1, tzinfo=timezone.utc)
    )

    assert delivered.status == "delivered"
    assert delivered.delivered_at == DELIVERED_AT
    assert again.delivered_at == DELIVERED_AT


def test_delivered_is_terminal():
    repo, _ = _repository_with_route()
    update_delivery_status("D-S1", "delivered", repository=repo, clock=_clock)

    with pytest.raises(InvalidStatusTransition):
        update_delivery_status("D-S1", "pending", repository=repo)


def test_failed_delivery_can_be_retried_and_clears_timestamp():
    repo, _ = _repository_with_route()

    update_delivery_status("D-S1", "failed", repository=repo)
    retried = update_delivery_status("D-S1", "in_transit", repository=repo)

    assert retried.status == "in_transit"
    assert retried.delivered_at is None


def test_unknown_status_is_rejected():
    repo, _ = _repository_with_route()

    with pytest.raises(InvalidStatusTransition):
        update_delivery_status("D-S1", "lost", repository=repo)


def test_unknown_delivery_raises_not_found():
    repo, _ = _repository_with_route()

    with pytest.raises(RecordNotFoundError):
        update_delivery_status("nope", "delivered", repository=repo)


def test_stop_status_mirrors_delivery_and_rolls_up_route():
    repo, route_id = _repository_with_route()
    first, second = repo.get_route_stops(route_id)

    update_route_stop_status(first.id, "in_transit", repository=repo)
    assert repo.get_route_by_id(route_id).status == "active"
    assert repo.get_delivery(first.delivery_id).status == "in_transit"

    update_route_stop_status(first.id, "delivered", repository=repo, clock=_clock)
    update_route_stop_status(second.id, "failed", repository=repo)

    assert repo.get_route_by_id(route_id).status == "completed"
    assert repo.get_delivery(first.delivery_id).delivered_at == DELIVERED_AT
    assert repo.get_delivery(second.delivery_id).status == "failed"
    assert repo.get_route_stop(first.id).delivered_at == DELIVERED_AT


def test_delivery_status_carries_onto_stop_and_route():
    repo, route_id = _repository_with_route()
    first, second = repo.get_route_stops(route_id)

    update_delivery_status(first.delivery_id, "in_transit", repository=repo)
    assert repo.get_route_stop(first.id).status == "in_transit"
    assert repo.get_route_by_id(route_id).status == "active"

    update_delivery_status(first.delivery_id, "delivered", repository=repo, clock=_clock)
    update_delivery_status(second.delivery_id, "delivered", repository=repo, clock=_clock)

    assert [stop.status for stop in repo.get_route_stops(route_id)] == ["delivered", "delivered"]
    assert repo.get_route_stop(first.id).delivered_at == DELIVERED_AT
    assert repo.get_route_by_id(route_id).status == "completed"


def test_stop_change_the_delivery_cannot_follow_is_rejected():
    repo, route_id = _repository_with_route()
    first = repo.get_route_stops(route_id)[0]
    update_delivery_status(first.delivery_id, "delivered", repository=repo, clock=_clock)

    with pytest.raises(InvalidStatusTransition):
        update_route_stop_status(first.id, "failed", repository=repo)

    assert repo.get_route_stop(first.id).status == "delivered"
    assert repo.get_delivery(first.delivery_id).status == "delivered"


def test_delivery_without_route_updates_alone():
    repo, _ = _repository_with_route()
    repo.create_subscription_delivery(SubscriptionDeliveryRequest("S1", datetime(2026, 10, 22, 6, tzinfo=timezone.utc)))
    unrouted = next(item for item in repo.deliveries.values() if item.scheduled_date.day == 22)

    updated = update_delivery_status(unrouted.id, "failed", repository=repo)

    assert updated.status == "failed"
    assert repo.list_route_stops_for_delivery(unrouted.id) == []
