from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest

from deliveryplanner.models.domain import Coordinate, DeliveryRoute, RouteCandidate, RouteStop, SubscriptionDeliveryRequest
from deliveryplanner.persistence.database import SupabaseRepository
from deliveryplanner.persistence.memory import InMemoryRepository
from deliveryplanner.persistence.repository import DuplicateDeliveryError, RouteAlreadyExistsError

ROUTE_DATE = date(2026, 10, 21)
SCHEDULED = datetime(2026, 10, 21, 6, tzinfo=timezone.utc)


def _route(agent_id: str = "agent-1") -> DeliveryRoute:
    return DeliveryRoute(id="", agent_id=agent_id, date=ROUTE_DATE, depot=Coordinate(11.0168, 76.9558))


def _stop(sequence: int) -> RouteStop:
    return RouteStop(id="", route_id="", sequence=sequence, address_id=f"A{sequence}", delivery_id=f"D{sequence}")


class FakeQuery:
    def __init__(self, client, table: str) -> None:
        self.client = client
        self.table = table
        self.calls: list[tuple] = []
        client.queries.append(self)

    def __getattr__(self, name):
        def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return method

    def execute(self):
        return SimpleNamespace(data=self.client.responses.get(self.table, []))


class FakeSupabase:
    def __init__(self, responses: dict | None = None) -> None:
        self.responses = responses or {}
        self.queries: list[FakeQuery] = []
        self.rpc_calls: list[tuple] = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: dict):
        self.rpc_calls.append((name, params))
        return SimpleNamespace(execute=lambda: SimpleNamespace(data=self.responses.get(f"rpc:{name}")))


def test_memory_rejects_second_delivery_for_same_day():
    repo = InMemoryRepository()
    repo.create_subscription_delivery(SubscriptionDeliveryRequest("S1", SCHEDULED))

    with pytest.raises(DuplicateDeliveryError):
        repo.create_subscription_delivery(SubscriptionDeliveryRequest("S1", SCHEDULED.replace(hour=9)))

    repo.create_subscription_delivery(SubscriptionDeliveryRequest("S1", SCHEDULED.replace(day=22)))
    assert len(repo.deliveries) == 2


def test_memory_route_write_is_all_or_nothing():
    repo = InMemoryRepository()

    with pytest.raises(ValueError):
        repo.create_route_with_stops(_route(), [_stop(1), _stop(3)])

    assert repo.routes == {}
    assert repo.stops == {}


def test_memory_route_unique_per_agent_and_date():
    repo = InMemoryRepository()
    saved = repo.create_route_with_stops(_route(), [_stop(1), _stop(2)])

    with pytest.raises(RouteAlreadyExistsError):
        repo.create_route_with_stops(_route(), [_stop(1)])

    assert [stop.sequence for stop in repo.get_route_stops(saved.id)] == [1, 2]


def test_route_candidate_requires_exactly_one_reference():
    with pytest.raises(ValueError):
        RouteCandidate(candidate_id="X", address_id="A", coordinate=None)
    with pytest.raises(ValueError):
        RouteCandidate(candidate_id="X", address_id="A", coordinate=None, delivery_id="D", order_id="O")


def test_supabase_delivery_upsert_detects_duplicates():
    client = FakeSupabase({"subscription_deliveries": []})
    repo = SupabaseRepository(client)

    with pytest.raises(DuplicateDeliveryError):
        repo.create_subscription_delivery(SubscriptionDeliveryRequest("S1", SCHEDULED))

    name, args, kwargs = client.queries[0].calls[0]
    assert name == "upsert"
    assert args[0]["scheduled_on"] == "2026-10-21"
    assert kwargs == {"on_conflict": "subscription_id,scheduled_on", "ignore_duplicates": True}


def test_supabase_delivery_upsert_returns_created_row():
    row = {
        "id": "D1",
        "subscription_id": "S1",
        "scheduled_date": "2026-10-21T06:00:00+05:30",
        "status": "pending",
        "delivered_at": None,
        "agent_id": None,
    }
    repo = SupabaseRepository(FakeSupabase({"subscription_deliveries": [row]}))

    delivery = repo.create_subscription_delivery(SubscriptionDeliveryRequest("S1", SCHEDULED))

    assert delivery.id == "D1"
    assert delivery.scheduled_date.hour == 6


def test_supabase_route_candidates_parse_string_coordinates():
    client = FakeSupabase(
        {
            "subscription_deliveries": [
                {"id": "D1", "subscription_id": "S1", "subscriptions": {"address_id": "A1", "addresses": {"latitude": "11.05000000", "longitude": "77.00000000"}}},
                {"id": "D2", "subscription_id": "S2", "subscriptions": {"address_id": "A2", "addresses": {"latitude": None, "longitude": None}}},
            ],
            "orders": [{"id": "O1", "address_id": "A3", "addresses": {"latitude": "11.1", "longitude": "76.9"}}],
        }
    )
    repo = SupabaseRepository(client)

    candidates = repo.list_route_candidates(ROUTE_DATE, "agent-1", ["O1"])

    assert [candidate.candidate_id for candidate in candidates] == ["D1", "D2", "O1"]
    assert candidates[0].coordinate == Coordinate(11.05, 77.0)
    assert candidates[1].coordinate is None
    assert candidates[2].order_id == "O1"


def test_supabase_route_write_goes_through_single_rpc():
    client = FakeSupabase({"rpc:create_route_with_stops": [{"id": "R1"}]})
    repo = SupabaseRepository(client)

    saved = repo.create_route_with_stops(_route(), [_stop(1), _stop(2)])

    assert saved.id == "R1"
    assert len(client.rpc_calls) == 1
    name, params = client.rpc_calls[0]
    assert name == "create_route_with_stops"
    assert [stop["sequence"] for stop in params["p_stops"]] == [1, 2]
    assert params["p_route"]["date"] == "2026-10-21"
    assert client.queries == []


def test_supabase_route_candidates_have_stable_order():
    client = FakeSupabase({"subscription_deliveries": []})

    SupabaseRepository(client).list_route_candidates(ROUTE_DATE, "agent-1")

    orderings = [args for name, args, _ in client.queries[0].calls if name == "order"]
    assert orderings == [("scheduled_date",), ("id",)]


def test_supabase_stops_for_delivery_filter_by_delivery():
    row = {"id": "RS1", "route_id": "R1", "sequence": 1, "address_id": "A1", "delivery_id": "D1", "status": "pending"}
    client = FakeSupabase({"route_stops": [row]})

    stops = SupabaseRepository(client).list_route_stops_for_delivery("D1")

    assert [stop.id for stop in stops] == ["RS1"]
    assert ("eq", ("delivery_id", "D1"), {}) in client.queries[0].calls


def test_memory_stops_for_delivery():
    repo = InMemoryRepository()
    saved = repo.create_route_with_stops(_route(), [_stop(1), _stop(2)])

    stops = repo.list_route_stops_for_delivery("D2")

    assert [(stop.route_id, stop.sequence) for stop in stops] == [(saved.id, 2)]
