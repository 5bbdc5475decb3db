"""Route planning orchestration service."""

from __future__ import annotations

import logging
from datetime import date
from typing import Mapping, Sequence

from ...models.domain import Coordinate, DeliveryRoute, RouteCandidate, RouteStop
from ...persistence.repository import DeliveryRepository, RouteAlreadyExistsError, get_repository
from ..geospatial import resolve_depot
from .models import AgentRouteOutcome, RouteMetrics, RoutePlanningReport
from .optimizer import compute_route_metrics, optimize_route, round_half_up, route_legs


def build_route(
    agent_id: str,
    target_date: date,
    candidates: Sequence[RouteCandidate],
    depot: Coordinate,
) -> tuple[DeliveryRoute, list[RouteStop], RouteMetrics]:
    """Sequence candidates and build the unsaved route with stops numbered 1..N."""
    ordered = optimize_route(candidates, depot)
    metrics = compute_route_metrics(ordered, depot)
    legs = route_legs(ordered, depot)

    route = DeliveryRoute(
        id="",
        agent_id=agent_id,
        date=target_date,
        depot=depot,
        total_distance_km=metrics.total_distance_km,
        estimated_minutes=metrics.estimated_minutes,
    )
    stops = [
        RouteStop(
            id="",
            route_id="",
            sequence=sequence,
            address_id=candidate.address_id,
            delivery_id=candidate.delivery_id,
            order_id=candidate.order_id,
            estimated_minutes=int(round_half_up(leg.arrival_min)),
            distance_from_prev_km=round(leg.distance_from_prev_km, 3),
        )
        for sequence, (candidate, leg) in enumerate(zip(ordered, legs), start=1)
    ]
    return route, stops, metrics


def _plan_agent(
    repo: DeliveryRepository,
    agent_id: str,
    target_date: date,
    depot: Coordinate,
    order_ids: Sequence[str],
) -> AgentRouteOutcome:
    if repo.get_route(agent_id, target_date) is not None:
        raise RouteAlreadyExistsError(agent_id, target_date)

    candidates = repo.list_route_candidates(target_date, agent_id, order_ids)
    if not candidates:
        logging.info(f"No pending stops for agent {agent_id} on {target_date}, skipping")
        return AgentRouteOutcome(agent_id=agent_id, status="empty")

    route, stops, metrics = build_route(agent_id, target_date, candidates, depot)
    saved = repo.create_route_with_stops(route, stops)
    logging.info(
        f"Planned route {saved.id} for agent {agent_id} on {target_date}: "
        f"{len(stops)} stops, {metrics.total_distance_km} km, ~{metrics.estimated_minutes} min"
    )
    return AgentRouteOutcome(
        agent_id=agent_id,
        status="planned",
        route=saved,
        stops=repo.get_route_stops(saved.id),
        metrics=metrics,
    )


def plan_routes(
    target_date: date,
    agent_ids: Sequence[str],
    *,
    depot: Coordinate | None = None,
    order_ids: Mapping[str, Sequence[str]] | None = None,
    repository: DeliveryRepository | None = None,
) -> RoutePlanningReport:
    """Plan one route per agent for ``target_date``.

    A failure for one agent is logged and reported as a failed outcome; the
    remaining agents are still planned.
    """
    repo = repository or get_repository()
    depot_location = resolve_depot(depot)
    orders_by_agent = order_ids or {}

    outcomes: list[AgentRouteOutcome] = []
    for agent_id in agent_ids:
        try:
            outcome = _plan_agent(repo, agent_id, target_date, depot_location, orders_by_agent.get(agent_id, ()))
        except Exception as exc:
            logging.exception(f"Route planning failed for agent {agent_id} on {target_date}: {exc}")
            outcome = AgentRouteOutcome(agent_id=agent_id, status="failed", error=str(exc))
        outcomes.append(outcome)

    report = RoutePlanningReport(date=target_date, outcomes=outcomes)
    logging.info(
        f"Route planning for {target_date}: planned={report.count('planned')}, "
        f"empty={report.count('empty')}, failed={report.count('failed')}"
    )
    return report
