"""Routing endpoints."""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import date
from typing import Sequence

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...models.domain import DeliveryRoute, RouteStop
from ...persistence.repository import DeliveryRepository, get_repository
from ...schemas.routing import (
    AgentRouteOutcomeModel,
    DepotLocation,
    RouteMetricsRequest,
    RouteMetricsResponse,
    RouteModel,
    RoutePlanningRequest,
    RoutePlanningResponse,
    RouteStopModel,
)
from ...services.routing.optimizer import compute_route_metrics, optimize_route
from ...services.routing.service import plan_routes

router = APIRouter(tags=["routes"])


def route_to_model(route: DeliveryRoute, stops: Sequence[RouteStop]) -> RouteModel:
    return RouteModel(
        id=route.id,
        agent_id=route.agent_id,
        date=route.date,
        depot=DepotLocation(latitude=route.depot.latitude, longitude=route.depot.longitude),
        status=route.status,
        total_distance_km=route.total_distance_km,
        estimated_minutes=route.estimated_minutes,
        stops=[RouteStopModel(**{k: v for k, v in asdict(stop).items() if k != "route_id"}) for stop in stops],
    )


@router.post("/routes/optimize", response_model=RoutePlanningResponse, status_code=status.HTTP_200_OK)
def optimize(payload: RoutePlanningRequest, repository: DeliveryRepository = Depends(get_repository)) -> RoutePlanningResponse:
    try:
        report = plan_routes(
            payload.date,
            payload.agent_ids,
            depot=payload.depot.to_coordinate() if payload.depot else None,
            order_ids=payload.order_ids,
            repository=repository,
        )
    except Exception as exc:
        logging.exception(f"Error planning routes: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to plan routes: {str(exc)}",
        ) from exc

    outcomes = [
        AgentRouteOutcomeModel(
            agent_id=outcome.agent_id,
            status=outcome.status,
            route=route_to_model(outcome.route, outcome.stops) if outcome.route else None,
            error=outcome.error,
        )
        for outcome in report.outcomes
    ]
    return RoutePlanningResponse(
        date=report.date,
        planned=report.count("planned"),
        empty=report.count("empty"),
        failed=report.count("failed"),
        outcomes=outcomes,
    )


@router.post("/routes/metrics", response_model=RouteMetricsResponse, status_code=status.HTTP_200_OK)
def metrics(payload: RouteMetricsRequest) -> RouteMetricsResponse:
    """Distance and duration estimate for the given stop order, optionally re-sequenced first."""
    depot = payload.depot.to_coordinate() if payload.depot else None
    stops = optimize_route(payload.stops, depot) if payload.optimize else payload.stops
    result = compute_route_metrics(stops, depot)
    return RouteMetricsResponse(
        stop_ids=[stop.id for stop in stops],
        total_distance_km=result.total_distance_km,
        estimated_minutes=result.estimated_minutes,
    )


@router.get("/agents/{agent_id}/route", response_model=RouteModel, status_code=status.HTTP_200_OK)
def agent_route(
    agent_id: str,
    route_date: date = Query(..., alias="date", description="Route date (YYYY-MM-DD)"),
    repository: DeliveryRepository = Depends(get_repository),
) -> RouteModel:
    route = repository.get_route(agent_id, route_date)
    if route is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No route for agent {agent_id} on {route_date.isoformat()}",
        )
    return route_to_model(route, repository.get_route_stops(route.id))
