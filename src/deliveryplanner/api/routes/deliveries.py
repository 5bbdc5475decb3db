"""Delivery and route stop status endpoints used by agents."""

from __future__ import annotations

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, status

from ...persistence.repository import DeliveryRepository, RecordNotFoundError, get_repository
from ...schemas.deliveries import StatusUpdateRequest
from ...schemas.routing import RouteStopModel
from ...schemas.subscriptions import DeliveryModel
from ...services.deliveries.status import InvalidStatusTransition, update_delivery_status, update_route_stop_status

router = APIRouter(tags=["deliveries"])


@router.patch("/deliveries/{delivery_id}/status", response_model=DeliveryModel, status_code=status.HTTP_200_OK)
def set_delivery_status(
    delivery_id: str,
    payload: StatusUpdateRequest,
    repository: DeliveryRepository = Depends(get_repository),
) -> DeliveryModel:
    try:
        delivery = update_delivery_status(delivery_id, payload.status, repository=repository)
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except InvalidStatusTransition as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error updating delivery {delivery_id} status: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update delivery status: {str(exc)}",
        ) from exc
    return DeliveryModel(**asdict(delivery))


@router.patch("/route-stops/{stop_id}/status", response_model=RouteStopModel, status_code=status.HTTP_200_OK)
def set_route_stop_status(
    stop_id: str,
    payload: StatusUpdateRequest,
    repository: DeliveryRepository = Depends(get_repository),
) -> RouteStopModel:
    try:
        stop = update_route_stop_status(stop_id, payload.status, repository=repository)
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except InvalidStatusTransition as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error updating route stop {stop_id} status: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update route stop status: {str(exc)}",
        ) from exc
    return RouteStopModel(**{k: v for k, v in asdict(stop).items() if k != "route_id"})
