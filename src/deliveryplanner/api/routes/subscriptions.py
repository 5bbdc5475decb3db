"""Subscription expansion endpoints."""

from __future__ import annotations

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, status

from ...persistence.repository import DeliveryRepository, get_repository
from ...schemas.subscriptions import DeliveryModel, ExpansionRequest, ExpansionResponse
from ...services.subscriptions.service import run_expansion

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.post("/expand", response_model=ExpansionResponse, status_code=status.HTTP_200_OK)
def expand(
    payload: ExpansionRequest | None = None,
    repository: DeliveryRepository = Depends(get_repository),
) -> ExpansionResponse:
    """Materialize the deliveries owed on a date (admin trigger for the nightly job)."""
    target_date = payload.target_date if payload else None
    try:
        report = run_expansion(target_date, repository=repository)
    except Exception as exc:
        logging.exception(f"Error expanding subscriptions: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to expand subscriptions: {str(exc)}",
        ) from exc

    return ExpansionResponse(
        target_date=report.target_date,
        weekday=report.weekday,
        created=[DeliveryModel(**asdict(delivery)) for delivery in report.created],
        duplicates=report.duplicates,
        malformed=report.malformed,
        not_started=report.not_started,
        failed=report.failed,
    )
