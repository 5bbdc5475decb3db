"""Subscription expansion schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ExpansionRequest(BaseModel):
    target_date: Optional[date] = Field(
        default=None,
        description="Date to materialize deliveries for. Defaults to tomorrow in the deployment time zone.",
    )


class DeliveryModel(BaseModel):
    id: str
    subscription_id: str
    scheduled_date: datetime
    status: str
    delivered_at: Optional[datetime] = None
    agent_id: Optional[str] = None


class ExpansionResponse(BaseModel):
    target_date: date
    weekday: str
    created: List[DeliveryModel]
    duplicates: List[str]
    malformed: List[str]
    not_started: List[str]
    failed: Dict[str, str]
