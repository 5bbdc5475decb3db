"""Delivery status update schemas."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class StatusUpdateRequest(BaseModel):
    status: Literal["pending", "in_transit", "delivered", "failed"]
