"""Delivery status services."""

from .status import InvalidStatusTransition, update_delivery_status, update_route_stop_status

__all__ = [
    "InvalidStatusTransition",
    "update_delivery_status",
    "update_route_stop_status",
]
