"""Delivery route planning and subscription expansion service."""

__version__ = "0.1.0"
