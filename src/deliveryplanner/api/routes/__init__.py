"""Route group exports."""

from . import deliveries, health, routes, subscriptions

__all__ = ["deliveries", "health", "routes", "subscriptions"]
