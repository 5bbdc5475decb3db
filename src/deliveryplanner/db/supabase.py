"""Supabase client for Python backend."""

import logging
from functools import lru_cache
from supabase import create_client, Client
from ..config import settings


@lru_cache()
def get_supabase_client() -> Client | None:
    """Get cached Supabase client instance.

    Returns:
        Supabase Client instance if configured, None otherwise.
        Note: This does not test the connection - actual queries may fail with network errors.
    """
    if not settings.supabase_url or not settings.supabase_key:
        logging.info("Supabase credentials not configured (missing URL or key)")
        return None

    try:
        return create_client(settings.supabase_url, settings.supabase_key)
    except Exception as e:
        logging.error(f"Failed to create Supabase client: {e}")
        return None


# Tables used by the planner:
#
#   subscriptions            id, user_id, product_id, address_id, quantity,
#                            days_of_week, start_date, status
#   subscription_deliveries  id, subscription_id, scheduled_date, scheduled_on,
#                            status, delivered_at, agent_id
#                            UNIQUE (subscription_id, scheduled_on)
#   addresses                id, latitude, longitude
#   orders                   id, address_id, status
#   delivery_routes          id, agent_id, date, depot_latitude, depot_longitude,
#                            status, total_distance_km, estimated_minutes
#                            UNIQUE (agent_id, date)
#   route_stops              id, route_id, delivery_id, order_id, sequence,
#                            address_id, status, delivered_at, estimated_minutes,
#                            actual_minutes, distance_from_prev_km
#
# create_route_with_stops(p_route jsonb, p_stops jsonb) inserts the route and
# all of its stops in one transaction and returns the new route id.
