"""Expansion of weekly subscriptions into dated delivery requests.

The whole deployment runs in a single canonical time zone
(``settings.timezone``). A target date's weekday is its calendar weekday in
that zone; subscriptions cannot override it.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Iterable, Optional
from zoneinfo import ZoneInfo

from ...config import settings
from ...models.domain import Subscription, SubscriptionDeliveryRequest

# Index matches date.weekday(): Monday == 0.
WEEKDAY_TOKENS: tuple[str, ...] = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
_FULL_NAMES = {
    "monday": "mon",
    "tuesday": "tue",
    "wednesday": "wed",
    "thursday": "thu",
    "friday": "fri",
    "saturday": "sat",
    "sunday": "sun",
}


class MalformedRecurrenceRule(ValueError):
    """A subscription's weekday set cannot be parsed."""

    def __init__(self, subscription_id: str, reason: str) -> None:
        super().__init__(f"Subscription '{subscription_id}' has malformed days_of_week: {reason}")
        self.subscription_id = subscription_id
        self.reason = reason


@dataclass(slots=True)
class ExpansionOutcome:
    requests: list[SubscriptionDeliveryRequest] = field(default_factory=list)
    malformed: list[str] = field(default_factory=list)
    not_started: list[str] = field(default_factory=list)
    inactive: list[str] = field(default_factory=list)
    already_scheduled: list[str] = field(default_factory=list)


def weekday_token(target_date: date) -> str:
    """Three-letter lowercase weekday token for a calendar date."""
    return WEEKDAY_TOKENS[target_date.weekday()]


def _normalize_token(subscription_id: str, item: Any) -> str:
    if not isinstance(item, str):
        raise MalformedRecurrenceRule(subscription_id, f"non-string day {item!r}")
    token = item.strip().lower()
    token = _FULL_NAMES.get(token, token)
    if token not in WEEKDAY_TOKENS:
        raise MalformedRecurrenceRule(subscription_id, f"unknown day {item!r}")
    return token


def parse_days_of_week(subscription_id: str, raw: Any) -> frozenset[str]:
    """Parse a stored weekday set into canonical tokens.

    ``raw`` is either a JSON array string (as stored in the database) or an
    already decoded list/tuple/set of day names.
    """
    value = raw
    if isinstance(raw, str):
        try:
            value = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise MalformedRecurrenceRule(subscription_id, f"invalid JSON ({exc.msg})") from exc
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise MalformedRecurrenceRule(subscription_id, f"expected a list of days, got {type(value).__name__}")

    days = frozenset(_normalize_token(subscription_id, item) for item in value)
    if not days:
        raise MalformedRecurrenceRule(subscription_id, "empty day set")
    return days


def scheduled_datetime(target_date: date, dispatch_hour: int | None = None, tz: str | None = None) -> datetime:
    hour = settings.dispatch_hour if dispatch_hour is None else dispatch_hour
    zone = ZoneInfo(tz or settings.timezone)
    return datetime.combine(target_date, time(hour=hour), tzinfo=zone)


def evaluate_subscriptions(
    subscriptions: Iterable[Subscription],
    target_date: date,
    *,
    dispatch_hour: Optional[int] = None,
    timezone: Optional[str] = None,
    already_scheduled: Iterable[str] = (),
) -> ExpansionOutcome:
    """Decide which subscriptions owe a delivery on ``target_date``.

    One corrupt subscription never aborts the batch: it is logged, recorded in
    ``malformed`` and skipped.
    """
    token = weekday_token(target_date)
    scheduled_for = scheduled_datetime(target_date, dispatch_hour, timezone)
    scheduled_ids = set(already_scheduled)
    outcome = ExpansionOutcome()

    for subscription in subscriptions:
        if subscription.status != "active":
            outcome.inactive.append(subscription.id)
            continue
        try:
            days = parse_days_of_week(subscription.id, subscription.days_of_week)
        except MalformedRecurrenceRule as exc:
            logging.warning(f"Skipping subscription {subscription.id}: {exc.reason}")
            outcome.malformed.append(subscription.id)
            continue

        if token not in days:
            continue
        if subscription.start_date > target_date:
            outcome.not_started.append(subscription.id)
            continue
        if subscription.id in scheduled_ids:
            outcome.already_scheduled.append(subscription.id)
            continue

        outcome.requests.append(
            SubscriptionDeliveryRequest(subscription_id=subscription.id, scheduled_date=scheduled_for)
        )

    return outcome


def expand_subscriptions(
    subscriptions: Iterable[Subscription],
    target_date: date,
    *,
    dispatch_hour: Optional[int] = None,
    timezone: Optional[str] = None,
    already_scheduled: Iterable[str] = (),
) -> list[SubscriptionDeliveryRequest]:
    """Delivery requests owed on ``target_date`` by the given subscriptions."""
    return evaluate_subscriptions(
        subscriptions,
        target_date,
        dispatch_hour=dispatch_hour,
        timezone=timezone,
        already_scheduled=already_scheduled,
    ).requests
