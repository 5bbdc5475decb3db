"""Subscription expansion orchestration."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from ...config import settings
from ...models.domain import SubscriptionDelivery
from ...persistence.repository import DeliveryRepository, DuplicateDeliveryError, PersistenceError, get_repository
from .expander import evaluate_subscriptions, weekday_token


@dataclass(slots=True)
class ExpansionReport:
    target_date: date
    weekday: str
    created: list[SubscriptionDelivery] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)
    malformed: list[str] = field(default_factory=list)
    not_started: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


def resolve_target_date(today: date | None = None, lead_days: int | None = None) -> date:
    """Date the nightly run expands for: today in the deployment zone plus the lead days."""
    if today is None:
        today = datetime.now(ZoneInfo(settings.timezone)).date()
    lead = settings.expansion_lead_days if lead_days is None else lead_days
    return today + timedelta(days=lead)


def run_expansion(target_date: date | None = None, *, repository: DeliveryRepository | None = None) -> ExpansionReport:
    """Materialize deliveries owed on ``target_date`` and store them.

    Safe to run more than once for the same date: subscriptions that already
    hold a delivery are skipped, and a concurrent duplicate rejected by storage
    is counted rather than raised.
    """
    repo = repository or get_repository()
    target = target_date or resolve_target_date()
    report = ExpansionReport(target_date=target, weekday=weekday_token(target))

    logging.info(f"Running subscription expansion for {target.isoformat()} ({report.weekday})")
    subscriptions = repo.list_active_subscriptions()
    existing = {delivery.subscription_id for delivery in repo.list_deliveries_for_date(target)}

    outcome = evaluate_subscriptions(subscriptions, target, already_scheduled=existing)
    report.malformed = outcome.malformed
    report.not_started = outcome.not_started
    report.duplicates.extend(outcome.already_scheduled)

    for request in outcome.requests:
        try:
            delivery = repo.create_subscription_delivery(request)
        except DuplicateDeliveryError:
            logging.info(f"Delivery for subscription {request.subscription_id} on {target} already exists")
            report.duplicates.append(request.subscription_id)
            continue
        except PersistenceError as exc:
            logging.error(f"Failed to create delivery for subscription {request.subscription_id}: {exc}")
            report.failed[request.subscription_id] = str(exc)
            continue
        report.created.append(delivery)

    logging.info(
        f"Subscription expansion for {target.isoformat()} completed: created={len(report.created)}, "
        f"duplicates={len(report.duplicates)}, malformed={len(report.malformed)}, failed={len(report.failed)}"
    )
    return report
