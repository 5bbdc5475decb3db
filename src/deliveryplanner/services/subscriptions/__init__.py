"""Subscription expansion services."""

from .expander import MalformedRecurrenceRule, evaluate_subscriptions, expand_subscriptions, weekday_token
from .service import ExpansionReport, resolve_target_date, run_expansion

__all__ = [
    "MalformedRecurrenceRule",
    "evaluate_subscriptions",
    "expand_subscriptions",
    "weekday_token",
    "ExpansionReport",
    "resolve_target_date",
    "run_expansion",
]
