"""Lifecycle states of a recurring payment and the transitions between them."""

import enum
from datetime import date
from typing import NamedTuple, Optional

from bookkeeper.models.recurring import TerminalReason
from bookkeeper.services.occurrence_calculator import next_occurrence, pattern_of


class RuleState(str, enum.Enum):
    """Derived state of a rule relative to a reference date."""
    scheduled = "scheduled"
    due = "due"
    exhausted = "exhausted"
    expired = "expired"
    inactive = "inactive"


class FireTransition(NamedTuple):
    """Rule fields after one occurrence has fired."""
    fired_date: date
    occurrences_fired: int
    next_occurrence: Optional[date]
    is_active: bool
    terminal_reason: Optional[TerminalReason]


def classify(rule, reference_date: date) -> RuleState:
    """
    Pure read of the rule's current fields.

    A rule whose next occurrence falls on the reference date is due.
    """
    if not rule.is_active:
        if rule.terminal_reason is not None:
            return RuleState(TerminalReason(rule.terminal_reason).value)
        return RuleState.inactive

    if rule.next_occurrence is not None and rule.next_occurrence <= reference_date:
        return RuleState.due
    return RuleState.scheduled


def is_due(rule, reference_date: date) -> bool:
    return classify(rule, reference_date) == RuleState.due


def terminal_reason_for(
    candidate: Optional[date],
    end_date: Optional[date],
    occurrence_limit: Optional[int],
    occurrences_fired: int,
) -> Optional[TerminalReason]:
    """Decide whether a rule must stop before ``candidate``. Exhaustion wins over expiry."""
    if occurrence_limit and occurrences_fired >= occurrence_limit:
        return TerminalReason.exhausted
    if candidate is None or (end_date is not None and candidate > end_date):
        return TerminalReason.expired
    return None


def advance(rule) -> FireTransition:
    """Transition for firing the rule's current next_occurrence."""
    if not rule.is_active or rule.next_occurrence is None:
        raise ValueError(f"Recurring payment {rule.id} has no pending occurrence")

    fired_date = rule.next_occurrence
    fired = rule.occurrences_fired + 1
    candidate = next_occurrence(pattern_of(rule), fired_date)

    reason = terminal_reason_for(candidate, rule.end_date, rule.occurrence_limit, fired)
    if reason is not None:
        return FireTransition(fired_date, fired, None, False, reason)
    return FireTransition(fired_date, fired, candidate, True, None)
