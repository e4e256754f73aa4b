"""Read-only status labels and upcoming-date previews for recurring payments."""

from datetime import date
from typing import List

from bookkeeper.services.lifecycle import RuleState, classify, terminal_reason_for
from bookkeeper.services.occurrence_calculator import next_occurrence, pattern_of

STATUS_LABELS = {
    RuleState.scheduled: "Active",
    RuleState.due: "Due",
    RuleState.inactive: "Inactive",
    RuleState.exhausted: "Completed",
    RuleState.expired: "Expired",
}


def status_label(rule, reference_date: date) -> str:
    return STATUS_LABELS[classify(rule, reference_date)]


def preview(rule, count: int) -> List[date]:
    """Up to ``count`` upcoming occurrence dates, stopping at end_date or the occurrence limit."""
    if count <= 0 or not rule.is_active or rule.next_occurrence is None:
        return []

    pattern = pattern_of(rule)
    dates: List[date] = []
    candidate = rule.next_occurrence
    fired = rule.occurrences_fired

    while len(dates) < count:
        if terminal_reason_for(candidate, rule.end_date, rule.occurrence_limit, fired):
            break
        dates.append(candidate)
        fired += 1
        candidate = next_occurrence(pattern, candidate)
    return dates
