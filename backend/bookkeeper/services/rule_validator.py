"""Validation and normalization of recurring payment rules on create and edit."""

from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Tuple

from bookkeeper.models.recurring import EntryKind, Frequency
from bookkeeper.services.lifecycle import terminal_reason_for
from bookkeeper.services.occurrence_calculator import RecurrencePattern, first_occurrence

DAY_OF_MONTH_FREQUENCIES = (Frequency.monthly, Frequency.quarterly, Frequency.yearly)

# Fields a caller may set directly
EDITABLE_FIELDS = (
    "kind",
    "category",
    "description",
    "amount",
    "counterparty_id",
    "engagement_id",
    "frequency",
    "day_of_month",
    "day_of_week",
    "start_date",
    "end_date",
    "occurrence_limit",
)

# Changing any of these moves the schedule itself
RECURRENCE_FIELDS = ("frequency", "day_of_month", "day_of_week", "start_date")


class RuleValidationError(ValueError):
    """Raised with every failing field mapped to a reason."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = errors
        super().__init__("; ".join(f"{field}: {reason}" for field, reason in errors.items()))


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    # Accept a full timestamp but keep anything else after the date an error
    text = str(value).split("T", 1)[0].split(" ", 1)[0]
    return date.fromisoformat(text)


def _parse_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("booleans are not integers")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value)
    raise ValueError(f"{value!r} is not an integer")


def _check_fields(values: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, str]]:
    """Validate a complete set of rule fields, collecting every error."""
    errors: Dict[str, str] = {}
    clean: Dict[str, Any] = {
        "counterparty_id": values.get("counterparty_id") or None,
        "engagement_id": values.get("engagement_id") or None,
    }

    kind = values.get("kind")
    if kind is None:
        errors["kind"] = "is required"
    else:
        try:
            clean["kind"] = EntryKind(kind)
        except ValueError:
            errors["kind"] = "must be one of: income, expense"

    for field in ("category", "description"):
        text = values.get(field)
        if text is None or not str(text).strip():
            errors[field] = "is required"
        else:
            clean[field] = str(text).strip()

    amount = values.get("amount")
    if amount is None or amount == "":
        errors["amount"] = "is required"
    else:
        try:
            parsed = Decimal(str(amount))
        except InvalidOperation:
            errors["amount"] = "must be a decimal number"
        else:
            if not parsed.is_finite():
                errors["amount"] = "must be a decimal number"
            elif parsed < 0:
                errors["amount"] = "must not be negative"
            else:
                clean["amount"] = parsed

    frequency = None
    if values.get("frequency") is None:
        errors["frequency"] = "is required"
    else:
        try:
            frequency = Frequency(values["frequency"])
            clean["frequency"] = frequency
        except ValueError:
            errors["frequency"] = "must be one of: " + ", ".join(f.value for f in Frequency)

    for field in ("start_date", "end_date"):
        raw = values.get(field)
        if raw is None or raw == "":
            if field == "start_date":
                errors[field] = "is required"
            else:
                clean[field] = None
            continue
        try:
            clean[field] = _parse_date(raw)
        except ValueError:
            errors[field] = "must be a date in YYYY-MM-DD format"

    if clean.get("start_date") and clean.get("end_date") and clean["end_date"] < clean["start_date"]:
        errors["end_date"] = "must not be before start_date"

    for field, low, high in (("day_of_month", 1, 31), ("day_of_week", 0, 6)):
        raw = values.get(field)
        if raw is None:
            clean[field] = None
            continue
        try:
            number = _parse_int(raw)
        except ValueError:
            errors[field] = "must be an integer"
            continue
        if not low <= number <= high:
            errors[field] = f"must be between {low} and {high}"
        else:
            clean[field] = number

    # Anchor pairing; the anchor the frequency does not use is dropped
    if frequency == Frequency.weekly:
        if clean.get("day_of_week") is None and "day_of_week" not in errors:
            errors["day_of_week"] = "is required for weekly frequency"
        clean["day_of_month"] = None
        errors.pop("day_of_month", None)
    elif frequency in DAY_OF_MONTH_FREQUENCIES:
        if clean.get("day_of_month") is None and "day_of_month" not in errors:
            errors["day_of_month"] = f"is required for {frequency.value} frequency"
        clean["day_of_week"] = None
        errors.pop("day_of_week", None)
    elif frequency == Frequency.daily:
        clean["day_of_month"] = None
        clean["day_of_week"] = None
        errors.pop("day_of_month", None)
        errors.pop("day_of_week", None)

    raw_limit = values.get("occurrence_limit")
    if raw_limit is None:
        clean["occurrence_limit"] = None
    else:
        try:
            limit = _parse_int(raw_limit)
        except ValueError:
            errors["occurrence_limit"] = "must be an integer"
        else:
            if limit < 0:
                errors["occurrence_limit"] = "must not be negative"
            else:
                clean["occurrence_limit"] = limit or None

    return clean, errors


def _pattern(clean: Dict[str, Any]) -> RecurrencePattern:
    return RecurrencePattern(
        frequency=clean["frequency"],
        start_date=clean["start_date"],
        day_of_month=clean["day_of_month"],
        day_of_week=clean["day_of_week"],
    )


def fresh_next_occurrence(clean: Dict[str, Any], today: date) -> date:
    """
    Next occurrence counted from the current date forward.

    A start date still in the future seeds normally; otherwise the first
    occurrence strictly after today, so an edit made on a due day cannot
    fire that day a second time.
    """
    pattern = _pattern(clean)
    if clean["start_date"] > today:
        return first_occurrence(pattern, clean["start_date"])
    return first_occurrence(pattern, today + timedelta(days=1))


def validate_new_rule(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate raw input for a new rule and return its normalized fields.

    The first occurrence is seeded from start_date and may equal it. Nothing
    is partially accepted: any failure raises RuleValidationError listing
    every bad field.
    """
    clean, errors = _check_fields(data)
    if errors:
        raise RuleValidationError(errors)

    seed = first_occurrence(_pattern(clean), clean["start_date"])
    reason = terminal_reason_for(seed, clean["end_date"], clean["occurrence_limit"], 0)

    clean["occurrences_fired"] = 0
    clean["next_occurrence"] = None if reason else seed
    clean["is_active"] = reason is None
    clean["terminal_reason"] = reason
    return clean


def validate_rule_edit(rule, changes: Dict[str, Any], today: date) -> Dict[str, Any]:
    """
    Validate a partial edit against the rule's current fields.

    Returns only the fields that change, including any recomputed
    next_occurrence / is_active / terminal_reason. occurrences_fired is
    never touched.
    """
    merged = {field: getattr(rule, field) for field in EDITABLE_FIELDS}
    merged.update({k: v for k, v in changes.items() if k in EDITABLE_FIELDS})

    clean, errors = _check_fields(merged)
    if errors:
        raise RuleValidationError(errors)

    updates = {
        field: clean[field]
        for field in EDITABLE_FIELDS
        if clean[field] != getattr(rule, field)
    }

    recurrence_changed = any(field in updates for field in RECURRENCE_FIELDS)
    requested_active: Optional[bool] = changes.get("is_active")
    reactivating = requested_active is True and not rule.is_active

    if requested_active is False or (not rule.is_active and not reactivating):
        if recurrence_changed and rule.next_occurrence is not None:
            candidate = fresh_next_occurrence(clean, today)
        else:
            candidate = rule.next_occurrence
        # Caps still apply while the rule is off
        reason = terminal_reason_for(
            candidate, clean["end_date"], clean["occurrence_limit"], rule.occurrences_fired
        )
        if reason is not None:
            candidate = None
        if rule.is_active:
            # Manual disable unless a cap was reached
            updates["is_active"] = False
            updates["terminal_reason"] = reason
        elif reason != rule.terminal_reason:
            updates["terminal_reason"] = reason
        if candidate != rule.next_occurrence:
            updates["next_occurrence"] = candidate
        return updates

    if recurrence_changed or reactivating:
        candidate = fresh_next_occurrence(clean, today)
    else:
        candidate = rule.next_occurrence

    reason = terminal_reason_for(
        candidate, clean["end_date"], clean["occurrence_limit"], rule.occurrences_fired
    )
    if reason is not None:
        if reactivating:
            raise RuleValidationError({
                "is_active": f"cannot activate: no occurrences remain ({reason.value})"
            })
        updates.update(next_occurrence=None, is_active=False, terminal_reason=reason)
        return updates

    if candidate != rule.next_occurrence:
        updates["next_occurrence"] = candidate
    if reactivating:
        updates.update(is_active=True, terminal_reason=None)
    return updates
