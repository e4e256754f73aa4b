"""Service for creating, editing and reading recurring payments within an organization."""

import uuid
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from bookkeeper.models.ledger import LedgerEntry
from bookkeeper.models.recurring import RecurrenceRule
from bookkeeper.services.rule_validator import validate_new_rule, validate_rule_edit


class RuleNotFoundError(LookupError):
    """No recurring payment with that id in the organization."""


def get_rules(
    db: Session,
    organization_id: str,
    include_inactive: bool = True
) -> List[RecurrenceRule]:
    """Get an organization's recurring payments, newest first."""
    query = db.query(RecurrenceRule).filter(RecurrenceRule.organization_id == organization_id)

    if not include_inactive:
        query = query.filter(RecurrenceRule.is_active == True)

    return query.order_by(RecurrenceRule.created_at.desc(), RecurrenceRule.id).all()


def get_rule(db: Session, organization_id: str, rule_id: str) -> RecurrenceRule:
    rule = db.query(RecurrenceRule).filter(
        RecurrenceRule.id == rule_id,
        RecurrenceRule.organization_id == organization_id
    ).first()
    if not rule:
        raise RuleNotFoundError(f"Recurring payment {rule_id} not found")
    return rule


def create_rule(
    db: Session,
    organization_id: str,
    data: Dict[str, Any],
    user_id: Optional[str] = None
) -> RecurrenceRule:
    """Validate and persist a new recurring payment."""
    fields = validate_new_rule(data)

    rule = RecurrenceRule(
        id=str(uuid.uuid4()),
        organization_id=organization_id,
        created_by=user_id,
        updated_by=user_id,
        **fields
    )
    db.add(rule)
    db.commit()
    db.refresh(rule)
    return rule


def update_rule(
    db: Session,
    organization_id: str,
    rule_id: str,
    changes: Dict[str, Any],
    today: date,
    user_id: Optional[str] = None
) -> RecurrenceRule:
    """
    Apply a partial edit.

    Schedule changes recompute next_occurrence from ``today`` forward.
    """
    rule = get_rule(db, organization_id, rule_id)
    updates = validate_rule_edit(rule, changes, today)

    for field, value in updates.items():
        setattr(rule, field, value)
    if user_id:
        rule.updated_by = user_id

    db.commit()
    db.refresh(rule)
    return rule


def delete_rule(db: Session, organization_id: str, rule_id: str) -> None:
    """Delete a recurring payment. Entries it produced are kept but unlinked."""
    rule = get_rule(db, organization_id, rule_id)

    db.query(LedgerEntry).filter(
        LedgerEntry.recurring_payment_id == rule.id
    ).update(
        {LedgerEntry.recurring_payment_id: None},
        synchronize_session=False
    )

    db.delete(rule)
    db.commit()


def get_rule_entries(db: Session, organization_id: str, rule_id: str) -> List[LedgerEntry]:
    """Ledger entries produced by a recurring payment, newest first."""
    rule = get_rule(db, organization_id, rule_id)
    return db.query(LedgerEntry).filter(
        LedgerEntry.recurring_payment_id == rule.id
    ).order_by(LedgerEntry.occurrence_date.desc()).all()

