"""
Materializes due recurring payments into ledger entries.

Each rule is handled in its own transaction: the conditional rule update and
the new ledger entry commit together or not at all. A rule that missed
several cycles fires one occurrence per run and catches up over later runs.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from bookkeeper.config import settings
from bookkeeper.models.ledger import LedgerEntry, RECURRING_PAYMENT_SOURCE
from bookkeeper.models.recurring import RecurrenceRule
from bookkeeper.services.lifecycle import advance, is_due

logger = logging.getLogger(__name__)


class OccurrenceConflict(Exception):
    """Another writer changed the rule between our read and our write."""


@dataclass
class FiredOccurrence:
    rule_id: str
    entry_id: str
    occurrence_date: date


@dataclass
class RuleFailure:
    rule_id: str
    error: str


@dataclass
class ProcessingReport:
    """Outcome of one processing run."""

    organization_id: Optional[str]
    reference_date: date
    processed: int = 0
    skipped: int = 0
    failed: List[RuleFailure] = field(default_factory=list)
    entries: List[FiredOccurrence] = field(default_factory=list)

    def merge(self, other: "ProcessingReport") -> None:
        self.processed += other.processed
        self.skipped += other.skipped
        self.failed.extend(other.failed)
        self.entries.extend(other.entries)


def find_due_rule_ids(
    db: Session,
    organization_id: str,
    reference_date: date,
    limit: Optional[int] = None,
) -> List[str]:
    """IDs of active rules whose next occurrence is on or before the reference date."""
    query = db.query(RecurrenceRule.id).filter(
        RecurrenceRule.organization_id == organization_id,
        RecurrenceRule.is_active == True,
        RecurrenceRule.next_occurrence.isnot(None),
        RecurrenceRule.next_occurrence <= reference_date,
    ).order_by(RecurrenceRule.next_occurrence, RecurrenceRule.id)

    if limit:
        query = query.limit(limit)
    return [row.id for row in query.all()]


def fire_occurrence(
    db: Session,
    organization_id: str,
    rule_id: str,
    reference_date: date,
) -> Optional[LedgerEntry]:
    """
    Fire the rule's pending occurrence if it is still due.

    Returns the new entry, or None when a fresh read shows the rule is no
    longer due. Raises OccurrenceConflict when a concurrent writer got there
    first; nothing is persisted in that case.
    """
    rule = db.query(RecurrenceRule).populate_existing().filter(
        RecurrenceRule.id == rule_id,
        RecurrenceRule.organization_id == organization_id,
    ).first()
    if rule is None or not is_due(rule, reference_date):
        return None

    transition = advance(rule)

    # Only succeeds if nobody moved the rule since we read it
    updated = db.query(RecurrenceRule).filter(
        RecurrenceRule.id == rule.id,
        RecurrenceRule.is_active == True,
        RecurrenceRule.occurrences_fired == rule.occurrences_fired,
        RecurrenceRule.next_occurrence == transition.fired_date,
    ).update(
        {
            RecurrenceRule.occurrences_fired: transition.occurrences_fired,
            RecurrenceRule.next_occurrence: transition.next_occurrence,
            RecurrenceRule.is_active: transition.is_active,
            RecurrenceRule.terminal_reason: transition.terminal_reason,
            RecurrenceRule.updated_at: datetime.utcnow(),
        },
        synchronize_session=False,
    )
    if updated != 1:
        db.rollback()
        raise OccurrenceConflict(rule_id)

    entry = LedgerEntry(
        organization_id=rule.organization_id,
        recurring_payment_id=rule.id,
        kind=rule.kind,
        category=rule.category,
        description=rule.description,
        amount=rule.amount,
        counterparty_id=rule.counterparty_id,
        engagement_id=rule.engagement_id,
        occurrence_date=transition.fired_date,
        source=RECURRING_PAYMENT_SOURCE,
        created_by=rule.created_by,
    )
    db.add(entry)

    try:
        db.commit()
    except IntegrityError:
        # The (rule, occurrence_date) key already exists
        db.rollback()
        raise OccurrenceConflict(rule_id)

    if not transition.is_active:
        logger.info(
            "Recurring payment %s stopped after %d occurrences (%s)",
            rule_id, transition.occurrences_fired, transition.terminal_reason.value,
        )
    return entry


def process_due(
    db: Session,
    organization_id: str,
    reference_date: date,
    batch_size: Optional[int] = None,
) -> ProcessingReport:
    """
    Fire every due rule of one organization once.

    Conflicts count as skipped and are retried by the next run. Persistence
    failures are recorded per rule and do not stop the run.
    """
    report = ProcessingReport(organization_id=organization_id, reference_date=reference_date)
    limit = batch_size if batch_size is not None else settings.process_batch_size

    for rule_id in find_due_rule_ids(db, organization_id, reference_date, limit):
        try:
            entry = fire_occurrence(db, organization_id, rule_id, reference_date)
        except OccurrenceConflict:
            logger.info("Recurring payment %s was updated concurrently; skipping", rule_id)
            report.skipped += 1
            continue
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("Failed to process recurring payment %s", rule_id)
            report.failed.append(RuleFailure(rule_id=rule_id, error=str(e)))
            continue

        if entry is None:
            report.skipped += 1
            continue

        report.processed += 1
        report.entries.append(FiredOccurrence(
            rule_id=rule_id,
            entry_id=entry.id,
            occurrence_date=entry.occurrence_date,
        ))

    logger.info(
        "Processed recurring payments for organization %s as of %s: %d fired, %d skipped, %d failed",
        organization_id, reference_date, report.processed, report.skipped, len(report.failed),
    )
    return report


def process_all_due(
    db: Session,
    reference_date: date,
    batch_size: Optional[int] = None,
) -> ProcessingReport:
    """Run process_due for every organization that has due rules."""
    organization_ids = [
        row.organization_id
        for row in db.query(RecurrenceRule.organization_id).filter(
            RecurrenceRule.is_active == True,
            RecurrenceRule.next_occurrence.isnot(None),
            RecurrenceRule.next_occurrence <= reference_date,
        ).distinct().order_by(RecurrenceRule.organization_id).all()
    ]

    combined = ProcessingReport(organization_id=None, reference_date=reference_date)
    for organization_id in organization_ids:
        combined.merge(process_due(db, organization_id, reference_date, batch_size))
    return combined
