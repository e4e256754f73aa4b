"""Tests for due-item processing."""

import random
import pytest
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from bookkeeper.models.ledger import LedgerEntry, RECURRING_PAYMENT_SOURCE
from bookkeeper.models.recurring import RecurrenceRule, TerminalReason
from bookkeeper.services import processor
from bookkeeper.services.lifecycle import RuleState, classify
from bookkeeper.services.processor import find_due_rule_ids, process_all_due, process_due

from conftest import ORG_ID, OTHER_ORG_ID, USER_ID


def entries_for(db_session, rule):
    return db_session.query(LedgerEntry).filter(
        LedgerEntry.recurring_payment_id == rule.id
    ).order_by(LedgerEntry.occurrence_date).all()


class TestFindDueRules:
    """Test candidate selection."""

    def test_boundary_is_inclusive(self, db_session, sample_rule):
        assert find_due_rule_ids(db_session, ORG_ID, date(2025, 1, 14)) == []
        assert find_due_rule_ids(db_session, ORG_ID, date(2025, 1, 15)) == [sample_rule.id]

    def test_scoped_to_organization(self, db_session, make_rule):
        make_rule(organization_id=OTHER_ORG_ID)
        assert find_due_rule_ids(db_session, ORG_ID, date(2025, 2, 1)) == []

    def test_skips_inactive(self, db_session, sample_rule):
        sample_rule.is_active = False
        db_session.commit()
        assert find_due_rule_ids(db_session, ORG_ID, date(2025, 2, 1)) == []

    def test_limit(self, db_session, make_rule):
        for _ in range(3):
            make_rule()
        assert len(find_due_rule_ids(db_session, ORG_ID, date(2025, 2, 1), limit=2)) == 2


class TestProcessDue:
    """Test firing due rules."""

    def test_example_scenario(self, db_session, make_rule):
        """Monthly on the 15th, limit 2: fires Jan 15 and Feb 15 then stops."""
        rule = make_rule(occurrence_limit=2)
        assert rule.next_occurrence == date(2025, 1, 15)

        report = process_due(db_session, ORG_ID, date(2025, 1, 15))
        assert report.processed == 1
        db_session.refresh(rule)
        assert rule.occurrences_fired == 1
        assert rule.next_occurrence == date(2025, 2, 15)
        assert rule.is_active is True

        process_due(db_session, ORG_ID, date(2025, 2, 15))
        db_session.refresh(rule)
        assert rule.occurrences_fired == 2
        assert rule.is_active is False
        assert rule.next_occurrence is None
        assert rule.terminal_reason == TerminalReason.exhausted

    def test_entry_copies_rule_fields(self, db_session, make_rule):
        rule = make_rule(kind="income", counterparty_id="cust-1", engagement_id="int-1")
        report = process_due(db_session, ORG_ID, date(2025, 1, 20))

        entry = db_session.get(LedgerEntry, report.entries[0].entry_id)
        assert entry.recurring_payment_id == rule.id
        assert entry.organization_id == ORG_ID
        assert entry.kind.value == "income"
        assert entry.amount == Decimal("99.99")
        assert entry.category == "Software"
        assert entry.counterparty_id == "cust-1"
        assert entry.engagement_id == "int-1"
        assert entry.source == RECURRING_PAYMENT_SOURCE
        assert entry.created_by == USER_ID

    def test_occurrence_date_is_scheduled_date_not_reference(self, db_session, sample_rule):
        report = process_due(db_session, ORG_ID, date(2025, 1, 28))
        assert report.entries[0].occurrence_date == date(2025, 1, 15)

    def test_limit_three_produces_three_entries(self, db_session, make_rule):
        rule = make_rule(occurrence_limit=3)
        for month in range(1, 8):
            process_due(db_session, ORG_ID, date(2025, month, 28))

        db_session.refresh(rule)
        assert len(entries_for(db_session, rule)) == 3
        assert rule.occurrences_fired == 3
        assert rule.is_active is False
        assert rule.next_occurrence is None
        assert classify(rule, date(2025, 8, 1)) == RuleState.exhausted

    def test_end_date_expires_before_limit(self, db_session, make_rule):
        rule = make_rule(occurrence_limit=10, end_date=date(2025, 3, 1))
        for month in range(1, 7):
            process_due(db_session, ORG_ID, date(2025, month, 28))

        db_session.refresh(rule)
        assert [e.occurrence_date for e in entries_for(db_session, rule)] == [
            date(2025, 1, 15), date(2025, 2, 15)
        ]
        assert rule.occurrences_fired == 2
        assert classify(rule, date(2025, 6, 30)) == RuleState.expired

    def test_back_to_back_calls_fire_once(self, db_session, sample_rule):
        first = process_due(db_session, ORG_ID, date(2025, 1, 20))
        second = process_due(db_session, ORG_ID, date(2025, 1, 20))
        assert first.processed == 1
        assert second.processed == 0
        assert len(entries_for(db_session, sample_rule)) == 1

    def test_catch_up_is_one_step_per_run(self, db_session, sample_rule):
        """A rule three cycles behind fires one missed date per invocation."""
        reference = date(2025, 3, 20)
        fired = []
        for _ in range(5):
            report = process_due(db_session, ORG_ID, reference)
            fired.extend(e.occurrence_date for e in report.entries)
            assert report.processed <= 1

        assert fired == [date(2025, 1, 15), date(2025, 2, 15), date(2025, 3, 15)]
        db_session.refresh(sample_rule)
        assert sample_rule.next_occurrence == date(2025, 4, 15)

    def test_weekly_fires_on_start_then_every_seven_days(self, db_session, make_rule):
        rule = make_rule(frequency="weekly", day_of_month=None, day_of_week=5)
        day = date(2025, 1, 10)
        while day <= date(2025, 2, 10):
            process_due(db_session, ORG_ID, day)
            day += timedelta(days=1)

        dates = [e.occurrence_date for e in entries_for(db_session, rule)]
        assert dates[0] == date(2025, 1, 10)
        assert all(b - a == timedelta(days=7) for a, b in zip(dates, dates[1:]))
        assert len(dates) == 5

    def test_lost_race_aborts_without_side_effects(self, db_session, sample_rule, monkeypatch):
        """Another writer bumping the counter between read and write wins."""
        original_advance = processor.advance

        def advance_with_interference(rule):
            transition = original_advance(rule)
            db_session.execute(
                text("UPDATE recurring_payments SET occurrences_fired = occurrences_fired + 1 WHERE id = :id"),
                {"id": rule.id},
            )
            return transition

        monkeypatch.setattr(processor, "advance", advance_with_interference)
        report = process_due(db_session, ORG_ID, date(2025, 1, 20))

        assert report.processed == 0
        assert report.skipped == 1
        assert entries_for(db_session, sample_rule) == []

    def test_existing_entry_for_occurrence_is_a_conflict(self, db_session, sample_rule):
        """The unique occurrence key stops a second entry for the same date."""
        db_session.add(LedgerEntry(
            organization_id=ORG_ID,
            recurring_payment_id=sample_rule.id,
            kind=sample_rule.kind,
            category=sample_rule.category,
            description=sample_rule.description,
            amount=sample_rule.amount,
            occurrence_date=date(2025, 1, 15),
        ))
        db_session.commit()

        report = process_due(db_session, ORG_ID, date(2025, 1, 20))
        assert report.skipped == 1
        db_session.refresh(sample_rule)
        assert sample_rule.occurrences_fired == 0
        assert sample_rule.next_occurrence == date(2025, 1, 15)

    def test_persistence_failure_is_isolated(self, db_session, make_rule, monkeypatch):
        """A failing commit leaves that rule untouched and the run continues."""
        failing = make_rule(start_date=date(2025, 1, 1), day_of_month=5)
        healthy = make_rule()

        original_commit = db_session.commit
        calls = {"count": 0}

        def flaky_commit():
            calls["count"] += 1
            if calls["count"] == 1:
                raise OperationalError("COMMIT", {}, Exception("database is locked"))
            return original_commit()

        monkeypatch.setattr(db_session, "commit", flaky_commit)
        report = process_due(db_session, ORG_ID, date(2025, 1, 20))
        monkeypatch.undo()

        assert report.processed == 1
        assert [f.rule_id for f in report.failed] == [failing.id]
        assert report.entries[0].rule_id == healthy.id

        db_session.refresh(failing)
        assert failing.occurrences_fired == 0
        assert failing.next_occurrence == date(2025, 1, 5)
        assert entries_for(db_session, failing) == []

    def test_batch_size_bounds_work(self, db_session, make_rule):
        for _ in range(3):
            make_rule()
        report = process_due(db_session, ORG_ID, date(2025, 1, 20), batch_size=2)
        assert report.processed == 2
        report = process_due(db_session, ORG_ID, date(2025, 1, 20), batch_size=2)
        assert report.processed == 1

    def test_randomized_histories_keep_counter_equal_to_entries(self, db_session, make_rule):
        """Repeated, overlapping and out-of-order runs never double or under count."""
        rng = random.Random(20250115)
        rules = [
            make_rule(),
            make_rule(frequency="daily", day_of_month=None, occurrence_limit=9),
            make_rule(frequency="weekly", day_of_month=None, day_of_week=2, end_date=date(2025, 4, 1)),
            make_rule(day_of_month=31, occurrence_limit=4),
            make_rule(frequency="quarterly", day_of_month=30),
        ]

        reference = date(2025, 1, 1)
        for _ in range(120):
            step = rng.choice([0, 0, 1, 3, 9])
            reference += timedelta(days=step)
            jitter = reference - timedelta(days=rng.choice([0, 0, 5]))
            process_due(db_session, ORG_ID, jitter)

        for rule in rules:
            db_session.refresh(rule)
            entries = entries_for(db_session, rule)
            dates = [e.occurrence_date for e in entries]
            assert rule.occurrences_fired == len(entries)
            assert dates == sorted(set(dates))
            if rule.occurrence_limit:
                assert len(entries) <= rule.occurrence_limit
            if rule.end_date:
                assert all(d <= rule.end_date for d in dates)


class TestProcessAllDue:
    """Test the cross-organization run."""

    def test_processes_every_organization(self, db_session, make_rule):
        make_rule()
        make_rule(organization_id=OTHER_ORG_ID)
        report = process_all_due(db_session, date(2025, 1, 20))
        assert report.organization_id is None
        assert report.processed == 2
        assert {
            rule.organization_id for rule in db_session.query(RecurrenceRule).all()
        } == {ORG_ID, OTHER_ORG_ID}
        assert db_session.query(LedgerEntry).count() == 2

    def test_nothing_due(self, db_session, sample_rule):
        report = process_all_due(db_session, date(2025, 1, 1))
        assert report.processed == 0
        assert report.failed == []
