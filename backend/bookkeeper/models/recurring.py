"""
Recurring payment database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Date, Integer, Numeric, Text, Enum, Index
from sqlalchemy.orm import relationship
import enum
from bookkeeper.database import Base


class Frequency(str, enum.Enum):
    """Recurring frequency enumeration."""
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    quarterly = "quarterly"
    yearly = "yearly"


class EntryKind(str, enum.Enum):
    """Direction of the money flow."""
    income = "income"
    expense = "expense"


class TerminalReason(str, enum.Enum):
    """Why a rule stopped firing on its own."""
    exhausted = "exhausted"  # occurrence_limit reached
    expired = "expired"  # next occurrence would fall after end_date


class RecurrenceRule(Base):
    """Declarative definition of a repeating income or expense."""

    __tablename__ = "recurring_payments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String(36), nullable=False, index=True)

    kind = Column(Enum(EntryKind), nullable=False)
    category = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)

    # Opaque references to CRM records
    counterparty_id = Column(String(36), nullable=True)
    engagement_id = Column(String(36), nullable=True)

    frequency = Column(Enum(Frequency), nullable=False)
    day_of_month = Column(Integer, nullable=True)  # 1-31, monthly/quarterly/yearly
    day_of_week = Column(Integer, nullable=True)  # 0-6, Sunday=0, weekly
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    occurrence_limit = Column(Integer, nullable=True)  # NULL = unlimited

    occurrences_fired = Column(Integer, default=0, nullable=False)
    next_occurrence = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    terminal_reason = Column(Enum(TerminalReason), nullable=True)

    created_by = Column(String(36), nullable=True)
    updated_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    entries = relationship("LedgerEntry", back_populates="recurring_payment")

    __table_args__ = (
        Index("idx_recurring_due", "organization_id", "is_active", "next_occurrence"),
    )
