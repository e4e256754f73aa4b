"""
Ledger entry database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Date, Numeric, Text, Enum, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from bookkeeper.database import Base
from bookkeeper.models.recurring import EntryKind

RECURRING_PAYMENT_SOURCE = "recurring_payment"


class LedgerEntry(Base):
    """One realized occurrence of a recurring payment. Never updated after insert."""

    __tablename__ = "ledger_entries"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String(36), nullable=False, index=True)
    recurring_payment_id = Column(
        String(36), ForeignKey("recurring_payments.id", ondelete="SET NULL"), nullable=True
    )

    # Copied from the rule at fire time
    kind = Column(Enum(EntryKind), nullable=False)
    category = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    counterparty_id = Column(String(36), nullable=True)
    engagement_id = Column(String(36), nullable=True)

    occurrence_date = Column(Date, nullable=False)
    source = Column(String(32), default=RECURRING_PAYMENT_SOURCE, nullable=False)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    recurring_payment = relationship("RecurrenceRule", back_populates="entries")

    __table_args__ = (
        UniqueConstraint("recurring_payment_id", "occurrence_date", name="uq_entry_rule_occurrence"),
        Index("idx_entry_org_date", "organization_id", "occurrence_date"),
    )
