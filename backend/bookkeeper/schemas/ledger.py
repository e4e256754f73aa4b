"""Pydantic schemas for ledger entries."""

from pydantic import BaseModel
from typing import Optional
from datetime import date, datetime
from decimal import Decimal

from bookkeeper.models.recurring import EntryKind


class LedgerEntryResponse(BaseModel):
    id: str
    organization_id: str
    recurring_payment_id: Optional[str] = None
    kind: EntryKind
    category: str
    description: str
    amount: Decimal
    counterparty_id: Optional[str] = None
    engagement_id: Optional[str] = None
    occurrence_date: date
    source: str
    created_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
