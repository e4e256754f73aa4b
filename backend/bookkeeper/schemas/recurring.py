"""Pydantic schemas for recurring payments."""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import date, datetime
from decimal import Decimal

from bookkeeper.models.recurring import EntryKind, Frequency, TerminalReason


class RecurringPaymentBase(BaseModel):
    kind: EntryKind
    category: str
    description: str
    amount: Decimal
    frequency: Frequency
    start_date: date
    end_date: Optional[date] = None
    day_of_month: Optional[int] = None
    day_of_week: Optional[int] = None
    occurrence_limit: Optional[int] = None
    counterparty_id: Optional[str] = None
    engagement_id: Optional[str] = None


class RecurringPaymentCreate(BaseModel):
    # Range and pairing checks live in the rule validator so every failing
    # field is reported together
    kind: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[Decimal] = None
    frequency: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    day_of_month: Optional[int] = None
    day_of_week: Optional[int] = None
    occurrence_limit: Optional[int] = None
    counterparty_id: Optional[str] = None
    engagement_id: Optional[str] = None


class RecurringPaymentUpdate(RecurringPaymentCreate):
    is_active: Optional[bool] = None


class RecurringPaymentResponse(RecurringPaymentBase):
    id: str
    organization_id: str
    occurrences_fired: int
    next_occurrence: Optional[date] = None
    is_active: bool
    terminal_reason: Optional[TerminalReason] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    # Computed fields added by API
    status: Optional[str] = None
    status_label: Optional[str] = None

    class Config:
        from_attributes = True


class RecurringPaymentPreview(BaseModel):
    id: str
    dates: List[date]


class ValidationErrorDetail(BaseModel):
    errors: Dict[str, str]


class ValidationErrorResponse(BaseModel):
    """Body of a 422: every failing field mapped to a reason."""
    detail: ValidationErrorDetail


class FiredOccurrenceResponse(BaseModel):
    rule_id: str
    entry_id: str
    occurrence_date: date

    class Config:
        from_attributes = True


class RuleFailureResponse(BaseModel):
    rule_id: str
    error: str

    class Config:
        from_attributes = True


class ProcessingReportResponse(BaseModel):
    """Result of a processing run."""
    organization_id: Optional[str] = None
    reference_date: date
    processed: int
    skipped: int
    failed: List[RuleFailureResponse] = []
    entries: List[FiredOccurrenceResponse] = []

    class Config:
        from_attributes = True


class CronProcessingResponse(BaseModel):
    """Response for the scheduler-facing trigger."""
    success: bool
    processed: int
    failed: int = 0
    errors: List[str] = Field(default_factory=list)
    timestamp: datetime
