"""
Pydantic schemas package.
"""

from bookkeeper.schemas.recurring import (
    RecurringPaymentBase,
    RecurringPaymentCreate,
    RecurringPaymentUpdate,
    RecurringPaymentResponse,
    RecurringPaymentPreview,
    ValidationErrorResponse,
    ProcessingReportResponse,
    CronProcessingResponse,
)
from bookkeeper.schemas.ledger import LedgerEntryResponse

__all__ = [
    "RecurringPaymentBase",
    "RecurringPaymentCreate",
    "RecurringPaymentUpdate",
    "RecurringPaymentResponse",
    "RecurringPaymentPreview",
    "ValidationErrorResponse",
    "ProcessingReportResponse",
    "CronProcessingResponse",
    "LedgerEntryResponse",
]
