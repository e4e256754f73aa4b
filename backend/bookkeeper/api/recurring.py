"""API endpoints for recurring payment management."""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from bookkeeper.dependencies import get_db, get_organization_id, get_today, get_user_id
from bookkeeper.models.recurring import RecurrenceRule
from bookkeeper.schemas.ledger import LedgerEntryResponse
from bookkeeper.schemas.recurring import (
    RecurringPaymentCreate,
    RecurringPaymentPreview,
    RecurringPaymentResponse,
    RecurringPaymentUpdate,
    ProcessingReportResponse,
    ValidationErrorResponse,
)
from bookkeeper.services import processor, recurring_service, status_view
from bookkeeper.services.lifecycle import classify
from bookkeeper.services.recurring_service import RuleNotFoundError

router = APIRouter(prefix="/recurring-payments", tags=["recurring-payments"])


def _to_response(rule: RecurrenceRule, reference_date: date) -> RecurringPaymentResponse:
    response = RecurringPaymentResponse.model_validate(rule)
    response.status = classify(rule, reference_date).value
    response.status_label = status_view.status_label(rule, reference_date)
    return response


def _get_or_404(db: Session, organization_id: str, rule_id: str) -> RecurrenceRule:
    try:
        return recurring_service.get_rule(db, organization_id, rule_id)
    except RuleNotFoundError:
        raise HTTPException(status_code=404, detail="Recurring payment not found")


@router.get("", response_model=List[RecurringPaymentResponse])
def list_recurring_payments(
    include_inactive: bool = Query(True),
    organization_id: str = Depends(get_organization_id),
    today: date = Depends(get_today),
    db: Session = Depends(get_db)
):
    """Get all recurring payments for the organization."""
    rules = recurring_service.get_rules(db, organization_id, include_inactive)
    return [_to_response(rule, today) for rule in rules]


@router.post("", response_model=RecurringPaymentResponse, responses={422: {"model": ValidationErrorResponse}})
def create_recurring_payment(
    data: RecurringPaymentCreate,
    organization_id: str = Depends(get_organization_id),
    user_id: Optional[str] = Depends(get_user_id),
    today: date = Depends(get_today),
    db: Session = Depends(get_db)
):
    """Create a recurring payment. Validation errors come back as a field map."""
    rule = recurring_service.create_rule(
        db,
        organization_id,
        data.model_dump(exclude_unset=True),
        user_id=user_id,
    )
    return _to_response(rule, today)


@router.post("/process", response_model=ProcessingReportResponse)
def process_recurring_payments(
    organization_id: str = Depends(get_organization_id),
    today: date = Depends(get_today),
    db: Session = Depends(get_db)
):
    """Manually fire the organization's due recurring payments."""
    report = processor.process_due(db, organization_id, today)
    return ProcessingReportResponse.model_validate(report)


@router.get("/{rule_id}", response_model=RecurringPaymentResponse)
def get_recurring_payment(
    rule_id: str,
    organization_id: str = Depends(get_organization_id),
    today: date = Depends(get_today),
    db: Session = Depends(get_db)
):
    """Get a single recurring payment."""
    rule = _get_or_404(db, organization_id, rule_id)
    return _to_response(rule, today)


@router.patch(
    "/{rule_id}",
    response_model=RecurringPaymentResponse,
    responses={422: {"model": ValidationErrorResponse}},
)
def update_recurring_payment(
    rule_id: str,
    update: RecurringPaymentUpdate,
    organization_id: str = Depends(get_organization_id),
    user_id: Optional[str] = Depends(get_user_id),
    today: date = Depends(get_today),
    db: Session = Depends(get_db)
):
    """Update a recurring payment. Schedule changes recompute the next occurrence from today."""
    try:
        rule = recurring_service.update_rule(
            db,
            organization_id,
            rule_id,
            update.model_dump(exclude_unset=True),
            today,
            user_id=user_id,
        )
    except RuleNotFoundError:
        raise HTTPException(status_code=404, detail="Recurring payment not found")
    return _to_response(rule, today)


@router.delete("/{rule_id}")
def delete_recurring_payment(
    rule_id: str,
    organization_id: str = Depends(get_organization_id),
    db: Session = Depends(get_db)
):
    """Delete a recurring payment (unlinks its ledger entries but doesn't delete them)."""
    try:
        recurring_service.delete_rule(db, organization_id, rule_id)
    except RuleNotFoundError:
        raise HTTPException(status_code=404, detail="Recurring payment not found")
    return {"deleted": True}


@router.get("/{rule_id}/preview", response_model=RecurringPaymentPreview)
def preview_recurring_payment(
    rule_id: str,
    count: int = Query(5, ge=1, le=100),
    organization_id: str = Depends(get_organization_id),
    db: Session = Depends(get_db)
):
    """Upcoming occurrence dates. Nothing is saved."""
    rule = _get_or_404(db, organization_id, rule_id)
    return RecurringPaymentPreview(id=rule.id, dates=status_view.preview(rule, count))


@router.get("/{rule_id}/entries", response_model=List[LedgerEntryResponse])
def get_recurring_payment_entries(
    rule_id: str,
    organization_id: str = Depends(get_organization_id),
    db: Session = Depends(get_db)
):
    """Ledger entries produced by a recurring payment."""
    try:
        entries = recurring_service.get_rule_entries(db, organization_id, rule_id)
    except RuleNotFoundError:
        raise HTTPException(status_code=404, detail="Recurring payment not found")
    return [LedgerEntryResponse.model_validate(entry) for entry in entries]
