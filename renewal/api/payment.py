# Role: Demo payment endpoints. Creates payment records from the checkout page, exposes their status, and
# confirms them (stand-in for a gateway webhook). A confirmed payment id sent with /chat completes the flow.

from __future__ import annotations

import secrets
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from renewal.api.deps import get_payment_repository
from renewal.core.payment_store import Payment, PaymentMethodId, PaymentRepository, PaymentStatus

router = APIRouter(prefix="/payment", tags=["payment"])


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProcessRequest(_CamelModel):
    payment_id: Optional[str] = None
    total: float = Field(gt=0)
    insurer: str = Field(min_length=1)
    plate: str = Field(min_length=1)
    insurance: float = Field(ge=0)
    addons: float = Field(default=0, ge=0)
    roadtax: float = Field(default=0, ge=0)
    payment_method: PaymentMethodId
    session_id: Optional[str] = None


class ConfirmRequest(_CamelModel):
    transaction_ref: Optional[str] = None


class PaymentView(_CamelModel):
    payment_id: str
    status: PaymentStatus
    total: float
    insurer: str
    plate: str
    insurance: float
    addons: float
    roadtax: float
    payment_method: str
    transaction_ref: Optional[str] = None
    expires_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None


def _view(payment: Payment) -> PaymentView:
    return PaymentView.model_validate(payment.model_dump())


def _new_payment_id() -> str:
    return f"pay_{secrets.token_hex(8)}"


@router.post("/process", response_model=PaymentView, response_model_by_alias=True)
def process_payment(req: ProcessRequest, repo: PaymentRepository = Depends(get_payment_repository)) -> PaymentView:
    # 1) Drop stale records so long-running servers stay bounded
    # 2) Store a pending payment with a TTL
    repo.cleanup_expired()
    data = req.model_dump()
    data["payment_id"] = req.payment_id or _new_payment_id()
    return _view(repo.create(Payment(**data)))


@router.get("/status/{payment_id}", response_model=PaymentView, response_model_by_alias=True)
def payment_status(payment_id: str, repo: PaymentRepository = Depends(get_payment_repository)) -> PaymentView:
    payment = repo.get(payment_id)
    if payment is None:
        raise HTTPException(status_code=404, detail="Payment not found")
    return _view(payment)


@router.post("/confirm/{payment_id}", response_model=PaymentView, response_model_by_alias=True)
def confirm_payment(
    payment_id: str,
    req: Optional[ConfirmRequest] = None,
    repo: PaymentRepository = Depends(get_payment_repository),
) -> PaymentView:
    # 1) Unknown id -> 404; expired -> 409
    # 2) Already confirmed is idempotent (same record back)
    payment = repo.get(payment_id)
    if payment is None:
        raise HTTPException(status_code=404, detail="Payment not found")
    if payment.status == PaymentStatus.CONFIRMED:
        return _view(payment)
    if payment.status == PaymentStatus.EXPIRED:
        raise HTTPException(status_code=409, detail="Payment has expired")

    confirmed = repo.confirm(payment_id, req.transaction_ref if req else None)
    return _view(confirmed)
