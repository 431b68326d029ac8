# Role: Payment records behind a small repository interface (put / get / expire). The in-memory implementation
# owns TTL expiry and 24h cleanup; a persistent key-value backend can replace it without touching the flow.

from __future__ import annotations

import secrets
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

import renewal.config as config

PaymentMethodId = Literal["card", "fpx", "ewallet", "cc-instalment", "bnpl"]

RETENTION = timedelta(hours=24)


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    EXPIRED = "expired"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_transaction_ref(now: Optional[datetime] = None) -> str:
    stamp = int((now or _utcnow()).timestamp() * 1000)
    return f"TXN-{stamp}-{secrets.token_hex(3).upper()}"


class Payment(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    payment_id: str = Field(min_length=1)
    total: float = Field(gt=0)
    insurer: str = Field(min_length=1)
    plate: str = Field(min_length=1)
    insurance: float = Field(ge=0)
    addons: float = Field(ge=0)
    roadtax: float = Field(ge=0)
    payment_method: PaymentMethodId
    session_id: Optional[str] = None

    status: PaymentStatus = PaymentStatus.PENDING
    created_at: datetime = Field(default_factory=_utcnow)
    expires_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    transaction_ref: Optional[str] = None


class PaymentRepository(ABC):
    @abstractmethod
    def put(self, payment: Payment) -> Payment:
        ...

    @abstractmethod
    def get(self, payment_id: str, now: Optional[datetime] = None) -> Optional[Payment]:
        ...

    @abstractmethod
    def expire(self, now: Optional[datetime] = None) -> int:
        """Drop records past retention; returns how many were removed."""

    # Shared behaviour built on the three primitives above.

    def create(self, payment: Payment, ttl_minutes: Optional[int] = None, now: Optional[datetime] = None) -> Payment:
        created = now or _utcnow()
        ttl = timedelta(minutes=ttl_minutes if ttl_minutes is not None else config.payment_ttl_minutes())
        record = payment.model_copy(
            update={
                "status": PaymentStatus.PENDING,
                "created_at": created,
                "expires_at": created + ttl,
                "transaction_ref": payment.transaction_ref or new_transaction_ref(created),
            }
        )
        return self.put(record)

    def update_status(
        self,
        payment_id: str,
        status: PaymentStatus,
        now: Optional[datetime] = None,
        **changes,
    ) -> Optional[Payment]:
        payment = self.get(payment_id, now)
        if payment is None:
            return None
        stamp = now or _utcnow()
        update = {**changes, "status": status, "updated_at": stamp}
        if status == PaymentStatus.CONFIRMED:
            update["confirmed_at"] = stamp
        return self.put(payment.model_copy(update=update))

    def confirm(
        self, payment_id: str, transaction_ref: Optional[str] = None, now: Optional[datetime] = None
    ) -> Optional[Payment]:
        changes = {"transaction_ref": transaction_ref} if transaction_ref else {}
        return self.update_status(payment_id, PaymentStatus.CONFIRMED, now, **changes)

    def cleanup_expired(self, now: Optional[datetime] = None) -> int:
        return self.expire(now)


class InMemoryPaymentRepository(PaymentRepository):
    def __init__(self) -> None:
        self._payments: Dict[str, Payment] = {}

    def put(self, payment: Payment) -> Payment:
        self._payments[payment.payment_id] = payment
        return payment

    def get(self, payment_id: str, now: Optional[datetime] = None) -> Optional[Payment]:
        # Key line: a pending payment past its TTL is marked expired on read.
        payment = self._payments.get(payment_id)
        if payment is None:
            return None
        if (
            payment.status == PaymentStatus.PENDING
            and payment.expires_at is not None
            and (now or _utcnow()) > payment.expires_at
        ):
            payment = payment.model_copy(update={"status": PaymentStatus.EXPIRED})
            self._payments[payment_id] = payment
            if config.DEBUG:
                print("PAYMENT expired:", payment_id)
        return payment

    def expire(self, now: Optional[datetime] = None) -> int:
        # Role: drop records older than the retention window (bounded memory on long-running servers).
        current = now or _utcnow()
        to_delete = [pid for pid, p in self._payments.items() if (current - p.created_at) > RETENTION]
        for pid in to_delete:
            del self._payments[pid]
        return len(to_delete)
