"""
Unit tests for the in-memory payment repository: TTL expiry on read, confirmation and retention cleanup.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from renewal.core.payment_store import InMemoryPaymentRepository, Payment, PaymentStatus


def _payment(payment_id="pay_1", **overrides):
    data = dict(
        payment_id=payment_id,
        total=986,
        insurer="Takaful Ikhlas",
        plate="JRT9289",
        insurance=796,
        addons=100,
        roadtax=90,
        payment_method="card",
    )
    data.update(overrides)
    return Payment(**data)


@pytest.fixture
def repo():
    return InMemoryPaymentRepository()


class TestCreate:
    def test_pending_with_ttl(self, repo, now):
        created = repo.create(_payment(), ttl_minutes=30, now=now)
        assert created.status == PaymentStatus.PENDING
        assert created.expires_at == now + timedelta(minutes=30)
        assert created.transaction_ref.startswith("TXN-")

    def test_default_ttl_from_env(self, repo, now, monkeypatch):
        monkeypatch.setenv("PAYMENT_TTL_MINUTES", "5")
        created = repo.create(_payment(), now=now)
        assert created.expires_at == now + timedelta(minutes=5)

    def test_rejects_non_positive_total(self):
        with pytest.raises(ValueError):
            _payment(total=0)


class TestExpiry:
    def test_pending_expires_on_read(self, repo, now):
        repo.create(_payment(), ttl_minutes=30, now=now)
        assert repo.get("pay_1", now + timedelta(minutes=10)).status == PaymentStatus.PENDING
        assert repo.get("pay_1", now + timedelta(minutes=31)).status == PaymentStatus.EXPIRED

    def test_confirmed_never_expires(self, repo, now):
        repo.create(_payment(), ttl_minutes=30, now=now)
        repo.confirm("pay_1", now=now + timedelta(minutes=1))
        assert repo.get("pay_1", now + timedelta(hours=2)).status == PaymentStatus.CONFIRMED

    def test_unknown_id(self, repo):
        assert repo.get("missing") is None
        assert repo.confirm("missing") is None


class TestConfirm:
    def test_sets_timestamps_and_ref(self, repo, now):
        repo.create(_payment(), ttl_minutes=30, now=now)
        later = now + timedelta(minutes=2)
        confirmed = repo.confirm("pay_1", transaction_ref="GW-42", now=later)
        assert confirmed.status == PaymentStatus.CONFIRMED
        assert confirmed.confirmed_at == later
        assert confirmed.updated_at == later
        assert confirmed.transaction_ref == "GW-42"

    def test_keeps_generated_ref_when_none_given(self, repo, now):
        created = repo.create(_payment(), ttl_minutes=30, now=now)
        assert repo.confirm("pay_1", now=now).transaction_ref == created.transaction_ref


class TestCleanup:
    def test_drops_records_past_retention(self, repo, now):
        repo.create(_payment("old"), ttl_minutes=30, now=now - timedelta(hours=25))
        repo.create(_payment("fresh"), ttl_minutes=30, now=now)
        assert repo.cleanup_expired(now) == 1
        assert repo.get("old", now) is None
        assert repo.get("fresh", now) is not None
