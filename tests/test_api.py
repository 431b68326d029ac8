"""
HTTP layer tests via FastAPI's TestClient. The model collaborator is mocked through dependency overrides.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import get_type_hints
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from renewal.api.deps import get_flow_controller, get_payment_repository
from renewal.core.flow_controller import FlowController
from renewal.core.payment_store import InMemoryPaymentRepository, Payment, PaymentRepository
from renewal.llm.gemini_client import GeminiError
from renewal.main import app
from renewal.models.state import FlowStep
from renewal.utils.step_line import STEP_ROAD_TAX

PAYMENT_BODY = {
    "total": 986,
    "insurer": "Takaful Ikhlas",
    "plate": "JRT9289",
    "insurance": 796,
    "addons": 100,
    "roadtax": 90,
    "paymentMethod": "fpx",
}


@pytest.fixture
def generator():
    mock = MagicMock()
    mock.generate.return_value = "Here you go."
    return mock


@pytest.fixture
def payments():
    return InMemoryPaymentRepository()


@pytest.fixture
def client(generator, payments):
    flow = FlowController(response_generator=generator, payments=payments)
    app.dependency_overrides[get_flow_controller] = lambda: flow
    app.dependency_overrides[get_payment_repository] = lambda: payments
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestMeta:
    def test_root_and_health(self, client):
        assert client.get("/").json()["health"] == "/health"
        assert client.get("/health").json() == {"status": "ok"}

    def test_payment_dependency_is_the_repository_interface(self):
        assert get_type_hints(get_payment_repository)["return"] is PaymentRepository
        assert isinstance(get_payment_repository(), PaymentRepository)


class TestChat:
    def test_turn(self, client):
        resp = client.post("/chat", json={"messages": [{"role": "user", "content": "JRT 9289, IC 900101-14-5678"}]})
        assert resp.status_code == 200
        body = resp.json()
        assert "Here you go." in body["assistant_message"]
        assert body["state"]["step"] == "quotes"
        assert body["intent"]["intent"] == "provide_info"
        assert body["error"] is None

    def test_state_round_trip(self, client, state_at):
        blob = state_at(FlowStep.ADDONS).to_client()
        resp = client.post("/chat", json={"messages": [{"role": "user", "content": "skip"}], "state": blob})
        assert resp.json()["state"]["step"] == "roadtax"

    def test_empty_messages(self, client):
        assert client.post("/chat", json={"messages": []}).status_code == 400

    def test_last_message_not_from_user(self, client):
        messages = [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}]
        assert client.post("/chat", json={"messages": messages}).status_code == 400

    def test_malformed_body(self, client):
        assert client.post("/chat", json={"messages": [{"role": "robot", "content": "hi"}]}).status_code == 422

    def test_llm_failure_is_a_chat_message(self, client, generator):
        generator.generate.side_effect = GeminiError("down")
        resp = client.post("/chat", json={"messages": [{"role": "user", "content": "hello"}]})
        assert resp.status_code == 200
        assert resp.json()["error"] == "llm_unavailable"


class TestStateSnapshot:
    def test_client_state(self, client, state_at):
        resp = client.post("/state", json={"state": state_at(FlowStep.ROADTAX).to_client()})
        body = resp.json()
        assert body["source"] == "client"
        assert body["state"]["step"] == "roadtax"
        assert body["missing_identification"] == []
        assert body["missing_details"] == ["email", "phone", "address"]
        assert body["order_total"] == 896
        assert body["step_line"] == STEP_ROAD_TAX

    def test_history_fallback(self, client):
        messages = [{"role": "user", "content": "My car is JRT 9289"}]
        body = client.post("/state", json={"messages": messages}).json()
        assert body["source"] == "history"
        assert body["state"]["step"] == "vehicle_lookup"
        assert body["missing_identification"] == ["owner_id"]


class TestPayments:
    def test_process_and_status(self, client):
        created = client.post("/payment/process", json=PAYMENT_BODY).json()
        assert created["status"] == "pending"
        assert created["paymentId"].startswith("pay_")
        assert created["transactionRef"].startswith("TXN-")

        status = client.get(f"/payment/status/{created['paymentId']}")
        assert status.status_code == 200
        assert status.json()["total"] == 986

    def test_invalid_method(self, client):
        body = dict(PAYMENT_BODY, paymentMethod="cash")
        assert client.post("/payment/process", json=body).status_code == 422

    def test_unknown_ids(self, client):
        assert client.get("/payment/status/nope").status_code == 404
        assert client.post("/payment/confirm/nope").status_code == 404

    def test_confirm_is_idempotent(self, client):
        payment_id = client.post("/payment/process", json=PAYMENT_BODY).json()["paymentId"]
        first = client.post(f"/payment/confirm/{payment_id}", json={"transactionRef": "GW-1"}).json()
        assert first["status"] == "confirmed"
        assert first["transactionRef"] == "GW-1"
        assert first["confirmedAt"] is not None

        again = client.post(f"/payment/confirm/{payment_id}").json()
        assert again["transactionRef"] == "GW-1"

    def test_expired_payment_cannot_be_confirmed(self, client, payments):
        long_ago = datetime.now(timezone.utc) - timedelta(hours=2)
        payments.create(Payment.model_validate(dict(PAYMENT_BODY, paymentId="old")), ttl_minutes=30, now=long_ago)
        assert client.get("/payment/status/old").json()["status"] == "expired"
        assert client.post("/payment/confirm/old").status_code == 409

    def test_confirmed_payment_completes_chat(self, client, state_at):
        payment_id = client.post("/payment/process", json=PAYMENT_BODY).json()["paymentId"]
        client.post(f"/payment/confirm/{payment_id}")

        resp = client.post(
            "/chat",
            json={
                "messages": [{"role": "user", "content": "paid"}],
                "state": state_at(FlowStep.PAYMENT).to_client(),
                "payment_id": payment_id,
            },
        )
        assert resp.json()["state"]["step"] == "success"
