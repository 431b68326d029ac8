"""
FlowController turn tests. The model collaborator is a MagicMock, so every turn is deterministic and offline.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from renewal.core.flow_controller import LLM_UNAVAILABLE, RETRY_MESSAGE, FlowController, TurnInputError
from renewal.core.payment_store import InMemoryPaymentRepository, Payment
from renewal.llm.gemini_client import GeminiError
from renewal.models.intent import Intent
from renewal.models.state import FlowStep, OwnerIdType


def _controller(reply="Sure thing.", payments=None):
    generator = MagicMock()
    generator.generate.return_value = reply
    return FlowController(response_generator=generator, payments=payments), generator


def _user(text):
    return {"role": "user", "content": text}


def _payment(payment_id="pay_1"):
    return Payment(
        payment_id=payment_id,
        total=986,
        insurer="Takaful Ikhlas",
        plate="JRT9289",
        insurance=796,
        addons=100,
        roadtax=90,
        payment_method="fpx",
    )


class TestTurn:
    def test_identification_turn(self):
        flow, generator = _controller()
        result = flow.handle_turn([_user("JRT 9289, IC 900101-14-5678")])

        assert result.error is None
        assert result.intent.intent == Intent.PROVIDE_INFO
        assert result.state["step"] == "quotes"
        assert result.state["vehicleInfo"]["make"] == "Perodua"
        assert "Sure thing." in result.assistant_message

        kwargs = generator.generate.call_args.kwargs
        assert any("Found your vehicle!" in f for f in kwargs["fragments"])
        assert kwargs["owner_id_type"] == OwnerIdType.NRIC
        assert kwargs["messages"][-1]["content"] == "JRT 9289, IC 900101-14-5678"
        assert "JRT9289" in kwargs["system_prompt"]

    def test_nric_with_mobile_like_prefix_reaches_quotes(self):
        flow, _ = _controller()
        result = flow.handle_turn([_user("wxy 123 601015145405")])
        assert result.state["plateNumber"] == "WXY123"
        assert result.state["ownerIdValue"] == "601015145405"
        assert result.state["step"] == "quotes"

    def test_unreachable_client_state_falls_back_to_history(self):
        flow, _ = _controller()
        blob = {"selectedQuote": {"insurer": "Etiqa", "priceAfter": 872}, "addOnsConfirmed": True}
        result = flow.handle_turn([_user("12 month digital")], client_state=blob)
        assert result.state["step"] == "start"
        assert result.state["selectedRoadTax"] is None

    def test_client_state_is_used(self, state_at):
        flow, _ = _controller()
        blob = state_at(FlowStep.ADDONS).to_client()
        result = flow.handle_turn([_user("skip")], client_state=blob)
        assert result.intent.intent == Intent.SELECT_ADDON
        assert result.state["step"] == "roadtax"
        assert result.state["addOnsConfirmed"] is True

    def test_invalid_client_state_falls_back_to_history(self):
        flow, _ = _controller()
        messages = [
            _user("JRT 9289, IC 900101-14-5678"),
            {"role": "assistant", "content": "Which insurer would you like?"},
            _user("go with etiqa"),
        ]
        result = flow.handle_turn(messages, client_state="garbage")
        assert result.intent.intent == Intent.SELECT_QUOTE
        assert result.state["selectedQuote"]["insurer"] == "Etiqa Insurance"
        assert result.state["step"] == "addons"

    def test_step_line_inserted_when_model_omits_it(self, state_at):
        flow, _ = _controller("Great choice!")
        result = flow.handle_turn([_user("allianz")], client_state=state_at(FlowStep.QUOTES).to_client())
        assert result.assistant_message.startswith("*Step 3 of 5 — Add-ons*")


class TestErrors:
    def test_llm_failure_keeps_mutated_state(self, state_at):
        flow, generator = _controller()
        generator.generate.side_effect = GeminiError("boom")
        result = flow.handle_turn([_user("takaful")], client_state=state_at(FlowStep.QUOTES).to_client())
        assert result.error == LLM_UNAVAILABLE
        assert result.assistant_message == RETRY_MESSAGE
        assert result.state["step"] == "addons"

    def test_reply_empty_after_cleanup_is_retryable(self):
        flow, _ = _controller("```tool_code\nget_insurance_quotes()\n```")
        result = flow.handle_turn([_user("what is ncd?")])
        assert result.error == LLM_UNAVAILABLE

    def test_empty_messages(self):
        flow, _ = _controller()
        with pytest.raises(TurnInputError):
            flow.handle_turn([])

    def test_last_message_must_be_from_user(self):
        flow, _ = _controller()
        with pytest.raises(TurnInputError):
            flow.handle_turn([_user("hi"), {"role": "assistant", "content": "hello"}])


class TestPaymentCompletion:
    def test_confirmed_payment_completes_flow(self, state_at):
        payments = InMemoryPaymentRepository()
        payments.create(_payment())
        payments.confirm("pay_1")
        flow, generator = _controller(payments=payments)

        result = flow.handle_turn([_user("done")], client_state=state_at(FlowStep.PAYMENT).to_client(), payment_id="pay_1")
        assert result.state["step"] == "success"
        assert result.state["paymentMethod"] == "fpx"
        assert any("Payment is complete" in f for f in generator.generate.call_args.kwargs["fragments"])

    def test_pending_payment_is_not_applied(self, state_at):
        payments = InMemoryPaymentRepository()
        payments.create(_payment())
        flow, _ = _controller(payments=payments)

        result = flow.handle_turn([_user("done")], client_state=state_at(FlowStep.PAYMENT).to_client(), payment_id="pay_1")
        assert result.state["step"] == "payment"

    def test_unknown_payment_id(self, state_at):
        flow, _ = _controller(payments=InMemoryPaymentRepository())
        result = flow.handle_turn([_user("done")], client_state=state_at(FlowStep.PAYMENT).to_client(), payment_id="nope")
        assert result.state["paymentMethod"] is None
