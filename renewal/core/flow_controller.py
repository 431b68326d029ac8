# renewal/core/flow_controller.py
# Role: Orchestrator for one conversation turn. It glues together:
# state rebuild, payment completion, intent classification, transitions, validation, fragment routing,
# the model call, trust checks, and the serialized state handed back to the caller.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Sequence, Tuple

import renewal.config as config
from renewal.core.decision_logic import DecisionLogic
from renewal.core.intent_classifier import IntentClassifier
from renewal.core.payment_store import InMemoryPaymentRepository, PaymentRepository, PaymentStatus
from renewal.core.transitions import apply_intent
from renewal.core.trust_layer import TrustLayer
from renewal.core.validator import Validator
from renewal.llm.gemini_client import GeminiError
from renewal.llm.response_generator import ResponseGenerator
from renewal.models.intent import ClassifiedIntent
from renewal.models.state import ConversationState
from renewal.prompts.system_prompt import build_system_prompt
from renewal.tools.insurance_catalog import get_vehicle_profile
from renewal.utils.flow_guards import role_and_content
from renewal.utils.history_extractors import reconstruct_state

LLM_UNAVAILABLE = "llm_unavailable"

RETRY_MESSAGE = "Sorry, I'm having trouble responding right now. Please send your message again in a moment."


class TurnInputError(ValueError):
    """The request cannot form a turn (no messages, or the latest one is not from the user)."""


@dataclass(frozen=True)
class TurnResponse:
    assistant_message: str
    state: Dict[str, Any]
    intent: ClassifiedIntent
    error: Optional[str] = None


class FlowController:
    def __init__(
        self,
        intent_classifier: Optional[IntentClassifier] = None,
        validator: Optional[Validator] = None,
        decision_logic: Optional[DecisionLogic] = None,
        response_generator: Optional[ResponseGenerator] = None,
        trust_layer: Optional[TrustLayer] = None,
        payments: Optional[PaymentRepository] = None,
    ) -> None:
        # Key line: dependencies are injectable for testing/mocking.
        self.intent_classifier = intent_classifier or IntentClassifier()
        self.validator = validator or Validator()
        self.decision_logic = decision_logic or DecisionLogic()
        self.response_generator = response_generator or ResponseGenerator()
        self.trust_layer = trust_layer or TrustLayer()
        self.payments = payments or InMemoryPaymentRepository()

    def build_state(self, messages: Sequence[Any], client_state: Any = None) -> Tuple[ConversationState, str]:
        # Role: round-tripped state first; anything missing or invalid degrades to history reconstruction.
        state = ConversationState.from_client(client_state)
        if state is not None:
            return state, "client"
        return reconstruct_state(list(messages)[:-1]), "history"

    def _apply_confirmed_payment(self, state: ConversationState, payment_id: Optional[str]) -> bool:
        if not payment_id or state.payment_method:
            return False
        payment = self.payments.get(payment_id)
        if payment is None or payment.status != PaymentStatus.CONFIRMED:
            return False
        state.set_payment_method(payment.payment_method)
        return True

    def handle_turn(
        self,
        messages: Sequence[Any],
        client_state: Any = None,
        payment_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> TurnResponse:
        # 1) Rebuild state (client blob -> history fallback) and apply a confirmed payment
        # 2) Classify the latest user message against that state
        # 3) Apply the intent (mutations happen here, before the model is called)
        # 4) Vehicle profile once both identifiers are known
        # 5) Validate -> decide fragments
        # 6) Model call; on collaborator failure keep the mutated state and return a retryable error
        # 7) TrustLayer (tool-code leaks, step indicator) and return

        messages = list(messages or [])
        if not messages:
            raise TurnInputError("messages must be non-empty")
        role, user_message = role_and_content(messages[-1])
        if role != "user":
            raise TurnInputError("the latest message must come from the user")
        history = messages[:-1]

        state, source = self.build_state(messages, client_state)
        step_before = state.step
        paid = self._apply_confirmed_payment(state, payment_id)

        classified = self.intent_classifier.classify(user_message, state)
        outcome = apply_intent(state, classified, user_message, history, now)

        vehicle_profile = None
        if state.has_complete_vehicle_identification():
            vehicle_profile = get_vehicle_profile(state.plate_number, state.owner_id_value)
            state.vehicle_info = vehicle_profile

        validation = self.validator.validate(classified.intent, state, now)
        decision = self.decision_logic.decide(
            classified,
            outcome,
            validation,
            user_message,
            state,
            history=history,
            vehicle_profile=vehicle_profile,
        )

        if config.DEBUG:
            print("\n--- FLOW DEBUG ---")
            print("STATE SOURCE:", source)
            print("PAYMENT APPLIED:", paid)
            print("INTENT:", classified.intent.value, "confidence:", classified.confidence)
            print("STEP:", step_before.value, "->", state.step.value)
            print("PENDING ACTION:", state.pending_action.type if state.pending_action else None)
            print("VALIDATION missing_info:", validation.missing_info, "problems:", validation.problems)
            print("DECISION notes:", decision.note)
            print("FRAGMENTS:", len(decision.fragments), "summary injected:", decision.summary_injected)
            print("------------------\n")

        try:
            assistant_text = self.response_generator.generate(
                system_prompt=build_system_prompt(state, vehicle_profile, now),
                fragments=decision.fragments,
                messages=messages,
                owner_id_type=state.owner_id_type,
            )
        except GeminiError as e:
            if config.DEBUG:
                print("\n!!! LLM ERROR !!!")
                print(repr(e))
                print("!!! END ERROR !!!\n")
            return self._unavailable(state, classified)

        trust = self.trust_layer.apply(
            intent=classified.intent,
            assistant_text=assistant_text,
            state=state,
            history=history,
        )
        if config.DEBUG:
            if trust.flagged:
                print("[TRUST_LAYER] flagged:", trust.reasons)
            print("FINAL (after trust):", trust.text)

        if not trust.text:
            return self._unavailable(state, classified)

        return TurnResponse(assistant_message=trust.text, state=state.to_client(), intent=classified)

    def _unavailable(self, state: ConversationState, classified: ClassifiedIntent) -> TurnResponse:
        # Key line: no rollback; the turn's mutations came from local classification, not from the model.
        return TurnResponse(
            assistant_message=RETRY_MESSAGE,
            state=state.to_client(),
            intent=classified,
            error=LLM_UNAVAILABLE,
        )


def intent_payload(classified: ClassifiedIntent) -> Dict[str, Any]:
    return {"intent": classified.intent.value, "confidence": classified.confidence, "data": dict(classified.data)}
