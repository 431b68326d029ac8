# Role: Routing brain. Given (classified intent + transition outcome + validation + state), decide which
# deterministic instruction fragments the model receives this turn, and when the summary box is mandatory.

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Sequence

import renewal.config as config
from renewal.core.transitions import TransitionOutcome
from renewal.core.validator import ValidationResult
from renewal.models.decision import Decision
from renewal.models.intent import ClassifiedIntent, Intent
from renewal.models.state import ConversationState, FlowStep
from renewal.prompts import flow_instructions as fi
from renewal.utils.flow_guards import was_last_assistant_vehicle_confirmation

_RECOMMENDATION_ASK = re.compile(
    r"recommend|which (one|should)|which is better|what(?:'s| is) better|better one|best one"
    r"|what.*(suggest|think|pick)|help me (choose|decide|pick)|your (pick|choice|suggestion)"
)
_DILEMMA_CUE = re.compile(
    r"can'?t (choose|decide|pick|select)|torn between|stuck between|not sure which|help me (choose|decide|pick)"
    r"|between .+ and"
)
_WHICH_ADD_ONS = re.compile(r"which (do i|one|should)|what (do i|should)|need|recommend")
_BUDGET_SIGNAL = re.compile(r"cheap|cheapest|save|saving|budget|broke|lower|lowest|value")

_DETAIL_KEYS = ("email", "phone", "address")

# Intents whose reply is about something else; the summary box would only be noise there.
_NO_SUMMARY_INTENTS = {Intent.ASK_QUESTION, Intent.UNCLEAR_OR_PLAYFUL, Intent.OTHER, Intent.CHANGE_QUOTE}

_SUMMARY_MARKER = "**Your Selection**"


class DecisionLogic:
    def decide(
        self,
        classified: ClassifiedIntent,
        outcome: TransitionOutcome,
        validation: ValidationResult,
        user_message: str,
        state: ConversationState,
        history: Sequence[Any] = (),
        vehicle_profile: Optional[Dict[str, Any]] = None,
    ) -> Decision:
        # 1) Vehicle gate: nothing priced until plate + owner ID are known
        # 2) Vehicle card / rejection / quotes presentation
        # 3) Intent-specific fragments (selection transitions, questions, recovery)
        # 4) Persistent summary box once an insurer is chosen

        intent = classified.intent
        msg = (user_message or "").strip().lower()
        fragments: List[str] = []
        notes: List[str] = []

        if not state.has_complete_vehicle_identification():
            missing = state.get_missing_identification()
            if intent == Intent.ASK_QUESTION:
                fragments.append(fi.question_before_identification())
                notes.append("question before identification")
            elif intent == Intent.UNCLEAR_OR_PLAYFUL and state.step == FlowStep.START:
                fragments.append(fi.playful_start())
                notes.append("playful start")
            else:
                fragments.append(fi.identification_gate(missing))
                notes.append(f"identification gate: {missing}")
            return self._finish(Decision(fragments=fragments, missing_info=missing, notes=notes))

        # Key line: a fresh (or corrected) plate + ID always gets the vehicle card, even over a rejection.
        if intent == Intent.PROVIDE_INFO and vehicle_profile and state.selected_quote is None:
            fragments.append(fi.vehicle_found(vehicle_profile))
            notes.append("vehicle card")
        elif outcome.vehicle_rejected and vehicle_profile:
            fragments.append(fi.vehicle_rejected(vehicle_profile))
            notes.append("vehicle rejected")

        if intent == Intent.CONFIRM and outcome.recommended_insurer_applied:
            fragments.append(fi.quote_selected(state, accepted_recommendation=True))
            notes.append(f"recommendation accepted: {outcome.recommended_insurer_applied}")
        elif intent == Intent.CONFIRM and state.step == FlowStep.QUOTES and state.selected_quote is None:
            if was_last_assistant_vehicle_confirmation(history):
                fragments.append(fi.quotes_presentation())
                notes.append("vehicle confirmed -> quotes")
            else:
                fragments.append(fi.recommendation_missing())
                notes.append("confirm without a single recommendation")

        if intent == Intent.ASK_QUESTION:
            fragments.append(self._question_fragment(classified, msg, state))

        if intent == Intent.SELECT_QUOTE and state.selected_quote is not None:
            fragments.append(fi.quote_selected(state))
            notes.append("quote selected")

        if intent == Intent.SELECT_ADDON:
            if state.selected_quote is None:
                fragments.append(fi.add_ons_need_quote())
                notes.append("add-ons before insurer")
            elif state.add_ons_confirmed:
                fragments.append(fi.add_ons_confirmed(state))
                notes.append("add-ons confirmed")
            else:
                fragments.append(fi.add_ons_question(state))
                notes.append("add-ons pre-selected")

        if intent == Intent.SELECT_ROADTAX:
            if outcome.road_tax_blocked:
                fragments.append(fi.road_tax_blocked(state, outcome.blocked_option))
                notes.append(f"delivered road tax blocked: {outcome.blocked_option}")
            elif state.selected_road_tax is not None:
                fragments.append(fi.road_tax_selected(state))
                notes.append("road tax selected")

        if intent == Intent.SUBMIT_DETAILS and state.step in {FlowStep.PERSONAL_DETAILS, FlowStep.OTP}:
            missing_details = [k for k in validation.missing_info if k in _DETAIL_KEYS]
            fragments.append(fi.details_progress(missing_details))
            notes.append(f"details missing: {missing_details}")

        if intent == Intent.VERIFY_OTP:
            fragments.append(fi.quote_refreshed(state) if outcome.quote_refreshed else fi.otp_verified(state))
            notes.append("otp -> payment link")

        if intent == Intent.SELECT_PAYMENT and state.otp_verified:
            fragments.append(fi.quote_refreshed(state) if outcome.quote_refreshed else fi.ready_to_pay(state))
            notes.append("payment link")

        if intent == Intent.CHANGE_QUOTE:
            fragments.append(fi.change_confirmation(state, outcome.switch_target))
            notes.append(f"confirm switch to {outcome.switch_target}")

        if intent == Intent.CONFIRM_CHANGE_QUOTE and outcome.change_confirmed:
            fragments.append(fi.change_applied(outcome.switch_target))
            notes.append("switch confirmed -> reset to quotes")

        if intent == Intent.UNCLEAR_OR_PLAYFUL:
            fragments.append(self._playful_fragment(msg, state))

        if intent == Intent.OTHER:
            fragment = self._unclear_fragment(outcome, state)
            if fragment:
                fragments.append(fragment)

        if state.step == FlowStep.SUCCESS:
            fragments.append(fi.payment_complete(state))
            notes.append("payment complete")

        summary_injected = False
        if (
            state.selected_quote is not None
            and state.step != FlowStep.QUOTES
            and intent not in _NO_SUMMARY_INTENTS
            and not any(_SUMMARY_MARKER in f for f in fragments)
        ):
            fragments.append(fi.persistent_summary(state))
            summary_injected = True

        return self._finish(
            Decision(
                fragments=fragments,
                missing_info=validation.missing_info,
                notes=notes,
                summary_injected=summary_injected,
            )
        )

    def _question_fragment(self, classified: ClassifiedIntent, msg: str, state: ConversationState) -> str:
        if state.step == FlowStep.QUOTES and state.selected_quote is None:
            if _RECOMMENDATION_ASK.search(msg):
                return fi.quotes_recommendation()
            if classified.get("dilemma") or _DILEMMA_CUE.search(msg):
                return fi.quotes_dilemma()
            return fi.quotes_question()

        if state.step == FlowStep.ADDONS:
            if _WHICH_ADD_ONS.search(msg):
                return fi.add_ons_explainer()
            return fi.add_ons_question(state)

        if state.step == FlowStep.ROADTAX:
            return fi.road_tax_question(state)

        return fi.general_question()

    def _playful_fragment(self, msg: str, state: ConversationState) -> str:
        if state.step == FlowStep.QUOTES and state.selected_quote is None:
            return fi.playful_quotes(budget_signal=bool(_BUDGET_SIGNAL.search(msg)))
        if state.step == FlowStep.ADDONS:
            return fi.playful_add_ons()
        if state.step == FlowStep.ROADTAX:
            return fi.playful_road_tax()
        if state.step == FlowStep.PERSONAL_DETAILS:
            details = state.personal_details
            return fi.playful_details(details.missing() if details is not None else [])
        return fi.playful_generic()

    def _unclear_fragment(self, outcome: TransitionOutcome, state: ConversationState) -> Optional[str]:
        if outcome.cancelled_pending:
            return fi.change_cancelled()
        if state.step == FlowStep.QUOTES and state.selected_quote is None and not outcome.vehicle_rejected:
            return fi.unclear_quotes()
        if state.step == FlowStep.ADDONS:
            return fi.unclear_add_ons()
        if state.step == FlowStep.ROADTAX:
            return fi.unclear_road_tax(state)
        return None

    def _finish(self, decision: Decision) -> Decision:
        if config.DEBUG:
            print("DECISION fragments:", len(decision.fragments), "notes:", decision.note)
        return decision
