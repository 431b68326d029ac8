# Role: Applies one classified intent to the conversation state. This is the only place the orchestrator
# mutates state from user input; the outcome flags tell DecisionLogic what happened (blocked, refreshed, ...).

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional, Sequence

import renewal.config as config
from renewal.models.intent import ClassifiedIntent, Intent
from renewal.models.state import (
    ConversationState,
    FlowStep,
    PendingAction,
    PersonalDetails,
    SelectedAddOn,
    SelectedQuote,
    SelectedRoadTax,
)
from renewal.tools.insurance_catalog import get_add_on, get_quote, get_road_tax
from renewal.utils.extractors import extract_personal_info, extract_vehicle_info
from renewal.utils.flow_guards import (
    can_use_delivered_road_tax,
    is_vehicle_details_rejection,
    last_assistant_message,
    parse_recommended_insurer,
    was_last_assistant_vehicle_confirmation,
)

# Minimum confidence for the destructive reset behind a pending quote change.
CHANGE_CONFIRMATION_THRESHOLD = 0.85

_IDENTITY_EDIT_STEPS = {FlowStep.START, FlowStep.VEHICLE_LOOKUP, FlowStep.QUOTES}
_DETAIL_STEPS = {FlowStep.PERSONAL_DETAILS, FlowStep.OTP}


@dataclass(frozen=True)
class TransitionOutcome:
    road_tax_blocked: bool = False
    blocked_option: Optional[str] = None
    quote_refreshed: bool = False
    recommended_insurer_applied: Optional[str] = None
    cancelled_pending: bool = False
    switch_target: Optional[str] = None
    change_confirmed: bool = False
    vehicle_rejected: bool = False
    identity_updated: bool = False


def quote_for_key(insurer_key: Optional[str]) -> Optional[SelectedQuote]:
    q = get_quote(insurer_key) if insurer_key else None
    if q is None:
        return None
    return SelectedQuote(insurer=q.insurer.name, price_after=q.final_premium, insurer_key=q.insurer.key)


def add_ons_for_ids(add_on_ids: Sequence[str]) -> List[SelectedAddOn]:
    add_ons: List[SelectedAddOn] = []
    for add_on_id in add_on_ids or []:
        a = get_add_on(add_on_id)
        if a is not None:
            add_ons.append(SelectedAddOn(id=a.id, name=a.name, price=a.price))
    return add_ons


def road_tax_for_id(option_id: Optional[str]) -> Optional[SelectedRoadTax]:
    o = get_road_tax(option_id) if option_id else None
    if o is None:
        return None
    return SelectedRoadTax(id=o.id, name=o.name, price=o.total_price, delivered=o.delivered)


def apply_intent(
    state: ConversationState,
    classified: ClassifiedIntent,
    message: str,
    history: Sequence[Any] = (),
    now: Optional[datetime] = None,
) -> TransitionOutcome:
    """
    Mutate state for one user turn. `history` is every message before the latest user message.

    Order matters: selections first, then the pending-action gate (set / confirm / cancel / expire),
    then personal-detail flags, identifiers, recommendation acceptance and quote refresh.
    """
    intent = classified.intent
    flags = {}

    # 1) Selections
    if intent == Intent.SELECT_QUOTE:
        quote = quote_for_key(classified.get("insurer"))
        if quote is not None:
            state.select_quote(quote, now)

    if intent == Intent.SELECT_ADDON:
        add_ons = add_ons_for_ids(classified.get("add_ons", []))
        if classified.get("confirmed"):
            state.select_add_ons(add_ons)
        else:
            state.pre_select_add_ons(add_ons)
    elif intent == Intent.ASK_QUESTION and classified.get("add_ons") and not classified.get("confirmed"):
        # Mentioned in passing: remember it, but never advance past the add-on gate.
        state.pre_select_add_ons(add_ons_for_ids(classified.get("add_ons")))

    if intent == Intent.SELECT_ROADTAX:
        road_tax = road_tax_for_id(classified.get("option"))
        if road_tax is not None:
            if road_tax.delivered and not can_use_delivered_road_tax(state.owner_id_type):
                flags["road_tax_blocked"] = True
                flags["blocked_option"] = road_tax.id
            else:
                state.select_road_tax(road_tax)

    if intent == Intent.VERIFY_OTP and classified.get("valid"):
        state.verify_otp()

    # 2) Pending quote change: set, confirm, cancel, or let it lapse
    if intent == Intent.CHANGE_QUOTE:
        target = classified.get("new_insurer")
        state.set_pending_action(PendingAction(new_insurer=target))
        flags["switch_target"] = target

    if intent == Intent.CONFIRM_CHANGE_QUOTE:
        pending = state.pending_action
        # Key line: no matching pending action -> no-op. A stray "yes" must never wipe progress.
        if (
            pending is not None
            and pending.type == "confirm_quote_change"
            and classified.confidence >= CHANGE_CONFIRMATION_THRESHOLD
        ):
            flags["switch_target"] = pending.new_insurer
            state.reset_to_quotes()
            flags["change_confirmed"] = True

    if classified.get("cancel_pending_action"):
        flags["cancelled_pending"] = state.pending_action is not None
        state.set_pending_action(None)

    if state.pending_action is not None and intent not in {Intent.CHANGE_QUOTE, Intent.CONFIRM_CHANGE_QUOTE}:
        state.set_pending_action(None)

    # 3) Personal detail presence flags (values stay in the transcript)
    if intent == Intent.SUBMIT_DETAILS and state.step in _DETAIL_STEPS:
        found = extract_personal_info(message)
        existing = state.personal_details or PersonalDetails()
        merged = existing.merged(
            email=bool(found["email"]),
            phone=bool(found["phone"]),
            address=bool(found["address"]),
        )
        state.set_personal_details(merged if merged.has_any else None)

    # 4) Vehicle identifiers
    vehicle = extract_vehicle_info(message)
    can_edit_identity = state.selected_quote is None and state.step in _IDENTITY_EDIT_STEPS
    if can_edit_identity and intent == Intent.PROVIDE_INFO:
        before = (state.plate_number, state.owner_id_value)
        state.set_vehicle_identification(
            plate_number=vehicle["plate_number"],
            owner_id_value=vehicle["owner_id"],
            owner_id_type=vehicle["owner_id_type"],
        )
        flags["identity_updated"] = before != (state.plate_number, state.owner_id_value)
    elif not state.has_complete_vehicle_identification():
        before = (state.plate_number, state.owner_id_value)
        state.set_vehicle_identification(
            plate_number=None if state.plate_number else vehicle["plate_number"],
            owner_id_value=None if state.owner_id_value else vehicle["owner_id"],
            owner_id_type=None if state.owner_id_value else vehicle["owner_id_type"],
        )
        flags["identity_updated"] = before != (state.plate_number, state.owner_id_value)

    # 5) Vehicle rejection (only right after the vehicle card was shown)
    if (
        state.has_complete_vehicle_identification()
        and state.selected_quote is None
        and is_vehicle_details_rejection(message)
        and was_last_assistant_vehicle_confirmation(history)
    ):
        flags["vehicle_rejected"] = True

    # 6) Bare "ok" at quotes accepts a single explicit recommendation from the previous assistant turn
    if intent == Intent.CONFIRM and state.step == FlowStep.QUOTES and state.selected_quote is None:
        recommended = parse_recommended_insurer(last_assistant_message(history))
        quote = quote_for_key(recommended)
        if quote is not None:
            state.select_quote(quote, now)
            flags["recommended_insurer_applied"] = recommended

    # 7) Expired quote: same prices, new validity window
    if intent in {Intent.VERIFY_OTP, Intent.SELECT_PAYMENT} and state.is_quote_expired(now):
        state.refresh_quote_timestamps(now)
        flags["quote_refreshed"] = True

    outcome = TransitionOutcome(**flags)

    if config.DEBUG:
        print("TRANSITION intent:", intent.value, "step:", state.step.value, "outcome:", outcome)

    return outcome
