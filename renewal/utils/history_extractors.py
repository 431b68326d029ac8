# Role: Degraded fallback "memory". Rebuilds a ConversationState from the message transcript when the
# caller did not round-trip a (valid) state blob. Lower fidelity by nature: only explicit signals count.

from __future__ import annotations

import re
from typing import Any, Dict, Optional, Sequence, Type

from pydantic import BaseModel, ValidationError

import renewal.config as config
from renewal.models.state import ConversationState, SelectedAddOn, SelectedQuote, SelectedRoadTax
from renewal.tools.insurance_catalog import find_quote_by_name
from renewal.utils.extractors import extract_vehicle_info
from renewal.utils.flow_guards import role_and_content

_QUESTION_CUE = re.compile(r"\?|tell me about|what about|how about|do i need|should i|explain|which one|recommend")
_INDECISION_CUE = re.compile(r"can'?t|cannot|couldn'?t|between .+ and|torn between|stuck between|not sure|help me (choose|decide)")
# "want" / "like" / "interested" are interest, not a selection.
_SELECTION_VERB = re.compile(r"\b(go with|choose|select|pick|i'll take|i will take|confirm)\b")


def _metadata(message: Any) -> Optional[Dict[str, Any]]:
    meta = message.get("metadata") if isinstance(message, dict) else getattr(message, "metadata", None)
    return meta if isinstance(meta, dict) and meta else None


def _validated(model: Type[BaseModel], raw: Any) -> Optional[BaseModel]:
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        if config.DEBUG:
            print("HISTORY metadata skipped:", model.__name__, e.error_count(), "error(s)")
        return None


def _apply_metadata(state: ConversationState, meta: Dict[str, Any]) -> None:
    # Each record is validated on its own; one bad record does not discard the others.
    if meta.get("selectedQuote"):
        quote = _validated(SelectedQuote, meta["selectedQuote"])
        if quote is not None:
            state.selected_quote = quote

    if meta.get("quoteGeneratedAt") and meta.get("quoteValidUntil"):
        window = _validated(
            ConversationState,
            {"quoteGeneratedAt": meta["quoteGeneratedAt"], "quoteValidUntil": meta["quoteValidUntil"]},
        )
        if window is not None:
            state.quote_generated_at = window.quote_generated_at
            state.quote_valid_until = window.quote_valid_until

    if isinstance(meta.get("selectedAddOns"), list):
        add_ons = [_validated(SelectedAddOn, a) for a in meta["selectedAddOns"]]
        state.selected_add_ons = [a for a in add_ons if a is not None]

    if meta.get("selectedRoadTax"):
        road_tax = _validated(SelectedRoadTax, meta["selectedRoadTax"])
        if road_tax is not None:
            state.selected_road_tax = road_tax


def _explicit_quote_selection(content: str) -> Optional[SelectedQuote]:
    text = (content or "").lower()
    if _QUESTION_CUE.search(text) or _INDECISION_CUE.search(text):
        return None
    if not _SELECTION_VERB.search(text):
        return None
    q = find_quote_by_name(text)
    if q is None:
        return None
    return SelectedQuote(insurer=q.insurer.name, price_after=q.final_premium, insurer_key=q.insurer.key)


def reconstruct_state(messages: Sequence[Any]) -> ConversationState:
    # 1) Identifiers: first plate / owner ID found in user messages wins
    # 2) Structured assistant metadata (selected quote, add-ons, road tax), later records overwrite
    # 3) No quote yet -> look for an explicit past selection ("go with Allianz"); last one wins
    # 4) Derive step from whatever was recovered
    state = ConversationState()

    for message in messages or []:
        role, content = role_and_content(message)
        if role != "user":
            continue
        found = extract_vehicle_info(content)
        if not state.plate_number and found["plate_number"]:
            state.plate_number = found["plate_number"]
        if not state.owner_id_value and found["owner_id"]:
            state.owner_id_value = found["owner_id"]
            state.owner_id_type = found["owner_id_type"]

    for message in messages or []:
        role, _ = role_and_content(message)
        meta = _metadata(message) if role == "assistant" else None
        if meta:
            _apply_metadata(state, meta)

    if state.selected_quote is None:
        for message in messages or []:
            role, content = role_and_content(message)
            if role != "user":
                continue
            selection = _explicit_quote_selection(content)
            if selection is not None:
                state.selected_quote = selection

    state._refresh_step()

    if config.DEBUG:
        print("HISTORY RECONSTRUCTION step:", state.step.value, "plate:", bool(state.plate_number))

    return state
