# Role: "Step N of 5" progress indicator helpers. Decides which indicator a reply should carry
# (only at stage transitions) and inserts it when the model left it out.

from __future__ import annotations

import re
from typing import Any, Optional, Sequence

from renewal.models.intent import Intent
from renewal.models.state import ConversationState, FlowStep
from renewal.utils.flow_guards import role_and_content

STEP_VEHICLE = "*Step 1 of 5 — Vehicle Info*"
STEP_INSURER = "*Step 2 of 5 — Choose Insurer*"
STEP_ADD_ONS = "*Step 3 of 5 — Add-ons*"
STEP_ROAD_TAX = "*Step 4 of 5 — Road Tax*"
STEP_DETAILS = "*Step 5 of 5 — Your Details*"

_HAS_STEP_LINE = re.compile(r"^\s*(?:\*{1,2})?\s*step\s+\d+\s+of\s+5\s*[—–-]", re.IGNORECASE | re.MULTILINE)
_CAPTURE_STEP_LINE = re.compile(
    r"^\s*(?:\*{1,2})?\s*(step\s+\d+\s+of\s+5\s*[—–-]\s*[^\n*]+)\s*(?:\*{1,2})?",
    re.IGNORECASE | re.MULTILINE,
)

_STAGE_LINES = {
    FlowStep.ADDONS: STEP_ADD_ONS,
    FlowStep.ROADTAX: STEP_ROAD_TAX,
    FlowStep.PERSONAL_DETAILS: STEP_DETAILS,
}


def normalize_step_line(line: Optional[str]) -> Optional[str]:
    if not line:
        return None
    text = line.lower().replace("*", "")
    text = re.sub(r"[–—]", "-", text)
    return re.sub(r"\s+", " ", text).strip()


def extract_step_line(text: Optional[str]) -> Optional[str]:
    m = _CAPTURE_STEP_LINE.search(text or "")
    return m.group(1).strip() if m else None


def has_step_line(text: Optional[str]) -> bool:
    return bool(_HAS_STEP_LINE.search(text or ""))


def ensure_step_line(response: str, step_line: Optional[str]) -> str:
    if not step_line or not response or has_step_line(response):
        return response
    return f"{step_line}\n\n{response}"


def current_stage_step_line(state: ConversationState) -> Optional[str]:
    if not state.has_complete_vehicle_identification():
        return STEP_VEHICLE
    if state.step == FlowStep.QUOTES and state.selected_quote is None:
        return STEP_INSURER
    return _STAGE_LINES.get(state.step)


def last_shown_step_line(history: Sequence[Any]) -> Optional[str]:
    for message in reversed(list(history or [])):
        role, content = role_and_content(message)
        if role != "assistant":
            continue
        line = extract_step_line(content)
        if line:
            return line
    return None


def expected_step_line(intent: Intent, state: ConversationState, history: Sequence[Any]) -> Optional[str]:
    # 1) Explicit transition triggers win
    # 2) Otherwise: first render, or the stage changed since the last indicator shown
    # 3) Never repeat the indicator the user already saw
    last_line = normalize_step_line(last_shown_step_line(history))

    candidate: Optional[str] = None
    if intent == Intent.SELECT_QUOTE and state.selected_quote is not None:
        candidate = STEP_ADD_ONS
    elif intent == Intent.SELECT_ADDON and state.add_ons_confirmed:
        candidate = STEP_ROAD_TAX
    elif intent == Intent.SELECT_ROADTAX and state.selected_road_tax is not None:
        candidate = STEP_DETAILS
    elif intent == Intent.PROVIDE_INFO and state.has_complete_vehicle_identification():
        candidate = STEP_INSURER
    elif intent == Intent.CONFIRM and state.step == FlowStep.QUOTES and state.selected_quote is None:
        candidate = STEP_INSURER

    if candidate is None:
        current = current_stage_step_line(state)
        current_norm = normalize_step_line(current)
        if current and last_line is None:
            candidate = current
        elif current_norm and last_line and current_norm != last_line:
            candidate = current

    if candidate is None:
        return None
    if last_line and normalize_step_line(candidate) == last_line:
        return None
    return candidate
