# Role: Pure predicates that gate ambiguous or irreversible transitions (recommendation acceptance,
# vehicle rejection, delivered road tax eligibility). Callers pass in the text or history they already hold.

from __future__ import annotations

import re
from typing import Any, Optional, Sequence

from renewal.models.state import OwnerIdType

_INSURER_MENTIONS = (
    ("takaful", re.compile(r"takaful|ikhlas", re.IGNORECASE)),
    ("etiqa", re.compile(r"etiqa", re.IGNORECASE)),
    ("allianz", re.compile(r"allianz", re.IGNORECASE)),
)

_CHOICE_PROMPT = re.compile(r"pick|choose|select|which|or say recommend for me|if you need help deciding", re.IGNORECASE)
_RECOMMENDATION_CUE = re.compile(
    r"i recommend|i(?:'d| would)\s+recommend|my recommendation|i(?:'d| would) go with|best option|best pick|go with|suggest",
    re.IGNORECASE,
)

_REJECTION_START = re.compile(r"^(no|nope|nah)\b")
_REJECTION_PHRASE = re.compile(
    r"\b(wrong|incorrect|not right|not correct|doesn'?t match|don'?t match|dont match|do not match|different)\b"
)
_NOT_MY_CAR = re.compile(r"\b(not my|isn'?t my|is not my)\s+(car|vehicle)\b")

_VEHICLE_CONFIRMATION = re.compile(
    r"found your vehicle|vehicle reg\.?num|cover type|policy effective|is this correct\?", re.IGNORECASE
)

_DELIVERY_ELIGIBLE = {OwnerIdType.FOREIGN_ID, OwnerIdType.COMPANY_REG}


def role_and_content(message: Any) -> tuple[str, str]:
    if isinstance(message, dict):
        return str(message.get("role") or ""), str(message.get("content") or "")
    return str(getattr(message, "role", "") or ""), str(getattr(message, "content", "") or "")


def parse_recommended_insurer(assistant_text: Optional[str]) -> Optional[str]:
    """
    Insurer key the assistant explicitly recommended, or None.

    None whenever the text mentions zero or several insurers, lists all three as a choice prompt,
    or carries no recommendation cue. Callers must not guess on None.
    """
    text = (assistant_text or "").lower()
    if not text:
        return None

    mentions = [key for key, pattern in _INSURER_MENTIONS if pattern.search(text)]
    if len(mentions) != 1:
        return None

    if _CHOICE_PROMPT.search(text) and all(p.search(text) for _, p in _INSURER_MENTIONS):
        return None

    if not _RECOMMENDATION_CUE.search(text):
        return None

    return mentions[0]


def is_vehicle_details_rejection(message: Optional[str]) -> bool:
    text = (message or "").strip().lower()
    if not text:
        return False
    return bool(_REJECTION_START.search(text) or _REJECTION_PHRASE.search(text) or _NOT_MY_CAR.search(text))


def last_assistant_message(messages: Sequence[Any]) -> str:
    for message in reversed(list(messages or [])):
        role, content = role_and_content(message)
        if role == "assistant" and content:
            return content
    return ""


def was_last_assistant_vehicle_confirmation(messages: Sequence[Any]) -> bool:
    # Only the most recent assistant turn counts; an older confirmation prompt is stale context.
    return bool(_VEHICLE_CONFIRMATION.search(last_assistant_message(messages)))


def can_use_delivered_road_tax(owner_id_type: Any) -> bool:
    if owner_id_type is None:
        return False
    try:
        return OwnerIdType(owner_id_type) in _DELIVERY_ELIGIBLE
    except ValueError:
        return False
