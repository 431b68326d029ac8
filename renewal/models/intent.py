# Role: Central enum of supported user intents plus the per-turn classification result.
# Keeps the classifier, state transitions, decision routing and prompt fragments consistent.

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class Intent(str, Enum):
    START_RENEWAL = "start_renewal"
    PROVIDE_INFO = "provide_info"
    CONFIRM = "confirm"
    SELECT_QUOTE = "select_quote"
    CHANGE_QUOTE = "change_quote"
    CONFIRM_CHANGE_QUOTE = "confirm_change_quote"
    SELECT_ADDON = "select_addon"
    SELECT_ROADTAX = "select_roadtax"
    ASK_QUESTION = "ask_question"
    SUBMIT_DETAILS = "submit_details"
    VERIFY_OTP = "verify_otp"
    SELECT_PAYMENT = "select_payment"
    UNCLEAR_OR_PLAYFUL = "unclear_or_playful"
    OTHER = "other"


@dataclass(frozen=True)
class ClassifiedIntent:
    intent: Intent
    confidence: float
    data: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)
