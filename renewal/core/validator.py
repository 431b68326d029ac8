# Role: Input gatekeeper per intent. Checks whether the state already holds the prerequisites an intent
# depends on (vehicle identity before quotes, an insurer before add-ons, ...) and reports what is missing.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from renewal.models.intent import Intent
from renewal.models.state import ConversationState


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    missing_info: List[str]
    problems: List[str]


class Validator:
    def validate(self, intent: Intent, state: ConversationState, now: Optional[datetime] = None) -> ValidationResult:
        # 1) Collect prerequisites for this intent that the state does not hold yet
        # 2) Collect state problems (expired quote)
        # 3) ok=True only if both lists are empty

        missing: List[str] = []
        problems: List[str] = []

        if state.selected_quote is not None and state.is_quote_expired(now):
            problems.append("quote_expired")

        if intent in {Intent.SELECT_QUOTE, Intent.SELECT_ADDON, Intent.SELECT_ROADTAX, Intent.CHANGE_QUOTE}:
            missing.extend(state.get_missing_identification())

        if intent in {Intent.SELECT_ADDON, Intent.SELECT_ROADTAX, Intent.CHANGE_QUOTE}:
            if state.selected_quote is None:
                missing.append("selected_quote")

        if intent == Intent.SELECT_ROADTAX and state.selected_quote is not None and not state.add_ons_confirmed:
            missing.append("add_ons_confirmed")

        if intent == Intent.SUBMIT_DETAILS:
            details = state.personal_details
            missing.extend(details.missing() if details is not None else ["email", "phone", "address"])

        if intent == Intent.SELECT_PAYMENT and not state.otp_verified:
            missing.append("otp_verified")

        ok = (len(missing) == 0) and (len(problems) == 0)
        return ValidationResult(ok=ok, missing_info=missing, problems=problems)
