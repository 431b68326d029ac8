# Role: Deterministic "one ask" builder. Converts missing_info keys (from Validator) into the short
# user-facing request the model is told to use, so the flow asks for exactly what is missing.

from __future__ import annotations

from typing import List

import renewal.config as config

_PLATE = "**Car Plate Number** (e.g. WXY 1234)"
_OWNER_ID = "**Owner Identification Number** (NRIC / Foreign ID / Army IC / Police IC / Company Reg. No.)"

_DETAIL_LABELS = {
    "email": "Email",
    "phone": "Phone number",
    "address": "Delivery address",
}


def build_clarification_question(missing_info: List[str]) -> str:
    # Step 1: log missing_info in debug mode (helps trace dialog state).
    if config.DEBUG:
        print("CLARIFICATION_BUILDER missing_info:", missing_info)

    if not missing_info:
        return "What would you like to do next with your renewal?"

    # Step 2: vehicle identifiers are asked together when both are missing.
    if "plate_number" in missing_info and "owner_id" in missing_info:
        return (
            "To get started with your insurance renewal, please provide your:\n\n"
            f"1. {_PLATE}\n"
            f"2. {_OWNER_ID}"
        )

    first = missing_info[0]

    if first == "plate_number":
        return f"Please provide your {_PLATE} to proceed with the insurance renewal."

    if first == "owner_id":
        return f"Please provide your {_OWNER_ID} to proceed with the insurance renewal."

    if first == "selected_quote":
        return "Which insurer would you like to go with first?"

    if first == "add_ons_confirmed":
        return "Which add-ons would you like, or reply **skip**?"

    if first == "selected_road_tax":
        return "Which road tax option do you want, or reply **no road tax**?"

    # Step 3: personal details -> numbered list of only what is still missing.
    details = [_DETAIL_LABELS[k] for k in missing_info if k in _DETAIL_LABELS]
    if details:
        lines = "\n".join(f"{i}. **{label}**" for i, label in enumerate(details, start=1))
        return f"I still need:\n\n{lines}"

    if first == "otp_verified":
        return "Please key in the **OTP** sent to your phone or email."

    return "What would you like to do next with your renewal?"
