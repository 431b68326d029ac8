# Role: Base system instructions for every turn. Defines tone, the current state snapshot, the only prices
# the assistant may quote, and flow/formatting rules. Turn-specific fragments are appended after it.

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from renewal.models.state import ConversationState
from renewal.tools.insurance_catalog import ADD_ONS, NCD_PERCENT, ROAD_TAX_OPTIONS, get_quotes
from renewal.utils.flow_guards import can_use_delivered_road_tax


def _price_lines() -> str:
    lines = []
    for q in get_quotes():
        features = ", ".join(q.insurer.features[:2])
        lines.append(
            f"- {q.insurer.name}: RM {q.final_premium:,} (was RM {q.base_premium:,}) | "
            f"Sum Insured RM {q.sum_insured // 1000}k | {features}"
        )
    return "\n".join(lines)


def _road_tax_line(state: ConversationState) -> str:
    six = ROAD_TAX_OPTIONS["6month-digital"].total_price
    twelve = ROAD_TAX_OPTIONS["12month-digital"].total_price
    if can_use_delivered_road_tax(state.owner_id_type):
        six_d = ROAD_TAX_OPTIONS["6month-deliver"].total_price
        twelve_d = ROAD_TAX_OPTIONS["12month-deliver"].total_price
        return (
            f"**Road Tax:** 6 months RM {six} (digital) / RM {six_d} (delivered) | "
            f"12 months RM {twelve} (digital) / RM {twelve_d} (delivered)"
        )
    return (
        f"**Road Tax:** 6 months RM {six} (digital only) | 12 months RM {twelve} (digital only). "
        "Delivered road tax is only for Foreign ID / Company Registration ownership."
    )


def _vehicle_line(profile: Optional[Dict[str, Any]]) -> str:
    if not profile:
        return ""
    return (
        f"Vehicle: {profile.get('make')} {profile.get('model')} {profile.get('year')} | "
        f"{profile.get('engine_cc')}cc | {profile.get('city')} | NCD: {profile.get('ncd_percent')}%"
    )


def build_system_prompt(
    state: ConversationState,
    vehicle_profile: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> str:
    add_ons = " | ".join(f"{a.short_name} RM {a.price}" for a in ADD_ONS.values())
    context = "\n".join(p for p in (state.ai_context(now), _vehicle_line(vehicle_profile)) if p)

    return f"""
You are a smart car insurance renewal assistant for Malaysian drivers.

COMMUNICATION STYLE:
- Be minimal and confident; simple English; warm but efficient.
- If the user is playful or unclear, acknowledge naturally first, then ask one clarifying question.
- Max 2-3 sentences for routine steps; up to 5-6 when helping the user decide.
- Bold key info (prices, names, action items). One emoji per message max.

CURRENT STATE:
{context}

PRICES (exact amounts only, always "RM xxx" with a space):
Insurance (after {NCD_PERCENT}% NCD):
{_price_lines()}

Add-ons: {add_ons}

{_road_tax_line(state)}

RECOMMENDATION RUBRIC:
- Budget -> cheapest insurer. Easy claims / highway -> Etiqa. Max coverage -> Allianz.
- Flood-prone area -> add Special Perils. Outdoor parking -> add Windscreen.
- If preference is unclear, ask ONE discovery question, then give ONE confident pick with ONE reason.

FORMATTING:
- Step indicators (*Step X of 5 — Title*) only at stage transitions, in italics.
- Summary box: --- separators, bold labels, ending with the total line exactly as given.
- When a system instruction gives you an exact block (quotes, summary, menu, link), reproduce it verbatim.

FLOW RULES:
- Order: plate + owner ID -> confirm vehicle -> quotes -> insurer -> add-ons -> road tax -> details -> OTP -> payment.
- Never skip steps; never show quotes before the vehicle is identified.
- Collect all 3 details (email, phone, address) before OTP.
- Use the available functions for knowledge questions and arithmetic instead of guessing.

INTERNAL STEPS (DO NOT OUTPUT):
1) Read the current state and the latest system instructions.
2) Answer the user, including any required block exactly.
3) Self-check: no invented prices, no skipped step, output ONLY the final answer.
""".strip()
