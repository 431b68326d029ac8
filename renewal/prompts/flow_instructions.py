# Role: Intent/step-specific system instruction fragments. Each builder returns one system-role message;
# DecisionLogic picks which ones apply this turn. Prices and menus always come from content_blocks.

from __future__ import annotations

from typing import Any, Dict, List, Optional

from renewal.models.state import ConversationState
from renewal.prompts.content_blocks import (
    build_add_ons_menu,
    build_payment_link,
    build_quotes_block,
    build_road_tax_menu,
    build_summary_box,
    build_vehicle_block,
    recommended_quote_line,
)
from renewal.tools.insurance_catalog import ADD_ONS, INSURERS, ROAD_TAX_OPTIONS
from renewal.utils.clarification import build_clarification_question
from renewal.utils.step_line import STEP_ADD_ONS, STEP_DETAILS, STEP_INSURER, STEP_ROAD_TAX, STEP_VEHICLE

_NO_PRICING = (
    "- Show any insurance quotes or prices\n"
    "- Discuss specific insurers (Takaful, Etiqa, Allianz)\n"
    "- Talk about add-ons, road tax, or any pricing details"
)


def _insurer_name(key: Optional[str]) -> str:
    insurer = INSURERS.get(key or "")
    return insurer.name if insurer else (key or "another insurer")


# ---------------------------------------------------------------------------
# Before vehicle identification
# ---------------------------------------------------------------------------


def question_before_identification() -> str:
    return (
        "User asked a general insurance question before sharing plate/owner ID.\n"
        "Answer the question helpfully first (no quote cards, no pricing).\n"
        "After answering, add one short line: \"If you'd like renewal quotes, share your **car plate** "
        "and **owner identification number**.\""
    )


def playful_start() -> str:
    return (
        "User is playful/unclear at the start. Reply naturally in 1-2 short lines:\n"
        "1) brief friendly acknowledgement\n"
        "2) ask what they need today (renewal quote, policy check, or claims help)\n"
        "If they mention renewal, ask for plate + owner ID."
    )


def identification_gate(missing: List[str]) -> str:
    ask = build_clarification_question(missing)
    if len(missing) >= 2:
        return (
            "CRITICAL RESTRICTION: User has NOT provided car plate + owner ID yet. You MUST NOT:\n"
            f"{_NO_PRICING}\n"
            "- Proceed with ANY insurance flow\n\n"
            "Your response MUST include this exact format:\n\n"
            f"{STEP_VEHICLE}\n\n"
            f"{ask}\n\n"
            "You may add a brief greeting before the step indicator, but do NOT skip the numbered list."
        )
    return (
        "CRITICAL RESTRICTION: User has NOT provided both plate + owner ID yet. You MUST NOT:\n"
        f"{_NO_PRICING}\n\n"
        f"Ask for the missing item only. Keep it brief: \"{ask}\""
    )


# ---------------------------------------------------------------------------
# Vehicle card and quotes
# ---------------------------------------------------------------------------


def vehicle_found(profile: Dict[str, Any]) -> str:
    return (
        "Vehicle found. Your response MUST include these exact details:\n\n"
        "Found your vehicle! 🚗\n\n"
        f"{build_vehicle_block(profile)}\n\n"
        "Is this correct?\n\n"
        "Do NOT skip any field. Do NOT alter the values."
    )


def vehicle_rejected(profile: Dict[str, Any]) -> str:
    return (
        "User rejected the vehicle details. Do NOT proceed to insurer selection yet.\n"
        "Explain briefly that these details come from insurer/ISM-linked records for the submitted plate + "
        "owner ID, so they normally match. Then re-show the EXACT same details:\n\n"
        f"{build_vehicle_block(profile)}\n\n"
        "Please tell me which field is wrong, or send the corrected **car plate** and **owner identification "
        "number** so I can re-check.\n\n"
        "Do NOT alter or abbreviate any field."
    )


def quotes_presentation() -> str:
    return (
        "Vehicle confirmed. Your response MUST include this exact quotes block:\n\n"
        f"{STEP_INSURER}\n\n"
        "Here are your options:\n\n"
        f"{build_quotes_block()}\n\n"
        "Which option would you like to go with, or would you like my recommendation?\n\n"
        "You may add a brief acknowledgement before the step indicator, but do NOT alter the quote cards or prices."
    )


def recommendation_missing() -> str:
    return (
        "User said \"ok\" but no single insurer was recommended. Ask them to pick one:\n\n"
        f"{build_quotes_block()}\n\n"
        "Which insurer would you like to go with?"
    )


def quotes_recommendation() -> str:
    return (
        "User is asking for YOUR recommendation. Give a confident, direct answer. Do NOT ask discovery questions "
        "and do NOT show all quotes again.\n"
        "Pick ONE insurer, give ONE clear reason, and end with \"Want to go with this?\"\n\n"
        f"Example: \"I'd go with {recommended_quote_line('takaful')}, best value with fast claim payouts. "
        "Want to proceed with this?\""
    )


def quotes_dilemma() -> str:
    return (
        "User is having trouble deciding between insurers. Do NOT pick for them yet:\n"
        "1) acknowledge the dilemma in one line\n"
        "2) ask ONE discovery question, the most relevant of:\n"
        "   - \"What matters most to you: **saving money**, **easy claims**, or **maximum coverage**?\"\n"
        "   - \"How do you mainly use your car: **daily commute**, **occasional trips**, or **long-distance highway**?\"\n"
        "Do NOT show quotes again and do NOT recommend yet."
    )


def quotes_question() -> str:
    return (
        "Answer the user's question briefly (2-3 sentences max). Then ALWAYS end with the full quotes block "
        "so they can choose:\n\n"
        f"{build_quotes_block()}\n\n"
        "Which option would you like to go with?"
    )


# ---------------------------------------------------------------------------
# Add-ons
# ---------------------------------------------------------------------------


def quote_selected(state: ConversationState, *, accepted_recommendation: bool = False) -> str:
    insurer = state.selected_quote.insurer if state.selected_quote is not None else "the insurer"
    lead = (
        f"User confirmed your recommendation of {insurer}."
        if accepted_recommendation
        else f"User selected {insurer}."
    )
    return (
        f"{lead} Your response MUST include:\n\n"
        f"{STEP_ADD_ONS}\n\n"
        "Great choice! ✅\n\n"
        f"{build_summary_box(state)}\n\n"
        "Want add-ons?\n"
        f"{build_add_ons_menu()}\n\n"
        "Do NOT alter prices. You may add a brief line but MUST include the summary box and add-ons menu exactly."
    )


def add_ons_need_quote() -> str:
    return (
        "User mentioned add-ons but hasn't selected an insurer yet. Show quotes and ask them to choose first:\n\n"
        f"{build_quotes_block()}\n\n"
        "Which insurer would you like to go with?"
    )


def add_ons_confirmed(state: ConversationState) -> str:
    names = ", ".join(f"**{a.name}**" for a in state.selected_add_ons)
    ack = f"Added {names}!" if names else "No add-ons selected."
    return (
        f"User confirmed {names or 'no add-ons'}. Your response MUST include:\n\n"
        f"{STEP_ROAD_TAX}\n\n"
        f"{ack} ✅\n\n"
        f"{build_summary_box(state)}\n\n"
        "Want to renew your **road tax** together? 🚗\n\n"
        f"{build_road_tax_menu(state)}\n\n"
        "Do NOT alter prices. MUST include the summary box and road tax menu exactly."
    )


def add_ons_explainer() -> str:
    lines = "\n\n".join(f"**{a.short_name}** (RM {a.price}): {a.description}." for a in ADD_ONS.values())
    return (
        "User wants to know which add-ons they need. Explain ALL 3 add-ons, each on its own line:\n\n"
        f"{lines}\n\n"
        "Then ask: \"Based on your situation, which would you like? Or skip if you don't need any.\"\n"
        "Do NOT merge them into one paragraph."
    )


def add_ons_question(state: ConversationState) -> str:
    pre_selected = ""
    if state.selected_add_ons and not state.add_ons_confirmed:
        names = ", ".join(a.name for a in state.selected_add_ons)
        pre_selected = f"\nNoted interest (NOT confirmed yet): {names}. Ask them to confirm before moving on.\n"
    return (
        "Answer the user's question briefly (2-3 sentences). If they gave an indirect answer "
        "(e.g. \"I don't drive much\"), acknowledge it and recommend. Then ALWAYS re-show the add-ons menu:\n\n"
        f"{build_add_ons_menu()}\n"
        f"{pre_selected}\n"
        "Which would you like? Or skip if you don't need any.\n\n"
        "Do NOT auto-skip or assume. Wait for explicit confirmation before moving to road tax."
    )


# ---------------------------------------------------------------------------
# Road tax
# ---------------------------------------------------------------------------


def road_tax_question(state: ConversationState) -> str:
    return f"Answer the user's question briefly. Then ALWAYS re-show the road tax options:\n\n{build_road_tax_menu(state)}"


def road_tax_blocked(state: ConversationState, option_id: Optional[str]) -> str:
    attempted = "12 Months Delivered" if (option_id or "").startswith("12") else "6 Months Delivered"
    return (
        f"User selected {attempted}, but delivered road tax is not available for this ownership type.\n"
        "Explain briefly: printed + delivered road tax is only for **Foreign ID** or **Company Registration** "
        "vehicle ownership. Then ask them to choose a digital option or no road tax.\n\n"
        f"{STEP_ROAD_TAX}\n\n"
        f"{build_summary_box(state)}\n\n"
        f"{build_road_tax_menu(state)}"
    )


def road_tax_selected(state: ConversationState) -> str:
    road_tax = state.selected_road_tax
    chosen = road_tax.name if road_tax is not None and road_tax.id != "none" else None
    ack = f"{chosen} added!" if chosen else "No road tax."
    return (
        f"User selected road tax: {chosen or 'No Road Tax'}. Your response MUST include:\n\n"
        f"{STEP_DETAILS}\n\n"
        f"{ack} ✅\n\n"
        f"{build_summary_box(state)}\n\n"
        "Almost done! I need:\n\n"
        "1. **Email**\n"
        "2. **Phone number**\n"
        "3. **Delivery address**\n\n"
        "Do NOT alter the summary. MUST include all 3 items to collect."
    )


# ---------------------------------------------------------------------------
# Details, OTP, payment
# ---------------------------------------------------------------------------


def details_progress(missing: List[str]) -> str:
    if not missing:
        return (
            "All 3 required details are collected (email, phone, delivery address). Confirm this briefly, then say: "
            "\"Please key in the **OTP** sent to your phone or email now. 📱\""
        )
    return (
        "User is submitting personal details.\n"
        f"Acknowledge what was received, then ask ONLY for what is missing:\n\n{build_clarification_question(missing)}\n\n"
        "Do NOT proceed to OTP until all 3 are collected."
    )


def otp_verified(state: ConversationState, payment_id: Optional[str] = None) -> str:
    return (
        "OTP verified! Your response MUST include:\n\n"
        "✅ All set!\n\n"
        f"{build_summary_box(state)}\n\n"
        f"{build_payment_link(state, payment_id)}\n\n"
        "Card, FPX, e-wallet, or pay later. Your choice.\n\n"
        "Do NOT alter the payment link URL or amounts."
    )


def quote_refreshed(state: ConversationState, payment_id: Optional[str] = None) -> str:
    return (
        "⚠️ Quote expired. Respond with:\n\n"
        "\"Your quote has expired. Let me refresh it for you...\n\n"
        "✅ **Quote refreshed!** Same prices still apply.\n\n"
        f"{build_summary_box(state)}\n\n"
        f"{build_payment_link(state, payment_id)}\""
    )


def ready_to_pay(state: ConversationState, payment_id: Optional[str] = None) -> str:
    return (
        "User is ready to pay. Your response MUST include the payment link:\n\n"
        f"{build_summary_box(state)}\n\n"
        f"{build_payment_link(state, payment_id)}\n\n"
        "Card, FPX, e-wallet, or pay later. Your choice.\n\n"
        "Do NOT alter the payment link URL or amounts."
    )


def payment_complete(state: ConversationState) -> str:
    return (
        f"Payment is complete ({state.payment_method}). Thank the user in one or two lines, say the policy and "
        "road tax (if any) will be sent to their email, and offer help with anything else.\n\n"
        f"{build_summary_box(state)}"
    )


# ---------------------------------------------------------------------------
# Insurer change (guarded by the pending action)
# ---------------------------------------------------------------------------


def change_confirmation(state: ConversationState, target_key: Optional[str]) -> str:
    current = state.selected_quote.insurer if state.selected_quote is not None else "current insurer"
    target = _insurer_name(target_key)
    return (
        f"User wants to change from {current} to {target}. This resets all selections (add-ons, road tax). "
        f"Ask for confirmation: \"Switching from **{current}** to **{target}** will restart from the insurer step. "
        "Are you sure?\""
    )


def change_applied(target_key: Optional[str]) -> str:
    return (
        f"User confirmed switching insurer. Previous selections were cleared. They asked for "
        f"{_insurer_name(target_key)}; ask them to confirm it from the quotes below.\n\n"
        f"{STEP_INSURER}\n\n"
        f"{build_quotes_block()}\n\n"
        "Which option would you like to go with?"
    )


def change_cancelled() -> str:
    return (
        "User cancelled the insurer switch. Acknowledge and continue with the CURRENT selected insurer at the "
        "current step. Do not reset the flow."
    )


# ---------------------------------------------------------------------------
# Recovery (playful / unclear) and generic
# ---------------------------------------------------------------------------


def general_question() -> str:
    return "Answer briefly, add a short recommendation if helpful."


def playful_quotes(budget_signal: bool) -> str:
    if budget_signal:
        return (
            "User gave a playful/unclear reply with a budget signal. Reply naturally:\n"
            "1) acknowledge casually in one short line\n"
            f"2) give one confident recommendation: {recommended_quote_line('takaful')} with one reason\n"
            "3) ask: \"Want me to lock this in?\""
        )
    return (
        "User reply is playful/unclear at quote selection. Keep the tone human:\n"
        "1) short friendly acknowledgement\n"
        "2) ask ONE decision question: \"What matters most: lowest price, easier claims, or higher coverage?\"\n"
        "3) offer a shortcut: \"Or say **pick for me**.\""
    )


def playful_add_ons() -> str:
    windscreen = ADD_ONS["windscreen"]
    return (
        "User reply is playful/unclear at add-ons. Keep it human and practical:\n"
        "1) acknowledge briefly\n"
        f"2) one default suggestion: **{windscreen.short_name} (RM {windscreen.price})** for most drivers\n"
        "3) ask one clear action: \"Add windscreen, add flood too, or skip all?\""
    )


def playful_road_tax() -> str:
    default = ROAD_TAX_OPTIONS["12month-digital"]
    return (
        "User reply is playful/unclear at road tax. Keep it simple:\n"
        "1) acknowledge briefly\n"
        f"2) recommend **12-month digital (RM {default.total_price})** as the default\n"
        "3) ask: \"Go with 12-month digital, or prefer another option?\""
    )


def playful_details(missing: List[str]) -> str:
    return (
        "User reply is playful/unclear while collecting details. Stay warm, then redirect: "
        "\"No worries 😄 I just need these to issue your policy.\"\n\n"
        f"{build_clarification_question(missing or ['email', 'phone', 'address'])}"
    )


def playful_generic() -> str:
    return "User reply is playful/unclear. Acknowledge naturally and ask one clear next-step question for the current step."


def unclear_quotes() -> str:
    return (
        "User response is unclear. Reply naturally:\n"
        "1) brief acknowledgement\n"
        "2) offer help deciding in one line\n"
        "3) ask a clear next action: \"Pick **Takaful**, **Etiqa**, **Allianz**, or say **recommend for me**.\""
    )


def unclear_add_ons() -> str:
    return (
        "User response is unclear at the add-ons step. Clarify gently and re-show options:\n\n"
        f"{build_add_ons_menu()}\n\n"
        "Ask: \"Which add-on would you like, or reply **skip**?\""
    )


def unclear_road_tax(state: ConversationState) -> str:
    return (
        "User response is unclear at the road tax step. Clarify gently and re-show options:\n\n"
        f"{build_road_tax_menu(state)}\n\n"
        "Ask: \"Which option do you want, or reply **no road tax**?\""
    )


def persistent_summary(state: ConversationState) -> str:
    return (
        "IMPORTANT: User has selected an insurer. Your response MUST include this summary box:\n\n"
        f"{build_summary_box(state)}\n\n"
        "Include it in EVERY response until payment is complete, whatever the user asks."
    )
