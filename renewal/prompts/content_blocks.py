# Role: Deterministic markdown blocks (quote cards, summary box, menus, vehicle card, payment link) built from
# state + catalog. Injected as must-include content so the model never computes or invents a price.

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Optional
from urllib.parse import quote as url_quote

from renewal.models.state import ConversationState
from renewal.tools.insurance_catalog import ADD_ONS, ROAD_TAX_OPTIONS, get_quote, get_quotes
from renewal.utils.flow_guards import can_use_delivered_road_tax

_LOGOS = {
    "takaful": "/partners/takaful.svg",
    "etiqa": "/partners/etiqa.svg",
    "allianz": "/partners/allianz.svg",
}


@dataclass(frozen=True)
class OrderTotal:
    insurance: int
    add_ons: int
    road_tax: int

    @property
    def total(self) -> int:
        return self.insurance + self.add_ons + self.road_tax


def compute_order_total(state: ConversationState) -> OrderTotal:
    # Key line: premium + sum(add-on prices) + road tax price; the model never does this arithmetic.
    insurance = state.selected_quote.price_after if state.selected_quote is not None else 0
    add_ons = sum(a.price for a in state.selected_add_ons)
    road_tax = state.selected_road_tax.price if state.selected_road_tax is not None else 0
    return OrderTotal(insurance=insurance, add_ons=add_ons, road_tax=road_tax)


def _rm(amount: int) -> str:
    return f"RM {amount:,}"


def _logo_for(insurer_name: str, insurer_key: Optional[str]) -> str:
    if insurer_key and insurer_key in _LOGOS:
        return _LOGOS[insurer_key]
    for key, path in _LOGOS.items():
        if key in insurer_name.lower():
            return path
    return ""


def build_summary_box(state: ConversationState) -> str:
    totals = compute_order_total(state)
    selected = state.selected_quote

    if selected is not None and selected.price_after:
        logo = _logo_for(selected.insurer, selected.insurer_key)
        insurer_line = f"![{selected.insurer}]({logo}) {selected.insurer} — {_rm(selected.price_after)}"
    else:
        insurer_line = "Not selected"

    if state.selected_add_ons:
        add_ons_line = ", ".join(f"{a.name} - {_rm(a.price)}" for a in state.selected_add_ons)
    else:
        add_ons_line = "Not selected"

    road_tax = state.selected_road_tax
    if road_tax is None:
        road_tax_line = "Not selected"
    elif road_tax.price > 0:
        road_tax_line = f"{road_tax.name} - {_rm(road_tax.price)}"
    else:
        road_tax_line = road_tax.name

    return (
        "---\n"
        "**Your Selection**\n"
        f"**Insurance:** {insurer_line}\n"
        f"**Add-ons:** {add_ons_line}\n"
        f"**Road tax:** {road_tax_line}\n"
        "\n"
        f"💰 <u>**Total: {_rm(totals.total)}**</u>\n"
        "---"
    )


def build_quotes_block() -> str:
    cards = []
    for q in get_quotes():
        name = q.insurer.name
        features = " ".join(f"✓ {f}" for f in q.insurer.features)
        cards.append(
            f"![{name}]({_LOGOS.get(q.insurer.key, '')}) **{name}** — **{_rm(q.final_premium)}**\n"
            f"Sum Insured: {_rm(q.sum_insured)}\n"
            f"{features}\n"
            f"~~{_rm(q.base_premium)}~~ → {_rm(q.final_premium)} ({q.ncd_percent}% NCD)"
        )
    return "\n\n".join(cards)


def build_add_ons_menu() -> str:
    return "\n".join(f"- **{a.short_name}** — {_rm(a.price)}" for a in ADD_ONS.values())


def build_road_tax_menu(state: ConversationState) -> str:
    six_digital = ROAD_TAX_OPTIONS["6month-digital"].total_price
    six_deliver = ROAD_TAX_OPTIONS["6month-deliver"].total_price
    twelve_digital = ROAD_TAX_OPTIONS["12month-digital"].total_price
    twelve_deliver = ROAD_TAX_OPTIONS["12month-deliver"].total_price

    # Key line: delivered variants are only ever listed for eligible owner types.
    if can_use_delivered_road_tax(state.owner_id_type):
        return (
            f"- **6 months**: {_rm(six_digital)} (digital) | {_rm(six_deliver)} (delivered)\n"
            f"- **12 months**: {_rm(twelve_digital)} (digital) | {_rm(twelve_deliver)} (delivered)\n"
            "\n"
            "Or continue without road tax."
        )

    return (
        f"- **6 months**: {_rm(six_digital)} (digital only)\n"
        f"- **12 months**: {_rm(twelve_digital)} (digital only)\n"
        "\n"
        "Printed + delivered road tax is available only for **Foreign ID** or **Company Registration** "
        "vehicle ownership.\n"
        "\n"
        "Or continue without road tax."
    )


def _policy_window(today: date) -> str:
    start = today + timedelta(days=30)
    try:
        end = start.replace(year=start.year + 1)
    except ValueError:
        # 29 Feb -> 28 Feb next year
        end = start.replace(year=start.year + 1, day=28)

    def fmt(d: date) -> str:
        return f"{d.day} {d.strftime('%b %Y')}"

    return f"{fmt(start)} - {fmt(end)}"


def build_vehicle_block(profile: Optional[Dict[str, Any]], today: Optional[date] = None) -> str:
    if not profile:
        return ""

    engine_cc = int(profile.get("engine_cc") or 0)
    return (
        f"**Vehicle Reg.Num**: {profile.get('plate_number', '')}\n"
        f"**Vehicle**: {profile.get('year', '')} {profile.get('make', '')} {profile.get('model', '')}\n"
        f"**Engine**: Auto - {engine_cc:,}cc\n"
        f"**Postcode**: {profile.get('postcode', '')}\n"
        f"**NCD**: {profile.get('ncd_percent', 0)}%\n"
        f"**Cover Type**: {profile.get('cover_type', '')}\n"
        f"**Policy Effective**: {_policy_window(today or date.today())}"
    )


def build_payment_link(state: ConversationState, payment_id: Optional[str] = None) -> str:
    totals = compute_order_total(state)
    insurer = url_quote(state.selected_quote.insurer if state.selected_quote is not None else "")
    plate = url_quote(state.plate_number or "")
    pay_id = payment_id or f"PAY-{int(time.time() * 1000)}"
    return (
        f"[**Pay {_rm(totals.total)} →**](/payment/{pay_id}?total={totals.total}&insurer={insurer}"
        f"&plate={plate}&insurance={totals.insurance}&addons={totals.add_ons}&roadtax={totals.road_tax})"
    )


def recommended_quote_line(insurer_key: str) -> str:
    q = get_quote(insurer_key)
    if q is None:
        return ""
    return f"**{q.insurer.name} at {_rm(q.final_premium)}**"
