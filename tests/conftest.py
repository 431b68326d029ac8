"""
Shared fixtures: a fixed clock and a factory that walks a ConversationState up to a given step
through the real mutators (so every fixture state is one the flow can actually reach).
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

import renewal.config as config
from renewal.core.transitions import add_ons_for_ids, quote_for_key, road_tax_for_id
from renewal.models.state import ConversationState, FlowStep, OwnerIdType, PersonalDetails

NOW = datetime(2026, 1, 15, 10, 0, tzinfo=timezone.utc)

_ORDER = (
    FlowStep.START,
    FlowStep.QUOTES,
    FlowStep.ADDONS,
    FlowStep.ROADTAX,
    FlowStep.PERSONAL_DETAILS,
    FlowStep.OTP,
    FlowStep.PAYMENT,
    FlowStep.SUCCESS,
)


def build_state(
    step: FlowStep,
    *,
    owner_id_type: OwnerIdType = OwnerIdType.NRIC,
    insurer: str = "takaful",
    add_ons: tuple = ("windscreen",),
    road_tax: str = "12month-digital",
    now: datetime = NOW,
) -> ConversationState:
    state = ConversationState()
    reached = _ORDER.index(step)

    if reached >= _ORDER.index(FlowStep.QUOTES):
        owner_id = "900101145678" if owner_id_type == OwnerIdType.NRIC else "A12345678"
        state.set_vehicle_identification(plate_number="JRT9289", owner_id_value=owner_id, owner_id_type=owner_id_type)
    if reached >= _ORDER.index(FlowStep.ADDONS):
        state.select_quote(quote_for_key(insurer), now)
    if reached >= _ORDER.index(FlowStep.ROADTAX):
        state.select_add_ons(add_ons_for_ids(add_ons))
    if reached >= _ORDER.index(FlowStep.PERSONAL_DETAILS):
        state.select_road_tax(road_tax_for_id(road_tax))
    if reached >= _ORDER.index(FlowStep.OTP):
        state.set_personal_details(PersonalDetails(email=True, phone=True, address=True))
    if reached >= _ORDER.index(FlowStep.PAYMENT):
        state.verify_otp()
    if reached >= _ORDER.index(FlowStep.SUCCESS):
        state.set_payment_method("card")

    assert state.step == step
    return state


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def state_at():
    return build_state


@pytest.fixture(autouse=True)
def quiet_debug(monkeypatch):
    # Traces are opt-in; keep test output clean regardless of the developer's .env.
    monkeypatch.setattr(config, "DEBUG", False)
