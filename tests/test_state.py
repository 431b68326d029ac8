"""
ConversationState: step derivation, mutators, quote validity window and the client serialization boundary.
"""

from __future__ import annotations

from datetime import timedelta

from renewal.core.transitions import add_ons_for_ids, quote_for_key
from renewal.models.state import ConversationState, FlowStep, OwnerIdType, PendingAction, derive_step


class TestStepDerivation:
    def test_fresh_state_starts(self):
        assert ConversationState().step == FlowStep.START

    def test_partial_identification_is_vehicle_lookup(self):
        state = ConversationState().set_vehicle_identification(plate_number="JRT9289")
        assert state.step == FlowStep.VEHICLE_LOOKUP
        assert state.get_missing_identification() == ["owner_id"]

    def test_full_identification_is_quotes(self, state_at):
        state = state_at(FlowStep.QUOTES)
        assert state.has_complete_vehicle_identification()
        assert state.get_missing_identification() == []

    def test_pre_selected_add_ons_stay_at_add_ons(self, state_at):
        state = state_at(FlowStep.ADDONS)
        state.pre_select_add_ons(add_ons_for_ids(["windscreen"]))
        assert state.step == FlowStep.ADDONS
        assert not state.add_ons_confirmed

    def test_confirmed_empty_add_ons_move_on(self, state_at):
        state = state_at(FlowStep.ADDONS)
        state.select_add_ons([])
        assert state.step == FlowStep.ROADTAX

    def test_latest_milestone_wins(self, state_at):
        state = state_at(FlowStep.PAYMENT)
        state.payment_method = "fpx"
        assert derive_step(state) == FlowStep.SUCCESS

    def test_derivation_is_idempotent(self, state_at):
        for step in (FlowStep.START, FlowStep.QUOTES, FlowStep.ROADTAX, FlowStep.OTP):
            state = state_at(step)
            assert derive_step(state) == derive_step(state) == step

    def test_constructor_derives_step(self):
        state = ConversationState(plate_number="JRT9289", owner_id_value="951018145405")
        assert state.step == FlowStep.QUOTES == derive_step(state)


class TestMutators:
    def test_reset_to_quotes_keeps_identity(self, state_at):
        state = state_at(FlowStep.PAYMENT)
        state.reset_to_quotes()
        assert state.step == FlowStep.QUOTES
        assert state.plate_number == "JRT9289"
        assert state.selected_quote is None
        assert state.selected_add_ons == []
        assert state.selected_road_tax is None
        assert state.personal_details is None
        assert not state.otp_verified

    def test_mutators_clear_pending_action(self, state_at):
        state = state_at(FlowStep.ADDONS)
        state.set_pending_action(PendingAction(new_insurer="etiqa"))
        state.select_add_ons([])
        assert state.pending_action is None

    def test_identification_only_overwrites_given_fields(self, state_at):
        state = state_at(FlowStep.QUOTES)
        state.set_vehicle_identification(plate_number="WXY1234")
        assert state.plate_number == "WXY1234"
        assert state.owner_id_value == "900101145678"

    def test_masked_owner_id(self, state_at):
        assert state_at(FlowStep.QUOTES).masked_owner_id() == "900101******"
        assert ConversationState().masked_owner_id() is None


class TestQuoteWindow:
    def test_no_quote_never_expires(self, now):
        state = ConversationState()
        assert not state.is_quote_expired(now)
        assert state.get_quote_time_remaining(now) == 0

    def test_remaining_minutes_round_up(self, state_at, now):
        state = state_at(FlowStep.ADDONS, now=now)
        assert state.quote_valid_until == now + timedelta(minutes=30)
        assert state.get_quote_time_remaining(now + timedelta(minutes=10)) == 20
        assert state.get_quote_time_remaining(now + timedelta(minutes=29, seconds=30)) == 1

    def test_expiry(self, state_at, now):
        state = state_at(FlowStep.ADDONS, now=now)
        assert not state.is_quote_expired(now + timedelta(minutes=30))
        assert state.is_quote_expired(now + timedelta(minutes=31))
        assert state.get_quote_time_remaining(now + timedelta(minutes=31)) == 0

    def test_refresh_keeps_price(self, state_at, now):
        state = state_at(FlowStep.ADDONS, now=now)
        later = now + timedelta(hours=1)
        state.refresh_quote_timestamps(later)
        assert state.selected_quote.price_after == 796
        assert not state.is_quote_expired(later)


class TestSerialization:
    def test_round_trip(self, state_at):
        state = state_at(FlowStep.OTP)
        blob = state.to_client()
        restored = ConversationState.from_client(blob)
        assert restored.step == FlowStep.OTP
        assert restored.selected_quote == state.selected_quote
        assert restored.selected_road_tax == state.selected_road_tax

    def test_camel_case_wire_keys(self, state_at):
        blob = state_at(FlowStep.ADDONS).to_client()
        assert blob["plateNumber"] == "JRT9289"
        assert blob["ownerIdType"] == "nric"
        assert blob["selectedQuote"]["priceAfter"] == 796
        assert "quoteExpired" in blob
        assert "quoteTimeRemaining" in blob

    def test_personal_details_are_flags_only(self, state_at):
        blob = state_at(FlowStep.OTP).to_client()
        assert blob["personalDetails"] == {"email": True, "phone": True, "address": True}

    def test_client_step_is_never_trusted(self):
        state = ConversationState.from_client({"step": "payment", "plateNumber": "JRT9289"})
        assert state.step == FlowStep.VEHICLE_LOOKUP

    def test_legacy_nric_key(self):
        state = ConversationState.from_client({"plateNumber": "JRT9289", "nricNumber": "900101145678"})
        assert state.owner_id_value == "900101145678"
        assert state.owner_id_type == OwnerIdType.NRIC
        assert state.step == FlowStep.QUOTES

    def test_missing_type_for_non_nric_is_other_id(self):
        state = ConversationState.from_client({"plateNumber": "JRT9289", "ownerIdValue": "A12345678"})
        assert state.owner_id_type == OwnerIdType.OTHER_ID

    def test_invalid_blobs_return_none(self):
        assert ConversationState.from_client(None) is None
        assert ConversationState.from_client("garbage") is None
        assert ConversationState.from_client({}) is None
        assert ConversationState.from_client({"selectedQuote": {"insurer": "Etiqa", "priceAfter": -5}}) is None
        assert ConversationState.from_client({"ownerIdType": "spaceship"}) is None

    def test_progress_without_identification_is_rejected(self):
        blob = {"selectedQuote": {"insurer": "Etiqa", "priceAfter": 872}, "addOnsConfirmed": True}
        assert ConversationState.from_client(blob) is None
        assert ConversationState.from_client(dict(blob, plateNumber="JRT9289")) is None
        assert ConversationState.from_client({"otpVerified": True, "ownerIdValue": "900101145678"}) is None

    def test_progress_with_identification_is_kept(self):
        blob = {
            "plateNumber": "JRT9289",
            "ownerIdValue": "900101145678",
            "selectedQuote": {"insurer": "Etiqa", "priceAfter": 872},
            "addOnsConfirmed": True,
        }
        assert ConversationState.from_client(blob).step == FlowStep.ROADTAX

    def test_ai_context_masks_owner_id(self, state_at, now):
        context = state_at(FlowStep.ADDONS, now=now).ai_context(now)
        assert "900101******" in context
        assert "900101145678" not in context
        assert "Current Step: addons" in context


def test_quote_for_unknown_key():
    assert quote_for_key("nope") is None
