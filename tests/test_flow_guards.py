"""
Flow guards: recommendation parsing, vehicle rejection, vehicle-card detection, delivery eligibility.
"""

from __future__ import annotations

import pytest

from renewal.models.message import Message
from renewal.models.state import OwnerIdType
from renewal.utils.flow_guards import (
    can_use_delivered_road_tax,
    is_vehicle_details_rejection,
    last_assistant_message,
    parse_recommended_insurer,
    role_and_content,
    was_last_assistant_vehicle_confirmation,
)

VEHICLE_CARD = "Found your vehicle! 🚗\n\n**Vehicle Reg.Num**: JRT9289\n\nIs this correct?"


class TestRecommendationParsing:
    def test_single_explicit_recommendation(self):
        assert parse_recommended_insurer("I recommend **Etiqa Insurance** for the free towing.") == "etiqa"
        assert parse_recommended_insurer("I'd go with Takaful Ikhlas at RM 796.") == "takaful"

    def test_choice_prompt_listing_everyone(self):
        text = "Takaful Ikhlas, Etiqa or Allianz: which would you like to pick?"
        assert parse_recommended_insurer(text) is None

    def test_two_insurers_is_ambiguous(self):
        assert parse_recommended_insurer("I recommend Etiqa or Allianz.") is None

    def test_no_recommendation_cue(self):
        assert parse_recommended_insurer("Allianz has a strong claims network.") is None

    def test_empty(self):
        assert parse_recommended_insurer(None) is None


class TestVehicleRejection:
    @pytest.mark.parametrize("text", ["no, that's wrong", "Nope", "this is not my car", "the details don't match"])
    def test_rejections(self, text):
        assert is_vehicle_details_rejection(text)

    @pytest.mark.parametrize("text", ["yes correct", "looks good", "", None])
    def test_non_rejections(self, text):
        assert not is_vehicle_details_rejection(text)


class TestHistoryHelpers:
    def test_role_and_content_accepts_dicts_and_models(self):
        assert role_and_content({"role": "user", "content": "hi"}) == ("user", "hi")
        assert role_and_content(Message(role="assistant", content="hello")) == ("assistant", "hello")
        assert role_and_content(object()) == ("", "")

    def test_last_assistant_message(self):
        history = [
            {"role": "assistant", "content": "first"},
            {"role": "user", "content": "x"},
            {"role": "assistant", "content": "second"},
            {"role": "user", "content": "y"},
        ]
        assert last_assistant_message(history) == "second"
        assert last_assistant_message([]) == ""

    def test_vehicle_card_only_counts_when_latest(self):
        history = [{"role": "assistant", "content": VEHICLE_CARD}, {"role": "user", "content": "hmm"}]
        assert was_last_assistant_vehicle_confirmation(history)

        history.append({"role": "assistant", "content": "Here are your options."})
        assert not was_last_assistant_vehicle_confirmation(history)


class TestDeliveryEligibility:
    @pytest.mark.parametrize("owner_id_type", [OwnerIdType.FOREIGN_ID, OwnerIdType.COMPANY_REG, "foreign_id"])
    def test_eligible(self, owner_id_type):
        assert can_use_delivered_road_tax(owner_id_type)

    @pytest.mark.parametrize("owner_id_type", [OwnerIdType.NRIC, OwnerIdType.ARMY_IC, OwnerIdType.OTHER_ID, None, "bogus"])
    def test_not_eligible(self, owner_id_type):
        assert not can_use_delivered_road_tax(owner_id_type)
