"""
Unit tests for the free-text field extractors (plate, owner ID tiers, email, phone, address).
"""

from __future__ import annotations

import re

import pytest

from renewal.models.state import OwnerIdType
from renewal.utils.extractors import (
    contains_personal_info,
    extract_address,
    extract_email,
    extract_owner_identification,
    extract_personal_info,
    extract_phone,
    extract_registration_number,
    extract_vehicle_info,
)


class TestRegistrationNumber:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("My car is JRT 9289", "JRT9289"),
            ("wxy1234", "WXY1234"),
            ("plate 1ABC234 please", "1ABC234"),
        ],
    )
    def test_extracts_and_normalizes(self, text, expected):
        assert extract_registration_number(text) == expected

    @pytest.mark.parametrize("text", ["RM 796 is fine", "NCD 20 right?", "IC 1234", "hello there", ""])
    def test_amounts_and_plain_text_are_not_plates(self, text):
        assert extract_registration_number(text) is None

    def test_non_string_input(self):
        assert extract_registration_number(None) is None


class TestOwnerIdentification:
    def test_nric_with_dashes(self):
        match = extract_owner_identification("IC 900101-14-5678")
        assert match.value == "900101145678"
        assert match.type == OwnerIdType.NRIC

    def test_labeled_passport_is_foreign_id(self):
        match = extract_owner_identification("my passport number is A12345678")
        assert match.value == "A12345678"
        assert match.type == OwnerIdType.FOREIGN_ID

    def test_labeled_army_ic(self):
        match = extract_owner_identification("army ic T1234567")
        assert match.type == OwnerIdType.ARMY_IC

    def test_company_registration(self):
        match = extract_owner_identification("SSM 1234567-K")
        assert match.value == "1234567-K"
        assert match.type == OwnerIdType.COMPANY_REG

    def test_short_mixed_token_is_other_id(self):
        match = extract_owner_identification("A12345678")
        assert match.value == "A12345678"
        assert match.type == OwnerIdType.OTHER_ID

    def test_plate_is_not_read_as_owner_id(self):
        assert extract_owner_identification("WXY1234") is None

    def test_mobile_number_is_not_an_nric(self):
        assert extract_owner_identification("601234567890") is None
        assert extract_owner_identification("0123456789") is None

    @pytest.mark.parametrize("text", ["601015145405", "my ic is 601215-10-5405"])
    def test_nric_born_late_1960_reads_as_nric(self, text):
        # 6010..6012 prefixes share their first digits with 601x mobile numbers.
        match = extract_owner_identification(text)
        assert match.value == re.sub(r"\D", "", text)
        assert match.type == OwnerIdType.NRIC

    def test_implausible_birth_date_falls_through(self):
        # Month 13 is not a valid NRIC prefix; a long sentence gives no identity context either.
        assert extract_owner_identification("the order number for my parcel was 901301145678 last week") is None


class TestContactDetails:
    def test_email(self):
        assert extract_email("reach me at ali@example.com thanks") == "ali@example.com"
        assert extract_email("no email here") is None

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("+60 12-345 6789", "0123456789"),
            ("012-3456789", "0123456789"),
            ("call 011 2345 6789", "01123456789"),
        ],
    )
    def test_phone_normalized_to_local_form(self, text, expected):
        assert extract_phone(text) == expected

    def test_landline_is_not_a_mobile(self):
        assert extract_phone("03-1234 5678") is None

    def test_address_with_street_keyword(self):
        text = "No 12, Jalan Bukit Bintang, 55100 Kuala Lumpur"
        assert extract_address(text) == text

    def test_address_with_postcode_and_state(self):
        assert extract_address("my address is 8 Persiaran Mahameru, 40000 Shah Alam, Selangor") is not None

    def test_questions_are_never_addresses(self):
        assert extract_address("What address do you need for Jalan Ampang?") is None

    def test_phone_digits_do_not_count_as_postcode(self):
        assert extract_address("0123456789") is None

    def test_personal_info_bundle(self):
        info = extract_personal_info("ali@example.com 0123456789")
        assert info == {"email": "ali@example.com", "phone": "0123456789", "address": None}
        assert contains_personal_info("ali@example.com")
        assert not contains_personal_info("hello")


class TestVehicleInfo:
    def test_plate_and_nric_in_one_message(self):
        info = extract_vehicle_info("JRT 9289, IC 900101-14-5678")
        assert info["plate_number"] == "JRT9289"
        assert info["owner_id"] == "900101145678"
        assert info["owner_id_type"] == OwnerIdType.NRIC

    def test_nothing_found(self):
        assert extract_vehicle_info("hi there") == {"plate_number": None, "owner_id": None, "owner_id_type": None}
