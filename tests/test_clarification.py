"""
Unit tests for build_clarification_question (one deterministic ask per missing item).
"""

from __future__ import annotations

from renewal.utils.clarification import build_clarification_question


class TestClarification:
    def test_both_identifiers_asked_together(self):
        q = build_clarification_question(["plate_number", "owner_id"])
        assert "1. **Car Plate Number**" in q
        assert "2. **Owner Identification Number**" in q

    def test_single_identifier(self):
        assert "Owner Identification Number" in build_clarification_question(["owner_id"])
        assert "Car Plate Number" in build_clarification_question(["plate_number"])

    def test_only_missing_details_are_listed(self):
        q = build_clarification_question(["phone", "address"])
        assert "1. **Phone number**" in q
        assert "2. **Delivery address**" in q
        assert "Email" not in q

    def test_otp(self):
        assert "OTP" in build_clarification_question(["otp_verified"])

    def test_nothing_missing(self):
        assert build_clarification_question([]) == "What would you like to do next with your renewal?"
