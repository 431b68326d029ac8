"""
Unit tests for the function table the model may call, and the knowledge-base search behind two of them.
"""

from __future__ import annotations

from renewal.models.state import OwnerIdType
from renewal.tools.ai_functions import FUNCTION_DECLARATIONS, execute_function
from renewal.tools.knowledge_base import search_knowledge_base


class TestDeclarations:
    def test_every_declared_function_is_executable(self):
        for declaration in FUNCTION_DECLARATIONS:
            result = execute_function(declaration["name"], {})
            assert not (isinstance(result, dict) and "error" in result and "Unknown" in str(result["error"]))

    def test_unknown_function_returns_error_payload(self):
        assert execute_function("book_flight", {"to": "KUL"}) == {"error": "Unknown function: book_flight"}


class TestCatalogFunctions:
    def test_quotes_are_cheapest_first(self):
        quotes = execute_function("get_insurance_quotes")
        assert [q["insurer"] for q in quotes] == ["Takaful Ikhlas", "Etiqa", "Allianz"]
        assert quotes[0]["priceAfter"] == 796

    def test_add_ons(self):
        ids = {a["id"] for a in execute_function("get_available_addons")["addons"]}
        assert {"windscreen", "flood"} <= ids

    def test_road_tax_hides_delivery_for_nric(self):
        result = execute_function("get_roadtax_options", owner_id_type=OwnerIdType.NRIC)
        assert result["deliveryAvailable"] is False
        assert "12month-deliver" not in {o["id"] for o in result["options"]}

    def test_road_tax_delivery_for_company(self):
        result = execute_function("get_roadtax_options", owner_id_type=OwnerIdType.COMPANY_REG)
        delivered = {o["id"]: o["price"] for o in result["options"]}
        assert result["deliveryAvailable"] is True
        assert delivered["12month-deliver"] == 100

    def test_road_tax_without_owner_type(self):
        assert execute_function("get_roadtax_options")["deliveryAvailable"] is False


class TestCalculators:
    def test_total(self):
        result = execute_function("calculate_total_premium", {"basePremium": 796, "addOns": [100, 50], "roadTax": 90})
        assert result["total"] == 1036

    def test_total_ignores_garbage_numbers(self):
        assert execute_function("calculate_total_premium", {"basePremium": "abc"})["total"] == 0

    def test_ncd_caps_at_five_years(self):
        assert execute_function("calculate_ncd_entitlement", {"yearsNoClaims": 2})["ncdEntitlement"] == 30.0
        assert execute_function("calculate_ncd_entitlement", {"yearsNoClaims": 9})["ncdEntitlement"] == 55.0

    def test_validate_plate(self):
        ok = execute_function("validate_registration_number", {"registrationNumber": "jrt 9289"})
        assert ok == {"registrationNumber": "JRT9289", "isValid": True, "error": None}
        assert execute_function("validate_registration_number", {"registrationNumber": "hello"})["isValid"] is False

    def test_recommend_coverage(self):
        result = execute_function(
            "recommend_coverage", {"carValue": 45000, "location": "Shah Alam, Selangor", "usage": "e-hailing"}
        )
        types = [r["type"] for r in result["recommendations"]]
        assert types == ["Comprehensive", "Special Perils (Flood)", "E-hailing Cover"]


class TestKnowledge:
    def test_search_ranks_keyword_match_first(self):
        hits = search_knowledge_base("windscreen")
        assert hits[0].entry.id == "windscreen"

    def test_short_words_are_ignored(self):
        assert search_knowledge_base("is it ok") == []

    def test_search_function_payload(self):
        result = execute_function("search_insurance_knowledge", {"query": "windscreen"})
        assert result["found"] is True
        assert "NCD" in result["results"][0]["answer"]

    def test_search_function_no_hits(self):
        assert execute_function("search_insurance_knowledge", {"query": "zz"})["found"] is False

    def test_explain_unknown_term(self):
        result = execute_function("explain_insurance_term", {"term": "xyzzyq"})
        assert result["explanation"] == "No stored explanation for xyzzyq."
