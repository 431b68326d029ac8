"""
Unit tests for rebuilding state from the transcript when no state blob was round-tripped.
"""

from __future__ import annotations

from renewal.models.state import FlowStep, OwnerIdType
from renewal.utils.history_extractors import reconstruct_state


def _user(text):
    return {"role": "user", "content": text}


def _assistant(text, metadata=None):
    return {"role": "assistant", "content": text, "metadata": metadata}


IDENTIFIED = [_user("JRT 9289"), _assistant("Thanks! Your IC please?"), _user("IC 900101-14-5678")]


class TestIdentifiers:
    def test_empty_history(self):
        assert reconstruct_state([]).step == FlowStep.START

    def test_plate_and_owner_id(self):
        state = reconstruct_state(IDENTIFIED)
        assert state.plate_number == "JRT9289"
        assert state.owner_id_value == "900101145678"
        assert state.owner_id_type == OwnerIdType.NRIC
        assert state.step == FlowStep.QUOTES

    def test_first_plate_wins(self):
        state = reconstruct_state([_user("JRT 9289"), _user("sorry it is WXY 1234")])
        assert state.plate_number == "JRT9289"

    def test_assistant_text_is_not_a_source(self):
        assert reconstruct_state([_assistant("Example plate: WXY 1234")]).plate_number is None


class TestMetadata:
    def test_selected_quote_from_metadata(self):
        meta = {"selectedQuote": {"insurer": "Etiqa", "priceAfter": 872, "insurerKey": "etiqa"}}
        state = reconstruct_state(IDENTIFIED + [_assistant("Etiqa selected.", meta)])
        assert state.selected_quote.insurer == "Etiqa"
        assert state.step == FlowStep.ADDONS

    def test_bad_record_does_not_discard_the_others(self):
        meta = {
            "selectedQuote": {"insurer": "Etiqa", "priceAfter": -5},
            "selectedRoadTax": {"id": "12month-digital", "name": "12-Month (Digital Only)", "price": 90},
        }
        state = reconstruct_state(IDENTIFIED + [_assistant("Noted.", meta)])
        assert state.selected_quote is None
        assert state.selected_road_tax.price == 90

    def test_later_metadata_overwrites(self):
        first = {"selectedQuote": {"insurer": "Etiqa", "priceAfter": 872}}
        second = {"selectedQuote": {"insurer": "Allianz", "priceAfter": 920}}
        state = reconstruct_state(IDENTIFIED + [_assistant("a", first), _assistant("b", second)])
        assert state.selected_quote.insurer == "Allianz"


class TestExplicitSelection:
    def test_selection_verb_with_insurer(self):
        state = reconstruct_state(IDENTIFIED + [_user("I'll go with Allianz")])
        assert state.selected_quote.insurer_key == "allianz"
        assert state.selected_quote.price_after == 920

    def test_question_is_not_a_selection(self):
        assert reconstruct_state(IDENTIFIED + [_user("what about Allianz?")]).selected_quote is None

    def test_indecision_is_not_a_selection(self):
        state = reconstruct_state(IDENTIFIED + [_user("I can't choose between etiqa and allianz")])
        assert state.selected_quote is None

    def test_interest_is_not_a_selection(self):
        assert reconstruct_state(IDENTIFIED + [_user("I like Etiqa")]).selected_quote is None
