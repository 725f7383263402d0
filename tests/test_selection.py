"""Tests for selection tracking."""

from bazaar.schemas.cart import SelectionState
from bazaar.services.selection import (
    select_all,
    selected_lines,
    selection_state,
    seller_selection,
    toggle,
    toggle_seller,
)
from conftest import make_line


class TestSelectionState:
    """Test folding inclusion flags into none/some/all."""

    def test_states(self):
        on = make_line(included=True)
        off = make_line(included=False)

        assert selection_state([on, on]) == SelectionState.ALL
        assert selection_state([on, off]) == SelectionState.SOME
        assert selection_state([off, off]) == SelectionState.NONE
        assert selection_state([]) == SelectionState.NONE

    def test_seller_selection_ignores_other_sellers(self):
        items = [
            make_line(seller_id="A", included=True),
            make_line(seller_id="B", included=False),
        ]

        assert seller_selection(items, "A") == SelectionState.ALL
        assert seller_selection(items, "B") == SelectionState.NONE


class TestToggles:
    """Test selection mutations."""

    def test_toggle_only_flips_inclusion(self):
        line = make_line("250", 3, included=True)

        (toggled,) = toggle([line], line.product_id, line.variant_id)

        assert toggled.included is False
        assert toggled.quantity == line.quantity
        assert toggled.effective_price == line.effective_price
        assert toggled.seller_id == line.seller_id
        assert toggled.item_id == line.item_id

    def test_toggle_twice_restores(self):
        line = make_line(included=False)

        items = toggle(toggle([line], line.product_id), line.product_id)

        assert items[0].included is False

    def test_toggle_seller(self):
        items = [
            make_line(seller_id="A", included=False),
            make_line(seller_id="A", included=True),
            make_line(seller_id="B", included=False),
        ]

        result = toggle_seller(items, "A", True)

        assert [i.included for i in result] == [True, True, False]

    def test_select_all_and_selected_lines(self):
        items = [make_line(included=False), make_line(included=True)]

        assert len(selected_lines(select_all(items, True))) == 2
        assert selected_lines(select_all(items, False)) == []

    def test_inputs_not_mutated(self):
        items = [make_line(included=False)]

        select_all(items, True)

        assert items[0].included is False
