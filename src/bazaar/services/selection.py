"""Selection tracking: which cart lines are included in the next checkout.

Selection state is always folded from the lines themselves and never stored
separately.
"""

from typing import Iterable

from bazaar.schemas.cart import LineItem, SelectionState


def selection_state(items: Iterable[LineItem]) -> SelectionState:
    total = 0
    included = 0
    for item in items:
        total += 1
        if item.included:
            included += 1
    if included == 0:
        return SelectionState.NONE
    if included == total:
        return SelectionState.ALL
    return SelectionState.SOME


def seller_selection(items: Iterable[LineItem], seller_id: str) -> SelectionState:
    return selection_state(item for item in items if item.seller_id == seller_id)


def selected_lines(items: Iterable[LineItem]) -> list[LineItem]:
    return [item for item in items if item.included]


def toggle(
    items: list[LineItem], product_id: str, variant_id: str | None = None
) -> list[LineItem]:
    """Flip inclusion of a single line. Nothing else on the line changes."""
    key = (product_id, variant_id)
    return [
        item.model_copy(update={"included": not item.included})
        if item.key == key
        else item
        for item in items
    ]


def toggle_seller(items: list[LineItem], seller_id: str, included: bool) -> list[LineItem]:
    return [
        item.model_copy(update={"included": included})
        if item.seller_id == seller_id and item.included != included
        else item
        for item in items
    ]


def select_all(items: list[LineItem], included: bool) -> list[LineItem]:
    return [
        item.model_copy(update={"included": included}) if item.included != included else item
        for item in items
    ]
