"""Cart aggregation: grouping lines by seller and line-level mutations.

All functions here are pure. They never mutate the lines they receive and
always return new lists, so callers can keep the previous list as a snapshot.
"""

from decimal import Decimal
from typing import Iterable

from bazaar.schemas.cart import LineItem, SellerGroup, VariantSnapshot
from bazaar.schemas.pricing import PricingRules
from bazaar.services.selection import selection_state


def seller_shipping_fee(
    items: list[LineItem], subtotal: Decimal, rules: PricingRules
) -> tuple[Decimal, bool]:
    """Return (shipping fee, free-shipping eligible) for one seller group."""
    eligible = any(item.free_shipping for item in items) or (
        subtotal >= rules.free_shipping_threshold
    )
    if eligible:
        return Decimal("0"), True
    return rules.seller_shipping_fee, False


def group_by_seller(
    items: Iterable[LineItem], rules: PricingRules | None = None
) -> dict[str, SellerGroup]:
    """Partition lines into seller groups.

    Groups appear in order of each seller's first line, and lines keep their
    original order inside a group.
    """
    rules = rules or PricingRules()
    buckets: dict[str, list[LineItem]] = {}
    for item in items:
        buckets.setdefault(item.seller_id, []).append(item)

    groups: dict[str, SellerGroup] = {}
    for seller_id, seller_items in buckets.items():
        subtotal = sum((item.line_total for item in seller_items), Decimal("0"))
        fee, eligible = seller_shipping_fee(seller_items, subtotal, rules)
        groups[seller_id] = SellerGroup(
            seller=seller_items[0].product.seller,
            items=seller_items,
            subtotal=subtotal,
            shipping_fee=fee,
            free_shipping_eligible=eligible,
            selection=selection_state(seller_items),
        )
    return groups


def order_groups_by_activity(groups: Iterable[SellerGroup]) -> list[SellerGroup]:
    """Most recently active seller first (max line creation time)."""
    return sorted(groups, key=lambda group: group.last_activity, reverse=True)


def clamp_quantity(target: int, stock: int) -> int:
    return max(0, min(target, stock))


def find_line(
    items: list[LineItem], product_id: str, variant_id: str | None = None
) -> LineItem | None:
    for item in items:
        if item.key == (product_id, variant_id):
            return item
    return None


def merge_line(items: list[LineItem], new_line: LineItem) -> list[LineItem]:
    """Add a line, summing into an existing line for the same product and variant.

    The merged quantity is clamped to stock. A merged line keeps its position,
    its item id and its creation time.
    """
    existing = find_line(items, new_line.product_id, new_line.variant_id)
    if existing is None:
        quantity = clamp_quantity(new_line.quantity, new_line.effective_stock)
        if quantity == 0:
            return list(items)
        return [*items, new_line.model_copy(update={"quantity": quantity})]

    quantity = clamp_quantity(
        existing.quantity + new_line.quantity, existing.effective_stock
    )
    return [
        item.model_copy(update={"quantity": quantity}) if item is existing else item
        for item in items
    ]


def set_quantity(
    items: list[LineItem], key: tuple[str, str | None], target: int
) -> tuple[list[LineItem], int]:
    """Set a line's quantity, clamped to [0, stock].

    Returns the new list and the quantity actually recorded. A clamp to zero
    drops the line. An unknown key leaves the list unchanged and records 0.
    """
    line = find_line(items, *key)
    if line is None:
        return list(items), 0

    quantity = clamp_quantity(target, line.effective_stock)
    if quantity == 0:
        return [item for item in items if item is not line], 0
    return [
        item.model_copy(update={"quantity": quantity}) if item is line else item
        for item in items
    ], quantity


def change_variant(
    items: list[LineItem],
    key: tuple[str, str | None],
    variant: VariantSnapshot,
    quantity: int | None = None,
) -> tuple[list[LineItem], LineItem | None]:
    """Point a line at another variant of the same product.

    If a line for the destination variant already exists, the source line is
    merged into it (quantities summed, source dropped). Otherwise the line is
    updated in place. Returns the new list and the line that now holds the
    quantity, or None if nothing was recorded.
    """
    source = find_line(items, *key)
    if source is None:
        return list(items), None

    moved = source.quantity if quantity is None else quantity
    target = find_line(items, source.product_id, variant.variant_id)

    if target is not None and target is not source:
        merged_quantity = clamp_quantity(target.quantity + moved, target.effective_stock)
        merged = target.model_copy(update={"quantity": merged_quantity})
        result = []
        for item in items:
            if item is source:
                continue
            result.append(merged if item is target else item)
        if merged_quantity == 0:
            result = [item for item in result if item is not merged]
            return result, None
        return result, merged

    updated = source.model_copy(update={"variant": variant})
    new_quantity = clamp_quantity(moved, updated.effective_stock)
    if new_quantity == 0:
        return [item for item in items if item is not source], None
    updated = updated.model_copy(update={"quantity": new_quantity})
    return [updated if item is source else item for item in items], updated


def remove_lines(
    items: list[LineItem], keys: Iterable[tuple[str, str | None]]
) -> list[LineItem]:
    doomed = set(keys)
    return [item for item in items if item.key not in doomed]


def cart_subtotal(items: Iterable[LineItem]) -> Decimal:
    return sum((item.line_total for item in items), Decimal("0"))
