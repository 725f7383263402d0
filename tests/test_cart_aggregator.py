"""Tests for seller grouping and line-level cart mutations."""

from decimal import Decimal

import pytest

from bazaar.schemas.pricing import PricingRules
from bazaar.services.cart_aggregator import (
    cart_subtotal,
    change_variant,
    clamp_quantity,
    group_by_seller,
    merge_line,
    order_groups_by_activity,
    remove_lines,
    set_quantity,
)
from conftest import make_line, make_product, make_variant


class TestGroupBySeller:
    """Test partitioning lines into seller groups."""

    def test_two_sellers_shipping(self):
        """Seller A pays the flat fee below threshold; B ships free via a free-shipping line.

        A: 500 x1 + 300 x2 = 1100, B: 200 x1 (free shipping).
        """
        rules = PricingRules(free_shipping_threshold=Decimal("2000"))
        items = [
            make_line("500", 1, seller_id="A"),
            make_line("300", 2, seller_id="A"),
            make_line("200", 1, seller_id="B", free_shipping=True),
        ]

        groups = group_by_seller(items, rules)

        assert list(groups) == ["A", "B"]
        assert groups["A"].subtotal == Decimal("1100")
        assert groups["A"].shipping_fee == rules.seller_shipping_fee
        assert groups["A"].free_shipping_eligible is False
        assert groups["B"].shipping_fee == Decimal("0")
        assert groups["B"].free_shipping_eligible is True
        total_shipping = sum(g.shipping_fee for g in groups.values())
        assert total_shipping == rules.seller_shipping_fee

    def test_threshold_makes_shipping_free(self, rules):
        """A group whose subtotal meets the threshold ships free."""
        groups = group_by_seller([make_line("1000", 1, seller_id="A")], rules)

        assert groups["A"].shipping_fee == Decimal("0")
        assert groups["A"].free_shipping_eligible is True

    def test_subtotals_sum_to_cart_total(self):
        """Grouping never loses or double-counts a line."""
        items = [
            make_line("99.50", 3, seller_id="A"),
            make_line("10", 1, seller_id="B"),
            make_line("42.25", 2, seller_id="C"),
            make_line("1", 7, seller_id="A"),
        ]

        groups = group_by_seller(items)

        assert sum(g.subtotal for g in groups.values()) == cart_subtotal(items)
        assert sum(len(g.items) for g in groups.values()) == len(items)

    def test_order_inside_group_is_stable(self):
        first = make_line("1", seller_id="A")
        other = make_line("2", seller_id="B")
        second = make_line("3", seller_id="A")

        groups = group_by_seller([first, other, second])

        assert groups["A"].items == [first, second]

    def test_variant_price_overrides_product_price(self):
        line = make_line("100", 2, variant=make_variant(price="150"))

        groups = group_by_seller([line])

        assert groups["seller-a"].subtotal == Decimal("300")

    def test_empty_cart(self):
        assert group_by_seller([]) == {}


class TestActivityOrdering:
    """Test most-recently-active seller ordering."""

    def test_most_recent_seller_first(self):
        old_a = make_line(seller_id="A")
        b = make_line(seller_id="B")
        new_a = make_line(seller_id="A")

        ordered = order_groups_by_activity(group_by_seller([old_a, b, new_a]).values())

        assert [g.seller_id for g in ordered] == ["A", "B"]


class TestQuantityChanges:
    """Test clamping of quantity changes."""

    @pytest.mark.parametrize(
        "target,stock,expected",
        [(3, 10, 3), (15, 10, 10), (-2, 10, 0), (0, 10, 0), (5, 0, 0)],
    )
    def test_clamp_quantity(self, target, stock, expected):
        assert clamp_quantity(target, stock) == expected

    def test_set_quantity_above_stock_clamps(self):
        line = make_line(stock=4)

        items, recorded = set_quantity([line], line.key, 9)

        assert recorded == 4
        assert items[0].quantity == 4

    def test_set_quantity_zero_removes_line(self):
        line = make_line()
        keep = make_line()

        items, recorded = set_quantity([line, keep], line.key, 0)

        assert recorded == 0
        assert items == [keep]

    def test_set_quantity_unknown_key(self):
        line = make_line()

        items, recorded = set_quantity([line], ("missing", None), 2)

        assert recorded == 0
        assert items == [line]

    def test_set_quantity_does_not_mutate_input(self):
        line = make_line(quantity=1)
        original = [line]

        set_quantity(original, line.key, 5)

        assert original[0].quantity == 1

    def test_uses_variant_stock(self):
        line = make_line(stock=100, variant=make_variant(stock=2))

        _, recorded = set_quantity([line], line.key, 50)

        assert recorded == 2


class TestMergeLine:
    """Test adding lines with merge-on-duplicate."""

    def test_same_product_and_variant_sums(self):
        product = make_product(stock=10)
        variant = make_variant(stock=10)
        existing = make_line(product=product, variant=variant, quantity=2, item_id="i1")

        items = merge_line([existing], make_line(product=product, variant=variant, quantity=3))

        assert len(items) == 1
        assert items[0].quantity == 5
        assert items[0].item_id == "i1"
        assert items[0].created_at == existing.created_at

    def test_merge_clamps_to_stock(self):
        product = make_product(stock=4)
        existing = make_line(product=product, quantity=3)

        items = merge_line([existing], make_line(product=product, quantity=3))

        assert items[0].quantity == 4

    def test_other_variant_is_new_line(self):
        product = make_product()
        red = make_line(product=product, variant=make_variant("Red"))

        items = merge_line([red], make_line(product=product, variant=make_variant("Blue")))

        assert len(items) == 2

    def test_out_of_stock_adds_nothing(self):
        items = merge_line([], make_line(stock=0))

        assert items == []


class TestChangeVariant:
    """Test moving a line to another variant."""

    def test_in_place(self):
        product = make_product()
        red = make_variant("Red", stock=10)
        blue = make_variant("Blue", stock=10, price="120")
        line = make_line(product=product, variant=red, quantity=2, item_id="i1")

        items, updated = change_variant([line], line.key, blue)

        assert len(items) == 1
        assert updated.variant_id == blue.variant_id
        assert updated.quantity == 2
        assert updated.item_id == "i1"
        assert updated.effective_price == Decimal("120")

    def test_merges_into_existing_destination(self):
        product = make_product()
        red = make_variant("Red", stock=10)
        blue = make_variant("Blue", stock=10)
        red_line = make_line(product=product, variant=red, quantity=2)
        blue_line = make_line(product=product, variant=blue, quantity=3)

        items, merged = change_variant([red_line, blue_line], red_line.key, blue)

        assert len(items) == 1
        assert merged.variant_id == blue.variant_id
        assert merged.quantity == 5

    def test_clamps_to_destination_stock(self):
        product = make_product()
        line = make_line(product=product, variant=make_variant("Red", stock=10), quantity=8)

        items, updated = change_variant([line], line.key, make_variant("Blue", stock=3))

        assert updated.quantity == 3

    def test_explicit_quantity_override(self):
        product = make_product()
        line = make_line(product=product, variant=make_variant("Red"), quantity=8)

        _, updated = change_variant([line], line.key, make_variant("Blue"), quantity=1)

        assert updated.quantity == 1

    def test_destination_out_of_stock_removes_line(self):
        product = make_product()
        line = make_line(product=product, variant=make_variant("Red"))

        items, updated = change_variant([line], line.key, make_variant("Blue", stock=0))

        assert items == []
        assert updated is None


def test_remove_lines():
    a, b, c = make_line(), make_line(), make_line()

    assert remove_lines([a, b, c], [a.key, c.key]) == [b]
