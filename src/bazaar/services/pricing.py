"""Checkout pricing pipeline.

Stages run in a fixed order because each one reads the outputs of the ones
before it:

1. original subtotal
2. campaign discounts
3. subtotal after campaign
4. shipping fee
5. voucher discounts (seller scoped first, then platform)
6. Bazcoin redemption
7. tax on the original subtotal
8. grand total
9. Bazcoins earned

Every function in this module is pure: no I/O, no clock, no globals when
rules are passed in. Missing discounts or vouchers contribute zero instead of
raising.
"""

from decimal import ROUND_DOWN, ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping

from bazaar.schemas.cart import LineItem
from bazaar.schemas.pricing import (
    CampaignDiscount,
    FixedCampaignDiscount,
    FixedVoucher,
    LineDiscount,
    LinePricing,
    PercentageCampaignDiscount,
    PercentageVoucher,
    PricingResult,
    PricingRules,
    SellerPricing,
    ShippingVoucher,
    Voucher,
)
from bazaar.services.selection import selected_lines

ZERO = Decimal("0")
CENT = Decimal("0.01")
UNIT = Decimal("1")


def round_currency(amount: Decimal) -> Decimal:
    """Round half up to a whole currency unit."""
    return amount.quantize(UNIT, rounding=ROUND_HALF_UP)


def calculate_line_discount(
    unit_price: Decimal, quantity: int, discount: CampaignDiscount | None
) -> LineDiscount:
    """Apply one campaign discount to one line.

    Percentage discounts honour the per-unit cap; the discount never exceeds
    the unit price, so the discounted unit price is never negative.
    """
    unit_price = max(ZERO, unit_price)
    quantity = max(0, quantity)
    if discount is None or unit_price <= 0 or quantity <= 0:
        return LineDiscount(
            discount_per_unit=ZERO,
            discount_total=ZERO,
            discounted_unit_price=unit_price,
        )

    if isinstance(discount, PercentageCampaignDiscount):
        raw = unit_price * discount.value / 100
        if discount.max_discount_amount is not None:
            raw = min(raw, max(ZERO, discount.max_discount_amount))
    elif isinstance(discount, FixedCampaignDiscount):
        raw = discount.value
    else:
        raw = ZERO

    per_unit = min(unit_price, max(ZERO, raw)).quantize(CENT, rounding=ROUND_HALF_UP)
    return LineDiscount(
        discount_per_unit=per_unit,
        discount_total=per_unit * quantity,
        discounted_unit_price=max(ZERO, unit_price - per_unit),
    )


def calculate_voucher_discount(voucher: Voucher | None, base: Decimal) -> Decimal:
    """Monetary discount a voucher grants on ``base``.

    A voucher whose minimum order value is not met grants nothing. Shipping
    vouchers only waive the shipping fee and always return zero here.
    """
    if voucher is None or base <= 0 or base < voucher.min_order_value:
        return ZERO

    if isinstance(voucher, PercentageVoucher):
        amount = round_currency(base * voucher.value / 100)
        if voucher.max_discount is not None:
            amount = min(amount, voucher.max_discount)
        return min(max(ZERO, amount), base)
    if isinstance(voucher, FixedVoucher):
        return min(max(ZERO, voucher.value), base)
    return ZERO


def voucher_waives_shipping(voucher: Voucher | None, base: Decimal) -> bool:
    return (
        isinstance(voucher, ShippingVoucher)
        and base > 0
        and base >= voucher.min_order_value
    )


def allocate(
    total: Decimal,
    weights: list[Decimal],
    quantum: Decimal = CENT,
    caps: list[Decimal] | None = None,
) -> list[Decimal]:
    """Split ``total`` across ``weights`` proportionally.

    Shares are rounded down to ``quantum`` and always sum to ``total``.
    Without ``caps`` the last share takes the remainder. With ``caps`` no
    share exceeds its cap (rounded down to ``quantum``) and the remainder goes
    to the shares with the most room left, so ``total`` must not exceed the
    sum of the rounded caps.
    """
    if not weights:
        return []
    weight_sum = sum(weights, ZERO)

    if caps is None:
        if weight_sum <= 0 or total == 0:
            return [ZERO] * (len(weights) - 1) + [total]
        shares = [
            (total * weight / weight_sum).quantize(quantum, rounding=ROUND_DOWN)
            for weight in weights[:-1]
        ]
        shares.append(total - sum(shares, ZERO))
        return shares

    limits = [max(ZERO, cap).quantize(quantum, rounding=ROUND_DOWN) for cap in caps]
    if weight_sum > 0:
        shares = [
            min(limit, (total * weight / weight_sum).quantize(quantum, rounding=ROUND_DOWN))
            for weight, limit in zip(weights, limits)
        ]
    else:
        shares = [ZERO] * len(weights)

    remainder = total - sum(shares, ZERO)
    by_room = sorted(range(len(shares)), key=lambda i: limits[i] - shares[i], reverse=True)
    for index in by_room:
        if remainder <= 0:
            break
        extra = min(remainder, limits[index] - shares[index])
        shares[index] += extra
        remainder -= extra
    return shares


def _seller_order(lines: Iterable[LineItem]) -> list[str]:
    order: list[str] = []
    for line in lines:
        if line.seller_id not in order:
            order.append(line.seller_id)
    return order


def price_checkout(
    lines: Iterable[LineItem],
    discounts: Mapping[str, CampaignDiscount] | None = None,
    *,
    seller_vouchers: Mapping[str, Voucher] | None = None,
    platform_voucher: Voucher | None = None,
    use_bazcoins: bool = False,
    bazcoin_balance: int = 0,
    rules: PricingRules | None = None,
) -> PricingResult:
    """Price the included lines of a checkout.

    Args:
        lines: Cart lines; only lines with ``included`` set are priced
        discounts: Active campaign discount per product id
        seller_vouchers: At most one voucher per seller id, applied to that
            seller's subtotal after campaign discounts
        platform_voucher: Unscoped voucher, applied to what remains after
            seller vouchers
        use_bazcoins: Whether the buyer redeems Bazcoins
        bazcoin_balance: The buyer's current Bazcoin balance
        rules: Business constants; defaults to the stock rules

    Returns:
        Order totals plus per-line and per-seller breakdowns. Seller slices
        sum exactly to the order totals.
    """
    rules = rules or PricingRules()
    discounts = discounts or {}
    seller_vouchers = seller_vouchers or {}
    selected = selected_lines(lines)

    # 1-3. Line pricing and subtotals
    priced: list[LinePricing] = []
    for line in selected:
        discount = discounts.get(line.product_id)
        unit_price = line.effective_original_price
        result = calculate_line_discount(unit_price, line.quantity, discount)
        priced.append(
            LinePricing(
                product_id=line.product_id,
                variant_id=line.variant_id,
                seller_id=line.seller_id,
                quantity=line.quantity,
                unit_price=unit_price,
                campaign_discount_per_unit=result.discount_per_unit,
                campaign_discount_total=result.discount_total,
                discounted_unit_price=result.discounted_unit_price,
                campaign_id=discount.campaign_id if discount and result.discount_total > 0 else None,
            )
        )

    sellers = _seller_order(selected)
    seller_original = {seller_id: ZERO for seller_id in sellers}
    seller_campaign = {seller_id: ZERO for seller_id in sellers}
    for line in priced:
        seller_original[line.seller_id] += line.unit_price * line.quantity
        seller_campaign[line.seller_id] += line.campaign_discount_total
    seller_sac = {
        seller_id: max(ZERO, seller_original[seller_id] - seller_campaign[seller_id])
        for seller_id in sellers
    }

    original_subtotal = sum(seller_original.values(), ZERO)
    campaign_total = sum(seller_campaign.values(), ZERO)
    subtotal_after_campaign = max(ZERO, original_subtotal - campaign_total)

    # 4. Shipping
    shipping_fee = ZERO
    if selected and not all(line.free_shipping for line in selected):
        shipping_fee = rules.checkout_shipping_fee

    # 5. Vouchers
    applied: list[str] = []
    seller_voucher_discount = {seller_id: ZERO for seller_id in sellers}
    seller_voucher_id: dict[str, str | None] = {seller_id: None for seller_id in sellers}
    waive_shipping = False
    for seller_id, voucher in seller_vouchers.items():
        if seller_id not in seller_sac or voucher.seller_id != seller_id:
            continue
        base = seller_sac[seller_id]
        amount = calculate_voucher_discount(voucher, base)
        waives = voucher_waives_shipping(voucher, base)
        if amount > 0 or waives:
            seller_voucher_discount[seller_id] = amount
            seller_voucher_id[seller_id] = voucher.voucher_id
            applied.append(voucher.voucher_id)
            waive_shipping = waive_shipping or waives

    seller_voucher_total = sum(seller_voucher_discount.values(), ZERO)
    platform_base = max(ZERO, subtotal_after_campaign - seller_voucher_total)
    platform_discount = ZERO
    if platform_voucher is not None and platform_voucher.is_platform:
        platform_discount = calculate_voucher_discount(platform_voucher, platform_base)
        waives = voucher_waives_shipping(platform_voucher, platform_base)
        if platform_discount > 0 or waives:
            applied.append(platform_voucher.voucher_id)
            waive_shipping = waive_shipping or waives

    if waive_shipping:
        shipping_fee = ZERO
    voucher_discount = seller_voucher_total + platform_discount

    seller_base = [seller_sac[s] - seller_voucher_discount[s] for s in sellers]
    platform_shares = allocate(platform_discount, seller_base, caps=seller_base)
    seller_remaining = [base - share for base, share in zip(seller_base, platform_shares)]

    # 6. Bazcoins, whole units that fit within each seller's remaining amount
    bazcoins_redeemed = 0
    if use_bazcoins:
        cap = sum(
            int(max(ZERO, remaining).to_integral_value(rounding=ROUND_FLOOR))
            for remaining in seller_remaining
        )
        bazcoins_redeemed = max(0, min(bazcoin_balance, cap))

    # 7-9. Tax, grand total, earned
    tax = round_currency(original_subtotal * rules.tax_rate)
    grand_total = max(
        ZERO,
        original_subtotal
        + shipping_fee
        + tax
        - campaign_total
        - voucher_discount
        - bazcoins_redeemed,
    )
    bazcoins_earned = int(
        (subtotal_after_campaign / rules.bazcoin_earn_divisor).to_integral_value(
            rounding=ROUND_FLOOR
        )
    )

    seller_slices = _seller_slices(
        sellers,
        selected,
        original=seller_original,
        campaign=seller_campaign,
        after_campaign=seller_sac,
        seller_voucher_discount=seller_voucher_discount,
        seller_voucher_id=seller_voucher_id,
        platform_shares=platform_shares,
        remaining=seller_remaining,
        shipping_fee=shipping_fee,
        bazcoins_redeemed=bazcoins_redeemed,
        bazcoins_earned=bazcoins_earned,
        tax=tax,
    )

    return PricingResult(
        original_subtotal=original_subtotal,
        campaign_discount_total=campaign_total,
        subtotal_after_campaign=subtotal_after_campaign,
        shipping_fee=shipping_fee,
        voucher_discount=voucher_discount,
        bazcoins_redeemed=bazcoins_redeemed,
        tax=tax,
        grand_total=grand_total,
        bazcoins_earned=bazcoins_earned,
        lines=priced,
        sellers=seller_slices,
        applied_voucher_ids=applied,
    )


def _seller_slices(
    sellers: list[str],
    selected: list[LineItem],
    *,
    original: dict[str, Decimal],
    campaign: dict[str, Decimal],
    after_campaign: dict[str, Decimal],
    seller_voucher_discount: dict[str, Decimal],
    seller_voucher_id: dict[str, str | None],
    platform_shares: list[Decimal],
    remaining: list[Decimal],
    shipping_fee: Decimal,
    bazcoins_redeemed: int,
    bazcoins_earned: int,
    tax: Decimal,
) -> list[SellerPricing]:
    """Break order-level amounts down per seller.

    The order shipping fee is carried by the first seller with a line that
    does not ship free. Bazcoins, earnings and tax are spread in proportion
    to each seller's share of the respective base; Bazcoin shares never exceed
    what the seller has left to pay after vouchers.
    """
    if not sellers:
        return []

    bazcoin_shares = allocate(
        Decimal(bazcoins_redeemed), remaining, quantum=UNIT, caps=remaining
    )
    earned_shares = allocate(
        Decimal(bazcoins_earned), [after_campaign[s] for s in sellers], quantum=UNIT
    )
    tax_shares = allocate(tax, [original[s] for s in sellers])

    shipping_carrier = next(
        (line.seller_id for line in selected if not line.free_shipping), sellers[0]
    )

    slices = []
    for index, seller_id in enumerate(sellers):
        fee = shipping_fee if seller_id == shipping_carrier else ZERO
        voucher = seller_voucher_discount[seller_id] + platform_shares[index]
        total = (
            original[seller_id]
            + fee
            + tax_shares[index]
            - campaign[seller_id]
            - voucher
            - bazcoin_shares[index]
        )
        slices.append(
            SellerPricing(
                seller_id=seller_id,
                original_subtotal=original[seller_id],
                campaign_discount=campaign[seller_id],
                subtotal_after_campaign=after_campaign[seller_id],
                shipping_fee=fee,
                voucher_discount=voucher,
                bazcoins_redeemed=bazcoin_shares[index],
                bazcoins_earned=earned_shares[index],
                tax=tax_shares[index],
                total=total,
                voucher_id=seller_voucher_id[seller_id],
            )
        )
    return slices
