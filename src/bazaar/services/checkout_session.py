"""Checkout session: the pricing inputs a buyer edits before placing an order."""

import logging
from typing import Iterable

from cachetools import TTLCache

from bazaar.core.config import settings
from bazaar.schemas.cart import LineItem
from bazaar.schemas.pricing import CampaignDiscount, PricingResult, PricingRules
from bazaar.schemas.voucher import VoucherErrorCode, VoucherValidation
from bazaar.services.pricing import ZERO, price_checkout
from bazaar.services.ports import DiscountLookup, VoucherBackend
from bazaar.services.selection import selected_lines
from bazaar.services.voucher_service import AppliedVouchers, VoucherError

logger = logging.getLogger(__name__)


class CheckoutSession:
    """Holds lines, vouchers and the Bazcoin toggle for one checkout.

    Campaign discounts are looked up once per product and cached for the
    lifetime of the session (bounded by a TTL so a long-open checkout picks
    up campaign changes).
    """

    def __init__(
        self,
        buyer_id: str,
        lines: Iterable[LineItem],
        discounts: DiscountLookup,
        vouchers: VoucherBackend,
        bazcoin_balance: int = 0,
        rules: PricingRules | None = None,
        cache_ttl: int | None = None,
    ):
        self.buyer_id = buyer_id
        self.discounts = discounts
        self.vouchers = vouchers
        self.bazcoin_balance = bazcoin_balance
        self.rules = rules or PricingRules.from_settings()
        self.applied = AppliedVouchers()
        self.use_bazcoins = False
        self._lines = selected_lines(lines)
        self._discount_cache: TTLCache = TTLCache(
            maxsize=1024,
            ttl=cache_ttl if cache_ttl is not None else settings.CHECKOUT_SESSION_TTL_SECONDS,
        )

    @property
    def lines(self) -> list[LineItem]:
        return list(self._lines)

    def set_lines(self, lines: Iterable[LineItem]) -> None:
        """Replace the lines being checked out; only included lines are kept."""
        self._lines = selected_lines(lines)

    def set_use_bazcoins(self, enabled: bool) -> None:
        self.use_bazcoins = enabled

    async def active_discounts(self) -> dict[str, CampaignDiscount]:
        """Get campaign discounts for the session's products, hitting the lookup once per product."""
        product_ids = list(dict.fromkeys(line.product_id for line in self._lines))
        missing = [product_id for product_id in product_ids if product_id not in self._discount_cache]
        if missing:
            found = await self.discounts.get_active_discounts_for_products(missing)
            for product_id in missing:
                # None marks "no campaign" so the product is not looked up again
                self._discount_cache[product_id] = found.get(product_id)

        discounts = {}
        for product_id in product_ids:
            discount = self._discount_cache.get(product_id)
            if discount is not None:
                discounts[product_id] = discount
        return discounts

    async def quote(self) -> PricingResult:
        """Price the session's lines with its current vouchers and Bazcoin toggle."""
        return price_checkout(
            self._lines,
            await self.active_discounts(),
            seller_vouchers=self.applied.seller_vouchers,
            platform_voucher=self.applied.platform,
            use_bazcoins=self.use_bazcoins,
            bazcoin_balance=self.bazcoin_balance,
            rules=self.rules,
        )

    async def apply_voucher(self, code: str, seller_id: str | None = None) -> VoucherValidation:
        """Validate a code and hold it in its scope, replacing any voucher already there.

        Args:
            code: Voucher code typed by the buyer
            seller_id: Seller group the voucher is applied to; None for platform

        Returns:
            The validation outcome; on failure nothing changes
        """
        pricing = await self.quote()
        if seller_id is None:
            order_value = pricing.subtotal_after_campaign
        else:
            order_value = next(
                (s.subtotal_after_campaign for s in pricing.sellers if s.seller_id == seller_id),
                ZERO,
            )

        try:
            validation = await self.vouchers.validate(code, order_value, self.buyer_id, seller_id)
        except Exception as e:
            logger.error(f"Voucher lookup for {code!r} failed: {e}")
            return VoucherValidation(error_code=VoucherErrorCode.UNKNOWN)

        if not validation.is_valid:
            logger.info(f"Voucher {code!r} rejected: {validation.error_code.value}")
            return validation

        try:
            replaced = self.applied.apply(validation.voucher, seller_id)
        except VoucherError as e:
            logger.info(f"Voucher {code!r} rejected locally: {e.code.value}")
            return VoucherValidation(error_code=e.code)

        if replaced is not None:
            logger.debug(f"Voucher {replaced.code} replaced by {validation.voucher.code}")
        return validation

    def remove_voucher(self, seller_id: str | None = None) -> None:
        self.applied.remove(seller_id)
