"""Checkout orchestration: validate, assemble the priced payload, submit, reconcile."""

import logging
import time
import uuid
from typing import Iterable

from bazaar.middleware.metrics import record_checkout
from bazaar.schemas.cart import LineItem
from bazaar.schemas.checkout import (
    CheckoutFailure,
    CheckoutLine,
    CheckoutPayload,
    OrderResult,
    PaymentMethod,
    PaymentSelection,
    ShippingAddress,
)
from bazaar.schemas.pricing import PricingResult
from bazaar.services.cart_store import CartStore
from bazaar.services.checkout_session import CheckoutSession
from bazaar.services.ports import OrderGateway

logger = logging.getLogger(__name__)

WALLET_NUMBER_MIN_LENGTH = 11

ADDRESS_FIELDS = {
    "full_name": "Full name is required",
    "street": "Street address is required",
    "city": "City is required",
    "province": "Province is required",
    "postal_code": "Postal code is required",
    "phone": "Phone number is required",
}


class CheckoutValidationError(Exception):
    """Form data failed local validation; carries one message per field."""

    def __init__(self, errors: dict[str, str]):
        self.errors = errors
        super().__init__("; ".join(f"{field}: {message}" for field, message in errors.items()))


def validate_shipping_address(address: ShippingAddress | None) -> dict[str, str]:
    if address is None:
        return dict(ADDRESS_FIELDS)
    return {
        field: message
        for field, message in ADDRESS_FIELDS.items()
        if not (getattr(address, field) or "").strip()
    }


def validate_payment(payment: PaymentSelection | None) -> dict[str, str]:
    """Check the chosen payment method.

    Card details are only required once a card number is entered, and wallet
    numbers only need a plausible length. No payment is processed here.
    """
    if payment is None or payment.method is None:
        return {"payment_method": "Please select a payment method"}

    errors: dict[str, str] = {}
    if payment.method == PaymentMethod.CARD and (payment.card_number or "").strip():
        if not (payment.card_name or "").strip():
            errors["card_name"] = "Cardholder name is required"
        if not (payment.expiry_date or "").strip():
            errors["expiry_date"] = "Expiry date is required"
        if not (payment.cvv or "").strip():
            errors["cvv"] = "CVV is required"
    elif payment.method in (PaymentMethod.GCASH, PaymentMethod.PAYMAYA):
        number = (payment.wallet_number or "").strip()
        if number and len(number) < WALLET_NUMBER_MIN_LENGTH:
            errors["wallet_number"] = f"Valid {payment.method.value} number required"
    return errors


def validate_checkout(
    address: ShippingAddress | None,
    payment: PaymentSelection | None,
    lines: Iterable[LineItem],
) -> dict[str, str]:
    """Collect every field error that blocks submission."""
    errors = validate_shipping_address(address)
    errors.update(validate_payment(payment))
    if not any(line.included and line.quantity > 0 for line in lines):
        errors["items"] = "Select at least one item to check out"
    return errors


def build_payload(
    buyer_id: str,
    lines: list[LineItem],
    pricing: PricingResult,
    address: ShippingAddress,
    payment: PaymentSelection,
    *,
    from_cart: bool = True,
    address_id: str | None = None,
    transaction_id: str | None = None,
) -> CheckoutPayload:
    """Assemble the order gateway request from lines and their pricing.

    Raises:
        ValueError: If the pricing does not cover exactly the given lines
    """
    priced = {(line.product_id, line.variant_id): line for line in pricing.lines}
    selected = [line for line in lines if line.included]
    if set(priced) != {line.key for line in selected}:
        raise ValueError("Pricing does not match the selected items")

    items = []
    for line in selected:
        price = priced[line.key]
        items.append(
            CheckoutLine(
                item_id=line.item_id,
                product_id=line.product_id,
                seller_id=line.seller_id,
                variant_id=line.variant_id,
                variant_name=line.variant.name if line.variant else None,
                product_name=line.product.name,
                image_url=(line.variant.image_url if line.variant else None) or line.product.image_url,
                quantity=line.quantity,
                unit_price=price.unit_price,
                campaign_discount_per_unit=price.campaign_discount_per_unit,
                campaign_id=price.campaign_id,
                registry_item_id=line.registry_item_id,
            )
        )

    return CheckoutPayload(
        transaction_id=transaction_id or str(uuid.uuid4()),
        buyer_id=buyer_id,
        items=items,
        sellers=pricing.sellers,
        total_amount=pricing.grand_total,
        tax=pricing.tax,
        shipping_fee=pricing.shipping_fee,
        discount_amount=pricing.voucher_discount,
        shipping_address=address,
        payment_method=payment.method,
        bazcoins_redeemed=pricing.bazcoins_redeemed,
        bazcoins_earned=pricing.bazcoins_earned,
        voucher_ids=pricing.applied_voucher_ids,
        selected_address_id=address_id,
        from_cart=from_cart,
    )


class CheckoutOrchestrator:
    """Drives one buyer's checkout submissions.

    Local state (cart lines, Bazcoin balance) changes only after the gateway
    confirms every seller order was placed. Any failure leaves it untouched
    so the buyer can simply submit again.
    """

    def __init__(self, gateway: OrderGateway, buyer_id: str, store: CartStore | None = None):
        self.gateway = gateway
        self.buyer_id = buyer_id
        self.store = store

    async def submit(
        self,
        address: ShippingAddress | None,
        payment: PaymentSelection | None,
        lines: list[LineItem],
        pricing: PricingResult,
        *,
        detached: bool = False,
        address_id: str | None = None,
    ) -> OrderResult | CheckoutFailure:
        """Validate and submit a priced selection.

        Args:
            address: Shipping address snapshot
            payment: Chosen payment method
            lines: The lines being bought
            pricing: Pricing of exactly those lines
            detached: True for "buy now" or gift flows that bypass the cart;
                the cart is then left alone on success
            address_id: Saved address the snapshot came from, if any

        Returns:
            OrderResult on success, CheckoutFailure otherwise
        """
        errors = validate_checkout(address, payment, lines)
        if errors:
            record_checkout("rejected")
            return CheckoutFailure(
                message="Please complete the highlighted fields.",
                field_errors=errors,
                retryable=False,
            )

        try:
            payload = build_payload(
                self.buyer_id,
                lines,
                pricing,
                address,
                payment,
                from_cart=not detached,
                address_id=address_id,
            )
        except ValueError as e:
            record_checkout("rejected")
            return CheckoutFailure(message=str(e), retryable=True)

        start = time.perf_counter()
        try:
            result = await self.gateway.submit(payload)
        except Exception as e:
            logger.error(f"Checkout {payload.transaction_id} failed to submit: {e}")
            record_checkout("failed", time.perf_counter() - start)
            return CheckoutFailure(
                message="We couldn't place your order. Please try again.",
                retryable=True,
            )

        if not result.success:
            logger.error(f"Checkout {payload.transaction_id} rejected: {result.error}")
            record_checkout("failed", time.perf_counter() - start)
            return CheckoutFailure(
                message=result.error or "We couldn't place your order. Please try again.",
                retryable=True,
            )

        record_checkout("success", time.perf_counter() - start, len(result.order_ids))
        if self.store is not None and not detached:
            self.store.apply_checkout(line.key for line in lines if line.included)

        logger.info(
            f"Checkout {payload.transaction_id} placed {len(result.order_ids)} orders "
            f"for buyer {self.buyer_id}"
        )
        return OrderResult(
            transaction_id=result.transaction_id or payload.transaction_id,
            order_ids=result.order_ids,
            new_bazcoin_balance=result.new_bazcoin_balance,
            pricing=pricing,
        )

    async def checkout(
        self,
        session: CheckoutSession,
        address: ShippingAddress | None,
        payment: PaymentSelection | None,
        *,
        detached: bool = False,
        address_id: str | None = None,
    ) -> OrderResult | CheckoutFailure:
        """Quote a session and submit it, then settle the session on success."""
        pricing = await session.quote()
        outcome = await self.submit(
            address,
            payment,
            session.lines,
            pricing,
            detached=detached,
            address_id=address_id,
        )
        if isinstance(outcome, OrderResult):
            if outcome.new_bazcoin_balance is not None:
                session.bazcoin_balance = outcome.new_bazcoin_balance
            session.applied.clear()
            session.set_lines([])
        return outcome
