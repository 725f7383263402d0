"""Checkout API endpoints: pricing quotes and order placement."""

import logging
import uuid

from fastapi import APIRouter, HTTPException, status

from bazaar.api.deps import (
    CartServiceDep,
    CheckoutServiceDep,
    CurrentBuyer,
    DbSession,
    DiscountServiceDep,
    VoucherServiceDep,
)
from bazaar.models.buyer import Address, Buyer
from bazaar.schemas.checkout import CheckoutFailure, CheckoutRequest, OrderResult, ShippingAddress
from bazaar.schemas.pricing import PricingResult, QuoteRequest
from bazaar.services.cart_service import CartService
from bazaar.services.cart_store import CartStore
from bazaar.services.checkout_orchestrator import CheckoutOrchestrator
from bazaar.services.checkout_session import CheckoutSession
from bazaar.services.discount_service import DiscountService
from bazaar.services.voucher_service import VoucherService

logger = logging.getLogger(__name__)

router = APIRouter()


async def _open_session(
    buyer: Buyer,
    item_ids: list[str],
    voucher_codes: list[str],
    use_bazcoins: bool,
    cart_service: CartService,
    discount_service: DiscountService,
    voucher_service: VoucherService,
) -> tuple[CartStore, CheckoutSession]:
    """Load the buyer's cart, select the requested lines and apply vouchers.

    Raises:
        HTTPException: 404 if an item is not in the cart, 422 if a voucher is rejected
    """
    store = CartStore(cart_service, str(buyer.buyer_id))
    await store.load(preselect=item_ids)
    found = {line.item_id for line in store.selected_items()}
    if found != set(item_ids):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "ITEM_NOT_FOUND", "message": "Cart item not found"},
        )

    session = CheckoutSession(
        str(buyer.buyer_id),
        store.selected_items(),
        discount_service,
        voucher_service,
        bazcoin_balance=buyer.bazcoins,
    )
    session.set_use_bazcoins(use_bazcoins)

    for code in voucher_codes:
        row = await voucher_service.get_by_code(code)
        scope = str(row.seller_id) if row is not None and row.seller_id else None
        validation = await session.apply_voucher(code, scope)
        if not validation.is_valid:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail={
                    "code": validation.error_code.value,
                    "message": validation.message,
                    "voucher_code": code,
                },
            )
    return store, session


async def _resolve_address(
    db: DbSession, buyer: Buyer, payload: CheckoutRequest
) -> ShippingAddress | None:
    """Use the submitted snapshot, or the saved address it refers to."""
    if payload.shipping_address is not None or payload.address_id is None:
        return payload.shipping_address
    try:
        address_uuid = uuid.UUID(payload.address_id)
    except ValueError:
        address_uuid = None
    address = await db.get(Address, address_uuid) if address_uuid else None
    if address is None or address.buyer_id != buyer.buyer_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "ADDRESS_NOT_FOUND", "message": "Address not found"},
        )
    return ShippingAddress(
        full_name=address.full_name,
        street=address.street,
        barangay=address.barangay or "",
        city=address.city,
        province=address.province,
        postal_code=address.postal_code,
        phone=address.phone,
    )


@router.post("/quote", response_model=PricingResult)
async def quote_checkout(
    payload: QuoteRequest,
    current_buyer: CurrentBuyer,
    cart_service: CartServiceDep,
    discount_service: DiscountServiceDep,
    voucher_service: VoucherServiceDep,
):
    """Price selected cart items with campaign discounts, vouchers and Bazcoins."""
    _, session = await _open_session(
        current_buyer,
        payload.item_ids,
        payload.voucher_codes,
        payload.use_bazcoins,
        cart_service,
        discount_service,
        voucher_service,
    )
    return await session.quote()


@router.post("", response_model=OrderResult, status_code=status.HTTP_201_CREATED)
async def place_order(
    payload: CheckoutRequest,
    db: DbSession,
    current_buyer: CurrentBuyer,
    cart_service: CartServiceDep,
    discount_service: DiscountServiceDep,
    voucher_service: VoucherServiceDep,
    checkout_service: CheckoutServiceDep,
):
    """Place one order per seller for the selected cart items.

    All orders are created in one transaction; on failure nothing is written.

    Raises:
        422: Invalid address, payment or voucher
        409: The order could not be placed (stock, balance, concurrent checkout)
    """
    address = await _resolve_address(db, current_buyer, payload)
    store, session = await _open_session(
        current_buyer,
        payload.item_ids,
        payload.voucher_codes,
        payload.use_bazcoins,
        cart_service,
        discount_service,
        voucher_service,
    )

    orchestrator = CheckoutOrchestrator(checkout_service, str(current_buyer.buyer_id), store)
    outcome = await orchestrator.checkout(
        session, address, payload.payment, address_id=payload.address_id
    )

    if isinstance(outcome, CheckoutFailure):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT
            if outcome.retryable
            else status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "code": "CHECKOUT_FAILED" if outcome.retryable else "VALIDATION_ERROR",
                "message": outcome.message,
                "field_errors": outcome.field_errors,
            },
        )
    return outcome
