"""Cart API endpoints."""

import logging

from fastapi import APIRouter, HTTPException, Query, status

from bazaar.api.deps import CartServiceDep, CurrentBuyer
from bazaar.schemas.cart import (
    CartItemAdd,
    CartItemQuantityUpdate,
    CartItemsRemove,
    CartItemVariantUpdate,
    CartView,
    LineItem,
    QuantityChangeResponse,
)
from bazaar.services.cart_service import CartError, CartService
from bazaar.services.cart_store import CartStore

logger = logging.getLogger(__name__)

router = APIRouter()


async def _cart_view(service: CartService, buyer_id: str, selected: list[str]) -> CartView:
    store = CartStore(service, buyer_id)
    await store.load(preselect=selected)
    return store.view()


async def _owned_cart(service: CartService, buyer_id: str, item_ids: list[str]) -> str:
    cart_id = await service.get_or_create_cart(buyer_id)
    try:
        await service.ensure_owned(cart_id, item_ids)
    except (CartError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "ITEM_NOT_FOUND", "message": "Cart item not found"},
        )
    return cart_id


@router.get("", response_model=CartView)
async def get_cart(
    current_buyer: CurrentBuyer,
    service: CartServiceDep,
    selected: list[str] = Query(default=[]),
):
    """Get the buyer's cart grouped by seller.

    Lines start unselected; pass `selected` item ids to pre-select them.
    """
    return await _cart_view(service, str(current_buyer.buyer_id), selected)


@router.post("/items", response_model=LineItem, status_code=status.HTTP_201_CREATED)
async def add_item(
    payload: CartItemAdd,
    current_buyer: CurrentBuyer,
    service: CartServiceDep,
):
    """Add a product to the cart.

    Adding a product already in the cart sums the quantities, clamped to stock.

    Raises:
        404: Product or variant not found
        409: Out of stock
    """
    cart_id = await service.get_or_create_cart(str(current_buyer.buyer_id))
    try:
        return await service.add_item(
            cart_id,
            payload.product_id,
            payload.quantity,
            variant_id=payload.variant_id,
            registry_item_id=payload.registry_item_id,
        )
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "PRODUCT_NOT_FOUND", "message": "Product not found"},
        )
    except CartError as e:
        message = str(e)
        if "out of stock" in message:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"code": "OUT_OF_STOCK", "message": message},
            )
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "PRODUCT_NOT_FOUND", "message": message},
        )


@router.patch("/items/{item_id}", response_model=QuantityChangeResponse)
async def update_item_quantity(
    item_id: str,
    payload: CartItemQuantityUpdate,
    current_buyer: CurrentBuyer,
    service: CartServiceDep,
):
    """Set a line's quantity.

    The recorded quantity is clamped to stock; zero removes the line.
    """
    await _owned_cart(service, str(current_buyer.buyer_id), [item_id])
    recorded = await service.update_quantity(item_id, payload.quantity)
    return QuantityChangeResponse(item_id=item_id, quantity=recorded, removed=recorded == 0)


@router.patch("/items/{item_id}/variant", response_model=CartView)
async def change_item_variant(
    item_id: str,
    payload: CartItemVariantUpdate,
    current_buyer: CurrentBuyer,
    service: CartServiceDep,
):
    """Move a line to another variant of the same product.

    If the cart already holds that variant, the two lines are merged.
    """
    buyer_id = str(current_buyer.buyer_id)
    cart_id = await _owned_cart(service, buyer_id, [item_id])

    quantity = payload.quantity
    if quantity is None:
        current = next(
            (line for line in await service.list_items(cart_id) if line.item_id == item_id),
            None,
        )
        quantity = current.quantity if current is not None else 0

    try:
        await service.update_variant(item_id, payload.variant_id, quantity)
    except (CartError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "VARIANT_NOT_FOUND", "message": "Variant not found for this product"},
        )
    return await _cart_view(service, buyer_id, [])


@router.delete("/items", status_code=status.HTTP_204_NO_CONTENT)
async def remove_items(
    payload: CartItemsRemove,
    current_buyer: CurrentBuyer,
    service: CartServiceDep,
):
    """Remove several lines at once."""
    await _owned_cart(service, str(current_buyer.buyer_id), payload.item_ids)
    await service.remove_items(payload.item_ids)
    logger.info(f"Buyer {current_buyer.buyer_id} removed {len(payload.item_ids)} cart items")
