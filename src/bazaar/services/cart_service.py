"""Cart service: durable cart storage behind the CartBackend port."""

import logging
import uuid
from typing import Iterable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from bazaar.models.cart import Cart, CartItem
from bazaar.models.product import Product, ProductVariant
from bazaar.schemas.cart import LineItem, ProductSnapshot, SellerSnapshot, VariantSnapshot
from bazaar.services.cart_aggregator import clamp_quantity
from bazaar.services.ports import CartBackend

logger = logging.getLogger(__name__)


class CartError(Exception):
    """A cart operation referenced something that does not exist or is unavailable."""


def line_from_row(item: CartItem, included: bool = False) -> LineItem:
    """Build a line item from a cart row with its product, seller and variant loaded."""
    product = item.product
    variant = item.variant
    return LineItem(
        item_id=str(item.item_id),
        product=ProductSnapshot(
            product_id=str(product.product_id),
            name=product.name,
            price=product.price,
            original_price=product.original_price,
            stock=product.stock,
            is_free_shipping=product.is_free_shipping,
            image_url=product.image_url,
            seller=SellerSnapshot(
                seller_id=str(product.seller_id),
                store_name=product.seller.store_name,
                avatar_url=product.seller.avatar_url,
            ),
        ),
        variant=VariantSnapshot(
            variant_id=str(variant.variant_id),
            name=variant.name,
            price=variant.price,
            original_price=variant.original_price,
            stock=variant.stock,
            image_url=variant.image_url,
        )
        if variant is not None
        else None,
        quantity=item.quantity,
        included=included,
        registry_item_id=str(item.registry_item_id) if item.registry_item_id else None,
        created_at=item.created_at,
    )


def _effective_stock(product: Product, variant: ProductVariant | None) -> int:
    return variant.stock if variant is not None else product.stock


class CartService(CartBackend):
    """Service class for cart operations.

    Each mutating call commits on its own; the engine syncs one line at a time.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    def _item_query(self):
        return select(CartItem).options(
            joinedload(CartItem.product).joinedload(Product.seller),
            joinedload(CartItem.variant),
        )

    async def _get_item(self, item_id: uuid.UUID) -> CartItem:
        result = await self.db.execute(
            self._item_query()
            .where(CartItem.item_id == item_id)
            .execution_options(populate_existing=True)
        )
        item = result.scalar_one_or_none()
        if item is None:
            raise CartError(f"Cart item {item_id} not found")
        return item

    async def _find_line(
        self, cart_id: uuid.UUID, product_id: uuid.UUID, variant_id: uuid.UUID | None
    ) -> CartItem | None:
        variant_clause = (
            CartItem.variant_id.is_(None) if variant_id is None else CartItem.variant_id == variant_id
        )
        result = await self.db.execute(
            self._item_query().where(
                CartItem.cart_id == cart_id,
                CartItem.product_id == product_id,
                variant_clause,
            )
        )
        return result.scalars().first()

    async def get_or_create_cart(self, buyer_id: str) -> str:
        """Get the buyer's cart id, creating an empty cart on first use."""
        buyer_uuid = uuid.UUID(buyer_id)
        result = await self.db.execute(select(Cart).where(Cart.buyer_id == buyer_uuid))
        cart = result.scalar_one_or_none()
        if cart is None:
            cart = Cart(buyer_id=buyer_uuid)
            self.db.add(cart)
            await self.db.commit()
            await self.db.refresh(cart)
            logger.info(f"Created cart {cart.cart_id} for buyer {buyer_id}")
        return str(cart.cart_id)

    async def list_items(self, cart_id: str) -> list[LineItem]:
        """List a cart's lines in creation order."""
        result = await self.db.execute(
            self._item_query()
            .where(CartItem.cart_id == uuid.UUID(cart_id))
            .order_by(CartItem.created_at.asc())
        )
        return [line_from_row(item) for item in result.scalars().unique().all()]

    async def add_item(
        self,
        cart_id: str,
        product_id: str,
        quantity: int,
        variant_id: str | None = None,
        registry_item_id: str | None = None,
    ) -> LineItem:
        """Add a product to the cart, summing into an existing line if present.

        The resulting quantity is clamped to stock.

        Raises:
            CartError: If the product or variant does not exist, or nothing is in stock
        """
        cart_uuid = uuid.UUID(cart_id)
        product_uuid = uuid.UUID(product_id)
        variant_uuid = uuid.UUID(variant_id) if variant_id else None

        product = await self.db.get(Product, product_uuid)
        if product is None:
            raise CartError(f"Product {product_id} not found")
        variant = None
        if variant_uuid is not None:
            variant = await self.db.get(ProductVariant, variant_uuid)
            if variant is None or variant.product_id != product_uuid:
                raise CartError(f"Variant {variant_id} not found for product {product_id}")
        stock = _effective_stock(product, variant)

        existing = await self._find_line(cart_uuid, product_uuid, variant_uuid)
        current = existing.quantity if existing is not None else 0
        clamped = clamp_quantity(current + quantity, stock)
        if clamped == 0:
            raise CartError(f"Product {product_id} is out of stock")

        if existing is not None:
            existing.quantity = clamped
            item_id = existing.item_id
        else:
            item = CartItem(
                cart_id=cart_uuid,
                product_id=product_uuid,
                variant_id=variant_uuid,
                registry_item_id=uuid.UUID(registry_item_id) if registry_item_id else None,
                quantity=clamped,
            )
            self.db.add(item)
            await self.db.flush()
            item_id = item.item_id

        await self.db.commit()
        return line_from_row(await self._get_item(item_id), included=True)

    async def update_quantity(self, item_id: str, quantity: int) -> int:
        """Set a line's quantity clamped to [0, stock]; zero deletes the line.

        Returns:
            The quantity actually recorded
        """
        item = await self._get_item(uuid.UUID(item_id))
        clamped = clamp_quantity(quantity, _effective_stock(item.product, item.variant))
        if clamped == 0:
            await self.db.delete(item)
        else:
            item.quantity = clamped
        await self.db.commit()
        return clamped

    async def update_variant(self, item_id: str, variant_id: str, quantity: int) -> None:
        """Move a line to another variant, merging into an existing line for it.

        Raises:
            CartError: If the line or variant does not exist
        """
        item = await self._get_item(uuid.UUID(item_id))
        variant_uuid = uuid.UUID(variant_id)
        variant = await self.db.get(ProductVariant, variant_uuid)
        if variant is None or variant.product_id != item.product_id:
            raise CartError(f"Variant {variant_id} not found for product {item.product_id}")

        target = await self._find_line(item.cart_id, item.product_id, variant_uuid)
        if target is not None and target.item_id != item.item_id:
            merged = clamp_quantity(target.quantity + quantity, variant.stock)
            if merged == 0:
                await self.db.delete(target)
            else:
                target.quantity = merged
            await self.db.delete(item)
        else:
            clamped = clamp_quantity(quantity, variant.stock)
            if clamped == 0:
                await self.db.delete(item)
            else:
                item.variant_id = variant_uuid
                item.quantity = clamped
        await self.db.commit()

    async def remove_items(self, item_ids: Iterable[str]) -> None:
        ids = [uuid.UUID(item_id) for item_id in item_ids]
        if not ids:
            return
        await self.db.execute(delete(CartItem).where(CartItem.item_id.in_(ids)))
        await self.db.commit()

    async def ensure_owned(self, cart_id: str, item_ids: Iterable[str]) -> None:
        """Raise CartError unless every item id belongs to the given cart."""
        ids = {uuid.UUID(item_id) for item_id in item_ids}
        result = await self.db.execute(
            select(CartItem.item_id).where(
                CartItem.cart_id == uuid.UUID(cart_id),
                CartItem.item_id.in_(ids),
            )
        )
        found = set(result.scalars().all())
        if found != ids:
            raise CartError("Cart item not found")
