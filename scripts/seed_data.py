"""Seed data script for development and manual checkout testing.

Creates:
- 3 sellers, each with a few products (one product per seller has variants)
- BUYER_COUNT buyers with a starting Bazcoin balance and a default address
- 1 active percentage campaign and 1 active fixed-amount campaign
- Platform vouchers (WELCOME10, FREESHIP, SAVE50) and one seller voucher per store

Environment Variables:
    BUYER_COUNT: Number of buyers to create (default: 5)
    STARTING_BAZCOINS: Bazcoin balance of each buyer (default: 500)
    CAMPAIGN_DURATION_DAYS: How long the seeded campaigns and vouchers last (default: 7)
    RESET_DATA: Set to "true" to clear carts/orders/campaigns/vouchers first (default: false)

Usage:
    uv run python -m scripts.seed_data
    RESET_DATA=true uv run python -m scripts.seed_data

Prints a bearer token for the first buyer so the API can be tried with curl.
"""

import asyncio
import os
from datetime import datetime, timedelta
from decimal import Decimal

# Configuration from environment variables
BUYER_COUNT = int(os.getenv("BUYER_COUNT", "5"))
STARTING_BAZCOINS = int(os.getenv("STARTING_BAZCOINS", "500"))
CAMPAIGN_DURATION_DAYS = int(os.getenv("CAMPAIGN_DURATION_DAYS", "7"))
RESET_DATA = os.getenv("RESET_DATA", "false").lower() == "true"

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from bazaar.core.database import async_session_maker, engine
from bazaar.core.security import create_access_token
from bazaar.models import (
    Address,
    Buyer,
    DiscountCampaign,
    Product,
    ProductDiscount,
    ProductVariant,
    Seller,
    Voucher,
)

SELLERS = [
    {
        "store_name": "Manila Gadget Hub",
        "products": [
            ("Wireless Earbuds", Decimal("1299.00"), Decimal("1599.00"), 40, False),
            ("Phone Case", Decimal("249.00"), None, 200, True),
        ],
        "variants": [("Black", 20), ("White", 20)],
    },
    {
        "store_name": "Cebu Home Goods",
        "products": [
            ("Bamboo Cutting Board", Decimal("450.00"), None, 60, False),
            ("Ceramic Mug Set", Decimal("680.00"), Decimal("800.00"), 35, False),
        ],
        "variants": [("Set of 2", 15), ("Set of 4", 20)],
    },
    {
        "store_name": "Davao Naturals",
        "products": [
            ("Coconut Oil 500ml", Decimal("199.00"), None, 120, True),
            ("Dried Mango Pack", Decimal("150.00"), None, 300, False),
        ],
        "variants": [],
    },
]


async def reset_checkout_data(session: AsyncSession) -> None:
    """Clear orders, carts, campaigns and vouchers for a fresh run."""
    print("Resetting checkout data...")
    for table in (
        "voucher_redemptions",
        "order_discounts",
        "order_items",
        "orders",
        "cart_items",
        "carts",
        "vouchers",
        "product_discounts",
        "discount_campaigns",
    ):
        await session.execute(text(f"DELETE FROM {table}"))
    await session.commit()
    print("  Cleared orders, carts, campaigns, vouchers")


async def seed_catalog(session: AsyncSession) -> tuple[list[Seller], list[Product]]:
    """Create sellers, their products and variants."""
    print("Seeding catalog...")

    result = await session.execute(select(Seller).limit(1))
    if result.scalar_one_or_none():
        print("  Catalog already exists, skipping...")
        sellers = list((await session.execute(select(Seller))).scalars().all())
        products = list((await session.execute(select(Product))).scalars().all())
        return sellers, products

    sellers = []
    products = []
    for seller_data in SELLERS:
        seller = Seller(store_name=seller_data["store_name"], status="active")
        session.add(seller)
        await session.flush()
        sellers.append(seller)

        for index, (name, price, original_price, stock, free_shipping) in enumerate(
            seller_data["products"]
        ):
            product = Product(
                seller_id=seller.seller_id,
                name=name,
                price=price,
                original_price=original_price,
                stock=stock,
                is_free_shipping=free_shipping,
                image_url=f"https://example.com/images/{name.lower().replace(' ', '-')}.jpg",
                status="active",
            )
            session.add(product)
            await session.flush()
            products.append(product)

            if index == 0:
                for variant_name, variant_stock in seller_data["variants"]:
                    session.add(
                        ProductVariant(
                            product_id=product.product_id,
                            name=variant_name,
                            stock=variant_stock,
                        )
                    )
        print(f"  Created seller: {seller.store_name} ({len(seller_data['products'])} products)")

    await session.commit()
    return sellers, products


async def seed_buyers(session: AsyncSession) -> list[Buyer]:
    """Create buyers with a Bazcoin balance and a default address."""
    print("Seeding buyers...")

    result = await session.execute(select(Buyer).limit(1))
    if result.scalar_one_or_none():
        print("  Buyers already exist, skipping...")
        return list((await session.execute(select(Buyer))).scalars().all())

    buyers = []
    for i in range(1, BUYER_COUNT + 1):
        buyer = Buyer(
            email=f"buyer{i:03d}@test.com",
            display_name=f"Buyer {i:03d}",
            bazcoins=STARTING_BAZCOINS,
            status="active",
        )
        session.add(buyer)
        await session.flush()
        session.add(
            Address(
                buyer_id=buyer.buyer_id,
                full_name=buyer.display_name,
                street=f"{i} Rizal Street",
                barangay="San Antonio",
                city="Makati",
                province="Metro Manila",
                postal_code="1203",
                phone=f"0917{i:07d}",
                is_default=True,
            )
        )
        buyers.append(buyer)

    await session.commit()
    print(f"  Created {len(buyers)} buyers (bazcoins={STARTING_BAZCOINS})")
    return buyers


async def seed_campaigns(session: AsyncSession, products: list[Product]) -> None:
    """Create one percentage and one fixed-amount campaign."""
    print("Seeding campaigns...")

    if not RESET_DATA:
        result = await session.execute(select(DiscountCampaign).limit(1))
        if result.scalar_one_or_none():
            print("  Campaigns already exist, skipping...")
            return

    now = datetime.utcnow()
    ends = now + timedelta(days=CAMPAIGN_DURATION_DAYS)
    percentage = DiscountCampaign(
        name="Payday Sale",
        discount_type="percentage",
        discount_value=Decimal("20"),
        max_discount_amount=Decimal("200"),
        starts_at=now - timedelta(minutes=1),
        ends_at=ends,
        is_active=True,
    )
    fixed = DiscountCampaign(
        name="Home Week",
        discount_type="fixed_amount",
        discount_value=Decimal("50"),
        starts_at=now - timedelta(minutes=1),
        ends_at=ends,
        is_active=True,
    )
    session.add_all([percentage, fixed])
    await session.flush()

    session.add(ProductDiscount(campaign_id=percentage.campaign_id, product_id=products[0].product_id))
    session.add(ProductDiscount(campaign_id=fixed.campaign_id, product_id=products[3].product_id))
    await session.commit()
    print(f"  Created campaigns: {percentage.name} (20% capped at 200), {fixed.name} (50 off)")


async def seed_vouchers(session: AsyncSession, sellers: list[Seller]) -> None:
    """Create platform vouchers and one voucher per seller."""
    print("Seeding vouchers...")

    if not RESET_DATA:
        result = await session.execute(select(Voucher).limit(1))
        if result.scalar_one_or_none():
            print("  Vouchers already exist, skipping...")
            return

    now = datetime.utcnow()
    window = {"valid_from": now - timedelta(minutes=1), "valid_to": now + timedelta(days=CAMPAIGN_DURATION_DAYS)}
    vouchers = [
        Voucher(code="WELCOME10", title="10% off", voucher_type="percentage",
                value=Decimal("10"), max_discount=Decimal("150"), **window),
        Voucher(code="FREESHIP", title="Free shipping", voucher_type="shipping",
                min_order_value=Decimal("500"), **window),
        Voucher(code="SAVE50", title="50 off", voucher_type="fixed",
                value=Decimal("50"), min_order_value=Decimal("300"), usage_limit=100, **window),
    ]
    for index, seller in enumerate(sellers, start=1):
        vouchers.append(
            Voucher(
                code=f"STORE{index}",
                title=f"{seller.store_name} 25 off",
                voucher_type="fixed",
                value=Decimal("25"),
                min_order_value=Decimal("200"),
                seller_id=seller.seller_id,
                **window,
            )
        )
    session.add_all(vouchers)
    await session.commit()
    print(f"  Created vouchers: {', '.join(v.code for v in vouchers)}")


async def main():
    """Main seed function."""
    print("=" * 60)
    print("Bazaar Checkout - Seed Data Script")
    print("=" * 60)
    print(f"  RESET_DATA: {RESET_DATA}")
    print(f"  BUYER_COUNT: {BUYER_COUNT}")
    print(f"  CAMPAIGN_DURATION_DAYS: {CAMPAIGN_DURATION_DAYS}")
    print("=" * 60)

    async with async_session_maker() as session:
        if RESET_DATA:
            await reset_checkout_data(session)

        sellers, products = await seed_catalog(session)
        buyers = await seed_buyers(session)
        await seed_campaigns(session, products)
        await seed_vouchers(session, sellers)

    print("=" * 60)
    print("Seed data complete!")
    print(f"  Sellers: {len(sellers)}")
    print(f"  Products: {len(products)}")
    print(f"  Buyers: {len(buyers)}")
    print("=" * 60)
    if buyers:
        print("")
        print(f"Bearer token for {buyers[0].email}:")
        print(f"  {create_access_token(str(buyers[0].buyer_id))}")
        print("")
        print("Try:")
        print("  curl -H 'Authorization: Bearer <token>' http://localhost:8000/api/v1/cart")
    print("=" * 60)

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
