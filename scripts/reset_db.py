"""Reset database to empty state.

Clears all data from:
- orders (with items, discounts and voucher redemptions)
- carts and cart items
- vouchers and discount campaigns
- products, variants and registry items
- buyers, addresses and sellers

Also clears Redis data (checkout locks).

Usage:
    uv run python -m scripts.reset_db
"""

import asyncio

from sqlalchemy import text

from bazaar.core.database import async_session_maker, engine
from bazaar.core.redis import close_redis, get_redis


async def reset_database():
    """Clear all data from the database."""
    print("=" * 60)
    print("Resetting database to empty state...")
    print("=" * 60)

    async with async_session_maker() as session:
        # Delete in correct order due to foreign key constraints
        tables = [
            "voucher_redemptions",
            "order_discounts",
            "order_items",
            "orders",
            "cart_items",
            "carts",
            "vouchers",
            "product_discounts",
            "discount_campaigns",
            "registry_items",
            "product_variants",
            "products",
            "addresses",
            "sellers",
            "buyers",
        ]

        for table in tables:
            result = await session.execute(text(f"DELETE FROM {table}"))
            print(f"  Deleted {result.rowcount} rows from {table}")

        await session.commit()
        print("\nDatabase cleared successfully!")


async def reset_redis():
    """Clear all Redis data."""
    print("\nResetting Redis...")

    try:
        redis = await get_redis()
        await redis.flushdb()
        print("  Redis flushed successfully!")
        await close_redis()
    except Exception as e:
        print(f"  Warning: Could not clear Redis: {e}")
        print("  (This is OK if Redis is not running locally)")


async def main():
    await reset_database()
    await reset_redis()

    print("\n" + "=" * 60)
    print("Reset complete!")
    print("=" * 60)
    print("\nTo re-seed the database, run:")
    print("  uv run python -m scripts.seed_data")
    print("=" * 60)

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
