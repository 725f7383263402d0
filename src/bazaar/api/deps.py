"""API dependencies for authentication, database access and services."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from bazaar.core.database import get_db
from bazaar.core.redis import get_redis
from bazaar.core.security import decode_access_token
from bazaar.models.buyer import Buyer
from bazaar.services.cart_service import CartService
from bazaar.services.checkout_service import CheckoutService
from bazaar.services.discount_service import DiscountService
from bazaar.services.redis_service import RedisService
from bazaar.services.voucher_service import VoucherService

security = HTTPBearer()


async def get_current_buyer(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Buyer:
    """Get the signed-in buyer from the bearer token.

    Raises:
        HTTPException: If the token is invalid or the buyer is unknown or inactive
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    buyer_id = payload.get("sub")
    try:
        buyer_uuid = UUID(str(buyer_id))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid buyer ID in token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    buyer = await db.get(Buyer, buyer_uuid)
    if buyer is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Buyer not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if buyer.status != "active":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Buyer account is not active",
        )
    return buyer


# Type aliases for cleaner dependency injection
CurrentBuyer = Annotated[Buyer, Depends(get_current_buyer)]
DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_redis_service() -> RedisService:
    """Get RedisService instance with shared Redis connection pool."""
    redis = await get_redis()
    return RedisService(redis)


RedisServiceDep = Annotated[RedisService, Depends(get_redis_service)]


async def get_cart_service(db: DbSession) -> CartService:
    return CartService(db)


async def get_discount_service(db: DbSession) -> DiscountService:
    return DiscountService(db)


async def get_voucher_service(db: DbSession) -> VoucherService:
    return VoucherService(db)


async def get_checkout_service(db: DbSession, redis_service: RedisServiceDep) -> CheckoutService:
    """Get CheckoutService with the per-buyer lock wired in."""
    return CheckoutService(db, redis_service)


CartServiceDep = Annotated[CartService, Depends(get_cart_service)]
DiscountServiceDep = Annotated[DiscountService, Depends(get_discount_service)]
VoucherServiceDep = Annotated[VoucherService, Depends(get_voucher_service)]
CheckoutServiceDep = Annotated[CheckoutService, Depends(get_checkout_service)]
