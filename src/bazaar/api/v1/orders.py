"""Order query API endpoints."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from bazaar.api.deps import CurrentBuyer, DbSession
from bazaar.schemas.order import OrderListResponse, OrderResponse
from bazaar.services.order_service import OrderService

router = APIRouter()


@router.get("", response_model=OrderListResponse)
async def get_my_orders(
    db: DbSession,
    current_buyer: CurrentBuyer,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
):
    """Get current buyer's orders, newest first."""
    service = OrderService(db)
    orders, total = await service.get_buyer_orders(
        buyer_id=current_buyer.buyer_id,
        skip=skip,
        limit=limit,
    )

    return OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in orders],
        total=total,
    )


@router.get("/transaction/{transaction_id}", response_model=OrderListResponse)
async def get_transaction_orders(
    transaction_id: UUID,
    db: DbSession,
    current_buyer: CurrentBuyer,
):
    """Get every seller order placed by one checkout.

    Raises:
        404: No orders for this buyer under the transaction id
    """
    service = OrderService(db)
    orders = [
        o
        for o in await service.get_transaction_orders(transaction_id)
        if o.buyer_id == current_buyer.buyer_id
    ]
    if not orders:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Transaction {transaction_id} not found",
        )

    return OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in orders],
        total=len(orders),
    )
