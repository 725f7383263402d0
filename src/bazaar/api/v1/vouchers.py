"""Voucher API endpoints."""

from fastapi import APIRouter

from bazaar.api.deps import CurrentBuyer, VoucherServiceDep
from bazaar.schemas.voucher import VoucherValidateRequest, VoucherValidateResponse

router = APIRouter()


@router.post("/validate", response_model=VoucherValidateResponse)
async def validate_voucher(
    payload: VoucherValidateRequest,
    current_buyer: CurrentBuyer,
    service: VoucherServiceDep,
):
    """Check whether a voucher code can be used for an order value.

    Invalid codes are not an HTTP error; the response carries the reason.
    """
    validation = await service.validate(
        payload.code,
        payload.order_value,
        str(current_buyer.buyer_id),
        payload.seller_id,
    )
    return VoucherValidateResponse(
        valid=validation.is_valid,
        voucher=validation.voucher,
        error_code=validation.error_code,
        message=validation.message,
    )
