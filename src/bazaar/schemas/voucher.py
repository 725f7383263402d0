"""Voucher validation schemas."""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from bazaar.schemas.pricing import Voucher


class VoucherErrorCode(str, Enum):
    """Validation outcomes, listed in the order they are checked."""

    NOT_FOUND = "NOT_FOUND"
    INACTIVE = "INACTIVE"
    NOT_STARTED = "NOT_STARTED"
    EXPIRED = "EXPIRED"
    MIN_ORDER_NOT_MET = "MIN_ORDER_NOT_MET"
    SELLER_MISMATCH = "SELLER_MISMATCH"
    ALREADY_USED = "ALREADY_USED"
    UNKNOWN = "UNKNOWN"


VOUCHER_ERROR_MESSAGES: dict[VoucherErrorCode, str] = {
    VoucherErrorCode.NOT_FOUND: "This voucher code is not valid.",
    VoucherErrorCode.INACTIVE: "This voucher is no longer active.",
    VoucherErrorCode.NOT_STARTED: "This voucher cannot be used yet.",
    VoucherErrorCode.EXPIRED: "This voucher has expired.",
    VoucherErrorCode.MIN_ORDER_NOT_MET: "Your order does not meet the minimum spend for this voucher.",
    VoucherErrorCode.SELLER_MISMATCH: "This voucher cannot be used for this store.",
    VoucherErrorCode.ALREADY_USED: "You have already used this voucher.",
    VoucherErrorCode.UNKNOWN: "We could not apply this voucher. Please try again.",
}


class VoucherValidation(BaseModel):
    """Result of validating a voucher code; exactly one of the fields is set."""

    voucher: Voucher | None = None
    error_code: VoucherErrorCode | None = None

    @property
    def is_valid(self) -> bool:
        return self.voucher is not None and self.error_code is None

    @property
    def message(self) -> str | None:
        if self.error_code is None:
            return None
        return VOUCHER_ERROR_MESSAGES[self.error_code]


class VoucherValidateRequest(BaseModel):
    """Schema for voucher validation request."""

    code: str = Field(..., min_length=1, max_length=50)
    order_value: Decimal = Field(..., ge=0)
    seller_id: str | None = None


class VoucherValidateResponse(BaseModel):
    valid: bool
    voucher: Voucher | None = None
    error_code: VoucherErrorCode | None = None
    message: str | None = None
