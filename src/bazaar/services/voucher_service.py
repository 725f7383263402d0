"""Voucher validation, scope bookkeeping and persistence."""

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from pydantic import TypeAdapter
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bazaar.models.voucher import Voucher as VoucherRow
from bazaar.models.voucher import VoucherRedemption
from bazaar.schemas.pricing import Voucher
from bazaar.schemas.voucher import VOUCHER_ERROR_MESSAGES, VoucherErrorCode, VoucherValidation
from bazaar.services.ports import VoucherBackend

logger = logging.getLogger(__name__)

_voucher_adapter: TypeAdapter[Voucher] = TypeAdapter(Voucher)


class VoucherError(Exception):
    """A voucher was rejected; carries the validation outcome."""

    def __init__(self, code: VoucherErrorCode, message: str | None = None):
        self.code = code
        super().__init__(message or VOUCHER_ERROR_MESSAGES[code])


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def check_voucher(
    voucher: Voucher | None,
    *,
    order_value: Decimal,
    seller_id: str | None = None,
    buyer_usage: int = 0,
    now: datetime | None = None,
) -> VoucherValidation:
    """Run the voucher state machine; the first failing check wins.

    Order of checks: not found, inactive, not started, expired, minimum order,
    seller scope, usage. Exhausted global usage is reported as ALREADY_USED.
    A seller-scoped voucher checked without a seller passes the scope check;
    the scope is enforced again when the voucher is applied to a group.
    """
    if voucher is None:
        return VoucherValidation(error_code=VoucherErrorCode.NOT_FOUND)
    if not voucher.is_active:
        return VoucherValidation(error_code=VoucherErrorCode.INACTIVE)

    now = _as_utc(now or datetime.now(timezone.utc))
    if voucher.valid_from is not None and now < _as_utc(voucher.valid_from):
        return VoucherValidation(error_code=VoucherErrorCode.NOT_STARTED)
    if voucher.valid_to is not None and now > _as_utc(voucher.valid_to):
        return VoucherValidation(error_code=VoucherErrorCode.EXPIRED)

    if order_value < voucher.min_order_value:
        return VoucherValidation(error_code=VoucherErrorCode.MIN_ORDER_NOT_MET)
    if (
        voucher.seller_id is not None
        and seller_id is not None
        and voucher.seller_id != seller_id
    ):
        return VoucherValidation(error_code=VoucherErrorCode.SELLER_MISMATCH)

    if voucher.usage_limit is not None and voucher.used_count >= voucher.usage_limit:
        return VoucherValidation(error_code=VoucherErrorCode.ALREADY_USED)
    if buyer_usage >= voucher.per_buyer_limit:
        return VoucherValidation(error_code=VoucherErrorCode.ALREADY_USED)

    return VoucherValidation(voucher=voucher)


class AppliedVouchers:
    """Vouchers held by one checkout: one per seller plus one platform voucher.

    Applying a voucher to an occupied scope replaces the previous voucher.
    """

    def __init__(self):
        self._platform: Voucher | None = None
        self._by_seller: dict[str, Voucher] = {}

    def apply(self, voucher: Voucher, seller_id: str | None = None) -> Voucher | None:
        """Place a voucher in its scope and return the voucher it replaced.

        Raises:
            VoucherError: SELLER_MISMATCH if a seller voucher is applied to
                another seller's group
        """
        if voucher.is_platform:
            replaced, self._platform = self._platform, voucher
            return replaced

        target = seller_id or voucher.seller_id
        if voucher.seller_id != target:
            raise VoucherError(VoucherErrorCode.SELLER_MISMATCH)
        replaced = self._by_seller.get(target)
        self._by_seller[target] = voucher
        return replaced

    def remove(self, seller_id: str | None = None) -> Voucher | None:
        """Clear the platform scope (no seller) or one seller scope."""
        if seller_id is None:
            removed, self._platform = self._platform, None
            return removed
        return self._by_seller.pop(seller_id, None)

    def clear(self) -> None:
        self._platform = None
        self._by_seller.clear()

    @property
    def platform(self) -> Voucher | None:
        return self._platform

    @property
    def seller_vouchers(self) -> dict[str, Voucher]:
        return dict(self._by_seller)

    @property
    def voucher_ids(self) -> list[str]:
        ids = [voucher.voucher_id for voucher in self._by_seller.values()]
        if self._platform is not None:
            ids.append(self._platform.voucher_id)
        return ids

    def __len__(self) -> int:
        return len(self._by_seller) + (1 if self._platform is not None else 0)


def voucher_from_row(row: VoucherRow) -> Voucher:
    return _voucher_adapter.validate_python(
        {
            "kind": row.voucher_type,
            "voucher_id": str(row.voucher_id),
            "code": row.code,
            "title": row.title,
            "value": row.value,
            "min_order_value": row.min_order_value,
            "max_discount": row.max_discount,
            "seller_id": str(row.seller_id) if row.seller_id else None,
            "valid_from": row.valid_from,
            "valid_to": row.valid_to,
            "usage_limit": row.usage_limit,
            "used_count": row.used_count,
            "per_buyer_limit": row.per_buyer_limit,
            "is_active": row.is_active,
        }
    )


class VoucherService(VoucherBackend):
    """Service class for voucher lookup, validation and redemption."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_code(self, code: str) -> VoucherRow | None:
        """Find a voucher by code, ignoring case and surrounding spaces."""
        result = await self.db.execute(
            select(VoucherRow).where(func.upper(VoucherRow.code) == code.strip().upper())
        )
        return result.scalar_one_or_none()

    async def count_buyer_redemptions(self, voucher_id: uuid.UUID, buyer_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(VoucherRedemption.redemption_id)).where(
                VoucherRedemption.voucher_id == voucher_id,
                VoucherRedemption.buyer_id == buyer_id,
            )
        )
        return result.scalar_one()

    async def validate(
        self,
        code: str,
        order_value: Decimal,
        buyer_id: str,
        seller_id: str | None = None,
    ) -> VoucherValidation:
        """Validate a voucher code for a buyer.

        Database failures are logged and reported as UNKNOWN so the caller
        can show a retryable message.
        """
        try:
            row = await self.get_by_code(code)
            if row is None:
                return VoucherValidation(error_code=VoucherErrorCode.NOT_FOUND)
            usage = await self.count_buyer_redemptions(row.voucher_id, uuid.UUID(buyer_id))
        except (SQLAlchemyError, ValueError) as e:
            logger.error(f"Voucher validation failed for code {code!r}: {e}")
            return VoucherValidation(error_code=VoucherErrorCode.UNKNOWN)

        return check_voucher(
            voucher_from_row(row),
            order_value=order_value,
            seller_id=seller_id,
            buyer_usage=usage,
        )

    async def redeem(
        self, voucher_id: uuid.UUID, buyer_id: uuid.UUID, order_id: uuid.UUID
    ) -> None:
        """Record one use of a voucher. Runs inside the caller's transaction."""
        self.db.add(
            VoucherRedemption(voucher_id=voucher_id, buyer_id=buyer_id, order_id=order_id)
        )
        await self.db.execute(
            update(VoucherRow)
            .where(VoucherRow.voucher_id == voucher_id)
            .values(used_count=VoucherRow.used_count + 1)
        )
