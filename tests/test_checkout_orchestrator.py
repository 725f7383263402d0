"""Tests for checkout sessions and the checkout orchestrator."""

from decimal import Decimal

import pytest

from bazaar.schemas.checkout import (
    CheckoutFailure,
    CheckoutResult,
    OrderResult,
    PaymentMethod,
    PaymentSelection,
)
from bazaar.schemas.pricing import FixedVoucher, PercentageCampaignDiscount
from bazaar.schemas.voucher import VoucherErrorCode
from bazaar.services.cart_store import CartStore
from bazaar.services.checkout_orchestrator import (
    CheckoutOrchestrator,
    build_payload,
    validate_payment,
    validate_shipping_address,
)
from bazaar.services.checkout_session import CheckoutSession
from bazaar.services.pricing import price_checkout
from conftest import (
    FakeCartBackend,
    FakeDiscountLookup,
    FakeOrderGateway,
    FakeVoucherBackend,
    make_address,
    make_line,
)


def seller_voucher(code, seller_id, value="25", min_order="0"):
    return FixedVoucher(
        voucher_id=f"v-{code.lower()}",
        code=code,
        value=Decimal(value),
        seller_id=seller_id,
        min_order_value=Decimal(min_order),
    )


def make_session(lines, vouchers=(), discounts=None, balance=0):
    return CheckoutSession(
        "buyer-1",
        lines,
        FakeDiscountLookup(discounts),
        FakeVoucherBackend(vouchers),
        bazcoin_balance=balance,
    )


async def loaded_store(*records, preselect=()):
    store = CartStore(FakeCartBackend(records=records), "buyer-1")
    await store.load(preselect)
    return store


class TestValidation:
    """Test local form validation."""

    def test_complete_address(self):
        assert validate_shipping_address(make_address()) == {}

    def test_missing_address_fields(self):
        errors = validate_shipping_address(make_address(city="", phone="   "))

        assert set(errors) == {"city", "phone"}

    def test_no_address(self):
        assert "full_name" in validate_shipping_address(None)

    def test_no_payment_method(self):
        assert validate_payment(PaymentSelection()) == {
            "payment_method": "Please select a payment method"
        }

    def test_card_details_required_once_number_entered(self):
        payment = PaymentSelection(method=PaymentMethod.CARD, card_number="4111111111111111")

        assert set(validate_payment(payment)) == {"card_name", "expiry_date", "cvv"}

    def test_card_without_number_passes(self):
        assert validate_payment(PaymentSelection(method=PaymentMethod.CARD)) == {}

    def test_short_wallet_number(self):
        payment = PaymentSelection(method=PaymentMethod.GCASH, wallet_number="0917")

        assert "wallet_number" in validate_payment(payment)


class TestCheckoutSession:
    """Test pricing inputs held for one checkout."""

    @pytest.mark.asyncio
    async def test_discounts_looked_up_once(self):
        line = make_line("200")
        discount = PercentageCampaignDiscount(campaign_id="c1", value=Decimal("10"))
        session = make_session([line], discounts={line.product_id: discount})

        first = await session.quote()
        second = await session.quote()

        assert first == second
        assert first.campaign_discount_total == Decimal("20.00")
        assert len(session.discounts.lookups) == 1

    @pytest.mark.asyncio
    async def test_products_without_campaign_are_cached_too(self):
        session = make_session([make_line("200")])

        await session.quote()
        await session.quote()

        assert len(session.discounts.lookups) == 1

    def test_unselected_lines_are_dropped(self):
        session = make_session([make_line("200"), make_line("300", included=False)])

        assert len(session.lines) == 1

    @pytest.mark.asyncio
    async def test_apply_seller_voucher(self):
        session = make_session(
            [make_line("500", seller_id="A")], vouchers=[seller_voucher("STOREA", "A")]
        )

        result = await session.apply_voucher("storea", "A")
        pricing = await session.quote()

        assert result.is_valid
        assert pricing.voucher_discount == Decimal("25")

    @pytest.mark.asyncio
    async def test_seller_voucher_on_other_group(self):
        session = make_session(
            [make_line("500", seller_id="A"), make_line("500", seller_id="B")],
            vouchers=[seller_voucher("STOREA", "A")],
        )

        result = await session.apply_voucher("STOREA", "B")

        assert result.error_code == VoucherErrorCode.SELLER_MISMATCH
        assert len(session.applied) == 0

    @pytest.mark.asyncio
    async def test_min_order_checked_against_seller_subtotal(self):
        session = make_session(
            [make_line("100", seller_id="A"), make_line("900", seller_id="B")],
            vouchers=[seller_voucher("STOREA", "A", min_order="500")],
        )

        result = await session.apply_voucher("STOREA", "A")

        assert result.error_code == VoucherErrorCode.MIN_ORDER_NOT_MET

    @pytest.mark.asyncio
    async def test_voucher_backend_error_is_unknown(self):
        session = make_session([make_line("500")])
        session.vouchers.error = ConnectionError("down")

        result = await session.apply_voucher("ANY")

        assert result.error_code == VoucherErrorCode.UNKNOWN

    @pytest.mark.asyncio
    async def test_second_voucher_replaces_first(self):
        first = FixedVoucher(voucher_id="p1", code="P1", value=Decimal("10"))
        second = FixedVoucher(voucher_id="p2", code="P2", value=Decimal("30"))
        session = make_session([make_line("500")], vouchers=[first, second])

        await session.apply_voucher("P1")
        await session.apply_voucher("P2")
        pricing = await session.quote()

        assert pricing.voucher_discount == Decimal("30")
        assert pricing.applied_voucher_ids == ["p2"]

    @pytest.mark.asyncio
    async def test_bazcoin_toggle(self):
        session = make_session([make_line("500")], balance=80)

        assert (await session.quote()).bazcoins_redeemed == 0
        session.set_use_bazcoins(True)
        assert (await session.quote()).bazcoins_redeemed == 80


class TestBuildPayload:
    def test_carries_seller_slices_and_totals(self, address, cod_payment):
        lines = [make_line("100", 2, seller_id="A"), make_line("50", 1, seller_id="B")]
        pricing = price_checkout(lines)

        payload = build_payload("buyer-1", lines, pricing, address, cod_payment)

        assert len(payload.items) == 2
        assert [s.seller_id for s in payload.sellers] == ["A", "B"]
        assert payload.total_amount == pricing.grand_total
        assert payload.payment_method == PaymentMethod.COD
        assert payload.from_cart is True

    def test_pricing_mismatch_raises(self, address, cod_payment):
        lines = [make_line("100"), make_line("50")]
        pricing = price_checkout(lines[:1])

        with pytest.raises(ValueError):
            build_payload("buyer-1", lines, pricing, address, cod_payment)


class TestCheckoutOrchestrator:
    """Test submission and reconciliation."""

    @pytest.mark.asyncio
    async def test_validation_failure_never_reaches_gateway(self, cod_payment):
        gateway = FakeOrderGateway()
        orchestrator = CheckoutOrchestrator(gateway, "buyer-1")
        lines = [make_line("100")]

        outcome = await orchestrator.submit(
            make_address(street=""), cod_payment, lines, price_checkout(lines)
        )

        assert isinstance(outcome, CheckoutFailure)
        assert outcome.retryable is False
        assert "street" in outcome.field_errors
        assert gateway.payloads == []

    @pytest.mark.asyncio
    async def test_nothing_selected(self, address, cod_payment):
        orchestrator = CheckoutOrchestrator(FakeOrderGateway(), "buyer-1")
        lines = [make_line("100", included=False)]

        outcome = await orchestrator.submit(address, cod_payment, lines, price_checkout(lines))

        assert "items" in outcome.field_errors

    @pytest.mark.asyncio
    async def test_success_clears_consumed_cart_lines(self, address, cod_payment):
        store = await loaded_store(
            make_line("100", item_id="i1", seller_id="A"),
            make_line("200", item_id="i2", seller_id="B"),
            make_line("300", item_id="i3", seller_id="A"),
            preselect=["i1", "i2"],
        )
        gateway = FakeOrderGateway()
        orchestrator = CheckoutOrchestrator(gateway, "buyer-1", store)
        lines = store.selected_items()

        outcome = await orchestrator.submit(address, cod_payment, lines, price_checkout(lines))

        assert isinstance(outcome, OrderResult)
        assert outcome.order_ids == ["ORD-1", "ORD-2"]
        assert [line.item_id for line in store.items] == ["i3"]
        assert not store.has_pending_sync

    @pytest.mark.asyncio
    async def test_detached_flow_leaves_cart_alone(self, address, cod_payment):
        store = await loaded_store(make_line("100", item_id="i1"), preselect=["i1"])
        orchestrator = CheckoutOrchestrator(FakeOrderGateway(), "buyer-1", store)
        gift = [make_line("999")]

        outcome = await orchestrator.submit(
            address, cod_payment, gift, price_checkout(gift), detached=True
        )

        assert isinstance(outcome, OrderResult)
        assert [line.item_id for line in store.items] == ["i1"]

    @pytest.mark.asyncio
    async def test_gateway_error_leaves_state_identical(self, address, cod_payment):
        store = await loaded_store(
            make_line("100", item_id="i1"), make_line("200", item_id="i2"), preselect=["i1"]
        )
        before = store.items
        orchestrator = CheckoutOrchestrator(
            FakeOrderGateway(error=ConnectionError("timeout")), "buyer-1", store
        )
        lines = store.selected_items()

        outcome = await orchestrator.submit(address, cod_payment, lines, price_checkout(lines))

        assert isinstance(outcome, CheckoutFailure)
        assert outcome.retryable is True
        assert store.items == before

    @pytest.mark.asyncio
    async def test_rejected_result_is_failure(self, address, cod_payment):
        gateway = FakeOrderGateway(
            result=CheckoutResult(success=False, error="Insufficient stock for Test Product")
        )
        orchestrator = CheckoutOrchestrator(gateway, "buyer-1")
        lines = [make_line("100")]

        outcome = await orchestrator.submit(address, cod_payment, lines, price_checkout(lines))

        assert isinstance(outcome, CheckoutFailure)
        assert outcome.message == "Insufficient stock for Test Product"

    @pytest.mark.asyncio
    async def test_retry_resubmits_same_selection(self, address, cod_payment):
        gateway = FakeOrderGateway(error=ConnectionError("timeout"))
        orchestrator = CheckoutOrchestrator(gateway, "buyer-1")
        lines = [make_line("100")]
        pricing = price_checkout(lines)

        await orchestrator.submit(address, cod_payment, lines, pricing)
        gateway.error = None
        outcome = await orchestrator.submit(address, cod_payment, lines, pricing)

        assert isinstance(outcome, OrderResult)
        assert gateway.payloads[0].items == gateway.payloads[1].items
        assert gateway.payloads[0].total_amount == gateway.payloads[1].total_amount

    @pytest.mark.asyncio
    async def test_checkout_session_settles_on_success(self, address, cod_payment):
        lines = [make_line("500")]
        platform = FixedVoucher(voucher_id="p", code="P", value=Decimal("10"))
        session = make_session(lines, vouchers=[platform], balance=100)
        session.set_use_bazcoins(True)
        await session.apply_voucher("P")
        gateway = FakeOrderGateway(
            result=CheckoutResult(
                success=True, transaction_id="t1", order_ids=["ORD-1"], new_bazcoin_balance=49
            )
        )
        orchestrator = CheckoutOrchestrator(gateway, "buyer-1")

        outcome = await orchestrator.checkout(session, address, cod_payment)

        assert isinstance(outcome, OrderResult)
        payload = gateway.payloads[0]
        assert payload.bazcoins_redeemed == 100
        assert payload.voucher_ids == ["p"]
        assert session.bazcoin_balance == 49
        assert len(session.applied) == 0
        assert session.lines == []

    @pytest.mark.asyncio
    async def test_checkout_session_untouched_on_failure(self, address, cod_payment):
        lines = [make_line("500")]
        session = make_session(lines, balance=100)
        session.set_use_bazcoins(True)
        orchestrator = CheckoutOrchestrator(
            FakeOrderGateway(error=ConnectionError("timeout")), "buyer-1"
        )

        outcome = await orchestrator.checkout(session, address, cod_payment)

        assert isinstance(outcome, CheckoutFailure)
        assert session.bazcoin_balance == 100
        assert session.lines == lines
