from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from storefront.exceptions import EmptyCartError, InvalidCouponError, MissingShippingError
from storefront.models.coupon import Coupon
from storefront.schemas.checkout_schemas import CartLine, CartSnapshot, ShippingQuote
from storefront.services.pricing import build_draft, compute_discount, coupon_is_valid


def cart(*lines):
    return CartSnapshot(
        items=[
            CartLine(product_id=f"sku-{i}", name=f"Item {i}", unit_price=Decimal(price), quantity=qty)
            for i, (price, qty) in enumerate(lines)
        ]
    )


def quote(cost="100.00"):
    return ShippingQuote(courier_id="10", courier_name="Delhivery", cost=Decimal(cost))


def coupon(percent="20", **fields):
    return Coupon(code="SUMMER20", discount_percent=Decimal(percent), **fields)


def test_draft_totals_add_up():
    draft = build_draft(cart(("199.99", 3), ("45.50", 1)), coupon("15"), quote("79.00"))

    assert draft.subtotal == Decimal("645.47")
    assert draft.discount_amount == Decimal("96.82")
    assert draft.shipping_cost == Decimal("79.00")
    assert draft.final_total == draft.subtotal - draft.discount_amount + draft.shipping_cost
    assert min(draft.subtotal, draft.discount_amount, draft.shipping_cost) >= 0


def test_scenario_a_twenty_percent_coupon():
    draft = build_draft(cart(("250.00", 2)), coupon("20", min_order_value=Decimal("0")), quote("100"))

    assert draft.discount_amount == Decimal("100.00")
    assert draft.final_total == Decimal("500.00")
    assert draft.coupon_code == "SUMMER20"


def test_no_coupon_means_no_discount():
    draft = build_draft(cart(("300.00", 1)), None, quote("120.00"))

    assert draft.discount_amount == Decimal("0.00")
    assert draft.final_total == Decimal("420.00")
    assert draft.coupon_code is None


def test_empty_cart_is_rejected():
    with pytest.raises(EmptyCartError):
        build_draft(CartSnapshot(items=[]), None, quote())


@pytest.mark.parametrize("shipping", [None, quote("0")])
def test_missing_or_zero_shipping_is_rejected(shipping):
    with pytest.raises(MissingShippingError):
        build_draft(cart(("100.00", 1)), None, shipping)


def test_expired_coupon_rejected_at_draft_time():
    stale = coupon(expires_at=datetime.utcnow() - timedelta(minutes=1))

    with pytest.raises(InvalidCouponError):
        build_draft(cart(("500.00", 1)), stale, quote())


def test_inactive_coupon_rejected():
    with pytest.raises(InvalidCouponError):
        build_draft(cart(("500.00", 1)), coupon(is_active=False), quote())


def test_minimum_order_value_enforced():
    assert not coupon_is_valid(coupon(min_order_value=Decimal("1000")), Decimal("999.99"))
    assert coupon_is_valid(coupon(min_order_value=Decimal("1000")), Decimal("1000.00"))


def test_discount_capped_by_max_discount():
    assert compute_discount(coupon("50", max_discount=Decimal("150")), Decimal("1000")) == Decimal("150.00")


def test_discount_uncapped_without_max_discount():
    assert compute_discount(coupon("50"), Decimal("1000")) == Decimal("500.00")


def test_discount_never_exceeds_subtotal():
    assert compute_discount(coupon("150"), Decimal("80.00")) == Decimal("80.00")


@pytest.mark.parametrize(
    "percent, subtotal, expected",
    [
        ("15", "333.33", "50.00"),  # 49.9995 rounds half up to the paisa
        ("12.5", "99.99", "12.50"),  # 12.49875
        ("10", "0.05", "0.01"),  # 0.005
    ],
)
def test_discount_rounds_half_up_to_paise(percent, subtotal, expected):
    assert compute_discount(coupon(percent), Decimal(subtotal)) == Decimal(expected)
