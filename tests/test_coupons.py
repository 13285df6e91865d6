from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from storefront.exceptions import InvalidCouponError
from storefront.services.coupon_service import lookup_coupon


def test_lookup_is_case_insensitive(session, add_coupon):
    add_coupon("SUMMER20")

    assert lookup_coupon(session, "  summer20 ").code == "SUMMER20"


@pytest.mark.parametrize("code", ["", "NOPE", "OLD10", "OFF5"])
def test_unusable_codes_share_one_error(session, add_coupon, code):
    add_coupon("OLD10", "10", expires_at=datetime.utcnow() - timedelta(days=1))
    add_coupon("OFF5", "5", is_active=False)

    with pytest.raises(InvalidCouponError) as exc_info:
        lookup_coupon(session, code)

    assert exc_info.value.message == InvalidCouponError().message


def test_apply_coupon_previews_discount(client, add_cart, add_coupon):
    cart_id = add_cart()
    add_coupon("SUMMER20", "20", min_order_value=Decimal("0"))

    response = client.post("/checkout/coupon", json={"cart_id": cart_id, "coupon_code": "summer20"})

    assert response.status_code == 200
    body = response.json()
    assert Decimal(str(body["subtotal"])) == Decimal("500.00")
    assert Decimal(str(body["discount_amount"])) == Decimal("100.00")


def test_apply_coupon_below_minimum(client, add_cart, add_coupon):
    cart_id = add_cart()
    add_coupon("BIG", "10", min_order_value=Decimal("1000"))

    response = client.post("/checkout/coupon", json={"cart_id": cart_id, "coupon_code": "BIG"})

    assert response.status_code == 422
    assert response.json()["code"] == "invalid_coupon"


def test_expired_coupon_blocks_order(client, add_cart, add_coupon, customer, expired):
    cart_id = add_cart()
    add_coupon("OLD10", "10", expires_at=expired)

    response = client.post(
        "/checkout/place-order",
        json={
            "cart_id": cart_id,
            "customer": customer,
            "courier_id": "10",
            "payment_method": "cod",
            "coupon_code": "OLD10",
        },
    )

    assert response.status_code == 422
    assert response.json()["code"] == "invalid_coupon"
    assert client.get("/admin/orders", headers={"X-Admin-Key": "test-admin-key"}).json()["total_items"] == 0
