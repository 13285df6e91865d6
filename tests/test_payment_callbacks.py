import hashlib
import hmac
import json

import pytest
from sqlmodel import select

from storefront.models.order import Order
from storefront.models.payment_attempt import PaymentAttempt
from storefront.services.payment_gateway import GatewayPayment

from conftest import WEBHOOK_SECRET

ADMIN = {"X-Admin-Key": "test-admin-key"}


@pytest.fixture
def upi_order(client, add_cart, customer):
    response = client.post(
        "/checkout/place-order",
        json={
            "cart_id": add_cart(),
            "customer": customer,
            "courier_id": "10",
            "payment_method": "upi_direct",
            "upi_app": "gpay",
        },
    )
    assert response.status_code == 200
    return response.json()


@pytest.fixture
def hosted_order(client, add_cart, customer):
    response = client.post(
        "/checkout/place-order",
        json={
            "cart_id": add_cart(),
            "customer": customer,
            "courier_id": "10",
            "payment_method": "hosted_checkout",
        },
    )
    return response.json()


def post_webhook(client, event, secret=WEBHOOK_SECRET):
    body = json.dumps(event)
    signature = hmac.new(secret.encode(), body.encode(), hashlib.sha256).hexdigest()
    return client.post(
        "/payments/webhook",
        content=body,
        headers={"X-Razorpay-Signature": signature, "Content-Type": "application/json"},
    )


def test_upi_start_returns_deep_link(upi_order, session):
    assert upi_order["status"] == "awaiting_payment"
    assert upi_order["next_action"] == "open_upi_link"
    assert upi_order["upi_link"].startswith("upi://pay?pa=storefront%40okicici")

    attempt = session.exec(select(PaymentAttempt)).one()
    assert attempt.upi_app == "gpay"
    assert attempt.txn_ref == upi_order["txn_ref"]
    assert attempt.amount_minor == 60000


def test_upi_return_confirmed_by_gateway(client, upi_order, gateway):
    gateway.lookup_result = GatewayPayment(payment_id="pay_upi", status="captured", method="upi")

    response = client.post(
        "/payments/upi/return",
        json={"order_id": upi_order["order_id"], "txn_ref": upi_order["txn_ref"]},
    )

    assert response.json()["status"] == "paid"
    assert response.json()["clear_cart"] is True


def test_upi_return_unconfirmed_waits_for_review(client, session, upi_order):
    response = client.post("/payments/upi/return", json={"order_id": upi_order["order_id"]})

    assert response.status_code == 200
    assert response.json()["status"] == "awaiting_payment"
    assert response.json()["clear_cart"] is False
    attempt = session.exec(select(PaymentAttempt)).one()
    assert attempt.status == "verification_pending"

    confirmed = client.post(
        f"/admin/orders/{upi_order['order_id']}/confirm-upi",
        json={"payment_id": "UTR4455667788"},
        headers=ADMIN,
    )

    assert confirmed.json()["status"] == "paid"
    order = session.get(Order, upi_order["order_id"])
    assert order.get_payment_reference().verified_by == "admin"


def test_upi_return_reported_failure(client, upi_order, gateway):
    gateway.lookup_result = GatewayPayment(payment_id="pay_upi", status="failed")

    response = client.post("/payments/upi/return", json={"order_id": upi_order["order_id"]})

    assert response.json()["status"] == "payment_failed"


def test_upi_return_with_foreign_reference(client, upi_order):
    response = client.post(
        "/payments/upi/return",
        json={"order_id": upi_order["order_id"], "txn_ref": "order_1_0"},
    )

    assert response.status_code == 402
    assert client.get(f"/checkout/orders/{upi_order['order_id']}").json()["status"] == "awaiting_payment"


def test_upi_retry_with_other_app_starts_new_attempt(client, session, upi_order):
    response = client.post(
        "/payments/retry",
        json={"order_id": upi_order["order_id"], "payment_method": "upi_direct", "upi_app": "phonepe"},
    )

    assert response.json()["upi_link"].startswith("upi://pay?pa=storefront%40ybl")
    assert len(session.exec(select(PaymentAttempt)).all()) == 2


def test_webhook_captured_marks_paid(client, session, hosted_order):
    event = {
        "event": "payment.captured",
        "payload": {
            "payment": {
                "entity": {
                    "id": "pay_hook",
                    "order_id": hosted_order["checkout_options"]["order_id"],
                    "status": "captured",
                    "notes": {"order_id": str(hosted_order["order_id"])},
                }
            }
        },
    }

    first = post_webhook(client, event)
    second = post_webhook(client, event)

    assert first.json()["changed"] is True
    assert second.json()["changed"] is False
    order = session.get(Order, hosted_order["order_id"])
    assert order.status == "paid"
    assert order.get_payment_reference().verified_by == "webhook"


def test_webhook_matches_by_gateway_order(client, session, hosted_order):
    event = {
        "event": "order.paid",
        "payload": {
            "payment": {"entity": {"id": "pay_hook", "order_id": hosted_order["checkout_options"]["order_id"]}},
            "order": {"entity": {"id": hosted_order["checkout_options"]["order_id"]}},
        },
    }

    assert post_webhook(client, event).json()["status"] == "processed"
    assert session.get(Order, hosted_order["order_id"]).status == "paid"


def test_webhook_failure_event(client, session, hosted_order):
    event = {
        "event": "payment.failed",
        "payload": {
            "payment": {
                "entity": {
                    "id": "pay_declined",
                    "order_id": hosted_order["checkout_options"]["order_id"],
                    "error_description": "Card declined by issuer",
                }
            }
        },
    }

    post_webhook(client, event)

    assert session.get(Order, hosted_order["order_id"]).status == "payment_failed"


def test_webhook_with_bad_signature_is_rejected(client, session, hosted_order):
    event = {"event": "payment.captured", "payload": {"payment": {"entity": {"id": "pay_x"}}}}

    response = post_webhook(client, event, secret="wrong")

    assert response.status_code == 402
    assert session.get(Order, hosted_order["order_id"]).status == "awaiting_payment"


def test_webhook_with_undecodable_body_is_rejected(client, session, hosted_order):
    response = client.post(
        "/payments/webhook",
        content=b"\xff\xfe{",
        headers={"X-Razorpay-Signature": "abc", "Content-Type": "application/json"},
    )

    assert response.status_code == 402
    assert response.json()["code"] == "signature_verification_failed"
    assert session.get(Order, hosted_order["order_id"]).status == "awaiting_payment"


def test_webhook_ignores_unrelated_events(client):
    assert post_webhook(client, {"event": "refund.created"}).json()["status"] == "ignored"


def test_admin_routes_need_key(client, hosted_order):
    assert client.get("/admin/orders").status_code == 403
    assert client.get("/admin/orders", headers={"X-Admin-Key": "nope"}).status_code == 403


def test_admin_lists_orders_by_status(client, hosted_order):
    response = client.get("/admin/orders", params={"status": "awaiting_payment"}, headers=ADMIN)

    assert response.json()["total_items"] == 1
    assert response.json()["results"][0]["order_id"] == hosted_order["order_id"]


def test_admin_cannot_set_payment_states(client, hosted_order):
    response = client.patch(
        f"/admin/orders/{hosted_order['order_id']}/status",
        json={"status": "paid"},
        headers=ADMIN,
    )

    assert response.status_code == 422


def test_admin_ships_cod_order(client, add_cart, customer):
    placed = client.post(
        "/checkout/place-order",
        json={"cart_id": add_cart(), "customer": customer, "courier_id": "10", "payment_method": "cod"},
    ).json()

    response = client.patch(
        f"/admin/orders/{placed['order_id']}/status",
        json={"status": "shipped"},
        headers=ADMIN,
    )

    assert response.json()["status"] == "shipped"


def test_admin_invalid_transition(client, hosted_order):
    response = client.patch(
        f"/admin/orders/{hosted_order['order_id']}/status",
        json={"status": "delivered"},
        headers=ADMIN,
    )

    assert response.status_code == 409
    assert response.json()["code"] == "invalid_transition"
