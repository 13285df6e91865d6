from datetime import datetime, timedelta

from sqlmodel import select

from storefront.models.order import Order
from storefront.models.payment_attempt import PaymentAttempt
from storefront.services.order_expiry_service import expire_stale_payments


def place_hosted(client, cart_id, customer):
    return client.post(
        "/checkout/place-order",
        json={
            "cart_id": cart_id,
            "customer": customer,
            "courier_id": "10",
            "payment_method": "hosted_checkout",
        },
    ).json()


def later(minutes=31):
    return datetime.utcnow() + timedelta(minutes=minutes)


def test_fresh_attempts_are_left_alone(client, session, add_cart, customer, remediator):
    placed = place_hosted(client, add_cart(), customer)

    assert expire_stale_payments(session, remediator) == 0
    assert session.get(Order, placed["order_id"]).status == "awaiting_payment"


def test_stale_attempt_fails_order_and_allows_retry(client, session, add_cart, customer, remediator):
    placed = place_hosted(client, add_cart(), customer)

    assert expire_stale_payments(session, remediator, now=later()) == 1

    order = session.get(Order, placed["order_id"])
    attempt = session.exec(select(PaymentAttempt)).one()
    assert order.status == "payment_failed"
    assert attempt.status == "expired"

    retried = client.post("/payments/retry", json={"order_id": order.id, "payment_method": "hosted_checkout"})
    assert retried.json()["status"] == "awaiting_payment"


def test_pending_verification_is_kept_for_review(client, session, add_cart, customer, remediator):
    placed = client.post(
        "/checkout/place-order",
        json={
            "cart_id": add_cart(),
            "customer": customer,
            "courier_id": "10",
            "payment_method": "upi_direct",
            "upi_app": "paytm",
        },
    ).json()
    client.post("/payments/upi/return", json={"order_id": placed["order_id"]})

    assert expire_stale_payments(session, remediator, now=later()) == 0
    assert session.get(Order, placed["order_id"]).status == "awaiting_payment"


def test_paid_orders_only_close_attempts(client, session, add_cart, customer, remediator):
    placed = place_hosted(client, add_cart(), customer)
    attempt = session.exec(select(PaymentAttempt)).one()
    order = session.get(Order, placed["order_id"])
    order.status = "paid"
    session.add(order)
    session.commit()

    assert expire_stale_payments(session, remediator, now=later()) == 0

    session.refresh(attempt)
    assert attempt.status == "expired"
    assert session.get(Order, placed["order_id"]).status == "paid"
