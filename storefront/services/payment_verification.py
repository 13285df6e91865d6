"""
Payment callbacks: hosted checkout success/dismissal, UPI return,
gateway webhooks and manual confirmation.

Nothing here trusts the client. A payment is recorded only after the
signature, a gateway lookup, a signed webhook or an admin vouches for it.
"""
import json
import logging
from datetime import datetime
from typing import Callable, Optional

from sqlmodel import Session

from storefront.constants.order_status import AttemptStatus, OrderStatus, PaymentMethod
from storefront.exceptions import InvalidTransitionError, SignatureVerificationError, ValidationError
from storefront.models.order import Order
from storefront.schemas.payment_schemas import (
    HostedPaymentVerifySchema,
    PaymentReference,
)
from storefront.services import reconciliation
from storefront.services.order_store import find_by_gateway_order_id, get_order, save_order
from storefront.services.payment_attempts import latest_attempt
from storefront.services.reconciliation import ReconcileResult

logger = logging.getLogger(__name__)

WEBHOOK_PAID_EVENTS = {"payment.captured", "payment.authorized", "order.paid"}
WEBHOOK_FAILED_EVENTS = {"payment.failed"}

_PENDING_MESSAGE = "We're confirming your payment. You'll receive an email once it is verified."


def _already_processed(order) -> Optional[ReconcileResult]:
    if order.status in reconciliation.PAYMENT_SETTLED:
        return ReconcileResult(order, changed=False, message="Payment already processed")
    return None


# -------------------------
# HOSTED CHECKOUT
# -------------------------

def verify_hosted_payment(
    session: Session,
    payload: HostedPaymentVerifySchema,
    *,
    gateway,
    remediator: Callable,
) -> ReconcileResult:
    order = get_order(session, payload.order_id)

    done = _already_processed(order)
    if done:
        return done

    owner = find_by_gateway_order_id(session, payload.razorpay_order_id)
    if not owner or owner.id != order.id:
        logger.warning(
            f"Order #{order.id}: callback for unknown gateway order {payload.razorpay_order_id}"
        )
        reconciliation.mark_payment_failed(
            session, order, remediator, reason="Gateway order mismatch"
        )
        raise SignatureVerificationError()

    if not gateway.verify_signature(
        payload.razorpay_payment_id,
        payload.razorpay_order_id,
        payload.razorpay_signature,
    ):
        reconciliation.mark_payment_failed(
            session, order, remediator, reason="Payment signature verification failed"
        )
        raise SignatureVerificationError()

    reference = PaymentReference(
        payment_id=payload.razorpay_payment_id,
        gateway_order_id=payload.razorpay_order_id,
        signature=payload.razorpay_signature,
        verified_by="signature",
        method=PaymentMethod.hosted_checkout.value,
    )
    logger.info(f"Order #{order.id}: payment {reference.payment_id} verified")
    return reconciliation.mark_paid(session, order, reference, remediator)


def dismiss_hosted_checkout(
    session: Session,
    order_id: int,
    *,
    remediator: Callable,
    reason: Optional[str] = None,
) -> ReconcileResult:
    """Modal closed or payment errored in the widget. Never undoes a payment."""
    order = get_order(session, order_id)
    return reconciliation.mark_payment_failed(
        session,
        order,
        remediator,
        reason=reason or "Payment cancelled by customer",
    )


# -------------------------
# UPI DIRECT
# -------------------------

def confirm_upi_return(
    session: Session,
    order_id: int,
    *,
    gateway,
    remediator: Callable,
    txn_ref: Optional[str] = None,
) -> ReconcileResult:
    """
    The customer is back from their UPI app.

    Returning is not proof of payment. Ask the gateway; if it has no
    answer yet the attempt waits for a webhook or an admin.
    """
    order = get_order(session, order_id)

    done = _already_processed(order)
    if done:
        return done

    attempt = latest_attempt(session, order.id, PaymentMethod.upi_direct.value)
    if not attempt:
        raise ValidationError("No UPI payment was started for this order.")

    if txn_ref and attempt.txn_ref != txn_ref:
        logger.warning(f"Order #{order.id}: UPI return with stale reference {txn_ref}")
        raise SignatureVerificationError("Payment reference does not match this order.")

    payment = gateway.find_order_payment(order.id, since=attempt.created_at)

    if payment and payment.succeeded:
        reference = PaymentReference(
            payment_id=payment.payment_id,
            gateway_order_id=payment.remote_order_id,
            verified_by="gateway_lookup",
            method=PaymentMethod.upi_direct.value,
        )
        return reconciliation.mark_paid(session, order, reference, remediator)

    if payment and payment.failed:
        return reconciliation.mark_payment_failed(
            session, order, remediator, reason="UPI payment failed"
        )

    if attempt.status == AttemptStatus.verification_pending.value:
        return ReconcileResult(order, changed=False, message=_PENDING_MESSAGE)

    def _hold_attempt():
        attempt.status = AttemptStatus.verification_pending.value
        attempt.updated_at = datetime.utcnow()
        session.add(attempt)

    order = save_order(
        session,
        order,
        remediator,
        changes={},
        event={
            "event_type": "verification_pending",
            "label": "UPI payment awaiting confirmation",
            "meta": {"txn_ref": attempt.txn_ref, "upi_app": attempt.upi_app},
        },
        extra_writes=_hold_attempt,
    )
    logger.info(f"Order #{order.id}: UPI payment not yet visible, held for review")
    return ReconcileResult(order, changed=True, message=_PENDING_MESSAGE)


# -------------------------
# WEBHOOK
# -------------------------

def _entity(payload: dict, name: str) -> dict:
    return ((payload.get("payload") or {}).get(name) or {}).get("entity") or {}


def handle_webhook(
    session: Session,
    body: str,
    signature: Optional[str],
    *,
    gateway,
    remediator: Callable,
) -> dict:
    if not gateway.verify_webhook(body, signature or ""):
        raise SignatureVerificationError("Invalid webhook signature")

    try:
        payload = json.loads(body)
    except ValueError:
        logger.warning("Webhook body is not JSON")
        return {"status": "ignored"}

    event = payload.get("event", "")
    payment = _entity(payload, "payment")
    remote_order = _entity(payload, "order")

    if event not in WEBHOOK_PAID_EVENTS | WEBHOOK_FAILED_EVENTS:
        logger.info(f"Webhook {event} ignored")
        return {"status": "ignored", "event": event}

    order = None
    notes = payment.get("notes") or remote_order.get("notes") or {}
    local_id = str(notes.get("order_id", "")).strip()
    if local_id.isdigit():
        order = session.get(Order, int(local_id))
    if not order:
        order = find_by_gateway_order_id(session, payment.get("order_id") or remote_order.get("id"))
    if not order:
        logger.warning(f"Webhook {event}: no matching order")
        return {"status": "ignored", "event": event}

    if event in WEBHOOK_FAILED_EVENTS:
        reason = payment.get("error_description") or "Payment failed at gateway"
        result = reconciliation.mark_payment_failed(session, order, remediator, reason=reason)
    else:
        payment_id = payment.get("id")
        if not payment_id:
            logger.warning(f"Webhook {event} for order #{order.id} carries no payment")
            return {"status": "ignored", "event": event}
        reference = PaymentReference(
            payment_id=payment_id,
            gateway_order_id=payment.get("order_id") or remote_order.get("id"),
            verified_by="webhook",
            method=order.payment_method,
        )
        try:
            result = reconciliation.mark_paid(session, order, reference, remediator)
        except InvalidTransitionError as exc:
            # e.g. paid after the order was cancelled; needs a refund, not a retry
            logger.error(f"Webhook {event} for order #{order.id}: {exc.message}")
            return {"status": "ignored", "event": event, "order_id": order.id}

    logger.info(f"Webhook {event} applied to order #{order.id} (changed={result.changed})")
    return {
        "status": "processed",
        "event": event,
        "order_id": order.id,
        "changed": result.changed,
    }


# -------------------------
# ADMIN
# -------------------------

def admin_confirm_payment(
    session: Session,
    order_id: int,
    payment_id: str,
    *,
    remediator: Callable,
) -> ReconcileResult:
    """Manual confirmation of a UPI payment seen on the merchant statement."""
    order = get_order(session, order_id)

    done = _already_processed(order)
    if done:
        return done

    if order.status not in (OrderStatus.awaiting_payment.value, OrderStatus.payment_failed.value):
        raise ValidationError("Only orders awaiting payment can be confirmed.")

    reference = PaymentReference(
        payment_id=payment_id,
        gateway_order_id=order.gateway_order_id,
        verified_by="admin",
        method=order.payment_method,
    )
    return reconciliation.mark_paid(session, order, reference, remediator)
