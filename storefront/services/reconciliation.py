"""
Order reconciliation.

The only place order status changes.  Every transition is checked
against ALLOWED_TRANSITIONS and is idempotent under duplicate callback
delivery: re-applying an outcome the order already reflects is a no-op
and never re-sends notifications.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from storefront.constants.order_status import AttemptStatus, OrderStatus, PaymentMethod, can_transition
from storefront.exceptions import InvalidTransitionError
from storefront.models.order import Order
from storefront.notifications import OrderEvent, dispatch_order_event
from storefront.schemas.payment_schemas import PaymentReference
from storefront.services.cart_service import clear_cart
from storefront.services.order_event_service import has_order_event, log_order_event
from storefront.services.order_store import save_order
from storefront.services.payment_attempts import set_open_attempts

logger = logging.getLogger(__name__)

# Payment outcomes never move an order backwards out of these
PAYMENT_SETTLED = {
    OrderStatus.paid.value,
    OrderStatus.processing.value,
    OrderStatus.shipped.value,
    OrderStatus.delivered.value,
}

FULFILMENT_EVENTS = {
    OrderStatus.shipped.value: OrderEvent.SHIPPED,
    OrderStatus.delivered.value: OrderEvent.DELIVERED,
    OrderStatus.cancelled.value: OrderEvent.CANCELLED,
}


@dataclass
class ReconcileResult:
    order: Order
    changed: bool
    message: str = ""


def transition(
    session: Session,
    order: Order,
    new_status: OrderStatus,
    remediator: Callable,
    *,
    label: str,
    meta: Optional[dict] = None,
    changes: Optional[dict] = None,
    created_by: str = "system",
    extra_writes: Optional[Callable[[], None]] = None,
) -> Order:
    if not can_transition(order.status, new_status.value):
        raise InvalidTransitionError(order.status, new_status.value)

    previous = order.status
    order = save_order(
        session,
        order,
        remediator,
        changes={"status": new_status.value, **(changes or {})},
        event={
            "event_type": new_status.value,
            "label": label,
            "meta": {"from": previous, **(meta or {})},
            "created_by": created_by,
        },
        extra_writes=extra_writes,
    )
    logger.info(f"Order #{order.id}: {previous} -> {new_status.value}")
    return order


def notify_once(session: Session, order: Order, event: OrderEvent, extra: Optional[dict] = None):
    """
    Send an order notification at most once per order and event.

    The marker is written before sending; a send that fails afterwards
    is logged, not retried.
    """
    marker = f"notified:{event.value}"

    try:
        if has_order_event(session, order.id, marker):
            logger.info(f"Order #{order.id}: {event.value} already notified")
            return False
        log_order_event(session, order.id, marker, f"Notification sent: {event.value}")
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception(f"Order #{order.id}: could not record {event.value} notification")
        return False

    dispatch_order_event(event=event, order=order, session=session, extra=extra)
    return True


def _clear_cart_after_success(session: Session, order: Order):
    if not order.cart_id:
        return
    try:
        clear_cart(session, order.cart_id)
    except SQLAlchemyError:
        session.rollback()
        logger.exception(f"Order #{order.id}: cart {order.cart_id} not cleared")


# -------------------------
# PAYMENT PHASE
# -------------------------

def mark_awaiting_payment(
    session: Session,
    order: Order,
    remediator: Callable,
    *,
    gateway_order_id: Optional[str] = None,
    payment_method: Optional[str] = None,
    extra_writes: Optional[Callable[[], None]] = None,
    meta: Optional[dict] = None,
) -> Order:
    changes = {}
    if gateway_order_id:
        changes["gateway_order_id"] = gateway_order_id
    if payment_method:
        changes["payment_method"] = payment_method

    if order.status == OrderStatus.awaiting_payment.value:
        # re-entry with a fresh attempt; status unchanged
        return save_order(
            session,
            order,
            remediator,
            changes=changes,
            event={"event_type": "payment_restarted", "label": "Payment restarted", "meta": meta},
            extra_writes=extra_writes,
        )

    return transition(
        session,
        order,
        OrderStatus.awaiting_payment,
        remediator,
        label="Awaiting payment",
        meta=meta,
        changes=changes,
        extra_writes=extra_writes,
    )


def mark_processing(session: Session, order: Order, remediator: Callable) -> ReconcileResult:
    """Cash-on-delivery: straight from pending to processing."""
    if order.status == OrderStatus.processing.value:
        return ReconcileResult(order, changed=False, message="Order already placed")

    order = transition(
        session,
        order,
        OrderStatus.processing,
        remediator,
        label="Cash on delivery order confirmed",
    )
    _clear_cart_after_success(session, order)
    notify_once(session, order, OrderEvent.ORDER_PLACED)
    return ReconcileResult(order, changed=True, message="Order placed successfully")


def mark_paid(
    session: Session,
    order: Order,
    reference: PaymentReference,
    remediator: Callable,
) -> ReconcileResult:
    """
    Record a verified payment.

    Callers must have verified the payment (signature, gateway lookup,
    webhook or admin) before calling this.
    """
    if order.status in PAYMENT_SETTLED:
        existing = order.get_payment_reference()
        if existing and existing.payment_id != reference.payment_id:
            logger.warning(
                f"Order #{order.id} already paid with {existing.payment_id}; "
                f"ignoring second payment {reference.payment_id}"
            )
        return ReconcileResult(order, changed=False, message="Payment already processed")

    def _close_attempts():
        set_open_attempts(session, order.id, AttemptStatus.succeeded)

    order = transition(
        session,
        order,
        OrderStatus.paid,
        remediator,
        label="Payment received",
        meta={"payment_id": reference.payment_id, "verified_by": reference.verified_by},
        changes={"payment_reference": reference.model_dump(mode="json")},
        extra_writes=_close_attempts,
    )

    _clear_cart_after_success(session, order)
    notify_once(
        session,
        order,
        OrderEvent.PAYMENT_SUCCESS,
        extra={"payment_id": reference.payment_id},
    )
    return ReconcileResult(order, changed=True, message="Payment successful")


def mark_payment_failed(
    session: Session,
    order: Order,
    remediator: Callable,
    *,
    reason: str,
    attempt_status: AttemptStatus = AttemptStatus.failed,
) -> ReconcileResult:
    """
    Move an unpaid order to payment_failed.

    A failure that arrives after a payment was recorded (late dismissal,
    out-of-order callback) is ignored.
    """
    if order.status in PAYMENT_SETTLED:
        logger.info(f"Order #{order.id} is {order.status}; ignoring failure: {reason}")
        return ReconcileResult(order, changed=False, message="Payment already processed")

    if order.status in (OrderStatus.payment_failed.value, OrderStatus.cancelled.value):
        return ReconcileResult(order, changed=False, message="Payment failed")

    def _close_attempts():
        set_open_attempts(session, order.id, attempt_status)

    order = transition(
        session,
        order,
        OrderStatus.payment_failed,
        remediator,
        label="Payment failed",
        meta={"reason": reason},
        extra_writes=_close_attempts,
    )
    notify_once(session, order, OrderEvent.PAYMENT_FAILED, extra={"admin_content": reason})
    return ReconcileResult(order, changed=True, message=reason)


# -------------------------
# FULFILMENT
# -------------------------

def update_fulfilment_status(
    session: Session,
    order: Order,
    new_status: OrderStatus,
    remediator: Callable,
    created_by: str = "admin",
) -> ReconcileResult:
    if order.status == new_status.value:
        return ReconcileResult(order, changed=False)

    # only cash on delivery skips the payment phase
    if (
        new_status == OrderStatus.processing
        and order.status != OrderStatus.paid.value
        and order.payment_method != PaymentMethod.cod.value
    ):
        raise InvalidTransitionError(order.status, new_status.value)

    order = transition(
        session,
        order,
        new_status,
        remediator,
        label=f"Order {new_status.value.replace('_', ' ')}",
        created_by=created_by,
    )

    event = FULFILMENT_EVENTS.get(new_status.value)
    if event:
        notify_once(session, order, event)

    return ReconcileResult(order, changed=True)
