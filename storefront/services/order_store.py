import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from storefront.constants.order_status import OrderStatus
from storefront.exceptions import OrderNotFoundError, OrderPersistenceError, PersistentPermissionError
from storefront.models.order import Order
from storefront.models.order_item import OrderItem
from storefront.models.payment_attempt import PaymentAttempt
from storefront.schemas.checkout_schemas import (
    CartSnapshot,
    CustomerInfo,
    OrderDraft,
    ShippingQuote,
)
from storefront.services.order_event_service import log_order_event
from storefront.services.permission_recovery import with_permission_recovery

logger = logging.getLogger(__name__)


def get_order(session: Session, order_id: int) -> Order:
    order = session.get(Order, order_id)
    if not order:
        raise OrderNotFoundError()
    return order


def find_by_idempotency_key(session: Session, key: Optional[str]) -> Optional[Order]:
    if not key:
        return None
    return session.exec(
        select(Order).where(Order.idempotency_key == key)
    ).first()


def find_by_gateway_order_id(session: Session, gateway_order_id: Optional[str]) -> Optional[Order]:
    if not gateway_order_id:
        return None
    order = session.exec(
        select(Order).where(Order.gateway_order_id == gateway_order_id)
    ).first()
    if order:
        return order

    # superseded by a retry, but the attempt still remembers it
    attempt = session.exec(
        select(PaymentAttempt).where(PaymentAttempt.gateway_order_id == gateway_order_id)
    ).first()
    return session.get(Order, attempt.order_id) if attempt else None


def _guarded_write(session: Session, write: Callable, remediator: Callable, allow_integrity: bool = False):
    try:
        return with_permission_recovery(session, write, remediator)
    except PersistentPermissionError:
        raise
    except IntegrityError:
        if allow_integrity:
            raise
        session.rollback()
        raise OrderPersistenceError()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error(f"Order write failed: {exc}")
        raise OrderPersistenceError() from exc


def create_order(
    session: Session,
    *,
    draft: OrderDraft,
    customer: CustomerInfo,
    quote: ShippingQuote,
    payment_method: str,
    cart: CartSnapshot,
    remediator: Callable,
    cart_id: Optional[str] = None,
    idempotency_key: Optional[str] = None,
) -> Order:
    """
    Persist a pending order, then its items.

    The order row must exist before any gateway call since its id is the
    correlation key. Item insertion is best-effort: an order without
    items is logged and left for follow-up instead of being rolled back.
    """

    def _insert_order():
        order = Order(
            customer_name=customer.name,
            customer_email=customer.email,
            customer_phone=customer.phone,
            address=customer.address,
            city=customer.city,
            state=customer.state,
            pincode=customer.pincode,
            subtotal=draft.subtotal,
            discount_amount=draft.discount_amount,
            shipping_cost=draft.shipping_cost,
            total_amount=draft.final_total,
            coupon_code=draft.coupon_code,
            courier_id=quote.courier_id,
            courier_name=quote.courier_name,
            payment_method=payment_method,
            status=OrderStatus.pending.value,
            idempotency_key=idempotency_key,
            cart_id=cart_id,
        )
        session.add(order)
        session.commit()
        session.refresh(order)
        return order

    try:
        order = _guarded_write(session, _insert_order, remediator, allow_integrity=True)
    except IntegrityError:
        # same idempotency key submitted twice at once
        session.rollback()
        existing = find_by_idempotency_key(session, idempotency_key)
        if existing:
            return existing
        raise OrderPersistenceError()

    logger.info(f"Order #{order.id} created ({payment_method}, total {order.total_amount})")

    def _insert_items():
        for line in cart.items:
            session.add(
                OrderItem(
                    order_id=order.id,
                    product_id=line.product_id,
                    product_name=line.name,
                    variant_label=line.variant_label,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                )
            )
        log_order_event(
            session,
            order.id,
            "created",
            "Order placed",
            meta={"payment_method": payment_method, "items": len(cart.items)},
        )
        session.commit()

    try:
        _guarded_write(session, _insert_items, remediator)
    except (OrderPersistenceError, PersistentPermissionError) as exc:
        session.rollback()
        logger.error(f"Order #{order.id} saved without items: {exc}")
        _record_items_failure(session, order.id, str(exc))

    session.refresh(order)
    return order


def _record_items_failure(session: Session, order_id: int, reason: str):
    try:
        log_order_event(
            session,
            order_id,
            "items_failed",
            "Order items could not be saved",
            meta={"reason": reason},
        )
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception(f"Could not record item failure for order #{order_id}")


def save_order(
    session: Session,
    order: Order,
    remediator: Callable,
    changes: dict,
    event: Optional[dict] = None,
    extra_writes: Optional[Callable[[], None]] = None,
) -> Order:
    """Apply field changes (and an optional timeline event) in one commit."""

    def _write():
        for field, value in changes.items():
            setattr(order, field, value)
        order.updated_at = datetime.utcnow()
        session.add(order)
        if event:
            log_order_event(session, order.id, **event)
        if extra_writes:
            extra_writes()
        session.commit()
        session.refresh(order)
        return order

    return _guarded_write(session, _write, remediator)
