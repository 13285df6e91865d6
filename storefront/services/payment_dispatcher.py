"""
Checkout pipeline: cart + customer -> draft -> pending order -> payment.

One pipeline for all three payment methods; the method only decides
which start-up branch runs after the order exists.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from sqlmodel import Session

from storefront.config import settings
from storefront.constants.order_status import (
    RETRYABLE_STATUSES,
    AttemptStatus,
    OrderStatus,
    PaymentMethod,
)
from storefront.exceptions import EmptyCartError, GatewayOrderError, InvalidTransitionError, StartupError
from storefront.models.order import Order
from storefront.schemas.checkout_schemas import (
    CartSnapshot,
    CustomerInfo,
    OrderDraft,
    PlaceOrderRequest,
    ShippingQuote,
)
from storefront.schemas.payment_schemas import PaymentOutcome
from storefront.services import reconciliation
from storefront.services.cart_service import get_cart_snapshot
from storefront.services.coupon_service import lookup_coupon
from storefront.services.order_store import create_order, find_by_idempotency_key, get_order
from storefront.services.payment_attempts import latest_attempt, new_attempt
from storefront.services.payment_gateway import RemoteOrder
from storefront.services.pricing import build_draft
from storefront.services.shipping_service import resolve_quote
from storefront.services.upi_service import build_upi_link, make_txn_ref, resolve_upi_app
from storefront.utils.money import to_minor_units

logger = logging.getLogger(__name__)


def draft_from_order(order: Order) -> OrderDraft:
    return OrderDraft(
        subtotal=order.subtotal,
        discount_amount=order.discount_amount,
        shipping_cost=order.shipping_cost,
        final_total=order.total_amount,
        coupon_code=order.coupon_code,
    )


def customer_from_order(order: Order) -> CustomerInfo:
    return CustomerInfo(
        name=order.customer_name,
        email=order.customer_email,
        phone=order.customer_phone,
        address=order.address,
        city=order.city,
        state=order.state,
        pincode=order.pincode,
    )


def check_startup(method: PaymentMethod, gateway, upi_app: Optional[str] = None) -> None:
    """
    Preconditions for starting a payment.

    Runs before any order is created or changed so a payment that can't
    start never leaves a half-made order behind.
    """
    if method == PaymentMethod.hosted_checkout and not gateway.configured:
        logger.error("Hosted checkout requested but gateway credentials are missing")
        raise StartupError("Online payment is unavailable right now. Please choose another method.")

    if method == PaymentMethod.upi_direct:
        resolve_upi_app(upi_app)


def price_checkout(
    session: Session,
    cart: CartSnapshot,
    *,
    pincode: str,
    courier_id: str,
    shipping_client,
    coupon_code: Optional[str] = None,
    cash_on_delivery: bool = False,
    now: Optional[datetime] = None,
) -> tuple[OrderDraft, ShippingQuote]:
    if cart.is_empty:
        raise EmptyCartError()

    quote = resolve_quote(shipping_client, pincode, courier_id, cart, cod=cash_on_delivery)
    coupon = lookup_coupon(session, coupon_code, now) if coupon_code else None
    draft = build_draft(cart, coupon, quote, now=now)
    return draft, quote


def place_order(
    session: Session,
    request: PlaceOrderRequest,
    *,
    gateway,
    shipping_client,
    remediator: Callable,
) -> PaymentOutcome:
    existing = find_by_idempotency_key(session, request.idempotency_key)
    if existing:
        logger.info(f"Duplicate submission for order #{existing.id}")
        return resume_outcome(session, existing, gateway)

    method = request.payment_method
    check_startup(method, gateway, request.upi_app)

    cart = get_cart_snapshot(session, request.cart_id, request.items)
    draft, quote = price_checkout(
        session,
        cart,
        pincode=request.customer.pincode,
        courier_id=request.courier_id,
        shipping_client=shipping_client,
        coupon_code=request.coupon_code,
        cash_on_delivery=method == PaymentMethod.cod,
    )

    order = create_order(
        session,
        draft=draft,
        customer=request.customer,
        quote=quote,
        payment_method=method.value,
        cart=cart,
        remediator=remediator,
        cart_id=request.cart_id,
        idempotency_key=request.idempotency_key,
    )

    if order.status != OrderStatus.pending.value:
        # lost an idempotency race; the other request owns this order
        return resume_outcome(session, order, gateway)

    return dispatch(
        session,
        order,
        method,
        draft,
        request.customer,
        gateway=gateway,
        remediator=remediator,
        upi_app=request.upi_app,
    )


def dispatch(
    session: Session,
    order: Order,
    method: PaymentMethod,
    draft: OrderDraft,
    customer: CustomerInfo,
    *,
    gateway,
    remediator: Callable,
    upi_app: Optional[str] = None,
) -> PaymentOutcome:
    if method == PaymentMethod.cod:
        result = reconciliation.mark_processing(session, order, remediator)
        return PaymentOutcome(
            order_id=order.id,
            status=result.order.status,
            payment_method=method,
            draft=draft,
            clear_cart=True,
            message=result.message,
        )

    if method == PaymentMethod.hosted_checkout:
        return _start_hosted_checkout(session, order, draft, customer, gateway, remediator)

    if method == PaymentMethod.upi_direct:
        return _start_upi(session, order, draft, upi_app, remediator)

    raise StartupError(f"Unsupported payment method: {method}")


def _start_hosted_checkout(
    session: Session,
    order: Order,
    draft: OrderDraft,
    customer: CustomerInfo,
    gateway,
    remediator: Callable,
) -> PaymentOutcome:
    try:
        remote = gateway.create_remote_order(order.total_amount, settings.CURRENCY, order.id)
    except GatewayOrderError as exc:
        reconciliation.mark_payment_failed(session, order, remediator, reason=exc.message)
        raise

    def _record_attempt():
        session.add(
            new_attempt(
                order_id=order.id,
                method=PaymentMethod.hosted_checkout.value,
                amount_minor=remote.amount_minor,
                gateway_order_id=remote.remote_order_id,
            )
        )

    order = reconciliation.mark_awaiting_payment(
        session,
        order,
        remediator,
        gateway_order_id=remote.remote_order_id,
        payment_method=PaymentMethod.hosted_checkout.value,
        extra_writes=_record_attempt,
        meta={"method": PaymentMethod.hosted_checkout.value},
    )

    return PaymentOutcome(
        order_id=order.id,
        status=order.status,
        payment_method=PaymentMethod.hosted_checkout,
        draft=draft,
        next_action="open_hosted_checkout",
        checkout_options=gateway.checkout_options(remote, order.id, customer),
        message="Order placed. Please complete the payment.",
    )


def _start_upi(
    session: Session,
    order: Order,
    draft: OrderDraft,
    upi_app: Optional[str],
    remediator: Callable,
) -> PaymentOutcome:
    app_id, vpa = resolve_upi_app(upi_app)
    txn_ref = make_txn_ref(order.id)
    link = build_upi_link(vpa, order.total_amount, order.id, txn_ref)

    def _record_attempt():
        session.add(
            new_attempt(
                order_id=order.id,
                method=PaymentMethod.upi_direct.value,
                amount_minor=to_minor_units(order.total_amount),
                upi_app=app_id,
                txn_ref=txn_ref,
            )
        )

    order = reconciliation.mark_awaiting_payment(
        session,
        order,
        remediator,
        payment_method=PaymentMethod.upi_direct.value,
        extra_writes=_record_attempt,
        meta={"method": PaymentMethod.upi_direct.value, "upi_app": app_id, "txn_ref": txn_ref},
    )

    return PaymentOutcome(
        order_id=order.id,
        status=order.status,
        payment_method=PaymentMethod.upi_direct,
        draft=draft,
        next_action="open_upi_link",
        upi_link=link,
        txn_ref=txn_ref,
        message="Complete the payment in your UPI app, then return here.",
    )


def resume_outcome(session: Session, order: Order, gateway) -> PaymentOutcome:
    """Describe an existing order's payment state without touching it."""
    method = PaymentMethod(order.payment_method)
    draft = draft_from_order(order)
    outcome = PaymentOutcome(
        order_id=order.id,
        status=order.status,
        payment_method=method,
        draft=draft,
        clear_cart=order.status in reconciliation.PAYMENT_SETTLED,
        message="Order already submitted",
    )

    if order.status != OrderStatus.awaiting_payment.value:
        return outcome

    attempt = latest_attempt(session, order.id, method.value)
    if not attempt or attempt.status != AttemptStatus.initiated.value or attempt.is_expired():
        return outcome

    if method == PaymentMethod.hosted_checkout and attempt.gateway_order_id:
        remote = RemoteOrder(attempt.gateway_order_id, attempt.amount_minor, settings.CURRENCY)
        outcome.next_action = "open_hosted_checkout"
        outcome.checkout_options = gateway.checkout_options(remote, order.id, customer_from_order(order))
    elif method == PaymentMethod.upi_direct and attempt.upi_app:
        _, vpa = resolve_upi_app(attempt.upi_app)
        outcome.next_action = "open_upi_link"
        outcome.upi_link = build_upi_link(vpa, order.total_amount, order.id, attempt.txn_ref)
        outcome.txn_ref = attempt.txn_ref

    return outcome


def retry_payment(
    session: Session,
    order_id: int,
    method: PaymentMethod,
    *,
    gateway,
    remediator: Callable,
    upi_app: Optional[str] = None,
) -> PaymentOutcome:
    """
    Re-enter the dispatcher for an existing unpaid order.

    Never creates a second order. A hosted checkout still in flight is
    handed back as-is instead of creating another gateway order. A
    pending order whose payment never started (its start-up write
    failed) is dispatched again.
    """
    order = get_order(session, order_id)

    if order.status not in RETRYABLE_STATUSES and not _stalled_before_payment(session, order):
        if order.status in reconciliation.PAYMENT_SETTLED:
            return resume_outcome(session, order, gateway)
        raise InvalidTransitionError(order.status, OrderStatus.awaiting_payment.value)

    if method == PaymentMethod.cod:
        # COD orders never enter awaiting_payment, so COD is not a retry target
        raise StartupError("Cash on delivery is not available for this order. Please pay online.")

    check_startup(method, gateway, upi_app)

    if order.status == OrderStatus.awaiting_payment.value and order.payment_method == method.value:
        resumed = resume_outcome(session, order, gateway)
        same_app = method != PaymentMethod.upi_direct or (upi_app or "").strip().lower() == _attempt_app(session, order)
        if resumed.next_action != "none" and same_app:
            return resumed

    logger.info(f"Retrying payment for order #{order.id} via {method.value}")
    return dispatch(
        session,
        order,
        method,
        draft_from_order(order),
        customer_from_order(order),
        gateway=gateway,
        remediator=remediator,
        upi_app=upi_app,
    )


def _attempt_app(session: Session, order: Order) -> Optional[str]:
    attempt = latest_attempt(session, order.id, PaymentMethod.upi_direct.value)
    return attempt.upi_app if attempt else None


def _stalled_before_payment(session: Session, order: Order) -> bool:
    return order.status == OrderStatus.pending.value and latest_attempt(session, order.id) is None
