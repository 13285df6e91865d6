import logging

from storefront.notifications.email_handlers import send_admin_email, send_user_email
from storefront.notifications.events import OrderEvent
from storefront.notifications.rules import ADMIN_TEMPLATE, EMAIL_TEMPLATES, NOTIFICATION_RULES, Channel
from storefront.services.notification_service import add_admin_notification

logger = logging.getLogger(__name__)

ADMIN_TITLES = {
    OrderEvent.ORDER_PLACED: "New Order Placed",
    OrderEvent.PAYMENT_SUCCESS: "Payment Received",
    OrderEvent.PAYMENT_FAILED: "Payment Failed",
    OrderEvent.SHIPPED: "Order Shipped",
    OrderEvent.DELIVERED: "Order Delivered",
    OrderEvent.CANCELLED: "Order Cancelled",
}


def dispatch_order_event(
    *,
    event: OrderEvent,
    order,
    session,
    extra: dict | None = None,
    notify_user: bool = True,
    notify_admin: bool = True,
):
    """
    Central notification dispatcher.

    Handles:
    - user email
    - admin email
    - admin in-app notifications

    Fire-and-forget: a failing channel is logged and never reaches the
    caller, so an order transition is never undone by a notification.
    """

    channels = NOTIFICATION_RULES.get(event, set())
    extra = extra or {}

    context = {
        "order": order,
        "order_id": order.id,
        "customer_name": order.customer_name,
        "total": order.total_amount,
        "status": order.status,
        **extra,
    }

    # -------------------------
    # ADMIN IN-APP NOTIFICATION
    # -------------------------
    if notify_admin and Channel.INAPP_ADMIN in channels:
        try:
            add_admin_notification(
                session,
                order_id=order.id,
                event=event.value,
                title=ADMIN_TITLES.get(event, "Order Update"),
                content=extra.get(
                    "admin_content",
                    f"Order #{order.id} ({order.customer_email}) is now {order.status}",
                ),
            )
            session.commit()
        except Exception:
            session.rollback()
            logger.exception(f"Admin in-app notification failed for order {order.id}")

    # -------------------------
    # USER EMAIL
    # -------------------------
    if notify_user and Channel.EMAIL_USER in channels and event in EMAIL_TEMPLATES:
        template, subject = EMAIL_TEMPLATES[event]
        try:
            send_user_email(
                template=template,
                subject=subject.format(order_id=order.id),
                to_email=order.customer_email,
                **context,
            )
        except Exception:
            logger.exception(f"User email failed for order {order.id}")

    # -------------------------
    # ADMIN EMAIL
    # -------------------------
    if notify_admin and Channel.EMAIL_ADMIN in channels:
        try:
            send_admin_email(
                template=ADMIN_TEMPLATE,
                subject=f"{ADMIN_TITLES.get(event, 'Order Update')} - #{order.id}",
                **context,
            )
        except Exception:
            logger.exception(f"Admin email failed for order {order.id}")
