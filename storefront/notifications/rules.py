from enum import Enum

from storefront.notifications.events import OrderEvent


class Channel(str, Enum):
    EMAIL_USER = "email_user"
    EMAIL_ADMIN = "email_admin"
    INAPP_ADMIN = "inapp_admin"


# which channels fire for each order event
NOTIFICATION_RULES = {
    OrderEvent.ORDER_PLACED: {Channel.EMAIL_USER, Channel.INAPP_ADMIN, Channel.EMAIL_ADMIN},
    OrderEvent.PAYMENT_SUCCESS: {Channel.EMAIL_USER, Channel.INAPP_ADMIN, Channel.EMAIL_ADMIN},
    OrderEvent.PAYMENT_FAILED: {Channel.INAPP_ADMIN},
    OrderEvent.SHIPPED: {Channel.EMAIL_USER, Channel.INAPP_ADMIN},
    OrderEvent.DELIVERED: {Channel.EMAIL_USER},
    OrderEvent.CANCELLED: {Channel.EMAIL_USER, Channel.INAPP_ADMIN},
}

# user email template + subject per event
EMAIL_TEMPLATES = {
    OrderEvent.ORDER_PLACED: ("user_emails/order_placed.html", "Order #{order_id} placed successfully"),
    OrderEvent.PAYMENT_SUCCESS: ("user_emails/payment_success.html", "Payment successful - Order #{order_id}"),
    OrderEvent.SHIPPED: ("user_emails/order_status.html", "Order #{order_id} has shipped"),
    OrderEvent.DELIVERED: ("user_emails/order_status.html", "Order #{order_id} delivered"),
    OrderEvent.CANCELLED: ("user_emails/order_status.html", "Order #{order_id} cancelled"),
}

ADMIN_TEMPLATE = "admin_emails/order_update.html"
