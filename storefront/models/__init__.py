from storefront.models.order import Order
from storefront.models.order_item import OrderItem
from storefront.models.order_event import OrderEvent
from storefront.models.payment_attempt import PaymentAttempt
from storefront.models.coupon import Coupon
from storefront.models.cart import CartItem
from storefront.models.notifications import Notification

# add ALL models here
