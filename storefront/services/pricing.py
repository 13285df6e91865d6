"""
Order draft builder.

Turns a cart snapshot, an optional coupon and the selected shipping quote
into the priced draft an order is created from.  Pure: no database or
network access, so the same inputs always give the same draft.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from storefront.exceptions import EmptyCartError, InvalidCouponError, MissingShippingError
from storefront.models.coupon import Coupon
from storefront.schemas.checkout_schemas import CartSnapshot, OrderDraft, ShippingQuote
from storefront.utils.money import to_money

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def cart_subtotal(cart: CartSnapshot) -> Decimal:
    return to_money(sum((line.line_total for line in cart.items), ZERO))


def coupon_is_valid(coupon: Coupon, subtotal: Decimal, now: Optional[datetime] = None) -> bool:
    now = now or datetime.utcnow()

    if not coupon.is_active:
        return False

    if coupon.expires_at and coupon.expires_at < now:
        return False

    if coupon.min_order_value is not None and subtotal < coupon.min_order_value:
        return False

    return True


def compute_discount(coupon: Coupon, subtotal: Decimal) -> Decimal:
    discount = to_money(subtotal * Decimal(coupon.discount_percent) / 100)

    if coupon.max_discount is not None:
        discount = min(discount, to_money(coupon.max_discount))

    return min(discount, subtotal)


def build_draft(
    cart: CartSnapshot,
    coupon: Optional[Coupon] = None,
    shipping_quote: Optional[ShippingQuote] = None,
    now: Optional[datetime] = None,
) -> OrderDraft:
    if cart.is_empty:
        raise EmptyCartError()

    if shipping_quote is None or shipping_quote.cost <= 0:
        raise MissingShippingError()

    subtotal = cart_subtotal(cart)
    discount = ZERO

    if coupon is not None:
        # checked now, not when the coupon was first applied
        if not coupon_is_valid(coupon, subtotal, now):
            logger.info(f"Coupon {coupon.code} rejected at draft time")
            raise InvalidCouponError()
        discount = compute_discount(coupon, subtotal)

    shipping = to_money(shipping_quote.cost)

    return OrderDraft(
        subtotal=subtotal,
        discount_amount=discount,
        shipping_cost=shipping,
        final_total=to_money(subtotal - discount + shipping),
        coupon_code=coupon.code if coupon else None,
    )
