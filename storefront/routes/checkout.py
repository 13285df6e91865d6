from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from storefront.database import get_session
from storefront.dependencies.providers import get_gateway, get_remediator, get_shipping_client
from storefront.exceptions import InvalidCouponError, MissingShippingError
from storefront.models.order_item import OrderItem
from storefront.schemas.checkout_schemas import (
    CouponRequest,
    DraftRequest,
    OrderSummary,
    PlaceOrderRequest,
    ShippingQuoteRequest,
    ShippingQuoteResponse,
)
from storefront.schemas.payment_schemas import PaymentOutcome
from storefront.services.cart_service import get_cart_snapshot
from storefront.services.coupon_service import lookup_coupon
from storefront.services.order_store import get_order
from storefront.services.payment_dispatcher import place_order, price_checkout
from storefront.services.pricing import cart_subtotal, compute_discount, coupon_is_valid
from storefront.services.shipping_service import parcel_weight, validate_pincode

router = APIRouter()


@router.post("/coupon")
def apply_coupon(
    payload: CouponRequest,
    session: Session = Depends(get_session),
):
    cart = get_cart_snapshot(session, payload.cart_id, payload.items)
    coupon = lookup_coupon(session, payload.coupon_code)
    subtotal = cart_subtotal(cart)

    if not coupon_is_valid(coupon, subtotal):
        raise InvalidCouponError()

    discount = compute_discount(coupon, subtotal)
    return {
        "coupon_code": coupon.code,
        "discount_percent": coupon.discount_percent,
        "subtotal": subtotal,
        "discount_amount": discount,
        "message": "Coupon applied",
    }


@router.post("/shipping-quotes", response_model=ShippingQuoteResponse)
def shipping_quotes(
    payload: ShippingQuoteRequest,
    session: Session = Depends(get_session),
    shipping_client=Depends(get_shipping_client),
):
    pincode = validate_pincode(payload.pincode)
    cart = get_cart_snapshot(session, payload.cart_id, payload.items)

    couriers = shipping_client.quotes(pincode, parcel_weight(cart), payload.cash_on_delivery)
    return ShippingQuoteResponse(
        pincode=pincode,
        serviceable=bool(couriers),
        couriers=couriers,
    )


@router.post("/draft")
def checkout_draft(
    payload: DraftRequest,
    session: Session = Depends(get_session),
    shipping_client=Depends(get_shipping_client),
):
    if not (payload.pincode and payload.courier_id):
        raise MissingShippingError()

    cart = get_cart_snapshot(session, payload.cart_id, payload.items)
    draft, quote = price_checkout(
        session,
        cart,
        pincode=payload.pincode,
        courier_id=payload.courier_id,
        shipping_client=shipping_client,
        coupon_code=payload.coupon_code,
        cash_on_delivery=payload.cash_on_delivery,
    )
    return {"draft": draft, "shipping": quote}


@router.post("/place-order", response_model=PaymentOutcome)
def place_order_route(
    payload: PlaceOrderRequest,
    session: Session = Depends(get_session),
    gateway=Depends(get_gateway),
    shipping_client=Depends(get_shipping_client),
    remediator=Depends(get_remediator),
):
    return place_order(
        session,
        payload,
        gateway=gateway,
        shipping_client=shipping_client,
        remediator=remediator,
    )


@router.get("/orders/{order_id}", response_model=OrderSummary)
def order_summary(order_id: int, session: Session = Depends(get_session)):
    order = get_order(session, order_id)
    items = session.exec(
        select(OrderItem).where(OrderItem.order_id == order.id)
    ).all()

    return OrderSummary(
        order_id=order.id,
        status=order.status,
        payment_method=order.payment_method,
        subtotal=order.subtotal,
        discount_amount=order.discount_amount,
        shipping_cost=order.shipping_cost,
        total_amount=order.total_amount,
        coupon_code=order.coupon_code,
        courier_name=order.courier_name,
        paid=order.get_payment_reference() is not None,
        items=[
            {
                "product_id": item.product_id,
                "name": item.product_name,
                "variant": item.variant_label,
                "price": item.unit_price,
                "quantity": item.quantity,
            }
            for item in items
        ],
    )
