from typing import List, Optional

from sqlmodel import Session, select

from storefront.exceptions import EmptyCartError
from storefront.models.cart import CartItem
from storefront.schemas.checkout_schemas import CartLine, CartSnapshot


def get_cart_snapshot(
    session: Session,
    cart_id: Optional[str] = None,
    items: Optional[List[CartLine]] = None,
) -> CartSnapshot:
    """
    Freeze the cart for one checkout attempt.

    Lines sent with the request win over the stored cart (guest carts
    that live only in the browser).
    """
    if items:
        return CartSnapshot(items=list(items))

    if not cart_id:
        raise EmptyCartError()

    rows = session.exec(
        select(CartItem)
        .where(CartItem.cart_id == cart_id)
        .order_by(CartItem.id)
    ).all()

    return CartSnapshot(
        items=[
            CartLine(
                product_id=row.product_id,
                name=row.name,
                unit_price=row.unit_price,
                quantity=row.quantity,
                variant_label=row.variant_label,
            )
            for row in rows
        ]
    )


def clear_cart(session: Session, cart_id: str):
    items = session.exec(
        select(CartItem).where(CartItem.cart_id == cart_id)
    ).all()

    for item in items:
        session.delete(item)

    session.commit()
