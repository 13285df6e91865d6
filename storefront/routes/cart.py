from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from storefront.database import get_session
from storefront.models.cart import CartItem
from storefront.schemas.cart_schemas import CartItemCreate
from storefront.services.cart_service import clear_cart, get_cart_snapshot
from storefront.services.pricing import cart_subtotal

router = APIRouter()


# Add to Cart

@router.post("/{cart_id}/items")
def add_to_cart(
    cart_id: str,
    data: CartItemCreate,
    session: Session = Depends(get_session),
):
    existing_item = session.exec(
        select(CartItem).where(
            CartItem.cart_id == cart_id,
            CartItem.product_id == data.product_id,
            CartItem.variant_label == data.variant_label,
        )
    ).first()

    if existing_item:
        existing_item.quantity += data.quantity
        session.add(existing_item)
        session.commit()
        session.refresh(existing_item)
        return {"message": "Cart updated", "item": existing_item}

    new_item = CartItem(cart_id=cart_id, **data.model_dump())
    session.add(new_item)
    session.commit()
    session.refresh(new_item)

    return {"message": "Added to cart", "item": new_item}


# View Cart

@router.get("/{cart_id}")
def get_cart(cart_id: str, session: Session = Depends(get_session)):
    snapshot = get_cart_snapshot(session, cart_id)
    return {
        "cart_id": cart_id,
        "items": snapshot.items,
        "total_quantity": snapshot.total_quantity,
        "subtotal": cart_subtotal(snapshot),
    }


@router.delete("/{cart_id}")
def delete_cart(cart_id: str, session: Session = Depends(get_session)):
    clear_cart(session, cart_id)
    return {"message": "Cart cleared"}
