from datetime import datetime
from decimal import Decimal
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field, Relationship

from storefront.constants.order_status import OrderStatus

if TYPE_CHECKING:
    from storefront.models.order_item import OrderItem
    from storefront.schemas.payment_schemas import PaymentReference


class Order(SQLModel, table=True):
    __tablename__ = "orders"

    id: Optional[int] = Field(default=None, primary_key=True)

    # customer snapshot taken at checkout
    customer_name: str
    customer_email: str
    customer_phone: str
    address: str
    city: str
    state: str
    pincode: str = Field(index=True)

    subtotal: Decimal = Field(max_digits=12, decimal_places=2)
    discount_amount: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    shipping_cost: Decimal = Field(max_digits=12, decimal_places=2)
    total_amount: Decimal = Field(max_digits=12, decimal_places=2)
    coupon_code: Optional[str] = None

    courier_id: Optional[str] = None
    courier_name: Optional[str] = None

    payment_method: str = Field(index=True)
    status: str = Field(default=OrderStatus.pending.value, index=True)

    gateway_order_id: Optional[str] = Field(default=None, index=True)
    payment_reference: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    idempotency_key: Optional[str] = Field(default=None, unique=True, index=True)
    cart_id: Optional[str] = Field(default=None, index=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    items: List["OrderItem"] = Relationship(back_populates="order")

    # JSON stays at this edge; everything else works with PaymentReference
    def get_payment_reference(self) -> Optional["PaymentReference"]:
        from storefront.schemas.payment_schemas import PaymentReference

        if not self.payment_reference:
            return None
        return PaymentReference.model_validate(self.payment_reference)
