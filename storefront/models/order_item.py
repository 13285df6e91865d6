from decimal import Decimal
from typing import Optional, TYPE_CHECKING

from sqlmodel import SQLModel, Field, Relationship

if TYPE_CHECKING:
    from storefront.models.order import Order


class OrderItem(SQLModel, table=True):
    __tablename__ = "order_item"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    product_id: str

    product_name: str
    variant_label: Optional[str] = None
    unit_price: Decimal = Field(max_digits=12, decimal_places=2)
    quantity: int

    order: Optional["Order"] = Relationship(back_populates="items")
