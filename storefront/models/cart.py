from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlmodel import SQLModel, Field


class CartItem(SQLModel, table=True):
    __tablename__ = "cart_item"

    id: Optional[int] = Field(default=None, primary_key=True)
    cart_id: str = Field(index=True)

    product_id: str
    name: str
    unit_price: Decimal = Field(max_digits=12, decimal_places=2)
    quantity: int = Field(default=1)
    variant_label: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
