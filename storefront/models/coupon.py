from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlmodel import SQLModel, Field


class Coupon(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    code: str = Field(index=True, unique=True)
    discount_percent: Decimal = Field(max_digits=5, decimal_places=2)
    is_active: bool = Field(default=True)

    min_order_value: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    # absent means the discount is not capped
    max_discount: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    expires_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
