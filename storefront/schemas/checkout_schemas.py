# storefront/schemas/checkout_schemas.py
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from storefront.constants.order_status import PaymentMethod


class CartLine(BaseModel):
    product_id: str
    name: str
    unit_price: Decimal = Field(ge=0)
    quantity: int = Field(ge=1)
    variant_label: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class CartSnapshot(BaseModel):
    """Cart contents frozen at the moment checkout starts."""

    model_config = {"frozen": True}

    items: List[CartLine] = []

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.items)


class CustomerInfo(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    phone: str = Field(pattern=r"^\+?\d{10,15}$")
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    pincode: str = Field(pattern=r"^\d{6}$")

    @field_validator("name", "address", "city", "state", "phone", "pincode", mode="before")
    @classmethod
    def strip_blank(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value


class ShippingQuote(BaseModel):
    courier_id: str
    courier_name: str
    cost: Decimal
    estimated_days: Optional[int] = None
    etd: Optional[str] = None


class OrderDraft(BaseModel):
    model_config = {"frozen": True}

    subtotal: Decimal
    discount_amount: Decimal
    shipping_cost: Decimal
    final_total: Decimal
    coupon_code: Optional[str] = None


# -------------------------
# REQUESTS
# -------------------------

class ShippingQuoteRequest(BaseModel):
    pincode: str
    cart_id: Optional[str] = None
    items: Optional[List[CartLine]] = None
    cash_on_delivery: bool = False


class ShippingQuoteResponse(BaseModel):
    pincode: str
    serviceable: bool
    couriers: List[ShippingQuote]


class CouponRequest(BaseModel):
    cart_id: Optional[str] = None
    items: Optional[List[CartLine]] = None
    coupon_code: str = Field(min_length=1)


class DraftRequest(BaseModel):
    cart_id: Optional[str] = None
    items: Optional[List[CartLine]] = None
    coupon_code: Optional[str] = None
    pincode: Optional[str] = None
    courier_id: Optional[str] = None
    cash_on_delivery: bool = False


class PlaceOrderRequest(BaseModel):
    cart_id: Optional[str] = None
    items: Optional[List[CartLine]] = None
    customer: CustomerInfo
    courier_id: str
    payment_method: PaymentMethod
    coupon_code: Optional[str] = None
    upi_app: Optional[str] = None
    idempotency_key: Optional[str] = None


class OrderSummary(BaseModel):
    order_id: int
    status: str
    payment_method: str
    subtotal: Decimal
    discount_amount: Decimal
    shipping_cost: Decimal
    total_amount: Decimal
    coupon_code: Optional[str] = None
    courier_name: Optional[str] = None
    paid: bool
    items: List[dict] = []
