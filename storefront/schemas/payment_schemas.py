from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from storefront.constants.order_status import PaymentMethod
from storefront.schemas.checkout_schemas import OrderDraft


class PaymentReference(BaseModel):
    """Proof of payment stored on a paid order."""

    payment_id: str
    gateway_order_id: Optional[str] = None
    signature: Optional[str] = None
    verified_by: str  # signature | gateway_lookup | webhook | admin
    method: Optional[str] = None
    verified_at: datetime = Field(default_factory=datetime.utcnow)


class HostedCheckoutOptions(BaseModel):
    key: str
    amount: int          # paise
    currency: str
    order_id: str        # gateway order id
    name: str
    description: str
    prefill: dict
    notes: dict


class PaymentOutcome(BaseModel):
    order_id: int
    status: str
    payment_method: PaymentMethod
    draft: OrderDraft
    next_action: str = "none"   # none | open_hosted_checkout | open_upi_link
    checkout_options: Optional[HostedCheckoutOptions] = None
    upi_link: Optional[str] = None
    txn_ref: Optional[str] = None
    clear_cart: bool = False
    message: str = ""


# -------------------------
# CALLBACK PAYLOADS
# -------------------------

class HostedPaymentVerifySchema(BaseModel):
    order_id: int
    razorpay_payment_id: str
    razorpay_order_id: str
    razorpay_signature: str


class HostedDismissSchema(BaseModel):
    order_id: int
    reason: Optional[str] = None


class UpiReturnSchema(BaseModel):
    order_id: int
    txn_ref: Optional[str] = None


class RetryPaymentSchema(BaseModel):
    order_id: int
    payment_method: PaymentMethod
    upi_app: Optional[str] = None


class StatusUpdateSchema(BaseModel):
    status: str


class ManualPaymentSchema(BaseModel):
    payment_id: str
