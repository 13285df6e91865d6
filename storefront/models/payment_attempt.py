from datetime import datetime
from typing import Optional

from sqlmodel import SQLModel, Field

from storefront.constants.order_status import AttemptStatus


class PaymentAttempt(SQLModel, table=True):
    """
    An in-flight payment for an order.

    Survives the customer leaving for a UPI app or closing the hosted
    checkout, so the return leg and the expiry sweep can find it.
    """
    __tablename__ = "payment_attempt"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True)

    method: str
    status: str = Field(default=AttemptStatus.initiated.value, index=True)

    gateway_order_id: Optional[str] = Field(default=None, index=True)
    upi_app: Optional[str] = None
    txn_ref: Optional[str] = Field(default=None, index=True)
    amount_minor: int

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.utcnow()) >= self.expires_at
