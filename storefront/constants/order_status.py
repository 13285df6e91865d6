from enum import Enum


class OrderStatus(str, Enum):
    pending = "pending"
    awaiting_payment = "awaiting_payment"
    paid = "paid"
    payment_failed = "payment_failed"
    processing = "processing"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"


class PaymentMethod(str, Enum):
    cod = "cod"
    hosted_checkout = "hosted_checkout"
    upi_direct = "upi_direct"


class AttemptStatus(str, Enum):
    initiated = "initiated"
    verification_pending = "verification_pending"
    succeeded = "succeeded"
    failed = "failed"
    expired = "expired"


ALLOWED_TRANSITIONS = {
    "pending": ["awaiting_payment", "processing", "payment_failed", "cancelled"],
    "awaiting_payment": ["paid", "payment_failed", "cancelled"],
    # payment_failed is retryable, and a late verified payment still wins
    "payment_failed": ["awaiting_payment", "paid", "cancelled"],
    "paid": ["processing", "shipped", "cancelled"],
    "processing": ["shipped", "cancelled"],
    "shipped": ["delivered"],
    "delivered": [],
    "cancelled": [],
}

# Orders the customer may re-enter the dispatcher with
RETRYABLE_STATUSES = {"awaiting_payment", "payment_failed"}


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, [])
