from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlmodel import Session, select

from storefront.config import settings
from storefront.constants.order_status import AttemptStatus
from storefront.models.payment_attempt import PaymentAttempt


def new_attempt(
    order_id: int,
    method: str,
    amount_minor: int,
    gateway_order_id: Optional[str] = None,
    upi_app: Optional[str] = None,
    txn_ref: Optional[str] = None,
    now: Optional[datetime] = None,
) -> PaymentAttempt:
    now = now or datetime.utcnow()
    return PaymentAttempt(
        order_id=order_id,
        method=method,
        amount_minor=amount_minor,
        gateway_order_id=gateway_order_id,
        upi_app=upi_app,
        txn_ref=txn_ref,
        created_at=now,
        updated_at=now,
        expires_at=now + timedelta(minutes=settings.PAYMENT_EXPIRY_MINUTES),
    )


def latest_attempt(
    session: Session,
    order_id: int,
    method: Optional[str] = None,
) -> Optional[PaymentAttempt]:
    query = select(PaymentAttempt).where(PaymentAttempt.order_id == order_id)
    if method:
        query = query.where(PaymentAttempt.method == method)
    return session.exec(
        query.order_by(PaymentAttempt.created_at.desc(), PaymentAttempt.id.desc())
    ).first()


def set_open_attempts(
    session: Session,
    order_id: int,
    status: AttemptStatus,
    open_statuses: Iterable[str] = (
        AttemptStatus.initiated.value,
        AttemptStatus.verification_pending.value,
    ),
):
    """Close every still-open attempt of an order. Caller commits."""
    attempts = session.exec(
        select(PaymentAttempt)
        .where(PaymentAttempt.order_id == order_id)
        .where(PaymentAttempt.status.in_(list(open_statuses)))
    ).all()

    now = datetime.utcnow()
    for attempt in attempts:
        attempt.status = status.value
        attempt.updated_at = now
        session.add(attempt)

    return attempts
