import logging
from datetime import datetime
from typing import Callable, Optional

from sqlmodel import Session, select

from storefront.constants.order_status import AttemptStatus, OrderStatus
from storefront.models.order import Order
from storefront.models.payment_attempt import PaymentAttempt
from storefront.services import reconciliation
from storefront.services.payment_attempts import latest_attempt

logger = logging.getLogger(__name__)


def expire_stale_payments(
    session: Session,
    remediator: Callable,
    now: Optional[datetime] = None,
) -> int:
    """
    Close in-flight payments whose window has passed.

    Their orders move to payment_failed so the customer can retry.
    Attempts held for verification are left alone for admin review.
    """
    now = now or datetime.utcnow()

    stale = session.exec(
        select(PaymentAttempt)
        .where(PaymentAttempt.status == AttemptStatus.initiated.value)
        .where(PaymentAttempt.expires_at <= now)
    ).all()

    expired = 0
    for order_id in sorted({attempt.order_id for attempt in stale}):
        order = session.get(Order, order_id)
        latest = latest_attempt(session, order_id)
        superseded = latest is not None and not latest.is_expired(now)
        if not order or order.status != OrderStatus.awaiting_payment.value or superseded:
            # settled, already failed or retried since; just close the attempts
            _close(session, [a for a in stale if a.order_id == order_id], now)
            continue

        if _held_for_review(session, order_id):
            continue

        result = reconciliation.mark_payment_failed(
            session,
            order,
            remediator,
            reason="Payment window expired",
            attempt_status=AttemptStatus.expired,
        )
        if result.changed:
            expired += 1

    logger.info(f"Expired {expired} unpaid orders")
    return expired


def _held_for_review(session: Session, order_id: int) -> bool:
    return session.exec(
        select(PaymentAttempt)
        .where(PaymentAttempt.order_id == order_id)
        .where(PaymentAttempt.status == AttemptStatus.verification_pending.value)
    ).first() is not None


def _close(session: Session, attempts, now: datetime):
    for attempt in attempts:
        attempt.status = AttemptStatus.expired.value
        attempt.updated_at = now
        session.add(attempt)
    session.commit()
