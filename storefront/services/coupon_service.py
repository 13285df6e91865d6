import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlmodel import Session, select

from storefront.exceptions import InvalidCouponError
from storefront.models.coupon import Coupon

logger = logging.getLogger(__name__)


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def lookup_coupon(session: Session, code: str, now: Optional[datetime] = None) -> Coupon:
    """
    Find an active, unexpired coupon by code (case-insensitive).

    Unknown, inactive and expired codes all raise the same
    InvalidCouponError so codes cannot be enumerated.
    Minimum order value is checked by the draft builder.
    """
    now = now or datetime.utcnow()
    normalized = normalize_code(code)

    if not normalized:
        raise InvalidCouponError()

    coupon = session.exec(
        select(Coupon)
        .where(func.upper(Coupon.code) == normalized)
        .where(Coupon.is_active == True)  # noqa: E712
    ).first()

    if not coupon:
        logger.info(f"Coupon lookup miss for {normalized}")
        raise InvalidCouponError()

    if coupon.expires_at and coupon.expires_at < now:
        logger.info(f"Coupon {normalized} expired at {coupon.expires_at}")
        raise InvalidCouponError()

    return coupon
