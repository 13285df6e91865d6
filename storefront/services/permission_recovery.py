"""
Recovery for row-level security rejections on writes.

The store's access policies can drift independently of deployments.
When a write is rejected by a policy we re-apply the policies once and
retry the write once; anything beyond that is a support issue.
"""
import logging
from typing import Callable, Optional, TypeVar

from sqlalchemy import create_engine, text
from sqlalchemy.exc import DBAPIError
from sqlmodel import Session

from storefront.config import settings
from storefront.exceptions import PersistentPermissionError

logger = logging.getLogger(__name__)

T = TypeVar("T")

INSUFFICIENT_PRIVILEGE = "42501"
PERMISSION_MARKERS = ("row-level security policy", "permission denied")


def is_permission_error(exc: BaseException) -> bool:
    if not isinstance(exc, DBAPIError):
        return False

    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code == INSUFFICIENT_PRIVILEGE:
        return True

    message = str(orig).lower()
    return any(marker in message for marker in PERMISSION_MARKERS)


class PolicyRemediator:
    """Re-applies the order/coupon access policies over a privileged connection."""

    def __init__(
        self,
        admin_database_url: Optional[str] = settings.ADMIN_DATABASE_URL,
        remediation_sql: str = settings.RLS_REMEDIATION_SQL,
    ):
        self.admin_database_url = admin_database_url
        self.remediation_sql = remediation_sql
        self._engine = None

    def _get_engine(self):
        if self._engine is None:
            self._engine = create_engine(self.admin_database_url, pool_pre_ping=True)
        return self._engine

    def __call__(self) -> None:
        if not self.admin_database_url:
            raise RuntimeError("ADMIN_DATABASE_URL is not configured")

        # configure_order_rls_policies() drops and recreates, so repeats are safe
        with self._get_engine().begin() as conn:
            conn.execute(text(self.remediation_sql))

        logger.info("Order access policies re-applied")


def with_permission_recovery(
    session: Session,
    operation: Callable[[], T],
    remediator: Callable[[], None],
) -> T:
    """
    Run a write; on a policy rejection remediate and retry exactly once.

    ``operation`` must be safe to run twice: it is only re-run after the
    first attempt was rolled back.
    """
    try:
        return operation()
    except DBAPIError as exc:
        if not is_permission_error(exc):
            raise
        session.rollback()
        logger.warning(f"Write rejected by access policy, remediating: {exc.orig}")

    try:
        remediator()
    except Exception as exc:
        logger.error(f"Permission remediation failed: {exc}")
        raise PersistentPermissionError() from exc

    try:
        return operation()
    except DBAPIError as exc:
        session.rollback()
        if is_permission_error(exc):
            logger.error(f"Write still rejected after remediation: {exc.orig}")
            raise PersistentPermissionError() from exc
        raise
