import logging

from sqlmodel import Session

from storefront.database import engine
from storefront.dependencies.providers import get_remediator
from storefront.services.order_expiry_service import expire_stale_payments

logger = logging.getLogger(__name__)


def expire_unpaid_orders():
    with Session(engine) as session:
        return expire_stale_payments(session, get_remediator())


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    expire_unpaid_orders()
