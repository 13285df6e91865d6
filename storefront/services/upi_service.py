import time
from decimal import Decimal
from typing import Optional
from urllib.parse import urlencode, quote

from storefront.config import settings
from storefront.exceptions import StartupError
from storefront.utils.money import to_money


def resolve_upi_app(upi_app: Optional[str]) -> tuple[str, str]:
    """Return (app_id, payee VPA) for a configured UPI app."""
    if not upi_app:
        raise StartupError("Please choose a UPI app to pay with.")

    app_id = upi_app.strip().lower()
    vpa = settings.UPI_APPS.get(app_id)

    if not vpa:
        raise StartupError(f"UPI app '{upi_app}' is not supported. Please choose another app.")

    return app_id, vpa


def make_txn_ref(order_id: int) -> str:
    return f"order_{order_id}_{int(time.time() * 1000)}"


def build_upi_link(vpa: str, amount: Decimal, order_id: int, txn_ref: str) -> str:
    """
    upi://pay deep link.

    Amount is sent in rupees with exactly two decimals; UPI apps reject
    anything else.
    """
    params = {
        "pa": vpa,
        "pn": settings.UPI_MERCHANT_NAME,
        "am": f"{to_money(amount):.2f}",
        "cu": settings.CURRENCY,
        "tn": f"Payment for order #{order_id}",
        "tr": txn_ref,
    }
    return "upi://pay?" + urlencode(params, quote_via=quote)
