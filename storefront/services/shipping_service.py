import logging
import re
import time
from decimal import Decimal
from typing import List, Optional

import requests

from storefront.config import settings
from storefront.exceptions import InvalidPincodeError, ShippingServiceError, UnserviceableError
from storefront.schemas.checkout_schemas import CartSnapshot, ShippingQuote

logger = logging.getLogger(__name__)

PINCODE_RE = re.compile(r"^\d{6}$")

# Shiprocket tokens are valid for 10 days; refresh well before that
TOKEN_TTL = 60 * 60 * 24 * 9


def validate_pincode(pincode: str) -> str:
    pincode = (pincode or "").strip()
    if not PINCODE_RE.match(pincode):
        raise InvalidPincodeError()
    return pincode


def parcel_weight(cart: CartSnapshot) -> float:
    weight = settings.ITEM_WEIGHT_KG * cart.total_quantity
    return max(weight, settings.MIN_PARCEL_WEIGHT_KG)


def _estimated_days(raw) -> Optional[int]:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def _json(response, what: str) -> dict:
    try:
        data = response.json()
    except ValueError as exc:
        logger.error(f"Shiprocket {what} returned a non-JSON body: {response.text[:200]}")
        raise ShippingServiceError() from exc
    if not isinstance(data, dict):
        logger.error(f"Shiprocket {what} returned unexpected JSON: {data!r}")
        raise ShippingServiceError()
    return data


class ShiprocketClient:
    """Courier serviceability lookups against the Shiprocket API."""

    def __init__(
        self,
        base_url: str = settings.SHIPROCKET_BASE_URL,
        email: str = settings.SHIPROCKET_EMAIL,
        password: str = settings.SHIPROCKET_PASSWORD,
        pickup_pincode: str = settings.PICKUP_PINCODE,
        timeout: int = 10,
    ):
        self.base_url = base_url.rstrip("/")
        self.email = email
        self.password = password
        self.pickup_pincode = pickup_pincode
        self.timeout = timeout
        self._token: Optional[str] = None
        self._token_fetched_at = 0.0

    def _auth_token(self) -> str:
        if self._token and time.time() - self._token_fetched_at < TOKEN_TTL:
            return self._token

        try:
            response = requests.post(
                f"{self.base_url}/auth/login",
                json={"email": self.email, "password": self.password},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error(f"Shiprocket auth request failed: {exc}")
            raise ShippingServiceError() from exc

        if response.status_code >= 400:
            logger.error(f"Shiprocket auth failed ({response.status_code}): {response.text}")
            raise ShippingServiceError()

        token = _json(response, "auth").get("token")
        if not token:
            logger.error("Shiprocket auth response carried no token")
            raise ShippingServiceError()

        self._token = token
        self._token_fetched_at = time.time()
        return self._token

    def quotes(self, delivery_pincode: str, weight: float, cod: bool = False) -> List[ShippingQuote]:
        """
        Courier options for a delivery pincode.

        An empty list means the pincode is not serviceable; that is a
        normal answer, not an error.
        """
        delivery_pincode = validate_pincode(delivery_pincode)

        params = {
            "pickup_postcode": self.pickup_pincode,
            "delivery_postcode": delivery_pincode,
            "weight": weight,
            "cod": 1 if cod else 0,
        }
        headers = {"Authorization": f"Bearer {self._auth_token()}"}

        try:
            response = requests.get(
                f"{self.base_url}/courier/serviceability/",
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error(f"Shiprocket serviceability request failed: {exc}")
            raise ShippingServiceError() from exc

        # Shiprocket answers 404 for pincodes it cannot reach
        if response.status_code == 404:
            return []

        if response.status_code >= 400:
            logger.error(
                f"Shiprocket serviceability failed ({response.status_code}): {response.text}"
            )
            raise ShippingServiceError()

        companies = (_json(response, "serviceability").get("data") or {}).get("available_courier_companies") or []

        quotes = []
        for courier in companies:
            rate = Decimal(str(courier.get("rate") or 0))
            if rate <= 0:
                continue
            quotes.append(
                ShippingQuote(
                    courier_id=str(courier["courier_company_id"]),
                    courier_name=courier.get("courier_name", ""),
                    cost=rate,
                    estimated_days=_estimated_days(courier.get("estimated_delivery_days")),
                    etd=courier.get("etd"),
                )
            )

        logger.info(f"{len(quotes)} courier options for {delivery_pincode}")
        return quotes


def resolve_quote(
    client,
    pincode: str,
    courier_id: str,
    cart: CartSnapshot,
    cod: bool = False,
) -> ShippingQuote:
    """
    Re-fetch quotes and pick the courier the customer chose.

    The price always comes from the rate service, never from the client.
    """
    quotes = client.quotes(pincode, parcel_weight(cart), cod)

    if not quotes:
        raise UnserviceableError()

    for quote in quotes:
        if quote.courier_id == str(courier_id):
            return quote

    raise UnserviceableError("The selected courier is no longer available for this pincode.")
