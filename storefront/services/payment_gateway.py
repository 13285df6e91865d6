"""
Razorpay adapter.

Wraps the razorpay SDK so the rest of the pipeline never handles SDK
errors or paise conversion itself.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

import razorpay
import requests

from storefront.config import settings
from storefront.exceptions import GatewayOrderError
from storefront.schemas.checkout_schemas import CustomerInfo
from storefront.schemas.payment_schemas import HostedCheckoutOptions
from storefront.utils.money import to_minor_units

logger = logging.getLogger(__name__)

SUCCESS_PAYMENT_STATUSES = {"captured", "authorized"}

# Razorpay caps payment listings at 100 per call
LOOKUP_PAGE_SIZE = 100
LOOKUP_MAX_PAGES = 5


@dataclass
class RemoteOrder:
    remote_order_id: str
    amount_minor: int
    currency: str


@dataclass
class GatewayPayment:
    payment_id: str
    status: str
    method: Optional[str] = None
    remote_order_id: Optional[str] = None
    amount_minor: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.status in SUCCESS_PAYMENT_STATUSES

    @property
    def failed(self) -> bool:
        return self.status == "failed"


class RazorpayGateway:
    def __init__(
        self,
        key_id: str = settings.RAZORPAY_KEY_ID,
        key_secret: str = settings.RAZORPAY_KEY_SECRET,
        webhook_secret: str = settings.RAZORPAY_WEBHOOK_SECRET,
    ):
        self.key_id = key_id
        self.key_secret_set = bool(key_secret)
        self.webhook_secret = webhook_secret
        self.client = razorpay.Client(auth=(key_id, key_secret))

    @property
    def configured(self) -> bool:
        return bool(self.key_id and self.key_secret_set)

    def create_remote_order(self, amount: Decimal, currency: str, local_order_id: int) -> RemoteOrder:
        amount_minor = to_minor_units(amount)

        if amount_minor <= 0:
            raise GatewayOrderError("Order amount must be greater than zero.")

        try:
            remote = self.client.order.create({
                "amount": amount_minor,
                "currency": currency,
                "receipt": f"order_{local_order_id}",
                "notes": {"order_id": str(local_order_id)},
            })
        except (razorpay.errors.BadRequestError,
                razorpay.errors.ServerError,
                razorpay.errors.GatewayError) as exc:
            logger.error(f"Razorpay rejected order for #{local_order_id}: {exc}")
            raise GatewayOrderError() from exc
        except requests.RequestException as exc:
            logger.error(f"Razorpay unreachable for #{local_order_id}: {exc}")
            raise GatewayOrderError() from exc

        if not remote or "id" not in remote:
            raise GatewayOrderError()

        logger.info(f"Razorpay order {remote['id']} created for #{local_order_id}")
        return RemoteOrder(
            remote_order_id=remote["id"],
            amount_minor=amount_minor,
            currency=currency,
        )

    def checkout_options(
        self,
        remote_order: RemoteOrder,
        local_order_id: int,
        customer: CustomerInfo,
    ) -> HostedCheckoutOptions:
        """Everything the hosted checkout widget needs to open."""
        return HostedCheckoutOptions(
            key=self.key_id,
            amount=remote_order.amount_minor,
            currency=remote_order.currency,
            order_id=remote_order.remote_order_id,
            name=settings.STORE_NAME,
            description=f"Payment for order #{local_order_id}",
            prefill={
                "name": customer.name,
                "email": customer.email,
                "contact": customer.phone,
            },
            notes={"order_id": str(local_order_id)},
        )

    def verify_signature(self, payment_id: str, remote_order_id: str, signature: str) -> bool:
        """Server-side check of a checkout success callback. Fails closed."""
        if not (payment_id and remote_order_id and signature):
            return False

        try:
            self.client.utility.verify_payment_signature({
                "razorpay_order_id": remote_order_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": signature,
            })
        except razorpay.errors.SignatureVerificationError:
            logger.warning(f"Signature mismatch for payment {payment_id}")
            return False
        except Exception:
            logger.exception(f"Signature verification error for payment {payment_id}")
            return False

        return True

    def verify_webhook(self, body: str, signature: str) -> bool:
        if not (self.webhook_secret and signature):
            return False

        try:
            self.client.utility.verify_webhook_signature(body, signature, self.webhook_secret)
        except razorpay.errors.SignatureVerificationError:
            logger.warning("Webhook signature mismatch")
            return False
        except Exception:
            logger.exception("Webhook signature verification error")
            return False

        return True

    def find_order_payment(
        self,
        local_order_id: int,
        remote_order_id: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> Optional[GatewayPayment]:
        """
        Ask the gateway whether a payment exists for an order.

        Used when the customer returns from a UPI app without a callback.
        Without a remote order id the account's payments are paged through
        from ``since`` (naive UTC, usually the attempt's start).
        A successful payment is preferred over failed ones.
        """
        try:
            if remote_order_id:
                items = (self.client.order.payments(remote_order_id) or {}).get("items", [])
            else:
                items = self._payments_since(since)
        except Exception:
            logger.exception(f"Payment lookup failed for #{local_order_id}")
            return None

        matches = []
        for item in items:
            notes = item.get("notes") or {}
            if not remote_order_id and str(notes.get("order_id")) != str(local_order_id):
                continue
            matches.append(
                GatewayPayment(
                    payment_id=item["id"],
                    status=item.get("status", ""),
                    method=item.get("method"),
                    remote_order_id=item.get("order_id"),
                    amount_minor=item.get("amount"),
                )
            )

        if not matches:
            return None

        for payment in matches:
            if payment.succeeded:
                return payment
        return matches[0]

    def _payments_since(self, since: Optional[datetime]) -> list:
        params = {"count": LOOKUP_PAGE_SIZE}
        if since is not None:
            # a little slack for clock skew between us and the gateway
            start = since.replace(tzinfo=timezone.utc) - timedelta(minutes=5)
            params["from"] = int(start.timestamp())

        items = []
        for page in range(LOOKUP_MAX_PAGES):
            batch = (self.client.payment.all({**params, "skip": page * LOOKUP_PAGE_SIZE}) or {}).get("items", [])
            items.extend(batch)
            if len(batch) < LOOKUP_PAGE_SIZE:
                break
        return items
