"""Process-wide collaborators, swappable through app.dependency_overrides."""
from functools import lru_cache

from storefront.config import settings
from storefront.services.payment_gateway import RazorpayGateway
from storefront.services.permission_recovery import PolicyRemediator
from storefront.services.shipping_service import ShiprocketClient


@lru_cache()
def get_gateway() -> RazorpayGateway:
    return RazorpayGateway(
        key_id=settings.RAZORPAY_KEY_ID,
        key_secret=settings.RAZORPAY_KEY_SECRET,
        webhook_secret=settings.RAZORPAY_WEBHOOK_SECRET,
    )


@lru_cache()
def get_shipping_client() -> ShiprocketClient:
    return ShiprocketClient(
        base_url=settings.SHIPROCKET_BASE_URL,
        email=settings.SHIPROCKET_EMAIL,
        password=settings.SHIPROCKET_PASSWORD,
        pickup_pincode=settings.PICKUP_PINCODE,
    )


@lru_cache()
def get_remediator() -> PolicyRemediator:
    return PolicyRemediator(
        admin_database_url=settings.ADMIN_DATABASE_URL,
        remediation_sql=settings.RLS_REMEDIATION_SQL,
    )
