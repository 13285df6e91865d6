from typing import Dict, List, Optional
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    postgres_user: str = "postgres"
    postgres_password: str = ""
    postgres_db: str = "storefront"
    postgres_host: str = "localhost"
    postgres_port: str = "5432"

    # Full URL wins over the postgres_* parts (sqlite in tests)
    DATABASE_URL: Optional[str] = None

    # Privileged connection used only to re-apply row-level security policies
    ADMIN_DATABASE_URL: Optional[str] = None
    RLS_REMEDIATION_SQL: str = "SELECT configure_order_rls_policies()"

    ENV: str = "local"
    LOG_LEVEL: str = "INFO"

    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_KEY_SECRET: str = ""
    RAZORPAY_WEBHOOK_SECRET: str = ""
    CURRENCY: str = "INR"

    STORE_NAME: str = "Storefront"

    SHIPROCKET_BASE_URL: str = "https://apiv2.shiprocket.in/v1/external"
    SHIPROCKET_EMAIL: str = ""
    SHIPROCKET_PASSWORD: str = ""
    PICKUP_PINCODE: str = "110001"
    ITEM_WEIGHT_KG: float = 0.5
    MIN_PARCEL_WEIGHT_KG: float = 0.5

    UPI_MERCHANT_NAME: str = "Storefront"
    UPI_APPS: Dict[str, str] = {
        "phonepe": "storefront@ybl",
        "gpay": "storefront@okicici",
        "paytm": "storefront@paytm",
    }

    PAYMENT_EXPIRY_MINUTES: int = 30

    BREVO_API_KEY: str = ""
    MAIL_FROM: str = "orders@example.com"
    ADMIN_EMAILS: List[str] = []
    ADMIN_API_KEY: str = ""

    @property
    def database_url(self):
        if self.DATABASE_URL:
            return self.DATABASE_URL

        encoded_password = quote_plus(self.postgres_password)
        return (
            f"postgresql+psycopg2://{self.postgres_user}:"
            f"{encoded_password}@{self.postgres_host}:"
            f"{self.postgres_port}/{self.postgres_db}"
        )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "allow"


settings = Settings()
