import time
import random
import logging

from storefront.services.email_service import EmailConfigError, send_email

logger = logging.getLogger(__name__)


def send_email_with_retry(
    to_email,
    subject: str,
    html: str,
    max_retries: int = 3
):
    for attempt in range(1, max_retries + 1):
        try:
            if send_email(to=to_email, subject=subject, html=html):
                logger.info(f"Email sent to {to_email} (attempt {attempt})")
                return True
        except EmailConfigError as e:
            logger.warning(f"Email not sent to {to_email}: {e}")
            return False  # config error -> no retry

        logger.warning(f"Email attempt {attempt} to {to_email} failed")

        if attempt < max_retries:
            time.sleep((2 ** attempt) + random.random())

    logger.error(f"Email permanently failed for {to_email}")
    return False
