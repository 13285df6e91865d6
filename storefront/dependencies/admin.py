import hmac

from fastapi import Header, HTTPException

from storefront.config import settings


def require_admin(x_admin_key: str | None = Header(default=None)):
    if not settings.ADMIN_API_KEY:
        raise HTTPException(status_code=503, detail="Admin access is not configured")
    if not x_admin_key or not hmac.compare_digest(x_admin_key, settings.ADMIN_API_KEY):
        raise HTTPException(status_code=403, detail="Admin access required")
    return "admin"
