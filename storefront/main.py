import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront.config import settings
from storefront.database import create_db_and_tables
from storefront.exceptions import CheckoutError, InvalidCustomerInfoError
from storefront.routes import (
    admin_orders,
    cart,
    checkout,
    health,
    payments,
)

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Run DB creation ONLY in local
    if settings.ENV == "local":
        create_db_and_tables()
    yield

app = FastAPI(title=f"{settings.STORE_NAME} Checkout API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:8000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CheckoutError)
async def checkout_error_handler(request: Request, exc: CheckoutError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    customer_fields = sorted({
        str(error["loc"][2])
        for error in exc.errors()
        if tuple(error["loc"][:2]) == ("body", "customer") and len(error["loc"]) > 2
    })
    customer_missing = any(tuple(error["loc"]) == ("body", "customer") for error in exc.errors())

    if not customer_fields and not customer_missing:
        return await request_validation_exception_handler(request, exc)

    error = InvalidCustomerInfoError(
        f"Please check: {', '.join(customer_fields)}." if customer_fields else None
    )
    logger.info(f"{request.method} {request.url.path} rejected: {error.code} {customer_fields}")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


app.include_router(cart.router, prefix="/cart", tags=["Cart"])
app.include_router(checkout.router, prefix="/checkout", tags=["Checkout"])
app.include_router(payments.router, prefix="/payments", tags=["Payments"])
app.include_router(admin_orders.router, prefix="/admin/orders", tags=["Admin Orders"])
app.include_router(health.router, prefix="/health", tags=["Health"])


@app.get("/")
def root():
    return {
        "cart": ["/cart/{cart_id}", "/cart/{cart_id}/items"],
        "checkout": [
            "/checkout/coupon", "/checkout/shipping-quotes", "/checkout/draft",
            "/checkout/place-order", "/checkout/orders/{order_id}"
        ],
        "payments": [
            "/payments/hosted/verify", "/payments/hosted/dismiss",
            "/payments/upi/return", "/payments/retry", "/payments/webhook"
        ],
        "admin": [
            "/admin/orders", "/admin/orders/{order_id}/status",
            "/admin/orders/{order_id}/confirm-upi"
        ],
    }
