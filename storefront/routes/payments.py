from fastapi import APIRouter, Depends, Header, Request
from starlette.concurrency import run_in_threadpool
from sqlmodel import Session

from storefront.database import get_session
from storefront.dependencies.providers import get_gateway, get_remediator
from storefront.exceptions import SignatureVerificationError
from storefront.schemas.payment_schemas import (
    HostedDismissSchema,
    HostedPaymentVerifySchema,
    PaymentOutcome,
    RetryPaymentSchema,
    UpiReturnSchema,
)
from storefront.services import payment_verification
from storefront.services.payment_dispatcher import retry_payment
from storefront.services.reconciliation import PAYMENT_SETTLED, ReconcileResult

router = APIRouter()


def _result_response(result: ReconcileResult) -> dict:
    return {
        "order_id": result.order.id,
        "status": result.order.status,
        "changed": result.changed,
        "clear_cart": result.order.status in PAYMENT_SETTLED,
        "message": result.message,
    }


@router.post("/hosted/verify")
def verify_hosted_payment(
    payload: HostedPaymentVerifySchema,
    session: Session = Depends(get_session),
    gateway=Depends(get_gateway),
    remediator=Depends(get_remediator),
):
    result = payment_verification.verify_hosted_payment(
        session, payload, gateway=gateway, remediator=remediator
    )
    return _result_response(result)


@router.post("/hosted/dismiss")
def dismiss_hosted_checkout(
    payload: HostedDismissSchema,
    session: Session = Depends(get_session),
    remediator=Depends(get_remediator),
):
    result = payment_verification.dismiss_hosted_checkout(
        session, payload.order_id, remediator=remediator, reason=payload.reason
    )
    return _result_response(result)


@router.post("/upi/return")
def upi_return(
    payload: UpiReturnSchema,
    session: Session = Depends(get_session),
    gateway=Depends(get_gateway),
    remediator=Depends(get_remediator),
):
    result = payment_verification.confirm_upi_return(
        session,
        payload.order_id,
        gateway=gateway,
        remediator=remediator,
        txn_ref=payload.txn_ref,
    )
    return _result_response(result)


@router.post("/retry", response_model=PaymentOutcome)
def retry(
    payload: RetryPaymentSchema,
    session: Session = Depends(get_session),
    gateway=Depends(get_gateway),
    remediator=Depends(get_remediator),
):
    return retry_payment(
        session,
        payload.order_id,
        payload.payment_method,
        gateway=gateway,
        remediator=remediator,
        upi_app=payload.upi_app,
    )


@router.post("/webhook")
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: str | None = Header(default=None),
    session: Session = Depends(get_session),
    gateway=Depends(get_gateway),
    remediator=Depends(get_remediator),
):
    # signature covers the raw body, so read it before any parsing
    raw = await request.body()
    try:
        body = raw.decode("utf-8")
    except UnicodeDecodeError:
        raise SignatureVerificationError("Webhook body is not valid UTF-8")

    # database writes and email retries block; keep them off the event loop
    return await run_in_threadpool(
        payment_verification.handle_webhook,
        session,
        body,
        x_razorpay_signature,
        gateway=gateway,
        remediator=remediator,
    )
