# -------- ADMIN ORDERS --------
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, func, select

from storefront.constants.order_status import OrderStatus
from storefront.database import get_session
from storefront.dependencies.admin import require_admin
from storefront.dependencies.providers import get_remediator
from storefront.models.order import Order
from storefront.schemas.payment_schemas import ManualPaymentSchema, StatusUpdateSchema
from storefront.services import reconciliation
from storefront.services.order_store import get_order
from storefront.services.payment_verification import admin_confirm_payment

# payment states are only reached through verified callbacks
ADMIN_SETTABLE = {
    OrderStatus.processing,
    OrderStatus.shipped,
    OrderStatus.delivered,
    OrderStatus.cancelled,
}

router = APIRouter()


@router.get("")
def list_orders(
    page: int = 1,
    limit: int = 10,
    status: OrderStatus | None = None,
    session: Session = Depends(get_session),
    _: str = Depends(require_admin),
):
    query = select(Order)

    if status:
        query = query.where(Order.status == status.value)

    total = session.exec(
        select(func.count()).select_from(query.subquery())
    ).one()

    orders = session.exec(
        query
        .order_by(Order.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    return {
        "total_items": total,
        "total_pages": (total + limit - 1) // limit,
        "current_page": page,
        "results": [
            {
                "order_id": o.id,
                "customer_name": o.customer_name,
                "date": o.created_at.date(),
                "total_amount": o.total_amount,
                "payment_method": o.payment_method,
                "status": o.status,
            }
            for o in orders
        ],
    }


@router.patch("/{order_id}/status")
def update_order_status(
    order_id: int,
    payload: StatusUpdateSchema,
    session: Session = Depends(get_session),
    remediator=Depends(get_remediator),
    _: str = Depends(require_admin),
):
    try:
        new_status = OrderStatus(payload.status)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Unknown status: {payload.status}")

    if new_status not in ADMIN_SETTABLE:
        raise HTTPException(status_code=422, detail=f"Status {new_status.value} cannot be set manually")

    order = get_order(session, order_id)
    result = reconciliation.update_fulfilment_status(session, order, new_status, remediator)

    return {
        "order_id": result.order.id,
        "status": result.order.status,
        "changed": result.changed,
    }


@router.post("/{order_id}/confirm-upi")
def confirm_upi_payment(
    order_id: int,
    payload: ManualPaymentSchema,
    session: Session = Depends(get_session),
    remediator=Depends(get_remediator),
    _: str = Depends(require_admin),
):
    result = admin_confirm_payment(session, order_id, payload.payment_id, remediator=remediator)
    return {
        "order_id": result.order.id,
        "status": result.order.status,
        "changed": result.changed,
        "message": result.message,
    }
