from sqlmodel import Session

from storefront.models.notifications import Notification


def add_admin_notification(
    session: Session,
    *,
    order_id: int,
    event: str,
    title: str,
    content: str,
) -> Notification:
    notification = Notification(
        order_id=order_id,
        event=event,
        title=title,
        content=content,
    )
    session.add(notification)
    session.flush()
    return notification
