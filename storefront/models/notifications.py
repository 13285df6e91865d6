from datetime import datetime
from typing import Optional

from sqlmodel import SQLModel, Field


class Notification(SQLModel, table=True):
    """Admin inbox entry raised by an order notification event."""

    id: Optional[int] = Field(default=None, primary_key=True)

    order_id: int = Field(foreign_key="orders.id", index=True)
    event: str = Field(index=True)  # order_placed / payment_success / ...

    title: str
    content: str

    is_read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)
