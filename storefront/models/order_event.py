from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import JSON, Column, Index
from sqlmodel import Field, SQLModel


class OrderEvent(SQLModel, table=True):
    """
    Append-only order timeline.

    Status changes use the new status as event_type; bookkeeping rows
    (payment_restarted, items_failed, verification_pending and the
    notified:<event> markers) share the table.
    """

    __tablename__ = "order_event"
    __table_args__ = (Index("ix_order_event_order_type", "order_id", "event_type"),)

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    event_type: str

    label: str
    meta: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    created_by: str = Field(default="system")
    created_at: datetime = Field(default_factory=datetime.utcnow)
