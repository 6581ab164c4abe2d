"""SQL persistence model for payments reconciled by the SQL store."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from paysync.common.db import Base


JSONColumn = JSON().with_variant(JSONB(), "postgresql")


class PaymentRow(Base):
    """Payment snapshot; `version` is the compare-and-swap token for writes."""

    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    key: Mapped[str | None] = mapped_column(String, unique=True, index=True, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    interface_interactions: Mapped[list] = mapped_column(JSONColumn, nullable=False, default=list)
    transactions: Mapped[list] = mapped_column(JSONColumn, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
