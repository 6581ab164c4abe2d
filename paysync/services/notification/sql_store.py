"""Payment store backed by a SQL table, for deployments that own the record.

Writes are guarded by `(id, version)` so a stale snapshot can never overwrite
a newer one; every accepted write bumps `version` by exactly one.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import select, update

from paysync.common.config import CommonSettings
from paysync.common.db import make_session_factory
from paysync.common.errors import RecordNotFoundError, StoreError, VersionConflictError
from paysync.services.notification.models import PaymentRow
from paysync.services.notification.schemas import (
    AddInterfaceInteraction,
    AddTransaction,
    ChangeTransactionState,
    PaymentRecord,
    UpdateOperation,
)


def _to_record(row: PaymentRow) -> PaymentRecord:
    return PaymentRecord.model_validate(
        {
            "id": row.id,
            "key": row.key,
            "version": row.version,
            "interfaceInteractions": row.interface_interactions,
            "transactions": row.transactions,
        }
    )


def apply_operations(
    interactions: list[dict[str, Any]],
    transactions: list[dict[str, Any]],
    operations: list[UpdateOperation],
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """Return new interaction/transaction lists with `operations` applied in order."""

    interactions = list(interactions)
    transactions = [dict(t) for t in transactions]
    for op in operations:
        if isinstance(op, AddInterfaceInteraction):
            interactions.append(op.model_dump(by_alias=True, mode="json", exclude={"action"}))
        elif isinstance(op, AddTransaction):
            transaction = op.transaction.model_dump(by_alias=True, mode="json")
            transaction["id"] = str(uuid4())
            transactions.append(transaction)
        elif isinstance(op, ChangeTransactionState):
            target = next((t for t in transactions if t.get("id") == op.transaction_id), None)
            if target is None:
                raise StoreError(
                    f"transaction {op.transaction_id} does not exist",
                    status_code=400,
                    details={"action": op.action, "transaction_id": op.transaction_id},
                )
            target["state"] = op.state
    return interactions, transactions


class SqlPaymentStore:
    """`PaymentStore` over SQLAlchemy sessions."""

    def __init__(self, session_factory) -> None:
        self.session_factory = session_factory

    @classmethod
    def from_settings(cls, settings: CommonSettings) -> "SqlPaymentStore":
        if not settings.postgres_dsn:
            raise ValueError("postgres_dsn is not configured")
        return cls(make_session_factory(settings.postgres_dsn))

    def create_payment(self, key: str | None, payment_id: str | None = None) -> PaymentRecord:
        """Insert an empty payment at version 1."""

        with self.session_factory() as db:
            row = PaymentRow(
                id=payment_id or str(uuid4()),
                key=key,
                version=1,
                interface_interactions=[],
                transactions=[],
            )
            db.add(row)
            db.commit()
            return _to_record(row)

    async def fetch_by_key(self, key: str) -> PaymentRecord:
        with self.session_factory() as db:
            row = db.execute(select(PaymentRow).where(PaymentRow.key == key)).scalar_one_or_none()
            if row is None:
                raise RecordNotFoundError(f"payment with key {key} was not found", {"key": key})
            return _to_record(row)

    async def fetch_by_id(self, payment_id: str) -> PaymentRecord:
        with self.session_factory() as db:
            row = db.get(PaymentRow, payment_id)
            if row is None:
                raise RecordNotFoundError(f"payment {payment_id} was not found", {"id": payment_id})
            return _to_record(row)

    async def update(self, payment_id: str, version: int, operations: list[UpdateOperation]) -> PaymentRecord:
        with self.session_factory() as db:
            row = db.get(PaymentRow, payment_id)
            if row is None:
                raise RecordNotFoundError(f"payment {payment_id} was not found", {"id": payment_id})
            if row.version != version:
                raise VersionConflictError(
                    f"version {version} of payment {payment_id} is stale",
                    current_version=row.version,
                )
            interactions, transactions = apply_operations(
                row.interface_interactions, row.transactions, operations
            )
            result = db.execute(
                update(PaymentRow)
                .where(PaymentRow.id == payment_id, PaymentRow.version == version)
                .values(
                    version=version + 1,
                    interface_interactions=interactions,
                    transactions=transactions,
                    updated_at=datetime.now(timezone.utc),
                )
            )
            if result.rowcount != 1:
                db.rollback()
                current = db.execute(
                    select(PaymentRow.version).where(PaymentRow.id == payment_id)
                ).scalar_one_or_none()
                raise VersionConflictError(
                    f"version {version} of payment {payment_id} is stale",
                    current_version=current,
                )
            db.commit()
            row = db.get(PaymentRow, payment_id, populate_existing=True)
            return _to_record(row)
