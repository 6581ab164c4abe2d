"""In-memory versioned payment store used across tests."""

import asyncio
from collections.abc import Callable

from paysync.common.errors import RecordNotFoundError, StoreError, VersionConflictError
from paysync.services.notification.schemas import PaymentRecord, UpdateOperation
from paysync.services.notification.sql_store import apply_operations


class FakePaymentStore:
    """Versioned store double with conflict injection and call recording."""

    def __init__(self, payments: list[PaymentRecord] = ()) -> None:
        self.payments = {p.id: p for p in payments}
        self.forced_conflicts: dict[str, int] = {}
        # Applied to the stored payment whenever a conflict is injected, to
        # mimic a concurrent writer landing first.
        self.concurrent_writer: Callable[[PaymentRecord], PaymentRecord] | None = None
        self.failing_updates: set[str] = set()
        self.failing_keys: set[str] = set()
        self.updates: list[tuple[str, int, list[UpdateOperation]]] = []
        self.fetch_delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch_by_key(self, key: str) -> PaymentRecord:
        if key in self.failing_keys:
            raise StoreError(f"store unavailable for {key}", status_code=503)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.fetch_delay)
        finally:
            self.in_flight -= 1
        for payment in self.payments.values():
            if payment.key == key:
                return payment
        raise RecordNotFoundError(f"payment with key {key} was not found")

    async def fetch_by_id(self, payment_id: str) -> PaymentRecord:
        if payment_id not in self.payments:
            raise RecordNotFoundError(f"payment {payment_id} was not found")
        return self.payments[payment_id]

    async def update(self, payment_id: str, version: int, operations: list[UpdateOperation]) -> PaymentRecord:
        self.updates.append((payment_id, version, list(operations)))
        if payment_id in self.failing_updates:
            raise StoreError("internal server error", status_code=500)
        payment = self.payments[payment_id]
        if self.forced_conflicts.get(payment_id, 0) > 0:
            self.forced_conflicts[payment_id] -= 1
            if self.concurrent_writer is not None:
                payment = self.concurrent_writer(payment)
            payment = payment.model_copy(update={"version": payment.version + 1})
            self.payments[payment_id] = payment
            raise VersionConflictError("stale version", current_version=payment.version)
        if version != payment.version:
            raise VersionConflictError("stale version", current_version=payment.version)

        interactions, transactions = apply_operations(
            [i.model_dump(by_alias=True, mode="json") for i in payment.interface_interactions],
            [t.model_dump(by_alias=True, mode="json") for t in payment.transactions],
            operations,
        )
        updated = PaymentRecord.model_validate(
            {
                "id": payment.id,
                "key": payment.key,
                "version": payment.version + 1,
                "interfaceInteractions": interactions,
                "transactions": transactions,
            }
        )
        self.payments[payment_id] = updated
        return updated
