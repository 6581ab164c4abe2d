"""Compute the store operations that reconcile a payment with one notification.

Planning is pure: the same snapshot and notification always produce the same
operations (given the same `now`), which is what makes re-planning after a
version conflict safe.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from paysync.common.errors import NotificationValidationError
from paysync.common.state_machine import is_more_final
from paysync.services.notification.events import DEFAULT_EVENT_MAPPING, EventMappingEntry, classify
from paysync.services.notification.schemas import (
    AddInterfaceInteraction,
    AddTransaction,
    ChangeTransactionState,
    InteractionFields,
    Money,
    Notification,
    PaymentRecord,
    TransactionDraft,
    TypeReference,
    UpdateOperation,
)


INTERACTION_TYPE_NOTIFICATION = "notification"


@dataclass(frozen=True)
class PlannerConfig:
    event_mapping: tuple[EventMappingEntry, ...] = DEFAULT_EVENT_MAPPING
    sensitive_fields: frozenset[str] = field(default_factory=lambda: frozenset({"additionalData", "reason"}))
    cancel_or_refund_fallback: str | None = None
    interaction_type_key: str = "ctp-adyen-integration-interaction-notification"


def strip_sensitive_fields(notification: dict[str, Any], sensitive_fields: frozenset[str]) -> dict[str, Any]:
    """Return a copy without sensitive keys on the wrapper or the request item."""

    stripped = {k: v for k, v in notification.items() if k not in sensitive_fields}
    item = stripped.get("NotificationRequestItem")
    if isinstance(item, dict):
        stripped["NotificationRequestItem"] = {k: v for k, v in item.items() if k not in sensitive_fields}
    return stripped


def serialize_notification(notification: dict[str, Any]) -> str:
    # Canonical form: key order must not defeat the duplicate check.
    return json.dumps(notification, sort_keys=True, separators=(",", ":"), default=str)


def _is_recorded(payment: PaymentRecord, serialized: str) -> bool:
    return any(
        interaction.fields.get("notification") == serialized for interaction in payment.interface_interactions
    )


def plan_updates(
    payment: PaymentRecord,
    notification: dict[str, Any],
    config: PlannerConfig,
    now: datetime | None = None,
) -> list[UpdateOperation]:
    """Return the ordered operations still missing from `payment`.

    An empty list means the notification is already fully reflected.
    """

    item = Notification.model_validate(notification).NotificationRequestItem
    operations: list[UpdateOperation] = []

    stripped = strip_sensitive_fields(notification, config.sensitive_fields)
    if "success" in stripped["NotificationRequestItem"]:
        # "true" and true are the same delivery.
        stripped["NotificationRequestItem"]["success"] = item.success
    serialized = serialize_notification(stripped)
    if not _is_recorded(payment, serialized):
        operations.append(
            AddInterfaceInteraction(
                type=TypeReference(key=config.interaction_type_key),
                fields=InteractionFields(
                    created_at=now or datetime.now(timezone.utc),
                    status=item.eventCode.lower() if item.eventCode else "",
                    type=INTERACTION_TYPE_NOTIFICATION,
                    notification=serialized,
                ),
            )
        )

    transaction_type, transaction_state = classify(
        item.eventCode,
        item.success,
        item.additionalData,
        mapping=config.event_mapping,
        cancel_or_refund_fallback=config.cancel_or_refund_fallback,
    )
    if transaction_type is None:
        return operations

    existing = next((t for t in payment.transactions if t.interaction_id == item.pspReference), None)
    if existing is None:
        if item.amount is None:
            raise NotificationValidationError(
                f"notification {item.pspReference} with event {item.eventCode} has no amount",
                {"psp_reference": item.pspReference, "event_code": item.eventCode},
            )
        operations.append(
            AddTransaction(
                transaction=TransactionDraft(
                    type=transaction_type,
                    amount=Money(cent_amount=item.amount.value, currency_code=item.amount.currency),
                    state=transaction_state,
                    interaction_id=item.pspReference,
                )
            )
        )
    elif is_more_final(existing.state, transaction_state):
        operations.append(ChangeTransactionState(transaction_id=existing.id, state=transaction_state))
    return operations
