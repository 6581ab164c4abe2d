"""Provider event code to transaction type/state classification."""

from typing import Any, NamedTuple


CANCEL_OR_REFUND = "CANCEL_OR_REFUND"
MODIFICATION_ACTION_KEY = "modification.action"


class EventMappingEntry(NamedTuple):
    event_code: str
    success: bool
    transaction_type: str
    transaction_state: str


class Classification(NamedTuple):
    """Transaction effect of one notification; both fields None means no effect."""

    transaction_type: str | None
    transaction_state: str | None


NO_TRANSACTION_EFFECT = Classification(None, None)

DEFAULT_EVENT_MAPPING: tuple[EventMappingEntry, ...] = (
    EventMappingEntry("AUTHORISATION", True, "Authorization", "Success"),
    EventMappingEntry("AUTHORISATION", False, "Authorization", "Failure"),
    EventMappingEntry("CANCELLATION", True, "CancelAuthorization", "Success"),
    EventMappingEntry("CANCELLATION", False, "CancelAuthorization", "Failure"),
    EventMappingEntry("CAPTURE", True, "Charge", "Success"),
    EventMappingEntry("CAPTURE", False, "Charge", "Failure"),
    EventMappingEntry("CAPTURE_FAILED", True, "Charge", "Failure"),
    EventMappingEntry("REFUND", True, "Refund", "Success"),
    EventMappingEntry("REFUND", False, "Refund", "Failure"),
    EventMappingEntry("REFUND_FAILED", True, "Refund", "Failure"),
    EventMappingEntry("REFUNDED_REVERSED", True, "Refund", "Failure"),
    EventMappingEntry(CANCEL_OR_REFUND, True, "CancelAuthorization", "Success"),
    EventMappingEntry(CANCEL_OR_REFUND, False, "CancelAuthorization", "Failure"),
    EventMappingEntry("CHARGEBACK", True, "Chargeback", "Success"),
    EventMappingEntry("CHARGEBACK_REVERSED", True, "Chargeback", "Failure"),
)

_MODIFICATION_ACTION_TYPES = {
    "refund": "Refund",
    "cancel": "CancelAuthorization",
}


def classify(
    event_code: str | None,
    success: bool | None,
    additional_data: dict[str, Any] | None = None,
    mapping: tuple[EventMappingEntry, ...] = DEFAULT_EVENT_MAPPING,
    cancel_or_refund_fallback: str | None = None,
) -> Classification:
    """Map `(event_code, success)` to the transaction it affects.

    CANCEL_OR_REFUND is resolved from `additionalData["modification.action"]`.
    Without a recognised action the fallback type is used when configured,
    otherwise the mapped type is kept. An item without `success` matches no
    entry.
    """

    if success is None:
        return NO_TRANSACTION_EFFECT
    entry = next((e for e in mapping if e.event_code == event_code and e.success == success), None)
    if entry is None:
        return NO_TRANSACTION_EFFECT

    transaction_type = entry.transaction_type
    if entry.event_code == CANCEL_OR_REFUND:
        action = (additional_data or {}).get(MODIFICATION_ACTION_KEY)
        if action in _MODIFICATION_ACTION_TYPES:
            transaction_type = _MODIFICATION_ACTION_TYPES[action]
        elif cancel_or_refund_fallback is not None:
            transaction_type = cancel_or_refund_fallback
    return Classification(transaction_type, entry.transaction_state)
