"""Event classifier tests, including CANCEL_OR_REFUND resolution."""

from paysync.services.notification.events import (
    DEFAULT_EVENT_MAPPING,
    Classification,
    EventMappingEntry,
    classify,
)


def test_mapped_event():
    assert classify("AUTHORISATION", True) == Classification("Authorization", "Success")
    assert classify("AUTHORISATION", False) == Classification("Authorization", "Failure")
    assert classify("CAPTURE", True) == Classification("Charge", "Success")


def test_unmapped_event_has_no_transaction_effect():
    assert classify("REPORT_AVAILABLE", True) == Classification(None, None)
    assert classify("CAPTURE_FAILED", False) == Classification(None, None)
    assert classify(None, True) == Classification(None, None)


def test_cancel_or_refund_resolves_refund():
    result = classify("CANCEL_OR_REFUND", True, {"modification.action": "refund"})

    assert result == Classification("Refund", "Success")


def test_cancel_or_refund_resolves_cancel():
    result = classify("CANCEL_OR_REFUND", False, {"modification.action": "cancel"})

    assert result == Classification("CancelAuthorization", "Failure")


def test_cancel_or_refund_without_action_keeps_mapped_type():
    assert classify("CANCEL_OR_REFUND", True, None).transaction_type == "CancelAuthorization"
    assert classify("CANCEL_OR_REFUND", True, {"modification.action": "void"}).transaction_type == (
        "CancelAuthorization"
    )


def test_cancel_or_refund_fallback_type_is_configurable():
    result = classify("CANCEL_OR_REFUND", True, {}, cancel_or_refund_fallback="Refund")

    assert result == Classification("Refund", "Success")


def test_classification_never_mutates_mapping():
    before = tuple(DEFAULT_EVENT_MAPPING)

    classify("CANCEL_OR_REFUND", True, {"modification.action": "refund"})
    classify("CANCEL_OR_REFUND", True, {"modification.action": "cancel"})

    assert DEFAULT_EVENT_MAPPING == before
    # A refund resolution must not leak into a later call without an action.
    assert classify("CANCEL_OR_REFUND", True).transaction_type == "CancelAuthorization"


def test_custom_mapping_table():
    mapping = (EventMappingEntry("OFFER_CLOSED", True, "Authorization", "Failure"),)

    assert classify("OFFER_CLOSED", True, mapping=mapping) == Classification("Authorization", "Failure")
    assert classify("AUTHORISATION", True, mapping=mapping) == Classification(None, None)


def test_missing_success_has_no_transaction_effect():
    assert classify("AUTHORISATION", None) == Classification(None, None)
    assert classify("CANCEL_OR_REFUND", None, {"modification.action": "refund"}) == Classification(None, None)
