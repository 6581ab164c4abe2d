"""Shared fixtures: notification and payment record builders."""

import pytest

from paysync.services.notification.schemas import PaymentRecord


@pytest.fixture
def make_notification():
    def _make(
        event_code: str | None = "AUTHORISATION",
        success: str | bool = "true",
        psp_reference: str = "8515620000000001",
        merchant_reference: str | None = "order-1",
        value: int = 1000,
        currency: str = "EUR",
        additional_data: dict | None = None,
        **extra,
    ) -> dict:
        item = {
            "pspReference": psp_reference,
            "success": success,
            "amount": {"value": value, "currency": currency},
            "merchantAccountCode": "TestMerchant",
            "eventDate": "2026-10-18T10:00:00+02:00",
            **extra,
        }
        if event_code is not None:
            item["eventCode"] = event_code
        if merchant_reference is not None:
            item["merchantReference"] = merchant_reference
        if additional_data is not None:
            item["additionalData"] = additional_data
        return {"NotificationRequestItem": item}

    return _make


@pytest.fixture
def make_payment():
    def _make(
        key: str = "order-1",
        payment_id: str | None = None,
        version: int = 1,
        interactions: list[dict] | None = None,
        transactions: list[dict] | None = None,
    ) -> PaymentRecord:
        return PaymentRecord.model_validate(
            {
                "id": payment_id or f"pay-{key}",
                "key": key,
                "version": version,
                "interfaceInteractions": interactions or [],
                "transactions": transactions or [],
            }
        )

    return _make
