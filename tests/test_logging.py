"""Correlation fields injected into JSON log records."""

import asyncio
import io
import json
import logging

import pytest

from paysync.common.logging import (
    ContextFilter,
    configure_logging,
    merchant_reference_ctx,
    notification_context,
    payment_id_ctx,
    psp_reference_ctx,
)


def test_context_filter_copies_correlation_ids():
    record = logging.LogRecord("paysync", logging.INFO, __file__, 1, "hello", None, None)
    psp_token = psp_reference_ctx.set("psp-1")
    merchant_token = merchant_reference_ctx.set("order-1")
    try:
        assert ContextFilter().filter(record)
    finally:
        psp_reference_ctx.reset(psp_token)
        merchant_reference_ctx.reset(merchant_token)

    assert record.psp_reference == "psp-1"
    assert record.merchant_reference == "order-1"
    assert record.payment_id == ""


def test_configure_logging_emits_json():
    root = logging.getLogger()
    previous_handlers, previous_level = root.handlers, root.level
    try:
        configure_logging()
        handler = root.handlers[0]
        buffer = io.StringIO()
        handler.setStream(buffer)
        token = psp_reference_ctx.set("psp-9")
        try:
            logging.getLogger("paysync").warning("concurrent modification retry=%s", 1)
        finally:
            psp_reference_ctx.reset(token)

        line = json.loads(buffer.getvalue().strip().splitlines()[-1])
        assert line["message"] == "concurrent modification retry=1"
        assert line["psp_reference"] == "psp-9"
        assert line["levelname"] == "WARNING"
    finally:
        root.handlers = previous_handlers
        root.setLevel(previous_level)
        for f in list(root.filters):
            if isinstance(f, ContextFilter):
                root.removeFilter(f)


def test_notification_context_restores_previous_values():
    outer = psp_reference_ctx.set("outer")
    try:
        with notification_context("psp-1", None):
            payment_id_ctx.set("pay-1")
            assert psp_reference_ctx.get() == "psp-1"
            assert merchant_reference_ctx.get() == ""
        assert psp_reference_ctx.get() == "outer"
        assert payment_id_ctx.get() == ""
    finally:
        psp_reference_ctx.reset(outer)


def test_notification_context_restores_on_error():
    with pytest.raises(RuntimeError):
        with notification_context("psp-1", "order-1"):
            raise RuntimeError("boom")

    assert psp_reference_ctx.get() == ""
    assert merchant_reference_ctx.get() == ""


@pytest.mark.asyncio
async def test_concurrent_notifications_keep_their_own_references():
    seen = {}

    async def handle(psp_reference):
        with notification_context(psp_reference, f"order-{psp_reference}"):
            await asyncio.sleep(0)
            record = logging.LogRecord("paysync", logging.INFO, __file__, 1, "x", None, None)
            ContextFilter().filter(record)
            seen[psp_reference] = record.merchant_reference

    await asyncio.gather(handle("a"), handle("b"), handle("c"))

    assert seen == {"a": "order-a", "b": "order-b", "c": "order-c"}
