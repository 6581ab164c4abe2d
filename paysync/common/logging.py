"""JSON logging where every record names the notification it belongs to."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

from paysync.common.config import settings


psp_reference_ctx: ContextVar[str] = ContextVar("psp_reference", default="")
merchant_reference_ctx: ContextVar[str] = ContextVar("merchant_reference", default="")
payment_id_ctx: ContextVar[str] = ContextVar("payment_id", default="")

CORRELATION_FIELDS = ("psp_reference", "merchant_reference", "payment_id")
LOG_FORMAT = " ".join(
    f"%({name})s" for name in ("asctime", "levelname", "service_name", *CORRELATION_FIELDS, "message")
)


class ContextFilter(logging.Filter):
    """Copy the service name and the current notification's references onto records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = settings.service_name
        record.psp_reference = psp_reference_ctx.get()
        record.merchant_reference = merchant_reference_ctx.get()
        record.payment_id = payment_id_ctx.get()
        return True


@contextmanager
def notification_context(psp_reference: str | None, merchant_reference: str | None) -> Iterator[None]:
    """Scope log correlation to one notification.

    `payment_id` starts empty and may be set once the payment is resolved;
    all three fields are restored on exit, so concurrent tasks never leak
    references into each other's records.
    """

    tokens = (
        psp_reference_ctx.set(psp_reference or ""),
        merchant_reference_ctx.set(merchant_reference or ""),
        payment_id_ctx.set(""),
    )
    try:
        yield
    finally:
        for var, token in zip((psp_reference_ctx, merchant_reference_ctx, payment_id_ctx), tokens):
            var.reset(token)


def configure_logging(level: str | None = None) -> None:
    handler = logging.StreamHandler(sys.stdout)
    context_filter = ContextFilter()
    handler.addFilter(context_filter)
    handler.setFormatter(JsonFormatter(LOG_FORMAT))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level or settings.log_level)
    root.addFilter(context_filter)


logger = logging.getLogger("paysync")
