"""Notification reconciliation against the versioned payment store.

Each notification is looked up by merchant reference, planned against the
current payment snapshot and written with the snapshot's version. A version
conflict means another writer got there first: the latest snapshot is fetched
and the plan recomputed, up to `max_update_retries` times.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import ValidationError

from paysync.common.config import CommonSettings
from paysync.common.errors import (
    NotificationValidationError,
    PaysyncError,
    ReconciliationCancelledError,
    RecordNotFoundError,
    RetryBudgetExhaustedError,
    StoreError,
    UnexpectedStoreError,
    VersionConflictError,
)
from paysync.common.logging import logger, notification_context, payment_id_ctx
from paysync.common.metrics import (
    interface_interactions_skipped_total,
    notifications_processed_total,
    payment_update_conflicts_total,
    payment_update_retries_exhausted_total,
    reconcile_latency_seconds,
)
from paysync.services.notification.planner import PlannerConfig, plan_updates, strip_sensitive_fields
from paysync.services.notification.schemas import (
    AddInterfaceInteraction,
    Notification,
    NotificationOutcome,
    PaymentRecord,
    ReconcileResult,
)
from paysync.services.notification.store import PaymentStore, SignatureVerifier


@dataclass(frozen=True)
class ReconcilerConfig:
    planner: PlannerConfig = field(default_factory=PlannerConfig)
    max_update_retries: int = 20
    notification_concurrency: int = 10
    enable_hmac_signature: bool = False

    @classmethod
    def from_settings(cls, settings: CommonSettings) -> "ReconcilerConfig":
        return cls(
            planner=PlannerConfig(
                sensitive_fields=frozenset(settings.sensitive_notification_fields),
                cancel_or_refund_fallback=settings.cancel_or_refund_fallback_type,
                interaction_type_key=settings.interaction_type_key,
            ),
            max_update_retries=settings.max_update_retries,
            notification_concurrency=settings.notification_concurrency,
            enable_hmac_signature=settings.enable_hmac_signature,
        )


class ReconcileState(str, Enum):
    FETCH = "FETCH"
    PLAN = "PLAN"
    WRITE = "WRITE"


def _item_refs(notification: Any) -> tuple[str | None, str | None]:
    item = notification.get("NotificationRequestItem") if isinstance(notification, dict) else None
    if not isinstance(item, dict):
        return None, None
    psp_reference = item.get("pspReference")
    merchant_reference = item.get("merchantReference")
    return (
        psp_reference if isinstance(psp_reference, str) else None,
        merchant_reference if isinstance(merchant_reference, str) and merchant_reference else None,
    )


class NotificationService:
    """Applies provider notifications to payments with optimistic concurrency."""

    def __init__(
        self,
        store: PaymentStore,
        config: ReconcilerConfig | None = None,
        signature_verifier: SignatureVerifier | None = None,
        stop_event: asyncio.Event | None = None,
        clock: Callable[[], datetime] | None = None,
        service_name: str = "notification",
    ) -> None:
        self.store = store
        self.config = config or ReconcilerConfig()
        if self.config.enable_hmac_signature and signature_verifier is None:
            raise ValueError("enable_hmac_signature is set but no signature verifier was given")
        self.signature_verifier = signature_verifier
        self.stop_event = stop_event
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.service_name = service_name

    @classmethod
    def from_settings(cls, store: PaymentStore, settings: CommonSettings, **kwargs) -> "NotificationService":
        """Build a service whose limits and payload handling come from `settings`."""

        return cls(store, ReconcilerConfig.from_settings(settings), service_name=settings.service_name, **kwargs)

    async def _fetch_latest(self, payment_id: str) -> PaymentRecord:
        try:
            return await self.store.fetch_by_id(payment_id)
        except StoreError as exc:
            raise UnexpectedStoreError(
                f"Failed to re-fetch payment with ID: {payment_id}. Error: {exc}",
                {"payment_id": payment_id, "store_error": exc.to_dict()},
            ) from exc

    async def reconcile(self, payment: PaymentRecord, notification: dict[str, Any]) -> ReconcileResult:
        """Bring `payment` in line with `notification`.

        States: FETCH -> PLAN -> WRITE, ending in a returned result or a raised
        error. Only a version conflict loops back to FETCH.
        """

        snapshot = payment
        state = ReconcileState.PLAN
        attempts = 0
        conflicts = 0
        operations = []
        while True:
            if state is ReconcileState.FETCH:
                if self.stop_event is not None and self.stop_event.is_set():
                    raise ReconciliationCancelledError(snapshot.id, attempts)
                snapshot = await self._fetch_latest(snapshot.id)
                state = ReconcileState.PLAN

            elif state is ReconcileState.PLAN:
                operations = plan_updates(snapshot, notification, self.config.planner, now=self.clock())
                if not operations:
                    logger.debug("payment already up to date key=%s version=%s", snapshot.key, snapshot.version)
                    return ReconcileResult(status="unchanged", payment=snapshot, attempts=attempts)
                state = ReconcileState.WRITE

            elif state is ReconcileState.WRITE:
                attempts += 1
                try:
                    updated = await self.store.update(snapshot.id, snapshot.version, operations)
                except VersionConflictError as exc:
                    payment_update_conflicts_total.labels(service=self.service_name).inc()
                    conflicts += 1
                    if conflicts > self.config.max_update_retries:
                        payment_update_retries_exhausted_total.labels(service=self.service_name).inc()
                        raise RetryBudgetExhaustedError(
                            snapshot.id,
                            snapshot.version,
                            exc.current_version,
                            self.config.max_update_retries,
                        ) from exc
                    logger.warning(
                        "concurrent modification payment_id=%s version_tried=%s current_version=%s retry=%s/%s",
                        snapshot.id,
                        snapshot.version,
                        exc.current_version,
                        conflicts,
                        self.config.max_update_retries,
                    )
                    state = ReconcileState.FETCH
                except StoreError as exc:
                    raise UnexpectedStoreError(
                        f"Unexpected error during updating a payment with ID: {snapshot.id}. Error: {exc}",
                        {"payment_id": snapshot.id, "version": snapshot.version, "store_error": exc.to_dict()},
                    ) from exc
                else:
                    logger.debug("payment updated key=%s version=%s", updated.key, updated.version)
                    return ReconcileResult(
                        status="updated",
                        payment=updated,
                        attempts=attempts,
                        operations=operations,
                    )

    async def _fetch_payment(self, merchant_reference: str) -> PaymentRecord:
        try:
            return await self.store.fetch_by_key(merchant_reference)
        except RecordNotFoundError:
            raise
        except StoreError as exc:
            raise UnexpectedStoreError(
                f"Failed to fetch a payment with merchantReference: {merchant_reference}. Error: {exc}",
                {"merchant_reference": merchant_reference, "store_error": exc.to_dict()},
            ) from exc

    def _validate(self, notification: Any) -> str:
        """Signature check and shape validation; returns the merchant reference."""

        if not isinstance(notification, dict):
            raise NotificationValidationError("notification is not a JSON object")
        if self.config.enable_hmac_signature:
            error_message = self.signature_verifier.validate(notification)
            if error_message:
                raise NotificationValidationError(f'HMAC validation failed. Reason: "{error_message}"')
        _, merchant_reference = _item_refs(notification)
        if merchant_reference is None:
            raise NotificationValidationError("Can't extract merchantReference from the notification")
        try:
            Notification.model_validate(notification)
        except ValidationError as exc:
            raise NotificationValidationError(
                "notification does not match the provider item shape",
                {"errors": exc.errors(include_url=False, include_context=False)},
            ) from exc
        return merchant_reference

    def _loggable(self, notification: Any) -> Any:
        if isinstance(notification, dict):
            return strip_sensitive_fields(notification, self.config.planner.sensitive_fields)
        return notification

    def _outcome(self, status: str, notification: Any, error: PaysyncError | None = None) -> NotificationOutcome:
        notifications_processed_total.labels(service=self.service_name, outcome=status).inc()
        psp_reference, merchant_reference = _item_refs(notification)
        return NotificationOutcome(
            psp_reference=psp_reference,
            merchant_reference=merchant_reference,
            status=status,
            reason=error.code if error else None,
            error=error.to_dict() if error else None,
        )

    async def process_notification(self, notification: Any) -> NotificationOutcome:
        """Validate, look up and reconcile one notification.

        Validation failures and unknown payments are skipped; store failures
        and exhausted retries are reported as failed. Neither raises.
        """

        psp_reference, merchant_reference = _item_refs(notification)
        with notification_context(psp_reference, merchant_reference):
            try:
                merchant_reference = self._validate(notification)
                payment = await self._fetch_payment(merchant_reference)
                payment_id_ctx.set(payment.id)
                with reconcile_latency_seconds.labels(service=self.service_name).time():
                    result = await self.reconcile(payment, notification)
            except NotificationValidationError as exc:
                logger.error("%s. Notification: %s", exc, self._loggable(notification))
                return self._outcome("skipped", notification, exc)
            except RecordNotFoundError as exc:
                logger.error("Payment with merchantReference: %s was not found", merchant_reference)
                return self._outcome("skipped", notification, exc)
            except (RetryBudgetExhaustedError, UnexpectedStoreError, ReconciliationCancelledError) as exc:
                logger.error("notification processing failed code=%s error=%s", exc.code, exc)
                return self._outcome("failed", notification, exc)

        if not any(isinstance(op, AddInterfaceInteraction) for op in result.operations):
            interface_interactions_skipped_total.labels(service=self.service_name).inc()
        return self._outcome(result.status, notification)

    async def process_notifications(self, notifications: list[Any]) -> list[NotificationOutcome]:
        """Process a batch with at most `notification_concurrency` in flight.

        Outcomes are returned in input order. One notification failing never
        stops the others.
        """

        semaphore = asyncio.Semaphore(self.config.notification_concurrency)

        async def run(notification: Any) -> NotificationOutcome:
            async with semaphore:
                return await self.process_notification(notification)

        results = await asyncio.gather(*(run(n) for n in notifications), return_exceptions=True)
        outcomes: list[NotificationOutcome] = []
        for notification, result in zip(notifications, results):
            if isinstance(result, Exception):
                logger.error("unexpected error processing notification error=%r", result, exc_info=result)
                error = PaysyncError("notification.unexpected_error", str(result), {"type": type(result).__name__})
                outcomes.append(self._outcome("failed", notification, error))
            elif isinstance(result, BaseException):
                raise result
            else:
                outcomes.append(result)

        counts: dict[str, int] = {}
        for outcome in outcomes:
            counts[outcome.status] = counts.get(outcome.status, 0) + 1
        logger.info("notification batch processed size=%s outcomes=%s", len(outcomes), counts)
        return outcomes
