"""External collaborator contracts and the HTTP payment store adapter.

The store owns payment records. Every write carries the version the caller
planned against; the store rejects stale versions with a 409, which is the
only coordination between concurrent writers.
"""

from typing import Any, Protocol

import httpx

from paysync.common.config import CommonSettings
from paysync.common.errors import RecordNotFoundError, StoreError, VersionConflictError
from paysync.services.notification.schemas import PaymentRecord, UpdateOperation, dump_operations


class PaymentStore(Protocol):
    async def fetch_by_key(self, key: str) -> PaymentRecord: ...

    async def fetch_by_id(self, payment_id: str) -> PaymentRecord: ...

    async def update(self, payment_id: str, version: int, operations: list[UpdateOperation]) -> PaymentRecord: ...


class SignatureVerifier(Protocol):
    def validate(self, notification: dict[str, Any]) -> str | None:
        """Return an error message when the signature does not match."""


def _error_body(resp: httpx.Response) -> dict[str, Any]:
    try:
        body = resp.json()
    except ValueError:
        return {"message": resp.text}
    return body if isinstance(body, dict) else {"body": body}


class HttpPaymentStore:
    """Payment store reached over the platform's REST API."""

    def __init__(self, client: httpx.AsyncClient, project_key: str) -> None:
        self.client = client
        self.project_key = project_key

    @classmethod
    def from_settings(cls, settings: CommonSettings) -> "HttpPaymentStore":
        client = httpx.AsyncClient(
            base_url=settings.store_url,
            headers={"Authorization": f"Bearer {settings.store_access_token}"},
            timeout=settings.store_timeout_seconds,
        )
        return cls(client, settings.store_project_key)

    async def close(self) -> None:
        await self.client.aclose()

    def _path(self, suffix: str) -> str:
        return f"/{self.project_key}/payments/{suffix}"

    async def _get(self, path: str, ref: str) -> PaymentRecord:
        try:
            resp = await self.client.get(path)
        except httpx.HTTPError as exc:
            raise StoreError(f"failed to fetch payment {ref}: {exc}") from exc
        if resp.status_code == 404:
            raise RecordNotFoundError(f"payment {ref} was not found", {"ref": ref})
        if resp.status_code >= 400:
            raise StoreError(
                f"failed to fetch payment {ref} status={resp.status_code}",
                status_code=resp.status_code,
                details=_error_body(resp),
            )
        return PaymentRecord.model_validate(resp.json())

    async def fetch_by_key(self, key: str) -> PaymentRecord:
        return await self._get(self._path(f"key={key}"), key)

    async def fetch_by_id(self, payment_id: str) -> PaymentRecord:
        return await self._get(self._path(payment_id), payment_id)

    async def update(self, payment_id: str, version: int, operations: list[UpdateOperation]) -> PaymentRecord:
        try:
            resp = await self.client.post(
                self._path(payment_id),
                json={"version": version, "actions": dump_operations(operations)},
            )
        except httpx.HTTPError as exc:
            raise StoreError(f"failed to update payment {payment_id}: {exc}") from exc
        if resp.status_code == 409:
            body = _error_body(resp)
            errors = body.get("errors") or [{}]
            raise VersionConflictError(
                f"version {version} of payment {payment_id} is stale",
                current_version=errors[0].get("currentVersion"),
                details=body,
            )
        if resp.status_code >= 400:
            raise StoreError(
                f"failed to update payment {payment_id} status={resp.status_code}",
                status_code=resp.status_code,
                details=_error_body(resp),
            )
        return PaymentRecord.model_validate(resp.json())
