"""Provider notification, payment record and update operation schemas.

Notification items keep the provider's camelCase field names. Payment store
models are snake_case in Python and camelCase on the wire.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Amount(BaseModel):
    """Provider amount in minor units."""

    model_config = ConfigDict(frozen=True)

    value: int
    currency: str = Field(min_length=3, max_length=3)


class NotificationItem(BaseModel):
    """Single provider event. Unknown provider fields are kept as extras."""

    model_config = ConfigDict(frozen=True, extra="allow")

    eventCode: str | None = None
    # Providers send "true"/"false" strings; pydantic coerces them to bool.
    success: bool | None = None
    pspReference: str = Field(min_length=1)
    merchantReference: str | None = None
    amount: Amount | None = None
    additionalData: dict[str, Any] | None = None
    reason: str | None = None


class Notification(BaseModel):
    """Wrapper the provider puts around every item of a batch."""

    model_config = ConfigDict(frozen=True, extra="allow")

    NotificationRequestItem: NotificationItem


class StoreModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class Money(StoreModel):
    cent_amount: int
    currency_code: str


class TypeReference(StoreModel):
    key: str
    type_id: str = "type"


class InterfaceInteraction(StoreModel):
    """Audit entry on the payment. `fields.notification` holds the stored payload."""

    type: TypeReference | None = None
    fields: dict[str, Any] = Field(default_factory=dict)


class Transaction(StoreModel):
    id: str
    type: str
    state: str
    amount: Money | None = None
    interaction_id: str | None = None


class PaymentRecord(StoreModel):
    """Versioned payment snapshot owned by the external store."""

    id: str
    key: str | None = None
    version: int
    interface_interactions: list[InterfaceInteraction] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)


class InteractionFields(StoreModel):
    created_at: datetime
    status: str
    type: str
    notification: str


class TransactionDraft(StoreModel):
    type: str
    amount: Money
    state: str
    interaction_id: str


class AddInterfaceInteraction(StoreModel):
    action: Literal["addInterfaceInteraction"] = "addInterfaceInteraction"
    type: TypeReference
    fields: InteractionFields


class AddTransaction(StoreModel):
    action: Literal["addTransaction"] = "addTransaction"
    transaction: TransactionDraft


class ChangeTransactionState(StoreModel):
    action: Literal["changeTransactionState"] = "changeTransactionState"
    transaction_id: str
    state: str


UpdateOperation = Annotated[
    Union[AddInterfaceInteraction, AddTransaction, ChangeTransactionState],
    Field(discriminator="action"),
]


def dump_operations(operations: list[UpdateOperation]) -> list[dict[str, Any]]:
    """Serialize planned operations into the store's wire shape."""

    return [op.model_dump(by_alias=True, mode="json") for op in operations]


@dataclass
class ReconcileResult:
    """Terminal state of one successful reconciliation."""

    status: Literal["updated", "unchanged"]
    payment: PaymentRecord
    attempts: int
    operations: list[UpdateOperation] = field(default_factory=list)


class NotificationOutcome(BaseModel):
    """Per-notification result reported by the batch dispatcher."""

    psp_reference: str | None = None
    merchant_reference: str | None = None
    status: Literal["updated", "unchanged", "skipped", "failed"]
    reason: str | None = None
    error: dict[str, Any] | None = None
