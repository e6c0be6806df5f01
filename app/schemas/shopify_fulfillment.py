from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    # snake_case no Python, camelCase no JSON (mesmo formato da Shopify/front)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -------------------------
# Snapshots vindos da Shopify
# -------------------------
class Order(_CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    created_at: str | None = None
    financial_status: str | None = None
    fulfillment_status: str | None = None


class FulfillmentOrderLineItem(_CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="ID do FulfillmentOrderLineItem (escopo do FO)")
    remaining_quantity: int = Field(0, ge=0)
    total_quantity: int = 0
    title: str = ""
    sku: str | None = None
    variant_title: str | None = None
    line_item_id: str | None = Field(default=None, description="LineItem do pedido (identidade p/ dedupe)")


class FulfillmentOrder(_CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    status: str | None = None
    request_status: str | None = None
    assigned_location_name: str | None = None
    line_items: list[FulfillmentOrderLineItem] = Field(default_factory=list)


class PendingItem(FulfillmentOrderLineItem):
    """Line item pendente já deduplicado, com o FO vencedor."""

    fulfillment_order_id: str
    fulfillment_order_status: str = ""
    dedup_key: str
    fulfillable: bool = True


# -------------------------
# Seleção do operador
# -------------------------
class ItemSelection(_CamelModel):
    picked: bool = False
    quantity: int = 0
    tracking_number: str = ""
    carrier: str = ""
    fulfillment_order_id: str = ""
    max_quantity: int = 0


class ApplyToAll(_CamelModel):
    tracking_number: str = ""
    carrier: str = ""


class PickedItem(_CamelModel):
    fo_line_item_id: str = Field(..., min_length=1)
    fulfillment_order_id: str = ""
    quantity: int = 0
    tracking_number: str = ""
    carrier: str = ""

    @field_validator("fulfillment_order_id", "tracking_number", "carrier", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()


# -------------------------
# FulfillmentV2Input
# -------------------------
class TrackingInfo(_CamelModel):
    number: str
    company: str | None = None


class FulfillmentOrderLineItemInput(_CamelModel):
    id: str
    quantity: int = Field(..., gt=0)


class LineItemsByFulfillmentOrder(_CamelModel):
    fulfillment_order_id: str
    fulfillment_order_line_items: list[FulfillmentOrderLineItemInput]


class FulfillmentRequest(_CamelModel):
    notify_customer: bool = False
    tracking_info: TrackingInfo | None = None
    line_items_by_fulfillment_order: list[LineItemsByFulfillmentOrder]

    def to_input(self) -> dict[str, Any]:
        """Variável `fulfillment` do fulfillmentCreateV2 (sem chaves nulas)."""
        return self.model_dump(by_alias=True, exclude_none=True)


class CreatedFulfillment(_CamelModel):
    id: str | None = None
    status: str | None = None


class GroupResult(_CamelModel):
    fulfillment_id: str | None = None
    status: str | None = None
    key: str = Field(..., description="Chave do grupo: '<tracking>|||<carrier>' ou 'NO_TRACK'")
    error: str | None = None


class CsvRowError(BaseModel):
    row: int
    order_name: str | None = None
    error: str


# -------------------------
# Requests
# -------------------------
class OrderDetailsRequest(_CamelModel):
    order_id: str = ""
    selection: dict[str, ItemSelection] = Field(
        default_factory=dict, description="Seleção anterior do operador (sobrepõe os defaults)"
    )
    apply_to_all: ApplyToAll | None = None


class CreateGroupedRequest(_CamelModel):
    order_id: str = ""
    notify_customer: bool = Field(False, description="Se true, Shopify notifica o cliente")
    items: list[PickedItem] = Field(default_factory=list)
    fail_fast: bool = Field(True, description="Para no primeiro grupo com erro (sem rollback dos anteriores)")


# -------------------------
# Respostas (uma tag por intent)
# -------------------------
class OrdersListOk(_CamelModel):
    ok: Literal[True] = True
    intent: Literal["orders_list"] = "orders_list"
    orders: list[Order]


class OrderDetailsOk(_CamelModel):
    ok: Literal[True] = True
    intent: Literal["order_details"] = "order_details"
    order: Order
    fulfillment_orders: list[FulfillmentOrder]
    items: list[PendingItem]
    selection: dict[str, ItemSelection]
    picked_count: int = 0


class CreateGroupedOk(_CamelModel):
    ok: Literal[True] = True
    intent: Literal["create_fulfillments_grouped"] = "create_fulfillments_grouped"
    order_id: str
    created: int
    failed: int = 0
    results: list[GroupResult]


class CsvSyncOk(_CamelModel):
    ok: Literal[True] = True
    intent: Literal["csv_sync"] = "csv_sync"
    filename: str
    total_rows: int
    processed: int
    created_fulfillments: int
    failed: int
    errors_sample: list[CsvRowError]


class ActionErr(_CamelModel):
    ok: Literal[False] = False
    intent: str
    error: str
    details: str | None = None
    results: list[GroupResult] | None = None


ActionResult = Annotated[
    Union[OrdersListOk, OrderDetailsOk, CreateGroupedOk, CsvSyncOk],
    Field(discriminator="intent"),
]


__all__ = [
    "ActionErr",
    "ActionResult",
    "ApplyToAll",
    "CreateGroupedOk",
    "CreateGroupedRequest",
    "CreatedFulfillment",
    "CsvRowError",
    "CsvSyncOk",
    "FulfillmentOrder",
    "FulfillmentOrderLineItem",
    "FulfillmentOrderLineItemInput",
    "FulfillmentRequest",
    "GroupResult",
    "ItemSelection",
    "LineItemsByFulfillmentOrder",
    "Order",
    "OrderDetailsOk",
    "OrderDetailsRequest",
    "OrdersListOk",
    "PendingItem",
    "PickedItem",
    "TrackingInfo",
]
