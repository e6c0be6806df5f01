# tests/conftest.py
from __future__ import annotations

from collections.abc import Callable, Iterator

import pytest
from fastapi.testclient import TestClient

from app.common.errors import NotFoundError
from app.main import app
from app.schemas.shopify_fulfillment import (
    CreatedFulfillment,
    FulfillmentOrder,
    FulfillmentOrderLineItem,
    FulfillmentRequest,
    Order,
)
from app.services.shopify_fulfillment import get_shopify_client


def _li(item_id: str, remaining: int, line_item_id: str | None = None, title: str = "") -> FulfillmentOrderLineItem:
    return FulfillmentOrderLineItem(
        id=item_id,
        remaining_quantity=remaining,
        total_quantity=max(remaining, 1),
        title=title or f"Produto {item_id}",
        line_item_id=line_item_id,
    )


def _fo(fo_id: str, status: str | None, *itens: FulfillmentOrderLineItem) -> FulfillmentOrder:
    return FulfillmentOrder(id=fo_id, status=status, line_items=list(itens))


class FakeShopifyClient:
    """Shopify em memória. `falhas_create` mapeia o índice da chamada (0-based) para o erro a lançar."""

    def __init__(self) -> None:
        self.orders: dict[str, Order] = {}  # por nome (#1001)
        self.fos: dict[str, list[FulfillmentOrder]] = {}  # por order id
        self.falhas_create: dict[int, Exception] = {}
        self.falhas_find: dict[str, Exception] = {}
        self.created: list[FulfillmentRequest] = []
        self.create_calls = 0
        self.find_queries: list[str] = []

    def add_order(self, name: str, fos: list[FulfillmentOrder], order_id: str | None = None) -> Order:
        oid = order_id or f"gid://shopify/Order/{len(self.orders) + 1}"
        pedido = Order(id=oid, name=name, financial_status="PAID", fulfillment_status="UNFULFILLED")
        self.orders[name] = pedido
        self.fos[oid] = fos
        return pedido

    def list_orders(self, query: str, limit: int) -> list[Order]:
        return list(self.orders.values())[:limit]

    def find_orders(self, query: str) -> list[Order]:
        self.find_queries.append(query)
        nome = query.removeprefix("name:")
        if nome in self.falhas_find:
            raise self.falhas_find[nome]
        return [self.orders[nome]] if nome in self.orders else []

    def fetch_order_details(self, order_id: str) -> tuple[Order, list[FulfillmentOrder]]:
        for pedido in self.orders.values():
            if pedido.id == order_id:
                return pedido, self.fos[order_id]
        raise NotFoundError("Order not found (or access denied).")

    def fetch_fulfillment_orders(self, order_id: str) -> list[FulfillmentOrder]:
        return self.fetch_order_details(order_id)[1]

    def create_fulfillment(self, request: FulfillmentRequest) -> CreatedFulfillment:
        idx = self.create_calls
        self.create_calls += 1
        if idx in self.falhas_create:
            raise self.falhas_create[idx]
        self.created.append(request)
        return CreatedFulfillment(id=f"gid://shopify/Fulfillment/{idx + 1}", status="SUCCESS")


@pytest.fixture
def make_li() -> Callable[..., FulfillmentOrderLineItem]:
    return _li


@pytest.fixture
def make_fo() -> Callable[..., FulfillmentOrder]:
    return _fo


@pytest.fixture
def fake_client() -> FakeShopifyClient:
    return FakeShopifyClient()


@pytest.fixture
def api(fake_client: FakeShopifyClient) -> Iterator[TestClient]:
    app.dependency_overrides[get_shopify_client] = lambda: fake_client
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
