from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, Protocol, cast

from app.common.errors import NotFoundError, UpstreamTransportError, UpstreamValidationError
from app.common.http_client import http_post
from app.common.logging_setup import get_logger
from app.common.settings import Settings, settings
from app.schemas.shopify_fulfillment import (
    CreatedFulfillment,
    FulfillmentOrder,
    FulfillmentOrderLineItem,
    FulfillmentRequest,
    Order,
)
from app.utils.utils_helpers import order_gid

logger = get_logger(__name__)


def obter_api_shopify_version(now: datetime | None = None) -> str:
    """
    Retorna a versão trimestral da Shopify API (YYYY-01/04/07/10).
    Usa datetime aware (UTC por padrão). 'now' é opcional (útil para testes).
    """
    dt = now or datetime.now(UTC)
    y, m = dt.year, dt.month
    q_start = ((m - 1) // 3) * 3 + 1  # 1, 4, 7, 10
    return f"{y}-{q_start:02d}"


_QUERY_LIST_ORDERS = """
query ListOrders($q: String!, $first: Int!) {
  orders(first: $first, query: $q, sortKey: CREATED_AT, reverse: true) {
    nodes {
      id
      name
      createdAt
      displayFinancialStatus
      displayFulfillmentStatus
    }
  }
}
""".strip()

_QUERY_FIND_ORDER = """
query FindOrder($q: String!) {
  orders(first: 5, query: $q) {
    nodes { id name displayFinancialStatus displayFulfillmentStatus }
  }
}
""".strip()

_QUERY_ORDER_DETAILS = """
query OrderDetails($id: ID!, $foFirst: Int!, $liFirst: Int!) {
  order(id: $id) {
    id
    name
    createdAt
    displayFinancialStatus
    displayFulfillmentStatus
    fulfillmentOrders(first: $foFirst) {
      nodes {
        id
        status
        requestStatus
        assignedLocation { name }
        lineItems(first: $liFirst) {
          edges {
            node {
              id
              remainingQuantity
              totalQuantity
              lineItem { id title sku variantTitle }
            }
          }
        }
      }
    }
  }
}
""".strip()

_MUTATION_CREATE = """
mutation CreateFulfillment($fulfillment: FulfillmentV2Input!) {
  fulfillmentCreateV2(fulfillment: $fulfillment) {
    fulfillment { id status }
    userErrors { field message }
  }
}
""".strip()


class ClienteShopify(Protocol):
    """O que o core precisa da Shopify. Toda chamada é bloqueante e sem retry."""

    def list_orders(self, query: str, limit: int) -> list[Order]: ...

    def find_orders(self, query: str) -> list[Order]: ...

    def fetch_order_details(self, order_id: str) -> tuple[Order, list[FulfillmentOrder]]: ...

    def fetch_fulfillment_orders(self, order_id: str) -> list[FulfillmentOrder]: ...

    def create_fulfillment(self, request: FulfillmentRequest) -> CreatedFulfillment: ...


# -----------------------------------------------------------------------------
# Mapeamento de nós GraphQL -> modelos
# -----------------------------------------------------------------------------
def _nodes(conn: Mapping[str, Any] | None) -> list[dict[str, Any]]:
    """Aceita tanto `nodes` quanto `edges { node }`."""
    conn = conn or {}
    if conn.get("nodes") is not None:
        return [n for n in conn.get("nodes") or [] if n]
    return [n for n in ((e or {}).get("node") for e in conn.get("edges") or []) if n]


def _mapear_order(node: Mapping[str, Any]) -> Order:
    return Order(
        id=str(node.get("id") or ""),
        name=str(node.get("name") or ""),
        created_at=node.get("createdAt"),
        financial_status=node.get("displayFinancialStatus"),
        fulfillment_status=node.get("displayFulfillmentStatus"),
    )


def _mapear_line_item(node: Mapping[str, Any]) -> FulfillmentOrderLineItem:
    li = node.get("lineItem") or {}
    return FulfillmentOrderLineItem(
        id=str(node.get("id") or ""),
        remaining_quantity=max(0, int(node.get("remainingQuantity") or 0)),
        total_quantity=int(node.get("totalQuantity") or 0),
        title=str(li.get("title") or ""),
        sku=li.get("sku") or None,
        variant_title=li.get("variantTitle") or None,
        line_item_id=str(li.get("id") or "") or None,
    )


def _mapear_fulfillment_order(node: Mapping[str, Any]) -> FulfillmentOrder:
    return FulfillmentOrder(
        id=str(node.get("id") or ""),
        status=node.get("status"),
        request_status=node.get("requestStatus"),
        assigned_location_name=(node.get("assignedLocation") or {}).get("name"),
        line_items=[_mapear_line_item(li) for li in _nodes(node.get("lineItems"))],
    )


# -----------------------------------------------------------------------------
# Cliente
# -----------------------------------------------------------------------------
class ShopifyClient:
    def __init__(self, cfg: Settings | None = None) -> None:
        self.cfg = cfg or settings

    def _graphql_url(self) -> str:
        version = self.cfg.SHOPIFY_API_VERSION or obter_api_shopify_version()
        return f"https://{self.cfg.SHOP_URL}/admin/api/{version}/graphql.json"

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self.cfg.SHOPIFY_TOKEN,
        }

    def _post_graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        r = http_post(self._graphql_url(), json={"query": query, "variables": variables}, headers=self._headers())
        try:
            payload: Any = r.json() or {}
        except ValueError as e:
            raise UpstreamTransportError("Resposta inválida da Shopify", cause=e, details=r.text[:500]) from e
        if not isinstance(payload, dict):
            raise UpstreamTransportError("Resposta inválida da Shopify", details=r.text[:500])

        errors = payload.get("errors") or []
        if errors:
            logger.error("shopify_graphql_errors", extra={"errors": errors})
            raise UpstreamTransportError("GraphQL error", code="GRAPHQL_ERROR", details=json.dumps(errors, indent=2))
        return cast(dict[str, Any], payload.get("data") or {})

    def list_orders(self, query: str, limit: int) -> list[Order]:
        data = self._post_graphql(_QUERY_LIST_ORDERS, {"q": query, "first": limit})
        return [_mapear_order(o) for o in _nodes(data.get("orders"))]

    def find_orders(self, query: str) -> list[Order]:
        data = self._post_graphql(_QUERY_FIND_ORDER, {"q": query})
        return [_mapear_order(o) for o in _nodes(data.get("orders")) if o.get("id")]

    def fetch_order_details(self, order_id: str) -> tuple[Order, list[FulfillmentOrder]]:
        data = self._post_graphql(
            _QUERY_ORDER_DETAILS,
            {
                "id": order_gid(order_id),
                "foFirst": self.cfg.FULFILLMENT_ORDERS_PAGE,
                "liFirst": self.cfg.FO_LINE_ITEMS_PAGE,
            },
        )
        node = data.get("order") or {}
        if not node.get("id"):
            raise NotFoundError("Order not found (or access denied).", data={"order_id": order_id})
        fos = [_mapear_fulfillment_order(fo) for fo in _nodes(node.get("fulfillmentOrders"))]
        return _mapear_order(node), fos

    def fetch_fulfillment_orders(self, order_id: str) -> list[FulfillmentOrder]:
        return self.fetch_order_details(order_id)[1]

    def create_fulfillment(self, request: FulfillmentRequest) -> CreatedFulfillment:
        data = self._post_graphql(_MUTATION_CREATE, {"fulfillment": request.to_input()})
        out = data.get("fulfillmentCreateV2") or {}

        user_errors = out.get("userErrors") or []
        if user_errors:
            raise UpstreamValidationError(
                str(user_errors[0].get("message") or "Fulfillment failed"),
                details=json.dumps(user_errors, indent=2),
                data={"user_errors": user_errors},
            )

        fulfillment = out.get("fulfillment") or {}
        return CreatedFulfillment(id=fulfillment.get("id"), status=fulfillment.get("status"))
