from __future__ import annotations

from collections.abc import Mapping
from functools import lru_cache

from app.common.errors import ValidationError
from app.common.logging_setup import get_logger
from app.common.settings import settings
from app.schemas.shopify_fulfillment import ApplyToAll, ItemSelection, Order, OrderDetailsOk
from app.services.fulfillment_itens import (
    aplicar_rastreio_em_todos,
    contar_selecionados,
    mesclar_selecao,
    resolver_itens_pendentes,
)
from app.services.shopify_client import ClienteShopify, ShopifyClient

logger = get_logger(__name__)

QUERY_PEDIDOS_PENDENTES = "fulfillment_status:unfulfilled OR fulfillment_status:partial"


@lru_cache(maxsize=1)
def get_shopify_client() -> ClienteShopify:
    return ShopifyClient()


def listar_pedidos_pendentes(client: ClienteShopify, limite: int | None = None) -> list[Order]:
    """Pedidos mais recentes ainda não atendidos (ou parciais)."""
    pedidos = client.list_orders(QUERY_PEDIDOS_PENDENTES, limite or settings.ORDERS_LIST_LIMIT)
    logger.info("orders_listed", extra={"count": len(pedidos)})
    return pedidos


def carregar_detalhes_pedido(
    client: ClienteShopify,
    order_id: str,
    selecao_anterior: Mapping[str, ItemSelection] | None = None,
    aplicar_todos: ApplyToAll | None = None,
) -> OrderDetailsOk:
    """
    Pedido + FOs + itens pendentes deduplicados + seleção mesclada
    (defaults do pedido atual sobrepostos pela seleção que o operador já tinha).
    """
    if not str(order_id or "").strip():
        raise ValidationError("Missing order_id")

    pedido, fos = client.fetch_order_details(order_id)
    itens = resolver_itens_pendentes(fos)
    selecao = mesclar_selecao(itens, selecao_anterior)
    if aplicar_todos is not None:
        selecao = aplicar_rastreio_em_todos(itens, selecao, aplicar_todos.tracking_number, aplicar_todos.carrier)

    logger.info(
        "order_details_loaded",
        extra={"order_id": pedido.id, "fulfillment_orders": len(fos), "pending_items": len(itens)},
    )
    return OrderDetailsOk(
        order=pedido,
        fulfillment_orders=fos,
        items=itens,
        selection=selecao,
        picked_count=contar_selecionados(itens, selecao),
    )
