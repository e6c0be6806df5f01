from __future__ import annotations

from collections.abc import Iterable, Mapping

from app.schemas.shopify_fulfillment import FulfillmentOrder, ItemSelection, PendingItem

_STATUS_NAO_ATENDIVEIS = frozenset({"CLOSED", "ON_HOLD"})


def fo_pode_ser_atendido(status: str | None) -> bool:
    """FO aceita fulfillment, exceto CLOSED/ON_HOLD. Status vazio/desconhecido conta como atendível."""
    st = str(status or "").strip().upper()
    if not st:
        return True
    return st not in _STATUS_NAO_ATENDIVEIS


def _score_status(status: str) -> int:
    if status == "OPEN":
        return 3
    if status and status != "CLOSED":  # IN_PROGRESS / ON_HOLD / SCHEDULED...
        return 2
    return 1


def resolver_itens_pendentes(fulfillment_orders: Iterable[FulfillmentOrder]) -> list[PendingItem]:
    """
    Achata os line items de todos os FOs do pedido e devolve uma visão deduplicada:
      - descarta itens com remainingQuantity <= 0
      - chave de dedupe = lineItem.id (fallback: id do item no FO)
      - por chave vence o FO de maior score (OPEN > não-CLOSED > resto);
        empate mantém o primeiro encontrado
    A ordem de saída segue a primeira aparição de cada chave.
    """
    melhor_por_chave: dict[str, PendingItem] = {}

    for fo in fulfillment_orders:
        fo_status = str(fo.status or "").strip().upper()
        for li in fo.line_items:
            if li.remaining_quantity <= 0:
                continue
            candidato = PendingItem(
                **li.model_dump(),
                fulfillment_order_id=fo.id,
                fulfillment_order_status=fo_status,
                dedup_key=li.line_item_id or li.id,
                fulfillable=fo_pode_ser_atendido(fo_status),
            )
            atual = melhor_por_chave.get(candidato.dedup_key)
            if atual is None:
                melhor_por_chave[candidato.dedup_key] = candidato
            elif _score_status(fo_status) > _score_status(atual.fulfillment_order_status):
                # dict mantém a posição da primeira ocorrência
                melhor_por_chave[candidato.dedup_key] = candidato

    return list(melhor_por_chave.values())


# -----------------------------------------------------------------------------
# Estado de seleção do operador
# -----------------------------------------------------------------------------
def selecao_padrao(itens: Iterable[PendingItem]) -> dict[str, ItemSelection]:
    return {
        it.id: ItemSelection(fulfillment_order_id=it.fulfillment_order_id, max_quantity=it.remaining_quantity)
        for it in itens
    }


def mesclar_selecao(
    itens: Iterable[PendingItem],
    anterior: Mapping[str, ItemSelection] | None = None,
) -> dict[str, ItemSelection]:
    """
    resolved = defaults sobrepostos pela seleção anterior do operador.
    Defaults cobrem todo item pendente; entradas anteriores de itens que não estão
    mais pendentes são descartadas. FO e máximo sempre vêm dos dados atuais.
    """
    resolved = selecao_padrao(itens)
    for item_id, sel in (anterior or {}).items():
        base = resolved.get(item_id)
        if base is None:
            continue
        resolved[item_id] = base.model_copy(
            update={
                "picked": sel.picked,
                "quantity": max(0, min(sel.quantity, base.max_quantity)),
                "tracking_number": sel.tracking_number.strip(),
                "carrier": sel.carrier.strip(),
            }
        )
    return resolved


def aplicar_rastreio_em_todos(
    itens: Iterable[PendingItem],
    selecao: Mapping[str, ItemSelection],
    tracking_number: str,
    carrier: str,
) -> dict[str, ItemSelection]:
    """'Aplicar a todos': copia tracking/carrier para todo item de FO atendível."""
    nova = dict(selecao)
    for it in itens:
        if not it.fulfillable or it.id not in nova:
            continue
        nova[it.id] = nova[it.id].model_copy(
            update={
                "tracking_number": tracking_number.strip(),
                "carrier": carrier.strip(),
                "fulfillment_order_id": it.fulfillment_order_id,
            }
        )
    return nova


def contar_selecionados(itens: Iterable[PendingItem], selecao: Mapping[str, ItemSelection]) -> int:
    total = 0
    for it in itens:
        sel = selecao.get(it.id)
        if it.fulfillable and sel is not None and sel.picked and sel.quantity > 0:
            total += 1
    return total
