from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from app.common.errors import AppError, ExternalError, ValidationError
from app.common.logging_setup import get_logger
from app.schemas.shopify_fulfillment import (
    FulfillmentOrder,
    FulfillmentOrderLineItemInput,
    FulfillmentRequest,
    GroupResult,
    LineItemsByFulfillmentOrder,
    PickedItem,
    TrackingInfo,
)
from app.services.fulfillment_itens import fo_pode_ser_atendido
from app.services.shopify_client import ClienteShopify

logger = get_logger(__name__)

SENTINELA_SEM_RASTREIO = "NO_TRACK"
_SEP_CHAVE = "|||"


@dataclass(frozen=True)
class ChaveGrupo:
    tracking_number: str = ""
    carrier: str = ""

    @property
    def sem_rastreio(self) -> bool:
        return not self.tracking_number

    @property
    def rotulo(self) -> str:
        # rótulo real sempre contém o separador, então nunca colide com a sentinela
        if self.sem_rastreio:
            return SENTINELA_SEM_RASTREIO
        return f"{self.tracking_number}{_SEP_CHAVE}{self.carrier}"


SEM_RASTREIO = ChaveGrupo()


def chave_grupo(item: PickedItem) -> ChaveGrupo:
    """Carrier sozinho (sem tracking) não forma grupo próprio."""
    tn = item.tracking_number.strip()
    if not tn:
        return SEM_RASTREIO
    return ChaveGrupo(tracking_number=tn, carrier=item.carrier.strip())


@dataclass
class GrupoFulfillment:
    chave: ChaveGrupo
    itens_por_fo: dict[str, list[FulfillmentOrderLineItemInput]] = field(default_factory=dict)


@dataclass
class ResultadoAgrupado:
    results: list[GroupResult] = field(default_factory=list)
    erro: AppError | None = None  # só preenchido no modo fail-fast

    @property
    def criados(self) -> int:
        return sum(1 for r in self.results if r.error is None)

    @property
    def falhas(self) -> int:
        return sum(1 for r in self.results if r.error is not None)


def agrupar_itens(itens: Iterable[PickedItem]) -> list[GrupoFulfillment]:
    """
    Particiona por chave de rastreio e, dentro de cada grupo, por fulfillmentOrderId
    (a Shopify exige os itens listados por FO dentro de um mesmo fulfillment).
    Ordem dos grupos e dos FOs = ordem da primeira aparição.
    """
    grupos: dict[ChaveGrupo, GrupoFulfillment] = {}
    for it in itens:
        chave = chave_grupo(it)
        grupo = grupos.setdefault(chave, GrupoFulfillment(chave=chave))
        grupo.itens_por_fo.setdefault(it.fulfillment_order_id, []).append(
            FulfillmentOrderLineItemInput(id=it.fo_line_item_id, quantity=it.quantity)
        )
    return list(grupos.values())


def montar_requisicao(grupo: GrupoFulfillment, notify_customer: bool) -> FulfillmentRequest:
    tracking_info = None
    if not grupo.chave.sem_rastreio:
        tracking_info = TrackingInfo(number=grupo.chave.tracking_number, company=grupo.chave.carrier or None)

    return FulfillmentRequest(
        notify_customer=bool(notify_customer),
        tracking_info=tracking_info,
        line_items_by_fulfillment_order=[
            LineItemsByFulfillmentOrder(fulfillment_order_id=fo_id, fulfillment_order_line_items=linhas)
            for fo_id, linhas in grupo.itens_por_fo.items()
        ],
    )


# -----------------------------------------------------------------------------
# Validação da seleção
# -----------------------------------------------------------------------------
def filtrar_selecionados(itens: Iterable[PickedItem]) -> list[PickedItem]:
    """Validação local (antes de qualquer chamada remota)."""
    itens = list(itens)
    if not itens:
        raise ValidationError("Please pick at least 1 item.")
    positivos = [it for it in itens if it.quantity > 0]
    if not positivos:
        raise ValidationError("Quantity must be > 0 for picked items.")
    return positivos


def validar_contra_fos(itens: Iterable[PickedItem], fulfillment_orders: Iterable[FulfillmentOrder]) -> list[PickedItem]:
    """
    Revalida a seleção contra os FOs recém-buscados:
      - item precisa existir no pedido (FO vazio no input é resolvido aqui)
      - FO precisa aceitar fulfillment
      - soma das quantidades por item <= remainingQuantity
    """
    indice = {li.id: (fo, li) for fo in fulfillment_orders for li in fo.line_items}
    usados: dict[str, int] = {}
    validos: list[PickedItem] = []

    for it in itens:
        achado = indice.get(it.fo_line_item_id)
        if achado is None:
            raise ValidationError(
                f"Item {it.fo_line_item_id} is not an open line item of this order.",
                data={"fo_line_item_id": it.fo_line_item_id},
            )
        fo, li = achado

        if it.fulfillment_order_id and it.fulfillment_order_id != fo.id:
            raise ValidationError(
                f"Item {it.fo_line_item_id} does not belong to fulfillment order {it.fulfillment_order_id}."
            )
        if not fo_pode_ser_atendido(fo.status):
            raise ValidationError(f"Fulfillment order {fo.id} is {fo.status} and cannot be fulfilled.")

        usados[li.id] = usados.get(li.id, 0) + it.quantity
        if usados[li.id] > li.remaining_quantity:
            raise ValidationError(
                f"Quantity for item {li.id} exceeds remaining quantity ({li.remaining_quantity}).",
                data={"fo_line_item_id": li.id, "remaining": li.remaining_quantity},
            )

        validos.append(it.model_copy(update={"fulfillment_order_id": fo.id}))

    return validos


def _int_ou_zero(raw: str) -> int:
    try:
        return max(0, int(float(raw)))
    except (TypeError, ValueError):
        return 0


def selecao_de_form(campos: Mapping[str, str]) -> list[PickedItem]:
    """
    Decodifica o formato antigo de formulário plano:
    pick_<id>=1, fo_<id>, qty_<id>, tn_<id>, cr_<id>.
    """
    itens: list[PickedItem] = []
    for k, v in campos.items():
        if not k.startswith("pick_") or str(v or "") != "1":
            continue
        item_id = k[len("pick_") :]
        if not item_id:
            continue
        itens.append(
            PickedItem(
                fo_line_item_id=item_id,
                fulfillment_order_id=campos.get(f"fo_{item_id}", ""),
                quantity=_int_ou_zero(campos.get(f"qty_{item_id}", "0")),
                tracking_number=campos.get(f"tn_{item_id}", ""),
                carrier=campos.get(f"cr_{item_id}", ""),
            )
        )
    return itens


# -----------------------------------------------------------------------------
# Execução
# -----------------------------------------------------------------------------
def executar_grupos(
    client: ClienteShopify,
    grupos: Iterable[GrupoFulfillment],
    notify_customer: bool,
    *,
    fail_fast: bool = True,
) -> ResultadoAgrupado:
    """
    Um fulfillmentCreateV2 por grupo, em sequência.
    fail_fast=True: a primeira falha interrompe os grupos restantes; os já criados
    não são desfeitos. fail_fast=False: tenta todos e registra o erro por grupo.
    """
    resultado = ResultadoAgrupado()

    for grupo in grupos:
        rotulo = grupo.chave.rotulo
        try:
            criado = client.create_fulfillment(montar_requisicao(grupo, notify_customer))
        except ExternalError as e:
            logger.warning(
                "fulfillment_group_failed",
                extra={"group_key": rotulo, "error": str(e), "code": e.code, "fail_fast": fail_fast},
            )
            erro: AppError = e
        except Exception as e:
            logger.exception("fulfillment_group_crashed", extra={"group_key": rotulo, "fail_fast": fail_fast})
            erro = AppError(str(e) or type(e).__name__, code="UNEXPECTED_ERROR", cause=e)
        else:
            logger.info(
                "fulfillment_group_created",
                extra={"group_key": rotulo, "fulfillment_id": criado.id, "status": criado.status},
            )
            resultado.results.append(GroupResult(fulfillment_id=criado.id, status=criado.status, key=rotulo))
            continue

        resultado.results.append(GroupResult(key=rotulo, error=str(erro)))
        if fail_fast:
            resultado.erro = erro
            return resultado

    return resultado


def criar_fulfillments_agrupados(
    client: ClienteShopify,
    order_id: str,
    itens: Iterable[PickedItem],
    notify_customer: bool = False,
    *,
    fail_fast: bool = True,
) -> ResultadoAgrupado:
    """Fluxo manual: valida -> busca FOs atuais -> revalida -> agrupa -> cria."""
    if not str(order_id or "").strip():
        raise ValidationError("Missing order_id")

    selecionados = filtrar_selecionados(itens)
    fos = client.fetch_fulfillment_orders(order_id)
    validos = validar_contra_fos(selecionados, fos)
    grupos = agrupar_itens(validos)

    logger.info(
        "fulfillment_groups_built",
        extra={"order_id": order_id, "groups": len(grupos), "items": len(validos), "fail_fast": fail_fast},
    )
    return executar_grupos(client, grupos, notify_customer, fail_fast=fail_fast)
