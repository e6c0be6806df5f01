from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from app.common.errors import AppError, ExternalError
from app.common.logging_setup import get_logger
from app.schemas.shopify_fulfillment import (
    CsvRowError,
    CsvSyncOk,
    FulfillmentOrder,
    FulfillmentOrderLineItemInput,
    FulfillmentRequest,
    LineItemsByFulfillmentOrder,
    TrackingInfo,
)
from app.services.planilha_csv import (
    COLUNAS_CARRIER,
    COLUNAS_NOTIFY,
    COLUNAS_ORDER_NAME,
    COLUNAS_TRACKING,
    parse_csv_text,
    pick_coluna,
    registro_csv,
)
from app.services.shopify_client import ClienteShopify

logger = get_logger(__name__)

MAX_ERROS_AMOSTRA = 20
_VALORES_TRUTHY = frozenset({"1", "true", "yes"})
_SO_DIGITOS = re.compile(r"^\d+$")


def normalizar_order_name(raw: str | None) -> str:
    """'1001' -> '#1001'; '#1001' fica igual; outros valores só levam strip()."""
    s = str(raw or "").strip()
    if not s:
        return ""
    if _SO_DIGITOS.match(s):
        return f"#{s}"
    return s


def valor_truthy(raw: str | None) -> bool:
    return str(raw or "").strip().lower() in _VALORES_TRUTHY


def _mensagem(e: Exception) -> str:
    return str(e) or type(e).__name__


@dataclass(frozen=True)
class LinhaCsv:
    numero: int  # 1ª linha de dados = 2 (cabeçalho é a linha 1)
    order_name: str
    tracking_number: str
    carrier: str
    notify_customer: bool

    @property
    def tracking_info(self) -> TrackingInfo | None:
        if not self.tracking_number:
            return None
        return TrackingInfo(number=self.tracking_number, company=self.carrier or None)


def ler_linha(headers: Sequence[str], row: Sequence[str], numero: int) -> LinhaCsv:
    reg = registro_csv(headers, row)
    return LinhaCsv(
        numero=numero,
        order_name=normalizar_order_name(pick_coluna(reg, COLUNAS_ORDER_NAME)),
        tracking_number=pick_coluna(reg, COLUNAS_TRACKING).strip(),
        carrier=pick_coluna(reg, COLUNAS_CARRIER).strip(),
        notify_customer=valor_truthy(pick_coluna(reg, COLUNAS_NOTIFY)),
    )


@dataclass
class AmostraErros:
    """Guarda no máximo `limite` erros; o contador total segue crescendo."""

    limite: int = MAX_ERROS_AMOSTRA
    itens: list[CsvRowError] = field(default_factory=list)
    total: int = 0

    def registrar(self, row: int, error: str, order_name: str | None = None) -> None:
        self.total += 1
        logger.warning("csv_sync_row_error", extra={"row": row, "order_name": order_name, "error": error})
        if len(self.itens) < self.limite:
            self.itens.append(CsvRowError(row=row, order_name=order_name or None, error=error))


def requisicao_por_fo(fo: FulfillmentOrder, linha: LinhaCsv) -> FulfillmentRequest | None:
    """Um fulfillment cobrindo todo o remaining do FO; None se não há nada pendente."""
    pendentes = [
        FulfillmentOrderLineItemInput(id=li.id, quantity=li.remaining_quantity)
        for li in fo.line_items
        if li.remaining_quantity > 0
    ]
    if not pendentes:
        return None
    return FulfillmentRequest(
        notify_customer=linha.notify_customer,
        tracking_info=linha.tracking_info,
        line_items_by_fulfillment_order=[
            LineItemsByFulfillmentOrder(fulfillment_order_id=fo.id, fulfillment_order_line_items=pendentes)
        ],
    )


def sincronizar_csv(client: ClienteShopify, texto: str, filename: str = "upload.csv") -> CsvSyncOk:
    """
    Sync em lote: para cada linha do CSV localiza o pedido, busca os FOs e cria
    um fulfillment por FO com remaining > 0.
    Falhas ficam isoladas: erro de uma linha (ou de um FO) não interrompe as demais.
    Linha "processada" = passou por busca do pedido e dos FOs sem erro.
    """
    tabela = parse_csv_text(texto)

    erros = AmostraErros()
    processados = 0
    criados = 0

    for i, row in enumerate(tabela.rows):
        linha = ler_linha(tabela.headers, row, numero=i + 2)

        if not linha.order_name:
            erros.registrar(linha.numero, "Missing order_name")
            continue

        try:
            pedidos = client.find_orders(f"name:{linha.order_name}")
            if not pedidos:
                erros.registrar(linha.numero, "Order not found", linha.order_name)
                continue
            fos = client.fetch_fulfillment_orders(pedidos[0].id)
        except AppError as e:
            erros.registrar(linha.numero, str(e), linha.order_name)
            continue
        except Exception as e:
            logger.exception("csv_sync_row_crashed", extra={"row": linha.numero, "order_name": linha.order_name})
            erros.registrar(linha.numero, _mensagem(e), linha.order_name)
            continue

        if not fos:
            erros.registrar(linha.numero, "No fulfillmentOrders (not shippable / no location)", linha.order_name)
            continue

        for fo in fos:
            req = requisicao_por_fo(fo, linha)
            if req is None:
                continue
            try:
                criado = client.create_fulfillment(req)
            except ExternalError as e:
                erros.registrar(linha.numero, str(e), linha.order_name)
                continue
            except Exception as e:
                logger.exception(
                    "csv_sync_fulfillment_crashed",
                    extra={"row": linha.numero, "order_name": linha.order_name, "fulfillment_order_id": fo.id},
                )
                erros.registrar(linha.numero, _mensagem(e), linha.order_name)
                continue
            criados += 1
            logger.info(
                "csv_sync_fulfillment_created",
                extra={"row": linha.numero, "order_name": linha.order_name, "fulfillment_id": criado.id},
            )

        processados += 1

    total = len(tabela.rows)
    logger.info(
        "csv_sync_done",
        extra={
            "csv_filename": filename,
            "total_rows": total,
            "processed": processados,
            "created": criados,
            "errors": erros.total,
        },
    )
    return CsvSyncOk(
        filename=filename,
        total_rows=total,
        processed=processados,
        created_fulfillments=criados,
        failed=total - processados,
        errors_sample=erros.itens,
    )
