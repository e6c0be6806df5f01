from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from app.common.errors import AppError, ValidationError
from app.common.logging_setup import get_logger
from app.schemas.shopify_fulfillment import (
    ActionErr,
    CreateGroupedOk,
    CreateGroupedRequest,
    CsvSyncOk,
    GroupResult,
    OrderDetailsOk,
    OrderDetailsRequest,
    OrdersListOk,
    PickedItem,
)
from app.services.fulfillment_agrupado import criar_fulfillments_agrupados, selecao_de_form
from app.services.fulfillment_csv import sincronizar_csv
from app.services.planilha_csv import decode_csv_bytes
from app.services.shopify_client import ClienteShopify
from app.services.shopify_fulfillment import (
    carregar_detalhes_pedido,
    get_shopify_client,
    listar_pedidos_pendentes,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/fulfillment", tags=["Controle de envios"])

_ERR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ActionErr},
    404: {"model": ActionErr},
    500: {"model": ActionErr},
    502: {"model": ActionErr},
}


def _erro(intent: str, e: AppError, results: list[GroupResult] | None = None) -> JSONResponse:
    body = ActionErr(intent=intent, error=e.message, details=e.details, results=results)
    return JSONResponse(status_code=e.status_code, content=body.model_dump(by_alias=True, exclude_none=True))


def _executar(intent: str, acao: Callable[[], Any]) -> Any:
    try:
        return acao()
    except AppError as e:
        logger.warning("action_failed", extra={"intent": intent, "error": e.message, "code": e.code})
        return _erro(intent, e)
    except Exception as e:
        logger.exception("action_crashed", extra={"intent": intent})
        body = ActionErr(intent=intent, error="Server error while processing request.", details=str(e))
        return JSONResponse(status_code=500, content=body.model_dump(by_alias=True, exclude_none=True))


def _criar_agrupado(
    client: ClienteShopify,
    order_id: str,
    itens: Iterable[PickedItem],
    notify_customer: bool,
    fail_fast: bool,
) -> CreateGroupedOk | JSONResponse:
    resultado = criar_fulfillments_agrupados(client, order_id, itens, notify_customer, fail_fast=fail_fast)
    if resultado.erro is not None:
        # fail-fast: devolve o que já foi criado junto com o erro
        return _erro("create_fulfillments_grouped", resultado.erro, results=resultado.results)
    return CreateGroupedOk(
        order_id=order_id,
        created=resultado.criados,
        failed=resultado.falhas,
        results=resultado.results,
    )


@router.get("/orders", response_model=OrdersListOk, responses=_ERR_RESPONSES)
def listar_pedidos(client: ClienteShopify = Depends(get_shopify_client)) -> OrdersListOk | JSONResponse:
    return _executar("orders_list", lambda: OrdersListOk(orders=listar_pedidos_pendentes(client)))


@router.post("/order-details", response_model=OrderDetailsOk, responses=_ERR_RESPONSES)
def detalhes_pedido(
    req: OrderDetailsRequest,
    client: ClienteShopify = Depends(get_shopify_client),
) -> OrderDetailsOk | JSONResponse:
    return _executar(
        "order_details",
        lambda: carregar_detalhes_pedido(client, req.order_id, req.selection, req.apply_to_all),
    )


@router.post("/create-grouped", response_model=CreateGroupedOk, responses=_ERR_RESPONSES)
def criar_agrupado(
    req: CreateGroupedRequest,
    client: ClienteShopify = Depends(get_shopify_client),
) -> CreateGroupedOk | JSONResponse:
    return _executar(
        "create_fulfillments_grouped",
        lambda: _criar_agrupado(client, req.order_id, req.items, req.notify_customer, req.fail_fast),
    )


@router.post(
    "/create-grouped/form",
    response_model=CreateGroupedOk,
    responses=_ERR_RESPONSES,
    summary="Criar fulfillments (formulário plano pick_/fo_/qty_/tn_/cr_)",
)
async def criar_agrupado_form(
    request: Request,
    client: ClienteShopify = Depends(get_shopify_client),
) -> CreateGroupedOk | JSONResponse:
    form = await request.form()
    campos = {k: str(v) for k, v in form.items() if isinstance(v, str)}

    def acao() -> CreateGroupedOk | JSONResponse:
        return _criar_agrupado(
            client,
            campos.get("order_id", ""),
            selecao_de_form(campos),
            campos.get("notify_customer", "") == "1",
            campos.get("fail_fast", "1") != "0",
        )

    return await run_in_threadpool(_executar, "create_fulfillments_grouped", acao)


@router.post(
    "/csv-sync",
    response_model=CsvSyncOk,
    response_model_exclude_none=True,
    responses=_ERR_RESPONSES,
    summary="Sync de fulfillments via CSV",
    description=(
        "Colunas: `order_name` (obrigatória), `tracking_number`, `carrier`, "
        "`notify_customer` (1/true/yes). Um fulfillment por fulfillment order de cada pedido."
    ),
)
async def sync_csv(
    csv_file: UploadFile | None = File(None, description="Arquivo CSV"),
    client: ClienteShopify = Depends(get_shopify_client),
) -> CsvSyncOk | JSONResponse:
    if csv_file is None:
        return _erro("csv_sync", ValidationError("Please upload a CSV file."))

    filename = csv_file.filename or "upload.csv"
    texto = decode_csv_bytes(await csv_file.read())
    return await run_in_threadpool(_executar, "csv_sync", lambda: sincronizar_csv(client, texto, filename))
