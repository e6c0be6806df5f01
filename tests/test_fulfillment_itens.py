from __future__ import annotations

import pytest

from app.schemas.shopify_fulfillment import ItemSelection
from app.services.fulfillment_itens import (
    aplicar_rastreio_em_todos,
    contar_selecionados,
    fo_pode_ser_atendido,
    mesclar_selecao,
    resolver_itens_pendentes,
)


def test_itens_sem_remaining_nunca_aparecem(make_fo, make_li) -> None:
    fos = [
        make_fo("fo1", "OPEN", make_li("a", 0, "L1"), make_li("b", 2, "L2")),
        make_fo("fo2", "CLOSED", make_li("c", 0, "L3")),
    ]

    itens = resolver_itens_pendentes(fos)

    assert [it.id for it in itens] == ["b"]


def test_open_vence_closed_para_o_mesmo_line_item(make_fo, make_li) -> None:
    fos = [
        make_fo("fo-closed", "CLOSED", make_li("x1", 1, "L1")),
        make_fo("fo-open", "OPEN", make_li("x2", 1, "L1")),
    ]

    (item,) = resolver_itens_pendentes(fos)

    assert item.fulfillment_order_id == "fo-open"
    assert item.id == "x2"
    assert item.dedup_key == "L1"
    assert item.fulfillable is True


def test_nao_closed_vence_status_vazio_e_empate_mantem_primeiro(make_fo, make_li) -> None:
    fos = [
        make_fo("fo-vazio", None, make_li("a1", 1, "L1")),
        make_fo("fo-sched", "SCHEDULED", make_li("a2", 1, "L1")),
        make_fo("fo-prog", "in_progress", make_li("a3", 1, "L1")),
    ]

    (item,) = resolver_itens_pendentes(fos)

    assert item.fulfillment_order_id == "fo-sched"
    assert item.fulfillment_order_status == "SCHEDULED"


def test_sem_line_item_id_usa_id_do_item_no_fo(make_fo, make_li) -> None:
    fos = [make_fo("fo1", "OPEN", make_li("a", 1)), make_fo("fo2", "OPEN", make_li("b", 1))]

    itens = resolver_itens_pendentes(fos)

    assert [(it.id, it.dedup_key) for it in itens] == [("a", "a"), ("b", "b")]


def test_ordem_de_saida_segue_primeira_aparicao(make_fo, make_li) -> None:
    fos = [
        make_fo("fo1", "ON_HOLD", make_li("a1", 1, "L1"), make_li("b1", 1, "L2")),
        make_fo("fo2", "OPEN", make_li("a2", 1, "L1")),
    ]

    itens = resolver_itens_pendentes(fos)

    assert [it.dedup_key for it in itens] == ["L1", "L2"]
    assert [it.fulfillment_order_id for it in itens] == ["fo2", "fo1"]
    assert itens[1].fulfillable is False


@pytest.mark.parametrize(
    ("status", "esperado"),
    [
        ("OPEN", True),
        ("IN_PROGRESS", True),
        ("SCHEDULED", True),
        ("", True),
        (None, True),
        ("CLOSED", False),
        ("ON_HOLD", False),
        ("on_hold", False),
    ],
)
def test_fo_pode_ser_atendido(status: str | None, esperado: bool) -> None:
    assert fo_pode_ser_atendido(status) is esperado


def test_mesclar_selecao_defaults_sobrepostos_pela_anterior(make_fo, make_li) -> None:
    itens = resolver_itens_pendentes([make_fo("fo1", "OPEN", make_li("a", 3, "L1"), make_li("b", 2, "L2"))])
    anterior = {
        "a": ItemSelection(picked=True, quantity=10, tracking_number=" 1Z1 ", carrier="UPS", fulfillment_order_id="x"),
        "sumiu": ItemSelection(picked=True, quantity=1),
    }

    selecao = mesclar_selecao(itens, anterior)

    assert set(selecao) == {"a", "b"}
    assert selecao["a"].picked is True
    assert selecao["a"].quantity == 3  # limitado ao remaining
    assert selecao["a"].tracking_number == "1Z1"
    assert selecao["a"].fulfillment_order_id == "fo1"
    assert selecao["b"].model_dump() == ItemSelection(fulfillment_order_id="fo1", max_quantity=2).model_dump()


def test_aplicar_rastreio_ignora_fo_nao_atendivel(make_fo, make_li) -> None:
    itens = resolver_itens_pendentes(
        [make_fo("fo1", "OPEN", make_li("a", 1, "L1")), make_fo("fo2", "ON_HOLD", make_li("b", 1, "L2"))]
    )
    selecao = mesclar_selecao(itens)

    nova = aplicar_rastreio_em_todos(itens, selecao, "1Z9", "DHL")

    assert (nova["a"].tracking_number, nova["a"].carrier) == ("1Z9", "DHL")
    assert (nova["b"].tracking_number, nova["b"].carrier) == ("", "")


def test_contar_selecionados(make_fo, make_li) -> None:
    itens = resolver_itens_pendentes(
        [
            make_fo("fo1", "OPEN", make_li("a", 2, "L1"), make_li("b", 2, "L2")),
            make_fo("fo2", "CLOSED", make_li("c", 2, "L3")),
        ]
    )
    anterior = {
        "a": ItemSelection(picked=True, quantity=1),
        "b": ItemSelection(picked=True, quantity=0),
        "c": ItemSelection(picked=True, quantity=2),
    }

    assert contar_selecionados(itens, mesclar_selecao(itens, anterior)) == 1
