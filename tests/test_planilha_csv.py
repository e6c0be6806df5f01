from __future__ import annotations

import pytest

from app.common.errors import EmptyInputError
from app.services.planilha_csv import (
    COLUNAS_CARRIER,
    COLUNAS_NOTIFY,
    COLUNAS_ORDER_NAME,
    COLUNAS_TRACKING,
    decode_csv_bytes,
    parse_csv_text,
    pick_coluna,
    registro_csv,
)


def test_parse_basico_com_crlf_linhas_vazias_e_trim() -> None:
    texto = "order_name , tracking_number\r\n\r\n 1001 ,1Z1 \r\n   \r\n#1002,\r"

    tabela = parse_csv_text(texto)

    assert tabela.headers == ["order_name", "tracking_number"]
    assert tabela.rows == [["1001", "1Z1"], ["#1002", ""]]


def test_parse_campo_entre_aspas_com_separador_e_aspas_duplicadas() -> None:
    texto = 'order_name,carrier\n1001,"UPS, ""Ground"""\n'

    tabela = parse_csv_text(texto)

    assert tabela.rows == [["1001", 'UPS, "Ground"']]


def test_linha_curta_completa_com_vazio() -> None:
    tabela = parse_csv_text("order_name,tracking_number,carrier\n1001\n")

    reg = registro_csv(tabela.headers, tabela.rows[0])

    assert reg == {"order_name": "1001", "tracking_number": "", "carrier": ""}


def test_so_cabecalho_nao_tem_linhas() -> None:
    tabela = parse_csv_text("order_name,tracking_number\n")

    assert tabela.headers == ["order_name", "tracking_number"]
    assert tabela.rows == []


@pytest.mark.parametrize("texto", ["", "   ", "\r\n\r\n", " \n \n"])
def test_csv_vazio_sinaliza_erro_proprio(texto: str) -> None:
    with pytest.raises(EmptyInputError) as exc:
        parse_csv_text(texto)

    assert "no header row" in str(exc.value)


def test_registro_posicional_e_cabecalho_vazio() -> None:
    reg = registro_csv(["order_name", "", "carrier"], ["1001", "x"])

    assert reg == {"order_name": "1001", "col_2": "x", "carrier": ""}


def test_pick_coluna_case_insensitive_por_alias() -> None:
    reg = {"Order": "1001", "TN": "1Z1", "Shipping_Company": "UPS", "NOTIFY": "yes"}

    assert pick_coluna(reg, COLUNAS_ORDER_NAME) == "1001"
    assert pick_coluna(reg, COLUNAS_TRACKING) == "1Z1"
    assert pick_coluna(reg, COLUNAS_CARRIER) == "UPS"
    assert pick_coluna(reg, COLUNAS_NOTIFY) == "yes"


def test_pick_coluna_respeita_ordem_dos_aliases() -> None:
    reg = {"name": "cliente", "ORDER_NAME": "1001"}

    assert pick_coluna(reg, COLUNAS_ORDER_NAME) == "1001"
    assert pick_coluna({"other": "x"}, COLUNAS_ORDER_NAME) == ""


def test_decode_remove_bom() -> None:
    texto = decode_csv_bytes("﻿order_name\n1001\n".encode())

    assert parse_csv_text(texto).headers == ["order_name"]
