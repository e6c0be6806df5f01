from __future__ import annotations

import io
import warnings
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

import pandas as pd

from app.common.errors import EmptyInputError
from app.utils.utils_helpers import limpar

# aliases aceitos por coluna lógica (comparação case-insensitive)
COLUNAS_ORDER_NAME = ("order_name", "order", "name")
COLUNAS_TRACKING = ("tracking_number", "tracking", "tn")
COLUNAS_CARRIER = ("carrier", "company", "shipping_company")
COLUNAS_NOTIFY = ("notify_customer", "notify")

_MSG_CSV_VAZIO = "CSV seems empty or invalid (no header row found)."


@dataclass(frozen=True)
class TabelaCsv:
    headers: list[str]
    rows: list[list[str]]


def decode_csv_bytes(data: bytes) -> str:
    # utf-8-sig descarta o BOM que o Excel costuma gravar
    return data.decode("utf-8-sig", errors="replace")


def _linhas_nao_vazias(texto: str) -> list[str]:
    texto = texto.replace("\r\n", "\n").replace("\r", "\n")
    return [linha for linha in texto.split("\n") if linha.strip()]


def parse_csv_text(texto: str, sep: str = ",") -> TabelaCsv:
    """
    Converte o texto do CSV em (headers, rows).
    - Quebras CRLF/CR viram LF e linhas em branco são descartadas.
    - Campos entre aspas podem conter o separador; "" dentro de aspas vira uma aspa.
    - Primeira linha não vazia = cabeçalho. Todos os campos saem com strip().
    Lança EmptyInputError antes de processar qualquer linha se não houver cabeçalho.
    """
    linhas = _linhas_nao_vazias(texto or "")
    if not linhas:
        raise EmptyInputError(_MSG_CSV_VAZIO)

    try:
        with warnings.catch_warnings():
            # linhas maiores que o cabeçalho: colunas extras são descartadas
            warnings.simplefilter("ignore", pd.errors.ParserWarning)
            df = pd.read_csv(
                io.StringIO("\n".join(linhas)),
                sep=sep,
                header=None,
                dtype=str,
                na_filter=False,
                quotechar='"',
                doublequote=True,
                skipinitialspace=True,
                index_col=False,
                engine="python",
            )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise EmptyInputError(_MSG_CSV_VAZIO, cause=e, details=str(e)) from e

    matriz = [[limpar(v) for v in linha] for linha in df.fillna("").itertuples(index=False, name=None)]
    if not matriz:
        raise EmptyInputError(_MSG_CSV_VAZIO)

    return TabelaCsv(headers=matriz[0], rows=matriz[1:])


def registro_csv(headers: Sequence[str], row: Sequence[str]) -> dict[str, str]:
    """Mapeia cabeçalho -> valor por posição; campos ausentes viram ''."""
    registro: dict[str, str] = {}
    for c, h in enumerate(headers):
        registro[h or f"col_{c + 1}"] = str(row[c]) if c < len(row) else ""
    return registro


def pick_coluna(registro: Mapping[str, str], aliases: Sequence[str]) -> str:
    mapa = {k.lower(): k for k in registro}
    for nome in aliases:
        hit = mapa.get(nome.lower())
        if hit is not None:
            return registro[hit]
    return ""
