from __future__ import annotations

from typing import Any

import pandas as pd

_ORDER_GID_PREFIX = "gid://shopify/Order/"


def limpar(v: Any) -> str:
    return "" if v is None or pd.isna(v) else str(v).strip()


def normalizar_order_id(valor: str | int) -> str:
    if isinstance(valor, int):
        return str(valor)
    s = str(valor).strip()
    return s.split("/")[-1] if "gid://" in s and "/" in s else s


def order_gid(valor: str | int) -> str:
    """Aceita GID ('gid://shopify/Order/123') ou id numérico e devolve sempre o GID."""
    s = str(valor).strip()
    if s.startswith("gid://"):
        return s
    return f"{_ORDER_GID_PREFIX}{normalizar_order_id(s)}" if s else ""
