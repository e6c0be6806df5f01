# app/common/errors.py
from __future__ import annotations

from typing import Any


class AppError(Exception):
    """
    Erro base da aplicação.
    - message: texto curto e legível (vai para o campo `error` da resposta)
    - details: diagnóstico bruto opcional (ex.: lista de erros da Shopify serializada)
    - code: identificador estável para logs
    """

    status_code: int = 500
    default_code: str = "APP_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: str | None = None,
        cause: BaseException | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details
        self.cause = cause
        self.data = data or {}

    def __str__(self) -> str:
        return self.message


class ValidationError(AppError):
    """Entrada obrigatória ausente ou inválida. Nenhuma chamada remota é feita."""

    status_code = 400
    default_code = "VALIDATION_ERROR"


class EmptyInputError(AppError):
    """CSV vazio ou sem linha de cabeçalho."""

    status_code = 400
    default_code = "EMPTY_INPUT"


class NotFoundError(AppError):
    status_code = 404
    default_code = "NOT_FOUND"


class ExternalError(AppError):
    """Falha vinda da API remota (Shopify)."""

    status_code = 502
    default_code = "EXTERNAL_ERROR"


class UpstreamTransportError(ExternalError):
    """A chamada em si falhou (rede, HTTP != 2xx, `errors` de topo do GraphQL)."""

    default_code = "UPSTREAM_TRANSPORT"


class UpstreamValidationError(ExternalError):
    """A Shopify executou a mutation mas devolveu userErrors."""

    status_code = 400
    default_code = "UPSTREAM_VALIDATION"
