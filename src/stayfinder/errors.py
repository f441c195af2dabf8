"""Hierarquia de exceções do cliente StayFinder.

Toda falha de I/O chega ao chamador como uma destas exceções; mensagens
são seguras para exibir ao usuário final (sem tokens ou payloads).
"""

from __future__ import annotations

from typing import Any

GENERIC_ERROR_MESSAGE = "Something went wrong"


class StayfinderError(Exception):
    """Base de todos os erros do cliente."""


class ApiError(StayfinderError):
    """Falha de chamada ao backend, normalizada.

    Attributes:
        status_code: Status HTTP (None para falhas de transporte)
        errors: Erros por campo devolvidos pelo backend ([{field, message}])
        is_retryable: True para timeouts, falhas de conexão, 429 e 5xx
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        errors: list[dict[str, Any]] | None = None,
        is_retryable: bool = False,
    ) -> None:
        super().__init__(message or GENERIC_ERROR_MESSAGE)
        self.message = message or GENERIC_ERROR_MESSAGE
        self.status_code = status_code
        self.errors = errors or []
        self.is_retryable = is_retryable


class UnauthorizedError(ApiError):
    """Backend respondeu 401; sessão local já foi encerrada."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message, status_code=401, errors=errors, is_retryable=False)


class RequestCancelledError(StayfinderError):
    """Resposta chegou depois do escopo da requisição ser fechado."""


class PayloadValidationError(StayfinderError):
    """Payload rejeitado antes de qualquer chamada de rede."""

    def __init__(self, message: str, field_errors: list[dict[str, str]] | None = None) -> None:
        super().__init__(message)
        self.field_errors = field_errors or []


class StorageError(StayfinderError):
    """Falha no backend de persistência local (arquivo, Redis)."""


class GeolocationError(StayfinderError):
    """Posição do usuário indisponível (negada, timeout ou erro)."""
