"""Correlation id das chamadas ao backend.

Cada requisição de saída roda sob um correlation_id (ContextVar), enviado
no header X-Correlation-ID e injetado nos logs pelo CorrelationIdFilter.
"""

from __future__ import annotations

import contextlib
import uuid
from collections.abc import Generator
from contextvars import ContextVar

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """Retorna o correlation_id corrente (ou vazio)."""

    return _correlation_id.get()


def new_correlation_id() -> str:
    return str(uuid.uuid4())


@contextlib.contextmanager
def correlation_scope(correlation_id: str | None = None) -> Generator[str, None, None]:
    """Propaga um correlation_id existente ou gera um novo para o bloco."""
    current = correlation_id or get_correlation_id() or new_correlation_id()
    token = _correlation_id.set(current)
    try:
        yield current
    finally:
        _correlation_id.reset(token)
