"""Medição de duração das buscas remotas do cliente."""

from __future__ import annotations

import contextlib
import time
from collections.abc import Generator
from typing import Any

from stayfinder.observability.logging import get_logger

logger = get_logger(__name__)


@contextlib.contextmanager
def timed(operation: str, **fields: Any) -> Generator[None, None, None]:
    """Loga `operation_latency` ao sair do bloco, com ou sem erro.

    Exemplo:
        with timed("query_fetch", resource="hostBookings"):
            await fetcher()

    Campos: operation, duration_ms, outcome ("ok" | "error") e os extras
    recebidos (nunca ids de usuário ou tokens).
    """
    started = time.perf_counter()
    outcome = "error"
    try:
        yield
        outcome = "ok"
    finally:
        logger.info(
            "operation_latency",
            extra={
                **fields,
                "operation": operation,
                "outcome": outcome,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
