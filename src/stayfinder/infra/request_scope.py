"""Escopo de cancelamento de requisições.

Uma página/tela abre um RequestScope; ao fechar, requisições em andamento
são canceladas e respostas tardias são descartadas com
RequestCancelledError, em vez de aplicadas a um consumidor que já saiu.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import Any, TypeVar

from stayfinder.errors import RequestCancelledError
from stayfinder.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

T = TypeVar("T")


class RequestScope:
    """Agrupa tasks de requisição com ciclo de vida comum.

    Uso típico:
        async with RequestScope("booking-page") as scope:
            booking = await client.scoped(scope).bookings.get_booking(booking_id)
    """

    def __init__(self, name: str = "scope") -> None:
        self.name = name
        self._closed = False
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def ensure_open(self) -> None:
        if self._closed:
            raise RequestCancelledError(f"Request scope '{self.name}' is closed")

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Executa `awaitable` dentro do escopo.

        Raises:
            RequestCancelledError: se o escopo fechar antes da resposta
        """
        self.ensure_open()
        task: asyncio.Task[T] = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        try:
            result = await task
        except asyncio.CancelledError:
            if self._closed:
                raise RequestCancelledError(
                    f"Request scope '{self.name}' closed before the response arrived"
                ) from None
            raise
        finally:
            self._tasks.discard(task)

        if self._closed:
            logger.debug("late_response_discarded", extra={"scope": self.name})
            raise RequestCancelledError(
                f"Request scope '{self.name}' closed before the response arrived"
            )
        return result

    def close(self) -> int:
        """Fecha o escopo e cancela tasks pendentes. Retorna quantas."""
        self._closed = True
        cancelled = 0
        for task in list(self._tasks):
            if not task.done():
                task.cancel()
                cancelled += 1
        if cancelled:
            logger.debug(
                "request_scope_closed",
                extra={"scope": self.name, "cancelled": cancelled},
            )
        return cancelled

    async def __aenter__(self) -> RequestScope:
        return self

    async def __aexit__(self, *args: Any) -> None:
        self.close()
