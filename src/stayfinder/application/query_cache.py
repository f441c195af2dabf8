"""Cache de dados remotos por chave de consulta.

Regras:
- chave = tupla (recurso, *parâmetros); parâmetros distintos → entradas distintas
- entrada fresca (idade < stale_seconds) é servida sem rede
- entrada velha é servida na hora e revalidada UMA vez em background
- ausente/invalidada → busca agora; chamadas concorrentes compartilham a busca
- falha é repetida `retry` vezes antes de propagar
- invalidate(prefixo) descarta entradas e desassocia buscas em andamento,
  cujo resultado tardio não é gravado
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

from stayfinder.errors import RequestCancelledError, UnauthorizedError
from stayfinder.observability.logging import get_logger
from stayfinder.observability.timing import timed

logger: logging.Logger = get_logger(__name__)

T = TypeVar("T")
QueryKey = tuple[Any, ...]
Fetcher = Callable[[], Awaitable[Any]]

DEFAULT_STALE_SECONDS = 300.0
DEFAULT_RETRY = 1

# Falhas que uma nova tentativa não resolve
_NON_RETRYABLE = (UnauthorizedError, RequestCancelledError)


def freeze_key(key: Any) -> Any:
    """Forma canônica e hashable de uma chave (dicts viram itens ordenados)."""
    if isinstance(key, Mapping):
        items = sorted(
            ((str(k), freeze_key(v)) for k, v in key.items() if v is not None),
            key=lambda item: item[0],
        )
        return ("__map__", *items)
    if isinstance(key, (list, tuple)):
        return tuple(freeze_key(item) for item in key)
    if isinstance(key, (set, frozenset)):
        return ("__set__", *sorted((freeze_key(item) for item in key), key=repr))
    return key


def _matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[: len(prefix)] == prefix


@dataclass
class CacheEntry:
    value: Any
    updated_at: float


class QueryCache:
    """Cache assíncrono com de-duplicação de buscas em andamento."""

    def __init__(
        self,
        stale_seconds: float = DEFAULT_STALE_SECONDS,
        retry: int = DEFAULT_RETRY,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._stale_seconds = stale_seconds
        self._retry = retry
        self._clock = clock or time.monotonic
        self._entries: dict[QueryKey, CacheEntry] = {}
        self._inflight: dict[QueryKey, asyncio.Future[Any]] = {}
        self._background: set[asyncio.Future[Any]] = set()

    # Leitura

    async def fetch(
        self,
        key: QueryKey,
        fetcher: Fetcher,
        *,
        stale_seconds: float | None = None,
    ) -> Any:
        """Retorna o valor da chave, buscando quando necessário."""
        frozen = self._freeze(key)
        entry = self._entries.get(frozen)

        if entry is not None:
            if not self._is_stale(entry, stale_seconds):
                logger.debug("query_cache_hit", extra={"resource": frozen[0]})
                return entry.value
            self._revalidate(frozen, fetcher)
            return entry.value

        return await self._fetch_shared(frozen, fetcher)

    def get(self, key: QueryKey) -> Any:
        entry = self._entries.get(self._freeze(key))
        return entry.value if entry is not None else None

    def is_stale(self, key: QueryKey) -> bool:
        """True se ausente ou mais velha que a janela de frescor."""
        entry = self._entries.get(self._freeze(key))
        return entry is None or self._is_stale(entry, None)

    # Escrita

    def set(self, key: QueryKey, value: Any) -> None:
        self._entries[self._freeze(key)] = CacheEntry(value, self._clock())

    def invalidate(self, *prefix: Any) -> int:
        """Descarta entradas cuja chave começa com `prefix`.

        Buscas em andamento para essas chaves são desassociadas: leituras
        seguintes buscam de novo e o resultado antigo não é gravado.

        Returns:
            Quantidade de chaves afetadas
        """
        frozen_prefix = self._freeze(prefix)
        affected = {
            key for key in (*self._entries, *self._inflight) if _matches(key, frozen_prefix)
        }
        for key in affected:
            self._entries.pop(key, None)
            self._inflight.pop(key, None)

        logger.debug(
            "query_cache_invalidated",
            extra={"prefix": str(frozen_prefix[:1]), "keys": len(affected)},
        )
        return len(affected)

    def clear(self) -> None:
        """Descarta tudo; buscas em andamento deixam de gravar."""
        self._entries.clear()
        self._inflight.clear()

    async def drain(self) -> None:
        """Aguarda revalidações em background (útil no shutdown e em testes)."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def __len__(self) -> int:
        return len(self._entries)

    # Internos

    def _freeze(self, key: Any) -> QueryKey:
        frozen = freeze_key(key if isinstance(key, tuple) else (key,))
        if not frozen:
            raise ValueError("Query key cannot be empty")
        return frozen

    def _is_stale(self, entry: CacheEntry, stale_seconds: float | None) -> bool:
        window = self._stale_seconds if stale_seconds is None else stale_seconds
        return self._clock() - entry.updated_at >= window

    def _start(self, key: QueryKey, fetcher: Fetcher) -> asyncio.Future[Any]:
        future = self._inflight.get(key)
        if future is None:
            future = asyncio.ensure_future(self._run(key, fetcher))
            self._inflight[key] = future
        return future

    async def _fetch_shared(self, key: QueryKey, fetcher: Fetcher) -> Any:
        future = self._start(key, fetcher)
        # shield: cancelar um chamador não cancela a busca dos demais
        return await asyncio.shield(future)

    def _revalidate(self, key: QueryKey, fetcher: Fetcher) -> None:
        if key in self._inflight:
            return
        logger.debug("query_cache_stale_revalidate", extra={"resource": key[0]})
        future = self._start(key, fetcher)
        self._background.add(future)
        future.add_done_callback(self._on_background_done)

    def _on_background_done(self, future: asyncio.Future[Any]) -> None:
        self._background.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            # Valor antigo continua servido até a próxima leitura
            logger.warning(
                "query_cache_revalidation_failed",
                extra={"error_type": type(exc).__name__},
            )

    async def _run(self, key: QueryKey, fetcher: Fetcher) -> Any:
        try:
            value = await self._fetch_with_retry(key, fetcher)
            # Só a busca ainda registrada para a chave grava; invalidate a desassocia
            if self._inflight.get(key) is asyncio.current_task():
                self._entries[key] = CacheEntry(value, self._clock())
            else:
                logger.debug("query_cache_late_result_dropped", extra={"resource": key[0]})
            return value
        finally:
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]

    async def _fetch_with_retry(self, key: QueryKey, fetcher: Fetcher) -> Any:
        attempts = self._retry + 1
        for attempt in range(attempts):
            try:
                with timed("query_fetch", resource=str(key[0])):
                    return await fetcher()
            except _NON_RETRYABLE:
                raise
            except Exception as exc:
                if attempt + 1 >= attempts:
                    raise
                logger.info(
                    "query_fetch_retry",
                    extra={
                        "resource": str(key[0]),
                        "attempt": attempt + 1,
                        "error_type": type(exc).__name__,
                    },
                )
        raise RuntimeError("unreachable")  # pragma: no cover
