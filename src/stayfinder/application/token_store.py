"""Persistência do token de acesso e do snapshot do usuário.

Valores são gravados codificados (base64(JSON)); a codificação é
reversível e NÃO protege o conteúdo. Falhas de decodificação são
tratadas como ausência e nunca propagam.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Protocol

from pydantic import ValidationError

from stayfinder.config.settings import TOKEN_KEY, USER_KEY
from stayfinder.domain.models import UserSnapshot
from stayfinder.infra.storage import KeyValueStorage
from stayfinder.observability.logging import get_logger
from stayfinder.utils.encoding import decode_jwt_payload, decode_value, encode_value

logger: logging.Logger = get_logger(__name__)

DEFAULT_REFRESH_LEAD_SECONDS = 300.0


class TimerHandle(Protocol):
    """Handle cancelável de um callback agendado."""

    def cancel(self) -> Any: ...


Scheduler = Callable[[float, Callable[[], None]], TimerHandle]


def loop_scheduler(delay: float, callback: Callable[[], None]) -> TimerHandle:
    """Agenda no event loop corrente (asyncio.call_later)."""
    return asyncio.get_running_loop().call_later(delay, callback)


class TokenStore:
    """Dono único das chaves persistidas do token e do usuário."""

    def __init__(
        self,
        storage: KeyValueStorage,
        token_key: str = TOKEN_KEY,
        user_key: str = USER_KEY,
        refresh_lead_seconds: float = DEFAULT_REFRESH_LEAD_SECONDS,
        clock: Callable[[], float] | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._storage = storage
        self._token_key = token_key
        self._user_key = user_key
        self._refresh_lead_seconds = refresh_lead_seconds
        self._clock = clock or time.time
        self._scheduler = scheduler or loop_scheduler
        self._pending: set[asyncio.Future[Any]] = set()

    # Token

    def set_token(self, token: str | None) -> None:
        """Persiste o token; valor vazio remove a chave."""
        if token:
            self._storage.set(self._token_key, encode_value(token))
        else:
            self._storage.remove(self._token_key)

    def get_token(self) -> str | None:
        encoded = self._storage.get(self._token_key)
        if not encoded:
            return None
        try:
            token = decode_value(encoded)
        except ValueError:
            logger.warning("persisted_token_unreadable")
            return None
        return token if isinstance(token, str) and token else None

    def remove_token(self) -> None:
        self._storage.remove(self._token_key)

    # Usuário

    def set_user(self, user: UserSnapshot | dict[str, Any] | None) -> None:
        """Persiste o snapshot normalizado; None remove a chave."""
        if user is None:
            self._storage.remove(self._user_key)
            return
        snapshot = user if isinstance(user, UserSnapshot) else UserSnapshot.model_validate(user)
        self._storage.set(self._user_key, encode_value(snapshot.to_storage()))

    def get_user(self) -> UserSnapshot | None:
        encoded = self._storage.get(self._user_key)
        if not encoded:
            return None
        try:
            return UserSnapshot.model_validate(decode_value(encoded))
        except (ValueError, ValidationError):
            logger.warning("persisted_user_unreadable")
            return None

    def remove_user(self) -> None:
        self._storage.remove(self._user_key)

    def clear(self) -> None:
        """Remove token e usuário."""
        self.remove_token()
        self.remove_user()

    # Expiração

    def get_token_expiry(self, token: str | None = None) -> datetime | None:
        """Lê `exp` do payload do JWT (sem verificar assinatura)."""
        token = token if token is not None else self.get_token()
        if not token:
            return None
        exp = _read_exp(token)
        if exp is None:
            return None
        try:
            return datetime.fromtimestamp(exp, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None

    def is_expired(self, token: str | None = None) -> bool:
        """True se token ausente, malformado, sem `exp` ou vencido."""
        token = token if token is not None else self.get_token()
        if not token:
            return True
        exp = _read_exp(token)
        if exp is None:
            return True
        return exp < self._clock()

    def is_authenticated(self) -> bool:
        """Token presente e não expirado (sem verificação de assinatura)."""
        token = self.get_token()
        return bool(token) and not self.is_expired(token)

    # Refresh

    def refresh_delay(self, token: str | None = None) -> float | None:
        """Segundos até o refresh: max(exp - agora - lead, 0); None se desconhecido."""
        token = token if token is not None else self.get_token()
        if not token:
            return None
        exp = _read_exp(token)
        if exp is None:
            return None
        return max(exp - self._clock() - self._refresh_lead_seconds, 0.0)

    def schedule_refresh(self, callback: Callable[[], Any]) -> TimerHandle | None:
        """Agenda `callback` antes do token expirar.

        Nada é agendado se o token está ausente, sem expiração conhecida ou
        já dentro da janela de antecedência. Callbacks assíncronos rodam
        como tasks.

        Returns:
            Handle para cancelamento pelo dono da sessão, ou None
        """
        delay = self.refresh_delay()
        if delay is None or delay <= 0:
            logger.debug("token_refresh_not_scheduled", extra={"delay_seconds": delay})
            return None

        handle = self._scheduler(delay, lambda: self._fire(callback))
        logger.info("token_refresh_scheduled", extra={"delay_seconds": round(delay, 1)})
        return handle

    def _fire(self, callback: Callable[[], Any]) -> None:
        result = callback()
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)


def _read_exp(token: str) -> float | None:
    payload = decode_jwt_payload(token)
    if payload is None:
        return None
    exp = payload.get("exp")
    # bool é subclasse de int, mas não é um timestamp
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return None
    return float(exp)
