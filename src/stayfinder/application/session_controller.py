"""Ciclo de vida da sessão do cliente.

O SessionController é o único escritor do snapshot de sessão e o dono do
TokenStore e do timer de refresh. Toda mudança passa pela tabela de
transições; eventos sem transição (ex: resposta de update_profile que
chega depois de um logout) são descartados e logados.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from stayfinder.application.services.auth import AuthService
from stayfinder.application.token_store import TimerHandle, TokenStore
from stayfinder.domain.models import AuthResult, UserSnapshot
from stayfinder.domain.session import Session, SessionEvent, SessionStatus, validate_transition
from pydantic import ValidationError

from stayfinder.errors import ApiError, StayfinderError
from stayfinder.observability.logging import get_logger, mask_identifier

logger: logging.Logger = get_logger(__name__)

SessionListener = Callable[[Session], None]

_UNSET: Any = object()

# Eventos que iniciam ou encerram uma sessão (avançam a época)
_EPOCH_EVENTS = frozenset(
    {
        SessionEvent.BOOTSTRAP_AUTHENTICATED,
        SessionEvent.LOGIN_SUCCEEDED,
        SessionEvent.REGISTER_SUCCEEDED,
        SessionEvent.LOGOUT,
        SessionEvent.TOKEN_REJECTED,
    }
)


class SessionController:
    """Controla bootstrap, login/logout, perfil, favoritos e refresh.

    Uma instância por StayfinderClient; todos os consumidores a compartilham.
    """

    def __init__(self, auth_service: AuthService, token_store: TokenStore) -> None:
        self._auth = auth_service
        self._tokens = token_store
        self._session = Session()
        self._refresh_handle: TimerHandle | None = None
        self._listeners: list[SessionListener] = []
        self._epoch = 0

    # Leitura

    @property
    def session(self) -> Session:
        return self._session

    @property
    def user(self) -> UserSnapshot | None:
        return self._session.user

    @property
    def is_authenticated(self) -> bool:
        return self._session.is_authenticated

    @property
    def is_loading(self) -> bool:
        return self._session.is_loading

    @property
    def error(self) -> str | None:
        return self._session.error

    @property
    def epoch(self) -> int:
        """Época da sessão; muda a cada login, registro, logout ou 401."""
        return self._epoch

    @property
    def refresh_scheduled(self) -> bool:
        return self._refresh_handle is not None

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Registra observador do snapshot; retorna função de cancelamento."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # Bootstrap

    async def bootstrap(self) -> Session:
        """Decide AUTHENTICATED/UNAUTHENTICATED a partir do armazenamento.

        Nunca termina em UNKNOWN: qualquer erro inesperado é tratado como
        não autenticado.
        """
        if self._session.status is not SessionStatus.UNKNOWN:
            return self._session

        try:
            await self._bootstrap_from_storage()
        except Exception as exc:
            logger.warning(
                "session_bootstrap_failed",
                extra={"error_type": type(exc).__name__},
            )
            self._tokens.clear()

        if self._session.status is SessionStatus.UNKNOWN:
            self._apply(SessionEvent.BOOTSTRAP_UNAUTHENTICATED, user=None, error=None)
        return self._session

    async def _bootstrap_from_storage(self) -> None:
        token = self._tokens.get_token()
        if not token or self._tokens.is_expired(token):
            logger.info("session_bootstrap_no_valid_token")
            self._tokens.clear()
            self._apply(SessionEvent.BOOTSTRAP_UNAUTHENTICATED, user=None, error=None)
            return

        user = self._tokens.get_user()
        if user is None:
            # Sem snapshot local: confirma com o backend antes de autenticar
            user = await self._auth.get_current_user()
            self._tokens.set_user(user)

        if self._apply(SessionEvent.BOOTSTRAP_AUTHENTICATED, user=user, error=None):
            logger.info("session_restored", extra={"user_id": mask_identifier(user.id)})
            self._schedule_refresh()

    # Login / registro / logout

    async def login(self, email: str, password: str) -> UserSnapshot:
        """Autentica e persiste token + usuário.

        Raises:
            StayfinderError: falha de validação ou do backend (error é definido)
        """
        result = await self._run_auth_flow(
            lambda: self._auth.login(email, password), "Login failed"
        )
        self._establish(result, SessionEvent.LOGIN_SUCCEEDED)
        return result.user

    async def register(self, user_data: Mapping[str, Any]) -> UserSnapshot:
        result = await self._run_auth_flow(
            lambda: self._auth.register(user_data), "Registration failed"
        )
        self._establish(result, SessionEvent.REGISTER_SUCCEEDED)
        return result.user

    def logout(self) -> None:
        """Cancela o refresh, limpa o armazenamento e desautentica."""
        self._tokens.clear()
        self._apply(SessionEvent.LOGOUT, user=None, error=None, is_loading=False)
        logger.info("session_logged_out")

    def handle_unauthorized(self) -> None:
        """Chamado pelo cliente HTTP em qualquer resposta 401."""
        self._tokens.clear()
        self._apply(SessionEvent.TOKEN_REJECTED, user=None, is_loading=False)

    async def _run_auth_flow(self, call: Callable[[], Any], fallback_message: str) -> AuthResult:
        self._update(is_loading=True, error=None)
        try:
            return await call()
        except StayfinderError as exc:
            self._update(error=str(exc) or fallback_message)
            raise
        finally:
            self._update(is_loading=False)

    def _establish(self, result: AuthResult, event: SessionEvent) -> None:
        self._tokens.set_token(result.token)
        self._tokens.set_user(result.user)
        self._apply(event, user=result.user, error=None, is_loading=False)
        logger.info("session_established", extra={"user_id": mask_identifier(result.user.id)})
        self._schedule_refresh()

    # Perfil e favoritos

    async def update_profile(self, changes: Mapping[str, Any]) -> UserSnapshot | None:
        """Atualiza o perfil e faz merge raso da resposta no snapshot.

        Returns:
            Snapshot resultante, ou None se a sessão terminou no meio tempo
        """
        epoch = self._epoch
        self._update(is_loading=True, error=None)
        try:
            updated_fields = await self._auth.update_profile(changes)
        except StayfinderError as exc:
            if self._epoch == epoch:
                self._update(error=str(exc) or "Profile update failed")
            raise
        finally:
            if self._epoch == epoch:
                self._update(is_loading=False)

        current = self._session.user
        if current is None or self._epoch != epoch:
            self._discard(SessionEvent.PROFILE_UPDATED, self._stale_reason(epoch))
            return None

        try:
            merged = current.merged(updated_fields)
        except ValidationError as exc:
            self._update(error="Profile update failed")
            raise ApiError("Unexpected response from server: invalid 'user'") from exc
        if not self._apply(SessionEvent.PROFILE_UPDATED, user=merged):
            return None
        self._tokens.set_user(merged)
        return merged

    async def add_to_favorites(self, property_id: str) -> list[str]:
        return await self._mutate_favorites(self._auth.add_to_favorites, property_id)

    async def remove_from_favorites(self, property_id: str) -> list[str]:
        return await self._mutate_favorites(self._auth.remove_from_favorites, property_id)

    async def _mutate_favorites(
        self, call: Callable[[str], Any], property_id: str
    ) -> list[str]:
        epoch = self._epoch
        try:
            updated_user = await call(property_id)
        except StayfinderError as exc:
            if self._epoch == epoch:
                self._update(error=str(exc) or "Favorites update failed")
            raise

        current = self._session.user
        if current is None or self._epoch != epoch:
            self._discard(SessionEvent.FAVORITES_UPDATED, self._stale_reason(epoch))
            return []

        # Só a lista de favoritos do servidor substitui a local
        updated = current.with_favorites(updated_user.get("favorites"))
        if self._apply(SessionEvent.FAVORITES_UPDATED, user=updated):
            self._tokens.set_user(updated)
        return list(updated.favorites)

    async def get_favorites(self) -> list[dict[str, Any]]:
        """Leitura direta; não altera a sessão."""
        try:
            return await self._auth.get_favorites()
        except StayfinderError as exc:
            self._update(error=str(exc) or "Failed to load favorites")
            raise

    # Refresh

    async def refresh_current_user(self) -> UserSnapshot | None:
        """Callback do timer: rebusca o usuário; falha encerra a sessão."""
        self._refresh_handle = None
        if self._session.status is not SessionStatus.AUTHENTICATED:
            return None

        epoch = self._epoch
        try:
            user = await self._auth.get_current_user()
        except StayfinderError as exc:
            if self._epoch != epoch:
                # Falha pertence a uma sessão já encerrada
                self._discard(SessionEvent.USER_REFRESHED, self._stale_reason(epoch))
                return None
            logger.warning("session_refresh_failed", extra={"error_type": type(exc).__name__})
            self.logout()
            return None

        if self._epoch != epoch:
            self._discard(SessionEvent.USER_REFRESHED, self._stale_reason(epoch))
            return None
        if not self._apply(SessionEvent.USER_REFRESHED, user=user):
            return None
        self._tokens.set_user(user)
        self._schedule_refresh()
        return user

    def _schedule_refresh(self) -> None:
        self._cancel_refresh()
        self._refresh_handle = self._tokens.schedule_refresh(self.refresh_current_user)

    def _cancel_refresh(self) -> None:
        if self._refresh_handle is not None:
            self._refresh_handle.cancel()
            self._refresh_handle = None
            logger.debug("token_refresh_cancelled")

    # Transições

    def _apply(self, event: SessionEvent, **changes: Any) -> bool:
        """Aplica evento validado pela tabela; False se descartado."""
        is_valid, next_state, reason = validate_transition(self._session.status, event)
        if not is_valid or next_state is None:
            self._discard(event, reason)
            return False

        if next_state is not SessionStatus.AUTHENTICATED:
            self._cancel_refresh()
        if event in _EPOCH_EVENTS:
            self._epoch += 1

        changes.setdefault("is_loading", False)
        self._set(self._session.evolve(status=next_state, **changes))
        return True

    def _discard(self, event: SessionEvent, reason: str | None = None) -> None:
        logger.warning(
            "session_event_discarded",
            extra={
                "event": event.value,
                "state": self._session.status.value,
                "reason": reason or "no active user",
            },
        )

    def _stale_reason(self, epoch: int) -> str | None:
        if self._epoch != epoch:
            return f"session epoch changed ({epoch} -> {self._epoch})"
        return None

    def _update(self, is_loading: bool = _UNSET, error: str | None = _UNSET) -> None:
        """Atualiza flags sem mudar de estado."""
        changes: dict[str, Any] = {}
        if is_loading is not _UNSET:
            changes["is_loading"] = is_loading
        if error is not _UNSET:
            changes["error"] = error
        if self._session.status is SessionStatus.UNKNOWN and changes.get("is_loading") is False:
            # Em UNKNOWN o bootstrap ainda decide; placeholder permanece
            changes.pop("is_loading")
        if changes:
            self._set(self._session.evolve(**changes))

    def _set(self, session: Session) -> None:
        if session == self._session:
            return
        self._session = session
        for listener in list(self._listeners):
            try:
                listener(session)
            except Exception:
                logger.exception("session_listener_failed")
