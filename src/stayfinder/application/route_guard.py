"""Guarda de rotas por autenticação e papel.

Checagens client-side são apenas UX: o backend continua sendo a
autoridade sobre permissões.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from stayfinder.application.navigation import Navigator
from stayfinder.domain.enums import Role
from stayfinder.domain.session import Session
from stayfinder.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


class GuardDecision(StrEnum):
    LOADING = "LOADING"
    REDIRECT_TO_LOGIN = "REDIRECT_TO_LOGIN"
    REDIRECT_TO_HOME = "REDIRECT_TO_HOME"
    ALLOWED = "ALLOWED"


@dataclass(frozen=True)
class GuardResult:
    decision: GuardDecision
    redirect_to: str | None = None
    from_path: str | None = None

    @property
    def allowed(self) -> bool:
        return self.decision is GuardDecision.ALLOWED


def evaluate(
    session: Session,
    path: str,
    required_role: Role | str | None = None,
    *,
    login_path: str = "/login",
    home_path: str = "/",
) -> GuardResult:
    """Decide o acesso a `path` para a sessão corrente (função pura).

    Ordem: carregando → placeholder; não autenticado → login (lembrando a
    origem); papel insuficiente (admin acessa tudo) → home; senão liberado.
    """
    if session.is_loading:
        return GuardResult(GuardDecision.LOADING)

    if not session.is_authenticated or session.user is None:
        return GuardResult(GuardDecision.REDIRECT_TO_LOGIN, redirect_to=login_path, from_path=path)

    if required_role is not None:
        role = session.user.role
        if role != Role(required_role) and role != Role.ADMIN:
            return GuardResult(GuardDecision.REDIRECT_TO_HOME, redirect_to=home_path)

    return GuardResult(GuardDecision.ALLOWED)


def post_login_destination(state: Mapping[str, Any] | None, home_path: str = "/") -> str:
    """Caminho lembrado pelo redirect para o login, ou home."""
    if state:
        origin = state.get("from")
        if isinstance(origin, str) and origin:
            return origin
    return home_path


class RouteGuard:
    """Aplica a decisão de evaluate() através do Navigator."""

    def __init__(
        self,
        session_provider: Callable[[], Session],
        navigator: Navigator,
        login_path: str = "/login",
        home_path: str = "/",
    ) -> None:
        self._session_provider = session_provider
        self._navigator = navigator
        self._login_path = login_path
        self._home_path = home_path

    def check(self, path: str, required_role: Role | str | None = None) -> GuardResult:
        return evaluate(
            self._session_provider(),
            path,
            required_role,
            login_path=self._login_path,
            home_path=self._home_path,
        )

    def enforce(self, path: str, required_role: Role | str | None = None) -> GuardResult:
        """Avalia e, se necessário, redireciona (replace)."""
        result = self.check(path, required_role)

        if result.decision is GuardDecision.REDIRECT_TO_LOGIN:
            self._navigator.navigate(self._login_path, replace=True, state={"from": path})
        elif result.decision is GuardDecision.REDIRECT_TO_HOME:
            logger.info(
                "route_denied_by_role",
                extra={"path": path, "required_role": str(required_role)},
            )
            self._navigator.navigate(self._home_path, replace=True)

        return result

    def post_login_destination(self) -> str:
        return post_login_destination(self._navigator.state, self._home_path)
