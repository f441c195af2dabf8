"""Snapshot imutável da sessão exposto aos consumidores."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from stayfinder.domain.models import UserSnapshot
from stayfinder.domain.session.states import SessionStatus


@dataclass(frozen=True)
class Session:
    """Estado observável da sessão.

    Escrito apenas pelo SessionController; consumidores só leem.
    """

    status: SessionStatus = SessionStatus.UNKNOWN
    user: UserSnapshot | None = None
    is_loading: bool = True
    error: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.status is SessionStatus.AUTHENTICATED and self.user is not None

    def evolve(self, **changes: Any) -> Session:
        return replace(self, **changes)
