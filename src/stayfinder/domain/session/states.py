"""Estados do ciclo de vida da sessão do cliente.

- UNKNOWN: estado inicial, enquanto o bootstrap não decidiu
- AUTHENTICATED / UNAUTHENTICATED: decididos; bootstrap nunca volta a UNKNOWN
"""

from __future__ import annotations

from enum import StrEnum


class SessionStatus(StrEnum):
    """3 estados canônicos da sessão."""

    UNKNOWN = "UNKNOWN"
    """Bootstrap em andamento; consumidores devem exibir placeholder."""

    AUTHENTICATED = "AUTHENTICATED"
    """Token válido e snapshot do usuário disponível."""

    UNAUTHENTICATED = "UNAUTHENTICATED"
    """Sem token válido; dados persistidos removidos."""


DECIDED_STATES = frozenset({SessionStatus.AUTHENTICATED, SessionStatus.UNAUTHENTICATED})
"""Estados alcançados após o bootstrap."""
