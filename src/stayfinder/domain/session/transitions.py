"""Tabela de transições da sessão.

- TRANSITIONS[(current_state, event)] = next_state
- Atualizações do snapshot só existem em AUTHENTICATED: respostas que
  chegam depois de logout/401 não têm transição e são descartadas
- Validação pura: sem side effects
"""

from __future__ import annotations

from stayfinder.domain.session.events import SessionEvent
from stayfinder.domain.session.states import SessionStatus

_AUTH = SessionStatus.AUTHENTICATED
_UNAUTH = SessionStatus.UNAUTHENTICATED
_UNKNOWN = SessionStatus.UNKNOWN

TRANSITIONS: dict[tuple[SessionStatus, SessionEvent], SessionStatus] = {
    # === UNKNOWN → ... ===
    (_UNKNOWN, SessionEvent.BOOTSTRAP_AUTHENTICATED): _AUTH,
    (_UNKNOWN, SessionEvent.BOOTSTRAP_UNAUTHENTICATED): _UNAUTH,
    (_UNKNOWN, SessionEvent.LOGIN_SUCCEEDED): _AUTH,
    (_UNKNOWN, SessionEvent.REGISTER_SUCCEEDED): _AUTH,
    (_UNKNOWN, SessionEvent.LOGOUT): _UNAUTH,
    (_UNKNOWN, SessionEvent.TOKEN_REJECTED): _UNAUTH,
    # === UNAUTHENTICATED → ... ===
    (_UNAUTH, SessionEvent.LOGIN_SUCCEEDED): _AUTH,
    (_UNAUTH, SessionEvent.REGISTER_SUCCEEDED): _AUTH,
    (_UNAUTH, SessionEvent.LOGOUT): _UNAUTH,
    (_UNAUTH, SessionEvent.TOKEN_REJECTED): _UNAUTH,
    # === AUTHENTICATED → ... ===
    (_AUTH, SessionEvent.LOGIN_SUCCEEDED): _AUTH,
    (_AUTH, SessionEvent.REGISTER_SUCCEEDED): _AUTH,
    (_AUTH, SessionEvent.USER_REFRESHED): _AUTH,
    (_AUTH, SessionEvent.PROFILE_UPDATED): _AUTH,
    (_AUTH, SessionEvent.FAVORITES_UPDATED): _AUTH,
    (_AUTH, SessionEvent.LOGOUT): _UNAUTH,
    (_AUTH, SessionEvent.TOKEN_REJECTED): _UNAUTH,
}


def validate_transition(
    current_state: SessionStatus,
    event: SessionEvent,
) -> tuple[bool, SessionStatus | None, str]:
    """Valida se transição é permitida.

    Returns:
        (is_valid, next_state, reason)
    """
    next_state = TRANSITIONS.get((current_state, event))
    if next_state is None:
        return (
            False,
            None,
            f"No transition from {current_state.value} on event {event.value}",
        )
    return True, next_state, f"Transition {current_state.value} → {next_state.value}"


def get_valid_events(state: SessionStatus) -> frozenset[SessionEvent]:
    """Eventos aceitos em um estado."""
    return frozenset(event for (origin, event) in TRANSITIONS if origin == state)
