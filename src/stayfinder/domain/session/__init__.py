"""Sessão do cliente: estados, eventos e transições.

Exporta:
- SessionStatus: UNKNOWN | AUTHENTICATED | UNAUTHENTICATED
- SessionEvent: eventos do ciclo de vida
- Session: snapshot imutável
- validate_transition: validador puro
"""

from stayfinder.domain.session.events import SessionEvent
from stayfinder.domain.session.models import Session
from stayfinder.domain.session.states import DECIDED_STATES, SessionStatus
from stayfinder.domain.session.transitions import get_valid_events, validate_transition

__all__ = [
    "Session",
    "SessionStatus",
    "SessionEvent",
    "validate_transition",
    "get_valid_events",
    "DECIDED_STATES",
]
