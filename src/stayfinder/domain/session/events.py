"""Eventos que disparam transições da sessão."""

from __future__ import annotations

from enum import StrEnum


class SessionEvent(StrEnum):
    """Eventos canônicos do ciclo de vida da sessão."""

    # === Bootstrap ===
    BOOTSTRAP_AUTHENTICATED = "BOOTSTRAP_AUTHENTICATED"
    """Token persistido válido e usuário conhecido."""

    BOOTSTRAP_UNAUTHENTICATED = "BOOTSTRAP_UNAUTHENTICATED"
    """Token ausente, expirado, ou falha ao recuperar o usuário."""

    # === Ações do usuário ===
    LOGIN_SUCCEEDED = "LOGIN_SUCCEEDED"
    REGISTER_SUCCEEDED = "REGISTER_SUCCEEDED"
    LOGOUT = "LOGOUT"

    # === Atualizações do snapshot ===
    USER_REFRESHED = "USER_REFRESHED"
    """Timer de refresh buscou o usuário novamente."""

    PROFILE_UPDATED = "PROFILE_UPDATED"
    FAVORITES_UPDATED = "FAVORITES_UPDATED"

    # === Exceções ===
    TOKEN_REJECTED = "TOKEN_REJECTED"
    """Backend respondeu 401 em qualquer chamada."""
