"""Configurações centralizadas do stayfinder.

Uso típico:
    from stayfinder.config import get_settings
"""

from stayfinder.config.settings import (
    DEFAULT_API_URL,
    TOKEN_KEY,
    USER_KEY,
    Settings,
    get_settings,
)

__all__ = [
    "Settings",
    "get_settings",
    "DEFAULT_API_URL",
    "TOKEN_KEY",
    "USER_KEY",
]
