"""Navegação client-side (substitui router/window.location).

O Navigator guarda o caminho atual e o state da última navegação; a camada
de apresentação observa as mudanças via subscribe().
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from stayfinder.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


@dataclass(frozen=True)
class Location:
    path: str
    state: Mapping[str, Any] = field(default_factory=dict)


NavigationListener = Callable[[Location], None]


class Navigator:
    """Histórico de navegação em memória."""

    def __init__(self, initial_path: str = "/") -> None:
        self._history: list[Location] = [Location(initial_path)]
        self._listeners: list[NavigationListener] = []

    @property
    def location(self) -> Location:
        return self._history[-1]

    @property
    def current_path(self) -> str:
        return self.location.path

    @property
    def state(self) -> Mapping[str, Any]:
        return self.location.state

    @property
    def history(self) -> list[Location]:
        return list(self._history)

    def navigate(
        self,
        path: str,
        *,
        replace: bool = False,
        state: Mapping[str, Any] | None = None,
    ) -> Location:
        """Vai para `path`; replace=True substitui a entrada corrente."""
        location = Location(path, dict(state or {}))
        if replace:
            self._history[-1] = location
        else:
            self._history.append(location)

        logger.debug("navigation", extra={"path": path, "replace": replace})
        for listener in list(self._listeners):
            listener(location)
        return location

    def back(self) -> Location:
        if len(self._history) > 1:
            self._history.pop()
        return self.location

    def subscribe(self, listener: NavigationListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe
