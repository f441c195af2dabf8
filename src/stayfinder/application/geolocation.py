"""Posição do usuário com timeout e mensagem de fallback.

PositionProvider abstrai a fonte (GPS do dispositivo, IP, endereço
digitado). locate() aplica o timeout e converte qualquer falha em
GeolocationError com mensagem exibível.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from stayfinder.application.services.base import HttpTransport
from stayfinder.domain.geo import rank_by_distance
from stayfinder.domain.models import GeoPoint
from stayfinder.errors import GeolocationError
from stayfinder.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
LOCATION_FALLBACK_MESSAGE = (
    "Unable to get your location. Please enable location services or search by city."
)


class PositionProvider(ABC):
    """Fonte da posição atual do usuário."""

    @abstractmethod
    async def current_position(self) -> GeoPoint:
        """Retorna a posição; levanta qualquer exceção em falha."""
        ...


class StaticPositionProvider(PositionProvider):
    """Posição fixa (configuração manual ou testes)."""

    def __init__(self, lat: float, lng: float) -> None:
        self._point = GeoPoint(lat=lat, lng=lng)

    async def current_position(self) -> GeoPoint:
        return self._point


class GeocodePositionProvider(PositionProvider):
    """Resolve um endereço digitado via proxy /geocode/search do backend.

    O proxy devolve a lista crua do Nominatim ([{lat, lon, display_name}]).
    """

    def __init__(self, http: HttpTransport, query: str) -> None:
        self._http = http
        self._query = query

    async def search(self) -> list[Mapping[str, Any]]:
        results = await self._http.get("/geocode/search", params={"q": self._query})
        return list(results) if isinstance(results, list) else []

    async def current_position(self) -> GeoPoint:
        results = await self.search()
        if not results:
            raise LookupError("No geocoding result")
        first = results[0]
        return GeoPoint(lat=float(first["lat"]), lng=float(first["lon"]))


async def locate(
    provider: PositionProvider,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> GeoPoint:
    """Obtém a posição em até `timeout_seconds`.

    Raises:
        GeolocationError: negada, indisponível ou timeout
    """
    try:
        return await asyncio.wait_for(provider.current_position(), timeout=timeout_seconds)
    except TimeoutError as exc:
        logger.warning("geolocation_timeout", extra={"timeout_seconds": timeout_seconds})
        raise GeolocationError(LOCATION_FALLBACK_MESSAGE) from exc
    except Exception as exc:
        logger.warning("geolocation_failed", extra={"error_type": type(exc).__name__})
        raise GeolocationError(LOCATION_FALLBACK_MESSAGE) from exc


async def find_nearest(
    provider: PositionProvider,
    properties: list[Mapping[str, Any]],
    limit: int | None = None,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> list[tuple[Mapping[str, Any], float]]:
    """Localiza o usuário e ordena `properties` por distância (km)."""
    origin = await locate(provider, timeout_seconds)
    return rank_by_distance(properties, origin, limit=limit)
