"""Distância geográfica e ranking de propriedades por proximidade."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import Any

from stayfinder.domain.models import GeoPoint

EARTH_RADIUS_KM = 6371.0


def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    """Distância de grande círculo entre dois pontos, em km."""
    lat1, lat2 = math.radians(a.lat), math.radians(b.lat)
    d_lat = lat2 - lat1
    d_lng = math.radians(b.lng - a.lng)
    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


def property_point(property_data: Mapping[str, Any]) -> GeoPoint | None:
    """Extrai o ponto de `location.coordinates` ([lng, lat]) ou None."""
    location = property_data.get("location")
    if not isinstance(location, Mapping):
        return None
    coords = location.get("coordinates")
    if not isinstance(coords, (list, tuple)) or len(coords) != 2:
        return None
    try:
        lng, lat = float(coords[0]), float(coords[1])
    except (TypeError, ValueError):
        return None
    return GeoPoint(lat=lat, lng=lng)


def rank_by_distance(
    properties: Iterable[Mapping[str, Any]],
    origin: GeoPoint,
    limit: int | None = None,
) -> list[tuple[Mapping[str, Any], float]]:
    """Ordena propriedades da mais próxima para a mais distante.

    Propriedades sem coordenadas válidas são excluídas.

    Returns:
        Lista de (propriedade, distância_km)
    """
    ranked: list[tuple[Mapping[str, Any], float]] = []
    for prop in properties:
        point = property_point(prop)
        if point is None:
            continue
        ranked.append((prop, haversine_km(origin, point)))

    ranked.sort(key=lambda item: item[1])
    return ranked[:limit] if limit is not None else ranked
