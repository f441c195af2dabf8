"""Base dos serviços REST do marketplace."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol
from urllib.parse import quote

from stayfinder.errors import ApiError

JsonDict = dict[str, Any]


class HttpTransport(Protocol):
    """Interface comum a HttpClient e ScopedHttpClient."""

    async def get(self, path: str, **kwargs: Any) -> Any: ...

    async def post(self, path: str, json: Any = None, **kwargs: Any) -> Any: ...

    async def put(self, path: str, json: Any = None, **kwargs: Any) -> Any: ...

    async def patch(self, path: str, json: Any = None, **kwargs: Any) -> Any: ...

    async def delete(self, path: str, **kwargs: Any) -> Any: ...


def resource_path(*segments: Any) -> str:
    """Monta caminho com segmentos escapados: ("bookings", id) → /bookings/<id>."""
    return "/" + "/".join(quote(str(segment), safe="") for segment in segments)


def clean_params(params: Mapping[str, Any] | None) -> dict[str, Any] | None:
    """Remove parâmetros None (o backend trata ausência como 'sem filtro')."""
    if not params:
        return None
    return {key: value for key, value in params.items() if value is not None}


def require_field(data: Any, key: str) -> Any:
    """Extrai `key` do `data` desembrulhado ou falha com ApiError."""
    if not isinstance(data, Mapping) or key not in data:
        raise ApiError(f"Unexpected response from server: missing '{key}'")
    return data[key]


class ApiService:
    """Serviço ligado a um transporte HTTP (com ou sem escopo)."""

    def __init__(self, http: HttpTransport) -> None:
        self._http = http
