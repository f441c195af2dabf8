"""Serviço de propriedades e datas bloqueadas."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any

from stayfinder.application.services.base import (
    ApiService,
    JsonDict,
    clean_params,
    require_field,
    resource_path,
)
from stayfinder.domain.enums import BlockReason
from stayfinder.domain.payloads import (
    BlockDatesPayload,
    PropertyPayload,
    PropertyUpdatePayload,
    UnblockDatesPayload,
    validate_payload,
)


class PropertyService(ApiService):
    """Endpoints /properties/*."""

    async def list_properties(self, params: Mapping[str, Any] | None = None) -> JsonDict:
        """Lista paginada: {properties, pagination}."""
        return await self._http.get("/properties", params=clean_params(params))

    async def get_property(self, property_id: str) -> JsonDict:
        data = await self._http.get(resource_path("properties", property_id))
        return require_field(data, "property")

    async def create_property(self, property_data: Mapping[str, Any]) -> JsonDict:
        payload = validate_payload(PropertyPayload, property_data)
        data = await self._http.post("/properties", json=payload.to_wire())
        return require_field(data, "property")

    async def update_property(self, property_id: str, changes: Mapping[str, Any]) -> JsonDict:
        payload = validate_payload(PropertyUpdatePayload, changes)
        data = await self._http.put(
            resource_path("properties", property_id), json=payload.to_wire()
        )
        return require_field(data, "property")

    async def delete_property(self, property_id: str) -> Any:
        return await self._http.delete(resource_path("properties", property_id))

    async def get_host_properties(
        self, host_id: str, params: Mapping[str, Any] | None = None
    ) -> JsonDict:
        return await self._http.get(
            resource_path("properties", "host", host_id), params=clean_params(params)
        )

    async def toggle_availability(self, property_id: str) -> JsonDict:
        data = await self._http.patch(resource_path("properties", property_id, "availability"))
        return require_field(data, "property")

    async def approve_property(self, property_id: str) -> JsonDict:
        data = await self._http.patch(resource_path("properties", property_id, "approve"))
        return require_field(data, "property")

    async def get_nearby_properties(
        self,
        lat: float,
        lng: float,
        distance_km: float | None = None,
        limit: int | None = None,
    ) -> list[JsonDict]:
        """Propriedades num raio (km) do ponto; backend usa 10 km por padrão."""
        params = clean_params({"lat": lat, "lng": lng, "distance": distance_km, "limit": limit})
        data = await self._http.get("/properties/nearby", params=params)
        return list(require_field(data, "properties") or [])

    async def get_blocked_dates(
        self, property_id: str, year: int | None = None, month: int | None = None
    ) -> JsonDict:
        """Datas bloqueadas indexadas por 'YYYY-MM-DD'."""
        data = await self._http.get(
            resource_path("properties", property_id, "blocked-dates"),
            params=clean_params({"year": year, "month": month}),
        )
        return dict(require_field(data, "blockedDates") or {})

    async def block_dates(
        self,
        property_id: str,
        dates: Iterable[date | str],
        reason: BlockReason | str = BlockReason.UNAVAILABLE,
        note: str | None = None,
    ) -> Any:
        payload = validate_payload(
            BlockDatesPayload, {"dates": list(dates), "reason": reason, "note": note}
        )
        data = await self._http.post(
            resource_path("properties", property_id, "blocked-dates"), json=payload.to_wire()
        )
        return require_field(data, "blockedDates")

    async def unblock_dates(self, property_id: str, dates: Iterable[date | str]) -> Any:
        payload = validate_payload(UnblockDatesPayload, {"dates": list(dates)})
        return await self._http.delete(
            resource_path("properties", property_id, "blocked-dates"), json=payload.to_wire()
        )
