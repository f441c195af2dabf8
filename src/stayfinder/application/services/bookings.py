"""Serviço de reservas."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from typing import Any

from stayfinder.application.services.base import (
    ApiService,
    JsonDict,
    clean_params,
    require_field,
    resource_path,
)
from stayfinder.domain.enums import BookingStatus, PaymentStatus
from stayfinder.domain.payloads import (
    AvailabilityQuery,
    BookingPayload,
    BookingStatusPayload,
    PaymentStatusPayload,
    validate_payload,
)


class BookingService(ApiService):
    """Endpoints /bookings/*."""

    async def create_booking(self, booking_data: Mapping[str, Any]) -> JsonDict:
        payload = validate_payload(BookingPayload, booking_data)
        data = await self._http.post("/bookings", json=payload.to_wire())
        return require_field(data, "booking")

    async def get_user_bookings(self, params: Mapping[str, Any] | None = None) -> JsonDict:
        """Reservas do usuário: {bookings, pagination}."""
        return await self._http.get("/bookings", params=clean_params(params))

    async def get_host_bookings(self, params: Mapping[str, Any] | None = None) -> JsonDict:
        return await self._http.get("/bookings/host", params=clean_params(params))

    async def get_booking(self, booking_id: str) -> JsonDict:
        data = await self._http.get(resource_path("bookings", booking_id))
        return require_field(data, "booking")

    async def update_booking_status(
        self,
        booking_id: str,
        status: BookingStatus | str,
        reason: str | None = None,
    ) -> JsonDict:
        """Confirma ou cancela (cancelamento exige motivo)."""
        payload = validate_payload(BookingStatusPayload, {"status": status, "reason": reason})
        data = await self._http.patch(
            resource_path("bookings", booking_id, "status"), json=payload.to_wire()
        )
        return require_field(data, "booking")

    async def update_payment_status(
        self,
        booking_id: str,
        payment_status: PaymentStatus | str,
        payment_id: str | None = None,
    ) -> JsonDict:
        payload = validate_payload(
            PaymentStatusPayload, {"payment_status": payment_status, "payment_id": payment_id}
        )
        data = await self._http.patch(
            resource_path("bookings", booking_id, "payment"), json=payload.to_wire()
        )
        return require_field(data, "booking")

    async def get_property_availability(
        self,
        property_id: str,
        start_date: date | str,
        end_date: date | str,
    ) -> JsonDict:
        query = validate_payload(
            AvailabilityQuery, {"start_date": start_date, "end_date": end_date}
        )
        return await self._http.get(
            resource_path("bookings", "availability", property_id), params=query.to_wire()
        )
