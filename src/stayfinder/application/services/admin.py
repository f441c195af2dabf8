"""Serviço do painel administrativo."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from stayfinder.application.services.base import (
    ApiService,
    JsonDict,
    clean_params,
    resource_path,
)
from stayfinder.domain.payloads import (
    PropertyApprovalPayload,
    UserStatusPayload,
    validate_payload,
)


class AdminService(ApiService):
    """Endpoints /admin/* (exigem papel admin no backend)."""

    async def get_dashboard(self) -> JsonDict:
        return await self._http.get("/admin/dashboard")

    async def get_properties(self, params: Mapping[str, Any] | None = None) -> JsonDict:
        return await self._http.get("/admin/properties", params=clean_params(params))

    async def update_property_approval(
        self,
        property_id: str,
        is_approved: bool,
        rejection_reason: str | None = None,
    ) -> JsonDict:
        payload = validate_payload(
            PropertyApprovalPayload,
            {"is_approved": is_approved, "rejection_reason": rejection_reason},
        )
        return await self._http.patch(
            resource_path("admin", "properties", property_id, "approval"),
            json=payload.to_wire(),
        )

    async def delete_property(self, property_id: str) -> Any:
        return await self._http.delete(resource_path("admin", "properties", property_id))

    async def get_bookings(self, params: Mapping[str, Any] | None = None) -> JsonDict:
        return await self._http.get("/admin/bookings", params=clean_params(params))

    async def get_users(self, params: Mapping[str, Any] | None = None) -> JsonDict:
        return await self._http.get("/admin/users", params=clean_params(params))

    async def update_user_status(
        self, user_id: str, is_active: bool, reason: str | None = None
    ) -> JsonDict:
        payload = validate_payload(
            UserStatusPayload, {"is_active": is_active, "reason": reason}
        )
        return await self._http.patch(
            resource_path("admin", "users", user_id, "status"), json=payload.to_wire()
        )

    async def get_reviews(self, params: Mapping[str, Any] | None = None) -> JsonDict:
        return await self._http.get("/admin/reviews", params=clean_params(params))

    async def delete_review(self, review_id: str) -> Any:
        return await self._http.delete(resource_path("admin", "reviews", review_id))
