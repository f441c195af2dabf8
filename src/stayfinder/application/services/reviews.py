"""Serviço de avaliações e moderação."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from stayfinder.application.services.base import (
    ApiService,
    JsonDict,
    clean_params,
    require_field,
    resource_path,
)
from stayfinder.domain.payloads import (
    ReviewPayload,
    ReviewReportPayload,
    ReviewResponsePayload,
    ReviewUpdatePayload,
    validate_payload,
)


class ReviewService(ApiService):
    """Endpoints /reviews/*."""

    async def create_review(self, review_data: Mapping[str, Any]) -> JsonDict:
        payload = validate_payload(ReviewPayload, review_data)
        data = await self._http.post("/reviews", json=payload.to_wire())
        return require_field(data, "review")

    async def get_property_reviews(
        self, property_id: str, params: Mapping[str, Any] | None = None
    ) -> JsonDict:
        return await self._http.get(
            resource_path("reviews", "property", property_id), params=clean_params(params)
        )

    async def get_review(self, review_id: str) -> JsonDict:
        data = await self._http.get(resource_path("reviews", review_id))
        return require_field(data, "review")

    async def update_review(self, review_id: str, changes: Mapping[str, Any]) -> JsonDict:
        payload = validate_payload(ReviewUpdatePayload, changes)
        data = await self._http.put(resource_path("reviews", review_id), json=payload.to_wire())
        return require_field(data, "review")

    async def delete_review(self, review_id: str) -> Any:
        return await self._http.delete(resource_path("reviews", review_id))

    async def respond_to_review(self, review_id: str, text: str) -> JsonDict:
        payload = validate_payload(ReviewResponsePayload, {"text": text})
        data = await self._http.post(
            resource_path("reviews", review_id, "response"), json=payload.to_wire()
        )
        return require_field(data, "review")

    async def report_review(self, review_id: str, reason: str) -> Any:
        payload = validate_payload(ReviewReportPayload, {"reason": reason})
        return await self._http.post(
            resource_path("reviews", review_id, "report"), json=payload.to_wire()
        )

    async def get_reviews_for_moderation(self, params: Mapping[str, Any] | None = None) -> JsonDict:
        return await self._http.get("/reviews/moderation", params=clean_params(params))

    async def moderate_review(self, review_id: str, approve: bool) -> Any:
        return await self._http.patch(
            resource_path("reviews", review_id, "moderate"), json={"approve": bool(approve)}
        )
