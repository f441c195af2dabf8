"""Consultas em cache e mutações que invalidam as chaves afetadas.

Cada leitura usa uma chave (recurso, *parâmetros); cada mutação invalida
exatamente os recursos cujo conteúdo o backend alterou.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import date
from typing import TYPE_CHECKING, Any

from stayfinder.application.query_cache import QueryCache, QueryKey
from stayfinder.application.services import ServiceRegistry
from stayfinder.domain.enums import BlockReason, BookingStatus, PaymentStatus
from stayfinder.observability.logging import get_logger

if TYPE_CHECKING:
    from stayfinder.application.session_controller import SessionController

logger: logging.Logger = get_logger(__name__)

# Nomes de recurso das chaves de cache
PROPERTIES = "properties"
PROPERTY = "property"
HOST_PROPERTIES = "hostProperties"
NEARBY_PROPERTIES = "nearbyProperties"
USER_BOOKINGS = "userBookings"
HOST_BOOKINGS = "hostBookings"
BOOKING = "booking"
AVAILABILITY = "availability"
BLOCKED_DATES = "blockedDates"
PROPERTY_REVIEWS = "propertyReviews"
MODERATION_REVIEWS = "moderationReviews"
FAVORITES = "favorites"
ADMIN_DASHBOARD = "adminDashboard"
ADMIN_PROPERTIES = "adminProperties"
ADMIN_BOOKINGS = "adminBookings"
ADMIN_USERS = "adminUsers"
ADMIN_REVIEWS = "adminReviews"


class MarketplaceQueries:
    """Fachada de leitura/escrita usada pelas telas."""

    def __init__(
        self,
        cache: QueryCache,
        services: ServiceRegistry,
        session: SessionController | None = None,
    ) -> None:
        self._cache = cache
        self._services = services
        self._session = session

    @property
    def cache(self) -> QueryCache:
        return self._cache

    def _invalidate(self, *keys: QueryKey) -> None:
        for key in keys:
            self._cache.invalidate(*key)

    # Propriedades

    async def properties(self, params: Mapping[str, Any] | None = None) -> Any:
        params = dict(params or {})
        return await self._cache.fetch(
            (PROPERTIES, params), lambda: self._services.properties.list_properties(params)
        )

    async def property_detail(self, property_id: str) -> Any:
        return await self._cache.fetch(
            (PROPERTY, property_id), lambda: self._services.properties.get_property(property_id)
        )

    async def host_properties(self, host_id: str, params: Mapping[str, Any] | None = None) -> Any:
        params = dict(params or {})
        return await self._cache.fetch(
            (HOST_PROPERTIES, host_id, params),
            lambda: self._services.properties.get_host_properties(host_id, params),
        )

    async def nearby_properties(
        self, lat: float, lng: float, distance_km: float | None = None
    ) -> Any:
        return await self._cache.fetch(
            (NEARBY_PROPERTIES, lat, lng, distance_km),
            lambda: self._services.properties.get_nearby_properties(lat, lng, distance_km),
        )

    async def blocked_dates(
        self, property_id: str, year: int | None = None, month: int | None = None
    ) -> Any:
        return await self._cache.fetch(
            (BLOCKED_DATES, property_id, year, month),
            lambda: self._services.properties.get_blocked_dates(property_id, year, month),
        )

    async def create_property(self, property_data: Mapping[str, Any]) -> Any:
        created = await self._services.properties.create_property(property_data)
        self._invalidate((HOST_PROPERTIES,), (PROPERTIES,), (ADMIN_PROPERTIES,))
        return created

    async def update_property(self, property_id: str, changes: Mapping[str, Any]) -> Any:
        updated = await self._services.properties.update_property(property_id, changes)
        self._invalidate((HOST_PROPERTIES,), (PROPERTY, property_id), (PROPERTIES,))
        return updated

    async def delete_property(self, property_id: str) -> Any:
        result = await self._services.properties.delete_property(property_id)
        self._invalidate((HOST_PROPERTIES,), (PROPERTY, property_id), (PROPERTIES,))
        return result

    async def toggle_availability(self, property_id: str) -> Any:
        updated = await self._services.properties.toggle_availability(property_id)
        self._invalidate((HOST_PROPERTIES,), (PROPERTY, property_id))
        return updated

    async def block_dates(
        self,
        property_id: str,
        dates: Iterable[date | str],
        reason: BlockReason | str = BlockReason.UNAVAILABLE,
        note: str | None = None,
    ) -> Any:
        result = await self._services.properties.block_dates(property_id, dates, reason, note)
        self._invalidate((BLOCKED_DATES, property_id), (AVAILABILITY, property_id))
        return result

    async def unblock_dates(self, property_id: str, dates: Iterable[date | str]) -> Any:
        result = await self._services.properties.unblock_dates(property_id, dates)
        self._invalidate((BLOCKED_DATES, property_id), (AVAILABILITY, property_id))
        return result

    # Reservas

    async def user_bookings(self, params: Mapping[str, Any] | None = None) -> Any:
        params = dict(params or {})
        return await self._cache.fetch(
            (USER_BOOKINGS, params), lambda: self._services.bookings.get_user_bookings(params)
        )

    async def host_bookings(self, params: Mapping[str, Any] | None = None) -> Any:
        params = dict(params or {})
        return await self._cache.fetch(
            (HOST_BOOKINGS, params), lambda: self._services.bookings.get_host_bookings(params)
        )

    async def booking(self, booking_id: str) -> Any:
        return await self._cache.fetch(
            (BOOKING, booking_id), lambda: self._services.bookings.get_booking(booking_id)
        )

    async def availability(
        self, property_id: str, start_date: date | str, end_date: date | str
    ) -> Any:
        return await self._cache.fetch(
            (AVAILABILITY, property_id, str(start_date), str(end_date)),
            lambda: self._services.bookings.get_property_availability(
                property_id, start_date, end_date
            ),
        )

    async def create_booking(self, booking_data: Mapping[str, Any]) -> Any:
        booking = await self._services.bookings.create_booking(booking_data)
        property_id = booking_data.get("property_id") or booking_data.get("propertyId")
        self._invalidate((USER_BOOKINGS,), (HOST_BOOKINGS,), (AVAILABILITY, property_id))
        return booking

    async def update_booking_status(
        self,
        booking_id: str,
        status: BookingStatus | str,
        reason: str | None = None,
    ) -> Any:
        booking = await self._services.bookings.update_booking_status(booking_id, status, reason)
        self._invalidate((HOST_BOOKINGS,), (USER_BOOKINGS,), (BOOKING, booking_id))
        return booking

    async def update_payment_status(
        self,
        booking_id: str,
        payment_status: PaymentStatus | str,
        payment_id: str | None = None,
    ) -> Any:
        booking = await self._services.bookings.update_payment_status(
            booking_id, payment_status, payment_id
        )
        self._invalidate((USER_BOOKINGS,), (HOST_BOOKINGS,), (BOOKING, booking_id))
        return booking

    # Avaliações

    async def property_reviews(
        self, property_id: str, params: Mapping[str, Any] | None = None
    ) -> Any:
        params = dict(params or {})
        return await self._cache.fetch(
            (PROPERTY_REVIEWS, property_id, params),
            lambda: self._services.reviews.get_property_reviews(property_id, params),
        )

    async def reviews_for_moderation(self, params: Mapping[str, Any] | None = None) -> Any:
        params = dict(params or {})
        return await self._cache.fetch(
            (MODERATION_REVIEWS, params),
            lambda: self._services.reviews.get_reviews_for_moderation(params),
        )

    async def create_review(self, review_data: Mapping[str, Any]) -> Any:
        review = await self._services.reviews.create_review(review_data)
        property_id = review_data.get("property_id") or review_data.get("propertyId")
        self._invalidate((PROPERTY_REVIEWS, property_id), (PROPERTY, property_id))
        return review

    async def update_review(self, review_id: str, changes: Mapping[str, Any]) -> Any:
        review = await self._services.reviews.update_review(review_id, changes)
        self._invalidate((PROPERTY_REVIEWS,))
        return review

    async def delete_review(self, review_id: str) -> Any:
        result = await self._services.reviews.delete_review(review_id)
        self._invalidate((PROPERTY_REVIEWS,))
        return result

    async def respond_to_review(self, review_id: str, text: str) -> Any:
        review = await self._services.reviews.respond_to_review(review_id, text)
        self._invalidate((PROPERTY_REVIEWS,))
        return review

    async def moderate_review(self, review_id: str, approve: bool) -> Any:
        result = await self._services.reviews.moderate_review(review_id, approve)
        self._invalidate((MODERATION_REVIEWS,), (PROPERTY_REVIEWS,), (ADMIN_REVIEWS,))
        return result

    # Favoritos

    async def favorites(self) -> Any:
        return await self._cache.fetch((FAVORITES,), self._load_favorites)

    async def _load_favorites(self) -> Any:
        if self._session is not None:
            return await self._session.get_favorites()
        return await self._services.auth.get_favorites()

    async def add_to_favorites(self, property_id: str) -> list[str]:
        favorites = await self._require_session().add_to_favorites(property_id)
        self._invalidate((FAVORITES,))
        return favorites

    async def remove_from_favorites(self, property_id: str) -> list[str]:
        favorites = await self._require_session().remove_from_favorites(property_id)
        self._invalidate((FAVORITES,))
        return favorites

    def _require_session(self) -> SessionController:
        if self._session is None:
            raise RuntimeError("Favorites mutations require a SessionController")
        return self._session

    # Administração

    async def admin_dashboard(self) -> Any:
        return await self._cache.fetch((ADMIN_DASHBOARD,), self._services.admin.get_dashboard)

    async def admin_properties(self, params: Mapping[str, Any] | None = None) -> Any:
        params = dict(params or {})
        return await self._cache.fetch(
            (ADMIN_PROPERTIES, params), lambda: self._services.admin.get_properties(params)
        )

    async def admin_bookings(self, params: Mapping[str, Any] | None = None) -> Any:
        params = dict(params or {})
        return await self._cache.fetch(
            (ADMIN_BOOKINGS, params), lambda: self._services.admin.get_bookings(params)
        )

    async def admin_users(self, params: Mapping[str, Any] | None = None) -> Any:
        params = dict(params or {})
        return await self._cache.fetch(
            (ADMIN_USERS, params), lambda: self._services.admin.get_users(params)
        )

    async def admin_reviews(self, params: Mapping[str, Any] | None = None) -> Any:
        params = dict(params or {})
        return await self._cache.fetch(
            (ADMIN_REVIEWS, params), lambda: self._services.admin.get_reviews(params)
        )

    async def approve_property(
        self,
        property_id: str,
        is_approved: bool = True,
        rejection_reason: str | None = None,
    ) -> Any:
        result = await self._services.admin.update_property_approval(
            property_id, is_approved, rejection_reason
        )
        self._invalidate((ADMIN_PROPERTIES,), (ADMIN_DASHBOARD,), (PROPERTY, property_id))
        return result

    async def admin_delete_property(self, property_id: str) -> Any:
        result = await self._services.admin.delete_property(property_id)
        self._invalidate((ADMIN_PROPERTIES,), (ADMIN_DASHBOARD,), (PROPERTIES,))
        return result

    async def update_user_status(
        self, user_id: str, is_active: bool, reason: str | None = None
    ) -> Any:
        result = await self._services.admin.update_user_status(user_id, is_active, reason)
        self._invalidate((ADMIN_USERS,), (ADMIN_DASHBOARD,))
        return result

    async def admin_delete_review(self, review_id: str) -> Any:
        result = await self._services.admin.delete_review(review_id)
        self._invalidate((ADMIN_REVIEWS,), (PROPERTY_REVIEWS,), (ADMIN_DASHBOARD,))
        return result
