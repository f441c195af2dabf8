"""Serviços REST do marketplace.

ServiceRegistry agrupa uma instância de cada serviço sobre o mesmo
transporte HTTP (global ou amarrado a um RequestScope).
"""

from __future__ import annotations

from dataclasses import dataclass

from stayfinder.application.services.admin import AdminService
from stayfinder.application.services.auth import AuthService
from stayfinder.application.services.base import HttpTransport
from stayfinder.application.services.bookings import BookingService
from stayfinder.application.services.properties import PropertyService
from stayfinder.application.services.reviews import ReviewService
from stayfinder.application.services.uploads import UploadService


@dataclass(frozen=True)
class ServiceRegistry:
    auth: AuthService
    properties: PropertyService
    bookings: BookingService
    reviews: ReviewService
    uploads: UploadService
    admin: AdminService

    @classmethod
    def build(cls, http: HttpTransport, password_reset_soft_404: bool = True) -> ServiceRegistry:
        return cls(
            auth=AuthService(http, password_reset_soft_404=password_reset_soft_404),
            properties=PropertyService(http),
            bookings=BookingService(http),
            reviews=ReviewService(http),
            uploads=UploadService(http),
            admin=AdminService(http),
        )


__all__ = [
    "ServiceRegistry",
    "AuthService",
    "PropertyService",
    "BookingService",
    "ReviewService",
    "UploadService",
    "AdminService",
]
