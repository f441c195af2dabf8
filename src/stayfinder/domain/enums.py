"""Enums do domínio do marketplace (valores do wire do backend)."""

from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    """Papel do usuário."""

    USER = "user"
    HOST = "host"
    ADMIN = "admin"


class BookingStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PaymentStatus(StrEnum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"


class PricePeriod(StrEnum):
    """Período ao qual o preço anunciado se refere."""

    NIGHT = "night"
    WEEK = "week"
    MONTH = "month"


class PropertyType(StrEnum):
    APARTMENT = "apartment"
    HOUSE = "house"
    CONDO = "condo"
    VILLA = "villa"
    CABIN = "cabin"
    COTTAGE = "cottage"
    HOTEL = "hotel"
    OTHER = "other"


class BlockReason(StrEnum):
    """Motivo de bloqueio de datas pelo anfitrião."""

    MAINTENANCE = "maintenance"
    PERSONAL_USE = "personal_use"
    UNAVAILABLE = "unavailable"
    OTHER = "other"
