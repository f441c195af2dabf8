"""Schemas de payload das requisições ao backend.

Todo payload é validado no cliente antes de qualquer I/O. Falhas viram
PayloadValidationError com mensagens por campo e nunca chegam à rede.
Serialização usa os nomes camelCase do backend (by_alias).
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from typing import Any, Literal, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from stayfinder.domain.enums import BlockReason, PricePeriod, PropertyType
from stayfinder.errors import PayloadValidationError

PayloadT = TypeVar("PayloadT", bound="Payload")


class Payload(BaseModel):
    """Base: aceita snake_case ou camelCase e serializa em camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="forbid",
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# -----------------------------------------------------------------------------
# Autenticação e perfil
# -----------------------------------------------------------------------------


class LoginPayload(Payload):
    email: EmailStr
    password: str = Field(min_length=6)


class RegisterPayload(Payload):
    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(min_length=8, max_length=30)
    role: Literal["user", "host"] = "user"
    phone: str | None = None


class ProfileUpdatePayload(Payload):
    name: str | None = Field(default=None, min_length=2, max_length=50)
    phone: str | None = None
    bio: str | None = Field(default=None, max_length=500)
    profile_picture: str | None = None

    @model_validator(mode="after")
    def _require_any_field(self) -> ProfileUpdatePayload:
        if not self.model_dump(exclude_none=True):
            raise ValueError("At least one profile field is required")
        return self


class PasswordResetRequestPayload(Payload):
    email: EmailStr


class PasswordResetPayload(Payload):
    token: str = Field(min_length=1)
    password: str = Field(min_length=8, max_length=30)


# -----------------------------------------------------------------------------
# Propriedades
# -----------------------------------------------------------------------------


class Address(Payload):
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip_code: str = Field(min_length=1)
    country: str = Field(min_length=1)


class Location(Payload):
    """Ponto GeoJSON: coordinates = [longitude, latitude]."""

    type: Literal["Point"] = "Point"
    coordinates: list[float] = Field(min_length=2, max_length=2)


class PropertyImage(Payload):
    url: str = Field(min_length=1)
    caption: str = ""


class AdditionalRule(Payload):
    title: str = ""
    description: str = ""


class HouseRules(Payload):
    check_in: str = "3:00 PM"
    check_out: str = "11:00 AM"
    smoking: bool = False
    pets: bool = False
    parties: bool = False
    events: bool = False
    quiet_hours: str = "10:00 PM - 7:00 AM"
    additional_rules: list[AdditionalRule] = Field(default_factory=list)


class PropertyPayload(Payload):
    title: str = Field(min_length=5, max_length=100)
    description: str = Field(min_length=20, max_length=2000)
    type: PropertyType
    price: float = Field(ge=0)
    price_period: PricePeriod = PricePeriod.NIGHT
    bedrooms: int = Field(ge=0)
    bathrooms: float = Field(ge=0)
    max_guests: int = Field(ge=1)
    address: Address
    location: Location
    amenities: list[str] = Field(default_factory=list)
    images: list[PropertyImage] = Field(min_length=1)
    rules: HouseRules = Field(default_factory=HouseRules)


class PropertyUpdatePayload(Payload):
    """Atualização parcial: apenas campos informados são enviados."""

    title: str | None = Field(default=None, min_length=5, max_length=100)
    description: str | None = Field(default=None, min_length=20, max_length=2000)
    type: PropertyType | None = None
    price: float | None = Field(default=None, ge=0)
    price_period: PricePeriod | None = None
    bedrooms: int | None = Field(default=None, ge=0)
    bathrooms: float | None = Field(default=None, ge=0)
    max_guests: int | None = Field(default=None, ge=1)
    address: Address | None = None
    location: Location | None = None
    amenities: list[str] | None = None
    images: list[PropertyImage] | None = Field(default=None, min_length=1)
    rules: HouseRules | None = None
    is_available: bool | None = None


class BlockDatesPayload(Payload):
    dates: list[date] = Field(min_length=1)
    reason: BlockReason = BlockReason.UNAVAILABLE
    note: str | None = Field(default=None, max_length=500)


class UnblockDatesPayload(Payload):
    dates: list[date] = Field(min_length=1)


# -----------------------------------------------------------------------------
# Reservas
# -----------------------------------------------------------------------------


class BookingPayload(Payload):
    property_id: str = Field(min_length=1)
    check_in_date: date
    check_out_date: date
    number_of_guests: int = Field(ge=1)
    special_requests: str = Field(default="", max_length=500)
    total_price: float | None = Field(default=None, gt=0)

    @field_validator("check_in_date")
    @classmethod
    def _check_in_not_past(cls, value: date) -> date:
        if value < date.today():
            raise ValueError("Check-in date cannot be in the past")
        return value

    @model_validator(mode="after")
    def _check_out_after_check_in(self) -> BookingPayload:
        if self.check_out_date <= self.check_in_date:
            raise ValueError("Check-out date must be after check-in date")
        return self


class BookingStatusPayload(Payload):
    status: Literal["confirmed", "cancelled"]
    reason: str | None = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def _reason_required_on_cancel(self) -> BookingStatusPayload:
        if self.status == "cancelled" and not self.reason:
            raise ValueError("Cancellation reason is required")
        return self


class PaymentStatusPayload(Payload):
    payment_status: Literal["paid", "refunded", "failed"]
    payment_id: str | None = None


class AvailabilityQuery(Payload):
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def _end_after_start(self) -> AvailabilityQuery:
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self


# -----------------------------------------------------------------------------
# Avaliações
# -----------------------------------------------------------------------------


class ReviewPayload(Payload):
    property_id: str = Field(min_length=1)
    booking_id: str = Field(min_length=1)
    rating: int = Field(ge=1, le=5)
    comment: str = Field(min_length=10, max_length=1000)


class ReviewUpdatePayload(Payload):
    rating: int | None = Field(default=None, ge=1, le=5)
    comment: str | None = Field(default=None, min_length=10, max_length=1000)


class ReviewResponsePayload(Payload):
    text: str = Field(min_length=10, max_length=1000)


class ReviewReportPayload(Payload):
    reason: str = Field(min_length=10, max_length=500)


# -----------------------------------------------------------------------------
# Administração
# -----------------------------------------------------------------------------


class PropertyApprovalPayload(Payload):
    is_approved: bool
    rejection_reason: str | None = None


class UserStatusPayload(Payload):
    is_active: bool
    reason: str | None = None


def _field_errors(exc: ValidationError) -> list[dict[str, str]]:
    errors: list[dict[str, str]] = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ())) or "__root__"
        message = str(err.get("msg", "Invalid value"))
        # Mensagens de validators customizados chegam como "Value error, ..."
        message = message.removeprefix("Value error, ")
        errors.append({"field": field, "message": message})
    return errors


def validate_payload(model: type[PayloadT], data: Mapping[str, Any] | PayloadT) -> PayloadT:
    """Valida dados de entrada contra o schema.

    Raises:
        PayloadValidationError: com a lista de erros por campo
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(dict(data))
    except ValidationError as exc:
        field_errors = _field_errors(exc)
        message = field_errors[0]["message"] if field_errors else "Invalid payload"
        raise PayloadValidationError(message, field_errors=field_errors) from exc
