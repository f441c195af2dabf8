"""Modelos de domínio do cliente.

UserSnapshot é o ÚNICO ponto de ingestão de dados de usuário: tudo que
vem do backend ou do armazenamento passa pelo validador de favoritos.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from stayfinder.domain.enums import PricePeriod, Role

# Campos do wire (camelCase / Mongo) → nome do atributo
_WIRE_ALIASES: dict[str, str] = {
    "_id": "id",
    "profilePicture": "profile_picture",
}


def normalize_favorites(value: Any) -> list[str]:
    """Garante lista de ids de propriedades.

    None, ausente ou qualquer valor que não seja lista vira []. Itens
    populados (objetos de propriedade) são reduzidos ao seu id.
    """
    if not isinstance(value, list):
        return []

    favorites: list[str] = []
    for item in value:
        if isinstance(item, Mapping):
            item_id = item.get("_id") or item.get("id")
            if item_id:
                favorites.append(str(item_id))
        elif item is not None:
            favorites.append(str(item))
    return favorites


class UserSnapshot(BaseModel):
    """Cópia local do usuário autenticado.

    Campos desconhecidos do backend são preservados (extra="allow") para
    que merges rasos nunca descartem dados.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    name: str = ""
    email: str = ""
    role: Role = Role.USER
    profile_picture: str | None = Field(
        default=None,
        validation_alias=AliasChoices("profile_picture", "profilePicture"),
    )
    favorites: list[str] = Field(default_factory=list)

    @field_validator("favorites", mode="before")
    @classmethod
    def _normalize_favorites(cls, value: Any) -> list[str]:
        return normalize_favorites(value)

    def to_storage(self) -> dict[str, Any]:
        """Representação JSON persistida (inclui campos extras)."""
        return self.model_dump(mode="json")

    def merged(self, changes: Mapping[str, Any]) -> UserSnapshot:
        """Merge raso: campos de `changes` sobrescrevem, o resto permanece."""
        data = self.to_storage()
        for key, value in changes.items():
            data[_WIRE_ALIASES.get(key, key)] = value
        return UserSnapshot.model_validate(data)

    def with_favorites(self, favorites: Any) -> UserSnapshot:
        """Substitui apenas a lista de favoritos (normalizada)."""
        return self.model_copy(update={"favorites": normalize_favorites(favorites)})

    def has_role(self, role: Role | str) -> bool:
        return self.role == Role(role)


@dataclass(frozen=True)
class AuthResult:
    """Resultado de login/registro bem-sucedido."""

    user: UserSnapshot
    token: str


@dataclass(frozen=True)
class PriceBreakdown:
    """Detalhamento do preço de uma reserva."""

    nights: int
    subtotal: float
    cleaning_fee: float
    service_fee: float
    total: float
    price_per_night: float
    price_period: PricePeriod


@dataclass(frozen=True)
class GeoPoint:
    """Coordenada geográfica em graus decimais."""

    lat: float
    lng: float
