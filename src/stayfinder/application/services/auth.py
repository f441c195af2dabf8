"""Serviço de autenticação, perfil e favoritos."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from stayfinder.application.services.base import (
    ApiService,
    HttpTransport,
    JsonDict,
    require_field,
    resource_path,
)
from stayfinder.domain.models import AuthResult, UserSnapshot
from stayfinder.domain.payloads import (
    LoginPayload,
    PasswordResetPayload,
    PasswordResetRequestPayload,
    ProfileUpdatePayload,
    RegisterPayload,
    validate_payload,
)
from stayfinder.errors import ApiError
from stayfinder.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

PASSWORD_RESET_REQUESTED_MESSAGE = (
    "If an account with that email exists, a password reset link has been sent."
)
PASSWORD_RESET_DONE_MESSAGE = "Your password has been reset successfully."


def _parse_user(data: Any) -> UserSnapshot:
    """Valida o campo `user` da resposta; formato inesperado vira ApiError."""
    try:
        return UserSnapshot.model_validate(require_field(data, "user"))
    except ValidationError as exc:
        logger.warning("unexpected_user_payload", extra={"error_count": exc.error_count()})
        raise ApiError("Unexpected response from server: invalid 'user'") from exc


def _user_fields(data: Any) -> JsonDict:
    fields = require_field(data, "user")
    if not isinstance(fields, Mapping):
        raise ApiError("Unexpected response from server: invalid 'user'")
    return dict(fields)


def _auth_result(data: Any) -> AuthResult:
    user = _parse_user(data)
    token = require_field(data, "token")
    if not isinstance(token, str) or not token:
        raise ApiError("Unexpected response from server: missing 'token'")
    return AuthResult(user=user, token=token)


class AuthService(ApiService):
    """Endpoints /auth/*."""

    def __init__(self, http: HttpTransport, password_reset_soft_404: bool = True) -> None:
        super().__init__(http)
        self._password_reset_soft_404 = password_reset_soft_404

    async def register(self, user_data: Mapping[str, Any]) -> AuthResult:
        payload = validate_payload(RegisterPayload, user_data)
        data = await self._http.post("/auth/register", json=payload.to_wire())
        return _auth_result(data)

    async def login(self, email: str, password: str) -> AuthResult:
        payload = validate_payload(LoginPayload, {"email": email, "password": password})
        data = await self._http.post("/auth/login", json=payload.to_wire())
        return _auth_result(data)

    async def get_current_user(self) -> UserSnapshot:
        data = await self._http.get("/auth/me")
        return _parse_user(data)

    async def update_profile(self, changes: Mapping[str, Any]) -> JsonDict:
        """Atualiza o perfil; retorna os campos do usuário devolvidos."""
        payload = validate_payload(ProfileUpdatePayload, changes)
        data = await self._http.put("/auth/me", json=payload.to_wire())
        return _user_fields(data)

    async def get_favorites(self) -> list[JsonDict]:
        data = await self._http.get("/auth/favorites")
        favorites = require_field(data, "favorites")
        return list(favorites or [])

    async def add_to_favorites(self, property_id: str) -> JsonDict:
        """Retorna o usuário atualizado (campo `favorites` é o que importa)."""
        data = await self._http.post(resource_path("auth", "favorites", property_id))
        return _user_fields(data)

    async def remove_from_favorites(self, property_id: str) -> JsonDict:
        data = await self._http.delete(resource_path("auth", "favorites", property_id))
        return _user_fields(data)

    async def request_password_reset(self, email: str) -> JsonDict:
        payload = validate_payload(PasswordResetRequestPayload, {"email": email})
        return await self._password_reset_call(
            "/auth/forgot-password", payload.to_wire(), PASSWORD_RESET_REQUESTED_MESSAGE
        )

    async def reset_password(self, token: str, password: str) -> JsonDict:
        payload = validate_payload(PasswordResetPayload, {"token": token, "password": password})
        return await self._password_reset_call(
            "/auth/reset-password", payload.to_wire(), PASSWORD_RESET_DONE_MESSAGE
        )

    async def _password_reset_call(
        self, path: str, body: JsonDict, success_message: str
    ) -> JsonDict:
        try:
            data = await self._http.post(path, json=body)
        except ApiError as exc:
            if exc.status_code == 404 and self._password_reset_soft_404:
                # Backend sem o endpoint: fluxo segue como sucesso (modo demonstração)
                logger.warning("password_reset_endpoint_missing", extra={"path": path})
                return {"success": True, "message": success_message}
            raise
        if isinstance(data, Mapping):
            return {"success": True, "message": success_message, **data}
        return {"success": True, "message": success_message}
