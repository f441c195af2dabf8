"""Raiz de composição do SDK.

StayfinderClient monta, uma única vez por processo/tela, todas as peças
compartilhadas: armazenamento, TokenStore, cliente HTTP, serviços,
SessionController, cache de consultas, Navigator e RouteGuard.

Uso típico:
    async with StayfinderClient() as client:
        await client.session.login("ana@example.com", "s3cret-pass")
        bookings = await client.queries.user_bookings()
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import httpx

from stayfinder.application.geolocation import PositionProvider, find_nearest, locate
from stayfinder.application.navigation import Navigator
from stayfinder.application.queries import MarketplaceQueries
from stayfinder.application.query_cache import QueryCache
from stayfinder.application.route_guard import RouteGuard
from stayfinder.application.services import (
    AdminService,
    AuthService,
    BookingService,
    PropertyService,
    ReviewService,
    ServiceRegistry,
    UploadService,
)
from stayfinder.application.session_controller import SessionController
from stayfinder.application.token_store import Scheduler, TokenStore
from stayfinder.config.settings import Settings, get_settings
from stayfinder.domain.models import GeoPoint
from stayfinder.domain.session import Session
from stayfinder.infra.http import HttpClient, create_http_client
from stayfinder.infra.request_scope import RequestScope
from stayfinder.infra.storage import KeyValueStorage, create_storage
from stayfinder.observability.logging import configure_logging, get_logger

logger: logging.Logger = get_logger(__name__)


class StayfinderClient:
    """Contexto compartilhado do cliente do marketplace."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        storage: KeyValueStorage | None = None,
        navigator: Navigator | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] | None = None,
        scheduler: Scheduler | None = None,
        setup_logging: bool = False,
    ) -> None:
        self.settings = settings or get_settings()
        if setup_logging:
            # Opt-in: uma aplicação hospedeira normalmente já configurou o logging
            configure_logging(
                self.settings.log_level,
                self.settings.service_name,
                self.settings.log_format,
            )
        for error in self.settings.validate_all():
            logger.warning("config_validation_error", extra={"detail": error})

        self.storage = storage if storage is not None else create_storage(self.settings)
        self.tokens = TokenStore(
            self.storage,
            token_key=self.settings.token_key,
            user_key=self.settings.user_key,
            refresh_lead_seconds=self.settings.token_refresh_lead_seconds,
            clock=clock,
            scheduler=scheduler,
        )
        self.navigator = navigator or Navigator()
        self.http: HttpClient = create_http_client(
            self.settings,
            token_provider=self.tokens.get_token,
            on_unauthorized=self._handle_unauthorized,
            transport=transport,
        )
        self.services = ServiceRegistry.build(
            self.http, password_reset_soft_404=self.settings.password_reset_soft_404
        )
        self.session = SessionController(self.services.auth, self.tokens)
        self.cache = QueryCache(
            stale_seconds=self.settings.query_stale_seconds,
            retry=self.settings.query_retry,
        )
        self.queries = MarketplaceQueries(self.cache, self.services, self.session)
        self.guard = RouteGuard(
            lambda: self.session.session,
            self.navigator,
            login_path=self.settings.login_path,
            home_path=self.settings.home_path,
        )

    # Atalhos para os serviços

    @property
    def auth(self) -> AuthService:
        return self.services.auth

    @property
    def properties(self) -> PropertyService:
        return self.services.properties

    @property
    def bookings(self) -> BookingService:
        return self.services.bookings

    @property
    def reviews(self) -> ReviewService:
        return self.services.reviews

    @property
    def uploads(self) -> UploadService:
        return self.services.uploads

    @property
    def admin(self) -> AdminService:
        return self.services.admin

    # Ciclo de vida

    async def start(self) -> Session:
        """Executa o bootstrap da sessão."""
        return await self.session.bootstrap()

    async def close(self) -> None:
        await self.cache.drain()
        await self.http.close()

    async def __aenter__(self) -> StayfinderClient:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def scoped(self, scope: RequestScope) -> ServiceRegistry:
        """Serviços cujas requisições são canceladas quando `scope` fecha."""
        return ServiceRegistry.build(
            self.http.with_scope(scope),
            password_reset_soft_404=self.settings.password_reset_soft_404,
        )

    async def locate(self, provider: PositionProvider) -> GeoPoint:
        return await locate(provider, self.settings.geolocation_timeout_seconds)

    async def nearest_properties(
        self,
        provider: PositionProvider,
        properties: list[dict[str, Any]],
        limit: int | None = None,
    ) -> list[tuple[Any, float]]:
        return await find_nearest(
            provider, properties, limit, self.settings.geolocation_timeout_seconds
        )

    def _handle_unauthorized(self) -> None:
        """Resposta 401 em qualquer chamada: encerra sessão e vai ao login."""
        self.session.handle_unauthorized()
        self.navigator.navigate(self.settings.login_path, replace=True)
