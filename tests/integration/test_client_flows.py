"""Fluxos ponta a ponta do StayfinderClient contra um backend falso.

Usa httpx.MockTransport (FakeBackend), relógio fixo e agendador manual.
"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from stayfinder.client import StayfinderClient
from stayfinder.domain.session import SessionStatus
from stayfinder.errors import UnauthorizedError
from stayfinder.infra.storage import FileStorage, InMemoryStorage
from tests.helpers.fakes import FakeBackend, FakeScheduler, envelope

USER = {
    "_id": "65f1a2b3c4d5e6f7a8b9c0d1",
    "name": "Ana",
    "email": "ana@example.com",
    "role": "host",
    "favorites": [],
    "bio": "Surfer",
}


def _make_client(settings, backend, clock, scheduler, storage=None, navigator=None):
    return StayfinderClient(
        settings,
        storage=storage if storage is not None else InMemoryStorage(),
        transport=backend.transport,
        clock=clock,
        scheduler=scheduler,
        navigator=navigator,
    )


@pytest.fixture
def logged_in_backend(backend: FakeBackend, jwt_factory) -> FakeBackend:
    backend.route("POST", "/auth/login", {"user": USER, "token": jwt_factory(expires_in=3600)})
    backend.route("GET", "/auth/me", {"user": USER})
    return backend


class TestLoginFlow:
    """Login, refresh agendado e logout."""

    @pytest.mark.asyncio
    async def test_login_schedules_refresh_before_expiry(
        self, settings, logged_in_backend, clock, scheduler: FakeScheduler
    ):
        async with _make_client(settings, logged_in_backend, clock, scheduler) as client:
            assert client.session.session.status is SessionStatus.UNAUTHENTICATED

            user = await client.session.login("ana@example.com", "secret1")

            assert user.name == "Ana"
            assert client.session.is_authenticated is True
            assert client.tokens.get_user().id == USER["_id"]
            assert [t.delay for t in scheduler.active] == [pytest.approx(3300)]

            client.session.logout()

            assert scheduler.active == []
            assert client.tokens.get_token() is None

    @pytest.mark.asyncio
    async def test_refresh_with_malformed_user_logs_out(
        self, settings, logged_in_backend, clock, scheduler: FakeScheduler
    ):
        """Rebusca com usuário inválido encerra a sessão como qualquer falha."""
        async with _make_client(settings, logged_in_backend, clock, scheduler) as client:
            await client.session.login("ana@example.com", "secret1")
            logged_in_backend.route("GET", "/auth/me", {"user": {"name": "A", "role": "superhost"}})

            scheduler.active[0].fire()
            for task in list(client.tokens._pending):
                await task

            assert client.session.session.status is SessionStatus.UNAUTHENTICATED
            assert client.tokens.get_token() is None
            assert client.tokens.get_user() is None

    @pytest.mark.asyncio
    async def test_authenticated_requests_carry_token(
        self, settings, logged_in_backend, clock, scheduler, jwt_factory
    ):
        logged_in_backend.route("GET", "/bookings", {"bookings": [], "pagination": {}})
        async with _make_client(settings, logged_in_backend, clock, scheduler) as client:
            await client.session.login("ana@example.com", "secret1")
            await client.queries.user_bookings()

        request = logged_in_backend.calls("GET", "/bookings")[0]
        assert request.headers["Authorization"].startswith("Bearer ")


class TestReload:
    """Bootstrap a partir de armazenamento persistido."""

    @pytest.mark.asyncio
    async def test_reload_restores_session(
        self, settings, logged_in_backend, clock, scheduler, tmp_path
    ):
        path = tmp_path / "session.json"
        async with _make_client(
            settings, logged_in_backend, clock, scheduler, FileStorage(path)
        ) as first:
            await first.session.login("ana@example.com", "secret1")

        async with _make_client(
            settings, logged_in_backend, clock, FakeScheduler(), FileStorage(path)
        ) as second:
            assert second.session.is_authenticated is True
            assert second.session.user.name == "Ana"

        assert logged_in_backend.calls("GET", "/auth/me") == []

    @pytest.mark.asyncio
    async def test_reload_with_expired_token(
        self, settings, backend: FakeBackend, clock, scheduler, jwt_factory, tmp_path
    ):
        """Token vencido: storage limpo e nenhuma chamada ao backend."""
        path = tmp_path / "session.json"
        seed = _make_client(settings, backend, clock, scheduler, FileStorage(path))
        seed.tokens.set_token(jwt_factory(expires_in=-10))
        seed.tokens.set_user(USER)

        async with _make_client(
            settings, backend, clock, scheduler, FileStorage(path)
        ) as client:
            assert client.session.session.status is SessionStatus.UNAUTHENTICATED
            assert client.session.is_loading is False

        assert FileStorage(path).get(settings.token_key) is None
        assert FileStorage(path).get(settings.user_key) is None
        assert backend.requests == []
        await seed.close()


class TestProfileAndFavorites:
    """Atualização de perfil e favoritos."""

    @pytest.mark.asyncio
    async def test_update_profile_merge(self, settings, logged_in_backend, clock, scheduler):
        logged_in_backend.route("PUT", "/auth/me", {"user": {"name": "Ana Maria"}})
        async with _make_client(settings, logged_in_backend, clock, scheduler) as client:
            await client.session.login("ana@example.com", "secret1")

            merged = await client.session.update_profile({"name": "Ana Maria"})

            assert merged.name == "Ana Maria"
            assert merged.email == "ana@example.com"
            assert merged.model_extra["bio"] == "Surfer"
            assert client.tokens.get_user().name == "Ana Maria"

    @pytest.mark.asyncio
    async def test_add_to_favorites(self, settings, logged_in_backend, clock, scheduler):
        logged_in_backend.route(
            "POST",
            "/auth/favorites/p42",
            {"user": {**USER, "favorites": [{"_id": "p42", "title": "Loft"}]}},
        )
        async with _make_client(settings, logged_in_backend, clock, scheduler) as client:
            await client.session.login("ana@example.com", "secret1")

            favorites = await client.queries.add_to_favorites("p42")

            assert favorites == ["p42"]
            assert client.session.user.favorites == ["p42"]
            assert client.tokens.get_user().favorites == ["p42"]


class TestHostBookings:
    """Invalidação depois de mudar o status de uma reserva."""

    @pytest.mark.asyncio
    async def test_confirm_booking_refetches_host_bookings(
        self, settings, logged_in_backend, clock, scheduler
    ):
        pending = {"bookings": [{"_id": "b1", "status": "pending"}]}
        confirmed = {"bookings": [{"_id": "b1", "status": "confirmed"}]}
        responses = iter([pending, confirmed])

        def host_bookings(_request):
            return httpx.Response(200, json=envelope(next(responses)))

        logged_in_backend.route("GET", "/bookings/host", handler=host_bookings)
        logged_in_backend.route(
            "PATCH", "/bookings/b1/status", {"booking": {"_id": "b1", "status": "confirmed"}}
        )

        async with _make_client(settings, logged_in_backend, clock, scheduler) as client:
            await client.session.login("ana@example.com", "secret1")

            assert await client.queries.host_bookings() == pending
            assert await client.queries.host_bookings() == pending
            await client.queries.update_booking_status("b1", "confirmed")
            assert await client.queries.host_bookings() == confirmed

        assert len(logged_in_backend.calls("GET", "/bookings/host")) == 2

    @pytest.mark.asyncio
    async def test_concurrent_status_updates_then_read(
        self, settings, logged_in_backend, clock, scheduler
    ):
        statuses = {"b1": "pending", "b2": "pending"}

        def host_bookings(_request):
            bookings = [{"_id": key, "status": value} for key, value in sorted(statuses.items())]
            return httpx.Response(200, json=envelope({"bookings": bookings}))

        def update_status(request):
            booking_id = request.url.path.split("/")[-2]
            statuses[booking_id] = json.loads(request.content)["status"]
            return httpx.Response(200, json=envelope({"booking": {"_id": booking_id}}))

        logged_in_backend.route("GET", "/bookings/host", handler=host_bookings)
        logged_in_backend.route("PATCH", "/bookings/b1/status", handler=update_status)
        logged_in_backend.route("PATCH", "/bookings/b2/status", handler=update_status)

        async with _make_client(settings, logged_in_backend, clock, scheduler) as client:
            await client.session.login("ana@example.com", "secret1")
            await client.queries.host_bookings()

            await asyncio.gather(
                client.queries.update_booking_status("b1", "confirmed"),
                client.queries.update_booking_status("b2", "cancelled", "Dates unavailable"),
            )

            result = await client.queries.host_bookings()

        assert [b["status"] for b in result["bookings"]] == ["confirmed", "cancelled"]


class TestUnauthorized:
    """Tratamento global de 401."""

    @pytest.mark.asyncio
    async def test_401_logs_out_and_redirects(
        self, settings, logged_in_backend, clock, scheduler
    ):
        logged_in_backend.route(
            "GET", "/bookings/b9", status=401, body={"success": False, "message": "Token expired"}
        )
        async with _make_client(settings, logged_in_backend, clock, scheduler) as client:
            await client.session.login("ana@example.com", "secret1")
            client.navigator.navigate("/bookings/b9")

            with pytest.raises(UnauthorizedError):
                await client.bookings.get_booking("b9")

            assert client.session.is_authenticated is False
            assert client.tokens.get_token() is None
            assert scheduler.active == []
            assert client.navigator.current_path == settings.login_path

    @pytest.mark.asyncio
    async def test_guard_after_401_redirects_with_origin(
        self, settings, logged_in_backend, clock, scheduler
    ):
        async with _make_client(settings, logged_in_backend, clock, scheduler) as client:
            result = client.guard.enforce("/host/dashboard", "host")

            assert result.allowed is False
            assert client.navigator.state == {"from": "/host/dashboard"}

            await client.session.login("ana@example.com", "secret1")

            assert client.guard.check("/host/dashboard", "host").allowed is True
            assert client.guard.post_login_destination() == "/host/dashboard"
