"""Testes para application/session_controller.py.

AuthService é mockado; TokenStore real sobre InMemoryStorage com relógio
e agendador controlados.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from stayfinder.application.services.auth import AuthService
from stayfinder.application.session_controller import SessionController
from stayfinder.application.token_store import TokenStore
from stayfinder.domain.models import AuthResult, UserSnapshot
from stayfinder.domain.session import SessionStatus
from stayfinder.errors import ApiError, PayloadValidationError
from stayfinder.infra.storage import InMemoryStorage
from tests.helpers.fakes import FakeScheduler


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def tokens(storage: InMemoryStorage, clock, scheduler: FakeScheduler) -> TokenStore:
    return TokenStore(storage, clock=clock, scheduler=scheduler)


@pytest.fixture
def auth() -> MagicMock:
    return MagicMock(spec=AuthService)


@pytest.fixture
def controller(auth: MagicMock, tokens: TokenStore) -> SessionController:
    return SessionController(auth, tokens)


def _user(**fields) -> UserSnapshot:
    return UserSnapshot.model_validate({"id": "1", "name": "Ana", "email": "a@x.com", **fields})


async def _drain(tokens: TokenStore) -> None:
    for task in list(tokens._pending):
        await task


class TestBootstrap:
    """Testes para bootstrap()."""

    @pytest.mark.asyncio
    async def test_no_token_unauthenticated(
        self, controller: SessionController, storage: InMemoryStorage
    ) -> None:
        session = await controller.bootstrap()
        assert session.status == SessionStatus.UNAUTHENTICATED
        assert session.is_loading is False
        assert session.user is None

    @pytest.mark.asyncio
    async def test_expired_token_clears_storage(
        self,
        controller: SessionController,
        tokens: TokenStore,
        storage: InMemoryStorage,
        jwt_factory,
        auth: MagicMock,
    ) -> None:
        """Token expirado: storage limpo, sem chamada ao backend."""
        tokens.set_token(jwt_factory(expires_in=-60))
        tokens.set_user(_user())

        session = await controller.bootstrap()

        assert session.status == SessionStatus.UNAUTHENTICATED
        assert storage.snapshot() == {}
        auth.get_current_user.assert_not_called()

    @pytest.mark.asyncio
    async def test_valid_token_with_cached_user(
        self,
        controller: SessionController,
        tokens: TokenStore,
        scheduler: FakeScheduler,
        jwt_factory,
        auth: MagicMock,
    ) -> None:
        """Snapshot em cache é adotado e o refresh é agendado."""
        tokens.set_token(jwt_factory(expires_in=3600))
        tokens.set_user(_user(favorites=None))

        session = await controller.bootstrap()

        assert session.status == SessionStatus.AUTHENTICATED
        assert session.is_authenticated is True
        assert session.user.favorites == []
        auth.get_current_user.assert_not_called()
        assert scheduler.active[0].delay == pytest.approx(3300)

    @pytest.mark.asyncio
    async def test_valid_token_without_cache_fetches_user(
        self,
        controller: SessionController,
        tokens: TokenStore,
        jwt_factory,
        auth: MagicMock,
    ) -> None:
        tokens.set_token(jwt_factory(expires_in=3600))
        auth.get_current_user = AsyncMock(return_value=_user())

        session = await controller.bootstrap()

        assert session.status == SessionStatus.AUTHENTICATED
        assert tokens.get_user().to_storage() == _user().to_storage()

    @pytest.mark.asyncio
    async def test_fetch_failure_unauthenticated(
        self,
        controller: SessionController,
        tokens: TokenStore,
        storage: InMemoryStorage,
        jwt_factory,
        auth: MagicMock,
    ) -> None:
        tokens.set_token(jwt_factory(expires_in=3600))
        auth.get_current_user = AsyncMock(side_effect=ApiError("boom", status_code=500))

        session = await controller.bootstrap()

        assert session.status == SessionStatus.UNAUTHENTICATED
        assert storage.snapshot() == {}

    @pytest.mark.asyncio
    async def test_unexpected_error_never_stays_unknown(
        self,
        controller: SessionController,
        tokens: TokenStore,
        jwt_factory,
        auth: MagicMock,
    ) -> None:
        tokens.set_token(jwt_factory(expires_in=3600))
        auth.get_current_user = AsyncMock(side_effect=RuntimeError("bug"))

        session = await controller.bootstrap()

        assert session.status == SessionStatus.UNAUTHENTICATED
        assert session.is_loading is False

    @pytest.mark.asyncio
    async def test_bootstrap_is_idempotent(self, controller: SessionController) -> None:
        first = await controller.bootstrap()
        second = await controller.bootstrap()
        assert first is second


class TestLoginLogout:
    """Testes para login/register/logout."""

    @pytest.mark.asyncio
    async def test_login_persists_and_schedules(
        self,
        controller: SessionController,
        tokens: TokenStore,
        scheduler: FakeScheduler,
        jwt_factory,
        auth: MagicMock,
    ) -> None:
        """Login com exp = agora+3600: refresh agendado para ~3300 s."""
        token = jwt_factory(expires_in=3600)
        auth.login = AsyncMock(return_value=AuthResult(user=_user(), token=token))
        await controller.bootstrap()

        user = await controller.login("a@x.com", "secret1")

        assert user.id == "1"
        assert controller.is_authenticated is True
        assert controller.error is None
        assert tokens.get_token() == token
        assert tokens.get_user().id == "1"
        assert len(scheduler.active) == 1
        assert scheduler.active[0].delay == pytest.approx(3300)

    @pytest.mark.asyncio
    async def test_login_failure_sets_error_and_commits_nothing(
        self,
        controller: SessionController,
        storage: InMemoryStorage,
        auth: MagicMock,
    ) -> None:
        auth.login = AsyncMock(side_effect=ApiError("Invalid credentials", status_code=400))
        await controller.bootstrap()

        with pytest.raises(ApiError):
            await controller.login("a@x.com", "wrong-pass")

        assert controller.session.status == SessionStatus.UNAUTHENTICATED
        assert controller.error == "Invalid credentials"
        assert controller.is_loading is False
        assert storage.snapshot() == {}

    @pytest.mark.asyncio
    async def test_login_validation_error_propagates(
        self, controller: SessionController, auth: MagicMock
    ) -> None:
        auth.login = AsyncMock(side_effect=PayloadValidationError("Invalid email"))
        await controller.bootstrap()

        with pytest.raises(PayloadValidationError):
            await controller.login("nope", "secret1")
        assert controller.error == "Invalid email"

    @pytest.mark.asyncio
    async def test_register_authenticates(
        self, controller: SessionController, jwt_factory, auth: MagicMock
    ) -> None:
        auth.register = AsyncMock(
            return_value=AuthResult(user=_user(role="host"), token=jwt_factory())
        )
        await controller.bootstrap()

        user = await controller.register({"name": "Ana", "email": "a@x.com"})

        assert user.role == "host"
        assert controller.session.status == SessionStatus.AUTHENTICATED

    @pytest.mark.asyncio
    async def test_logout_cancels_refresh_and_clears(
        self,
        controller: SessionController,
        storage: InMemoryStorage,
        scheduler: FakeScheduler,
        jwt_factory,
        auth: MagicMock,
    ) -> None:
        auth.login = AsyncMock(return_value=AuthResult(user=_user(), token=jwt_factory()))
        await controller.bootstrap()
        await controller.login("a@x.com", "secret1")

        controller.logout()

        assert controller.session.status == SessionStatus.UNAUTHENTICATED
        assert controller.user is None
        assert controller.error is None
        assert storage.snapshot() == {}
        assert scheduler.active == []
        assert controller.refresh_scheduled is False

    @pytest.mark.asyncio
    async def test_handle_unauthorized(
        self,
        controller: SessionController,
        storage: InMemoryStorage,
        scheduler: FakeScheduler,
        jwt_factory,
        auth: MagicMock,
    ) -> None:
        auth.login = AsyncMock(return_value=AuthResult(user=_user(), token=jwt_factory()))
        await controller.bootstrap()
        await controller.login("a@x.com", "secret1")

        controller.handle_unauthorized()

        assert controller.is_authenticated is False
        assert storage.snapshot() == {}
        assert scheduler.active == []


class TestProfileAndFavorites:
    """Testes para update_profile e favoritos."""

    @pytest.fixture
    def login_as(self, controller: SessionController, jwt_factory, auth: MagicMock):
        async def _login() -> SessionController:
            auth.login = AsyncMock(
                return_value=AuthResult(
                    user=_user(favorites=["p0"], bio="old"), token=jwt_factory()
                )
            )
            await controller.bootstrap()
            await controller.login("a@x.com", "secret1")
            return controller

        return _login

    @pytest.mark.asyncio
    async def test_update_profile_shallow_merge(
        self, login_as, tokens: TokenStore, auth: MagicMock
    ) -> None:
        """Campos devolvidos sobrescrevem; demais permanecem."""
        logged_in = await login_as()
        auth.update_profile = AsyncMock(return_value={"name": "New", "profilePicture": "x.png"})

        merged = await logged_in.update_profile({"name": "New"})

        assert merged.name == "New"
        assert merged.profile_picture == "x.png"
        assert merged.email == "a@x.com"
        assert merged.favorites == ["p0"]
        assert merged.model_extra["bio"] == "old"
        assert tokens.get_user().to_storage() == merged.to_storage()

    @pytest.mark.asyncio
    async def test_update_profile_failure_keeps_state(
        self, login_as, auth: MagicMock
    ) -> None:
        logged_in = await login_as()
        before = logged_in.user
        auth.update_profile = AsyncMock(side_effect=ApiError("Nope", status_code=400))

        with pytest.raises(ApiError):
            await logged_in.update_profile({"name": "New"})

        assert logged_in.user is before
        assert logged_in.error == "Nope"
        assert logged_in.is_loading is False

    @pytest.mark.asyncio
    async def test_update_profile_after_logout_is_discarded(
        self, login_as, tokens: TokenStore, auth: MagicMock
    ) -> None:
        """Resposta tardia depois do logout não recria o usuário."""
        logged_in = await login_as()
        gate = asyncio.Event()

        async def slow_update(_changes):
            await gate.wait()
            return {"name": "Late"}

        auth.update_profile = AsyncMock(side_effect=slow_update)
        pending = asyncio.ensure_future(logged_in.update_profile({"name": "Late"}))
        await asyncio.sleep(0)
        logged_in.logout()
        gate.set()

        assert await pending is None
        assert logged_in.user is None
        assert tokens.get_user() is None

    @pytest.mark.asyncio
    async def test_update_profile_from_previous_user_is_discarded(
        self, login_as, tokens: TokenStore, auth: MagicMock, jwt_factory
    ) -> None:
        """Logout + novo login antes da resposta: o novo usuário fica intacto."""
        logged_in = await login_as()
        gate = asyncio.Event()

        async def slow_update(_changes):
            await gate.wait()
            return {"name": "Ana Updated"}

        auth.update_profile = AsyncMock(side_effect=slow_update)
        pending = asyncio.ensure_future(logged_in.update_profile({"name": "Ana Updated"}))
        await asyncio.sleep(0)

        logged_in.logout()
        auth.login = AsyncMock(
            return_value=AuthResult(user=_user(id="2", name="Bruno"), token=jwt_factory())
        )
        await logged_in.login("b@x.com", "secret1")
        gate.set()

        assert await pending is None
        assert logged_in.user.id == "2"
        assert logged_in.user.name == "Bruno"
        assert tokens.get_user().name == "Bruno"
        assert logged_in.is_loading is False

    @pytest.mark.asyncio
    async def test_favorites_from_previous_user_are_discarded(
        self, login_as, tokens: TokenStore, auth: MagicMock, jwt_factory
    ) -> None:
        logged_in = await login_as()
        gate = asyncio.Event()

        async def slow_add(_property_id):
            await gate.wait()
            return {"id": "1", "favorites": ["p0", "p9"]}

        auth.add_to_favorites = AsyncMock(side_effect=slow_add)
        pending = asyncio.ensure_future(logged_in.add_to_favorites("p9"))
        await asyncio.sleep(0)

        logged_in.logout()
        auth.login = AsyncMock(
            return_value=AuthResult(user=_user(id="2", favorites=["b1"]), token=jwt_factory())
        )
        await logged_in.login("b@x.com", "secret1")
        gate.set()

        assert await pending == []
        assert logged_in.user.favorites == ["b1"]
        assert tokens.get_user().favorites == ["b1"]

    @pytest.mark.asyncio
    async def test_update_profile_invalid_response_normalized(
        self, login_as, auth: MagicMock
    ) -> None:
        """Papel desconhecido na resposta vira ApiError; snapshot preservado."""
        logged_in = await login_as()
        before = logged_in.user
        auth.update_profile = AsyncMock(return_value={"role": "superhost"})

        with pytest.raises(ApiError, match="invalid 'user'"):
            await logged_in.update_profile({"name": "New"})

        assert logged_in.user is before
        assert logged_in.error == "Profile update failed"

    @pytest.mark.asyncio
    async def test_add_to_favorites_replaces_only_favorites(
        self, login_as, tokens: TokenStore, auth: MagicMock
    ) -> None:
        """Só `favorites` vem do servidor; resto do snapshot permanece."""
        logged_in = await login_as()
        auth.add_to_favorites = AsyncMock(
            return_value={"id": "1", "name": "Server Name", "favorites": ["p0", "p9"]}
        )

        favorites = await logged_in.add_to_favorites("p9")

        assert favorites == ["p0", "p9"]
        assert logged_in.user.favorites == ["p0", "p9"]
        assert logged_in.user.name == "Ana"
        assert tokens.get_user().favorites == ["p0", "p9"]

    @pytest.mark.asyncio
    async def test_remove_from_favorites_null_normalized(
        self, login_as, auth: MagicMock
    ) -> None:
        logged_in = await login_as()
        auth.remove_from_favorites = AsyncMock(return_value={"id": "1", "favorites": None})
        assert await logged_in.remove_from_favorites("p0") == []
        assert logged_in.user.favorites == []

    @pytest.mark.asyncio
    async def test_favorites_failure_sets_error(
        self, login_as, auth: MagicMock
    ) -> None:
        logged_in = await login_as()
        auth.add_to_favorites = AsyncMock(side_effect=ApiError("Property not found", 404))

        with pytest.raises(ApiError):
            await logged_in.add_to_favorites("missing")

        assert logged_in.error == "Property not found"
        assert logged_in.user.favorites == ["p0"]

    @pytest.mark.asyncio
    async def test_get_favorites_does_not_mutate(
        self, login_as, auth: MagicMock
    ) -> None:
        logged_in = await login_as()
        before = logged_in.session
        auth.get_favorites = AsyncMock(return_value=[{"_id": "p0", "title": "Cabin"}])

        assert await logged_in.get_favorites() == [{"_id": "p0", "title": "Cabin"}]
        assert logged_in.session is before


class TestRefresh:
    """Testes para o callback do timer de refresh."""

    @pytest.mark.asyncio
    async def test_timer_refreshes_user(
        self,
        controller: SessionController,
        tokens: TokenStore,
        scheduler: FakeScheduler,
        jwt_factory,
        auth: MagicMock,
    ) -> None:
        auth.login = AsyncMock(return_value=AuthResult(user=_user(), token=jwt_factory()))
        auth.get_current_user = AsyncMock(return_value=_user(name="Refreshed"))
        await controller.bootstrap()
        await controller.login("a@x.com", "secret1")

        scheduler.active[0].fire()
        await _drain(tokens)

        assert controller.user.name == "Refreshed"
        assert tokens.get_user().name == "Refreshed"

    @pytest.mark.asyncio
    async def test_refresh_failure_logs_out(
        self,
        controller: SessionController,
        tokens: TokenStore,
        scheduler: FakeScheduler,
        jwt_factory,
        auth: MagicMock,
    ) -> None:
        auth.login = AsyncMock(return_value=AuthResult(user=_user(), token=jwt_factory()))
        auth.get_current_user = AsyncMock(side_effect=ApiError("down", status_code=503))
        await controller.bootstrap()
        await controller.login("a@x.com", "secret1")

        scheduler.active[0].fire()
        await _drain(tokens)

        assert controller.session.status == SessionStatus.UNAUTHENTICATED
        assert tokens.get_token() is None

    @pytest.mark.asyncio
    async def test_refresh_from_previous_user_is_discarded(
        self,
        controller: SessionController,
        tokens: TokenStore,
        scheduler: FakeScheduler,
        jwt_factory,
        auth: MagicMock,
    ) -> None:
        """Timer disparado antes do logout não sobrescreve a sessão seguinte."""
        gate = asyncio.Event()

        async def slow_me():
            await gate.wait()
            return _user(name="Ana Refreshed")

        auth.login = AsyncMock(return_value=AuthResult(user=_user(), token=jwt_factory()))
        auth.get_current_user = AsyncMock(side_effect=slow_me)
        await controller.bootstrap()
        await controller.login("a@x.com", "secret1")
        scheduler.active[0].fire()
        await asyncio.sleep(0)

        controller.logout()
        auth.login = AsyncMock(
            return_value=AuthResult(user=_user(id="2", name="Bruno"), token=jwt_factory())
        )
        await controller.login("b@x.com", "secret1")
        gate.set()
        await _drain(tokens)

        assert controller.user.id == "2"
        assert tokens.get_user().id == "2"
        assert controller.refresh_scheduled is True

    @pytest.mark.asyncio
    async def test_refresh_failure_from_previous_user_keeps_new_session(
        self,
        controller: SessionController,
        tokens: TokenStore,
        scheduler: FakeScheduler,
        jwt_factory,
        auth: MagicMock,
    ) -> None:
        gate = asyncio.Event()

        async def failing_me():
            await gate.wait()
            raise ApiError("down", status_code=503)

        auth.login = AsyncMock(return_value=AuthResult(user=_user(), token=jwt_factory()))
        auth.get_current_user = AsyncMock(side_effect=failing_me)
        await controller.bootstrap()
        await controller.login("a@x.com", "secret1")
        scheduler.active[0].fire()
        await asyncio.sleep(0)

        controller.logout()
        auth.login = AsyncMock(
            return_value=AuthResult(user=_user(id="2", name="Bruno"), token=jwt_factory())
        )
        await controller.login("b@x.com", "secret1")
        gate.set()
        await _drain(tokens)

        assert controller.session.status == SessionStatus.AUTHENTICATED
        assert controller.user.id == "2"
        assert tokens.get_token() is not None

    @pytest.mark.asyncio
    async def test_epoch_advances_on_session_boundaries(
        self, controller: SessionController, jwt_factory, auth: MagicMock
    ) -> None:
        auth.login = AsyncMock(return_value=AuthResult(user=_user(), token=jwt_factory()))
        await controller.bootstrap()
        start = controller.epoch

        await controller.login("a@x.com", "secret1")
        controller.handle_unauthorized()

        assert controller.epoch == start + 2

    @pytest.mark.asyncio
    async def test_refresh_after_logout_is_noop(
        self, controller: SessionController, auth: MagicMock
    ) -> None:
        auth.get_current_user = AsyncMock()
        await controller.bootstrap()

        assert await controller.refresh_current_user() is None
        auth.get_current_user.assert_not_called()


class TestSubscribe:
    """Testes para observadores do snapshot."""

    @pytest.mark.asyncio
    async def test_listener_notified_and_unsubscribed(self, controller: SessionController) -> None:
        seen = []
        unsubscribe = controller.subscribe(seen.append)

        await controller.bootstrap()
        unsubscribe()
        controller.logout()

        assert [s.status for s in seen] == [SessionStatus.UNAUTHENTICATED]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_transition(
        self, controller: SessionController
    ) -> None:
        controller.subscribe(MagicMock(side_effect=RuntimeError("ui bug")))
        session = await controller.bootstrap()
        assert session.status == SessionStatus.UNAUTHENTICATED
