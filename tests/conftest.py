"""
Shared pytest fixtures and configuration for all tests.

Every test runs against the in-memory credential store and a fake platform
API served through ``httpx.MockTransport``; nothing leaves the process.
"""

import json
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import pytest

from luxbridge.auth.identity import PrivyIdentityVerifier
from luxbridge.config import Settings
from luxbridge.core.constants import Platform
from luxbridge.core.context import build_context
from luxbridge.platforms.client import PlatformClient
from luxbridge.sessions.models import AuthSession
from luxbridge.storage import InMemoryCredentialStore, keys

PLATFORM_BASE_URL = "https://platforms.test/api"
ISSUER_URL = "https://bridge.test"


class FakePlatformAPI:
    """Programmable platform API behind an ``httpx.MockTransport``.

    Routes are keyed by (method, platform, endpoint). A route either answers
    with a status and JSON body or raises an httpx exception.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self.calls: list[httpx.Request] = []

    def add(
        self,
        method: str,
        platform: Platform,
        endpoint: str,
        status: int = 200,
        body: Any = None,
        raises: type[httpx.HTTPError] | None = None,
        content: bytes | None = None,
    ) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            if raises is not None:
                raise raises("platform unreachable", request=request)
            if content is not None:
                return httpx.Response(status, content=content)
            return httpx.Response(status, json=body if body is not None else {})

        self.routes[(method.upper(), str(platform), endpoint)] = respond

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        prefix = httpx.URL(PLATFORM_BASE_URL).path
        platform, _, endpoint = request.url.path[len(prefix) + 1 :].partition("/")
        route = self.routes.get((request.method, platform, f"/{endpoint}"))
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        return route(request)

    def calls_to(self, platform: Platform, endpoint: str) -> list[httpx.Request]:
        path = f"{httpx.URL(PLATFORM_BASE_URL).path}/{platform}{endpoint}"
        return [call for call in self.calls if call.url.path == path]

    @staticmethod
    def body(request: httpx.Request) -> Any:
        return json.loads(request.content)


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the developer's environment files."""
    return Settings(
        _env_file=None,
        store_backend="memory",
        oauth2_issuer=ISSUER_URL,
        platform_api_base_url=PLATFORM_BASE_URL,
        platform_request_timeout=5.0,
        session_cleanup_interval=0,
        privy_app_id="privy-app-test",
        privy_app_secret="privy-secret-test",
    )


@pytest.fixture
def store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def platform_api() -> FakePlatformAPI:
    return FakePlatformAPI()


@pytest.fixture
def platform_client(settings, platform_api) -> PlatformClient:
    return PlatformClient(settings, transport=httpx.MockTransport(platform_api.handler))


@pytest.fixture
def app_context(store, settings, platform_client):
    """Fully wired application context over the in-memory store."""
    return build_context(
        store,
        settings,
        platform_client=platform_client,
        identity_verifier=PrivyIdentityVerifier(settings),
    )


@pytest.fixture
def sessions(app_context):
    return app_context.sessions


@pytest.fixture
def links(app_context):
    return app_context.links


@pytest.fixture
def proxy(app_context):
    return app_context.proxy


@pytest.fixture
def issuer(app_context):
    return app_context.issuer


@pytest.fixture
def oauth2_server(app_context):
    return app_context.oauth2_server


@pytest.fixture
def identities(app_context):
    return app_context.identities


@pytest.fixture
def accounts(app_context):
    return app_context.accounts


@pytest.fixture
def write_expired_session(store):
    """Write a session whose ``expires_at`` already passed but whose record is still stored."""

    async def _write(lux_user_id: str = "lux_expired", session_id: str = "lux_session_1_expired"):
        past = datetime.now(UTC) - timedelta(seconds=5)
        session = AuthSession(
            session_id=session_id,
            lux_user_id=lux_user_id,
            privy_token="",
            created_at=past - timedelta(hours=1),
            expires_at=past,
        )
        await store.put(keys.session_key(session_id), session.to_fields())
        await store.put(
            keys.user_sessions_key(lux_user_id),
            {session_id: session.created_at.isoformat()},
        )
        return session

    return _write
