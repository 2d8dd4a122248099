# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_duo

import time
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch
from urllib.parse import parse_qs, urlsplit

import anyio
import httpx
import pytest
from authlib.jose import JsonWebToken
from conftest import API_HOST, CLIENT_ID, CLIENT_SECRET, REDIRECT_URI, TOKEN_URL, USERNAME
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode

from coreason_duo.client import CLIENT_ASSERTION_TYPE, DuoClientAsync
from coreason_duo.config import DuoClientConfig, create_config
from coreason_duo.exceptions import (
    DuoConfigurationError,
    DuoProtocolError,
    DuoTransportError,
    UsernameMismatchError,
)
from coreason_duo.models import Token

AUTHORIZE_URL = f"https://{API_HOST}/oauth/v1/authorize"
HEALTH_URL = f"https://{API_HOST}/oauth/v1/health_check"
STATE = "aaaaaaaaaabbbbbbbbbbcccccccccc123456"

TokenFactory = Callable[..., str]


class FakeDuo:
    """Answers the Duo endpoints and records the requests it receives."""

    def __init__(self, id_token: str = "", health: dict[str, Any] | None = None) -> None:
        self.id_token = id_token
        self.health = health or {"stat": "OK", "response": {"timestamp": int(time.time())}}
        self.token_status = 200
        self.token_body: dict[str, Any] | None = None
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/oauth/v1/health_check":
            return httpx.Response(200, json=self.health)
        if request.url.path == "/oauth/v1/token":
            body = self.token_body if self.token_body is not None else {"id_token": self.id_token}
            return httpx.Response(self.token_status, json=body)
        return httpx.Response(404, json={"stat": "FAIL", "code": 40400, "message": "Resource not found"})

    def form(self, index: int = -1) -> dict[str, str]:
        return {k: v[0] for k, v in parse_qs(self.requests[index].content.decode()).items()}


def _client(config: DuoClientConfig, fake: FakeDuo) -> DuoClientAsync:
    return DuoClientAsync(config, httpx.AsyncClient(transport=httpx.MockTransport(fake)))


def _verify(token: str, audience: str) -> dict[str, Any]:
    claims = JsonWebToken(["HS512"]).decode(
        token, CLIENT_SECRET, claims_options={"aud": {"essential": True, "value": audience}}
    )
    claims.validate()
    return dict(claims)


@pytest.mark.asyncio
async def test_health_check_ok(config: DuoClientConfig) -> None:
    fake = FakeDuo()
    async with _client(config, fake) as client:
        response = await client.health_check()

    assert response.success
    form = fake.form()
    assert form["client_id"] == CLIENT_ID
    assert str(fake.requests[0].url) == HEALTH_URL
    assert fake.requests[0].headers["User-Agent"] == config.user_agent

    assertion = _verify(form["client_assertion"], HEALTH_URL)
    assert assertion["iss"] == CLIENT_ID
    assert assertion["sub"] == CLIENT_ID


@pytest.mark.asyncio
async def test_health_check_fail(config: DuoClientConfig) -> None:
    fake = FakeDuo(
        health={
            "stat": "FAIL",
            "code": 40002,
            "timestamp": int(time.time()),
            "message": "invalid_client",
            "message_detail": "bad creds",
        }
    )
    async with _client(config, fake) as client:
        with pytest.raises(DuoProtocolError) as exc:
            await client.health_check()

    assert exc.value.message == "invalid_client"
    assert exc.value.error_code == "40002"
    assert exc.value.error_description == "bad creds"


@pytest.mark.asyncio
async def test_health_check_unreachable(config: DuoClientConfig) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    async with DuoClientAsync(config, httpx.AsyncClient(transport=httpx.MockTransport(handler))) as client:
        with pytest.raises(DuoTransportError):
            await client.health_check()


def test_create_auth_url(config: DuoClientConfig) -> None:
    fake = FakeDuo()
    client = _client(config, fake)

    url = client.create_auth_url(USERNAME, STATE)

    parts = urlsplit(url)
    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == AUTHORIZE_URL
    query = {k: v[0] for k, v in parse_qs(parts.query).items()}
    assert query["scope"] == "openid"
    assert query["response_type"] == "code"
    assert query["redirect_uri"] == REDIRECT_URI
    assert query["client_id"] == CLIENT_ID

    request = _verify(query["request"], AUTHORIZE_URL)
    assert request["state"] == STATE
    assert request["duo_uname"] == USERNAME
    assert request["redirect_uri"] == REDIRECT_URI
    assert request["client_id"] == CLIENT_ID
    assert request["iss"] == CLIENT_ID
    assert request["use_duo_code_attribute"] is True
    assert request["exp"] - request["iat"] == 300

    assert fake.requests == []


def test_create_auth_url_code_attribute() -> None:
    config = create_config(CLIENT_ID, CLIENT_SECRET, API_HOST, REDIRECT_URI, use_duo_code_attribute=False)
    client = _client(config, FakeDuo())

    query = parse_qs(urlsplit(client.create_auth_url(USERNAME, STATE)).query)
    assert _verify(query["request"][0], AUTHORIZE_URL)["use_duo_code_attribute"] is False


def test_create_auth_url_fresh_request_each_call(config: DuoClientConfig) -> None:
    client = _client(config, FakeDuo())
    with patch("coreason_duo.signer.time.time", return_value=time.time()):
        first_url = client.create_auth_url(USERNAME, STATE)
        second_url = client.create_auth_url(USERNAME, STATE)

    assert first_url != second_url
    first = parse_qs(urlsplit(first_url).query)["request"][0]
    second = parse_qs(urlsplit(second_url).query)["request"][0]
    assert _verify(first, AUTHORIZE_URL)["jti"] != _verify(second, AUTHORIZE_URL)["jti"]


@pytest.mark.parametrize(
    ("username", "state", "match"),
    [
        (USERNAME, "short", "at least 22"),
        (USERNAME, "a" * 21, "at least 22"),
        (USERNAME, None, "at least 22"),
        ("", STATE, "username"),
        (None, STATE, "username"),
    ],
)
def test_create_auth_url_invalid(config: DuoClientConfig, username: str | None, state: str | None, match: str) -> None:
    client = _client(config, FakeDuo())
    with pytest.raises(DuoConfigurationError, match=match):
        client.create_auth_url(username, state)  # type: ignore[arg-type]


def test_generate_state(config: DuoClientConfig) -> None:
    client = _client(config, FakeDuo())
    states = {client.generate_state() for _ in range(100)}
    assert len(states) == 100
    assert all(len(s) == 36 for s in states)
    client.create_auth_url(USERNAME, states.pop())


@pytest.mark.asyncio
async def test_exchange(config: DuoClientConfig, id_token_factory: TokenFactory) -> None:
    fake = FakeDuo(id_token=id_token_factory())
    async with _client(config, fake) as client:
        token = await client.exchange_authorization_code_for_2fa_result("abc123", USERNAME)

    assert isinstance(token, Token)
    assert token.username == USERNAME
    assert token.auth_result is not None
    assert token.auth_result.result == "allow"
    assert "alice" not in repr(token)

    form = fake.form()
    assert str(fake.requests[0].url) == TOKEN_URL
    assert form["grant_type"] == "authorization_code"
    assert form["code"] == "abc123"
    assert form["redirect_uri"] == REDIRECT_URI
    assert form["client_assertion_type"] == CLIENT_ASSERTION_TYPE
    assert _verify(form["client_assertion"], TOKEN_URL)["sub"] == CLIENT_ID


@pytest.mark.asyncio
async def test_exchange_username_mismatch(config: DuoClientConfig, id_token_factory: TokenFactory) -> None:
    fake = FakeDuo(id_token=id_token_factory(preferred_username="mallory"))
    async with _client(config, fake) as client:
        with pytest.raises(UsernameMismatchError):
            await client.exchange_authorization_code_for_2fa_result("abc123", USERNAME)


@pytest.mark.asyncio
async def test_exchange_custom_validator(config: DuoClientConfig) -> None:
    now = int(time.time())
    validator = MagicMock()
    validator.validate_and_decode.return_value = {
        "iss": TOKEN_URL,
        "aud": CLIENT_ID,
        "iat": now,
        "exp": now + 300,
        "preferred_username": "bob",
    }
    fake = FakeDuo(id_token="opaque.id.token")
    async with _client(config, fake) as client:
        token = await client.exchange_authorization_code_for_2fa_result("abc123", validator=validator)

    validator.validate_and_decode.assert_called_once_with("opaque.id.token")
    assert token.username == "bob"


@pytest.mark.asyncio
@pytest.mark.parametrize(("duo_code", "username"), [("", USERNAME), ("   ", USERNAME), ("abc123", None)])
async def test_exchange_invalid_arguments(config: DuoClientConfig, duo_code: str, username: str | None) -> None:
    fake = FakeDuo()
    async with _client(config, fake) as client:
        with pytest.raises(DuoConfigurationError):
            await client.exchange_authorization_code_for_2fa_result(duo_code, username)
    assert fake.requests == []


@pytest.mark.asyncio
async def test_exchange_rejected_by_duo(config: DuoClientConfig) -> None:
    fake = FakeDuo()
    fake.token_status = 400
    fake.token_body = {"error": "invalid_grant", "error_description": "Code expired"}
    async with _client(config, fake) as client:
        with pytest.raises(DuoProtocolError) as exc:
            await client.exchange_authorization_code_for_2fa_result("abc123", USERNAME)
    assert exc.value.error_code == "invalid_grant"


@pytest.mark.asyncio
async def test_config_unchanged_across_calls(config: DuoClientConfig, id_token_factory: TokenFactory) -> None:
    snapshot = config.model_dump()
    fake = FakeDuo(id_token=id_token_factory())
    async with _client(config, fake) as client:
        for _ in range(3):
            await client.health_check()
            client.create_auth_url(USERNAME, client.generate_state())
            await client.exchange_authorization_code_for_2fa_result("abc123", USERNAME)
        assert client.config is config
    assert config.model_dump() == snapshot


@pytest.mark.asyncio
async def test_concurrent_exchanges(config: DuoClientConfig, id_token_factory: TokenFactory) -> None:
    fake = FakeDuo(id_token=id_token_factory())
    results: list[Token] = []

    async with _client(config, fake) as client:

        async def exchange(code: str) -> None:
            results.append(await client.exchange_authorization_code_for_2fa_result(code, USERNAME))

        async with anyio.create_task_group() as tg:
            for i in range(10):
                tg.start_soon(exchange, f"code-{i}")

    assert len(results) == 10
    assert all(token.username == USERNAME for token in results)
    assert sorted(fake.form(i)["code"] for i in range(10)) == sorted(f"code-{i}" for i in range(10))
    assertions = {fake.form(i)["client_assertion"] for i in range(10)}
    assert len(assertions) == 10


@pytest.mark.asyncio
async def test_internal_client_closed(config: DuoClientConfig) -> None:
    internal = MagicMock(spec=httpx.AsyncClient)
    internal.aclose = AsyncMock()
    with (
        patch("coreason_duo.client.create_http_client", return_value=internal) as mock_create,
        patch("coreason_duo.client.HTTPXClientInstrumentor"),
    ):
        async with DuoClientAsync(config) as client:
            assert client._internal_client is True
        mock_create.assert_called_once_with(config)
    internal.aclose.assert_awaited_once()


@pytest.mark.asyncio
async def test_external_client_not_closed(config: DuoClientConfig) -> None:
    external = MagicMock(spec=httpx.AsyncClient)
    external.aclose = AsyncMock()
    with patch("coreason_duo.client.HTTPXClientInstrumentor"):
        async with DuoClientAsync(config, external) as client:
            assert client._internal_client is False
    external.aclose.assert_not_awaited()


@pytest.mark.asyncio
async def test_client_spans(config: DuoClientConfig) -> None:
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))

    fake = FakeDuo(health={"stat": "FAIL", "message": "invalid_client"})
    with patch("coreason_duo.client.tracer", provider.get_tracer("test_tracer")):
        async with _client(config, fake) as client:
            client.create_auth_url(USERNAME, STATE)
            with pytest.raises(DuoProtocolError):
                await client.health_check()

    spans = {span.name: span for span in exporter.get_finished_spans()}
    auth_span = spans["duo.create_auth_url"]
    assert auth_span.status.status_code != StatusCode.ERROR
    assert auth_span.attributes is not None
    assert USERNAME not in str(auth_span.attributes["enduser.id"])

    health_span = spans["duo.health_check"]
    assert health_span.status.status_code == StatusCode.ERROR
    assert health_span.status.description == "invalid_client"
    assert len([event for event in health_span.events if event.name == "exception"]) == 1
