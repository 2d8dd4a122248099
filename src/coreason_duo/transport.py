# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_duo

"""
HTTPS transport to the Duo API, restricted to the pinned trust store.
"""

import json
from typing import Any

import httpx
from pydantic import ValidationError

from coreason_duo.config import DuoClientConfig
from coreason_duo.exceptions import DuoProtocolError, DuoTransportError
from coreason_duo.models import HealthCheckResponse
from coreason_duo.models_internal import TokenResponse
from coreason_duo.params import get_and_validate_url
from coreason_duo.trust_store import TrustStore
from coreason_duo.utils.logger import logger

OAUTH_V1_HEALTH_CHECK_ENDPOINT = "/oauth/v1/health_check"
OAUTH_V1_AUTHORIZE_ENDPOINT = "/oauth/v1/authorize"
OAUTH_V1_TOKEN_ENDPOINT = "/oauth/v1/token"

MAX_RESPONSE_BYTES = 1_000_000


def create_http_client(config: DuoClientConfig) -> httpx.AsyncClient:
    """
    Creates an async HTTP client that only trusts the configured CA pins.

    Args:
        config: The client configuration (pins, proxy, timeout, user agent).

    Returns:
        httpx.AsyncClient: The client. The caller owns it and must close it.

    Raises:
        DuoConfigurationError: If the pins cannot be loaded.
    """
    ssl_context = TrustStore(config.ca_certs).create_ssl_context()
    if config.proxy_url:
        logger.debug(f"Routing Duo requests through proxy {config.proxy_host}:{config.proxy_port}")
    return httpx.AsyncClient(
        verify=ssl_context,
        proxy=config.proxy_url,
        timeout=config.http_timeout,
        headers={"User-Agent": config.user_agent},
        follow_redirects=False,
    )


async def fetch_json(client: httpx.AsyncClient, method: str, url: str, **kwargs: Any) -> tuple[int, Any]:
    """
    Sends a request and reads a JSON body of at most MAX_RESPONSE_BYTES.

    Unlike raise_for_status based helpers, the body of 4xx/5xx responses is returned too,
    because Duo describes its failures there.

    Returns:
        tuple[int, Any]: The HTTP status code and the decoded JSON body.

    Raises:
        DuoTransportError: On network or TLS failures, including certificate pin mismatches.
        DuoProtocolError: If the body is too large or not JSON.
    """
    try:
        async with client.stream(method, url, **kwargs) as response:
            content_length = response.headers.get("Content-Length")
            if content_length and content_length.isdigit() and int(content_length) > MAX_RESPONSE_BYTES:
                raise DuoProtocolError(f"Response from {url} is too large")

            content = bytearray()
            async for chunk in response.aiter_bytes():
                content.extend(chunk)
                if len(content) > MAX_RESPONSE_BYTES:
                    raise DuoProtocolError(f"Response from {url} is too large")
            status_code = response.status_code
    except httpx.HTTPError as e:
        logger.error(f"Request to {url} failed: {e}")
        raise DuoTransportError(f"Unable to reach Duo at {url}: {e}") from e

    try:
        return status_code, json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DuoProtocolError(f"Invalid JSON response from {url} (HTTP {status_code})") from e


class DuoConnector:
    """
    Issues the HTTP calls the Duo protocol needs and decodes their bodies.

    Attributes:
        api_host (str): The Duo api host.
        client (httpx.AsyncClient): The HTTP client used for every call.
        user_agent (str): The User-Agent sent with every call.
    """

    def __init__(self, api_host: str, client: httpx.AsyncClient, user_agent: str) -> None:
        self.api_host = api_host
        self.client = client
        self.user_agent = user_agent

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": self.user_agent, "Accept": "application/json"}

    async def health_check(self, client_id: str, client_assertion: str) -> HealthCheckResponse:
        """
        Calls the health check endpoint.

        A "FAIL" answer is returned as is; only unusable responses raise.

        Raises:
            DuoTransportError: On network or TLS failures.
            DuoProtocolError: If the response is not a health check body.
        """
        url = get_and_validate_url(self.api_host, OAUTH_V1_HEALTH_CHECK_ENDPOINT)
        data = {"client_id": client_id, "client_assertion": client_assertion}

        status_code, body = await fetch_json(self.client, "POST", url, data=data, headers=self._headers())
        try:
            return HealthCheckResponse.model_validate(body)
        except ValidationError as e:
            raise DuoProtocolError(f"Invalid health check response from Duo (HTTP {status_code}): {e}") from e

    async def exchange_authorization_code(
        self,
        grant_type: str,
        code: str,
        redirect_uri: str,
        client_assertion_type: str,
        client_assertion: str,
    ) -> TokenResponse:
        """
        Posts the authorization code to the token endpoint.

        Raises:
            DuoTransportError: On network or TLS failures.
            DuoProtocolError: If Duo rejects the exchange or omits the ID token.
        """
        url = get_and_validate_url(self.api_host, OAUTH_V1_TOKEN_ENDPOINT)
        data = {
            "grant_type": grant_type,
            "code": code,
            "redirect_uri": redirect_uri,
            "client_assertion_type": client_assertion_type,
            "client_assertion": client_assertion,
        }

        status_code, body = await fetch_json(self.client, "POST", url, data=data, headers=self._headers())
        if status_code != httpx.codes.OK:
            error = body if isinstance(body, dict) else {}
            raise DuoProtocolError(
                f"Error exchanging the Duo authorization code (HTTP {status_code})",
                error_code=_as_text(error.get("error") or error.get("code")),
                error_description=_as_text(
                    error.get("error_description") or error.get("message_detail") or error.get("message")
                ),
            )

        try:
            return TokenResponse.model_validate(body)
        except ValidationError as e:
            raise DuoProtocolError(f"Invalid token response from Duo: {e}") from e


def _as_text(value: Any) -> str | None:
    return None if value is None else str(value)
