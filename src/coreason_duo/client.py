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
Duo client: the entry point for the Universal Prompt two-factor flow.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from functools import partial
from typing import Any
from urllib.parse import urlencode

import anyio
import httpx
from anyio.from_thread import BlockingPortal
from opentelemetry import trace
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.trace import Span, Status, StatusCode

from coreason_duo.config import DuoClientConfig
from coreason_duo.exceptions import DuoException, DuoProtocolError
from coreason_duo.models import HealthCheckResponse, Token
from coreason_duo.params import get_and_validate_url, validate_duo_code, validate_state, validate_username
from coreason_duo.signer import create_jwt, create_jwt_for_auth_url
from coreason_duo.state import generate_state
from coreason_duo.transport import (
    OAUTH_V1_AUTHORIZE_ENDPOINT,
    OAUTH_V1_HEALTH_CHECK_ENDPOINT,
    OAUTH_V1_TOKEN_ENDPOINT,
    DuoConnector,
    create_http_client,
)
from coreason_duo.utils.logger import logger
from coreason_duo.validator import DuoIdTokenValidator, TokenValidator, anonymize, transform_claims_to_token

tracer = trace.get_tracer(__name__)

CLIENT_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"
GRANT_TYPE_AUTHORIZATION_CODE = "authorization_code"


@contextmanager
def _traced(name: str) -> Iterator[Span]:
    with tracer.start_as_current_span(name, record_exception=False, set_status_on_exception=False) as span:
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, e.message if isinstance(e, DuoException) else str(e)))
            raise


class DuoClientAsync:
    """
    Async implementation of the Duo client (The Core).
    Handles resources via async context manager.

    The client holds no per-flow state: the state value belongs to the caller,
    and every call signs fresh JWTs.
    """

    def __init__(self, config: DuoClientConfig, client: httpx.AsyncClient | None = None) -> None:
        """
        Initialize the DuoClientAsync.

        Args:
            config: The frozen client configuration (see `create_config`).
            client: External async client (optional). If not provided, a client trusting
                only the configured CA pins is created.

        Raises:
            DuoConfigurationError: If the pinned certificates cannot be loaded.
        """
        self.config = config
        self._internal_client = client is None

        if client:
            self._client = client
        else:
            self._client = create_http_client(config)

        # Instrument the client for distributed tracing
        HTTPXClientInstrumentor().instrument_client(self._client)

        self.connector = DuoConnector(config.api_host, self._client, config.user_agent)

    async def __aenter__(self) -> "DuoClientAsync":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._internal_client:
            await self._client.aclose()

    def _secret(self) -> str:
        return self.config.client_secret.get_secret_value()

    async def health_check(self) -> HealthCheckResponse:
        """
        Checks that Duo is available for two-factor authentication.

        Returns:
            HealthCheckResponse: The successful health check.

        Raises:
            DuoProtocolError: If Duo reports a failure (the message is Duo's).
            DuoTransportError: If Duo cannot be reached.
        """
        with _traced("duo.health_check"):
            audience = get_and_validate_url(self.config.api_host, OAUTH_V1_HEALTH_CHECK_ENDPOINT)
            assertion = create_jwt(self.config.client_id, self._secret(), audience)

            response = await self.connector.health_check(self.config.client_id, assertion)
            if not response.success:
                logger.warning(f"Duo health check failed: {response.message}")
                raise DuoProtocolError(
                    response.message or "Duo health check failed",
                    error_code=None if response.code is None else str(response.code),
                    error_description=response.message_detail,
                )

            logger.debug("Duo health check succeeded")
            return response

    def create_auth_url(self, username: str, state: str) -> str:
        """
        Builds the URL to redirect the user's browser to for the second factor.

        No network call is made.

        Args:
            username: The user, already authenticated with their first factor.
            state: At least 22 random characters; `generate_state` makes one. Keep it in the
                user's session and compare it with the state Duo sends back.

        Returns:
            str: The authorization URL.

        Raises:
            DuoConfigurationError: If the username or state is invalid.
        """
        with _traced("duo.create_auth_url") as span:
            validate_username(username)
            validate_state(state)

            authorize_url = get_and_validate_url(self.config.api_host, OAUTH_V1_AUTHORIZE_ENDPOINT)
            request = create_jwt_for_auth_url(
                self.config.client_id,
                self._secret(),
                authorize_url,
                self.config.redirect_uri,
                state,
                username,
                self.config.use_duo_code_attribute,
            )
            query = urlencode(
                {
                    "scope": "openid",
                    "response_type": "code",
                    "redirect_uri": self.config.redirect_uri,
                    "client_id": self.config.client_id,
                    "request": request,
                }
            )

            user_hash = anonymize(username, self.config.pii_salt)
            span.set_attribute("enduser.id", user_hash)
            logger.debug(f"Authorization URL created for user {user_hash}")
            return f"{authorize_url}?{query}"

    async def exchange_authorization_code_for_2fa_result(
        self,
        duo_code: str,
        username: str | None = None,
        *,
        validator: TokenValidator | None = None,
    ) -> Token:
        """
        Exchanges the code Duo returned on redirect for the result of the second factor.

        Either ``username`` (the default DuoIdTokenValidator is used) or a custom
        ``validator`` must be given. A custom validator MUST verify the HS512 signature
        with the client secret and check iss, aud, iat/exp and preferred_username.

        Args:
            duo_code: The one-time code from the redirect.
            username: The user who started the flow.
            validator: A TokenValidator replacing the default one.

        Returns:
            Token: The validated two-factor result.

        Raises:
            DuoConfigurationError: If the code or username is missing.
            DuoProtocolError: If Duo rejects the exchange.
            DuoTransportError: If Duo cannot be reached.
            DuoValidationError: If the ID token is rejected.
        """
        with _traced("duo.exchange_authorization_code"):
            validate_duo_code(duo_code)
            if validator is None:
                validate_username(username)
                validator = DuoIdTokenValidator(
                    self.config.client_secret,
                    username,  # type: ignore[arg-type]
                    self.config.client_id,
                    self.config.api_host,
                    leeway=self.config.clock_skew_leeway,
                    pii_salt=self.config.pii_salt,
                )

            audience = get_and_validate_url(self.config.api_host, OAUTH_V1_TOKEN_ENDPOINT)
            assertion = create_jwt(self.config.client_id, self._secret(), audience)

            token_response = await self.connector.exchange_authorization_code(
                GRANT_TYPE_AUTHORIZATION_CODE,
                duo_code,
                self.config.redirect_uri,
                CLIENT_ASSERTION_TYPE,
                assertion,
            )
            claims = validator.validate_and_decode(token_response.id_token)
            return transform_claims_to_token(claims)

    def generate_state(self) -> str:
        """
        Generates a 36 character random state for `create_auth_url`.
        """
        return generate_state()


class DuoClient:
    """
    Sync facade for DuoClientAsync.
    Runs the async core on a blocking portal owned by this instance.

    The portal (an event loop on a background thread) is started by the first call
    that needs the network and stopped by `close()`. Use the client as a context
    manager, or call `close()`, once it has made a network call.
    """

    def __init__(self, config: DuoClientConfig, client: httpx.AsyncClient | None = None) -> None:
        """
        Initialize the DuoClient.

        Args:
            config: The frozen client configuration (see `create_config`).
            client: External async client (optional).
        """
        self._async = DuoClientAsync(config, client)
        self._portal_cm: Any = None
        self._portal: BlockingPortal | None = None
        self._lock = threading.Lock()
        self._closed = False

    def __enter__(self) -> "DuoClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def _get_portal(self) -> BlockingPortal:
        with self._lock:
            if self._closed:
                raise RuntimeError("DuoClient is closed")
            if self._portal is None:
                self._portal_cm = anyio.from_thread.start_blocking_portal()
                self._portal = self._portal_cm.__enter__()
            return self._portal

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            portal, portal_cm = self._portal, self._portal_cm
            self._portal = self._portal_cm = None

        if portal is None:
            anyio.run(self._async.__aexit__, None, None, None)
            return
        try:
            portal.call(self._async.__aexit__, None, None, None)
        finally:
            portal_cm.__exit__(None, None, None)

    @property
    def config(self) -> DuoClientConfig:
        return self._async.config

    def health_check(self) -> HealthCheckResponse:
        """
        Checks that Duo is available for two-factor authentication. Blocks until done.
        """
        return self._get_portal().call(self._async.health_check)

    def create_auth_url(self, username: str, state: str) -> str:
        """
        Builds the URL to redirect the user's browser to for the second factor.
        """
        return self._async.create_auth_url(username, state)

    def exchange_authorization_code_for_2fa_result(
        self,
        duo_code: str,
        username: str | None = None,
        *,
        validator: TokenValidator | None = None,
    ) -> Token:
        """
        Exchanges the code Duo returned on redirect for the result of the second factor. Blocks until done.
        """
        return self._get_portal().call(
            partial(self._async.exchange_authorization_code_for_2fa_result, duo_code, username, validator=validator)
        )

    def generate_state(self) -> str:
        return self._async.generate_state()
