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
Configuration for the coreason-duo package.
"""

import platform
from collections.abc import Sequence
from typing import Any

from pydantic import Field, SecretStr, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from coreason_duo import __version__
from coreason_duo._ca_certs import DEFAULT_CA_CERTS
from coreason_duo.exceptions import DuoConfigurationError
from coreason_duo.models import ResponseCodeAttribute
from coreason_duo.params import get_and_validate_url, validate_ca_certs, validate_client_params

USER_AGENT_LIB = "coreason_duo"


def compute_user_agent() -> str:
    """
    Returns ``<lib>/<version> <python-impl>/<python-version> <os>/<os-release>/<arch>``.
    """
    lib_agent = f"{USER_AGENT_LIB}/{__version__}"
    python_agent = f"{platform.python_implementation()}/{platform.python_version()}"
    os_agent = f"{platform.system()}/{platform.release()}/{platform.machine()}"
    return f"{lib_agent} {python_agent} {os_agent}"


class DuoClientConfig(BaseSettings):
    """
    Immutable settings shared by every call a Duo client makes.

    Attributes:
        client_id (str): The client id from the Duo admin panel.
        client_secret (SecretStr): The client secret from the Duo admin panel. Used as the HMAC key.
        api_host (str): The API hostname from the Duo admin panel (e.g. api-XXXXXXXX.duosecurity.com).
        redirect_uri (str): Where Duo sends the browser once the second factor is done.
        response_code_attribute (ResponseCodeAttribute): Name of the code parameter on redirect.
        proxy_host (str | None): Hostname of an HTTP proxy to tunnel through.
        proxy_port (int | None): Port of that proxy.
        ca_certs (tuple[str, ...]): Pinned root certificates. Defaults to the embedded set.
        user_agent_extra (str | None): Text appended to the User-Agent header.
        http_timeout (float): Timeout in seconds for every request to Duo.
        clock_skew_leeway (int): Seconds of clock skew tolerated when checking ID token times.
        pii_salt (SecretStr): Salt for anonymizing usernames in logs and traces.
    """

    model_config = SettingsConfigDict(
        env_prefix="DUO_",
        case_sensitive=False,
        frozen=True,
    )

    client_id: str = Field(..., min_length=1)
    client_secret: SecretStr
    api_host: str = Field(..., min_length=1)
    redirect_uri: str = Field(..., min_length=1)
    response_code_attribute: ResponseCodeAttribute = ResponseCodeAttribute.DUO_CODE
    proxy_host: str | None = None
    proxy_port: int | None = Field(default=None, ge=1, le=65535)
    ca_certs: tuple[str, ...] = DEFAULT_CA_CERTS
    user_agent_extra: str | None = None
    http_timeout: float = Field(default=10.0, gt=0, description="Timeout in seconds for all Duo network operations.")
    clock_skew_leeway: int = Field(default=60, ge=0)
    pii_salt: SecretStr = SecretStr("coreason-duo-unsafe-default-salt")

    @field_validator("client_id", "api_host", "redirect_uri")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("client_secret")
    @classmethod
    def require_secret(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value().strip():
            raise ValueError("must not be blank")
        return v

    @field_validator("api_host")
    @classmethod
    def validate_bare_host(cls, v: str) -> str:
        """
        Ensures api_host is just the hostname (e.g. api-123.duosecurity.com), with no scheme or path.
        """
        try:
            get_and_validate_url(v, "/")
        except DuoConfigurationError as e:
            raise ValueError(e.message) from e
        return v.lower()

    @field_validator("ca_certs", mode="before")
    @classmethod
    def keep_default_pins_when_empty(cls, v: Any) -> Any:
        """
        An empty or missing override keeps the embedded pins instead of leaving nothing trusted.
        """
        if not validate_ca_certs(v):
            return DEFAULT_CA_CERTS
        return v

    @model_validator(mode="after")
    def validate_proxy(self) -> "DuoClientConfig":
        if (self.proxy_host is None) != (self.proxy_port is None):
            raise ValueError("proxy_host and proxy_port must be provided together")
        return self

    @property
    def use_duo_code_attribute(self) -> bool:
        return self.response_code_attribute == ResponseCodeAttribute.DUO_CODE

    @property
    def user_agent(self) -> str:
        agent = compute_user_agent()
        if self.user_agent_extra:
            agent = f"{agent} {self.user_agent_extra}"
        return agent

    @property
    def proxy_url(self) -> str | None:
        if self.proxy_host is None:
            return None
        return f"http://{self.proxy_host}:{self.proxy_port}"


def create_config(
    client_id: str | None,
    client_secret: str | None,
    api_host: str | None,
    redirect_uri: str | None,
    *,
    use_duo_code_attribute: bool = True,
    proxy_host: str | None = None,
    proxy_port: int | None = None,
    ca_certs: Sequence[str] | None = None,
    user_agent_extra: str | None = None,
    **settings: Any,
) -> DuoClientConfig:
    """
    Validates the parameters and freezes them into a DuoClientConfig.

    Args:
        client_id: The client id from the Duo admin panel.
        client_secret: The client secret from the Duo admin panel.
        api_host: The API hostname from the Duo admin panel.
        redirect_uri: Where Duo sends the browser after the second factor.
        use_duo_code_attribute: Return the code as ``duo_code`` (True) or ``code`` (False).
        proxy_host: Hostname of an HTTP proxy, if any.
        proxy_port: Port of that proxy.
        ca_certs: Pins replacing the embedded set in full. None or empty keeps the defaults.
        user_agent_extra: Text appended to the User-Agent header.
        **settings: Any other DuoClientConfig field (http_timeout, clock_skew_leeway, pii_salt).

    Returns:
        DuoClientConfig: The frozen configuration.

    Raises:
        DuoConfigurationError: If any value is missing or malformed.
    """
    validate_client_params(client_id, client_secret, api_host, redirect_uri)

    attribute = ResponseCodeAttribute.DUO_CODE if use_duo_code_attribute else ResponseCodeAttribute.CODE
    values: dict[str, Any] = {
        "client_id": client_id,
        "client_secret": client_secret,
        "api_host": api_host,
        "redirect_uri": redirect_uri,
        "response_code_attribute": attribute,
        "proxy_host": proxy_host,
        "proxy_port": proxy_port,
        "user_agent_extra": user_agent_extra,
        **settings,
    }
    if validate_ca_certs(ca_certs):
        values["ca_certs"] = tuple(ca_certs)  # type: ignore[arg-type]

    try:
        return DuoClientConfig(**values)
    except ValidationError as e:
        raise DuoConfigurationError(f"Invalid Duo client configuration: {e}") from e
