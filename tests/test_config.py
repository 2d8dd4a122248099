# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_duo

import platform

import pytest
from conftest import API_HOST, CLIENT_ID, CLIENT_SECRET, REDIRECT_URI
from pydantic import ValidationError

from coreason_duo import __version__
from coreason_duo._ca_certs import DEFAULT_CA_CERTS
from coreason_duo.config import DuoClientConfig, compute_user_agent, create_config
from coreason_duo.exceptions import DuoConfigurationError
from coreason_duo.models import ResponseCodeAttribute


def test_create_config_defaults(config: DuoClientConfig) -> None:
    assert config.client_id == CLIENT_ID
    assert config.client_secret.get_secret_value() == CLIENT_SECRET
    assert config.api_host == API_HOST
    assert config.redirect_uri == REDIRECT_URI
    assert config.response_code_attribute is ResponseCodeAttribute.DUO_CODE
    assert config.use_duo_code_attribute is True
    assert config.ca_certs == DEFAULT_CA_CERTS
    assert config.proxy_url is None
    assert config.http_timeout == 10.0
    assert config.clock_skew_leeway == 60


@pytest.mark.parametrize("field", ["client_id", "client_secret", "api_host", "redirect_uri"])
@pytest.mark.parametrize("bad", [None, "", "   "])
def test_create_config_rejects_missing_values(field: str, bad: str | None) -> None:
    values: dict[str, str | None] = {
        "client_id": CLIENT_ID,
        "client_secret": CLIENT_SECRET,
        "api_host": API_HOST,
        "redirect_uri": REDIRECT_URI,
    }
    values[field] = bad
    with pytest.raises(DuoConfigurationError, match=field.replace("_", " ")):
        create_config(**values)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "api_host",
    ["https://api-123456.duosecurity.com", "api-123456.duosecurity.com/oauth", "user@api-123456.duosecurity.com"],
)
def test_api_host_must_be_bare(api_host: str) -> None:
    with pytest.raises(DuoConfigurationError, match="Invalid Duo client configuration"):
        create_config(CLIENT_ID, CLIENT_SECRET, api_host, REDIRECT_URI)


def test_api_host_normalized() -> None:
    config = create_config(CLIENT_ID, CLIENT_SECRET, "  API-123456.DuoSecurity.com ", REDIRECT_URI)
    assert config.api_host == API_HOST


def test_code_attribute_toggle() -> None:
    config = create_config(CLIENT_ID, CLIENT_SECRET, API_HOST, REDIRECT_URI, use_duo_code_attribute=False)
    assert config.response_code_attribute is ResponseCodeAttribute.CODE
    assert config.use_duo_code_attribute is False


@pytest.mark.parametrize("ca_certs", [None, []])
def test_empty_ca_certs_keep_defaults(ca_certs: list[str] | None) -> None:
    config = create_config(CLIENT_ID, CLIENT_SECRET, API_HOST, REDIRECT_URI, ca_certs=ca_certs)
    assert config.ca_certs == DEFAULT_CA_CERTS


def test_ca_certs_override_replaces_defaults() -> None:
    config = create_config(CLIENT_ID, CLIENT_SECRET, API_HOST, REDIRECT_URI, ca_certs=[DEFAULT_CA_CERTS[3]])
    assert config.ca_certs == (DEFAULT_CA_CERTS[3],)

    direct = DuoClientConfig(
        client_id=CLIENT_ID,
        client_secret=CLIENT_SECRET,
        api_host=API_HOST,
        redirect_uri=REDIRECT_URI,
        ca_certs=[],
    )
    assert direct.ca_certs == DEFAULT_CA_CERTS


def test_config_is_frozen(config: DuoClientConfig) -> None:
    with pytest.raises(ValidationError):
        config.client_id = "other"  # type: ignore[misc]


def test_proxy_settings() -> None:
    config = create_config(CLIENT_ID, CLIENT_SECRET, API_HOST, REDIRECT_URI, proxy_host="proxy.local", proxy_port=3128)
    assert config.proxy_url == "http://proxy.local:3128"


@pytest.mark.parametrize(
    ("proxy_host", "proxy_port"),
    [("proxy.local", None), (None, 3128), ("proxy.local", 0), ("proxy.local", 70000)],
)
def test_proxy_settings_invalid(proxy_host: str | None, proxy_port: int | None) -> None:
    with pytest.raises(DuoConfigurationError):
        create_config(
            CLIENT_ID, CLIENT_SECRET, API_HOST, REDIRECT_URI, proxy_host=proxy_host, proxy_port=proxy_port
        )


def test_extra_settings_forwarded() -> None:
    config = create_config(CLIENT_ID, CLIENT_SECRET, API_HOST, REDIRECT_URI, http_timeout=2.5, clock_skew_leeway=5)
    assert config.http_timeout == 2.5
    assert config.clock_skew_leeway == 5

    with pytest.raises(DuoConfigurationError):
        create_config(CLIENT_ID, CLIENT_SECRET, API_HOST, REDIRECT_URI, http_timeout=0)


def test_user_agent() -> None:
    agent = compute_user_agent()
    assert agent.startswith(f"coreason_duo/{__version__} ")
    assert f"{platform.python_implementation()}/{platform.python_version()}" in agent
    assert agent.endswith(f"{platform.system()}/{platform.release()}/{platform.machine()}")


def test_user_agent_extra() -> None:
    config = create_config(CLIENT_ID, CLIENT_SECRET, API_HOST, REDIRECT_URI, user_agent_extra="my-app/2.1")
    assert config.user_agent == f"{compute_user_agent()} my-app/2.1"


def test_config_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DUO_CLIENT_ID", CLIENT_ID)
    monkeypatch.setenv("DUO_CLIENT_SECRET", CLIENT_SECRET)
    monkeypatch.setenv("duo_api_host", API_HOST)
    monkeypatch.setenv("DUO_REDIRECT_URI", REDIRECT_URI)
    monkeypatch.setenv("DUO_RESPONSE_CODE_ATTRIBUTE", "code")
    monkeypatch.setenv("DUO_HTTP_TIMEOUT", "3")

    config = DuoClientConfig()

    assert config.client_id == CLIENT_ID
    assert config.api_host == API_HOST
    assert config.use_duo_code_attribute is False
    assert config.http_timeout == 3.0


def test_secrets_hidden(config: DuoClientConfig) -> None:
    assert CLIENT_SECRET not in repr(config)
    assert CLIENT_SECRET not in str(config)
    assert "coreason-duo-unsafe-default-salt" not in repr(config)
