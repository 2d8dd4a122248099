# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_duo

import pytest

from coreason_duo.exceptions import DuoConfigurationError
from coreason_duo.params import (
    get_and_validate_url,
    validate_ca_certs,
    validate_client_params,
    validate_duo_code,
    validate_state,
    validate_username,
)

VALID = {
    "client_id": "DIXXXXXXXXXXXXXXXXXX",
    "client_secret": "s" * 40,
    "api_host": "api-123456.duosecurity.com",
    "redirect_uri": "https://app.example.com/callback",
}


def test_validate_client_params_accepts_complete_set() -> None:
    validate_client_params(**VALID)


@pytest.mark.parametrize("field", ["client_id", "client_secret", "api_host", "redirect_uri"])
@pytest.mark.parametrize("bad_value", [None, "", "   "])
def test_validate_client_params_rejects_missing_field(field: str, bad_value: str | None) -> None:
    params = {**VALID, field: bad_value}
    with pytest.raises(DuoConfigurationError):
        validate_client_params(**params)


def test_validate_client_params_names_the_failing_field() -> None:
    with pytest.raises(DuoConfigurationError, match="client secret"):
        validate_client_params(**{**VALID, "client_secret": ""})
    with pytest.raises(DuoConfigurationError, match="redirect uri"):
        validate_client_params(**{**VALID, "redirect_uri": None})


@pytest.mark.parametrize("username", [None, ""])
def test_validate_username_rejects_empty(username: str | None) -> None:
    with pytest.raises(DuoConfigurationError, match="username"):
        validate_username(username)


def test_validate_username_accepts_name() -> None:
    validate_username("alice")


@pytest.mark.parametrize("length", [22, 23, 36, 1024])
def test_validate_state_accepts_long_enough(length: int) -> None:
    validate_state("a" * length)


@pytest.mark.parametrize("length", [0, 1, 21])
def test_validate_state_rejects_short(length: int) -> None:
    with pytest.raises(DuoConfigurationError, match="22"):
        validate_state("a" * length)


def test_validate_state_rejects_none() -> None:
    with pytest.raises(DuoConfigurationError):
        validate_state(None)


@pytest.mark.parametrize("code", [None, "", "  "])
def test_validate_duo_code_rejects_empty(code: str | None) -> None:
    with pytest.raises(DuoConfigurationError):
        validate_duo_code(code)


def test_validate_ca_certs() -> None:
    assert validate_ca_certs(None) is False
    assert validate_ca_certs([]) is False
    assert validate_ca_certs(()) is False
    assert validate_ca_certs(["sha256/AAAA"]) is True


def test_get_and_validate_url_builds_https_url() -> None:
    url = get_and_validate_url("api-123456.duosecurity.com", "/oauth/v1/token")
    assert url == "https://api-123456.duosecurity.com/oauth/v1/token"


def test_get_and_validate_url_allows_port() -> None:
    assert get_and_validate_url("localhost:8443", "/oauth/v1/health_check") == (
        "https://localhost:8443/oauth/v1/health_check"
    )


@pytest.mark.parametrize(
    "host",
    [
        None,
        "",
        "https://api-123456.duosecurity.com",
        "api-123456.duosecurity.com/extra",
        "api-123456.duosecurity.com?x=1",
        "user@api-123456.duosecurity.com",
        "api 123456.duosecurity.com",
        "api-123456.duosecurity.com:notaport",
    ],
)
def test_get_and_validate_url_rejects_malformed_host(host: str | None) -> None:
    with pytest.raises(DuoConfigurationError):
        get_and_validate_url(host, "/oauth/v1/token")


def test_get_and_validate_url_rejects_relative_path() -> None:
    with pytest.raises(DuoConfigurationError):
        get_and_validate_url("api-123456.duosecurity.com", "oauth/v1/token")
