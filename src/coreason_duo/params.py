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
Parameter checks run before any signing or network work.
"""

from collections.abc import Sequence

import httpx

from coreason_duo.exceptions import DuoConfigurationError

MIN_STATE_LENGTH = 22

_FORBIDDEN_HOST_CHARS = frozenset("/\\?#@ \t\r\n")


def _is_blank(value: str | None) -> bool:
    return value is None or not isinstance(value, str) or not value.strip()


def validate_client_params(
    client_id: str | None,
    client_secret: str | None,
    api_host: str | None,
    redirect_uri: str | None,
) -> None:
    """
    Ensures the four values every Duo client needs are present.

    Raises:
        DuoConfigurationError: Naming the first missing or empty value.
    """
    if _is_blank(client_id):
        raise DuoConfigurationError("The Duo client id is invalid.")
    if _is_blank(client_secret):
        raise DuoConfigurationError("The Duo client secret is invalid.")
    if _is_blank(api_host):
        raise DuoConfigurationError("The Duo api host is invalid.")
    if _is_blank(redirect_uri):
        raise DuoConfigurationError("The Duo redirect uri is invalid.")


def validate_username(username: str | None) -> None:
    if _is_blank(username):
        raise DuoConfigurationError("The username is invalid.")


def validate_state(state: str | None) -> None:
    """
    Rejects a missing state or one too short to protect against CSRF.
    """
    if state is None or not isinstance(state, str) or len(state) < MIN_STATE_LENGTH:
        raise DuoConfigurationError(f"The state must be at least {MIN_STATE_LENGTH} characters long.")


def validate_duo_code(duo_code: str | None) -> None:
    if _is_blank(duo_code):
        raise DuoConfigurationError("The Duo authorization code is missing.")


def validate_ca_certs(ca_certs: Sequence[str] | None) -> bool:
    """
    Tells whether a caller-supplied set of CA pins should replace the current one.

    An absent or empty set is not an error; the caller keeps the pins it already has.
    """
    return ca_certs is not None and len(ca_certs) > 0


def get_and_validate_url(host: str | None, path: str) -> str:
    """
    Builds ``https://{host}{path}`` after checking that ``host`` is a bare hostname.

    Args:
        host: The Duo API hostname, optionally with a port. No scheme or path.
        path: The endpoint path, starting with "/".

    Returns:
        str: The absolute HTTPS URL.

    Raises:
        DuoConfigurationError: If the host is empty or would produce a malformed URL.
    """
    if host is None or _is_blank(host):
        raise DuoConfigurationError("The Duo api host is invalid.")
    if "://" in host or any(ch in _FORBIDDEN_HOST_CHARS for ch in host):
        raise DuoConfigurationError(f"The Duo api host '{host}' must be a bare hostname.")
    if not path.startswith("/"):
        raise DuoConfigurationError(f"Invalid endpoint path '{path}'.")

    url = f"https://{host}{path}"
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise DuoConfigurationError(f"Unable to build a valid URL for host '{host}': {e}") from e

    if not parsed.host:
        raise DuoConfigurationError(f"Unable to build a valid URL for host '{host}'.")
    return url
