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
Data models for the coreason-duo package.
"""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ResponseCodeAttribute(StrEnum):
    """Name of the query parameter Duo uses to hand the authorization code back on redirect."""

    DUO_CODE = "duo_code"
    CODE = "code"


class HealthCheckTimestamp(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    timestamp: int | None = None


class HealthCheckResponse(BaseModel):
    """
    Response from the Duo health check endpoint.

    Attributes:
        stat (str): "OK" when Duo is available, "FAIL" otherwise.
        message (str | None): Short failure reason (e.g. "invalid_client").
        message_detail (str | None): Longer failure description.
        code (int | None): Duo error code.
        timestamp (int | None): Server time of a failed check.
        response (HealthCheckTimestamp | None): Server time of a successful check.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    stat: str
    message: str | None = None
    message_detail: str | None = None
    code: int | None = None
    timestamp: int | None = None
    response: HealthCheckTimestamp | None = None

    @property
    def success(self) -> bool:
        return self.stat == "OK"


class Location(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    city: str | None = None
    state: str | None = None
    country: str | None = None


class Application(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    key: str | None = None
    name: str | None = None


class User(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    key: str | None = None
    name: str | None = None
    groups: list[str] = Field(default_factory=list)


class AccessDevice(BaseModel):
    """The device the user was signing in from."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    browser: str | None = None
    browser_version: str | None = None
    epkey: str | None = None
    flash_version: str | None = None
    hostname: str | None = None
    ip: str | None = None
    # Duo reports these as booleans or as the string "unknown"
    is_encryption_enabled: bool | str | None = None
    is_firewall_enabled: bool | str | None = None
    is_password_set: bool | str | None = None
    java_version: str | None = None
    location: Location | None = None
    os: str | None = None
    os_version: str | None = None
    security_agents: Any = None


class AuthDevice(BaseModel):
    """The device used to complete the second factor."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    ip: str | None = None
    location: Location | None = None
    name: str | None = None


class AuthContext(BaseModel):
    """Metadata Duo attaches to the authentication event."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    txid: str | None = None
    timestamp: int | None = None
    isotimestamp: str | None = None
    event_type: str | None = None
    factor: str | None = None
    result: str | None = None
    reason: str | None = None
    alias: str | None = None
    email: str | None = None
    ood_software: str | None = None
    user: User | None = None
    application: Application | None = None
    access_device: AccessDevice | None = None
    auth_device: AuthDevice | None = None
    adaptive_trust_assessments: dict[str, Any] | None = None


class AuthResult(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    result: str | None = None
    status: str | None = None
    status_msg: str | None = None


class Token(BaseModel):
    """
    Result of a successful two-factor exchange, projected from the validated ID token.

    This model is frozen (immutable); it carries no identity beyond its fields.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    iss: str
    aud: str | list[str]
    exp: int
    iat: int
    preferred_username: str
    auth_time: int | None = None
    nonce: str | None = None
    auth_result: AuthResult | None = None
    auth_context: AuthContext | None = None

    @property
    def username(self) -> str:
        return self.preferred_username

    def __repr__(self) -> str:
        # PII fields MUST be redacted in __repr__
        return (
            f"Token(iss={self.iss!r}, "
            f"aud={self.aud!r}, "
            f"exp={self.exp!r}, "
            f"iat={self.iat!r}, "
            f"preferred_username='<REDACTED>', "
            f"auth_result={self.auth_result!r}, "
            f"auth_context='<REDACTED>')"
        )

    def __str__(self) -> str:
        return self.__repr__()
