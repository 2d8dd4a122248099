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
Custom exceptions for the coreason-duo package.
"""


class DuoException(Exception):
    """
    Base exception for all coreason-duo errors.

    Attributes:
        message (str): Human-readable description of the failure.
        error_code (str | None): The error code reported by Duo, if any.
        error_description (str | None): The error detail reported by Duo, if any.
    """

    def __init__(self, message: str, error_code: str | None = None, error_description: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.error_description = error_description

    def __str__(self) -> str:
        parts = [self.message]
        if self.error_code:
            parts.append(f"(code: {self.error_code})")
        if self.error_description:
            parts.append(f"- {self.error_description}")
        return " ".join(parts)


class DuoConfigurationError(DuoException):
    """Raised for missing or malformed configuration and call parameters."""


class DuoProtocolError(DuoException):
    """Raised when Duo reports a failure or answers with an unusable response."""


class DuoTransportError(DuoException):
    """Raised when the HTTPS exchange with Duo fails (network, TLS, certificate pinning)."""


class DuoValidationError(DuoException):
    """
    Raised when the ID token returned by Duo is rejected.
    Matches the usual pattern: `except DuoValidationError:`.
    """


class SignatureVerificationError(DuoValidationError):
    """Raised when the ID token's HMAC signature cannot be verified."""


class InvalidIssuerError(DuoValidationError):
    """Raised when the ID token was not issued by the expected token endpoint."""


class InvalidAudienceError(DuoValidationError):
    """Raised when the ID token's audience is not this client."""


class TokenExpiredError(DuoValidationError):
    """Raised when the ID token has expired."""


class TokenNotYetValidError(DuoValidationError):
    """Raised when the ID token was issued in the future."""


class UsernameMismatchError(DuoValidationError):
    """Raised when the ID token asserts a different user than the one who started the flow."""


class MissingClaimError(DuoValidationError):
    """Raised when a required claim is absent from the ID token."""
