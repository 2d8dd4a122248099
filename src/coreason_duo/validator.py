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
Validation of the ID token Duo returns from the token endpoint.
"""

import hashlib
import hmac
import time
from typing import Any, Protocol, runtime_checkable

from authlib.jose import JsonWebToken
from authlib.jose.errors import (
    BadSignatureError,
    ExpiredTokenError,
    InvalidClaimError,
    JoseError,
    UnsupportedAlgorithmError,
)
from authlib.jose.errors import InvalidTokenError as JoseInvalidTokenError
from authlib.jose.errors import MissingClaimError as JoseMissingClaimError
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from pydantic import SecretStr, ValidationError

from coreason_duo.exceptions import (
    DuoValidationError,
    InvalidAudienceError,
    InvalidIssuerError,
    MissingClaimError,
    SignatureVerificationError,
    TokenExpiredError,
    TokenNotYetValidError,
    UsernameMismatchError,
)
from coreason_duo.models import Token
from coreason_duo.params import get_and_validate_url
from coreason_duo.signer import JWT_ALGORITHM
from coreason_duo.transport import OAUTH_V1_TOKEN_ENDPOINT
from coreason_duo.utils.logger import logger

tracer = trace.get_tracer(__name__)
DEFAULT_LEEWAY = 60


def anonymize(value: str, salt: SecretStr) -> str:
    """
    Anonymizes a value using HMAC-SHA256 with the configured salt.

    Args:
        value: The value to anonymize.
        salt: The PII salt.

    Returns:
        str: The anonymized hex digest.
    """
    return hmac.new(
        salt.get_secret_value().encode("utf-8"),
        value.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


@runtime_checkable
class TokenValidator(Protocol):
    """
    Validates and decodes the raw ID token returned by Duo.

    A custom implementation MUST, at a minimum:
      - verify the HMAC-SHA512 signature with the client secret,
      - check the issuer is the token endpoint of the api host,
      - check the audience is the client id,
      - check the issued-at and expiration times,
      - check preferred_username is the user who started the flow.
    """

    def validate_and_decode(self, id_token: str) -> dict[str, Any]:
        """
        Returns the verified claims, or raises DuoValidationError.
        """
        ...


class DuoIdTokenValidator:
    """
    Default TokenValidator for Duo ID tokens.

    Attributes:
        client_id (str): The expected audience.
        username (str): The expected preferred_username.
        issuer (str): The expected issuer (the token endpoint URL).
        leeway (int): Acceptable clock skew in seconds.
    """

    def __init__(
        self,
        client_secret: str | SecretStr,
        username: str,
        client_id: str,
        api_host: str,
        leeway: int = DEFAULT_LEEWAY,
        pii_salt: SecretStr | None = None,
    ) -> None:
        """
        Initialize the DuoIdTokenValidator.

        Args:
            client_secret: The Duo client secret, used as the HMAC key.
            username: The user who started the flow.
            client_id: The Duo client id.
            api_host: The Duo api host.
            leeway: Acceptable clock skew in seconds. Defaults to 60.
            pii_salt: Salt for anonymizing the username in logs.
        """
        self._client_secret = client_secret if isinstance(client_secret, SecretStr) else SecretStr(client_secret)
        self.username = username
        self.client_id = client_id
        self.issuer = get_and_validate_url(api_host, OAUTH_V1_TOKEN_ENDPOINT)
        self.leeway = leeway
        self.pii_salt = pii_salt or SecretStr("coreason-duo-unsafe-default-salt")
        self.jwt = JsonWebToken([JWT_ALGORITHM])

    def _claims_options(self) -> dict[str, Any]:
        return {
            "iss": {"essential": True, "value": self.issuer},
            "aud": {"essential": True, "value": self.client_id},
            "exp": {"essential": True},
            "iat": {"essential": True},
            "preferred_username": {"essential": True},
        }

    def validate_and_decode(self, id_token: str) -> dict[str, Any]:
        """
        Verifies the signature and claims of the ID token.

        Emits an OpenTelemetry span `duo.validate_id_token`.

        Args:
            id_token: The compact JWT from the token endpoint.

        Returns:
            dict[str, Any]: The verified claims.

        Raises:
            SignatureVerificationError: If the signature or algorithm is wrong.
            InvalidIssuerError: If the issuer is not the token endpoint.
            InvalidAudienceError: If the audience is not the client id.
            TokenExpiredError: If the token has expired.
            TokenNotYetValidError: If the token was issued in the future.
            UsernameMismatchError: If the token is for another user.
            MissingClaimError: If a required claim is absent.
            DuoValidationError: For any other malformed token.
        """
        with tracer.start_as_current_span("duo.validate_id_token") as span:
            try:
                payload = self._decode(id_token.strip())

                user_hash = anonymize(self.username, self.pii_salt)
                logger.info(f"ID token validated for user {user_hash}")
                span.set_attribute("enduser.id", user_hash)
                span.set_status(Status(StatusCode.OK))
                return payload

            except DuoValidationError as e:
                logger.warning(f"ID token rejected: {e.message}")
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, e.message))
                raise

    def _decode(self, token: str) -> dict[str, Any]:
        now = int(time.time())
        try:
            claims = self.jwt.decode(token, self._client_secret.get_secret_value(), claims_options=self._claims_options())
            claims.validate(now=now, leeway=self.leeway)
        except BadSignatureError as e:
            raise SignatureVerificationError(f"Invalid ID token signature: {e}") from e
        except ExpiredTokenError as e:
            raise TokenExpiredError(f"ID token has expired: {e}") from e
        except JoseInvalidTokenError as e:
            raise TokenNotYetValidError(f"ID token is not yet valid: {e}") from e
        except JoseMissingClaimError as e:
            raise MissingClaimError(f"Missing claim in ID token: {e}") from e
        except InvalidClaimError as e:
            claim = getattr(e, "claim_name", None) or str(e)
            if "iss" in claim:
                raise InvalidIssuerError(f"Invalid ID token issuer: {e}") from e
            if "aud" in claim:
                raise InvalidAudienceError(f"Invalid ID token audience: {e}") from e
            raise DuoValidationError(f"Invalid claim in ID token: {e}") from e
        except UnsupportedAlgorithmError as e:
            raise SignatureVerificationError(f"ID token is not signed with {JWT_ALGORITHM}: {e}") from e
        except JoseError as e:
            raise DuoValidationError(f"ID token validation failed: {e}") from e
        except (ValueError, TypeError) as e:
            raise DuoValidationError(f"Malformed ID token: {e}") from e

        payload = dict(claims)

        iat = payload["iat"]
        if not isinstance(iat, (int, float)) or isinstance(iat, bool):
            raise DuoValidationError("Invalid claim in ID token: iat is not a timestamp")
        if iat > now + self.leeway:
            raise TokenNotYetValidError("ID token is not yet valid: issued in the future")

        if payload.get("preferred_username") != self.username:
            raise UsernameMismatchError("ID token username does not match the user who started the flow")

        return payload


def transform_claims_to_token(claims: dict[str, Any]) -> Token:
    """
    Projects verified ID token claims onto the public Token model.

    Raises:
        DuoValidationError: If the claims do not have the shape of a Duo ID token.
    """
    try:
        return Token.model_validate(claims)
    except ValidationError as e:
        raise DuoValidationError(f"ID token claims have an unexpected shape: {e}") from e
