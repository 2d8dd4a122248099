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
Builds the HMAC-SHA512 signed JWTs sent to Duo.
"""

import time

from authlib.jose import JsonWebToken
from authlib.jose.errors import JoseError
from pydantic import BaseModel, SecretStr

from coreason_duo.exceptions import DuoConfigurationError
from coreason_duo.models_internal import AuthRequestClaims, ClientAssertionClaims
from coreason_duo.state import generate_jwt_id

JWT_ALGORITHM = "HS512"
JWT_EXPIRATION_SECONDS = 300

# HS512 only, for both signing and parsing
_jwt = JsonWebToken([JWT_ALGORITHM])


def _secret_value(client_secret: str | SecretStr) -> str:
    if isinstance(client_secret, SecretStr):
        return client_secret.get_secret_value()
    return client_secret


def _sign(claims: BaseModel, client_secret: str | SecretStr) -> str:
    header = {"alg": JWT_ALGORITHM, "typ": "JWT"}
    try:
        token = _jwt.encode(header, claims.model_dump(), _secret_value(client_secret))
    except (JoseError, ValueError, TypeError) as e:
        raise DuoConfigurationError(f"Unable to sign JWT with the client secret: {e}") from e
    return token.decode("ascii")


def create_jwt(client_id: str, client_secret: str | SecretStr, audience: str, now: int | None = None) -> str:
    """
    Creates the client assertion that authenticates this client to a Duo endpoint.

    Args:
        client_id: The Duo client id, used as issuer and subject.
        client_secret: The Duo client secret, used as the HMAC key.
        audience: The full URL of the endpoint the assertion is sent to.
        now: Issue time in epoch seconds. Defaults to the current time.

    Returns:
        str: The compact JWT.

    Raises:
        DuoConfigurationError: If the secret cannot be used for signing.
    """
    issued_at = int(time.time()) if now is None else now
    claims = ClientAssertionClaims(
        iss=client_id,
        sub=client_id,
        aud=audience,
        exp=issued_at + JWT_EXPIRATION_SECONDS,
        iat=issued_at,
        jti=generate_jwt_id(),
    )
    return _sign(claims, client_secret)


def create_jwt_for_auth_url(
    client_id: str,
    client_secret: str | SecretStr,
    audience: str,
    redirect_uri: str,
    state: str,
    username: str,
    use_duo_code_attribute: bool,
    now: int | None = None,
) -> str:
    """
    Creates the signed request object carried in the ``request`` parameter of the authorization URL.

    ``use_duo_code_attribute`` only tells Duo which parameter name to use for the code on
    redirect; it does not change how the request is signed.
    """
    issued_at = int(time.time()) if now is None else now
    claims = AuthRequestClaims(
        iss=client_id,
        sub=client_id,
        aud=audience,
        exp=issued_at + JWT_EXPIRATION_SECONDS,
        iat=issued_at,
        jti=generate_jwt_id(),
        client_id=client_id,
        duo_uname=username,
        redirect_uri=redirect_uri,
        state=state,
        use_duo_code_attribute=use_duo_code_attribute,
    )
    return _sign(claims, client_secret)
