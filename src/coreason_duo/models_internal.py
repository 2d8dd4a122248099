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
Internal data models for the coreason-duo package.
These are not exposed in the public API.
"""

from pydantic import BaseModel, ConfigDict, Field


class TokenResponse(BaseModel):
    """
    Response body of the Duo token endpoint.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id_token: str = Field(..., min_length=1, description="The signed ID token (compact JWT).")
    access_token: str | None = Field(default=None, description="The access token issued alongside the ID token.")
    expires_in: int | None = Field(default=None, description="Lifetime of the access token in seconds.")
    token_type: str | None = Field(default=None, description="The type of the access token (e.g. Bearer).")


class ClientAssertionClaims(BaseModel):
    """
    Claims of the JWT that authenticates this client to a Duo endpoint.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    iss: str
    sub: str
    aud: str
    exp: int
    iat: int
    jti: str = Field(..., min_length=1)


class AuthRequestClaims(BaseModel):
    """
    Claims of the signed request object embedded in the authorization URL.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    iss: str
    sub: str
    aud: str
    exp: int
    iat: int
    jti: str = Field(..., min_length=1)
    client_id: str
    duo_uname: str
    redirect_uri: str
    state: str
    response_type: str = "code"
    scope: str = "openid"
    use_duo_code_attribute: bool = True
