# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_duo

import time
from collections.abc import Callable
from typing import Any

import pytest
from authlib.jose import jwt

from coreason_duo.config import DuoClientConfig, create_config

CLIENT_ID = "DIXXXXXXXXXXXXXXXXXX"
CLIENT_SECRET = "deadbeefdeadbeefdeadbeefdeadbeefdeadbeefdeadbeefdeadbeefdeadbeef"
API_HOST = "api-123456.duosecurity.com"
REDIRECT_URI = "https://app.example.com/duo-callback"
USERNAME = "alice"
TOKEN_URL = f"https://{API_HOST}/oauth/v1/token"


@pytest.fixture
def config() -> DuoClientConfig:
    return create_config(CLIENT_ID, CLIENT_SECRET, API_HOST, REDIRECT_URI)


@pytest.fixture
def id_token_factory() -> Callable[..., str]:
    """
    Mints ID tokens shaped like Duo's. Keyword arguments override claims;
    a value of None removes the claim.
    """

    def _make(secret: str = CLIENT_SECRET, alg: str = "HS512", **overrides: Any) -> str:
        now = int(time.time())
        claims: dict[str, Any] = {
            "iss": TOKEN_URL,
            "aud": CLIENT_ID,
            "iat": now,
            "exp": now + 300,
            "auth_time": now,
            "preferred_username": USERNAME,
            "nonce": "n-0S6_WzA2Mj",
            "auth_result": {"result": "allow", "status": "allow", "status_msg": "Login Successful"},
            "auth_context": {
                "txid": "8b7a1c36-7f36-4e66-9a6e-0a3b3e7b8f21",
                "timestamp": now,
                "factor": "duo_push",
                "event_type": "authentication",
                "result": "success",
                "reason": "user_approved",
                "user": {"key": "DU3RP9I2WOC59VZX672N", "name": USERNAME, "groups": ["Employees"]},
                "application": {"key": "DIY231J8BR23QK4UKBY8", "name": "Web SSO"},
                "access_device": {
                    "browser": "Firefox",
                    "ip": "203.0.113.10",
                    "is_encryption_enabled": "unknown",
                    "location": {"city": "Ann Arbor", "state": "Michigan", "country": "United States"},
                },
                "auth_device": {"ip": "198.51.100.7", "name": "My iPhone"},
            },
        }
        for key, value in overrides.items():
            if value is None:
                claims.pop(key, None)
            else:
                claims[key] = value
        return jwt.encode({"alg": alg, "typ": "JWT"}, claims, secret).decode("ascii")  # type: ignore[no-any-return]

    return _make
