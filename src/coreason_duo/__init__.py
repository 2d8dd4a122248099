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
Client for Duo's Universal Prompt: signed OIDC request objects, ID token validation
and certificate-pinned HTTPS, for adding a second factor after password login.
"""

__version__ = "0.1.0"
__author__ = "Gowtham A Rao"
__email__ = "gowtham.rao@coreason.ai"

from .client import DuoClient, DuoClientAsync
from .config import DuoClientConfig, create_config
from .exceptions import (
    DuoConfigurationError,
    DuoException,
    DuoProtocolError,
    DuoTransportError,
    DuoValidationError,
)
from .models import HealthCheckResponse, ResponseCodeAttribute, Token
from .state import generate_state
from .trust_store import TrustStore
from .validator import DuoIdTokenValidator, TokenValidator

__all__ = [
    "DuoClient",
    "DuoClientAsync",
    "DuoClientConfig",
    "DuoConfigurationError",
    "DuoException",
    "DuoIdTokenValidator",
    "DuoProtocolError",
    "DuoTransportError",
    "DuoValidationError",
    "HealthCheckResponse",
    "ResponseCodeAttribute",
    "Token",
    "TokenValidator",
    "TrustStore",
    "generate_state",
]
