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
Random identifiers used as the CSRF state and as JWT ids.
"""

import secrets
import string

STATE_LENGTH = 36
JTI_LENGTH = 32

# 62 symbols give ~5.95 bits each, so 22 characters already exceed 128 bits
_ALPHABET = string.ascii_letters + string.digits
_MIN_LENGTH = 22


def generate_random_id(length: int) -> str:
    """
    Returns a random alphanumeric string drawn from the OS CSPRNG.

    Args:
        length: Number of characters. Must be at least 22 (128 bits of entropy).

    Raises:
        ValueError: If the requested length is too short to be unguessable.
    """
    if length < _MIN_LENGTH:
        raise ValueError(f"Random identifiers must be at least {_MIN_LENGTH} characters long.")
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def generate_state() -> str:
    """
    Generates a 36 character state value for `create_auth_url`.

    Store it with the user's session and compare it with the state Duo sends back.
    """
    return generate_random_id(STATE_LENGTH)


def generate_jwt_id() -> str:
    return generate_random_id(JTI_LENGTH)
