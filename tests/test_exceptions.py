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

from coreason_duo.exceptions import (
    DuoConfigurationError,
    DuoException,
    DuoProtocolError,
    DuoTransportError,
    DuoValidationError,
    TokenExpiredError,
)


@pytest.mark.parametrize(
    "error", [DuoConfigurationError, DuoProtocolError, DuoTransportError, DuoValidationError, TokenExpiredError]
)
def test_hierarchy(error: type[DuoException]) -> None:
    assert issubclass(error, DuoException)
    with pytest.raises(DuoException):
        raise error("boom")


def test_message_only() -> None:
    e = DuoProtocolError("Duo health check failed")
    assert str(e) == "Duo health check failed"
    assert e.error_code is None
    assert e.error_description is None


def test_message_with_duo_details() -> None:
    e = DuoProtocolError("invalid_client", error_code="40002", error_description="bad creds")
    assert e.message == "invalid_client"
    assert str(e) == "invalid_client (code: 40002) - bad creds"


def test_message_with_code_only() -> None:
    assert str(DuoProtocolError("Rejected", error_code="invalid_grant")) == "Rejected (code: invalid_grant)"
