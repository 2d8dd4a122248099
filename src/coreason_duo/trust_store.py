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
Pinned root certificates used to verify every HTTPS connection to Duo.
"""

import base64
import binascii
import hashlib
import ssl
from collections.abc import Sequence

from coreason_duo._ca_certs import DEFAULT_CA_CERTS
from coreason_duo.exceptions import DuoConfigurationError
from coreason_duo.params import validate_ca_certs
from coreason_duo.utils.logger import logger

PIN_PREFIX = "sha256/"


def decode_pin(pin: str) -> bytes:
    """
    Decodes one pinned certificate to DER bytes.

    Accepts ``sha256/<base64 DER>``, bare base64 DER, or a PEM block.

    Raises:
        DuoConfigurationError: If the value is not a decodable certificate.
    """
    value = pin.strip()
    if value.startswith("-----BEGIN CERTIFICATE-----"):
        try:
            return ssl.PEM_cert_to_DER_cert(value)
        except ValueError as e:
            raise DuoConfigurationError(f"Invalid PEM certificate in CA pins: {e}") from e

    if value.startswith(PIN_PREFIX):
        value = value[len(PIN_PREFIX) :]
    try:
        der = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DuoConfigurationError(f"Invalid base64 certificate in CA pins: {e}") from e
    if not der:
        raise DuoConfigurationError("Empty certificate in CA pins.")
    return der


class TrustStore:
    """
    An ordered set of pinned CA certificates.

    Only these certificates are trusted as roots; the platform's CA store is never consulted.

    Attributes:
        ca_certs (tuple[str, ...]): The pins in use.
    """

    def __init__(self, ca_certs: Sequence[str] | None = None) -> None:
        """
        Initialize the TrustStore.

        Args:
            ca_certs: Pins replacing the embedded defaults. None or empty keeps the defaults.
        """
        self.ca_certs: tuple[str, ...] = tuple(ca_certs) if validate_ca_certs(ca_certs) else DEFAULT_CA_CERTS

    def with_ca_certs(self, ca_certs: Sequence[str] | None) -> "TrustStore":
        """
        Returns a trust store using ``ca_certs`` in full, or this one if they are empty.
        """
        if not validate_ca_certs(ca_certs):
            logger.debug("Empty CA certificate override ignored; keeping current pins.")
            return self
        return TrustStore(ca_certs)

    @property
    def is_default(self) -> bool:
        return self.ca_certs == DEFAULT_CA_CERTS

    def der_certificates(self) -> list[bytes]:
        return [decode_pin(pin) for pin in self.ca_certs]

    def fingerprints(self) -> list[str]:
        """
        SHA-256 fingerprints (lowercase hex) of the pinned certificates, in order.
        """
        return [hashlib.sha256(der).hexdigest() for der in self.der_certificates()]

    def create_ssl_context(self) -> ssl.SSLContext:
        """
        Builds a client SSL context that trusts only the pinned certificates.

        Hostname checking stays on and TLS 1.2 is the minimum protocol version.

        Raises:
            DuoConfigurationError: If a pin cannot be loaded as a certificate.
        """
        cadata = b"".join(self.der_certificates())
        try:
            context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH, cadata=cadata)
        except ssl.SSLError as e:
            raise DuoConfigurationError(f"Unable to load pinned CA certificates: {e}") from e

        context.minimum_version = ssl.TLSVersion.TLSv1_2
        logger.debug(f"Trust store loaded with {len(self.ca_certs)} pinned certificates (default={self.is_default})")
        return context
