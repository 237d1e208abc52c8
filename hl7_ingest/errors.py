"""
Exception hierarchy for the ingestion client and dispatcher.

Third-party errors (httpx, google-auth, hl7apy, base64) are wrapped into
these types at the module that talks to the library, so callers only ever
need to catch ``HL7IngestError``.
"""

from __future__ import annotations

from typing import Optional


class HL7IngestError(Exception):
    """Base class for all errors raised by hl7_ingest."""


# ---- configuration ----

class ConfigValidationError(HL7IngestError, ValueError):
    """The client configuration is incomplete."""


class MissingProjectID(ConfigValidationError):
    def __init__(self) -> None:
        super().__init__("missing project id")


class MissingLocationID(ConfigValidationError):
    def __init__(self) -> None:
        super().__init__("missing location id")


class MissingDatasetID(ConfigValidationError):
    def __init__(self) -> None:
        super().__init__("missing dataset id")


class MissingHL7StoreID(ConfigValidationError):
    def __init__(self) -> None:
        super().__init__("missing hl7 store id")


# ---- credentials ----

class AuthError(HL7IngestError):
    """No usable credential could be resolved."""


class CredentialReadError(AuthError):
    """The credential file could not be read."""


class CredentialParseError(AuthError):
    """The credential file does not hold usable credential material."""


# ---- wire ----

class TransportError(HL7IngestError):
    """A request to the store failed (network, auth or HTTP status)."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(TransportError):
    """The requested message resource does not exist."""


class DecodeError(HL7IngestError):
    """A response body or field could not be decoded."""


class CancelledError(HL7IngestError):
    """A call gave up before it could be issued."""


# ---- acknowledgements ----

class AcknowledgementError(HL7IngestError):
    """Base class for problems with the acknowledgement returned by the store."""


class ParseError(AcknowledgementError):
    """The acknowledgement is not a well-formed HL7 v2 message."""


class NegativeAcknowledgementError(AcknowledgementError):
    """The receiving system returned a NACK."""


class UnrecognizedAcknowledgementError(AcknowledgementError):
    """The acknowledgement is neither an ACK nor a NACK."""
