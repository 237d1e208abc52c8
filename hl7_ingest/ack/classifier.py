"""
Decide whether the store accepted a message from its acknowledgement.

Parses the HL7 v2 acknowledgement returned by ``messages:ingest`` and
classifies it by its message type (MSH-9.1):

- ``ACK``  → accepted
- ``NACK`` → rejected
- anything else → malformed

The MSA segment (acknowledgement code, control ID, text) is extracted for
reporting but does not change the classification.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any

from hl7apy.exceptions import HL7apyException
from hl7apy.parser import parse_segment

from hl7_ingest.errors import (
    NegativeAcknowledgementError,
    ParseError,
    UnrecognizedAcknowledgementError,
)

logger = logging.getLogger("hl7_ingest.ack")

# MLLP frame bytes sometimes left around an ack
_FRAME_CHARS = "\x0b\x1c"


class AckOutcome(enum.Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    MALFORMED = "malformed"


@dataclass
class ParsedAck:
    """Fields of interest from an acknowledgement message."""

    message_type: str
    control_id: str = ""
    ack_code: str = ""
    text: str = ""

    @property
    def outcome(self) -> AckOutcome:
        if self.message_type == "ACK":
            return AckOutcome.ACCEPTED
        if self.message_type == "NACK":
            return AckOutcome.REJECTED
        return AckOutcome.MALFORMED

    def summary(self) -> str:
        parts = [f"type={self.message_type or '?'}"]
        if self.ack_code:
            parts.append(f"code={self.ack_code}")
        if self.control_id:
            parts.append(f"control_id={self.control_id}")
        if self.text:
            parts.append(f"text={self.text!r}")
        return " ".join(parts)


def split_segments(text: str) -> list[str]:
    """Split ER7 text into segments, accepting \\r, \\n or \\r\\n separators."""
    text = text.strip(_FRAME_CHARS + " \t\r\n")
    normalized = text.replace("\r\n", "\r").replace("\n", "\r")
    return [s for s in normalized.split("\r") if s.strip()]


def parse_ack(data: bytes) -> ParsedAck:
    """
    Parse acknowledgement bytes.

    Raises:
        ParseError: If the bytes are not a well-formed HL7 v2 message.
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(f"acknowledgement is not valid UTF-8: {e}") from e

    segments = split_segments(text)
    if not segments:
        raise ParseError("acknowledgement is empty")
    if not segments[0].startswith("MSH") or len(segments[0]) < 8:
        raise ParseError(f"acknowledgement does not start with an MSH segment: {segments[0][:20]!r}")

    encoding_chars = _encoding_chars(segments[0])
    component_sep = encoding_chars["COMPONENT"]
    try:
        msh = parse_segment(segments[0], encoding_chars=encoding_chars)
        msa_text = next((s for s in segments[1:] if s.startswith("MSA")), None)
        msa = parse_segment(msa_text, encoding_chars=encoding_chars) if msa_text else None
    except HL7apyException as e:
        raise ParseError(f"malformed acknowledgement: {e}") from e

    ack = ParsedAck(
        message_type=_field(msh, "msh_9", encoding_chars).split(component_sep)[0],
        control_id=_field(msh, "msh_10", encoding_chars),
    )
    if msa is not None:
        ack.ack_code = _field(msa, "msa_1", encoding_chars)
        ack.text = _field(msa, "msa_3", encoding_chars)
    return ack


def classify(data: bytes) -> AckOutcome:
    """Classify acknowledgement bytes as accepted, rejected or malformed."""
    return parse_ack(data).outcome


def check_ack(data: bytes) -> ParsedAck:
    """
    Return the parsed ack if it is an ACK, otherwise raise.

    Raises:
        ParseError: If the acknowledgement cannot be parsed.
        NegativeAcknowledgementError: If the receiving system returned a NACK.
        UnrecognizedAcknowledgementError: If it is neither ACK nor NACK.
    """
    ack = parse_ack(data)
    outcome = ack.outcome
    if outcome is AckOutcome.REJECTED:
        raise NegativeAcknowledgementError(f"receiving system returned nack ({ack.summary()})")
    if outcome is AckOutcome.MALFORMED:
        raise UnrecognizedAcknowledgementError(f"invalid ack response ({ack.summary()})")
    logger.debug("ack received: %s", ack.summary())
    return ack


def _field(segment: Any, name: str, encoding_chars: dict[str, str]) -> str:
    # absent trailing fields are fine, they read as empty
    try:
        return getattr(segment, name).to_er7(encoding_chars=encoding_chars)
    except (AttributeError, IndexError, KeyError, HL7apyException):
        return ""


def _encoding_chars(msh: str) -> dict[str, str]:
    """Read the delimiters declared in MSH-1 and MSH-2."""
    component, repetition, escape, subcomponent = msh[4:8]
    return {
        "FIELD": msh[3],
        "COMPONENT": component,
        "REPETITION": repetition,
        "ESCAPE": escape,
        "SUBCOMPONENT": subcomponent,
        "GROUP": "\n",
        "SEGMENT": "\r",
    }
