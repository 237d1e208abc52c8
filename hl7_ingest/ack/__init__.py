"""
Acknowledgement parsing and classification for ingest responses.
"""

from hl7_ingest.ack.classifier import (
    AckOutcome,
    ParsedAck,
    check_ack,
    classify,
    parse_ack,
)

__all__ = [
    "AckOutcome",
    "ParsedAck",
    "check_ack",
    "classify",
    "parse_ack",
]
