"""
Prepare file contents for dispatch.

Files on disk often carry ``\\n`` or ``\\r\\n`` line endings, blank lines
or leftover MLLP framing; the store expects segments separated by a single
carriage return. A ``ZAC`` trailer segment can be appended to stamp each
send with its own timestamp.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

SEGMENT_SEP = b"\r"
TRAILER_SEGMENT = b"ZAC"

# MLLP start/end block bytes
_FRAME_BYTES = b"\x0b\x1c"


def sanitize_message(data: bytes) -> bytes:
    """Normalize segment separators to ``\\r`` and drop empty segments."""
    data = data.strip(_FRAME_BYTES + b" \t\r\n")
    normalized = data.replace(b"\r\n", SEGMENT_SEP).replace(b"\n", SEGMENT_SEP)
    segments = [s for s in normalized.split(SEGMENT_SEP) if s.strip()]
    if not segments:
        return b""
    return SEGMENT_SEP.join(segments) + SEGMENT_SEP


def trailer_timestamp(when: Optional[datetime] = None) -> str:
    """HL7 DTM with fractional seconds, trailing zeros trimmed."""
    when = when or datetime.now()
    stamp = when.strftime("%Y%m%d%H%M%S.%f").rstrip("0")
    return stamp.rstrip(".")


def append_trailer(data: bytes, when: Optional[datetime] = None) -> bytes:
    """Append a ``ZAC|<timestamp>`` segment to a sanitized message."""
    if data and not data.endswith(SEGMENT_SEP):
        data += SEGMENT_SEP
    trailer = TRAILER_SEGMENT + b"|" + trailer_timestamp(when).encode("ascii")
    return data + trailer + SEGMENT_SEP


def retain_payload(retain_dir: Path, relative: Path, data: bytes, pass_number: int = 1) -> Path:
    """
    Write a sent payload to ``retain_dir/pass-<n>/<relative>``.

    ``relative`` is the source path relative to the dispatch root, so files
    with the same name in different subdirectories, or the same file on a
    later pass, keep separate copies.
    """
    target = retain_dir / f"pass-{pass_number}" / relative
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)
    return target
