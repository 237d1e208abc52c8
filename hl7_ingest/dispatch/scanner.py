"""
Discover HL7 message files under a directory tree.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator

logger = logging.getLogger("hl7_ingest.dispatch.scanner")

HL7_MARKER = ".hl7"


def is_message_file(name: str) -> bool:
    """True for names containing ``.hl7`` (so ``a.hl7.bak`` counts too)."""
    return HL7_MARKER in name


def discover_messages(root: str | Path) -> Iterator[Path]:
    """
    Recursively yield HL7 message files under ``root``.

    Entries are visited in name order and subdirectories are descended into
    where they appear in that order. Symlinked directories are not followed,
    so a link back up the tree cannot yield a file twice.

    Raises:
        FileNotFoundError: If root does not exist or is not a directory.
    """
    root = Path(root)
    if not root.is_dir():
        raise FileNotFoundError(f"Message directory not found: {root}")
    yield from _walk(root)


def _walk(directory: Path) -> Iterator[Path]:
    with os.scandir(directory) as it:
        entries = sorted(it, key=lambda e: e.name)

    for entry in entries:
        path = Path(entry.path)
        if entry.is_dir(follow_symlinks=False):
            logger.debug("%s is a subdirectory, descending", path)
            yield from _walk(path)
        elif is_message_file(entry.name):
            yield path
