"""
Dispatch configuration model.

Defines which directory tree is dispatched, how often, and how each file
is transformed before it is sent. Supports loading from the ``dispatch``
section of a JSON config file.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional


@dataclass
class DispatchConfig:
    """Settings for one dispatch run.

    Attributes:
        root: Directory tree to scan for ``.hl7`` files.
        passes: How many times the tree is traversed. Zero sends nothing.
        append_trailer: Append a ``ZAC|<timestamp>`` segment to each message
                        so repeated sends of one file are distinguishable.
        retain_dir: If set, every payload that was sent is written here
                    as ``pass-<n>/<path relative to root>``.
        skip_duplicates: Skip payloads identical to one already accepted
                         in this run (compared before the trailer is added).
    """

    root: Path
    passes: int = 1
    append_trailer: bool = True
    retain_dir: Optional[Path] = None
    skip_duplicates: bool = False

    def __post_init__(self) -> None:
        self.root = Path(self.root)
        if self.retain_dir is not None:
            self.retain_dir = Path(self.retain_dir)
        if self.passes < 0:
            raise ValueError(f"passes must not be negative, got {self.passes}")


def load_dispatch_config(config_path: str | Path, **overrides: Any) -> DispatchConfig:
    """Load a DispatchConfig from the ``dispatch`` section of a JSON file.

    Keyword overrides whose value is not None replace file values.

    Raises:
        FileNotFoundError: If config_path does not exist.
        json.JSONDecodeError: If the JSON is malformed.
        ValueError: If the file or its ``dispatch`` section is not an object.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Dispatch config not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        document = json.load(f)
    if not isinstance(document, dict):
        raise ValueError(f"{path}: top level must be a JSON object")
    raw = document.get("dispatch") or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: 'dispatch' must be a JSON object")

    values: dict[str, Any] = {
        "root": raw.get("root", "."),
        "passes": raw.get("passes", 1),
        "append_trailer": raw.get("append_trailer", True),
        "retain_dir": raw.get("retain_dir"),
        "skip_duplicates": raw.get("skip_duplicates", False),
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return DispatchConfig(**values)
