"""
Client configuration model.

Defines the identifiers of the target HL7v2 store, the credential locator
and the outbound rate limit. Supports loading from a JSON config file with
the credential path optionally sourced from an environment variable.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from hl7_ingest.errors import (
    MissingDatasetID,
    MissingHL7StoreID,
    MissingLocationID,
    MissingProjectID,
)

logger = logging.getLogger("hl7_ingest.client.config")

DEFAULT_ENDPOINT = "https://healthcare.googleapis.com/v1/"

PROJECTS_PATH = "projects"
LOCATIONS_PATH = "locations"
DATASETS_PATH = "datasets"
HL7_STORES_PATH = "hl7V2Stores"


@dataclass(frozen=True)
class ClientConfig:
    """Settings for a MessageStoreClient.

    Attributes:
        project: Cloud project ID.
        location: Cloud location (region) of the dataset.
        dataset: Healthcare API dataset ID.
        store: HL7v2 store ID inside the dataset.
        credential: Path to a credential JSON file. Empty means use the
                    ambient default credentials of the process.
        rate_limit: Maximum requests per second; zero or less is unlimited.
        endpoint: Base URL of the Healthcare API.
        timeout: HTTP timeout in seconds for each request.
    """

    project: str
    location: str
    dataset: str
    store: str
    credential: str = ""
    rate_limit: int = 0
    endpoint: str = DEFAULT_ENDPOINT
    timeout: float = 30.0

    def validate(self) -> None:
        """Raise a ConfigValidationError subclass if an identifier is empty."""
        logger.debug("validating config for hl7 store client")
        if not self.project:
            raise MissingProjectID()
        if not self.location:
            raise MissingLocationID()
        if not self.dataset:
            raise MissingDatasetID()
        if not self.store:
            raise MissingHL7StoreID()

    @property
    def store_address(self) -> str:
        return store_address(self)


def store_address(config: ClientConfig) -> str:
    """Build the resource path of the HL7v2 store named by ``config``."""
    return "/".join([
        PROJECTS_PATH,
        config.project,
        LOCATIONS_PATH,
        config.location,
        DATASETS_PATH,
        config.dataset,
        HL7_STORES_PATH,
        config.store,
    ])


def load_client_config(config_path: str | Path, **overrides: Any) -> ClientConfig:
    """Load a ClientConfig from a JSON file.

    The credential path is taken from ``credential``, or, when that is
    empty, from the environment variable named in ``credential_env``.
    Keyword overrides whose value is not None replace file values.

    Args:
        config_path: Path to the client config JSON file.

    Returns:
        An unvalidated ClientConfig instance.

    Raises:
        FileNotFoundError: If config_path does not exist.
        json.JSONDecodeError: If the JSON is malformed.
        ValueError: If the top level of the file is not an object.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Client config not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: top level must be a JSON object")

    credential = raw.get("credential", "")
    credential_env = raw.get("credential_env", "")
    if not credential and credential_env:
        credential = os.environ.get(credential_env, "")

    values: dict[str, Any] = {
        "project": raw.get("project", ""),
        "location": raw.get("location", ""),
        "dataset": raw.get("dataset", ""),
        "store": raw.get("store", ""),
        "credential": credential,
        "rate_limit": int(raw.get("rate_limit", 0)),
        "endpoint": raw.get("endpoint", DEFAULT_ENDPOINT),
        "timeout": float(raw.get("timeout", 30.0)),
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return ClientConfig(**values)
