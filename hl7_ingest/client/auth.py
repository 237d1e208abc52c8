"""
Bearer token sources for the Healthcare API.

A token source hands out an access token on demand and refreshes it when
the cached one has expired. ``resolve_token_source`` picks a Google-backed
source from either an explicit credential file or the ambient default
credential chain; ``StaticTokenSource`` serves a fixed token.
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Generator, Sequence

import google.auth
import google.auth.exceptions
import google.auth.transport.requests
import google.oauth2.credentials
import httpx
from google.oauth2 import service_account

from hl7_ingest.errors import AuthError, CredentialParseError, CredentialReadError

logger = logging.getLogger("hl7_ingest.client.auth")

HEALTHCARE_SCOPE = "https://www.googleapis.com/auth/cloud-healthcare"


class TokenSource(ABC):
    """Anything that can produce a currently valid bearer token."""

    @abstractmethod
    def token(self) -> str:
        ...


class StaticTokenSource(TokenSource):
    """Serves the same token forever (static keys, tests)."""

    def __init__(self, token: str) -> None:
        self._token = token

    def token(self) -> str:
        return self._token


class GoogleTokenSource(TokenSource):
    """Wraps google-auth credentials, refreshing them when they go stale."""

    def __init__(self, credentials: Any) -> None:
        self.credentials = credentials
        self._lock = threading.Lock()

    def token(self) -> str:
        with self._lock:
            if not self.credentials.valid:
                logger.debug("refreshing access token")
                try:
                    self.credentials.refresh(google.auth.transport.requests.Request())
                except google.auth.exceptions.GoogleAuthError as e:
                    raise AuthError(f"unable to refresh access token: {e}") from e
            return self.credentials.token


class BearerAuth(httpx.Auth):
    """httpx auth flow that asks a TokenSource for a token on every request."""

    def __init__(self, source: TokenSource) -> None:
        self.source = source

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = f"Bearer {self.source.token()}"
        yield request


def resolve_token_source(credential: str, scopes: Sequence[str] = (HEALTHCARE_SCOPE,)) -> TokenSource:
    """
    Resolve a token source for the given credential locator.

    Args:
        credential: Path to a service-account (or authorized-user) JSON file.
                    Empty selects the ambient default credential chain.
        scopes: OAuth scopes to request.

    Returns:
        A GoogleTokenSource bound to the resolved credentials.

    Raises:
        CredentialReadError: If the credential file cannot be read.
        CredentialParseError: If the file does not hold credential material.
        AuthError: If no ambient default credentials are available.
    """
    logger.debug("getting token source for hl7 store client")

    if not credential:
        try:
            creds, _ = google.auth.default(scopes=list(scopes))
        except google.auth.exceptions.DefaultCredentialsError as e:
            raise AuthError(f"no default credentials available: {e}") from e
        return GoogleTokenSource(creds)

    try:
        raw = Path(credential).read_bytes()
    except OSError as e:
        raise CredentialReadError(f"unable to read credential file {credential}: {e}") from e

    return GoogleTokenSource(_credentials_from_json(raw, scopes))


def _credentials_from_json(raw: bytes, scopes: Sequence[str]) -> Any:
    try:
        info = json.loads(raw)
    except ValueError as e:
        raise CredentialParseError(f"credential file is not valid JSON: {e}") from e
    if not isinstance(info, dict):
        raise CredentialParseError("credential file must contain a JSON object")

    kind = info.get("type", "service_account")
    try:
        if kind == "service_account":
            return service_account.Credentials.from_service_account_info(info, scopes=list(scopes))
        if kind == "authorized_user":
            return google.oauth2.credentials.Credentials.from_authorized_user_info(info, scopes=list(scopes))
    except ValueError as e:
        raise CredentialParseError(f"malformed {kind} credential: {e}") from e
    raise CredentialParseError(f"unsupported credential type '{kind}'")
