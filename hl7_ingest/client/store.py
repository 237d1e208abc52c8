"""
Cloud Healthcare HL7v2 store client.

Wraps the ``messages`` collection of one HL7v2 store: ingest a message and
get back the receiving system's acknowledgement, fetch a stored message, and
list the store's messages. Every call takes one permit from the client's
rate limiter and carries the API format-version header.

API docs: https://cloud.google.com/healthcare-api/docs/reference/rest/v1/projects.locations.datasets.hl7V2Stores.messages
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from hl7_ingest.client.auth import BearerAuth, TokenSource, resolve_token_source
from hl7_ingest.client.config import ClientConfig
from hl7_ingest.client.ratelimit import RateLimiter, new_rate_limiter
from hl7_ingest.errors import (
    AuthError,
    DecodeError,
    NotFoundError,
    TransportError,
)

logger = logging.getLogger("hl7_ingest.client.store")

API_FORMAT_HEADER = "X-GOOG-API-FORMAT-VERSION"
API_FORMAT_VERSION = "2"


@dataclass
class Message:
    """An HL7v2 message as stored by the Healthcare API."""

    name: str
    data: str = ""
    message_type: str = ""
    send_facility: str = ""
    send_time: Optional[str] = None
    create_time: Optional[str] = None
    labels: dict[str, str] = field(default_factory=dict)
    patient_ids: list[dict[str, str]] = field(default_factory=list)

    @property
    def payload(self) -> bytes:
        """The raw message bytes (``data`` is base64 on the wire)."""
        return _b64decode(self.data, "data")

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Message:
        return cls(
            name=data.get("name", ""),
            data=data.get("data", ""),
            message_type=data.get("messageType", ""),
            send_facility=data.get("sendFacility", ""),
            send_time=data.get("sendTime"),
            create_time=data.get("createTime"),
            labels=data.get("labels", {}) or {},
            patient_ids=data.get("patientIds", []) or [],
        )


@dataclass
class ListResult:
    """One page of ``messages.list``."""

    messages: list[Message] = field(default_factory=list)
    next_page_token: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ListResult:
        return cls(
            messages=[Message.from_api(m) for m in data.get("hl7V2Messages") or []],
            next_page_token=data.get("nextPageToken") or "",
        )


@dataclass
class SendResult:
    """Outcome of an ingest call: the decoded ack and the stored message's name."""

    ack: bytes
    name: str


class MessageStoreClient:
    """
    Client for a single Cloud Healthcare HL7v2 store.

    Usage:
        config = ClientConfig(project="p", location="us-central1",
                              dataset="d", store="s", rate_limit=10)
        with MessageStoreClient(config) as client:
            result = client.send(raw_hl7)
            message = client.get(result.name)
    """

    def __init__(
        self,
        config: ClientConfig,
        token_source: Optional[TokenSource] = None,
        limiter: Optional[RateLimiter] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        logger.debug("new hl7 store client instantiation")
        config.validate()
        self.config = config
        self.store_name = config.store_address

        if token_source is None:
            token_source = resolve_token_source(config.credential)
        self.limiter = limiter or new_rate_limiter(config.rate_limit)
        self._client = httpx.Client(
            base_url=config.endpoint,
            auth=BearerAuth(token_source),
            headers={
                API_FORMAT_HEADER: API_FORMAT_VERSION,
                "Content-Type": "application/json",
            },
            timeout=config.timeout,
            transport=transport,
        )
        logger.info("hl7 store client created for %s", self.store_name)

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    # ---- messages ----

    def send(self, data: bytes) -> SendResult:
        """
        Ingest one HL7v2 message into the store.

        Args:
            data: Raw message bytes (segments separated by carriage returns).

        Returns:
            SendResult with the decoded acknowledgement and the resource name
            assigned to the stored message.

        Raises:
            TransportError: On network, auth or HTTP failure.
            DecodeError: If the response or its ``hl7Ack`` field cannot be decoded.
        """
        self.limiter.acquire()
        logger.debug("sending message to %s", self.store_name)

        payload = {
            "message": {
                "labels": {},
                "data": base64.b64encode(data).decode("ascii"),
            }
        }
        body = self._request("POST", f"{self.store_name}/messages:ingest", json=payload)

        name = (body.get("message") or {}).get("name", "")
        logger.info("wrote message to hl7 store: %s", name)
        ack = _b64decode(body.get("hl7Ack") or "", "hl7Ack")
        return SendResult(ack=ack, name=name)

    def get_by_id(self, message_id: str) -> Message:
        """Get a message of this store by its ID."""
        return self.get(f"{self.store_name}/messages/{message_id}")

    def get(self, path: str) -> Message:
        """Get a message by its full resource name."""
        self.limiter.acquire()
        logger.debug("get message %s", path)
        return Message.from_api(self._request("GET", path))

    def list(self) -> ListResult:
        """List the messages in the store (first page only)."""
        self.limiter.acquire()
        logger.debug("list messages on %s", self.store_name)
        return ListResult.from_api(self._request("GET", f"{self.store_name}/messages"))

    # ---- transport ----

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            resp = self._client.request(method, path, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            detail = _error_detail(e.response)
            if status == 404:
                raise NotFoundError(f"{path} not found: {detail}", status_code=status) from e
            raise TransportError(f"{method} {path} failed with {status}: {detail}", status_code=status) from e
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e
        except AuthError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        try:
            body = resp.json()
        except ValueError as e:
            raise DecodeError(f"{method} {path} returned a non-JSON body") from e
        if not isinstance(body, dict):
            raise DecodeError(f"{method} {path} returned {type(body).__name__}, expected an object")
        return body


def _b64decode(value: str, field_name: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"{field_name} is not valid base64: {e}") from e


def _error_detail(resp: httpx.Response) -> str:
    """Pull the message out of a Google API error body, if there is one."""
    try:
        return resp.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return resp.text[:200]
