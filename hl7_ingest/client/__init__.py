"""
Rate-limited, authenticated client for a Cloud Healthcare HL7v2 store.
"""

from hl7_ingest.client.auth import (
    HEALTHCARE_SCOPE,
    BearerAuth,
    GoogleTokenSource,
    StaticTokenSource,
    TokenSource,
    resolve_token_source,
)
from hl7_ingest.client.config import ClientConfig, load_client_config, store_address
from hl7_ingest.client.ratelimit import (
    PacedRateLimiter,
    RateLimiter,
    UnlimitedRateLimiter,
    new_rate_limiter,
)
from hl7_ingest.client.store import (
    ListResult,
    Message,
    MessageStoreClient,
    SendResult,
)

__all__ = [
    "HEALTHCARE_SCOPE",
    "BearerAuth",
    "ClientConfig",
    "GoogleTokenSource",
    "ListResult",
    "Message",
    "MessageStoreClient",
    "PacedRateLimiter",
    "RateLimiter",
    "SendResult",
    "StaticTokenSource",
    "TokenSource",
    "UnlimitedRateLimiter",
    "load_client_config",
    "new_rate_limiter",
    "resolve_token_source",
    "store_address",
]
