"""
Dispatch layer: find HL7 message files under a directory tree and send
each one to the store, checking the acknowledgement and reporting results.
"""

from hl7_ingest.dispatch.config import DispatchConfig, load_dispatch_config
from hl7_ingest.dispatch.runner import DispatchReport, DispatchResult, DispatchRunner
from hl7_ingest.dispatch.scanner import discover_messages

__all__ = [
    "DispatchConfig",
    "DispatchReport",
    "DispatchResult",
    "DispatchRunner",
    "discover_messages",
    "load_dispatch_config",
]
