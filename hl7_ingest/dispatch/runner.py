"""
Dispatch runner — send every HL7 file under a directory tree to the store.

Walks the configured tree, transforms each message file, ingests it through
one shared MessageStoreClient, checks the returned acknowledgement, and
produces a dispatch report. A failure on one file is recorded and the run
moves on to the next file.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from hl7_ingest.ack.classifier import AckOutcome, check_ack
from hl7_ingest.client.store import MessageStoreClient
from hl7_ingest.dispatch.config import DispatchConfig
from hl7_ingest.dispatch.scanner import discover_messages
from hl7_ingest.dispatch.transform import append_trailer, retain_payload, sanitize_message
from hl7_ingest.errors import (
    HL7IngestError,
    NegativeAcknowledgementError,
    UnrecognizedAcknowledgementError,
)

logger = logging.getLogger("hl7_ingest.dispatch")


@dataclass
class DispatchResult:
    """Result of dispatching a single file."""

    path: Path
    pass_number: int
    success: bool
    resource_name: str = ""
    outcome: Optional[AckOutcome] = None
    ack_summary: str = ""
    error: Optional[str] = None
    skipped_reason: Optional[str] = None


@dataclass
class DispatchReport:
    """Summary report of a full dispatch run."""

    started_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    root: Optional[Path] = None
    passes: int = 0
    total_files: int = 0
    sent: int = 0
    rejected: int = 0
    skipped: int = 0
    failed: int = 0
    results: list[DispatchResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed == 0 and self.rejected == 0

    def summary(self) -> str:
        """Format a human-readable dispatch summary."""
        duration = ""
        if self.completed_at:
            elapsed = (self.completed_at - self.started_at).total_seconds()
            duration = f" in {elapsed:.1f}s"

        lines = [
            "=== Dispatch Report ===",
            f"Root:     {self.root}",
            f"Started:  {self.started_at.strftime('%Y-%m-%d %H:%M:%S')}",
        ]
        if self.completed_at:
            lines.append(
                f"Finished: {self.completed_at.strftime('%Y-%m-%d %H:%M:%S')}{duration}"
            )
        lines.extend([
            f"Passes:   {self.passes}",
            f"Files:    {self.total_files}",
            f"Sent:     {self.sent}",
            f"Rejected: {self.rejected}",
            f"Skipped:  {self.skipped}",
            f"Failed:   {self.failed}",
            "",
        ])

        for i, r in enumerate(self.results, 1):
            if r.success:
                status = "SENT"
            elif r.skipped_reason:
                status = "SKIP"
            elif r.outcome is not None:
                status = "NACK" if r.outcome is AckOutcome.REJECTED else "BAD"
            else:
                status = "FAIL"
            lines.append(f"  [{i:3d}] {status:4s} | #{r.pass_number} | {r.path}")
            if r.resource_name:
                lines.append(f"         Stored: {r.resource_name}")
            if r.skipped_reason:
                lines.append(f"         Reason: {r.skipped_reason}")
            if r.error:
                lines.append(f"         Error: {r.error}")

        lines.append("")
        lines.append("=== End Report ===")
        return "\n".join(lines)


class DispatchRunner:
    """
    Send the HL7 files of a directory tree to an HL7v2 store.

    Usage:
        config = DispatchConfig(root=Path("/data/hl7"), passes=1)
        with MessageStoreClient(client_config) as client:
            report = DispatchRunner(client, config).run()
        print(report.summary())
    """

    def __init__(self, client: MessageStoreClient, config: DispatchConfig) -> None:
        self.client = client
        self.config = config
        self._accepted_digests: set[str] = set()

    def run(self) -> DispatchReport:
        """
        Execute the dispatch run.

        Returns:
            A DispatchReport summarizing every file of every pass.

        Raises:
            FileNotFoundError: If the root directory does not exist.
        """
        report = DispatchReport(root=self.config.root, passes=self.config.passes)

        for pass_number in range(1, self.config.passes + 1):
            logger.info("pass #%d over '%s'", pass_number, self.config.root)
            for path in discover_messages(self.config.root):
                report.total_files += 1
                result = self.dispatch_file(path, pass_number)
                report.results.append(result)

                if result.success:
                    report.sent += 1
                elif result.skipped_reason:
                    report.skipped += 1
                elif result.outcome is not None:
                    report.rejected += 1
                else:
                    report.failed += 1

        report.completed_at = datetime.now()
        return report

    def dispatch_file(self, path: Path, pass_number: int = 1) -> DispatchResult:
        """Read, transform, send and acknowledge a single file."""
        result = DispatchResult(path=path, pass_number=pass_number, success=False)

        try:
            payload = sanitize_message(path.read_bytes())
        except OSError as e:
            logger.error("unable to read %s: %s", path, e)
            result.error = f"read failed: {e}"
            return result

        if not payload:
            result.skipped_reason = "empty message"
            return result

        digest = hashlib.sha256(payload).hexdigest()
        if self.config.skip_duplicates and digest in self._accepted_digests:
            result.skipped_reason = "identical message already accepted in this run"
            return result

        if self.config.append_trailer:
            payload = append_trailer(payload)

        try:
            if self.config.retain_dir is not None:
                retain_payload(self.config.retain_dir, self._relative(path), payload, pass_number)

            sent = self.client.send(payload)
            result.resource_name = sent.name
            logger.info("message successfully stored at: %s", sent.name)

            ack = check_ack(sent.ack)
            result.outcome = AckOutcome.ACCEPTED
            result.ack_summary = ack.summary()
            result.success = True
            self._accepted_digests.add(digest)

        except NegativeAcknowledgementError as e:
            result.outcome = AckOutcome.REJECTED
            result.error = str(e)
        except UnrecognizedAcknowledgementError as e:
            result.outcome = AckOutcome.MALFORMED
            result.error = str(e)
        except (HL7IngestError, OSError) as e:
            result.error = str(e)

        if result.error:
            logger.error("error dispatching %s: %s", path, result.error)
        return result

    def _relative(self, path: Path) -> Path:
        try:
            return path.relative_to(self.config.root)
        except ValueError:
            # file given directly, outside the dispatch root
            return Path(path.name)
