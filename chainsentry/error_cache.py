"""Bounded collector for fetch-layer error findings.

When an RPC lookup exhausts its retries the DataFetcher records an error
finding here (with the formatted traceback) and still returns its fallback
value to the caller. The runner drains the collector after every event so
fetch-client health shows up in the same output stream as the bots' findings.
"""

from __future__ import annotations

import logging
import traceback
from collections import deque

from chainsentry.models import Finding, FindingSeverity, FindingType

logger = logging.getLogger(__name__)

ERROR_ALERT_ID = "DEBUG-ERROR"


def create_error_finding(message: str, source: str, stack_trace: str) -> Finding:
    return Finding(
        name=f"Error in {source}",
        description=message,
        alert_id=ERROR_ALERT_ID,
        severity=FindingSeverity.Info,
        type=FindingType.Info,
        metadata={
            "message": message,
            "source": source,
            "stackTrace": stack_trace,
        },
    )


class ErrorCollector:
    """
    Append-only ring buffer of error findings.

    Oldest records are dropped once `maxlen` is reached.
    """

    def __init__(self, maxlen: int = 1000) -> None:
        self._records: deque[Finding] = deque(maxlen=maxlen)

    @property
    def maxlen(self) -> int:
        return self._records.maxlen or 0

    def add(self, finding: Finding) -> None:
        self._records.append(finding)

    def record_exception(self, exc: BaseException, source: str) -> Finding:
        """Build an error finding from `exc` and append it."""
        stack_trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        finding = create_error_finding(str(exc) or type(exc).__name__, source, stack_trace)
        logger.error("%s failed after retries: %s", source, exc)
        self.add(finding)
        return finding

    def drain(self) -> list[Finding]:
        """Return all buffered findings and empty the buffer."""
        records = list(self._records)
        self._records.clear()
        return records

    def __len__(self) -> int:
        return len(self._records)
