"""Error handling policy implementation."""

from __future__ import annotations

import logging
from typing import List, Optional

from .errors import ErrorCategory, ErrorRecord


class ErrorPolicy:
    """Records non-fatal failures for a single document job.

    Segment-level failures never stop a job, so the policy only keeps the
    ledger and logs each entry. Fatal conditions are raised by the pipeline
    itself.
    """

    def __init__(self, *, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger("docxlate.policy")
        self.records: List[ErrorRecord] = []

    def handle_error(
        self,
        category: ErrorCategory,
        message: str,
        details: Optional[str] = None,
    ) -> ErrorRecord:
        """Record an error and log it at warning level."""

        record = ErrorRecord(category=category, message=message, details=details)
        self.records.append(record)
        if details:
            self.logger.warning("%s (%s)", message, details)
        else:
            self.logger.warning("%s", message)
        return record

    def count(self, category: ErrorCategory) -> int:
        return sum(1 for record in self.records if record.category == category)

    @property
    def messages(self) -> List[str]:
        return [record.message for record in self.records]
