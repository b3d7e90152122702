"""
Error kinds raised along the ingestion pipeline.

DecodeError and TransformError are per-record: the pipeline logs them, drops
the record and keeps going. IngestionError is per-cycle: the store keeps its
last good dataset and shows the message.
"""

from typing import Optional


class PNodeMonitorError(Exception):
    """Base class for pNode monitor errors."""


class DecodeError(PNodeMonitorError):
    """A raw account record could not be turned into a RawNodeRecord."""

    def __init__(self, key: str, reason: str, detail: Optional[str] = None):
        self.key = key
        self.reason = reason
        self.detail = detail
        message = f"{key or '<no key>'}: {reason}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class TransformError(PNodeMonitorError):
    """A decoded record could not be scored (not expected with defaulting)."""


class IngestionError(PNodeMonitorError):
    """The upstream fetch failed as a whole."""
