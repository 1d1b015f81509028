from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Union

from mediavault.db.models import MediaKind

from .resources import ExternalResourceRef

__all__ = [
    "FailureReason",
    "IngestSuccess",
    "IngestFailure",
    "IngestResult",
    "ProcessedAttachment",
    "AttachmentProcessingError",
]


class FailureReason(str, enum.Enum):
    unsupported_kind = "unsupported_kind"
    too_large = "too_large"
    insufficient_space = "insufficient_space"
    copy_failed = "copy_failed"


@dataclass(slots=True, frozen=True)
class IngestSuccess:
    file_id: Path
    byte_size: int
    kind: MediaKind
    ref: ExternalResourceRef

    @property
    def ok(self) -> bool:
        return True


@dataclass(slots=True, frozen=True)
class IngestFailure:
    reason: FailureReason
    message: str
    ref: ExternalResourceRef

    @property
    def ok(self) -> bool:
        return False

    def summary(self) -> str:
        return f"Failed to process {self.ref.label}: {self.message}"


IngestResult = Union[IngestSuccess, IngestFailure]


@dataclass(slots=True, frozen=True)
class ProcessedAttachment:
    """A locally owned file ready to be attached to an outgoing message."""

    file_id: Path
    kind: MediaKind


class AttachmentProcessingError(Exception):
    """One or more references in a batch could not be ingested.

    The successful part of the batch is still available on ``processed``.
    """

    def __init__(self, failures: Sequence[IngestFailure], processed: Sequence[ProcessedAttachment] = ()):
        self.failures: List[IngestFailure] = list(failures)
        self.processed: List[ProcessedAttachment] = list(processed)
        super().__init__(", ".join(failure.summary() for failure in self.failures))
