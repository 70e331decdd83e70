"""In-process job status for document extractions.

start() claims a document and refuses a second claim until the first job
completes or fails. Progress events from the orchestrator land in update(),
so callers can poll a running job.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from stix_extractor.core.errors import ExtractionInProgressError

logger = logging.getLogger(__name__)


class JobStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class JobState:
    """Latest known state of one document's extraction."""

    document_id: str
    status: JobStatus = JobStatus.PENDING
    stage: str = ""
    message: str = ""
    object_count: int = 0
    error: str | None = None
    started_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    finished_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status in (JobStatus.PENDING, JobStatus.RUNNING)

    def to_dict(self) -> dict:
        return {
            "document_id": self.document_id,
            "status": self.status.value,
            "stage": self.stage,
            "message": self.message,
            "object_count": self.object_count,
            "error": self.error,
            "started_at": self.started_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class JobStatusStore:
    """Tracks one JobState per document id."""

    def __init__(self) -> None:
        self._jobs: dict[str, JobState] = {}

    def start(self, document_id: str) -> JobState:
        """Claim a document for extraction.

        Raises:
            ExtractionInProgressError: A job for this document is still active.
        """
        current = self._jobs.get(document_id)
        if current is not None and current.is_active:
            raise ExtractionInProgressError(document_id)

        state = JobState(document_id=document_id, status=JobStatus.RUNNING, message="Extraction started")
        self._jobs[document_id] = state
        logger.debug(f"Job started for {document_id}")
        return state

    def update(self, document_id: str, stage: str, message: str) -> JobState | None:
        """Record progress on an active job. Unknown or finished jobs are ignored."""
        state = self._jobs.get(document_id)
        if state is None or not state.is_active:
            return None
        state.stage = stage
        state.message = message
        state.updated_at = _now()
        return state

    def complete(self, document_id: str, object_count: int) -> JobState:
        state = self._jobs.setdefault(document_id, JobState(document_id=document_id))
        state.status = JobStatus.COMPLETED
        state.object_count = object_count
        state.message = f"Extracted {object_count} objects"
        state.updated_at = state.finished_at = _now()
        return state

    def fail(self, document_id: str, error: str) -> JobState:
        state = self._jobs.setdefault(document_id, JobState(document_id=document_id))
        state.status = JobStatus.FAILED
        state.error = error
        state.message = "Extraction failed"
        state.updated_at = state.finished_at = _now()
        logger.warning(f"Job failed for {document_id}: {error}")
        return state

    def get(self, document_id: str) -> JobState | None:
        return self._jobs.get(document_id)
