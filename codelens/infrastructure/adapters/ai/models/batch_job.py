# codelens/infrastructure/adapters/ai/models/batch_job.py

"""Batch Job Model"""

import uuid
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from codelens.core.exceptions import BatchJobSealedError
from .analysis import AnalysisRequest, AnalysisResult


class BatchPriority(Enum):
    """Batch priority"""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class BatchStatus(Enum):
    """Batch lifecycle status"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class BatchFailure:
    """One dropped request"""
    file_name: str
    error_type: str
    message: str


@dataclass
class BatchJob:
    """
    Collects the outcome of a batch run.

    Mutated as each sub-request settles; sealed once all of them have.
    """
    requests: Tuple[AnalysisRequest, ...]
    priority: BatchPriority = BatchPriority.MEDIUM
    id: str = field(default_factory=lambda: f"batch_{uuid.uuid4().hex[:12]}")
    results: List[AnalysisResult] = field(default_factory=list)
    failures: List[BatchFailure] = field(default_factory=list)
    completed_requests: int = 0
    failed_requests: int = 0
    status: BatchStatus = BatchStatus.PENDING
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    _sealed: bool = field(default=False, repr=False)

    @property
    def total_requests(self) -> int:
        return len(self.requests)

    @property
    def sealed(self) -> bool:
        return self._sealed

    def start(self) -> None:
        """Mark job as processing"""
        self._check_open()
        self.status = BatchStatus.PROCESSING
        self.started_at = datetime.now()

    def record_success(self, result: AnalysisResult) -> None:
        """Append a successful result"""
        self._check_open()
        self.results.append(result)
        self.completed_requests += 1

    def record_failure(self, request: AnalysisRequest, error: BaseException) -> None:
        """Count a dropped request"""
        self._check_open()
        self.failures.append(BatchFailure(
            file_name=request.file_name,
            error_type=type(error).__name__,
            message=str(error)
        ))
        self.failed_requests += 1

    def seal(self) -> None:
        """Freeze the job; further mutation raises BatchJobSealedError"""
        if self._sealed:
            return
        self.ended_at = datetime.now()
        if self.total_requests > 0 and self.completed_requests == 0:
            self.status = BatchStatus.FAILED
        else:
            self.status = BatchStatus.COMPLETED
        self._sealed = True

    def _check_open(self) -> None:
        if self._sealed:
            raise BatchJobSealedError(f"Batch job {self.id} is sealed")

    def to_dict(self) -> dict:
        """Export as dict"""
        return {
            'batch_id': self.id,
            'status': self.status.value,
            'priority': self.priority.value,
            'total_requests': self.total_requests,
            'completed_requests': self.completed_requests,
            'failed_requests': self.failed_requests,
            'start_time': self.started_at.isoformat() if self.started_at else None,
            'end_time': self.ended_at.isoformat() if self.ended_at else None,
            'failures': [failure.__dict__ for failure in self.failures]
        }
