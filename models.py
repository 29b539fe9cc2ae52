# models.py
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional


class JobStatus:
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CRASHED = "crashed"
    RETRYING = "retrying"

    TERMINAL = (COMPLETED, FAILED, CRASHED)


def generate_job_id() -> str:
    """Return a fresh random (uuid4) job identifier."""
    return str(uuid.uuid4())


def truncate_ms(value: datetime) -> datetime:
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def utcnow() -> datetime:
    """Current UTC time at millisecond precision, the resolution timestamps are reported in."""
    return truncate_ms(datetime.now(timezone.utc))


def isoformat(value: Optional[datetime]) -> Optional[str]:
    """Render a timestamp the way browsers do (millisecond precision, trailing Z)."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class Job:
    id: str
    name: str
    arguments: List[str] = field(default_factory=list)
    status: str = JobStatus.RUNNING   # running | completed | failed | crashed | retrying
    start_time: datetime = field(default_factory=utcnow)
    end_time: Optional[datetime] = None
    exit_code: Optional[int] = None
    duration: Optional[int] = None    # milliseconds
    retry_count: int = 0
    max_retries: int = 1
    original_job_id: Optional[str] = None
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    error: Optional[str] = None

    def __post_init__(self):
        self.start_time = truncate_ms(self.start_time)

    @property
    def is_terminal(self) -> bool:
        return self.status in JobStatus.TERMINAL

    @property
    def can_retry(self) -> bool:
        return self.retry_count < self.max_retries

    def finish(self, status: str, exit_code: Optional[int] = None, **side_data) -> None:
        """Stamp the terminal fields. duration is always end_time - start_time."""
        self.status = status
        self.end_time = utcnow()
        self.duration = (self.end_time - self.start_time) // timedelta(milliseconds=1)
        self.exit_code = exit_code
        for key, value in side_data.items():
            setattr(self, key, value)

    def to_response(self) -> dict:
        """Public view of a job; captured output stays internal."""
        return {
            "id": self.id,
            "name": self.name,
            "arguments": list(self.arguments),
            "status": self.status,
            "startTime": isoformat(self.start_time),
            "endTime": isoformat(self.end_time),
            "duration": self.duration,
            "retryCount": self.retry_count,
            "originalJobId": self.original_job_id,
        }


@dataclass
class ProcessResult:
    exit_code: int
    stdout: str = ""
    stderr: str = ""


@dataclass
class JobPattern:
    pattern: str
    match_count: int
    success_rate: float
    difference_from_average: str

    def to_dict(self) -> dict:
        return {
            "pattern": self.pattern,
            "matchCount": self.match_count,
            "successRate": self.success_rate,
            "differenceFromAverage": self.difference_from_average,
        }


@dataclass
class JobStats:
    total_jobs: int
    overall_success_rate: float
    patterns: List[JobPattern] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "totalJobs": self.total_jobs,
            "overallSuccessRate": self.overall_success_rate,
            "patterns": [p.to_dict() for p in self.patterns],
        }
