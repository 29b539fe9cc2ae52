# worker.py
import sys
import threading
import time
from typing import List, Optional, Sequence

import structlog

from analyzer import compute_stats
from config import Settings, get_settings
from models import Job, JobStats, JobStatus, ProcessResult, generate_job_id, utcnow
from runner import ProcessRunner
from storage import JobRegistry
from simulator import resolve_simulator_command

logger = structlog.get_logger()


class JobManager:
    """
    Drives every job from creation to a terminal state.

    Each execution runs on its own daemon thread. A failed or crashed job
    with retry budget left gets exactly one new record (fresh id, linked via
    original_job_id) launched after `retry_delay` seconds by a fire-and-forget
    timer. Nothing here raises to the creator once start_job has returned.
    """

    def __init__(self, registry: Optional[JobRegistry] = None, runner: Optional[ProcessRunner] = None,
                 max_retries: Optional[int] = None, retry_delay: Optional[float] = None,
                 settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.registry = registry or JobRegistry()
        self.platform = sys.platform
        self.simulator_command = resolve_simulator_command(
            self.platform, settings.simulator_command, settings.simulator_args, root=settings.workdir
        )
        self.runner = runner or ProcessRunner(self.simulator_command, cwd=settings.workdir)
        self.max_retries = settings.max_retries if max_retries is None else max_retries
        self.retry_delay = settings.retry_delay_seconds if retry_delay is None else retry_delay

    # ---------------- Creation ----------------
    def start_job(self, job_name: str, arguments: Optional[Sequence[str]] = None) -> str:
        """Register a new job, launch it in the background and return its id."""
        job = Job(
            id=generate_job_id(),
            name=job_name,
            arguments=list(arguments or []),
            status=JobStatus.RUNNING,
            start_time=utcnow(),
            retry_count=0,
            max_retries=self.max_retries,
        )
        self.registry.insert(job)
        self._log_transition(job.id, None, JobStatus.RUNNING, name=job.name, arguments=job.arguments)

        threading.Thread(
            target=self._process_job,
            args=(job.id, True),
            name=f"job-{job.id[:8]}",
            daemon=True,
        ).start()
        return job.id

    # ---------------- Execution ----------------
    def _process_job(self, job_id: str, retry_on_crash: bool) -> None:
        job = self.registry.get(job_id)
        if job.status == JobStatus.RETRYING:
            self.registry.update(job_id, status=JobStatus.RUNNING)
            self._log_transition(job_id, JobStatus.RETRYING, JobStatus.RUNNING)

        try:
            result = self.runner.run(job.name, job.arguments)
        except OSError as e:
            self._handle_crash(job_id, str(e), retry_on_crash)
            return
        except Exception as e:
            logger.exception("job_execution_error", job_id=job_id)
            self._handle_crash(job_id, str(e), retry_on_crash)
            return

        if result.exit_code == 0:
            done = self.registry.finish(
                job_id, JobStatus.COMPLETED, exit_code=0, stdout=result.stdout, stderr=result.stderr
            )
            self._log_transition(job_id, JobStatus.RUNNING, JobStatus.COMPLETED,
                                 exit_code=0, duration_ms=done.duration)
        else:
            self._handle_failure(job_id, result)

    def _handle_failure(self, job_id: str, result: ProcessResult) -> None:
        failed = self.registry.finish(
            job_id, JobStatus.FAILED, exit_code=result.exit_code, stdout=result.stdout, stderr=result.stderr
        )
        self._log_transition(job_id, JobStatus.RUNNING, JobStatus.FAILED,
                             exit_code=result.exit_code, duration_ms=failed.duration)
        if failed.can_retry:
            self._schedule_retry(job_id)

    def _handle_crash(self, job_id: str, error: str, retry_on_crash: bool) -> None:
        crashed = self.registry.finish(job_id, JobStatus.CRASHED, exit_code=None, error=error)
        self._log_transition(job_id, JobStatus.RUNNING, JobStatus.CRASHED,
                             error=error, duration_ms=crashed.duration)
        # A crash while retrying is absorbed; only first attempts are retried.
        if retry_on_crash and crashed.can_retry:
            self._schedule_retry(job_id)

    # ---------------- Retry ----------------
    def _schedule_retry(self, job_id: str) -> None:
        timer = threading.Timer(self.retry_delay, self._retry_job, args=(job_id,))
        timer.daemon = True
        timer.start()
        logger.info("job_retry_scheduled", job_id=job_id, retry_in=self.retry_delay)

    def _retry_job(self, job_id: str) -> None:
        original = self.registry.get(job_id)
        if original is None or not original.can_retry:
            logger.warning("job_retry_skipped", job_id=job_id)
            return

        retry = Job(
            id=generate_job_id(),
            name=original.name,
            arguments=list(original.arguments),
            status=JobStatus.RETRYING,
            start_time=utcnow(),
            retry_count=original.retry_count + 1,
            max_retries=original.max_retries,
            original_job_id=original.id,
        )
        self.registry.insert(retry)
        self._log_transition(retry.id, None, JobStatus.RETRYING,
                             original_job_id=original.id, attempt=retry.retry_count)
        self._process_job(retry.id, retry_on_crash=False)

    # ---------------- Queries ----------------
    def get_job(self, job_id: str) -> Optional[Job]:
        return self.registry.get(job_id)

    def get_all_jobs(self) -> List[Job]:
        return self.registry.list_current()

    def get_job_stats(self) -> JobStats:
        return compute_stats(self.registry.list_history())

    def lineage(self, job_id: str) -> List[Job]:
        return self.registry.lineage(job_id)

    def is_settled(self, job_id: str) -> bool:
        """True once no further record or transition can appear for this job's lineage."""
        chain = self.registry.lineage(job_id)
        if not chain:
            return False
        last = chain[-1]
        if not last.is_terminal:
            return False
        if last.status == JobStatus.COMPLETED:
            return True
        if last.status == JobStatus.CRASHED and last.original_job_id:
            return True
        return not last.can_retry

    def wait(self, job_id: str, timeout: float = 30.0, poll_interval: float = 0.1) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self.is_settled(job_id):
                return True
            time.sleep(poll_interval)
        return self.is_settled(job_id)

    def _log_transition(self, job_id: str, old_state: Optional[str], new_state: str, **extra) -> None:
        logger.info("job_transition", job_id=job_id, from_state=old_state or "-", to_state=new_state, **extra)
