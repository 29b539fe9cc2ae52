# storage.py
import threading
from dataclasses import replace
from typing import Dict, List, Optional

from models import Job


class DuplicateJobError(KeyError):
    pass


class JobNotFoundError(KeyError):
    pass


class JobRegistry:
    """
    In-memory job state for the life of the process.

    - `_jobs` maps id -> the single current record for that id
    - `_history` is every record ever inserted, in creation order
    Both hold the same objects, so an update is visible through either view.
    Nothing is ever deleted.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._jobs: Dict[str, Job] = {}
        self._history: List[Job] = []

    def insert(self, job: Job) -> None:
        with self._lock:
            if job.id in self._jobs:
                raise DuplicateJobError(job.id)
            self._jobs[job.id] = job
            self._history.append(job)

    def update(self, job_id: str, **changes) -> Job:
        """Mutate the live record in place and return a snapshot of it."""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            for key, value in changes.items():
                setattr(job, key, value)
            return replace(job, arguments=list(job.arguments))

    def finish(self, job_id: str, status: str, exit_code: Optional[int] = None, **side_data) -> Job:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            job.finish(status, exit_code=exit_code, **side_data)
            return replace(job, arguments=list(job.arguments))

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            return replace(job, arguments=list(job.arguments)) if job else None

    def list_current(self) -> List[Job]:
        with self._lock:
            return [replace(j, arguments=list(j.arguments)) for j in self._jobs.values()]

    def list_history(self) -> List[Job]:
        with self._lock:
            return [replace(j, arguments=list(j.arguments)) for j in self._history]

    def lineage(self, job_id: str) -> List[Job]:
        """The original job behind `job_id` followed by its retries, oldest first."""
        with self._lock:
            root = self._jobs.get(job_id)
            while root is not None and root.original_job_id:
                root = self._jobs.get(root.original_job_id)
            if root is None:
                return []
            members = {root.id}
            chain = []
            for job in self._history:
                if job.id == root.id or job.original_job_id in members:
                    members.add(job.id)
                    chain.append(replace(job, arguments=list(job.arguments)))
            return chain

    def __len__(self) -> int:
        with self._lock:
            return len(self._history)
