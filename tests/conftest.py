"""Pytest configuration and fixtures."""

import threading
import time

import pytest

from config import reset_settings
from logging_config import configure_logging
from models import ProcessResult
from worker import JobManager


class FakeRunner:
    """
    Stands in for ProcessRunner.

    `outcomes` maps a job name to the results of successive launches: an int
    is an exit code, an exception instance is raised as a launch failure.
    Names without outcomes exit 0.
    """

    def __init__(self, outcomes=None):
        self.outcomes = {name: list(results) for name, results in (outcomes or {}).items()}
        self.calls = []
        self.gate = None
        self._lock = threading.Lock()

    def run(self, job_name, arguments):
        with self._lock:
            self.calls.append((job_name, list(arguments)))
            pending = self.outcomes.get(job_name)
            outcome = pending.pop(0) if pending else 0
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if isinstance(outcome, BaseException):
            raise outcome
        return ProcessResult(exit_code=outcome, stdout=f"ran {job_name}\n", stderr="" if outcome == 0 else "boom\n")


def wait_until(predicate, timeout=5.0, interval=0.01):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    configure_logging("WARNING")
    yield


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Keep settings from leaking between tests."""
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def manager(fake_runner):
    return JobManager(runner=fake_runner, max_retries=1, retry_delay=0)


@pytest.fixture
def settle():
    """Wait for a job's lineage to reach its final state."""
    def _settle(manager, job_id, timeout=5.0):
        assert wait_until(lambda: manager.is_settled(job_id), timeout=timeout), f"job {job_id} never settled"
        return manager.lineage(job_id)
    return _settle
