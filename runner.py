# runner.py
import subprocess
from typing import List, Optional, Sequence

from models import ProcessResult
from simulator import REPO_ROOT, SimulatorCommand


class ProcessRunner:
    """Launches one simulator process per job and captures what it writes."""

    def __init__(self, simulator: SimulatorCommand, cwd: Optional[str] = None):
        self.simulator = simulator
        self.cwd = cwd or REPO_ROOT

    def build_argv(self, job_name: str, arguments: Sequence[str]) -> List[str]:
        return [self.simulator.command, *self.simulator.args, job_name, *arguments]

    def run(self, job_name: str, arguments: Sequence[str]) -> ProcessResult:
        """
        Run the process to completion.

        A non-zero exit is returned like any other result. If the process
        cannot be started at all, the OSError from the spawn propagates.
        """
        result = subprocess.run(
            self.build_argv(job_name, arguments),
            cwd=self.cwd,
            capture_output=True,
            text=True,
            errors="replace",
        )
        return ProcessResult(
            exit_code=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )
