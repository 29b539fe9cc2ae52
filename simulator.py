# simulator.py
import os
import sys
from dataclasses import dataclass, field
from typing import List, Optional

REPO_ROOT = os.path.dirname(os.path.abspath(__file__))


@dataclass
class SimulatorCommand:
    command: str
    args: List[str] = field(default_factory=list)
    script_path: Optional[str] = None

    @property
    def is_available(self) -> bool:
        """False when the bundled script is expected but absent (e.g. a non-editable install)."""
        return self.script_path is None or os.path.exists(self.script_path)

    def to_dict(self) -> dict:
        return {"command": self.command, "args": list(self.args), "scriptPath": self.script_path}


def resolve_simulator_command(platform: Optional[str] = None, override: Optional[str] = None,
                              override_args: Optional[List[str]] = None,
                              root: Optional[str] = None) -> SimulatorCommand:
    """
    Pick the simulator executable for the given platform (defaults to sys.platform).
    An explicit override (from settings) wins over the lookup table. The
    bundled scripts are looked up in `root`, the directory jobs run in
    (defaults to the checkout this module lives in).
    """
    if override:
        return SimulatorCommand(command=override, args=list(override_args or []), script_path=None)

    platform = platform or sys.platform
    root = root or REPO_ROOT
    if platform == "win32":
        return SimulatorCommand(
            command="cmd",
            args=["/c", "cpp-simulator.bat"],
            script_path=os.path.join(root, "cpp-simulator.bat"),
        )
    return SimulatorCommand(
        command="./cpp-simulator.sh",
        args=[],
        script_path=os.path.join(root, "cpp-simulator.sh"),
    )
