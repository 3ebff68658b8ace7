"""
Non-blocking subprocess launch and batch wait.

Commands are launched with launch() and collected with wait_all(), which
blocks until every process in the batch has exited.
"""

import os
import shlex
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

from ._type_check import typecheck_methods


def split_command(cmd: str):
    """Split a command string for Popen. Windows takes the string as-is."""
    if os.name == "nt":
        return cmd
    return shlex.split(cmd)


@typecheck_methods
class ProcessHandle:
    """A launched subprocess and, once waited on, its result."""

    def __init__(self, cmd: str, process: subprocess.Popen):
        self.cmd = cmd
        self._process = process
        self.stdout = ""
        self.stderr = ""
        self.returncode = None

    def wait(self) -> int:
        """Block until the process exits and collect its output.
        Returns: Process exit code"""
        if self.returncode is None:
            self.stdout, self.stderr = self._process.communicate()
            self.returncode = self._process.returncode
        return self.returncode

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


def launch(cmd: str, cwd: Optional[Path] = None, env: Optional[Dict[str, str]] = None) -> ProcessHandle:
    """Start a command without waiting for it.
    Args:    cmd: Command string (as produced by build_command)
             cwd: Working directory for the process
             env: Environment for the process (None inherits the current one)
    Returns: ProcessHandle
    Raises:  OSError if the executable cannot be started"""
    process = subprocess.Popen(
        split_command(cmd),
        cwd=cwd,
        env=env,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        errors="replace",
    )
    return ProcessHandle(cmd, process)


def wait_all(handles: List[ProcessHandle]) -> List[ProcessHandle]:
    """Wait for every handle in the batch.
    Processes are independent, so draining them in order cannot deadlock even
    when a later process fills its output pipe before an earlier one exits.
    Returns: Handles that did not exit with status 0 (empty when all succeeded)"""
    failed = []
    for handle in handles:
        if handle.wait() != 0:
            failed.append(handle)
    return failed


def run(cmd: str, cwd: Optional[Path] = None, env: Optional[Dict[str, str]] = None) -> ProcessHandle:
    """Launch a command and wait for it."""
    handle = launch(cmd, cwd, env)
    handle.wait()
    return handle


def report_failures(logger, failed: List[ProcessHandle], what: str):
    """Log the command, exit code and captured output of every failed process."""
    for handle in failed:
        logger.error(f"{what} failed with exit code {handle.returncode}: {handle.cmd}")
        output = (handle.stdout + handle.stderr).rstrip()
        if output:
            logger.error(output)
