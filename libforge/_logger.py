"""Logging functionality for libforge builds."""

import logging
import sys
from pathlib import Path

from ._type_check import typecheck_methods


@typecheck_methods
class BuildLogger(logging.Logger):
    """Logger for a build run.

    Writes a timestamped record of the run to <log_dir>/libforge.log and echoes
    the plain message (commands, skip notices, timings) to stdout.
    """

    LOG_FILENAME = "libforge.log"

    def __init__(self, log_dir: Path, echo: bool = True):
        """Initialize logger with file and console handlers.
        Args:    log_dir: Directory where log file will be created
                 echo: Also print messages to stdout"""
        super().__init__("libforge", logging.INFO)

        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        self.log_file = log_dir / self.LOG_FILENAME

        # Remove existing handlers to avoid duplicates
        self.handlers.clear()

        # File handler
        handler = logging.FileHandler(self.log_file, encoding="utf-8")
        handler.setLevel(logging.INFO)

        # Format: timestamp - level - message
        formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')
        handler.setFormatter(formatter)
        self.addHandler(handler)

        if echo:
            console = logging.StreamHandler(sys.stdout)
            console.setLevel(logging.INFO)
            console.setFormatter(logging.Formatter('%(message)s'))
            self.addHandler(console)

    def close(self):
        """Flush and close all handlers."""
        for handler in list(self.handlers):
            handler.close()
            self.removeHandler(handler)
