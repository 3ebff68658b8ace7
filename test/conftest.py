"""
Pytest configuration for libforge tests.

- Adds the repository root to the Python path so tests can import libforge and forge
- Provides a fake gcc/ar toolchain (fake_toolchain.py) wired in through the
  tool configuration, so builds run without a C compiler
- Provides a logger that records every message for assertions
"""
import json
import logging
import os
import shlex
import sys
import time
from pathlib import Path

import pytest

# Add parent directory to Python path so we can import libforge
parent_dir = Path(__file__).parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

from libforge import BuildContext, BuildMode, Target, Toolchain


FAKE_TOOLCHAIN = Path(__file__).parent / "fake_toolchain.py"


def fake_tools():
    """Tool configuration that routes gcc and ar to the fake toolchain."""
    runner = f"{shlex.quote(sys.executable)} {shlex.quote(str(FAKE_TOOLCHAIN))}"
    return {"gcc": runner, "clang": runner, "ar": f"{runner} --ar"}


class RecordingHandler(logging.Handler):
    """Keeps every formatted message in memory."""

    def __init__(self):
        super().__init__(logging.DEBUG)
        self.messages = []

    def emit(self, record):
        self.messages.append(record.getMessage())


def make_logger(name: str):
    logger = logging.Logger(name, logging.DEBUG)
    handler = RecordingHandler()
    logger.addHandler(handler)
    logger.messages = handler.messages
    return logger


def compiled(logger):
    """Source file names compiled (not preprocessed) according to the log."""
    result = []
    for message in logger.messages:
        parts = message.split()
        if "-c" in parts and "-E" not in parts:
            src = parts[parts.index("-o") - 1]
            result.append(Path(src).name)
    return sorted(result)


def set_age(path: Path, seconds: float):
    """Move a file's modification time into the past."""
    stamp = time.time() - seconds
    os.utime(path, (stamp, stamp))


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def project(tmp_path):
    """Project root with target foo: foo/src/{a.c, b.c}, a.c including foo/include/a.h."""
    root = tmp_path / "proj"
    write(root / "foo" / "include" / "a.h", "#define A_VALUE 1\n")
    write(root / "foo" / "src" / "a.c", '#include "a.h"\nint a(void) { return A_VALUE; } // first\n')
    write(root / "foo" / "src" / "b.c", "int b(void) { return 2; }\n")
    return root


@pytest.fixture
def foo_target(project):
    return Target(name="foo", source_root=project / "foo", include_dir="include",
                  flags="-DFOO=1", sources=("src/*.c",))


@pytest.fixture
def make_context(project):
    """Factory for a fresh BuildContext over the project, one per simulated run."""
    def factory(mode=BuildMode.DEBUG, tools=None):
        logger = make_logger(f"libforge-test-{time.perf_counter_ns()}")
        return BuildContext(project, Toolchain.GCC, mode,
                            tools=tools if tools is not None else fake_tools(),
                            logger=logger, platform="linux")
    return factory


@pytest.fixture
def data_dir(tmp_path):
    """Data directory whose tools.json points at the fake toolchain."""
    directory = tmp_path / "data"
    directory.mkdir()
    (directory / "tools.json").write_text(json.dumps(fake_tools()), encoding="utf-8")
    return directory
