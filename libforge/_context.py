"""Process-wide state of one libforge invocation."""

import logging
from pathlib import Path
from typing import Dict, Mapping, Optional

from ._cache import LOG_FILENAME, CacheRecord, CompileLog
from ._logger import BuildLogger
from ._toolchain import BuildMode, MsvcEnv, Toolchain, is_windows_host, load_tool_config
from ._type_check import typecheck_methods


@typecheck_methods
class BuildContext:
    """Toolchain, mode, directories and both compile logs of one run.

    prev_log is read-only and shared by every target job; this_log collects the
    records produced during the run and is written out only when the whole
    build succeeds.
    """

    def __init__(self, root_dir: Path, toolchain: Toolchain, mode: BuildMode,
                 tools: Optional[Dict[str, str]] = None,
                 logger: Optional[logging.Logger] = None,
                 env: Optional[Dict[str, str]] = None,
                 platform: Optional[str] = None,
                 data_dir: Optional[Path] = None):
        """Create the output directory and load the previous compile log.
        Args:    root_dir: Project root; outputs go to <root_dir>/build-<toolchain>-<mode>
                 toolchain: Compiler grammar for the run
                 mode: Debug or release
                 tools: Executable overrides (defaults to ~/.libforge/tools.json)
                 logger: Logger (defaults to a BuildLogger writing into the output directory)
                 env: Environment for subprocesses (None inherits; MSVC may supply one)
                 platform: sys.platform-style host override, for tests
                 data_dir: Directory holding tools.json and msvc_env.json (defaults to ~/.libforge)"""
        self.root_dir = Path(root_dir).absolute()
        self.toolchain = toolchain
        self.mode = mode
        self.platform = platform
        self.out_dir = self.root_dir / f"build-{toolchain.value}-{mode.value}"
        self.out_dir.mkdir(parents=True, exist_ok=True)

        self.tools = tools if tools is not None else load_tool_config(data_dir)
        self.logger = logger if logger is not None else BuildLogger(self.out_dir)
        if env is None and toolchain is Toolchain.MSVC:
            env = MsvcEnv.get(self.tools, data_dir)
        self.env = env

        self.log_path = self.out_dir / LOG_FILENAME
        prev = CompileLog.load(self.log_path, self.logger)
        self.prev_log: Mapping[str, CacheRecord] = prev if prev is not None else {}
        self.this_log = CompileLog()

    @property
    def archive_ext(self) -> str:
        return ".lib" if is_windows_host(self.platform) else ".a"

    @property
    def executable_ext(self) -> str:
        return ".exe" if is_windows_host(self.platform) else ".bin"

    def flush_log(self):
        """Persist this run's records, replacing the previous log."""
        self.this_log.flush(self.log_path)
        self.logger.info(f"wrote {len(self.this_log)} records to {self.log_path}")
