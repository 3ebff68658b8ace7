"""
Recompilation planning.

For every source of a target: preprocess it, hash the preprocessed output,
build the real compile command, and decide whether the object file has to be
rebuilt. The compiler's own preprocessor resolves every include and macro,
so no separate header dependency tracking is needed.
"""

import os
from pathlib import Path
from typing import List

from ._cache import canonical_path
from ._command import build_command
from ._errors import BuildError
from ._hashing import format_hash, hash_preprocessed
from ._process import launch, report_failures, wait_all
from ._target import TargetState
from ._type_check import typecheck_methods


@typecheck_methods
class CompilePlan:
    """Planned compilation of one source file."""

    def __init__(self, source: Path, obj_path: Path, compile_cmd: str,
                 preprocessed_hash: int, needs_compile: bool):
        self.source = source
        self.obj_path = obj_path
        self.compile_cmd = compile_cmd
        self.preprocessed_hash = preprocessed_hash
        self.needs_compile = needs_compile

    def __repr__(self):
        action = "compile" if self.needs_compile else "skip"
        return f"CompilePlan({self.source.name}, {action}, {format_hash(self.preprocessed_hash)})"


def preprocess_sources(context, state: TargetState):
    """Run the preprocessor over every source of the target as one batch.
    Raises:  BuildError if any source fails to preprocess"""
    flags = state.target.compile_flags
    handles = []
    for src in state.sources:
        cmd = build_command(context.toolchain, context.mode, flags, src, state.preprocessed_paths[src],
                            tools=context.tools, platform=context.platform)
        context.logger.debug(cmd)
        handles.append(launch(cmd, cwd=context.root_dir, env=context.env))

    failed = wait_all(handles)
    if failed:
        report_failures(context.logger, failed, "preprocess")
        raise BuildError(f"{state.name}: {len(failed)} of {len(handles)} sources failed to preprocess")


def needs_recompile(context, obj_path: Path, compile_cmd: str, preprocessed_hash: int) -> bool:
    """Decide whether an object file must be rebuilt.
    It may be reused only if it exists, the previous run recorded it, and both
    the recorded hash and the recorded command are identical to this run's."""
    if not os.path.isfile(obj_path):
        return True
    record = context.prev_log.get(canonical_path(obj_path))
    if record is None:
        return True
    return not record.matches(compile_cmd, preprocessed_hash)


def plan_target(context, state: TargetState) -> List[CompilePlan]:
    """Plan the compilation of every source of a target.
    Every object gets a record in this run's compile log, rebuilt or not, so
    the next run can make the same comparison.
    Args:    context: BuildContext of the run
             state: Prepared target state whose object directory exists
    Returns: One CompilePlan per source, in source order
    Raises:  BuildError if preprocessing fails"""
    preprocess_sources(context, state)

    flags = state.target.compile_flags
    plans = []
    for src in state.sources:
        obj_path = state.obj_paths[src]
        preprocessed_hash = hash_preprocessed(state.preprocessed_paths[src])

        # Compile the original source rather than the .i file; diagnostics are more useful
        compile_cmd = build_command(context.toolchain, context.mode, flags, src, obj_path,
                                    tools=context.tools, platform=context.platform)

        needs_compile = needs_recompile(context, obj_path, compile_cmd, preprocessed_hash)
        context.this_log.append(obj_path, compile_cmd, preprocessed_hash)
        plans.append(CompilePlan(src, obj_path, compile_cmd, preprocessed_hash, needs_compile))

    return plans
