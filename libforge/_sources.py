"""
Source resolution for libforge targets.

Expands a target's glob patterns into concrete files and derives where each
source's intermediate and object files live.
"""

import glob
import os
from pathlib import Path
from typing import Dict, List, Sequence

from ._errors import ConfigurationError
from ._target import Program, Target, TargetState
from ._type_check import typecheck


@typecheck
def resolve_sources(source_root: Path, patterns: Sequence[str]) -> List[Path]:
    """Expand glob patterns rooted at source_root.
    Patterns that match nothing contribute nothing; deciding whether an empty
    result is an error is left to the caller.
    Args:    source_root: Directory the patterns are relative to
             patterns: Glob patterns (** matches across directories)
    Returns: Sorted, de-duplicated list of absolute, normalized file paths"""
    source_root = Path(os.path.abspath(source_root))
    found = set()
    for pattern in patterns:
        for match in glob.glob(pattern, root_dir=source_root, recursive=True):
            path = Path(os.path.normpath(source_root / match))
            if path.is_file():
                found.add(path)
    return sorted(found)


def prepare_target(context, target: Target) -> TargetState:
    """Resolve a target's sources and derive its object layout.
    Runs before any job is scheduled so configuration errors stop the build
    before anything is compiled.
    Args:    context: BuildContext of the run
             target: Target descriptor
    Returns: TargetState in NOT_STARTED status
    Raises:  ConfigurationError if the source root is missing, nothing matches,
             or two sources would share an object file"""
    source_root = Path(target.source_root)
    if not source_root.is_dir():
        raise ConfigurationError(f"Source directory for target '{target.name}' does not exist: {source_root}")

    obj_dir = context.out_dir / target.name
    state = TargetState(target, obj_dir, context.out_dir / f"{target.name}{context.archive_ext}")

    state.sources = resolve_sources(source_root, target.sources)
    if not state.sources:
        raise ConfigurationError(
            f"Target '{target.name}' has no sources: {list(target.sources)} matched nothing under {source_root}")

    obj_ext = context.toolchain.object_ext
    pre_ext = target.lang.preprocessed_ext
    owners: Dict[Path, Path] = {}
    for src in state.sources:
        obj_path = obj_dir / (src.stem + obj_ext)
        if obj_path in owners:
            raise ConfigurationError(
                f"Target '{target.name}': {owners[obj_path]} and {src} would both compile to {obj_path.name}")
        owners[obj_path] = src
        state.obj_paths[src] = obj_path
        state.preprocessed_paths[src] = obj_dir / (src.stem + pre_ext)

    return state


def prepare_program(context, program: Program) -> TargetState:
    """Prepare a program like a library target; its artifact is the executable."""
    state = prepare_target(context, program.as_target())
    state.archive_path = context.out_dir / f"{program.name}{context.executable_ext}"
    return state
