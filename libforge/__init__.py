"""libforge - Incremental static library builds for vendored C/C++ code

libforge compiles each target's sources into objects and archives them into a
static library. An object is rebuilt only when the hash of its preprocessed
source or its exact compile command differs from the previous run.

Example usage:
    from pathlib import Path
    from libforge import BuildContext, BuildMode, Lang, Target, Toolchain, build_all

    context = BuildContext(Path.cwd(), Toolchain.GCC, BuildMode.DEBUG)
    fribidi = Target(
        name="fribidi",
        source_root=Path("fribidi"),
        include_dir="lib",
        flags="-DHAVE_STRING_H=1",
        sources=("lib/*.c",),
        lang=Lang.C,
    )
    build_all(context, [fribidi])
"""

from ._builder import archive_target, build_target, clean_target, compile_objects, link_program, prune_object_dir
from ._cache import CacheRecord, CompileLog
from ._command import archive_command, build_command
from ._context import BuildContext
from ._errors import BuildError, ConfigurationError
from ._hashing import hash_preprocessed
from ._planner import CompilePlan, plan_target
from ._scheduler import build_all, run_targets
from ._sources import prepare_program, prepare_target, resolve_sources
from ._target import Program, Target, TargetState, TargetStatus, load_targets
from ._toolchain import BuildMode, Lang, Toolchain

__version__ = "1.0.0"

__all__ = [
    'BuildContext', 'BuildError', 'BuildMode', 'CacheRecord', 'CompileLog', 'CompilePlan',
    'ConfigurationError', 'Lang', 'Program', 'Target', 'TargetState', 'TargetStatus', 'Toolchain',
    'archive_command', 'archive_target', 'build_all', 'build_command', 'build_target', 'clean_target',
    'compile_objects', 'hash_preprocessed', 'link_program', 'load_targets', 'plan_target',
    'prepare_program', 'prepare_target', 'prune_object_dir', 'resolve_sources', 'run_targets',
]
