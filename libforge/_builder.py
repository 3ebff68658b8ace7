"""
Object and archive building.

Runs the compiles a plan asks for, keeps each target's object directory in
step with its current source set, and (re)creates the static library when a
member object is newer than it.
"""

import shutil
import time
from pathlib import Path
from typing import List

from ._command import archive_command, build_command
from ._errors import BuildError
from ._planner import CompilePlan, plan_target
from ._process import launch, report_failures, run, wait_all
from ._target import TargetState, TargetStatus
from ._toolchain import Toolchain


def prune_object_dir(state: TargetState, toolchain: Toolchain) -> List[Path]:
    """Delete everything in the object directory that no current source accounts for.
    Kept: each source's object file, its preprocessed intermediate and, for
    MSVC, its .pdb. A removed source therefore cannot leave a stale member
    behind for the next archive.
    Returns: Removed paths
    Raises:  OSError if an entry cannot be removed"""
    keep = set(state.obj_paths.values()) | set(state.preprocessed_paths.values())
    if toolchain is Toolchain.MSVC:
        keep |= {obj.with_suffix(".pdb") for obj in state.obj_paths.values()}

    removed = []
    if not state.obj_dir.is_dir():
        return removed
    for entry in sorted(state.obj_dir.iterdir()):
        if entry in keep:
            continue
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()
        removed.append(entry)
    return removed


def compile_objects(context, state: TargetState, plans: List[CompilePlan]) -> List[CompilePlan]:
    """Launch every out-of-date compile of a target, then wait for the whole batch.
    Returns: Plans that were compiled (empty when everything was up to date)
    Raises:  BuildError if any compile fails"""
    to_compile = []
    for plan in plans:
        if plan.needs_compile:
            to_compile.append(plan)
        else:
            context.logger.info(f"skip compile {plan.source.name}")
    if not to_compile:
        return to_compile

    handles = []
    for plan in to_compile:
        context.logger.info(plan.compile_cmd)
        handles.append(launch(plan.compile_cmd, cwd=context.root_dir, env=context.env))

    failed = wait_all(handles)
    for handle in handles:
        if handle.succeeded and handle.stderr.strip():
            context.logger.warning(handle.stderr.rstrip())
    if failed:
        report_failures(context.logger, failed, "compile")
        raise BuildError(f"{state.name}: {len(failed)} of {len(handles)} compiles failed")

    return to_compile


def newest_mtime_ns(paths: List[Path]) -> int:
    return max(path.stat().st_mtime_ns for path in paths)


def mtime_ns_or_none(path: Path):
    try:
        return path.stat().st_mtime_ns
    except FileNotFoundError:
        return None


def archive_target(context, state: TargetState, force: bool = False) -> bool:
    """Recreate the target's static library if any object is newer than it.
    A missing archive counts as infinitely old. The archive is removed and
    created from the full current object set, never appended to.
    Args:    context: BuildContext of the run
             state: Target state whose objects are up to date
             force: Rebuild regardless of mtimes, e.g. after pruning dropped a member
    Returns: True if the archive was rebuilt
    Raises:  BuildError if the archiver fails"""
    objects = state.object_files()
    archive_mtime = mtime_ns_or_none(state.archive_path)
    if not force and archive_mtime is not None and newest_mtime_ns(objects) <= archive_mtime:
        context.logger.info(f"skip lib {state.name}")
        return False

    cmd = archive_command(context.toolchain, state.archive_path, objects,
                          tools=context.tools, platform=context.platform)
    context.logger.info(cmd)
    state.archive_path.unlink(missing_ok=True)

    handle = run(cmd, cwd=context.root_dir, env=context.env)
    if not handle.succeeded:
        report_failures(context.logger, [handle], "archive")
        raise BuildError(f"{state.name}: creating {state.archive_path.name} failed")
    return True


def build_target(context, state: TargetState) -> TargetStatus:
    """Run the whole pipeline for one target: prune, plan, compile, archive.
    The status ends as SUCCEEDED, or FAILED when any step raises.
    Returns: Final status"""
    start_time = time.perf_counter()
    state.status = TargetStatus.RUNNING
    try:
        pruned = build_target_objects(context, state)
        archive_target(context, state, force=pruned)
    except BaseException:
        state.status = TargetStatus.FAILED
        raise
    else:
        state.status = TargetStatus.SUCCEEDED
    finally:
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        context.logger.info(f"{state.name} compile step: {elapsed_ms:.2f}ms")
    return state.status


def clean_target(state: TargetState):
    """Remove a target's object directory and archive, forcing a full rebuild."""
    if state.obj_dir.exists():
        shutil.rmtree(state.obj_dir)
    state.archive_path.unlink(missing_ok=True)


def link_program(context, state: TargetState, link_flags: str, archives: List[Path]) -> bool:
    """Compile a program's sources and link them with the given static libraries.
    The sources go through the same planning as library sources. The link
    runs only when an object or library is newer than the executable.
    Args:    context: BuildContext of the run
             state: Prepared state of the program; archive_path is the executable
             link_flags: Flags for the link step
             archives: Static libraries to link, in link order
    Returns: True if the executable was relinked
    Raises:  BuildError if compiling or linking fails"""
    state.status = TargetStatus.RUNNING
    try:
        pruned = build_target_objects(context, state)

        inputs = state.object_files() + list(archives)
        exe_mtime = mtime_ns_or_none(state.archive_path)
        if not pruned and exe_mtime is not None and newest_mtime_ns(inputs) <= exe_mtime:
            context.logger.info(f"skip link {state.name}")
            relinked = False
        else:
            cmd = build_command(context.toolchain, context.mode, state.target.compile_flags, inputs,
                                state.archive_path, link_flags, tools=context.tools, platform=context.platform)
            context.logger.info(cmd)
            handle = run(cmd, cwd=context.root_dir, env=context.env)
            if not handle.succeeded:
                report_failures(context.logger, [handle], "link")
                raise BuildError(f"{state.name}: linking {state.archive_path.name} failed")
            relinked = True
    except BaseException:
        state.status = TargetStatus.FAILED
        raise
    state.status = TargetStatus.SUCCEEDED
    return relinked


def build_target_objects(context, state: TargetState) -> bool:
    """Bring a target's object directory up to date without archiving.
    Returns: True if pruning removed an object, so the object set shrank"""
    state.obj_dir.mkdir(parents=True, exist_ok=True)
    pruned = False
    for path in prune_object_dir(state, context.toolchain):
        context.logger.info(f"remove stale {path}")
        if path.suffix == context.toolchain.object_ext:
            pruned = True
    compile_objects(context, state, plan_target(context, state))
    return pruned
