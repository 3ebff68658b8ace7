"""
Job scheduling across targets.

Each target's pipeline is one job. Jobs run on a thread pool, one worker per
target, or one after another when a debugger is attached so stack traces stay
readable. The pipeline itself does not know which mode it runs under.
"""

import sys
import time
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

from ._builder import build_target, clean_target, link_program
from ._errors import BuildError
from ._sources import prepare_program, prepare_target
from ._target import Program, Target, TargetState, TargetStatus


def debugger_attached() -> bool:
    """True when a debugger or tracer is hooked into the interpreter."""
    return sys.gettrace() is not None or "pydevd" in sys.modules


def _run_job(context, state: TargetState):
    try:
        build_target(context, state)
    except BuildError as e:
        # Status is already FAILED; the scheduler reports it after all jobs settle
        context.logger.error(str(e))


def run_targets(context, states: List[TargetState], serial: Optional[bool] = None):
    """Build every target and require all of them to succeed.
    Args:    context: BuildContext of the run
             states: Prepared target states (see prepare_target)
             serial: Force serial (True) or concurrent (False) execution;
                     None picks serial only when a debugger is attached
    Raises:  BuildError naming every target that did not succeed
             OSError (or any other unexpected error) from a job, after all jobs settle"""
    if serial is None:
        serial = debugger_attached()

    if serial:
        for state in states:
            _run_job(context, state)
    else:
        with ThreadPoolExecutor(max_workers=max(len(states), 1), thread_name_prefix="libforge_target") as executor:
            futures = [executor.submit(_run_job, context, state) for state in states]
        for future in futures:
            future.result()

    failed = [state.name for state in states if state.status is not TargetStatus.SUCCEEDED]
    if failed:
        raise BuildError(f"Build failed for target(s): {', '.join(failed)}")


def build_all(context, targets: List[Target], program: Optional[Program] = None,
              serial: Optional[bool] = None, clean: bool = False) -> List[TargetState]:
    """Build all targets (and optionally a program), then persist the compile log.
    Every target is resolved before anything runs, so a configuration error
    leaves the build output untouched. The compile log is written only when
    everything succeeded.
    Args:    context: BuildContext of the run
             targets: Library targets, mutually independent
             program: Optional executable linked against the libraries
             serial: See run_targets
             clean: Remove existing objects and archives first
    Returns: Final target states
    Raises:  ConfigurationError, BuildError, OSError"""
    start_time = time.perf_counter()

    states = [prepare_target(context, target) for target in targets]
    program_state = prepare_program(context, program) if program is not None else None

    if clean:
        for state in states + ([program_state] if program_state else []):
            context.logger.info(f"clean {state.name}")
            clean_target(state)

    run_targets(context, states, serial)
    context.logger.info(f"total deps compile: {(time.perf_counter() - start_time) * 1000:.2f}ms")

    if program_state is not None:
        by_name = {state.name: state for state in states}
        # No explicit list links every target, in declaration order
        library_names = program.libraries or [state.name for state in states]
        archives = [by_name[name].archive_path for name in library_names]
        link_program(context, program_state, program.link_flags, archives)

    context.flush_log()
    context.logger.info(f"total: {(time.perf_counter() - start_time) * 1000:.2f}ms")
    return states
