#!/usr/bin/env python3
"""
libforge command-line build

Builds every target of a target file for one toolchain and build mode.

Usage:
    python forge.py gcc debug                          # Build ./targets.json into ./build-gcc-debug
    python forge.py clang release --root path/to/proj  # Build another project
    python forge.py msvc debug --serial                # One target at a time
    python forge.py gcc release --clean                # Rebuild everything from scratch
"""
import argparse
import sys
from pathlib import Path
from typing import List

from libforge import BuildContext, BuildError, BuildMode, ConfigurationError, Toolchain, build_all, load_targets
from libforge import __version__ as VERSION
from libforge._toolchain import DATA_DIR, load_tool_config


DEFAULT_TARGETS_FILE = "targets.json"


def main(args: List[str] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="libforge static library build", formatter_class=argparse.RawDescriptionHelpFormatter)

    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("toolchain", help="Compiler: gcc or clang on Linux, msvc or clang on Windows")
    parser.add_argument("mode",      choices=[m.value for m in BuildMode], help="Build mode")

    parser.add_argument("--root",    type=str, metavar="PATH", help="Project root (default: current directory)")
    parser.add_argument("--targets", type=str, metavar="FILE", help=f"Target file (default: <root>/{DEFAULT_TARGETS_FILE})")
    parser.add_argument("--serial",  action="store_true", help="Build targets one at a time")
    parser.add_argument("--clean",   action="store_true", help="Remove objects and archives before building")
    parser.add_argument("--data-dir", type=str, metavar="PATH", help=f"Directory holding tools.json (default: {DATA_DIR})")

    parsed = parser.parse_args(args)

    root = Path(parsed.root) if parsed.root else Path.cwd()
    targets_file = Path(parsed.targets) if parsed.targets else root / DEFAULT_TARGETS_FILE
    data_dir = Path(parsed.data_dir) if parsed.data_dir else None

    # Everything that can be wrong with the invocation is checked before the build directory is touched
    try:
        toolchain = Toolchain.parse(parsed.toolchain)
        targets, program = load_targets(targets_file, root)
        tools = load_tool_config(data_dir)
    except ConfigurationError as e:
        print(f"Error: {e}")
        return 1

    context = BuildContext(root, toolchain, BuildMode(parsed.mode), tools=tools, data_dir=data_dir)
    try:
        build_all(context, targets, program, serial=True if parsed.serial else None, clean=parsed.clean)
    except (ConfigurationError, BuildError) as e:
        print(f"Error: {e}")
        return 1
    finally:
        context.logger.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
