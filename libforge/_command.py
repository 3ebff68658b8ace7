"""
Compiler and archiver command construction.

Builds the exact command strings libforge runs. The compile command string is
also what the compile log stores, so construction must be deterministic:
identical inputs always produce identical strings.
"""

import shlex
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Union

from ._toolchain import BuildMode, Toolchain, is_windows_host
from ._type_check import typecheck


PREPROCESSED_EXTS = (".i", ".ii")
OBJECT_EXTS = (".o", ".obj")

# Default executable (and fixed leading arguments) per toolchain
_COMPILERS = {
    Toolchain.GCC: ("gcc", ""),
    Toolchain.CLANG: ("clang", ""),
    Toolchain.MSVC: ("cl", " /nologo /diagnostics:column /FC"),
}

PathLike = Union[Path, str]


def is_preprocessed(path: PathLike) -> bool:
    return Path(path).suffix in PREPROCESSED_EXTS


def is_object(path: PathLike) -> bool:
    return Path(path).suffix in OBJECT_EXTS


def quote_path(path: PathLike, platform: Optional[str] = None) -> str:
    """Quote a path for the command grammar of the host shell.
    Paths without special characters are returned unchanged."""
    if is_windows_host(platform):
        return subprocess.list2cmdline([str(path)])
    return shlex.quote(str(path))


def _tool(tools: Optional[Dict[str, str]], key: str, platform: Optional[str]) -> str:
    """Resolve a tool key to the executable text placed in the command.
    A configured value naming an existing file is quoted; anything else is
    used verbatim so wrappers such as "ccache gcc" keep working."""
    value = (tools or {}).get(key, key)
    if Path(value).is_file():
        return quote_path(value, platform)
    return value


@typecheck
def build_command(toolchain: Toolchain, mode: BuildMode, flags: str,
                  input_path: Union[PathLike, List[PathLike]], output_path: PathLike,
                  link_flags: str = "", tools: Optional[Dict[str, str]] = None,
                  platform: Optional[str] = None) -> str:
    """Build a single compiler invocation.

    The kind of step is inferred from output_path:
      .i / .ii     preprocess only
      .o / .obj    compile only
      anything     link (also implied by non-empty link_flags)

    Args:    toolchain: Compiler grammar to emit
             mode: Debug adds debug symbols, release adds fast optimization
             flags: Compile flags, inserted verbatim
             input_path: Source file, or several inputs for a link step
             output_path: File to produce
             link_flags: Extra linker flags (link step only)
             tools: Optional executable overrides (see load_tool_config)
             platform: sys.platform-style string used for quoting (defaults to host)
    Returns: Command string
    Raises:  ValueError if asked to preprocess an already preprocessed input"""
    inputs = input_path if isinstance(input_path, list) else [input_path]
    output_path = Path(output_path)
    gcc_syntax = toolchain.gcc_syntax

    key, fixed_args = _COMPILERS[toolchain]
    parts = [_tool(tools, key, platform) + fixed_args]

    if mode is BuildMode.RELEASE:
        parts.append("-Ofast" if gcc_syntax else "/O2")
    else:
        parts.append("-g" if gcc_syntax else "/Zi")

    in_is_preprocessed = any(is_preprocessed(p) for p in inputs)
    out_is_preprocessed = is_preprocessed(output_path)
    if out_is_preprocessed:
        if in_is_preprocessed:
            raise ValueError(f"Cannot preprocess already preprocessed input: {inputs}")
        if gcc_syntax:
            parts.append("-E")
        else:
            parts.append(f"/P /Fi{quote_path(output_path, platform)}")
    elif in_is_preprocessed:
        if toolchain is Toolchain.GCC:
            parts.append("-fpreprocessed")
        elif toolchain is Toolchain.MSVC:
            parts.append("/Yc")

    if flags:
        parts.append(flags)

    is_obj = is_object(output_path)
    if is_obj:
        parts.append("-c")
        if toolchain is Toolchain.MSVC:
            parts.append(f"/Fd{quote_path(output_path.with_suffix('.pdb'), platform)}")

    input_str = " ".join(quote_path(p, platform) for p in inputs)
    if gcc_syntax:
        parts.append(f"{input_str} -o {quote_path(output_path, platform)}")
    else:
        obj_path = output_path if is_obj else output_path.with_suffix(".obj")
        parts.append(f"{input_str} /Fo{quote_path(obj_path, platform)}")
        if not is_obj and not out_is_preprocessed:
            parts.append(f"/Fe{quote_path(output_path, platform)}")

    if link_flags:
        if gcc_syntax:
            parts.append(link_flags)
        else:
            parts.append(f"/link -incremental:no {link_flags}")

    return " ".join(parts)


@typecheck
def archive_command(toolchain: Toolchain, archive_path: PathLike, object_paths: List[PathLike],
                    tools: Optional[Dict[str, str]] = None, platform: Optional[str] = None) -> str:
    """Build the command that bundles object files into a static library.
    MSVC, and Clang on Windows hosts, use lib.exe; everything else uses ar.
    Args:    toolchain: Toolchain that produced the objects
             archive_path: Library file to create
             object_paths: Member object files, in archive order
             tools: Optional executable overrides
             platform: sys.platform-style string (defaults to host)
    Returns: Command string"""
    objs = " ".join(quote_path(p, platform) for p in object_paths)
    archive = quote_path(archive_path, platform)

    if toolchain is Toolchain.MSVC or (toolchain is Toolchain.CLANG and is_windows_host(platform)):
        return f"{_tool(tools, 'lib', platform)} /nologo -out:{archive} {objs}"
    return f"{_tool(tools, 'ar', platform)} rcs {archive} {objs}"
