"""
Target descriptors and per-run target state.

A Target is the immutable, declarative description of one static library.
A TargetState is what the engine derives from it for a single run.
"""

import json
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ._errors import ConfigurationError
from ._toolchain import Lang
from ._type_check import typecheck_methods


class TargetStatus(str, Enum):
    NOT_STARTED = "NotStarted"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


@dataclass(frozen=True)
class Target:
    """One static library to build.

    name doubles as the archive stem and the object subdirectory name.
    sources are glob patterns relative to source_root, matched recursively.
    """
    name: str
    source_root: Path
    include_dir: str
    flags: str
    sources: Tuple[str, ...]
    lang: Lang = Lang.C

    @property
    def include_path(self) -> Path:
        return Path(os.path.normpath(Path(self.source_root) / self.include_dir))

    @property
    def include_flag(self) -> str:
        return f"-I{self.include_path}"

    @property
    def compile_flags(self) -> str:
        """Flags passed to every compile of this target, ending with its own include flag."""
        if self.flags:
            return f"{self.flags} {self.include_flag}"
        return self.include_flag


@dataclass(frozen=True)
class Program:
    """An executable linked against the libraries built in the same run.
    An empty libraries tuple links every target of the run."""
    name: str
    source_root: Path
    flags: str
    sources: Tuple[str, ...]
    link_flags: str = ""
    lang: Lang = Lang.C
    libraries: Tuple[str, ...] = field(default_factory=tuple)

    def as_target(self) -> Target:
        """The compile half of the program, shaped like a library target."""
        return Target(name=self.name, source_root=self.source_root, include_dir=".",
                      flags=self.flags, sources=self.sources, lang=self.lang)


@typecheck_methods
class TargetState:
    """Everything derived from a Target for one run. Owned by that target's job."""

    def __init__(self, target: Target, obj_dir: Path, archive_path: Path):
        self.target = target
        self.obj_dir = obj_dir
        self.archive_path = archive_path
        self.sources: List[Path] = []
        self.obj_paths: Dict[Path, Path] = {}
        self.preprocessed_paths: Dict[Path, Path] = {}
        self.status = TargetStatus.NOT_STARTED

    @property
    def name(self) -> str:
        return self.target.name

    def object_files(self) -> List[Path]:
        """Object paths of all current sources, in source order."""
        return [self.obj_paths[src] for src in self.sources]

    def __repr__(self):
        return f"TargetState({self.name!r}, {self.status.value}, {len(self.sources)} sources)"


def _require(entry: Dict, key: str, where: str):
    if key not in entry:
        raise ConfigurationError(f"{where}: missing required field '{key}'")
    return entry[key]


def _parse_lang(value: str, where: str) -> Lang:
    try:
        return Lang(value)
    except ValueError:
        raise ConfigurationError(f"{where}: unknown lang '{value}' (expected 'c' or 'cpp')") from None


def _patterns(entry: Dict, where: str) -> Tuple[str, ...]:
    sources = _require(entry, "sources", where)
    if isinstance(sources, str) or not isinstance(sources, list):
        raise ConfigurationError(f"{where}: 'sources' must be a list of glob patterns")
    return tuple(str(s) for s in sources)


def _extra_includes(entry: Dict, declared: Dict[str, Target], where: str) -> List[str]:
    flags = []
    for dep in entry.get("include_from", []):
        if dep not in declared:
            raise ConfigurationError(f"{where}: include_from references unknown or later target '{dep}'")
        flags.append(declared[dep].include_flag)
    return flags


def load_targets(path: Path, root_dir: Path) -> Tuple[List[Target], Optional[Program]]:
    """Load target descriptors from a JSON target file.

    Layout:
        {
          "targets": [
            {"name": "fribidi", "lang": "c", "include_dir": "lib",
             "flags": "-DHAVE_STRING_H=1", "sources": ["lib/*.c"]},
            {"name": "harfbuzz", "lang": "cpp", "include_dir": "src",
             "flags": "-DHAVE_FREETYPE=1", "sources": ["src/hb-*.cc"],
             "include_from": ["fribidi"]}
          ],
          "program": {"name": "example", "sources": ["example.c"], "flags": "-Wall",
                      "link_flags": "-lm", "include_from": ["fribidi"]}
        }

    source_root defaults to <root_dir>/<name>; relative roots are taken from root_dir.
    include_from appends the include flags of targets declared earlier in the file.

    Args:    path: Target file
             root_dir: Project root
    Returns: (targets in file order, optional program)
    Raises:  ConfigurationError for unreadable or malformed files"""
    try:
        with open(path, 'r', encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Target file not found: {path}") from None
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Malformed target file {path}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("targets"), list):
        raise ConfigurationError(f"{path}: expected an object with a 'targets' list")

    root_dir = Path(root_dir)
    declared: Dict[str, Target] = {}
    for index, entry in enumerate(data["targets"]):
        where = f"{path}: targets[{index}]"
        if not isinstance(entry, dict):
            raise ConfigurationError(f"{where}: expected an object")
        name = str(_require(entry, "name", where))
        if name in declared:
            raise ConfigurationError(f"{where}: duplicate target name '{name}'")

        flags = " ".join([str(entry.get("flags", ""))] + _extra_includes(entry, declared, where)).strip()
        declared[name] = Target(
            name=name,
            source_root=root_dir / entry.get("source_root", name),
            include_dir=str(entry.get("include_dir", ".")),
            flags=flags,
            sources=_patterns(entry, where),
            lang=_parse_lang(entry.get("lang", "c"), where),
        )

    program = None
    entry = data.get("program")
    if entry is not None:
        where = f"{path}: program"
        if not isinstance(entry, dict):
            raise ConfigurationError(f"{where}: expected an object")
        flags = " ".join([str(entry.get("flags", ""))] + _extra_includes(entry, declared, where)).strip()
        program = Program(
            name=str(_require(entry, "name", where)),
            source_root=root_dir / entry.get("source_root", "."),
            flags=flags,
            sources=_patterns(entry, where),
            link_flags=str(entry.get("link_flags", "")),
            lang=_parse_lang(entry.get("lang", "c"), where),
            libraries=tuple(entry.get("libraries", list(declared))),
        )
        for lib in program.libraries:
            if lib not in declared:
                raise ConfigurationError(f"{where}: unknown library '{lib}'")

    return list(declared.values()), program
