"""
Toolchain definitions for libforge.

Provides the Toolchain, BuildMode and Lang enums, the optional tools.json
configuration that overrides executable paths, and the MSVC environment
captured from vcvarsall.bat.
"""

import json
import os
import subprocess
import sys
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

from ._errors import ConfigurationError
from ._type_check import typecheck_methods


DATA_DIR = Path.home() / ".libforge"


def is_windows_host(platform: Optional[str] = None) -> bool:
    platform = platform if platform is not None else sys.platform
    return platform.startswith("win")


class Toolchain(str, Enum):
    """Supported compiler command grammars."""
    GCC = "gcc"
    CLANG = "clang"
    MSVC = "msvc"

    @classmethod
    def parse(cls, name: str, platform: Optional[str] = None) -> "Toolchain":
        """Parse a toolchain name, checking it is usable on the host platform.
        Args:    name: Toolchain name from the command line
                 platform: sys.platform-style string (defaults to the running host)
        Returns: Toolchain member
        Raises:  ConfigurationError if the name is unknown or unsupported on the host"""
        allowed = cls.for_platform(platform)
        for toolchain in allowed:
            if toolchain.value == name:
                return toolchain
        names = ", ".join(t.value for t in allowed)
        raise ConfigurationError(f"Unsupported toolchain '{name}' for this platform (expected one of: {names})")

    @classmethod
    def for_platform(cls, platform: Optional[str] = None):
        if is_windows_host(platform):
            return (cls.MSVC, cls.CLANG)
        return (cls.GCC, cls.CLANG)

    @property
    def object_ext(self) -> str:
        return ".obj" if self is Toolchain.MSVC else ".o"

    @property
    def gcc_syntax(self) -> bool:
        return self is not Toolchain.MSVC


class BuildMode(str, Enum):
    DEBUG = "debug"
    RELEASE = "release"


class Lang(str, Enum):
    """Source language of a target. Selects the preprocessed intermediate extension."""
    C = "c"
    CPP = "cpp"

    @property
    def preprocessed_ext(self) -> str:
        return ".ii" if self is Lang.CPP else ".i"


def load_tool_config(data_dir: Optional[Path] = None) -> Dict[str, str]:
    """Load tool path overrides from tools.json.
    A missing file means every tool runs under its default name.
    Args:    data_dir: Directory holding tools.json (defaults to ~/.libforge)
    Returns: Mapping of tool key (gcc, clang, cl, ar, lib, vcvarsall, msvc_arch) to value"""
    config_path = Path(data_dir if data_dir is not None else DATA_DIR) / "tools.json"
    try:
        with open(config_path, 'r', encoding="utf-8") as f:
            config = json.load(f)
    except FileNotFoundError:
        return {}
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Malformed tool configuration {config_path}: {e}") from e

    if not isinstance(config, dict):
        raise ConfigurationError(f"Tool configuration {config_path} must be a JSON object")
    return {str(k): str(v) for k, v in config.items()}


@typecheck_methods
class MsvcEnv:
    """Environment produced by vcvarsall.bat, needed to run cl and lib.

    Running vcvarsall takes seconds, so the captured environment is kept for
    the process and on disk in msvc_env.json, keyed by script and architecture.
    """

    CACHE_FILENAME = "msvc_env.json"

    _env = None

    @classmethod
    def get(cls, config: Dict[str, str], data_dir: Optional[Path] = None) -> Optional[Dict[str, str]]:
        """Environment for MSVC subprocesses.
        Returns None when no vcvarsall is configured; the compiler is then
        expected to be usable from the inherited environment."""
        if "vcvarsall" not in config:
            return None
        if cls._env is None:
            key = {"vcvarsall": config["vcvarsall"], "msvc_arch": config.get("msvc_arch", "x64")}
            cache_file = Path(data_dir if data_dir is not None else DATA_DIR) / cls.CACHE_FILENAME
            env = cls._read_cache(cache_file, key)
            if env is None:
                env = cls._capture(key["vcvarsall"], key["msvc_arch"])
                cls._write_cache(cache_file, key, env)
            cls._env = env
        return cls._env

    @staticmethod
    def _read_cache(cache_file: Path, key: Dict[str, str]) -> Optional[Dict[str, str]]:
        try:
            with open(cache_file, 'r', encoding="utf-8") as f:
                cached = json.load(f)
        except (FileNotFoundError, json.JSONDecodeError):
            return None
        if not isinstance(cached, dict) or any(cached.get(k) != v for k, v in key.items()):
            return None  # Written for another installation or architecture
        env = cached.get("env")
        return env if isinstance(env, dict) else None

    @staticmethod
    def _capture(vcvarsall: str, msvc_arch: str) -> Dict[str, str]:
        result = subprocess.run(f'"{vcvarsall}" {msvc_arch} >nul && set', shell=True,
                                capture_output=True, text=True, check=False)
        env = os.environ.copy()
        for line in result.stdout.splitlines():
            name, sep, value = line.partition('=')
            if sep:
                env[name] = value
        return env

    @staticmethod
    def _write_cache(cache_file: Path, key: Dict[str, str], env: Dict[str, str]):
        try:
            cache_file.parent.mkdir(parents=True, exist_ok=True)
            with open(cache_file, 'w', encoding="utf-8") as f:
                json.dump({**key, "env": env}, f, indent=2)
        except OSError:
            pass  # Still usable without the disk cache

    @classmethod
    def reset(cls):
        cls._env = None
