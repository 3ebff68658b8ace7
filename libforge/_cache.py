"""
Compile log management for libforge.

Provides CacheRecord and CompileLog for persisting, per object file, the
exact command and preprocessed-source hash of its last compilation.

The log is a CSV file with every field double-quoted:

    "objPath","compileCmd","preprocessedHash"
    "/abs/build-gcc-debug/foo/a.o","gcc -g ... -c /abs/foo/a.c -o /abs/...","0x1F2E3D4C5B6A7988"
"""

import csv
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional

from ._hashing import format_hash, parse_hash
from ._type_check import typecheck_methods


LOG_COLUMNS = ("objPath", "compileCmd", "preprocessedHash")
LOG_FILENAME = "log.csv"


def canonical_path(path: Path) -> str:
    """Key used for an object path in the compile log."""
    return os.path.normcase(os.path.abspath(path))


@typecheck_methods
class CacheRecord:
    """How an object file was last produced."""

    def __init__(self, compile_cmd: str, preprocessed_hash: int):
        self.compile_cmd = compile_cmd
        self.preprocessed_hash = preprocessed_hash

    def matches(self, compile_cmd: str, preprocessed_hash: int) -> bool:
        return self.compile_cmd == compile_cmd and self.preprocessed_hash == preprocessed_hash

    def __eq__(self, other):
        if not isinstance(other, CacheRecord):
            return NotImplemented
        return self.matches(other.compile_cmd, other.preprocessed_hash)

    def __repr__(self):
        return f"CacheRecord({self.compile_cmd!r}, {format_hash(self.preprocessed_hash)})"


@typecheck_methods
class CompileLog:
    """Thread-safe store of the records produced during one run.

    Every target job appends to the same instance. Keys never collide between
    targets because each target only writes paths under its own object
    directory.
    """

    def __init__(self):
        self._records: Dict[str, CacheRecord] = {}
        self._lock = threading.Lock()

    @staticmethod
    def load(path: Path, logger: Optional[logging.Logger] = None) -> Optional[Dict[str, CacheRecord]]:
        """Load a compile log written by a previous run.
        Any problem with the file means "no usable cache" rather than an error.
        Args:    path: Path to log.csv
                 logger: Optional logger told why a log was discarded
        Returns: Mapping of canonical object path to CacheRecord, or None"""
        def discard(reason: str) -> None:
            if logger is not None:
                logger.info(f"ignoring compile log {path}: {reason}")

        try:
            with open(path, 'r', encoding="utf-8", newline="") as f:
                rows = list(csv.reader(f, strict=True))
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            discard(str(e))
            return None

        if not rows or tuple(rows[0]) != LOG_COLUMNS:
            discard("header mismatch")
            return None

        records = {}
        for row in rows[1:]:
            if not row:
                continue
            if len(row) != len(LOG_COLUMNS):
                discard(f"malformed row {row!r}")
                return None
            obj_path, compile_cmd, hash_text = row
            try:
                preprocessed_hash = parse_hash(hash_text)
            except ValueError:
                continue  # Unusable row; that object simply gets rebuilt
            records[obj_path] = CacheRecord(compile_cmd, preprocessed_hash)

        return records

    def append(self, obj_path: Path, compile_cmd: str, preprocessed_hash: int):
        """Record how an object was (or would have been) compiled in this run."""
        key = canonical_path(obj_path)
        record = CacheRecord(compile_cmd, preprocessed_hash)
        with self._lock:
            self._records[key] = record

    def get(self, obj_path: Path) -> Optional[CacheRecord]:
        with self._lock:
            return self._records.get(canonical_path(obj_path))

    def records(self) -> Dict[str, CacheRecord]:
        """Snapshot of all records appended so far."""
        with self._lock:
            return dict(self._records)

    def __len__(self):
        with self._lock:
            return len(self._records)

    def flush(self, path: Path):
        """Write all records to path, atomically replacing any previous log.
        Raises:  OSError if the log cannot be written"""
        path = Path(path)
        records = self.records()

        fd, tmp_name = tempfile.mkstemp(prefix=".log-", suffix=".csv.tmp", dir=path.parent)
        try:
            with os.fdopen(fd, 'w', encoding="utf-8", newline="") as f:
                writer = csv.writer(f, quoting=csv.QUOTE_ALL, lineterminator="\n")
                writer.writerow(LOG_COLUMNS)
                for obj_path in sorted(records):
                    record = records[obj_path]
                    writer.writerow([obj_path, record.compile_cmd, format_hash(record.preprocessed_hash)])
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise
