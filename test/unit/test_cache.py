#!/usr/bin/env python3
"""Unit tests for the compile log (log.csv)."""
import threading
from pathlib import Path

import pytest

from conftest import make_logger
from libforge import CacheRecord, CompileLog
from libforge._cache import LOG_COLUMNS, canonical_path
from libforge._hashing import format_hash, parse_hash


HEADER = '"objPath","compileCmd","preprocessedHash"\n'


@pytest.fixture
def log_path(tmp_path):
    return tmp_path / "log.csv"


class TestLoad:

    def test_missing_file_means_no_cache(self, log_path):
        assert CompileLog.load(log_path) is None

    def test_header_mismatch_is_ignored(self, log_path):
        log_path.write_text('"obj","cmd","hash"\n"/o/a.o","gcc","0x01"\n')
        assert CompileLog.load(log_path) is None

    def test_empty_file_is_ignored(self, log_path):
        log_path.write_text("")
        assert CompileLog.load(log_path) is None

    def test_wrong_field_count_discards_whole_log(self, log_path):
        log_path.write_text(HEADER + '"/o/a.o","gcc -c a.c","0x0000000000000001"\n"/o/b.o","gcc"\n')
        assert CompileLog.load(log_path) is None

    def test_unparsable_hash_drops_only_that_row(self, log_path):
        log_path.write_text(HEADER
                            + '"/o/a.o","gcc -c a.c","0x00000000000000FF"\n'
                            + '"/o/b.o","gcc -c b.c","not-a-hash"\n')
        records = CompileLog.load(log_path)
        assert records == {"/o/a.o": CacheRecord("gcc -c a.c", 0xFF)}

    def test_discard_reason_is_logged(self, log_path):
        logger = make_logger("cache-load")
        log_path.write_text("garbage\n")
        assert CompileLog.load(log_path, logger) is None
        assert any("header mismatch" in m for m in logger.messages)

    def test_commands_with_quotes_and_commas(self, log_path):
        log = CompileLog()
        cmd = 'gcc -g -DNAME="a,b" -c "/my proj/a.c" -o /o/a.o'
        log.append(Path("/o/a.o"), cmd, 42)
        log.flush(log_path)

        records = CompileLog.load(log_path)
        assert records[canonical_path(Path("/o/a.o"))].compile_cmd == cmd


class TestFlush:

    def test_file_format(self, log_path):
        log = CompileLog()
        log.append(Path("/o/b.o"), "gcc -c b.c", 0x1F2E3D4C5B6A7988)
        log.append(Path("/o/a.o"), "gcc -c a.c", 1)
        log.flush(log_path)

        lines = log_path.read_text().splitlines()
        assert lines[0] == ",".join(f'"{c}"' for c in LOG_COLUMNS)
        assert lines[1] == f'"{canonical_path(Path("/o/a.o"))}","gcc -c a.c","0x0000000000000001"'
        assert lines[2] == f'"{canonical_path(Path("/o/b.o"))}","gcc -c b.c","0x1F2E3D4C5B6A7988"'

    def test_flush_replaces_previous_log(self, log_path):
        log_path.write_text(HEADER + '"/old.o","gcc","0x0000000000000001"\n')
        log = CompileLog()
        log.append(Path("/o/a.o"), "gcc -c a.c", 7)
        log.flush(log_path)

        records = CompileLog.load(log_path)
        assert list(records) == [canonical_path(Path("/o/a.o"))]

    def test_no_temp_files_left_behind(self, log_path):
        log = CompileLog()
        log.append(Path("/o/a.o"), "gcc", 7)
        log.flush(log_path)
        assert [p.name for p in log_path.parent.iterdir()] == ["log.csv"]

    def test_flush_into_missing_directory_raises(self, tmp_path):
        missing_dir_log = tmp_path / "missing" / "log.csv"
        log = CompileLog()
        log.append(Path("/o/a.o"), "gcc", 7)
        with pytest.raises(OSError):
            log.flush(missing_dir_log)


class TestAppend:

    def test_append_overwrites_same_object(self):
        log = CompileLog()
        log.append(Path("/o/a.o"), "gcc -O0", 1)
        log.append(Path("/o/a.o"), "gcc -O2", 2)
        assert len(log) == 1
        assert log.get(Path("/o/a.o")) == CacheRecord("gcc -O2", 2)

    def test_concurrent_appends_are_not_lost(self):
        log = CompileLog()

        def worker(target):
            for i in range(200):
                log.append(Path(f"/o/{target}/{i}.o"), f"gcc {i}", i)

        threads = [threading.Thread(target=worker, args=(f"t{n}",)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(log) == 8 * 200


class TestCacheRecord:

    def test_matches_requires_both_fields(self):
        record = CacheRecord("gcc -c a.c", 5)
        assert record.matches("gcc -c a.c", 5)
        assert not record.matches("gcc -c a.c ", 5)
        assert not record.matches("gcc -c a.c", 6)


class TestHashText:

    def test_fixed_width_rendering(self):
        assert format_hash(0) == "0x0000000000000000"
        assert format_hash(0xFFFFFFFFFFFFFFFF) == "0xFFFFFFFFFFFFFFFF"

    def test_parse_accepts_lowercase(self):
        assert parse_hash("0xdeadbeef") == 0xDEADBEEF

    @pytest.mark.parametrize("text", ["", "1234", "0x", "0x1FFFFFFFFFFFFFFFF", "0xZZ"])
    def test_parse_rejects(self, text):
        with pytest.raises(ValueError):
            parse_hash(text)
