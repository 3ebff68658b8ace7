#!/usr/bin/env python3
"""Unit tests for object pruning, compiling, archiving and linking."""
from pathlib import Path

import pytest

from conftest import compiled, set_age, write
from libforge import (BuildError, Program, Toolchain, TargetStatus, archive_target, build_target, clean_target,
                      link_program, prepare_program, prepare_target, prune_object_dir)


@pytest.fixture
def state_of(make_context, foo_target):
    def factory():
        context = make_context()
        return context, prepare_target(context, foo_target)
    return factory


class TestPruneObjectDir:

    def test_removes_everything_not_owned_by_a_source(self, state_of):
        context, state = state_of()
        build_target(context, state)
        write(state.obj_dir / "removed.o", "")
        write(state.obj_dir / "removed.i", "")
        write(state.obj_dir / "nested" / "x.o", "")

        removed = prune_object_dir(state, Toolchain.GCC)

        assert sorted(p.name for p in removed) == ["nested", "removed.i", "removed.o"]
        assert sorted(p.name for p in state.obj_dir.iterdir()) == ["a.i", "a.o", "b.i", "b.o"]

    def test_msvc_keeps_pdb_files(self, state_of):
        _, state = state_of()
        write(state.obj_dir / "a.pdb", "")
        write(state.obj_dir / "stray.pdb", "")

        removed = prune_object_dir(state, Toolchain.MSVC)

        assert [p.name for p in removed] == ["stray.pdb"]

    def test_missing_directory(self, state_of):
        _, state = state_of()
        assert prune_object_dir(state, Toolchain.GCC) == []


class TestArchiveTarget:

    def test_missing_archive_is_created(self, state_of):
        context, state = state_of()
        build_target(context, state)
        state.archive_path.unlink()

        assert archive_target(context, state)
        assert state.archive_path.read_text().startswith("!<arch>")

    def test_archive_newer_than_objects_is_kept(self, state_of):
        context, state = state_of()
        build_target(context, state)
        for obj in state.object_files():
            set_age(obj, 60)

        assert not archive_target(context, state)
        assert "skip lib foo" in context.logger.messages

    def test_force_rebuilds_an_up_to_date_archive(self, state_of):
        context, state = state_of()
        build_target(context, state)
        for obj in state.object_files():
            set_age(obj, 60)

        assert archive_target(context, state, force=True)
        assert "skip lib foo" not in context.logger.messages

    def test_newer_object_rebuilds_archive_from_scratch(self, state_of):
        context, state = state_of()
        build_target(context, state)
        state.archive_path.write_text("stale member list")
        set_age(state.archive_path, 60)

        assert archive_target(context, state)
        content = state.archive_path.read_text()
        assert "stale" not in content
        assert "--- a.o" in content and "--- b.o" in content

    def test_archiver_failure(self, state_of):
        context, state = state_of()
        build_target(context, state)
        state.archive_path.unlink()
        state.object_files()[0].unlink()

        with pytest.raises(BuildError, match="foo.a"):
            archive_target(context, state)


class TestBuildTarget:

    def test_success(self, state_of):
        context, state = state_of()

        assert build_target(context, state) is TargetStatus.SUCCEEDED
        assert compiled(context.logger) == ["a.c", "b.c"]
        assert state.archive_path.is_file()
        assert any(m.startswith("foo compile step: ") for m in context.logger.messages)

    def test_nothing_to_compile_is_reported(self, state_of):
        context, state = state_of()
        build_target(context, state)
        context.flush_log()

        context, state = state_of()
        build_target(context, state)
        assert compiled(context.logger) == []
        assert "skip compile a.c" in context.logger.messages
        assert "skip compile b.c" in context.logger.messages

    def test_failure_marks_target_failed(self, state_of, project):
        write(project / "foo" / "src" / "b.c", "int b(void) {\n#error missing brace\n")
        context, state = state_of()

        with pytest.raises(BuildError):
            build_target(context, state)
        assert state.status is TargetStatus.FAILED
        assert not state.archive_path.exists()

    def test_compiler_warnings_are_logged(self, state_of, project):
        write(project / "foo" / "src" / "b.c", "#warning check this\nint b(void) { return 2; }\n")
        context, state = state_of()

        build_target(context, state)
        assert any("warning: check this" in m for m in context.logger.messages)

    def test_removed_source_drops_out_of_archive(self, state_of, project):
        context, state = state_of()
        build_target(context, state)
        context.flush_log()

        (project / "foo" / "src" / "b.c").unlink()
        context, state = state_of()
        build_target(context, state)

        assert not (state.obj_dir / "b.o").exists()
        assert "--- b.o" not in state.archive_path.read_text()
        assert compiled(context.logger) == []
        assert "skip lib foo" not in context.logger.messages


class TestCleanTarget:

    def test_removes_objects_and_archive(self, state_of):
        context, state = state_of()
        build_target(context, state)

        clean_target(state)
        assert not state.obj_dir.exists()
        assert not state.archive_path.exists()

    def test_clean_of_unbuilt_target(self, state_of):
        _, state = state_of()
        clean_target(state)


class TestLinkProgram:

    @pytest.fixture
    def program(self, project):
        write(project / "app" / "main.c", "int main(void) { return 0; }\n")
        return Program(name="app", source_root=project / "app", flags="", sources=("main.c",), link_flags="-lm")

    def test_link_and_skip(self, state_of, make_context, program):
        context, state = state_of()
        build_target(context, state)
        app = prepare_program(context, program)

        assert link_program(context, app, program.link_flags, [state.archive_path])
        assert app.status is TargetStatus.SUCCEEDED
        assert app.archive_path.read_text().splitlines()[1:] == ["main.o", "foo.a"]

        context.flush_log()

        context = make_context()
        app = prepare_program(context, program)
        for path in [state.archive_path] + app.object_files():
            set_age(path, 60)
        assert not link_program(context, app, program.link_flags, [state.archive_path])
        assert compiled(context.logger) == []
        assert "skip link app" in context.logger.messages

    def test_link_failure(self, make_context, program):
        context = make_context()
        app = prepare_program(context, program)

        with pytest.raises(BuildError, match="linking"):
            link_program(context, app, program.link_flags, [Path(context.out_dir / "missing.a")])
        assert app.status is TargetStatus.FAILED

    def test_removed_program_source_forces_relink(self, state_of, make_context, project):
        write(project / "app" / "main.c", "int main(void) { return 0; }\n")
        write(project / "app" / "util.c", "int util(void) { return 1; }\n")
        program = Program(name="app", source_root=project / "app", flags="", sources=("*.c",))
        context, state = state_of()
        build_target(context, state)
        app = prepare_program(context, program)
        assert link_program(context, app, "", [state.archive_path])
        context.flush_log()

        (project / "app" / "util.c").unlink()
        context = make_context()
        app = prepare_program(context, program)
        assert link_program(context, app, "", [state.archive_path])
        assert app.archive_path.read_text().splitlines()[1:] == ["main.o", "foo.a"]
