"""Tests for build scope path derivation."""

from pathlib import Path

from modbuild.build.build_context import SourceBatch
from modbuild.build.module_info import normalize_output_path


class TestBuildScope:
    def test_object_and_depend_files(self, make_scope, project_dir):
        scope = make_scope()
        source = Path("src/core/hello.mpp")

        assert scope.object_file(source) == project_dir / "build" / ".objs" / "app" / "src" / "core" / "hello.mpp.o"
        assert scope.depend_file(source) == project_dir / "build" / ".deps" / "app" / "src" / "core" / "hello.mpp.d"

    def test_absolute_source_inside_project(self, make_scope, project_dir):
        scope = make_scope()
        absolute = project_dir / "src" / "main.cpp"
        assert scope.object_file(absolute) == scope.object_file(Path("src/main.cpp"))

    def test_source_outside_project(self, make_scope, tmp_path):
        scope = make_scope()
        outside = tmp_path / "vendor" / "fmt.cppm"
        assert scope.object_file(outside) == scope.build_dir / ".objs" / "app" / "fmt.cppm.o"

    def test_modules_cachedir_created(self, make_scope):
        scope = make_scope()
        cachedir = scope.modules_cachedir()
        assert cachedir.is_dir()
        assert cachedir == scope.build_dir / ".gens" / "app" / "rules" / "modules" / "cache"

    def test_dependency_include_dirs_in_dep_order(self, make_scope, tmp_path):
        first = make_scope(name="first", include_dirs=(tmp_path / "a", tmp_path / "b"))
        second = make_scope(name="second", include_dirs=(tmp_path / "c",))
        scope = make_scope(deps=(first, second))
        assert scope.dependency_include_dirs() == [tmp_path / "a", tmp_path / "b", tmp_path / "c"]

    def test_contains_modules(self, make_scope):
        lib = make_scope(name="lib", module_sources=(Path("src/lib.mpp"),))
        assert lib.contains_modules()
        assert make_scope(deps=(lib,)).contains_modules()
        assert not make_scope().contains_modules()


class TestSourceBatch:
    def test_parallel_lists(self, make_scope):
        scope = make_scope(module_sources=(Path("src/a.mpp"), Path("src/main.cpp")))
        batch = scope.source_batch()

        assert len(batch) == 2
        assert batch.source_kind == "cxx"
        assert batch.object_files == [
            normalize_output_path(scope.object_file(Path("src/a.mpp"))),
            normalize_output_path(scope.object_file(Path("src/main.cpp"))),
        ]
        assert batch.depend_files[1] == scope.depend_file(Path("src/main.cpp"))

    def test_explicit_sources(self, make_scope):
        scope = make_scope(module_sources=(Path("src/a.mpp"),))
        batch = SourceBatch.for_scope(scope, [Path("src/b.mpp")])
        assert batch.source_files == [Path("src/b.mpp")]
