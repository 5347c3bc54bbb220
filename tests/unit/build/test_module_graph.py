"""Tests for the module graph builder and module-info loader."""

import json
from pathlib import Path

import pytest

from modbuild.build.build_context import SourceBatch
from modbuild.build.module_graph import (
    ModuleGraph,
    ModuleProvision,
    bmi_filename,
    build_module_graph,
    load_module_infos,
)
from modbuild.build.module_info import LookupMethod, ModuleInfoError, parse_module_info


def _hello_world_infos() -> list:
    return [
        parse_module_info(
            {
                "version": 1,
                "revision": 0,
                "rules": [
                    {
                        "primary-output": "main.o",
                        "requires": [{"logical-name": "hello", "lookup-method": "by-name"}],
                    }
                ],
            },
            source_file=Path("/src/main.cpp"),
        ),
        parse_module_info(
            {
                "version": 1,
                "revision": 0,
                "rules": [
                    {
                        "primary-output": "hello.o",
                        "provides": [{"logical-name": "hello", "source-path": "hello.mpp"}],
                    }
                ],
            },
            source_file=Path("/src/hello.mpp"),
        ),
    ]


class TestBuildModuleGraph:
    """Two-pass cross-referencing."""

    def test_requirement_resolves_to_provider_bmi(self, tmp_path):
        """A by-name import resolves to the provider's BMI, even when the provider is scanned later."""
        graph = build_module_graph(_hello_world_infos(), tmp_path, ".gcm")

        assert set(graph) == {"main.o", "hello.o"}
        assert graph["hello.o"].provides["hello"] == ModuleProvision(
            bmi=tmp_path / "hello.gcm", source_file=Path("/src/hello.mpp")
        )
        requirement = graph["main.o"].requires["hello"]
        assert requirement.method == LookupMethod.BY_NAME
        assert requirement.path == tmp_path / "hello.gcm"
        assert requirement.unique is False

    def test_partition_name_inferred_path(self, tmp_path):
        """Partition separators are replaced in inferred BMI names."""
        info = parse_module_info(
            {"version": 1, "rules": [{"primary-output": "ab.o", "provides": [{"logical-name": "a:b"}]}]}
        )
        graph = build_module_graph([info], tmp_path, ".ifc")
        assert graph["ab.o"].provides["a:b"].bmi == tmp_path / "a-b.ifc"

    def test_bmi_filename(self):
        assert bmi_filename("app:core:detail", ".pcm") == "app-core-detail.pcm"

    def test_explicit_relative_compiled_module_path_made_absolute(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        info = parse_module_info(
            {
                "version": 1,
                "rules": [
                    {
                        "primary-output": "m.o",
                        "provides": [{"logical-name": "m", "compiled-module-path": "bmi/m.ifc"}],
                    }
                ],
            }
        )
        graph = build_module_graph([info], tmp_path / "cache", ".ifc")
        bmi = graph["m.o"].provides["m"].bmi
        assert bmi.is_absolute()
        assert bmi == (tmp_path / "bmi" / "m.ifc").absolute()

    def test_explicit_absolute_compiled_module_path_kept(self, tmp_path):
        explicit = tmp_path / "elsewhere" / "m.ifc"
        info = parse_module_info(
            {
                "version": 1,
                "rules": [
                    {
                        "primary-output": "m.o",
                        "provides": [{"logical-name": "m", "compiled-module-path": str(explicit)}],
                    }
                ],
            }
        )
        graph = build_module_graph([info], tmp_path / "cache", ".ifc")
        assert graph["m.o"].provides["m"].bmi == explicit

    def test_reported_source_path_wins(self, tmp_path):
        """A scanner-reported source path is used as-is."""
        info = parse_module_info(
            {
                "version": 1,
                "rules": [
                    {
                        "primary-output": "main.o",
                        "requires": [
                            {
                                "logical-name": "vector",
                                "lookup-method": "include-angle",
                                "source-path": "/usr/include/c++/13/vector",
                                "unique-on-source-path": True,
                            }
                        ],
                    }
                ],
            }
        )
        graph = build_module_graph([info], tmp_path, ".gcm")
        requirement = graph["main.o"].requires["vector"]
        assert requirement.method == LookupMethod.INCLUDE_ANGLE
        assert requirement.path == Path("/usr/include/c++/13/vector")
        assert requirement.unique is True

    def test_unresolved_requirement_is_external(self, tmp_path):
        """Imports nobody in the build provides keep no path."""
        info = parse_module_info(
            {"version": 1, "rules": [{"primary-output": "main.o", "requires": [{"logical-name": "std"}]}]}
        )
        graph = build_module_graph([info], tmp_path, ".gcm")
        assert graph["main.o"].requires["std"].path is None

    def test_primary_output_normalized(self, tmp_path):
        info = parse_module_info({"version": 1, "rules": [{"primary-output": "build/./objs/a.o"}]})
        graph = build_module_graph([info], tmp_path, ".gcm")
        assert str(Path("build/objs/a.o")) in graph

    def test_first_provider_wins(self, tmp_path):
        """With duplicate provisions the first scanned provider is used."""
        infos = [
            parse_module_info(
                {
                    "version": 1,
                    "rules": [
                        {
                            "primary-output": "one.o",
                            "provides": [{"logical-name": "m", "compiled-module-path": str(tmp_path / "one.gcm")}],
                        },
                        {
                            "primary-output": "two.o",
                            "provides": [{"logical-name": "m", "compiled-module-path": str(tmp_path / "two.gcm")}],
                        },
                        {"primary-output": "user.o", "requires": [{"logical-name": "m"}]},
                    ],
                }
            )
        ]
        graph = build_module_graph(infos, tmp_path, ".gcm")
        assert graph["user.o"].requires["m"].path == tmp_path / "one.gcm"

    def test_idempotent_parse(self, tmp_path):
        """Parsing the same documents twice yields equal graphs."""
        first = build_module_graph(_hello_world_infos(), tmp_path, ".gcm")
        second = build_module_graph(_hello_world_infos(), tmp_path, ".gcm")
        assert first == second

    def test_graph_json_serialization(self, tmp_path):
        """The graph survives the persisted cache format."""
        graph = build_module_graph(_hello_world_infos(), tmp_path, ".gcm")
        restored = ModuleGraph.from_dict(json.loads(json.dumps(graph.to_dict())))
        assert restored == graph


class TestLoadModuleInfos:
    """Reading depend files of a batch."""

    def _write_depend(self, depend_file: Path, document: dict) -> None:
        depend_file.parent.mkdir(parents=True, exist_ok=True)
        depend_file.write_text(json.dumps({"moduleinfo": json.dumps(document)}), encoding="utf-8")

    def test_loads_existing_and_skips_missing(self, make_scope):
        scope = make_scope()
        batch = SourceBatch.for_scope(scope, [Path("src/hello.mpp"), Path("src/main.cpp")])
        self._write_depend(
            batch.depend_files[0],
            {"version": 0, "revision": 0, "rules": [{"primary-output": batch.object_files[0]}]},
        )

        infos = load_module_infos(scope, batch)

        assert len(infos) == 1
        assert infos[0].source_file == scope.absolute_source(Path("src/hello.mpp"))
        assert infos[0].rules[0].primary_output == batch.object_files[0]

    def test_invalid_depend_file_raises(self, make_scope):
        scope = make_scope()
        batch = SourceBatch.for_scope(scope, [Path("src/hello.mpp")])
        batch.depend_files[0].parent.mkdir(parents=True)
        batch.depend_files[0].write_text("{not json", encoding="utf-8")

        with pytest.raises(ModuleInfoError, match="invalid dependency info"):
            load_module_infos(scope, batch)

    def test_unsupported_version_in_depend_file_raises(self, make_scope):
        scope = make_scope()
        batch = SourceBatch.for_scope(scope, [Path("src/hello.mpp")])
        self._write_depend(batch.depend_files[0], {"version": 2, "rules": []})

        with pytest.raises(ModuleInfoError, match="hello.mpp"):
            load_module_infos(scope, batch)

    def test_undecodable_depend_file_raises(self, make_scope):
        scope = make_scope()
        batch = SourceBatch.for_scope(scope, [Path("src/hello.mpp")])
        batch.depend_files[0].parent.mkdir(parents=True)
        batch.depend_files[0].write_bytes(b'{"moduleinfo": "\xff\xfe"}')

        with pytest.raises(ModuleInfoError, match="invalid dependency info"):
            load_module_infos(scope, batch)
