"""Tests for formula registration, loading, manifests and hook contexts."""

import json
import textwrap

import pytest

from engine.errors import ConfigError, SourceUnavailable
from engine.models import ModuleRef, VersionConstraint
from formula.context import BuildContext, DependencyCollector, Project
from formula.formula import Formula, FormulaRegistry
from formula.loader import load_formulas
from formula.manifest import StaticManifest, load_manifest
from versioning.strategies import SemverComparator


class TestFormulaRegistry:
    """Lookup by path and version."""

    def test_lookup_by_from_ver(self):
        registry = FormulaRegistry()
        old = registry.register(Formula("acme/x", "1.0"))
        new = registry.register(Formula("acme/x", "1.10"))
        assert registry.lookup("acme/x", "1.9") is old
        assert registry.lookup("acme/x", "1.10") is new
        assert registry.lookup("acme/x", "0.9") is None
        assert registry.lookup("acme/y", "1.0") is None

    def test_same_from_ver_replaces(self):
        registry = FormulaRegistry()
        registry.register(Formula("acme/x", "1.0"))
        replacement = registry.register(Formula("acme/x", "1.0"))
        assert registry.formulas_for("acme/x") == [replacement]
        assert len(registry) == 1

    def test_formula_comparator_is_registered(self):
        registry = FormulaRegistry()
        registry.register(Formula("acme/x", "0", comparator="semver"))
        assert isinstance(registry.comparators.for_path("acme/x"), SemverComparator)
        assert "acme/x" in registry
        assert registry.paths() == ["acme/x"]


class TestStaticManifest:
    """Exact-version dependency lists."""

    def test_from_dict_accepts_both_entry_forms(self):
        manifest = StaticManifest.from_dict({
            "acme/x": {
                "1.0": ["acme/y@2.0", {"path": "acme/z", "version": "3"}],
                "0.9": None,
            },
        })
        assert manifest.lookup("acme/x", "1.0") == (
            VersionConstraint("acme/y", "2.0"),
            VersionConstraint("acme/z", "3"),
        )
        assert manifest.lookup("acme/x", "0.9") == ()
        assert manifest.lookup("acme/x", "1.1") is None
        assert manifest.latest("acme/x") == "1.0"

    @pytest.mark.parametrize("data", [
        ["acme/x"],
        {"acme/x": ["1.0"]},
        {"acme/x": {"1.0": "acme/y@1"}},
        {"acme/x": {"1.0": ["acme/y"]}},
        {"acme/x": {"1.0": [42]}},
        {"acme/x": {"1.0": [{"path": "acme/y", "version": 1.1}]}},
        {"acme/x": {1.1: []}},
    ])
    def test_malformed(self, data):
        with pytest.raises(ConfigError):
            StaticManifest.from_dict(data)

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "manifest.yml"
        path.write_text(textwrap.dedent("""\
            acme/x:
              v1.0:
                - acme/y@v2
            acme/y:
              v2: []
        """))
        manifest = load_manifest(str(path))
        assert manifest.lookup("acme/x", "v1.0") == (VersionConstraint("acme/y", "v2"),)
        assert len(manifest) == 2

    def test_load_yaml_keeps_versions_verbatim(self, tmp_path):
        path = tmp_path / "manifest.yml"
        path.write_text(textwrap.dedent("""\
            acme/x:
              1.10:
                - path: acme/y
                  version: 1.20
              2.0:
            acme/y:
              1.20: []
        """))
        manifest = load_manifest(str(path))
        assert manifest.versions("acme/x") == ["1.10", "2.0"]
        assert manifest.lookup("acme/x", "1.10") == (VersionConstraint("acme/y", "1.20"),)
        assert manifest.lookup("acme/x", "2.0") == ()
        assert manifest.lookup("acme/y", "1.20") == ()

    def test_load_json_rejects_numeric_version(self, tmp_path):
        path = tmp_path / "manifest.json"
        path.write_text(json.dumps({"acme/x": {"1": [{"path": "acme/y", "version": 1.1}]}}))
        with pytest.raises(ConfigError):
            load_manifest(str(path))

    def test_load_json(self, tmp_path):
        path = tmp_path / "manifest.json"
        path.write_text(json.dumps({"acme/x": {"1": []}}))
        assert load_manifest(str(path)).versions("acme/x") == ["1"]

    def test_load_missing(self, tmp_path):
        with pytest.raises(ConfigError):
            load_manifest(str(tmp_path / "nope.yml"))

    def test_load_invalid_yaml(self, tmp_path):
        path = tmp_path / "manifest.yml"
        path.write_text("acme/x: [unclosed\n")
        with pytest.raises(ConfigError):
            load_manifest(str(path))


class TestLoader:
    """Formula files discovered on disk."""

    def test_loads_single_and_multiple(self, tmp_path):
        (tmp_path / "one.py").write_text(
            "from formula import Formula\nFORMULA = Formula('acme/x', '0')\n"
        )
        (tmp_path / "many.py").write_text(
            "from formula import Formula\n"
            "FORMULAS = [Formula('acme/y', '1'), Formula('acme/y', '2')]\n"
        )
        (tmp_path / "_helpers.py").write_text("raise RuntimeError('not a formula')\n")
        (tmp_path / "empty.py").write_text("X = 1\n")
        registry = FormulaRegistry()
        assert load_formulas(str(tmp_path), registry) == 3
        assert registry.paths() == ["acme/x", "acme/y"]

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ConfigError):
            load_formulas(str(tmp_path / "absent"), FormulaRegistry())

    def test_broken_file(self, tmp_path):
        (tmp_path / "broken.py").write_text("this is not python\n")
        with pytest.raises(ConfigError):
            load_formulas(str(tmp_path), FormulaRegistry())

    def test_wrong_type(self, tmp_path):
        (tmp_path / "wrong.py").write_text("FORMULA = 'acme/x'\n")
        with pytest.raises(ConfigError):
            load_formulas(str(tmp_path), FormulaRegistry())


class TestContexts:
    """Objects handed to hooks."""

    def test_project_without_source(self):
        project = Project(ModuleRef("acme/x", "1.0"))
        assert (project.path, project.version) == ("acme/x", "1.0")
        with pytest.raises(SourceUnavailable):
            project.read_file("CMakeLists.txt")

    def test_collector(self):
        collector = DependencyCollector()
        collector.require("acme/y", "1.0")
        collector.require(" acme/y ", "1.0")
        collector.require("acme/z", "2")
        assert collector.declared == (
            VersionConstraint("acme/y", "1.0"),
            VersionConstraint("acme/z", "2"),
        )
        with pytest.raises(ValueError):
            collector.require("acme/q", "")

    def test_build_context_lookups(self):
        dep = ModuleRef("acme/y", "1")
        ctx = BuildContext(
            ref=ModuleRef("acme/x", "1.0"),
            variant="amd64-linux",
            output_dir="/out/x",
            deps=(dep,),
            install_dirs={dep: "/out/y"},
            metadata={dep: "-ly"},
        )
        assert ctx.install_dir_of(dep) == "/out/y"
        assert ctx.metadata_of(dep) == "-ly"
        assert ctx.metadata_of(ModuleRef("acme/z", "1")) == ""
        assert ctx.dep("acme/y") is dep
        assert not ctx.cancelled
        with pytest.raises(KeyError):
            ctx.dep("acme/z")
        with pytest.raises(KeyError):
            ctx.install_dir_of(ModuleRef("acme/z", "1"))
