"""Tests for config file loading and CLI overrides."""

from types import SimpleNamespace

import pytest

from args import parse_args
from cli_config import apply_cli_overrides, apply_config, configure_from, load_config
from constants import Constants
from engine.errors import ConfigError


class TestLoadConfig:
    """YAML config files."""

    def test_no_path(self):
        assert load_config(None) == {}

    def test_reads_mapping(self, tmp_path):
        path = tmp_path / "libforge.yml"
        path.write_text("workers: 3\ncomparators:\n  madler/zlib: semver\n")
        assert load_config(str(path)) == {"workers": 3, "comparators": {"madler/zlib": "semver"}}

    def test_empty_file(self, tmp_path):
        path = tmp_path / "libforge.yml"
        path.write_text("")
        assert load_config(str(path)) == {}

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(str(tmp_path / "absent.yml"))

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "libforge.yml"
        path.write_text("- workers\n")
        with pytest.raises(ConfigError):
            load_config(str(path))


class TestApplyConfig:
    """Values copied onto Constants."""

    def test_known_keys(self):
        apply_config({
            "workers": "6",
            "step_timeout": 90,
            "check_output_dir": False,
            "default_comparator": "semver",
            "comparators": {"acme/x": "pep440"},
            "cache_file": "~/results.json",
        })
        assert Constants.MAX_WORKERS == 6
        assert Constants.STEP_TIMEOUT_SEC == 90.0
        assert Constants.CHECK_OUTPUT_DIR is False
        assert Constants.DEFAULT_COMPARATOR == "semver"
        assert Constants.COMPARATOR_OVERRIDES == {"acme/x": "pep440"}
        assert not Constants.CACHE_FILE.startswith("~")

    def test_unknown_key_ignored(self, caplog):
        apply_config({"colour": "blue"})
        assert "unknown config key: colour" in caplog.text

    @pytest.mark.parametrize("data", [
        {"workers": 0},
        {"workers": "many"},
        {"step_timeout": -1},
        {"comparators": ["semver"]},
    ])
    def test_invalid_values(self, data):
        with pytest.raises(ConfigError):
            apply_config(data)


class TestCliOverrides:
    """Flags win over the config file."""

    def test_flags_override_config(self, tmp_path, monkeypatch):
        monkeypatch.delenv(Constants.CONFIG_ENV, raising=False)
        config = tmp_path / "libforge.yml"
        config.write_text("workers: 2\nworkspace: /from/config\nstep_timeout: 10\n")
        args = parse_args(["acme/x@1", "-c", str(config), "-j", "5", "--no-output-check"])
        configure_from(args)
        assert Constants.MAX_WORKERS == 5
        assert Constants.WORKSPACE == "/from/config"
        assert Constants.STEP_TIMEOUT_SEC == 10.0
        assert Constants.CHECK_OUTPUT_DIR is False

    def test_config_from_environment(self, tmp_path, monkeypatch):
        config = tmp_path / "env.yml"
        config.write_text("default_comparator: pep440\n")
        monkeypatch.setenv(Constants.CONFIG_ENV, str(config))
        configure_from(parse_args(["acme/x@1"]))
        assert Constants.DEFAULT_COMPARATOR == "pep440"

    def test_loader_injection(self):
        seen = []

        def loader(path):
            seen.append(path)
            return {"workers": 7}

        configure_from(SimpleNamespace(CONFIG="custom.yml"), loader=loader)
        assert seen == ["custom.yml"]
        assert Constants.MAX_WORKERS == 7

    def test_unset_flags_keep_values(self):
        Constants.WORKSPACE = "/kept"
        apply_cli_overrides(SimpleNamespace(WORKSPACE=None, NO_OUTPUT_CHECK=False))
        assert Constants.WORKSPACE == "/kept"
        assert Constants.CHECK_OUTPUT_DIR is True

    def test_invalid_flag(self):
        with pytest.raises(ConfigError):
            apply_cli_overrides(SimpleNamespace(WORKERS=0))


class TestParseArgs:
    """Argument parsing."""

    def test_defaults(self):
        args = parse_args(["madler/zlib@v1.3.1"])
        assert args.module == "madler/zlib@v1.3.1"
        assert args.VARIANTS == []
        assert args.LOG_LEVEL == "INFO"
        assert not args.GITHUB

    def test_repeatable_matrix(self):
        args = parse_args(["acme/x", "-m", "amd64-linux", "--matrix", "arm64-darwin"])
        assert args.VARIANTS == ["amd64-linux", "arm64-darwin"]

    def test_source_options_exclusive(self):
        with pytest.raises(SystemExit):
            parse_args(["acme/x", "--github", "--source-root", "/src"])

    def test_format_choices(self):
        assert parse_args(["acme/x", "-f", "CSV"]).OUTPUT_FORMAT == "csv"
        with pytest.raises(SystemExit):
            parse_args(["acme/x", "-f", "xml"])
