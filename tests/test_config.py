"""Tests for configuration loading, CLI parsing and option precedence."""

import json

import pytest

from args import parse_args
from common.errors import ConfigurationError
from config import build_options, build_profile, load_config, registry_url
from constants import Constants, UpgradeStrategy
from schema_validate import safe_validate_report, validate_config


class TestArgParsing:
    """Command line flags."""

    def test_defaults(self):
        """Optional flags default to None so config and environment can apply."""
        ns = parse_args(["--source", "old"])
        assert ns.SOURCE == "old"
        assert ns.STRATEGY is None
        assert ns.CONCURRENCY is None
        assert ns.LOG_LEVEL is None
        assert ns.LOCKSTEP is None
        assert not ns.WRITE

    def test_repeatable_profile_flags(self):
        """--core, --companion and --lockstep collect repeated values."""
        ns = parse_args(
            ["-s", "old", "--core", "@vue/", "--core", "vue", "--companion", "@vue/cli", "--lockstep", "@vue/"]
        )
        assert ns.CORE == ["@vue/", "vue"]
        assert ns.COMPANION == ["@vue/cli"]
        assert ns.LOCKSTEP == ["@vue/"]

    def test_unknown_strategy_rejected(self):
        """argparse rejects strategies outside the supported set."""
        with pytest.raises(SystemExit):
            parse_args(["-s", "old", "--strategy", "everything"])

    def test_source_required(self):
        """--source is mandatory."""
        with pytest.raises(SystemExit):
            parse_args([])


class TestLoadConfig:
    """YAML and JSON config files."""

    def test_yaml(self, tmp_path):
        """A YAML file is loaded as a mapping."""
        path = tmp_path / "depshift.yml"
        path.write_text("concurrency: 4\nstrategy: all\nframework:\n  core: ['@vue/']\n", encoding="utf-8")

        cfg = load_config(str(path))

        assert cfg["concurrency"] == 4
        assert cfg["framework"] == {"core": ["@vue/"]}

    def test_json(self, tmp_path):
        """A .json file is parsed as JSON."""
        path = tmp_path / "depshift.json"
        path.write_text(json.dumps({"max_rounds": 3}), encoding="utf-8")
        assert load_config(str(path)) == {"max_rounds": 3}

    def test_env_fallback(self, tmp_path, monkeypatch):
        """DEPSHIFT_CONFIG names the file when --config is absent."""
        path = tmp_path / "env.yml"
        path.write_text("timeout: 12.5\n", encoding="utf-8")
        monkeypatch.setenv(Constants.CONFIG_ENV, str(path))
        assert load_config(None) == {"timeout": 12.5}

    def test_no_config(self, monkeypatch):
        """No file configured gives an empty mapping."""
        monkeypatch.delenv(Constants.CONFIG_ENV, raising=False)
        assert load_config(None) == {}

    def test_empty_file(self, tmp_path):
        """An empty YAML file gives an empty mapping."""
        path = tmp_path / "empty.yml"
        path.write_text("", encoding="utf-8")
        assert load_config(str(path)) == {}

    def test_missing_file(self, tmp_path):
        """A named file that does not exist is a configuration error."""
        with pytest.raises(ConfigurationError):
            load_config(str(tmp_path / "nope.yml"))

    def test_malformed_yaml(self, tmp_path):
        """Unparseable YAML is a configuration error."""
        path = tmp_path / "bad.yml"
        path.write_text("key: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(str(path))

    def test_non_mapping(self, tmp_path):
        """A top-level list is a configuration error."""
        path = tmp_path / "list.yml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(str(path))


class TestSchemaValidation:
    """Config and report schemas."""

    @pytest.mark.parametrize(
        "text",
        [
            "concurrency: 0\n",
            "concurrency: true\n",
            "timeout: -5\n",
            "strategy: newest\n",
            "framework:\n  core: 7\n",
            "framework:\n  lockstep: {a: 1}\n",
            "framework:\n  extras: []\n",
        ],
    )
    def test_schema_violations(self, tmp_path, text):
        """Values the schema rejects fail the load."""
        path = tmp_path / "cfg.yml"
        path.write_text(text, encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(str(path))

    def test_unknown_top_level_keys_are_tolerated(self, tmp_path):
        """Unknown top-level keys only produce a warning."""
        path = tmp_path / "cfg.yml"
        path.write_text("colour: blue\nmax_rounds: 2\n", encoding="utf-8")
        assert load_config(str(path)) == {"colour": "blue", "max_rounds": 2}

    def test_numeric_target_version_allowed(self):
        """A YAML number is accepted as a target version."""
        validate_config({"target_version": 17})

    def test_report_schema(self):
        """A well-formed report passes; an unknown status fails."""
        good = {
            "status": "converged",
            "rounds": 1,
            "scaffoldSpecifier": None,
            "dependencies": {"a": "1.0.0"},
            "devDependencies": {},
            "decisions": [
                {"package": "a", "section": "dependencies", "action": "kept", "toVersion": "1.0.0", "reason": "x"}
            ],
            "skipped": [],
        }
        assert safe_validate_report(good)
        assert not safe_validate_report(dict(good, status="draft"))


class TestBuildOptions:
    """CLI over config over defaults."""

    def test_defaults(self):
        """With no flags or config the Angular profile and constants apply."""
        options = build_options(parse_args(["-s", "old"]), {})
        assert options.strategy == UpgradeStrategy.FRAMEWORK_ONLY
        assert options.concurrency_limit == Constants.DEFAULT_CONCURRENCY
        assert options.max_rounds == Constants.DEFAULT_MAX_ROUNDS
        assert options.timeout is None
        assert options.profile.primary == "@angular/core"
        assert options.profile.lockstep == ("@angular/",)

    def test_config_values(self):
        """Config values fill every option the CLI leaves unset."""
        cfg = {"strategy": "all", "concurrency": 2, "max_rounds": 4, "timeout": 30, "target_version": "17.1.0"}
        options = build_options(parse_args(["-s", "old"]), cfg)
        assert options.strategy == UpgradeStrategy.ALL
        assert options.concurrency_limit == 2
        assert options.max_rounds == 4
        assert options.timeout == 30.0
        assert options.explicit_target_version == "17.1.0"

    def test_cli_wins_over_config(self):
        """CLI flags override the config file."""
        args = parse_args(["-s", "old", "--concurrency", "16", "--strategy", "frameworkOnly"])
        options = build_options(args, {"concurrency": 2, "strategy": "all"})
        assert options.concurrency_limit == 16
        assert options.strategy == UpgradeStrategy.FRAMEWORK_ONLY

    @pytest.mark.parametrize(
        "cfg",
        [
            {"strategy": "latest"},
            {"concurrency": 0},
            {"concurrency": "many"},
            {"max_rounds": -1},
            {"timeout": 0},
            {"target_version": "not-a-version"},
            {"framework": ["@angular/"]},
            {"framework": {"core": [1, 2]}},
            {"framework": {"lockstep": [1]}},
        ],
    )
    def test_invalid_values(self, cfg):
        """Unusable values raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            build_options(parse_args(["-s", "old"]), cfg)

    def test_profile_from_config_and_flags(self):
        """Profile fields come from flags first, then the framework section."""
        cfg = {"framework": {"core": ["@vue/", "vue"], "companions": "@vue/cli", "primary": "vue", "lockstep": "@vue/"}}
        profile = build_profile(cfg, parse_args(["-s", "old"]))
        assert profile.is_core("@vue/runtime-core")
        assert profile.is_lockstep("@vue/runtime-core")
        assert profile.companions == ("@vue/cli",)
        assert profile.primary == "vue"

        overridden = build_profile(
            cfg, parse_args(["-s", "old", "--core", "react", "--primary", "react", "--lockstep", "react"])
        )
        assert overridden.core == ("react",)
        assert overridden.primary == "react"
        assert overridden.lockstep == ("react",)
        assert overridden.companions == ("@vue/cli",)

    def test_empty_lockstep_limits_target_to_primary(self):
        """An empty lockstep list leaves only the primary package on the target."""
        cfg = {"framework": {"lockstep": []}}
        profile = build_profile(cfg, parse_args(["-s", "old"]))
        assert profile.lockstep == ()
        assert profile.is_lockstep("@angular/core")
        assert not profile.is_lockstep("@angular/router")

    def test_registry_url(self):
        """Registry URL precedence is CLI, then config, then the npm default."""
        assert registry_url(parse_args(["-s", "old"]), {}) == Constants.REGISTRY_URL_NPM
        assert registry_url(parse_args(["-s", "old"]), {"registry_url": "http://mirror/"}) == "http://mirror/"
        args = parse_args(["-s", "old", "--registry", "http://cli/"])
        assert registry_url(args, {"registry_url": "http://mirror/"}) == "http://cli/"
