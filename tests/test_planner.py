"""Tests for version target planning and framework profiles."""

import asyncio

import pytest

from common.errors import ConfigurationError
from constants import UpgradeStrategy
from resolution.manifest import DecisionAction, Manifest, Section
from resolution.planner import (
    REASON_ALL,
    REASON_COMPANION,
    REASON_COMPANION_ADDED,
    REASON_EXPLICIT,
    REASON_KEPT,
    VersionTargetPlanner,
)
from resolution.profile import FrameworkProfile, ResolutionOptions, scaffold_specifier

from fakes import FakeRegistry


def plan(source, registry, **option_kwargs):
    options = ResolutionOptions(**option_kwargs)
    options.validate()
    return asyncio.run(VersionTargetPlanner(registry, options).plan_manifest(source))


class TestPlanTarget:
    """The four planning rules, first match wins."""

    def test_framework_only_with_explicit_target(self):
        """@angular/* packages take the target; everything else is kept."""
        registry = FakeRegistry()
        source = Manifest.from_sections(
            {"@angular/core": "^16.0.0", "lodash": "^4.17.0", "rxjs": "~7.5.0"},
            {"@angular/cli": "^16.0.0", "jest": "^29.0.0"},
        )

        draft = plan(source, registry, explicit_target_version="17.0.0")

        assert draft.dependencies == {"@angular/core": "17.0.0", "lodash": "^4.17.0", "rxjs": "~7.5.0"}
        assert draft.dev_dependencies == {"@angular/cli": "17.0.0", "jest": "^29.0.0"}
        core = draft.decision("@angular/core")
        assert core.action == DecisionAction.UPGRADED
        assert core.from_version == "^16.0.0"
        assert core.reason == REASON_EXPLICIT
        assert draft.decision("lodash").action == DecisionAction.KEPT
        assert draft.decision("lodash").reason == REASON_KEPT
        assert registry.latest_calls == []

    def test_framework_runtime_packages_keep_their_own_versions(self):
        """rxjs and zone.js belong to the framework but never take its version."""
        source = Manifest.from_sections({"@angular/core": "^16.0.0", "rxjs": "~7.8.0", "zone.js": "~0.13.0"})

        draft = plan(source, FakeRegistry(), explicit_target_version="18.0.0", ensure_companion=False)

        assert draft.dependencies == {"@angular/core": "18.0.0", "rxjs": "~7.8.0", "zone.js": "~0.13.0"}
        assert draft.decision("rxjs").action == DecisionAction.KEPT
        assert draft.decision("rxjs").reason == REASON_KEPT
        assert draft.decision("zone.js").action == DecisionAction.KEPT

    def test_companion_follows_latest_without_target(self):
        """Without a target the companion tool moves to its latest release."""
        registry = FakeRegistry(latest={"@angular/cli": "17.3.5"})
        source = Manifest.from_sections({"@angular/core": "^16.0.0"}, {"@angular/cli": "^16.0.0"})

        draft = plan(source, registry)

        assert draft.get("@angular/core") == "^16.0.0"
        assert draft.get("@angular/cli") == "17.3.5"
        assert draft.decision("@angular/cli").reason == REASON_COMPANION

    def test_strategy_all_upgrades_everything(self):
        """Strategy all moves every package to its latest stable version."""
        registry = FakeRegistry(latest={"lodash": "4.17.21", "@angular/core": "17.3.0", "@angular/cli": "17.3.5"})
        source = Manifest.from_sections({"lodash": "^4.0.0", "@angular/core": "^16.0.0"})

        draft = plan(source, registry, strategy=UpgradeStrategy.ALL)

        assert draft.get("lodash") == "4.17.21"
        assert draft.get("@angular/core") == "17.3.0"
        assert draft.decision("lodash").reason == REASON_ALL

    def test_no_stable_version_keeps_original(self):
        """An empty latest lookup keeps the source spec with a reason."""
        registry = FakeRegistry(latest={"jest": None})
        source = Manifest.from_sections({}, {"jest": "^29.0.0"})

        draft = plan(source, registry, strategy="all", ensure_companion=False)

        decision = draft.decision("jest")
        assert decision.action == DecisionAction.KEPT
        assert draft.get("jest") == "^29.0.0"
        assert decision.reason == "lookup failed, kept original: no stable version found"

    def test_lookup_failure_keeps_original(self):
        """A failed latest lookup keeps the source spec and names the failure."""
        registry = FakeRegistry(failing={"lodash"})
        source = Manifest.from_sections({"lodash": "^4.0.0"})

        draft = plan(source, registry, strategy=UpgradeStrategy.ALL, ensure_companion=False)

        assert draft.get("lodash") == "^4.0.0"
        assert draft.decision("lodash").reason == "lookup failed, kept original: stub failure"

    def test_unparseable_kept_spec_is_unresolved(self):
        """A kept spec that is not a version range is recorded unresolved."""
        source = Manifest.from_sections({"local-lib": "file:../lib"})

        draft = plan(source, FakeRegistry(), ensure_companion=False)

        decision = draft.decision("local-lib")
        assert decision.action == DecisionAction.UNRESOLVED
        assert decision.reason.startswith("invalid version spec")
        assert draft.get("local-lib") == "file:../lib"

    def test_skipped_records_carry_over(self):
        """Duplicate entries skipped in the source stay skipped in the draft."""
        source = Manifest.from_sections({"rxjs": "~7.8.0"}, {"rxjs": "^6.0.0"})

        draft = plan(source, FakeRegistry(), ensure_companion=False)

        assert [d.package for d in draft.skipped] == ["rxjs"]
        assert draft.dev_dependencies == {}


class TestStrategyScenarios:
    """Generic core package with an injected profile."""

    PROFILE = FrameworkProfile(core=("core-pkg",), lockstep=("core-pkg",))

    def source(self):
        return Manifest.from_sections({"core-pkg": "14.0.0", "other-pkg": "1.0.0"})

    def test_framework_only(self):
        """frameworkOnly moves the lockstep package and keeps the rest."""
        draft = plan(self.source(), FakeRegistry(), explicit_target_version="18.0.0", profile=self.PROFILE)

        assert draft.get("core-pkg") == "18.0.0"
        assert draft.decision("core-pkg").reason == REASON_EXPLICIT
        assert draft.get("other-pkg") == "1.0.0"
        assert draft.decision("other-pkg").reason == REASON_KEPT

    def test_all(self):
        """all moves the lockstep package to the target and others to latest."""
        registry = FakeRegistry(latest={"other-pkg": "2.3.0"})

        draft = plan(
            self.source(), registry, strategy=UpgradeStrategy.ALL, explicit_target_version="18.0.0", profile=self.PROFILE
        )

        assert draft.get("core-pkg") == "18.0.0"
        assert draft.get("other-pkg") == "2.3.0"
        assert registry.latest_calls == ["other-pkg"]

    def test_core_member_outside_lockstep_is_kept(self):
        """Core membership alone does not pull a package to the target."""
        profile = FrameworkProfile(core=("core-pkg", "core-runtime"), primary="core-pkg")
        source = Manifest.from_sections({"core-pkg": "14.0.0", "core-runtime": "~2.0.0"})

        draft = plan(source, FakeRegistry(), explicit_target_version="18.0.0", profile=profile)

        assert draft.dependencies == {"core-pkg": "18.0.0", "core-runtime": "~2.0.0"}


class TestFrameworkPackages:
    """Primary package and companion tool insertion."""

    def test_primary_and_companion_added_with_target(self):
        """A target adds the primary package and the companion at that version."""
        source = Manifest.from_sections({"lodash": "^4.0.0"})

        draft = plan(source, FakeRegistry(), explicit_target_version="17.0.0")

        assert draft.dependencies == {"lodash": "^4.0.0", "@angular/core": "17.0.0"}
        assert draft.dev_dependencies == {"@angular/cli": "17.0.0"}
        assert draft.decision("@angular/core").action == DecisionAction.ADDED
        assert draft.decision("@angular/cli").section == Section.DEV_DEPENDENCIES

    def test_companion_added_at_latest_without_target(self):
        """Without a target the missing companion is added at its latest."""
        registry = FakeRegistry(latest={"@angular/cli": "17.3.5"})
        source = Manifest.from_sections({"lodash": "^4.0.0"})

        draft = plan(source, registry)

        assert "@angular/core" not in draft
        assert draft.get("@angular/cli") == "17.3.5"
        assert draft.decision("@angular/cli").reason == REASON_COMPANION_ADDED

    def test_companion_not_added_when_disabled(self):
        """ensure_companion=False leaves the companion out."""
        draft = plan(Manifest.from_sections({"lodash": "^4.0.0"}), FakeRegistry(), ensure_companion=False)
        assert "@angular/cli" not in draft

    def test_companion_lookup_failure_is_tolerated(self):
        """A failed companion lookup skips the insertion without raising."""
        registry = FakeRegistry(failing={"@angular/cli"})
        draft = plan(Manifest.from_sections({"lodash": "^4.0.0"}), registry)
        assert "@angular/cli" not in draft

    def test_custom_profile(self):
        """A predicate profile with its own lockstep scope moves those packages."""
        profile = FrameworkProfile(
            core=("@vue/",),
            primary="vue",
            lockstep=("@vue/",),
            core_predicate=lambda n: n == "vue" or n.startswith("@vue/"),
        )
        source = Manifest.from_sections({"vue": "^2.7.0", "@vue/compiler-sfc": "^2.7.0", "axios": "^1.0.0"})

        draft = plan(source, FakeRegistry(), explicit_target_version="3.4.0", profile=profile)

        assert draft.dependencies == {"vue": "3.4.0", "@vue/compiler-sfc": "3.4.0", "axios": "^1.0.0"}
        assert draft.dev_dependencies == {}


class TestProfile:
    """Membership checks and the scaffold specifier."""

    def test_default_core_membership(self):
        """Default profile matches Angular scopes and exact runtime names."""
        profile = FrameworkProfile.default()
        assert profile.is_core("@angular/router")
        assert profile.is_core("zone.js")
        assert not profile.is_core("zone.js-extra")
        assert not profile.is_core("lodash")
        assert profile.is_companion("@angular/cli")

    def test_default_lockstep_is_angular_scope(self):
        """Only @angular/* packages follow the explicit target by default."""
        profile = FrameworkProfile.default()
        assert profile.is_lockstep("@angular/core")
        assert profile.is_lockstep("@angular/cli")
        assert not profile.is_lockstep("rxjs")
        assert not profile.is_lockstep("zone.js")
        assert not profile.is_lockstep("@angular-devkit/build-angular")
        assert not profile.is_lockstep("lodash")

    def test_primary_is_always_lockstep(self):
        """The primary package follows the target even with no lockstep entries."""
        profile = FrameworkProfile(core=("react", "react-dom"), primary="react")
        assert profile.is_lockstep("react")
        assert not profile.is_lockstep("react-dom")

    @pytest.mark.parametrize(
        "target,expected",
        [("18.2.5", "@angular/cli@18"), ("^17.0.0", "@angular/cli@17"), (None, "@angular/cli@latest")],
    )
    def test_scaffold_specifier(self, target, expected):
        """The scaffold tool is pinned to the target major, else latest."""
        assert scaffold_specifier(FrameworkProfile.default(), target) == expected

    def test_scaffold_specifier_without_companion(self):
        """No companion means no scaffold specifier."""
        assert scaffold_specifier(FrameworkProfile(), "1.0.0") is None


class TestOptionsValidation:
    """Configuration errors surface before any work begins."""

    def test_string_strategy_is_normalised(self):
        """A strategy name string is turned into the enum member."""
        options = ResolutionOptions(strategy="all")
        options.validate()
        assert options.strategy == UpgradeStrategy.ALL

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"strategy": "everything"},
            {"concurrency_limit": 0},
            {"concurrency_limit": True},
            {"max_rounds": 0},
            {"timeout": 0},
            {"explicit_target_version": "banana"},
        ],
    )
    def test_invalid_options(self, kwargs):
        """Each unusable option raises ConfigurationError."""
        with pytest.raises(ConfigurationError):
            ResolutionOptions(**kwargs).validate()
