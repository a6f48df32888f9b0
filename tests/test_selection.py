from __future__ import annotations

from typing import Any, List, Tuple
import unittest

from cargo_tools.events import ChangeEvent, ChangeNotifier, SelectionChange
from cargo_tools.profiles import DEV, RELEASE, Profile
from cargo_tools.selection import ALL_FEATURES, SelectionState
from cargo_tools.targets import Target, TargetAction, TargetRegistry


def _target(name: str, kind: str, package: str) -> Target:
    return Target(
        name=name,
        kinds=(kind,),
        src_path=f"/work/{package}/src/{name}.rs",
        package_name=package,
        package_path=f"/work/{package}",
    )


WORKSPACE_TARGETS = [
    _target("app", "bin", "app"),
    _target("demo", "example", "app"),
    _target("speed", "bench", "app"),
    _target("integration", "test", "app"),
    _target("core", "lib", "core"),
    _target("core-tool", "bin", "core"),
    _target("core-bench", "bench", "core"),
]


class SelectionTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.registry = TargetRegistry(WORKSPACE_TARGETS)
        self.notifier = ChangeNotifier()
        self.events: List[Tuple[ChangeEvent, Any]] = []
        for event in ChangeEvent:
            self.notifier.subscribe(event, lambda payload, event=event: self.events.append((event, payload)))
        self.selection = SelectionState(self.registry, self.notifier)


class ProfileSelectionTests(SelectionTestCase):
    def test_defaults_to_dev(self) -> None:
        self.assertEqual(self.selection.profile, DEV)

    def test_set_profile_normalizes_and_fires_once(self) -> None:
        self.assertTrue(self.selection.set_profile("Release"))
        self.assertFalse(self.selection.set_profile("release"))
        self.assertEqual(self.events, [(ChangeEvent.PROFILE_CHANGED, RELEASE)])

    def test_custom_profile_is_kept_by_name(self) -> None:
        self.selection.set_profile("profiling")
        self.assertEqual(self.selection.profile, Profile("profiling"))


class PackageSelectionTests(SelectionTestCase):
    def test_unknown_package_is_rejected(self) -> None:
        with self.assertRaises(KeyError):
            self.selection.set_package("missing")
        self.assertEqual(self.events, [])

    def test_same_package_does_not_fire(self) -> None:
        self.selection.set_package("app")
        self.events.clear()
        self.assertFalse(self.selection.set_package("app"))
        self.assertEqual(self.events, [])

    def test_switching_package_clears_foreign_run_and_bench_targets(self) -> None:
        self.selection.set_package("app")
        self.selection.set_run_target("app")
        self.selection.set_benchmark_target("speed")
        self.selection.set_build_target("demo")
        self.events.clear()

        self.selection.set_package("core")

        self.assertIsNone(self.selection.run_target)
        self.assertIsNone(self.selection.benchmark_target)
        self.assertEqual(
            self.events,
            [
                (ChangeEvent.PACKAGE_CHANGED, "core"),
                (ChangeEvent.SELECTION_CHANGED, SelectionChange("run_target", None)),
                (ChangeEvent.SELECTION_CHANGED, SelectionChange("benchmark_target", None)),
            ],
        )

    def test_selecting_all_packages_clears_run_and_bench_targets(self) -> None:
        self.selection.set_package("core")
        self.selection.set_run_target("core-tool")
        self.selection.set_benchmark_target("core-bench")

        self.selection.set_package(None)

        self.assertIsNone(self.selection.package)
        self.assertIsNone(self.selection.run_target)
        self.assertIsNone(self.selection.benchmark_target)

    def test_same_named_target_in_new_package_is_not_kept(self) -> None:
        registry = TargetRegistry([*WORKSPACE_TARGETS, _target("demo", "example", "core")])
        selection = SelectionState(registry, self.notifier)
        selection.set_package("app")
        selection.set_run_target("demo")
        selection.set_package("core")
        self.assertIsNone(selection.run_target)


class TargetSelectionTests(SelectionTestCase):
    def test_build_target_without_package(self) -> None:
        self.assertTrue(self.selection.set_build_target("core"))
        self.assertEqual(self.selection.build_target, "core")
        self.assertEqual(self.events, [(ChangeEvent.SELECTION_CHANGED, SelectionChange("build_target", "core"))])

    def test_build_target_is_validated_within_selected_package(self) -> None:
        self.selection.set_package("core")
        with self.assertRaises(KeyError):
            self.selection.set_build_target("app")

    def test_run_target_requires_a_package(self) -> None:
        with self.assertRaises(ValueError):
            self.selection.set_run_target("app")

    def test_run_target_must_be_executable(self) -> None:
        self.selection.set_package("app")
        with self.assertRaises(ValueError):
            self.selection.set_run_target("integration")
        self.selection.set_run_target("demo")
        self.assertEqual(self.selection.run_target, "demo")

    def test_run_target_must_belong_to_selected_package(self) -> None:
        self.selection.set_package("app")
        with self.assertRaises(KeyError):
            self.selection.set_run_target("core-tool")

    def test_benchmark_target_must_be_a_benchmark(self) -> None:
        self.selection.set_package("app")
        with self.assertRaises(ValueError):
            self.selection.set_benchmark_target("app")

    def test_selected_target_per_action(self) -> None:
        self.selection.set_package("app")
        self.selection.set_run_target("app")
        self.selection.set_build_target("demo")
        self.assertEqual(self.selection.selected_target(TargetAction.RUN).name, "app")
        self.assertEqual(self.selection.selected_target(TargetAction.DEBUG).name, "app")
        self.assertEqual(self.selection.selected_target(TargetAction.BUILD).name, "demo")
        self.assertIsNone(self.selection.selected_target(TargetAction.BENCH))
        self.assertIsNone(self.selection.selected_target(TargetAction.TEST))

    def test_stale_targets_read_as_unselected(self) -> None:
        self.selection.set_build_target("core-tool")
        self.registry.replace([target for target in WORKSPACE_TARGETS if target.name != "core-tool"])
        self.assertIsNone(self.selection.build_target)
        self.assertIsNone(self.selection.selected_target(TargetAction.BUILD))


class FeatureSelectionTests(SelectionTestCase):
    def test_toggle_adds_and_removes(self) -> None:
        self.selection.toggle_feature("json")
        self.selection.toggle_feature("tls")
        self.assertEqual(self.selection.features, ("json", "tls"))
        self.selection.toggle_feature("json")
        self.assertEqual(self.selection.features, ("tls",))

    def test_all_features_sentinel_replaces_concrete_features(self) -> None:
        self.selection.set_features(["json", "tls"])
        self.selection.toggle_feature(ALL_FEATURES)
        self.assertEqual(self.selection.features, (ALL_FEATURES,))
        self.assertTrue(self.selection.all_features)
        self.assertEqual(self.selection.concrete_features, [])

        self.selection.toggle_feature("json")
        self.assertEqual(self.selection.features, ("json",))
        self.assertFalse(self.selection.all_features)

    def test_toggling_sentinel_twice_clears(self) -> None:
        self.selection.toggle_feature(ALL_FEATURES)
        self.selection.toggle_feature(ALL_FEATURES)
        self.assertEqual(self.selection.features, ())

    def test_set_features_deduplicates_and_collapses_sentinel(self) -> None:
        self.selection.set_features([" json ", "json", ""])
        self.assertEqual(self.selection.features, ("json",))
        self.selection.set_features(["json", ALL_FEATURES])
        self.assertEqual(self.selection.features, (ALL_FEATURES,))

    def test_set_all_features(self) -> None:
        self.selection.set_features(["json"])
        self.assertTrue(self.selection.set_all_features(True))
        self.assertFalse(self.selection.set_all_features(True))
        self.assertTrue(self.selection.set_all_features(False))
        self.assertEqual(self.selection.features, ())


class PlatformSelectionTests(SelectionTestCase):
    def test_blank_platform_clears(self) -> None:
        self.selection.set_platform("wasm32-unknown-unknown")
        self.assertEqual(self.selection.platform, "wasm32-unknown-unknown")
        self.selection.set_platform("  ")
        self.assertIsNone(self.selection.platform)
        self.assertEqual(len(self.events), 2)


class ReconcileTests(SelectionTestCase):
    def test_reconcile_drops_references_missing_after_refresh(self) -> None:
        self.selection.set_build_target("core")
        self.selection.set_package("core")
        self.selection.set_run_target("core-tool")
        self.events.clear()

        self.registry.replace([target for target in WORKSPACE_TARGETS if target.package_name == "app"])
        changed = self.selection.reconcile()

        self.assertEqual(changed, ["package", "build_target"])
        self.assertIsNone(self.selection.package)
        self.assertIsNone(self.selection.run_target)
        delivered = [event for event, _ in self.events]
        self.assertEqual(delivered.count(ChangeEvent.SELECTION_CHANGED), 1)
        self.assertIn(ChangeEvent.PACKAGE_CHANGED, delivered)

    def test_reconcile_without_changes_is_quiet(self) -> None:
        self.selection.set_build_target("app")
        self.events.clear()
        self.assertEqual(self.selection.reconcile(), [])
        self.assertEqual(self.events, [])


if __name__ == "__main__":
    unittest.main()
