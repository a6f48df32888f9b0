"""The user's current package, target, profile, feature and platform choices."""
from __future__ import annotations

from typing import Iterable, List, Tuple

from .events import ChangeEvent, ChangeNotifier, SelectionChange
from .profiles import DEV, Profile, normalize_profile
from .targets import Target, TargetAction, TargetRegistry

ALL_FEATURES = "all-features"


def _available(values: Iterable[str]) -> str:
    return ", ".join(sorted(values)) or "<none>"


class SelectionState:
    """Mutable selection validated against the workspace's registries.

    The package axis is superior: run and benchmark selections only exist
    within a selected package and are dropped when the package changes away
    from their owner. Stored target names that no longer resolve are reported
    as ``None`` by the read accessors.
    """

    def __init__(
        self,
        registry: TargetRegistry,
        notifier: ChangeNotifier,
        *,
        profile: Profile = DEV,
    ) -> None:
        self._registry = registry
        self._notifier = notifier
        self._profile = profile
        self._package: str | None = None
        self._build_target: str | None = None
        self._run_target: str | None = None
        self._benchmark_target: str | None = None
        self._features: List[str] = []
        self._platform: str | None = None

    # -- read accessors -------------------------------------------------

    @property
    def profile(self) -> Profile:
        return self._profile

    @property
    def package(self) -> str | None:
        if self._package is not None and not self._registry.has_package(self._package):
            return None
        return self._package

    @property
    def build_target(self) -> str | None:
        return self._resolve(self._build_target, require_package=False)

    @property
    def run_target(self) -> str | None:
        return self._resolve(self._run_target, require_package=True)

    @property
    def benchmark_target(self) -> str | None:
        return self._resolve(self._benchmark_target, require_package=True)

    @property
    def features(self) -> Tuple[str, ...]:
        return tuple(self._features)

    @property
    def all_features(self) -> bool:
        return ALL_FEATURES in self._features

    @property
    def concrete_features(self) -> List[str]:
        return [feature for feature in self._features if feature != ALL_FEATURES]

    @property
    def platform(self) -> str | None:
        return self._platform

    def _resolve(self, name: str | None, *, require_package: bool) -> str | None:
        if name is None:
            return None
        package = self.package
        if require_package and package is None:
            return None
        if self._registry.find(name, package=package) is None:
            return None
        return name

    def selected_target(self, action: TargetAction) -> Target | None:
        """Return the target the user picked for ``action``, if it is still valid."""

        if action in {TargetAction.RUN, TargetAction.DEBUG}:
            name = self.run_target
        elif action is TargetAction.BENCH:
            name = self.benchmark_target
        elif action is TargetAction.BUILD:
            name = self.build_target
        else:
            return None
        if name is None:
            return None
        return self._registry.find(name, package=self.package)

    # -- mutators -------------------------------------------------------

    def set_profile(self, profile: Profile | str) -> bool:
        normalized = normalize_profile(profile)
        if normalized == self._profile:
            return False
        self._profile = normalized
        self._notifier.emit(ChangeEvent.PROFILE_CHANGED, normalized)
        return True

    def set_package(self, package: str | None) -> bool:
        if package is not None and not self._registry.has_package(package):
            raise KeyError(
                f"Package '{package}' not found. Available packages: {_available(self._registry.package_names)}"
            )
        if package == self._package:
            return False

        self._package = package
        # run and bench targets are only ever chosen inside the previous package
        cleared: List[str] = []
        for field_name in ("run_target", "benchmark_target"):
            attribute = f"_{field_name}"
            if getattr(self, attribute) is not None:
                setattr(self, attribute, None)
                cleared.append(field_name)

        self._notifier.emit(ChangeEvent.PACKAGE_CHANGED, package)
        for field_name in cleared:
            self._notifier.emit(ChangeEvent.SELECTION_CHANGED, SelectionChange(field_name, None))
        return True

    def _check_target(self, name: str) -> Target:
        package = self.package
        target = self._registry.find(name, package=package)
        if target is None:
            scope = f" in package '{package}'" if package else ""
            candidates = self._registry.targets_for_package(package) if package else self._registry.targets
            raise KeyError(
                f"Target '{name}' not found{scope}. Available targets: {_available(t.name for t in candidates)}"
            )
        return target

    def _set_target(self, field_name: str, value: str | None) -> bool:
        attribute = f"_{field_name}"
        if getattr(self, attribute) == value:
            return False
        setattr(self, attribute, value)
        self._notifier.emit(ChangeEvent.SELECTION_CHANGED, SelectionChange(field_name, value))
        return True

    def set_build_target(self, name: str | None) -> bool:
        if name is not None:
            self._check_target(name)
        return self._set_target("build_target", name)

    def set_run_target(self, name: str | None) -> bool:
        if name is not None:
            if self.package is None:
                raise ValueError("A run target can only be selected when a package is selected")
            target = self._check_target(name)
            if not target.is_executable:
                raise ValueError(f"Target '{name}' is a {target.kind.value} target and cannot be run")
        return self._set_target("run_target", name)

    def set_benchmark_target(self, name: str | None) -> bool:
        if name is not None:
            if self.package is None:
                raise ValueError("A benchmark target can only be selected when a package is selected")
            target = self._check_target(name)
            if not target.is_benchmark:
                raise ValueError(f"Target '{name}' is a {target.kind.value} target, not a benchmark")
        return self._set_target("benchmark_target", name)

    def _replace_features(self, features: List[str]) -> bool:
        if features == self._features:
            return False
        self._features = features
        self._notifier.emit(ChangeEvent.SELECTION_CHANGED, SelectionChange("features", tuple(features)))
        return True

    def set_features(self, features: Iterable[str]) -> bool:
        ordered: List[str] = []
        for feature in features:
            feature = feature.strip()
            if feature and feature not in ordered:
                ordered.append(feature)
        if ALL_FEATURES in ordered:
            ordered = [ALL_FEATURES]
        return self._replace_features(ordered)

    def toggle_feature(self, feature: str) -> bool:
        features = list(self._features)
        if feature == ALL_FEATURES:
            features = [] if ALL_FEATURES in features else [ALL_FEATURES]
        elif feature in features:
            features.remove(feature)
        else:
            features = [existing for existing in features if existing != ALL_FEATURES]
            features.append(feature)
        return self._replace_features(features)

    def set_all_features(self, enabled: bool) -> bool:
        if enabled:
            return self._replace_features([ALL_FEATURES])
        return self._replace_features([feature for feature in self._features if feature != ALL_FEATURES])

    def set_platform(self, triple: str | None) -> bool:
        if triple is not None:
            triple = triple.strip() or None
        if triple == self._platform:
            return False
        self._platform = triple
        self._notifier.emit(ChangeEvent.SELECTION_CHANGED, SelectionChange("platform", triple))
        return True

    def reconcile(self) -> List[str]:
        """Drop stored references the current registry no longer backs."""

        changed: List[str] = []
        with self._notifier.hold():
            if self._package is not None and not self._registry.has_package(self._package):
                self.set_package(None)
                changed.append("package")
            if self._build_target is not None and self.build_target is None:
                self._set_target("build_target", None)
                changed.append("build_target")
            if self._run_target is not None and self.run_target is None:
                self._set_target("run_target", None)
                changed.append("run_target")
            if self._benchmark_target is not None and self.benchmark_target is None:
                self._set_target("benchmark_target", None)
                changed.append("benchmark_target")
        return changed


__all__ = ["ALL_FEATURES", "SelectionState"]
