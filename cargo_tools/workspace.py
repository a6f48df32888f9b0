"""The per-root workspace model: manifest, targets, profiles and selection."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping
import asyncio

import yaml

from .arguments import ArgumentOverrides, CargoCommand, synthesize_arguments
from .command_runner import CommandRunner, SubprocessCommandRunner
from .config_loader import ToolsConfig, load_tools_config
from .console import Console
from .events import ChangeEvent, ChangeNotifier
from .manifest import ManifestError, ManifestInfo, ManifestNotFoundError, read_manifest
from .profiles import ProfileRegistry
from .selection import ALL_FEATURES, SelectionState
from .targets import Target, TargetAction, TargetRegistry, discover_targets


class RefreshStatus(str, Enum):
    READY = "ready"
    INACTIVE = "inactive"
    FAILED = "failed"
    SUPERSEDED = "superseded"


@dataclass(slots=True)
class RefreshResult:
    status: RefreshStatus
    generation: int
    error: str | None = None
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is RefreshStatus.READY

    @property
    def superseded(self) -> bool:
        return self.status is RefreshStatus.SUPERSEDED


class CargoWorkspace:
    """Model of one cargo project root.

    A refresh re-reads everything from disk and swaps the registries as a
    whole. Refreshes are serialised, and a refresh that was overtaken by a
    newer request discards its own result.
    """

    def __init__(
        self,
        root: Path,
        *,
        runner: CommandRunner | None = None,
        config: ToolsConfig | None = None,
        profiles: ProfileRegistry | None = None,
        notifier: ChangeNotifier | None = None,
        console: Console | None = None,
        env: Mapping[str, str] | None = None,
        cargo_home: Path | None = None,
    ) -> None:
        self._root = root.resolve()
        self._runner = runner or SubprocessCommandRunner()
        self._fixed_config = config
        self._config = config or ToolsConfig()
        self._console = console or Console()
        self._env = env
        self._cargo_home = cargo_home
        self._profiles = profiles or ProfileRegistry()
        self._notifier = notifier or ChangeNotifier(self._console)
        self._registry = TargetRegistry()
        self._selection = SelectionState(self._registry, self._notifier)
        self._manifest: ManifestInfo | None = None
        self._lock = asyncio.Lock()
        self._requested = 0
        self._last_result: RefreshResult | None = None
        self._disposed = False

    # -- read accessors -------------------------------------------------

    @property
    def root(self) -> Path:
        return self._root

    @property
    def config(self) -> ToolsConfig:
        return self._config

    @property
    def manifest(self) -> ManifestInfo | None:
        return self._manifest

    @property
    def registry(self) -> TargetRegistry:
        return self._registry

    @property
    def targets(self) -> tuple[Target, ...]:
        return self._registry.targets

    @property
    def profiles(self) -> ProfileRegistry:
        return self._profiles

    @property
    def selection(self) -> SelectionState:
        return self._selection

    @property
    def notifier(self) -> ChangeNotifier:
        return self._notifier

    @property
    def console(self) -> Console:
        return self._console

    @property
    def is_multi_package(self) -> bool:
        return self._registry.is_multi_package

    @property
    def is_initialized(self) -> bool:
        return self._last_result is not None and self._last_result.ok

    @property
    def last_result(self) -> RefreshResult | None:
        return self._last_result

    @property
    def project_name(self) -> str:
        if self._manifest is not None and self._manifest.package is not None and not self._manifest.is_workspace:
            return self._manifest.package.name
        return self._root.name

    @property
    def package_names(self) -> List[str]:
        names = self._registry.package_names
        if names or self._manifest is None:
            return names
        return sorted(package.name for package in self._manifest.packages)

    def targets_for_package(self, name: str) -> List[Target]:
        return self._registry.targets_for_package(name)

    def members(self) -> Dict[str, List[Target]]:
        return self._registry.members()

    def available_features(self) -> List[str]:
        features = [ALL_FEATURES]
        package = self._selection.package
        if package is not None:
            features.extend(self._registry.package_features(package))
        return features

    # -- lifecycle ------------------------------------------------------

    async def initialize(self) -> RefreshResult:
        result = await self.refresh()
        if result.ok:
            self._selection.set_profile(self._config.default_profile)
        # the first load is delivered before the caller can close the loop
        self._notifier.flush()
        return result

    async def refresh(self) -> RefreshResult:
        if self._disposed:
            raise RuntimeError(f"Workspace at {self._root} has been disposed")

        self._requested += 1
        generation = self._requested
        async with self._lock:
            if generation != self._requested:
                return RefreshResult(RefreshStatus.SUPERSEDED, generation)
            result = await self._refresh_locked(generation)
        if not result.superseded:
            self._last_result = result
        return result

    async def _refresh_locked(self, generation: int) -> RefreshResult:
        self._console.debug(f"Refreshing {self._root} (generation {generation})")
        try:
            config = self._fixed_config or await asyncio.to_thread(load_tools_config, self._root, env=self._env)
        except (OSError, TypeError, ValueError, yaml.YAMLError) as exc:
            return self._fail(generation, RefreshStatus.FAILED, f"Invalid cargo-tools configuration: {exc}")

        try:
            manifest = await asyncio.to_thread(
                read_manifest,
                self._root,
                cargo_home=self._cargo_home,
                env=self._env,
            )
        except ManifestNotFoundError as exc:
            return self._fail(generation, RefreshStatus.INACTIVE, str(exc))
        except ManifestError as exc:
            return self._fail(generation, RefreshStatus.FAILED, str(exc))

        if Console.LEVELS[config.log_level] > self._console.level:
            self._console.set_level(config.log_level)
        discovery = await discover_targets(self._root, manifest, self._runner, cargo_path=config.cargo_path)

        if generation != self._requested:
            self._console.debug(f"Discarding refresh generation {generation} of {self._root}")
            return RefreshResult(RefreshStatus.SUPERSEDED, generation)

        for warning in discovery.warnings:
            self._console.info(warning)
        with self._notifier.hold():
            self._config = config
            self._manifest = manifest
            self._registry.replace(discovery.targets, discovery.package_features)
            self._profiles.replace(manifest.profiles)
            self._selection.reconcile()
        self._notifier.emit_debounced(ChangeEvent.TARGETS_CHANGED, self._registry.targets)
        self._console.info(
            f"Loaded {len(discovery.targets)} targets from {len(discovery.package_names)} package(s) in {self._root}"
        )
        return RefreshResult(RefreshStatus.READY, generation, warnings=list(discovery.warnings))

    def _fail(self, generation: int, status: RefreshStatus, message: str) -> RefreshResult:
        if generation != self._requested:
            return RefreshResult(RefreshStatus.SUPERSEDED, generation)
        if status is RefreshStatus.FAILED:
            self._console.error(message)
        else:
            self._console.debug(message)
        had_targets = len(self._registry) > 0
        self._manifest = None
        self._registry.replace(())
        self._profiles.reset()
        self._selection.reconcile()
        if had_targets:
            self._notifier.emit_debounced(ChangeEvent.TARGETS_CHANGED, self._registry.targets)
        return RefreshResult(status, generation, error=message)

    def dispose(self) -> None:
        self._disposed = True
        self._notifier.cancel_pending()

    @property
    def disposed(self) -> bool:
        return self._disposed

    # -- argument synthesis --------------------------------------------

    def synthesize_arguments(
        self,
        action: "str | CargoCommand | TargetAction",
        target: Target | str | None = None,
        overrides: ArgumentOverrides | None = None,
    ) -> List[str]:
        return synthesize_arguments(
            action,
            target,
            overrides,
            selection=self._selection,
            registry=self._registry,
            config=self._config,
        )

    def command_cwd(self, package: str | None = None) -> Path:
        """Directory cargo should run in for the active (or given) package."""

        package = package if package is not None else self._selection.package
        if package and self._registry.is_multi_package:
            package_path = self._registry.package_path(package)
            if package_path is not None:
                return package_path
        return self._root


__all__ = ["CargoWorkspace", "RefreshResult", "RefreshStatus"]
