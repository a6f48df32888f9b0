"""Buildable targets, their registry, and discovery from cargo metadata."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple
import json

from .command_runner import CommandError, CommandRunner
from .manifest import DEFAULT_EDITION, ManifestInfo, PackageManifest

LIBRARY_KINDS = frozenset({"lib", "rlib", "dylib", "cdylib", "staticlib", "proc-macro"})


class TargetKind(str, Enum):
    BIN = "bin"
    LIB = "lib"
    EXAMPLE = "example"
    TEST = "test"
    BENCH = "bench"
    UNKNOWN = "unknown"

    @classmethod
    def from_kinds(cls, kinds: Iterable[str]) -> "TargetKind":
        """Return the dominant kind among cargo's raw ``kind`` strings."""

        values = set(kinds)
        if "bin" in values:
            return cls.BIN
        if values & LIBRARY_KINDS:
            return cls.LIB
        if "example" in values:
            return cls.EXAMPLE
        if "test" in values:
            return cls.TEST
        if "bench" in values:
            return cls.BENCH
        return cls.UNKNOWN

    @classmethod
    def parse(cls, value: str) -> "TargetKind":
        normalized = value.strip().lower()
        aliases = {"binary": "bin", "library": "lib", "benchmark": "bench"}
        normalized = aliases.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            allowed = ", ".join(kind.value for kind in cls if kind is not cls.UNKNOWN)
            raise ValueError(f"Unknown target kind '{value}' (allowed: {allowed})") from None


class TargetAction(str, Enum):
    BUILD = "build"
    RUN = "run"
    DEBUG = "debug"
    TEST = "test"
    BENCH = "bench"

    @property
    def command(self) -> str:
        # debugging builds first; the debugger launch is the collaborator's job
        if self is TargetAction.DEBUG:
            return "build"
        return self.value


@dataclass(frozen=True, slots=True)
class Target:
    name: str
    kinds: Tuple[str, ...]
    src_path: str
    package_name: str | None = None
    package_path: str | None = None
    edition: str = DEFAULT_EDITION

    @property
    def kind(self) -> TargetKind:
        return TargetKind.from_kinds(self.kinds)

    @property
    def id(self) -> str:
        return f"{self.kind.value}:{self.name}:{self.package_name or ''}"

    @property
    def display_name(self) -> str:
        return f"{self.name} ({self.kind.value})"

    @property
    def is_executable(self) -> bool:
        return self.kind in {TargetKind.BIN, TargetKind.EXAMPLE}

    @property
    def is_library(self) -> bool:
        return self.kind is TargetKind.LIB

    @property
    def is_example(self) -> bool:
        return self.kind is TargetKind.EXAMPLE

    @property
    def is_test(self) -> bool:
        return self.kind is TargetKind.TEST

    @property
    def is_benchmark(self) -> bool:
        return self.kind is TargetKind.BENCH

    @property
    def supported_actions(self) -> List[TargetAction]:
        if self.kind is TargetKind.UNKNOWN:
            return []
        actions = [TargetAction.BUILD]
        if self.is_executable:
            actions.extend([TargetAction.RUN, TargetAction.DEBUG])
        if self.is_test:
            actions.append(TargetAction.TEST)
        if self.is_benchmark:
            actions.append(TargetAction.BENCH)
        return actions

    def supports(self, action: TargetAction) -> bool:
        return action in self.supported_actions

    def __str__(self) -> str:
        return self.display_name


class TargetRegistry:
    """Holds one discovery generation of targets; replaced wholesale on refresh."""

    def __init__(self, targets: Iterable[Target] = (), package_features: Mapping[str, Sequence[str]] | None = None) -> None:
        self._targets: Tuple[Target, ...] = tuple(targets)
        self._package_features: Dict[str, Tuple[str, ...]] = {
            name: tuple(features) for name, features in (package_features or {}).items()
        }

    def replace(self, targets: Iterable[Target], package_features: Mapping[str, Sequence[str]] | None = None) -> None:
        new_targets = tuple(targets)
        new_features = {name: tuple(features) for name, features in (package_features or {}).items()}
        self._targets, self._package_features = new_targets, new_features

    @property
    def targets(self) -> Tuple[Target, ...]:
        return self._targets

    @property
    def package_names(self) -> List[str]:
        return sorted({target.package_name for target in self._targets if target.package_name})

    @property
    def is_multi_package(self) -> bool:
        return len(self.package_names) > 1

    def has_package(self, name: str) -> bool:
        return any(target.package_name == name for target in self._targets)

    def targets_for_package(self, name: str) -> List[Target]:
        return [target for target in self._targets if target.package_name == name]

    def members(self) -> Dict[str, List[Target]]:
        grouped: Dict[str, List[Target]] = {}
        for target in self._targets:
            grouped.setdefault(target.package_name or "default", []).append(target)
        return grouped

    def find(self, name: str, *, package: str | None = None) -> Target | None:
        for target in self._targets:
            if target.name != name:
                continue
            if package is not None and target.package_name != package:
                continue
            return target
        return None

    def package_path(self, name: str) -> Path | None:
        for target in self._targets:
            if target.package_name == name and target.package_path:
                return Path(target.package_path)
        return None

    def package_features(self, name: str) -> List[str]:
        return list(self._package_features.get(name, ()))

    def __len__(self) -> int:
        return len(self._targets)

    def __iter__(self):
        return iter(self._targets)


@dataclass(slots=True)
class DiscoveryResult:
    targets: List[Target] = field(default_factory=list)
    package_features: Dict[str, List[str]] = field(default_factory=dict)
    package_names: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    source: str = "metadata"


METADATA_COMMAND = ("metadata", "--format-version", "1", "--no-deps")


def _is_workspace_member(package: Mapping[str, Any], metadata: Mapping[str, Any]) -> bool:
    members = metadata.get("workspace_members") or []
    if package.get("id") in members:
        return True
    workspace_root = metadata.get("workspace_root")
    manifest_path = package.get("manifest_path")
    if isinstance(workspace_root, str) and isinstance(manifest_path, str):
        return Path(manifest_path).is_relative_to(Path(workspace_root))
    return False


def parse_metadata(payload: str) -> DiscoveryResult:
    """Build targets from the JSON printed by ``cargo metadata --format-version 1``."""

    data = json.loads(payload)
    if not isinstance(data, Mapping) or not isinstance(data.get("packages"), list):
        raise ValueError("cargo metadata output has no 'packages' array")

    result = DiscoveryResult(source="metadata")
    names: set[str] = set()
    for package in data["packages"]:
        if not isinstance(package, Mapping) or not _is_workspace_member(package, data):
            continue
        package_name = str(package.get("name", ""))
        names.add(package_name)
        package_dir = str(Path(str(package.get("manifest_path", ""))).parent)
        package_edition = str(package.get("edition") or DEFAULT_EDITION)

        features = package.get("features")
        if isinstance(features, Mapping):
            result.package_features[package_name] = [str(key) for key in features.keys()]

        raw_targets = package.get("targets")
        if not isinstance(raw_targets, list):
            continue
        for raw_target in raw_targets:
            if not isinstance(raw_target, Mapping):
                continue
            kinds = raw_target.get("kind") or ["bin"]
            if isinstance(kinds, str):
                kinds = [kinds]
            elif not isinstance(kinds, list):
                continue
            result.targets.append(
                Target(
                    name=str(raw_target.get("name", "")),
                    kinds=tuple(str(kind) for kind in kinds),
                    src_path=str(raw_target.get("src_path", "")),
                    package_name=package_name,
                    package_path=package_dir,
                    edition=str(raw_target.get("edition") or package_edition),
                )
            )
    result.package_names = sorted(names)
    return result


def _rust_sources(directory: Path) -> List[Path]:
    if not directory.is_dir():
        return []
    return sorted(path for path in directory.iterdir() if path.is_file() and path.suffix == ".rs")


def _scan_package(package: PackageManifest) -> List[Target]:
    root = package.path
    src_dir = root / "src"
    found: List[Target] = []

    def add(name: str, kind: str, path: Path) -> None:
        found.append(
            Target(
                name=name,
                kinds=(kind,),
                src_path=str(path),
                package_name=package.name,
                package_path=str(root),
                edition=package.edition,
            )
        )

    main_rs = src_dir / "main.rs"
    if main_rs.is_file():
        add(package.name, "bin", main_rs)
    lib_rs = src_dir / "lib.rs"
    if lib_rs.is_file():
        add(package.lib_name or package.name.replace("-", "_"), "lib", lib_rs)
    for path in _rust_sources(src_dir / "bin"):
        add(path.stem, "bin", path)
    for declared in package.bins:
        if declared.path and all(target.name != declared.name for target in found):
            add(declared.name, "bin", root / declared.path)
    for path in _rust_sources(root / "examples"):
        add(path.stem, "example", path)
    for path in _rust_sources(root / "tests"):
        add(path.stem, "test", path)
    for path in _rust_sources(root / "benches"):
        add(path.stem, "bench", path)
    return found


def scan_targets(manifest: ManifestInfo) -> DiscoveryResult:
    """Discover targets from conventional source layout when cargo is unavailable."""

    result = DiscoveryResult(source="scan")
    for package in manifest.packages:
        result.targets.extend(_scan_package(package))
        result.package_features[package.name] = list(package.features)
        result.package_names.append(package.name)
    result.package_names.sort()
    return result


async def discover_targets(
    root: Path,
    manifest: ManifestInfo,
    runner: CommandRunner,
    *,
    cargo_path: str = "cargo",
) -> DiscoveryResult:
    """Ask cargo for workspace metadata, falling back to a directory scan."""

    command = [cargo_path, *METADATA_COMMAND]
    try:
        completed = await runner.run_async(command, cwd=root, note="Query cargo metadata")
        return parse_metadata(completed.stdout)
    except (CommandError, OSError, ValueError) as exc:
        fallback = scan_targets(manifest)
        summary = str(exc).splitlines()[0] if str(exc) else type(exc).__name__
        fallback.warnings.append(f"cargo metadata failed, scanned source directories instead: {summary}")
        return fallback


__all__ = [
    "DiscoveryResult",
    "LIBRARY_KINDS",
    "METADATA_COMMAND",
    "Target",
    "TargetAction",
    "TargetKind",
    "TargetRegistry",
    "discover_targets",
    "parse_metadata",
    "scan_targets",
]
