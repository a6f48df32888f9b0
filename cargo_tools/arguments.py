"""Translation of an action plus the current selection into cargo arguments."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List

from .config_loader import ToolsConfig
from .profiles import Profile, normalize_profile
from .selection import SelectionState
from .targets import Target, TargetAction, TargetKind, TargetRegistry


class CargoCommand(str, Enum):
    BUILD = "build"
    RUN = "run"
    TEST = "test"
    BENCH = "bench"
    CLEAN = "clean"
    CHECK = "check"
    DOC = "doc"

    @classmethod
    def parse(cls, value: "str | CargoCommand | TargetAction") -> "CargoCommand":
        if isinstance(value, CargoCommand):
            return value
        if isinstance(value, TargetAction):
            return cls(value.command)
        normalized = str(value).strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            allowed = ", ".join(command.value for command in cls)
            raise ValueError(f"Unsupported cargo command '{value}' (allowed: {allowed})") from None


@dataclass(slots=True)
class ArgumentOverrides:
    """Per-invocation values that take precedence over the selection state."""

    profile: Profile | str | None = None
    package: str | None = None
    target_kind: TargetKind | None = None
    features: List[str] | None = None
    all_features: bool = False
    no_default_features: bool = False
    platform: str | None = None
    extra_args: List[str] = field(default_factory=list)


def target_designator(kind: TargetKind, name: str | None) -> List[str]:
    """Return the single cargo flag selecting a target of ``kind``."""

    if kind is TargetKind.LIB:
        return ["--lib"]
    if not name:
        return []
    if kind is TargetKind.BIN:
        return ["--bin", name]
    if kind is TargetKind.EXAMPLE:
        return ["--example", name]
    if kind is TargetKind.TEST:
        return ["--test", name]
    if kind is TargetKind.BENCH:
        return ["--bench", name]
    return []


def _profile_arguments(explicit: Profile | None, selected: Profile) -> tuple[Profile, List[str]]:
    effective = explicit if explicit is not None else selected
    if effective.is_release:
        return effective, ["--release"]
    # only a caller-supplied profile is spelled out; release is the lone implicit flag
    if explicit is not None and not explicit.is_none:
        return effective, ["--profile", explicit.name]
    return effective, []


def _target_arguments(
    target: Target | str | None,
    kind: TargetKind | None,
    *,
    registry: TargetRegistry,
    package: str | None,
) -> List[str]:
    if isinstance(target, Target):
        return target_designator(kind or target.kind, target.name)
    if isinstance(target, str) and target:
        if kind is not None:
            return target_designator(kind, target)
        resolved = registry.find(target, package=package)
        if resolved is None:
            return []
        return target_designator(resolved.kind, resolved.name)
    if kind is TargetKind.LIB:
        return ["--lib"]
    # no explicit target means every target; the selection is never consulted here
    return []


def synthesize_arguments(
    action: "str | CargoCommand | TargetAction",
    target: Target | str | None = None,
    overrides: ArgumentOverrides | None = None,
    *,
    selection: SelectionState,
    registry: TargetRegistry,
    config: ToolsConfig | None = None,
) -> List[str]:
    """Build the argument vector cargo receives for ``action``.

    Arguments are emitted in a fixed order: verb, profile flag, package
    designator, target designator, feature flags, platform, then the
    configured and caller-supplied trailing arguments. Trailing arguments come
    last so that they win under cargo's last-flag-wins parsing.
    """

    command = CargoCommand.parse(action)
    overrides = overrides or ArgumentOverrides()
    config = config or ToolsConfig()

    args: List[str] = [command.value]

    explicit_profile = normalize_profile(overrides.profile) if overrides.profile is not None else None
    profile, profile_args = _profile_arguments(explicit_profile, selection.profile)
    args.extend(profile_args)

    package = overrides.package if overrides.package is not None else selection.package
    if package and registry.is_multi_package:
        args.extend(["--package", package])

    if command is not CargoCommand.CLEAN:
        args.extend(_target_arguments(target, overrides.target_kind, registry=registry, package=package))

        if overrides.features is not None:
            features = [feature for feature in overrides.features if feature]
        else:
            features = selection.concrete_features or list(config.features)
        if features:
            args.extend(["--features", ",".join(features)])
        if overrides.all_features or selection.all_features or config.all_features:
            args.append("--all-features")
        if overrides.no_default_features or config.no_default_features:
            args.append("--no-default-features")

        platform = overrides.platform or selection.platform
        if platform:
            args.extend(["--target", platform])

    args.extend(config.args_for_profile(profile.name))
    args.extend(config.args_for_command(command.value))
    args.extend(overrides.extra_args)
    return args


__all__ = [
    "ArgumentOverrides",
    "CargoCommand",
    "synthesize_arguments",
    "target_designator",
]
