"""Loading of cargo-tools settings files and shared mapping helpers."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Sequence

import json
import os
import shlex
import tomllib

import yaml


ConfigLoader = Callable[[Any], Mapping[str, Any]]

CONFIG_STEM = "cargo-tools"
CONFIG_ENV_VAR = "CARGO_TOOLS_CONFIG"

COMMAND_ARG_FIELDS = ("build", "run", "test", "bench", "check", "clean", "doc")


FILE_LOADERS: Dict[str, ConfigLoader] = {
    ".toml": lambda stream: tomllib.load(stream),
    ".json": lambda stream: json.load(stream),
    ".yaml": lambda stream: yaml.safe_load(stream),
    ".yml": lambda stream: yaml.safe_load(stream),
}
"""Mapping of file suffixes to loader callables."""


def load_config_file(path: Path) -> Mapping[str, Any]:
    """Load and decode a configuration mapping from ``path``."""

    suffix = path.suffix.lower()
    loader = FILE_LOADERS.get(suffix)
    if loader is None:
        supported = ", ".join(sorted(FILE_LOADERS)) or "<none>"
        raise ValueError(
            f"Unsupported configuration file extension: {suffix}. Supported: {supported}"
        )

    mode = "rb" if suffix == ".toml" else "r"
    kwargs: Dict[str, Any] = {}
    if mode == "r":
        kwargs["encoding"] = "utf-8"

    with path.open(mode, **kwargs) as handle:
        data = loader(handle)

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise TypeError(f"Configuration file '{path}' must contain a mapping at the root")

    return data


def find_config_file(directory: Path, stem: str = CONFIG_STEM) -> Path | None:
    """Return the single ``stem.<suffix>`` file in ``directory``, if any."""

    found: List[Path] = []
    for suffix in FILE_LOADERS:
        candidate = directory / f"{stem}{suffix}"
        if candidate.is_file():
            found.append(candidate)
    if len(found) > 1:
        names = "' and '".join(path.name for path in found)
        raise ValueError(
            f"Multiple configuration files found for '{stem}': '{names}'. "
            "Only one format per configuration entry is allowed."
        )
    return found[0] if found else None


def merge_mappings(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> Dict[str, Any]:
    """Deep merge two mapping objects."""

    result: Dict[str, Any] = dict(base)
    for key, value in overlay.items():
        existing = result.get(key)
        if isinstance(existing, Mapping) and isinstance(value, Mapping):
            result[key] = merge_mappings(existing, value)
        else:
            result[key] = value
    return result


def normalize_string_list(value: Any, *, field_name: str | None = None) -> List[str]:
    """Coerce ``value`` into a list of trimmed strings."""

    if value is None:
        return []

    if isinstance(value, (str, bytes)):
        text = str(value).strip()
        return [text] if text else []

    if isinstance(value, Sequence):
        items: List[str] = []
        for item in value:
            if not isinstance(item, (str, bytes)):
                label = f"{field_name} " if field_name else ""
                raise TypeError(f"{label}entries must be strings")
            text = str(item).strip()
            if text:
                items.append(text)
        return items

    label = f"{field_name} " if field_name else ""
    raise TypeError(f"{label}must be a string or sequence of strings")


def _read_bool(section: Mapping[str, Any], key: str, default: bool) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise TypeError(f"cargo_tools.{key} must be a boolean")
    return value


def _read_str(section: Mapping[str, Any], key: str, default: str) -> str:
    value = section.get(key, default)
    if value is None:
        return default
    if not isinstance(value, str):
        raise TypeError(f"cargo_tools.{key} must be a string")
    return value.strip()


def _read_command(section: Mapping[str, Any], key: str) -> str:
    value = _read_str(section, key, "")
    if not value:
        return value
    try:
        shlex.split(value)
    except ValueError as exc:
        raise ValueError(f"cargo_tools.{key} cannot be parsed: {exc}") from exc
    return value


@dataclass(slots=True)
class ToolsConfig:
    cargo_path: str = "cargo"
    default_profile: str = "dev"
    log_level: str = "none"
    features: List[str] = field(default_factory=list)
    all_features: bool = False
    no_default_features: bool = False
    environment: Dict[str, str] = field(default_factory=dict)
    run_command_override: str = ""
    test_command_override: str = ""
    exclude_folders: List[str] = field(default_factory=list)
    default_active_project: str | None = None
    command_args: Dict[str, List[str]] = field(default_factory=dict)
    profile_args: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ToolsConfig":
        section = data.get("cargo_tools", data) if isinstance(data, Mapping) else {}
        if not isinstance(section, Mapping):
            raise TypeError("[cargo_tools] must be a table")

        environment_section = section.get("environment", {})
        if not isinstance(environment_section, Mapping):
            raise TypeError("cargo_tools.environment must be a table")
        environment = {str(key): str(value) for key, value in environment_section.items()}

        command_args: Dict[str, List[str]] = {}
        for command in COMMAND_ARG_FIELDS:
            key = f"{command}_args"
            values = normalize_string_list(section.get(key), field_name=f"cargo_tools.{key}")
            if values:
                command_args[command] = values

        profile_args: Dict[str, List[str]] = {}
        profile_section = section.get("profile_args", {})
        if not isinstance(profile_section, Mapping):
            raise TypeError("cargo_tools.profile_args must be a table")
        for raw_name, raw_values in profile_section.items():
            name = str(raw_name).strip().lower()
            if not name:
                continue
            profile_args[name] = normalize_string_list(
                raw_values,
                field_name=f"cargo_tools.profile_args.{raw_name}",
            )

        log_level = _read_str(section, "log_level", "none").lower()
        if log_level not in {"none", "error", "info", "debug"}:
            raise ValueError(f"cargo_tools.log_level '{log_level}' is not supported")

        cargo_path = _read_str(section, "cargo_path", "cargo")
        if not cargo_path:
            raise ValueError("cargo_tools.cargo_path cannot be empty")

        default_active = section.get("default_active_project")

        return cls(
            cargo_path=cargo_path,
            default_profile=_read_str(section, "default_profile", "dev"),
            log_level=log_level,
            features=normalize_string_list(section.get("features"), field_name="cargo_tools.features"),
            all_features=_read_bool(section, "all_features", False),
            no_default_features=_read_bool(section, "no_default_features", False),
            environment=environment,
            run_command_override=_read_command(section, "run_command_override"),
            test_command_override=_read_command(section, "test_command_override"),
            exclude_folders=normalize_string_list(
                section.get("exclude_folders"),
                field_name="cargo_tools.exclude_folders",
            ),
            default_active_project=str(default_active).strip() if default_active else None,
            command_args=command_args,
            profile_args=profile_args,
        )

    def args_for_command(self, command: str) -> List[str]:
        return list(self.command_args.get(command, []))

    def args_for_profile(self, profile_name: str) -> List[str]:
        return list(self.profile_args.get(profile_name.lower(), []))


def _split_config_values(value: str) -> List[str]:
    return [segment.strip() for segment in value.split(os.pathsep) if segment.strip()]


def resolve_config_files(
    root: Path,
    *,
    extra: Iterable[Path] = (),
    env: Mapping[str, str] | None = None,
) -> List[Path]:
    """Return the settings files that apply to ``root``, lowest precedence first."""

    environ = os.environ if env is None else env
    files: List[Path] = []
    local = find_config_file(root)
    if local is not None:
        files.append(local)

    env_value = environ.get(CONFIG_ENV_VAR)
    candidates: List[Path] = []
    if env_value:
        candidates.extend(Path(entry) for entry in _split_config_values(env_value))
    candidates.extend(extra)

    for path in candidates:
        resolved = path if path.is_absolute() else (root / path)
        if not resolved.is_file():
            raise FileNotFoundError(f"Configuration file not found: {resolved}")
        if resolved in files:
            files.remove(resolved)
        files.append(resolved)
    return files


def load_tools_config(
    root: Path,
    *,
    extra: Iterable[Path] = (),
    env: Mapping[str, str] | None = None,
) -> ToolsConfig:
    """Merge every settings file that applies to ``root`` into a :class:`ToolsConfig`."""

    merged: Dict[str, Any] = {}
    for path in resolve_config_files(root, extra=extra, env=env):
        merged = merge_mappings(merged, load_config_file(path))
    return ToolsConfig.from_mapping(merged)


__all__ = [
    "COMMAND_ARG_FIELDS",
    "CONFIG_ENV_VAR",
    "CONFIG_STEM",
    "ConfigLoader",
    "FILE_LOADERS",
    "ToolsConfig",
    "find_config_file",
    "load_config_file",
    "load_tools_config",
    "merge_mappings",
    "normalize_string_list",
    "resolve_config_files",
]
