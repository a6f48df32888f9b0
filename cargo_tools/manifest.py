"""Reading ``Cargo.toml`` manifests and cargo configuration files."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Sequence
import glob
import os
import tomllib

MANIFEST_NAME = "Cargo.toml"
DEFAULT_EDITION = "2021"


class ManifestError(ValueError):
    """Raised when a manifest or cargo configuration file cannot be used."""

    def __init__(self, message: str, *, path: Path) -> None:
        super().__init__(f"{message} ({path})")
        self.path = path


class ManifestNotFoundError(ManifestError, FileNotFoundError):
    """Raised when a candidate root has no manifest; the root is not a project."""


@dataclass(slots=True)
class BinaryDeclaration:
    name: str
    path: str | None = None


@dataclass(slots=True)
class PackageManifest:
    name: str
    path: Path
    version: str | None = None
    edition: str = DEFAULT_EDITION
    features: List[str] = field(default_factory=list)
    lib_name: str | None = None
    bins: List[BinaryDeclaration] = field(default_factory=list)
    profiles: List[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, path: Path, manifest_path: Path) -> "PackageManifest":
        package_section = data.get("package")
        if not isinstance(package_section, Mapping):
            raise ManifestError("[package] must be a table", path=manifest_path)
        name = package_section.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ManifestError("package.name is required", path=manifest_path)

        version = package_section.get("version")
        edition = package_section.get("edition", DEFAULT_EDITION)

        features_section = data.get("features", {})
        if not isinstance(features_section, Mapping):
            raise ManifestError("[features] must be a table", path=manifest_path)

        lib_section = data.get("lib")
        lib_name: str | None = None
        if isinstance(lib_section, Mapping) and isinstance(lib_section.get("name"), str):
            lib_name = lib_section["name"]

        bins: List[BinaryDeclaration] = []
        bin_section = data.get("bin", [])
        if not isinstance(bin_section, Sequence) or isinstance(bin_section, (str, bytes)):
            raise ManifestError("[[bin]] must be an array of tables", path=manifest_path)
        for entry in bin_section:
            if not isinstance(entry, Mapping) or not isinstance(entry.get("name"), str):
                raise ManifestError("[[bin]] entries require a name", path=manifest_path)
            bin_path = entry.get("path")
            bins.append(BinaryDeclaration(name=entry["name"], path=str(bin_path) if bin_path else None))

        return cls(
            name=name.strip(),
            path=path,
            # workspace-inherited values such as `version.workspace = true` are tables
            version=version if isinstance(version, str) else None,
            edition=edition if isinstance(edition, str) else DEFAULT_EDITION,
            features=[str(key) for key in features_section.keys()],
            lib_name=lib_name,
            bins=bins,
            profiles=profile_names(data),
        )


@dataclass(slots=True)
class ManifestInfo:
    root: Path
    package: PackageManifest | None
    workspace_members: List[Path] = field(default_factory=list)
    default_members: List[Path] = field(default_factory=list)
    members: List[PackageManifest] = field(default_factory=list)
    profiles: List[str] = field(default_factory=list)
    raw: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_workspace(self) -> bool:
        return "workspace" in self.raw

    @property
    def packages(self) -> List[PackageManifest]:
        packages: List[PackageManifest] = []
        if self.package is not None:
            packages.append(self.package)
        for member in self.members:
            if all(member.name != existing.name for existing in packages):
                packages.append(member)
        return packages


def parse_toml_file(path: Path) -> Mapping[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as exc:
        raise ManifestError(f"Malformed TOML: {exc}", path=path) from exc
    except OSError as exc:
        raise ManifestError(f"Cannot read file: {exc.strerror or exc}", path=path) from exc


def profile_names(data: Mapping[str, Any]) -> List[str]:
    """Return the profile names declared under ``[profile.*]`` or ``[profiles.*]``."""

    names: List[str] = []
    for section_name in ("profile", "profiles"):
        section = data.get(section_name)
        if not isinstance(section, Mapping):
            continue
        for key in section.keys():
            name = str(key)
            if name not in names:
                names.append(name)
    return names


def _expand_members(root: Path, patterns: Iterable[Any], *, manifest_path: Path) -> List[Path]:
    members: List[Path] = []
    for pattern in patterns:
        if not isinstance(pattern, str):
            raise ManifestError("workspace.members entries must be strings", path=manifest_path)
        if glob.has_magic(pattern):
            matches = sorted(Path(match) for match in glob.glob(str(root / pattern)))
        else:
            matches = [root / pattern]
        for match in matches:
            resolved = match.resolve()
            if resolved.is_dir() and resolved not in members:
                members.append(resolved)
    return members


def _workspace_list(workspace: Mapping[str, Any], key: str, *, manifest_path: Path) -> List[Any]:
    value = workspace.get(key, [])
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
        raise ManifestError(f"workspace.{key} must be an array", path=manifest_path)
    return list(value)


def cargo_config_paths(root: Path, *, cargo_home: Path | None = None, env: Mapping[str, str] | None = None) -> List[Path]:
    """Return the auxiliary config files consulted for ``root``, in discovery order."""

    environ = os.environ if env is None else env
    if cargo_home is None:
        cargo_home = Path(environ["CARGO_HOME"]) if environ.get("CARGO_HOME") else Path.home() / ".cargo"

    paths: List[Path] = []
    local = root / ".cargo" / "config.toml"
    legacy = root / ".cargo" / "config"
    if local.is_file():
        paths.append(local)
    elif legacy.is_file():
        paths.append(legacy)
    home_config = cargo_home / "config.toml"
    if home_config.is_file() and home_config.resolve() not in {path.resolve() for path in paths}:
        paths.append(home_config)
    return paths


def read_manifest(
    root: Path,
    *,
    cargo_home: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> ManifestInfo:
    """Read the manifest at ``root`` along with member manifests and declared profiles."""

    root = root.resolve()
    manifest_path = root / MANIFEST_NAME
    if not manifest_path.is_file():
        raise ManifestNotFoundError("No Cargo.toml found", path=manifest_path)

    data = parse_toml_file(manifest_path)
    package: PackageManifest | None = None
    if "package" in data:
        package = PackageManifest.from_mapping(data, path=root, manifest_path=manifest_path)

    workspace_section = data.get("workspace")
    workspace_members: List[Path] = []
    default_members: List[Path] = []
    if workspace_section is not None:
        if not isinstance(workspace_section, Mapping):
            raise ManifestError("[workspace] must be a table", path=manifest_path)
        workspace_members = _expand_members(
            root,
            _workspace_list(workspace_section, "members", manifest_path=manifest_path),
            manifest_path=manifest_path,
        )
        default_members = _expand_members(
            root,
            _workspace_list(workspace_section, "default-members", manifest_path=manifest_path),
            manifest_path=manifest_path,
        )
        excluded = {
            (root / str(entry)).resolve()
            for entry in _workspace_list(workspace_section, "exclude", manifest_path=manifest_path)
        }
        workspace_members = [member for member in workspace_members if member not in excluded]

    if package is None and workspace_section is None:
        raise ManifestError("Manifest declares neither [package] nor [workspace]", path=manifest_path)

    members: List[PackageManifest] = []
    for member_dir in workspace_members:
        if member_dir == root:
            continue
        member_manifest = member_dir / MANIFEST_NAME
        if not member_manifest.is_file():
            continue
        member_data = parse_toml_file(member_manifest)
        if "package" not in member_data:
            continue
        members.append(
            PackageManifest.from_mapping(member_data, path=member_dir, manifest_path=member_manifest)
        )

    profiles: List[str] = list(profile_names(data))
    for config_path in cargo_config_paths(root, cargo_home=cargo_home, env=env):
        for name in profile_names(parse_toml_file(config_path)):
            if name not in profiles:
                profiles.append(name)

    return ManifestInfo(
        root=root,
        package=package,
        workspace_members=workspace_members,
        default_members=default_members,
        members=members,
        profiles=profiles,
        raw=data,
    )


__all__ = [
    "BinaryDeclaration",
    "DEFAULT_EDITION",
    "MANIFEST_NAME",
    "ManifestError",
    "ManifestInfo",
    "ManifestNotFoundError",
    "PackageManifest",
    "cargo_config_paths",
    "parse_toml_file",
    "profile_names",
    "read_manifest",
]
