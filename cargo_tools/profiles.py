"""Build profile normalisation and the registry of custom profiles."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple


@dataclass(frozen=True, slots=True)
class Profile:
    name: str

    @property
    def is_custom(self) -> bool:
        return self.name not in WELL_KNOWN_NAMES

    @property
    def is_release(self) -> bool:
        return self.name == "release"

    @property
    def is_none(self) -> bool:
        return self.name == "none"

    def __str__(self) -> str:
        return self.name


NONE = Profile("none")
DEV = Profile("dev")
RELEASE = Profile("release")
TEST = Profile("test")
BENCH = Profile("bench")

WELL_KNOWN_PROFILES: Tuple[Profile, ...] = (NONE, DEV, RELEASE, TEST, BENCH)
WELL_KNOWN_NAMES = frozenset(profile.name for profile in WELL_KNOWN_PROFILES)

_ALIASES: Dict[str, Profile] = {
    "": NONE,
    "none": NONE,
    "dev": DEV,
    "debug": DEV,
    "release": RELEASE,
    "test": TEST,
    "bench": BENCH,
}

_DISPLAY_NAMES: Dict[str, str] = {
    "none": "No selection",
    "dev": "Development",
    "release": "Release",
    "test": "Test",
    "bench": "Bench",
}

_DESCRIPTIONS: Dict[str, str] = {
    "none": "No profile selection - use default cargo behavior",
    "dev": "Development profile (--profile dev) with debug information and fast compilation",
    "release": "Release profile (--release) with optimizations and smaller binary size",
    "test": "Test profile (--profile test) optimized for running tests",
    "bench": "Bench profile (--profile bench) optimized for running benchmarks",
}


def normalize_profile(raw: str | Profile | None) -> Profile:
    """Map ``raw`` to a profile; unknown names become custom profiles."""

    if isinstance(raw, Profile):
        raw = raw.name
    key = (raw or "").strip().lower()
    known = _ALIASES.get(key)
    if known is not None:
        return known
    return Profile(key)


def display_name(profile: Profile) -> str:
    if not profile.is_custom:
        return _DISPLAY_NAMES[profile.name]
    return profile.name[:1].upper() + profile.name[1:]


def description(profile: Profile) -> str:
    if not profile.is_custom:
        return _DESCRIPTIONS[profile.name]
    return f"Custom profile (--profile {profile.name})"


class ProfileRegistry:
    """Well-known profiles plus the custom profiles discovered for one workspace."""

    def __init__(self, custom: Iterable[str] | None = None) -> None:
        self._custom: List[Profile] = []
        if custom:
            for name in custom:
                self.register_custom(name)

    def normalize(self, raw: str | Profile | None) -> Profile:
        return normalize_profile(raw)

    def register_custom(self, name: str) -> bool:
        """Add ``name`` as a custom profile; returns ``False`` when ignored."""

        profile = normalize_profile(name)
        if not profile.is_custom:
            return False
        if profile in self._custom:
            return False
        self._custom.append(profile)
        return True

    def replace(self, names: Iterable[str]) -> None:
        self.reset()
        for name in names:
            self.register_custom(name)

    def reset(self) -> None:
        self._custom = []

    @property
    def custom_profiles(self) -> Tuple[Profile, ...]:
        return tuple(self._custom)

    def all_profiles(self) -> List[Profile]:
        return [*WELL_KNOWN_PROFILES, *self._custom]

    def available(self) -> Iterable[str]:
        return [profile.name for profile in self.all_profiles()]

    def is_known(self, profile: Profile) -> bool:
        return not profile.is_custom or profile in self._custom

    def display_name(self, profile: Profile) -> str:
        return display_name(profile)

    def description(self, profile: Profile) -> str:
        return description(profile)


__all__ = [
    "BENCH",
    "DEV",
    "NONE",
    "Profile",
    "ProfileRegistry",
    "RELEASE",
    "TEST",
    "WELL_KNOWN_PROFILES",
    "description",
    "display_name",
    "normalize_profile",
]
