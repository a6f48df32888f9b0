"""Queries for compilation platform triples via rustup and rustc."""
from __future__ import annotations

from pathlib import Path
from typing import List
import re

from .command_runner import CommandError, CommandRunner
from .console import Console

_INSTALLED_SUFFIX = re.compile(r"\s*\(installed\)\s*$")
_HOST_LINE = re.compile(r"^host:\s*(\S+)", re.M)


def _lines(
    runner: CommandRunner,
    command: List[str],
    *,
    cwd: Path | None,
    console: Console | None,
) -> List[str] | None:
    try:
        result = runner.run(command, cwd=cwd, note=" ".join(command))
    except (CommandError, OSError) as exc:
        if console is not None:
            console.error(f"'{' '.join(command)}' failed: {str(exc).splitlines()[0]}")
        return None
    return [line.strip() for line in result.stdout.strip().splitlines() if line.strip()]


def installed_platforms(runner: CommandRunner, *, cwd: Path | None = None, console: Console | None = None) -> List[str]:
    lines = _lines(runner, ["rustup", "target", "list", "--installed"], cwd=cwd, console=console)
    return lines or []


def available_platforms(runner: CommandRunner, *, cwd: Path | None = None, console: Console | None = None) -> List[str]:
    lines = _lines(runner, ["rustup", "target", "list"], cwd=cwd, console=console)
    return [_INSTALLED_SUFFIX.sub("", line) for line in lines or []]


def uninstalled_platforms(runner: CommandRunner, *, cwd: Path | None = None, console: Console | None = None) -> List[str]:
    lines = _lines(runner, ["rustup", "target", "list"], cwd=cwd, console=console)
    return [line for line in lines or [] if "(installed)" not in line]


def host_platform(runner: CommandRunner, *, cwd: Path | None = None, console: Console | None = None) -> str | None:
    try:
        result = runner.run(["rustc", "-vV"], cwd=cwd, note="rustc -vV")
    except (CommandError, OSError) as exc:
        if console is not None:
            console.error(f"'rustc -vV' failed: {str(exc).splitlines()[0]}")
        return None
    match = _HOST_LINE.search(result.stdout)
    return match.group(1) if match else None


def install_platform(
    runner: CommandRunner,
    triple: str,
    *,
    cwd: Path | None = None,
    console: Console | None = None,
) -> bool:
    return _lines(runner, ["rustup", "target", "add", triple], cwd=cwd, console=console) is not None


__all__ = [
    "available_platforms",
    "host_platform",
    "install_platform",
    "installed_platforms",
    "uninstalled_platforms",
]
