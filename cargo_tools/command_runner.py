"""Running cargo, rustc and rustup with optional dry-run recording."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence
import asyncio
import os
import shlex
import subprocess


@dataclass
class CommandResult:
    """Represents the outcome of an executed command."""

    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    streamed: bool = False


class CommandError(RuntimeError):
    """Raised when a command fails."""

    def __init__(self, result: CommandResult):
        message = f"Command failed with exit code {result.returncode}: {' '.join(map(shlex.quote, result.command))}"
        if result.streamed:
            message = f"{message}\nstdout/stderr already streamed above."
        else:
            message = (
                f"{message}\n"
                f"stdout: {result.stdout}\n"
                f"stderr: {result.stderr}"
            )
        super().__init__(message)
        self.result = result


class CommandRunner:
    """Abstract command runner interface."""

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        note: str | None = None,
        stream: bool = False,
    ) -> CommandResult:
        raise NotImplementedError

    async def run_async(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        note: str | None = None,
    ) -> CommandResult:
        """Run ``command`` in a worker thread so the event loop stays responsive."""

        return await asyncio.to_thread(
            self.run,
            command,
            cwd=cwd,
            env=env,
            check=check,
            note=note,
            stream=False,
        )

    def format_command(self, command: Sequence[str]) -> str:
        return " ".join(shlex.quote(part) for part in command)


class SubprocessCommandRunner(CommandRunner):
    """Command runner that executes commands via :mod:`subprocess`."""

    @staticmethod
    def _merge_environment(env: Mapping[str, str] | None) -> Dict[str, str] | None:
        if env is None:
            return None
        merged = os.environ.copy()
        merged.update(env)
        return merged

    def _finalize(self, result: CommandResult, *, check: bool) -> CommandResult:
        if check and result.returncode != 0:
            raise CommandError(result)
        return result

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        note: str | None = None,
        stream: bool = False,
    ) -> CommandResult:
        merged_env = self._merge_environment(env)
        if not stream:
            process = subprocess.run(
                list(command),
                cwd=str(cwd) if cwd else None,
                env=merged_env,
                capture_output=True,
                text=True,
                check=False,
            )
            return self._finalize(
                CommandResult(
                    command=command,
                    returncode=process.returncode,
                    stdout=process.stdout,
                    stderr=process.stderr,
                ),
                check=check,
            )

        process = subprocess.run(
            list(command),
            cwd=str(cwd) if cwd else None,
            env=merged_env,
            check=False,
        )

        return self._finalize(
            CommandResult(
                command=command,
                returncode=process.returncode,
                stdout="",
                stderr="",
                streamed=True,
            ),
            check=check,
        )


@dataclass(slots=True)
class RecordedCommand:
    command: List[str]
    cwd: str | None
    env: Dict[str, str]
    note: str | None
    stream: bool


@dataclass(slots=True)
class CannedOutput:
    stdout: str = ""
    stderr: str = ""
    returncode: int = 0


class RecordingCommandRunner(CommandRunner):
    """Command runner that records commands instead of executing them.

    ``responses`` maps a command prefix (joined with spaces) to the output that
    should be reported for it, which lets the metadata and rustup queries be
    exercised without a toolchain installed.
    """

    def __init__(self, responses: Mapping[str, CannedOutput] | None = None) -> None:
        self.commands: List[RecordedCommand] = []
        self.responses: Dict[str, CannedOutput] = dict(responses or {})

    @staticmethod
    def _record_entry(
        *,
        command: Sequence[str],
        cwd: Path | None,
        env: Mapping[str, str] | None,
        note: str | None,
        stream: bool,
    ) -> RecordedCommand:
        return RecordedCommand(
            command=list(command),
            cwd=str(cwd) if cwd else None,
            env=dict(env) if env else {},
            note=note,
            stream=stream,
        )

    def _lookup(self, command: Sequence[str]) -> CannedOutput:
        joined = " ".join(command)
        best: CannedOutput | None = None
        best_length = -1
        for prefix, output in self.responses.items():
            if joined.startswith(prefix) and len(prefix) > best_length:
                best = output
                best_length = len(prefix)
        return best or CannedOutput()

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        note: str | None = None,
        stream: bool = False,
    ) -> CommandResult:
        self.commands.append(
            self._record_entry(command=command, cwd=cwd, env=env, note=note, stream=stream)
        )
        canned = self._lookup(command)
        result = CommandResult(
            command=command,
            returncode=canned.returncode,
            stdout=canned.stdout,
            stderr=canned.stderr,
        )
        if check and result.returncode != 0:
            raise CommandError(result)
        return result

    def iter_formatted(self, *, workspace: Path | None = None) -> Iterable[str]:
        default_cwd = str(workspace) if workspace else None
        for record in self.commands:
            cmd = self.format_command(record.command)
            cwd = record.cwd or default_cwd
            note = record.note
            parts: List[str] = ["[dry-run]"]
            if note:
                parts.append(note)
            if cwd:
                parts.append(f"(cwd={cwd})")
            parts.append(cmd)
            yield " ".join(parts)


__all__ = [
    "CannedOutput",
    "CommandError",
    "CommandResult",
    "CommandRunner",
    "RecordedCommand",
    "RecordingCommandRunner",
    "SubprocessCommandRunner",
]
