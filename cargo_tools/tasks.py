"""Named cargo tasks and their resolution into runnable invocations."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Sequence
import shlex

from .arguments import ArgumentOverrides, CargoCommand
from .targets import Target, TargetAction, TargetKind
from .workspace import CargoWorkspace

_KIND_LABELS = {
    TargetKind.BIN: "binary",
    TargetKind.LIB: "library",
    TargetKind.EXAMPLE: "example",
    TargetKind.TEST: "test",
    TargetKind.BENCH: "benchmark",
}


class TaskGroup(str, Enum):
    BUILD = "build"
    TEST = "test"
    CLEAN = "clean"


@dataclass(slots=True)
class TaskDefinition:
    command: str
    profile: str | None = None
    target: str | None = None
    target_kind: TargetKind | None = None
    package: str | None = None
    features: List[str] | None = None
    all_features: bool = False
    no_default_features: bool = False

    def overrides(self) -> ArgumentOverrides:
        return ArgumentOverrides(
            profile=self.profile,
            package=self.package,
            target_kind=self.target_kind,
            features=list(self.features) if self.features is not None else None,
            all_features=self.all_features,
            no_default_features=self.no_default_features,
        )

    @property
    def name(self) -> str:
        return task_name(self)

    @property
    def group(self) -> TaskGroup | None:
        return task_group(self.command)


@dataclass(slots=True)
class Invocation:
    program: str
    args: List[str]
    cwd: Path
    env: Dict[str, str] = field(default_factory=dict)

    @property
    def command(self) -> List[str]:
        return [self.program, *self.args]


def task_name(definition: TaskDefinition) -> str:
    name = f"cargo {definition.command}"
    if definition.target and definition.target_kind:
        name += f" {_KIND_LABELS.get(definition.target_kind, definition.target_kind.value)} ({definition.target})"
    elif definition.target:
        name += f" ({definition.target})"
    if definition.profile:
        name += f" [{definition.profile}]"
    return name


def task_group(command: str) -> TaskGroup | None:
    if command in {"build", "check"}:
        return TaskGroup.BUILD
    if command in {"test", "bench"}:
        return TaskGroup.TEST
    if command == "clean":
        return TaskGroup.CLEAN
    return None


def _target_tasks(target: Target) -> List[TaskDefinition]:
    kind = target.kind
    name = target.name

    def make(command: str, profile: str | None = None) -> TaskDefinition:
        return TaskDefinition(command=command, target=name, target_kind=kind, profile=profile)

    if kind is TargetKind.BIN:
        return [make("build"), make("run"), make("build", "release"), make("run", "release")]
    if kind is TargetKind.EXAMPLE:
        return [make("build"), make("run"), make("run", "release")]
    if kind is TargetKind.TEST:
        return [make("build"), make("test")]
    if kind is TargetKind.BENCH:
        return [make("build"), make("bench")]
    if kind is TargetKind.LIB:
        return [make("build"), make("test"), make("build", "release")]
    return []


def provide_tasks(workspace: CargoWorkspace) -> List[TaskDefinition]:
    """List the standard tasks plus per-target tasks for ``workspace``."""

    tasks: List[TaskDefinition] = []
    for command in ("build", "check", "clean", "doc"):
        tasks.append(TaskDefinition(command=command))
        if command in {"build", "check"}:
            tasks.append(TaskDefinition(command=command, profile="release"))

    for target in workspace.targets:
        tasks.extend(_target_tasks(target))

    tasks.append(TaskDefinition(command="test"))
    tasks.append(TaskDefinition(command="test", profile="release"))

    if any(target.is_executable for target in workspace.targets):
        tasks.append(TaskDefinition(command="run"))
        tasks.append(TaskDefinition(command="run", profile="release"))
    return tasks


def task_for_target_action(
    workspace: CargoWorkspace,
    target: Target,
    action: TargetAction,
) -> TaskDefinition | None:
    """Describe ``action`` on ``target`` using the selected package and features."""

    if not target.supports(action):
        return None
    selection = workspace.selection
    features = selection.concrete_features
    package = target.package_name if selection.package else None
    return TaskDefinition(
        command=action.command,
        target=target.name,
        target_kind=target.kind,
        package=package,
        features=features or None,
        all_features=selection.all_features,
    )


def resolve_invocation(
    workspace: CargoWorkspace,
    definition: TaskDefinition,
    extra_args: Sequence[str] = (),
) -> Invocation:
    """Turn ``definition`` into the program, arguments, directory and environment to run."""

    config = workspace.config
    overrides = definition.overrides()
    overrides.extra_args.extend(extra_args)
    args = workspace.synthesize_arguments(definition.command, definition.target, overrides)
    cwd = workspace.command_cwd(definition.package)
    env = dict(config.environment)

    command = CargoCommand.parse(definition.command)
    override = ""
    if command is CargoCommand.RUN:
        override = config.run_command_override
    elif command is CargoCommand.TEST:
        override = config.test_command_override

    if override:
        tokens = shlex.split(override)
        # the override stands in for both the cargo binary and the verb
        return Invocation(program=tokens[0], args=[*tokens[1:], *args[1:]], cwd=cwd, env=env)
    return Invocation(program=config.cargo_path, args=args, cwd=cwd, env=env)


__all__ = [
    "Invocation",
    "TaskDefinition",
    "TaskGroup",
    "provide_tasks",
    "resolve_invocation",
    "task_for_target_action",
    "task_group",
    "task_name",
]
