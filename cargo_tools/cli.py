"""Command line interface for inspecting a cargo workspace and running cargo."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Iterable, List
import asyncio
import json
import shlex
import sys

from .arguments import ArgumentOverrides, CargoCommand
from .command_runner import CommandError, CommandRunner, RecordingCommandRunner, SubprocessCommandRunner
from .config_loader import load_tools_config
from .console import Console
from .platforms import available_platforms, host_platform, installed_platforms
from .tasks import TaskDefinition, provide_tasks, resolve_invocation
from .targets import Target, TargetAction, TargetKind
from .workspace import CargoWorkspace, RefreshStatus


def _split_values(values: Iterable[str]) -> List[str]:
    items: List[str] = []
    for value in values:
        if not value:
            continue
        items.extend(part.strip() for part in value.split(",") if part.strip())
    return items


def _emit_dry_run_output(runner: RecordingCommandRunner, *, workspace: Path) -> None:
    for line in runner.iter_formatted(workspace=workspace):
        print(line)


def _add_selection_options(parser: ArgumentParser) -> None:
    parser.add_argument("--package", help="Select a workspace package")
    parser.add_argument("--build-target", help="Select the build target")
    parser.add_argument("--run-target", help="Select the run target (requires --package)")
    parser.add_argument("--bench-target", help="Select the benchmark target (requires --package)")
    parser.add_argument("--features", action="append", default=[], help="Feature(s) to enable (comma-separated)")
    parser.add_argument("--all-features", action="store_true", help="Enable all features")
    parser.add_argument("--platform", help="Compilation target triple")


def _add_invocation_options(parser: ArgumentParser) -> None:
    parser.add_argument("action", help="Cargo command (build, run, test, bench, check, clean, doc, debug)")
    parser.add_argument("--profile", help="Build profile (dev, release, test, bench or a custom profile)")
    parser.add_argument("--target", help="Target name to pass to cargo")
    parser.add_argument("--kind", help="Kind of --target (bin, lib, example, test, bench)")
    parser.add_argument("--no-default-features", action="store_true", help="Disable default features")
    parser.add_argument(
        "--use-selection",
        action="store_true",
        help="Use the selected build/run/bench target when --target is not given",
    )
    _add_selection_options(parser)


def _split_trailing(argv: List[str]) -> tuple[List[str], List[str]]:
    if "--" not in argv:
        return argv, []
    index = argv.index("--")
    return argv[:index], argv[index + 1:]


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    parser = ArgumentParser(prog="cargo-tools", description="Cargo workspace model and command synthesis")
    parser.add_argument("--root", help="Workspace root (defaults to the current directory)")
    parser.add_argument("--config", action="append", default=[], help="Additional cargo-tools settings file(s)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug output")
    subparsers = parser.add_subparsers(dest="command", required=True)

    targets_parser = subparsers.add_parser("targets", help="List discovered targets")
    targets_parser.add_argument("--package", help="Only list targets of this package")
    targets_parser.add_argument("--json", action="store_true", help="Print targets as JSON")

    subparsers.add_parser("profiles", help="List available build profiles")

    tasks_parser = subparsers.add_parser("tasks", help="List the cargo tasks for the workspace")
    tasks_parser.add_argument("--show-args", action="store_true", help="Print the synthesised command of each task")

    platforms_parser = subparsers.add_parser("platforms", help="List compilation platforms")
    platforms_parser.add_argument("--all", action="store_true", help="List every available platform")

    args_parser = subparsers.add_parser("args", help="Print the cargo command for an action")
    _add_invocation_options(args_parser)

    exec_parser = subparsers.add_parser("exec", help="Run cargo for an action")
    _add_invocation_options(exec_parser)
    exec_parser.add_argument("-n", "--dry-run", action="store_true", help="Print the command without executing it")

    own, trailing = _split_trailing(list(argv))
    args = parser.parse_args(own)
    args.extra = trailing
    return args


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(sys.argv[1:] if argv is None else argv)
    try:
        return _dispatch(args)
    except KeyError as exc:
        print(f"Error: {exc.args[0] if exc.args else exc}", file=sys.stderr)
        return 2
    except (ValueError, TypeError, OSError, CommandError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2


def _dispatch(args: Namespace) -> int:
    runner = SubprocessCommandRunner()
    workspace = _open_workspace(args, runner)

    if args.command == "targets":
        return _handle_targets(args, workspace)
    if args.command == "profiles":
        return _handle_profiles(workspace)
    if args.command == "tasks":
        return _handle_tasks(args, workspace)
    if args.command == "platforms":
        return _handle_platforms(args, workspace, runner)
    if args.command == "args":
        return _handle_args(args, workspace)
    if args.command == "exec":
        return _handle_exec(args, workspace, runner)
    raise ValueError(f"Unknown command: {args.command}")


def _open_workspace(args: Namespace, runner: CommandRunner) -> CargoWorkspace:
    root = Path(args.root).resolve() if args.root else Path.cwd()
    console = Console("debug" if args.verbose else "error")
    config = None
    if args.config:
        config = load_tools_config(root, extra=[Path(path) for path in args.config])

    workspace = CargoWorkspace(root, runner=runner, config=config, console=console)
    result = asyncio.run(workspace.initialize())
    if result.status is RefreshStatus.INACTIVE:
        raise FileNotFoundError(f"No Cargo.toml found in {root}")
    if result.status is RefreshStatus.FAILED:
        raise ValueError(result.error or f"Failed to load workspace at {root}")
    return workspace


def _apply_selection(args: Namespace, workspace: CargoWorkspace) -> None:
    selection = workspace.selection
    if args.package:
        selection.set_package(args.package)
    if args.build_target:
        selection.set_build_target(args.build_target)
    if args.run_target:
        selection.set_run_target(args.run_target)
    if args.bench_target:
        selection.set_benchmark_target(args.bench_target)
    features = _split_values(args.features)
    if features:
        selection.set_features(features)
    if args.all_features:
        selection.set_all_features(True)
    if args.platform:
        selection.set_platform(args.platform)


def _explicit_target(args: Namespace, workspace: CargoWorkspace) -> Target | str | None:
    if args.target:
        return args.target
    if not args.use_selection:
        return None
    try:
        action = TargetAction(args.action.strip().lower())
    except ValueError:
        return None
    return workspace.selection.selected_target(action)


def _command_for(action: str) -> CargoCommand:
    normalized = action.strip().lower()
    if normalized == TargetAction.DEBUG.value:
        return CargoCommand.parse(TargetAction.DEBUG)
    return CargoCommand.parse(normalized)


def _handle_targets(args: Namespace, workspace: CargoWorkspace) -> int:
    if args.package:
        if args.package not in workspace.package_names:
            raise KeyError(
                f"Package '{args.package}' not found. Available packages: {', '.join(workspace.package_names)}"
            )
        targets = workspace.targets_for_package(args.package)
    else:
        targets = list(workspace.targets)

    if args.json:
        payload = [
            {
                "name": target.name,
                "kind": target.kind.value,
                "package": target.package_name,
                "src_path": target.src_path,
                "actions": [action.value for action in target.supported_actions],
            }
            for target in targets
        ]
        print(json.dumps(payload, indent=2))
        return 0

    if not targets:
        print("No targets found")
        return 0
    grouped: dict[str, List[Target]] = {}
    for target in targets:
        grouped.setdefault(target.package_name or workspace.project_name, []).append(target)
    for package, members in grouped.items():
        print(f"{package}:")
        for target in members:
            print(f"  {target.display_name}")
    return 0


def _handle_profiles(workspace: CargoWorkspace) -> int:
    selected = workspace.selection.profile
    for profile in workspace.profiles.all_profiles():
        marker = "*" if profile == selected else " "
        print(f"{marker} {profile.name:<10} {workspace.profiles.description(profile)}")
    return 0


def _handle_tasks(args: Namespace, workspace: CargoWorkspace) -> int:
    for definition in provide_tasks(workspace):
        if args.show_args:
            invocation = resolve_invocation(workspace, definition)
            print(f"{definition.name}: {shlex.join(invocation.command)}")
        else:
            print(definition.name)
    return 0


def _handle_platforms(args: Namespace, workspace: CargoWorkspace, runner: CommandRunner) -> int:
    console = workspace.console
    if args.all:
        platforms = available_platforms(runner, cwd=workspace.root, console=console)
    else:
        platforms = installed_platforms(runner, cwd=workspace.root, console=console)
    host = host_platform(runner, cwd=workspace.root, console=console)
    for triple in platforms:
        suffix = " (host)" if triple == host else ""
        print(f"{triple}{suffix}")
    return 0


def _overrides(args: Namespace) -> ArgumentOverrides:
    return ArgumentOverrides(
        profile=args.profile,
        target_kind=TargetKind.parse(args.kind) if args.kind else None,
        no_default_features=args.no_default_features,
        extra_args=list(args.extra),
    )


def _handle_args(args: Namespace, workspace: CargoWorkspace) -> int:
    _apply_selection(args, workspace)
    command = _command_for(args.action)
    cargo_args = workspace.synthesize_arguments(command, _explicit_target(args, workspace), _overrides(args))
    print(shlex.join([workspace.config.cargo_path, *cargo_args]))
    return 0


def _handle_exec(args: Namespace, workspace: CargoWorkspace, runner: CommandRunner) -> int:
    _apply_selection(args, workspace)
    command = _command_for(args.action)
    target = _explicit_target(args, workspace)
    kind = TargetKind.parse(args.kind) if args.kind else None
    if isinstance(target, Target):
        kind = kind or target.kind
        target = target.name

    definition = TaskDefinition(
        command=command.value,
        profile=args.profile,
        target=target,
        target_kind=kind,
        no_default_features=args.no_default_features,
    )
    invocation = resolve_invocation(workspace, definition, extra_args=args.extra)

    exec_runner: CommandRunner = RecordingCommandRunner() if args.dry_run else runner
    try:
        exec_runner.run(
            invocation.command,
            cwd=invocation.cwd,
            env=invocation.env or None,
            note=definition.name,
            stream=True,
        )
    except CommandError as exc:
        return exc.result.returncode or 1

    if args.dry_run and isinstance(exec_runner, RecordingCommandRunner):
        _emit_dry_run_output(exec_runner, workspace=workspace.root)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
