from __future__ import annotations

from pathlib import Path
import io
import json
import tempfile
import textwrap
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest.mock import patch

from cargo_tools import cli
from cargo_tools.command_runner import CannedOutput, RecordingCommandRunner


def _workspace_metadata(root: Path) -> str:
    packages = []
    for name, targets in (("app", [("app", "bin"), ("demo", "example")]), ("core", [("core", "lib")])):
        directory = root / name
        packages.append(
            {
                "name": name,
                "id": f"path+file://{directory}#{name}@0.1.0",
                "manifest_path": str(directory / "Cargo.toml"),
                "features": {"fast": []} if name == "app" else {},
                "targets": [
                    {"name": target, "kind": [kind], "src_path": str(directory / "src" / f"{target}.rs")}
                    for target, kind in targets
                ],
            }
        )
    return json.dumps(
        {
            "packages": packages,
            "workspace_members": [package["id"] for package in packages],
            "workspace_root": str(root),
        }
    )


class CliTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name).resolve()
        (self.root / "Cargo.toml").write_text(
            textwrap.dedent(
                """
                [workspace]
                members = ["app", "core"]

                [profile.profiling]
                inherits = "release"
                """
            )
        )
        for name in ("app", "core"):
            (self.root / name).mkdir()
            (self.root / name / "Cargo.toml").write_text(f'[package]\nname = "{name}"\n')
        self.runner = RecordingCommandRunner(
            {"cargo metadata": CannedOutput(stdout=_workspace_metadata(self.root))}
        )
        patcher = patch.object(cli, "SubprocessCommandRunner", return_value=self.runner)
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def run_cli(self, *argv: str) -> tuple[int, str, str]:
        stdout = io.StringIO()
        stderr = io.StringIO()
        with redirect_stdout(stdout), redirect_stderr(stderr):
            code = cli.main(["--root", str(self.root), *argv])
        return code, stdout.getvalue(), stderr.getvalue()


class ListingCommandTests(CliTestCase):
    def test_targets_grouped_by_package(self) -> None:
        code, output, _ = self.run_cli("targets")
        self.assertEqual(code, 0)
        self.assertIn("app:\n  app (bin)\n  demo (example)\n", output)
        self.assertIn("core:\n  core (lib)\n", output)

    def test_targets_as_json_for_one_package(self) -> None:
        code, output, _ = self.run_cli("targets", "--package", "app", "--json")
        self.assertEqual(code, 0)
        payload = json.loads(output)
        self.assertEqual([entry["name"] for entry in payload], ["app", "demo"])
        self.assertEqual(payload[0]["actions"], ["build", "run", "debug"])

    def test_profiles_mark_the_selected_profile(self) -> None:
        code, output, _ = self.run_cli("profiles")
        self.assertEqual(code, 0)
        self.assertIn("* dev", output)
        self.assertIn("profiling", output)
        self.assertIn("Custom profile (--profile profiling)", output)

    def test_tasks_with_arguments(self) -> None:
        code, output, _ = self.run_cli("tasks", "--show-args")
        self.assertEqual(code, 0)
        self.assertIn("cargo run example (demo): cargo run --example demo", output)

    def test_platforms(self) -> None:
        self.runner.responses["rustup target list --installed"] = CannedOutput(stdout="x86_64-unknown-linux-gnu\n")
        self.runner.responses["rustc -vV"] = CannedOutput(stdout="host: x86_64-unknown-linux-gnu\n")
        code, output, _ = self.run_cli("platforms")
        self.assertEqual(code, 0)
        self.assertEqual(output, "x86_64-unknown-linux-gnu (host)\n")


class ArgsCommandTests(CliTestCase):
    def test_build_everything(self) -> None:
        code, output, _ = self.run_cli("args", "build")
        self.assertEqual(code, 0)
        self.assertEqual(output.strip(), "cargo build")

    def test_selected_package_without_target(self) -> None:
        _, output, _ = self.run_cli("args", "build", "--package", "core")
        self.assertEqual(output.strip(), "cargo build --package core")

    def test_selected_run_target_is_used_only_on_request(self) -> None:
        _, without, _ = self.run_cli("args", "run", "--package", "app", "--run-target", "demo")
        _, with_selection, _ = self.run_cli(
            "args", "run", "--package", "app", "--run-target", "demo", "--use-selection"
        )
        self.assertEqual(without.strip(), "cargo run --package app")
        self.assertEqual(with_selection.strip(), "cargo run --package app --example demo")

    def test_profile_features_platform_and_trailing_arguments(self) -> None:
        _, output, _ = self.run_cli(
            "args",
            "run",
            "--profile",
            "release",
            "--target",
            "app",
            "--features",
            "fast,extra",
            "--platform",
            "wasm32-wasi",
            "--",
            "--",
            "--flag",
        )
        self.assertEqual(
            output.strip(),
            "cargo run --release --bin app --features fast,extra --target wasm32-wasi -- --flag",
        )

    def test_custom_profile_and_kind(self) -> None:
        _, output, _ = self.run_cli("args", "build", "--profile", "profiling", "--target", "core", "--kind", "lib")
        self.assertEqual(output.strip(), "cargo build --profile profiling --lib")

    def test_unknown_package_is_reported(self) -> None:
        code, output, errors = self.run_cli("args", "build", "--package", "missing")
        self.assertEqual(code, 2)
        self.assertEqual(output, "")
        self.assertIn("Error: Package 'missing' not found", errors)

    def test_run_target_without_package_is_reported(self) -> None:
        code, _, errors = self.run_cli("args", "run", "--run-target", "app")
        self.assertEqual(code, 2)
        self.assertIn("Error:", errors)


class ExecCommandTests(CliTestCase):
    def test_dry_run_prints_the_command(self) -> None:
        code, output, _ = self.run_cli("exec", "build", "--package", "core", "--dry-run")
        self.assertEqual(code, 0)
        lines = output.strip().splitlines()
        self.assertEqual(len(lines), 1)
        self.assertTrue(lines[0].startswith("[dry-run] cargo build"))
        self.assertIn(f"(cwd={self.root / 'core'})", lines[0])
        self.assertTrue(lines[0].endswith("cargo build --package core"))

    def test_exec_runs_through_the_runner(self) -> None:
        code, _, _ = self.run_cli("exec", "run", "--target", "app")
        self.assertEqual(code, 0)
        self.assertEqual(self.runner.commands[-1].command, ["cargo", "run", "--bin", "app"])
        self.assertTrue(self.runner.commands[-1].stream)

    def test_exec_returns_cargo_exit_code(self) -> None:
        self.runner.responses["cargo test"] = CannedOutput(returncode=101)
        code, _, _ = self.run_cli("exec", "test")
        self.assertEqual(code, 101)


class MissingWorkspaceTests(unittest.TestCase):
    def test_root_without_manifest(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            stderr = io.StringIO()
            with redirect_stdout(io.StringIO()), redirect_stderr(stderr):
                code = cli.main(["--root", temp_dir, "targets"])
        self.assertEqual(code, 2)
        self.assertIn("No Cargo.toml found", stderr.getvalue())


if __name__ == "__main__":
    unittest.main()
