"""Explicitly owned session holding one workspace model per project root."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Mapping

from .command_runner import CommandRunner, SubprocessCommandRunner
from .config_loader import CONFIG_STEM, ToolsConfig
from .console import Console
from .manifest import MANIFEST_NAME
from .profiles import ProfileRegistry
from .workspace import CargoWorkspace, RefreshResult, RefreshStatus


class Session:
    """Owns the workspaces of every open project root.

    Each workspace gets its own :class:`ProfileRegistry` so custom profiles
    declared in one root never appear in another.
    """

    def __init__(
        self,
        *,
        runner: CommandRunner | None = None,
        console: Console | None = None,
        config: ToolsConfig | None = None,
        env: Mapping[str, str] | None = None,
        cargo_home: Path | None = None,
    ) -> None:
        self.runner = runner or SubprocessCommandRunner()
        self.console = console or Console()
        self.config = config or ToolsConfig()
        self._env = env
        self._cargo_home = cargo_home
        self._workspaces: Dict[Path, CargoWorkspace] = {}
        self._active: Path | None = None

    @property
    def workspaces(self) -> List[CargoWorkspace]:
        return list(self._workspaces.values())

    @property
    def has_multiple_projects(self) -> bool:
        return len(self._workspaces) > 1

    @property
    def active_workspace(self) -> CargoWorkspace | None:
        if self._active is not None and self._active in self._workspaces:
            return self._workspaces[self._active]
        return next(iter(self._workspaces.values()), None)

    def get_workspace(self, root: Path) -> CargoWorkspace | None:
        return self._workspaces.get(root.resolve())

    def workspace_for_path(self, path: Path) -> CargoWorkspace | None:
        resolved = path.resolve()
        best: CargoWorkspace | None = None
        for root, workspace in self._workspaces.items():
            if resolved == root or resolved.is_relative_to(root):
                if best is None or len(root.parts) > len(best.root.parts):
                    best = workspace
        return best

    def is_excluded(self, root: Path) -> bool:
        text = str(root)
        return any(pattern and pattern in text for pattern in self.config.exclude_folders)

    def set_active(self, root: Path) -> bool:
        resolved = root.resolve()
        if resolved not in self._workspaces:
            return False
        self._active = resolved
        self.console.info(f"Active cargo project set to: {resolved.name}")
        return True

    def _select_default_active(self) -> None:
        if not self._workspaces:
            self._active = None
            return
        preferred = self.config.default_active_project
        if preferred:
            for root in self._workspaces:
                if root.name == preferred:
                    self._active = root
                    return
        if self._active not in self._workspaces:
            self._active = next(iter(self._workspaces))

    async def add_root(self, root: Path) -> CargoWorkspace | None:
        """Create and initialise the workspace for ``root`` if it is a cargo project."""

        resolved = root.resolve()
        existing = self._workspaces.get(resolved)
        if existing is not None:
            return existing
        if self.is_excluded(resolved):
            self.console.debug(f"Skipping excluded folder {resolved}")
            return None

        workspace = CargoWorkspace(
            resolved,
            runner=self.runner,
            profiles=ProfileRegistry(),
            console=self.console,
            env=self._env,
            cargo_home=self._cargo_home,
        )
        result = await workspace.initialize()
        if result.status is RefreshStatus.INACTIVE:
            workspace.dispose()
            return None
        # failed roots stay registered; saving a fixed manifest refreshes them
        self._workspaces[resolved] = workspace
        self.console.info(f"Added cargo workspace: {resolved.name}")
        self._select_default_active()
        return workspace

    async def remove_root(self, root: Path) -> bool:
        resolved = root.resolve()
        workspace = self._workspaces.pop(resolved, None)
        if workspace is None:
            return False
        workspace.dispose()
        if self._active == resolved:
            self._active = None
        self._select_default_active()
        self.console.info(f"Removed cargo workspace: {resolved.name}")
        return True

    async def handle_file_saved(self, path: Path) -> RefreshResult | None:
        """Refresh the owning workspace when a manifest or config file is saved."""

        name = path.name
        is_tools_config = path.stem == CONFIG_STEM
        is_cargo_config = name in {"config.toml", "config"} and path.parent.name == ".cargo"
        if name != MANIFEST_NAME and not is_tools_config and not is_cargo_config:
            return None
        workspace = self.workspace_for_path(path)
        if workspace is None:
            return None
        return await workspace.refresh()

    def dispose(self) -> None:
        for workspace in self._workspaces.values():
            workspace.dispose()
        self._workspaces.clear()
        self._active = None


__all__ = ["Session"]
