"""Cargo workspace model, selection state and cargo argument synthesis."""
from __future__ import annotations

from .arguments import ArgumentOverrides, CargoCommand, synthesize_arguments
from .selection import ALL_FEATURES, SelectionState
from .session import Session
from .targets import Target, TargetAction, TargetKind, TargetRegistry
from .workspace import CargoWorkspace, RefreshResult, RefreshStatus

__all__ = [
    "ALL_FEATURES",
    "ArgumentOverrides",
    "CargoCommand",
    "CargoWorkspace",
    "RefreshResult",
    "RefreshStatus",
    "SelectionState",
    "Session",
    "Target",
    "TargetAction",
    "TargetKind",
    "TargetRegistry",
    "synthesize_arguments",
]
