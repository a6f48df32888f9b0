"""
Leveled console output shared by the workspace model and the CLI.
"""
import sys


class Console:
    """Simple console output handler with configurable log level.

    Levels: none < error < info < debug
    Default: 'none' (no output)
    """

    LEVELS = {
        "none": 0,
        "error": 1,
        "info": 2,
        "debug": 3,
    }

    def __init__(self, level: str = "none"):
        self.level_name = level if level in self.LEVELS else "none"
        self.level = self.LEVELS.get(level, 0)

    def set_level(self, level: str) -> None:
        normalized = level.strip().lower()
        if normalized not in self.LEVELS:
            allowed = ", ".join(self.LEVELS)
            raise ValueError(f"Unknown log level '{level}' (allowed: {allowed})")
        self.level_name = normalized
        self.level = self.LEVELS[normalized]

    def info(self, message: str) -> None:
        if self.level >= self.LEVELS["info"]:
            print(f"[INFO] {message}")

    def error(self, message: str) -> None:
        if self.level >= self.LEVELS["error"]:
            print(f"[ERROR] {message}", file=sys.stderr)

    def debug(self, message: str) -> None:
        if self.level >= self.LEVELS["debug"]:
            print(f"[DEBUG] {message}")
