"""Level-gated console output."""
from __future__ import annotations

import sys

from core.archive import ArchiveConsole


class Console(ArchiveConsole):
    """Simple console output handler with configurable log level.

    Levels: none < error < warn < info < debug
    Default: 'info'
    """

    LEVELS = {
        "none": 0,
        "error": 1,
        "warn": 2,
        "info": 3,
        "debug": 4,
    }

    def __init__(self, level: str = "info", dry_run: bool = False):
        if level not in self.LEVELS:
            raise ValueError(f"Unknown console level '{level}'")
        self.level_name = level
        self.level = self.LEVELS[level]
        self.dry_run = dry_run

    def info(self, message: str) -> None:
        if self.level >= self.LEVELS["info"]:
            print(message)

    def warning(self, message: str) -> None:
        if self.level >= self.LEVELS["warn"]:
            print(f"[WARN] {message}", file=sys.stderr)

    def error(self, message: str) -> None:
        if self.level >= self.LEVELS["error"]:
            print(f"[ERROR] {message}", file=sys.stderr)

    def dry(self, message: str) -> None:
        if self.dry_run:
            print(f"[DRY] {message}")

    def debug(self, message: str) -> None:
        if self.level >= self.LEVELS["debug"]:
            print(f"[DEBUG] {message}")
