"""Exception hierarchy shared by all hammer operations."""
from __future__ import annotations

from pathlib import Path


class HammerError(RuntimeError):
    """Base class for fatal hammer errors; the CLI maps these to exit code 1."""


class ConfigurationError(HammerError, ValueError):
    """Unknown target, component or option. Raised before anything is mutated."""


class SyncError(HammerError):
    """A checkout or update of a component's working copy failed."""

    def __init__(self, message: str, *, component: str, revision: str) -> None:
        super().__init__(message)
        self.component = component
        self.revision = revision


class PhaseError(HammerError):
    """An autogen/configure/build/install phase exited non-zero."""

    def __init__(self, message: str, *, phase: str, component: str, log_path: Path | None) -> None:
        super().__init__(message)
        self.phase = phase
        self.component = component
        self.log_path = log_path
