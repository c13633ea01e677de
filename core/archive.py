"""Archive extraction for downloaded dependency sources."""
from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable
import tarfile

_SUFFIX_FORMATS: list[tuple[str, str]] = [
    (".tar.gz", "gztar"),
    (".tgz", "gztar"),
    (".tar.bz2", "bztar"),
    (".tbz", "bztar"),
    (".tar.xz", "xztar"),
    (".txz", "xztar"),
    (".tar", "tar"),
]

_TAR_MODES: dict[str, str] = {
    "gztar": "r:gz",
    "bztar": "r:bz2",
    "xztar": "r:xz",
    "tar": "r:",
}


@runtime_checkable
class ArchiveConsole(Protocol):
    """Minimal console interface required by :class:`ArchiveManager`."""

    dry_run: bool

    def info(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...

    def dry(self, message: str) -> None:
        ...


def resolve_archive_format(target: Path) -> str:
    """Return the archive format of ``target`` from its file name."""

    filename = target.name.lower()
    for suffix, fmt in sorted(_SUFFIX_FORMATS, key=lambda item: len(item[0]), reverse=True):
        if filename.endswith(suffix):
            return fmt

    raise ValueError(
        f"Unable to determine archive format of '{target.name}'. "
        "Supported suffixes: " + ", ".join(suffix for suffix, _ in _SUFFIX_FORMATS)
    )


class ArchiveManager:
    """Unpack source archives into dependency source directories."""

    def __init__(self, console: ArchiveConsole) -> None:
        self._console = console

    def extract_archive(
        self,
        *,
        archive_path: Path | str,
        destination_dir: Path | str,
    ) -> Path:
        """Extract ``archive_path`` into ``destination_dir``.

        Returns the directory holding the unpacked tree: the single top-level
        directory of the archive when it has exactly one, otherwise
        ``destination_dir`` itself.
        """
        archive = Path(archive_path).expanduser()
        dest = Path(destination_dir).expanduser()

        if self._console.dry_run:
            self._console.dry(f"Would extract {archive} to {dest}")
            return dest

        if not archive.exists():
            raise FileNotFoundError(f"Archive '{archive}' does not exist")

        dest.mkdir(parents=True, exist_ok=True)
        archive_format = resolve_archive_format(archive)

        with tarfile.open(archive, _TAR_MODES[archive_format]) as tar:
            tar.extractall(path=dest, filter="data")

        self._console.info(f"Extracted {archive.name} to {dest}")
        return self.unpacked_root(dest)

    @staticmethod
    def unpacked_root(dest: Path) -> Path:
        entries = [entry for entry in dest.iterdir() if not entry.name.startswith(".")]
        if len(entries) == 1 and entries[0].is_dir():
            return entries[0]
        return dest


__all__ = [
    "ArchiveConsole",
    "ArchiveManager",
    "resolve_archive_format",
]
