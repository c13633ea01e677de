"""Fetch, build and install the Worldforge components in a self-contained work tree."""
from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
