"""Client bridge and process supervisor for the mpv-subtitleminer helper."""

from __future__ import annotations

from importlib import metadata
from typing import Optional, Sequence

try:
    __version__ = metadata.version("subminer-bridge")
except metadata.PackageNotFoundError:  # pragma: no cover - local dev
    __version__ = "0.0.0"


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Convenience wrapper around the command-line entry point."""
    from .cli.main import main
    return main(list(argv) if argv is not None else None)


__all__ = ["__version__", "run"]
