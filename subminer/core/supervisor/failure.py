"""Classification of helper process exits.

The substrings below are printed by the helper binary itself and must be
matched literally.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

PORT_IN_USE_MARKERS = (
    "Address already in use",
    "os error 98",
    "os error 10048",  # Windows WSAEADDRINUSE
)
IDENTITY_MISMATCH_MARKER = "MPV_IPC_PID_MISMATCH"
UNREACHABLE_MARKERS = (
    "Failed to connect to mpv socket",
    "Failed to connect to mpv pipe",
)


class HelperFailure(Enum):
    """Outcome of a helper process exit."""
    PORT_IN_USE = "port_in_use"              # retry on the next candidate port
    IDENTITY_MISMATCH = "identity_mismatch"  # socket owned by another mpv
    UNREACHABLE = "unreachable"              # could not open the IPC endpoint
    UNEXPECTED_EXIT = "unexpected_exit"      # non-zero exit, no known marker
    CLEAN_EXIT = "clean_exit"                # zero exit, no known marker

    @property
    def is_retryable(self) -> bool:
        return self is HelperFailure.PORT_IN_USE

    @property
    def is_terminal(self) -> bool:
        return self in (HelperFailure.IDENTITY_MISMATCH, HelperFailure.UNREACHABLE)


def mentions_marker(text: str) -> bool:
    """True if ``text`` carries any of the markers :func:`classify_exit` reads."""
    return (
        IDENTITY_MISMATCH_MARKER in text
        or any(marker in text for marker in UNREACHABLE_MARKERS)
        or any(marker in text for marker in PORT_IN_USE_MARKERS)
    )


def classify_exit(exit_status: Optional[int], stderr_text: str) -> HelperFailure:
    """Map an exit status and captured stderr to a :class:`HelperFailure`.

    Identity and endpoint failures are checked before port conflicts since
    they are fatal regardless of the port.
    """
    text = stderr_text or ""

    if IDENTITY_MISMATCH_MARKER in text:
        return HelperFailure.IDENTITY_MISMATCH
    if any(marker in text for marker in UNREACHABLE_MARKERS):
        return HelperFailure.UNREACHABLE
    if any(marker in text for marker in PORT_IN_USE_MARKERS):
        return HelperFailure.PORT_IN_USE
    if exit_status == 0:
        return HelperFailure.CLEAN_EXIT
    return HelperFailure.UNEXPECTED_EXIT
