"""Exception types raised by the bridge core.

Most failure modes are not exceptions: a send to a disconnected port returns
``False``, a timed-out media request resolves to ``None`` and a rejected
selection toggle returns ``False``. Only conditions a caller must act on are
raised.
"""


class SubminerError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(SubminerError):
    """Options, host configuration or helper installation are unusable."""


class SelectionError(SubminerError):
    """A batched operation cannot be built from the current selection."""


class EmptySelectionError(SelectionError):
    """Nothing is selected."""


class SelectionOriginMismatch(SelectionError):
    """Selected items came from more than one helper port."""

    def __init__(self, ports):
        self.ports = tuple(sorted(ports))
        super().__init__(
            "Selected subtitles come from different servers (ports %s)"
            % ", ".join(str(p) for p in self.ports)
        )


class NoteServiceError(SubminerError):
    """The note service rejected or failed a call."""
