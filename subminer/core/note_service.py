"""Contract for the flashcard note service the exporter writes into.

Only the calls the exporter makes are described here. Transport and field
semantics belong to the concrete service.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class NoteFieldMap:
    """Names of the note fields that receive mined content. Empty means skip."""
    sentence: str = "Sentence"
    audio: str = "SentenceAudio"
    picture: str = "Picture"


@runtime_checkable
class NoteService(Protocol):

    async def fetch_most_recent_note(self) -> Optional[int]:
        """Return the id of the most recently added note, or None if there is none."""
        ...

    async def update_note_fields(self, note_id: int, fields: Dict[str, str]) -> None:
        ...

    async def store_media_file(self, filename: str, data: bytes) -> str:
        """Store ``data`` and return the name the service filed it under."""
        ...

    async def open_browse_view(self, query: str) -> None:
        ...
