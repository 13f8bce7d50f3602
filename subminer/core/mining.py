"""
Batched export of the current selection.

Every operation here first resolves the selection into a single-origin run of
items. A run spanning more than one helper port raises
SelectionOriginMismatch before anything is sent.
"""

from __future__ import annotations

import binascii
import html
from dataclasses import dataclass
from typing import Dict, List, Optional

from .connection.protocol import MediaBlob
from .connection.request_correlator import RequestCorrelator
from .constants import NOTICE_LONG, NOTICE_MEDIUM
from .errors import EmptySelectionError, NoteServiceError, SelectionOriginMismatch
from .logging_utils import get_module_logger
from .note_service import NoteFieldMap, NoteService
from .notices import Notifier
from .store.item_store import SubtitleItem
from .store.selection import SelectionStateMachine

logger = get_module_logger("Mining")


@dataclass(frozen=True)
class SelectedRun:
    port: int
    items: List[SubtitleItem]

    @property
    def first(self) -> SubtitleItem:
        return self.items[0]

    @property
    def last(self) -> SubtitleItem:
        return self.items[-1]

    @property
    def is_range(self) -> bool:
        return len(self.items) > 1


@dataclass
class MinedCard:
    run: SelectedRun
    sentence: str
    audio: Optional[MediaBlob] = None
    picture: Optional[MediaBlob] = None


def selected_run(selection: SelectionStateMachine) -> SelectedRun:
    items = selection.selected_items()
    if not items:
        raise EmptySelectionError("No subtitles selected")
    ports = {item.source_port for item in items}
    if len(ports) > 1:
        raise SelectionOriginMismatch(ports)
    return SelectedRun(port=items[0].source_port, items=items)


def join_sentences(items: List[SubtitleItem], separator: str = " ") -> str:
    return separator.join(item.text.strip() for item in items if item.text.strip())


def media_filename(run: SelectedRun, kind: str, blob: MediaBlob) -> str:
    ext = (blob.ext or "bin").lstrip(".")
    if run.is_range:
        return f"subminer_{run.port}_{run.first.id}-{run.last.id}_{kind}.{ext}"
    return f"subminer_{run.port}_{run.first.id}_{kind}.{ext}"


class SelectionMiner:

    def __init__(
        self,
        selection: SelectionStateMachine,
        correlator: RequestCorrelator,
        notifier: Optional[Notifier] = None,
        separator: str = " ",
    ):
        self.selection = selection
        self.correlator = correlator
        self.notifier = notifier or Notifier()
        self.separator = separator

    def sentence_text(self) -> str:
        run = selected_run(self.selection)
        return join_sentences(run.items, self.separator)

    async def batched_audio(self) -> Optional[MediaBlob]:
        run = selected_run(self.selection)
        return await self._audio_for(run)

    async def _audio_for(self, run: SelectedRun) -> Optional[MediaBlob]:
        if run.is_range:
            return await self.correlator.request_audio_range(run.port, run.first.id, run.last.id)
        return await self.correlator.request_audio(run.port, run.first.id)

    async def collect(self, include_audio: bool = True, include_picture: bool = True) -> MinedCard:
        """Resolve text and media for the selection.

        The picture is always taken from the first item of the run.
        """
        run = selected_run(self.selection)
        card = MinedCard(run=run, sentence=join_sentences(run.items, self.separator))

        if include_audio:
            card.audio = await self._audio_for(run)
            if card.audio is None:
                self.notifier.warn("Audio not available", NOTICE_MEDIUM)
        if include_picture:
            card.picture = await self.correlator.request_thumbnail(run.port, run.first.id)
            if card.picture is None:
                self.notifier.warn("Screenshot not available", NOTICE_MEDIUM)
        return card

    async def export_to_note(
        self,
        service: NoteService,
        fields: NoteFieldMap = NoteFieldMap(),
        note_id: Optional[int] = None,
    ) -> int:
        """Write the selection into ``note_id`` or the most recent note.

        Returns the id of the updated note.
        """
        card = await self.collect(include_audio=bool(fields.audio), include_picture=bool(fields.picture))

        if note_id is None:
            note_id = await service.fetch_most_recent_note()
            if note_id is None:
                raise NoteServiceError("No note to update")

        values: Dict[str, str] = {}
        if fields.sentence:
            values[fields.sentence] = html.escape(card.sentence, quote=False)
        if fields.audio and card.audio is not None:
            name = await self._store(service, media_filename(card.run, "audio", card.audio), card.audio)
            values[fields.audio] = f"[sound:{name}]"
        if fields.picture and card.picture is not None:
            name = await self._store(service, media_filename(card.run, "picture", card.picture), card.picture)
            values[fields.picture] = f'<img src="{name}">'

        await service.update_note_fields(note_id, values)
        logger.info(
            "Updated note %d from %d subtitle(s) on port %d",
            note_id, len(card.run.items), card.run.port,
        )
        self.notifier.notify(f"Updated note with {len(card.run.items)} subtitle(s)", NOTICE_LONG)
        return note_id

    async def _store(self, service: NoteService, filename: str, blob: MediaBlob) -> str:
        try:
            data = blob.decode()
        except (binascii.Error, ValueError) as e:
            raise NoteServiceError(f"Media for {filename} is not valid base64") from e
        return await service.store_media_file(filename, data)
