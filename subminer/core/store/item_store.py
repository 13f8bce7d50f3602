"""
Item Store - ordered, bounded record of subtitles received from helpers.

The store is written only by the inbound message handlers registered with the
ConnectionManager and read by everyone else. Media replies are attached to
the matching item in place; multi-item audio lands in a separate range slot
until a reader takes it.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, NamedTuple, Optional, Set, Tuple

from subminer.core.connection.protocol import (
    AudioRangeMessage,
    MediaBlob,
    MediaKind,
    MediaMessage,
    SubtitleMessage,
)
from subminer.core.constants import ITEM_STORE_CAPACITY
from subminer.core.logging_utils import get_module_logger


class ItemKey(NamedTuple):
    port: int
    id: int


RangeKey = Tuple[int, int, int]  # (port, start_id, end_id)


@dataclass
class SubtitleItem:
    id: int
    source_port: int
    text: str
    start_time: float
    end_time: float
    display_time: float
    received_at: float = field(default_factory=time.time)
    thumbnail: Optional[MediaBlob] = None
    audio: Optional[MediaBlob] = None
    failed_media: Set[MediaKind] = field(default_factory=set)

    @property
    def key(self) -> ItemKey:
        return ItemKey(self.source_port, self.id)

    def media(self, kind: MediaKind) -> Optional[MediaBlob]:
        if kind is MediaKind.THUMBNAIL:
            return self.thumbnail
        if kind is MediaKind.AUDIO:
            return self.audio
        return None


EvictionListener = Callable[[SubtitleItem], None]
ChangeListener = Callable[[SubtitleItem], None]


class ItemStore:

    def __init__(self, capacity: int = ITEM_STORE_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self.logger = get_module_logger("ItemStore")

        self._items: List[SubtitleItem] = []
        self._index: Dict[ItemKey, SubtitleItem] = {}
        self._ranges: Dict[RangeKey, Optional[MediaBlob]] = {}

        self._eviction_listeners: List[EvictionListener] = []
        self._change_listeners: List[ChangeListener] = []

    # ------------------------------------------------------------------
    # Listeners

    def add_eviction_listener(self, listener: EvictionListener) -> None:
        self._eviction_listeners.append(listener)

    def add_change_listener(self, listener: ChangeListener) -> None:
        """Called after an item is added or gains media."""
        self._change_listeners.append(listener)

    def _notify(self, listeners: List[Callable[[SubtitleItem], None]], item: SubtitleItem) -> None:
        for listener in listeners:
            try:
                listener(item)
            except Exception as e:
                self.logger.error("Store listener failed: %s", e, exc_info=True)

    # ------------------------------------------------------------------
    # Reads

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[SubtitleItem]:
        return iter(list(self._items))

    def __contains__(self, key: object) -> bool:
        return key in self._index

    @property
    def items(self) -> List[SubtitleItem]:
        return list(self._items)

    def get(self, port: int, item_id: int) -> Optional[SubtitleItem]:
        return self._index.get(ItemKey(port, item_id))

    def index_of(self, key: ItemKey) -> Optional[int]:
        item = self._index.get(key)
        if item is None:
            return None
        return self._items.index(item)

    def lookup_media(
        self,
        kind: MediaKind,
        port: int,
        primary_id: int,
        secondary_id: Optional[int] = None,
    ) -> Tuple[bool, Optional[MediaBlob]]:
        """Return ``(settled, blob)`` for a media slot.

        ``settled`` is True once the helper has answered, even when it
        answered with no data.
        """
        if kind is MediaKind.AUDIO_RANGE:
            key = (port, primary_id, secondary_id if secondary_id is not None else primary_id)
            if key in self._ranges:
                return True, self._ranges[key]
            return False, None

        item = self.get(port, primary_id)
        if item is None:
            return False, None
        blob = item.media(kind)
        if blob is not None:
            return True, blob
        return kind in item.failed_media, None

    def take_range_result(self, port: int, start_id: int, end_id: int) -> Optional[MediaBlob]:
        return self._ranges.pop((port, start_id, end_id), None)

    # ------------------------------------------------------------------
    # Writes (inbound handlers)

    def add_subtitle(self, port: int, message: SubtitleMessage) -> SubtitleItem:
        key = ItemKey(port, message.id)
        existing = self._index.get(key)
        if existing is not None:
            existing.text = message.text
            existing.start_time = message.sub_start
            existing.end_time = message.sub_end
            self._notify(self._change_listeners, existing)
            return existing

        item = SubtitleItem(
            id=message.id,
            source_port=port,
            text=message.text,
            start_time=message.sub_start,
            end_time=message.sub_end,
            display_time=message.time_pos if message.time_pos is not None else message.sub_start,
        )
        self._items.append(item)
        self._index[key] = item
        self.logger.debug("[sub:%d@%d] %s", item.id, port, item.text)

        while len(self._items) > self.capacity:
            evicted = self._items.pop(0)
            del self._index[evicted.key]
            self._drop_ranges_for(evicted)
            self._notify(self._eviction_listeners, evicted)

        self._notify(self._change_listeners, item)
        return item

    def attach_media(self, port: int, message: MediaMessage) -> bool:
        item = self.get(port, message.id)
        if item is None:
            self.logger.debug("Dropping %s for unknown subtitle %d@%d", message.kind.value, message.id, port)
            return False

        if message.blob is None:
            item.failed_media.add(message.kind)
            self.logger.warning("Helper could not generate %s for subtitle %d", message.kind.value, message.id)
        else:
            item.failed_media.discard(message.kind)
            if message.kind is MediaKind.THUMBNAIL:
                item.thumbnail = message.blob
            else:
                item.audio = message.blob

        self._notify(self._change_listeners, item)
        return True

    def set_range_result(self, port: int, message: AudioRangeMessage) -> None:
        self._ranges[(port, message.start_id, message.end_id)] = message.blob
        if message.blob is None:
            self.logger.warning(
                "Helper could not generate audio for subtitles %d-%d", message.start_id, message.end_id
            )

    def clear(self) -> None:
        evicted = list(self._items)
        self._items.clear()
        self._index.clear()
        self._ranges.clear()
        for item in evicted:
            self._notify(self._eviction_listeners, item)

    def _drop_ranges_for(self, item: SubtitleItem) -> None:
        stale = [key for key in self._ranges if key[0] == item.source_port and item.id in (key[1], key[2])]
        for key in stale:
            del self._ranges[key]
