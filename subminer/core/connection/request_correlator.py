"""
Request Correlator - de-duplicated media requests resolved against the store.

Replies are not routed back to the caller. The inbound handlers write them
into the ItemStore (per-item thumbnail/audio) or into a range slot, and every
waiting caller polls that location until it is settled or its own deadline
passes.

Guarantees:
1. At most one transmission per key while a request for that key is pending.
2. Every joiner waiting on a key sees the same value once it lands.
3. Each joiner has its own deadline, counted from the moment it joined. A
   joiner that times out gets None even if the reply arrives a moment later.
   This is accepted behaviour.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol, Tuple

from subminer.core.constants import (
    POLL_INTERVAL,
    RANGE_REQUEST_TIMEOUT,
    SINGLE_REQUEST_TIMEOUT,
)
from subminer.core.logging_utils import get_module_logger
from subminer.core.settings import MediaSettings

from .protocol import (
    MediaBlob,
    MediaKind,
    audio_range_request,
    audio_request,
    thumbnail_request,
)

if TYPE_CHECKING:
    from subminer.core.store.item_store import ItemStore

logger = get_module_logger("RequestCorrelator")

RequestKey = Tuple[MediaKind, int, int, Optional[int]]


class MessageSender(Protocol):
    def send(self, payload: Dict[str, Any], port: int) -> bool: ...


@dataclass
class PendingRequest:
    """A request on the wire, shared by every caller asking for the same key."""
    key: RequestKey
    issued_at: float
    deadline: float
    joiners: int = 0

    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.issued_at) * 1000


class RequestCorrelator:

    def __init__(
        self,
        sender: MessageSender,
        store: "ItemStore",
        media: Optional[MediaSettings] = None,
        poll_interval: float = POLL_INTERVAL,
        single_timeout: float = SINGLE_REQUEST_TIMEOUT,
        range_timeout: float = RANGE_REQUEST_TIMEOUT,
    ):
        self.sender = sender
        self.store = store
        self.media = media or MediaSettings()
        self.poll_interval = poll_interval
        self.single_timeout = single_timeout
        self.range_timeout = range_timeout

        self._pending: Dict[RequestKey, PendingRequest] = {}
        self._closed = asyncio.Event()

    # ------------------------------------------------------------------
    # Queries

    def get_pending_count(self) -> int:
        return len(self._pending)

    def is_pending(self, kind: MediaKind, port: int, primary_id: int, secondary_id: Optional[int] = None) -> bool:
        return (kind, port, primary_id, secondary_id) in self._pending

    # ------------------------------------------------------------------
    # Core

    async def issue(
        self,
        kind: MediaKind,
        port: int,
        primary_id: int,
        payload: Dict[str, Any],
        secondary_id: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> Optional[MediaBlob]:
        """Send ``payload`` unless an identical request is pending, then wait.

        Returns the media blob, or None on timeout, send failure, a helper
        that could not produce the media, or shutdown.
        """
        if self._closed.is_set():
            return None

        key: RequestKey = (kind, port, primary_id, secondary_id)
        if timeout is None:
            timeout = self.range_timeout if kind is MediaKind.AUDIO_RANGE else self.single_timeout

        pending = self._pending.get(key)
        if pending is None:
            _, cached = self.store.lookup_media(kind, port, primary_id, secondary_id)
            if cached is not None:
                if kind is MediaKind.AUDIO_RANGE:
                    self.store.take_range_result(port, primary_id, secondary_id)
                return cached

            self._forget_previous_answer(kind, port, primary_id, secondary_id)

            now = time.monotonic()
            pending = PendingRequest(key=key, issued_at=now, deadline=now + timeout)
            self._pending[key] = pending

            if not self.sender.send(payload, port):
                del self._pending[key]
                logger.debug("Could not send %s request for %s on port %d", kind.value, primary_id, port)
                return None
            logger.debug("Sent %s request for %s on port %d", kind.value, primary_id, port)
        else:
            logger.debug("Joining pending %s request for %s on port %d", kind.value, primary_id, port)

        pending.joiners += 1
        try:
            return await self._wait(pending, timeout)
        finally:
            pending.joiners -= 1
            if pending.joiners == 0 and self._pending.get(key) is pending:
                del self._pending[key]
                if kind is MediaKind.AUDIO_RANGE:
                    self.store.take_range_result(port, primary_id, secondary_id)

    async def _wait(self, pending: PendingRequest, timeout: float) -> Optional[MediaBlob]:
        kind, port, primary_id, secondary_id = pending.key
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            settled, blob = self.store.lookup_media(kind, port, primary_id, secondary_id)
            if settled:
                logger.debug(
                    "%s for %s on port %d settled after %.1fms",
                    kind.value, primary_id, port, pending.elapsed_ms(),
                )
                return blob

            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.warning(
                    "Timed out waiting for %s for %s on port %d after %.1fs",
                    kind.value, primary_id, port, timeout,
                )
                return None

            try:
                await asyncio.wait_for(self._closed.wait(), timeout=min(self.poll_interval, remaining))
            except asyncio.TimeoutError:
                continue
            return None

    def _forget_previous_answer(
        self, kind: MediaKind, port: int, primary_id: int, secondary_id: Optional[int]
    ) -> None:
        if kind is MediaKind.AUDIO_RANGE:
            self.store.take_range_result(port, primary_id, secondary_id)
            return
        item = self.store.get(port, primary_id)
        if item is not None:
            item.failed_media.discard(kind)

    def cancel_all(self) -> None:
        """Wake every waiting caller with None and refuse new requests."""
        if self._pending:
            logger.info("Cancelling %d pending request(s)", len(self._pending))
        self._closed.set()

    # ------------------------------------------------------------------
    # Convenience wrappers

    async def request_thumbnail(self, port: int, item_id: int) -> Optional[MediaBlob]:
        payload = thumbnail_request(item_id, self.media.image_config())
        return await self.issue(MediaKind.THUMBNAIL, port, item_id, payload)

    async def request_audio(self, port: int, item_id: int) -> Optional[MediaBlob]:
        payload = audio_request(
            item_id,
            offset_start=self.media.audio_offset_start,
            offset_end=self.media.audio_offset_end,
            audio_config=self.media.audio_config(),
        )
        return await self.issue(MediaKind.AUDIO, port, item_id, payload)

    async def request_audio_range(self, port: int, start_id: int, end_id: int) -> Optional[MediaBlob]:
        payload = audio_range_request(
            start_id,
            end_id,
            offset_start=self.media.audio_offset_start,
            offset_end=self.media.audio_offset_end,
            audio_config=self.media.audio_config(),
        )
        return await self.issue(MediaKind.AUDIO_RANGE, port, start_id, payload, secondary_id=end_id)
