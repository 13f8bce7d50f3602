"""
Wire protocol spoken by the helper over WebSocket.

Inbound frames carry a ``type`` discriminator, outbound frames a ``request``
discriminator. Decoding is strict: a frame with a missing or unknown
discriminator, or any required field of the wrong type, decodes to ``None``
and is never partially applied.
"""

from __future__ import annotations

import base64
import binascii
import json
import mimetypes
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union


class MediaKind(Enum):
    THUMBNAIL = "thumbnail"
    AUDIO = "audio"
    AUDIO_RANGE = "audio_range"


SUBTITLE_TYPE = "subtitle"


@dataclass(frozen=True)
class MediaBlob:
    """Base64 media as sent by the helper, with its format hints."""
    data: str
    ext: Optional[str] = None
    mime: Optional[str] = None

    def decode(self) -> bytes:
        return base64.b64decode(self.data, validate=True)

    @property
    def mime_type(self) -> Optional[str]:
        if self.mime:
            return self.mime
        if self.ext:
            guessed, _ = mimetypes.guess_type(f"media.{self.ext.lstrip('.')}")
            return guessed
        return None


@dataclass(frozen=True)
class SubtitleMessage:
    id: int
    text: str
    sub_start: float
    sub_end: float
    time_pos: Optional[float] = None


@dataclass(frozen=True)
class MediaMessage:
    """A ``thumbnail`` or ``audio`` reply. ``blob`` is None if generation failed."""
    kind: MediaKind
    id: int
    blob: Optional[MediaBlob]


@dataclass(frozen=True)
class AudioRangeMessage:
    start_id: int
    end_id: int
    blob: Optional[MediaBlob]


InboundMessage = Union[SubtitleMessage, MediaMessage, AudioRangeMessage]


# ----------------------------------------------------------------------
# Field validators

def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _optional_str(payload: Dict[str, Any], key: str) -> tuple[bool, Optional[str]]:
    value = payload.get(key)
    if value is None or isinstance(value, str):
        return True, value
    return False, None


def _decode_blob(payload: Dict[str, Any]) -> tuple[bool, Optional[MediaBlob]]:
    if "data" not in payload:
        return False, None

    data = payload["data"]
    if data is None:
        return True, None
    if not isinstance(data, str):
        return False, None
    try:
        base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        return False, None

    ok_ext, ext = _optional_str(payload, "ext")
    ok_mime, mime = _optional_str(payload, "mime")
    if not (ok_ext and ok_mime):
        return False, None
    return True, MediaBlob(data=data, ext=ext, mime=mime)


def _decode_subtitle(payload: Dict[str, Any]) -> Optional[SubtitleMessage]:
    sub_id = payload.get("id")
    text = payload.get("subtitle")
    sub_start = payload.get("sub_start")
    sub_end = payload.get("sub_end")
    time_pos = payload.get("time_pos")

    if not _is_int(sub_id) or not isinstance(text, str):
        return None
    if not _is_number(sub_start) or not _is_number(sub_end):
        return None
    if time_pos is not None and not _is_number(time_pos):
        return None

    return SubtitleMessage(
        id=sub_id,
        text=text,
        sub_start=float(sub_start),
        sub_end=float(sub_end),
        time_pos=float(time_pos) if time_pos is not None else None,
    )


def _decode_media(kind: MediaKind, payload: Dict[str, Any]) -> Optional[MediaMessage]:
    media_id = payload.get("id")
    if not _is_int(media_id):
        return None
    ok, blob = _decode_blob(payload)
    if not ok:
        return None
    return MediaMessage(kind=kind, id=media_id, blob=blob)


def _decode_audio_range(payload: Dict[str, Any]) -> Optional[AudioRangeMessage]:
    start_id = payload.get("start_id")
    end_id = payload.get("end_id")
    if not _is_int(start_id) or not _is_int(end_id):
        return None
    ok, blob = _decode_blob(payload)
    if not ok:
        return None
    return AudioRangeMessage(start_id=start_id, end_id=end_id, blob=blob)


def decode_message(raw: Union[str, bytes]) -> Optional[InboundMessage]:
    """Decode one inbound frame, or return None if it must be dropped."""
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError):
        return None

    if not isinstance(payload, dict):
        return None

    message_type = payload.get("type")
    if message_type == SUBTITLE_TYPE:
        return _decode_subtitle(payload)
    if message_type == MediaKind.THUMBNAIL.value:
        return _decode_media(MediaKind.THUMBNAIL, payload)
    if message_type == MediaKind.AUDIO.value:
        return _decode_media(MediaKind.AUDIO, payload)
    if message_type == MediaKind.AUDIO_RANGE.value:
        return _decode_audio_range(payload)
    return None


# ----------------------------------------------------------------------
# Outbound requests

def thumbnail_request(item_id: int, image_config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"request": MediaKind.THUMBNAIL.value, "id": item_id}
    if image_config:
        payload["image_config"] = image_config
    return payload


def audio_request(
    item_id: int,
    offset_start: Optional[float] = None,
    offset_end: Optional[float] = None,
    audio_config: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"request": MediaKind.AUDIO.value, "id": item_id}
    _add_audio_fields(payload, offset_start, offset_end, audio_config)
    return payload


def audio_range_request(
    start_id: int,
    end_id: int,
    offset_start: Optional[float] = None,
    offset_end: Optional[float] = None,
    audio_config: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "request": MediaKind.AUDIO_RANGE.value,
        "start_id": start_id,
        "end_id": end_id,
    }
    _add_audio_fields(payload, offset_start, offset_end, audio_config)
    return payload


def _add_audio_fields(
    payload: Dict[str, Any],
    offset_start: Optional[float],
    offset_end: Optional[float],
    audio_config: Optional[Dict[str, Any]],
) -> None:
    if offset_start is not None:
        payload["offset_start"] = offset_start
    if offset_end is not None:
        payload["offset_end"] = offset_end
    if audio_config:
        payload["audio_config"] = audio_config


def encode_request(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"))
