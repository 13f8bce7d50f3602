from .connection_manager import ConnectionManager, ConnectionState, ServerInstance, message_type
from .protocol import (
    SUBTITLE_TYPE,
    AudioRangeMessage,
    MediaBlob,
    MediaKind,
    MediaMessage,
    SubtitleMessage,
    decode_message,
    encode_request,
)
from .request_correlator import PendingRequest, RequestCorrelator

__all__ = [
    'ConnectionManager',
    'ConnectionState',
    'ServerInstance',
    'message_type',
    'SUBTITLE_TYPE',
    'AudioRangeMessage',
    'MediaBlob',
    'MediaKind',
    'MediaMessage',
    'SubtitleMessage',
    'decode_message',
    'encode_request',
    'PendingRequest',
    'RequestCorrelator',
]
