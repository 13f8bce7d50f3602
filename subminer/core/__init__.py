from .connection import ConnectionManager, ConnectionState, MediaBlob, MediaKind, RequestCorrelator
from .store import Empty, ItemKey, ItemStore, Range, SelectionStateMachine, Single, SubtitleItem
from .supervisor import HelperFailure, HelperInstallation, HelperSupervisor, classify_exit, locate_installation
from .context import AppContext
from .errors import (
    ConfigurationError,
    EmptySelectionError,
    NoteServiceError,
    SelectionError,
    SelectionOriginMismatch,
    SubminerError,
)
from .mining import SelectionMiner
from .notices import Notice, Notifier, RecordingNoticeSink
from .settings import ClientSettings, MediaSettings, ScriptOptions, parse_ports

__all__ = [
    'ConnectionManager',
    'ConnectionState',
    'MediaBlob',
    'MediaKind',
    'RequestCorrelator',
    'Empty',
    'ItemKey',
    'ItemStore',
    'Range',
    'SelectionStateMachine',
    'Single',
    'SubtitleItem',
    'HelperFailure',
    'HelperInstallation',
    'HelperSupervisor',
    'classify_exit',
    'locate_installation',
    'AppContext',
    'ConfigurationError',
    'EmptySelectionError',
    'NoteServiceError',
    'SelectionError',
    'SelectionOriginMismatch',
    'SubminerError',
    'SelectionMiner',
    'Notice',
    'Notifier',
    'RecordingNoticeSink',
    'ClientSettings',
    'MediaSettings',
    'ScriptOptions',
    'parse_ports',
]
