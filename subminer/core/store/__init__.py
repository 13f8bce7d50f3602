from .item_store import ItemKey, ItemStore, SubtitleItem
from .selection import Empty, Range, SelectionState, SelectionStateMachine, Single

__all__ = [
    'ItemKey',
    'ItemStore',
    'SubtitleItem',
    'Empty',
    'Range',
    'SelectionState',
    'SelectionStateMachine',
    'Single',
]
