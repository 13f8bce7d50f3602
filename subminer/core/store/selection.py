"""
Selection State Machine - a contiguous run of selected subtitles.

States, always relative to the ItemStore's current order:
- Empty
- Single(key)
- Range(first, last)

An item can join only at either end of the run and leave only from either
end, so the selection never has holes. Rejected toggles leave the state
untouched and return False.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Set, Tuple, Union

from subminer.core.logging_utils import get_module_logger

from .item_store import ItemKey, ItemStore, SubtitleItem


@dataclass(frozen=True)
class Empty:
    pass


@dataclass(frozen=True)
class Single:
    key: ItemKey


@dataclass(frozen=True)
class Range:
    first: ItemKey
    last: ItemKey


SelectionState = Union[Empty, Single, Range]


class SelectionStateMachine:

    def __init__(self, store: ItemStore):
        self.store = store
        self.logger = get_module_logger("Selection")
        self._selected: Set[ItemKey] = set()
        store.add_eviction_listener(self.on_evicted)

    # ------------------------------------------------------------------
    # Queries

    def __len__(self) -> int:
        return len(self._selected)

    def __contains__(self, key: object) -> bool:
        return key in self._selected

    def _ordered(self) -> List[Tuple[int, ItemKey]]:
        positions = []
        for key in self._selected:
            index = self.store.index_of(key)
            if index is not None:
                positions.append((index, key))
        positions.sort()
        return positions

    @property
    def state(self) -> SelectionState:
        ordered = self._ordered()
        if not ordered:
            return Empty()
        if len(ordered) == 1:
            return Single(ordered[0][1])
        return Range(ordered[0][1], ordered[-1][1])

    @property
    def selected_keys(self) -> List[ItemKey]:
        return [key for _, key in self._ordered()]

    def selected_items(self) -> List[SubtitleItem]:
        items = []
        for key in self.selected_keys:
            item = self.store.get(key.port, key.id)
            if item is not None:
                items.append(item)
        return items

    def selection_range(self) -> Optional[Tuple[ItemKey, ItemKey]]:
        """``(first, last)`` in store order, when two or more are selected."""
        ordered = self._ordered()
        if len(ordered) < 2:
            return None
        return ordered[0][1], ordered[-1][1]

    # ------------------------------------------------------------------
    # Transitions

    def toggle(self, key: ItemKey, position_index: Optional[int] = None) -> bool:
        """Add or remove ``key`` at either end of the run.

        ``position_index`` is the caller's view of where the item sits; a
        stale view that disagrees with the store rejects the toggle.
        """
        index = self.store.index_of(key)
        if index is None:
            self.logger.debug("Ignoring toggle for unknown item %s", key)
            return False
        if position_index is not None and position_index != index:
            self.logger.debug("Ignoring toggle for %s: position %d is stale, store has %d",
                              key, position_index, index)
            return False
        position_index = index

        ordered = self._ordered()

        if key in self._selected:
            if position_index not in (ordered[0][0], ordered[-1][0]):
                self.logger.debug("Cannot deselect %s from the middle of the selection", key)
                return False
            self._selected.discard(key)
            return True

        if not ordered:
            self._selected.add(key)
            return True

        low, high = ordered[0][0], ordered[-1][0]
        if position_index == low - 1 or position_index == high + 1:
            self._selected.add(key)
            return True

        self.logger.debug("Cannot select %s: not adjacent to the selection", key)
        return False

    def clear(self) -> None:
        self._selected.clear()

    def on_evicted(self, item: SubtitleItem) -> None:
        # The store evicts oldest-first, so an evicted selected item is always
        # the first of the run and removing it keeps the run contiguous.
        if item.key in self._selected:
            self._selected.discard(item.key)
            self.logger.debug("Evicted selected item %s; %d remain selected", item.key, len(self._selected))
