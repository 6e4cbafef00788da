"""
Ordered, contiguous item sequences.

A sequence occupies positions 0..last_index with no gaps; last_index is -1
for the empty sequence. Contiguity is checked when a sequence is built.
Item uniqueness is left to the `uniqueness` constraint so that hand-built
sequences with a repeated item can still be represented and diagnosed.
"""
from __future__ import annotations

from typing import Iterable, Iterator, List, Mapping, Tuple, Union, overload

from src.sequencing.catalog import Item
from src.sequencing.errors import SequenceGapError


class ItemSequence:
    """Immutable, length-tracked list of item references."""

    __slots__ = ("_items",)

    def __init__(self, items: Iterable[Item] = ()):
        items = tuple(items)
        for position, item in enumerate(items):
            if item is None:
                raise SequenceGapError(f"Position {position} is empty")
        self._items: Tuple[Item, ...] = items

    @classmethod
    def empty(cls) -> "ItemSequence":
        return cls(())

    @classmethod
    def from_positions(cls, positions: Mapping[int, Item]) -> "ItemSequence":
        """
        Build a sequence from a position -> item mapping.

        Raises:
            SequenceGapError: If the positions are not exactly 0..n-1
        """
        expected = set(range(len(positions)))
        actual = set(positions)
        if actual != expected:
            missing = sorted(expected - actual)
            stray = sorted(actual - expected)
            raise SequenceGapError(
                f"Positions must be contiguous from 0: missing={missing} out_of_range={stray}"
            )
        return cls(positions[i] for i in range(len(positions)))

    @property
    def items(self) -> Tuple[Item, ...]:
        return self._items

    @property
    def last_index(self) -> int:
        return len(self._items) - 1

    @property
    def midpoint(self) -> int:
        """Integer midpoint of the occupied range (last_index // 2)."""
        return self.last_index // 2

    def is_empty(self) -> bool:
        return not self._items

    def item_ids(self) -> List[str]:
        return [item.id for item in self._items]

    def append(self, item: Item) -> "ItemSequence":
        return ItemSequence(self._items + (item,))

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Item]:
        return iter(self._items)

    @overload
    def __getitem__(self, index: int) -> Item: ...

    @overload
    def __getitem__(self, index: slice) -> "ItemSequence": ...

    def __getitem__(self, index: Union[int, slice]):
        if isinstance(index, slice):
            return ItemSequence(self._items[index])
        return self._items[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ItemSequence):
            return NotImplemented
        return self._items == other._items

    def __hash__(self) -> int:
        return hash(self._items)

    def __repr__(self) -> str:
        return f"ItemSequence({self.item_ids()})"
