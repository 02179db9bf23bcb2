"""Dense zero-based ordering for lists within a board and cards within a list.

Every function works on a plain mutable sequence of items that expose ``id``
and ``position`` attributes. After any call that changes membership or order,
``item.position == index`` holds for every item in the affected sequences.
"""

from __future__ import annotations

from typing import Any, MutableSequence, Optional, TypeVar

T = TypeVar("T")


class PositionError(ValueError):
    """An index or identifier does not address an item in the sequence."""


def renumber(siblings: MutableSequence[Any]) -> MutableSequence[Any]:
    for index, item in enumerate(siblings):
        item.position = index
    return siblings


def is_dense(siblings: MutableSequence[Any]) -> bool:
    return all(item.position == index for index, item in enumerate(siblings))


def index_of(siblings: MutableSequence[Any], item_id: str) -> int:
    for index, item in enumerate(siblings):
        if item.id == item_id:
            return index
    return -1


def find(siblings: MutableSequence[T], item_id: str) -> Optional[T]:
    index = index_of(siblings, item_id)
    return siblings[index] if index >= 0 else None


def append(siblings: MutableSequence[Any], item: Any) -> MutableSequence[Any]:
    item.position = len(siblings)
    siblings.append(item)
    return siblings


def move_within(siblings: MutableSequence[T], from_index: int, to_index: int) -> T:
    """Move the item at ``from_index`` to ``to_index`` and renumber all siblings."""
    size = len(siblings)
    if not 0 <= from_index < size:
        raise PositionError(f"fromIndex {from_index} out of range for {size} items")
    if not 0 <= to_index < size:
        raise PositionError(f"toIndex {to_index} out of range for {size} items")
    item = siblings.pop(from_index)
    siblings.insert(to_index, item)
    renumber(siblings)
    return item


def move_across(
    source: MutableSequence[T],
    target: MutableSequence[T],
    item_id: str,
    to_index: int,
) -> T:
    """Move ``item_id`` from ``source`` into ``target`` at ``to_index``.

    Both sequences are validated before either is touched, so the item is
    never left detached from both parents.
    """
    from_index = index_of(source, item_id)
    if from_index < 0:
        raise PositionError(f"item {item_id} not found in source")
    if source is target:
        return move_within(source, from_index, to_index)
    if not 0 <= to_index <= len(target):
        raise PositionError(f"toIndex {to_index} out of range for {len(target)} items")
    item = source.pop(from_index)
    target.insert(to_index, item)
    renumber(source)
    renumber(target)
    return item


def remove(siblings: MutableSequence[T], item_id: str) -> T:
    index = index_of(siblings, item_id)
    if index < 0:
        raise PositionError(f"item {item_id} not found")
    item = siblings.pop(index)
    renumber(siblings)
    return item


def clamp_index(siblings: MutableSequence[Any], index: int) -> int:
    return max(0, min(index, len(siblings) - 1))
