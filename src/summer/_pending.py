from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Iterator


class PendingSet:
    """Set of objects keyed by identity.

    Works for unhashable objects too. Iteration order is not guaranteed.
    """

    def __init__(self) -> None:
        self._items: dict[int, object] = {}

    def add(self, obj: object) -> bool:
        """Add ``obj``; return False if it was already present."""
        key = id(obj)
        if key in self._items:
            return False
        self._items[key] = obj
        return True

    def __contains__(self, obj: object) -> bool:
        return id(obj) in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[object]:
        return iter(list(self._items.values()))
