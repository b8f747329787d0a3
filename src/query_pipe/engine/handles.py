"""Per-family registries of engine resources keyed by opaque integer handles."""

from typing import Generic, TypeVar

from query_pipe.engine.errors import EngineError

T = TypeVar("T")


class HandleTable(Generic[T]):
    """Mints handles for one resource family. Numbering starts at 1 and never reuses."""

    def __init__(self, family: str) -> None:
        """Initialize an empty table for the named family (used in error messages)."""
        self.family = family
        self._items: dict[int, T] = {}
        self._next = 1

    def __len__(self) -> int:
        return len(self._items)

    def insert(self, item: T) -> int:
        """Register a resource and return its new handle."""
        handle = self._next
        self._next += 1
        self._items[handle] = item
        return handle

    def get(self, handle: int) -> T:
        """Look a resource up, raising EngineError for unknown handles."""
        try:
            return self._items[handle]
        except KeyError:
            raise EngineError(f"no such {self.family}: {handle}") from None

    def pop(self, handle: int) -> T:
        """Remove and return a resource, raising EngineError for unknown handles."""
        item = self.get(handle)
        del self._items[handle]
        return item

    def drain(self) -> list[T]:
        """Remove and return every resource, oldest first."""
        items = list(self._items.values())
        self._items.clear()
        return items
