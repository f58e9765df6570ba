# qcsim/registry.py
from __future__ import annotations

from typing import Callable, Generic, Iterator, List, NamedTuple, Optional, Tuple, TypeVar

from qcsim.errors import NotFound

T = TypeVar("T")


class Handle(NamedTuple):
    """Id of an object living in a Registry: slot index plus slot generation."""

    index: int
    generation: int

    def __str__(self) -> str:
        return f"{self.index}.{self.generation}"


class Registry(Generic[T]):
    """
    Index-based arena with generation counters.

    Removing an object bumps its slot generation, so handles that still point
    at the slot are detected as stale instead of resolving to whatever object
    reuses the slot later. Not locked: the owner serialises access.
    """

    def __init__(self, kind: str = "object"):
        self.kind = kind
        self._slots: List[Optional[T]] = []
        self._generations: List[int] = []
        self._free: List[int] = []
        self._count = 0

    def add_with(self, factory: Callable[[Handle], T]) -> Handle:
        """Add an object that needs to know its own handle."""
        if self._free:
            idx = self._free[-1]
        else:
            idx = len(self._slots)
        gen = self._generations[idx] if idx < len(self._generations) else 0
        return self.add(factory(Handle(idx, gen)))

    def add(self, obj: T) -> Handle:
        if self._free:
            idx = self._free.pop()
            self._slots[idx] = obj
        else:
            idx = len(self._slots)
            self._slots.append(obj)
            self._generations.append(0)
        self._count += 1
        return Handle(idx, self._generations[idx])

    def _check(self, handle: Handle) -> int:
        try:
            idx, gen = handle
        except (TypeError, ValueError):
            raise NotFound(f"Unknown {self.kind} id {handle!r}")
        if not (0 <= idx < len(self._slots)) or self._generations[idx] != gen or self._slots[idx] is None:
            raise NotFound(f"Unknown {self.kind} id {handle!r}")
        return idx

    def get(self, handle: Handle) -> T:
        idx = self._check(handle)
        return self._slots[idx]  # type: ignore[return-value]

    def set(self, handle: Handle, obj: T) -> None:
        """Replace the object behind a live handle."""
        idx = self._check(handle)
        self._slots[idx] = obj

    def remove(self, handle: Handle) -> T:
        idx = self._check(handle)
        obj = self._slots[idx]
        self._slots[idx] = None
        self._generations[idx] += 1
        self._free.append(idx)
        self._count -= 1
        return obj  # type: ignore[return-value]

    def clear(self) -> None:
        for idx, obj in enumerate(self._slots):
            if obj is not None:
                self._slots[idx] = None
                self._generations[idx] += 1
                self._free.append(idx)
        self._count = 0

    def __contains__(self, handle: object) -> bool:
        try:
            self._check(handle)  # type: ignore[arg-type]
        except NotFound:
            return False
        return True

    def __len__(self) -> int:
        return self._count

    def items(self) -> Iterator[Tuple[Handle, T]]:
        for idx, obj in enumerate(self._slots):
            if obj is not None:
                yield Handle(idx, self._generations[idx]), obj
