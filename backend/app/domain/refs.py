"""
Typed references between records.

A related record is sometimes loaded alongside its owner and sometimes only
known by id. Ref keeps both cases behind one accessor so callers never have
to inspect the shape themselves.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Ref(Generic[T]):
    id: int
    value: Optional[T] = None

    @property
    def is_loaded(self) -> bool:
        return self.value is not None

    async def resolve(self, loader: Callable[[int], Awaitable[Optional[T]]]) -> Optional[T]:
        """Return the embedded record, or load it by id."""
        if self.value is not None:
            return self.value
        return await loader(self.id)
