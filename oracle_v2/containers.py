"""
Generic containers shared by the replay guard, the consistency checker and
the governance tables.

- EnumerableSet: unbounded set with O(1) add/contains/remove (swap-remove)
  and stable index access.
- BoundedRingSet: fixed-capacity insertion-ordered set; adding to a full set
  evicts the oldest member in O(1).
- RingBuffer: fixed-capacity FIFO of plain values.
"""
from typing import Generic, Hashable, Iterator, Optional, TypeVar

T = TypeVar('T', bound=Hashable)
V = TypeVar('V')


class EnumerableSet(Generic[T]):
    def __init__(self, items=None):
        self._values: list[T] = []
        self._positions: dict[T, int] = {}
        for item in items or []:
            self.add(item)

    def add(self, item: T) -> bool:
        """Add item; returns False if it was already present."""
        if item in self._positions:
            return False
        self._positions[item] = len(self._values)
        self._values.append(item)
        return True

    def remove(self, item: T) -> bool:
        """Remove item by moving the last element into its slot."""
        pos = self._positions.pop(item, None)
        if pos is None:
            return False
        last = self._values.pop()
        if pos < len(self._values):
            self._values[pos] = last
            self._positions[last] = pos
        return True

    def at(self, index: int) -> T:
        return self._values[index]

    def values(self) -> list[T]:
        return list(self._values)

    def __contains__(self, item) -> bool:
        return item in self._positions

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._values))

    def to_list(self) -> list[T]:
        return list(self._values)

    @classmethod
    def from_list(cls, items: list) -> 'EnumerableSet':
        return cls(items)


class BoundedRingSet(Generic[T]):
    """
    Insertion-ordered set of at most `capacity` members.

    Members live in a circular slot list; `_positions` maps each member to its
    slot. `_head` is the slot written next, which once the set is full is also
    the slot of the oldest member.
    """

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._slots: list[Optional[T]] = []
        self._positions: dict[T, int] = {}
        self._head = 0

    def add(self, item: T) -> Optional[T]:
        """
        Add item, returning the evicted oldest member if the set was full.
        Raises ValueError if item is already present.
        """
        if item in self._positions:
            raise ValueError("item already present")

        evicted = None
        if len(self._slots) < self.capacity:
            self._slots.append(item)
            slot = len(self._slots) - 1
        else:
            slot = self._head
            evicted = self._slots[slot]
            del self._positions[evicted]
            self._slots[slot] = item

        self._positions[item] = slot
        self._head = (slot + 1) % self.capacity
        return evicted

    def oldest(self) -> Optional[T]:
        if not self._slots:
            return None
        if len(self._slots) < self.capacity:
            return self._slots[0]
        return self._slots[self._head]

    def is_full(self) -> bool:
        return len(self._slots) == self.capacity

    def __contains__(self, item) -> bool:
        return item in self._positions

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[T]:
        """Oldest first."""
        if len(self._slots) < self.capacity:
            return iter(list(self._slots))
        return iter(self._slots[self._head:] + self._slots[:self._head])

    def to_dict(self) -> dict:
        return {
            'capacity': self.capacity,
            'slots': list(self._slots),
            'head': self._head,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'BoundedRingSet':
        ring = cls(data['capacity'])
        ring._slots = list(data['slots'])
        ring._positions = {item: slot for slot, item in enumerate(ring._slots)}
        ring._head = data['head']
        return ring


class RingBuffer(Generic[V]):
    """Fixed-capacity FIFO; pushing onto a full buffer drops the oldest value."""

    def __init__(self, capacity: int, values=None):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._values: list[V] = []
        self._start = 0
        for value in values or []:
            self.push(value)

    def push(self, value: V) -> Optional[V]:
        if len(self._values) < self.capacity:
            self._values.append(value)
            return None
        evicted = self._values[self._start]
        self._values[self._start] = value
        self._start = (self._start + 1) % self.capacity
        return evicted

    def oldest(self) -> V:
        if not self._values:
            raise IndexError("ring buffer is empty")
        return self._values[self._start]

    def newest(self) -> V:
        if not self._values:
            raise IndexError("ring buffer is empty")
        return self._values[(self._start + len(self._values) - 1) % len(self._values)]

    def is_full(self) -> bool:
        return len(self._values) == self.capacity

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[V]:
        return iter(self._values[self._start:] + self._values[:self._start])
