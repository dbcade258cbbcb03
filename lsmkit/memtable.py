"""In-memory write buffers built on the skip lists."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Iterator, Optional, Tuple

from lsmkit.arena import SharedArena
from lsmkit.inline_skiplist import InlineSkipList, MemTableContext, SkipListIterator
from lsmkit.keys import InternalKeyComparator, ValueType, make_internal_key
from lsmkit.skiplist import Skiplist


class MemtableRep(ABC):
    """Ordered store of internal keys that backs a memtable."""

    name = "MemtableRep"

    def __init__(self, comparator: InternalKeyComparator):
        self.comparator = comparator

    @abstractmethod
    def new_iterator(self):
        """Return an unpositioned cursor over the stored entries."""

    @abstractmethod
    def add(self, ctx: MemTableContext, key: bytes, value: bytes, sequence: int) -> None:
        """Store a value for user ``key`` at ``sequence``."""

    @abstractmethod
    def delete(self, ctx: MemTableContext, key: bytes, sequence: int) -> None:
        """Store a deletion marker for user ``key`` at ``sequence``."""

    @property
    @abstractmethod
    def mem_size(self) -> int:
        """Memory charged to this store, in bytes."""

    def compare(self, a: bytes, b: bytes) -> int:
        return self.comparator.compare(a, b)

    def scan(self, start: bytes, end: bytes) -> Iterator[Tuple[bytes, bytes]]:
        """Yield ``(internal_key, value)`` from ``start`` up to, not including, ``end``."""
        it = self.new_iterator()
        it.seek(start)
        while it.valid() and self.compare(it.key(), end) < 0:
            yield it.key(), it.value()
            it.next()


class InlineSkipListMemtableRep(MemtableRep):
    """Memtable store whose entries are encoded into a sharded arena."""

    name = "InlineSkipListMemtable"

    def __init__(self, comparator: InternalKeyComparator):
        super().__init__(comparator)
        self._list = InlineSkipList(SharedArena(), comparator)

    def new_iterator(self) -> SkipListIterator:
        return SkipListIterator(self._list)

    def add(self, ctx: MemTableContext, key: bytes, value: bytes, sequence: int) -> None:
        self._list.add(ctx, key, value, sequence)

    def delete(self, ctx: MemTableContext, key: bytes, sequence: int) -> None:
        self._list.delete(ctx, key, sequence)

    @property
    def mem_size(self) -> int:
        return self._list.mem_size


class SkipListMemtableRep(MemtableRep):
    """Memtable store on a fixed-capacity skip list."""

    name = "SkipListMemtable"

    def __init__(self, comparator: InternalKeyComparator, write_buffer_size: int):
        super().__init__(comparator)
        self._list = Skiplist(comparator, write_buffer_size)

    def new_iterator(self):
        return self._list.iter()

    def add(self, ctx: MemTableContext, key: bytes, value: bytes, sequence: int) -> None:
        self._list.put(make_internal_key(key, sequence, ValueType.VALUE), value)

    def delete(self, ctx: MemTableContext, key: bytes, sequence: int) -> None:
        self._list.put(make_internal_key(key, sequence, ValueType.DELETION), b"")

    @property
    def mem_size(self) -> int:
        return self._list.mem_size


class Memtable:
    """Write buffer of one column family."""

    def __init__(
        self,
        cf_id: int,
        max_write_buffer_size: int,
        comparator: Optional[InternalKeyComparator] = None,
        earliest_seq: int = 0,
    ):
        self.comparator = comparator if comparator is not None else InternalKeyComparator()
        self.column_family_id = cf_id
        self.max_write_buffer_size = max_write_buffer_size
        self.next_log_number = 0
        self._rep = InlineSkipListMemtableRep(self.comparator)
        self._lock = threading.Lock()
        self._pending_schedule = False
        self._first_seqno = 0
        self._earliest_seqno = earliest_seq

    @property
    def first_seqno(self) -> int:
        """Smallest sequence written, or 0 when nothing has been written."""
        return self._first_seqno

    @property
    def earliest_seqno(self) -> int:
        return self._earliest_seqno

    @property
    def mem_size(self) -> int:
        return self._rep.mem_size

    def new_iterator(self) -> SkipListIterator:
        return self._rep.new_iterator()

    def add(self, ctx: MemTableContext, key: bytes, value: bytes, sequence: int) -> None:
        self._update_first_sequence(sequence)
        self._rep.add(ctx, key, value, sequence)

    def delete(self, ctx: MemTableContext, key: bytes, sequence: int) -> None:
        self._update_first_sequence(sequence)
        self._rep.delete(ctx, key, sequence)

    def get(self, key: bytes) -> Optional[bytes]:
        """Return the value of the newest entry visible to internal key ``key``.

        A deletion marker yields its empty value.
        """
        it = self._rep.new_iterator()
        it.seek(key)
        if it.valid() and self.comparator.same_key(key, it.key()):
            return it.value()
        return None

    def should_flush(self) -> bool:
        return self._rep.mem_size > self.max_write_buffer_size

    def is_empty(self) -> bool:
        return self._first_seqno == 0

    def mark_schedule_flush(self) -> None:
        self._pending_schedule = True

    def is_pending_schedule(self) -> bool:
        return self._pending_schedule

    def _update_first_sequence(self, sequence: int) -> None:
        with self._lock:
            if self._first_seqno == 0 or sequence < self._first_seqno:
                self._first_seqno = sequence
            if sequence < self._earliest_seqno:
                self._earliest_seqno = sequence