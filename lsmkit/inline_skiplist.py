"""Skip list whose entries are encoded into arena memory.

Each entry is stored as ``varint(len(internal_key)) internal_key
varint(len(value)) value``, where the internal key is the user key followed
by its packed sequence/type trailer. Equal internal keys may coexist; a new
entry is placed before existing equal ones.
"""

from __future__ import annotations

import itertools
import random
import threading
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from lsmkit.arena import SharedArena
from lsmkit.keys import (
    InternalKeyComparator,
    ValueType,
    decode_varint32,
    encode_varint32,
    make_internal_key,
)

MAX_HEIGHT = 12
MAX_POSSIBLE_HEIGHT = 32
BRANCHING_FACTOR = 4
SCALED_INVERSE_BRANCHING = (2147483647 + 1) // BRANCHING_FACTOR
_POINTER_SIZE = 8

_thread_ids = itertools.count(1)
_thread_ids_lock = threading.Lock()
_local = threading.local()


def _cache_id() -> int:
    cached = getattr(_local, "cache_id", 0)
    if cached == 0:
        with _thread_ids_lock:
            cached = next(_thread_ids)
        _local.cache_id = cached
    return cached


@dataclass
class MemTableContext:
    """Per-writer state carried across memtable inserts."""

    thread_id: int = 0

    def get_thread_id(self) -> int:
        """Return the id of the calling thread's arena shard, assigning one if needed."""
        if self.thread_id == 0:
            self.thread_id = _cache_id()
        return self.thread_id


def encode_key(target: bytes) -> bytes:
    """Return ``target`` prefixed with its varint-encoded length."""
    return encode_varint32(len(target)) + bytes(target)


class _Node:
    __slots__ = ("key", "value", "next")

    def __init__(self, key: bytes, value: bytes, height: int):
        self.key = key
        self.value = value
        self.next: List[Optional[_Node]] = [None] * height


def _decode_entry(entry: bytes) -> Tuple[bytes, bytes]:
    key_len, offset = decode_varint32(entry, 0)
    key = entry[offset : offset + key_len]
    offset += key_len
    value_len, offset = decode_varint32(entry, offset)
    return key, entry[offset : offset + value_len]


class InlineSkipList:
    """Skip list of internal keys with entries allocated from an arena."""

    def __init__(self, arena: Optional[SharedArena] = None, comparator=None):
        self._arena = arena if arena is not None else SharedArena()
        self._cmp = comparator if comparator is not None else InternalKeyComparator()
        self._arena.allocate(_POINTER_SIZE * MAX_HEIGHT)
        self._head = _Node(b"", b"", MAX_HEIGHT)
        self._max_height = 1
        self._lock = threading.Lock()

    @property
    def comparator(self):
        return self._cmp

    @property
    def mem_size(self) -> int:
        """Bytes held by the arena's retired blocks."""
        return self._arena.mem_size

    def random_height(self) -> int:
        """Draw a tower height; each extra level has a 1 in 8 chance."""
        height = 1
        while (
            height < MAX_HEIGHT
            and height < MAX_POSSIBLE_HEIGHT
            and random.getrandbits(32) < SCALED_INVERSE_BRANCHING
        ):
            height += 1
        return height

    def add(self, ctx: MemTableContext, key: bytes, value: bytes, sequence: int) -> None:
        """Insert a value entry for user ``key`` at ``sequence``."""
        self._insert(ctx.get_thread_id(), key, value, sequence, ValueType.VALUE)

    def delete(self, ctx: MemTableContext, key: bytes, sequence: int) -> None:
        """Insert a deletion marker for user ``key`` at ``sequence``."""
        self._insert(ctx.get_thread_id(), key, b"", sequence, ValueType.DELETION)

    def _insert(
        self, thread_id: int, key: bytes, value: bytes, sequence: int, kind: ValueType
    ) -> None:
        internal_key = make_internal_key(key, sequence, kind)
        value = bytes(value)
        entry = encode_key(internal_key) + encode_key(value)
        height = self.random_height()
        region = self._arena.allocate_in_thread(
            thread_id, _POINTER_SIZE * height + len(entry)
        )
        region[_POINTER_SIZE * height :] = entry
        stored_key, stored_value = _decode_entry(bytes(region[_POINTER_SIZE * height :]))
        node = _Node(stored_key, stored_value, height)
        with self._lock:
            if height > self._max_height:
                self._max_height = height
            before = self._head
            for level in reversed(range(self._max_height)):
                while True:
                    nxt = before.next[level]
                    if nxt is None or self._cmp.compare(nxt.key, stored_key) >= 0:
                        break
                    before = nxt
                if level < height:
                    node.next[level] = before.next[level]
                    before.next[level] = node

    def _find_greater_or_equal(self, key: bytes) -> Optional[_Node]:
        node = self._head
        level = self._max_height - 1
        while True:
            nxt = node.next[level]
            if nxt is not None and self._cmp.compare(nxt.key, key) < 0:
                node = nxt
            elif level == 0:
                return nxt
            else:
                level -= 1

    def _find_less_than(self, key: bytes) -> _Node:
        node = self._head
        level = self._max_height - 1
        while True:
            nxt = node.next[level]
            if nxt is not None and self._cmp.compare(nxt.key, key) < 0:
                node = nxt
            elif level == 0:
                return node
            else:
                level -= 1

    def _find_last(self) -> Optional[_Node]:
        node = self._head
        level = self._max_height - 1
        while True:
            nxt = node.next[level]
            if nxt is not None:
                node = nxt
            elif level == 0:
                return None if node is self._head else node
            else:
                level -= 1

    def __iter__(self) -> Iterator[Tuple[bytes, bytes]]:
        node = self._head.next[0]
        while node is not None:
            yield node.key, node.value
            node = node.next[0]


class SkipListIterator:
    """Cursor over an :class:`InlineSkipList`; starts out invalid."""

    def __init__(self, skiplist: InlineSkipList):
        self._list = skiplist
        self._node: Optional[_Node] = None

    def valid(self) -> bool:
        return self._node is not None

    def _current(self) -> _Node:
        if self._node is None:
            raise RuntimeError("iterator is not positioned on an entry")
        return self._node

    def key(self) -> bytes:
        """Return the internal key at the cursor."""
        return self._current().key

    def value(self) -> bytes:
        return self._current().value

    def next(self) -> None:
        self._node = self._current().next[0]

    def prev(self) -> None:
        node = self._list._find_less_than(self._current().key)
        self._node = None if node is self._list._head else node

    def seek(self, key: bytes) -> None:
        """Move to the first entry at or after internal key ``key``."""
        self._node = self._list._find_greater_or_equal(bytes(key))

    def seek_for_prev(self, key: bytes) -> None:
        """Move to the last entry at or before internal key ``key``."""
        key = bytes(key)
        self.seek(key)
        if not self.valid():
            self.seek_to_last()
        while self.valid() and self._list.comparator.compare(key, self.key()) < 0:
            self.prev()

    def seek_to_first(self) -> None:
        self._node = self._list._head.next[0]

    def seek_to_last(self) -> None:
        self._node = self._list._find_last()