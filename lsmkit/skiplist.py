"""Skip list keyed by internal keys, with node memory charged to an arena."""

from __future__ import annotations

import random
import threading
from typing import Iterator, List, Optional, Tuple

from lsmkit.arena import Arena
from lsmkit.keys import InternalKeyComparator

MAX_HEIGHT = 20
_HEIGHT_INCREASE = 1 / 3
_NODE_ALIGN = 8
_NODE_HEADER_SIZE = 72
_TOWER_SLOT_SIZE = 4


class _Node:
    __slots__ = ("key", "value", "tower")

    def __init__(self, key: bytes, value: bytes, height: int):
        self.key = key
        self.value = value
        self.tower: List[Optional[_Node]] = [None] * (height + 1)


class Skiplist:
    """Ordered map from internal keys to values.

    Inserting a key that is already present never replaces its value.
    """

    def __init__(self, comparator: InternalKeyComparator, capacity: int):
        self._cmp = comparator
        self._arena = Arena(capacity)
        self._lock = threading.Lock()
        self._height = 0
        self._head = self._new_node(b"", b"", MAX_HEIGHT - 1)

    @property
    def comparator(self) -> InternalKeyComparator:
        return self._cmp

    @property
    def mem_size(self) -> int:
        """Bytes taken from the arena so far."""
        return len(self._arena)

    def _new_node(self, key: bytes, value: bytes, height: int) -> _Node:
        self._arena.alloc(_NODE_ALIGN, _NODE_HEADER_SIZE + (height + 1) * _TOWER_SLOT_SIZE)
        return _Node(key, value, height)

    @staticmethod
    def _random_height() -> int:
        for height in range(MAX_HEIGHT - 1):
            if random.random() >= _HEIGHT_INCREASE:
                return height
        return MAX_HEIGHT - 1

    def _find_near(self, key: bytes, less: bool, allow_equal: bool) -> Optional[_Node]:
        head = self._head
        cursor = head
        level = self._height
        while True:
            nxt = cursor.tower[level]
            if nxt is None:
                if level > 0:
                    level -= 1
                    continue
                if not less or cursor is head:
                    return None
                return cursor
            order = self._cmp.compare(key, nxt.key)
            if order > 0:
                cursor = nxt
                continue
            if order == 0:
                if allow_equal:
                    return nxt
                if not less:
                    return nxt.tower[0]
                if level > 0:
                    level -= 1
                    continue
                return None if cursor is head else cursor
            if level > 0:
                level -= 1
                continue
            if not less:
                return nxt
            return None if cursor is head else cursor

    def _find_splice_for_level(
        self, key: bytes, before: _Node, level: int
    ) -> Tuple[_Node, Optional[_Node]]:
        while True:
            nxt = before.tower[level]
            if nxt is None:
                return before, None
            order = self._cmp.compare(key, nxt.key)
            if order == 0:
                return nxt, nxt
            if order < 0:
                return before, nxt
            before = nxt

    def put(self, key: bytes, value: bytes) -> Optional[Tuple[bytes, bytes]]:
        """Insert ``key``; if it exists with another value, return the rejected pair."""
        key = bytes(key)
        value = bytes(value)
        with self._lock:
            list_height = self._height
            prev: List[Optional[_Node]] = [None] * (MAX_HEIGHT + 1)
            nexts: List[Optional[_Node]] = [None] * (MAX_HEIGHT + 1)
            prev[list_height + 1] = self._head
            for level in range(list_height, -1, -1):
                above = prev[level + 1]
                assert above is not None
                before, after = self._find_splice_for_level(key, above, level)
                if before is after:
                    return None if before.value == value else (key, value)
                prev[level] = before
                nexts[level] = after
            height = self._random_height()
            node = self._new_node(key, value, height)
            if height > list_height:
                self._height = height
            for level in range(height + 1):
                before = prev[level]
                if before is None:
                    before, nexts[level] = self._find_splice_for_level(key, self._head, level)
                node.tower[level] = nexts[level]
                before.tower[level] = node
        return None

    def is_empty(self) -> bool:
        return self._head.tower[0] is None

    def __len__(self) -> int:
        count = 0
        node = self._head.tower[0]
        while node is not None:
            count += 1
            node = node.tower[0]
        return count

    def __iter__(self) -> Iterator[Tuple[bytes, bytes]]:
        node = self._head.tower[0]
        while node is not None:
            yield node.key, node.value
            node = node.tower[0]

    def _find_last(self) -> Optional[_Node]:
        node = self._head
        level = self._height
        while True:
            nxt = node.tower[level]
            if nxt is not None:
                node = nxt
                continue
            if level == 0:
                return None if node is self._head else node
            level -= 1

    def find_near(
        self, key: bytes, less: bool, allow_equal: bool
    ) -> Optional[Tuple[bytes, bytes]]:
        """Return the entry nearest to ``key`` in the requested direction.

        With ``less`` the entry before ``key`` is sought, otherwise the one
        after it; ``allow_equal`` lets an exact match be returned.
        """
        node = self._find_near(bytes(key), less, allow_equal)
        return None if node is None else (node.key, node.value)

    def get(self, key: bytes) -> Optional[bytes]:
        """Return the value of the newest entry at or after ``key`` with its user key."""
        found = self.get_with_key(key)
        return None if found is None else found[1]

    def get_with_key(self, key: bytes) -> Optional[Tuple[bytes, bytes]]:
        """Like :meth:`get`, but return the stored key along with the value."""
        node = self._find_near(bytes(key), False, True)
        if node is None or not self._cmp.same_key(node.key, key):
            return None
        return node.key, node.value

    def iter(self) -> "SkiplistIterator":
        return SkiplistIterator(self)


class SkiplistIterator:
    """Cursor over a :class:`Skiplist`; starts out invalid."""

    def __init__(self, skiplist: Skiplist):
        self._list = skiplist
        self._cursor: Optional[_Node] = None

    def valid(self) -> bool:
        return self._cursor is not None

    def _current(self) -> _Node:
        if self._cursor is None:
            raise RuntimeError("iterator is not positioned on an entry")
        return self._cursor

    def key(self) -> bytes:
        return self._current().key

    def value(self) -> bytes:
        return self._current().value

    def next(self) -> None:
        self._cursor = self._current().tower[0]

    def prev(self) -> None:
        self._cursor = self._list._find_near(self._current().key, True, False)

    def seek(self, target: bytes) -> None:
        self._cursor = self._list._find_near(bytes(target), False, True)

    def seek_for_prev(self, target: bytes) -> None:
        self._cursor = self._list._find_near(bytes(target), True, True)

    def seek_to_first(self) -> None:
        self._cursor = self._list._head.tower[0]

    def seek_to_last(self) -> None:
        self._cursor = self._list._find_last()