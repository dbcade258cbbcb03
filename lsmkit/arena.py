"""Memory arenas for memtable nodes."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import List, Tuple

BLOCK_DATA_SIZE = 4 * 1024 * 1024
PAGE_DATA_SIZE = 8 * 1024
ARENA_COUNT = 4
_POINTER_SIZE = 8


class Arena:
    """Bump allocator handing out aligned offsets into one fixed buffer.

    Offset 0 is never handed out, so it can stand for "no node".
    """

    def __init__(self, capacity: int):
        self.capacity = capacity // 8 * 8
        self.data = bytearray(self.capacity)
        self._len = 1
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return self._len

    def alloc(self, align: int, size: int) -> int:
        """Reserve ``size`` bytes aligned to ``align`` and return their offset."""
        if align <= 0 or align & (align - 1):
            raise ValueError(f"alignment must be a power of two, got {align}")
        if size < 0:
            raise ValueError(f"size must not be negative, got {size}")
        mask = align - 1
        padded = size + mask
        with self._lock:
            offset = self._len
            if offset + padded > self.capacity:
                raise MemoryError(
                    f"arena exhausted: {offset + padded} bytes needed, capacity {self.capacity}"
                )
            self._len = offset + padded
        return (offset + mask) & ~mask


@dataclass
class _Block:
    data: bytearray
    offset: int = 0


class _ArenaShard:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._current = _Block(bytearray(BLOCK_DATA_SIZE))
        self._retired: List[_Block] = []

    def allocate(self, data_size: int) -> Tuple[memoryview, int]:
        """Return the allocated region and the capacity of any block retired."""
        with self._lock:
            block = self._current
            offset = block.offset
            block.offset += data_size
            if offset + data_size < BLOCK_DATA_SIZE:
                return memoryview(block.data)[offset : offset + data_size], 0
            block_size = BLOCK_DATA_SIZE
            while block_size < data_size:
                if block_size + PAGE_DATA_SIZE < data_size:
                    block_size += (data_size - block_size) // PAGE_DATA_SIZE * PAGE_DATA_SIZE
                else:
                    block_size += PAGE_DATA_SIZE
            fresh = _Block(bytearray(block_size), data_size)
            self._retired.append(block)
            self._current = fresh
            return memoryview(fresh.data)[:data_size], len(block.data)


def _rounded_size(alloc_size: int) -> int:
    if alloc_size <= 0:
        raise ValueError(f"allocation size must be positive, got {alloc_size}")
    return ((alloc_size - 1) | (_POINTER_SIZE - 1)) + 1


class _BlockArena:
    def __init__(self, shard_count: int) -> None:
        self._shards = [_ArenaShard() for _ in range(shard_count)]
        self._mem_size = 0
        self._mem_lock = threading.Lock()

    @property
    def mem_size(self) -> int:
        """Bytes held by blocks that have been filled and retired."""
        return self._mem_size

    def _allocate_from(self, shard: _ArenaShard, alloc_size: int) -> memoryview:
        view, retired = shard.allocate(_rounded_size(alloc_size))
        if retired:
            with self._mem_lock:
                self._mem_size += retired
        return view[:alloc_size]


class ConcurrentArena(_BlockArena):
    """Thread-safe block arena with a single shard."""

    def __init__(self) -> None:
        super().__init__(1)

    def allocate(self, alloc_size: int) -> memoryview:
        """Return a writable region of ``alloc_size`` bytes."""
        return self._allocate_from(self._shards[0], alloc_size)

    def allocate_in_thread(self, idx: int, alloc_size: int) -> memoryview:
        """Same as :meth:`allocate`; the thread index is ignored."""
        return self.allocate(alloc_size)


class SharedArena(_BlockArena):
    """Block arena split into shards chosen by a thread index."""

    def __init__(self) -> None:
        super().__init__(ARENA_COUNT)

    def allocate(self, alloc_size: int) -> memoryview:
        """Return a writable region of ``alloc_size`` bytes from the first shard."""
        return self._allocate_from(self._shards[0], alloc_size)

    def allocate_in_thread(self, idx: int, alloc_size: int) -> memoryview:
        """Return a writable region from the shard picked by ``idx``."""
        return self._allocate_from(self._shards[idx % ARENA_COUNT], alloc_size)