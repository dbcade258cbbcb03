# lsmkit

Core pieces of an LSM-tree key-value storage engine, in pure Python with no
dependencies beyond the standard library.

## Modules

- `lsmkit.log` — block-framed write-ahead log. `LogWriter` appends records
  with a seven byte header (masked CRC32C, length, record type) and splits
  records that do not fit in a block into FIRST/MIDDLE/LAST fragments; an
  empty record writes nothing. `LogReader.read_record()` returns the next
  record or `None` at the end, and a `LogReader` can be iterated. Checksums
  are written but not verified on read. Malformed logs raise `LogReadError`.
  The helpers `crc32c(data, crc)` and `crc_mask(crc)` are exposed as well.
- `lsmkit.pipeline` — `PipelineCommitQueue` over a `SequenceCounter`: a writer
  covering `(last_commit_sequence, commit_sequence]` calls `commit()` and
  waits until earlier writers have published; `wait_pending_writers()` blocks
  until a sequence is visible and returns `True` if the queue was stopped;
  `stop()` releases all waiters.
- `lsmkit.arena` — `Arena`, a bump allocator of aligned offsets into a fixed
  buffer (raises `MemoryError` when full), and the block arenas
  `ConcurrentArena` and `SharedArena` (four shards picked by a thread index)
  that return writable `memoryview` regions and report `mem_size`, the bytes
  held by retired blocks.
- `lsmkit.keys` — internal keys (user key plus an eight byte little-endian
  trailer of `sequence << 8 | value_type`): `ValueType`,
  `pack_sequence_and_type`, `make_internal_key`, `extract_user_key`,
  `encode_varint32` / `decode_varint32`, and `InternalKeyComparator`, which
  orders by user key ascending, then newest sequence first.
- `lsmkit.skiplist` — `Skiplist`, an ordered map of internal keys whose node
  memory is charged to an `Arena`; `put()` never replaces an existing key
  and returns the rejected pair if the value differs. `SkiplistIterator`
  offers `seek`, `seek_for_prev`, `seek_to_first`, `seek_to_last`, `next`,
  `prev`.
- `lsmkit.inline_skiplist` — `InlineSkipList`, whose entries are encoded into
  a `SharedArena`, with `SkipListIterator`, `MemTableContext` and
  `encode_key`.
- `lsmkit.memtable` — `Memtable` and its stores `InlineSkipListMemtableRep`
  and `SkipListMemtableRep`, both `MemtableRep`s with a `scan(start, end)`
  generator.
- `lsmkit.options` — `DBOptions`, `ImmutableDBOptions.from_db_options()`,
  `ColumnFamilyOptions`, `ColumnFamilyDescriptor`, `ReadOptions`,
  `WriteOptions`.

## Install

    pip install .

## Example: write and read a log

```python
from lsmkit.log import LogWriter, LogReader

with open("wal.log", "wb") as f:
    writer = LogWriter(f)
    writer.add_record(b"hello")
    writer.add_record(b"world" * 10000)
    writer.sync()

with open("wal.log", "rb") as f:
    for record in LogReader(f):
        print(len(record))
```

## Example: a memtable

```python
from lsmkit.keys import InternalKeyComparator, pack_sequence_and_type
from lsmkit.inline_skiplist import MemTableContext
from lsmkit.memtable import Memtable

mem = Memtable(0, 4 << 20, InternalKeyComparator(), 0)
ctx = MemTableContext()
mem.add(ctx, b"key", b"value", 1)
lookup = b"key" + pack_sequence_and_type(10, 1).to_bytes(8, "little")
print(mem.get(lookup))  # b"value"
```

`Memtable.get` takes an internal key and returns the value of the newest entry
at or below its sequence; a deletion marker yields `b""`.

## What this package does not do

It is a set of components, not a database. Nothing here opens a database
directory, keeps a manifest of files, writes or reads sorted table files,
flushes memtables to disk or runs compactions. The options classes only hold
settings; no code in the package acts on them. There is no command-line tool
and no server.

## Tests

    pip install .[test]
    pytest