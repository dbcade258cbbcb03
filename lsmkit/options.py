"""Database, column family, read and write options."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from lsmkit.inline_skiplist import MemTableContext
from lsmkit.keys import InternalKeyComparator


@dataclass
class ColumnFamilyOptions:
    """Tuning knobs of one column family.

    Equality ignores ``level0_file_num_compaction_trigger`` and
    ``max_compaction_bytes``.
    """

    write_buffer_size: int = 4 << 20
    max_write_buffer_number: int = 1
    comparator: InternalKeyComparator = field(default_factory=InternalKeyComparator)
    max_level: int = 7
    max_bytes_for_level_base: int = 256 * 1024 * 1024
    max_bytes_for_level_multiplier: float = 10.0
    target_file_size_base: int = 64 * 1024 * 1024
    level0_file_num_compaction_trigger: int = field(default=4, compare=False)
    max_compaction_bytes: int = field(default=64 * 1024 * 1024 * 25, compare=False)


@dataclass
class DBOptions:
    """Options given when opening a database."""

    max_manifest_file_size: int = 128 * 1024 * 1024
    max_total_wal_size: int = 128 * 1024 * 1024
    create_if_missing: bool = False
    create_missing_column_families: bool = False
    db_path: str = "db"
    db_name: str = "db"
    max_background_jobs: int = 2


@dataclass(frozen=True)
class ImmutableDBOptions:
    """The part of :class:`DBOptions` fixed for the life of an open database."""

    max_manifest_file_size: int
    max_total_wal_size: int
    db_path: str
    max_background_jobs: int

    @classmethod
    def from_db_options(cls, options: DBOptions) -> "ImmutableDBOptions":
        return cls(
            max_manifest_file_size=options.max_manifest_file_size,
            max_total_wal_size=options.max_total_wal_size,
            db_path=options.db_path,
            max_background_jobs=options.max_background_jobs,
        )


@dataclass
class ColumnFamilyDescriptor:
    """Names a column family together with its options."""

    name: str
    options: ColumnFamilyOptions = field(default_factory=ColumnFamilyOptions)


@dataclass
class ReadOptions:
    snapshot: Optional[int] = None
    fill_cache: bool = False
    total_order_seek: bool = False
    prefix_same_as_start: bool = False
    skip_filter: bool = False


@dataclass
class WriteOptions:
    ctx: MemTableContext = field(default_factory=MemTableContext)
    disable_wal: bool = False
    sync: bool = False