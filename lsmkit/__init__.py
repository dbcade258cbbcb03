"""Building blocks of an LSM-tree storage engine: log, arenas, skiplists, memtables and options."""

__version__ = "0.1.0"
__all__ = [
    "arena",
    "inline_skiplist",
    "keys",
    "log",
    "memtable",
    "options",
    "pipeline",
    "skiplist",
]