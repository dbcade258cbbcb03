from lsmkit.keys import InternalKeyComparator
from lsmkit.options import (
    ColumnFamilyDescriptor,
    ColumnFamilyOptions,
    DBOptions,
    ImmutableDBOptions,
    ReadOptions,
    WriteOptions,
)


def test_column_family_defaults():
    opts = ColumnFamilyOptions()
    assert opts.write_buffer_size == 4 << 20
    assert opts.max_level == 7
    assert opts.max_bytes_for_level_base == 256 * 1024 * 1024
    assert opts.target_file_size_base == 64 * 1024 * 1024
    assert opts.level0_file_num_compaction_trigger == 4
    assert opts.comparator == InternalKeyComparator()


def test_column_family_equality_ignores_compaction_fields():
    base = ColumnFamilyOptions()
    assert base == ColumnFamilyOptions(level0_file_num_compaction_trigger=8)
    assert base == ColumnFamilyOptions(max_compaction_bytes=1)
    assert base != ColumnFamilyOptions(write_buffer_size=base.write_buffer_size * 2)
    assert base != ColumnFamilyOptions(comparator=InternalKeyComparator(name="other"))


def test_db_option_defaults():
    opts = DBOptions()
    assert opts.max_manifest_file_size == 128 * 1024 * 1024
    assert opts.db_path == "db"
    assert opts.db_name == "db"
    assert opts.create_if_missing is False
    assert opts.max_background_jobs == 2


def test_immutable_options_copy_db_options():
    opts = DBOptions(db_path="/tmp/x", max_background_jobs=5, max_total_wal_size=77)
    frozen = ImmutableDBOptions.from_db_options(opts)
    assert frozen.db_path == "/tmp/x"
    assert frozen.max_background_jobs == 5
    assert frozen.max_total_wal_size == 77
    assert frozen.max_manifest_file_size == opts.max_manifest_file_size


def test_descriptor_default_options():
    desc = ColumnFamilyDescriptor("cf1")
    assert desc.name == "cf1"
    assert desc.options == ColumnFamilyOptions()


def test_read_and_write_defaults():
    read = ReadOptions()
    assert read.snapshot is None
    assert read.fill_cache is False
    first, second = WriteOptions(), WriteOptions()
    assert first.ctx is not second.ctx
    assert first.sync is False and first.disable_wal is False