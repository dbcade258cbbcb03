import pytest

from lsmkit.arena import BLOCK_DATA_SIZE
from lsmkit.inline_skiplist import MemTableContext
from lsmkit.keys import (
    VALUE_TYPE_FOR_SEEK,
    InternalKeyComparator,
    ValueType,
    extract_user_key,
    make_internal_key,
)
from lsmkit.memtable import InlineSkipListMemtableRep, Memtable, SkipListMemtableRep


def seek_key(user_key, sequence):
    return make_internal_key(user_key, sequence, VALUE_TYPE_FOR_SEEK)


def make_rep(kind):
    comparator = InternalKeyComparator()
    if kind == "inline":
        return InlineSkipListMemtableRep(comparator)
    return SkipListMemtableRep(comparator, 1 << 20)


def test_empty_memtable():
    mem = Memtable(1, 1024, InternalKeyComparator(), 100)
    assert mem.is_empty()
    assert mem.get(seek_key(b"k", 10)) is None
    assert mem.column_family_id == 1


def test_get_sees_newest_visible_version():
    mem = Memtable(0, 1 << 20, InternalKeyComparator(), 100)
    ctx = MemTableContext()
    mem.add(ctx, b"k", b"a", 1)
    mem.add(ctx, b"k", b"b", 5)
    assert mem.get(seek_key(b"k", 10)) == b"b"
    assert mem.get(seek_key(b"k", 3)) == b"a"
    assert mem.get(seek_key(b"k", 0)) is None
    assert mem.get(seek_key(b"j", 10)) is None


def test_delete_yields_empty_value():
    mem = Memtable(0, 1 << 20, InternalKeyComparator(), 100)
    ctx = MemTableContext()
    mem.add(ctx, b"k", b"v", 1)
    mem.delete(ctx, b"k", 2)
    assert mem.get(seek_key(b"k", 10)) == b""
    assert mem.get(seek_key(b"k", 1)) == b"v"


def test_sequence_tracking():
    mem = Memtable(0, 1 << 20, InternalKeyComparator(), 100)
    ctx = MemTableContext()
    mem.add(ctx, b"a", b"1", 7)
    mem.add(ctx, b"b", b"2", 5)
    mem.add(ctx, b"c", b"3", 9)
    assert not mem.is_empty()
    assert mem.first_seqno == 5
    assert mem.earliest_seqno == 5


def test_earliest_seqno_not_raised():
    mem = Memtable(0, 1 << 20, InternalKeyComparator(), 3)
    mem.add(MemTableContext(), b"a", b"1", 50)
    assert mem.earliest_seqno == 3
    assert mem.first_seqno == 50


def test_iterator_orders_by_user_key():
    mem = Memtable(0, 1 << 20, InternalKeyComparator(), 0)
    ctx = MemTableContext()
    for seq, key in enumerate([b"c", b"a", b"b"], start=1):
        mem.add(ctx, key, key * 2, seq)
    it = mem.new_iterator()
    it.seek_to_first()
    seen = []
    while it.valid():
        seen.append((extract_user_key(it.key()), it.value()))
        it.next()
    assert seen == [(b"a", b"aa"), (b"b", b"bb"), (b"c", b"cc")]


def test_schedule_flag():
    mem = Memtable(0, 1024, InternalKeyComparator(), 0)
    assert not mem.is_pending_schedule()
    mem.mark_schedule_flush()
    assert mem.is_pending_schedule()


def test_should_flush_after_block_is_retired():
    mem = Memtable(0, 1024, InternalKeyComparator(), 0)
    assert not mem.should_flush()
    mem.add(MemTableContext(), b"big", bytes(BLOCK_DATA_SIZE), 1)
    assert mem.mem_size >= BLOCK_DATA_SIZE
    assert mem.should_flush()


@pytest.mark.parametrize("kind", ["inline", "plain"])
def test_rep_scan_is_half_open(kind):
    rep = make_rep(kind)
    ctx = MemTableContext()
    for seq, key in enumerate([b"a", b"b", b"c", b"d"], start=1):
        rep.add(ctx, key, key.upper(), seq)
    found = list(rep.scan(seek_key(b"b", 100), seek_key(b"d", 100)))
    assert [extract_user_key(k) for k, _ in found] == [b"b", b"c"]
    assert [v for _, v in found] == [b"B", b"C"]


@pytest.mark.parametrize("kind", ["inline", "plain"])
def test_rep_delete_stores_deletion_marker(kind):
    rep = make_rep(kind)
    ctx = MemTableContext()
    rep.delete(ctx, b"x", 4)
    it = rep.new_iterator()
    it.seek_to_first()
    assert it.valid()
    assert it.key() == make_internal_key(b"x", 4, ValueType.DELETION)
    assert it.value() == b""


def test_rep_names():
    assert make_rep("inline").name == "InlineSkipListMemtable"
    assert make_rep("plain").name == "SkipListMemtable"