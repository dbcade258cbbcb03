"""Internal key layout, varint helpers and the internal key comparator.

An internal key is the user key followed by an eight byte little-endian
trailer that packs ``sequence << 8 | value_type``. Internal keys sort by
user key ascending, then by trailer descending, so newer entries of the
same user key come first.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Tuple, Union

TRAILER_SIZE = 8
MAX_SEQUENCE_NUMBER = (1 << 56) - 1
_U32_MAX = 0xFFFFFFFF
_MAX_VARINT32_BYTES = 5

BytesLike = Union[bytes, bytearray, memoryview]


class ValueType(IntEnum):
    """Kind of entry an internal key stands for."""

    DELETION = 0
    VALUE = 1


VALUE_TYPE_FOR_SEEK = ValueType.VALUE


def pack_sequence_and_type(sequence: int, value_type: int) -> int:
    """Pack a sequence number and a value type into one trailer integer."""
    if not 0 <= sequence <= MAX_SEQUENCE_NUMBER:
        raise ValueError(f"sequence number out of range: {sequence}")
    kind = int(value_type)
    if not 0 <= kind <= 0xFF:
        raise ValueError(f"value type out of range: {kind}")
    return (sequence << 8) | kind


def unpack_sequence_and_type(packed: int) -> Tuple[int, int]:
    """Split a trailer integer into its sequence number and value type."""
    return packed >> 8, packed & 0xFF


def make_internal_key(user_key: BytesLike, sequence: int, value_type: int) -> bytes:
    """Return ``user_key`` followed by its packed trailer."""
    trailer = pack_sequence_and_type(sequence, value_type)
    return bytes(user_key) + trailer.to_bytes(TRAILER_SIZE, "little")


def extract_user_key(key: BytesLike) -> bytes:
    """Return the user key part of an internal key."""
    if len(key) < TRAILER_SIZE:
        raise ValueError(f"internal key too short: {len(key)} bytes")
    return bytes(key[: len(key) - TRAILER_SIZE])


def extract_trailer(key: BytesLike) -> int:
    """Return the packed trailer of an internal key."""
    if len(key) < TRAILER_SIZE:
        raise ValueError(f"internal key too short: {len(key)} bytes")
    return int.from_bytes(bytes(key[len(key) - TRAILER_SIZE :]), "little")


def encode_varint32(value: int) -> bytes:
    """Encode an unsigned 32-bit integer as a base-128 varint."""
    if not 0 <= value <= _U32_MAX:
        raise ValueError(f"value does not fit in 32 bits: {value}")
    out = bytearray()
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def varint_length(value: int) -> int:
    """Return how many bytes ``encode_varint32(value)`` takes."""
    return len(encode_varint32(value))


def decode_varint32(data: BytesLike, offset: int = 0) -> Tuple[int, int]:
    """Decode a varint at ``offset``; return the value and the offset after it."""
    result = 0
    for shift_index in range(_MAX_VARINT32_BYTES):
        position = offset + shift_index
        if position >= len(data):
            raise ValueError("truncated varint32")
        byte = data[position]
        result |= (byte & 0x7F) << (7 * shift_index)
        if not byte & 0x80:
            if result > _U32_MAX:
                raise ValueError("varint32 overflows 32 bits")
            return result, position + 1
    raise ValueError("varint32 longer than 5 bytes")


def _sign(a: bytes, b: bytes) -> int:
    return (a > b) - (a < b)


@dataclass(frozen=True)
class InternalKeyComparator:
    """Orders internal keys by user key, then newest sequence first."""

    name: str = "lsmkit.InternalKeyComparator"

    def compare(self, a: BytesLike, b: BytesLike) -> int:
        """Return a negative, zero or positive number as ``a`` sorts before, with or after ``b``."""
        order = _sign(extract_user_key(a), extract_user_key(b))
        if order:
            return order
        return _sign(extract_trailer(b).to_bytes(8, "big"), extract_trailer(a).to_bytes(8, "big"))

    def same_key(self, a: BytesLike, b: BytesLike) -> bool:
        """Return True if both internal keys carry the same user key."""
        return extract_user_key(a) == extract_user_key(b)

    def compare_user_key(self, a: BytesLike, b: BytesLike) -> int:
        """Compare two plain user keys bytewise."""
        return _sign(bytes(a), bytes(b))