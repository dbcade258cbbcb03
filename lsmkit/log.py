"""Write-ahead log records framed into fixed-size blocks.

Each physical record carries a seven byte header: a masked CRC32C (4 bytes,
little endian), the payload length (2 bytes, little endian) and the record
type (1 byte). A logical record that does not fit in the rest of a block is
split into FIRST/MIDDLE/LAST fragments. Block tails too short to hold a
header are filled with zeros.
"""

from __future__ import annotations

import io
import os
import struct
from enum import IntEnum
from typing import BinaryIO, Iterator, Optional, Tuple

HEADER_SIZE = 4 + 2 + 1
RECYCLABLE_HEADER_SIZE = 4 + 2 + 1 + 4
BLOCK_SIZE = 32768
LOG_PADDING = bytes(10)

_MAX_FRAGMENT = 0xFFFF
_HEADER = struct.Struct("<IHB")
_MASK_DELTA = 0xA282EAD8
_U32 = 0xFFFFFFFF


def _make_crc_table() -> Tuple[int, ...]:
    poly = 0x82F63B78
    table = []
    for n in range(256):
        crc = n
        for _ in range(8):
            crc = (crc >> 1) ^ poly if crc & 1 else crc >> 1
        table.append(crc)
    return tuple(table)


_CRC_TABLE = _make_crc_table()


def crc32c(data: bytes, crc: int = 0) -> int:
    """Return the CRC32C of ``data``, continuing from a previous ``crc``."""
    crc ^= _U32
    table = _CRC_TABLE
    for byte in bytes(data):
        crc = table[(crc ^ byte) & 0xFF] ^ (crc >> 8)
    return crc ^ _U32


def crc_mask(crc: int) -> int:
    """Return the masked form of ``crc`` that is stored in record headers."""
    rotated = ((crc >> 15) | (crc << 17)) & _U32
    return (rotated + _MASK_DELTA) & _U32


class RecordType(IntEnum):
    """Physical record types."""

    ZERO = 0  # reserved for preallocated files
    FULL = 1
    FIRST = 2
    MIDDLE = 3
    LAST = 4
    RECYCLABLE_FULL = 5
    RECYCLABLE_LAST = 8
    UNKNOWN = 127

    @classmethod
    def from_byte(cls, value: int) -> "RecordType":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class RecordError(IntEnum):
    """Reasons a physical read yields no fragment."""

    EOF = 9
    BAD_RECORD = 10
    BAD_HEADER = 11
    OLD_RECORD = 12
    BAD_RECORD_LEN = 13
    BAD_RECORD_CHECKSUM = 14
    UNKNOWN = 127

    @classmethod
    def from_byte(cls, value: int) -> "RecordError":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class LogReadError(Exception):
    """Raised when a log file cannot be decoded."""


class LogWriter:
    """Appends records to a binary file in the block-framed log format."""

    def __init__(self, file: BinaryIO, log_number: int = 0, block_size: int = BLOCK_SIZE):
        if not HEADER_SIZE < block_size <= _MAX_FRAGMENT + HEADER_SIZE:
            raise ValueError(f"unsupported block size {block_size}")
        self._file = file
        self.log_number = log_number
        self.block_size = block_size
        self.file_size = 0
        self._block_offset = 0
        self._type_crc = {kind: crc32c(bytes([kind])) for kind in range(RecordType.LAST + 1)}

    def add_record(self, data: bytes) -> None:
        """Append one logical record, fragmenting it across blocks as needed.

        An empty record writes nothing.
        """
        payload = bytes(data)
        left = len(payload)
        offset = 0
        begin = True
        while left > 0:
            leftover = self.block_size - self._block_offset
            if leftover < HEADER_SIZE:
                if leftover > 0:
                    self._write(LOG_PADDING[:leftover])
                self._block_offset = 0
            avail = self.block_size - self._block_offset - HEADER_SIZE
            fragment_length = min(left, avail)
            last = left == fragment_length
            if begin:
                kind = RecordType.FULL if last else RecordType.FIRST
            else:
                kind = RecordType.LAST if last else RecordType.MIDDLE
            self._emit_physical_record(kind, payload[offset : offset + fragment_length])
            offset += fragment_length
            left -= fragment_length
            begin = False
        self._file.flush()

    def sync(self) -> None:
        """Flush buffered data and force it to stable storage when possible."""
        self._file.flush()
        try:
            fd = self._file.fileno()
        except (OSError, AttributeError, io.UnsupportedOperation):
            return
        os.fsync(fd)

    def _emit_physical_record(self, kind: RecordType, fragment: bytes) -> None:
        crc = crc_mask(crc32c(fragment, self._type_crc[kind]))
        self._write(_HEADER.pack(crc, len(fragment), kind))
        self._write(fragment)
        self._block_offset += HEADER_SIZE + len(fragment)

    def _write(self, chunk: bytes) -> None:
        self._file.write(chunk)
        self.file_size += len(chunk)


class LogReader:
    """Reads logical records back from a block-framed log file.

    Checksums are not verified.
    """

    def __init__(self, file: BinaryIO, block_size: int = BLOCK_SIZE):
        if block_size <= HEADER_SIZE:
            raise ValueError(f"unsupported block size {block_size}")
        self._file = file
        self.block_size = block_size
        self.end_of_buffer_offset = 0
        self._buffer = b""
        self._offset = 0
        self._eof = False

    def read_record(self) -> Optional[bytes]:
        """Return the next logical record, or None at the end of the log."""
        fragments: list = []
        in_fragmented_record = False
        while True:
            fragment, kind = self._read_physical_record()
            if kind < RecordType.RECYCLABLE_LAST:
                if kind == RecordType.ZERO:
                    continue
                if kind == RecordType.FULL:
                    fragments.append(fragment)
                    return b"".join(fragments)
                if kind == RecordType.FIRST:
                    in_fragmented_record = True
                    fragments = [fragment]
                elif kind in (RecordType.MIDDLE, RecordType.LAST):
                    if not in_fragmented_record:
                        raise LogReadError(
                            f"missing start of fragmented record({len(fragment)})"
                        )
                    fragments.append(fragment)
                    if kind == RecordType.LAST:
                        return b"".join(fragments)
                else:
                    raise LogReadError("not support open recycle log")
            else:
                error = RecordError.from_byte(kind)
                if error in (
                    RecordError.BAD_RECORD,
                    RecordError.BAD_RECORD_LEN,
                    RecordError.BAD_RECORD_CHECKSUM,
                    RecordError.OLD_RECORD,
                ):
                    if in_fragmented_record:
                        fragments = []
                        in_fragmented_record = False
                    continue
                return None

    def __iter__(self) -> Iterator[bytes]:
        while (record := self.read_record()) is not None:
            yield record

    def _read_physical_record(self) -> Tuple[bytes, int]:
        while True:
            if len(self._buffer) - self._offset < HEADER_SIZE:
                if not self._read_more():
                    return b"", RecordError.EOF
                continue
            buf = self._buffer
            start = self._offset
            length = buf[start + 4] | (buf[start + 5] << 8)
            kind = buf[start + 6]
            if kind >= RecordType.RECYCLABLE_FULL:
                raise LogReadError("not support open recycle log")
            if length + HEADER_SIZE > len(buf) - start:
                self._reset()
                if not self._eof:
                    raise LogReadError("read log header error")
                return b"", RecordError.EOF
            if kind == RecordType.ZERO and length == 0:
                # Preallocated space: skip what is left of this block.
                self._offset = len(buf)
                return b"", RecordError.BAD_RECORD
            begin = start + HEADER_SIZE
            self._offset = begin + length
            return buf[begin : begin + length], kind

    def _read_more(self) -> bool:
        if self._eof:
            self._reset()
            return False
        try:
            chunk = self._file.read(self.block_size) or b""
        except OSError:
            return False
        self.end_of_buffer_offset += len(chunk)
        self._buffer = bytes(chunk)
        self._offset = 0
        if len(chunk) < self.block_size:
            self._eof = True
        return True

    def _reset(self) -> None:
        self._buffer = b""
        self._offset = 0