"""Range reads and bit commands on string values."""

from __future__ import annotations

from typing import Optional

from memkv.keyspace import (
    DB,
    CommandSyntaxError,
    ReplyError,
    read_first_key,
    register_command,
    rollback_first_key,
    write_first_key,
)
from memkv.strings import _INT_ERROR, _get_as_string, _parse_int

_OFFSET_ERROR = "ERR bit offset is not an integer or out of range"
_BIT_ERROR = "ERR bit is not an integer or out of range"


def convert_range(start: int, end: int, size: int) -> Optional[tuple[int, int]]:
    """Turn an inclusive, possibly negative range into a half-open one.

    Returns None when the range falls outside a sequence of the given size.
    """
    if start < -size:
        return None
    if start < 0:
        start += size
    elif start >= size:
        return None
    if end < -size:
        return None
    if end < 0:
        end = size + end + 1
    elif end < size:
        end += 1
    else:
        end = size
    if start > end:
        return None
    return start, end


def _get_bit(data: bytes, offset: int) -> int:
    index, shift = divmod(offset, 8)
    if index >= len(data):
        return 0
    return (data[index] >> shift) & 1


def _with_bit(data: bytes, offset: int, bit: int) -> bytes:
    index, shift = divmod(offset, 8)
    buffer = bytearray(data)
    if index >= len(buffer):
        buffer.extend(bytes(index + 1 - len(buffer)))
    if bit:
        buffer[index] |= 1 << shift
    else:
        buffer[index] &= ~(1 << shift) & 0xFF
    return bytes(buffer)


def _parse_bit(raw: bytes) -> int:
    if raw == b"1":
        return 1
    if raw == b"0":
        return 0
    raise ReplyError(_BIT_ERROR)


def _parse_offset(raw: bytes) -> int:
    offset = _parse_int(raw)
    if offset is None or offset < 0:
        raise ReplyError(_OFFSET_ERROR)
    return offset


def _parse_index(raw: bytes) -> int:
    value = _parse_int(raw)
    if value is None:
        raise ReplyError(_INT_ERROR)
    return value


def _byte_mode(raw: bytes) -> bool:
    mode = raw.lower()
    if mode == b"bit":
        return False
    if mode == b"byte":
        return True
    raise CommandSyntaxError()


def _exec_getrange(db: DB, args):
    start = _parse_index(args[1])
    end = _parse_index(args[2])
    value = _get_as_string(db, args[0])
    if value is None:
        return None
    bounds = convert_range(start, end, len(value))
    if bounds is None:
        return None
    return value[bounds[0]:bounds[1]]


def _exec_setbit(db: DB, args):
    offset = _parse_offset(args[1])
    bit = _parse_bit(args[2])
    current = _get_as_string(db, args[0]) or b""
    former = _get_bit(current, offset)
    db.put_entity(args[0], _with_bit(current, offset, bit))
    db.on_write([b"setBit", *args])
    return former


def _exec_getbit(db: DB, args):
    offset = _parse_offset(args[1])
    current = _get_as_string(db, args[0])
    if current is None:
        return 0
    return _get_bit(current, offset)


def _window(args, size: int):
    """Parse an optional start/end pair; None means the range is empty."""
    if not args:
        return 0, size
    if len(args) < 2:
        raise CommandSyntaxError()
    start = _parse_index(args[0])
    end = _parse_index(args[1])
    return convert_range(start, end, size)


def _exec_bitcount(db: DB, args):
    value = _get_as_string(db, args[0])
    if value is None:
        return 0
    byte_mode = _byte_mode(args[3]) if len(args) > 3 else True
    size = len(value) if byte_mode else len(value) * 8
    bounds = _window(args[1:3], size)
    if bounds is None:
        return 0
    beg, end = bounds
    if byte_mode:
        return sum(b.bit_count() for b in value[beg:end])
    return sum(_get_bit(value, o) for o in range(beg, end))


def _exec_bitpos(db: DB, args):
    value = _get_as_string(db, args[0])
    if value is None:
        return -1
    bit = _parse_bit(args[1])
    byte_mode = _byte_mode(args[4]) if len(args) > 4 else True
    size = len(value) if byte_mode else len(value) * 8
    bounds = _window(args[2:4], size)
    if bounds is None:
        return 0
    beg, end = bounds
    if byte_mode:
        beg, end = beg * 8, end * 8
    return next((o for o in range(beg, end) if _get_bit(value, o) == bit), -1)


register_command("GetRange", _exec_getrange, read_first_key, None, 4, False)
register_command("SetBit", _exec_setbit, write_first_key, rollback_first_key, 4, True)
register_command("GetBit", _exec_getbit, read_first_key, None, 3, False)
register_command("BitCount", _exec_bitcount, read_first_key, None, -2, False)
register_command("BitPos", _exec_bitpos, read_first_key, None, -3, False)