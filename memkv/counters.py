"""Integer and float counter commands on string values."""

from __future__ import annotations

import re

from memkv.keyspace import (
    DB,
    ReplyError,
    _format_float,
    register_command,
    rollback_first_key,
    write_first_key,
)
from memkv.strings import _INT_ERROR, _get_as_string, _parse_int

_FLOAT_ERROR = "ERR value is not a valid float"
_FLOAT = re.compile(
    rb"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf|infinity|nan)",
    re.IGNORECASE,
)


def _wrap64(value: int) -> int:
    """Keep an integer inside the signed 64-bit range, wrapping on overflow."""
    return (value + 2**63) % 2**64 - 2**63


def _parse_float(raw: bytes):
    if not _FLOAT.fullmatch(raw):
        return None
    return float(raw)


def _adjust(db: DB, args, delta: int, name: bytes, initial: bytes) -> int:
    """Add delta to the integer at args[0], or store initial if it is missing."""
    key = args[0]
    current = _get_as_string(db, key)
    if current is None:
        db.put_entity(key, initial)
        db.on_write([name, *args])
        return int(initial)
    value = _parse_int(current)
    if value is None:
        raise ReplyError(_INT_ERROR)
    result = _wrap64(value + delta)
    db.put_entity(key, str(result).encode())
    db.on_write([name, *args])
    return result


def _parse_delta(raw: bytes) -> int:
    delta = _parse_int(raw)
    if delta is None:
        raise ReplyError(_INT_ERROR)
    return delta


def _exec_incr(db: DB, args):
    return _adjust(db, args, 1, b"incr", b"1")


def _exec_incrby(db: DB, args):
    delta = _parse_delta(args[1])
    return _adjust(db, args, delta, b"incrby", args[1])


def _exec_decr(db: DB, args):
    return _adjust(db, args, -1, b"decr", b"-1")


def _exec_decrby(db: DB, args):
    delta = _parse_delta(args[1])
    return _adjust(db, args, -delta, b"decrby", str(_wrap64(-delta)).encode())


def _exec_incrbyfloat(db: DB, args):
    key = args[0]
    delta = _parse_float(args[1])
    if delta is None:
        raise ReplyError(_FLOAT_ERROR)
    current = _get_as_string(db, key)
    if current is None:
        db.put_entity(key, args[1])
        db.on_write([b"incrbyfloat", *args])
        return args[1]
    value = _parse_float(current)
    if value is None:
        raise ReplyError(_FLOAT_ERROR)
    result = _format_float(value + delta).encode()
    db.put_entity(key, result)
    db.on_write([b"incrbyfloat", *args])
    return result


register_command("Incr", _exec_incr, write_first_key, rollback_first_key, 2, True)
register_command("IncrBy", _exec_incrby, write_first_key, rollback_first_key, 3, True)
register_command("IncrByFloat", _exec_incrbyfloat, write_first_key, rollback_first_key, 3, True)
register_command("Decr", _exec_decr, write_first_key, rollback_first_key, 2, True)
register_command("DecrBy", _exec_decrby, write_first_key, rollback_first_key, 3, True)