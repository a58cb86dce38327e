"""String commands."""

from __future__ import annotations

import re
import time

from memkv.keyspace import (
    DB,
    OK,
    CommandSyntaxError,
    ReplyError,
    WrongTypeError,
    _encode,
    read_first_key,
    read_all_keys,
    register_command,
    rollback_first_key,
    rollback_given_keys,
    write_first_key,
)

_INT = re.compile(rb"[+-]?[0-9]+")
_INT_ERROR = "ERR value is not an integer or out of range"


def _parse_int(raw: bytes):
    if not _INT.fullmatch(raw):
        return None
    value = int(raw)
    if not -(2**63) <= value < 2**63:
        return None
    return value


def _get_as_string(db: DB, key):
    value = db.get_entity(key)
    if value is None:
        return None
    if not isinstance(value, bytes):
        raise WrongTypeError()
    return value


def _expire_line(key: bytes, expire_at: float) -> list[bytes]:
    return [b"PEXPIREAT", key, str(int(expire_at * 1000)).encode()]


def _parse_ttl(options, unit: int, command: str) -> int:
    raw = next(options, None)
    if raw is None:
        raise CommandSyntaxError()
    value = _parse_int(raw)
    if value is None:
        raise CommandSyntaxError()
    if value <= 0:
        raise ReplyError(f"ERR invalid expire time in {command}")
    return value * unit


def _exec_get(db: DB, args):
    return _get_as_string(db, args[0])


def _exec_getex(db: DB, args):
    key = args[0]
    value = _get_as_string(db, key)
    if value is None:
        return None
    ttl = 0
    options = iter(args[1:])
    for raw in options:
        option = raw.upper()
        if option in (b"EX", b"PX"):
            if ttl:
                raise CommandSyntaxError()
            ttl = _parse_ttl(options, 1000 if option == b"EX" else 1, "getex")
        elif option == b"PERSIST":
            if ttl:
                raise CommandSyntaxError()
            db.persist(key)
    if len(args) > 1:
        if ttl:
            expire_at = time.time() + ttl / 1000
            db.expire(key, expire_at)
            db.on_write(_expire_line(key, expire_at))
        else:
            db.persist(key)
            db.on_write([b"persist", key])
    return value


def _exec_set(db: DB, args):
    key, value = args[0], args[1]
    policy = "upsert"
    ttl = 0
    options = iter(args[2:])
    for raw in options:
        option = raw.upper()
        if option == b"NX":
            if policy == "update":
                raise CommandSyntaxError()
            policy = "insert"
        elif option == b"XX":
            if policy == "insert":
                raise CommandSyntaxError()
            policy = "update"
        elif option in (b"EX", b"PX"):
            if ttl:
                raise CommandSyntaxError()
            ttl = _parse_ttl(options, 1000 if option == b"EX" else 1, "set")
        else:
            raise CommandSyntaxError()
    if policy == "insert":
        result = db.put_if_absent(key, value)
    elif policy == "update":
        result = db.put_if_exists(key, value)
    else:
        db.put_entity(key, value)
        result = 1
    if not result:
        return None
    if ttl:
        expire_at = time.time() + ttl / 1000
        db.expire(key, expire_at)
        db.on_write([b"SET", key, value])
        db.on_write(_expire_line(key, expire_at))
    else:
        db.persist(key)
        db.on_write([b"set", *args])
    return OK


def _exec_setnx(db: DB, args):
    result = db.put_if_absent(args[0], args[1])
    db.on_write([b"setnx", *args])
    return result


def _set_with_ttl(db: DB, args, unit: int):
    key, value = args[0], args[2]
    ttl = _parse_int(args[1])
    if ttl is None:
        raise CommandSyntaxError()
    if ttl <= 0:
        raise ReplyError("ERR invalid expire time in setex")
    db.put_entity(key, value)
    expire_at = time.time() + ttl * unit / 1000
    db.expire(key, expire_at)
    db.on_write([b"setex", *args])
    db.on_write(_expire_line(key, expire_at))
    return OK


def _exec_setex(db: DB, args):
    return _set_with_ttl(db, args, 1000)


def _exec_psetex(db: DB, args):
    return _set_with_ttl(db, args, 1)


def prepare_mset(args):
    return [args[i].decode("utf-8", "surrogateescape") for i in range(0, len(args) - 1, 2)], []


def undo_mset(db, args):
    write_keys, _ = prepare_mset(args)
    return rollback_given_keys(db, *write_keys)


def prepare_mget(args):
    return read_all_keys(args)


def _pairs(args):
    if len(args) % 2:
        raise CommandSyntaxError()
    return list(zip(args[::2], args[1::2]))


def _exec_mset(db: DB, args):
    for key, value in _pairs(args):
        db.put_entity(key, value)
    db.on_write([b"mset", *args])
    return OK


def _exec_mget(db: DB, args):
    result = []
    for key in args:
        try:
            result.append(_get_as_string(db, key))
        except WrongTypeError:
            result.append(None)
    return result


def _exec_msetnx(db: DB, args):
    pairs = _pairs(args)
    if any(db.get_entity(key) is not None for key, _ in pairs):
        return 0
    for key, value in pairs:
        db.put_entity(key, value)
    db.on_write([b"msetnx", *args])
    return 1


def _exec_getset(db: DB, args):
    old = _get_as_string(db, args[0])
    db.put_entity(args[0], args[1])
    db.persist(args[0])
    db.on_write([b"set", *args])
    return old


def _exec_getdel(db: DB, args):
    old = _get_as_string(db, args[0])
    if old is None:
        return None
    db.remove(args[0])
    db.on_write([b"del", *args])
    return old


def _exec_strlen(db: DB, args):
    value = _get_as_string(db, args[0])
    return 0 if value is None else len(value)


def _exec_append(db: DB, args):
    value = (_get_as_string(db, args[0]) or b"") + args[1]
    db.put_entity(args[0], value)
    db.on_write([b"append", *args])
    return len(value)


def _exec_setrange(db: DB, args):
    offset = _parse_int(args[1])
    if offset is None:
        raise ReplyError(_INT_ERROR)
    if offset < 0:
        raise ReplyError("ERR offset is out of range")
    chunk = args[2]
    current = _get_as_string(db, args[0]) or b""
    if len(current) < offset:
        current += bytes(offset - len(current))
    value = current[:offset] + chunk + current[offset + len(chunk):]
    db.put_entity(args[0], value)
    db.on_write([b"setRange", *args])
    return len(value)


def _exec_randomkey(db: DB, args):
    keys = db.random_keys(1)
    return _encode(keys[0]) if keys else None


register_command("Set", _exec_set, write_first_key, rollback_first_key, -3, True)
register_command("SetNx", _exec_setnx, write_first_key, rollback_first_key, 3, True)
register_command("SetEX", _exec_setex, write_first_key, rollback_first_key, 4, True)
register_command("PSetEX", _exec_psetex, write_first_key, rollback_first_key, 4, True)
register_command("MSet", _exec_mset, prepare_mset, undo_mset, -3, True)
register_command("MGet", _exec_mget, prepare_mget, None, -2, False)
register_command("MSetNX", _exec_msetnx, prepare_mset, undo_mset, -3, True)
register_command("Get", _exec_get, read_first_key, None, 2, False)
register_command("GetEX", _exec_getex, write_first_key, rollback_first_key, -2, False)
register_command("GetSet", _exec_getset, write_first_key, rollback_first_key, 3, True)
register_command("GetDel", _exec_getdel, write_first_key, rollback_first_key, 2, True)
register_command("StrLen", _exec_strlen, read_first_key, None, 2, False)
register_command("Append", _exec_append, write_first_key, rollback_first_key, 3, True)
register_command("SetRange", _exec_setrange, write_first_key, rollback_first_key, 4, True)
register_command("Randomkey", _exec_randomkey, read_all_keys, None, 1, False)