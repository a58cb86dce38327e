"""Set commands."""

from __future__ import annotations

import random
from fnmatch import fnmatchcase
from typing import Optional

from memkv.keyspace import (
    DB,
    ArityError,
    CommandSyntaxError,
    ReplyError,
    WrongTypeError,
    _encode,
    _key,
    read_first_key,
    register_command,
    rollback_first_key,
    write_first_key,
)
from memkv.strings import _INT_ERROR, _parse_int


def _get_as_set(db: DB, key) -> Optional[set]:
    value = db.get_entity(key)
    if value is None:
        return None
    if not isinstance(value, set):
        raise WrongTypeError()
    return value


def _get_or_init_set(db: DB, key) -> set:
    members = _get_as_set(db, key)
    if members is None:
        members = set()
        db.put_entity(key, members)
    return members


def rollback_set_members(db, key, *args) -> list[list[bytes]]:
    """Command lines that restore the given members of a set to their current state."""
    try:
        members = _get_as_set(db, key)
    except WrongTypeError:
        return []
    encoded_key = _encode(key)
    if members is None:
        return [[b"DEL", encoded_key]]
    lines = []
    for raw in args:
        member = _encode(raw)
        if member in members:
            lines.append([b"SADD", encoded_key, member])
        else:
            lines.append([b"SREM", encoded_key, member])
    return lines


def undo_set_change(db, args) -> list[list[bytes]]:
    """Undo lines for SADD, SREM and SPOP."""
    return rollback_set_members(db, args[0], *args[1:])


def prepare_set_calculate(args):
    return [], [_key(a) for a in args]


def prepare_set_calculate_store(args):
    return [_key(args[0])], [_key(a) for a in args[1:]]


def _exec_sadd(db: DB, args):
    members = _get_or_init_set(db, args[0])
    added = 0
    for member in args[1:]:
        if member not in members:
            members.add(member)
            added += 1
    db.on_write([b"sadd", *args])
    return added


def _exec_sismember(db: DB, args):
    members = _get_as_set(db, args[0])
    return 1 if members is not None and args[1] in members else 0


def _exec_srem(db: DB, args):
    members = _get_as_set(db, args[0])
    if members is None:
        return 0
    removed = 0
    for member in args[1:]:
        if member in members:
            members.discard(member)
            removed += 1
    if not members:
        db.remove(args[0])
    if removed:
        db.on_write([b"srem", *args])
    return removed


def _exec_spop(db: DB, args):
    if len(args) not in (1, 2):
        raise ArityError("spop")
    members = _get_as_set(db, args[0])
    if members is None:
        return None
    count = 1
    if len(args) == 2:
        count = _parse_int(args[1])
        if count is None or count <= 0:
            raise ReplyError("ERR value is out of range, must be positive")
    count = min(count, len(members))
    popped = random.sample(list(members), count)
    members.difference_update(popped)
    if count:
        db.on_write([b"spop", *args])
    return popped


def _exec_scard(db: DB, args):
    members = _get_as_set(db, args[0])
    return 0 if members is None else len(members)


def _exec_smembers(db: DB, args):
    members = _get_as_set(db, args[0])
    return [] if members is None else list(members)


def _sets(db: DB, keys) -> list[Optional[set]]:
    return [_get_as_set(db, key) for key in keys]


def _intersection(db: DB, keys) -> Optional[set]:
    """Intersect the sets at keys; None if any of them is missing or empty."""
    sets = []
    for key in keys:
        members = _get_as_set(db, key)
        if not members:
            return None
        sets.append(members)
    return set.intersection(*sets)


def _union(db: DB, keys) -> set:
    return set().union(*(s for s in _sets(db, keys) if s))


def _difference(db: DB, keys) -> set:
    first, *others = _sets(db, keys)
    if not first:
        return set()
    return first.difference(*(s for s in others if s))


def _exec_sinter(db: DB, args):
    result = _intersection(db, args)
    return [] if result is None else list(result)


def _exec_sinterstore(db: DB, args):
    result = _intersection(db, args[1:])
    if result is None:
        return 0
    db.put_entity(args[0], result)
    db.on_write([b"sinterstore", *args])
    return len(result)


def _exec_sunion(db: DB, args):
    return list(_union(db, args))


def _store(db: DB, args, result: set, name: bytes) -> int:
    db.remove(args[0])
    if not result:
        return 0
    db.put_entity(args[0], result)
    db.on_write([name, *args])
    return len(result)


def _exec_sunionstore(db: DB, args):
    return _store(db, args, _union(db, args[1:]), b"sunionstore")


def _exec_sdiff(db: DB, args):
    return list(_difference(db, args))


def _exec_sdiffstore(db: DB, args):
    return _store(db, args, _difference(db, args[1:]), b"sdiffstore")


def _exec_srandmember(db: DB, args):
    if len(args) not in (1, 2):
        raise ArityError("srandmember")
    members = _get_as_set(db, args[0])
    if members is None:
        return None
    pool = list(members)
    if len(args) == 1:
        return random.choice(pool)
    count = _parse_int(args[1])
    if count is None:
        raise ReplyError(_INT_ERROR)
    if count > 0:
        return random.sample(pool, min(count, len(pool)))
    if count < 0:
        return random.choices(pool, k=-count)
    return []


def _parse_scan_options(options) -> tuple[int, str]:
    count, pattern = 10, "*"
    it = iter(options)
    for raw in it:
        option = raw.lower()
        value = next(it, None)
        if value is None:
            raise CommandSyntaxError()
        if option == b"count":
            count = _parse_int(value)
            if count is None:
                raise CommandSyntaxError()
        elif option == b"match":
            pattern = _key(value)
        else:
            raise CommandSyntaxError()
    return count, pattern


def _exec_sscan(db: DB, args):
    count, pattern = _parse_scan_options(args[2:])
    members = _get_as_set(db, args[0])
    if members is None:
        return []
    if len(args) < 2:
        raise ReplyError("ERR invalid cursor")
    cursor = _parse_int(args[1])
    if cursor is None:
        raise ReplyError("ERR invalid cursor")
    if cursor < 0 or count <= 0:
        raise ReplyError("Invalid argument")
    ordered = sorted(members)
    window = ordered[cursor:cursor + count]
    following = cursor + count
    next_cursor = following if following < len(ordered) else 0
    matched = [m for m in window if fnmatchcase(_key(m), pattern)]
    return [str(next_cursor).encode(), matched]


register_command("SAdd", _exec_sadd, write_first_key, undo_set_change, -3, True)
register_command("SIsMember", _exec_sismember, read_first_key, None, 3, False)
register_command("SRem", _exec_srem, write_first_key, undo_set_change, -3, True)
register_command("SPop", _exec_spop, write_first_key, undo_set_change, -2, True)
register_command("SCard", _exec_scard, read_first_key, None, 2, False)
register_command("SMembers", _exec_smembers, read_first_key, None, 2, False)
register_command("SInter", _exec_sinter, prepare_set_calculate, None, -2, False)
register_command("SInterStore", _exec_sinterstore, prepare_set_calculate_store, rollback_first_key, -3, True)
register_command("SUnion", _exec_sunion, prepare_set_calculate, None, -2, False)
register_command("SUnionStore", _exec_sunionstore, prepare_set_calculate_store, rollback_first_key, -3, True)
register_command("SDiff", _exec_sdiff, prepare_set_calculate, None, -2, False)
register_command("SDiffStore", _exec_sdiffstore, prepare_set_calculate_store, rollback_first_key, -3, True)
register_command("SRandMember", _exec_srandmember, read_first_key, None, -2, False)
register_command("SScan", _exec_sscan, read_first_key, None, -2, False)