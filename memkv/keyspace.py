"""Keyspace storage, command registry and rollback helpers."""

from __future__ import annotations

import math
import random
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Iterator, Optional

WRONG_TYPE_MESSAGE = "WRONGTYPE Operation against a key holding the wrong kind of value"


class ReplyError(Exception):
    """An error reply sent back to the client."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class WrongTypeError(ReplyError):
    """The key holds a value of another type."""

    def __init__(self) -> None:
        super().__init__(WRONG_TYPE_MESSAGE)


class CommandSyntaxError(ReplyError):
    """The command's options are malformed."""

    def __init__(self) -> None:
        super().__init__("ERR syntax error")


class ArityError(ReplyError):
    """The command got the wrong number of arguments."""

    def __init__(self, command: str) -> None:
        super().__init__(f"ERR wrong number of arguments for '{command}' command")
        self.command = command


class Status(str):
    """A simple status reply such as OK or PONG."""

    def __repr__(self) -> str:
        return f"Status({str.__repr__(self)})"


OK = Status("OK")

CmdLine = list
Prepare = Callable[[list], tuple]
Executor = Callable[["DB", list], Any]
Undo = Callable[["DB", list], list]


@dataclass(frozen=True)
class Command:
    """A registered command and how to run, lock and undo it."""

    name: str
    executor: Executor
    prepare: Optional[Prepare]
    undo: Optional[Undo]
    arity: int
    write: bool


_COMMANDS: dict[str, Command] = {}


def _encode(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode("utf-8", "surrogateescape")
    return str(value).encode()


def _key(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", "surrogateescape")
    return str(value)


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def register_command(name, executor, prepare, undo, arity, write) -> Command:
    """Register a command under its lower-case name."""
    command = Command(name.lower(), executor, prepare, undo, arity, write)
    _COMMANDS[command.name] = command
    return command


def lookup_command(name) -> Optional[Command]:
    """Return the command registered under name, in any case."""
    return _COMMANDS.get(_key(name).lower())


def validate_arity(arity: int, cmd_line) -> bool:
    """Check the length of a command line, name included, against an arity."""
    if arity >= 0:
        return len(cmd_line) == arity
    return len(cmd_line) >= -arity


def read_first_key(args):
    return [], [_key(args[0])]


def write_first_key(args):
    return [_key(args[0])], []


def read_all_keys(args):
    return [], [_key(a) for a in args]


def write_all_keys(args):
    return [_key(a) for a in args], []


def no_prepare(args):
    return [], []


def entity_to_cmd_line(key, value) -> list[bytes]:
    """Build a command line that recreates value at key."""
    k = _encode(key)
    if isinstance(value, (bytes, bytearray)):
        return [b"SET", k, bytes(value)]
    if isinstance(value, (set, frozenset)):
        return [b"SADD", k, *(_encode(m) for m in value)]
    if isinstance(value, dict):
        line = [b"HSET", k]
        for field, item in value.items():
            line += [_encode(field), _encode(item)]
        return line
    if isinstance(value, list):
        return [b"RPUSH", k, *(_encode(v) for v in value)]
    line = [b"ZADD", k]
    for element in value:
        line += [_format_float(element.score).encode(), _encode(element.member)]
    return line


def _ttl_cmd_line(db: "DB", key: str) -> list[bytes]:
    expire_at = db.expiration(key)
    if expire_at is None:
        return [b"PERSIST", _encode(key)]
    return [b"PEXPIREAT", _encode(key), str(int(expire_at * 1000)).encode()]


def rollback_given_keys(db: "DB", *args) -> list[list[bytes]]:
    """Command lines that restore the given keys to their current state."""
    lines: list[list[bytes]] = []
    for raw in args:
        key = _key(raw)
        value = db.get_entity(key)
        lines.append([b"DEL", _encode(key)])
        if value is not None:
            lines.append(entity_to_cmd_line(key, value))
            lines.append(_ttl_cmd_line(db, key))
    return lines


def rollback_first_key(db: "DB", args) -> list[list[bytes]]:
    return rollback_given_keys(db, args[0])


class DB:
    """One numbered database: values, expirations and key versions."""

    def __init__(self, index: int = 0) -> None:
        self.index = index
        self._data: dict[str, Any] = {}
        self._ttl: dict[str, float] = {}
        self._versions: dict[str, int] = {}
        self._lock = threading.RLock()
        self.on_write: Callable[[list], None] = lambda line: None

    def __len__(self) -> int:
        return len(self._data)

    def exec(self, cmd_line):
        """Run a normal command, taking its locks and bumping versions."""
        line = [_encode(a) for a in cmd_line]
        if not line:
            raise ReplyError("ERR empty command")
        name = _key(line[0]).lower()
        command = _COMMANDS.get(name)
        if command is None:
            raise ReplyError(f"ERR unknown command '{name}'")
        if not validate_arity(command.arity, line):
            raise ArityError(name)
        write_keys, read_keys = (command.prepare or no_prepare)(line[1:])
        if write_keys:
            self.add_version(*write_keys)
        with self.locked(write_keys, read_keys):
            return command.executor(self, line[1:])

    def exec_with_lock(self, cmd_line):
        """Run a command whose locks the caller already holds."""
        line = [_encode(a) for a in cmd_line]
        name = _key(line[0]).lower()
        command = _COMMANDS.get(name)
        if command is None:
            raise ReplyError(f"ERR unknown command '{name}'")
        return command.executor(self, line[1:])

    def _expired(self, key: str) -> bool:
        expire_at = self._ttl.get(key)
        if expire_at is not None and expire_at <= time.time():
            self._data.pop(key, None)
            self._ttl.pop(key, None)
            return True
        return False

    def get_entity(self, key):
        """Return the live value at key, or None."""
        key = _key(key)
        if self._expired(key):
            return None
        return self._data.get(key)

    def put_entity(self, key, value) -> int:
        key = _key(key)
        fresh = self.get_entity(key) is None
        self._data[key] = value
        return 1 if fresh else 0

    def put_if_absent(self, key, value) -> int:
        if self.get_entity(key) is not None:
            return 0
        self._data[_key(key)] = value
        return 1

    def put_if_exists(self, key, value) -> int:
        if self.get_entity(key) is None:
            return 0
        self._data[_key(key)] = value
        return 1

    def remove(self, *args) -> int:
        """Delete keys and their expirations; return how many existed."""
        removed = 0
        for raw in args:
            key = _key(raw)
            if self.get_entity(key) is not None:
                removed += 1
            self._data.pop(key, None)
            self._ttl.pop(key, None)
        return removed

    def expire(self, key, expire_at: float) -> None:
        """Set the expiration of key as epoch seconds."""
        self._ttl[_key(key)] = expire_at

    def persist(self, key) -> None:
        self._ttl.pop(_key(key), None)

    def expiration(self, key) -> Optional[float]:
        return self._ttl.get(_key(key))

    def get_version(self, key) -> int:
        return self._versions.get(_key(key), 0)

    def add_version(self, *args) -> None:
        for raw in args:
            key = _key(raw)
            self._versions[key] = self._versions.get(key, 0) + 1

    def random_keys(self, count: int) -> list[str]:
        """Pick count keys at random, repeats allowed."""
        if not self._data or count <= 0:
            return []
        return random.choices(list(self._data), k=count)

    def flush(self) -> None:
        self._data.clear()
        self._ttl.clear()

    def items(self) -> Iterator[tuple[str, Any, Optional[float]]]:
        """Yield (key, value, expiration) for every live key."""
        for key in list(self._data):
            if not self._expired(key):
                yield key, self._data[key], self._ttl.get(key)

    def expiring_count(self) -> int:
        return len(self._ttl)

    def get_undo_logs(self, cmd_line) -> list:
        command = lookup_command(cmd_line[0])
        if command is None or command.undo is None:
            return []
        return command.undo(self, [_encode(a) for a in cmd_line[1:]])

    @contextmanager
    def locked(self, write_keys, read_keys):
        """Hold the database lock for the given keys."""
        with self._lock:
            yield self


def _exec_del(db: DB, args):
    removed = db.remove(*args)
    if removed:
        db.on_write([b"del", *args])
    return removed


def _exec_pexpireat(db: DB, args):
    try:
        millis = int(args[1])
    except ValueError:
        raise ReplyError("ERR value is not an integer or out of range") from None
    if db.get_entity(args[0]) is None:
        return 0
    db.expire(args[0], millis / 1000)
    db.on_write([b"pexpireat", *args])
    return 1


def _exec_persist(db: DB, args):
    if db.get_entity(args[0]) is None or db.expiration(args[0]) is None:
        return 0
    db.persist(args[0])
    db.on_write([b"persist", args[0]])
    return 1


def _remaining(db: DB, key) -> Optional[float]:
    if db.get_entity(key) is None:
        return None
    expire_at = db.expiration(key)
    return -1.0 if expire_at is None else expire_at - time.time()


def _exec_ttl(db: DB, args):
    left = _remaining(db, args[0])
    if left is None:
        return -2
    return -1 if left < 0 else int(left)


def _exec_pttl(db: DB, args):
    left = _remaining(db, args[0])
    if left is None:
        return -2
    return -1 if left < 0 else int(left * 1000)


def _exec_type(db: DB, args):
    value = db.get_entity(args[0])
    if value is None:
        return Status("none")
    if isinstance(value, (bytes, bytearray)):
        return Status("string")
    if isinstance(value, (set, frozenset)):
        return Status("set")
    if isinstance(value, dict):
        return Status("hash")
    if isinstance(value, list):
        return Status("list")
    return Status("zset")


register_command("Del", _exec_del, write_all_keys, lambda db, a: rollback_given_keys(db, *a), -2, True)
register_command("PExpireAt", _exec_pexpireat, write_first_key, rollback_first_key, 3, True)
register_command("Persist", _exec_persist, write_first_key, rollback_first_key, 2, True)
register_command("TTL", _exec_ttl, read_first_key, None, 2, False)
register_command("PTTL", _exec_pttl, read_first_key, None, 2, False)
register_command("Type", _exec_type, read_first_key, None, 2, False)