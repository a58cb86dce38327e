"""Client session state and MULTI/EXEC/WATCH transactions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from memkv.keyspace import (
    DB,
    OK,
    ArityError,
    ReplyError,
    Status,
    _encode,
    _key,
    lookup_command,
    read_all_keys,
    register_command,
    validate_arity,
)

QUEUED = Status("QUEUED")
_EXEC_ABORT = "EXECABORT Transaction discarded because of previous errors."


@dataclass
class Session:
    """Per-client state: selected database, credentials and transaction queue."""

    db_index: int = 0
    password: Optional[str] = None
    in_multi: bool = False
    queue: list = field(default_factory=list)
    tx_errors: list = field(default_factory=list)
    watching: dict = field(default_factory=dict)

    def end_multi(self) -> None:
        """Leave the transaction, dropping its queue, errors and watches."""
        self.in_multi = False
        self.queue.clear()
        self.tx_errors.clear()
        self.watching.clear()


def watch(db: DB, session: Session, keys):
    """Remember the current version of each key."""
    for raw in keys:
        key = _key(raw)
        session.watching[key] = db.get_version(key)
    return OK


def _exec_getver(db: DB, args):
    return db.get_version(args[0])


register_command("GetVer", _exec_getver, read_all_keys, None, 2, False)


def _watching_changed(db: DB, watching: dict) -> bool:
    return any(db.get_version(key) != version for key, version in watching.items())


def start_multi(session: Session):
    if session.in_multi:
        raise ReplyError("ERR MULTI calls can not be nested")
    session.in_multi = True
    return OK


def enqueue_cmd(session: Session, cmd_line):
    """Queue a command line for EXEC, recording any error against the transaction."""
    line = [_encode(a) for a in cmd_line]
    name = _key(line[0]).lower()
    command = lookup_command(name)
    if command is None:
        error = ReplyError(f"ERR unknown command '{name}'")
    elif command.prepare is None:
        error = ReplyError(f"ERR command '{name}' cannot be used in MULTI")
    elif not validate_arity(command.arity, line):
        error = ArityError(name)
    else:
        session.queue.append(line)
        return QUEUED
    session.tx_errors.append(error)
    raise error


def exec_multi(db: DB, session: Session):
    if not session.in_multi:
        raise ReplyError("ERR EXEC without MULTI")
    try:
        if session.tx_errors:
            raise ReplyError(_EXEC_ABORT)
        return run_multi(db, dict(session.watching), list(session.queue))
    finally:
        session.end_multi()


def run_multi(db: DB, watching: dict, cmd_lines):
    """Run command lines atomically, rolling back if one of them fails.

    Returns an empty list when a watched key has changed.
    """
    lines = [[_encode(a) for a in line] for line in cmd_lines]
    write_keys: list[str] = []
    read_keys: list[str] = []
    for line in lines:
        command = lookup_command(line[0])
        if command is None:
            raise ReplyError(f"ERR unknown command '{_key(line[0]).lower()}'")
        if command.prepare is not None:
            write, read = command.prepare(line[1:])
            write_keys.extend(write)
            read_keys.extend(read)
    read_keys.extend(watching)
    with db.locked(write_keys, read_keys):
        if _watching_changed(db, watching):
            return []
        results = []
        undo_logs = []
        aborted = False
        for line in lines:
            undo = db.get_undo_logs(line)
            try:
                result = db.exec_with_lock(line)
            except ReplyError:
                aborted = True
                break
            undo_logs.append(undo)
            results.append(result)
        if not aborted:
            db.add_version(*write_keys)
            return results
        for undo in reversed(undo_logs):
            for undo_line in undo:
                db.exec_with_lock(undo_line)
    raise ReplyError(_EXEC_ABORT)


def discard_multi(session: Session):
    if not session.in_multi:
        raise ReplyError("ERR DISCARD without MULTI")
    session.end_multi()
    return OK


def get_related_keys(cmd_line):
    """Return the (write, read) keys a command line touches."""
    command = lookup_command(cmd_line[0])
    if command is None or command.prepare is None:
        return [], []
    return command.prepare([_encode(a) for a in cmd_line[1:]])