# memkv

`memkv` is an embeddable, in-memory key-value database. A `DB` holds
strings, sets and sorted sets, with per-key expiry, and runs commands given
the way a client would send them: a list of arguments with the command name
first. Command names are case-insensitive. On top of it, `memkv.transaction`
provides optimistic `WATCH`/`MULTI`/`EXEC` transactions that roll back when
a command fails.

## Registering commands

Each command module registers its commands when it is imported. `memkv.keyspace`
alone knows only the generic key commands; import the modules whose commands
you want:

```python
import memkv.strings    # SET, GET, MSET, ...
import memkv.counters   # INCR, INCRBY, INCRBYFLOAT, DECR, DECRBY
import memkv.bits       # GETRANGE, SETBIT, GETBIT, BITCOUNT, BITPOS
import memkv.sets       # SADD, SREM, SINTER, ...
import memkv.zsets      # ZADD, ZSCORE, ZRANK, ...
import memkv.transaction  # GETVER, plus the transaction functions
```

## Using a database

```python
import memkv.strings
import memkv.counters
import memkv.sets
from memkv.keyspace import DB

db = DB()
db.exec([b"SET", b"greeting", b"hello", b"EX", b"60"])
db.exec([b"GET", b"greeting"])            # b"hello"
db.exec([b"TTL", b"greeting"])            # seconds left, e.g. 59
db.exec([b"INCR", b"counter"])            # 1
db.exec([b"SADD", b"colours", b"red", b"blue"])  # 2
db.exec([b"TYPE", b"colours"])            # Status("set")
len(db)                                   # 3
```

Replies are plain Python values: `bytes` for bulk strings, `int` for
integers, `None` for a missing value, lists for multi-part replies, and
`memkv.keyspace.Status` (a `str`) for status replies such as `OK`.

Errors a client would see as error replies are raised as subclasses of
`memkv.keyspace.ReplyError`, whose `message` is the reply text:
`WrongTypeError`, `CommandSyntaxError` and `ArityError` among them. Unknown
commands and bad arguments raise `ReplyError` as well.

`DB` also offers direct access to its contents: `get_entity`, `put_entity`,
`put_if_absent`, `put_if_exists`, `remove`, `expire`, `persist`,
`expiration`, `random_keys`, `items`, `expiring_count` and `flush`.
Expired keys are dropped lazily, when they are next looked at. Every write
is also passed, as a command line, to `db.on_write`, which does nothing
unless you replace it.

## Transactions

```python
import memkv.counters
import memkv.strings
from memkv.keyspace import DB
from memkv.transaction import Session, watch, start_multi, enqueue_cmd, exec_multi

db = DB()
session = Session()

watch(db, session, [b"balance"])
start_multi(session)
enqueue_cmd(session, [b"INCRBY", b"balance", b"10"])   # Status("QUEUED")
enqueue_cmd(session, [b"SET", b"last", b"deposit"])
exec_multi(db, session)                                # [10, Status("OK")]
```

`enqueue_cmd` checks that the command exists, can be used in a transaction
and has the right number of arguments; otherwise it raises, and the later
`exec_multi` raises `ReplyError("EXECABORT ...")`. If a watched key was
written after `watch`, `exec_multi` runs nothing and returns `[]`. If a
command fails while the transaction runs, the commands that already ran are
undone and `EXECABORT` is raised. `discard_multi` drops the queue;
`run_multi` runs a list of command lines against given watch versions
directly, and `get_related_keys` reports the keys a command line writes and
reads.

## Sorted sets

`memkv.zsets.SortedSet` orders members by score, then by member bytes. Besides
the `ZADD`, `ZSCORE`, `ZINCRBY`, `ZRANK`, `ZREVRANK`, `ZCARD`, `ZPOPMIN`,
`ZREM` and `ZSCAN` commands, it can be queried by score or lexicographic
range from Python:

```python
from memkv.zsets import SortedSet, parse_score_border, parse_lex_border

zset = SortedSet()
zset.add(b"a", 1.0)
zset.add(b"b", 2.0)
zset.range(parse_score_border("(1"), parse_score_border("+inf"))  # [Element(b"b", 2.0)]
zset.count(parse_lex_border("-"), parse_lex_border("+"))          # 2
```

## Supported commands

- Keys: `DEL`, `PEXPIREAT`, `PERSIST`, `TTL`, `PTTL`, `TYPE`
- Strings: `SET` (with `NX`, `XX`, `EX`, `PX`), `GET`, `GETEX`, `GETSET`,
  `GETDEL`, `SETNX`, `SETEX`, `PSETEX`, `MSET`, `MSETNX`, `MGET`, `STRLEN`,
  `APPEND`, `SETRANGE`, `RANDOMKEY`
- Counters: `INCR`, `INCRBY`, `INCRBYFLOAT`, `DECR`, `DECRBY`
- Bits and ranges: `GETRANGE`, `SETBIT`, `GETBIT`, `BITCOUNT`, `BITPOS`
- Sets: `SADD`, `SREM`, `SISMEMBER`, `SCARD`, `SMEMBERS`, `SPOP`,
  `SRANDMEMBER`, `SINTER`, `SINTERSTORE`, `SUNION`, `SUNIONSTORE`, `SDIFF`,
  `SDIFFSTORE`, `SSCAN`
- Sorted sets: `ZADD`, `ZSCORE`, `ZINCRBY`, `ZRANK`, `ZREVRANK`, `ZCARD`,
  `ZPOPMIN`, `ZREM`, `ZSCAN`
- Versions: `GETVER`

## What it does not do

- There is no network server: nothing listens on a socket or speaks a wire
  protocol. `DB` is used from Python directly.
- There is no server layer over several databases, so no `SELECT`,
  `DBSIZE`, `FLUSHDB`, `FLUSHALL`, `PING`, `AUTH` or `INFO` commands, and no
  password checking. `Session.db_index` and `Session.password` are stored but
  not acted on.
- Sorted-set range commands (`ZRANGE`, `ZREVRANGE`, `ZRANGEBYSCORE`,
  `ZCOUNT`, `ZRANGEBYLEX`, `ZLEXCOUNT`, `ZREMRANGEBY*` and the like) are not
  registered; use the `SortedSet` methods instead.
- There are no list or hash commands.
- Nothing is persisted: data lives only in memory.