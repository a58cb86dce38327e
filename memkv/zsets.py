"""Sorted set storage, score and lex borders, and the sorted set point commands."""

from __future__ import annotations

import math
from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Callable, Iterator, Optional, Union

from sortedcontainers import SortedList

from memkv.counters import _FLOAT_ERROR, _parse_float
from memkv.keyspace import (
    DB,
    CommandSyntaxError,
    ReplyError,
    WrongTypeError,
    _encode,
    _format_float,
    _key,
    read_first_key,
    register_command,
    rollback_first_key,
    write_first_key,
)
from memkv.sets import _parse_scan_options
from memkv.strings import _INT_ERROR, _parse_int

_NEGATIVE_INF = -1
_POSITIVE_INF = 1


@dataclass(frozen=True)
class Element:
    """A member of a sorted set together with its score."""

    member: bytes
    score: float


def format_score(score: float) -> str:
    """Render a score the way replies carry it: shortest form, no exponent."""
    return _format_float(score)


@dataclass(frozen=True)
class ScoreBorder:
    """One end of a score range; inf is -1 or +1 for an infinite end."""

    value: float = 0.0
    exclude: bool = False
    inf: int = 0

    def admits_min(self, element: Element) -> bool:
        """True when element lies above this border used as a minimum."""
        if self.inf == _NEGATIVE_INF:
            return True
        if self.inf == _POSITIVE_INF:
            return False
        if self.exclude:
            return element.score > self.value
        return element.score >= self.value

    def admits_max(self, element: Element) -> bool:
        """True when element lies below this border used as a maximum."""
        if self.inf == _POSITIVE_INF:
            return True
        if self.inf == _NEGATIVE_INF:
            return False
        if self.exclude:
            return element.score < self.value
        return element.score <= self.value


@dataclass(frozen=True)
class LexBorder:
    """One end of a lexicographic range; inf is -1 for '-' and +1 for '+'."""

    value: bytes = b""
    exclude: bool = False
    inf: int = 0

    def admits_min(self, element: Element) -> bool:
        if self.inf == _NEGATIVE_INF:
            return True
        if self.inf == _POSITIVE_INF:
            return False
        if self.exclude:
            return element.member > self.value
        return element.member >= self.value

    def admits_max(self, element: Element) -> bool:
        if self.inf == _POSITIVE_INF:
            return True
        if self.inf == _NEGATIVE_INF:
            return False
        if self.exclude:
            return element.member < self.value
        return element.member <= self.value


Border = Union[ScoreBorder, LexBorder]


def parse_score_border(text) -> ScoreBorder:
    """Parse a score range end such as 1.5, (1.5, -inf or +inf."""
    raw = _encode(text)
    if raw in (b"inf", b"+inf"):
        return ScoreBorder(inf=_POSITIVE_INF)
    if raw == b"-inf":
        return ScoreBorder(inf=_NEGATIVE_INF)
    exclude = raw.startswith(b"(")
    if exclude:
        raw = raw[1:]
    value = _parse_float(raw)
    if value is None:
        raise ReplyError("ERR min or max is not a float")
    return ScoreBorder(value=value, exclude=exclude)


def parse_lex_border(text) -> LexBorder:
    """Parse a lex range end such as -, +, [abc or (abc."""
    raw = _encode(text)
    if raw == b"+":
        return LexBorder(inf=_POSITIVE_INF)
    if raw == b"-":
        return LexBorder(inf=_NEGATIVE_INF)
    if raw.startswith(b"("):
        return LexBorder(value=raw[1:], exclude=True)
    if raw.startswith(b"["):
        return LexBorder(value=raw[1:], exclude=False)
    raise ReplyError("ERR min or max not valid string range item")


class SortedSet:
    """Members ordered by score, then by member bytes."""

    def __init__(self) -> None:
        self._scores: dict[bytes, float] = {}
        self._order: SortedList = SortedList()

    def __len__(self) -> int:
        return len(self._scores)

    def __iter__(self) -> Iterator[Element]:
        for score, member in self._order:
            yield Element(member, score)

    def _element(self, index: int) -> Element:
        score, member = self._order[index]
        return Element(member, score)

    def add(self, member, score: float) -> bool:
        """Set the score of member; return True if it was not there before."""
        member = _encode(member)
        old = self._scores.get(member)
        if old is not None:
            self._order.remove((old, member))
        self._scores[member] = score
        self._order.add((score, member))
        return old is None

    def get(self, member) -> Optional[Element]:
        member = _encode(member)
        score = self._scores.get(member)
        return None if score is None else Element(member, score)

    def remove(self, member) -> bool:
        member = _encode(member)
        score = self._scores.pop(member, None)
        if score is None:
            return False
        self._order.remove((score, member))
        return True

    def rank(self, member, desc: bool = False) -> Optional[int]:
        """Zero-based position of member, or None if it is absent."""
        member = _encode(member)
        score = self._scores.get(member)
        if score is None:
            return None
        position = self._order.index((score, member))
        return len(self._order) - 1 - position if desc else position

    def range_by_rank(self, start: int, stop: int, desc: bool = False) -> list[Element]:
        """Elements with rank in [start, stop), counted from the top when desc."""
        size = len(self._order)
        if desc:
            chosen = reversed(self._order[max(size - stop, 0):max(size - start, 0)])
        else:
            chosen = self._order[start:stop]
        return [Element(member, score) for score, member in chosen]

    def remove_by_rank(self, start: int, stop: int) -> int:
        """Remove elements with ascending rank in [start, stop); return how many."""
        doomed = list(self._order[start:stop])
        for score, member in doomed:
            self._order.remove((score, member))
            del self._scores[member]
        return len(doomed)

    def pop_min(self, count: int) -> list[Element]:
        """Remove and return up to count elements with the lowest scores."""
        if count <= 0:
            return []
        popped = self.range_by_rank(0, count)
        self.remove_by_rank(0, count)
        return popped

    def _first(self, predicate: Callable[[Element], bool]) -> int:
        lo, hi = 0, len(self._order)
        while lo < hi:
            mid = (lo + hi) // 2
            if predicate(self._element(mid)):
                hi = mid
            else:
                lo = mid + 1
        return lo

    def _span(self, low: Border, high: Border) -> tuple[int, int]:
        start = self._first(low.admits_min)
        end = self._first(lambda e: not high.admits_max(e))
        return start, max(start, end)

    def range(self, low: Border, high: Border, offset: int = 0, limit: int = -1,
              desc: bool = False) -> list[Element]:
        """Elements between the borders, skipping offset; a negative limit takes all."""
        if limit == 0 or offset < 0:
            return []
        start, end = self._span(low, high)
        indices = range(end - 1, start - 1, -1) if desc else range(start, end)
        indices = indices[offset:]
        if limit > 0:
            indices = indices[:limit]
        return [self._element(i) for i in indices]

    def count(self, low: Border, high: Border) -> int:
        start, end = self._span(low, high)
        return end - start

    def remove_range(self, low: Border, high: Border) -> int:
        start, end = self._span(low, high)
        return self.remove_by_rank(start, end)


def _get_as_sorted_set(db: DB, key) -> Optional[SortedSet]:
    value = db.get_entity(key)
    if value is None:
        return None
    if not isinstance(value, SortedSet):
        raise WrongTypeError()
    return value


def _get_or_init_sorted_set(db: DB, key) -> SortedSet:
    zset = _get_as_sorted_set(db, key)
    if zset is None:
        zset = SortedSet()
        db.put_entity(key, zset)
    return zset


def _flatten(elements) -> list[bytes]:
    result = []
    for element in elements:
        result += [element.member, format_score(element.score).encode()]
    return result


def rollback_zset_fields(db, key, *args) -> list[list[bytes]]:
    """Command lines that restore the given members of a sorted set."""
    try:
        zset = _get_as_sorted_set(db, key)
    except WrongTypeError:
        return []
    encoded_key = _encode(key)
    if zset is None:
        return [[b"DEL", encoded_key]]
    lines = []
    for raw in args:
        member = _encode(raw)
        element = zset.get(member)
        if element is None:
            lines.append([b"ZREM", encoded_key, member])
        else:
            lines.append([b"ZADD", encoded_key, format_score(element.score).encode(), member])
    return lines


def _parse_score(raw: bytes) -> float:
    score = _parse_float(raw)
    if score is None or math.isnan(score):
        raise ReplyError(_FLOAT_ERROR)
    return score


def _exec_zadd(db: DB, args):
    if len(args) % 2 != 1:
        raise CommandSyntaxError()
    pairs = [(args[i + 1], _parse_score(args[i])) for i in range(1, len(args), 2)]
    zset = _get_or_init_sorted_set(db, args[0])
    added = sum(1 for member, score in pairs if zset.add(member, score))
    db.on_write([b"zadd", *args])
    return added


def _undo_zadd(db, args):
    return rollback_zset_fields(db, args[0], *args[2::2])


def _exec_zscore(db: DB, args):
    zset = _get_as_sorted_set(db, args[0])
    if zset is None:
        return None
    element = zset.get(args[1])
    return None if element is None else format_score(element.score).encode()


def _rank(db: DB, args, desc: bool):
    zset = _get_as_sorted_set(db, args[0])
    if zset is None:
        return None
    return zset.rank(args[1], desc)


def _exec_zrank(db: DB, args):
    return _rank(db, args, False)


def _exec_zrevrank(db: DB, args):
    return _rank(db, args, True)


def _exec_zcard(db: DB, args):
    zset = _get_as_sorted_set(db, args[0])
    return 0 if zset is None else len(zset)


def _exec_zpopmin(db: DB, args):
    count = 1
    if len(args) > 1:
        count = _parse_int(args[1])
        if count is None:
            raise ReplyError(_INT_ERROR)
    zset = _get_as_sorted_set(db, args[0])
    if zset is None:
        return []
    popped = zset.pop_min(count)
    if popped:
        db.on_write([b"zpopmin", *args])
    return _flatten(popped)


def _exec_zrem(db: DB, args):
    zset = _get_as_sorted_set(db, args[0])
    if zset is None:
        return 0
    deleted = sum(1 for member in args[1:] if zset.remove(member))
    if deleted:
        db.on_write([b"zrem", *args])
    return deleted


def _undo_zrem(db, args):
    return rollback_zset_fields(db, args[0], *args[1:])


def _exec_zincrby(db: DB, args):
    delta = _parse_score(args[1])
    zset = _get_or_init_sorted_set(db, args[0])
    member = args[2]
    element = zset.get(member)
    if element is None:
        zset.add(member, delta)
        db.on_write([b"zincrby", *args])
        return args[1]
    score = element.score + delta
    if math.isnan(score):
        raise ReplyError("ERR resulting score is not a number (NaN)")
    zset.add(member, score)
    db.on_write([b"zincrby", *args])
    return format_score(score).encode()


def _undo_zincr(db, args):
    return rollback_zset_fields(db, args[0], args[2])


def _exec_zscan(db: DB, args):
    count, pattern = _parse_scan_options(args[2:])
    zset = _get_as_sorted_set(db, args[0])
    if zset is None:
        return []
    if len(args) < 2:
        raise ReplyError("ERR invalid cursor")
    cursor = _parse_int(args[1])
    if cursor is None:
        raise ReplyError("ERR invalid cursor")
    if cursor < 0 or count <= 0:
        raise ReplyError("Invalid argument")
    elements = list(zset)
    window = elements[cursor:cursor + count]
    following = cursor + count
    next_cursor = following if following < len(elements) else 0
    matched = [e for e in window if fnmatchcase(_key(e.member), pattern)]
    return [str(next_cursor).encode(), _flatten(matched)]


register_command("ZAdd", _exec_zadd, write_first_key, _undo_zadd, -4, True)
register_command("ZScore", _exec_zscore, read_first_key, None, 3, False)
register_command("ZIncrBy", _exec_zincrby, write_first_key, _undo_zincr, 4, True)
register_command("ZRank", _exec_zrank, read_first_key, None, 3, False)
register_command("ZRevRank", _exec_zrevrank, read_first_key, None, 3, False)
register_command("ZCard", _exec_zcard, read_first_key, None, 2, False)
register_command("ZPopMin", _exec_zpopmin, write_first_key, rollback_first_key, -2, True)
register_command("ZRem", _exec_zrem, write_first_key, _undo_zrem, -3, True)
register_command("ZScan", _exec_zscan, read_first_key, None, -2, False)