import pytest

from memkv.keyspace import DB, OK, ArityError, CommandSyntaxError, ReplyError, WrongTypeError
from memkv.strings import prepare_mget, prepare_mset, undo_mset


@pytest.fixture
def db():
    return DB()


def test_set_get(db):
    for _ in range(10):
        assert db.exec([b"SET", b"k", b"v"]) == OK
        assert db.exec([b"GET", b"k"]) == b"v"


def test_set_empty(db):
    db.exec([b"SET", b"k", b""])
    assert db.exec([b"GET", b"k"]) == b""


def test_set_nx_xx(db):
    db.exec([b"SET", b"k", b"v"])
    assert db.exec([b"SET", b"k", b"v", b"NX"]) is None
    assert db.exec([b"SET", b"n", b"v", b"NX"]) == OK
    assert db.exec([b"GET", b"n"]) == b"v"
    assert db.exec([b"SET", b"x", b"v", b"XX"]) is None
    assert db.exec([b"SET", b"k", b"w", b"XX"]) == OK
    assert db.exec([b"GET", b"k"]) == b"w"
    with pytest.raises(CommandSyntaxError):
        db.exec([b"SET", b"k", b"v", b"NX", b"XX"])


def test_set_ex_px(db):
    db.exec([b"SET", b"k", b"v", b"EX", b"1000"])
    assert db.exec([b"GET", b"k"]) == b"v"
    assert 0 < db.exec([b"TTL", b"k"]) <= 1000
    db.exec([b"SET", b"k", b"v", b"PX", b"1000000"])
    assert 0 < db.exec([b"TTL", b"k"]) <= 1000
    with pytest.raises(ReplyError, match="invalid expire time in set"):
        db.exec([b"SET", b"k", b"v", b"EX", b"0"])
    with pytest.raises(CommandSyntaxError):
        db.exec([b"SET", b"k", b"v", b"EX"])


def test_setnx(db):
    assert db.exec([b"SETNX", b"k", b"v"]) == 1
    assert db.exec([b"GET", b"k"]) == b"v"
    assert db.exec([b"SETNX", b"k", b"v"]) == 0


def test_setex_psetex(db):
    db.exec([b"SETEX", b"k", b"1000", b"v"])
    assert db.exec([b"GET", b"k"]) == b"v"
    assert 0 < db.exec([b"TTL", b"k"]) <= 1000
    db.exec([b"PSetEx", b"p", b"1000000", b"v"])
    assert 0 < db.exec([b"PTTL", b"p"]) <= 1000000


def test_mset_mget(db):
    args = []
    for i in range(10):
        args += [f"k{i}".encode(), f"v{i}".encode()]
    db.exec([b"MSET", *args])
    assert db.exec([b"MGET", *args[::2]]) == args[1::2]
    db.put_entity("s", {"x"})
    assert db.exec([b"MGET", b"k0", b"s"]) == [b"v0", None]


def test_mset_odd_is_syntax_error(db):
    with pytest.raises(CommandSyntaxError):
        db.exec([b"MSET", b"a", b"1", b"b"])


def test_msetnx(db):
    args = [b"a", b"a", b"b", b"b", b"c", b"c"]
    assert db.exec([b"MSETNX", *args]) == 1
    assert db.exec([b"MSETNX", *args[:4]]) == 0


def test_getex(db):
    db.exec([b"SET", b"k", b"v"])
    assert db.exec([b"GETEX", b"k"]) == b"v"
    assert db.exec([b"GETEX", b"k", b"EX", b"1000"]) == b"v"
    assert 0 < db.exec([b"TTL", b"k"]) <= 1000
    assert db.exec([b"GETEX", b"k", b"PERSIST"]) == b"v"
    assert db.exec([b"TTL", b"k"]) == -1
    assert db.exec([b"GETEX", b"k", b"PX", b"1000000"]) == b"v"
    assert 0 < db.exec([b"TTL", b"k"]) <= 1000000


def test_getset_getdel(db):
    assert db.exec([b"GETSET", b"k", b"a"]) is None
    assert db.exec([b"GETSET", b"k", b"b"]) == b"a"
    assert db.exec([b"GET", b"k"]) == b"b"
    assert db.exec([b"GETDEL", b"k"]) == b"b"
    assert db.exec([b"GETDEL", b"k"]) is None


def test_strlen(db):
    db.exec([b"SET", b"k", b"0123456789"])
    assert db.exec([b"StrLen", b"k"]) == 10
    assert db.exec([b"StrLen", b"none"]) == 0


def test_append(db):
    db.exec([b"SET", b"k", b"abcde"])
    assert db.exec([b"Append", b"k", b"fghij"]) == 10
    assert db.exec([b"Append", b"n", b"abc"]) == 3


def test_setrange(db):
    db.exec([b"SET", b"k", b"0123456789"])
    assert db.exec([b"SetRange", b"k", b"0", b"abc"]) == 10
    assert db.exec([b"GET", b"k"]) == b"abc3456789"
    assert db.exec([b"SetRange", b"k", b"15", b"xyz"]) == 18
    assert db.exec([b"GET", b"k"]) == b"abc3456789" + bytes(5) + b"xyz"
    assert db.exec([b"SetRange", b"n", b"0", b"hello"]) == 5


def test_wrong_type(db):
    db.put_entity("s", {"x"})
    with pytest.raises(WrongTypeError):
        db.exec([b"GET", b"s"])


def test_arity(db):
    with pytest.raises(ArityError, match="'set'"):
        db.exec([b"set"])


def test_randomkey(db):
    assert db.exec([b"Randomkey"]) is None
    db.exec([b"SET", b"only", b"v"])
    assert db.exec([b"Randomkey"]) == b"only"


def test_prepare_and_undo_mset(db):
    assert prepare_mset([b"a", b"1", b"b", b"2"]) == (["a", "b"], [])
    assert prepare_mget([b"a", b"b"]) == ([], ["a", "b"])
    db.exec([b"SET", b"a", b"old"])
    undo = undo_mset(db, [b"a", b"1", b"b", b"2"])
    db.exec([b"MSET", b"a", b"1", b"b", b"2"])
    for line in undo:
        db.exec(line)
    assert db.exec([b"MGET", b"a", b"b"]) == [b"old", None]


def test_on_write_records(db):
    lines = []
    db.on_write = lines.append
    db.exec([b"SET", b"k", b"v"])
    assert lines == [[b"set", b"k", b"v"]]