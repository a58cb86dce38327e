import pytest

import memkv.bits  # noqa: F401
import memkv.strings  # noqa: F401
from memkv.bits import convert_range
from memkv.keyspace import DB, CommandSyntaxError, ReplyError, WrongTypeError

WORD = "abcdefghij"
WRONG_TYPE = "WRONGTYPE Operation against a key holding the wrong kind of value"
INT_ERROR = "ERR value is not an integer or out of range"


@pytest.fixture
def db():
    return DB()


@pytest.fixture
def word_db(db):
    db.exec(["SET", "word", WORD])
    return db


@pytest.mark.parametrize(
    "start,end,size,expected",
    [
        (0, 9, 10, (0, 10)),
        (0, 12, 10, (0, 10)),
        (-10, -1, 10, (0, 10)),
        (0, -5, 10, (0, 6)),
        (12, 12, 10, None),
        (-13, 5, 10, None),
        (0, -13, 10, None),
        (5, 2, 10, None),
    ],
)
def test_convert_range(start, end, size, expected):
    assert convert_range(start, end, size) == expected


@pytest.mark.parametrize(
    "start,end,expected",
    [
        (0, 10, WORD.encode()),
        (0, 12, WORD.encode()),
        (0, 5, WORD[:6].encode()),
        (-10, -1, WORD.encode()),
        (-10, 5, WORD[:6].encode()),
        (0, -5, WORD[:6].encode()),
        (12, 12, None),
        (-13, 10, None),
        (0, -13, None),
        (11, 0, None),
    ],
)
def test_getrange(word_db, start, end, expected):
    assert word_db.exec(["GetRange", "word", str(start), str(end)]) == expected


def test_getrange_missing_key(db):
    assert db.exec(["GetRange", "missing", "0", "10"]) is None
    assert db.exec(["GetRange", "missing", "11", "10"]) is None


@pytest.mark.parametrize("args", [["incorrect", "0"], ["0", "incorrect"]])
def test_getrange_bad_index(word_db, args):
    with pytest.raises(ReplyError) as info:
        word_db.exec(["GetRange", "word", *args])
    assert info.value.message == INT_ERROR


def test_setbit_getbit(db):
    assert db.exec(["SetBit", "bm", "15", "1"]) == 0
    assert db.exec(["SetBit", "bm", "15", "0"]) == 1
    db.exec(["SetBit", "bm", "13", "1"])
    assert db.exec(["GetBit", "bm", "13"]) == 1
    assert db.exec(["GetBit", "bm1", "13"]) == 0
    assert db.exec(["StrLen", "bm"]) == 2


def test_getbit_beyond_value(db):
    db.exec(["SetBit", "bm", "3", "1"])
    assert db.exec(["GetBit", "bm", "100"]) == 0


def test_setbit_errors(db):
    with pytest.raises(ReplyError) as info:
        db.exec(["SetBit", "bm", "13", "a"])
    assert info.value.message == "ERR bit is not an integer or out of range"
    with pytest.raises(ReplyError) as info:
        db.exec(["SetBit", "bm", "a", "1"])
    assert info.value.message == "ERR bit offset is not an integer or out of range"
    with pytest.raises(ReplyError) as info:
        db.exec(["GetBit", "bm", "a"])
    assert info.value.message == "ERR bit offset is not an integer or out of range"


def test_bit_commands_wrong_type(db):
    db.put_entity("lst", [b"1"])
    with pytest.raises(WrongTypeError) as info:
        db.exec(["SetBit", "lst", "15", "0"])
    assert info.value.message == WRONG_TYPE
    with pytest.raises(WrongTypeError):
        db.exec(["GetBit", "lst", "15"])
    with pytest.raises(WrongTypeError):
        db.exec(["BitCount", "lst"])
    with pytest.raises(WrongTypeError):
        db.exec(["BitPos", "lst", "1"])


def test_bitcount(db):
    db.exec(["SetBit", "bm", "15", "1"])
    db.exec(["SetBit", "bm", "13", "1"])
    assert db.exec(["BitCount", "bm"]) == 2
    assert db.exec(["BitCount", "bm", "14", "15", "BIT"]) == 1
    assert db.exec(["BitCount", "bm", "16", "20", "BIT"]) == 0
    assert db.exec(["BitCount", "bm", "1", "1", "BYTE"]) == 2
    assert db.exec(["BitCount", "bma"]) == 0


def test_bitcount_errors(db):
    db.exec(["SetBit", "bm", "15", "1"])
    with pytest.raises(CommandSyntaxError) as info:
        db.exec(["BitCount", "bm", "14", "15", "B"])
    assert info.value.message == "ERR syntax error"
    with pytest.raises(ReplyError) as info:
        db.exec(["BitCount", "bm", "14", "A"])
    assert info.value.message == INT_ERROR
    with pytest.raises(ReplyError) as info:
        db.exec(["BitCount", "bm", "A", "-1"])
    assert info.value.message == INT_ERROR


def test_bitpos(db):
    db.exec(["SetBit", "bm", "15", "1"])
    assert db.exec(["BitPos", "bm", "0"]) == 0
    assert db.exec(["BitPos", "bm", "1"]) == 15
    assert db.exec(["BitPos", "bm", "1", "0", "-1", "BIT"]) == 15
    assert db.exec(["BitPos", "bm", "1", "1", "1", "BYTE"]) == 15
    assert db.exec(["BitPos", "bm", "0", "1", "1", "BYTE"]) == 8
    assert db.exec(["BitPos", "bma", "1"]) == -1


def test_bitpos_not_found(db):
    db.exec(["SetBit", "bm", "3", "0"])
    assert db.exec(["BitPos", "bm", "1"]) == -1


def test_bitpos_errors(db):
    db.exec(["SetBit", "bm", "15", "1"])
    with pytest.raises(CommandSyntaxError) as info:
        db.exec(["BitPos", "bm", "1", "1", "15", "B"])
    assert info.value.message == "ERR syntax error"
    with pytest.raises(ReplyError) as info:
        db.exec(["BitPos", "bm", "1", "14", "A"])
    assert info.value.message == INT_ERROR
    with pytest.raises(ReplyError) as info:
        db.exec(["BitPos", "bm", "1", "a", "14"])
    assert info.value.message == INT_ERROR
    with pytest.raises(ReplyError) as info:
        db.exec(["BitPos", "bm", "-1"])
    assert info.value.message == "ERR bit is not an integer or out of range"


def test_setbit_rollback(db):
    db.exec(["SetBit", "bm", "2", "1"])
    undo = db.get_undo_logs([b"SetBit", b"bm", b"20", b"1"])
    db.exec(["SetBit", "bm", "20", "1"])
    for line in undo:
        db.exec(line)
    assert db.exec(["GetBit", "bm", "20"]) == 0
    assert db.exec(["GetBit", "bm", "2"]) == 1