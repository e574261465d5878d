import pytest

from intrange.analysis import TaintSources
from intrange.exceptions import UnknownSymbol
from intrange.ranges.interval import Interval
from intrange.ranges.symbols import (
    ArgSymbol,
    FieldSymbol,
    GlobalSymbol,
    ReturnSymbol,
    SymbolTable,
    symbol_from_string,
)


@pytest.mark.parametrize(
    "sym,text",
    [
        (GlobalSymbol("g"), "global:g"),
        (GlobalSymbol("tbl.entry"), "global:tbl.entry"),
        (FieldSymbol("struct.point", 1), "field:struct.point:1"),
        (ArgSymbol("foo", 0), "arg:foo:0"),
        (ReturnSymbol("foo"), "ret:foo"),
        (ReturnSymbol("main", "%r"), "ret:main:%r"),
    ],
)
def test_canonical_form(sym, text):
    assert str(sym) == text
    assert symbol_from_string(text) == sym


@pytest.mark.parametrize(
    "text", ["g", "global:", "nope:g", "field:struct.p", "field:struct.p:x", "arg:foo:-1", "arg::0"]
)
def test_bad_symbol_string(text):
    with pytest.raises(UnknownSymbol):
        symbol_from_string(text)


def test_symbols_are_structural():
    assert FieldSymbol("struct.point", 1) == FieldSymbol("struct.point", 1)
    assert GlobalSymbol("g") != ArgSymbol("g", 0)
    assert len({ReturnSymbol("f"), ReturnSymbol("f"), ReturnSymbol("f", "%1")}) == 2


def test_union_range_grows():
    table = SymbolTable()
    g = GlobalSymbol("g")

    assert table.union_range(g, Interval.constant(8, 5))
    assert table.get(g) == Interval(8, 5, 6)

    assert table.union_range(g, Interval.constant(8, 7))
    assert table.get(g) == Interval(8, 5, 8)

    # already included
    assert not table.union_range(g, Interval.constant(8, 6))
    assert table.get(g) == Interval(8, 5, 8)


def test_union_range_ignores_empty():
    table = SymbolTable()
    g = GlobalSymbol("g")
    assert not table.union_range(g, Interval.empty(8))
    assert g not in table
    assert len(table.changes) == 0


def test_changes():
    table = SymbolTable()
    a, b = GlobalSymbol("a"), GlobalSymbol("b")
    table.union_range(a, Interval.constant(8, 1))
    table.union_range(b, Interval.constant(8, 1))
    assert list(table.changes) == [a, b]

    prev = table.reset_changes()
    assert list(prev) == [a, b]
    assert len(table.changes) == 0

    table.union_range(b, Interval.constant(8, 1))
    assert len(table.changes) == 0


def test_taint_stores_full_set():
    g = GlobalSymbol("g")
    table = SymbolTable(taint=TaintSources([g]))
    assert table.union_range(g, Interval.constant(8, 5))
    assert table.get(g).is_full
    assert table.union_range(GlobalSymbol("h"), Interval.constant(8, 5))
    assert table.get(GlobalSymbol("h")) == Interval(8, 5, 6)


def test_widen_and_seed():
    table = SymbolTable()
    g = GlobalSymbol("g")
    table.union_range(g, Interval.constant(16, 5))
    table.widen(g)
    assert table.get(g) == Interval.full(16)

    table.seed_full(ArgSymbol("f", 0), 32)
    assert table.get(ArgSymbol("f", 0)) == Interval.full(32)


def test_dump_in_insertion_order():
    table = SymbolTable()
    syms = [GlobalSymbol("z"), ArgSymbol("f", 1), GlobalSymbol("a")]
    for i, sym in enumerate(syms):
        table.union_range(sym, Interval.constant(8, i))
    assert [sym for sym, _ in table.dump()] == syms
    assert list(table) == syms


def test_watch(capsys):
    g = GlobalSymbol("g")
    table = SymbolTable(watch=g)
    table.union_range(g, Interval.constant(8, 5))
    table.union_range(g, Interval.constant(8, 7))
    table.union_range(GlobalSymbol("h"), Interval.constant(8, 7))

    err = capsys.readouterr().err
    assert err.splitlines() == ["global:g = [5,6)", "global:g + [7,8) = [5,8)"]
