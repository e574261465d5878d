from intrange.analysis import TaintSources
from intrange.ir import parse_ir
from intrange.ranges.initializers import collect_initializers, module_symbols, seed_taint
from intrange.ranges.interval import Interval
from intrange.ranges.symbols import (
    ArgSymbol,
    FieldSymbol,
    GlobalSymbol,
    ReturnSymbol,
    SymbolTable,
)


def _seed(source: str) -> SymbolTable:
    table = SymbolTable()
    collect_initializers(parse_ir(source), table)
    return table


def _dump(table: SymbolTable) -> dict[str, str]:
    return {str(sym): str(rng) for sym, rng in table.dump()}


def test_int_global():
    table = _seed("global @g : i8 = 5")
    assert table.get(GlobalSymbol("g")) == Interval(8, 5, 6)


def test_negative_initializer_wraps():
    table = _seed("global @g : i8 = -1")
    assert table.get(GlobalSymbol("g")) == Interval(8, 255, 0)


def test_struct_fields():
    source = """
struct.point = type { i32, i8 }
global @p : struct.point = { 1, 2 }
global @q : struct.point = { 7, 2 }
    """
    table = _seed(source)
    assert _dump(table) == {"field:struct.point:0": "[1,8)", "field:struct.point:1": "[2,3)"}
    assert table.get(FieldSymbol("struct.point", 0)).width == 32
    # struct-typed globals have no symbol of their own
    assert GlobalSymbol("p") not in table


def test_anonymous_structs_skipped():
    source = """
struct.anon.0 = type { i8 }
global @a : { i8, i8 } = { 1, 2 }
global @b : struct.anon.0 = { 3 }
    """
    assert len(_seed(source)) == 0


def test_array_elements_share_symbol():
    table = _seed("global @arr : [3 x i8] = [1, 2, 3]")
    assert _dump(table) == {"global:arr": "[1,4)"}


def test_array_of_structs():
    source = """
struct.point = type { i32, i8 }
global @pts : [2 x struct.point] = [{ 1, 2 }, { 3, 4 }]
    """
    table = _seed(source)
    assert _dump(table) == {"field:struct.point:0": "[1,4)", "field:struct.point:1": "[2,5)"}


def test_zeroinitializer():
    source = """
struct.point = type { i32, i8 }
global @n : i16 = zeroinitializer
global @z : struct.point = zeroinitializer
    """
    table = _seed(source)
    assert table.get(GlobalSymbol("n")) == Interval(16, 0, 1)
    assert table.get(FieldSymbol("struct.point", 0)) == Interval(32, 0, 1)
    assert table.get(FieldSymbol("struct.point", 1)) == Interval(8, 0, 1)


def test_nested_struct():
    source = """
struct.point = type { i32, i8 }
struct.outer = type { struct.point, i16 }
global @o : struct.outer = { { 4, 5 }, 9 }
    """
    table = _seed(source)
    assert _dump(table) == {
        "field:struct.point:0": "[4,5)",
        "field:struct.point:1": "[5,6)",
        "field:struct.outer:1": "[9,10)",
    }


def test_unseeded_globals():
    source = """
global @.str : [2 x i8] = [104, 105]
global @ext : i32
global @g : i8 = 1
global @fp : ptr = @g
    """
    table = _seed(source)
    assert _dump(table) == {"global:g": "[1,2)"}


def test_module_symbols():
    source = """
struct.point = type { i32, ptr }
global @g : [4 x i16]
global @.str : [2 x i8]
global @fp : ptr

function i8 @foo(i32 %a, ptr %p) {
entry:
    %r = call i8 @foo, %a, %p
    ret i8 %r
}
    """
    syms = dict(module_symbols(parse_ir(source)))
    assert syms == {
        GlobalSymbol("g"): 16,
        FieldSymbol("struct.point", 0): 32,
        ArgSymbol("foo", 0): 32,
        ReturnSymbol("foo"): 8,
        ReturnSymbol("foo", "%r"): 8,
    }


def test_seed_taint():
    source = """
struct.point = type { i32, i8 }
global @g : i8 = 5

declare i16 @rand()
    """
    ctx = parse_ir(source)
    taint = TaintSources([FieldSymbol("struct.point", 1), ReturnSymbol("rand")])
    table = SymbolTable(taint=taint)
    collect_initializers(ctx, table)
    seed_taint(ctx, table, taint)

    assert table.get(FieldSymbol("struct.point", 1)) == Interval.full(8)
    assert table.get(ReturnSymbol("rand")) == Interval.full(16)
    assert table.get(GlobalSymbol("g")) == Interval(8, 5, 6)
    assert FieldSymbol("struct.point", 0) not in table
