"""
End-to-end runs of the analysis over small but complete modules.
"""

from intrange.analysis import TaintSources
from intrange.ir.basicblock import IRVariable
from intrange.ranges import AnalysisState, ArgSymbol, GlobalSymbol, Interval, RangeAnalysis
from tests.ir_utils import analyze, parse_checked, symbol_ranges

MODULE = """
; comment
struct.point = type { i32, i8 }
global @g : i8 = 5
global @p : struct.point = { 1, 2 }
global @arr : [3 x i8] = [1, 2, 3]
global @z : struct.point = zeroinitializer
global @ext : i32
declare i32 @rand()
declare i32 @printf(ptr, ...)

function i32 @foo(i32 %a, i8 %b) {
entry:
    %x = add i32 %a, 1
    %c = ult i32 %x, 100
    jnz %c, @then, @else
then:
    %f = field struct.point @p, 1
    %v = load i8 %f
    store i8 %v, @g
    %r = call i32 @foo, %x, 3
    switch i8 %b, @else, 1, @then, 2, @then
else:
    %p = phi i32 @entry, %x, @then, %r
    ret i32 %p
}
"""


def test_module(settings):
    analysis = analyze(MODULE, settings)
    # nothing outside @foo calls it, so its first argument stays unknown
    assert symbol_ranges(analysis) == {
        "global:g": "[0,6)",
        "field:struct.point:0": "[0,2)",
        "field:struct.point:1": "[0,3)",
        "global:arr": "[1,4)",
        "arg:foo:1": "[3,4)",
    }
    assert analysis.iterations == 2


def test_module_with_tainted_argument(settings):
    taint = TaintSources([ArgSymbol("foo", 0)])
    analysis = analyze(MODULE, settings, taint=taint)
    assert analysis.symbols.get(ArgSymbol("foo", 0)).is_full
    assert analysis.state is AnalysisState.CONVERGED


def test_seeded_global(settings):
    analysis = analyze("global @g : i8 = 5", settings)
    assert analysis.symbols.get(GlobalSymbol("g")) == Interval(8, 5, 6)


def test_single_block_loop(settings):
    source = """
global @count : i8 = 0

function void @test() {
entry:
    jmp @loop
loop:
    %i = phi i8 @entry, 0, @loop, %j
    %n = load i8 @count
    %j = add i8 %n, 1
    store i8 %j, @count
    %c = ult i8 %j, 10
    jnz %c, @loop, @done
done:
    ret
}
    """
    analysis = RangeAnalysis(parse_checked(source), settings=settings)
    analysis.sweep_module()

    loop = analysis.ctx.get_function("test").get_basic_block("loop")
    # only the value coming from the entry block is seen
    assert analysis.block_ranges(loop)[IRVariable("%i")] == Interval(8, 0, 1)

    analysis.run()
    assert analysis.state is AnalysisState.CONVERGED
    assert analysis.symbols.get(GlobalSymbol("count")).is_full
    assert analysis.iterations == settings.max_iterations + 1


def test_taint_overrides_stores(settings):
    source = """
global @g : i8

function void @test() {
entry:
    store i8 5, @g
    ret
}
    """
    analysis = analyze(source, settings, taint=TaintSources([GlobalSymbol("g")]))
    assert analysis.symbols.get(GlobalSymbol("g")).is_full
