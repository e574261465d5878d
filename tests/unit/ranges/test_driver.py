import pytest

from intrange.analysis import TaintSources
from intrange.ir.basicblock import IRVariable
from intrange.ranges import (
    AnalysisState,
    ArgSymbol,
    GlobalSymbol,
    Interval,
    RangeAnalysis,
    ReturnSymbol,
)
from intrange.settings import Settings
from tests.ir_utils import analyze, parse_checked, symbol_ranges

COUNTER = """
global @n : i8 = 0

function void @test() {
entry:
    %v = load i8 @n
    %w = add i8 %v, 1
    store i8 %w, @n
    ret
}
"""

INTERPROCEDURAL = """
global @out : i8

function i8 @callee(i8 %a) {
entry:
    %r = add i8 %a, 1
    ret i8 %r
}

function void @caller() {
entry:
    %x = call i8 @callee, 5
    store i8 %x, @out
    ret
}
"""


def test_counter_is_widened(settings):
    analysis = analyze(COUNTER, settings)
    assert analysis.state is AnalysisState.CONVERGED
    assert analysis.symbols.get(GlobalSymbol("n")).is_full
    # five growing sweeps, then the widening sweep changes nothing
    assert analysis.iterations == 6


@pytest.mark.parametrize("max_iterations", [1, 2, 3, 10])
def test_iterations_bounded(max_iterations):
    analysis = analyze(COUNTER, Settings(max_iterations=max_iterations, watch=None, debug=False))
    assert analysis.iterations <= max_iterations + 1
    assert analysis.symbols.get(GlobalSymbol("n")).is_full


def test_counter_grows_one_step_per_sweep(settings):
    analysis = RangeAnalysis(parse_checked(COUNTER), settings=settings)
    for i in range(1, 4):
        assert analysis.sweep_module()
        assert analysis.symbols.get(GlobalSymbol("n")) == Interval(8, 0, i + 1)
    assert analysis.state is AnalysisState.SWEEPING


def test_symbols_grow_monotonically(settings):
    analysis = RangeAnalysis(parse_checked(COUNTER + INTERPROCEDURAL), settings=settings)
    analysis.seed()

    prev = dict(analysis.symbols.items())
    while analysis.sweep_module():
        cur = dict(analysis.symbols.items())
        for sym, rng in prev.items():
            assert cur[sym].contains_interval(rng)
        prev = cur
        assert analysis.iterations <= settings.max_iterations + 1


def test_run_reports_changes(settings):
    analysis = RangeAnalysis(parse_checked(COUNTER), settings=settings)
    assert analysis.run()
    # already converged
    assert not analysis.run()


def test_phi_ignores_back_edge_within_a_sweep(settings):
    source = """
function void @test() {
entry:
    jmp @loop
loop:
    %i = phi i8 @entry, 0, @loop, %j
    %j = add i8 %i, 1
    %c = ult i8 %j, 10
    jnz %c, @loop, @done
done:
    ret
}
    """
    analysis = RangeAnalysis(parse_checked(source), settings=settings)
    analysis.sweep_module()

    fn = analysis.ctx.get_function("test")
    loop = fn.get_basic_block("loop")
    ranges = analysis.block_ranges(loop)
    assert ranges[IRVariable("%i")] == Interval(8, 0, 1)
    assert ranges[IRVariable("%j")] == Interval(8, 1, 2)

    analysis.run()
    assert analysis.state is AnalysisState.CONVERGED
    # local ranges are released on convergence
    assert analysis.block_ranges(loop) == {}


def test_interprocedural(settings):
    analysis = analyze(INTERPROCEDURAL, settings)
    assert symbol_ranges(analysis) == {
        "arg:callee:0": "[5,6)",
        "ret:callee": "[6,7)",
        "ret:caller:%x": "[6,7)",
        "global:out": "[6,7)",
    }
    # one sweep per call level, then one to see nothing changed
    assert analysis.iterations == 3


def test_call_result_from_declaration_is_full(settings):
    source = """
global @out : i8

declare i8 @rand()

function void @test() {
entry:
    %x = call i8 @rand
    store i8 %x, @out
    ret
}
    """
    analysis = analyze(source, settings)
    assert analysis.symbols.get(GlobalSymbol("out")).is_full
    assert analysis.symbols.get(ReturnSymbol("test", "%x")).is_full


def test_arguments_of_declarations(settings):
    source = """
declare void @ext(i8)
declare void @llvm.abs(i8)
declare void @printf(ptr, ...)

function void @test(ptr %fmt) {
entry:
    call void @ext, 5
    call void @llvm.abs, 6
    call void @printf, %fmt, 7:i8
    ret
}
    """
    analysis = analyze(source, settings)
    # builtins and vararg functions get no argument facts
    assert symbol_ranges(analysis) == {"arg:ext:0": "[5,6)"}


def test_indirect_call(settings):
    source = """
global @out : i8
global @table : ptr = @inc

function i8 @inc(i8 %a) {
entry:
    %r = add i8 %a, 1
    ret i8 %r
}

function void @test(ptr %fp) {
entry:
    %x = call i8 %fp, 3:i8
    store i8 %x, @out
    ret
}
    """
    analysis = analyze(source, settings)
    assert analysis.symbols.get(ArgSymbol("inc", 0)) == Interval(8, 3, 4)
    assert analysis.symbols.get(GlobalSymbol("out")) == Interval(8, 4, 5)


def test_unresolved_indirect_call_is_full(settings):
    source = """
global @out : i8

function void @test(ptr %fp) {
entry:
    %x = call i8 %fp, 3:i8
    store i8 %x, @out
    ret
}
    """
    analysis = analyze(source, settings)
    assert analysis.symbols.get(GlobalSymbol("out")).is_full


def test_tainted_return(settings):
    taint = TaintSources([ReturnSymbol("callee")])
    analysis = analyze(INTERPROCEDURAL, settings, taint=taint)
    ranges = symbol_ranges(analysis)
    assert ranges["ret:callee"] == "full-set"
    assert ranges["global:out"] == "full-set"
    assert ranges["arg:callee:0"] == "[5,6)"


def test_tainted_global_seeded(settings):
    source = """
global @g : i16 = 3
global @out : i16

function void @test() {
entry:
    %v = load i16 @g
    store i16 %v, @out
    ret
}
    """
    analysis = analyze(source, settings, taint=TaintSources([GlobalSymbol("g")]))
    assert analysis.symbols.get(GlobalSymbol("g")) == Interval.full(16)
    assert analysis.symbols.get(GlobalSymbol("out")) == Interval.full(16)


def test_empty_module(settings):
    analysis = analyze("", settings)
    assert analysis.state is AnalysisState.CONVERGED
    assert analysis.iterations == 1
    assert len(analysis.symbols) == 0


def test_debug_output(capsys):
    settings = Settings(max_iterations=1, watch=None, debug=True)
    analyze(COUNTER, settings)
    err = capsys.readouterr().err
    assert err.splitlines() == [
        "; sweep 1: global:n",
        "; widening global:n to full-set",
        "; sweep 2: no changes",
    ]


def test_watch_through_settings(capsys):
    settings = Settings(max_iterations=5, watch="global:out", debug=False)
    analyze(INTERPROCEDURAL, settings)
    err = capsys.readouterr().err
    assert "global:out = [6,7)" in err.splitlines()


def test_long_block_chain(settings):
    blocks = ["entry:\n    jmp @bb0"]
    for i in range(2999):
        blocks.append(f"bb{i}:\n    jmp @bb{i + 1}")
    blocks.append("bb2999:\n    store i8 7, @g\n    ret")
    body = "\n".join(blocks)
    source = f"global @g : i8\n\nfunction void @test() {{\n{body}\n}}\n"

    analysis = analyze(source, settings)
    assert analysis.symbols.get(GlobalSymbol("g")) == Interval(8, 7, 8)
