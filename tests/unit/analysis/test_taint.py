from intrange.analysis import NO_TAINT, TaintSources
from intrange.ranges import ArgSymbol, GlobalSymbol


def test_taint_sources():
    taint = TaintSources([GlobalSymbol("g"), ArgSymbol("f", 0), GlobalSymbol("g")])
    assert len(taint) == 2
    assert taint.is_taint_source(GlobalSymbol("g"))
    assert taint.is_taint_source(ArgSymbol("f", 0))
    assert not taint.is_taint_source(ArgSymbol("f", 1))


def test_no_taint():
    assert len(NO_TAINT) == 0
    assert not NO_TAINT.is_taint_source(GlobalSymbol("g"))
