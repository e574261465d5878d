from intrange.analysis import TaintSources
from intrange.ranges import ArgSymbol, GlobalSymbol, Interval
from tests.ir_utils import analyze

# %a is unconstrained, so every fact about it comes from the branches
TAINT_A = TaintSources([ArgSymbol("test", 0)])

GLOBALS = """
global @lo : i8
global @hi : i8
"""


def _branch(body: str) -> tuple:
    source = f"""
{GLOBALS}

function void @test(i8 %a) {{
{body}
}}
    """
    analysis = analyze(source, taint=TAINT_A)
    return analysis.symbols.get(GlobalSymbol("lo")), analysis.symbols.get(GlobalSymbol("hi"))


def test_unsigned_compare():
    body = """
entry:
    %c = ult i8 %a, 100
    jnz %c, @hit, @miss
hit:
    store i8 %a, @lo
    ret
miss:
    store i8 %a, @hi
    ret
    """
    lo, hi = _branch(body)
    assert lo == Interval(8, 0, 100)
    assert hi == Interval(8, 100, 0)


def test_signed_compare():
    body = """
entry:
    %c = slt i8 %a, 0
    jnz %c, @hit, @miss
hit:
    store i8 %a, @lo
    ret
miss:
    store i8 %a, @hi
    ret
    """
    lo, hi = _branch(body)
    # negative values are the upper half of the unsigned range
    assert lo == Interval(8, 128, 0)
    assert hi == Interval(8, 0, 128)


def test_equality():
    body = """
entry:
    %c = eq i8 %a, 7
    jnz %c, @hit, @miss
hit:
    store i8 %a, @lo
    ret
miss:
    store i8 %a, @hi
    ret
    """
    lo, hi = _branch(body)
    assert lo == Interval(8, 7, 8)
    assert hi == Interval(8, 8, 7)


def test_refine_right_operand():
    body = """
entry:
    %c = ult i8 0, %a
    jnz %c, @hit, @miss
hit:
    store i8 %a, @lo
    ret
miss:
    store i8 %a, @hi
    ret
    """
    lo, hi = _branch(body)
    assert lo == Interval(8, 1, 0)
    assert hi == Interval(8, 0, 1)


def test_nested_branches_narrow_further():
    body = """
entry:
    %c = ult i8 %a, 100
    jnz %c, @small, @miss
small:
    %d = ugt i8 %a, 10
    jnz %d, @hit, @miss
hit:
    store i8 %a, @lo
    ret
miss:
    ret
    """
    lo, _ = _branch(body)
    assert lo == Interval(8, 11, 100)


def test_same_targets_not_refined():
    body = """
entry:
    %c = ult i8 %a, 100
    jnz %c, @hit, @hit
hit:
    store i8 %a, @lo
    ret
    """
    lo, _ = _branch(body)
    assert lo.is_full


def test_join_unions_refined_edges():
    body = """
entry:
    %c = ult i8 %a, 100
    jnz %c, @small, @big
small:
    jmp @join
big:
    jmp @join
join:
    store i8 %a, @lo
    ret
    """
    lo, _ = _branch(body)
    assert lo.is_full


def test_branch_on_non_comparison():
    body = """
entry:
    %c = trunc i1 %a
    jnz %c, @hit, @miss
hit:
    store i8 %a, @lo
    ret
miss:
    ret
    """
    lo, _ = _branch(body)
    assert lo.is_full


def test_switch_contiguous_cases():
    body = """
entry:
    switch i8 %a, @miss, 1, @hit, 2, @hit, 3, @hit
hit:
    store i8 %a, @lo
    ret
miss:
    store i8 %a, @hi
    ret
    """
    lo, hi = _branch(body)
    assert lo == Interval(8, 1, 4)
    assert hi == Interval(8, 4, 1)


def test_switch_sparse_cases():
    body = """
entry:
    switch i8 %a, @miss, 1, @hit, 5, @hit
hit:
    store i8 %a, @lo
    ret
miss:
    store i8 %a, @hi
    ret
    """
    lo, hi = _branch(body)
    # 2..4 are not cases, so the default keeps the full set
    assert lo == Interval(8, 1, 6)
    assert hi.is_full


def test_switch_case_to_default_block():
    body = """
entry:
    switch i8 %a, @miss, 1, @hit, 2, @miss
hit:
    store i8 %a, @lo
    ret
miss:
    store i8 %a, @hi
    ret
    """
    lo, hi = _branch(body)
    assert lo == Interval(8, 1, 2)
    assert hi == Interval(8, 2, 1)


def test_refined_store_touching_initializer():
    source = """
global @h : i8 = 1

function void @test(ptr %p) {
entry:
    %x = ptrtoint i8 %p
    %c = uge i8 %x, 2
    jnz %c, @then, @done
then:
    store i8 %x, @h
    ret
done:
    ret
}
    """
    analysis = analyze(source)
    # [1,2) joined with [2,0) closes up to [1,0)
    assert analysis.symbols.get(GlobalSymbol("h")) == Interval(8, 1, 0)
