from intrange.analysis import BackEdgeAnalysis, IRAnalysesCache
from tests.ir_utils import parse_from_basic_block


def _analyze(source: str):
    ctx = parse_from_basic_block(source)
    fn = ctx.get_function("test")
    ac = IRAnalysesCache(fn)
    return fn, ac.request_analysis(BackEdgeAnalysis)


def test_self_loop():
    source = """
entry:
    jmp @loop
loop:
    %c = frob i1
    jnz %c, @loop, @done
done:
    ret
    """
    fn, back_edges = _analyze(source)
    entry, loop, done = (fn.get_basic_block(name) for name in ("entry", "loop", "done"))

    assert list(back_edges.back_edges) == [(loop, loop)]
    assert back_edges.is_back_edge(loop, loop)
    assert not back_edges.is_back_edge(entry, loop)
    assert back_edges.forward_preds(loop) == [entry]
    assert back_edges.forward_preds(done) == [loop]


def test_nested_loops():
    source = """
entry:
    jmp @outer
outer:
    jmp @inner
inner:
    %c = frob i1
    jnz %c, @inner, @latch
latch:
    %d = frob i1
    jnz %d, @outer, @done
done:
    ret
    """
    fn, back_edges = _analyze(source)
    bbs = {name: fn.get_basic_block(name) for name in ("entry", "outer", "inner", "latch")}

    assert set(back_edges.back_edges) == {
        (bbs["inner"], bbs["inner"]),
        (bbs["latch"], bbs["outer"]),
    }
    assert back_edges.forward_preds(bbs["outer"]) == [bbs["entry"]]
    assert back_edges.forward_preds(bbs["inner"]) == [bbs["outer"]]


def test_diamond_has_no_back_edges():
    source = """
entry:
    %c = frob i1
    jnz %c, @left, @right
left:
    jmp @join
right:
    jmp @join
join:
    ret
    """
    fn, back_edges = _analyze(source)
    join = fn.get_basic_block("join")

    assert len(back_edges.back_edges) == 0
    left, right = fn.get_basic_block("left"), fn.get_basic_block("right")
    assert back_edges.forward_preds(join) == [left, right]


def test_unreachable_block():
    source = """
entry:
    ret
dead:
    jmp @dead
    """
    fn, back_edges = _analyze(source)
    dead = fn.get_basic_block("dead")

    # only edges reachable from the entry are classified
    assert not back_edges.is_back_edge(dead, dead)
    assert dead not in back_edges.reachable


def test_long_chain():
    n = 3000
    blocks = ["entry:\n    jmp @bb0"]
    for i in range(n - 1):
        blocks.append(f"bb{i}:\n    jmp @bb{i + 1}")
    blocks.append(f"bb{n - 1}:\n    %c = frob i1\n    jnz %c, @bb0, @done")
    blocks.append("done:\n    ret")

    fn, back_edges = _analyze("\n".join(blocks))
    first, last = fn.get_basic_block("bb0"), fn.get_basic_block(f"bb{n - 1}")

    assert list(back_edges.back_edges) == [(last, first)]
    assert len(back_edges.reachable) == n + 2
    assert back_edges.forward_preds(first) == [fn.get_basic_block("entry")]
