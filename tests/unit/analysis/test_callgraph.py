from intrange.analysis import CallGraph
from tests.ir_utils import find_instruction, parse_checked

SOURCE = """
global @table : ptr = @inc

declare i8 @ext(i8)

function i8 @inc(i8 %a) {
entry:
    %r = add i8 %a, 1
    ret i8 %r
}

function i8 @dec(i8 %a) {
entry:
    %r = sub i8 %a, 1
    ret i8 %r
}

function i16 @wide(i16 %a) {
entry:
    ret i16 %a
}

function void @main(ptr %fp, ptr %gp) {
entry:
    %direct = call i8 @dec, 1
    %ext = call i8 @ext, 2
    %indirect = call i8 %fp, 3:i8
    %other = call i32 %gp, 4:i32
    store ptr @wide, %gp
    ret
}
"""


def _setup():
    ctx = parse_checked(SOURCE)
    return ctx, CallGraph(ctx)


def test_direct_calls():
    ctx, cg = _setup()
    main = ctx.get_function("main")

    assert list(cg.callees_of(find_instruction(main, "%direct"))) == [ctx.get_function("dec")]
    assert list(cg.callees_of(find_instruction(main, "%ext"))) == [ctx.get_function("ext")]


def test_address_taken():
    ctx, cg = _setup()
    # @inc is named by an initializer, @wide by a store; @dec is only called
    assert list(cg.address_taken) == [ctx.get_function("inc"), ctx.get_function("wide")]


def test_indirect_call_matches_signature():
    ctx, cg = _setup()
    main = ctx.get_function("main")

    # @wide has its address taken but takes and returns i16
    assert list(cg.callees_of(find_instruction(main, "%indirect"))) == [ctx.get_function("inc")]
    assert len(cg.callees_of(find_instruction(main, "%other"))) == 0


def test_call_sites():
    ctx, cg = _setup()
    main = ctx.get_function("main")

    assert list(cg.call_sites(ctx.get_function("inc"))) == [find_instruction(main, "%indirect")]
    assert list(cg.call_sites(ctx.get_function("dec"))) == [find_instruction(main, "%direct")]
    assert len(cg.call_sites(ctx.get_function("wide"))) == 0
