from intrange.analysis import DFGAnalysis, IRAnalysesCache
from intrange.ir.basicblock import IRLabel, IRVariable
from tests.ir_utils import find_instruction, parse_from_basic_block


def test_producing_instruction():
    source = """
entry:
    %x = add i8 %a, 1
    %y = mul i8 %x, %x
    %c = ult i8 %y, %x
    ret
    """
    ctx = parse_from_basic_block(source, params="i8 %a")
    fn = ctx.get_function("test")
    dfg = IRAnalysesCache(fn).request_analysis(DFGAnalysis)

    for name in ("%x", "%y", "%c"):
        assert dfg.get_producing_instruction(IRVariable(name)) is find_instruction(fn, name)

    # parameters and labels are not produced by an instruction
    assert dfg.get_producing_instruction(IRVariable("%a")) is None
    assert dfg.get_producing_instruction(IRLabel("g")) is None
