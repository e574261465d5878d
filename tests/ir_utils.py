from typing import Optional

from intrange.analysis import NO_TAINT, TaintOracle
from intrange.ir import check_ir, parse_ir
from intrange.ir.basicblock import IRInstruction, IRVariable
from intrange.ir.context import IRContext
from intrange.ir.function import IRFunction
from intrange.ranges import Interval, RangeAnalysis
from intrange.settings import Settings


def parse_checked(source: str) -> IRContext:
    ctx = parse_ir(source)
    check_ir(ctx)
    return ctx


def parse_from_basic_block(source: str, funcname="test", signature="void", params=""):
    """
    Parse an IRContext from the body of a single function
    """
    source = f"function {signature} @{funcname}({params}) {{\n{source}\n}}"
    return parse_checked(source)


def analyze(
    source: str,
    settings: Optional[Settings] = None,
    taint: TaintOracle = NO_TAINT,
) -> RangeAnalysis:
    if settings is None:
        settings = Settings(max_iterations=5, watch=None, debug=False)
    analysis = RangeAnalysis(parse_checked(source), settings=settings, taint=taint)
    analysis.run()
    return analysis


def find_instruction(fn: IRFunction, output: str) -> IRInstruction:
    var = IRVariable(output)
    for bb in fn.get_basic_blocks():
        for inst in bb.instructions:
            if inst.output == var:
                return inst
    raise KeyError(output)


def interval(width: int, lower: int, upper: int) -> Interval:
    return Interval.from_bounds(width, lower, upper)


def symbol_ranges(analysis: RangeAnalysis) -> dict[str, str]:
    return {str(sym): str(rng) for sym, rng in analysis.symbols.dump()}
