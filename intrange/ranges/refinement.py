"""
Narrowing of value ranges along control flow edges.

A conditional branch on `%c = ult i8 %x, 100` tells the true successor that
%x is in [0,100) and the false successor that it is in [100,256). These
facts only narrow one predecessor's contribution to the successor; the
successor still joins the contributions of all its predecessors.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from intrange.ir.basicblock import (
    IRBasicBlock,
    IRInstruction,
    IRVariable,
    invert_predicate,
    swap_predicate,
)
from intrange.ir.types import IntType
from intrange.ranges.evaluators import LocalValueMap, get_range
from intrange.ranges.interval import Interval, make_icmp_region

if TYPE_CHECKING:
    from intrange.ranges.driver import AnalysisContext


def refine_edge(
    actx: AnalysisContext, pred: IRBasicBlock, succ: IRBasicBlock, ranges: LocalValueMap
) -> None:
    """
    Narrow `ranges` (a copy of the ranges of `pred`) with what the
    terminator of `pred` implies on the edge to `succ`.
    """
    term = pred.last_instruction
    if term.opcode == "jnz":
        _refine_branch(actx, term, succ, ranges)
    elif term.opcode == "switch":
        _refine_switch(actx, term, succ, ranges)


def _refine_branch(
    actx: AnalysisContext, term: IRInstruction, succ: IRBasicBlock, ranges: LocalValueMap
) -> None:
    fn = succ.parent
    cond, true_label, false_label = term.operands
    if true_label == false_label:
        # both edges land in the same block, neither outcome is implied
        return

    cmp = actx.dfg(fn).get_producing_instruction(cond)
    if cmp is None or not cmp.is_comparator:
        return
    if not isinstance(cmp.type, IntType):
        return

    width = cmp.type.width
    lhs, rhs = cmp.operands
    lhs_range = get_range(actx, cmp.parent, lhs, width)
    rhs_range = lhs_range.match_width(get_range(actx, cmp.parent, rhs, width))

    predicate = cmp.opcode
    if succ.label.name != true_label.name:
        # false target, use inverse predicate
        predicate = invert_predicate(predicate)

    lhs_region = make_icmp_region(predicate, rhs_range)
    rhs_region = make_icmp_region(swap_predicate(predicate), lhs_range)

    if isinstance(lhs, IRVariable):
        ranges[lhs] = lhs_range.intersect(lhs_region)
    if isinstance(rhs, IRVariable):
        ranges[rhs] = rhs_range.intersect(rhs_region)


def _refine_switch(
    actx: AnalysisContext, term: IRInstruction, succ: IRBasicBlock, ranges: LocalValueMap
) -> None:
    value = term.operands[0]
    if not isinstance(term.type, IntType) or not isinstance(value, IRVariable):
        return

    width = term.type.width
    value_range = get_range(actx, term.parent, value, width)

    if term.switch_default.name != succ.label.name:
        # union all values that go to succ
        region = Interval.empty(width)
        for case, label in term.switch_cases:
            if label.name == succ.label.name:
                region = region.union(Interval.constant(width, case.value))
    else:
        # default case: every value no other successor takes. this differs
        # from complementing the union of all case constants: cases that
        # target the default block are kept, and a non-contiguous union
        # leaves the default unrefined
        elsewhere = Interval.empty(width)
        case_values: set[int] = set()
        for case, label in term.switch_cases:
            if label.name != succ.label.name:
                elsewhere = elsewhere.union(Interval.constant(width, case.value))
                case_values.add(case.value % (1 << width))
        if elsewhere.size == len(case_values):
            region = elsewhere.inverse()
        else:
            # the cases are not contiguous: their union covers values which
            # reach the default, so its complement would drop them
            region = Interval.full(width)

    ranges[value] = value_range.intersect(region)
