from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional

from intrange.exceptions import AnalysisPanic
from intrange.ir.basicblock import (
    BINARY_INSTRUCTIONS,
    IRBasicBlock,
    IRInstruction,
    IRLiteral,
    IROperand,
    IRVariable,
)
from intrange.ir.function import IRFunction
from intrange.ir.types import IntType
from intrange.ranges.interval import Interval
from intrange.ranges.symbols import (
    arg_symbol,
    call_site_symbol,
    pointer_symbol,
    return_symbol,
    value_symbol,
)

if TYPE_CHECKING:
    from intrange.ranges.driver import AnalysisContext

# ranges of the values known in one basic block
LocalValueMap = dict[IROperand, Interval]

# Type alias for range evaluator functions
RangeEvaluator = Callable[[IRInstruction, "AnalysisContext"], Interval]


def _int_width(inst: IRInstruction) -> int:
    typ = inst.result_type
    if not isinstance(typ, IntType):
        raise AnalysisPanic(f"expected an integer result, got {typ}", inst)
    return typ.width


def operand_width(fn: IRFunction, op: IROperand) -> Optional[int]:
    """Width of an integer operand, or None if it is not (known to be) one."""
    if isinstance(op, IRLiteral):
        return op.type.width if op.type is not None else None
    if isinstance(op, IRVariable):
        typ = fn.get_var_type(op)
        if isinstance(typ, IntType):
            return typ.width
    return None


def union_local(ranges: LocalValueMap, op: IROperand, interval: Interval) -> bool:
    """Widen the local range of `op` to include `interval`."""
    if interval.is_empty:
        return False
    old = ranges.get(op)
    if old is None:
        ranges[op] = interval
        return True
    new = old.union(interval)
    ranges[op] = new
    return new != old


def _call_range(actx: AnalysisContext, inst: IRInstruction, width: int) -> Interval:
    """Union of the ranges returned by every possible callee of a call."""
    callees = actx.callgraph.callees_of(inst)
    if len(callees) == 0:
        return Interval.full(width)

    ret = Interval.empty(width)
    for callee in callees:
        # nothing is known about what external functions return
        if callee.is_declaration:
            return Interval.full(width)
        sym = return_symbol(callee)
        if actx.taint.is_taint_source(sym):
            return Interval.full(width)
        callee_range = actx.symbols.get(sym)
        if callee_range is not None:
            ret = ret.union(callee_range)
    return ret


def get_range(
    actx: AnalysisContext, bb: IRBasicBlock, op: IROperand, width: Optional[int] = None
) -> Interval:
    """
    The range of `op` as seen in `bb`. `width` is the width the using
    instruction expects; it types bare literals and stands in for operands
    that are not integers.
    """
    if isinstance(op, IRLiteral):
        lit_width = op.type.width if op.type is not None else width
        if lit_width is None:
            raise AnalysisPanic(f"literal {op} has no integer type", bb)
        return Interval.constant(lit_width, op.value)

    ranges = actx.block_ranges(bb)
    if op in ranges:
        return ranges[op]

    fn = bb.parent
    op_width = operand_width(fn, op)
    if op_width is None:
        if width is None:
            raise AnalysisPanic(f"{op} is not an integer in @{fn.name}", bb)
        # used as an integer but not typed as one
        return Interval.full(width)

    dfg = actx.dfg(fn)
    inst = dfg.get_producing_instruction(op)

    if inst is not None and inst.is_call:
        ret = _call_range(actx, inst, op_width)
    else:
        ret = Interval.empty(op_width)
        sym = value_symbol(fn, dfg, op)
        if sym is not None:
            if actx.taint.is_taint_source(sym):
                ret = Interval.full(op_width)
            elif sym in actx.symbols:
                ret = actx.symbols.get(sym)  # type: ignore[assignment]
        elif inst is not None and inst.opcode == "load":
            # loads from locations without a symbol are not tracked
            ret = Interval.full(op_width)
        # a load may read part of a wider location
        ret = ret.zext_or_trunc(op_width)

    if not ret.is_empty:
        ranges[op] = ret
    return ret


def _operands_range(
    inst: IRInstruction, actx: AnalysisContext, width: int
) -> tuple[Interval, Interval]:
    bb = inst.parent
    lhs = get_range(actx, bb, inst.operands[0], width)
    rhs = get_range(actx, bb, inst.operands[1], width)
    return lhs, lhs.match_width(rhs)


def _eval_add(inst: IRInstruction, actx: AnalysisContext) -> Interval:
    lhs, rhs = _operands_range(inst, actx, _int_width(inst))
    return lhs.add(rhs)


def _eval_sub(inst: IRInstruction, actx: AnalysisContext) -> Interval:
    lhs, rhs = _operands_range(inst, actx, _int_width(inst))
    return lhs.sub(rhs)


def _eval_mul(inst: IRInstruction, actx: AnalysisContext) -> Interval:
    lhs, rhs = _operands_range(inst, actx, _int_width(inst))
    return lhs.multiply(rhs)


def _eval_udiv(inst: IRInstruction, actx: AnalysisContext) -> Interval:
    lhs, rhs = _operands_range(inst, actx, _int_width(inst))
    return lhs.udiv(rhs)


def _eval_shl(inst: IRInstruction, actx: AnalysisContext) -> Interval:
    lhs, rhs = _operands_range(inst, actx, _int_width(inst))
    return lhs.shl(rhs)


def _eval_lshr(inst: IRInstruction, actx: AnalysisContext) -> Interval:
    lhs, rhs = _operands_range(inst, actx, _int_width(inst))
    return lhs.lshr(rhs)


def _eval_and(inst: IRInstruction, actx: AnalysisContext) -> Interval:
    lhs, rhs = _operands_range(inst, actx, _int_width(inst))
    return lhs.binary_and(rhs)


def _eval_or(inst: IRInstruction, actx: AnalysisContext) -> Interval:
    lhs, rhs = _operands_range(inst, actx, _int_width(inst))
    return lhs.binary_or(rhs)


# sdiv, ashr and xor have no transfer function of their own and pass the
# left operand through; urem and srem pass the right one. this is not sound.
def _eval_pass_lhs(inst: IRInstruction, actx: AnalysisContext) -> Interval:
    lhs, _ = _operands_range(inst, actx, _int_width(inst))
    return lhs


def _eval_pass_rhs(inst: IRInstruction, actx: AnalysisContext) -> Interval:
    _, rhs = _operands_range(inst, actx, _int_width(inst))
    return rhs


def _cast_source(inst: IRInstruction, actx: AnalysisContext) -> Interval:
    bb = inst.parent
    src = inst.operands[0]
    src_width = operand_width(bb.parent, src)
    if src_width is None:
        raise AnalysisPanic(f"`{inst.opcode}` of a non-integer", inst)
    return get_range(actx, bb, src, src_width)


def _eval_trunc_or_zext(inst: IRInstruction, actx: AnalysisContext) -> Interval:
    width = _int_width(inst)
    return _cast_source(inst, actx).zext_or_trunc(width)


def _eval_sext(inst: IRInstruction, actx: AnalysisContext) -> Interval:
    width = _int_width(inst)
    src = _cast_source(inst, actx)
    if width == src.width:
        return src
    if width < src.width:
        raise AnalysisPanic("`sext` to a narrower type", inst)
    return src.sign_extend(width)


def _eval_bitcast(inst: IRInstruction, actx: AnalysisContext) -> Interval:
    width = _int_width(inst)
    bb = inst.parent
    if operand_width(bb.parent, inst.operands[0]) is None:
        return Interval.full(width)
    return _cast_source(inst, actx)


def _eval_ptrtoint(inst: IRInstruction, actx: AnalysisContext) -> Interval:
    # pointer to int could be any value
    return Interval.full(_int_width(inst))


def _eval_select(inst: IRInstruction, actx: AnalysisContext) -> Interval:
    width = _int_width(inst)
    bb = inst.parent
    true_range = get_range(actx, bb, inst.operands[1], width)
    false_range = get_range(actx, bb, inst.operands[2], width)
    return true_range.union(false_range)


def _eval_phi(inst: IRInstruction, actx: AnalysisContext) -> Interval:
    width = _int_width(inst)
    bb = inst.parent
    fn = bb.parent
    back_edges = actx.back_edges(fn)

    ret = Interval.empty(width)
    for label, value in inst.phi_operands:
        pred = fn.get_basic_block(label.name)
        # loop-carried values are picked up by the next module sweep
        if back_edges.is_back_edge(pred, bb):
            continue
        ret = ret.union(get_range(actx, pred, value, width))
    return ret


def _eval_lookup(inst: IRInstruction, actx: AnalysisContext) -> Interval:
    # loads and call results resolve through their symbols
    assert inst.output is not None
    return get_range(actx, inst.parent, inst.output, _int_width(inst))


EVAL_DISPATCH: dict[str, RangeEvaluator] = {
    "add": _eval_add,
    "sub": _eval_sub,
    "mul": _eval_mul,
    "udiv": _eval_udiv,
    "sdiv": _eval_pass_lhs,
    "urem": _eval_pass_rhs,
    "srem": _eval_pass_rhs,
    "shl": _eval_shl,
    "lshr": _eval_lshr,
    "ashr": _eval_pass_lhs,
    "and": _eval_and,
    "or": _eval_or,
    "xor": _eval_pass_lhs,
    "trunc": _eval_trunc_or_zext,
    "zext": _eval_trunc_or_zext,
    "sext": _eval_sext,
    "bitcast": _eval_bitcast,
    "ptrtoint": _eval_ptrtoint,
    "select": _eval_select,
    "phi": _eval_phi,
    "load": _eval_lookup,
    "call": _eval_lookup,
}

assert all(op in EVAL_DISPATCH for op in BINARY_INSTRUCTIONS)


def _update_store(inst: IRInstruction, actx: AnalysisContext) -> bool:
    bb = inst.parent
    value, ptr = inst.operands[0], inst.operands[1]
    if not isinstance(inst.type, IntType):
        return False

    sym = pointer_symbol(bb.parent.ctx, actx.dfg(bb.parent), ptr)
    if sym is None:
        return False

    value_range = get_range(actx, bb, value, inst.type.width)
    union_local(actx.block_ranges(bb), ptr, value_range)
    return actx.symbols.union_range(sym, value_range, inst)


def _update_ret(inst: IRInstruction, actx: AnalysisContext) -> bool:
    if len(inst.operands) == 0 or not isinstance(inst.type, IntType):
        return False
    bb = inst.parent
    value_range = get_range(actx, bb, inst.operands[0], inst.type.width)
    return actx.symbols.union_range(return_symbol(bb.parent), value_range, inst)


def _update_call(inst: IRInstruction, actx: AnalysisContext) -> bool:
    bb = inst.parent
    fn = bb.parent
    changed = False
    args = inst.operands[1:]

    # update arguments of all possible callees
    for callee in actx.callgraph.callees_of(inst):
        # skip vararg and builtin functions
        if callee.is_vararg or "." in callee.name.name:
            continue
        for i, arg in enumerate(args):
            width = operand_width(fn, arg)
            if width is None and isinstance(arg, IRLiteral) and i < len(callee.args):
                param_type = callee.args[i].type
                width = param_type.width if isinstance(param_type, IntType) else None
            # skip non-integer arguments
            if width is None:
                continue
            arg_range = get_range(actx, bb, arg, width)
            changed |= actx.symbols.union_range(arg_symbol(callee, i), arg_range, inst)

    # range for the return value of this call site
    sym = call_site_symbol(inst)
    if sym is not None and isinstance(inst.type, IntType):
        result_range = get_range(actx, bb, inst.output, inst.type.width)  # type: ignore[arg-type]
        changed |= actx.symbols.union_range(sym, result_range, inst)

    return changed


# store, return and call might update the symbol table
UPDATE_DISPATCH: dict[str, Callable[[IRInstruction, "AnalysisContext"], bool]] = {
    "store": _update_store,
    "ret": _update_ret,
    "call": _update_call,
}


def update_range_for(inst: IRInstruction, actx: AnalysisContext) -> bool:
    """
    Apply the transfer function of `inst`. Returns True if the symbol
    table changed.
    """
    changed = False
    update = UPDATE_DISPATCH.get(inst.opcode)
    if update is not None:
        changed |= update(inst, actx)

    if not inst.has_integer_result:
        return changed

    assert inst.output is not None
    width = _int_width(inst)
    evaluator = EVAL_DISPATCH.get(inst.opcode)
    if evaluator is None:
        # no transfer function: anything goes
        result = Interval.full(width)
    else:
        result = evaluator(inst, actx)

    union_local(actx.block_ranges(inst.parent), inst.output, result)
    return changed
