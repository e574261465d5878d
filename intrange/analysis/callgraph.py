from typing import Iterator, Optional

from intrange.ir.basicblock import IRInstruction, IRLabel, IRLiteral, IROperand, IRVariable
from intrange.ir.constants import ConstantArray, ConstantRef, ConstantStruct, IRConstant
from intrange.ir.context import IRContext
from intrange.ir.function import IRFunction
from intrange.ir.types import IRType
from intrange.utils import OrderedSet

# opcodes whose label operands name basic blocks rather than functions
_BLOCK_LABEL_OPCODES = frozenset(["jmp", "jnz", "switch", "phi"])


class CallGraph:
    """
    Compute the function call graph for the context.

    Direct calls resolve to the named function. An indirect call (through a
    pointer variable) may reach any function whose address is taken somewhere
    in the module and whose signature matches the call.
    """

    ctx: IRContext
    address_taken: OrderedSet[IRFunction]
    _callees: dict[IRInstruction, OrderedSet[IRFunction]]
    _call_sites: dict[IRFunction, OrderedSet[IRInstruction]]

    def __init__(self, ctx: IRContext):
        self.ctx = ctx
        self.address_taken = OrderedSet()
        self._callees = {}
        self._call_sites = {fn: OrderedSet() for fn in ctx.get_functions()}

        self._find_address_taken()
        for fn in ctx.get_defined_functions():
            self._analyze_function(fn)

    def callees_of(self, inst: IRInstruction) -> OrderedSet[IRFunction]:
        assert inst.is_call, inst
        return self._callees.get(inst, OrderedSet())

    def call_sites(self, fn: IRFunction) -> OrderedSet[IRInstruction]:
        return self._call_sites.get(fn, OrderedSet())

    def _find_address_taken(self) -> None:
        for glob in self.ctx.globals.values():
            if glob.initializer is not None:
                for name in _constant_refs(glob.initializer):
                    self._mark_address_taken(name)

        for fn in self.ctx.get_defined_functions():
            for bb in fn.get_basic_blocks():
                for inst in bb.instructions:
                    if inst.opcode in _BLOCK_LABEL_OPCODES:
                        continue
                    operands = inst.operands[1:] if inst.is_call else inst.operands
                    for op in operands:
                        if isinstance(op, IRLabel):
                            self._mark_address_taken(op.name)

    def _mark_address_taken(self, name: str) -> None:
        if self.ctx.has_function(name):
            self.address_taken.add(self.ctx.get_function(name))

    def _analyze_function(self, fn: IRFunction) -> None:
        for bb in fn.get_basic_blocks():
            for inst in bb.instructions:
                if not inst.is_call:
                    continue
                callees = self._resolve(fn, inst)
                self._callees[inst] = callees
                for callee in callees:
                    self._call_sites[callee].add(inst)

    def _resolve(self, caller: IRFunction, inst: IRInstruction) -> OrderedSet[IRFunction]:
        target = inst.operands[0]
        if isinstance(target, IRLabel):
            return OrderedSet([self.ctx.get_function(target.name)])

        arg_types = [_operand_type(caller, op) for op in inst.operands[1:]]
        return OrderedSet(
            fn for fn in self.address_taken if _signature_matches(fn, inst.type, arg_types)
        )


def _operand_type(fn: IRFunction, op: IROperand) -> Optional[IRType]:
    if isinstance(op, IRVariable):
        return fn.get_var_type(op)
    if isinstance(op, IRLiteral):
        return op.type
    return None


def _signature_matches(
    fn: IRFunction, ret_type: Optional[IRType], arg_types: list[Optional[IRType]]
) -> bool:
    if fn.return_type != ret_type:
        return False
    params = fn.param_types
    if fn.is_vararg:
        if len(arg_types) < len(params):
            return False
    elif len(arg_types) != len(params):
        return False
    # an operand of unknown type matches any parameter
    return all(a is None or a == p for a, p in zip(arg_types, params))


def _constant_refs(const: IRConstant) -> Iterator[str]:
    if isinstance(const, ConstantRef):
        yield const.name
    elif isinstance(const, ConstantStruct):
        for field in const.fields:
            yield from _constant_refs(field)
    elif isinstance(const, ConstantArray):
        for elem in const.elements:
            yield from _constant_refs(elem)
