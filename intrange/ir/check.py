from intrange.exceptions import ErrorList, IRValidationError
from intrange.ir.basicblock import IRBasicBlock, IRLabel, IRVariable
from intrange.ir.context import IRContext
from intrange.ir.function import IRFunction
from intrange.utils import OrderedSet


class BasicBlockNotTerminated(IRValidationError):
    def __init__(self, bb: IRBasicBlock):
        super().__init__(f"basic block {bb.label} in @{bb.parent.name} is not terminated", bb)


class MisplacedTerminator(IRValidationError):
    def __init__(self, inst):
        bb = inst.parent
        super().__init__(f"terminator in the middle of block {bb.label}", inst, bb)


class UnknownLabel(IRValidationError):
    def __init__(self, label: IRLabel, inst):
        super().__init__(f"jump to unknown label {label}", inst)


class BadPhiLabel(IRValidationError):
    def __init__(self, label: IRLabel, inst):
        bb = inst.parent
        super().__init__(f"phi incoming block {label} is not a predecessor of {bb.label}", inst)


class VarNotDefined(IRValidationError):
    def __init__(self, var: IRVariable, inst):
        super().__init__(f"var {var} not defined", inst)


class VarRedefined(IRValidationError):
    def __init__(self, var: IRVariable, inst):
        super().__init__(f"var {var} is assigned more than once", inst)


def _find_control_flow_errors(fn: IRFunction) -> list[IRValidationError]:
    errors: list[IRValidationError] = []
    preds: dict[str, OrderedSet[str]] = {bb.label.name: OrderedSet() for bb in fn.get_basic_blocks()}

    for bb in fn.get_basic_blocks():
        for inst in bb.instructions[:-1]:
            if inst.is_bb_terminator:
                errors.append(MisplacedTerminator(inst))

        if not bb.is_terminated:
            errors.append(BasicBlockNotTerminated(bb))
            continue

        term = bb.last_instruction
        for label in term.get_successor_labels():
            if not fn.has_basic_block(label.name):
                errors.append(UnknownLabel(label, term))
                continue
            preds[label.name].add(bb.label.name)

    # phi labels can only be checked once every edge is known
    if len(errors) > 0:
        return errors

    for bb in fn.get_basic_blocks():
        for inst in bb.phi_instructions:
            for label, _ in inst.phi_operands:
                if label.name not in preds[bb.label.name]:
                    errors.append(BadPhiLabel(label, inst))

    return errors


def _find_variable_errors(fn: IRFunction) -> list[IRValidationError]:
    errors: list[IRValidationError] = []
    defined: OrderedSet[IRVariable] = OrderedSet(p.func_var for p in fn.args)

    for bb in fn.get_basic_blocks():
        for inst in bb.instructions:
            if inst.output is None:
                continue
            if inst.output in defined:
                errors.append(VarRedefined(inst.output, inst))
            defined.add(inst.output)

    for bb in fn.get_basic_blocks():
        for inst in bb.instructions:
            for var in inst.get_input_variables():
                if var not in defined:
                    errors.append(VarNotDefined(var, inst))

    return errors


def find_semantic_errors_fn(fn: IRFunction) -> list[IRValidationError]:
    if fn.is_declaration:
        return []
    errors = _find_control_flow_errors(fn)
    errors.extend(_find_variable_errors(fn))
    return errors


def find_semantic_errors(ctx: IRContext) -> list[IRValidationError]:
    errors: list[IRValidationError] = []

    for fn in ctx.get_functions():
        errors.extend(find_semantic_errors_fn(fn))

    return errors


def check_ir(ctx: IRContext) -> None:
    """
    Raise IRValidationError if the module is malformed. All problems are
    collected first and reported together.
    """
    errors = ErrorList(find_semantic_errors(ctx))
    errors.raise_if_not_empty()
