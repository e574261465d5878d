from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any, Iterator, Optional, Union

from intrange.exceptions import AnalysisPanic
from intrange.ir.types import I1, PTR, IntType, IRType

if TYPE_CHECKING:
    from intrange.ir.function import IRFunction

# instructions which can terminate a basic block
BB_TERMINATORS = frozenset(["jmp", "jnz", "switch", "ret", "unreachable"])

BINARY_INSTRUCTIONS = frozenset(
    ["add", "sub", "mul", "udiv", "sdiv", "urem", "srem", "shl", "lshr", "ashr", "and", "or", "xor"]
)

COMPARATOR_INSTRUCTIONS = frozenset(
    ["eq", "ne", "ult", "ule", "ugt", "uge", "slt", "sle", "sgt", "sge"]
)

# instructions whose result is an address
ADDRESS_INSTRUCTIONS = frozenset(["field", "index"])

NO_OUTPUT_INSTRUCTIONS = frozenset(["store", "jmp", "jnz", "switch", "ret", "unreachable"])

_SWAPPED_PREDICATE = {
    "eq": "eq",
    "ne": "ne",
    "ult": "ugt",
    "ule": "uge",
    "ugt": "ult",
    "uge": "ule",
    "slt": "sgt",
    "sle": "sge",
    "sgt": "slt",
    "sge": "sle",
}

_INVERSE_PREDICATE = {
    "eq": "ne",
    "ne": "eq",
    "ult": "uge",
    "ule": "ugt",
    "ugt": "ule",
    "uge": "ult",
    "slt": "sge",
    "sle": "sgt",
    "sgt": "sle",
    "sge": "slt",
}


def swap_predicate(opcode: str) -> str:
    """
    Predicate that holds for (b, a) whenever `opcode` holds for (a, b).
    """
    if opcode not in _SWAPPED_PREDICATE:
        raise AnalysisPanic(f"unreachable {opcode}")  # pragma: nocover
    return _SWAPPED_PREDICATE[opcode]


def invert_predicate(opcode: str) -> str:
    """
    Predicate that holds for (a, b) exactly when `opcode` does not.
    """
    if opcode not in _INVERSE_PREDICATE:
        raise AnalysisPanic(f"unreachable {opcode}")  # pragma: nocover
    return _INVERSE_PREDICATE[opcode]


class IROperand:
    """
    IROperand represents an IR operand. An operand is anything that can be
    operated by instructions. It can be a literal, a variable, or a label.
    """

    value: Any
    _hash: Optional[int] = None

    def __init__(self, value: Any) -> None:
        self.value = value
        self._hash = None

    @property
    def name(self) -> str:
        return self.value

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash(self.value)
        return self._hash

    def __eq__(self, other) -> bool:
        if not isinstance(other, type(self)):
            return False
        return self.value == other.value

    def __repr__(self) -> str:
        return str(self.value)


class IRLiteral(IROperand):
    """
    IRLiteral represents an integer literal in IR. The width of a literal is
    usually implied by the instruction using it; `type` is filled in by the
    parser (or builder) once the width is known.
    """

    value: int
    type: Optional[IntType]

    def __init__(self, value: int, type: Optional[IntType] = None) -> None:
        assert isinstance(value, int), value
        super().__init__(value)
        self.type = type

    def __hash__(self) -> int:
        return hash((self.value, self.type))

    def __eq__(self, other) -> bool:
        if not isinstance(other, IRLiteral):
            return False
        return self.value == other.value and self.type == other.type

    def __repr__(self) -> str:
        if abs(self.value) < 1024:
            return str(self.value)
        return f"0x{self.value:x}"


class IRVariable(IROperand):
    """
    IRVariable represents a variable in IR. A variable is a string that starts with a %.
    """

    def __init__(self, name: str) -> None:
        assert isinstance(name, str)
        if not name.startswith("%"):
            name = f"%{name}"
        super().__init__(name)

    @property
    def plain_name(self) -> str:
        return self.name.strip("%")


class IRLabel(IROperand):
    """
    IRLabel represents a reference by name: a basic block, a global variable
    or a function, depending on where it is used. Printed with a leading @.
    """

    value: str

    def __init__(self, value: str) -> None:
        assert isinstance(value, str), f"not a str: {value} ({type(value)})"
        assert len(value) > 0
        super().__init__(value)

    _IS_IDENTIFIER = re.compile("[0-9a-zA-Z_.$]*")

    def __repr__(self):
        if self.__class__._IS_IDENTIFIER.fullmatch(self.value):
            return self.value

        return json.dumps(self.value)  # escape it


class IRInstruction:
    """
    IRInstruction represents an instruction in IR. Each instruction has an opcode,
    an optional type, operands, and an optional output. For example:
        %1 = add i32 %0, 1
    has opcode "add", type i32, operands ["%0", "1"], and output "%1".

    For comparisons the type is the type of the operands (the result is i1),
    for casts it is the destination type, and for stores it is the type of
    the stored value.
    """

    opcode: str
    type: Optional[IRType]
    operands: list[IROperand]
    output: Optional[IRVariable]
    parent: IRBasicBlock
    annotation: Optional[str]

    def __init__(
        self,
        opcode: str,
        operands: list[IROperand] | Iterator[IROperand],
        output: Optional[IRVariable] = None,
        type: Optional[IRType] = None,
    ):
        assert isinstance(opcode, str), "opcode must be an str"
        assert isinstance(operands, list | Iterator), "operands must be a list"
        self.opcode = opcode
        self.operands = list(operands)  # in case we get an iterator
        self.output = output
        self.type = type
        self.annotation = None

    @property
    def is_comparator(self) -> bool:
        return self.opcode in COMPARATOR_INSTRUCTIONS

    @property
    def is_bb_terminator(self) -> bool:
        return self.opcode in BB_TERMINATORS

    @property
    def is_call(self) -> bool:
        return self.opcode == "call"

    @property
    def result_type(self) -> Optional[IRType]:
        """
        Type of the value this instruction produces, if any.
        """
        if self.output is None:
            return None
        if self.is_comparator:
            return I1
        if self.opcode in ADDRESS_INSTRUCTIONS:
            return PTR
        return self.type

    @property
    def has_integer_result(self) -> bool:
        typ = self.result_type
        return typ is not None and typ.is_integer

    def get_input_variables(self) -> Iterator[IRVariable]:
        """
        Get all input operands for instruction.
        """
        return (op for op in self.operands if isinstance(op, IRVariable))

    def get_outputs(self) -> list[IRVariable]:
        """
        Get the output item for an instruction.
        (Currently all instructions output at most one item, but write
        it as a list to be generic for the future)
        """
        return [self.output] if self.output else []

    def get_successor_labels(self) -> list[IRLabel]:
        """
        Block labels this terminator may transfer control to, in operand
        order (duplicates kept).
        """
        assert self.is_bb_terminator, self
        if self.opcode == "jmp":
            return [self.operands[0]]  # type: ignore[list-item]
        if self.opcode == "jnz":
            return [self.operands[1], self.operands[2]]  # type: ignore[list-item]
        if self.opcode == "switch":
            return [op for op in self.operands[1:] if isinstance(op, IRLabel)]
        return []

    @property
    def phi_operands(self) -> Iterator[tuple[IRLabel, IROperand]]:
        """
        Get phi operands for instruction.
        """
        assert self.opcode == "phi", "instruction must be a phi"
        for i in range(0, len(self.operands), 2):
            label = self.operands[i]
            value = self.operands[i + 1]
            assert isinstance(label, IRLabel), f"not a label: {label} (at `{self}`)"
            yield label, value

    @property
    def switch_cases(self) -> Iterator[tuple[IRLiteral, IRLabel]]:
        """
        Get (case value, target) pairs of a switch, excluding the default.
        """
        assert self.opcode == "switch", "instruction must be a switch"
        for i in range(2, len(self.operands), 2):
            value = self.operands[i]
            label = self.operands[i + 1]
            assert isinstance(value, IRLiteral), f"not a literal: {value} (at `{self}`)"
            assert isinstance(label, IRLabel), f"not a label: {label} (at `{self}`)"
            yield value, label

    @property
    def switch_default(self) -> IRLabel:
        assert self.opcode == "switch", "instruction must be a switch"
        label = self.operands[1]
        assert isinstance(label, IRLabel), f"not a label: {label} (at `{self}`)"
        return label

    def __repr__(self) -> str:
        s = ""
        if self.output:
            s += f"{self.output} = "
        s += self.opcode
        if self.type is not None:
            s += f" {self.type!r}"
        if self.operands:
            s += " " + ", ".join(
                (f"@{op!r}" if isinstance(op, IRLabel) else repr(op)) for op in self.operands
            )

        if self.annotation:
            s = f"{s: <30} ; {self.annotation}"

        return f"{s: <30}"


def _ir_operand_from_value(val: Any) -> IROperand:
    if isinstance(val, IROperand):
        return val

    assert isinstance(val, int), val
    return IRLiteral(val)


class IRBasicBlock:
    """
    IRBasicBlock represents a basic block in IR. Each basic block has a label and
    a list of instructions, while belonging to a function.

    The following IR code:
        %1 = add i32 %0, 1
        %2 = mul i32 %1, 2
    is represented as:
        bb = IRBasicBlock(IRLabel("bb"), function)
        r1 = bb.append_instruction("add", x0, 1, type=IntType(32))
        r2 = bb.append_instruction("mul", r1, 2, type=IntType(32))

    The label of a basic block is used to refer to it from other basic blocks
    in order to branch to it.

    The parent of a basic block is the function it belongs to.

    The instructions of a basic block are executed sequentially, and the last
    instruction of a basic block is always a terminator instruction, which is
    used to branch to other basic blocks.
    """

    label: IRLabel
    parent: IRFunction
    instructions: list[IRInstruction]

    def __init__(self, label: IRLabel, parent: IRFunction) -> None:
        assert isinstance(label, IRLabel), "label must be an IRLabel"
        self.label = label
        self.parent = parent
        self.instructions = []

    @property
    def out_bbs(self) -> list[IRBasicBlock]:
        assert self.is_terminated
        fn = self.parent
        return [fn.get_basic_block(label.name) for label in self.last_instruction.get_successor_labels()]

    @property
    def last_instruction(self) -> IRInstruction:
        return self.instructions[-1]

    def append_instruction(
        self,
        opcode: str,
        *args: Union[IROperand, int],
        type: Optional[IRType] = None,
        ret: Optional[IRVariable] = None,
        annotation: Optional[str] = None,
    ) -> Optional[IRVariable]:
        """
        Append an instruction to the basic block

        Returns the output variable if the instruction supports one
        """
        assert not self.is_terminated, self

        if ret is None and opcode not in NO_OUTPUT_INSTRUCTIONS:
            if not (opcode == "call" and type is not None and type.is_void):
                ret = self.parent.get_next_variable()

        # Wrap raw integers in IRLiterals
        inst_args = [_ir_operand_from_value(arg) for arg in args]

        inst = IRInstruction(opcode, inst_args, ret, type)
        inst.annotation = annotation
        self.insert_instruction(inst)
        return ret

    def insert_instruction(self, instruction: IRInstruction, index: Optional[int] = None) -> None:
        assert isinstance(instruction, IRInstruction), "instruction must be an IRInstruction"

        if index is None:
            assert not self.is_terminated, (self, instruction)
            index = len(self.instructions)
        instruction.parent = self
        self.instructions.insert(index, instruction)
        if instruction.output is not None:
            self.parent.set_var_type(instruction.output, instruction.result_type)

    @property
    def phi_instructions(self) -> Iterator[IRInstruction]:
        for inst in self.instructions:
            if inst.opcode == "phi":
                yield inst
            else:
                return

    @property
    def is_empty(self) -> bool:
        """
        Check if the basic block is empty, i.e. it has no instructions.
        """
        return len(self.instructions) == 0

    @property
    def is_terminated(self) -> bool:
        """
        Check if the basic block is terminal, i.e. the last instruction is a terminator.
        """
        # it's ok to return False here, since we use this to check
        # if we can/need to append instructions to the basic block.
        if len(self.instructions) == 0:
            return False
        return self.instructions[-1].is_bb_terminator

    def __repr__(self) -> str:
        s = f"{self.label!r}:\n"
        for inst in self.instructions:
            s += f"    {str(inst).strip()}\n"
        return s
