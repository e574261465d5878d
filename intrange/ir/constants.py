from __future__ import annotations

from dataclasses import dataclass

from intrange.ir.types import ArrayType, IntType, IRType, StructType


class IRConstant:
    """
    A node in a constant initializer tree of a global variable.
    """

    type: IRType


@dataclass(frozen=True)
class ConstantInt(IRConstant):
    type: IntType
    value: int  # always stored unsigned, modulo 2**width

    def __repr__(self) -> str:
        return f"{self.type!r} {self.value}"


@dataclass(frozen=True)
class ConstantStruct(IRConstant):
    type: StructType
    fields: tuple[IRConstant, ...]

    def __repr__(self) -> str:
        return "{ " + ", ".join(repr(f) for f in self.fields) + " }"


@dataclass(frozen=True)
class ConstantArray(IRConstant):
    type: ArrayType
    elements: tuple[IRConstant, ...]

    def __repr__(self) -> str:
        return "[" + ", ".join(repr(e) for e in self.elements) + "]"


@dataclass(frozen=True)
class ConstantOpaque(IRConstant):
    """
    Initializer of a non-integer scalar (e.g. a pointer); carries no range
    information.
    """

    type: IRType

    def __repr__(self) -> str:
        return f"{self.type!r} opaque"


@dataclass(frozen=True)
class ConstantRef(IRConstant):
    """
    Address of a global variable or function (`@name`).
    """

    type: IRType
    name: str

    def __repr__(self) -> str:
        return f"@{self.name}"


def zero_constant(typ: IRType) -> IRConstant:
    """
    Expand `zeroinitializer` into an explicit constant tree of zeros.
    """
    if isinstance(typ, IntType):
        return ConstantInt(typ, 0)
    if isinstance(typ, StructType):
        return ConstantStruct(typ, tuple(zero_constant(f) for f in typ.fields))
    if isinstance(typ, ArrayType):
        return ConstantArray(typ, tuple(zero_constant(typ.element) for _ in range(typ.count)))
    return ConstantOpaque(typ)
