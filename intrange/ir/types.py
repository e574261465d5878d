from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class IRType:
    """
    Base class for IR types. Types are immutable and compare structurally,
    except named structs, which compare by name.
    """

    @property
    def is_integer(self) -> bool:
        return False

    @property
    def is_pointer(self) -> bool:
        return False

    @property
    def is_void(self) -> bool:
        return False


@dataclass(frozen=True)
class IntType(IRType):
    width: int

    def __post_init__(self):
        assert isinstance(self.width, int) and self.width > 0, self.width

    @property
    def is_integer(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"i{self.width}"


@dataclass(frozen=True)
class PointerType(IRType):
    @property
    def is_pointer(self) -> bool:
        return True

    def __repr__(self) -> str:
        return "ptr"


@dataclass(frozen=True)
class VoidType(IRType):
    @property
    def is_void(self) -> bool:
        return True

    def __repr__(self) -> str:
        return "void"


@dataclass(frozen=True)
class ArrayType(IRType):
    count: int
    element: IRType

    def __repr__(self) -> str:
        return f"[{self.count} x {self.element!r}]"


@dataclass(frozen=True, eq=False)
class StructType(IRType):
    """
    A struct type. Named structs (`struct.foo`) are nominal: two references
    to the same name are the same type. Literal structs (`{ i32, i8 }`) have
    no name and are compared structurally.
    """

    name: Optional[str]
    fields: tuple[IRType, ...]

    @property
    def is_anonymous(self) -> bool:
        # fields of anonymous structs are not tracked individually
        if self.name is None:
            return True
        return self.name == "struct.anon" or self.name.startswith("struct.anon.")

    def __eq__(self, other) -> bool:
        if not isinstance(other, StructType):
            return False
        if self.name is not None or other.name is not None:
            return self.name == other.name
        return self.fields == other.fields

    def __hash__(self) -> int:
        if self.name is not None:
            return hash(self.name)
        return hash(self.fields)

    def __repr__(self) -> str:
        if self.name is not None:
            return self.name
        return "{ " + ", ".join(repr(f) for f in self.fields) + " }"


PTR = PointerType()
VOID = VoidType()
I1 = IntType(1)
