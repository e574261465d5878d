from dataclasses import dataclass
from typing import Iterator, Optional

from intrange.ir.basicblock import IRBasicBlock, IRLabel
from intrange.ir.constants import IRConstant
from intrange.ir.function import IRFunction
from intrange.ir.types import VOID, IRType, StructType


@dataclass
class IRGlobal:
    name: str
    type: IRType
    initializer: Optional[IRConstant] = None

    @property
    def is_internal(self) -> bool:
        # compiler-internal globals (string literals and the like)
        return self.name.startswith(".")

    def __str__(self):
        ret = f"global @{self.name} : {self.type!r}"
        if self.initializer is not None:
            ret += f" = {self.initializer!r}"
        return ret


class IRContext:
    """
    A module: named struct types, global variables and functions.
    """

    functions: dict[IRLabel, IRFunction]
    globals: dict[str, IRGlobal]
    struct_types: dict[str, StructType]

    def __init__(self) -> None:
        self.functions = {}
        self.globals = {}
        self.struct_types = {}

    def get_basic_blocks(self) -> Iterator[IRBasicBlock]:
        for fn in self.functions.values():
            for bb in fn.get_basic_blocks():
                yield bb

    def add_function(self, fn: IRFunction) -> None:
        fn.ctx = self
        self.functions[fn.name] = fn

    def create_function(
        self, name: str, return_type: IRType = VOID, is_vararg: bool = False
    ) -> IRFunction:
        label = IRLabel(name)
        assert label not in self.functions, f"duplicate function {label}"
        fn = IRFunction(label, self, return_type=return_type, is_vararg=is_vararg)
        self.add_function(fn)
        return fn

    def has_function(self, name: IRLabel | str) -> bool:
        if isinstance(name, str):
            name = IRLabel(name)
        return name in self.functions

    def get_function(self, name: IRLabel | str) -> IRFunction:
        if isinstance(name, str):
            name = IRLabel(name)
        if name in self.functions:
            return self.functions[name]
        raise KeyError(f"Function {name} not found in context")

    def get_functions(self) -> Iterator[IRFunction]:
        return iter(self.functions.values())

    def get_defined_functions(self) -> Iterator[IRFunction]:
        return (fn for fn in self.functions.values() if not fn.is_declaration)

    def add_struct_type(self, typ: StructType) -> None:
        assert typ.name is not None
        assert typ.name not in self.struct_types, f"duplicate struct type {typ.name}"
        self.struct_types[typ.name] = typ

    def add_global(
        self, name: str, typ: IRType, initializer: Optional[IRConstant] = None
    ) -> IRGlobal:
        assert name not in self.globals, f"duplicate global {name}"
        glob = IRGlobal(name, typ, initializer)
        self.globals[name] = glob
        return glob

    def __repr__(self) -> str:
        s = []
        for typ in self.struct_types.values():
            fields = ", ".join(repr(f) for f in typ.fields)
            s.append(f"{typ.name} = type {{ {fields} }}")
        for glob in self.globals.values():
            s.append(str(glob))
        if len(s) > 0:
            s.append("")
        for fn in self.functions.values():
            s.append(IRFunction.__repr__(fn))
            s.append("")

        return "\n".join(s)
