from __future__ import annotations

import textwrap
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, Optional

from intrange.ir.basicblock import IRBasicBlock, IRLabel, IRVariable
from intrange.ir.types import VOID, IRType

if TYPE_CHECKING:
    from intrange.ir.context import IRContext


@dataclass(frozen=True)
class IRParameter:
    name: str
    index: int
    type: IRType
    func_var: IRVariable


class IRFunction:
    """
    Function that contains basic blocks.

    A function with no basic blocks is a declaration: its body lives
    outside the module and nothing is known about what it returns.
    """

    name: IRLabel  # symbol name
    ctx: IRContext
    args: list[IRParameter]
    return_type: IRType
    is_vararg: bool
    last_variable: int
    _basic_block_dict: dict[str, IRBasicBlock]
    _var_types: dict[IRVariable, Optional[IRType]]

    def __init__(
        self,
        name: IRLabel,
        ctx: IRContext = None,  # type: ignore[assignment]
        return_type: IRType = VOID,
        is_vararg: bool = False,
    ):
        self.ctx = ctx
        self.name = name
        self.args = []
        self.return_type = return_type
        self.is_vararg = is_vararg
        self._basic_block_dict = {}
        self._var_types = {}

        self.last_variable = 0

    @property
    def is_declaration(self) -> bool:
        return len(self._basic_block_dict) == 0

    @property
    def entry(self) -> IRBasicBlock:
        return next(self.get_basic_blocks())

    @property
    def param_types(self) -> tuple[IRType, ...]:
        return tuple(param.type for param in self.args)

    def add_param(self, name: str, typ: IRType) -> IRVariable:
        var = IRVariable(name)
        assert self.get_param_by_name(var) is None, f"duplicate parameter {var}"
        self.args.append(IRParameter(var.plain_name, len(self.args), typ, var))
        self.set_var_type(var, typ)
        return var

    def append_basic_block(self, bb: IRBasicBlock):
        """
        Append basic block to function.
        """
        assert isinstance(bb, IRBasicBlock), bb
        assert bb.label.name not in self._basic_block_dict, bb.label
        self._basic_block_dict[bb.label.name] = bb

    def has_basic_block(self, label: str) -> bool:
        return label in self._basic_block_dict

    def get_basic_block(self, label: Optional[str] = None) -> IRBasicBlock:
        """
        Get basic block by label.
        If label is None, return the last basic block.
        """
        if label is None:
            return next(reversed(self._basic_block_dict.values()))

        return self._basic_block_dict[label]

    def get_basic_blocks(self) -> Iterator[IRBasicBlock]:
        """
        Get an iterator over this function's basic blocks
        """
        return iter(self._basic_block_dict.values())

    def get_next_variable(self) -> IRVariable:
        self.last_variable += 1
        return IRVariable(f"%{self.last_variable}")

    def set_var_type(self, var: IRVariable, typ: Optional[IRType]) -> None:
        self._var_types[var] = typ

    def get_var_type(self, var: IRVariable) -> Optional[IRType]:
        return self._var_types.get(var)

    def get_param_by_name(self, var: IRVariable | str) -> Optional[IRParameter]:
        if isinstance(var, str):
            var = IRVariable(var)
        for param in self.args:
            if param.func_var == var:
                return param
        return None

    def signature(self) -> str:
        params = [f"{param.type!r} {param.func_var}" for param in self.args]
        if self.is_vararg:
            params.append("...")
        return f"{self.return_type!r} @{self.name!r}({', '.join(params)})"

    def __repr__(self) -> str:
        if self.is_declaration:
            return f"declare {self.signature()}"
        ret = f"function {self.signature()} {{\n"
        for bb in self.get_basic_blocks():
            bb_str = textwrap.indent(str(bb), "  ")
            ret += f"{bb_str}\n"
        ret = ret.strip() + "\n}"
        return ret
