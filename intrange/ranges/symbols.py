"""
Symbolic storage locations and the table of their value ranges.

A symbol names a location independently of any single instruction: two
loads of the same global (or the same field of the same struct type) share
one symbol, so facts learned from a store in one function are visible to a
load in another.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, Optional, Union

from intrange.analysis.taint import NO_TAINT, TaintOracle
from intrange.exceptions import UnknownSymbol
from intrange.ir.basicblock import IRInstruction, IRLabel, IRLiteral, IROperand, IRVariable
from intrange.ir.types import StructType
from intrange.ranges.interval import Interval
from intrange.utils import OrderedSet

if TYPE_CHECKING:
    from intrange.analysis.dfg import DFGAnalysis
    from intrange.ir.context import IRContext
    from intrange.ir.function import IRFunction


@dataclass(frozen=True)
class GlobalSymbol:
    name: str

    def __str__(self) -> str:
        return f"global:{self.name}"


@dataclass(frozen=True)
class FieldSymbol:
    struct: str
    index: int

    def __str__(self) -> str:
        return f"field:{self.struct}:{self.index}"


@dataclass(frozen=True)
class ArgSymbol:
    function: str
    index: int

    def __str__(self) -> str:
        return f"arg:{self.function}:{self.index}"


@dataclass(frozen=True)
class ReturnSymbol:
    # without a call site, the value returned by `function`. with one, the
    # result of the call in `function` which assigns `call_site`.
    function: str
    call_site: Optional[str] = None

    def __str__(self) -> str:
        if self.call_site is None:
            return f"ret:{self.function}"
        return f"ret:{self.function}:{self.call_site}"


SymbolID = Union[GlobalSymbol, FieldSymbol, ArgSymbol, ReturnSymbol]


def _parse_index(s: str, text: str) -> int:
    try:
        ret = int(s)
    except ValueError:
        raise UnknownSymbol(f"bad index `{s}` in symbol `{text}`")
    if ret < 0:
        raise UnknownSymbol(f"bad index `{s}` in symbol `{text}`")
    return ret


def symbol_from_string(text: str) -> SymbolID:
    """
    Parse the canonical string form of a symbol, e.g. `field:struct.point:1`.
    """
    kind, _, rest = text.partition(":")
    if rest == "":
        raise UnknownSymbol(
            f"not a symbol: `{text}`", hint="expected one of global:, field:, arg:, ret:"
        )

    if kind == "global":
        return GlobalSymbol(rest)
    if kind == "field":
        struct, sep, index = rest.rpartition(":")
        if not sep or struct == "":
            raise UnknownSymbol(f"field symbol needs a struct and an index: `{text}`")
        return FieldSymbol(struct, _parse_index(index, text))
    if kind == "arg":
        function, sep, index = rest.rpartition(":")
        if not sep or function == "":
            raise UnknownSymbol(f"arg symbol needs a function and an index: `{text}`")
        return ArgSymbol(function, _parse_index(index, text))
    if kind == "ret":
        # call sites are variables, so they always start with %
        function, sep, call_site = rest.partition(":%")
        if sep:
            return ReturnSymbol(function, "%" + call_site)
        return ReturnSymbol(rest)

    raise UnknownSymbol(
        f"unknown symbol kind `{kind}`", hint="expected one of global:, field:, arg:, ret:"
    )


def arg_symbol(fn: IRFunction, index: int) -> ArgSymbol:
    return ArgSymbol(fn.name.name, index)


def return_symbol(fn: IRFunction) -> ReturnSymbol:
    return ReturnSymbol(fn.name.name)


def call_site_symbol(inst: IRInstruction) -> Optional[ReturnSymbol]:
    assert inst.is_call, inst
    if inst.output is None:
        return None
    caller = inst.parent.parent
    return ReturnSymbol(caller.name.name, inst.output.name)


def pointer_symbol(ctx: IRContext, dfg: DFGAnalysis, ptr: IROperand) -> Optional[SymbolID]:
    """
    The symbol of the location `ptr` points to, if it is a modeled location:
    a global variable, a field of a named struct type, or an element of
    either (array elements collapse into their array).
    """
    while True:
        if isinstance(ptr, IRLabel):
            if ptr.name in ctx.globals:
                return GlobalSymbol(ptr.name)
            return None

        inst = dfg.get_producing_instruction(ptr)
        if inst is None:
            return None

        if inst.opcode == "index":
            ptr = inst.operands[0]
            continue

        if inst.opcode == "field":
            typ = inst.type
            if not isinstance(typ, StructType) or typ.is_anonymous:
                return None
            k = inst.operands[1]
            if not isinstance(k, IRLiteral):
                return None
            assert typ.name is not None  # help mypy
            return FieldSymbol(typ.name, k.value)

        return None


def value_symbol(fn: IRFunction, dfg: DFGAnalysis, op: IROperand) -> Optional[SymbolID]:
    """
    The symbol a value is read from: a parameter's argument symbol, or the
    location a load reads.
    """
    if not isinstance(op, IRVariable):
        return None

    param = fn.get_param_by_name(op)
    if param is not None:
        return arg_symbol(fn, param.index)

    inst = dfg.get_producing_instruction(op)
    if inst is not None and inst.opcode == "load":
        return pointer_symbol(fn.ctx, dfg, inst.operands[0])

    return None


class SymbolTable:
    """
    Map from symbols to value ranges. Ranges only ever grow: each update is
    a union with what is already there.
    """

    _ranges: dict[SymbolID, Interval]
    changes: OrderedSet[SymbolID]

    def __init__(self, taint: TaintOracle = NO_TAINT, watch: Optional[SymbolID] = None):
        self._ranges = {}
        self.changes = OrderedSet()
        self.taint = taint
        self.watch = watch

    def get(self, sym: SymbolID) -> Optional[Interval]:
        return self._ranges.get(sym)

    def __contains__(self, sym: SymbolID) -> bool:
        return sym in self._ranges

    def __len__(self) -> int:
        return len(self._ranges)

    def __iter__(self) -> Iterator[SymbolID]:
        return iter(self._ranges)

    def items(self):
        return self._ranges.items()

    def dump(self) -> list[tuple[SymbolID, Interval]]:
        """
        All (symbol, range) pairs, in the order symbols were first seen.
        """
        return list(self._ranges.items())

    def union_range(
        self, sym: SymbolID, interval: Interval, inst: Optional[IRInstruction] = None
    ) -> bool:
        """
        Widen the range of `sym` to include `interval`. Returns True if the
        stored range changed; changed symbols are recorded in `changes`.
        """
        if interval.is_empty:
            return False

        if self.taint.is_taint_source(sym):
            interval = Interval.full(interval.width)

        watched = self.watch is not None and sym == self.watch
        if watched and inst is not None:
            fn = inst.parent.parent
            print(f"{fn.name}(): {str(inst).strip()}", file=sys.stderr)

        old = self._ranges.get(sym)
        if old is None:
            self._ranges[sym] = interval
            if watched:
                print(f"{sym} = {interval}", file=sys.stderr)
            self.changes.add(sym)
            return True

        new = old.union(interval)
        if new == old:
            return False

        self._ranges[sym] = new
        if watched:
            print(f"{sym} + {interval} = {new}", file=sys.stderr)
        self.changes.add(sym)
        return True

    def widen(self, sym: SymbolID) -> None:
        """
        Force the range of `sym` to the full set of its width.
        """
        old = self._ranges[sym]
        self._ranges[sym] = Interval.full(old.width)

    def seed_full(self, sym: SymbolID, width: int) -> None:
        self._ranges[sym] = Interval.full(width)

    def reset_changes(self) -> OrderedSet[SymbolID]:
        """
        Start a new change set; returns the previous one.
        """
        ret = self.changes
        self.changes = OrderedSet()
        return ret
