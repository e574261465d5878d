from typing import Iterator, Optional

from intrange.analysis.taint import TaintOracle
from intrange.ir.constants import ConstantArray, ConstantInt, ConstantStruct, IRConstant
from intrange.ir.context import IRContext, IRGlobal
from intrange.ir.types import ArrayType, IntType, IRType, StructType
from intrange.ranges.interval import Interval
from intrange.ranges.symbols import (
    FieldSymbol,
    GlobalSymbol,
    ReturnSymbol,
    SymbolID,
    SymbolTable,
    arg_symbol,
    return_symbol,
)

# initializers nest only as deep as their types do, but a hostile module
# can declare very deep types
MAX_INITIALIZER_DEPTH = 256


def collect_initializers(ctx: IRContext, table: SymbolTable) -> None:
    """
    Seed the symbol table from the constant initializers of global variables.
    """
    for glob in ctx.globals.values():
        # skip string literals
        if glob.initializer is None or glob.is_internal:
            continue
        _collect(table, glob, glob.initializer, 0)


def _collect(table: SymbolTable, glob: IRGlobal, const: IRConstant, depth: int) -> None:
    if depth > MAX_INITIALIZER_DEPTH:
        return

    if isinstance(const, ConstantInt):
        table.union_range(GlobalSymbol(glob.name), _exact(const))
        return

    if isinstance(const, ConstantStruct):
        typ = const.type
        # fields of anonymous structs are not tracked
        if typ.is_anonymous:
            return
        assert typ.name is not None  # help mypy
        for i, (field_type, field) in enumerate(zip(typ.fields, const.fields)):
            if isinstance(field_type, StructType):
                _collect(table, glob, field, depth + 1)
            elif isinstance(field, ConstantInt):
                table.union_range(FieldSymbol(typ.name, i), _exact(field))
        return

    if isinstance(const, ConstantArray):
        element = const.type.element
        if isinstance(element, (IntType, StructType)):
            for elem in const.elements:
                _collect(table, glob, elem, depth + 1)


def _exact(const: ConstantInt) -> Interval:
    return Interval.constant(const.type.width, const.value)


def _scalar_width(typ: IRType) -> Optional[int]:
    # arrays of integers share one symbol with their elements
    while isinstance(typ, ArrayType):
        typ = typ.element
    if isinstance(typ, IntType):
        return typ.width
    return None


def module_symbols(ctx: IRContext) -> Iterator[tuple[SymbolID, int]]:
    """
    Every symbol whose width can be read off the module, with that width.
    """
    for glob in ctx.globals.values():
        width = _scalar_width(glob.type)
        if width is not None and not glob.is_internal:
            yield GlobalSymbol(glob.name), width

    for typ in ctx.struct_types.values():
        if typ.is_anonymous:
            continue
        assert typ.name is not None  # help mypy
        for i, field_type in enumerate(typ.fields):
            if isinstance(field_type, IntType):
                yield FieldSymbol(typ.name, i), field_type.width

    for fn in ctx.get_functions():
        for param in fn.args:
            if isinstance(param.type, IntType):
                yield arg_symbol(fn, param.index), param.type.width
        if isinstance(fn.return_type, IntType):
            yield return_symbol(fn), fn.return_type.width

        for bb in fn.get_basic_blocks():
            for inst in bb.instructions:
                if inst.is_call and inst.output is not None and isinstance(inst.type, IntType):
                    yield ReturnSymbol(fn.name.name, inst.output.name), inst.type.width


def seed_taint(ctx: IRContext, table: SymbolTable, taint: TaintOracle) -> None:
    """
    Taint sources are unconstrained: store the full set for each one.
    """
    for sym, width in module_symbols(ctx):
        if taint.is_taint_source(sym):
            table.seed_full(sym, width)
