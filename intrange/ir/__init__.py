from intrange.ir.basicblock import (
    IRBasicBlock,
    IRInstruction,
    IRLabel,
    IRLiteral,
    IROperand,
    IRVariable,
)
from intrange.ir.check import check_ir
from intrange.ir.context import IRContext, IRGlobal
from intrange.ir.function import IRFunction
from intrange.ir.parser import parse_ir
from intrange.ir.types import ArrayType, IntType, IRType, PointerType, StructType, VoidType
