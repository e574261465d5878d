from typing import NamedTuple, Optional

from lark import Lark, Token, Transformer
from lark.exceptions import UnexpectedInput

from intrange.exceptions import ParserException
from intrange.ir.basicblock import (
    BINARY_INSTRUCTIONS,
    COMPARATOR_INSTRUCTIONS,
    IRBasicBlock,
    IRInstruction,
    IRLabel,
    IRLiteral,
    IROperand,
    IRVariable,
)
from intrange.ir.constants import (
    ConstantArray,
    ConstantInt,
    ConstantOpaque,
    ConstantRef,
    ConstantStruct,
    IRConstant,
    zero_constant,
)
from intrange.ir.context import IRContext
from intrange.ir.function import IRFunction
from intrange.ir.types import I1, PTR, VOID, ArrayType, IntType, IRType, StructType
from intrange.utils import wrap

IR_GRAMMAR = """
    %import common.WS_INLINE

    COMMENT: /;[^\\n]*/

    # a newline swallows any following blank or comment-only lines
    _NL: /(\\r?\\n[\\t \\f]*(;[^\\n]*)?)+/

    start: _NL? (struct_def | global_def | declare | function)*

    struct_def: STRUCT_NAME "=" "type" struct_body _NL

    global_def: "global" GLOBAL_NAME ":" type ["=" initializer] _NL

    declare: "declare" type GLOBAL_NAME "(" [param_list] ")" _NL

    function: "function" type GLOBAL_NAME "(" [param_list] ")" "{" _NL block_content "}" _NL

    param_list: param ("," param)*
    param: type [VAR_IDENT]
         | ELLIPSIS -> vararg

    block_content: (label_decl | statement)*

    label_decl: IDENT ":" _NL

    statement: (assignment | instruction) _NL
    assignment: VAR_IDENT "=" instruction

    instruction: IDENT [type] [operands_list]

    operands_list: operand ("," operand)*

    operand: VAR_IDENT -> var_operand
           | CONST [":" INT_TYPE] -> literal_operand
           | GLOBAL_NAME -> label_operand

    type: INT_TYPE -> int_type
        | "ptr" -> ptr_type
        | "void" -> void_type
        | STRUCT_NAME -> struct_ref
        | struct_body -> struct_type
        | "[" CONST "x" type "]" -> array_type

    struct_body: "{" [type ("," type)*] "}"

    initializer: CONST -> init_int
               | GLOBAL_NAME -> init_ref
               | "{" [initializer ("," initializer)*] "}" -> init_struct
               | "[" [initializer ("," initializer)*] "]" -> init_array
               | "zeroinitializer" -> init_zero

    STRUCT_NAME.2: /struct\\.[A-Za-z0-9_.]+/
    INT_TYPE.2: /i[0-9]+\\b/
    GLOBAL_NAME: /@[A-Za-z0-9_.$]+/
    VAR_IDENT: /%[A-Za-z0-9_.$]+/
    IDENT: /[A-Za-z_$][A-Za-z0-9_.$]*/
    CONST: /-?(0x[0-9a-fA-F]+|[0-9]+)/
    ELLIPSIS: "..."

    %ignore WS_INLINE
    %ignore COMMENT
    """

IR_PARSER = Lark(IR_GRAMMAR, parser="lalr")


# raw (unresolved) parse results. struct types may be referenced before
# they are defined, and literal widths depend on the instruction and the
# callee signature, so resolution happens after the whole module is read.


class _StructRef(NamedTuple):
    name: str
    line: int
    column: int


class _StructBody(NamedTuple):
    fields: list


class _ArrayOf(NamedTuple):
    count: int
    element: object


class _RawLiteral(NamedTuple):
    value: int
    type: Optional[IntType]
    line: int
    column: int


class _Init(NamedTuple):
    kind: str
    value: object


class _Param(NamedTuple):
    type: object
    name: Optional[str]


class _RawInstruction(NamedTuple):
    opcode: str
    type: object
    operands: list
    line: int
    column: int


class _Assignment(NamedTuple):
    output: IRVariable
    instruction: _RawInstruction


class _LabelDecl(NamedTuple):
    label: str


class _StructDef(NamedTuple):
    name: str
    body: _StructBody
    line: int
    column: int


class _GlobalDef(NamedTuple):
    name: str
    type: object
    initializer: Optional[_Init]
    line: int
    column: int


class _FunctionDef(NamedTuple):
    return_type: object
    name: str
    params: list
    body: Optional[list]
    line: int
    column: int


_VARARG = object()


def _parse_int(val: str) -> int:
    if val.lstrip("-").startswith("0x"):
        return int(val, 16)
    return int(val)


def _location(token: Token) -> tuple[int, int]:
    return (token.line, token.column)


def _compact(children) -> list:
    # `[...]` groups in the grammar leave None placeholders when not matched
    return [c for c in children if c is not None]


class IRTransformer(Transformer):
    def start(self, children) -> list:
        return _compact(children)

    def struct_def(self, children) -> _StructDef:
        name, body = children
        return _StructDef(str(name), body, *_location(name))

    def global_def(self, children) -> _GlobalDef:
        name, typ, init = children
        return _GlobalDef(str(name)[1:], typ, init, *_location(name))

    def declare(self, children) -> _FunctionDef:
        ret_type, name, params = children
        return _FunctionDef(ret_type, str(name)[1:], params or [], None, *_location(name))

    def function(self, children) -> _FunctionDef:
        ret_type, name, params, body = children
        return _FunctionDef(ret_type, str(name)[1:], params or [], body, *_location(name))

    def param_list(self, children) -> list:
        return children

    def param(self, children) -> _Param:
        typ, name = children
        return _Param(typ, str(name) if name is not None else None)

    def vararg(self, children):
        return _VARARG

    def block_content(self, children) -> list:
        return children

    def label_decl(self, children) -> _LabelDecl:
        return _LabelDecl(str(children[0]))

    def statement(self, children):
        return children[0]

    def assignment(self, children) -> _Assignment:
        to, inst = children
        return _Assignment(IRVariable(str(to)), inst)

    def instruction(self, children) -> _RawInstruction:
        opcode, typ, operands = children
        return _RawInstruction(str(opcode), typ, operands or [], *_location(opcode))

    def operands_list(self, children) -> list:
        return children

    def var_operand(self, children) -> IRVariable:
        return IRVariable(str(children[0]))

    def literal_operand(self, children) -> _RawLiteral:
        val, typ = children
        int_type = IntType(int(str(typ)[1:])) if typ is not None else None
        return _RawLiteral(_parse_int(str(val)), int_type, *_location(val))

    def label_operand(self, children) -> IRLabel:
        return IRLabel(str(children[0])[1:])

    def int_type(self, children) -> IntType:
        return IntType(int(str(children[0])[1:]))

    def ptr_type(self, children) -> IRType:
        return PTR

    def void_type(self, children) -> IRType:
        return VOID

    def struct_ref(self, children) -> _StructRef:
        (name,) = children
        return _StructRef(str(name), *_location(name))

    def struct_type(self, children) -> _StructBody:
        return children[0]

    def struct_body(self, children) -> _StructBody:
        return _StructBody(_compact(children))

    def array_type(self, children) -> _ArrayOf:
        count, element = children
        return _ArrayOf(_parse_int(str(count)), element)

    def init_int(self, children) -> _Init:
        return _Init("int", _parse_int(str(children[0])))

    def init_ref(self, children) -> _Init:
        return _Init("ref", str(children[0])[1:])

    def init_struct(self, children) -> _Init:
        return _Init("struct", _compact(children))

    def init_array(self, children) -> _Init:
        return _Init("array", _compact(children))

    def init_zero(self, children) -> _Init:
        return _Init("zero", None)


class _ModuleBuilder:
    """
    Resolve the raw parse results of a module into an IRContext.
    """

    def __init__(self, items: list):
        self.items = items
        self.ctx = IRContext()
        self._struct_defs: dict[str, _StructDef] = {}

    def build(self) -> IRContext:
        struct_defs = [item for item in self.items if isinstance(item, _StructDef)]
        global_defs = [item for item in self.items if isinstance(item, _GlobalDef)]
        function_defs = [item for item in self.items if isinstance(item, _FunctionDef)]

        for sdef in struct_defs:
            if sdef.name in self._struct_defs:
                raise ParserException(f"duplicate struct type {sdef.name}", (sdef.line, sdef.column))
            self._struct_defs[sdef.name] = sdef
        for sdef in struct_defs:
            self._resolve_struct(sdef.name, (sdef.line, sdef.column), ())

        # signatures first, so that call arguments can be typed by callee
        for fdef in function_defs:
            self._declare_function(fdef)

        for gdef in global_defs:
            if gdef.name in self.ctx.globals:
                raise ParserException(f"duplicate global @{gdef.name}", (gdef.line, gdef.column))
            self.ctx.add_global(gdef.name, self._resolve_type(gdef.type))

        for gdef in global_defs:
            if gdef.initializer is None:
                continue
            glob = self.ctx.globals[gdef.name]
            loc = (gdef.line, gdef.column)
            glob.initializer = self._build_constant(glob.type, gdef.initializer, loc)

        for fdef in function_defs:
            if fdef.body is not None:
                self._build_body(self.ctx.get_function(fdef.name), fdef)

        return self.ctx

    def _resolve_struct(self, name: str, loc, visiting: tuple) -> StructType:
        if name in self.ctx.struct_types:
            return self.ctx.struct_types[name]
        if name not in self._struct_defs:
            raise ParserException(f"unknown struct type {name}", loc)
        if name in visiting:
            raise ParserException(f"struct type {name} contains itself", loc)

        sdef = self._struct_defs[name]
        visiting = visiting + (name,)
        fields = tuple(self._resolve_type(f, visiting) for f in sdef.body.fields)
        typ = StructType(name, fields)
        self.ctx.add_struct_type(typ)
        return typ

    def _resolve_type(self, raw, visiting: tuple = ()) -> IRType:
        if isinstance(raw, IRType):
            return raw
        if isinstance(raw, _StructRef):
            return self._resolve_struct(raw.name, (raw.line, raw.column), visiting)
        if isinstance(raw, _StructBody):
            return StructType(None, tuple(self._resolve_type(f, visiting) for f in raw.fields))
        if isinstance(raw, _ArrayOf):
            return ArrayType(raw.count, self._resolve_type(raw.element, visiting))
        raise ParserException(f"not a type: {raw}")  # pragma: nocover

    def _declare_function(self, fdef: _FunctionDef) -> None:
        loc = (fdef.line, fdef.column)
        if self.ctx.has_function(fdef.name):
            raise ParserException(f"duplicate function @{fdef.name}", loc)

        is_vararg = len(fdef.params) > 0 and fdef.params[-1] is _VARARG
        params = fdef.params[:-1] if is_vararg else fdef.params
        if any(p is _VARARG for p in params):
            raise ParserException("`...` must be the last parameter", loc)

        ret_type = self._resolve_type(fdef.return_type)
        fn = self.ctx.create_function(fdef.name, ret_type, is_vararg)
        for i, param in enumerate(params):
            name = param.name
            if name is None:
                if fdef.body is not None:
                    raise ParserException(f"parameter {i} of @{fdef.name} has no name", loc)
                name = f"%arg{i}"
            fn.add_param(name, self._resolve_type(param.type))

    def _build_constant(self, typ: IRType, node: _Init, loc) -> IRConstant:
        if node.kind == "zero":
            return zero_constant(typ)

        if node.kind == "int":
            assert isinstance(node.value, int)
            if isinstance(typ, IntType):
                return ConstantInt(typ, wrap(node.value, typ.width))
            if typ.is_pointer:
                return ConstantOpaque(typ)
            raise ParserException(f"integer initializer for {typ!r}", loc)

        if node.kind == "ref":
            assert isinstance(node.value, str)
            if node.value not in self.ctx.globals and not self.ctx.has_function(node.value):
                raise ParserException(f"unknown global @{node.value}", loc)
            return ConstantRef(typ, node.value)

        assert isinstance(node.value, list)
        if node.kind == "struct":
            if not isinstance(typ, StructType) or len(typ.fields) != len(node.value):
                raise ParserException(f"struct initializer does not match {typ!r}", loc)
            fields = zip(typ.fields, node.value)
            return ConstantStruct(typ, tuple(self._build_constant(t, n, loc) for t, n in fields))

        assert node.kind == "array"
        if not isinstance(typ, ArrayType) or typ.count != len(node.value):
            raise ParserException(f"array initializer does not match {typ!r}", loc)
        elements = tuple(self._build_constant(typ.element, n, loc) for n in node.value)
        return ConstantArray(typ, elements)

    def _build_body(self, fn: IRFunction, fdef: _FunctionDef) -> None:
        bb: Optional[IRBasicBlock] = None
        assert fdef.body is not None
        for item in fdef.body:
            if isinstance(item, _LabelDecl):
                if fn.has_basic_block(item.label):
                    raise ParserException(
                        f"duplicate label {item.label} in @{fdef.name}", (fdef.line, fdef.column)
                    )
                bb = IRBasicBlock(IRLabel(item.label), fn)
                fn.append_basic_block(bb)
                continue

            output = None
            if isinstance(item, _Assignment):
                output, item = item.output, item.instruction

            if bb is None:
                raise ParserException(
                    "instruction found before any label declaration", (item.line, item.column)
                )
            inst = self._build_instruction(output, item)
            # no terminator check here, check_ir reports those
            bb.insert_instruction(inst, index=len(bb.instructions))

        _set_last_var(fn)

    def _build_instruction(
        self, output: Optional[IRVariable], raw: _RawInstruction
    ) -> IRInstruction:
        loc = (raw.line, raw.column)
        typ = self._resolve_type(raw.type) if raw.type is not None else None

        callee: Optional[IRFunction] = None
        if raw.opcode == "call":
            if typ is None:
                raise ParserException("call needs a return type", loc)
            if len(raw.operands) == 0:
                raise ParserException("call needs a callee", loc)
            target = raw.operands[0]
            if isinstance(target, IRLabel):
                if not self.ctx.has_function(target.name):
                    raise ParserException(f"unknown function @{target.name}", loc)
                callee = self.ctx.get_function(target.name)
            if typ.is_void and output is not None:
                raise ParserException("void call has no result", loc)

        operands: list[IROperand] = []
        for i, op in enumerate(raw.operands):
            if isinstance(op, _RawLiteral):
                op = self._build_literal(raw.opcode, typ, i, op, callee)
            operands.append(op)

        return IRInstruction(raw.opcode, operands, output, typ)

    def _build_literal(
        self,
        opcode: str,
        typ: Optional[IRType],
        index: int,
        lit: _RawLiteral,
        callee: Optional[IRFunction],
    ) -> IRLiteral:
        int_type = lit.type
        if int_type is None:
            int_type, needs_width = _infer_literal_type(opcode, typ, index, callee)
            if int_type is None and needs_width:
                raise ParserException(
                    f"cannot infer the width of literal {lit.value} in `{opcode}`",
                    (lit.line, lit.column),
                )
        if int_type is None:
            return IRLiteral(lit.value)
        return IRLiteral(wrap(lit.value, int_type.width), int_type)


def _infer_literal_type(
    opcode: str, typ: Optional[IRType], index: int, callee: Optional[IRFunction]
) -> tuple[Optional[IntType], bool]:
    """
    Width of an untyped literal at operand position `index`. Returns the
    inferred type (if any) and whether the literal needs one at all.
    """
    int_type = typ if isinstance(typ, IntType) else None

    if opcode in BINARY_INSTRUCTIONS or opcode in COMPARATOR_INSTRUCTIONS:
        return int_type, True
    if opcode == "select":
        return (I1 if index == 0 else int_type), True
    if opcode == "phi":
        return int_type, True
    if opcode in ("store", "ret"):
        return (int_type if index == 0 else None), index == 0
    if opcode == "switch":
        # value and case constants share the switch type
        return int_type, index == 0 or index % 2 == 0
    if opcode == "jnz":
        return I1, True
    if opcode == "call":
        if index == 0:
            return None, True
        if callee is not None and index - 1 < len(callee.args):
            param_type = callee.args[index - 1].type
            return (param_type if isinstance(param_type, IntType) else None), True
        return None, True
    if opcode in ("field", "index"):
        # structural positions, not values
        return None, False
    if opcode in ("trunc", "zext", "sext", "bitcast", "ptrtoint", "inttoptr", "load"):
        return None, True
    # unmodeled opcode
    return None, False


def _set_last_var(fn: IRFunction):
    for bb in fn.get_basic_blocks():
        for inst in bb.instructions:
            if inst.output is None:
                continue
            varname = inst.output.plain_name
            if varname.isdigit():
                fn.last_variable = max(fn.last_variable, int(varname))


def parse_ir(source: str) -> IRContext:
    """
    Parse the text form of a module.
    """
    try:
        tree = IR_PARSER.parse(source + "\n")
    except UnexpectedInput as e:
        raise ParserException(f"invalid IR: {e}", (e.line, e.column)) from e
    items = IRTransformer().transform(tree)
    return _ModuleBuilder(items).build()
