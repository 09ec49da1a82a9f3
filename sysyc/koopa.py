"""In-memory Koopa IR: types, values, basic blocks, functions and text output."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional


class _Settings:
    pointer_size = 8


_settings = _Settings()


def set_ptr_size(size: int) -> None:
    """Set the byte size of pointer types."""
    if not isinstance(size, int) or size <= 0:
        raise ValueError(f"invalid pointer size: {size!r}")
    _settings.pointer_size = size


class TypeKind(Enum):
    INT32 = "i32"
    UNIT = "unit"
    ARRAY = "array"
    POINTER = "pointer"


@dataclass(frozen=True)
class Type:
    """A Koopa type; arrays and pointers carry a base type."""

    kind: TypeKind
    base: Optional[Type] = None
    length: int = 0

    @classmethod
    def i32(cls) -> Type:
        return cls(TypeKind.INT32)

    @classmethod
    def unit(cls) -> Type:
        return cls(TypeKind.UNIT)

    @classmethod
    def array(cls, base: Type, length: int) -> Type:
        if length < 0:
            raise ValueError(f"negative array length: {length}")
        return cls(TypeKind.ARRAY, base, length)

    @classmethod
    def pointer(cls, base: Type) -> Type:
        return cls(TypeKind.POINTER, base)

    def size(self) -> int:
        if self.kind is TypeKind.INT32:
            return 4
        if self.kind is TypeKind.UNIT:
            return 0
        if self.kind is TypeKind.ARRAY:
            return self.base.size() * self.length
        return _settings.pointer_size

    def is_unit(self) -> bool:
        return self.kind is TypeKind.UNIT

    def __str__(self) -> str:
        if self.kind is TypeKind.ARRAY:
            return f"[{self.base}, {self.length}]"
        if self.kind is TypeKind.POINTER:
            return f"*{self.base}"
        return self.kind.value


class BinaryOp(Enum):
    NOT_EQ = "ne"
    EQ = "eq"
    GT = "gt"
    LT = "lt"
    GE = "ge"
    LE = "le"
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    DIV = "div"
    MOD = "mod"
    AND = "and"
    OR = "or"
    XOR = "xor"
    SHL = "shl"
    SHR = "shr"
    SAR = "sar"


class ValueKind(Enum):
    INTEGER = "integer"
    ZERO_INIT = "zeroinit"
    AGGREGATE = "aggregate"
    FUNC_ARG_REF = "func_arg_ref"
    ALLOC = "alloc"
    GLOBAL_ALLOC = "global_alloc"
    LOAD = "load"
    STORE = "store"
    GET_PTR = "getptr"
    GET_ELEM_PTR = "getelemptr"
    BINARY = "binary"
    BRANCH = "br"
    JUMP = "jump"
    CALL = "call"
    RETURN = "ret"


@dataclass(eq=False)
class Value:
    """An IR value; equality and hashing are by identity."""

    kind: ValueKind
    ty: Type
    name: Optional[str] = None
    operands: tuple = ()
    targets: tuple = field(default=(), repr=False)
    data: object = None

    @property
    def int_value(self) -> int:
        return self.data

    @property
    def arg_index(self) -> int:
        return self.data

    @property
    def op(self) -> BinaryOp:
        return self.data

    @property
    def callee(self) -> Function:
        return self.data

    @property
    def elems(self) -> tuple:
        return self.operands

    @property
    def init(self) -> Value:
        return self.operands[0]

    @property
    def src(self) -> Value:
        return self.operands[0]

    @property
    def index(self) -> Value:
        return self.operands[1]

    @property
    def value(self) -> Optional[Value]:
        return self.operands[0] if self.operands else None

    @property
    def dest(self) -> Value:
        return self.operands[1]

    @property
    def lhs(self) -> Value:
        return self.operands[0]

    @property
    def rhs(self) -> Value:
        return self.operands[1]

    @property
    def cond(self) -> Value:
        return self.operands[0]

    @property
    def true_bb(self) -> BasicBlock:
        return self.targets[0]

    @property
    def false_bb(self) -> BasicBlock:
        return self.targets[1]

    @property
    def target(self) -> BasicBlock:
        return self.targets[0]


@dataclass(eq=False)
class BasicBlock:
    """A named sequence of instructions."""

    name: Optional[str] = None
    insts: list[Value] = field(default_factory=list, repr=False)


@dataclass(eq=False)
class Function:
    """A function; one without basic blocks is a declaration."""

    name: str
    params: list[Value]
    ret_ty: Type
    blocks: list[BasicBlock] = field(default_factory=list, repr=False)

    def add_block(self, block: BasicBlock) -> BasicBlock:
        """Append a block to the layout and return it."""
        self.blocks.append(block)
        return block


@dataclass
class Program:
    """Global allocations and functions in layout order."""

    globals: list[Value] = field(default_factory=list)
    functions: list[Function] = field(default_factory=list)

    def add_global(self, value: Value) -> Value:
        if value.kind is not ValueKind.GLOBAL_ALLOC:
            raise ValueError("only global allocations can be added as globals")
        self.globals.append(value)
        return value

    def add_function(self, function: Function) -> Function:
        self.functions.append(function)
        return function


def _pointee(value: Value, what: str) -> Type:
    if value.ty.kind is not TypeKind.POINTER:
        raise TypeError(f"{what} expects a pointer, got {value.ty}")
    return value.ty.base


def integer(value: int) -> Value:
    return Value(ValueKind.INTEGER, Type.i32(), data=value)


def zero_init(ty: Type) -> Value:
    return Value(ValueKind.ZERO_INIT, ty)


def aggregate(elems: Iterable[Value]) -> Value:
    elems = tuple(elems)
    if not elems:
        raise ValueError("aggregate needs at least one element")
    return Value(ValueKind.AGGREGATE, Type.array(elems[0].ty, len(elems)), operands=elems)


def alloc(ty: Type, name: Optional[str] = None) -> Value:
    return Value(ValueKind.ALLOC, Type.pointer(ty), name)


def global_alloc(init: Value, name: Optional[str] = None) -> Value:
    return Value(ValueKind.GLOBAL_ALLOC, Type.pointer(init.ty), name, operands=(init,))


def func_arg_ref(index: int, ty: Type, name: Optional[str] = None) -> Value:
    return Value(ValueKind.FUNC_ARG_REF, ty, name, data=index)


def load(src: Value) -> Value:
    return Value(ValueKind.LOAD, _pointee(src, "load"), operands=(src,))


def store(value: Value, dest: Value) -> Value:
    _pointee(dest, "store")
    return Value(ValueKind.STORE, Type.unit(), operands=(value, dest))


def get_ptr(src: Value, index: Value) -> Value:
    _pointee(src, "getptr")
    return Value(ValueKind.GET_PTR, src.ty, operands=(src, index))


def get_elem_ptr(src: Value, index: Value) -> Value:
    base = _pointee(src, "getelemptr")
    if base.kind is not TypeKind.ARRAY:
        raise TypeError(f"getelemptr expects a pointer to an array, got {src.ty}")
    return Value(ValueKind.GET_ELEM_PTR, Type.pointer(base.base), operands=(src, index))


def binary(op: BinaryOp, lhs: Value, rhs: Value) -> Value:
    return Value(ValueKind.BINARY, Type.i32(), operands=(lhs, rhs), data=op)


def branch(cond: Value, true_bb: BasicBlock, false_bb: BasicBlock) -> Value:
    return Value(ValueKind.BRANCH, Type.unit(), operands=(cond,), targets=(true_bb, false_bb))


def jump(target: BasicBlock) -> Value:
    return Value(ValueKind.JUMP, Type.unit(), targets=(target,))


def call(callee: Function, args: Iterable[Value]) -> Value:
    return Value(ValueKind.CALL, callee.ret_ty, operands=tuple(args), data=callee)


def ret(value: Optional[Value] = None) -> Value:
    return Value(ValueKind.RETURN, Type.unit(), operands=() if value is None else (value,))


class _Namer:
    """Hands out unique names, numbering anonymous ones."""

    def __init__(self, used: Iterable[str] = ()):
        self.used = set(used)
        self._next_temp = 0

    def fresh(self, name: Optional[str]) -> str:
        if name is None:
            while True:
                candidate = f"%{self._next_temp}"
                self._next_temp += 1
                if candidate not in self.used:
                    break
        else:
            candidate, suffix = name, 0
            while candidate in self.used:
                suffix += 1
                candidate = f"{name}_{suffix}"
        self.used.add(candidate)
        return candidate


def _operand(value: Value, names: dict) -> str:
    if value.kind is ValueKind.INTEGER:
        return str(value.int_value)
    if value.kind is ValueKind.ZERO_INIT:
        return "zeroinit"
    if value.kind is ValueKind.AGGREGATE:
        return "{" + ", ".join(_operand(elem, names) for elem in value.elems) + "}"
    try:
        return names[value]
    except KeyError:
        raise ValueError(f"value used before it is defined: {value.kind.value}") from None


def _block_ref(block: BasicBlock, block_names: dict) -> str:
    try:
        return block_names[block]
    except KeyError:
        raise ValueError(f"branch to a block outside the layout: {block.name}") from None


def _inst_text(inst: Value, names: dict, block_names: dict, func_names: dict) -> str:
    def opnd(value: Value) -> str:
        return _operand(value, names)

    kind = inst.kind
    if kind is ValueKind.ALLOC:
        body = f"alloc {inst.ty.base}"
    elif kind is ValueKind.LOAD:
        body = f"load {opnd(inst.src)}"
    elif kind is ValueKind.STORE:
        return f"store {opnd(inst.value)}, {opnd(inst.dest)}"
    elif kind is ValueKind.GET_PTR:
        body = f"getptr {opnd(inst.src)}, {opnd(inst.index)}"
    elif kind is ValueKind.GET_ELEM_PTR:
        body = f"getelemptr {opnd(inst.src)}, {opnd(inst.index)}"
    elif kind is ValueKind.BINARY:
        body = f"{inst.op.value} {opnd(inst.lhs)}, {opnd(inst.rhs)}"
    elif kind is ValueKind.BRANCH:
        return (
            f"br {opnd(inst.cond)}, {_block_ref(inst.true_bb, block_names)}, "
            f"{_block_ref(inst.false_bb, block_names)}"
        )
    elif kind is ValueKind.JUMP:
        return f"jump {_block_ref(inst.target, block_names)}"
    elif kind is ValueKind.CALL:
        args = ", ".join(opnd(arg) for arg in inst.operands)
        body = f"call {func_names[inst.callee]}({args})"
    elif kind is ValueKind.RETURN:
        return "ret" if inst.value is None else f"ret {opnd(inst.value)}"
    else:
        raise ValueError(f"not an instruction: {kind.value}")
    if inst.ty.is_unit():
        return body
    return f"{names[inst]} = {body}"


def _function_text(function: Function, func_names: dict, global_names: dict, reserved) -> str:
    ret_text = "" if function.ret_ty.is_unit() else f": {function.ret_ty}"
    fname = func_names[function]
    if not function.blocks:
        params = ", ".join(str(param.ty) for param in function.params)
        return f"decl {fname}({params}){ret_text}"

    namer = _Namer(reserved)
    names = dict(global_names)
    for param in function.params:
        names[param] = namer.fresh(param.name)
    block_names = {block: namer.fresh(block.name) for block in function.blocks}
    for block in function.blocks:
        for inst in block.insts:
            if not inst.ty.is_unit():
                names[inst] = namer.fresh(inst.name)

    params = ", ".join(f"{names[param]}: {param.ty}" for param in function.params)
    lines = [f"fun {fname}({params}){ret_text} {{"]
    for block in function.blocks:
        lines.append(f"{block_names[block]}:")
        lines.extend(
            "  " + _inst_text(inst, names, block_names, func_names) for inst in block.insts
        )
    lines.append("}")
    return "\n".join(lines)


def to_text(program: Program) -> str:
    """Render a program as Koopa IR text."""
    namer = _Namer()
    global_names = {value: namer.fresh(value.name) for value in program.globals}
    func_names = {function: namer.fresh(function.name) for function in program.functions}

    chunks = []
    if program.globals:
        chunks.append(
            "\n".join(
                f"global {global_names[value]} = alloc {value.ty.base}, "
                f"{_operand(value.init, global_names)}"
                for value in program.globals
            )
        )
    reserved = set(namer.used)
    chunks.extend(
        _function_text(function, func_names, global_names, reserved)
        for function in program.functions
    )
    return "\n\n".join(chunks) + "\n" if chunks else ""