"""Lowering of SysY expressions to Koopa IR instructions."""

from __future__ import annotations

from sysyc.ast import (
    BinaryExp,
    BinaryOperator,
    FuncCall,
    LogicalAnd,
    LogicalOr,
    LVal,
    Number,
    UnaryExp,
    UnaryOp,
)
from sysyc.errors import CompileError
from sysyc.irinfo import ConstSymbol, FuncSymbol, IrInfo, VarSymbol
from sysyc.koopa import (
    BasicBlock,
    BinaryOp,
    Program,
    Type,
    Value,
    ValueKind,
    alloc,
    binary,
    branch,
    call,
    get_elem_ptr,
    get_ptr,
    integer,
    jump,
    load,
    store,
)
from sysyc.var_type import VarKind, get_var_type

_BINARY_OPS = {
    BinaryOperator.MUL: BinaryOp.MUL,
    BinaryOperator.DIV: BinaryOp.DIV,
    BinaryOperator.MOD: BinaryOp.MOD,
    BinaryOperator.ADD: BinaryOp.ADD,
    BinaryOperator.SUB: BinaryOp.SUB,
    BinaryOperator.LT: BinaryOp.LT,
    BinaryOperator.GT: BinaryOp.GT,
    BinaryOperator.LE: BinaryOp.LE,
    BinaryOperator.GE: BinaryOp.GE,
    BinaryOperator.EQ: BinaryOp.EQ,
    BinaryOperator.NE: BinaryOp.NOT_EQ,
}


def _set(info: IrInfo, value: Value) -> Value:
    info.context.value = value
    return value


def exp2ir(op: BinaryOp, lexp, rexp, program: Program, info: IrInfo) -> Value:
    """Evaluate both operands in order and emit a binary instruction on them."""
    lhs = generate_exp(lexp, program, info)
    rhs = generate_exp(rexp, program, info)
    inst = binary(op, lhs, rhs)
    info.emit(inst)
    return _set(info, inst)


def generate_exp(node, program: Program, info: IrInfo) -> Value:
    """Emit the instructions of an expression and return the value it yields."""
    match node:
        case Number(value=number):
            return _set(info, integer(number))
        case LVal():
            return generate_lval(node, program, info)
        case FuncCall():
            return _generate_call(node, program, info)
        case UnaryExp(op=op, operand=operand):
            if op is UnaryOp.POS:
                return generate_exp(operand, program, info)
            if op is UnaryOp.NEG:
                return exp2ir(BinaryOp.SUB, Number(0), operand, program, info)
            return exp2ir(BinaryOp.EQ, Number(0), operand, program, info)
        case BinaryExp(op=op, lhs=lhs, rhs=rhs):
            return exp2ir(_BINARY_OPS[op], lhs, rhs, program, info)
        case LogicalAnd(lhs=lhs, rhs=rhs):
            return _short_circuit(lhs, rhs, program, info, conjunction=True)
        case LogicalOr(lhs=lhs, rhs=rhs):
            return _short_circuit(lhs, rhs, program, info, conjunction=False)
    raise TypeError(f"not an expression: {node!r}")


def _generate_call(node: FuncCall, program: Program, info: IrInfo) -> Value:
    found = info.symbol_table.get(node.ident)
    if found is None or not isinstance(found[0], FuncSymbol):
        raise CompileError("Undefined function")
    function = found[0].function
    args = [generate_exp(arg, program, info) for arg in node.args]
    inst = call(function, args)
    info.emit(inst)
    return _set(info, inst)


def _indices(lval: LVal, program: Program, info: IrInfo) -> list[Value]:
    return [generate_exp(exp, program, info) for exp in lval.index]


def generate_lval(lval: LVal, program: Program, info: IrInfo) -> Value:
    """Emit the read of a named constant, variable, array element or sub-array."""
    found = info.symbol_table.get(lval.ident)
    if found is None:
        raise CompileError("Undefined variable")
    symbol = found[0]
    if isinstance(symbol, ConstSymbol):
        return _set(info, integer(symbol.value))
    if not isinstance(symbol, VarSymbol):
        raise CompileError("Undefined variable")

    var = symbol.var
    var_type = get_var_type(var)

    if var_type.kind is VarKind.INT32:
        inst = load(var)
        info.emit(inst)
        return _set(info, inst)

    if var_type.kind is VarKind.ARRAY:
        indices = _indices(lval, program, info)
        src = var
        chain = []
        for index in indices:
            src = get_elem_ptr(src, index)
            chain.append(src)
        info.emit(*chain)
        if var_type.dims == len(indices):
            result = load(src)
        else:
            result = get_elem_ptr(src, integer(0))
        info.emit(result)
        return _set(info, result)

    pointer = load(var)
    indices = _indices(lval, program, info)
    chain = [pointer]
    src = pointer
    for dim, index in enumerate(indices):
        src = get_ptr(src, index) if dim == 0 else get_elem_ptr(src, index)
        chain.append(src)
    info.emit(*chain)
    if var_type.dims == len(indices):
        result = load(src)
    elif not indices:
        return _set(info, src)
    else:
        result = get_elem_ptr(src, integer(0))
    info.emit(result)
    return _set(info, result)


def _short_circuit(lhs, rhs, program: Program, info: IrInfo, *, conjunction: bool) -> Value:
    first = generate_exp(lhs, program, info)
    if first.kind is ValueKind.INTEGER:
        if conjunction and first.int_value == 0:
            return _set(info, first)
        if not conjunction and first.int_value != 0:
            return _set(info, integer(1))
        return exp2ir(BinaryOp.NOT_EQ, Number(0), rhs, program, info)

    function = info.context.function
    info.if_cnt += 1
    then_bb = BasicBlock(f"%then_{info.if_cnt}")
    end_bb = BasicBlock(f"%end_{info.if_cnt}")
    function.add_block(then_bb)

    result = alloc(Type.i32())
    initial = store(integer(0 if conjunction else 1), result)
    if conjunction:
        jump_inst = branch(first, then_bb, end_bb)
    else:
        jump_inst = branch(first, end_bb, then_bb)
    info.emit(result, initial, jump_inst)

    info.context.block = then_bb
    second = exp2ir(BinaryOp.NOT_EQ, Number(0), rhs, program, info)
    info.emit(store(second, result), jump(end_bb))

    function.add_block(end_bb)
    info.context.block = end_bb
    value = load(result)
    end_bb.insts.append(value)
    return _set(info, value)