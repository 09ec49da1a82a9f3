"""Compile-time evaluation of constant expressions with 32-bit semantics."""

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
from sysyc.irinfo import ConstSymbol, IrInfo


class NotConstant(Exception):
    """The expression cannot be evaluated at compile time."""


def _wrap(value: int) -> int:
    return (value + 2**31) % 2**32 - 2**31


def _quotient(lhs: int, rhs: int) -> int:
    if rhs == 0:
        raise CompileError("Division by zero in constant expression")
    quotient = abs(lhs) // abs(rhs)
    return -quotient if (lhs < 0) != (rhs < 0) else quotient


def _apply(op: BinaryOperator, lhs: int, rhs: int) -> int:
    if op is BinaryOperator.MUL:
        return _wrap(lhs * rhs)
    if op is BinaryOperator.DIV:
        return _wrap(_quotient(lhs, rhs))
    if op is BinaryOperator.MOD:
        return _wrap(lhs - rhs * _quotient(lhs, rhs))
    if op is BinaryOperator.ADD:
        return _wrap(lhs + rhs)
    if op is BinaryOperator.SUB:
        return _wrap(lhs - rhs)
    if op is BinaryOperator.LT:
        return int(lhs < rhs)
    if op is BinaryOperator.GT:
        return int(lhs > rhs)
    if op is BinaryOperator.LE:
        return int(lhs <= rhs)
    if op is BinaryOperator.GE:
        return int(lhs >= rhs)
    if op is BinaryOperator.EQ:
        return int(lhs == rhs)
    return int(lhs != rhs)


def solve(node, info: IrInfo) -> int:
    """Evaluate an expression, raising NotConstant if it depends on run time."""
    match node:
        case Number(value=value):
            return _wrap(value)
        case LVal(ident=ident):
            found = info.symbol_table.get(ident)
            if found is not None and isinstance(found[0], ConstSymbol):
                return found[0].value
            raise NotConstant(ident)
        case FuncCall(ident=ident):
            raise NotConstant(ident)
        case UnaryExp(op=op, operand=operand):
            value = solve(operand, info)
            if op is UnaryOp.NEG:
                return _wrap(-value)
            if op is UnaryOp.NOT:
                return 1 if value == 0 else 0
            return value
        case BinaryExp(op=op, lhs=lhs, rhs=rhs):
            left = solve(lhs, info)
            right = solve(rhs, info)
            return _apply(op, left, right)
        case LogicalAnd(lhs=lhs, rhs=rhs):
            left = solve(lhs, info)
            right = solve(rhs, info)
            return int(left != 0 and right != 0)
        case LogicalOr(lhs=lhs, rhs=rhs):
            left = solve(lhs, info)
            right = solve(rhs, info)
            return int((left | right) != 0)
    raise TypeError(f"not an expression: {node!r}")