import pytest

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
from sysyc.irinfo import ConstSymbol, IrInfo, VarSymbol
from sysyc.koopa import Type, alloc
from sysyc.solve import NotConstant, solve


@pytest.fixture
def info():
    state = IrInfo()
    state.symbol_table.push_table()
    return state


def _bin(op, lhs, rhs):
    return BinaryExp(op, Number(lhs), Number(rhs))


def test_number(info):
    assert solve(Number(42), info) == 42


def test_negation(info):
    assert solve(UnaryExp(UnaryOp.NEG, Number(5)), info) == -5
    assert solve(UnaryExp(UnaryOp.POS, Number(5)), info) == 5


def test_division_truncates_toward_zero(info):
    assert solve(_bin(BinaryOperator.DIV, -7, 2), info) == -3


def test_remainder_takes_sign_of_dividend(info):
    assert solve(_bin(BinaryOperator.MOD, -7, 2), info) == -1


def test_addition_wraps_at_32_bits(info):
    assert solve(_bin(BinaryOperator.ADD, 2147483647, 1), info) == -2147483648


@pytest.mark.parametrize("a, b", [(1, 2), (2, 1), (3, 3), (-4, 4)])
def test_relations_are_consistent(info, a, b):
    lt = solve(_bin(BinaryOperator.LT, a, b), info)
    gt_swapped = solve(_bin(BinaryOperator.GT, b, a), info)
    ge = solve(_bin(BinaryOperator.GE, a, b), info)
    eq = solve(_bin(BinaryOperator.EQ, a, b), info)
    ne = solve(_bin(BinaryOperator.NE, a, b), info)
    assert lt == gt_swapped
    assert lt + ge == 1
    assert eq + ne == 1


def test_not_is_boolean(info):
    zero = solve(UnaryExp(UnaryOp.NOT, Number(7)), info)
    one = solve(UnaryExp(UnaryOp.NOT, Number(0)), info)
    assert zero == solve(Number(0), info)
    assert one == solve(UnaryExp(UnaryOp.NOT, Number(zero)), info)


def test_logical_operators(info):
    truth = solve(UnaryExp(UnaryOp.NOT, Number(0)), info)
    assert solve(LogicalOr(Number(0), Number(3)), info) == truth
    assert solve(LogicalAnd(Number(2), Number(3)), info) == truth
    assert solve(LogicalAnd(Number(2), Number(0)), info) == solve(Number(0), info)


def test_constant_lookup(info):
    info.symbol_table.insert("n", ConstSymbol("n", 5))
    expr = BinaryExp(BinaryOperator.MUL, LVal("n"), LVal("n"))
    assert solve(LVal("n"), info) == 5
    assert solve(expr, info) == 5 * 5


def test_inner_constant_shadows_outer(info):
    info.symbol_table.insert("n", ConstSymbol("n", 5))
    info.symbol_table.push_table()
    info.symbol_table.insert("n", ConstSymbol("n", 9))
    assert solve(LVal("n"), info) == 9


def test_variable_is_not_constant(info):
    info.symbol_table.insert("v", VarSymbol("v", alloc(Type.i32())))
    with pytest.raises(NotConstant):
        solve(LVal("v"), info)


def test_undefined_is_not_constant(info):
    with pytest.raises(NotConstant):
        solve(LVal("missing"), info)


def test_call_is_not_constant(info):
    with pytest.raises(NotConstant):
        solve(FuncCall("getint"), info)


def test_logical_and_does_not_short_circuit(info):
    with pytest.raises(NotConstant):
        solve(LogicalAnd(Number(0), FuncCall("f")), info)


def test_division_by_zero(info):
    with pytest.raises(CompileError):
        solve(_bin(BinaryOperator.DIV, 1, 0), info)