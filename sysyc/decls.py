"""Lowering of constant and variable declarations."""

from __future__ import annotations

from sysyc import koopa
from sysyc.ast import ConstDecl, ConstDef, InitVal, VarDecl, VarDef
from sysyc.errors import CompileError
from sysyc.exprs import generate_exp
from sysyc.init import init_array
from sysyc.irinfo import ConstSymbol, IrInfo, VarSymbol
from sysyc.koopa import Program, Type, Value
from sysyc.solve import NotConstant, solve


def _constant(exp, info: IrInfo) -> int:
    try:
        return solve(exp, info)
    except NotConstant:
        raise CompileError("Unknown value during compile time") from None


def _dimensions(shape, info: IrInfo) -> list[int]:
    dims = [_constant(exp, info) for exp in shape]
    if any(dim < 0 for dim in dims):
        raise CompileError("Negative array dimension")
    return dims


def _declare(info: IrInfo, ident: str, var: Value) -> None:
    if info.symbol_table.insert(ident, VarSymbol(ident, var)) is not None:
        raise CompileError("Redefined symbol")


def _const_def(const_def: ConstDef, program: Program, info: IrInfo) -> None:
    init_val = const_def.init_val
    if init_val.is_array:
        shape = _dimensions(const_def.shape, info)
        init_array(init_val, program, info, shape, const_def.ident, False)
        return
    if const_def.shape:
        raise CompileError("Illegal initializer")
    value = _constant(init_val.value, info)
    ident = const_def.ident
    if info.symbol_table.insert(ident, ConstSymbol(ident, value)) is not None:
        raise CompileError("Redefined symbol")


def _var_def(var_def: VarDef, program: Program, info: IrInfo) -> None:
    ident = var_def.ident
    at_global = info.symbol_table.depth() == 0

    if var_def.shape:
        shape = _dimensions(var_def.shape, info)
        if var_def.init_val is not None:
            init_array(var_def.init_val, program, info, shape, ident, False)
        else:
            init_array(InitVal([]), program, info, shape, ident, not at_global)
        return

    if var_def.init_val is not None and var_def.init_val.is_array:
        raise CompileError("Illegal initializer")

    if at_global:
        if var_def.init_val is None:
            init = koopa.zero_init(Type.i32())
        else:
            init = koopa.integer(_constant(var_def.init_val.value, info))
        var = program.add_global(koopa.global_alloc(init, f"@{ident}"))
        _declare(info, ident, var)
        return

    var = koopa.alloc(Type.i32(), f"@{ident}")
    info.emit(var)
    _declare(info, ident, var)
    if var_def.init_val is not None:
        value = generate_exp(var_def.init_val.value, program, info)
        info.emit(koopa.store(value, var))


def generate_decl(decl, program: Program, info: IrInfo) -> None:
    """Define every name of a constant or variable declaration."""
    match decl:
        case ConstDecl(defs=defs):
            for const_def in defs:
                _const_def(const_def, program, info)
        case VarDecl(defs=defs):
            for var_def in defs:
                _var_def(var_def, program, info)
        case _:
            raise TypeError(f"not a declaration: {decl!r}")