"""Lowering of statements, blocks, function definitions and whole programs."""

from __future__ import annotations

from sysyc import koopa
from sysyc.ast import (
    AssignStmt,
    Block,
    BlockStmt,
    BreakStmt,
    CompUnit,
    ConstDecl,
    ContinueStmt,
    ExpStmt,
    FuncDef,
    FuncFParam,
    FuncType,
    IfStmt,
    ReturnStmt,
    VarDecl,
    WhileStmt,
)
from sysyc.decls import generate_decl
from sysyc.errors import CompileError
from sysyc.exprs import generate_exp
from sysyc.irinfo import ConstSymbol, FuncSymbol, IrInfo, VarSymbol, WhileBlockInfo
from sysyc.koopa import BasicBlock, Function, Program, Type
from sysyc.solve import NotConstant, solve
from sysyc.var_type import VarKind, get_var_type


def _library() -> list[tuple[str, list[Type], Type]]:
    i32, unit = Type.i32(), Type.unit()
    ptr = Type.pointer(Type.i32())
    return [
        ("getint", [], i32),
        ("getch", [], i32),
        ("getarray", [ptr], i32),
        ("putint", [i32], unit),
        ("putch", [i32], unit),
        ("putarray", [i32, ptr], unit),
        ("starttime", [], unit),
        ("stoptime", [], unit),
    ]


def _param_type(param: FuncFParam, info: IrInfo) -> Type:
    if not param.is_array:
        return Type.i32()
    ty = Type.i32()
    for exp in reversed(param.shape):
        try:
            length = solve(exp, info)
        except NotConstant:
            raise CompileError("Unknown value during compile time") from None
        if length < 0:
            raise CompileError("Negative array dimension")
        ty = Type.array(ty, length)
    return Type.pointer(ty)


def generate_block(block: Block, program: Program, info: IrInfo) -> None:
    """Lower a block in its own scope, stopping after a statement that leaves it."""
    if not info.symbol_table.check_entry():
        info.symbol_table.push_table()
    try:
        for item in block.items:
            if info.context.exited:
                break
            if isinstance(item, (ConstDecl, VarDecl)):
                generate_decl(item, program, info)
            else:
                generate_stmt(item, program, info)
    finally:
        info.symbol_table.pop_table()


def _assign(stmt: AssignStmt, program: Program, info: IrInfo) -> None:
    value = generate_exp(stmt.exp, program, info)
    found = info.symbol_table.get(stmt.lval.ident)
    if found is None:
        raise CompileError("Undefined variable")
    symbol = found[0]
    if isinstance(symbol, ConstSymbol):
        raise CompileError("Constant can not be a left value")
    if not isinstance(symbol, VarSymbol):
        raise CompileError("Undefined variable")

    var = symbol.var
    var_type = get_var_type(var)
    if var_type.kind is VarKind.INT32:
        info.emit(koopa.store(value, var))
        return

    if var_type.kind is VarKind.ARRAY:
        dest = var
        chain = []
        for exp in stmt.lval.index:
            index = generate_exp(exp, program, info)
            dest = koopa.get_elem_ptr(dest, index)
            chain.append(dest)
        info.emit(*chain)
        info.emit(koopa.store(value, dest))
        return

    pointer = koopa.load(var)
    chain = [pointer]
    dest = pointer
    for dim, exp in enumerate(stmt.lval.index):
        index = generate_exp(exp, program, info)
        dest = koopa.get_ptr(dest, index) if dim == 0 else koopa.get_elem_ptr(dest, index)
        chain.append(dest)
    info.emit(*chain)
    info.emit(koopa.store(value, dest))
    info.context.value = pointer


def _close_branch(info: IrInfo, target: BasicBlock) -> None:
    if info.context.exited:
        info.context.exited = False
    else:
        info.emit(koopa.jump(target))


def _if(stmt: IfStmt, program: Program, info: IrInfo) -> None:
    info.if_cnt += 1
    count = info.if_cnt
    cond = generate_exp(stmt.cond, program, info)
    function = info.context.function
    start_bb = info.context.block
    end_bb = BasicBlock(f"%end_{count}")

    then_bb = function.add_block(BasicBlock(f"%then_{count}"))
    info.context.block = then_bb
    generate_stmt(stmt.then, program, info)
    _close_branch(info, end_bb)

    false_bb = end_bb
    if stmt.otherwise is not None:
        false_bb = function.add_block(BasicBlock(f"%else_{count}"))
        info.context.block = false_bb
        generate_stmt(stmt.otherwise, program, info)
        _close_branch(info, end_bb)

    start_bb.insts.append(koopa.branch(cond, then_bb, false_bb))
    function.add_block(end_bb)
    info.context.block = end_bb


def _while(stmt: WhileStmt, program: Program, info: IrInfo) -> None:
    info.while_cnt += 1
    count = info.while_cnt
    function = info.context.function
    entry_bb = BasicBlock(f"%while_entry_{count}")
    body_bb = BasicBlock(f"%while_body_{count}")
    end_bb = BasicBlock(f"%while_end_{count}")

    info.emit(koopa.jump(entry_bb))
    function.add_block(entry_bb)
    info.context.block = entry_bb
    cond = generate_exp(stmt.cond, program, info)
    info.emit(koopa.branch(cond, body_bb, end_bb))

    function.add_block(body_bb)
    info.context.block = body_bb
    info.while_info.append(WhileBlockInfo(entry_bb, end_bb))
    try:
        generate_stmt(stmt.body, program, info)
        _close_branch(info, entry_bb)
    finally:
        info.while_info.pop()

    function.add_block(end_bb)
    info.context.block = end_bb


def _loop(info: IrInfo, keyword: str) -> WhileBlockInfo:
    if not info.while_info:
        raise CompileError(f"'{keyword}' outside of a loop")
    return info.while_info[-1]


def generate_stmt(stmt, program: Program, info: IrInfo) -> None:
    """Lower one statement into the current basic block."""
    match stmt:
        case AssignStmt():
            _assign(stmt, program, info)
        case ExpStmt(exp=exp):
            if exp is not None:
                generate_exp(exp, program, info)
        case BlockStmt(block=block):
            generate_block(block, program, info)
        case IfStmt():
            _if(stmt, program, info)
        case WhileStmt():
            _while(stmt, program, info)
        case BreakStmt():
            info.emit(koopa.jump(_loop(info, "break").end_bb))
            info.context.exited = True
        case ContinueStmt():
            info.emit(koopa.jump(_loop(info, "continue").entry_bb))
            info.context.exited = True
        case ReturnStmt(exp=exp):
            if info.context.exited:
                return
            value = None if exp is None else generate_exp(exp, program, info)
            info.emit(koopa.ret(value))
            info.context.exited = True
        case _:
            raise TypeError(f"not a statement: {stmt!r}")


def generate_func_def(func_def: FuncDef, program: Program, info: IrInfo) -> Function:
    """Define a function, lower its body and return it."""
    ret_ty = Type.unit() if func_def.func_type is FuncType.VOID else Type.i32()
    param_types = [_param_type(param, info) for param in func_def.params]
    params = [
        koopa.func_arg_ref(index, ty, f"@{param.ident}")
        for index, (param, ty) in enumerate(zip(func_def.params, param_types))
    ]
    function = program.add_function(Function(f"@{func_def.ident}", params, ret_ty))
    symbol = FuncSymbol(func_def.ident, function)
    if info.symbol_table.insert(func_def.ident, symbol) is not None:
        raise CompileError("Redefined symbol")

    entry = function.add_block(BasicBlock("%entry"))
    info.context.function = function
    info.context.block = entry
    info.context.exited = False

    info.symbol_table.push_table()
    info.symbol_table.set_entry()
    for param, ty, value in zip(func_def.params, param_types, params):
        slot = koopa.alloc(ty, f"%{param.ident}")
        info.emit(slot, koopa.store(value, slot))
        info.symbol_table.insert(param.ident, VarSymbol(param.ident, slot))

    generate_block(func_def.block, program, info)

    if not info.context.exited:
        value = None if func_def.func_type is FuncType.VOID else koopa.integer(0)
        info.emit(koopa.ret(value))
    return function


def generate_ir(comp_unit: CompUnit) -> Program:
    """Lower a whole translation unit to a Koopa IR program."""
    program = Program()
    info = IrInfo()
    info.symbol_table.push_table()
    for name, param_types, ret_ty in _library():
        params = [koopa.func_arg_ref(index, ty) for index, ty in enumerate(param_types)]
        function = program.add_function(Function(f"@{name}", params, ret_ty))
        info.symbol_table.insert(name, FuncSymbol(name, function))
    for item in comp_unit.items:
        if isinstance(item, FuncDef):
            generate_func_def(item, program, info)
        else:
            generate_decl(item, program, info)
    info.symbol_table.pop_table()
    return program