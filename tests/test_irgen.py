import pytest

from sysyc.ast import (
    AssignStmt,
    Block,
    BlockStmt,
    BreakStmt,
    CompUnit,
    ConstDecl,
    ConstDef,
    ContinueStmt,
    ExpStmt,
    FuncCall,
    FuncDef,
    FuncFParam,
    FuncType,
    IfStmt,
    InitVal,
    LVal,
    Number,
    ReturnStmt,
    VarDecl,
    VarDef,
    WhileStmt,
)
from sysyc.errors import CompileError
from sysyc.irgen import generate_block, generate_ir
from sysyc.irinfo import IrInfo
from sysyc.koopa import ValueKind, to_text

LIBRARY = [
    "@getint", "@getch", "@getarray", "@putint",
    "@putch", "@putarray", "@starttime", "@stoptime",
]


def main_unit(*stmts, func_type=FuncType.INT):
    return CompUnit([FuncDef(func_type, "main", [], Block(list(stmts)))])


def main_of(program):
    return program.functions[-1]


def kinds(block):
    return [inst.kind for inst in block.insts]


def test_library_functions_are_declared():
    program = generate_ir(CompUnit([]))
    assert [f.name for f in program.functions] == LIBRARY
    assert all(not f.blocks for f in program.functions)


def test_return_constant():
    program = generate_ir(main_unit(ReturnStmt(Number(0))))
    main = main_of(program)
    assert main.name == "@main"
    assert [b.name for b in main.blocks] == ["%entry"]
    (inst,) = main.blocks[0].insts
    assert inst.kind is ValueKind.RETURN
    assert inst.value.int_value == 0


def test_missing_return_in_int_function_returns_zero():
    main = main_of(generate_ir(main_unit()))
    inst = main.blocks[0].insts[-1]
    assert inst.kind is ValueKind.RETURN
    assert inst.value.int_value == 0


def test_missing_return_in_void_function_returns_nothing():
    main = main_of(generate_ir(main_unit(func_type=FuncType.VOID)))
    inst = main.blocks[0].insts[-1]
    assert inst.kind is ValueKind.RETURN
    assert inst.value is None


def test_second_return_is_ignored():
    main = main_of(generate_ir(main_unit(ReturnStmt(Number(1)), ReturnStmt(Number(2)))))
    assert kinds(main.blocks[0]) == [ValueKind.RETURN]


def test_redefined_function_raises():
    unit = CompUnit([
        FuncDef(FuncType.VOID, "f", [], Block()),
        FuncDef(FuncType.VOID, "f", [], Block()),
    ])
    with pytest.raises(CompileError, match="Redefined symbol"):
        generate_ir(unit)


def test_if_without_else():
    program = generate_ir(main_unit(IfStmt(Number(1), ReturnStmt(Number(2)))))
    main = main_of(program)
    assert [b.name for b in main.blocks] == ["%entry", "%then_1", "%end_1"]
    entry, then_bb, end_bb = main.blocks
    br = entry.insts[-1]
    assert br.kind is ValueKind.BRANCH
    assert br.true_bb is then_bb and br.false_bb is end_bb
    assert kinds(then_bb) == [ValueKind.RETURN]
    assert kinds(end_bb) == [ValueKind.RETURN]


def test_if_with_else_jumps_to_end():
    stmt = IfStmt(Number(1), ExpStmt(), ExpStmt())
    main = main_of(generate_ir(main_unit(stmt)))
    assert [b.name for b in main.blocks] == ["%entry", "%then_1", "%else_1", "%end_1"]
    entry, then_bb, else_bb, end_bb = main.blocks
    assert entry.insts[-1].false_bb is else_bb
    assert then_bb.insts[-1].kind is ValueKind.JUMP
    assert then_bb.insts[-1].target is end_bb
    assert else_bb.insts[-1].target is end_bb


def test_while_loop_layout():
    main = main_of(generate_ir(main_unit(WhileStmt(Number(1), ExpStmt()))))
    names = [b.name for b in main.blocks]
    assert names == ["%entry", "%while_entry_1", "%while_body_1", "%while_end_1"]
    entry, cond_bb, body_bb, end_bb = main.blocks
    assert entry.insts[-1].target is cond_bb
    br = cond_bb.insts[-1]
    assert br.true_bb is body_bb and br.false_bb is end_bb
    assert body_bb.insts[-1].target is cond_bb


def test_break_skips_rest_of_body():
    body = BlockStmt(Block([BreakStmt(), AssignStmt(LVal("x"), Number(3))]))
    unit = main_unit(VarDecl([VarDef("x")]), WhileStmt(Number(1), body))
    main = main_of(generate_ir(unit))
    body_bb = main.blocks[2]
    (jump,) = body_bb.insts
    assert jump.kind is ValueKind.JUMP
    assert jump.target is main.blocks[3]


def test_continue_jumps_to_condition():
    main = main_of(generate_ir(main_unit(WhileStmt(Number(1), ContinueStmt()))))
    body_bb = main.blocks[2]
    (jump,) = body_bb.insts
    assert jump.target is main.blocks[1]


@pytest.mark.parametrize("stmt", [BreakStmt(), ContinueStmt()])
def test_loop_control_outside_loop_raises(stmt):
    with pytest.raises(CompileError):
        generate_ir(main_unit(stmt))


def test_assign_to_local_variable_stores():
    unit = main_unit(VarDecl([VarDef("x")]), AssignStmt(LVal("x"), Number(5)))
    entry = main_of(generate_ir(unit)).blocks[0]
    assert kinds(entry) == [ValueKind.ALLOC, ValueKind.STORE, ValueKind.RETURN]
    store = entry.insts[1]
    assert store.dest is entry.insts[0]
    assert store.value.int_value == 5


def test_assign_to_constant_raises():
    unit = main_unit(
        ConstDecl([ConstDef("c", [], InitVal(Number(1)))]),
        AssignStmt(LVal("c"), Number(2)),
    )
    with pytest.raises(CompileError, match="Constant can not be a left value"):
        generate_ir(unit)


@pytest.mark.parametrize("ident", ["missing", "getint"])
def test_assign_to_non_variable_raises(ident):
    with pytest.raises(CompileError, match="Undefined variable"):
        generate_ir(main_unit(AssignStmt(LVal(ident), Number(2))))


def test_int_parameter_is_spilled_to_stack_slot():
    func = FuncDef(FuncType.INT, "f", [FuncFParam("x")], Block([ReturnStmt(LVal("x"))]))
    program = generate_ir(CompUnit([func]))
    f = main_of(program)
    entry = f.blocks[0]
    assert kinds(entry) == [ValueKind.ALLOC, ValueKind.STORE, ValueKind.LOAD, ValueKind.RETURN]
    assert entry.insts[0].name == "%x"
    assert entry.insts[1].value is f.params[0]
    assert entry.insts[3].value is entry.insts[2]


def test_array_parameter_assignment_uses_getptr():
    body = Block([AssignStmt(LVal("a", [Number(0)]), Number(1))])
    func = FuncDef(FuncType.VOID, "f", [FuncFParam("a", [])], body)
    entry = main_of(generate_ir(CompUnit([func]))).blocks[0]
    assert kinds(entry) == [
        ValueKind.ALLOC, ValueKind.STORE, ValueKind.LOAD,
        ValueKind.GET_PTR, ValueKind.STORE, ValueKind.RETURN,
    ]
    assert entry.insts[4].dest is entry.insts[3]


def test_local_array_element_assignment():
    unit = main_unit(
        VarDecl([VarDef("a", [Number(2)])]),
        AssignStmt(LVal("a", [Number(1)]), Number(7)),
    )
    entry = main_of(generate_ir(unit)).blocks[0]
    assert kinds(entry) == [
        ValueKind.ALLOC, ValueKind.GET_ELEM_PTR, ValueKind.STORE, ValueKind.RETURN,
    ]
    assert entry.insts[1].src is entry.insts[0]


def test_library_call():
    program = generate_ir(main_unit(ExpStmt(FuncCall("putint", [Number(1)]))))
    call = main_of(program).blocks[0].insts[0]
    assert call.kind is ValueKind.CALL
    assert call.callee is program.functions[3]


def test_redeclaration_in_inner_block_is_allowed():
    unit = main_unit(
        VarDecl([VarDef("x")]),
        BlockStmt(Block([VarDecl([VarDef("x")])])),
    )
    entry = main_of(generate_ir(unit)).blocks[0]
    assert kinds(entry).count(ValueKind.ALLOC) == 2


def test_redeclaration_in_same_scope_raises():
    unit = main_unit(VarDecl([VarDef("x")]), VarDecl([VarDef("x")]))
    with pytest.raises(CompileError, match="Redefined symbol"):
        generate_ir(unit)


def test_parameter_and_body_share_scope():
    func = FuncDef(FuncType.VOID, "f", [FuncFParam("x")], Block([VarDecl([VarDef("x")])]))
    with pytest.raises(CompileError, match="Redefined symbol"):
        generate_ir(CompUnit([func]))


def test_generate_block_restores_scope_depth():
    info = IrInfo()
    info.symbol_table.push_table()
    info.symbol_table.push_table()
    before = info.symbol_table.depth()
    generate_block(Block([ConstDecl([ConstDef("c", [], InitVal(Number(1)))])]), None, info)
    assert info.symbol_table.depth() == before
    assert info.symbol_table.get("c") is None


def test_global_variable_text():
    unit = CompUnit([
        VarDecl([VarDef("g", [], InitVal(Number(3)))]),
        FuncDef(FuncType.INT, "main", [], Block([ReturnStmt(LVal("g"))])),
    ])
    program = generate_ir(unit)
    assert len(program.globals) == 1
    text = to_text(program)
    assert "global @g" in text
    assert "fun @main(): i32 {" in text
    assert "decl @getint(): i32" in text