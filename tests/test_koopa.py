import pytest

from sysyc.koopa import (
    BasicBlock,
    BinaryOp,
    Function,
    Program,
    Type,
    ValueKind,
    aggregate,
    alloc,
    binary,
    call,
    func_arg_ref,
    get_elem_ptr,
    get_ptr,
    global_alloc,
    integer,
    load,
    ret,
    set_ptr_size,
    store,
    to_text,
)


def test_array_size_scales_with_length():
    elem = Type.array(Type.i32(), 3)
    assert elem.size() == 3 * Type.i32().size()
    assert Type.array(elem, 2).size() == 2 * elem.size()


def test_unit_is_unit():
    assert Type.unit().is_unit()
    assert not Type.i32().is_unit()


def test_pointer_size_follows_setting():
    try:
        set_ptr_size(4)
        assert Type.pointer(Type.i32()).size() == 4
        set_ptr_size(8)
        assert Type.pointer(Type.array(Type.i32(), 10)).size() == 8
    finally:
        set_ptr_size(8)


def test_invalid_pointer_size():
    with pytest.raises(ValueError):
        set_ptr_size(0)


def test_type_text():
    assert str(Type.pointer(Type.array(Type.i32(), 3))) == "*[i32, 3]"


def test_types_compare_structurally():
    assert Type.array(Type.i32(), 2) == Type.array(Type.i32(), 2)
    assert Type.array(Type.i32(), 2) != Type.array(Type.i32(), 3)


def test_load_type_is_pointee():
    var = alloc(Type.array(Type.i32(), 4))
    assert load(var).ty == Type.array(Type.i32(), 4)


def test_get_elem_ptr_strips_one_dimension():
    inner = Type.array(Type.i32(), 3)
    var = alloc(Type.array(inner, 2))
    first = get_elem_ptr(var, integer(1))
    assert first.ty == Type.pointer(inner)
    assert get_elem_ptr(first, integer(0)).ty == Type.pointer(Type.i32())


def test_get_ptr_keeps_type():
    ptr = func_arg_ref(0, Type.pointer(Type.i32()), "@a")
    assert get_ptr(ptr, integer(2)).ty == ptr.ty


def test_get_elem_ptr_rejects_scalar_pointer():
    with pytest.raises(TypeError):
        get_elem_ptr(alloc(Type.i32()), integer(0))


def test_load_rejects_non_pointer():
    with pytest.raises(TypeError):
        load(integer(3))


def test_aggregate_type():
    agg = aggregate([integer(1), integer(2)])
    assert agg.ty == Type.array(Type.i32(), 2)
    assert [elem.int_value for elem in agg.elems] == [1, 2]


def test_call_type_matches_callee():
    getter = Function("@get", [], Type.i32())
    setter = Function("@put", [func_arg_ref(0, Type.i32())], Type.unit())
    assert call(getter, []).ty == getter.ret_ty
    assert call(setter, [integer(1)]).ty.is_unit()


def test_values_hash_by_identity():
    one, other = integer(1), integer(1)
    table = {one: "a", other: "b"}
    assert len(table) == 2
    assert table[one] == "a"


def test_add_global_rejects_local_alloc():
    with pytest.raises(ValueError):
        Program().add_global(alloc(Type.i32()))


def test_minimal_program_text():
    main = Function("@main", [], Type.i32())
    entry = main.add_block(BasicBlock("%entry"))
    entry.insts.append(ret(integer(0)))
    program = Program()
    program.add_function(main)
    assert to_text(program) == "fun @main(): i32 {\n%entry:\n  ret 0\n}\n"


def _defined_names(text):
    return [
        line.split(" = ")[0].strip()
        for line in text.splitlines()
        if line.startswith("  ") and " = " in line
    ]


def test_temporaries_get_distinct_names():
    program = Program()
    glob = program.add_global(global_alloc(integer(5), "@x"))
    main = program.add_function(Function("@main", [], Type.i32()))
    entry = main.add_block(BasicBlock("%entry"))
    local = alloc(Type.i32(), "@y")
    first, second = load(glob), load(local)
    total = binary(BinaryOp.ADD, first, second)
    entry.insts.extend([local, first, second, total, store(total, local), ret(total)])
    names = _defined_names(to_text(program))
    assert len(names) == len(set(names)) == 4


def test_duplicate_names_are_made_unique():
    program = Program()
    main = program.add_function(Function("@main", [], Type.unit()))
    entry = main.add_block(BasicBlock("%entry"))
    entry.insts.extend([alloc(Type.i32(), "@x"), alloc(Type.i32(), "@x"), ret()])
    names = _defined_names(to_text(program))
    assert len(set(names)) == 2
    assert all(name.startswith("@x") for name in names)


def test_declarations_and_branches():
    program = Program()
    getint = program.add_function(Function("@getint", [], Type.i32()))
    main = program.add_function(Function("@main", [], Type.i32()))
    entry = main.add_block(BasicBlock("%entry"))
    then = main.add_block(BasicBlock("%then"))
    value = call(getint, [])
    entry.insts.extend([value, value_branch := ret(value)])
    entry.insts.remove(value_branch)
    from sysyc.koopa import branch

    entry.insts.append(branch(value, then, then))
    then.insts.append(ret(value))
    lines = to_text(program).splitlines()
    assert any(line.startswith("decl @getint(") for line in lines)
    branch_lines = [line for line in lines if line.strip().startswith("br ")]
    assert len(branch_lines) == 1
    assert branch_lines[0].count("%then") == 2
    assert value.kind is ValueKind.CALL