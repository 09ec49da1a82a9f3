"""Lowering of array initializers to global aggregates or local stores."""

from __future__ import annotations

from math import prod
from typing import Sequence, Union

from sysyc import koopa
from sysyc.ast import InitVal
from sysyc.errors import CompileError
from sysyc.exprs import generate_exp
from sysyc.irinfo import IrInfo, VarSymbol
from sysyc.koopa import Program, Type, Value
from sysyc.solve import NotConstant, solve

Elem = Union[int, Value]


def _array_type(shape: Sequence[int]) -> Type:
    ty = Type.i32()
    for length in reversed(shape):
        ty = Type.array(ty, length)
    return ty


def _as_value(elem: Elem) -> Value:
    return koopa.integer(elem) if isinstance(elem, int) else elem


def _chunks(flat: list[Elem], count: int):
    step = len(flat) // count
    return (flat[start:start + step] for start in range(0, step * count, step))


def _aggregate(flat: list[Elem], shape: Sequence[int]) -> Value:
    if len(shape) == 1:
        return koopa.aggregate(_as_value(elem) for elem in flat)
    return koopa.aggregate(
        _aggregate(chunk, shape[1:]) for chunk in _chunks(flat, shape[0])
    )


def _store_elems(info: IrInfo, array: Value, flat: list[Elem], shape: Sequence[int]) -> None:
    if not shape:
        info.emit(koopa.store(_as_value(flat[0]), array))
        return
    for index, chunk in enumerate(_chunks(flat, shape[0])):
        ptr = koopa.get_elem_ptr(array, koopa.integer(index))
        info.emit(ptr)
        _store_elems(info, ptr, chunk, shape[1:])


def _declare(info: IrInfo, ident: str, var: Value) -> None:
    if info.symbol_table.insert(ident, VarSymbol(ident, var)) is not None:
        raise CompileError("Redefined symbol")


def _fill(
    init_val: InitVal,
    program: Program,
    info: IrInfo,
    shape: list[int],
    flat: list[Elem],
    start: int,
    length: int,
) -> None:
    """Write the elements of an initializer into ``flat[start:start + length]``."""
    if not init_val.is_array:
        if shape or length != 1:
            raise CompileError("Illegal initializer")
        try:
            flat[start] = solve(init_val.value, info)
        except NotConstant:
            if info.symbol_table.depth() == 0:
                raise CompileError("Unknown value during compile time") from None
            flat[start] = generate_exp(init_val.value, program, info)
        return

    offset = 0
    for item in init_val.value:
        if item.is_array:
            dim = len(shape)
            rest = offset
            while dim > 1 and rest % shape[dim - 1] == 0:
                rest //= shape[dim - 1]
                dim -= 1
            if dim == len(shape):
                raise CompileError("Illegal initializer")
            sub_shape = shape[dim:]
            count = prod(sub_shape)
        else:
            sub_shape = []
            count = 1
        if offset + count > length:
            raise CompileError("Illegal initializer")
        _fill(item, program, info, sub_shape, flat, start + offset, count)
        offset += count


def init_array(
    init_val: InitVal,
    program: Program,
    info: IrInfo,
    shape: Sequence[int],
    ident: str,
    uninit: bool,
) -> Value:
    """Define an array named ``ident`` and initialise it; return its storage."""
    if not init_val.is_array:
        raise CompileError("Illegal initializer")
    shape = list(shape)
    at_global = info.symbol_table.depth() == 0

    if at_global and not init_val.value:
        init = koopa.zero_init(_array_type(shape))
        var = program.add_global(koopa.global_alloc(init, f"@{ident}"))
        _declare(info, ident, var)
        return var

    flat: list[Elem] = [0] * prod(shape)
    _fill(init_val, program, info, shape, flat, 0, len(flat))

    if at_global:
        if not shape:
            raise CompileError("Illegal initializer")
        var = program.add_global(koopa.global_alloc(_aggregate(flat, shape), f"@{ident}"))
        _declare(info, ident, var)
        return var

    var = koopa.alloc(_array_type(shape), f"@{ident}")
    info.emit(var)
    _declare(info, ident, var)
    if not uninit:
        _store_elems(info, var, flat, shape)
    return var