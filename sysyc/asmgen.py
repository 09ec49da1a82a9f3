"""RISC-V assembly generation for whole Koopa IR programs."""

from __future__ import annotations

from sysyc.asm_insts import InstructionEmitter
from sysyc.asminfo import AsmInfo
from sysyc.errors import CompileError
from sysyc.koopa import Function, Program, TypeKind, Value, ValueKind, set_ptr_size

_IMM_LIMIT = 2048
_FRAME_ALIGN = 16


def _strip_sigil(name: str | None, what: str) -> str:
    if not name:
        raise CompileError(f"{what} has no name")
    return name[1:]


def _global_elem_size(var: Value) -> int:
    if var.ty.kind is not TypeKind.POINTER:
        raise CompileError("global allocation is not a pointer")
    pointee = var.ty.base
    if pointee.kind is TypeKind.ARRAY:
        return pointee.base.size()
    if pointee.kind is TypeKind.INT32:
        return 4
    raise CompileError(f"unsupported global type {pointee}")


def _glob_init(init: Value) -> list[str]:
    if init.kind is ValueKind.ZERO_INIT:
        return [f"  .zero {init.ty.size()}"]
    if init.kind is ValueKind.INTEGER:
        return [f"  .word {init.int_value}"]
    if init.kind is ValueKind.AGGREGATE:
        return [line for elem in init.elems for line in _glob_init(elem)]
    raise CompileError(f"unsupported global initializer {init.kind.value}")


def _frame_layout(function: Function, info: AsmInfo) -> int:
    """Assign stack slots to the function's values and return the frame size."""
    local_space = 0
    ra_used = False
    param_len = 0
    for block in function.blocks:
        for inst in block.insts:
            if inst.kind is ValueKind.CALL:
                ra_used = True
                param_len = max(param_len, len(inst.operands))
            if inst.kind is ValueKind.ALLOC:
                local_space += inst.ty.base.size()
                info.stack[inst] = local_space
            elif not inst.ty.is_unit():
                local_space += 4
                info.stack[inst] = local_space
    info.ra_used = ra_used
    frame = local_space + (4 if ra_used else 0) + max(param_len - 8, 0) * 4
    return (frame + _FRAME_ALIGN - 1) // _FRAME_ALIGN * _FRAME_ALIGN


def function_to_asm(function: Function, info: AsmInfo) -> list[str]:
    """Return the assembly lines of one function definition."""
    name = _strip_sigil(function.name, "function")
    lines = [f"  .globl {name}", f"{name}:"]

    stack_frame = _frame_layout(function, info)
    if 0 < stack_frame < _IMM_LIMIT:
        lines.append(f"  addi sp, sp, -{stack_frame}")
    elif stack_frame >= _IMM_LIMIT:
        lines.append(f"  li t0, -{stack_frame}")
        lines.append("  add sp, sp, t0")
    if info.ra_used:
        ra_offset = stack_frame - 4
        if ra_offset < _IMM_LIMIT:
            lines.append(f"  sw ra, {ra_offset}(sp)")
        else:
            lines.append(f"  li t0, {ra_offset}")
            lines.append("  add t0, t0, sp")
            lines.append("  sw ra, 0(t0)")

    emitter = InstructionEmitter(function, info, stack_frame, lines)
    for block in function.blocks:
        label = _strip_sigil(block.name, "basic block")
        lines.append(f"{name}_{label}:")
        for inst in block.insts:
            emitter.emit(inst)
    return lines


def generate_asm(program: Program) -> list[str]:
    """Return the RISC-V assembly lines of a program.

    Pointers are 4 bytes wide on the target, so the pointer size is set
    before any layout is computed.
    """
    set_ptr_size(4)
    info = AsmInfo()
    lines: list[str] = []

    if program.globals:
        lines.append("  .data")
    for var in program.globals:
        name = _strip_sigil(var.name, "global variable")
        info.glob_var[var] = (name, _global_elem_size(var))
        lines.append(f"  .globl {name}")
        lines.append(f"{name}:")
        if var.kind is not ValueKind.GLOBAL_ALLOC:
            raise CompileError("global value is not an allocation")
        lines.extend(_glob_init(var.init))

    lines.append("  .text")
    for function in program.functions:
        info.function[function] = _strip_sigil(function.name, "function")
    for function in program.functions:
        if not function.blocks:
            continue
        info.stack.clear()
        info.ra_used = False
        lines.extend(function_to_asm(function, info))
    return lines