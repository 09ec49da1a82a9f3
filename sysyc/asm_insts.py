"""Translation of single Koopa IR instructions to RISC-V assembly lines."""

from __future__ import annotations

from dataclasses import dataclass, field

from sysyc.asminfo import REGISTER, AsmInfo
from sysyc.errors import CompileError
from sysyc.koopa import BasicBlock, BinaryOp, Function, TypeKind, Value, ValueKind

_IMM_LIMIT = 2048
_A0 = 10

_BINARY_TEMPLATES: dict[BinaryOp, tuple[str, ...]] = {
    BinaryOp.NOT_EQ: ("xor {res}, {lhs}, {rhs}", "snez {res}, {res}"),
    BinaryOp.EQ: ("xor {res}, {lhs}, {rhs}", "seqz {res}, {res}"),
    BinaryOp.GT: ("slt {res}, {rhs}, {lhs}",),
    BinaryOp.LT: ("slt {res}, {lhs}, {rhs}",),
    BinaryOp.GE: ("slt {res}, {lhs}, {rhs}", "xori {res}, {res}, 1"),
    BinaryOp.LE: ("sgt {res}, {lhs}, {rhs}", "xori {res}, {res}, 1"),
    BinaryOp.ADD: ("add {res}, {lhs}, {rhs}",),
    BinaryOp.SUB: ("sub {res}, {lhs}, {rhs}",),
    BinaryOp.MUL: ("mul {res}, {lhs}, {rhs}",),
    BinaryOp.DIV: ("div {res}, {lhs}, {rhs}",),
    BinaryOp.MOD: ("rem {res}, {lhs}, {rhs}",),
    BinaryOp.AND: ("and {res}, {lhs}, {rhs}",),
    BinaryOp.OR: ("or {res}, {lhs}, {rhs}",),
}


@dataclass
class InstructionEmitter:
    """Emits the assembly of one function's instructions into ``lines``."""

    function: Function
    info: AsmInfo
    stack_frame: int
    lines: list[str] = field(default_factory=list)

    @property
    def _name(self) -> str:
        return self.function.name[1:]

    def _push(self, line: str) -> None:
        self.lines.append(f"  {line}")

    def _label(self, block: BasicBlock) -> str:
        return f"{self._name}_{block.name[1:]}"

    def _slot_offset(self, value: Value) -> int:
        try:
            slot = self.info.stack[value]
        except KeyError:
            raise CompileError(f"No stack slot for {value.kind.value}") from None
        return self.stack_frame - slot - (4 if self.info.ra_used else 0)

    def _memory(self, op: str, reg_idx: int, offset: int) -> None:
        """Emit ``op reg, offset(sp)``, going through a temporary for large offsets."""
        reg = REGISTER[reg_idx]
        if offset < _IMM_LIMIT:
            self._push(f"{op} {reg}, {offset}(sp)")
        else:
            tmp = REGISTER[self.info.get_vacant()]
            self._push(f"li {tmp}, {offset}")
            self._push(f"add {tmp}, {tmp}, sp")
            self._push(f"{op} {reg}, 0({tmp})")

    def _load_slot_address_content(self, reg_idx: int, offset: int) -> None:
        """Load the pointer kept in a stack slot into ``reg_idx`` using it as base."""
        reg = REGISTER[reg_idx]
        if offset < _IMM_LIMIT:
            self._push(f"lw {reg}, {offset}(sp)")
        else:
            self._push(f"li {reg}, {offset}")
            self._push(f"add {reg}, {reg}, sp")
            self._push(f"lw {reg}, 0({reg})")

    def load_to_reg(self, value: Value) -> tuple[int, bool]:
        """Bring a value into a register; the flag tells whether it must be freed."""
        info = self.info
        if value in info.glob_var:
            name = info.glob_var[value][0]
            reg_idx = info.set_reg(value)
            reg = REGISTER[reg_idx]
            self._push(f"la {reg}, {name}")
            self._push(f"lw {reg}, 0({reg})")
            return reg_idx, True

        if value.kind is ValueKind.INTEGER:
            if value.int_value == 0:
                return 0, False
            reg_idx = info.set_reg(value)
            self._push(f"li {REGISTER[reg_idx]}, {value.int_value}")
            return reg_idx, True

        if value.kind is ValueKind.FUNC_ARG_REF:
            arg_idx = value.arg_index
            reg_idx = info.set_reg(value)
            if arg_idx < 8:
                self._push(f"mv {REGISTER[reg_idx]}, a{arg_idx}")
            else:
                count = len(self.function.params)
                offset = self.stack_frame + (count - 1 - arg_idx) * 4
                self._memory("lw", reg_idx, offset)
            return reg_idx, True

        reg_idx = info.set_reg(value)
        self._memory("lw", reg_idx, self._slot_offset(value))
        return reg_idx, True

    def store_in_memory(self, reg_idx: int, dest: Value) -> None:
        """Store a register into the storage of ``dest``."""
        info = self.info
        if dest in info.glob_var:
            name = info.glob_var[dest][0]
            tmp = REGISTER[info.get_vacant()]
            self._push(f"la {tmp}, {name}")
            self._push(f"sw {REGISTER[reg_idx]}, 0({tmp})")
            return
        self._memory("sw", reg_idx, self._slot_offset(dest))

    def emit(self, inst: Value) -> None:
        """Emit the assembly of one instruction."""
        match inst.kind:
            case ValueKind.ALLOC:
                pass
            case ValueKind.LOAD:
                self._load(inst)
            case ValueKind.STORE:
                self._store(inst)
            case ValueKind.GET_PTR:
                self._get_ptr(inst)
            case ValueKind.GET_ELEM_PTR:
                self._get_elem_ptr(inst)
            case ValueKind.BINARY:
                self._binary(inst)
            case ValueKind.BRANCH:
                self._branch(inst)
            case ValueKind.JUMP:
                self._push(f"j {self._label(inst.target)}")
            case ValueKind.CALL:
                self._call(inst)
            case ValueKind.RETURN:
                self._return(inst)
            case other:
                raise CompileError(f"Unknown value kind {other.value}")

    @staticmethod
    def _is_pointer_value(value: Value) -> bool:
        return value.kind in (ValueKind.GET_ELEM_PTR, ValueKind.GET_PTR)

    def _load(self, inst: Value) -> None:
        src = inst.src
        if src not in self.info.glob_var and self._is_pointer_value(src):
            offset = self._slot_offset(src)
            tmp_idx = self.info.set_reg(src)
            self._load_slot_address_content(tmp_idx, offset)
            tmp = REGISTER[tmp_idx]
            self._push(f"lw {tmp}, 0({tmp})")
            self.store_in_memory(tmp_idx, inst)
            self.info.free_reg(tmp_idx)
            return
        reg_idx, need_free = self.load_to_reg(src)
        self.store_in_memory(reg_idx, inst)
        if need_free:
            self.info.free_reg(reg_idx)

    def _store(self, inst: Value) -> None:
        reg_idx, need_free = self.load_to_reg(inst.value)
        dest = inst.dest
        if dest not in self.info.glob_var and self._is_pointer_value(dest):
            offset = self._slot_offset(dest)
            tmp_idx = self.info.get_vacant()
            self._load_slot_address_content(tmp_idx, offset)
            self._push(f"sw {REGISTER[reg_idx]}, 0({REGISTER[tmp_idx]})")
        else:
            self.store_in_memory(reg_idx, dest)
        if need_free:
            self.info.free_reg(reg_idx)

    def _offset_and_store(self, inst: Value, src_idx: int, elem_size: int) -> None:
        index_idx, need_free = self.load_to_reg(inst.index)
        offset_idx = self.info.get_vacant()
        offset = REGISTER[offset_idx]
        self._push(f"li {offset}, {elem_size}")
        self._push(f"mul {offset}, {REGISTER[index_idx]}, {offset}")
        if need_free:
            self.info.free_reg(index_idx)
        src = REGISTER[src_idx]
        self._push(f"add {src}, {src}, {offset}")
        self.store_in_memory(src_idx, inst)
        self.info.free_reg(src_idx)

    def _get_ptr(self, inst: Value) -> None:
        src = inst.src
        src_idx, _ = self.load_to_reg(src)
        if src.ty.kind is not TypeKind.POINTER:
            raise CompileError("getptr source is not a pointer")
        self._offset_and_store(inst, src_idx, src.ty.base.size())

    def _get_elem_ptr(self, inst: Value) -> None:
        info = self.info
        src = inst.src
        src_idx = info.set_reg(src)
        if src in info.glob_var:
            name, elem_size = info.glob_var[src]
            self._push(f"la {REGISTER[src_idx]}, {name}")
        else:
            if src.kind is ValueKind.ALLOC:
                offset = self._slot_offset(src)
                reg = REGISTER[src_idx]
                if offset < _IMM_LIMIT:
                    self._push(f"addi {reg}, sp, {offset}")
                else:
                    tmp = REGISTER[info.get_vacant()]
                    self._push(f"li {tmp}, {offset}")
                    self._push(f"add {reg}, {tmp}, sp")
            else:
                info.free_reg(src_idx)
                src_idx, _ = self.load_to_reg(src)
            pointee = src.ty.base if src.ty.kind is TypeKind.POINTER else None
            if pointee is None or pointee.kind is not TypeKind.ARRAY:
                raise CompileError("getelemptr source is not a pointer to an array")
            elem_size = pointee.base.size()
        self._offset_and_store(inst, src_idx, elem_size)

    def _binary(self, inst: Value) -> None:
        lhs_idx, lhs_free = self.load_to_reg(inst.lhs)
        rhs_idx, rhs_free = self.load_to_reg(inst.rhs)
        if lhs_free:
            self.info.free_reg(lhs_idx)
        if rhs_free:
            self.info.free_reg(rhs_idx)
        res_idx = self.info.set_reg(inst)
        regs = {"res": REGISTER[res_idx], "lhs": REGISTER[lhs_idx], "rhs": REGISTER[rhs_idx]}
        for template in _BINARY_TEMPLATES.get(inst.op, ()):
            self._push(template.format(**regs))
        self.store_in_memory(res_idx, inst)
        self.info.free_reg(res_idx)

    def _branch(self, inst: Value) -> None:
        true_label = self._label(inst.true_bb)
        false_label = self._label(inst.false_bb)
        reg_idx, need_free = self.load_to_reg(inst.cond)
        if need_free:
            self.info.free_reg(reg_idx)
        # The conditional branch has a short reach, so it only hops to a nearby jump.
        self._push(f"bnez {REGISTER[reg_idx]}, {true_label}_pre")
        self._push(f"j {false_label}")
        self.lines.append(f"{true_label}_pre:")
        self._push(f"j {true_label}")

    def _call(self, inst: Value) -> None:
        args = inst.operands
        count = len(args)
        for idx, arg in enumerate(args[:8]):
            reg_idx, need_free = self.load_to_reg(arg)
            self._push(f"mv a{idx}, {REGISTER[reg_idx]}")
            if need_free:
                self.info.free_reg(reg_idx)
        for idx, arg in enumerate(args[8:], start=8):
            reg_idx, need_free = self.load_to_reg(arg)
            self._memory("sw", reg_idx, (count - 1 - idx) * 4)
            if need_free:
                self.info.free_reg(reg_idx)
        try:
            callee = self.info.function[inst.callee]
        except KeyError:
            raise CompileError("Undefined function") from None
        self._push(f"call {callee}")
        if not inst.ty.is_unit():
            self.store_in_memory(_A0, inst)

    def _return(self, inst: Value) -> None:
        value = inst.value
        if value is not None:
            if value.kind is ValueKind.INTEGER:
                self._push(f"li a0, {value.int_value}")
            else:
                reg_idx, need_free = self.load_to_reg(value)
                if need_free:
                    self.info.free_reg(reg_idx)
                self._push(f"mv a0, {REGISTER[reg_idx]}")
        frame = self.stack_frame
        if self.info.ra_used:
            ra_offset = frame - 4
            if ra_offset < _IMM_LIMIT:
                self._push(f"lw ra, {ra_offset}(sp)")
            else:
                self._push(f"li t0, {ra_offset}")
                self._push("add t0, t0, sp")
                self._push("lw ra, 0(t0)")
        if 0 < frame < _IMM_LIMIT:
            self._push(f"addi sp, sp, {frame}")
        elif frame >= _IMM_LIMIT:
            self._push(f"li t0, {frame}")
            self._push("add sp, sp, t0")
        self._push("ret")