"""Register and stack bookkeeping for RISC-V code generation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from sysyc.errors import CompileError
from sysyc.koopa import Function, Value

REGISTER: tuple[str, ...] = (
    "x0", "ra", "sp", "gp", "tp", "t0", "t1", "t2", "fp", "s1", "a0", "a1", "a2", "a3", "a4", "a5",
    "a6", "a7", "s2", "s3", "s4", "s5", "s6", "s7", "s8", "s9", "s10", "s11", "t3", "t4", "t5", "t6",
)

TEMP_IDX: tuple[int, ...] = (5, 6, 7, 28, 29, 30, 31)


@dataclass
class AsmInfo:
    """Register occupancy, stack slots, function names and global variables.

    ``stack`` maps a value to the end of its slot, counted from the bottom of
    the local area; ``glob_var`` maps a global allocation to its label and
    element size.
    """

    reg: list[Optional[Value]] = field(default_factory=lambda: [None] * len(REGISTER))
    stack: dict[Value, int] = field(default_factory=dict)
    function: dict[Function, str] = field(default_factory=dict)
    glob_var: dict[Value, tuple[str, int]] = field(default_factory=dict)
    ra_used: bool = False

    def get_vacant(self) -> int:
        """Return a free temporary register without occupying it."""
        for idx in TEMP_IDX:
            if self.reg[idx] is None:
                return idx
        raise CompileError("No vacant register")

    def get_occupied(self, value: Value) -> int:
        """Return the temporary register holding ``value``."""
        for idx in TEMP_IDX:
            if self.reg[idx] is value:
                return idx
        raise CompileError("No register is occupied by the value")

    def set_reg(self, value: Value) -> int:
        """Occupy a free temporary register with ``value`` and return it."""
        idx = self.get_vacant()
        self.reg[idx] = value
        return idx

    def free_reg(self, reg_idx: int) -> None:
        self.reg[reg_idx] = None