"""State carried through IR generation: context, scopes and loop targets."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from sysyc.koopa import BasicBlock, Function, Value


@dataclass
class Context:
    """Where instructions are currently emitted and the last produced value."""

    function: Optional[Function] = None
    block: Optional[BasicBlock] = None
    value: Optional[Value] = None
    exited: bool = False


@dataclass(frozen=True)
class ConstSymbol:
    ident: str
    value: int


@dataclass(frozen=True)
class VarSymbol:
    ident: str
    var: Value


@dataclass(frozen=True)
class FuncSymbol:
    ident: str
    function: Function


Symbol = Union[ConstSymbol, VarSymbol, FuncSymbol]


class SymbolTable:
    """Stack of nested scopes; the bottom scope holds global names."""

    def __init__(self) -> None:
        self._scopes: list[dict[str, Symbol]] = []
        self._entry = False

    def depth(self) -> int:
        return len(self._scopes) - 1

    def insert(self, ident: str, symbol: Symbol) -> Optional[Symbol]:
        """Bind a name in the innermost scope and return what it replaced there."""
        if not self._scopes:
            raise RuntimeError("no open scope")
        scope = self._scopes[-1]
        previous = scope.get(ident)
        scope[ident] = symbol
        return previous

    def get(self, ident: str) -> Optional[tuple[Symbol, bool]]:
        """Look a name up from the innermost scope; the flag tells if it is global."""
        for depth in range(len(self._scopes) - 1, -1, -1):
            symbol = self._scopes[depth].get(ident)
            if symbol is not None:
                return symbol, depth == 0
        return None

    def set_entry(self) -> None:
        self._entry = True

    def check_entry(self) -> bool:
        """Report and clear the flag set by set_entry."""
        entry, self._entry = self._entry, False
        return entry

    def push_table(self) -> None:
        self._scopes.append({})

    def pop_table(self) -> None:
        if self._scopes:
            self._scopes.pop()


@dataclass(frozen=True)
class WhileBlockInfo:
    """Targets of ``continue`` and ``break`` inside a loop."""

    entry_bb: BasicBlock
    end_bb: BasicBlock


@dataclass
class IrInfo:
    context: Context = field(default_factory=Context)
    symbol_table: SymbolTable = field(default_factory=SymbolTable)
    if_cnt: int = 0
    while_cnt: int = 0
    while_info: list[WhileBlockInfo] = field(default_factory=list)

    def emit(self, *args: Value) -> None:
        """Append instructions to the current basic block."""
        if self.context.block is None:
            raise RuntimeError("no current basic block")
        self.context.block.insts.extend(args)