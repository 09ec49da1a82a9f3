"""Syntax tree of SysY programs."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


class FuncType(Enum):
    """Return type of a function definition."""

    VOID = "void"
    INT = "int"


class UnaryOp(Enum):
    """Prefix operators."""

    POS = "+"
    NEG = "-"
    NOT = "!"


class BinaryOperator(Enum):
    """Arithmetic, relational and equality operators."""

    MUL = "*"
    DIV = "/"
    MOD = "%"
    ADD = "+"
    SUB = "-"
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="
    EQ = "=="
    NE = "!="


@dataclass
class Number:
    """Integer literal."""

    value: int


@dataclass
class LVal:
    """Name of a variable or constant, optionally indexed."""

    ident: str
    index: list[Expression] = field(default_factory=list)


@dataclass
class UnaryExp:
    """Prefix operator applied to an operand."""

    op: UnaryOp
    operand: Expression


@dataclass
class FuncCall:
    """Call of a function with its actual arguments."""

    ident: str
    args: list[Expression] = field(default_factory=list)


@dataclass
class BinaryExp:
    """Binary arithmetic, relational or equality expression."""

    op: BinaryOperator
    lhs: Expression
    rhs: Expression


@dataclass
class LogicalAnd:
    """Short-circuit conjunction."""

    lhs: Expression
    rhs: Expression


@dataclass
class LogicalOr:
    """Short-circuit disjunction."""

    lhs: Expression
    rhs: Expression


Expression = Union[Number, LVal, UnaryExp, FuncCall, BinaryExp, LogicalAnd, LogicalOr]


@dataclass
class InitVal:
    """Initializer: a single expression or a braced list of initializers."""

    value: Union[Expression, list["InitVal"]]

    @property
    def is_array(self) -> bool:
        return isinstance(self.value, list)


@dataclass
class ConstDef:
    """One constant definition; ``shape`` holds the array dimensions."""

    ident: str
    shape: list[Expression]
    init_val: InitVal


@dataclass
class ConstDecl:
    """A ``const int`` declaration with one or more definitions."""

    defs: list[ConstDef]


@dataclass
class VarDef:
    """One variable definition with an optional initializer."""

    ident: str
    shape: list[Expression] = field(default_factory=list)
    init_val: Optional[InitVal] = None


@dataclass
class VarDecl:
    """An ``int`` declaration with one or more definitions."""

    defs: list[VarDef]


Decl = Union[ConstDecl, VarDecl]


@dataclass
class FuncFParam:
    """Formal parameter; ``shape`` is None for a scalar, else the trailing dimensions."""

    ident: str
    shape: Optional[list[Expression]] = None

    @property
    def is_array(self) -> bool:
        return self.shape is not None


@dataclass
class Block:
    """Braced sequence of declarations and statements."""

    items: list[BlockItem] = field(default_factory=list)


@dataclass
class AssignStmt:
    lval: LVal
    exp: Expression


@dataclass
class ExpStmt:
    exp: Optional[Expression] = None


@dataclass
class BlockStmt:
    block: Block


@dataclass
class IfStmt:
    cond: Expression
    then: Stmt
    otherwise: Optional[Stmt] = None


@dataclass
class WhileStmt:
    cond: Expression
    body: Stmt


@dataclass
class BreakStmt:
    pass


@dataclass
class ContinueStmt:
    pass


@dataclass
class ReturnStmt:
    exp: Optional[Expression] = None


Stmt = Union[
    AssignStmt, ExpStmt, BlockStmt, IfStmt, WhileStmt, BreakStmt, ContinueStmt, ReturnStmt
]
BlockItem = Union[ConstDecl, VarDecl, Stmt]


@dataclass
class FuncDef:
    """Function definition."""

    func_type: FuncType
    ident: str
    params: list[FuncFParam]
    block: Block


@dataclass
class CompUnit:
    """A whole translation unit."""

    items: list[Union[ConstDecl, VarDecl, FuncDef]] = field(default_factory=list)