"""Classification of variables by the type of their storage."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from sysyc.koopa import Type, TypeKind, Value


class VarKind(Enum):
    INT32 = "int32"
    ARRAY = "array"
    POINTER = "pointer"


@dataclass(frozen=True)
class VarType:
    """Kind of a variable and its number of dimensions."""

    kind: VarKind
    dims: int = 0


def _classify(ty: Type) -> VarType:
    if ty.kind is TypeKind.INT32:
        return VarType(VarKind.INT32)
    if ty.kind in (TypeKind.ARRAY, TypeKind.POINTER):
        inner = _classify(ty.base)
        if inner.kind is VarKind.POINTER:
            raise TypeError(f"unsupported variable type: {ty}")
        kind = VarKind.ARRAY if ty.kind is TypeKind.ARRAY else VarKind.POINTER
        return VarType(kind, inner.dims + 1)
    raise TypeError(f"unsupported variable type: {ty}")


def get_var_type(var: Value) -> VarType:
    """Classify a variable from the type its storage points to."""
    if var.ty.kind is not TypeKind.POINTER:
        raise TypeError(f"variable storage must be a pointer, got {var.ty}")
    return _classify(var.ty.base)