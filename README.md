# sysyc

`sysyc` compiles programs in SysY, a small C-like teaching language. It works
in two stages:

1. A SysY syntax tree is lowered to Koopa IR, a typed intermediate
   representation made of functions and basic blocks. The IR can be printed
   as text.
2. The Koopa IR program is lowered to 32-bit RISC-V assembly.

## What it does not do

- There is no parser. The input is a syntax tree that you build from the
  classes in `sysyc.ast`, such as `CompUnit`, `FuncDef`, `Block`,
  `ReturnStmt`, `BinaryExp` and `Number`.
- There is no command-line program. The package gives you functions that
  return text or lines. Reading source files and writing output files is
  left to the caller.

## Language coverage

- `int` and `void` functions, with `int` and array parameters
- global and local variables and constants, including multi-dimensional
  arrays with nested initializer lists
- `if` / `else`, `while`, `break`, `continue` and `return`
- arithmetic, comparison and equality operators, and short-circuiting `&&` /
  `||`
- constant expressions folded at compile time with 32-bit wrap-around, so
  constants and array sizes can be written as expressions
- the runtime library functions `getint`, `getch`, `getarray`, `putint`,
  `putch`, `putarray`, `starttime` and `stoptime`, declared automatically

## Usage

```python
from sysyc.ast import (
    BinaryExp, BinaryOperator, Block, CompUnit, FuncDef, FuncType, Number, ReturnStmt,
)
from sysyc.irgen import generate_ir
from sysyc.koopa import to_text
from sysyc.asmgen import generate_asm

unit = CompUnit([
    FuncDef(FuncType.INT, "main", [], Block([
        ReturnStmt(BinaryExp(BinaryOperator.ADD, Number(1), Number(2))),
    ])),
])

program = generate_ir(unit)          # a sysyc.koopa.Program
koopa_text = to_text(program)        # Koopa IR as text
assembly = "\n".join(generate_asm(program)) + "\n"   # RISC-V assembly
```

`generate_asm` returns a list of lines. It sets the pointer size to 4 bytes
through `sysyc.koopa.set_ptr_size` before it computes any layout.

You can also build IR directly. `sysyc.koopa` has constructors for every
value (`integer`, `alloc`, `load`, `store`, `get_elem_ptr`, `binary`,
`branch`, `jump`, `call`, `ret` and others), together with `BasicBlock`,
`Function` and `Program`. A `Function` with no basic blocks is a declaration.
`to_text` prints it as a `decl` line.

## Errors

Errors in the source program are raised as `sysyc.errors.CompileError`. They
include:

- undefined or redefined names
- assignment to a constant
- array sizes or global initializers that are not constant
- ill-formed initializer lists
- `break` or `continue` outside a loop
- division by zero in a constant expression
- negative array dimensions

An object that is not a syntax-tree node, where one is expected, raises
`TypeError`.

## Generated assembly

- Global variables go in `.data` and are written with `.word` and `.zero`.
  Functions go in `.text`.
- Every value an instruction produces gets a stack slot. The `t` registers
  hold temporaries only while a single instruction is being lowered.
- The first eight call arguments go in `a0`–`a7`. The rest go on the stack.
- `ra` is saved only in functions that make calls.
- Stack frames are rounded up to 16 bytes. Offsets of 2048 or more are
  computed through a register.
- Each conditional branch jumps to a nearby `_pre` label, which then jumps to
  the real target. This keeps far-away blocks reachable.