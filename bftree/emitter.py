from __future__ import annotations

from typing import List

from .instructions import (
    DecrementCell,
    IncrementCell,
    Instruction,
    Loop,
    MoveBackward,
    MoveForward,
    Program,
    ReadByte,
    WriteByte,
)
from .interpreter import TAPE_SIZE, UnknownInstruction

_INDENT = "    "


def _emit_instruction(instruction: Instruction, indent: int, lines: List[str]) -> None:
    pad = _INDENT * indent
    if isinstance(instruction, IncrementCell):
        if instruction.amount == 1:
            lines.append(f"{pad}++*ptr;")
        else:
            lines.append(f"{pad}*ptr += {instruction.amount};")
    elif isinstance(instruction, DecrementCell):
        if instruction.amount == 1:
            lines.append(f"{pad}--*ptr;")
        else:
            lines.append(f"{pad}*ptr -= {instruction.amount};")
    elif isinstance(instruction, MoveForward):
        if instruction.amount == 1:
            lines.append(f"{pad}++ptr;")
        else:
            lines.append(f"{pad}ptr += {instruction.amount};")
    elif isinstance(instruction, MoveBackward):
        if instruction.amount == 1:
            lines.append(f"{pad}--ptr;")
        else:
            lines.append(f"{pad}ptr -= {instruction.amount};")
    elif isinstance(instruction, ReadByte):
        lines.append(f"{pad}*ptr = (c = getchar()) == EOF ? 0 : c;")
    elif isinstance(instruction, WriteByte):
        lines.append(f"{pad}putchar(*ptr);")
    elif isinstance(instruction, Loop):
        lines.append(f"{pad}while (*ptr) {{")
        for child in instruction.body:
            _emit_instruction(child, indent + 1, lines)
        lines.append(f"{pad}}}")
    else:
        raise UnknownInstruction(f"Unhandled instruction: {instruction!r}")


def emit_statements(program: Program, indent: int = 1) -> List[str]:
    # Statements expect `ptr` and an `int c` scratch variable in scope.
    lines: List[str] = []
    for instruction in program:
        _emit_instruction(instruction, indent, lines)
    return lines


def compile_to_c(program: Program, tape_size: int = TAPE_SIZE) -> str:
    """Translate ``program`` into a standalone C translation unit."""
    lines = [
        "#include <stdio.h>",
        f"static unsigned char tape[{tape_size}] = {{0}};",
        "static unsigned char *ptr = tape;",
        "int main(void) {",
        f"{_INDENT}int c;",
    ]
    lines.extend(emit_statements(program))
    lines.append(f"{_INDENT}return 0;")
    lines.append("}")
    return "\n".join(lines) + "\n"


__all__ = ["emit_statements", "compile_to_c"]
