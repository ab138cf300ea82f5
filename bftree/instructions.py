from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
from typing import Iterator, List, Sequence, Tuple

MAX_AMOUNT = 2**32 - 1


class Instruction:
    pass


# === Counted cell/pointer operations ===


@dataclass(frozen=True)
class CountedInstruction(Instruction):
    amount: int = 1

    def __post_init__(self) -> None:
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise ValueError(f"{type(self).__name__} amount must be an int, got {self.amount!r}")
        if not 1 <= self.amount <= MAX_AMOUNT:
            raise ValueError(
                f"{type(self).__name__} amount must be in 1..{MAX_AMOUNT}, got {self.amount!r}"
            )

    @property
    def is_counted(self) -> bool:
        return self.amount > 1


@dataclass(frozen=True)
class IncrementCell(CountedInstruction):
    pass


@dataclass(frozen=True)
class DecrementCell(CountedInstruction):
    pass


@dataclass(frozen=True)
class MoveForward(CountedInstruction):
    pass


@dataclass(frozen=True)
class MoveBackward(CountedInstruction):
    pass


# === I/O and control flow ===


@dataclass(frozen=True)
class ReadByte(Instruction):
    pass


@dataclass(frozen=True)
class WriteByte(Instruction):
    pass


@dataclass(frozen=True)
class Loop(Instruction):
    body: Tuple[Instruction, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "body", tuple(self.body))

    @cached_property
    def size(self) -> int:
        """Number of nodes in this loop, the loop node itself included."""
        return 1 + count_instructions(self.body)


Program = List[Instruction]

_COMMANDS = {
    IncrementCell: "+",
    DecrementCell: "-",
    MoveForward: ">",
    MoveBackward: "<",
    ReadByte: ",",
    WriteByte: ".",
}


def count_instructions(program: Sequence[Instruction]) -> int:
    total = 0
    for instruction in program:
        total += instruction.size if isinstance(instruction, Loop) else 1
    return total


def iter_preorder(program: Sequence[Instruction], depth: int = 0, start: int = 0) -> Iterator[Tuple[int, int, Instruction]]:
    """Yield ``(pc, depth, instruction)`` for every node in pre-order.

    ``pc`` is the pre-order number of the node. The step interpreter and the
    visualizer use the same numbering, so breakpoints set against a dump line
    up with execution snapshots.
    """
    pc = start
    for instruction in program:
        yield pc, depth, instruction
        if isinstance(instruction, Loop):
            yield from iter_preorder(instruction.body, depth + 1, pc + 1)
            pc += instruction.size
        else:
            pc += 1


def describe(instruction: Instruction) -> str:
    name = type(instruction).__name__
    if isinstance(instruction, CountedInstruction) and instruction.is_counted:
        return f"{name} x{instruction.amount}"
    return name


def dump_program(program: Program, *, numbered: bool = False) -> str:
    lines: List[str] = []
    for pc, depth, instruction in iter_preorder(program):
        text = "  " * depth + describe(instruction)
        if numbered:
            text = f"{pc:>5}  {text}"
        lines.append(text)
    return "\n".join(lines)


def to_source(program: Sequence[Instruction]) -> str:
    pieces: List[str] = []
    for instruction in program:
        if isinstance(instruction, Loop):
            pieces.append("[" + to_source(instruction.body) + "]")
        elif isinstance(instruction, CountedInstruction):
            pieces.append(_COMMANDS[type(instruction)] * instruction.amount)
        else:
            pieces.append(_COMMANDS[type(instruction)])
    return "".join(pieces)


__all__ = [
    "Instruction",
    "CountedInstruction",
    "IncrementCell",
    "DecrementCell",
    "MoveForward",
    "MoveBackward",
    "ReadByte",
    "WriteByte",
    "Loop",
    "Program",
    "count_instructions",
    "iter_preorder",
    "describe",
    "dump_program",
    "to_source",
]
