from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, List, Optional, Sequence, Tuple

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
    count_instructions,
    describe,
)

logger = logging.getLogger(__name__)

TAPE_SIZE = 30000


class InterpreterError(RuntimeError):
    """Base class for conditions that halt execution."""


class TapeBoundsViolation(InterpreterError):
    """Raised when the cursor would leave the tape."""


class UnknownInstruction(InterpreterError):
    """Raised when the dispatcher meets a node it does not handle."""


class StepLimitExceeded(InterpreterError):
    """Raised when execution exceeds the configured step budget."""


@dataclass
class Tape:
    size: int = TAPE_SIZE

    cells: bytearray = field(init=False, repr=False)
    pointer: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        self.cells = bytearray(self.size)

    @property
    def current(self) -> int:
        return self.cells[self.pointer]

    @current.setter
    def current(self, value: int) -> None:
        self.cells[self.pointer] = value & 0xFF

    def adjust(self, delta: int) -> None:
        self.cells[self.pointer] = (self.cells[self.pointer] + delta) & 0xFF

    def move(self, offset: int) -> None:
        target = self.pointer + offset
        if target >= self.size:
            raise TapeBoundsViolation(
                f"Pointer moved beyond the tape length ({target} >= {self.size})."
            )
        if target < 0:
            raise TapeBoundsViolation(f"Pointer moved before start of tape ({target}).")
        self.pointer = target

    def window(self, radius: int) -> Tuple[int, List[int]]:
        start = max(0, self.pointer - radius)
        end = min(self.size, self.pointer + radius + 1)
        return start, list(self.cells[start:end])


@dataclass
class ExecutionState:
    step: int
    pc: int
    instruction: Optional[str]
    pointer: int
    tape_start: int
    tape: List[int]
    output: bytes
    instruction_count: int


@dataclass
class _Frame:
    body: Sequence[Instruction]
    index: int
    pc: int


@dataclass
class TreeInterpreter:
    """Tree-walking interpreter over an instruction tree.

    ``run`` uses a recursive walk, one Python call per nested loop. ``step``
    walks the same tree with an explicit frame stack and yields a snapshot
    after every step, which is what the visualizer drives. ``max_steps``
    bounds executed instructions and loop tests, counted on the same
    schedule in both walks: one step per instruction, one per loop entry
    test and one per re-test after a full body pass. Snapshot ``step``
    numbers count yielded snapshots, so re-tests do not appear there.
    ``ReadByte`` stores 0 once the input is exhausted.
    """

    tape_length: int = TAPE_SIZE

    tape: Tape = field(init=False, repr=False)
    output_buffer: bytearray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.tape = Tape(self.tape_length)
        self.output_buffer = bytearray()
        self._steps = 0
        self._max_steps: Optional[int] = None

    def run(
        self,
        program: Program,
        input_data: Optional[Iterable[int]] = None,
        max_steps: Optional[int] = None,
        tape: Optional[Tape] = None,
        write: Optional[Callable[[int], None]] = None,
    ) -> bytes:
        self.reset()
        if tape is not None:
            self.tape = tape
        self._max_steps = max_steps
        input_iter = iter(input_data if input_data is not None else ())

        def _write(value: int) -> None:
            self.output_buffer.append(value)
            if write is not None:
                write(value)

        logger.debug("Executing %d instruction(s) on a %d-cell tape", len(program), self.tape.size)
        try:
            self.execute(program, self.tape, input_iter, _write)
        finally:
            logger.debug("Execution stopped after %d step(s)", self._steps)
        return bytes(self.output_buffer)

    def execute(
        self,
        program: Program,
        tape: Tape,
        input_iter: Iterator[int],
        write: Callable[[int], None],
    ) -> None:
        for instruction in program:
            self._count_step()
            if isinstance(instruction, Loop):
                while tape.current:
                    self.execute(instruction.body, tape, input_iter, write)
                    self._count_step()
            else:
                self._apply(instruction, tape, input_iter, write)

    def step(
        self,
        program: Program,
        input_data: Optional[Iterable[int]] = None,
        max_steps: Optional[int] = None,
        tape_window: int = 10,
    ) -> Iterator[ExecutionState]:
        self.reset()
        self._max_steps = max_steps
        input_iter = iter(list(input_data or []))
        instruction_count = count_instructions(program)
        frames: List[_Frame] = [_Frame(body=program, index=0, pc=0)]
        steps = 0

        while frames[-1].index < len(frames[-1].body):
            self._count_step()
            frame = frames[-1]
            instruction = frame.body[frame.index]
            if isinstance(instruction, Loop):
                if not self.tape.current:
                    frame.index += 1
                    frame.pc += instruction.size
                elif instruction.body:
                    frames.append(_Frame(body=instruction.body, index=0, pc=frame.pc + 1))
                # Non-zero cell and empty body: the next step tests this loop again.
            else:
                self._apply(instruction, self.tape, input_iter, self.output_buffer.append)
                frame.index += 1
                frame.pc += 1
            self._settle(frames)
            steps += 1
            yield self._snapshot(self._next_pc(frames, instruction_count), instruction, steps, instruction_count, tape_window)

        yield self._snapshot(instruction_count, None, steps, instruction_count, tape_window)

    def _settle(self, frames: List[_Frame]) -> None:
        # Unwind finished loop bodies: repeat the body while the cell is
        # non-zero, otherwise continue after the loop in the parent frame.
        # Each re-test is a step, as in execute().
        while len(frames) > 1 and frames[-1].index >= len(frames[-1].body):
            parent = frames[-2]
            loop = parent.body[parent.index]
            self._count_step()
            if self.tape.current:
                frames[-1].index = 0
                frames[-1].pc = parent.pc + 1
                return
            frames.pop()
            parent.index += 1
            parent.pc += loop.size

    def _next_pc(self, frames: List[_Frame], instruction_count: int) -> int:
        frame = frames[-1]
        if frame.index < len(frame.body):
            return frame.pc
        return instruction_count

    def _count_step(self) -> None:
        self._steps += 1
        if self._max_steps is not None and self._steps > self._max_steps:
            raise StepLimitExceeded("Program exceeded allowed step count")

    def _apply(
        self,
        instruction: Instruction,
        tape: Tape,
        input_iter: Iterator[int],
        write: Callable[[int], None],
    ) -> None:
        if isinstance(instruction, IncrementCell):
            tape.adjust(instruction.amount)
        elif isinstance(instruction, DecrementCell):
            tape.adjust(-instruction.amount)
        elif isinstance(instruction, MoveForward):
            tape.move(instruction.amount)
        elif isinstance(instruction, MoveBackward):
            tape.move(-instruction.amount)
        elif isinstance(instruction, ReadByte):
            try:
                tape.current = next(input_iter)
            except StopIteration:
                tape.current = 0
        elif isinstance(instruction, WriteByte):
            write(tape.current)
        else:
            raise UnknownInstruction(f"Unhandled instruction: {instruction!r}")

    def _snapshot(
        self,
        pc: int,
        instruction: Optional[Instruction],
        step: int,
        instruction_count: int,
        tape_window: int,
    ) -> ExecutionState:
        start, tape_view = self.tape.window(tape_window)
        return ExecutionState(
            step=step,
            pc=pc,
            instruction=describe(instruction) if instruction is not None else None,
            pointer=self.tape.pointer,
            tape_start=start,
            tape=tape_view,
            output=bytes(self.output_buffer),
            instruction_count=instruction_count,
        )


def execute(program: Program, tape: Tape, input_data: Optional[Iterable[int]] = None) -> bytes:
    """Run ``program`` against an existing tape and return the bytes written."""
    return TreeInterpreter(tape_length=tape.size).run(program, input_data=input_data, tape=tape)


__all__ = [
    "TAPE_SIZE",
    "Tape",
    "ExecutionState",
    "InterpreterError",
    "TapeBoundsViolation",
    "UnknownInstruction",
    "StepLimitExceeded",
    "TreeInterpreter",
    "execute",
]
