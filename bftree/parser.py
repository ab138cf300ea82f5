from __future__ import annotations

from typing import List, Optional

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


class ParseError(Exception):
    def __init__(self, message: str, position: int) -> None:
        super().__init__(message)
        self.position = position


class UnexpectedLoopClose(ParseError):
    pass


class UnterminatedLoop(ParseError):
    pass


_UNIT_COMMANDS = {
    "+": IncrementCell,
    "-": DecrementCell,
    ">": MoveForward,
    "<": MoveBackward,
    ",": ReadByte,
    ".": WriteByte,
}


class Parser:
    """Single-pass recursive descent parser for Brainfuck source.

    Every recognised command becomes a unit instruction; ``[`` opens a nested
    parse that ends at the matching ``]``. Any other character is a comment.
    With ``allow_unterminated`` set, end of input closes every open loop
    instead of raising :class:`UnterminatedLoop`.
    """

    def __init__(self, *, allow_unterminated: bool = False) -> None:
        self.allow_unterminated = allow_unterminated

    def parse(self, source: str) -> Program:
        self.source = source
        self.pos = 0
        return self._parse_sequence(open_position=None)

    def _peek(self) -> Optional[str]:
        if self.pos >= len(self.source):
            return None
        return self.source[self.pos]

    def _advance(self) -> Optional[str]:
        char = self._peek()
        if char is not None:
            self.pos += 1
        return char

    def _parse_sequence(self, open_position: Optional[int]) -> List[Instruction]:
        instructions: List[Instruction] = []
        while True:
            char = self._advance()
            if char is None:
                break
            if char in _UNIT_COMMANDS:
                instructions.append(_UNIT_COMMANDS[char]())
            elif char == "[":
                start = self.pos - 1
                instructions.append(Loop(body=self._parse_sequence(open_position=start)))
            elif char == "]":
                if open_position is None:
                    raise UnexpectedLoopClose(f"Unexpected ']' at position {self.pos - 1}", self.pos - 1)
                return instructions
        if open_position is not None and not self.allow_unterminated:
            raise UnterminatedLoop(f"Unmatched '[' at position {open_position}", open_position)
        return instructions


def parse(source: str, *, allow_unterminated: bool = False) -> Program:
    return Parser(allow_unterminated=allow_unterminated).parse(source)


__all__ = [
    "ParseError",
    "UnexpectedLoopClose",
    "UnterminatedLoop",
    "Parser",
    "parse",
]
