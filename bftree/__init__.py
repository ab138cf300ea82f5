import logging

from .emitter import compile_to_c, emit_statements
from .instructions import (
    CountedInstruction,
    DecrementCell,
    IncrementCell,
    Instruction,
    Loop,
    MoveBackward,
    MoveForward,
    Program,
    ReadByte,
    WriteByte,
    dump_program,
)
from .interpreter import (
    TAPE_SIZE,
    ExecutionState,
    InterpreterError,
    StepLimitExceeded,
    Tape,
    TapeBoundsViolation,
    TreeInterpreter,
    UnknownInstruction,
    execute,
)
from .optimizer import optimize
from .parser import ParseError, Parser, UnexpectedLoopClose, UnterminatedLoop, parse
from .visualizer import VisualizerSession

logging.getLogger(__name__).addHandler(logging.NullHandler())

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
    "dump_program",
    "Parser",
    "parse",
    "ParseError",
    "UnexpectedLoopClose",
    "UnterminatedLoop",
    "optimize",
    "TAPE_SIZE",
    "Tape",
    "TreeInterpreter",
    "execute",
    "ExecutionState",
    "InterpreterError",
    "TapeBoundsViolation",
    "UnknownInstruction",
    "StepLimitExceeded",
    "emit_statements",
    "compile_to_c",
    "VisualizerSession",
]
