from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, List, Optional, TextIO

from .emitter import compile_to_c
from .instructions import dump_program
from .interpreter import TAPE_SIZE, InterpreterError, TreeInterpreter
from .optimizer import optimize
from .parser import ParseError, parse

DEFAULT_C_OUTPUT = "brainf.out.c"


@dataclass(frozen=True)
class Options:
    code: Optional[str] = None
    input_file: Optional[str] = None
    compile_to_c: bool = False
    optimize: bool = False
    dump_instructions: bool = False
    output_path: str = DEFAULT_C_OUTPUT
    input_text: Optional[str] = None
    max_steps: Optional[int] = None
    allow_unterminated: bool = False
    verbose: bool = False


def _read_source(path: str) -> str:
    source_path = Path(path)
    if not source_path.exists():
        raise FileNotFoundError(f"Source file not found: {path}")
    return source_path.read_text(encoding="utf-8")


def _write_output(path: str, data: str) -> None:
    Path(path).write_text(data, encoding="utf-8")


def _stdin_bytes(stream: TextIO) -> Iterator[int]:
    buffer = getattr(stream, "buffer", None)
    while True:
        chunk = buffer.read(1) if buffer is not None else stream.read(1).encode("utf-8")
        if not chunk:
            return
        yield from chunk


def _byte_writer(stream: TextIO) -> Callable[[int], None]:
    buffer = getattr(stream, "buffer", None)
    if buffer is not None:
        return lambda value: buffer.write(bytes((value,)))
    return lambda value: stream.write(chr(value))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bftree",
        description="Parse, optimize, run or compile Brainfuck programs",
    )
    parser.add_argument("code", nargs="?", help="Execute code given directly as the argument")
    parser.add_argument("-f", "--file", dest="input_file", help="Execute a source file")
    parser.add_argument("-c", "--compile", dest="compile_file", help="Compile a source file to C")
    parser.add_argument("-o", "--optimize", action="store_true", help="Optimize the program")
    parser.add_argument(
        "-d",
        "--dump",
        action="store_true",
        help="Dump the instruction tree (after optimization when -o is set)",
    )
    parser.add_argument(
        "--output",
        default=DEFAULT_C_OUTPUT,
        help=f"Destination of the generated C code (default: {DEFAULT_C_OUTPUT})",
    )
    parser.add_argument(
        "--input",
        help="Input supplied to the program (default: read from stdin)",
    )
    parser.add_argument("--max-steps", type=int, help="Abort after this many execution steps")
    parser.add_argument(
        "--lenient",
        action="store_true",
        help="Treat end of input as closing any loop left open",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def parse_arguments(argv: Optional[List[str]] = None) -> Options:
    args = _build_parser().parse_args(argv)
    input_file = args.compile_file or args.input_file
    if input_file is None and args.code is None:
        raise ValueError("insufficient arguments: expected inline code, -f FILE or -c FILE")
    if input_file is not None and args.code is not None:
        raise ValueError("inline code cannot be combined with -f FILE or -c FILE")
    return Options(
        code=args.code,
        input_file=input_file,
        compile_to_c=args.compile_file is not None,
        optimize=args.optimize,
        dump_instructions=args.dump,
        output_path=args.output,
        input_text=args.input,
        max_steps=args.max_steps,
        allow_unterminated=args.lenient,
        verbose=args.verbose,
    )


def run(options: Options) -> int:
    try:
        source_text = _read_source(options.input_file) if options.input_file else options.code or ""
    except OSError as exc:
        print(f"Error: failed to read file: {exc}", file=sys.stderr)
        return 1

    try:
        program = parse(source_text, allow_unterminated=options.allow_unterminated)
    except ParseError as exc:
        print(f"Syntax error: {exc}", file=sys.stderr)
        return 1

    if options.optimize:
        program = optimize(program)

    if options.dump_instructions:
        dump = dump_program(program)
        if dump:
            print(dump)
        sys.stdout.flush()

    if options.compile_to_c:
        try:
            _write_output(options.output_path, compile_to_c(program, tape_size=TAPE_SIZE))
        except OSError as exc:
            print(f"Error: failed to write '{options.output_path}': {exc}", file=sys.stderr)
            return 1
        return 0

    if options.input_text is not None:
        input_data = list(options.input_text.encode("utf-8"))
    else:
        input_data = _stdin_bytes(sys.stdin)

    interpreter = TreeInterpreter()
    try:
        interpreter.run(
            program,
            input_data=input_data,
            max_steps=options.max_steps,
            write=_byte_writer(sys.stdout),
        )
    except InterpreterError as exc:
        sys.stdout.flush()
        print(f"Fatal: {exc}", file=sys.stderr)
        return 1
    sys.stdout.flush()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    try:
        options = parse_arguments(argv)
    except SystemExit as exc:
        return 0 if exc.code == 0 else 1
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if options.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    return run(options)


if __name__ == "__main__":
    raise SystemExit(main())
