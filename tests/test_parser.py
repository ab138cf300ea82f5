import unittest

from bftree import (
    DecrementCell,
    IncrementCell,
    Loop,
    MoveBackward,
    MoveForward,
    ParseError,
    ReadByte,
    UnexpectedLoopClose,
    UnterminatedLoop,
    WriteByte,
    parse,
)
from bftree.instructions import count_instructions, dump_program, iter_preorder, to_source


class ParserTests(unittest.TestCase):
    def test_empty_source(self) -> None:
        self.assertEqual(parse(""), [])

    def test_unit_commands(self) -> None:
        self.assertEqual(
            parse("+-><,."),
            [IncrementCell(), DecrementCell(), MoveForward(), MoveBackward(), ReadByte(), WriteByte()],
        )

    def test_other_characters_are_comments(self) -> None:
        self.assertEqual(parse("add one + then print it ."), [IncrementCell(), WriteByte()])
        self.assertEqual(parse("no commands here\n"), [])

    def test_runs_stay_unit_operations(self) -> None:
        program = parse("+++")
        self.assertEqual(program, [IncrementCell(), IncrementCell(), IncrementCell()])
        self.assertTrue(all(instruction.amount == 1 for instruction in program))

    def test_loop(self) -> None:
        self.assertEqual(
            parse("+[->+<]"),
            [
                IncrementCell(),
                Loop(body=[DecrementCell(), MoveForward(), IncrementCell(), MoveBackward()]),
            ],
        )

    def test_nested_and_empty_loops(self) -> None:
        self.assertEqual(parse("[]"), [Loop(body=[])])
        self.assertEqual(parse("[[]]"), [Loop(body=[Loop(body=[])])])
        self.assertEqual(
            parse(">[[-]<]."),
            [MoveForward(), Loop(body=[Loop(body=[DecrementCell()]), MoveBackward()]), WriteByte()],
        )

    def test_unexpected_loop_close(self) -> None:
        with self.assertRaises(UnexpectedLoopClose) as ctx:
            parse("]")
        self.assertEqual(ctx.exception.position, 0)

    def test_unexpected_loop_close_after_balanced_loop(self) -> None:
        with self.assertRaises(UnexpectedLoopClose) as ctx:
            parse("+[-]]")
        self.assertEqual(ctx.exception.position, 4)
        self.assertIsInstance(ctx.exception, ParseError)

    def test_unterminated_loop(self) -> None:
        with self.assertRaises(UnterminatedLoop) as ctx:
            parse("+[[-]")
        self.assertEqual(ctx.exception.position, 1)

    def test_lenient_mode_closes_open_loops(self) -> None:
        self.assertEqual(
            parse("+[>[-", allow_unterminated=True),
            [IncrementCell(), Loop(body=[MoveForward(), Loop(body=[DecrementCell()])])],
        )

    def test_lenient_mode_still_rejects_stray_close(self) -> None:
        with self.assertRaises(UnexpectedLoopClose):
            parse("]", allow_unterminated=True)


class InstructionModelTests(unittest.TestCase):
    def test_zero_amount_rejected(self) -> None:
        for kind in (IncrementCell, DecrementCell, MoveForward, MoveBackward):
            with self.subTest(kind=kind.__name__):
                with self.assertRaises(ValueError):
                    kind(0)
                with self.assertRaises(ValueError):
                    kind(-2)

    def test_amount_must_be_a_u32(self) -> None:
        with self.assertRaises(ValueError):
            IncrementCell(True)
        with self.assertRaises(ValueError):
            MoveForward(2.0)  # type: ignore[arg-type]
        with self.assertRaises(ValueError):
            DecrementCell(2**32)
        self.assertEqual(MoveBackward(2**32 - 1).amount, 2**32 - 1)

    def test_loop_body_is_frozen(self) -> None:
        body = [IncrementCell(), WriteByte()]
        loop = Loop(body=body)
        body.append(DecrementCell())
        self.assertEqual(loop.body, (IncrementCell(), WriteByte()))
        self.assertEqual(loop.size, 3)
        self.assertEqual(hash(loop), hash(Loop(body=[IncrementCell(), WriteByte()])))
        self.assertEqual(hash(Loop()), hash(Loop(body=[])))

    def test_instructions_are_immutable(self) -> None:
        instruction = IncrementCell(2)
        with self.assertRaises(AttributeError):
            instruction.amount = 3  # type: ignore[misc]

    def test_kinds_are_distinct(self) -> None:
        self.assertNotEqual(IncrementCell(), DecrementCell())
        self.assertNotEqual(ReadByte(), WriteByte())
        self.assertEqual(IncrementCell(4), IncrementCell(4))

    def test_counts_nodes_in_preorder(self) -> None:
        program = parse("+[->[+]<].")
        self.assertEqual(count_instructions(program), 8)
        self.assertEqual(program[1].size, 6)
        numbering = [(pc, depth, type(node).__name__) for pc, depth, node in iter_preorder(program)]
        self.assertEqual(
            numbering,
            [
                (0, 0, "IncrementCell"),
                (1, 0, "Loop"),
                (2, 1, "DecrementCell"),
                (3, 1, "MoveForward"),
                (4, 1, "Loop"),
                (5, 2, "IncrementCell"),
                (6, 1, "MoveBackward"),
                (7, 0, "WriteByte"),
            ],
        )

    def test_dump_program(self) -> None:
        program = [IncrementCell(3), Loop(body=[DecrementCell()]), WriteByte()]
        self.assertEqual(
            dump_program(program),
            "IncrementCell x3\nLoop\n  DecrementCell\nWriteByte",
        )
        self.assertIn("    1  Loop", dump_program(program, numbered=True))

    def test_to_source_expands_counted_operations(self) -> None:
        program = [MoveForward(2), Loop(body=[DecrementCell(3), ReadByte()]), WriteByte()]
        self.assertEqual(to_source(program), ">>[---,].")


if __name__ == "__main__":
    unittest.main()
