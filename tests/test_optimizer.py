import unittest
from typing import List

from bftree import (
    DecrementCell,
    IncrementCell,
    Loop,
    MoveBackward,
    MoveForward,
    ReadByte,
    TapeBoundsViolation,
    TreeInterpreter,
    WriteByte,
    optimize,
    parse,
)
from bftree.instructions import Instruction

HELLO_WORLD = (
    "++++++++[>++++[>++>+++>+++>+<<<<-]>+>+>->>+[<]<-]"
    ">>.>---.+++++++..+++.>>.<-.<.+++.------.--------.>>+.>++."
)

SAMPLE_PROGRAMS = [
    "",
    "+",
    "+++",
    "+-+-><><",
    "++++>>><<-.",
    "++[>+++<-]>.",
    ",[.,]",
    "[]++--[]",
    "+[[-]>>>+<<<]>>>.",
    HELLO_WORLD,
]


def _assert_not_longer(test: unittest.TestCase, before: List[Instruction], after: List[Instruction]) -> None:
    test.assertLessEqual(len(after), len(before))
    before_loops = [node for node in before if isinstance(node, Loop)]
    after_loops = [node for node in after if isinstance(node, Loop)]
    test.assertEqual(len(before_loops), len(after_loops))
    for original, optimized in zip(before_loops, after_loops):
        _assert_not_longer(test, original.body, optimized.body)


class OptimizerFoldingTests(unittest.TestCase):
    def test_folds_run_into_counted_instruction(self) -> None:
        self.assertEqual(optimize(parse("+++")), [IncrementCell(3)])

    def test_folds_each_kind(self) -> None:
        self.assertEqual(
            optimize(parse("++++>>><<-.")),
            [IncrementCell(4), MoveForward(3), MoveBackward(2), DecrementCell(), WriteByte()],
        )

    def test_pair_becomes_magnitude_two(self) -> None:
        self.assertEqual(optimize(parse("--")), [DecrementCell(2)])

    def test_long_run(self) -> None:
        self.assertEqual(optimize(parse("+" * 300)), [IncrementCell(300)])

    def test_alternating_operations_unchanged(self) -> None:
        program = parse("+-+-><><")
        self.assertEqual(optimize(program), program)

    def test_io_is_never_folded(self) -> None:
        self.assertEqual(optimize(parse(",,..")), [ReadByte(), ReadByte(), WriteByte(), WriteByte()])

    def test_loops_break_runs(self) -> None:
        self.assertEqual(
            optimize(parse("++[]++")),
            [IncrementCell(2), Loop(body=[]), IncrementCell(2)],
        )

    def test_loop_bodies_are_optimized(self) -> None:
        self.assertEqual(
            optimize(parse("++[>>[<<]]")),
            [IncrementCell(2), Loop(body=[MoveForward(2), Loop(body=[MoveBackward(2)])])],
        )

    def test_lone_loop_body_is_optimized(self) -> None:
        self.assertEqual(optimize(parse("[+++]")), [Loop(body=[IncrementCell(3)])])

    def test_adjacent_loops_are_both_optimized(self) -> None:
        self.assertEqual(
            optimize(parse("[++][--]")),
            [Loop(body=[IncrementCell(2)]), Loop(body=[DecrementCell(2)])],
        )

    def test_short_sequences_unchanged(self) -> None:
        self.assertEqual(optimize([]), [])
        self.assertEqual(optimize([WriteByte()]), [WriteByte()])

    def test_counted_followed_by_unit(self) -> None:
        self.assertEqual(optimize([IncrementCell(5), IncrementCell()]), [IncrementCell(6)])
        self.assertEqual(
            optimize([MoveForward(5), MoveForward(), MoveForward()]),
            [MoveForward(7)],
        )

    def test_unit_followed_by_counted(self) -> None:
        self.assertEqual(optimize([DecrementCell(), DecrementCell(4)]), [DecrementCell(5)])

    def test_growing_run_keeps_unrelated_earlier_run(self) -> None:
        # The +2 run at index 3 grows to +3 without absorbing the run at 0..1.
        program = [IncrementCell(), IncrementCell(), DecrementCell(), IncrementCell(2), IncrementCell()]
        self.assertEqual(optimize(program), [IncrementCell(2), DecrementCell(), IncrementCell(3)])

    def test_growing_run_after_loop_keeps_earlier_run(self) -> None:
        program = [MoveForward(), MoveForward(), Loop(body=[]), MoveForward(3), MoveForward()]
        self.assertEqual(optimize(program), [MoveForward(2), Loop(body=[]), MoveForward(4)])

    def test_two_counted_operations_are_left_alone(self) -> None:
        program = [IncrementCell(2), IncrementCell(3)]
        self.assertEqual(optimize(program), program)

    def test_run_between_other_runs(self) -> None:
        self.assertEqual(
            optimize(parse(">>+++<<<.")),
            [MoveForward(2), IncrementCell(3), MoveBackward(3), WriteByte()],
        )

    def test_input_is_not_modified(self) -> None:
        program = parse("+++[--]")
        snapshot = parse("+++[--]")
        optimize(program)
        self.assertEqual(program, snapshot)


class OptimizerPropertyTests(unittest.TestCase):
    def test_idempotent(self) -> None:
        for source in SAMPLE_PROGRAMS:
            with self.subTest(source=source):
                once = optimize(parse(source))
                self.assertEqual(optimize(once), once)

    def test_never_expands(self) -> None:
        for source in SAMPLE_PROGRAMS:
            with self.subTest(source=source):
                program = parse(source)
                _assert_not_longer(self, program, optimize(program))

    def test_preserves_output(self) -> None:
        inputs = [b"", b"A", b"hello"]
        for source in SAMPLE_PROGRAMS:
            for data in inputs:
                with self.subTest(source=source, data=data):
                    program = parse(source)
                    plain = TreeInterpreter().run(program, input_data=list(data), max_steps=100_000)
                    folded = TreeInterpreter().run(optimize(program), input_data=list(data), max_steps=100_000)
                    self.assertEqual(plain, folded)

    def test_hello_world(self) -> None:
        output = TreeInterpreter().run(optimize(parse(HELLO_WORLD)))
        self.assertEqual(output, b"Hello World!\n")

    def test_preserves_bounds_violation(self) -> None:
        for source in ("<", "+[<+]", ">" * 30000):
            with self.subTest(source=source[:10]):
                program = parse(source)
                with self.assertRaises(TapeBoundsViolation):
                    TreeInterpreter().run(program)
                with self.assertRaises(TapeBoundsViolation):
                    TreeInterpreter().run(optimize(program))


if __name__ == "__main__":
    unittest.main()
