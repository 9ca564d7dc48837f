# mypy: ignore-errors

from unittest import TestCase, main

from flowstruct.core.datastructures.conditions import (
    And,
    Not,
    Or,
    Simple,
    SwitchCase,
    assume,
    conjunction,
    disjunction,
    find_complements,
    negation,
    switch_case_of,
)

a, b, c = Simple("a"), Simple("b"), Simple("c")


class TestComposition(TestCase):
    def test_conjunction(self):
        self.assertIsNone(conjunction())
        self.assertIsNone(conjunction(None, None))
        self.assertEqual(conjunction(a), a)
        self.assertEqual(conjunction(a, None), a)
        self.assertEqual(conjunction(a, None, b), And((a, b)))
        self.assertEqual(conjunction(And((a, b)), c, a), And((a, b, c)))

    def test_disjunction(self):
        self.assertEqual(disjunction(a), a)
        self.assertIsNone(disjunction(a, None))
        self.assertEqual(disjunction(a, b, a), Or((a, b)))
        self.assertEqual(disjunction(Or((a, b)), c), Or((a, b, c)))
        # nested conjunctions stay operands of the disjunction
        self.assertEqual(
            disjunction(And((a, b)), c), Or((And((a, b)), c))
        )

    def test_empty_operands(self):
        with self.assertRaises(AssertionError):
            And(())
        with self.assertRaises(AssertionError):
            Or(())
        with self.assertRaises(AssertionError):
            disjunction()

    def test_negation(self):
        self.assertEqual(negation(a), Not(a))
        self.assertEqual(negation(Not(a)), a)
        self.assertEqual(negation(a, {a: b}), b)
        self.assertEqual(negation(c, {a: b}), Not(c))
        self.assertEqual(negation(And((a, b)), {a: b}), Not(And((a, b))))

    def test_assume(self):
        self.assertIsNone(assume(a, [a]))
        self.assertEqual(assume(b, [a]), b)
        self.assertEqual(assume(And((a, b)), [a]), b)
        self.assertIsNone(assume(Or((a, b)), [a]))
        self.assertEqual(assume(Or((And((a, b)), c)), [a]), Or((b, c)))
        self.assertIsNone(assume(None, [a]))
        self.assertEqual(assume(a, []), a)

    def test_find_complements(self):
        x = Simple(SwitchCase("x", frozenset({1})))
        y = Simple(SwitchCase("x", None))
        complements = find_complements(
            [(a, b), (a, c), (a, a), (x, y), (None, a), (And((a, b)), c)]
        )
        self.assertEqual(complements, {a: b, b: a, c: a})


class TestFormatting(TestCase):
    def test_str(self):
        self.assertEqual(str(And((a, Not(b)))), "(a && !b)")
        self.assertEqual(str(Or((a, And((b, c))))), "(a || (b && c))")
        case = SwitchCase("x", frozenset({2, 1}))
        self.assertEqual(str(case), "x in {1, 2}")
        self.assertEqual(str(SwitchCase("x")), "x: default")

    def test_switch_case_of(self):
        case = SwitchCase("x", frozenset({1}))
        self.assertEqual(switch_case_of(Simple(case)), case)
        self.assertIsNone(switch_case_of(a))
        self.assertIsNone(switch_case_of(None))
        self.assertTrue(SwitchCase("x").is_default)
        self.assertFalse(case.is_default)


if __name__ == "__main__":
    main()
