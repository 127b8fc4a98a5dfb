import unittest
from concurrent.futures import ThreadPoolExecutor

from docgram.backend.compiler import compile_source
from docgram.backend.program import CompiledGrammar
from docgram.backend.runner import *


def leaf(start: int, end: int) -> Span:
    return Span(None, start, end)


class Base(unittest.TestCase):
    def grammar(self, source: str) -> CompiledGrammar:
        compilation = compile_source(source)
        if compilation.grammar is None:
            self.fail(f"Grammar does not compile: {[d.msg for d in compilation.diagnostics]}")
        return compilation.grammar

    def assert_match(self, source: str, text: str, end: int | None = None, **kwargs) -> Span:
        result = run(self.grammar(source), text, **kwargs)
        if not isinstance(result, Success):
            self.fail(f"Expected a match of {text!r}, but got {result}")
        self.assertEqual(result.tree.end, len(text) if end is None else end)
        return result.tree

    def assert_failure(self, source: str, text: str, offset: int, *expected: str, **kwargs) -> None:
        result = run(self.grammar(source), text, **kwargs)
        self.assertEqual(result, MatchFailure(offset, frozenset(expected)))


class TestTerminals(Base):
    def test_literal(self) -> None:
        tree = self.assert_match('A = "if";', 'if')
        self.assertEqual(tree, Span('A', 0, 2, (leaf(0, 2),)))

    def test_literal_mismatch(self) -> None:
        self.assert_failure('A = "abc";', 'abd', 2, '"c"')

    def test_literal_at_end_of_input(self) -> None:
        self.assert_failure('A = "abc";', 'ab', 2, '"c"')

    def test_escaped_literal(self) -> None:
        self.assert_match(r'A = "a\nb";', 'a\nb')

    def test_char_class(self) -> None:
        self.assert_match('A = [a-z_]+;', 'snake_case')
        self.assert_failure('A = [a-z_];', 'X', 0, '[a-z_]')

    def test_char_class_with_literal_dash(self) -> None:
        self.assert_match('Int = [+-]? [0-9]+;', '-42')
        self.assert_failure('Sign = [+-];', '*', 0, '[+\\-]')

    def test_negated_char_class(self) -> None:
        self.assert_match('A = [^0-9]+;', 'ab1', end=2)
        self.assert_failure('A = [^0-9];', '1', 0, '[^0-9]')

    def test_any_char(self) -> None:
        self.assert_match('A = . .;', '\n\t')
        self.assert_failure('A = . .;', 'x', 1, 'any character')

    def test_empty_literal(self) -> None:
        tree = self.assert_match('A = "";', '')
        self.assertEqual(tree, Span('A', 0, 0))


class TestOperators(Base):
    def test_ordered_choice(self) -> None:
        tree = self.assert_match('A = "x" | "xy";', 'xy', end=1)
        self.assertEqual(tree, Span('A', 0, 1, (leaf(0, 1),)))

    def test_ordered_choice_longest_first(self) -> None:
        self.assert_match('A = "xy" | "x";', 'xy')

    def test_furthest_failure(self) -> None:
        self.assert_failure('A = "ab" | "ac";', 'ad', 1, '"b"', '"c"')

    def test_furthest_failure_across_rules(self) -> None:
        self.assert_failure('A = B | C; B = "x" "1"; C = "x" [a-c];', 'x9', 1, '"1"', '[a-c]')

    def test_sequence_rolls_back(self) -> None:
        self.assert_match('A = "a" "b" | "a" "c";', 'ac')

    def test_star_matches_empty(self) -> None:
        tree = self.assert_match('A = "a"*;', '')
        self.assertEqual(tree, Span('A', 0, 0))

    def test_plus_fails_on_empty(self) -> None:
        self.assert_failure('A = "a"+;', '', 0, '"a"')

    def test_repetition_is_greedy(self) -> None:
        self.assert_failure('A = "a"* "a";', 'aaa', 3, '"a"')

    def test_optional(self) -> None:
        self.assert_match('A = "-"? [0-9];', '-1')
        self.assert_match('A = "-"? [0-9];', '1')

    def test_bounded_repetition(self) -> None:
        self.assert_match('A = "a"{2,3};', 'aaaa', end=3)
        self.assert_failure('A = "a"{2,3};', 'a', 1, '"a"')
        self.assert_match('A = "a"{2};', 'aaa', end=2)

    def test_empty_range_never_matches(self) -> None:
        self.assert_failure('A = "a"{3,1};', 'aaa', 0, 'nothing (empty repetition range)')

    def test_nullable_repetition_terminates(self) -> None:
        self.assert_match('A = ("a"?)*;', 'aab', end=2)

    def test_empty_sequence(self) -> None:
        self.assert_match('A = "x" | ;', 'y', end=0)


class TestTrees(Base):
    def test_nested_rules(self) -> None:
        tree = self.assert_match('S = Word " " Word; Word = [a-z]+;', 'hi yo')
        self.assertEqual(tree, Span('S', 0, 5, (
            Span('Word', 0, 2, (leaf(0, 2),)),
            leaf(2, 3),
            Span('Word', 3, 5, (leaf(3, 5),)),
        )))

    def test_adjacent_leaves_merged(self) -> None:
        tree = self.assert_match('A = "a" "b" [0-9]+;', 'ab12')
        self.assertEqual(tree.children, (leaf(0, 4),))

    def test_empty_rule_span(self) -> None:
        tree = self.assert_match('A = B "x"; B = "b"?;', 'x')
        self.assertEqual(tree.children, (Span('B', 0, 0), leaf(0, 1)))

    def test_private_rules_hoisted(self) -> None:
        tree = self.assert_match('S = _ws Id _ws; _ws = " "*; Id = [a-z]+;', '  ab ')
        self.assertEqual(tree, Span('S', 0, 5, (leaf(0, 2), Span('Id', 2, 4, (leaf(2, 4),)), leaf(4, 5))))

    def test_private_entry_rule(self) -> None:
        tree = self.assert_match('_S = "a" B; B = "b";', 'ab')
        self.assertEqual(tree, Span('_S', 0, 2, (leaf(0, 1), Span('B', 1, 2, (leaf(1, 2),)))))

    def test_leaves_reproduce_input(self) -> None:
        text = '(1+23)+4'
        tree = self.assert_match('Expr = Term ("+" Term)*; Term = [0-9]+ | "(" Expr ")";', text)
        self.assertEqual(''.join(span.text(text) for span in tree.leaves()), text)

    def test_walk(self) -> None:
        tree = self.assert_match('S = Word " " Word; Word = [a-z]+;', 'hi yo')
        self.assertEqual([(span.rule, depth) for span, depth in tree.walk()],
                         [('S', 0), ('Word', 1), ('Word', 1)])


class TestRun(Base):
    def test_partial_match_succeeds(self) -> None:
        self.assert_match('A = "a";', 'ab', end=1)

    def test_complete_match(self) -> None:
        self.assert_failure('A = "a";', 'ab', 1, 'end of input', complete=True)
        self.assert_match('A = "a";', 'a', complete=True)

    def test_complete_match_keeps_expectations_at_end(self) -> None:
        self.assert_failure('A = "a"*;', 'aab', 2, '"a"', 'end of input', complete=True)

    def test_other_rule(self) -> None:
        tree = self.assert_match('A = B "!"; B = "b";', 'b', rule='B')
        self.assertEqual(tree.rule, 'B')

    def test_unknown_rule(self) -> None:
        with self.assertRaises(KeyError):
            run(self.grammar('A = "a";'), 'a', rule='B')

    def test_deterministic(self) -> None:
        grammar = self.grammar('Expr = Term ("+" Term)*; Term = [0-9]+ | "(" Expr ")";')
        for text in ['1+(2+3)', '1+(2+', '']:
            with self.subTest(text=text):
                self.assertEqual(run(grammar, text), run(grammar, text))

    def test_concurrent_matches(self) -> None:
        grammar = self.grammar('Expr = Term ("+" Term)*; Term = [0-9]+ | "(" Expr ")";')
        texts = ['1+(2+3)', '(((4)))', '1+', '7'] * 25
        expected = [run(grammar, text) for text in texts]
        with ThreadPoolExecutor(max_workers=8) as executor:
            actual = list(executor.map(lambda text: run(grammar, text), texts))
        self.assertEqual(actual, expected)


class TestBudget(Base):
    def test_step_budget(self) -> None:
        result = run(self.grammar('A = "a"*;'), 'a' * 100, budget=Budget(max_steps=10))
        assert isinstance(result, ResourceExhausted)
        self.assertIn("step budget", result.reason)
        self.assertEqual(result.steps, 11)

    def test_depth_budget(self) -> None:
        text = '(' * 50 + 'x' + ')' * 50
        result = run(self.grammar('A = "(" A ")" | "x";'), text, budget=Budget(max_depth=10))
        assert isinstance(result, ResourceExhausted)
        self.assertIn("depth", result.reason)
        self.assertEqual(result.offset, 10)

    def test_deep_nesting_beyond_recursion_limit(self) -> None:
        text = '(' * 5000 + 'x' + ')' * 5000
        tree = self.assert_match('A = "(" A ")" | "x";', text, budget=Budget(max_steps=None))
        self.assertEqual(sum(1 for _ in tree.walk()), 5001)
        self.assertEqual(''.join(span.text(text) for span in tree.leaves()), text)

    def test_right_recursion_with_default_budget(self) -> None:
        for n in [99, 101, 400, 3000]:
            with self.subTest(n=n):
                self.assert_match('L = "a" L | "";', 'a' * n, complete=True)

    def test_right_recursive_list_with_default_budget(self) -> None:
        text = ','.join(['x'] * 500)
        tree = self.assert_match('List = Item ("," List)?; Item = "x";', text, complete=True)
        self.assertEqual(sum(1 for span, _ in tree.walk() if span.rule == 'Item'), 500)

    def test_within_budget(self) -> None:
        text = '(' * 20 + 'x' + ')' * 20
        self.assert_match('A = "(" A ")" | "x";', text, budget=Budget(max_steps=10_000, max_depth=50))

    def test_unbounded(self) -> None:
        self.assert_match('A = "a"*;', 'a' * 10_000, budget=Budget(max_steps=None, timeout=None, max_depth=None))


if __name__ == '__main__':
    unittest.main()
