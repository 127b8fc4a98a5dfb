import unittest

from docgram.diagnostics import Issuer, ParseError, Position
from docgram.syntax.grammar import *
from docgram.syntax.parser import parse


class Base(unittest.TestCase):
    def assert_equal(self, source: str, expected: Grammar | Expr) -> None:
        issuer = Issuer()
        actual = parse(source, issuer)
        if issuer.has_errors:
            self.fail(f"Expected grammar, but got errors:\n{issuer.pretty()}")
        if isinstance(expected, Expr):
            expected = [Rule(Ref('A'), expected)]
        self.assertSequenceEqual(actual, expected)

    def assert_error(self, source: str, msg_contains: str) -> ParseError:
        issuer = Issuer()
        parse(source, issuer)
        errors = [d for d in issuer.get_diagnostics() if isinstance(d, ParseError)]
        for error in errors:
            if msg_contains in error.msg:
                return error
        self.fail(f"No syntax error contains '{msg_contains}': {[d.msg for d in errors]}")


class TestParseAtoms(Base):
    def test_literal(self) -> None:
        self.assert_equal('A = "a";', Lit('a'))

    def test_reference(self) -> None:
        self.assert_equal('A = B;', Ref('B'))

    def test_char_class(self) -> None:
        self.assert_equal('A = [^a-z];', CharClass('exclusive', (CharRange('a', 'z'),)))

    def test_any_char(self) -> None:
        self.assert_equal('A = .;', CharClass('exclusive', ()))

    def test_group(self) -> None:
        self.assert_equal('A = ("a");', Group(Lit('a')))

    def test_empty(self) -> None:
        self.assert_equal('A = ;', Seq([]))


class TestParseOperators(Base):
    def test_sequence(self) -> None:
        self.assert_equal('A = "a" B "c";', Seq([Lit('a'), Ref('B'), Lit('c')]))

    def test_choice(self) -> None:
        self.assert_equal('A = "a" | B | "c";', Choice([Lit('a'), Ref('B'), Lit('c')]))

    def test_choice_with_empty_alternative(self) -> None:
        self.assert_equal('A = "x" | ;', Choice([Lit('x'), Seq([])]))

    def test_star(self) -> None:
        self.assert_equal('A = "a"*;', Repeat(Lit('a'), 0, None))

    def test_plus(self) -> None:
        self.assert_equal('A = "a"+;', Repeat(Lit('a'), 1, None))

    def test_optional(self) -> None:
        self.assert_equal('A = "a"?;', Optional(Lit('a')))

    def test_stacked_postfix(self) -> None:
        self.assert_equal('A = "a"+?;', Optional(Repeat(Lit('a'), 1, None)))

    def test_bounded(self) -> None:
        self.assert_equal('A = "a"{3};', Repeat(Lit('a'), 3, 3))
        self.assert_equal('A = "a"{2,};', Repeat(Lit('a'), 2, None))
        self.assert_equal('A = "a"{,4};', Repeat(Lit('a'), 0, 4))
        self.assert_equal('A = "a"{2,4};', Repeat(Lit('a'), 2, 4))

    def test_precedence(self) -> None:
        self.assert_equal('A = "a" "b" | "c"*;',
                          Choice([Seq([Lit('a'), Lit('b')]), Repeat(Lit('c'), 0, None)]))

    def test_parentheses_override_precedence(self) -> None:
        self.assert_equal('A = ("a" | "b")+ "c";',
                          Seq([Repeat(Group(Choice([Lit('a'), Lit('b')])), 1, None), Lit('c')]))


class TestParseRules(Base):
    def test_many(self) -> None:
        self.assert_equal('A = B;\nB ::= "b";\nC: "c";\nD <- "d";', [
            Rule(Ref('A'), Ref('B')),
            Rule(Ref('B'), Lit('b')),
            Rule(Ref('C'), Lit('c')),
            Rule(Ref('D'), Lit('d')),
        ])

    def test_comments(self) -> None:
        self.assert_equal('# a rule\nA = "a" // trailing\n  /* inside */ "b";', Seq([Lit('a'), Lit('b')]))

    def test_nothing(self) -> None:
        self.assert_equal('  # only a comment\n', [])

    def test_locations(self) -> None:
        issuer = Issuer()
        grammar = parse('A = "a";\nB = "b" C;', issuer)
        rule = grammar[1]
        self.assertEqual(rule.loc.range.start, Position(1, 0, 9))
        self.assertEqual(rule.loc.range.end, Position(1, 10, 19))
        self.assertEqual(rule.name.loc.range.end, Position(1, 1, 10))
        match rule.body:
            case Seq([_, ref]):
                self.assertEqual(ref.loc.range.start, Position(1, 8, 17))
            case _:
                self.fail(f"Unexpected body: {rule.body}")


class TestParseErrors(Base):
    def test_missing_terminator(self) -> None:
        error = self.assert_error('A = "a"\nB = "b";', "expected `;`, found identifier")
        self.assertEqual(error.hints, ["consider ending the rule with `;`"])
        self.assertEqual(error.loc.range.start, Position(1, 0, 8))

    def test_missing_terminator_at_end(self) -> None:
        self.assert_error('A = "a"', "expected `;`, found end of block")

    def test_unmatched_parenthesis(self) -> None:
        error = self.assert_error('A = ("a" ;', "expected `)`, found `;`")
        self.assertEqual(error.hints, ["check that every `(` has a matching `)`"])

    def test_stray_parenthesis(self) -> None:
        self.assert_error('A = "a" ) ;', "expected `;`, found `)`")

    def test_malformed_head(self) -> None:
        self.assert_error('= "a";', "expected identifier, found definition marker")
        self.assert_error('A "a";', "expected definition marker, found string literal")

    def test_bad_bounds(self) -> None:
        self.assert_error('A = "a"{x};', "found identifier")

    def test_recovery(self) -> None:
        issuer = Issuer()
        grammar = parse('A = "a"\nB = ("b" ;\nC = "c";\nD = ) ;\nE = "e";', issuer)
        self.assertSequenceEqual([rule.name.name for rule in grammar], ['C', 'E'])
        self.assertEqual(issuer.error_count(), 3)

    def test_lexical_errors_not_repeated(self) -> None:
        issuer = Issuer()
        grammar = parse('A = "a" @ ;\nB = "b";', issuer)
        self.assertSequenceEqual([rule.name.name for rule in grammar], ['B'])
        self.assertEqual(issuer.error_count(), 1)
        self.assertNotIsInstance(issuer.get_diagnostics()[0], ParseError)


if __name__ == '__main__':
    unittest.main()
