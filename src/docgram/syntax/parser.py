from typing import Callable, Sequence

from parsy import Parser, Result, alt, forward_declaration, seq, test_item

from docgram.diagnostics import Issuer, ParseError
from docgram.shared import describe_expected, location_at
from docgram.syntax.grammar import *
from docgram.syntax.lexer import tokenize
from docgram.syntax.tokens import Token, TokenKind

__all__ = ['parse', 'GrammarParser', 'is_rule_head']


def kind(k: TokenKind) -> Parser:
    return test_item(lambda t: t.kind is k, f"[{k.value}]")


def is_rule_head(tokens: Sequence[Token], index: int) -> bool:
    """Test if the token at `index` is the name of a rule definition."""
    return (index + 1 < len(tokens) and tokens[index].kind is TokenKind.IDENT
            and tokens[index + 1].kind is TokenKind.DEFINE)


def parse(source: str, issuer: Issuer, *, file_path: str = '<block>',
          tokens: Sequence[Token] | None = None) -> Grammar:
    """Parse a grammar block.

    Every syntax error is issued; a rule that fails to parse is skipped and parsing goes on with the next
    rule, so the result holds all the rules that are well-formed.
    """
    if tokens is None:
        tokens = tokenize(source, issuer, file_path=file_path)
    else:
        tokens = [t for t in tokens if not t.kind.is_trivia]
    return GrammarParser(source, file_path).parse(tokens, issuer)


class GrammarParser:
    def __init__(self, source: str, file_path: str) -> None:
        self.source = source
        self.file_path = file_path

    def locate(self, node: Node, tokens: Sequence[Token], start: int, end: int) -> None:
        start_offset = tokens[start].start if start < len(tokens) else len(self.source)
        end_offset = tokens[end - 1].end if end > start else start_offset
        setattr(node, 'loc', location_at(self.source, start_offset, end_offset, self.file_path))

    def set_loc(self, p: Parser) -> Parser:
        @Parser
        def set_loc_parser(tokens: Sequence[Token], index: int) -> Result:
            result = p(tokens, index)
            if result.status:
                self.locate(result.value, tokens, index, result.index)
            return result

        return set_loc_parser

    def ref(self) -> Parser:
        @Parser
        def ref_parser(tokens: Sequence[Token], index: int) -> Result:
            if index < len(tokens) and tokens[index].kind is TokenKind.IDENT and not is_rule_head(tokens, index):
                return Result.success(index + 1, Ref(tokens[index].text))
            return Result.failure(index, f"[{TokenKind.IDENT.value}]")

        return ref_parser

    def braces(self) -> Parser:
        integer = kind(TokenKind.INTEGER).map(lambda t: t.value)
        ranged = seq(integer.optional(0), kind(TokenKind.COMMA) >> integer.optional()).map(tuple)
        exact = integer.map(lambda n: (n, n))
        return kind(TokenKind.LBRACE) >> (ranged | exact) << kind(TokenKind.RBRACE)

    def suffix(self) -> Parser:
        return alt(kind(TokenKind.STAR).result(lambda e: Repeat(e, 0, None)),
                   kind(TokenKind.PLUS).result(lambda e: Repeat(e, 1, None)),
                   kind(TokenKind.QUESTION).result(Optional),
                   self.braces().map(lambda b: lambda e: Repeat(e, b[0], b[1])))

    def postfix(self, atom: Parser, suffix: Parser) -> Parser:
        @Parser
        def postfix_parser(tokens: Sequence[Token], index: int) -> Result:
            result = atom(tokens, index)
            if not result.status:
                return result
            node = result.value
            while True:
                applied = suffix(tokens, result.index).aggregate(result)
                if not applied.status:
                    return Result.success(result.index, node).aggregate(applied)
                wrap: Callable[[Expr], Expr] = applied.value
                node = wrap(node)
                self.locate(node, tokens, index, applied.index)
                result = applied

        return postfix_parser

    def expr(self) -> Parser:
        parser = forward_declaration()
        literal = kind(TokenKind.STRING).map(lambda t: Lit(t.value))
        char_class = kind(TokenKind.CLASS).map(lambda t: CharClass(*t.value))
        any_char = kind(TokenKind.DOT).map(lambda t: CharClass('exclusive', ()))
        group = (kind(TokenKind.LPAREN) >> parser << kind(TokenKind.RPAREN)).map(Group)
        atom = self.set_loc(literal | char_class | any_char | self.ref() | group)

        element = self.postfix(atom, self.suffix())
        sequence = self.set_loc(element.many().map(lambda es: es[0] if len(es) == 1 else Seq(es)))
        choice = self.set_loc(sequence.sep_by(kind(TokenKind.BAR), min=1
                                              ).map(lambda es: es[0] if len(es) == 1 else Choice(es)))
        parser.become(choice)
        return parser

    def rule(self) -> Parser:
        name = self.set_loc(kind(TokenKind.IDENT).map(lambda t: Ref(t.text)))
        body = kind(TokenKind.DEFINE) >> self.expr() << kind(TokenKind.TERMINATOR)
        return self.set_loc(seq(name, body).combine(Rule))

    def parse(self, tokens: Sequence[Token], issuer: Issuer) -> list[Rule]:
        rule = self.rule()
        rules: list[Rule] = []
        index = 0
        while index < len(tokens):
            result = rule(tokens, index)
            if result.status:
                rules.append(result.value)
                index = result.index
                continue

            error_at = max(result.furthest, index)
            resume = self.recover(tokens, index, error_at)
            if not any(t.kind is TokenKind.ERROR for t in tokens[index:max(resume, error_at + 1)]):
                issuer.issue(self.error(tokens, error_at, result.expected))
            index = resume

        return rules

    def recover(self, tokens: Sequence[Token], index: int, error_at: int) -> int:
        """Find where the next rule starts: at a rule head, or after a terminator."""
        i = max(error_at, index + 1)
        while i < len(tokens):
            if tokens[i].kind is TokenKind.TERMINATOR:
                return i + 1
            if is_rule_head(tokens, i):
                return i
            i += 1
        return len(tokens)

    def error(self, tokens: Sequence[Token], error_at: int, expected: frozenset[str]) -> ParseError:
        if error_at < len(tokens):
            found = tokens[error_at]
            found_desc = found.kind.value
            loc = location_at(self.source, found.start, found.end, self.file_path)
        else:
            found_desc = 'end of block'
            loc = location_at(self.source, len(self.source), file_path=self.file_path)

        hints: list[str] = []
        if f"[{TokenKind.RPAREN.value}]" in expected:
            msg = f"expected {TokenKind.RPAREN.value}"
            hints.append("check that every `(` has a matching `)`")
        elif f"[{TokenKind.TERMINATOR.value}]" in expected:
            msg = f"expected {TokenKind.TERMINATOR.value}"
            hints.append("consider ending the rule with `;`")
        else:
            msg = describe_expected(expected)
        return ParseError(f"{msg}, found {found_desc}", loc, hints)
