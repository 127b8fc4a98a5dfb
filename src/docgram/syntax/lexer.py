import re
import string
from typing import Iterator

from parsy import Parser, Result, alt, fail, regex, seq, success

from docgram.diagnostics import Issuer, LexError
from docgram.shared import location_at, quote
from docgram.syntax.grammar import CharRange
from docgram.syntax.tokens import Token, TokenKind

__all__ = ['Lexer', 'tokenize', 'expect', 'char']

ESCAPE_CHARS = {
    '\\': '\\',
    "'": "'",
    '"': '"',
    'a': '\a',
    'b': '\b',
    'f': '\f',
    'n': '\n',
    'r': '\r',
    't': '\t',
    'v': '\v',
}

HEX_DIGITS = {'x': 2, 'u': 4, 'U': 8}
OCTAL_DIGITS = re.compile('[0-7]{1,3}')

UNTERMINATED_STRING = "unterminated string literal"
UNTERMINATED_CLASS = "unterminated character class"
UNTERMINATED_COMMENT = "unterminated block comment"

HINTS = {
    UNTERMINATED_STRING: "consider closing the string literal with its opening quote",
    UNTERMINATED_CLASS: "consider closing the character class with `]`",
    UNTERMINATED_COMMENT: "consider closing the block comment with `*/`",
}

# A rule boundary: the next terminator, or a line break followed by a rule head.
RULE_BOUNDARY = re.compile(r';|\n(?=[ \t]*[A-Za-z_][A-Za-z0-9_]*[ \t]*(?:::=|<-|=|:))')


def expect(s: str) -> Parser:
    @Parser
    def expect_parser(source: str, offset: int) -> Result:
        if source.startswith(s, offset):
            return Result.success(offset + len(s), s)
        else:
            return Result.failure(offset, f"[`{s}`]")

    return expect_parser


def closing(s: str, msg: str) -> Parser:
    @Parser
    def closing_parser(source: str, offset: int) -> Result:
        if source.startswith(s, offset):
            return Result.success(offset + len(s), s)
        else:
            return Result.failure(offset, msg)

    return closing_parser


def char(special: str) -> Parser:
    """A character of a literal or class body: anything but `special`, or an escape sequence."""

    @Parser
    def char_parser(source: str, offset: int) -> Result:
        if offset >= len(source) or source[offset] in special:
            return Result.failure(offset, "[character]")
        if source[offset] != '\\':
            return Result.success(offset + 1, source[offset])
        if offset + 1 == len(source):
            return Result.failure(offset, "[character]")

        escaped = source[offset + 1]
        if escaped in ESCAPE_CHARS:
            return Result.success(offset + 2, ESCAPE_CHARS[escaped])
        if escaped in special:
            return Result.success(offset + 2, escaped)
        if escaped in string.octdigits:
            digits = OCTAL_DIGITS.match(source, offset + 1).group()
            return Result.success(offset + 1 + len(digits), chr(int(digits, 8)))
        if escaped in HEX_DIGITS:
            width = HEX_DIGITS[escaped]
            digits = source[offset + 2:offset + 2 + width]
            if len(digits) == width and all(c in string.hexdigits for c in digits) and int(digits, 16) <= 0x10FFFF:
                return Result.success(offset + 2 + width, chr(int(digits, 16)))
            return Result.failure(offset + 2, f"invalid Unicode escape sequence (expected {width} hex digits)")
        return Result.failure(offset + 1, "invalid escape sequence")

    return char_parser


def block_comment() -> Parser:
    @Parser
    def block_comment_parser(source: str, offset: int) -> Result:
        if not source.startswith('/*', offset):
            return Result.failure(offset, "[`/*`]")
        end = source.find('*/', offset + 2)
        if end == -1:
            return Result.failure(offset, UNTERMINATED_COMMENT)
        return Result.success(end + 2, None)

    return block_comment_parser


def quoted(q: str) -> Parser:
    return expect(q) >> char(q + '\n').many().map(''.join) << closing(q, UNTERMINATED_STRING)


def char_class() -> Parser:
    mode = expect('^').result('exclusive').optional('inclusive')
    literal = char('[]-\n')
    range = seq(literal, expect('-') >> literal).combine(CharRange)
    dash = expect('-')
    # `-` is literal when it comes first or last
    items = seq(dash.optional(), (range | literal).many(), dash.optional()).combine(
        lambda first, middle, last: tuple(c for c in [first, *middle, last] if c is not None))
    items = items.bind(lambda found: success(found) if found else fail('[character]'))
    return expect('[') >> seq(mode, items).map(tuple) << closing(']', UNTERMINATED_CLASS)


def token(kind: TokenKind, p: Parser) -> Parser:
    @Parser
    def token_parser(source: str, offset: int) -> Result:
        result = p(source, offset)
        if result.status:
            value = result.value if kind in (TokenKind.STRING, TokenKind.CLASS, TokenKind.INTEGER) else None
            return Result.success(result.index, Token(kind, source[offset:result.index], offset, result.index, value))
        return result

    return token_parser


OPERATORS = {
    ';': TokenKind.TERMINATOR,
    '|': TokenKind.BAR,
    '*': TokenKind.STAR,
    '+': TokenKind.PLUS,
    '?': TokenKind.QUESTION,
    '.': TokenKind.DOT,
    '(': TokenKind.LPAREN,
    ')': TokenKind.RPAREN,
    '{': TokenKind.LBRACE,
    '}': TokenKind.RBRACE,
    ',': TokenKind.COMMA,
}

TOKEN = alt(
    token(TokenKind.WHITESPACE, regex(r'\s+').desc('[whitespace]')),
    token(TokenKind.COMMENT, regex(r'(?:#|//)[^\n]*').desc('[comment]')),
    token(TokenKind.COMMENT, block_comment()),
    token(TokenKind.STRING, quoted('"') | quoted("'")),
    token(TokenKind.CLASS, char_class()),
    token(TokenKind.INTEGER, regex('[0-9]+').map(int).desc('[integer]')),
    token(TokenKind.IDENT, regex('[A-Za-z_][A-Za-z0-9_]*').desc('[identifier]')),
    token(TokenKind.DEFINE, alt(expect('::='), expect('<-'), expect('='), expect(':'))),
    *(token(kind, expect(op)) for op, kind in OPERATORS.items()),
)


class Lexer:
    """Single-pass scanner over the text of one grammar block.

    Lexical errors are issued to `issuer`; the offending text up to the next rule boundary becomes one
    `ERROR` token, and scanning goes on from there.
    """

    def __init__(self, source: str, issuer: Issuer, *, file_path: str = '<block>') -> None:
        self.source = source
        self.issuer = issuer
        self.file_path = file_path

    def tokens(self) -> Iterator[Token]:
        source = self.source
        offset = 0
        while offset < len(source):
            result = TOKEN(source, offset)
            if result.status:
                yield result.value
                offset = result.index
                continue

            error_at = max(result.furthest, offset)
            msg = self._message(result.expected, error_at)
            hints = [HINTS[msg]] if msg in HINTS else []
            end = min(error_at + 1, len(source))
            self.issuer.issue(LexError(msg, location_at(source, error_at, end, self.file_path), hints))

            stop = self._boundary(offset, error_at, msg)
            yield Token(TokenKind.ERROR, source[offset:stop], offset, stop, msg)
            offset = stop

    def _message(self, expected: frozenset[str], error_at: int) -> str:
        messages = sorted(s for s in expected if not s.startswith('['))
        if messages:
            return messages[0]
        if error_at < len(self.source):
            return f"unexpected character {quote(self.source[error_at])}"
        return "unexpected end of input"

    def _boundary(self, offset: int, error_at: int, msg: str) -> int:
        if msg == UNTERMINATED_COMMENT:
            return len(self.source)
        m = RULE_BOUNDARY.search(self.source, max(error_at, offset + 1))
        return m.start() if m else len(self.source)


def tokenize(source: str, issuer: Issuer, *, file_path: str = '<block>', keep_trivia: bool = False) -> list[Token]:
    """Scan a grammar block. Trivia (whitespace and comments) are dropped unless `keep_trivia` is set."""
    lexer = Lexer(source, issuer, file_path=file_path)
    return [t for t in lexer.tokens() if keep_trivia or not t.kind.is_trivia]
