from dataclasses import dataclass
from enum import Enum
from typing import Any

__all__ = ['TokenKind', 'Token']


class TokenKind(Enum):
    """Token kind, valued by the name used in messages."""
    IDENT = 'identifier'
    STRING = 'string literal'
    CLASS = 'character class'
    INTEGER = 'integer'
    DEFINE = 'definition marker'
    TERMINATOR = '`;`'
    BAR = '`|`'
    STAR = '`*`'
    PLUS = '`+`'
    QUESTION = '`?`'
    DOT = '`.`'
    LPAREN = '`(`'
    RPAREN = '`)`'
    LBRACE = '`{`'
    RBRACE = '`}`'
    COMMA = '`,`'
    WHITESPACE = 'whitespace'
    COMMENT = 'comment'
    ERROR = 'error'

    @property
    def is_trivia(self) -> bool:
        return self in (TokenKind.WHITESPACE, TokenKind.COMMENT)

    @property
    def is_operator(self) -> bool:
        return self not in (TokenKind.IDENT, TokenKind.STRING, TokenKind.CLASS, TokenKind.INTEGER,
                            TokenKind.WHITESPACE, TokenKind.COMMENT, TokenKind.ERROR)


@dataclass(frozen=True)
class Token:
    """Token: a kind, the source slice `[start, end)` of the grammar block, and a decoded value.

    The value is the unescaped text of a string literal, `(mode, items)` of a character class, the number
    of an integer and the message of an error token; otherwise it is None.
    """
    kind: TokenKind
    text: str
    start: int
    end: int
    value: Any = None

    @property
    def length(self) -> int:
        return self.end - self.start
