from dataclasses import dataclass
from typing import Any, Literal, Sequence, TypeAlias

from docgram.diagnostics import Location

__all__ = ['Node', 'Expr', 'Lit', 'CharRange', 'CharClass', 'Ref', 'Seq', 'Choice',
           'Repeat', 'Optional', 'Group', 'ExprVisitor', 'Rule', 'Grammar', 'class_text']


class Node:
    """Node with a location."""
    loc: Location


@dataclass
class Expr(Node):
    """Expression/Clause."""
    pass


@dataclass
class Lit(Expr):
    """String literal."""
    value: str


@dataclass(frozen=True)
class CharRange:
    """Character range: matches any character in between the two *inclusive* characters."""
    lower: str
    upper: str


@dataclass
class CharClass(Expr):
    """Character class: matches any character in (if inclusive) or not in (if exclusive) a set of chars."""
    mode: Literal['inclusive', 'exclusive']
    items: Sequence[str | CharRange]


@dataclass
class Ref(Expr):
    """Reference to a rule."""
    name: str


@dataclass
class Seq(Expr):
    """Sequence: the elements matched one after another. An empty sequence matches the empty string."""
    elements: Sequence[Expr]


@dataclass
class Choice(Expr):
    """Ordered choice: the first option that matches wins."""
    options: Sequence[Expr]


@dataclass
class Repeat(Expr):
    """Repetition: greedily repeats at least `min` and at most `max` (if bounded) times."""
    element: Expr
    min: int
    max: int | None


@dataclass
class Optional(Expr):
    """Optional: repeats zero or one time."""
    element: Expr


@dataclass
class Group(Expr):
    """Parenthesized expression."""
    element: Expr


class ExprVisitor:
    """Calls `visit_<NodeType>` for each node it is given; subclasses decide whether to recurse."""

    def visit(self, node: Expr) -> Any:
        visitor = getattr(self, f"visit_{type(node).__name__}", None)
        if visitor is None:
            raise NotImplementedError(f"{type(self).__name__} has no visitor for {type(node).__name__}")
        return visitor(node)


@dataclass
class Rule(Node):
    """Rule definition: `name = body ;`."""
    name: Ref
    body: Expr


Grammar: TypeAlias = Sequence[Rule]


def class_text(mode: str, items: Sequence[str | CharRange]) -> str:
    """Write a character class back in grammar notation, e.g. `[^a-z_]`."""

    def escape(c: str) -> str:
        if c in '[]-\\':
            return '\\' + c
        if c.isprintable():
            return c
        return c.encode('unicode_escape').decode('ascii')

    parts = []
    for item in items:
        match item:
            case CharRange(lower, upper):
                parts.append(f'{escape(lower)}-{escape(upper)}')
            case str() as c:
                parts.append(escape(c))
    prefix = '^' if mode == 'exclusive' else ''
    return f"[{prefix}{''.join(parts)}]"
