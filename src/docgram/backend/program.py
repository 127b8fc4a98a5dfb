from dataclasses import dataclass, field
from typing import Mapping

__all__ = ['Node', 'Text', 'CharSet', 'Seq', 'Alt', 'Loop', 'Call', 'Production', 'CompiledGrammar']


class Node:
    """Node of a compiled grammar. Nodes refer to each other by their index in the arena."""
    pass


@dataclass(frozen=True)
class Text(Node):
    """Matches the exact text `value`."""
    value: str


@dataclass(frozen=True)
class CharSet(Node):
    """Matches one character that is (if not negated) or is not (if negated) in the set.

    `label` is how the set is written in the grammar, which is also how a failure describes it.
    """
    chars: frozenset[str]
    ranges: tuple[tuple[str, str], ...]
    negated: bool
    label: str

    def accepts(self, c: str) -> bool:
        found = c in self.chars or any(lower <= c <= upper for lower, upper in self.ranges)
        return found != self.negated


@dataclass(frozen=True)
class Seq(Node):
    items: tuple[int, ...]


@dataclass(frozen=True)
class Alt(Node):
    alts: tuple[int, ...]


@dataclass(frozen=True)
class Loop(Node):
    """Greedy repetition of `item`, at least `min` and at most `max` (if bounded) times."""
    item: int
    min: int
    max: int | None


@dataclass(frozen=True)
class Call(Node):
    """Invokes the production at index `rule`."""
    rule: int


@dataclass(frozen=True)
class Production(Node):
    """A named rule. Hidden productions do not show up in match trees: their children go to the caller."""
    name: str
    body: int
    hidden: bool = False


@dataclass(frozen=True)
class CompiledGrammar:
    """Immutable table of nodes, ready to be matched against any number of inputs.

    Productions occupy the indices `0 .. len(rules) - 1`, in the order the rules are declared; `entry` is
    the first declared rule.
    """
    nodes: tuple[Node, ...]
    rules: Mapping[str, int] = field(hash=False)  # read-only view
    entry: int
    nullable: frozenset[int]
    digest: str

    def production(self, name: str) -> Production:
        node = self.nodes[self.rules[name]]
        assert isinstance(node, Production)
        return node

    @property
    def rule_names(self) -> list[str]:
        return list(self.rules)

    @property
    def entry_name(self) -> str:
        node = self.nodes[self.entry]
        assert isinstance(node, Production)
        return node.name

    def is_nullable(self, name: str) -> bool:
        """Test if the rule can match the empty string."""
        return self.rules[name] in self.nullable
