import logging
import time
from dataclasses import dataclass
from typing import Generator, Iterator, TypeAlias

from parsy import Result

from docgram.backend.program import *
from docgram.shared import END_OF_INPUT, quote

__all__ = ['Budget', 'Span', 'Success', 'MatchFailure', 'ResourceExhausted', 'ParseResult', 'run']

logger = logging.getLogger(__name__)

EMPTY_REPETITION = 'nothing (empty repetition range)'


@dataclass(frozen=True)
class Budget:
    """Bounds on the cost of one match: evaluation steps, wall-clock seconds and nesting depth of rules.

    None means unbounded.
    """
    max_steps: int | None = 1_000_000
    timeout: float | None = None
    max_depth: int | None = None


@dataclass(frozen=True)
class Span:
    """A matched slice `[start, end)` of the input. A span without a rule is text consumed by terminals."""
    rule: str | None
    start: int
    end: int
    children: tuple['Span', ...] = ()

    def text(self, source: str) -> str:
        return source[self.start:self.end]

    def leaves(self) -> Iterator['Span']:
        """Iterate over the terminal leaves, in order."""
        stack = [self]
        while stack:
            span = stack.pop()
            if span.rule is None:
                yield span
            stack.extend(reversed(span.children))

    def walk(self) -> Iterator[tuple['Span', int]]:
        """Iterate over the spans of rules in pre-order, with their depth (the root is at depth 0)."""
        stack = [(self, 0)]
        while stack:
            span, depth = stack.pop()
            if span.rule is not None:
                yield span, depth
                depth += 1
            for child in reversed(span.children):
                stack.append((child, depth))


@dataclass(frozen=True)
class Success:
    tree: Span

    @property
    def end(self) -> int:
        return self.tree.end


@dataclass(frozen=True)
class MatchFailure:
    """The input does not match: `expected` lists what was tried at the furthest `offset` reached."""
    offset: int
    expected: frozenset[str]


@dataclass(frozen=True)
class ResourceExhausted:
    """The match was abandoned because it exceeded its budget."""
    reason: str
    steps: int
    offset: int


ParseResult: TypeAlias = Success | MatchFailure | ResourceExhausted


class Exhausted(Exception):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def merge_leaves(spans: tuple[Span, ...]) -> tuple[Span, ...]:
    """Merge adjacent terminal leaves into one."""
    merged: list[Span] = []
    for span in spans:
        if span.rule is None and merged and merged[-1].rule is None and merged[-1].end == span.start:
            merged[-1] = Span(None, merged[-1].start, span.end)
        else:
            merged.append(span)
    return tuple(merged)


Frame: TypeAlias = Generator[tuple[int, int], Result | None, Result]


class Matcher:
    """Packrat evaluation of a compiled grammar against one input.

    The value of every successful result is a tuple of spans; failures carry the furthest offset reached
    and what was expected there, which `Result.aggregate` merges along the way.

    Composite nodes are evaluated by generator frames kept on an explicit stack: a frame yields the
    `(node, offset)` it needs matched and is sent the result. Nesting depth is thus bounded by the budget
    only, not by the interpreter's recursion limit.
    """

    def __init__(self, grammar: CompiledGrammar, text: str, budget: Budget) -> None:
        self.nodes = grammar.nodes
        self.text = text
        self.budget = budget
        self.memo: dict[tuple[int, int], Result] = {}
        self.steps = 0
        self.depth = 0
        self.offset = 0
        self.deadline = time.monotonic() + budget.timeout if budget.timeout is not None else None

    def tick(self, offset: int) -> None:
        self.steps += 1
        self.offset = offset
        if self.budget.max_steps is not None and self.steps > self.budget.max_steps:
            raise Exhausted(f"step budget of {self.budget.max_steps} exceeded")
        if self.deadline is not None and self.steps % 256 == 1 and time.monotonic() > self.deadline:
            raise Exhausted(f"time budget of {self.budget.timeout}s exceeded")

    def eval(self, index: int, offset: int) -> Result:
        frames: list[Frame] = []
        request: tuple[int, int] | None = (index, offset)
        result: Result | None = None
        while True:
            if request is not None:
                index, offset = request
                request = None
                self.tick(offset)
                match self.nodes[index]:
                    case Call(rule):
                        request = (rule, offset)
                        continue
                    case Text() | CharSet() as terminal:
                        result = self.terminal(terminal, offset)
                    case Production() if (index, offset) in self.memo:
                        result = self.memo[(index, offset)]
                    case node:
                        frames.append(self.frame(index, node, offset))
                        result = None

            if not frames:
                assert result is not None
                return result
            try:
                request = frames[-1].send(result)
            except StopIteration as stop:
                frames.pop()
                result = stop.value

    def terminal(self, node: Text | CharSet, offset: int) -> Result:
        match node:
            case Text(value):
                if self.text.startswith(value, offset):
                    end = offset + len(value)
                    return Result.success(end, (Span(None, offset, end),) if value else ())
                k = 0
                while offset + k < len(self.text) and self.text[offset + k] == value[k]:
                    k += 1
                return Result.failure(offset + k, quote(value[k]))

            case CharSet() as char_set:
                if offset < len(self.text) and char_set.accepts(self.text[offset]):
                    return Result.success(offset + 1, (Span(None, offset, offset + 1),))
                return Result.failure(offset, char_set.label)

    def frame(self, index: int, node: Node, offset: int) -> Frame:
        match node:
            case Seq(items):
                children: list[Span] = []
                result = Result.success(offset, ())
                for item in items:
                    result = (yield item, result.index).aggregate(result)
                    if not result.status:
                        return result
                    children.extend(result.value)
                return Result.success(result.index, tuple(children)).aggregate(result)

            case Alt(alts):
                result = None
                for alt in alts:
                    result = (yield alt, offset).aggregate(result)
                    if result.status:
                        return result
                assert result is not None
                return result

            case Loop(item, lo, hi):
                if hi is not None and lo > hi:
                    return Result.failure(offset, EMPTY_REPETITION)
                children = []
                count = 0
                end = offset
                result = Result.success(offset, ())
                while hi is None or count < hi:
                    attempt = (yield item, end).aggregate(result)
                    if not attempt.status:
                        if count < lo:
                            return attempt
                        result = attempt
                        break
                    count += 1
                    children.extend(attempt.value)
                    result = attempt
                    if attempt.index == end:
                        break  # every further iteration would match the same empty text
                    end = attempt.index
                return Result.success(end, tuple(children)).aggregate(result)

            case Production(name, body, hidden):
                if self.budget.max_depth is not None and self.depth >= self.budget.max_depth:
                    raise Exhausted(f"nesting depth limit of {self.budget.max_depth} exceeded")
                self.depth += 1
                result = yield body, offset
                self.depth -= 1

                if result.status:
                    merged = merge_leaves(result.value)
                    value = merged if hidden else (Span(name, offset, result.index, merged),)
                    result = Result.success(result.index, value).aggregate(result)
                self.memo[(index, offset)] = result
                return result

            case _:
                raise TypeError(f"unknown node: {node!r}")


def run(grammar: CompiledGrammar, text: str, *, rule: str | None = None, budget: Budget = Budget(),
        complete: bool = False) -> ParseResult:
    """Match `text` against `rule` (by default, the entry rule) of a compiled grammar.

    The match starts at offset 0 and need not consume the whole text, unless `complete` is set: leftover
    input then fails at the end of the match, with `end of input` among the expected descriptions.
    Raise `KeyError` if the grammar has no rule named `rule`.
    """
    index = grammar.entry if rule is None else grammar.rules[rule]
    production = grammar.nodes[index]
    assert isinstance(production, Production)

    matcher = Matcher(grammar, text, budget)
    try:
        result = matcher.eval(index, 0)
    except Exhausted as e:
        logger.debug("match of rule %s abandoned at offset %d: %s", production.name, matcher.offset, e.reason)
        return ResourceExhausted(e.reason, matcher.steps, matcher.offset)

    if not result.status:
        return MatchFailure(result.furthest, result.expected)

    if complete and result.index < len(text):
        expected = {END_OF_INPUT}
        if result.furthest == result.index:
            expected |= result.expected
        return MatchFailure(result.index, frozenset(expected))

    if production.hidden:
        return Success(Span(production.name, 0, result.index, result.value))
    return Success(result.value[0])
