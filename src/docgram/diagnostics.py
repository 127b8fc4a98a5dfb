import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

__all__ = ['Position', 'Range', 'Location', 'Level', 'Diagnostic', 'Issuer',
           'LexError', 'ParseError', 'CompileError', 'UndefinedRule', 'RedefinedRule', 'LeftRecursion',
           'EmptyRange', 'NullableRepetition', 'MismatchedExample', 'ExampleTooExpensive',
           'UnknownGrammar', 'GrammarUnavailable']


@dataclass(frozen=True)
class Position:
    """Position in a file: a row and a column, both *zero*-based, and the absolute character index."""
    row: int
    column: int
    index: int

    def shift(self, origin: 'Position') -> 'Position':
        """Move a position relative to a block to the file the block starts at `origin`."""
        column = self.column + origin.column if self.row == 0 else self.column
        return Position(self.row + origin.row, column, self.index + origin.index)

    def __str__(self) -> str:
        return f"{self.row + 1}:{self.column + 1}"


@dataclass(frozen=True)
class Range:
    """Position range in a file: `start` is inclusive, `end` is exclusive."""
    start: Position
    end: Position

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


@dataclass(frozen=True)
class Location:
    """Location in a file: consists of the file path and a range within that file."""
    file_path: str
    range: Range

    def __str__(self) -> str:
        return f"{self.file_path}:{self.range.start}"


class Level(Enum):
    """Diagnostic level."""
    ERROR = 1
    WARN = 2


@dataclass(kw_only=True)
class Diagnostic:
    """Diagnostic object: a level, a main location, a message and optional hints."""
    level: Level = Level.ERROR
    loc: Location | None
    msg: str
    hints: list[str] = field(default_factory=list)

    @property
    def offset(self) -> int | None:
        """Absolute character offset of the diagnostic, if it has a location."""
        return self.loc.range.start.index if self.loc else None

    def relocate(self, file_path: str, origin: Position) -> 'Diagnostic':
        """Copy of this diagnostic moved from block coordinates into the enclosing file."""
        moved = copy.copy(self)
        moved.hints = list(self.hints)
        if self.loc is not None:
            rng = self.loc.range
            moved.loc = Location(file_path, Range(rng.start.shift(origin), rng.end.shift(origin)))
        return moved

    def downgraded(self) -> 'Diagnostic':
        """Copy of this diagnostic at WARN level."""
        lowered = copy.copy(self)
        lowered.hints = list(self.hints)
        lowered.level = Level.WARN
        return lowered


class Issuer:
    """Diagnostic collector."""

    def __init__(self) -> None:
        self._diagnostics: list[Diagnostic] = []

    def issue(self, diagnostic: Diagnostic) -> None:
        """Add a diagnostic."""
        self._diagnostics.append(diagnostic)

    @property
    def has_diagnostics(self) -> bool:
        """Test if there are any diagnostics."""
        return len(self._diagnostics) > 0

    @property
    def has_errors(self) -> bool:
        """Test if there are any ERROR-level diagnostics."""
        return any(d.level == Level.ERROR for d in self._diagnostics)

    def error_count(self) -> int:
        return sum(1 for d in self._diagnostics if d.level == Level.ERROR)

    def get_diagnostics(self) -> Sequence[Diagnostic]:
        """Get all diagnostics."""
        return self._diagnostics

    def pretty(self) -> str:
        """Pretty-print all diagnostics."""
        lines = []
        for d in self._diagnostics:
            prefix = "ERROR" if d.level == Level.ERROR else "WARN"
            loc_str = f"{d.loc}" if d.loc else "<unknown location>"
            lines.append(f"{loc_str} - {prefix}: {d.msg}")
            for hint in d.hints:
                lines.append(f"    {hint}")
        return "\n".join(lines)


# Instances of specific diagnostics:
class LexError(Diagnostic):
    def __init__(self, msg: str, loc: Location, hints: Sequence[str] = ()) -> None:
        super().__init__(loc=loc, msg=f"Invalid token: {msg}", hints=list(hints))


class ParseError(Diagnostic):
    def __init__(self, msg: str, loc: Location, hints: Sequence[str] = ()) -> None:
        super().__init__(loc=loc, msg=f"Invalid syntax: {msg}", hints=list(hints))


class CompileError(Diagnostic):
    """Any error that makes a grammar unusable for matching."""
    pass


class UndefinedRule(CompileError):
    def __init__(self, name: str, loc: Location | None, candidates: Sequence[str] = ()) -> None:
        hints = []
        if candidates:
            hints.append(f"defined rules: {', '.join(candidates)}")
        super().__init__(loc=loc, msg=f"Undefined rule: {name}", hints=hints)
        self.name = name
        self.candidates = tuple(candidates)


class RedefinedRule(CompileError):
    def __init__(self, name: str, loc: Location) -> None:
        super().__init__(loc=loc, msg=f"Redefined rule: {name}")
        self.name = name


class LeftRecursion(CompileError):
    def __init__(self, cycle: Sequence[str], loc: Location) -> None:
        path = ' -> '.join([*cycle, cycle[0]])
        super().__init__(loc=loc, msg=f"Left recursion: {path}",
                         hints=["a rule must consume input before it can refer to itself again"])
        self.cycle = tuple(cycle)


class EmptyRange(Diagnostic):
    def __init__(self, lower: str, upper: str, loc: Location) -> None:
        super().__init__(level=Level.WARN, loc=loc, msg=f"Empty range: {lower} > {upper}")


class NullableRepetition(Diagnostic):
    def __init__(self, loc: Location) -> None:
        super().__init__(level=Level.WARN, loc=loc,
                         msg="Repeated expression can match the empty string",
                         hints=["the repetition stops as soon as an iteration consumes nothing"])


class MismatchedExample(Diagnostic):
    def __init__(self, expected: Sequence[str], loc: Location) -> None:
        if len(expected) == 1:
            msg = f"Example does not match the grammar: expected {expected[0]}"
        else:
            msg = f"Example does not match the grammar: expected one of {', '.join(expected)}"
        super().__init__(loc=loc, msg=msg)
        self.expected = tuple(expected)


class ExampleTooExpensive(Diagnostic):
    def __init__(self, reason: str, loc: Location, level: Level = Level.WARN) -> None:
        super().__init__(level=level, loc=loc, msg=f"Example was not checked: {reason}")


class UnknownGrammar(Diagnostic):
    def __init__(self, name: str | None, loc: Location) -> None:
        if name is None:
            super().__init__(loc=loc, msg="No grammar defined before this example",
                             hints=["name a grammar in the tag, e.g. 'example NAME'"])
        else:
            super().__init__(loc=loc, msg=f"Unknown grammar: {name}")


class GrammarUnavailable(Diagnostic):
    def __init__(self, name: str | None, loc: Location) -> None:
        what = "The grammar before this example" if name is None else f"Grammar '{name}'"
        super().__init__(loc=loc, msg=f"{what} failed to compile; example was not checked")
