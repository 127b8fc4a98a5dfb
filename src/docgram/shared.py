import json
from typing import Iterable

from parsy import line_info_at

from docgram.diagnostics import Position, Range, Location

__all__ = ['END_OF_INPUT', 'position_at', 'location_at', 'quote', 'describe_expected']

END_OF_INPUT = 'end of input'


def position_at(source: str, index: int) -> Position:
    """Get the position of a character index in the source."""
    index = max(0, min(index, len(source)))
    row, column = line_info_at(source, index)
    return Position(row, column, index)


def location_at(source: str, start: int, end: int | None = None, file_path: str = '<block>') -> Location:
    """Get the location of the source slice `[start, end)`; an empty slice if `end` is omitted."""
    start_pos = position_at(source, start)
    end_pos = start_pos if end is None else position_at(source, end)
    return Location(file_path, Range(start_pos, end_pos))


def quote(text: str) -> str:
    """Quote a literal the way it would be written in a grammar."""
    return json.dumps(text, ensure_ascii=False)


def describe_expected(expected: Iterable[str]) -> str:
    """Summarize a set of expected descriptions.

    Descriptions in brackets, e.g. `[identifier]`, name what was expected; anything else is a complete
    message that replaces the summary.
    """
    expected_list = sorted(expected)
    messages: list[str] = []
    names: list[str] = []
    for s in expected_list:
        if s.startswith('[') and s.endswith(']'):
            names.append(s[1:-1])
        else:
            messages.append(s)

    if messages:
        return '; '.join(messages)
    if len(names) == 1:
        return f"expected {names[0]}"
    return f"expected one of {', '.join(names)}"
