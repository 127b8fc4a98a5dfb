from dataclasses import dataclass
from html import escape
from typing import Literal, Sequence

from docgram.backend.runner import *
from docgram.shared import END_OF_INPUT, quote

__all__ = ['Marker', 'annotate', 'render_html', 'expectation_message']


@dataclass(frozen=True)
class Marker:
    """A point of the input where a rule span opens or closes, or where matching failed."""
    offset: int
    kind: Literal['open', 'close', 'error']
    rule: str | None = None
    depth: int = 0
    expected: frozenset[str] = frozenset()


def annotate(text: str, result: ParseResult) -> list[Marker]:
    """Map a match result onto the input.

    A success gives an `open` and a `close` marker per rule span, nested as the spans are; a failure gives
    one `error` marker at the furthest offset. An abandoned match gives no markers.
    """

    def clamp(offset: int) -> int:
        return max(0, min(offset, len(text)))

    markers: list[Marker] = []
    match result:
        case Success(tree):
            # Close markers are pushed below the children of their span.
            stack: list[tuple[Span, int] | Marker] = [(tree, 0)]
            while stack:
                match stack.pop():
                    case Marker() as close:
                        markers.append(close)
                    case (span, depth) if span.rule is not None:
                        markers.append(Marker(clamp(span.start), 'open', span.rule, depth))
                        stack.append(Marker(clamp(span.end), 'close', span.rule, depth))
                        stack.extend((child, depth + 1) for child in reversed(span.children))
        case MatchFailure(offset, expected):
            markers.append(Marker(clamp(offset), 'error', expected=expected))
        case ResourceExhausted():
            pass

    assert all(0 <= m.offset <= len(text) for m in markers)
    return markers


def expectation_message(text: str, offset: int, expected: frozenset[str]) -> str:
    """Describe a failure, e.g. `expected one of "b", "c", found "d"`."""
    names = sorted(expected)
    if len(names) == 1:
        msg = f"expected {names[0]}"
    else:
        msg = f"expected one of {', '.join(names)}"
    found = quote(text[offset]) if offset < len(text) else END_OF_INPUT
    return f"{msg}, found {found}"


def render_html(text: str, result: ParseResult, *, hints: Sequence[str] = ()) -> str:
    """Render the input as HTML, marked up by `annotate`."""
    markers = annotate(text, result)
    out: list[str] = []
    pos = 0
    for marker in markers:
        out.append(escape(text[pos:marker.offset]))
        pos = marker.offset
        match marker.kind:
            case 'open':
                out.append(f'<span class="syntax-node syntax-depth-{marker.depth}" '
                           f'rule="{escape(marker.rule or "")}">')
            case 'close':
                out.append('</span>')
            case 'error':
                message = expectation_message(text, marker.offset, marker.expected)
                hint_text = '\n'.join(hints)
                end = min(pos + 1, len(text))
                out.append(f'<span class="syntax-error" message="{escape(message)}" '
                           f'hints="{escape(hint_text)}">{escape(text[pos:end])}</span>')
                pos = end

    out.append(escape(text[pos:]))
    return ''.join(out)
