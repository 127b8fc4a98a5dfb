from html import escape
from typing import Sequence

from docgram.diagnostics import Diagnostic, Issuer
from docgram.syntax.lexer import tokenize
from docgram.syntax.parser import is_rule_head
from docgram.syntax.tokens import Token, TokenKind

__all__ = ['RuleIndex', 'rule_anchor', 'rule_heads', 'highlight']

TOKEN_CLASSES = {
    TokenKind.COMMENT: 'syntax-comment',
    TokenKind.STRING: 'syntax-string',
    TokenKind.CLASS: 'syntax-class',
    TokenKind.INTEGER: 'syntax-integer',
    TokenKind.IDENT: 'syntax-identifier',
}


def rule_anchor(name: str) -> str:
    return f"syntax-rule-{name}"


def is_private(name: str) -> bool:
    return name.startswith('_')


def rule_heads(text: str) -> list[str]:
    """Names of the rules a grammar block defines, in order, including the ones that fail to parse."""
    tokens = tokenize(text, Issuer())
    return [tokens[i].text for i in range(len(tokens)) if is_rule_head(tokens, i)]


class RuleIndex:
    """Where every public rule of a build is defined: rule name to `ROOT + page href + #anchor`."""

    def __init__(self, root: str = '/') -> None:
        self.root = root
        self._hrefs: dict[str, list[str]] = {}

    def add(self, name: str, page_href: str) -> None:
        if is_private(name):
            return
        href = f"{self.root.rstrip('/')}/{page_href.lstrip('/')}#{rule_anchor(name)}"
        hrefs = self._hrefs.setdefault(name, [])
        if href not in hrefs:
            hrefs.append(href)

    def hrefs(self, name: str) -> list[str]:
        return list(self._hrefs.get(name, []))

    def href(self, name: str) -> str | None:
        """The link to the definition of a rule; None unless the rule is defined exactly once."""
        hrefs = self._hrefs.get(name, [])
        return hrefs[0] if len(hrefs) == 1 else None

    def __contains__(self, name: str) -> bool:
        return name in self._hrefs

    def __len__(self) -> int:
        return len(self._hrefs)


def highlight(text: str, diagnostics: Sequence[Diagnostic] = (), index: RuleIndex | None = None) -> str:
    """Render a grammar block as highlighted HTML.

    `diagnostics` must be located relative to the block; the tokens they point at are marked as errors.
    Rule definitions get anchors, and rule references get links if `index` is given.
    """
    tokens = tokenize(text, Issuer(), keep_trivia=True)
    significant = [i for i, t in enumerate(tokens) if not t.kind.is_trivia]
    heads = {significant[j] for j in range(len(significant) - 1)
             if tokens[significant[j]].kind is TokenKind.IDENT
             and tokens[significant[j + 1]].kind is TokenKind.DEFINE}
    located = [d for d in diagnostics if d.loc is not None]

    out: list[str] = []
    in_rule = False
    for i, token in enumerate(tokens):
        if i in heads:
            if in_rule:
                out.append('</span>')
                in_rule = False
            if not is_private(token.text):
                anchor = rule_anchor(token.text)
                out.append(f'<span class="syntax-rule" rule="{anchor}"><a name="{anchor}"></a>')
                in_rule = True

        html = render_token(token, i in heads, index)
        found = [d for d in located if token.start <= d.offset < token.end]
        if token.kind is TokenKind.ERROR or found:
            html = error_span(html, found, token.value if token.kind is TokenKind.ERROR else None)
        out.append(html)

        if token.kind is TokenKind.TERMINATOR and in_rule:
            out.append('</span>')
            in_rule = False

    if in_rule:
        out.append('</span>')

    trailing = [d for d in located if d.offset >= len(text)]
    if trailing:
        out.append(error_span('', trailing, None))

    return f'<pre><code class="syntax">{"".join(out)}</code></pre>'


def render_token(token: Token, is_head: bool, index: RuleIndex | None) -> str:
    body = escape(token.text)
    match token.kind:
        case TokenKind.WHITESPACE | TokenKind.ERROR:
            return body
        case TokenKind.IDENT if not is_head and index is not None and not is_private(token.text):
            hrefs = index.hrefs(token.text)
            if len(hrefs) == 1:
                return f'<a class="syntax-link" href="{escape(hrefs[0])}"><span class="syntax-identifier">{body}</span></a>'
            if len(hrefs) > 1:
                where = escape(f"defined in: {', '.join(hrefs)}")
                return f'<span class="syntax-identifier syntax-ambiguous" title="{where}">{body}</span>'
            return f'<span class="syntax-identifier syntax-undefined">{body}</span>'
        case kind if kind in TOKEN_CLASSES:
            return f'<span class="{TOKEN_CLASSES[kind]}">{body}</span>'
        case kind if kind.is_operator:
            return f'<span class="syntax-operator">{body}</span>'
        case _:
            return body


def error_span(html: str, diagnostics: Sequence[Diagnostic], fallback: str | None) -> str:
    messages = [d.msg for d in diagnostics] or [fallback or 'error']
    hints = '\n'.join(h for d in diagnostics for h in d.hints)
    return (f'<span class="syntax-error" message="{escape("; ".join(messages))}" '
            f'hints="{escape(hints)}">{html}</span>')
