import logging
from dataclasses import dataclass
from html import escape
from typing import Sequence

from docgram.backend.cache import GrammarCache
from docgram.backend.runner import *
from docgram.diagnostics import *
from docgram.options import Options
from docgram.render.annotator import expectation_message, render_html
from docgram.render.highlight import RuleIndex, highlight, rule_heads
from docgram.shared import location_at

__all__ = ['Block', 'Page', 'BlockResult', 'GrammarTag', 'ExampleTag', 'parse_tag', 'Preprocessor']

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Block:
    """A tagged text block found by the host in a source file.

    `offset` is the character index of the block text in the file; `row` and `column` (zero-based) are
    the position of that index.
    """
    tag: str
    text: str
    source_file: str = '<unknown>'
    offset: int = 0
    row: int = 0
    column: int = 0

    @property
    def origin(self) -> Position:
        return Position(self.row, self.column, self.offset)

    @property
    def loc(self) -> Location:
        return Location(self.source_file, Range(self.origin, self.origin))


@dataclass(frozen=True)
class Page:
    href: str
    blocks: Sequence[Block]


@dataclass(frozen=True)
class BlockResult:
    """What the host splices in place of a block: the rendered HTML and the diagnostics to report."""
    html: str
    diagnostics: tuple[Diagnostic, ...] = ()

    @property
    def has_errors(self) -> bool:
        return any(d.level == Level.ERROR for d in self.diagnostics)


@dataclass(frozen=True)
class GrammarTag:
    name: str | None


@dataclass(frozen=True)
class ExampleTag:
    grammar: str | None
    rule: str | None


def parse_tag(tag: str, options: Options) -> GrammarTag | ExampleTag | None:
    """Recognize a block tag: `grammar [NAME]` or `example [NAME][.RULE]`; None for any other tag."""
    words = tag.split()
    if len(words) == 0 or len(words) > 2:
        return None

    arg = words[1] if len(words) == 2 else None
    if words[0] in options.grammar_tags:
        return GrammarTag(arg)
    if words[0] in options.example_tags:
        if arg is None:
            return ExampleTag(None, None)
        name, dot, rule = arg.partition('.')
        if dot and rule == '':
            return None
        return ExampleTag(name or None, rule or None)
    return None


class Preprocessor:
    """Renders the grammar and example blocks of a build.

    The cache may be shared with other preprocessors of the same build.
    """

    def __init__(self, options: Options = Options(), cache: GrammarCache | None = None) -> None:
        self.options = options
        self.cache = cache if cache is not None else GrammarCache()

    def process(self, pages: Sequence[Page]) -> list[list[BlockResult | None]]:
        """Process every block of every page. Blocks with unrecognized tags give None."""
        index = RuleIndex(self.options.link_root)
        named: dict[str, Block] = {}
        for page in pages:
            for block in page.blocks:
                match parse_tag(block.tag, self.options):
                    case GrammarTag(name):
                        for rule in rule_heads(block.text):
                            index.add(rule, page.href)
                        if name is not None:
                            named.setdefault(name, block)

        results = [self.process_page(page, index, named) for page in pages]
        logger.debug("processed %d pages, %d rules indexed, %d grammars cached",
                     len(pages), len(index), len(self.cache))
        return results

    def process_page(self, page: Page, index: RuleIndex, named: dict[str, Block]) -> list[BlockResult | None]:
        latest: Block | None = None
        results: list[BlockResult | None] = []
        for block in page.blocks:
            match parse_tag(block.tag, self.options):
                case GrammarTag():
                    results.append(self.grammar_block(block, index))
                    latest = block
                case ExampleTag(name, rule):
                    source = named.get(name) if name is not None else latest
                    results.append(self.example_block(block, name, rule, source))
                case None:
                    results.append(None)
        return results

    def grammar_block(self, block: Block, index: RuleIndex) -> BlockResult:
        compilation = self.cache.compile(block.text)
        html = highlight(block.text, compilation.diagnostics, index)
        return BlockResult(html, tuple(self.relocate(block, d) for d in compilation.diagnostics))

    def example_block(self, block: Block, name: str | None, rule: str | None,
                      grammar_block: Block | None) -> BlockResult:
        plain = f'<pre><code class="syntax-example">{escape(block.text)}</code></pre>'
        if grammar_block is None:
            return BlockResult(plain, (self.adjust(UnknownGrammar(name, block.loc)),))

        grammar = self.cache.compile(grammar_block.text).grammar
        if grammar is None:
            return BlockResult(plain, (self.adjust(GrammarUnavailable(name, block.loc)),))
        if rule is not None and rule not in grammar.rules:
            return BlockResult(plain, (self.adjust(UndefinedRule(rule, block.loc, grammar.rule_names)),))

        result = run(grammar, block.text, rule=rule, budget=self.options.budget,
                     complete=self.options.require_full_match)
        diagnostics: list[Diagnostic] = []
        hints: list[str] = []
        match result:
            case MatchFailure(offset, expected):
                loc = location_at(block.text, offset, min(offset + 1, len(block.text)))
                mismatch = MismatchedExample(sorted(expected), loc)
                mismatch.hints.append(expectation_message(block.text, offset, expected))
                hints = mismatch.hints
                diagnostics.append(self.relocate(block, mismatch))
            case ResourceExhausted(reason, steps, offset):
                logger.debug("example in %s exhausted its budget after %d steps at offset %d",
                             block.source_file, steps, offset)
                too_expensive = ExampleTooExpensive(reason, location_at(block.text, offset),
                                                    self.options.exhausted_level)
                diagnostics.append(self.relocate(block, too_expensive))

        html = f'<pre><code class="syntax-example">{render_html(block.text, result, hints=hints)}</code></pre>'
        return BlockResult(html, tuple(diagnostics))

    def relocate(self, block: Block, diagnostic: Diagnostic) -> Diagnostic:
        """Move a block-relative diagnostic into the source file of the block."""
        moved = diagnostic.relocate(block.source_file, block.origin)
        if moved.loc is None:
            moved.loc = block.loc
        return self.adjust(moved)

    def adjust(self, diagnostic: Diagnostic) -> Diagnostic:
        if self.options.warn_only and diagnostic.level == Level.ERROR:
            return diagnostic.downgraded()
        return diagnostic

    @staticmethod
    def should_fail(results: Sequence[Sequence[BlockResult | None]]) -> bool:
        """Test if the build has to fail: some block has an error-level diagnostic."""
        return any(r is not None and r.has_errors for page in results for r in page)
