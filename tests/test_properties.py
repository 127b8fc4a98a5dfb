import html
import re
import unittest

from hypothesis import example, given, settings
from hypothesis.strategies import lists, one_of, text

from docgram.backend.compiler import compile_source
from docgram.backend.runner import *
from docgram.render.annotator import annotate
from docgram.render.highlight import highlight

ITEMS = 'List = Item ("," Item)*; Item = Word | Num; Word = [a-z]+; Num = [0-9]+;'

items = lists(one_of(text(alphabet='abcxyz', min_size=1, max_size=8),
                     text(alphabet='0123456789', min_size=1, max_size=8)), min_size=1, max_size=12)

grammar_text = text(alphabet='AB_=|;()*+?.,"[]{}^-0123456789ab #/\\\n', max_size=40)


class TestMatching(unittest.TestCase):
    def setUp(self) -> None:
        grammar = compile_source(ITEMS).grammar
        assert grammar is not None
        self.grammar = grammar

    @given(items)
    @example(['a'])
    def test_lists_match(self, words: list[str]) -> None:
        source = ','.join(words)
        result = run(self.grammar, source, complete=True)
        assert isinstance(result, Success)
        self.assertEqual(result.end, len(source))
        self.assertEqual(''.join(span.text(source) for span in result.tree.leaves()), source)
        self.assertEqual(run(self.grammar, source, complete=True), result)

    @given(items)
    def test_markers_balanced(self, words: list[str]) -> None:
        source = ','.join(words)
        depth = 0
        for marker in annotate(source, run(self.grammar, source)):
            self.assertTrue(0 <= marker.offset <= len(source))
            if marker.kind == 'open':
                self.assertEqual(marker.depth, depth)
                depth += 1
            elif marker.kind == 'close':
                depth -= 1
                self.assertEqual(marker.depth, depth)
        self.assertEqual(depth, 0)

    @given(items)
    def test_trailing_comma_fails(self, words: list[str]) -> None:
        source = ','.join(words) + ','
        result = run(self.grammar, source, complete=True)
        assert isinstance(result, MatchFailure)
        self.assertEqual(result.offset, len(source) - 1)


class TestGrammarText(unittest.TestCase):
    @settings(deadline=None)
    @given(grammar_text)
    @example('A = "a" @ ;')
    @example('A = (((')
    def test_compile_never_raises(self, source: str) -> None:
        compilation = compile_source(source)
        if compilation.grammar is None:
            self.assertTrue(compilation.has_errors)

    @settings(deadline=None)
    @given(grammar_text)
    @example('/* open')
    def test_highlight_reproduces_text(self, source: str) -> None:
        markup = highlight(source, compile_source(source).diagnostics)
        self.assertEqual(html.unescape(re.sub(r'<[^>]*>', '', markup)), source)


if __name__ == '__main__':
    unittest.main()
