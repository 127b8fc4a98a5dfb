"""Grammars embedded in documentation, and the examples checked against them."""

from docgram.backend.cache import GrammarCache
from docgram.backend.compiler import Compilation, compile_grammar, compile_source
from docgram.backend.program import CompiledGrammar
from docgram.backend.runner import Budget, MatchFailure, ParseResult, ResourceExhausted, Span, Success, run
from docgram.book import Block, BlockResult, Page, Preprocessor
from docgram.diagnostics import Diagnostic, Issuer, Level
from docgram.options import Options
from docgram.render.annotator import Marker, annotate, render_html
from docgram.render.highlight import RuleIndex, highlight

__all__ = ['GrammarCache', 'Compilation', 'compile_grammar', 'compile_source', 'CompiledGrammar',
           'Budget', 'MatchFailure', 'ParseResult', 'ResourceExhausted', 'Span', 'Success', 'run',
           'Block', 'BlockResult', 'Page', 'Preprocessor', 'Diagnostic', 'Issuer', 'Level', 'Options',
           'Marker', 'annotate', 'render_html', 'RuleIndex', 'highlight']
