import hashlib
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from docgram.backend import program as ir
from docgram.backend.analysis import compute_nullable, find_cycles, left_call_graph
from docgram.diagnostics import *
from docgram.syntax.grammar import *
from docgram.syntax.lexer import tokenize
from docgram.syntax.parser import parse

__all__ = ['Compilation', 'compile_grammar', 'compile_source', 'grammar_digest']

logger = logging.getLogger(__name__)

ANY_CHAR = 'any character'


def grammar_digest(text: str) -> str:
    """Content hash of a grammar text."""
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


@dataclass(frozen=True)
class Compilation:
    """Outcome of compiling one grammar block: the grammar (None if unusable) and all its diagnostics.

    Diagnostic locations are relative to the block.
    """
    grammar: ir.CompiledGrammar | None
    diagnostics: tuple[Diagnostic, ...]

    @property
    def has_errors(self) -> bool:
        return any(d.level == Level.ERROR for d in self.diagnostics)


def compile_source(text: str, *, file_path: str = '<block>') -> Compilation:
    """Run the whole pipeline (lex, parse, compile) on the text of a grammar block."""
    issuer = Issuer()
    tokens = tokenize(text, issuer, file_path=file_path)
    rules = parse(text, issuer, file_path=file_path, tokens=tokens)
    grammar = compile_grammar(rules, issuer, source=text)
    return Compilation(grammar, tuple(issuer.get_diagnostics()))


def compile_grammar(grammar: Grammar, issuer: Issuer, *, source: str = '') -> ir.CompiledGrammar | None:
    """Compile the rules of a grammar. Return None if any compile error was issued."""
    errors_before = issuer.error_count()
    if len(grammar) == 0:
        if not issuer.has_errors:
            issuer.issue(CompileError(loc=None, msg="Empty grammar: no rules are defined"))
        return None

    names: dict[str, int] = {}
    definitions: list[Rule] = []
    redefinitions: list[Rule] = []
    for rule in grammar:
        if rule.name.name in names:
            issuer.issue(RedefinedRule(rule.name.name, rule.name.loc))
            redefinitions.append(rule)
        else:
            names[rule.name.name] = len(definitions)
            definitions.append(rule)

    lowering = Lowering(names, issuer, len(definitions))
    bodies = [lowering.visit(rule.body) for rule in definitions]
    for rule in redefinitions:
        lowering.visit(rule.body)  # only for its diagnostics

    for i, (rule, body) in enumerate(zip(definitions, bodies)):
        lowering.nodes[i] = ir.Production(rule.name.name, body, rule.name.name.startswith('_'))

    nodes = tuple(lowering.nodes)
    nullable = compute_nullable(nodes)

    for loop_index, loc in lowering.unbounded_loops:
        loop = nodes[loop_index]
        assert isinstance(loop, ir.Loop)
        if loop.item in nullable:
            issuer.issue(NullableRepetition(loc))

    graph = left_call_graph(nodes, nullable, range(len(definitions)))
    for cycle in find_cycles(graph):
        issuer.issue(LeftRecursion([definitions[i].name.name for i in cycle], definitions[cycle[0]].name.loc))

    if issuer.error_count() > errors_before:
        return None

    productions_nullable = frozenset(i for i in nullable if i < len(definitions))
    compiled = ir.CompiledGrammar(nodes, MappingProxyType(dict(names)), 0, productions_nullable,
                                  grammar_digest(source))
    logger.debug("compiled grammar %s: %d rules, %d nodes", compiled.digest[:12], len(names), len(nodes))
    return compiled


class Lowering(ExprVisitor):
    """Lower expressions into the node arena, sharing structurally equal nodes."""

    def __init__(self, names: Mapping[str, int], issuer: Issuer, num_productions: int) -> None:
        super().__init__()
        self.names = names
        self.issuer = issuer
        # Production slots are filled in once their bodies are lowered.
        self.nodes: list[ir.Node] = [ir.Text('')] * num_productions
        self.index: dict[ir.Node, int] = {}
        self.unbounded_loops: list[tuple[int, Location]] = []

    def intern(self, node: ir.Node) -> int:
        if node not in self.index:
            self.index[node] = len(self.nodes)
            self.nodes.append(node)
        return self.index[node]

    def visit_Lit(self, node: Lit) -> int:
        return self.intern(ir.Text(node.value))

    def visit_CharClass(self, node: CharClass) -> int:
        chars: set[str] = set()
        ranges: list[tuple[str, str]] = []
        for item in node.items:
            match item:
                case str() as c:
                    chars.add(c)
                case CharRange(lower, upper):
                    if lower <= upper:
                        ranges.append((lower, upper))
                    else:
                        self.issuer.issue(EmptyRange(repr(lower), repr(upper), node.loc))

        if node.mode == 'exclusive' and len(node.items) == 0:
            label = ANY_CHAR
        else:
            label = class_text(node.mode, node.items)
        return self.intern(ir.CharSet(frozenset(chars), tuple(sorted(set(ranges))),
                                      node.mode == 'exclusive', label))

    def visit_Ref(self, node: Ref) -> int:
        if node.name in self.names:
            return self.intern(ir.Call(self.names[node.name]))

        self.issuer.issue(UndefinedRule(node.name, node.loc, list(self.names)))
        return self.intern(ir.Seq(()))

    def visit_Seq(self, node: Seq) -> int:
        return self.intern(ir.Seq(tuple(self.visit(e) for e in node.elements)))

    def visit_Choice(self, node: Choice) -> int:
        return self.intern(ir.Alt(tuple(self.visit(e) for e in node.options)))

    def visit_Repeat(self, node: Repeat) -> int:
        item = self.visit(node.element)
        if node.max is not None and node.min > node.max:
            self.issuer.issue(EmptyRange(str(node.min), str(node.max), node.loc))
        index = self.intern(ir.Loop(item, node.min, node.max))
        if node.max is None:
            self.unbounded_loops.append((index, node.loc))
        return index

    def visit_Optional(self, node: Optional) -> int:
        return self.intern(ir.Loop(self.visit(node.element), 0, 1))

    def visit_Group(self, node: Group) -> int:
        return self.visit(node.element)
