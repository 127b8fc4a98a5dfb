from collections import deque
from typing import Mapping, Sequence

from docgram.backend.program import *

__all__ = ['compute_nullable', 'left_call_graph', 'find_cycles']


def compute_nullable(nodes: Sequence[Node]) -> frozenset[int]:
    """Compute the indices of all nodes that can match the empty string (least fixpoint)."""
    nullable: set[int] = set()

    def is_nullable(node: Node) -> bool:
        match node:
            case Text(value):
                return value == ''
            case CharSet():
                return False
            case Seq(items):
                return all(i in nullable for i in items)
            case Alt(alts):
                return any(i in nullable for i in alts)
            case Loop(item, lo, _):
                return lo == 0 or item in nullable
            case Call(rule):
                return rule in nullable
            case Production(_, body, _):
                return body in nullable
            case _:
                raise TypeError(f"unknown node: {node!r}")

    changed = True
    while changed:
        changed = False
        for index, node in enumerate(nodes):
            if index not in nullable and is_nullable(node):
                nullable.add(index)
                changed = True

    return frozenset(nullable)


def left_call_graph(nodes: Sequence[Node], nullable: frozenset[int],
                    productions: Sequence[int]) -> dict[int, frozenset[int]]:
    """For each production, the productions it may call before consuming any input."""
    cache: dict[int, frozenset[int]] = {}

    def left_calls(index: int) -> frozenset[int]:
        if index in cache:
            return cache[index]

        calls: set[int] = set()
        match nodes[index]:
            case Text() | CharSet():
                pass
            case Seq(items):
                for item in items:
                    calls |= left_calls(item)
                    if item not in nullable:
                        break
            case Alt(alts):
                for alt in alts:
                    calls |= left_calls(alt)
            case Loop(item, _, hi):
                if hi != 0:
                    calls |= left_calls(item)
            case Call(rule):
                calls.add(rule)
            case Production(_, body, _):
                calls |= left_calls(body)

        cache[index] = frozenset(calls)
        return cache[index]

    return {p: left_calls(p) for p in productions}


def find_cycles(graph: Mapping[int, frozenset[int]]) -> list[list[int]]:
    """Find one cycle per strongly connected component of the graph that has one.

    Each cycle starts at the smallest index of its component; the cycles are ordered by that index.
    """
    index_of: dict[int, int] = {}
    low: dict[int, int] = {}
    stack: list[int] = []
    on_stack: set[int] = set()
    components: list[list[int]] = []

    def connect(v: int) -> None:
        index_of[v] = low[v] = len(index_of)
        stack.append(v)
        on_stack.add(v)
        for w in sorted(graph.get(v, ())):
            if w not in index_of:
                connect(w)
                low[v] = min(low[v], low[w])
            elif w in on_stack:
                low[v] = min(low[v], index_of[w])

        if low[v] == index_of[v]:
            component = []
            while True:
                w = stack.pop()
                on_stack.discard(w)
                component.append(w)
                if w == v:
                    break
            components.append(component)

    for v in sorted(graph):
        if v not in index_of:
            connect(v)

    cycles = []
    for component in components:
        start = min(component)
        if len(component) > 1 or start in graph.get(start, ()):
            cycles.append(shortest_cycle(graph, start, frozenset(component)))

    cycles.sort(key=lambda c: c[0])
    return cycles


def shortest_cycle(graph: Mapping[int, frozenset[int]], start: int, within: frozenset[int]) -> list[int]:
    parent: dict[int, int] = {}
    queue = deque([start])
    while queue:
        v = queue.popleft()
        for w in sorted(graph.get(v, ())):
            if w == start:
                path = [v]
                while path[-1] != start:
                    path.append(parent[path[-1]])
                return path[::-1]
            if w in within and w not in parent:
                parent[w] = v
                queue.append(w)

    raise ValueError(f"no cycle through {start}")
