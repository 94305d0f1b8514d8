import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

import networkx as nx

from ..contracts.action_v1 import ActionDescriptor
from ..errors import CycleError, DecodeError

logger = logging.getLogger(__name__)

EXPLICIT = "explicit"
IMPLICIT = "implicit"
SHELL_ORDER = "shell-order"

WHITE, GRAY, BLACK = 0, 1, 2


@dataclass
class ExecutionPlan:
    """Ready groups in execution order plus the graph they were derived from.

    Edge ``a -> b`` means ``b`` waits for ``a``; each edge carries ``kind``
    (explicit, implicit or shell-order). A shell-order edge only places ``b``
    after ``a``; it never makes ``b`` depend on ``a`` succeeding.
    """

    groups: List[List[str]]
    graph: nx.DiGraph
    order: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def predecessors(self, action_id: str) -> List[str]:
        return sorted(self.graph.predecessors(action_id), key=self._index)

    def dependencies(self, action_id: str) -> List[str]:
        """Predecessors that must be ``complete`` before ``action_id`` may start."""
        return [
            p for p in self.predecessors(action_id)
            if self.graph.edges[p, action_id]["kind"] != SHELL_ORDER
        ]

    def successors(self, action_id: str) -> List[str]:
        return sorted(self.graph.successors(action_id), key=self._index)

    def descendants(self, action_id: str) -> List[str]:
        return sorted(nx.descendants(self.graph, action_id), key=self._index)

    def edges(self) -> List[Tuple[str, str, str]]:
        out = [(a, b, d["kind"]) for a, b, d in self.graph.edges(data=True)]
        return sorted(out, key=lambda e: (self._index(e[1]), self._index(e[0])))

    def group_of(self, action_id: str) -> int:
        for i, group in enumerate(self.groups):
            if action_id in group:
                return i
        raise KeyError(action_id)

    def _index(self, action_id: str) -> int:
        return self.graph.nodes[action_id]["index"]

    def as_dict(self) -> Dict[str, object]:
        return {
            "groups": [list(g) for g in self.groups],
            "edges": [{"from": a, "to": b, "kind": k} for a, b, k in self.edges()],
        }


class DependencyResolver:
    def build_graph(self, actions: Iterable[ActionDescriptor]) -> nx.DiGraph:
        g = nx.DiGraph()
        ordered = list(actions)
        for index, action in enumerate(ordered):
            if action.id in g:
                raise DecodeError("duplicate action id", index=index, action_id=action.id)
            g.add_node(action.id, index=index, type=action.type.value)

        previous = None
        for action in ordered:
            if action.declares_dependencies:
                for dep in action.dependencies:
                    if dep not in g:
                        raise DecodeError(f"dependency {dep!r} does not exist in this artifact", action_id=action.id)
                    g.add_edge(dep, action.id, kind=EXPLICIT)
            elif previous is not None:
                g.add_edge(previous.id, action.id, kind=IMPLICIT)
            previous = action

        self._add_shell_order(g, [a for a in ordered if a.is_shell])
        return g

    def _add_shell_order(self, g: nx.DiGraph, shells: List[ActionDescriptor]) -> None:
        warnings = g.graph.setdefault("warnings", [])
        for before, after in zip(shells, shells[1:]):
            if g.has_edge(before.id, after.id):
                continue
            if nx.has_path(g, after.id, before.id):
                msg = f"shell {after.id!r} must run before {before.id!r} by its dependencies; stream order not kept"
                logger.warning(msg)
                warnings.append(msg)
                continue
            g.add_edge(before.id, after.id, kind=SHELL_ORDER)

    def find_cycle(self, g: nx.DiGraph) -> List[str]:
        """Depth-first search with three colours; returns the id chain of the first cycle found."""
        index = nx.get_node_attributes(g, "index")
        order = sorted(g.nodes, key=index.get)
        color = {n: WHITE for n in order}

        def children(node):
            return iter(sorted(g.successors(node), key=index.get))

        for root in order:
            if color[root] != WHITE:
                continue
            color[root] = GRAY
            path = [root]
            stack = [(root, children(root))]
            while stack:
                node, it = stack[-1]
                for nxt in it:
                    if color[nxt] == GRAY:
                        return path[path.index(nxt):] + [nxt]
                    if color[nxt] == WHITE:
                        color[nxt] = GRAY
                        path.append(nxt)
                        stack.append((nxt, children(nxt)))
                        break
                else:
                    color[node] = BLACK
                    path.pop()
                    stack.pop()
        return []

    def resolve(self, actions: Iterable[ActionDescriptor]) -> ExecutionPlan:
        """Order actions into ready groups; ties inside a group keep stream order.

        Raises CycleError (whole artifact rejected) or DecodeError for dangling ids.
        """
        g = self.build_graph(actions)
        chain = self.find_cycle(g)
        if chain:
            raise CycleError(chain)

        index = nx.get_node_attributes(g, "index")
        groups = [sorted(gen, key=index.get) for gen in nx.topological_generations(g)]
        order = sorted(g.nodes, key=index.get)
        logger.info("resolved %d action(s) into %d ready group(s)", len(order), len(groups))
        return ExecutionPlan(groups=groups, graph=g, order=order, warnings=list(g.graph.get("warnings", [])))


def resolve(actions: Iterable[ActionDescriptor]) -> ExecutionPlan:
    return DependencyResolver().resolve(actions)
