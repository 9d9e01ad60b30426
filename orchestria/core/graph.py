from __future__ import annotations
from typing import Dict, Iterable, List, Tuple
from .errors import CycleError

class DependencyGraph:
    """Graphe orienté dépendance -> dépendant, découpé en phases par Kahn.

    Chaque phase regroupe tous les noeuds de degré entrant nul au moment du
    passage: c'est le nombre minimal de phases séquentielles. L'ordre interne
    d'une phase suit l'ordre d'insertion des noeuds, le découpage est donc
    déterministe.
    """

    def __init__(self) -> None:
        self._in_degree: Dict[str, int] = {}
        self._succ: Dict[str, List[str]] = {}

    @classmethod
    def from_edges(cls, nodes: Iterable[str], edges: Iterable[Tuple[str, str]]) -> "DependencyGraph":
        g = cls()
        for n in nodes:
            g.add_node(n)
        for src, dst in edges:
            g.add_edge(src, dst)
        return g

    def add_node(self, node_id: str) -> None:
        if node_id not in self._in_degree:
            self._in_degree[node_id] = 0
            self._succ[node_id] = []

    def add_edge(self, src: str, dst: str) -> None:
        self.add_node(src)
        self.add_node(dst)
        if dst in self._succ[src]:
            return
        self._succ[src].append(dst)
        self._in_degree[dst] += 1

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._in_degree

    def __len__(self) -> int:
        return len(self._in_degree)

    def nodes(self) -> List[str]:
        return list(self._in_degree)

    def edges(self) -> List[Tuple[str, str]]:
        return [(src, dst) for src, succ in self._succ.items() for dst in succ]

    def successors(self, node_id: str) -> List[str]:
        return list(self._succ.get(node_id, []))

    def predecessors(self, node_id: str) -> List[str]:
        return [src for src, succ in self._succ.items() if node_id in succ]

    def to_phases(self) -> List[List[str]]:
        in_degree = dict(self._in_degree)
        phases: List[List[str]] = []
        ready = [n for n, d in in_degree.items() if d == 0]
        resolved = 0
        while ready:
            phases.append(ready)
            resolved += len(ready)
            released: set[str] = set()
            for n in ready:
                for nxt in self._succ[n]:
                    in_degree[nxt] -= 1
                    if in_degree[nxt] == 0:
                        released.add(nxt)
            # ordre d'insertion pour la phase suivante
            ready = [n for n in in_degree if n in released]
        if resolved < len(in_degree):
            raise CycleError([n for n, d in in_degree.items() if d > 0])
        return phases
