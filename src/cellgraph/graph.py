"""Dependency graph between cells, kept acyclic on every edit."""

import logging
from collections import deque
from typing import AbstractSet, Iterable, Mapping

from cellgraph.errors import CycleError
from cellgraph.utils import id_sort_key

_NO_LINKS: frozenset[str] = frozenset()


def _format_links(links: Mapping[str, set[str]]) -> list[str]:
    return [
        f"{id:>4} : [{', '.join(sorted(links[id], key=id_sort_key))}]"
        for id in sorted(links, key=id_sort_key)
    ]


class DependencyGraph:
    """
    Tracks which cells each formula reads from.

    - `upstream[a]` holds the ids cell `a` reads from
    - `downstream[b]` holds the ids of the cells that read from `b`

    The two maps are exact inverses, and ids without links have no entry.
    """

    def __init__(self):
        self.upstream: dict[str, set[str]] = {}
        self.downstream: dict[str, set[str]] = {}

    def __str__(self) -> str:
        lines = ["Upstream Links:"]
        lines.extend(_format_links(self.upstream))
        lines.append("Downstream Links:")
        lines.extend(_format_links(self.downstream))
        return "\n".join(lines) + "\n"

    def __contains__(self, id: str) -> bool:
        return id in self.upstream or id in self.downstream

    def upstream_links(self, id: str) -> AbstractSet[str]:
        """Ids that `id` reads from, or an empty set. Callers must not mutate it."""
        return self.upstream.get(id, _NO_LINKS)

    def downstream_links(self, id: str) -> AbstractSet[str]:
        """Ids that read from `id`, or an empty set. Callers must not mutate it."""
        return self.downstream.get(id, _NO_LINKS)

    def remove(self, id: str) -> None:
        """Drop the upstream links of `id` and the matching downstream links."""
        upstream_ids = self.upstream.pop(id, None)
        if not upstream_ids:
            return
        for upstream_id in upstream_ids:
            dependents = self.downstream[upstream_id]
            dependents.discard(id)
            if not dependents:
                del self.downstream[upstream_id]

    def _link(self, id: str, upstream_ids: Iterable[str]) -> None:
        links = set(upstream_ids)
        if not links:
            return
        self.upstream[id] = links
        for upstream_id in links:
            self.downstream.setdefault(upstream_id, set()).add(id)

    def insert(self, id: str, upstream_ids: Iterable[str] | None) -> None:
        """
        Replace the upstream links of `id`.

        An empty or None `upstream_ids` leaves `id` without dependencies.
        If the new links close a cycle, the graph is restored to its previous
        state and a CycleError describing the cycle is raised.
        """
        previous = set(self.upstream.get(id, ()))
        self.remove(id)
        if not upstream_ids:
            return

        self._link(id, upstream_ids)
        cycle = self.find_cycle(self.upstream, id)
        if cycle is not None:
            self.remove(id)
            self._link(id, previous)
            logging.debug(f"Rejected links for {id}: cycle {cycle}")
            raise CycleError(" -> ".join(cycle), path=cycle)

    @staticmethod
    def find_cycle(links: Mapping[str, AbstractSet[str]], start: str) -> list[str] | None:
        """
        Depth-first search from `start` along `links`, looking for a path back
        to `start`.

        Returns the cycle as a list of ids beginning and ending with `start`,
        or None. Only a cycle through `start` is looked for: the rest of the
        graph is assumed acyclic, so a node whose neighbors have all been
        explored without success can be skipped when reached again.
        """
        path = [start]
        on_path = {start}
        exhausted: set[str] = set()
        # One iterator of unexplored neighbors per node on the path
        stack = [iter(sorted(links.get(start, ()), key=id_sort_key))]

        while stack:
            neighbor = next(stack[-1], None)
            if neighbor is None:
                stack.pop()
                done = path.pop()
                on_path.discard(done)
                exhausted.add(done)
                continue
            if neighbor == start:
                return path + [neighbor]
            if neighbor in on_path or neighbor in exhausted:
                continue
            path.append(neighbor)
            on_path.add(neighbor)
            stack.append(iter(sorted(links.get(neighbor, ()), key=id_sort_key)))

        return None

    def dependents_in_order(self, id: str) -> list[str]:
        """
        Every cell that transitively reads from `id`, each listed once, in an
        order where a cell always comes after the cells it reads from.
        """
        affected: set[str] = set()
        queue: deque[str] = deque([id])
        while queue:
            current = queue.popleft()
            for dependent in self.downstream.get(current, ()):
                if dependent not in affected:
                    affected.add(dependent)
                    queue.append(dependent)

        # Kahn's algorithm restricted to the affected cells
        in_degree = {
            cell: len(self.upstream.get(cell, _NO_LINKS) & affected) for cell in affected
        }
        ready = deque(sorted((c for c, d in in_degree.items() if d == 0), key=id_sort_key))
        order: list[str] = []
        while ready:
            cell = ready.popleft()
            order.append(cell)
            for dependent in sorted(self.downstream.get(cell, ()), key=id_sort_key):
                if dependent in in_degree:
                    in_degree[dependent] -= 1
                    if in_degree[dependent] == 0:
                        ready.append(dependent)

        return order
