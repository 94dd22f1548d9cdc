"""Incremental transitive closure over a graph of type nodes, with rollback."""

from __future__ import annotations

import copy
from typing import Generic, Optional, Protocol, TypeVar


class NodeData(Protocol):
    """Data stored on each node."""

    def truncate(self, i: int) -> None:
        """Drop any references to nodes with index ``i`` or higher."""


class EdgeData(Protocol):
    """Data stored on each edge.

    Values are treated as immutable once stored; ``update`` is only called on a
    ``copy.copy`` of a stored value, so implementations whose ``update`` changes
    nested objects must make shallow copies independent (e.g. via ``__copy__``).
    """

    def update(self, other: EdgeData) -> bool:
        """Merge ``other`` into this value and return whether it changed."""

    def expand(self, hole: NodeData, ind: int) -> EdgeData:
        """Return the value for an edge derived through node ``ind``, leaving self unchanged."""


N = TypeVar("N", bound=NodeData)
E = TypeVar("E", bound=EdgeData)


class _Node(Generic[N, E]):
    __slots__ = ("data", "flows_from", "flows_to")

    def __init__(self, data: N) -> None:
        self.data = data
        self.flows_from: dict[int, E] = {}
        self.flows_to: dict[int, E] = {}

    def fix_and_truncate(self, i: int) -> None:
        self.data.truncate(i)
        self.flows_from = {k: v for k, v in self.flows_from.items() if k < i}
        self.flows_to = {k: v for k, v in self.flows_to.items() if k < i}


class Reachability(Generic[N, E]):
    """A graph kept transitively closed as edges are added.

    ``save`` marks a point to which ``revert`` can roll back nodes and edges.
    """

    def __init__(self) -> None:
        self._nodes: list[_Node[N, E]] = []
        # Nodes at or past this index are discarded on revert; 0 means no mark.
        self._rewind_mark = 0
        self._journal: list[tuple[int, int, Optional[E]]] = []

    def __len__(self) -> int:
        return len(self._nodes)

    def _node(self, i: int) -> _Node[N, E]:
        if not 0 <= i < len(self._nodes):
            raise IndexError(f"no node {i}")
        return self._nodes[i]

    def get(self, i: int) -> N:
        """Return the data of node ``i``."""
        return self._node(i).data

    def set_data(self, i: int, data: N) -> None:
        """Replace the data of node ``i``."""
        self._node(i).data = data

    def get_edge(self, lhs: int, rhs: int) -> Optional[E]:
        """Return the data of the edge lhs -> rhs, or None if there is none."""
        if not 0 <= lhs < len(self._nodes):
            return None
        return self._nodes[lhs].flows_to.get(rhs)

    def add_node(self, data: N) -> int:
        self._nodes.append(_Node(data))
        return len(self._nodes) - 1

    def _update_edge_value(self, lhs: int, rhs: int, val: E) -> None:
        old = self._nodes[lhs].flows_to.get(rhs)
        self._nodes[lhs].flows_to[rhs] = val
        self._nodes[rhs].flows_from[lhs] = val
        # Nodes at or past the mark vanish on revert, so only older edges need journaling.
        if lhs < self._rewind_mark and rhs < self._rewind_mark:
            self._journal.append((lhs, rhs, old))

    def add_edge(self, lhs: int, rhs: int, edge_val: E) -> list[tuple[int, int, E]]:
        """Add an edge and every edge it implies.

        Returns each edge that was added or whose value changed, with its new value.
        """
        out: list[tuple[int, int, E]] = []
        work = [(lhs, rhs, edge_val)]
        while work:
            lhs, rhs, edge_val = work.pop()
            left = self._node(lhs)
            right = self._node(rhs)
            old = left.flows_to.get(rhs)
            if old is not None:
                merged = copy.copy(old)
                if not merged.update(edge_val):
                    continue
                edge_val = merged
            self._update_edge_value(lhs, rhs, edge_val)

            via_left = edge_val.expand(left.data, lhs)
            work.extend((lhs2, rhs, via_left) for lhs2 in list(left.flows_from))

            via_right = edge_val.expand(right.data, rhs)
            work.extend((lhs, rhs2, via_right) for rhs2 in list(right.flows_to))

            out.append((lhs, rhs, edge_val))
        return out

    def save(self) -> None:
        """Mark the current state so that ``revert`` can return to it."""
        if self._rewind_mark != 0:
            raise RuntimeError("a save point is already set")
        self._rewind_mark = len(self._nodes)

    def revert(self) -> None:
        """Roll back to the last save point."""
        i = self._rewind_mark
        self._rewind_mark = 0
        del self._nodes[i:]

        while self._journal:
            lhs, rhs, val = self._journal.pop()
            if val is not None:
                self._nodes[lhs].flows_to[rhs] = val
                self._nodes[rhs].flows_from[lhs] = val
            else:
                self._nodes[lhs].flows_to.pop(rhs, None)
                self._nodes[rhs].flows_from.pop(lhs, None)

        for node in self._nodes:
            node.fix_and_truncate(i)

    def make_permanent(self) -> None:
        """Discard the save point, keeping all changes."""
        self._rewind_mark = 0
        self._journal.clear()