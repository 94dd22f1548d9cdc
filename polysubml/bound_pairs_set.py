"""Sets of bound (left, right) source-location pairs with cheap flipping and sharing."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Optional

from polysubml.spans import Span


@dataclass(frozen=True, order=True)
class SourceLoc:
    """A distinct declaration of a polymorphic or recursive type in the source."""

    span: Span


@dataclass(frozen=True)
class VarSpec:
    """A type variable: the declaration it belongs to and its parameter name."""

    loc: SourceLoc
    name: str


class BoundPairsSet:
    """A partial map from left locations to right locations.

    The underlying mapping is never modified in place, so copies made by
    ``flip`` share it safely. A flipped set views every pair reversed.
    """

    def __init__(self) -> None:
        self._pairs: Optional[dict[SourceLoc, SourceLoc]] = None
        self._flipped = False

    @classmethod
    def _shared(cls, pairs: Optional[dict[SourceLoc, SourceLoc]], flipped: bool) -> BoundPairsSet:
        new = cls()
        new._pairs = pairs
        new._flipped = flipped
        return new

    def __repr__(self) -> str:
        return f"BoundPairsSet({sorted(self)!r})"

    def __iter__(self):
        for left, right in (self._pairs or {}).items():
            yield (right, left) if self._flipped else (left, right)

    def __len__(self) -> int:
        return len(self._pairs or {})

    def clear(self) -> None:
        self._pairs = None
        self._flipped = False

    def _mutate(self, change: Callable[[dict[SourceLoc, SourceLoc]], None]) -> bool:
        pairs = dict(self._pairs or {})
        change(pairs)
        new = pairs or None
        # Keep the existing mapping when nothing changed, so identity is preserved.
        if new != self._pairs:
            self._pairs = new
            return True
        return False

    @staticmethod
    def _keep_by_key(predicate: Callable[[SourceLoc], bool]):
        def change(pairs: dict[SourceLoc, SourceLoc]) -> None:
            for key in [k for k in pairs if not predicate(k)]:
                del pairs[key]

        return change

    @staticmethod
    def _keep_by_value(predicate: Callable[[SourceLoc], bool]):
        def change(pairs: dict[SourceLoc, SourceLoc]) -> None:
            for key in [k for k, v in pairs.items() if not predicate(v)]:
                del pairs[key]

        return change

    def filter_left(self, predicate: Callable[[SourceLoc], bool]) -> None:
        """Keep only the pairs whose left location satisfies the predicate."""
        if self._flipped:
            self._mutate(self._keep_by_value(predicate))
        else:
            self._mutate(self._keep_by_key(predicate))

    def filter_right(self, predicate: Callable[[SourceLoc], bool]) -> None:
        """Keep only the pairs whose right location satisfies the predicate."""
        if self._flipped:
            self._mutate(self._keep_by_key(predicate))
        else:
            self._mutate(self._keep_by_value(predicate))

    def push(self, pair: tuple[SourceLoc, SourceLoc]) -> None:
        """Add a pair, replacing any pair with the same left location."""
        left, right = pair
        if self._flipped:
            left, right = right, left

        def change(pairs: dict[SourceLoc, SourceLoc]) -> None:
            pairs[left] = right

        self._mutate(change)

    def flip(self) -> BoundPairsSet:
        """Return a set holding every pair reversed."""
        return self._shared(self._pairs, not self._flipped)

    def update_intersect(self, other: BoundPairsSet) -> bool:
        """Keep only pairs also present in ``other``; return whether anything changed."""
        if self._pairs is other._pairs and self._flipped == other._flipped:
            return False

        other_pairs = other._pairs
        if other_pairs is None:
            self.clear()
            return True

        if self._flipped != other._flipped:

            def change(pairs: dict[SourceLoc, SourceLoc]) -> None:
                for key in [k for k, v in pairs.items() if other_pairs.get(v) != k]:
                    del pairs[key]

        else:

            def change(pairs: dict[SourceLoc, SourceLoc]) -> None:
                for key in [k for k, v in pairs.items() if other_pairs.get(k) != v]:
                    del pairs[key]

        return self._mutate(change)

    def contains(self, loc1: SourceLoc, loc2: SourceLoc) -> bool:
        """Whether the pair (loc1, loc2) is in the set."""
        if self._pairs is None:
            return False
        if self._flipped:
            loc1, loc2 = loc2, loc1
        return self._pairs.get(loc1) == loc2

    def disjoint_union_vars_have_match(self, lhs: Iterable[VarSpec], rhs: Iterable[VarSpec]) -> bool:
        """Whether some pair (a, b) has a variable named n at a in lhs and at b in rhs."""
        if self._flipped:
            lhs, rhs = rhs, lhs
        if self._pairs is None:
            return False
        rhs_set = set(rhs)
        for spec in lhs:
            loc2 = self._pairs.get(spec.loc)
            if loc2 is not None and VarSpec(loc2, spec.name) in rhs_set:
                return True
        return False