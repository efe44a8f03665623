"""Evaluation annotations collected while validating an instance.

The ``unevaluatedItems`` and ``unevaluatedProperties`` keywords need to know
which array items and object properties were already evaluated (validated
successfully) by other keywords, including keywords of in-place subschemas
such as ``allOf``. An :class:`Annotations` value records that information for
one schema applied to one instance. The ``format`` keyword produces no
annotations.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Annotations:
    """Items and properties evaluated by the keywords of a schema."""

    all_items: bool = False
    """Every item of the array was evaluated."""
    end_index: int = 0
    """One more than the largest index evaluated by ``prefixItems``."""
    evaluated_indexes: set[int] = field(default_factory=set)
    """Indexes evaluated by ``contains``."""
    all_properties: bool = False
    """Every property of the object was evaluated."""
    evaluated_properties: set[str] = field(default_factory=set)
    """Properties evaluated by the various object keywords."""

    def note_index(self, i: int) -> None:
        """Mark item ``i`` as evaluated."""
        self.evaluated_indexes.add(i)

    def note_end_index(self, end: int) -> None:
        """Mark every item with an index below ``end`` as evaluated."""
        if end > self.end_index:
            self.end_index = end

    def note_property(self, prop: str) -> None:
        """Mark ``prop`` as evaluated."""
        self.evaluated_properties.add(prop)

    def note_properties(self, props: Iterable[str]) -> None:
        """Mark every property in ``props`` as evaluated."""
        self.evaluated_properties.update(props)

    def merge(self, other: Optional[Annotations]) -> None:
        """Add the annotations of ``other`` to these."""
        if other is None:
            return
        if other.all_items:
            self.all_items = True
        if other.end_index > self.end_index:
            self.end_index = other.end_index
        self.evaluated_indexes.update(other.evaluated_indexes)
        if other.all_properties:
            self.all_properties = True
        self.evaluated_properties.update(other.evaluated_properties)