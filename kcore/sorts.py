"""Sorts of the K AST.

A sort is an opaque name. Sorts compare by name only; parametric sorts
appear as label parameters (see KLabel), never inside KSort itself.
"""

from __future__ import annotations

from dataclasses import dataclass

from .kast import KAst


@dataclass(frozen=True)
class KSort(KAst):
    """A named sort.

    Example: KSort("Int"), KSort("GeneratedTopCell")
    """

    name: str


# ---------------------------------------------------------------------------
# Standard sorts
# ---------------------------------------------------------------------------

K = KSort("K")
KITEM = KSort("KItem")
GENERATED_TOP_CELL = KSort("GeneratedTopCell")
BOOL = KSort("Bool")
INT = KSort("Int")
