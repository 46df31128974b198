"""Signatures: the symbol table of a K definition.

A signature records, for every symbol (label name), its production:

    _+Int_ : Int × Int → Int        (function)
    <k>    : K → KCell               (constructor)
    inj{S1, S2} : S1 → S2            (sort-parametric)

together with the direct subsort relation (Int < KItem, ...). Operations
that need sort information (anti-unification, defunctionalization) take a
Signature explicitly; there is no global definition.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

from .errors import ShapeError
from .sorts import K, KSort
from .terms import KApply, KInner, KLabel, KRewrite, KSequence, KToken, KVariable

# ---------------------------------------------------------------------------
# Productions
# ---------------------------------------------------------------------------


class SymbolKind(Enum):
    CONSTRUCTOR = "constructor"
    FUNCTION = "function"


@dataclass(frozen=True)
class Production:
    """The profile of a symbol.

    Examples:
        Production("_+Int_", KSort("Int"), (INT, INT), SymbolKind.FUNCTION)
        Production("inj", KSort("S2"), (KSort("S1"),), params=(KSort("S1"), KSort("S2")))
    """

    label: str
    sort: KSort
    arg_sorts: tuple[KSort, ...] = ()
    kind: SymbolKind = SymbolKind.CONSTRUCTOR
    params: tuple[KSort, ...] = ()

    @property
    def arity(self) -> int:
        return len(self.arg_sorts)

    @property
    def is_function(self) -> bool:
        return self.kind is SymbolKind.FUNCTION


# ---------------------------------------------------------------------------
# Signature
# ---------------------------------------------------------------------------

_EMPTY_SUBSORTS: Mapping[KSort, frozenset[KSort]] = MappingProxyType({})


@dataclass(frozen=True)
class Signature:
    """Productions keyed by symbol name, plus the direct subsort relation.

    ``subsort_table`` maps a sort to its direct subsorts.
    """

    productions: Mapping[str, Production]
    subsort_table: Mapping[KSort, frozenset[KSort]] = _EMPTY_SUBSORTS

    @staticmethod
    def of(productions: list[Production], subsorts: list[tuple[KSort, KSort]] | None = None) -> Signature:
        """Build a signature from a production list and (supersort, subsort) pairs."""
        table: dict[KSort, set[KSort]] = {}
        for supersort, subsort in subsorts or ():
            table.setdefault(supersort, set()).add(subsort)
        return Signature(
            productions=MappingProxyType({p.label: p for p in productions}),
            subsort_table=MappingProxyType({sup: frozenset(subs) for sup, subs in table.items()}),
        )

    def get_production(self, label: str) -> Production | None:
        return self.productions.get(label)

    @property
    def function_labels(self) -> frozenset[str]:
        return frozenset(label for label, prod in self.productions.items() if prod.is_function)

    def subsorts(self, sort: KSort) -> frozenset[KSort]:
        """All sorts strictly below ``sort``, transitively."""
        result: set[KSort] = set()
        pending = list(self.subsort_table.get(sort, ()))
        while pending:
            s = pending.pop()
            if s in result:
                continue
            result.add(s)
            pending.extend(self.subsort_table.get(s, ()))
        return frozenset(result)

    def resolve_sorts(self, label: KLabel) -> tuple[KSort, tuple[KSort, ...]]:
        """Result and argument sorts of ``label``, with sort parameters instantiated."""
        prod = self.productions.get(label.name)
        if prod is None:
            raise ShapeError(f"Unknown symbol: {label.name}")
        instantiation = dict(zip(prod.params, label.params))

        def _resolve(sort: KSort) -> KSort:
            return instantiation.get(sort, sort)

        return _resolve(prod.sort), tuple(_resolve(s) for s in prod.arg_sorts)

    def least_common_supersort(self, sort1: KSort, sort2: KSort) -> KSort | None:
        if sort1 == sort2:
            return sort1
        if sort1 in self.subsorts(sort2):
            return sort2
        if sort2 in self.subsorts(sort1):
            return sort1
        return None

    def greatest_common_subsort(self, sort1: KSort, sort2: KSort) -> KSort | None:
        if sort1 == sort2:
            return sort1
        if sort1 in self.subsorts(sort2):
            return sort1
        if sort2 in self.subsorts(sort1):
            return sort2
        return None

    def sort(self, kast: KInner) -> KSort | None:
        """Best-effort sort of a term; None when it cannot be determined."""
        match kast:
            case KToken(sort=sort):
                return sort
            case KVariable(sort=sort):
                return sort
            case KRewrite(lhs=lhs, rhs=rhs):
                lhs_sort = self.sort(lhs)
                rhs_sort = self.sort(rhs)
                if lhs_sort is not None and rhs_sort is not None:
                    return self.least_common_supersort(lhs_sort, rhs_sort)
                return None
            case KSequence():
                return K
            case KApply(label=label) if label.name in self.productions:
                sort, _ = self.resolve_sorts(label)
                return sort
            case _:
                return None

    def sort_strict(self, kast: KInner) -> KSort:
        sort = self.sort(kast)
        if sort is None:
            raise ShapeError(f"Could not determine sort of term: {kast}")
        return sort
