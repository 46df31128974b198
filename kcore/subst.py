"""Substitutions: finite maps from variable names to terms.

A Subst is immutable. Equality ignores insertion order; iteration and
display follow it.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from .errors import PreconditionError
from .sorts import BOOL
from .terms import KApply, KInner, KToken, KVariable
from .traversal import bottom_up, build_assoc, flatten_label, free_vars

_TRUE = KToken("true", BOOL)


@dataclass(frozen=True)
class Subst(Mapping[str, KInner]):
    """A mapping from variable names to terms.

    Example: Subst({"X": a}).apply(f(X, Y)) == f(a, Y)
    """

    _subst: Mapping[str, KInner]

    def __init__(self, subst: Mapping[str, KInner] = MappingProxyType({})):
        object.__setattr__(self, "_subst", MappingProxyType(dict(subst)))

    def __iter__(self) -> Iterator[str]:
        return iter(self._subst)

    def __len__(self) -> int:
        return len(self._subst)

    def __getitem__(self, key: str) -> KInner:
        return self._subst[key]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Subst):
            return NotImplemented
        return dict(self._subst) == dict(other._subst)

    def __hash__(self) -> int:
        return hash(frozenset(self._subst.items()))

    def __repr__(self) -> str:
        return f"Subst({dict(self._subst)!r})"

    def __call__(self, term: KInner) -> KInner:
        return self.apply(term)

    def __mul__(self, other: Subst) -> Subst:
        return self.compose(other)

    # -----------------------------------------------------------------------
    # Algebra
    # -----------------------------------------------------------------------

    def apply(self, term: KInner) -> KInner:
        """Replace every variable bound here by its value, in one pass."""
        if not self._subst:
            return term

        def replace(k: KInner) -> KInner:
            if isinstance(k, KVariable) and k.name in self._subst:
                return self._subst[k.name]
            return k

        return bottom_up(replace, term)

    def union(self, other: Subst) -> Subst | None:
        """Merge two substitutions; None if they bind a name differently."""
        subst = dict(self._subst)
        for name, value in other.items():
            if name in subst and subst[name] != value:
                return None
            subst[name] = value
        return Subst(subst)

    def compose(self, other: Subst) -> Subst:
        """The substitution equivalent to applying ``other`` then ``self``.

        Values of ``other`` get ``self`` applied; bindings of ``self`` for
        names ``other`` does not bind are carried over unchanged.
        """
        from_other = ((name, self(value)) for name, value in other.items())
        from_self = ((name, value) for name, value in self.items() if name not in other)
        return Subst(dict([*from_other, *from_self]))

    def minimize(self) -> Subst:
        """Drop identity bindings X |-> X."""
        return Subst({name: value for name, value in self.items() if not isinstance(value, KVariable) or value.name != name})

    def unapply(self, term: KInner) -> KInner:
        """Replace syntactic occurrences of each value by its variable.

        Bindings are processed in insertion order.
        """
        new_term = term
        for name, value in self.items():
            new_term = _replace(value, KVariable(name), new_term)
        return new_term

    @property
    def pred(self) -> KInner:
        """The non-identity bindings as a boolean conjunction of ``_==K_``."""
        conjuncts = [
            KApply("_==K_", (KVariable(name), value))
            for name, value in self.items()
            if not isinstance(value, KVariable) or value.name != name
        ]
        return build_assoc(_TRUE, "_andBool_", conjuncts)

    # -----------------------------------------------------------------------
    # Construction
    # -----------------------------------------------------------------------

    @staticmethod
    def from_pred(pred: KInner) -> Subst:
        """Read a conjunction of ``Var = term`` equalities as a substitution.

        Raises PreconditionError on a disjunction, on any conjunct that is
        not an #Equals with a variable operand, or on a variable occurring in
        its own value.
        """
        if isinstance(pred, KApply) and pred.label.name == "#Or":
            raise PreconditionError(f"Cannot convert disjunction to substitution: {pred}")
        subst: dict[str, KInner] = {}
        for conjunct in flatten_label("#And", pred):
            match conjunct:
                case KApply(label=label, args=(KVariable(name=name), value)) if label.name == "#Equals":
                    pass
                case KApply(label=label, args=(value, KVariable(name=name))) if label.name == "#Equals":
                    pass
                case _:
                    raise PreconditionError(f"Expected equality with a variable operand, found: {conjunct}")
            if value != KVariable(name) and name in free_vars(value):
                raise PreconditionError(f"Variable {name} occurs in its own value: {value}")
            subst[name] = value
        return Subst(subst)

    def to_dict(self) -> dict[str, Any]:
        return {name: value.to_dict() for name, value in self.items()}

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> Subst:
        from .serialization import term_from_json

        return Subst({name: term_from_json(value) for name, value in d.items()})


def _replace(lhs: KInner, rhs: KInner, term: KInner) -> KInner:
    def replace(k: KInner) -> KInner:
        return rhs if k == lhs else k

    return bottom_up(replace, term)
