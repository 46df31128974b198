"""Convenience constructors for building K terms concisely.

These make test code and term construction much more readable:

    app("f", var("X"), token("a", "K"))   instead of
    KApply(KLabel("f"), (KVariable("X"), KToken("a", KSort("K"))))

Also home to the Bool and Int prelude symbols used by normalization.
"""

from __future__ import annotations

from collections.abc import Iterable

from .sorts import BOOL, INT, K, KSort
from .terms import KApply, KInner, KToken, KVariable
from .traversal import build_assoc

# ---------------------------------------------------------------------------
# Terms
# ---------------------------------------------------------------------------


def var(name: str, sort: str | KSort | None = None) -> KVariable:
    """Create a variable, optionally sorted."""
    return KVariable(name, KSort(sort) if isinstance(sort, str) else sort)


def app(label: str, *args: KInner) -> KApply:
    """Create an application. Constants are app("c")."""
    return KApply(label, args)


def token(value: str, sort: str | KSort = K) -> KToken:
    return KToken(value, KSort(sort) if isinstance(sort, str) else sort)


# Placeholder for elided cell contents
DOTS = KToken("...", K)


# ---------------------------------------------------------------------------
# Bool
# ---------------------------------------------------------------------------

TRUE = KToken("true", BOOL)
FALSE = KToken("false", BOOL)


def bool_token(b: bool) -> KToken:
    return TRUE if b else FALSE


def and_bool(items: Iterable[KInner]) -> KInner:
    """Conjunction with duplicates removed; ``true`` when empty."""
    return build_assoc(TRUE, "_andBool_", _unique(items))


def or_bool(items: Iterable[KInner]) -> KInner:
    """Disjunction with duplicates removed; ``false`` when empty."""
    return build_assoc(FALSE, "_orBool_", _unique(items))


def not_bool(item: KInner) -> KApply:
    return KApply("notBool_", (item,))


def implies_bool(antecedent: KInner, consequent: KInner) -> KApply:
    return KApply("_impliesBool_", (antecedent, consequent))


def eq_k(lhs: KInner, rhs: KInner) -> KApply:
    return KApply("_==K_", (lhs, rhs))


def ne_k(lhs: KInner, rhs: KInner) -> KApply:
    return KApply("_=/=K_", (lhs, rhs))


# ---------------------------------------------------------------------------
# Int
# ---------------------------------------------------------------------------


def int_token(i: int) -> KToken:
    return KToken(str(i), INT)


def eq_int(i1: KInner, i2: KInner) -> KApply:
    return KApply("_==Int_", (i1, i2))


def ne_int(i1: KInner, i2: KInner) -> KApply:
    return KApply("_=/=Int_", (i1, i2))


def lt_int(i1: KInner, i2: KInner) -> KApply:
    return KApply("_<Int_", (i1, i2))


def le_int(i1: KInner, i2: KInner) -> KApply:
    return KApply("_<=Int_", (i1, i2))


def gt_int(i1: KInner, i2: KInner) -> KApply:
    return KApply("_>Int_", (i1, i2))


def ge_int(i1: KInner, i2: KInner) -> KApply:
    return KApply("_>=Int_", (i1, i2))


def _unique(items: Iterable[KInner]) -> list[KInner]:
    return list(dict.fromkeys(items))
