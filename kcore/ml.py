"""Matching-logic connectives.

Every connective carries its sorts as label parameters. The result sort
defaults to GeneratedTopCell, the sort of whole configurations:

    ml_equals(X, a)   gives   #Equals{K, GeneratedTopCell}(X, a)
    ml_and([p, q])    gives   #And{GeneratedTopCell}(p, q)
"""

from __future__ import annotations

from collections.abc import Iterable

from .helpers import FALSE, TRUE
from .sorts import BOOL, GENERATED_TOP_CELL, K, KITEM, KSort
from .terms import KApply, KInner, KLabel, KVariable
from .traversal import build_assoc

ML_TOP = "#Top"
ML_BOTTOM = "#Bottom"
ML_NOT = "#Not"
ML_AND = "#And"
ML_OR = "#Or"
ML_IMPLIES = "#Implies"
ML_EQUALS = "#Equals"
ML_CEIL = "#Ceil"
ML_EXISTS = "#Exists"
ML_FORALL = "#Forall"

ML_LABELS = frozenset(
    {ML_TOP, ML_BOTTOM, ML_NOT, ML_AND, ML_OR, ML_IMPLIES, ML_EQUALS, ML_CEIL, ML_EXISTS, ML_FORALL}
)


def is_top(term: KInner, *, weak: bool = False) -> bool:
    """True for #Top. With ``weak``, any conjunction of #Top counts too."""
    if not isinstance(term, KApply):
        return False
    if term.label.name == ML_TOP:
        return True
    if weak and term.label.name == ML_AND:
        return all(is_top(arg, weak=True) for arg in term.args)
    return False


def is_bottom(term: KInner, *, weak: bool = False) -> bool:
    """True for #Bottom. With ``weak``, any conjunction containing #Bottom counts too."""
    if not isinstance(term, KApply):
        return False
    if term.label.name == ML_BOTTOM:
        return True
    if weak and term.label.name == ML_AND:
        return any(is_bottom(arg, weak=True) for arg in term.args)
    return False


def ml_top(sort: KSort = GENERATED_TOP_CELL) -> KApply:
    return KApply(KLabel(ML_TOP, (sort,)))


def ml_bottom(sort: KSort = GENERATED_TOP_CELL) -> KApply:
    return KApply(KLabel(ML_BOTTOM, (sort,)))


def ml_not(term: KInner, sort: KSort = GENERATED_TOP_CELL) -> KApply:
    return KApply(KLabel(ML_NOT, (sort,)), (term,))


def ml_and(conjuncts: Iterable[KInner], sort: KSort = GENERATED_TOP_CELL) -> KInner:
    """Right-nested conjunction; #Top conjuncts are dropped, #Top when empty."""
    filtered = [c for c in conjuncts if not is_top(c)]
    return build_assoc(ml_top(sort), KLabel(ML_AND, (sort,)), filtered)


def ml_or(disjuncts: Iterable[KInner], sort: KSort = GENERATED_TOP_CELL) -> KInner:
    """Right-nested disjunction; #Bottom disjuncts are dropped, #Bottom when empty."""
    filtered = [d for d in disjuncts if not is_bottom(d)]
    return build_assoc(ml_bottom(sort), KLabel(ML_OR, (sort,)), filtered)


def ml_implies(antecedent: KInner, consequent: KInner, sort: KSort = GENERATED_TOP_CELL) -> KApply:
    return KApply(KLabel(ML_IMPLIES, (sort,)), (antecedent, consequent))


def ml_equals(term1: KInner, term2: KInner, arg_sort: KSort = K, sort: KSort = GENERATED_TOP_CELL) -> KApply:
    return KApply(KLabel(ML_EQUALS, (arg_sort, sort)), (term1, term2))


def ml_equals_true(term: KInner) -> KApply:
    return ml_equals(TRUE, term, arg_sort=BOOL)


def ml_equals_false(term: KInner) -> KApply:
    return ml_equals(FALSE, term, arg_sort=BOOL)


def ml_ceil(term: KInner, arg_sort: KSort = GENERATED_TOP_CELL, sort: KSort = GENERATED_TOP_CELL) -> KApply:
    return KApply(KLabel(ML_CEIL, (arg_sort, sort)), (term,))


def ml_exists(var: KVariable, body: KInner, var_sort: KSort = KITEM, sort: KSort = GENERATED_TOP_CELL) -> KApply:
    return KApply(KLabel(ML_EXISTS, (var_sort, sort)), (var, body))
