"""Conversions between matching-logic predicates and boolean terms.

Constraints of a symbolic configuration are kept in matching-logic form
(#Equals{Bool, _}(true, b) and friends). Reasoning about them is easier in
boolean form, so normalization goes predicate -> Bool -> simplified Bool ->
predicate:

    normalize_ml_pred(#Not(#Equals(X, Y)))  ==  #Equals(true, X =/=K Y)

Design principles:
- A predicate outside the convertible fragment raises PreconditionError,
  unless ``unsafe`` is set, in which case the offending subterm is
  abstracted into a fresh variable and a warning is logged.
- Simplification is a fixed rewrite table run to a fixpoint.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .errors import PreconditionError
from .helpers import FALSE, TRUE, and_bool, implies_bool, not_bool, or_bool
from .manip import abstract_term_safely
from .ml import (
    ML_AND,
    ML_BOTTOM,
    ML_CEIL,
    ML_EQUALS,
    ML_EXISTS,
    ML_IMPLIES,
    ML_LABELS,
    ML_NOT,
    ML_OR,
    ML_TOP,
    is_top,
    ml_and,
    ml_bottom,
    ml_equals_true,
    ml_top,
)
from .rewrite import apply_rewrite
from .sorts import GENERATED_TOP_CELL, INT, KSort
from .terms import KApply, KInner, KRewrite, KSequence, KToken, KVariable
from .traversal import collect, flatten_label

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Predicates to Bool
# ---------------------------------------------------------------------------


def is_term_like(kast: KInner) -> bool:
    """False if ``kast`` mentions a set variable (@X) or an ML connective."""
    non_term_found = False

    def _is_term_like(k: KInner) -> None:
        nonlocal non_term_found
        if isinstance(k, KVariable) and k.name.startswith("@"):
            non_term_found = True
        elif isinstance(k, KApply) and k.label.name in ML_LABELS:
            non_term_found = True

    collect(_is_term_like, kast)
    return not non_term_found


def ml_pred_to_bool(kast: KInner, unsafe: bool = False) -> KInner:
    """Translate a matching-logic predicate into a Bool term.

    Example: #And(#Equals(true, p), #Not(#Equals(X, a)))  gives  p andBool notBool (X ==K a)
    """

    def _ml_constraint_to_bool(_kast: KInner) -> KInner:
        if isinstance(_kast, KApply):
            name = _kast.label.name
            if name == ML_TOP:
                return TRUE
            if name == ML_BOTTOM:
                return FALSE
            if name == ML_NOT and len(_kast.args) == 1:
                return not_bool(_ml_constraint_to_bool(_kast.args[0]))
            if name == ML_AND:
                return and_bool(_ml_constraint_to_bool(arg) for arg in _kast.args)
            if name == ML_OR:
                return or_bool(_ml_constraint_to_bool(arg) for arg in _kast.args)
            if name == ML_IMPLIES and len(_kast.args) == 2:
                return implies_bool(_ml_constraint_to_bool(_kast.args[0]), _ml_constraint_to_bool(_kast.args[1]))
            if name == ML_EQUALS and len(_kast.args) == 2:
                first, second = _kast.args
                if first == TRUE:
                    return second
                if first == FALSE:
                    return not_bool(second)
                if second == TRUE:
                    return first
                if second == FALSE:
                    return not_bool(first)
                for operand in (first, second):
                    if isinstance(operand, (KVariable, KToken)):
                        if operand.sort == INT:
                            return KApply("_==Int_", (first, second))
                        return KApply("_==K_", (first, second))
                if isinstance(first, KSequence) and isinstance(second, KSequence) and first.arity == 1 and second.arity == 1:
                    return KApply("_==K_", (first.items[0], second.items[0]))
                if is_term_like(first) and is_term_like(second):
                    return KApply("_==K_", (first, second))
            if unsafe:
                if name == ML_EQUALS and len(_kast.args) == 2:
                    return KApply("_==K_", _kast.args)
                if name in (ML_CEIL, ML_EXISTS):
                    base = "Ceil" if name == ML_CEIL else "Exists"
                    new_var = abstract_term_safely(_kast, base_name=base)
                    logger.warning("Abstracting %s clause: %s -> %s", base, new_var.name, _kast)
                    return new_var
        raise PreconditionError(f"Could not convert ML predicate to sort Bool: {_kast}")

    return _ml_constraint_to_bool(kast)


# ---------------------------------------------------------------------------
# Bool to predicates
# ---------------------------------------------------------------------------


def bool_to_ml_pred(kast: KInner, sort: KSort = GENERATED_TOP_CELL) -> KInner:
    """Split a Bool conjunction into #Equals(true, _) predicates."""

    def _bool_constraint_to_ml(_kast: KInner) -> KInner:
        if _kast == TRUE:
            return ml_top(sort)
        if _kast == FALSE:
            return ml_bottom(sort)
        return ml_equals_true(_kast)

    return ml_and([_bool_constraint_to_ml(cond) for cond in flatten_label("_andBool_", kast)], sort)


# ---------------------------------------------------------------------------
# Bool simplification
# ---------------------------------------------------------------------------


def _b(name: str, *args: KInner) -> KApply:
    return KApply(name, args)


_B1 = KVariable("#B1")
_B2 = KVariable("#B2")
_REST = KVariable("#REST")

_SIMPLIFY_RULES: tuple[KRewrite, ...] = (
    KRewrite(_b("_==K_", _B1, TRUE), _B1),
    KRewrite(_b("_==K_", TRUE, _B1), _B1),
    KRewrite(_b("_==K_", _B1, FALSE), _b("notBool_", _B1)),
    KRewrite(_b("_==K_", FALSE, _B1), _b("notBool_", _B1)),
    KRewrite(_b("notBool_", FALSE), TRUE),
    KRewrite(_b("notBool_", TRUE), FALSE),
    KRewrite(_b("notBool_", _b("notBool_", _B1)), _B1),
    KRewrite(_b("notBool_", _b("_==K_", _B1, _B2)), _b("_=/=K_", _B1, _B2)),
    KRewrite(_b("notBool_", _b("_=/=K_", _B1, _B2)), _b("_==K_", _B1, _B2)),
    KRewrite(_b("notBool_", _b("_==Int_", _B1, _B2)), _b("_=/=Int_", _B1, _B2)),
    KRewrite(_b("notBool_", _b("_=/=Int_", _B1, _B2)), _b("_==Int_", _B1, _B2)),
    KRewrite(_b("_andBool_", TRUE, _REST), _REST),
    KRewrite(_b("_andBool_", _REST, TRUE), _REST),
    KRewrite(_b("_andBool_", FALSE, _REST), FALSE),
    KRewrite(_b("_andBool_", _REST, FALSE), FALSE),
    KRewrite(_b("_orBool_", FALSE, _REST), _REST),
    KRewrite(_b("_orBool_", _REST, FALSE), _REST),
    KRewrite(_b("_orBool_", TRUE, _REST), TRUE),
    KRewrite(_b("_orBool_", _REST, TRUE), TRUE),
)


def simplify_bool(k: KInner) -> KInner:
    """Apply the Bool simplification table until nothing changes.

    Example: simplify_bool(notBool (X ==Int 3) andBool true)  ==  X =/=Int 3
    """
    new_k = k
    while True:
        prev = new_k
        for rule in _SIMPLIFY_RULES:
            new_k = apply_rewrite(rule, new_k)
        if new_k == prev:
            return new_k


def normalize_ml_pred(pred: KInner) -> KInner:
    return bool_to_ml_pred(simplify_bool(ml_pred_to_bool(pred)))


# ---------------------------------------------------------------------------
# Constraint lists
# ---------------------------------------------------------------------------


def is_spurious_constraint(term: KInner) -> bool:
    """Reflexive equalities and (weak) #Top carry no information."""
    if isinstance(term, KApply) and term.label.name == ML_EQUALS and len(term.args) == 2 and term.args[0] == term.args[1]:
        return True
    return is_top(term, weak=True)


def normalize_constraints(constraints: Iterable[KInner]) -> tuple[KInner, ...]:
    """Flatten conjunctions, drop duplicates, drop spurious constraints."""
    flat = [c for constraint in constraints for c in flatten_label(ML_AND, constraint)]
    return tuple(c for c in dict.fromkeys(flat) if not is_spurious_constraint(c))
