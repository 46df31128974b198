"""Rule and claim synthesis.

Given an initial and a final symbolic state, build the K rule (or claim)
that rewrites one into the other:

    init:  <k> X ~> K </k>   <mem> M </mem>     requires X >Int 0
    final: <k> K </k>        <mem> M[X <- 1] </mem>

    rule <k> (X => .K) ~> _K </k> <mem> M => M[X <- 1] </mem> requires X >Int 0

Variables are renamed so the rule reads idiomatically: singletons get the
"_" marker, variables only the final state mentions get the "?" marker.
The returned Subst maps the new names back to the original variables.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .errors import ShapeError
from .helpers import and_bool
from .manip import abstract_term_safely, apply_existential_substitutions, minimize_term, push_down_rewrites
from .ml import ml_and, ml_equals
from .normalize import ml_pred_to_bool, normalize_ml_pred, simplify_bool
from .rule import LABEL, PRIORITY, KClaim, KRule
from .signature import Signature
from .sorts import GENERATED_TOP_CELL
from .subst import Subst
from .terms import KApply, KInner, KRewrite, KVariable
from .traversal import flatten_label, free_vars, keep_vars_sorted, top_down, var_occurrences

logger = logging.getLogger(__name__)


def defunctionalize(signature: Signature, kinner: KInner) -> tuple[KInner, list[KInner]]:
    """Abstract every function application into a variable plus an equation.

    Function symbols may not appear in rule left-hand sides, so
    ``f(X) +Int 1`` becomes ``F_xxxxxxxx`` with ``#Equals(F_xxxxxxxx, f(X) +Int 1)``.
    Raises ShapeError if the sort of an application cannot be determined.
    """
    function_labels = signature.function_labels
    constraints: list[KInner] = []

    def _defunctionalize(k: KInner) -> KInner:
        if isinstance(k, KApply) and k.label.name in function_labels:
            sort = signature.sort(k)
            if sort is None:
                raise ShapeError(f"Could not determine sort for: {k}")
            new_var = abstract_term_safely(k, "F", sort)
            constraints.append(ml_equals(new_var, k, arg_sort=sort))
            return new_var
        return k

    new_kinner = top_down(_defunctionalize, kinner)
    return new_kinner, list(dict.fromkeys(constraints))


def build_rule(
    rule_id: str,
    init_config: KInner,
    final_config: KInner,
    init_constraints: Iterable[KInner] = (),
    final_constraints: Iterable[KInner] = (),
    priority: int | None = None,
    keep_vars: Iterable[str] = (),
    defunc_with: Signature | None = None,
) -> tuple[KRule, Subst]:
    """Synthesize the rule taking ``init_config`` to ``final_config``.

    ``keep_vars`` names variables the caller intends to keep referring to;
    renaming is driven by occurrence counts alone, so they are renamed like
    any other variable and recovered through the returned Subst.
    """
    init_constraints = [normalize_ml_pred(c) for c in init_constraints]
    final_constraints = [normalize_ml_pred(c) for c in final_constraints]
    final_constraints = [c for c in final_constraints if c not in init_constraints]
    if defunc_with is not None:
        init_config, new_constraints = defunctionalize(defunc_with, init_config)
        init_constraints = init_constraints + new_constraints

    init_term = ml_and([init_config, *init_constraints])
    final_term = ml_and([final_config, *final_constraints])

    lhs_vars = free_vars(init_term)
    rhs_vars = free_vars(final_term)
    occurrences = var_occurrences(
        ml_and(
            [push_down_rewrites(KRewrite(init_config, final_config)), *init_constraints, *final_constraints],
            GENERATED_TOP_CELL,
        )
    )
    sorted_vars = keep_vars_sorted(occurrences)
    v_subst: dict[str, KVariable] = {}
    vremap_subst: dict[str, KVariable] = {}
    for v in occurrences:
        new_v = v
        if len(occurrences[v]) == 1:
            new_v = "_" + new_v
        if v in rhs_vars and v not in lhs_vars:
            new_v = "?" + new_v
        if new_v != v:
            v_subst[v] = KVariable(new_v, sorted_vars[v].sort)
            vremap_subst[new_v] = sorted_vars[v]
    logger.debug("Renaming for %s: %s (keeping %s)", rule_id, v_subst, list(keep_vars))

    subst = Subst(v_subst)
    new_init_config = subst(init_config)
    new_init_constraints = [subst(c) for c in init_constraints]
    new_final_config, new_final_constraints = apply_existential_substitutions(
        subst(final_config), [subst(c) for c in final_constraints]
    )

    rule_body = push_down_rewrites(KRewrite(new_init_config, new_final_config))
    rule_requires = simplify_bool(ml_pred_to_bool(ml_and(new_init_constraints)))
    rule_ensures = simplify_bool(ml_pred_to_bool(ml_and(new_final_constraints)))
    att = {LABEL: rule_id}
    if priority is not None:
        att[PRIORITY] = str(priority)
    rule = KRule(rule_body, requires=rule_requires, ensures=rule_ensures, att=att)
    return rule, Subst(vremap_subst)


def build_claim(
    claim_id: str,
    init_config: KInner,
    final_config: KInner,
    init_constraints: Iterable[KInner] = (),
    final_constraints: Iterable[KInner] = (),
    keep_vars: Iterable[str] = (),
) -> tuple[KClaim, Subst]:
    """Like build_rule, producing a claim."""
    rule, var_map = build_rule(
        claim_id, init_config, final_config, init_constraints, final_constraints, keep_vars=keep_vars
    )
    claim = KClaim(rule.body, requires=rule.requires, ensures=rule.ensures, att=rule.att)
    return claim, var_map


def minimize_rule_like[R: (KRule, KClaim)](rule: R, keep_vars: Iterable[str] = ()) -> R:
    """Simplify side conditions and elide configuration parts they do not mention."""
    requires = simplify_bool(and_bool(flatten_label("_andBool_", rule.requires)))
    ensures = simplify_bool(and_bool(flatten_label("_andBool_", rule.ensures)))
    constrained_vars = set(keep_vars) | free_vars(requires) | free_vars(ensures)
    body = minimize_term(rule.body, keep_vars=constrained_vars)
    return type(rule)(body, requires=requires, ensures=ensures, att=rule.att)
