"""Constrained terms: symbolic program states.

A CTerm is a configuration (a cell application such as <generatedTop>)
together with a set of matching-logic constraints on its variables. The
pair #Top / #Bottom stand for "any state" and "no state".

A CSubst is the witness that one CTerm is an instance of another: a
substitution for the configuration plus the constraints the instance adds.

Design principles:
- Constraints are normalized on construction (flattened, deduplicated,
  trivially-true ones dropped) and ordered canonically, so equal states
  compare equal regardless of how they were built.
- Anti-unification must produce a generalization that matches both inputs;
  if it does not, AntiUnificationError is raised.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from functools import cached_property
from typing import Any

from .errors import AntiUnificationError, ShapeError
from .helpers import TRUE, and_bool, or_bool
from .manip import (
    abstract_term_safely,
    extract_subst,
    push_down_rewrites,
    remove_useless_constraints,
    split_config_and_constraints,
    split_config_from,
)
from .matching import match
from .ml import is_bottom, is_top, ml_and, ml_bottom, ml_equals, ml_equals_true, ml_top
from .normalize import ml_pred_to_bool, normalize_constraints
from .rule import KClaim, KRule
from .serialization import term_from_json
from .signature import Signature
from .sorts import GENERATED_TOP_CELL, K, KSort
from .subst import Subst
from .synthesis import build_claim, build_rule
from .terms import KApply, KInner, KRewrite, KVariable
from .traversal import bottom_up, free_vars

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# CTerm
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CTerm:
    """A configuration with constraints.

    Example: CTerm(<k>(X), [#Equals(true, X >=Int 0)])
    """

    config: KInner
    constraints: tuple[KInner, ...]

    def __init__(self, config: KInner, constraints: Iterable[KInner] = ()) -> None:
        if is_top(config, weak=True):
            config = ml_top()
            constraints = ()
        elif is_bottom(config, weak=True):
            config = ml_bottom()
            constraints = ()
        else:
            if not (isinstance(config, KApply) and config.is_cell):
                raise ShapeError(f"Expected cell label, found: {config}")
            constraints = _canonical_order(normalize_constraints(constraints))
        object.__setattr__(self, "config", config)
        object.__setattr__(self, "constraints", tuple(constraints))

    @staticmethod
    def top() -> CTerm:
        return CTerm(ml_top(), ())

    @staticmethod
    def bottom() -> CTerm:
        return CTerm(ml_bottom(), ())

    @staticmethod
    def from_kast(kast: KInner) -> CTerm:
        """Read a pattern ``config #And c1 #And ...`` as a CTerm."""
        if is_top(kast, weak=True):
            return CTerm.top()
        if is_bottom(kast, weak=True):
            return CTerm.bottom()
        config, constraint = split_config_and_constraints(kast)
        return CTerm(config, [constraint])

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> CTerm:
        return CTerm(term_from_json(d["config"]), [term_from_json(c) for c in d.get("constraints", ())])

    def to_dict(self) -> dict[str, Any]:
        return {"config": self.config.to_dict(), "constraints": [c.to_dict() for c in self.constraints]}

    def __iter__(self) -> Iterator[KInner]:
        yield self.config
        yield from self.constraints

    @property
    def is_bottom(self) -> bool:
        return is_bottom(self.config, weak=True) or any(is_bottom(c, weak=True) for c in self.constraints)

    @property
    def kast(self) -> KInner:
        return ml_and(self, GENERATED_TOP_CELL)

    @property
    def constraint(self) -> KInner:
        return ml_and(self.constraints, GENERATED_TOP_CELL)

    @property
    def free_vars(self) -> frozenset[str]:
        return free_vars(self.kast)

    @cached_property
    def hash(self) -> str:
        return self.kast.hash

    @property
    def cells(self) -> Subst:
        _, subst = split_config_from(self.config)
        return Subst(subst)

    def cell(self, cell: str) -> KInner:
        return self.cells[cell]

    def try_cell(self, cell: str) -> KInner | None:
        return self.cells.get(cell)

    def add_constraint(self, new_constraint: KInner) -> CTerm:
        return CTerm(self.config, [*self.constraints, new_constraint])

    # -----------------------------------------------------------------------
    # Matching
    # -----------------------------------------------------------------------

    def match(self, cterm: CTerm) -> Subst | None:
        """Substitution instantiating ``self`` into ``cterm``, if the constraints add nothing."""
        csubst = self.match_with_constraint(cterm)
        if csubst is None:
            return None
        if csubst.constraint != ml_top(GENERATED_TOP_CELL):
            return None
        return csubst.subst

    def match_with_constraint(self, cterm: CTerm) -> CSubst | None:
        """Match the configurations; the residual is every constraint of
        ``cterm`` not already implied syntactically by ``self``'s."""
        subst = match(self.config, cterm.config)
        if subst is None:
            return None
        source_constraints = [subst(c) for c in self.constraints]
        constraints = [c for c in cterm.constraints if c not in source_constraints]
        return CSubst(subst, constraints)

    def remove_useless_constraints(self, keep_vars: Iterable[str] = ()) -> CTerm:
        """Drop constraints not connected to the configuration's variables."""
        initial_vars = free_vars(self.config) | set(keep_vars)
        new_constraints = remove_useless_constraints(self.constraints, initial_vars)
        return CTerm(self.config, new_constraints)

    # -----------------------------------------------------------------------
    # Generalization
    # -----------------------------------------------------------------------

    def anti_unify(
        self, other: CTerm, keep_values: bool = False, signature: Signature | None = None
    ) -> tuple[CTerm, CSubst, CSubst]:
        """Most specific CTerm that both ``self`` and ``other`` are instances of.

        Constraints shared by both sides are kept when they still talk about
        the generalized configuration. With ``keep_values``, a disjunction
        recording which side's values (and side-specific constraints) hold is
        added as well.
        """
        new_config, self_subst, other_subst = anti_unify(self.config, other.config, signature)
        common_constraints = [c for c in self.constraints if c in other.constraints]

        new_cterm = CTerm(new_config, ())
        if keep_values:
            self_unique = [ml_pred_to_bool(c) for c in self.constraints if c not in other.constraints]
            other_unique = [ml_pred_to_bool(c) for c in other.constraints if c not in self.constraints]
            disjunct_lhs = and_bool([self_subst.pred, *self_unique])
            disjunct_rhs = and_bool([other_subst.pred, *other_unique])
            if TRUE not in (disjunct_lhs, disjunct_rhs):
                new_cterm = new_cterm.add_constraint(ml_equals_true(or_bool([disjunct_lhs, disjunct_rhs])))

        new_constraints = remove_useless_constraints(common_constraints, new_cterm.free_vars)
        for constraint in new_constraints:
            new_cterm = new_cterm.add_constraint(constraint)

        self_csubst = new_cterm.match_with_constraint(self)
        other_csubst = new_cterm.match_with_constraint(other)
        if self_csubst is None or other_csubst is None:
            raise AntiUnificationError(
                f"Anti-unification failed to produce a more general state: {(new_cterm, (self, self_csubst), (other, other_csubst))}"
            )
        return new_cterm, self_csubst, other_csubst


def _canonical_order(constraints: Iterable[KInner]) -> tuple[KInner, ...]:
    def _key(c: KInner) -> tuple[int, str]:
        text = c.to_json()
        return len(text), text

    return tuple(sorted(constraints, key=_key))


def anti_unify(state1: KInner, state2: KInner, signature: Signature | None = None) -> tuple[KInner, Subst, Subst]:
    """Generalize two terms: replace every point of difference by a variable.

    Returns the generalization and the substitutions recovering each input.
    """

    def _rewrites_to_abstractions(k: KInner) -> KInner:
        if isinstance(k, KRewrite):
            sort = signature.sort(k) if signature is not None else None
            return abstract_term_safely(k, sort=sort)
        return k

    minimized_rewrite = push_down_rewrites(KRewrite(state1, state2))
    abstracted_state = bottom_up(_rewrites_to_abstractions, minimized_rewrite)
    subst1 = match(abstracted_state, state1)
    subst2 = match(abstracted_state, state2)
    if subst1 is None or subst2 is None:
        raise AntiUnificationError("Anti-unification failed to produce a more general state!")
    return abstracted_state, subst1, subst2


def cterms_anti_unify(
    cterms: Iterable[CTerm], keep_values: bool = False, signature: Signature | None = None
) -> tuple[CTerm, list[CSubst]]:
    """Generalize a non-empty family of CTerms pairwise, left to right.

    Returns the generalization and, for every input, the CSubst recovering it.
    """
    cterms = list(cterms)
    if not cterms:
        raise ValueError("Anti-unification requires at least one CTerm")
    merged = cterms[0]
    for cterm in cterms[1:]:
        merged, _, _ = merged.anti_unify(cterm, keep_values=keep_values, signature=signature)
    csubsts = []
    for cterm in cterms:
        csubst = merged.match_with_constraint(cterm)
        if csubst is None:
            raise AntiUnificationError(f"Generalization does not match input: {cterm}")
        csubsts.append(csubst)
    logger.debug("Anti-unified %d states into %s", len(cterms), merged.hash[0:8])
    return merged, csubsts


# ---------------------------------------------------------------------------
# CSubst
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CSubst:
    """A substitution together with the constraints an instance adds."""

    subst: Subst
    constraints: tuple[KInner, ...]

    def __init__(self, subst: Subst | None = None, constraints: Iterable[KInner] = ()) -> None:
        object.__setattr__(self, "subst", subst if subst is not None else Subst())
        object.__setattr__(self, "constraints", normalize_constraints(constraints))

    def __iter__(self) -> Iterator[Subst | KInner]:
        yield self.subst
        yield from self.constraints

    @staticmethod
    def from_pred(pred: KInner) -> CSubst:
        """Extract the equalities of ``pred`` as bindings; the rest become constraints."""
        subst, pred = extract_subst(pred)
        return CSubst(subst=subst, constraints=[pred])

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> CSubst:
        return CSubst(
            subst=Subst.from_dict(d.get("subst", {})),
            constraints=[term_from_json(c) for c in d.get("constraints", ())],
        )

    def to_dict(self) -> dict[str, Any]:
        return {"subst": self.subst.to_dict(), "constraints": [c.to_dict() for c in self.constraints]}

    def pred(self, sort_with: Signature | None = None, subst: bool = True, constraints: bool = True) -> KInner:
        """The bindings as #Equals predicates conjoined with the constraints."""
        preds: list[KInner] = []
        if subst:
            for k, v in self.subst.minimize().items():
                sort: KSort = K
                if sort_with is not None:
                    _sort = sort_with.sort(v)
                    sort = _sort if _sort is not None else K
                preds.append(ml_equals(KVariable(k, sort=sort), v, arg_sort=sort))
        if constraints:
            preds.extend(self.constraints)
        return ml_and(preds)

    @property
    def constraint(self) -> KInner:
        return ml_and(self.constraints)

    def add_constraint(self, constraint: KInner) -> CSubst:
        return CSubst(self.subst, [*self.constraints, constraint])

    def apply(self, cterm: CTerm) -> CTerm:
        config = self.subst(cterm.config)
        constraints = [self.subst(c) for c in cterm.constraints] + list(self.constraints)
        return CTerm(config, constraints)

    def __call__(self, cterm: CTerm) -> CTerm:
        return self.apply(cterm)


# ---------------------------------------------------------------------------
# Rule synthesis from states
# ---------------------------------------------------------------------------


def cterm_build_rule(
    rule_id: str,
    init_cterm: CTerm,
    final_cterm: CTerm,
    priority: int | None = None,
    keep_vars: Iterable[str] = (),
    signature: Signature | None = None,
) -> tuple[KRule, Subst]:
    return build_rule(
        rule_id,
        init_cterm.config,
        final_cterm.config,
        init_cterm.constraints,
        final_cterm.constraints,
        priority=priority,
        keep_vars=keep_vars,
        defunc_with=signature,
    )


def cterm_build_claim(claim_id: str, init_cterm: CTerm, final_cterm: CTerm) -> tuple[KClaim, Subst]:
    return build_claim(claim_id, init_cterm.config, final_cterm.config, init_cterm.constraints, final_cterm.constraints)
