"""Applying KRewrite terms as rewrite rules."""

from __future__ import annotations

from collections.abc import Iterable

from .matching import match
from .terms import KApply, KInner, KRewrite, KToken
from .traversal import bottom_up


def apply_top(rewrite: KRewrite, term: KInner) -> KInner:
    """Rewrite ``term`` at the root if the left-hand side matches it."""
    subst = match(rewrite.lhs, term)
    if subst is None:
        return term
    return subst(rewrite.rhs)


def apply_rewrite(rewrite: KRewrite, term: KInner) -> KInner:
    """Rewrite every matching subterm, bottom-up, in a single pass."""
    return bottom_up(lambda k: apply_top(rewrite, k), term)


def replace(rewrite: KRewrite, term: KInner) -> KInner:
    """Replace subterms structurally equal to ``rewrite.lhs`` by ``rewrite.rhs``."""

    def _replace(k: KInner) -> KInner:
        return rewrite.rhs if k == rewrite.lhs else k

    return bottom_up(_replace, term)


def indexed_rewrite(kast: KInner, rewrites: Iterable[KRewrite]) -> KInner:
    """Apply ``rewrites`` bottom-up until nothing changes.

    Rewrites are indexed by the head of their left-hand side, so each node is
    only tried against the rules that could match it.
    """
    token_rewrites: list[KRewrite] = []
    apply_rewrites: dict[str, list[KRewrite]] = {}
    other_rewrites: list[KRewrite] = []
    for r in rewrites:
        match r.lhs:
            case KToken():
                token_rewrites.append(r)
            case KApply(label=label):
                apply_rewrites.setdefault(label.name, []).append(r)
            case _:
                other_rewrites.append(r)

    def _apply_rewrites(k: KInner) -> KInner:
        match k:
            case KToken():
                candidates = token_rewrites
            case KApply(label=label):
                candidates = apply_rewrites.get(label.name, [])
            case _:
                candidates = other_rewrites
        for r in candidates:
            k = apply_top(r, k)
        return k

    orig = kast
    new = bottom_up(_apply_rewrites, orig)
    while new != orig:
        orig = new
        new = bottom_up(_apply_rewrites, orig)
    return new
