"""Syntactic pattern matching.

match(pattern, term) finds a substitution S with S(pattern) == term, or
returns None. Variables of the pattern bind unconditionally; the term's own
variables are treated as constants.

Design principles:
- A failed match is None, never an exception.
- Bindings from sibling subterms are merged with Subst.union, so a variable
  occurring twice must match equal subterms.
- No print statements; all diagnostics go through logging.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import assert_never

from .subst import Subst
from .terms import KApply, KAs, KInner, KRewrite, KSequence, KToken, KVariable
from .traversal import free_vars

logger = logging.getLogger(__name__)


def match(pattern: KInner, term: KInner) -> Subst | None:
    """Match ``pattern`` against ``term``.

    Example: match(f(X, Y), f(a, b)) == Subst({"X": a, "Y": b})
    Example: match(f(X, X), f(X, a)) is None
    """
    match pattern:
        case KVariable(name=name):
            return Subst({name: term})
        case KToken(token=token, sort=sort):
            if isinstance(term, KToken) and term.token == token and term.sort == sort:
                return Subst()
            return None
        case KApply(label=label, args=args):
            if not isinstance(term, KApply) or term.label != label or term.arity != len(args):
                return None
            return combine_matches(match(p, t) for p, t in zip(args, term.args))
        case KAs(pattern=as_pattern, alias=alias):
            if not isinstance(term, KAs):
                return None
            return combine_matches([match(as_pattern, term.pattern), match(alias, term.alias)])
        case KRewrite(lhs=lhs, rhs=rhs):
            if not isinstance(term, KRewrite):
                return None
            return combine_matches([match(lhs, term.lhs), match(rhs, term.rhs)])
        case KSequence(items=items):
            if not isinstance(term, KSequence):
                return None
            return _match_sequence(items, term.items)
        case _:
            assert_never(pattern)


def combine_matches(matches: Iterable[Subst | None]) -> Subst | None:
    """Union a family of matches; None if any is None or two conflict."""
    combined = Subst()
    for m in matches:
        if m is None:
            return None
        union = combined.union(m)
        if union is None:
            logger.debug("Conflicting bindings: %s vs %s", combined, m)
            return None
        combined = union
    return combined


def _match_sequence(pattern: tuple[KInner, ...], term: tuple[KInner, ...]) -> Subst | None:
    if len(pattern) == len(term):
        return combine_matches(match(p, t) for p, t in zip(pattern, term))
    if 0 < len(pattern) < len(term) and isinstance(pattern[-1], KVariable):
        tail = pattern[-1]
        prefix = pattern[:-1]
        if any(tail.name in free_vars(p) for p in prefix):
            logger.debug("Tail variable %s reused in sequence pattern", tail.name)
            return None
        prefix_match = combine_matches(match(p, t) for p, t in zip(prefix, term))
        if prefix_match is None:
            return None
        return prefix_match.union(Subst({tail.name: KSequence(term[len(prefix) :])}))
    return None
