"""Generic traversals over KInner terms.

Every traversal here keeps its own work stack instead of recursing, so
arbitrarily deep terms (long cons-lists, deeply nested configurations) are
processed without hitting the interpreter's recursion limit.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterable
from typing import TypeVar

from .sorts import KSort
from .terms import KApply, KInner, KLabel, KVariable, children, let_terms

A = TypeVar("A")

# ---------------------------------------------------------------------------
# Rebuilding traversals
# ---------------------------------------------------------------------------


def bottom_up(f: Callable[[KInner], KInner], kinner: KInner) -> KInner:
    """Apply ``f`` to every node, children first, rebuilding the term."""
    stack: list = [kinner, []]
    while True:
        done = stack[-1]
        term = stack[-2]
        subterms = children(term)
        if len(done) == len(subterms):
            stack.pop()
            stack.pop()
            term = f(let_terms(term, done))
            if not stack:
                return term
            stack[-1].append(term)
        else:
            stack.append(subterms[len(done)])
            stack.append([])


def top_down(f: Callable[[KInner], KInner], kinner: KInner) -> KInner:
    """Apply ``f`` to every node, parents first, then descend into the result."""
    stack: list = [f(kinner), []]
    while True:
        done = stack[-1]
        term = stack[-2]
        subterms = children(term)
        if len(done) == len(subterms):
            stack.pop()
            stack.pop()
            term = let_terms(term, done)
            if not stack:
                return term
            stack[-1].append(term)
        else:
            stack.append(f(subterms[len(done)]))
            stack.append([])


def bottom_up_with_summary(f: Callable[[KInner, list[A]], tuple[KInner, A]], kinner: KInner) -> tuple[KInner, A]:
    """Like bottom_up, but also fold a summary value upward.

    ``f`` receives the rebuilt node and the summaries of its children, and
    returns the new node together with its own summary.
    """
    stack: list = [kinner, [], []]
    while True:
        summaries = stack[-1]
        done = stack[-2]
        term = stack[-3]
        subterms = children(term)
        if len(done) == len(subterms):
            stack.pop()
            stack.pop()
            stack.pop()
            term, summary = f(let_terms(term, done), summaries)
            if not stack:
                return term, summary
            stack[-1].append(summary)
            stack[-2].append(term)
        else:
            stack.append(subterms[len(done)])
            stack.append([])
            stack.append([])


# ---------------------------------------------------------------------------
# Visiting
# ---------------------------------------------------------------------------


def collect(callback: Callable[[KInner], None], kinner: KInner) -> None:
    """Call ``callback`` on every node in pre-order."""
    stack: list[KInner] = [kinner]
    while stack:
        term = stack.pop()
        callback(term)
        stack.extend(reversed(children(term)))


def flatten_label(label: str, kast: KInner) -> list[KInner]:
    """Un-nest applications of ``label``: f(a, f(b, c)) gives [a, b, c]."""
    flat: list[KInner] = []
    stack: list[KInner] = [kast]
    while stack:
        term = stack.pop()
        if isinstance(term, KApply) and term.label.name == label:
            stack.extend(reversed(term.args))
        else:
            flat.append(term)
    return flat


def build_assoc(unit: KInner, label: str | KLabel, terms: Iterable[KInner]) -> KInner:
    """Right-associated chain of ``label`` over ``terms``, skipping ``unit``.

    Example: build_assoc(TRUE, "_andBool_", [a, TRUE, b]) gives _andBool_(a, b)
    """
    _label = KLabel(label) if isinstance(label, str) else label
    res: KInner | None = None
    for term in reversed(list(terms)):
        if term == unit:
            continue
        res = term if res is None else KApply(_label, (term, res))
    return unit if res is None else res


def build_cons(unit: KInner, label: str | KLabel, terms: Iterable[KInner]) -> KInner:
    """Cons-list of ``terms`` terminated by ``unit``; units are not skipped."""
    _label = KLabel(label) if isinstance(label, str) else label
    res = unit
    for term in reversed(list(terms)):
        res = KApply(_label, (term, res))
    return res


# ---------------------------------------------------------------------------
# Variables
# ---------------------------------------------------------------------------


def var_occurrences(term: KInner) -> dict[str, list[KVariable]]:
    """Every occurrence of every variable, grouped by name, in pre-order."""
    occurrences: dict[str, list[KVariable]] = {}

    def _var_occurrence(_term: KInner) -> None:
        if isinstance(_term, KVariable):
            occurrences.setdefault(_term.name, []).append(_term)

    collect(_var_occurrence, term)
    return occurrences


def count_vars(term: KInner) -> Counter[str]:
    counter: Counter[str] = Counter()
    for name, occurrences in var_occurrences(term).items():
        counter[name] = len(occurrences)
    return counter


def free_vars(kast: KInner) -> frozenset[str]:
    return frozenset(var_occurrences(kast))


def keep_vars_sorted(occurrences: dict[str, list[KVariable]]) -> dict[str, KVariable]:
    """Pick one representative per variable name.

    The representative keeps a sort only if every sorted occurrence agrees on
    it; conflicting or absent sorts give an unsorted variable.
    """
    occurrences_sorted: dict[str, KVariable] = {}
    for name, vs in occurrences.items():
        sort: KSort | None = None
        for v in vs:
            if v.sort is None:
                continue
            if sort is None:
                sort = v.sort
            elif sort != v.sort:
                sort = None
                break
        occurrences_sorted[name] = KVariable(name, sort)
    return occurrences_sorted
