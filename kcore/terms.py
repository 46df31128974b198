"""Terms of the K AST.

A term (KInner) is one of:
  - KToken: a literal of a given sort
  - KVariable: a named, optionally sorted, variable
  - KApply: application of a label to arguments (cells are applications
    whose label is bracketed, e.g. <k>)
  - KAs: an alias binding a pattern to a variable
  - KRewrite: lhs => rhs
  - KSequence: an associative sequence with unit ".K"

All terms are immutable and compare structurally. Constructors accept plain
strings for sorts and labels and normalize them, so KApply("f", (x,)) and
KApply(KLabel("f"), (x,)) are the same term.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import assert_never

from .kast import KAst
from .sorts import KSort

# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KLabel(KAst):
    """A symbol name with (possibly empty) sort parameters.

    Example: KLabel("#Equals", (KSort("Int"), KSort("GeneratedTopCell")))
    """

    name: str
    params: tuple[KSort, ...] = ()

    def __post_init__(self) -> None:
        params = tuple(KSort(p) if isinstance(p, str) else p for p in self.params)
        object.__setattr__(self, "params", params)

    def apply(self, *args: KInner) -> KApply:
        return KApply(self, args)


# ---------------------------------------------------------------------------
# Term AST
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KToken(KAst):
    """A literal of a sort.

    Example: 42 : Int   KToken("42", INT)
    """

    token: str
    sort: KSort

    def __post_init__(self) -> None:
        if isinstance(self.sort, str):
            object.__setattr__(self, "sort", KSort(self.sort))


@dataclass(frozen=True)
class KVariable(KAst):
    """A variable, sorted or not.

    Names starting with "_" mark variables used at most once, names starting
    with "?" mark existentials of a claim's right-hand side.
    """

    name: str
    sort: KSort | None = None

    def __post_init__(self) -> None:
        if isinstance(self.sort, str):
            object.__setattr__(self, "sort", KSort(self.sort))

    def let_sort(self, sort: KSort | None) -> KVariable:
        return KVariable(self.name, sort)


@dataclass(frozen=True)
class KApply(KAst):
    """Application of a label to arguments.

    Example: f(x, a)   KApply("f", (KVariable("x"), KToken("a", K)))
    Example: <k> X </k>   KApply("<k>", (KVariable("X"),))
    """

    label: KLabel
    args: tuple[KInner, ...] = ()

    def __post_init__(self) -> None:
        if isinstance(self.label, str):
            object.__setattr__(self, "label", KLabel(self.label))
        object.__setattr__(self, "args", tuple(self.args))

    @property
    def arity(self) -> int:
        return len(self.args)

    @property
    def is_cell(self) -> bool:
        name = self.label.name
        return len(name) > 1 and name[0] == "<" and name[-1] == ">"


@dataclass(frozen=True)
class KAs(KAst):
    """Pattern alias: ``pattern #as alias``."""

    pattern: KInner
    alias: KInner


@dataclass(frozen=True)
class KRewrite(KAst):
    """A rewrite ``lhs => rhs``."""

    lhs: KInner
    rhs: KInner


@dataclass(frozen=True)
class KSequence(KAst):
    """An associative sequence of computations, ``a ~> b ~> .K``.

    Nested sequences are flattened on construction, so
    KSequence((a, KSequence((b, c)))) == KSequence((a, b, c)).
    """

    items: tuple[KInner, ...] = ()

    def __post_init__(self) -> None:
        items: list[KInner] = []
        for item in self.items:
            if isinstance(item, KSequence):
                items.extend(item.items)
            else:
                items.append(item)
        object.__setattr__(self, "items", tuple(items))

    @property
    def arity(self) -> int:
        return len(self.items)


# Union of all term forms
type KInner = KToken | KVariable | KApply | KAs | KRewrite | KSequence


# ---------------------------------------------------------------------------
# Structural access
# ---------------------------------------------------------------------------


def children(term: KInner) -> tuple[KInner, ...]:
    """Immediate subterms, left to right."""
    match term:
        case KToken() | KVariable():
            return ()
        case KApply(args=args):
            return args
        case KAs(pattern=pattern, alias=alias):
            return (pattern, alias)
        case KRewrite(lhs=lhs, rhs=rhs):
            return (lhs, rhs)
        case KSequence(items=items):
            return items
        case _:
            assert_never(term)


def let_terms(term: KInner, terms: Iterable[KInner]) -> KInner:
    """Rebuild ``term`` with new immediate subterms.

    Returns ``term`` itself when every new child is the very same object as
    the old one.
    """
    new = tuple(terms)
    old = children(term)
    if len(new) == len(old) and all(a is b for a, b in zip(new, old)):
        return term
    match term:
        case KToken() | KVariable():
            return term
        case KApply(label=label):
            return KApply(label, new)
        case KAs():
            pattern, alias = new
            return KAs(pattern, alias)
        case KRewrite():
            lhs, rhs = new
            return KRewrite(lhs, rhs)
        case KSequence():
            return KSequence(new)
        case _:
            assert_never(term)
