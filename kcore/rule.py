"""Rules and claims: the output of rule synthesis.

A rule (or claim) is a body term containing rewrites, a boolean side
condition (requires), a boolean post condition (ensures), and attributes.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from .kast import KAst
from .sorts import BOOL
from .terms import KInner, KToken

LABEL = "label"
PRIORITY = "priority"
DEFAULT_PRIORITY = 50


@dataclass(frozen=True)
class _RuleLike(KAst):
    body: KInner
    requires: KInner = KToken("true", BOOL)
    ensures: KInner = KToken("true", BOOL)
    att: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}), hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "att", MappingProxyType(dict(self.att)))

    @property
    def label(self) -> str | None:
        return self.att.get(LABEL)

    def update_atts(self, atts: Mapping[str, str]):
        return type(self)(self.body, self.requires, self.ensures, {**self.att, **atts})


@dataclass(frozen=True)
class KRule(_RuleLike):
    """A rewrite rule.

    Example: rule <k> X => X +Int 1 </k> requires X >Int 0 [label(inc)]
    """

    @property
    def priority(self) -> int:
        return int(self.att.get(PRIORITY, DEFAULT_PRIORITY))


@dataclass(frozen=True)
class KClaim(_RuleLike):
    """A reachability claim to be proven."""
