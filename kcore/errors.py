"""Exception taxonomy for kcore.

Three kinds of failure are distinguished:
  - ShapeError: a value does not have the structure an operation requires
    (a configuration that is not a cell, a wrong envelope version, ...)
  - PreconditionError: an algebraic operation was used outside its domain
    (a disjunction handed to Subst.from_pred, an unconvertible predicate)
  - AntiUnificationError: a generalization could not be matched back onto
    one of its inputs, which means an internal invariant is broken

A failed match is not an error: match() returns None.
"""

from __future__ import annotations


class KastError(Exception):
    """Base class for every error raised by kcore."""


class ShapeError(KastError, ValueError):
    """A term or document does not have the expected shape."""


class PreconditionError(KastError, ValueError):
    """An operation was applied to input outside its documented domain."""


class AntiUnificationError(KastError, AssertionError):
    """The generalization of two terms failed to match one of them."""
