"""Behavior shared by every serializable K AST entity."""

from __future__ import annotations

from functools import cached_property
from typing import Any


class KAst:
    """Mixin giving sorts, labels, terms and rules their dict/JSON forms.

    The canonical JSON text (sorted keys) is the identity of an entity across
    processes; ``hash`` is its SHA-256 digest, computed once per object.
    """

    def to_dict(self) -> dict[str, Any]:
        from .serialization import to_dict

        return to_dict(self)  # type: ignore[arg-type]

    def to_json(self) -> str:
        from .serialization import to_json

        return to_json(self)  # type: ignore[arg-type]

    @cached_property
    def hash(self) -> str:
        from .serialization import hash_str

        return hash_str(self.to_json())
