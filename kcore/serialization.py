"""JSON serialization for the K AST.

Every node is a JSON object discriminated by a "node" field:

  {"node": "KVariable", "name": "X", "sort": {"node": "KSort", "name": "Int"}}
  {"node": "KApply", "label": {...}, "args": [...], "arity": 2, "variable": false}

The canonical text form sorts keys, so equal terms always serialize to the
same string; hashes are taken over that string. Whole documents are wrapped
in a versioned envelope: {"format": "KAST", "version": 3, "term": ...}.

Both directions are iterative: serializing goes through
bottom_up_with_summary and term_from_json keeps its own stack, so deep
terms do not exhaust the recursion limit.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from typing import Any

from .errors import ShapeError
from .rule import KClaim, KRule
from .sorts import KSort
from .terms import KApply, KAs, KInner, KLabel, KRewrite, KSequence, KToken, KVariable
from .traversal import bottom_up_with_summary

KAST_FORMAT = "KAST"
KAST_VERSION = 3

# ---------------------------------------------------------------------------
# Sorts and labels
# ---------------------------------------------------------------------------


def sort_to_json(s: KSort) -> dict[str, Any]:
    return {"node": "KSort", "name": s.name}


def sort_from_json(d: Mapping[str, Any]) -> KSort:
    _check_node(d, "KSort")
    return KSort(d["name"])


def label_to_json(lbl: KLabel) -> dict[str, Any]:
    return {"node": "KLabel", "name": lbl.name, "params": [sort_to_json(p) for p in lbl.params]}


def label_from_json(d: Mapping[str, Any]) -> KLabel:
    _check_node(d, "KLabel")
    return KLabel(d["name"], tuple(sort_from_json(p) for p in d.get("params", ())))


# ---------------------------------------------------------------------------
# Terms
# ---------------------------------------------------------------------------


def _node_to_json(t: KInner, children: list[dict[str, Any]]) -> tuple[KInner, dict[str, Any]]:
    match t:
        case KToken(token=token, sort=sort):
            return t, {"node": "KToken", "token": token, "sort": sort_to_json(sort)}
        case KVariable(name=name, sort=sort):
            d: dict[str, Any] = {"node": "KVariable", "name": name}
            if sort is not None:
                d["sort"] = sort_to_json(sort)
            return t, d
        case KApply(label=label):
            return t, {
                "node": "KApply",
                "label": label_to_json(label),
                "args": children,
                "arity": len(children),
                "variable": False,
            }
        case KAs():
            return t, {"node": "KAs", "pattern": children[0], "alias": children[1]}
        case KRewrite():
            return t, {"node": "KRewrite", "lhs": children[0], "rhs": children[1]}
        case KSequence():
            return t, {"node": "KSequence", "items": children, "arity": len(children)}
        case _:
            raise TypeError(f"Unknown term type: {type(t)}")


def term_to_json(t: KInner) -> dict[str, Any]:
    _, d = bottom_up_with_summary(_node_to_json, t)
    return d


def _json_children(d: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    node = d.get("node")
    match node:
        case "KToken" | "KVariable":
            return []
        case "KApply":
            return d["args"]
        case "KAs":
            return [d["pattern"], d["alias"]]
        case "KRewrite":
            return [d["lhs"], d["rhs"]]
        case "KSequence":
            return d["items"]
        case _:
            raise ShapeError(f"Unknown term node: {node!r}")


def _node_from_json(d: Mapping[str, Any], children: list[KInner]) -> KInner:
    match d["node"]:
        case "KToken":
            return KToken(d["token"], sort_from_json(d["sort"]))
        case "KVariable":
            sort = sort_from_json(d["sort"]) if d.get("sort") is not None else None
            return KVariable(d["name"], sort)
        case "KApply":
            return KApply(label_from_json(d["label"]), tuple(children))
        case "KAs":
            pattern, alias = children
            return KAs(pattern, alias)
        case "KRewrite":
            lhs, rhs = children
            return KRewrite(lhs, rhs)
        case _:
            return KSequence(tuple(children))


def term_from_json(d: Mapping[str, Any]) -> KInner:
    """Rebuild a term from its dict form, children first, on an explicit stack."""
    stack: list = [d, []]
    while True:
        done = stack[-1]
        node = stack[-2]
        subdicts = _json_children(node)
        if len(done) == len(subdicts):
            stack.pop()
            stack.pop()
            term = _node_from_json(node, done)
            if not stack:
                return term
            stack[-1].append(term)
        else:
            stack.append(subdicts[len(done)])
            stack.append([])


# ---------------------------------------------------------------------------
# Rules and claims
# ---------------------------------------------------------------------------


def rule_to_json(r: KRule | KClaim) -> dict[str, Any]:
    return {
        "node": type(r).__name__,
        "body": term_to_json(r.body),
        "requires": term_to_json(r.requires),
        "ensures": term_to_json(r.ensures),
        "att": dict(r.att),
    }


def rule_from_json(d: Mapping[str, Any]) -> KRule | KClaim:
    node = d.get("node")
    match node:
        case "KRule":
            cls: type[KRule] | type[KClaim] = KRule
        case "KClaim":
            cls = KClaim
        case _:
            raise ShapeError(f"Expected KRule or KClaim, got: {node!r}")
    return cls(
        body=term_from_json(d["body"]),
        requires=term_from_json(d["requires"]),
        ensures=term_from_json(d["ensures"]),
        att=dict(d.get("att", {})),
    )


# ---------------------------------------------------------------------------
# Generic entry points
# ---------------------------------------------------------------------------


def to_dict(x: KSort | KLabel | KInner | KRule | KClaim) -> dict[str, Any]:
    match x:
        case KSort():
            return sort_to_json(x)
        case KLabel():
            return label_to_json(x)
        case KRule() | KClaim():
            return rule_to_json(x)
        case _:
            return term_to_json(x)


def from_dict(d: Mapping[str, Any]) -> KSort | KLabel | KInner | KRule | KClaim:
    match d.get("node"):
        case "KSort":
            return sort_from_json(d)
        case "KLabel":
            return label_from_json(d)
        case "KRule" | "KClaim":
            return rule_from_json(d)
        case _:
            return term_from_json(d)


def to_json(x: KSort | KLabel | KInner | KRule | KClaim) -> str:
    """Canonical JSON text: sorted keys, no extra whitespace."""
    return json.dumps(to_dict(x), sort_keys=True, separators=(",", ":"))


def hash_str(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def kast_term(envelope: Mapping[str, Any]) -> KInner:
    """Unwrap a versioned KAST document."""
    if envelope.get("format") != KAST_FORMAT:
        raise ShapeError(f"Invalid format: {envelope.get('format')!r}")
    if envelope.get("version") != KAST_VERSION:
        raise ShapeError(f"Expected KAST version {KAST_VERSION}, found: {envelope.get('version')!r}")
    return term_from_json(envelope["term"])


def dumps(t: KInner, indent: int = 2) -> str:
    """Serialize a term wrapped in a KAST envelope."""
    return json.dumps({"format": KAST_FORMAT, "version": KAST_VERSION, "term": term_to_json(t)}, indent=indent)


def loads(s: str) -> KInner:
    """Deserialize a term from a KAST envelope."""
    return kast_term(json.loads(s))


def _check_node(d: Mapping[str, Any], expected: str) -> None:
    if d.get("node") != expected:
        raise ShapeError(f"Expected {expected} node, got: {d.get('node')!r}")
