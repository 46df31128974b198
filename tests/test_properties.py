"""
Property-based tests for matching, substitutions and generalization.

The core claims:
    - Soundness:     if match(P, T) = σ then σ(P) == T
    - Completeness:  match(P, σ(P)) succeeds for every substitution σ
    - Union:         union of disjointly-keyed substitutions is commutative
    - Inverse:       unapply undoes apply when values are fresh and distinct
    - Generality:    anti_unify(A, B) = (G, σ1, σ2) with σ1(G) == A, σ2(G) == B
                     (for inputs whose sequences line up position by position)
    - Stability:     serialization round-trips and push_down_rewrites is idempotent
    - Canonical:     constraint normalization is idempotent and order-insensitive
"""

from hypothesis import assume, given
from hypothesis import strategies as st

from kcore import (
    INT,
    KITEM,
    CTerm,
    KApply,
    KAs,
    KInner,
    KLabel,
    KRewrite,
    KSequence,
    KToken,
    KVariable,
    Subst,
    anti_unify,
    dumps,
    free_vars,
    from_dict,
    loads,
    match,
    push_down_rewrites,
    to_dict,
)
from kcore.helpers import app
from kcore.ml import ml_and, ml_equals, ml_equals_true, ml_top
from kcore.normalize import normalize_constraints

# ── Generators ──────────────────────────────────────────────────────────────

labels = st.sampled_from(["f", "g", "h", "a", "b"])
var_names = st.sampled_from(["X", "Y", "Z", "W"])
tokens = st.integers(min_value=0, max_value=9).map(lambda i: KToken(str(i), INT))
apply_labels = st.one_of(
    labels.map(KLabel),
    st.sampled_from([KLabel("inj"), KLabel("inj", (INT, KITEM)), KLabel("inj", (KITEM, INT))]),
)
leaves = st.one_of(tokens, apply_labels.map(KApply), var_names.map(KVariable))


@st.composite
def ground_terms(draw, max_depth=3):
    if max_depth == 0 or draw(st.integers(min_value=0, max_value=2)) == 0:
        return draw(st.one_of(tokens, labels.map(KApply)))
    arity = draw(st.integers(min_value=1, max_value=3))
    args = [draw(ground_terms(max_depth=max_depth - 1)) for _ in range(arity)]
    return KApply(draw(labels), args)


@st.composite
def terms(draw, max_depth=3, rewrites=True, sequences=True):
    """Terms over every node kind, with parametric labels mixed in."""
    if max_depth == 0 or draw(st.integers(min_value=0, max_value=2)) == 0:
        return draw(leaves)
    subterms = terms(max_depth=max_depth - 1, rewrites=rewrites, sequences=sequences)
    kinds = ["apply", "apply", "as"] + (["sequence"] if sequences else []) + (["rewrite"] if rewrites else [])
    match draw(st.sampled_from(kinds)):
        case "sequence":
            return KSequence(tuple(draw(st.lists(subterms, max_size=3))))
        case "as":
            return KAs(draw(subterms), draw(var_names.map(KVariable)))
        case "rewrite":
            return KRewrite(draw(subterms), draw(subterms))
        case _:
            arity = draw(st.integers(min_value=1, max_value=3))
            return KApply(draw(apply_labels), [draw(subterms) for _ in range(arity)])


@st.composite
def term_pairs(draw, max_depth=3, in_sequence=False):
    """Two rewrite-free terms whose sequences have equal lengths at the same positions."""
    flat = terms(max_depth=2, rewrites=False, sequences=False)
    if max_depth == 0 or draw(st.integers(min_value=0, max_value=2)) == 0:
        return draw(flat), draw(flat)
    kinds = ["apply", "as"] if in_sequence else ["apply", "as", "sequence"]
    match draw(st.sampled_from(kinds)):
        case "sequence":
            n = draw(st.integers(min_value=0, max_value=2))
            items = [draw(term_pairs(max_depth=max_depth - 1, in_sequence=True)) for _ in range(n)]
            return KSequence(tuple(i1 for i1, _ in items)), KSequence(tuple(i2 for _, i2 in items))
        case "as":
            p1, p2 = draw(term_pairs(max_depth=max_depth - 1))
            alias = draw(var_names.map(KVariable))
            return KAs(p1, alias), KAs(p2, alias)
        case _:
            label = draw(apply_labels)
            arity = draw(st.integers(min_value=1, max_value=3))
            args = [draw(term_pairs(max_depth=max_depth - 1)) for _ in range(arity)]
            return KApply(label, [a1 for a1, _ in args]), KApply(label, [a2 for _, a2 in args])


@st.composite
def token_free_terms(draw, max_depth=3):
    if max_depth == 0 or draw(st.integers(min_value=0, max_value=2)) == 0:
        return draw(var_names.map(KVariable))
    arity = draw(st.integers(min_value=1, max_value=3))
    args = [draw(token_free_terms(max_depth=max_depth - 1)) for _ in range(arity)]
    return KApply(draw(labels), args)


substs = st.dictionaries(var_names, ground_terms(max_depth=2), max_size=4).map(Subst)


# ── Matching ────────────────────────────────────────────────────────────────


@given(terms(), terms())
def test_match_soundness(pattern: KInner, term: KInner) -> None:
    subst = match(pattern, term)
    if subst is not None:
        assert subst(pattern) == term


@given(terms(), substs)
def test_match_instance_completeness(pattern: KInner, subst: Subst) -> None:
    instance = subst(pattern)
    found = match(pattern, instance)
    assert found is not None
    assert found(pattern) == instance


@given(terms())
def test_self_match(term: KInner) -> None:
    found = match(term, term)
    assert found is not None
    assert found.minimize() == Subst()


# ── Substitutions ───────────────────────────────────────────────────────────


@given(substs, substs)
def test_union_commutes_on_disjoint_keys(s1: Subst, s2: Subst) -> None:
    assume(not set(s1) & set(s2))
    assert s1.union(s2) == s2.union(s1)


@given(substs, ground_terms(), ground_terms())
def test_union_conflict(subst: Subst, v1: KInner, v2: KInner) -> None:
    assume(v1 != v2)
    widened = subst.union(Subst({"FRESH": v1}))
    assert widened is not None
    assert widened.union(Subst({"FRESH": v2})) is None


@given(token_free_terms())
def test_unapply_inverts_apply(term: KInner) -> None:
    names = sorted(free_vars(term))
    subst = Subst({name: KToken(str(i), INT) for i, name in enumerate(names)})
    assert subst.unapply(subst(term)) == term


# ── Generalization ──────────────────────────────────────────────────────────


@given(term_pairs())
def test_anti_unify_generality(pair: tuple[KInner, KInner]) -> None:
    t1, t2 = pair
    generalization, subst1, subst2 = anti_unify(t1, t2)
    assert subst1(generalization) == t1
    assert subst2(generalization) == t2


@given(terms(rewrites=False))
def test_anti_unify_self(term: KInner) -> None:
    generalization, _, _ = anti_unify(term, term)
    assert generalization == term


# ── Stability ───────────────────────────────────────────────────────────────


@given(terms())
def test_serialization_round_trip(term: KInner) -> None:
    assert from_dict(to_dict(term)) == term
    assert loads(dumps(term)) == term


@given(terms(rewrites=False), terms(rewrites=False))
def test_push_down_rewrites_idempotent(lhs: KInner, rhs: KInner) -> None:
    once = push_down_rewrites(KRewrite(lhs, rhs))
    assert push_down_rewrites(once) == once


@st.composite
def constraints(draw):
    atoms = st.one_of(
        terms(max_depth=2).map(lambda t: ml_equals_true(app("p", t))),
        st.tuples(terms(max_depth=1), terms(max_depth=1)).map(lambda lr: ml_equals(lr[0], lr[1])),
        st.just(ml_top()),
    )
    conjunctions = st.lists(atoms, min_size=1, max_size=3).map(ml_and)
    return draw(st.lists(st.one_of(atoms, conjunctions), max_size=5))


@given(constraints())
def test_normalize_constraints_idempotent(cs: list[KInner]) -> None:
    once = normalize_constraints(cs)
    assert normalize_constraints(once) == once


@given(constraints(), st.randoms())
def test_cterm_constraints_order_insensitive(cs: list[KInner], rnd) -> None:
    config = app("<k>", KVariable("X"))
    shuffled = list(cs)
    rnd.shuffle(shuffled)
    assert CTerm(config, shuffled) == CTerm(config, cs)
    cterm = CTerm(config, cs)
    assert CTerm(cterm.config, cterm.constraints) == cterm
