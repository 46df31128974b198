"""Tests for kcore/cterm.py: constrained terms, CSubst and anti-unification."""

import pytest

from kcore import (
    GENERATED_TOP_CELL,
    INT,
    K,
    AntiUnificationError,
    CSubst,
    CTerm,
    KApply,
    KInner,
    KLabel,
    KRewrite,
    KSequence,
    KSort,
    KVariable,
    Production,
    ShapeError,
    Signature,
    Subst,
    anti_unify,
    cterms_anti_unify,
)
from kcore.helpers import TRUE, app, eq_k, ge_int, int_token, lt_int, or_bool
from kcore.manip import abstract_term_safely
from kcore.ml import ml_and, ml_bottom, ml_equals, ml_equals_true, ml_top

a, b, c = app("a"), app("b"), app("c")
x, y, z = KVariable("x"), KVariable("y"), KVariable("z")


def f(*args: KInner) -> KApply:
    return app("f", *args)


def g(*args: KInner) -> KApply:
    return app("g", *args)


def h(*args: KInner) -> KApply:
    return app("h", *args)


def k(*args: KInner) -> KApply:
    return app("<k>", *args)


def ge_ml(name: str, n: int) -> KApply:
    return ml_equals_true(ge_int(KVariable(name), int_token(n)))


def lt_ml(name: str, n: int) -> KApply:
    return ml_equals_true(lt_int(KVariable(name), int_token(n)))


def _as_cterm(term: KInner) -> CTerm:
    return CTerm(app("<generatedTop>", term))


# (term, pattern)
MATCH_CASES = [
    (a, a),
    (a, x),
    (f(a), x),
    (f(a), f(a)),
    (f(a), f(x)),
    (f(a, b), f(x, y)),
    (f(a, b, c), f(x, y, z)),
    (f(g(h(a))), f(x)),
    (f(g(h(x))), f(x)),
    (f(a, g(b, h(c))), f(x, y)),
]


@pytest.mark.parametrize("term,pattern", MATCH_CASES, ids=[str(i) for i in range(len(MATCH_CASES))])
def test_match(term: KInner, pattern: KInner) -> None:
    subst = _as_cterm(pattern).match(_as_cterm(term))
    assert subst is not None
    assert subst(pattern) == term


def test_no_match() -> None:
    assert _as_cterm(f(x, x)).match(_as_cterm(f(x, a))) is None


def test_match_rejects_residual_constraints() -> None:
    assert CTerm(k(x)).match(CTerm(k(y), [ge_ml("y", 0)])) is None


MATCH_WITH_CONSTRAINT_CASES = [
    (CTerm(k(x)), CTerm(k(x))),
    (CTerm(k(x)), CTerm(k(y))),
    (CTerm(k(x)), CTerm(k(y), [ge_ml("y", 0)])),
    (CTerm(k(x), [ge_ml("y", 0)]), CTerm(k(y), [ge_ml("y", 0), ge_ml("y", 5)])),
]


@pytest.mark.parametrize("t1,t2", MATCH_WITH_CONSTRAINT_CASES, ids=[str(i) for i in range(len(MATCH_WITH_CONSTRAINT_CASES))])
def test_match_with_constraint(t1: CTerm, t2: CTerm) -> None:
    csubst = t1.match_with_constraint(t2)
    assert csubst is not None
    assert csubst(t1) == t2


def test_match_with_constraint_residual() -> None:
    t1 = CTerm(k(x), [ge_ml("y", 0)])
    t2 = CTerm(k(y), [ge_ml("y", 0), ge_ml("y", 5)])
    csubst = t1.match_with_constraint(t2)
    assert csubst == CSubst(Subst({"x": y}), [ge_ml("y", 5)])


class TestConstruction:
    def test_top(self):
        top = CTerm.top()
        assert top.config == ml_top()
        assert top.constraints == ()

    def test_bottom(self):
        bottom = CTerm.bottom()
        assert bottom.config == ml_bottom()
        assert bottom.constraints == ()
        assert bottom.is_bottom
        assert not CTerm.top().is_bottom
        assert not CTerm(k(x)).is_bottom

    def test_bottom_constraint(self):
        assert CTerm(k(x), [ml_bottom()]).is_bottom

    def test_weak_top_config(self):
        config = KApply(KLabel("#And", (GENERATED_TOP_CELL,)), (ml_top(), ml_top()))
        assert CTerm(config, [ge_ml("x", 0)]) == CTerm.top()

    def test_requires_cell(self):
        with pytest.raises(ShapeError, match="Expected cell label"):
            CTerm(f(a))

    def test_constraints_are_normalized(self):
        c1, c2 = ge_ml("x", 0), lt_ml("x", 5)
        cterm = CTerm(k(x), [ml_and([c1, c2]), c1, ml_top(), ml_equals(x, x)])
        assert set(cterm.constraints) == {c1, c2}
        assert len(cterm.constraints) == 2

    def test_constraint_order_is_canonical(self):
        c1, c2, c3 = ge_ml("x", 0), lt_ml("x", 10), ge_ml("y", 100)
        assert CTerm(k(x), [c1, c2, c3]) == CTerm(k(x), [c3, c1, c2])

    def test_canonicalization_is_idempotent(self):
        cterm = CTerm(k(x), [lt_ml("x", 10), ge_ml("x", 0), ge_ml("y", 100)])
        again = CTerm(cterm.config, cterm.constraints)
        assert again.constraints == cterm.constraints

    def test_add_constraint(self):
        cterm = CTerm(k(x)).add_constraint(ge_ml("x", 0))
        assert cterm == CTerm(k(x), [ge_ml("x", 0)])


KAST_CASES = [
    ("simple-bottom", KApply("#Bottom"), CTerm.bottom()),
    ("simple-top", KApply("#Top"), CTerm.top()),
    (
        "double-and-bottom",
        KApply(KLabel("#And", (GENERATED_TOP_CELL,)), (ml_bottom(), ml_bottom())),
        CTerm.bottom(),
    ),
    ("config-and-constraint", ml_and([k(x), ge_ml("x", 0)]), CTerm(k(x), [ge_ml("x", 0)])),
]


@pytest.mark.parametrize("name,kast,expected", KAST_CASES, ids=[case[0] for case in KAST_CASES])
def test_from_kast(name: str, kast: KInner, expected: CTerm) -> None:
    assert CTerm.from_kast(kast) == expected


def test_from_kast_two_configurations() -> None:
    with pytest.raises(ShapeError):
        CTerm.from_kast(ml_and([k(a), k(b)]))


class TestProperties:
    CONSTRAINTS = [ml_equals_true(ge_int(x, int_token(0)))]

    def test_constraint(self):
        assert CTerm(k(x), self.CONSTRAINTS).constraint == ml_and(self.CONSTRAINTS, GENERATED_TOP_CELL)

    def test_kast(self):
        assert CTerm(k(x), self.CONSTRAINTS).kast == ml_and([k(x), *self.CONSTRAINTS], GENERATED_TOP_CELL)

    def test_iter(self):
        config, *constraints = CTerm(k(x), self.CONSTRAINTS)
        assert config == k(x)
        assert constraints == self.CONSTRAINTS

    def test_free_vars(self):
        assert CTerm(k(x), [ge_ml("y", 0)]).free_vars == frozenset({"x", "y"})

    def test_hash(self):
        cterm = CTerm(k(x), self.CONSTRAINTS)
        assert cterm.hash == cterm.kast.hash

    def test_cells(self):
        cterm = CTerm(app("<T>", k(a), app("<state>", b)))
        assert cterm.cells == Subst({"K_CELL": a, "STATE_CELL": b})
        assert cterm.cell("K_CELL") == a
        assert cterm.try_cell("PC_CELL") is None

    def test_remove_useless_constraints(self):
        cterm = CTerm(k(x), [ge_ml("x", 0), ge_ml("z", 1)])
        assert cterm.remove_useless_constraints() == CTerm(k(x), [ge_ml("x", 0)])
        assert cterm.remove_useless_constraints(keep_vars=["z"]) == cterm


def test_cterm_dict_round_trip() -> None:
    original = CTerm(k(x), [ml_equals_true(ge_int(x, int_token(0)))])
    d = original.to_dict()
    assert "node" not in d
    assert CTerm.from_dict(d) == original


class TestCSubst:
    @pytest.mark.parametrize(
        "csubst,expected",
        [
            (CSubst(Subst({})), ml_top()),
            (CSubst(Subst({"X": TRUE})), ml_equals(KVariable("X", K), TRUE, K)),
            (CSubst(Subst({"X": KVariable("X")})), ml_top()),
            (
                CSubst(Subst({"X": TRUE, "Y": int_token(4)})),
                ml_and([ml_equals(KVariable("X", K), TRUE, K), ml_equals(KVariable("Y", K), int_token(4), K)]),
            ),
        ],
        ids=["empty", "singleton", "identity", "double"],
    )
    def test_pred(self, csubst: CSubst, expected: KInner):
        assert csubst.pred() == expected

    def test_pred_with_signature(self):
        sig = Signature.of([Production("_+Int_", INT, (INT, INT))])
        csubst = CSubst(Subst({"X": app("_+Int_", a, b)}), [ge_ml("Y", 0)])
        assert csubst.pred(sort_with=sig) == ml_and(
            [ml_equals(KVariable("X", INT), app("_+Int_", a, b), INT), ge_ml("Y", 0)]
        )
        assert csubst.pred(subst=False) == ge_ml("Y", 0)
        assert csubst.pred(constraints=False) == ml_equals(KVariable("X", K), app("_+Int_", a, b), K)

    def test_constraint(self):
        constraints = [ml_equals_true(ge_int(x, int_token(0)))]
        assert CSubst(Subst({}), constraints).constraint == ml_and(constraints, GENERATED_TOP_CELL)

    def test_add_constraint(self):
        initial = [ml_equals_true(ge_int(x, int_token(0)))]
        new = ml_equals_true(ge_int(y, int_token(5)))
        assert CSubst(Subst({}), initial).add_constraint(new).constraints == (*initial, new)

    def test_iter(self):
        subst = Subst({"X": int_token(5)})
        constraints = [ml_equals_true(ge_int(x, int_token(0)))]
        first, *rest = CSubst(subst, constraints)
        assert first == subst
        assert rest == constraints

    def test_from_pred(self):
        pred = ml_and([ml_equals(KVariable("X"), int_token(5), K), ml_equals_true(ge_int(KVariable("Y"), int_token(0)))])
        csubst = CSubst.from_pred(pred)
        assert csubst.subst["X"] == int_token(5)
        assert csubst.constraints == (ml_equals_true(ge_int(KVariable("Y"), int_token(0))),)

    def test_dict_round_trip(self):
        original = CSubst(Subst({"X": int_token(5)}), [ml_equals_true(ge_int(KVariable("Y"), int_token(0)))])
        assert CSubst.from_dict(original.to_dict()) == original


CSUBST_APPLY_CASES = [
    (CTerm.top(), CSubst(), CTerm.top()),
    (CTerm.bottom(), CSubst(), CTerm.bottom()),
    (CTerm(k(KVariable("X"))), CSubst(), CTerm(k(KVariable("X")))),
    (CTerm(k(KVariable("X"))), CSubst(Subst({"X": int_token(5)})), CTerm(k(int_token(5)))),
    (CTerm(k(KVariable("X"))), CSubst(Subst({"X": KVariable("Y")})), CTerm(k(KVariable("Y")))),
    (
        CTerm(k(KVariable("X")), [lt_ml("X", 5)]),
        CSubst(Subst({"X": KVariable("Y")}), [ge_ml("Y", 0)]),
        CTerm(k(KVariable("Y")), [ge_ml("Y", 0), lt_ml("Y", 5)]),
    ),
]


@pytest.mark.parametrize("cterm,csubst,expected", CSUBST_APPLY_CASES, ids=[str(i) for i in range(len(CSUBST_APPLY_CASES))])
def test_csubst_apply(cterm: CTerm, csubst: CSubst, expected: CTerm) -> None:
    assert csubst.apply(cterm) == expected


class TestAntiUnify:
    def test_generalizes_points_of_difference(self):
        generalized, s1, s2 = anti_unify(f(a, x), f(b, x))
        v = abstract_term_safely(KRewrite(a, b))
        assert generalized == f(v, x)
        assert s1(generalized) == f(a, x)
        assert s2(generalized) == f(b, x)

    def test_identical_terms(self):
        generalized, s1, s2 = anti_unify(f(a, x), f(a, x))
        assert generalized == f(a, x)
        assert s1.minimize() == Subst()
        assert s2.minimize() == Subst()

    def test_different_heads(self):
        generalized, s1, s2 = anti_unify(f(a), g(a))
        assert isinstance(generalized, KVariable)
        assert s1(generalized) == f(a)
        assert s2(generalized) == g(a)

    def test_single_item_sequence_keeps_structure(self):
        t1 = k(KSequence((app("foo", int_token(1)),)))
        t2 = k(KSequence((app("foo", int_token(2)),)))
        generalized, s1, s2 = anti_unify(t1, t2)
        v = abstract_term_safely(KRewrite(int_token(1), int_token(2)))
        assert generalized == k(KSequence((app("foo", v),)))
        assert s1(generalized) == t1
        assert s2(generalized) == t2

    def test_cterm_anti_unify_single_item_sequence(self):
        t1 = CTerm(k(KSequence((app("foo", int_token(1)),))))
        t2 = CTerm(k(KSequence((app("foo", int_token(2)),))))
        merged, c1, c2 = t1.anti_unify(t2)
        (seq,) = merged.config.args  # type: ignore[attr-defined]
        assert isinstance(seq, KSequence)
        (item,) = seq.items
        assert isinstance(item, KApply)
        assert item.label.name == "foo"
        assert c1(merged) == t1
        assert c2(merged) == t2

    def test_sorted_by_signature(self):
        sig = Signature.of([], subsorts=[(KSort("KItem"), INT)])
        generalized, _, _ = anti_unify(k(int_token(1)), k(int_token(2)), signature=sig)
        assert isinstance(generalized, KApply)
        (v,) = generalized.args
        assert isinstance(v, KVariable)
        assert v.sort == INT

    def test_cterm_anti_unify(self):
        t1 = CTerm(k(f(KVariable("X"), a)), [ge_ml("X", 0)])
        t2 = CTerm(k(f(KVariable("X"), b)), [ge_ml("X", 0), lt_ml("Y", 3)])
        merged, c1, c2 = t1.anti_unify(t2)
        assert merged.constraints == (ge_ml("X", 0),)
        assert c1(merged) == t1
        assert c2(merged) == t2

    def test_cterm_anti_unify_drops_unrelated_common_constraints(self):
        t1 = CTerm(k(a), [ge_ml("Z", 0)])
        t2 = CTerm(k(b), [ge_ml("Z", 0)])
        merged, _, _ = t1.anti_unify(t2)
        assert merged.constraints == ()

    def test_cterm_anti_unify_keep_values(self):
        t1 = CTerm(k(a))
        t2 = CTerm(k(b))
        merged, c1, c2 = t1.anti_unify(t2, keep_values=True)
        (v,) = merged.config.args  # type: ignore[attr-defined]
        assert merged.constraints == (ml_equals_true(or_bool([eq_k(v, a), eq_k(v, b)])),)
        assert c1.subst[v.name] == a
        assert c2.subst[v.name] == b

    def test_cterm_anti_unify_keep_values_with_unique_constraints(self):
        t1 = CTerm(k(KVariable("X")), [ge_ml("X", 0)])
        t2 = CTerm(k(KVariable("X")), [lt_ml("X", 0)])
        merged, _, _ = t1.anti_unify(t2, keep_values=True)
        expected_guard = ml_equals_true(
            or_bool([ge_int(KVariable("X"), int_token(0)), lt_int(KVariable("X"), int_token(0))])
        )
        assert merged == CTerm(k(KVariable("X")), [expected_guard])

    def test_cterms_anti_unify(self):
        cterms = [CTerm(k(a)), CTerm(k(b)), CTerm(k(c))]
        merged, csubsts = cterms_anti_unify(cterms)
        assert len(csubsts) == 3
        for cterm, csubst in zip(cterms, csubsts):
            assert csubst(merged) == cterm

    def test_cterms_anti_unify_single(self):
        merged, csubsts = cterms_anti_unify([CTerm(k(a))])
        assert merged == CTerm(k(a))
        assert csubsts == [CSubst(Subst())]

    def test_cterms_anti_unify_empty(self):
        with pytest.raises(ValueError):
            cterms_anti_unify([])

    def test_anti_unification_error_is_assertion(self):
        assert issubclass(AntiUnificationError, AssertionError)
