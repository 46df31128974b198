"""Structural manipulations of K terms and configurations.

Substitution extraction, rewrite push-down, configuration splitting and the
minimization passes used to present symbolic states compactly. Everything
here is a pure function from terms to terms.
"""

from __future__ import annotations

from collections.abc import Iterable

from .errors import ShapeError
from .helpers import DOTS, TRUE
from .ml import ML_AND, ML_EQUALS, ML_OR, ml_and, ml_implies, ml_or
from .rewrite import apply_rewrite
from .serialization import hash_str, to_json
from .sorts import GENERATED_TOP_CELL, KSort
from .subst import Subst
from .terms import KApply, KInner, KLabel, KRewrite, KSequence, KVariable
from .traversal import bottom_up, count_vars, flatten_label, free_vars, top_down

# ---------------------------------------------------------------------------
# Fresh variables
# ---------------------------------------------------------------------------


def abstract_term_safely(
    kast: KInner,
    base_name: str = "V",
    sort: KSort | None = None,
    existing_var_names: set[str] | frozenset[str] | None = None,
) -> KVariable:
    """A variable named after the hash of ``kast``.

    The name is ``base_name`` + "_" + the first 8 hex digits of the term's
    hash, so equal terms always abstract to the same variable. Names in
    ``existing_var_names`` are avoided by re-hashing.
    """

    def _abstract(k: KInner) -> KVariable:
        return KVariable(f"{base_name}_{hash_str(to_json(k))[0:8]}", sort)

    new_var = _abstract(kast)
    if existing_var_names is not None:
        while new_var.name in existing_var_names:
            new_var = _abstract(new_var)
    return new_var


def is_anon_var(kast: KInner) -> bool:
    return isinstance(kast, KVariable) and kast.name.startswith("_")


# ---------------------------------------------------------------------------
# Substitution extraction
# ---------------------------------------------------------------------------


def extract_subst(term: KInner) -> tuple[Subst, KInner]:
    """Split a conjunction into a substitution and the remaining constraint.

    Conjuncts of the form ``X = t`` (either orientation, or wrapped as
    ``#Equals(true, X ==K t)``) are turned into bindings greedily, left to
    right, as long as the substitution stays idempotent: X is not yet bound,
    does not occur in a bound value, does not occur in t, and t mentions no
    bound variable.

    Example: extract_subst(#And(X = a, Y = f(X))) == (Subst({X: a}), Y = f(X))
    """
    subst: dict[str, KInner] = {}
    rem_conjuncts: list[KInner] = []

    def _can_bind(v: KInner, t: KInner) -> bool:
        if not isinstance(v, KVariable) or v.name in subst:
            return False
        t_vars = free_vars(t)
        if v.name in t_vars or not t_vars.isdisjoint(subst):
            return False
        return not any(v.name in free_vars(value) for value in subst.values())

    def _extract(t1: KInner, t2: KInner) -> tuple[str, KInner] | None:
        if _can_bind(t1, t2):
            return t1.name, t2  # type: ignore[union-attr]
        if _can_bind(t2, t1):
            return t2.name, t1  # type: ignore[union-attr]
        return None

    def _unwrap_bool_eq(t: KInner) -> tuple[KInner, KInner] | None:
        if isinstance(t, KApply) and t.label.name in ("_==K_", "_==Int_") and t.arity == 2:
            return t.args[0], t.args[1]
        return None

    conjuncts = flatten_label(ML_AND, term)
    for conjunct in conjuncts:
        binding = None
        if isinstance(conjunct, KApply) and conjunct.label.name == ML_EQUALS and conjunct.arity == 2:
            lhs, rhs = conjunct.args
            binding = _extract(lhs, rhs)
            if binding is None:
                inner = _unwrap_bool_eq(rhs) if lhs == TRUE else _unwrap_bool_eq(lhs) if rhs == TRUE else None
                if inner is not None:
                    binding = _extract(*inner)
        if binding is None:
            rem_conjuncts.append(conjunct)
        else:
            name, value = binding
            subst[name] = value

    if len(conjuncts) == 1 and not subst:
        return Subst(), term
    return Subst(subst), ml_and(rem_conjuncts)


# ---------------------------------------------------------------------------
# Rewrites
# ---------------------------------------------------------------------------


def extract_lhs(term: KInner) -> KInner:
    return top_down(lambda k: k.lhs if isinstance(k, KRewrite) else k, term)


def extract_rhs(term: KInner) -> KInner:
    return top_down(lambda k: k.rhs if isinstance(k, KRewrite) else k, term)


def push_down_rewrites(kast: KInner) -> KInner:
    """Move rewrites as deep as possible, factoring out shared structure.

    Example: (f(a) ~> b) => (f(c) ~> b)  becomes  f(a => c) ~> b
    """

    def _push_down_rewrites(_kast: KInner) -> KInner:
        if not isinstance(_kast, KRewrite):
            return _kast
        lhs = _kast.lhs
        rhs = _kast.rhs
        if lhs == rhs:
            return lhs
        if isinstance(lhs, KVariable) and isinstance(rhs, KVariable) and lhs.name == rhs.name:
            return lhs
        if isinstance(lhs, KApply) and isinstance(rhs, KApply) and lhs.label == rhs.label and lhs.arity == rhs.arity:
            return KApply(lhs.label, tuple(KRewrite(l, r) for l, r in zip(lhs.args, rhs.args)))
        if isinstance(lhs, KSequence) and isinstance(rhs, KSequence) and lhs.arity > 0 and rhs.arity > 0:
            if lhs.arity == 1 and rhs.arity == 1:
                return KSequence((_push_down_rewrites(KRewrite(lhs.items[0], rhs.items[0])),))
            if lhs.items[0] == rhs.items[0]:
                lower = _push_down_rewrites(KRewrite(KSequence(lhs.items[1:]), KSequence(rhs.items[1:])))
                return KSequence((lhs.items[0], lower))
            if lhs.items[-1] == rhs.items[-1]:
                lower = _push_down_rewrites(KRewrite(KSequence(lhs.items[:-1]), KSequence(rhs.items[:-1])))
                return KSequence((lower, lhs.items[-1]))
        if (
            isinstance(lhs, KSequence)
            and lhs.arity > 0
            and isinstance(lhs.items[-1], KVariable)
            and isinstance(rhs, KVariable)
            and lhs.items[-1] == rhs
        ):
            return KSequence((KRewrite(KSequence(lhs.items[:-1]), KSequence()), rhs))
        return _kast

    return top_down(_push_down_rewrites, kast)


def replace_rewrites_with_implies(kast: KInner) -> KInner:
    return bottom_up(lambda k: ml_implies(k.lhs, k.rhs) if isinstance(k, KRewrite) else k, kast)


# ---------------------------------------------------------------------------
# Constraints
# ---------------------------------------------------------------------------


def propagate_up_constraints(k: KInner) -> KInner:
    """Hoist conjuncts common to both sides of a disjunction out of it."""

    def _propagate_up_constraints(_k: KInner) -> KInner:
        if not (isinstance(_k, KApply) and _k.label.name == ML_OR and _k.arity == 2):
            return _k
        top_sort = _k.label.params[0] if _k.label.params else GENERATED_TOP_CELL
        conjuncts1 = flatten_label(ML_AND, _k.args[0])
        conjuncts2 = flatten_label(ML_AND, _k.args[1])
        common = [c for c in conjuncts1 if c in conjuncts2]
        if not common:
            return _k
        rest1 = [c for c in conjuncts1 if c not in common]
        rest2 = [c for c in conjuncts2 if c not in common]
        disjunct = ml_or([ml_and(rest1, top_sort), ml_and(rest2, top_sort)], top_sort)
        return ml_and([disjunct, *common], top_sort)

    return bottom_up(_propagate_up_constraints, k)


def remove_useless_constraints(constraints: Iterable[KInner], initial_vars: Iterable[str]) -> list[KInner]:
    """Keep the constraints reachable from ``initial_vars`` through shared variables."""
    constraints = list(constraints)
    used_vars = set(initial_vars)
    prev_len_used_vars = -1
    new_constraints: list[KInner] = []
    while len(used_vars) > prev_len_used_vars:
        prev_len_used_vars = len(used_vars)
        for c in constraints:
            if c not in new_constraints:
                new_vars = free_vars(c)
                if not new_vars.isdisjoint(used_vars):
                    new_constraints.append(c)
                    used_vars.update(new_vars)
    return new_constraints


def apply_existential_substitutions(state: KInner, constraints: Iterable[KInner]) -> tuple[KInner, list[KInner]]:
    """Eliminate ``?X ==K v`` constraints by substituting v for ?X."""
    subst: dict[str, KInner] = {}
    new_constraints: list[KInner] = []
    for c in constraints:
        match c:
            case KApply(
                label=KLabel(name="#Equals"),
                args=(lhs, KApply(label=KLabel(name="_==K_"), args=(KVariable(name=name), value))),
            ) if lhs == TRUE and name.startswith("?"):
                subst[name] = value
            case _:
                new_constraints.append(c)
    _subst = Subst(subst)
    return _subst(state), [_subst(c) for c in new_constraints]


# ---------------------------------------------------------------------------
# Configurations
# ---------------------------------------------------------------------------


def split_config_and_constraints(kast: KInner) -> tuple[KApply, KInner]:
    """Separate the single cell conjunct of a pattern from its constraints.

    Raises ShapeError if there is no cell conjunct, or more than one.
    """
    term: KApply | None = None
    constraints: list[KInner] = []
    for c in flatten_label(ML_AND, kast):
        if isinstance(c, KApply) and c.is_cell:
            if term is not None:
                raise ShapeError(f"Found two configurations in pattern:\n\n{term}\n\nand\n\n{c}")
            term = c
        else:
            constraints.append(c)
    if term is None:
        raise ShapeError(f"Could not find configuration for: {kast}")
    return term, ml_and(constraints, GENERATED_TOP_CELL)


def cell_label_to_var_name(label: str) -> str:
    """<k-cell> gives K_CELL_CELL, <k> gives K_CELL."""
    return label.replace("-", "_").replace("<", "").replace(">", "").upper() + "_CELL"


def split_config_from(configuration: KInner) -> tuple[KInner, dict[str, KInner]]:
    """Replace the contents of every leaf cell by a variable.

    Returns the symbolic configuration and the substitution that restores the
    original contents.
    """
    initial_substitution: dict[str, KInner] = {}

    def _replace_with_var(k: KInner) -> KInner:
        if isinstance(k, KApply) and k.is_cell and k.arity == 1:
            content = k.args[0]
            if not (isinstance(content, KApply) and content.is_cell):
                config_var = cell_label_to_var_name(k.label.name)
                initial_substitution[config_var] = content
                return KApply(k.label, (KVariable(config_var),))
        return k

    symbolic_config = top_down(_replace_with_var, configuration)
    return symbolic_config, initial_substitution


def set_cell(constrained_term: KInner, cell_variable: str, cell_value: KInner) -> KInner:
    state, constraint = split_config_and_constraints(constrained_term)
    config, subst = split_config_from(state)
    subst[cell_variable] = cell_value
    return ml_and([Subst(subst)(config), constraint])


def remove_generated_cells(term: KInner) -> KInner:
    """Strip the <generatedTop> wrapper and its counter cell."""
    rewrite = KRewrite(KApply("<generatedTop>", (KVariable("CONFIG"), KVariable("_"))), KVariable("CONFIG"))
    return apply_rewrite(rewrite, term)


def _rename_children(k: KInner) -> tuple[KInner, ...]:
    match k:
        case KApply(args=args):
            return args
        case KRewrite(lhs=lhs, rhs=rhs):
            return (lhs, rhs)
        case KSequence(items=items):
            return items
        case _:
            return ()


def rename_generated_vars(term: KInner) -> KInner:
    """Rename _Gen and _DotVar variables after the cell they occur in."""
    existing = set(free_vars(term))

    def _rename_var(k: KVariable, cell: str | None) -> KInner:
        if cell is None or not k.name.startswith(("_Gen", "?_Gen", "_DotVar", "?_DotVar")):
            return k
        new_var = abstract_term_safely(k, cell, k.sort, existing)
        existing.add(new_var.name)
        return new_var

    # Frames are (node, enclosing cell variable, rebuilt children).
    stack: list[tuple[KInner, str | None, list[KInner]]] = [(term, None, [])]
    while True:
        k, cell, done = stack[-1]
        children = _rename_children(k)
        if len(done) < len(children):
            if isinstance(k, KApply) and k.is_cell:
                cell = cell_label_to_var_name(k.label.name)
            stack.append((children[len(done)], cell, []))
            continue
        stack.pop()
        match k:
            case KApply(label=label):
                res: KInner = KApply(label, tuple(done))
            case KRewrite():
                lhs, rhs = done
                res = KRewrite(lhs, rhs)
            case KSequence():
                res = KSequence(tuple(done))
            case KVariable():
                res = _rename_var(k, cell)
            case _:
                res = k
        if not stack:
            return res
        stack[-1][2].append(res)


# ---------------------------------------------------------------------------
# Minimization
# ---------------------------------------------------------------------------


def collapse_dots(kast: KInner) -> KInner:
    """Merge runs of elided cell contents into a single ``...``."""

    def _collapse_dots(k: KInner) -> KInner:
        if isinstance(k, KApply):
            if k.is_cell and k.arity == 1 and k.args[0] == DOTS:
                return DOTS
            new_args = [arg for arg in k.args if arg != DOTS]
            if k.is_cell and not new_args:
                return DOTS
            if len(new_args) < k.arity:
                new_args.append(DOTS)
            return KApply(k.label, tuple(new_args))
        if isinstance(k, KRewrite) and k.lhs == DOTS:
            return DOTS
        return k

    return bottom_up(_collapse_dots, kast)


def inline_cell_maps(kast: KInner) -> KInner:
    def _inline_cell_maps(k: KInner) -> KInner:
        if isinstance(k, KApply) and k.label.name.endswith("CellMapItem") and k.arity == 2:
            map_key = k.args[0]
            if isinstance(map_key, KApply) and map_key.is_cell:
                return k.args[1]
        return k

    return bottom_up(_inline_cell_maps, kast)


def remove_semantic_casts(kast: KInner) -> KInner:
    def _remove_semantic_casts(k: KInner) -> KInner:
        if isinstance(k, KApply) and k.arity == 1 and k.label.name.startswith("#SemanticCast"):
            return k.args[0]
        return k

    return bottom_up(_remove_semantic_casts, kast)


def useless_vars_to_dots(kast: KInner, keep_vars: Iterable[str] = ()) -> KInner:
    """Elide cell contents that are a variable occurring nowhere else."""
    num_occs = count_vars(kast)
    num_occs.update(keep_vars)

    def _collapse_useless_vars(k: KInner) -> KInner:
        if isinstance(k, KApply) and k.is_cell:
            new_args = tuple(
                DOTS if isinstance(arg, KVariable) and num_occs[arg.name] == 1 else arg for arg in k.args
            )
            return KApply(k.label, new_args)
        return k

    return bottom_up(_collapse_useless_vars, kast)


def labels_to_dots(kast: KInner, labels: Iterable[str]) -> KInner:
    _labels = frozenset(labels)

    def _labels_to_dots(k: KInner) -> KInner:
        if isinstance(k, KApply) and k.is_cell and k.label.name in _labels:
            return DOTS
        return k

    return bottom_up(_labels_to_dots, kast)


def extract_cells(kast: KInner, keep_cells: Iterable[str]) -> KInner:
    """Elide every leaf cell not named in ``keep_cells``."""
    _keep_cells = frozenset(keep_cells)

    def _extract_cells(k: KInner) -> KInner:
        if (
            isinstance(k, KApply)
            and k.is_cell
            and k.label.name not in _keep_cells
            and all(not (isinstance(arg, KApply) and arg.is_cell) for arg in k.args)
        ):
            return DOTS
        return k

    return bottom_up(_extract_cells, kast)


def minimize_term(term: KInner, keep_vars: Iterable[str] = ()) -> KInner:
    term = inline_cell_maps(term)
    term = remove_semantic_casts(term)
    term = useless_vars_to_dots(term, keep_vars=keep_vars)
    term = collapse_dots(term)
    return term


def no_cell_rewrite_to_dots(term: KInner) -> KInner:
    """Elide leaf cells whose contents are not rewritten."""
    config, subst = split_config_from(term)
    new_subst = {
        name: DOTS if extract_lhs(contents) == extract_rhs(contents) else contents for name, contents in subst.items()
    }
    return Subst(new_subst)(config)


# ---------------------------------------------------------------------------
# Associative-commutative collections
# ---------------------------------------------------------------------------


def sort_assoc_label(label: str, kast: KInner) -> KInner:
    """Re-nest an associative ``label`` chain with its elements in canonical order."""
    if isinstance(kast, KApply) and kast.label.name == label:
        terms = sorted(flatten_label(label, kast), key=to_json)
        if not terms:
            return kast
        *init, res = terms
        for term in reversed(init):
            res = KApply(kast.label, (term, res))
        return res
    return kast


def sort_ac_collections(kast: KInner) -> KInner:
    def _sort_ac_collections(k: KInner) -> KInner:
        if isinstance(k, KApply) and (k.label.name in ("_Set_", "_Map_", "_RangeMap_") or k.label.name.endswith("CellMap_")):
            return sort_assoc_label(k.label.name, k)
        return k

    return top_down(_sort_ac_collections, kast)
