"""kcore: terms, matching and symbolic states of the K framework AST."""

from .sorts import BOOL, GENERATED_TOP_CELL, INT, K, KITEM, KSort
from .terms import (
    KApply,
    KAs,
    KInner,
    KLabel,
    KRewrite,
    KSequence,
    KToken,
    KVariable,
    children,
    let_terms,
)
from .traversal import (
    bottom_up,
    build_assoc,
    build_cons,
    collect,
    count_vars,
    flatten_label,
    free_vars,
    keep_vars_sorted,
    top_down,
    var_occurrences,
)
from .errors import AntiUnificationError, KastError, PreconditionError, ShapeError
from .rule import KClaim, KRule
from .serialization import dumps, from_dict, kast_term, loads, to_dict, to_json
from .subst import Subst
from .matching import combine_matches, match
from .helpers import DOTS, FALSE, TRUE, app, token, var
from .ml import ml_and, ml_bottom, ml_equals, ml_equals_true, ml_not, ml_or, ml_top
from .manip import abstract_term_safely, extract_subst, push_down_rewrites
from .normalize import bool_to_ml_pred, ml_pred_to_bool, normalize_ml_pred, simplify_bool
from .signature import Production, Signature, SymbolKind
from .synthesis import build_claim, build_rule, defunctionalize
from .cterm import CSubst, CTerm, anti_unify, cterm_build_claim, cterm_build_rule, cterms_anti_unify
from .result import Err, Ok, Result

__all__ = [
    # Sorts
    "BOOL", "GENERATED_TOP_CELL", "INT", "K", "KITEM", "KSort",
    # Terms
    "KApply", "KAs", "KInner", "KLabel", "KRewrite", "KSequence", "KToken", "KVariable",
    "children", "let_terms",
    # Traversal
    "bottom_up", "build_assoc", "build_cons", "collect", "count_vars", "flatten_label",
    "free_vars", "keep_vars_sorted", "top_down", "var_occurrences",
    # Errors
    "AntiUnificationError", "KastError", "PreconditionError", "ShapeError",
    # Rules
    "KClaim", "KRule",
    # Serialization
    "dumps", "from_dict", "kast_term", "loads", "to_dict", "to_json",
    # Substitution and matching
    "Subst", "combine_matches", "match",
    # Helpers
    "DOTS", "FALSE", "TRUE", "app", "token", "var",
    # Matching logic
    "ml_and", "ml_bottom", "ml_equals", "ml_equals_true", "ml_not", "ml_or", "ml_top",
    "bool_to_ml_pred", "ml_pred_to_bool", "normalize_ml_pred", "simplify_bool",
    # Manipulation
    "abstract_term_safely", "extract_subst", "push_down_rewrites",
    # Signature
    "Production", "Signature", "SymbolKind",
    # Synthesis
    "build_claim", "build_rule", "defunctionalize",
    # Symbolic states
    "CSubst", "CTerm", "anti_unify", "cterm_build_claim", "cterm_build_rule", "cterms_anti_unify",
    # Result
    "Ok", "Err", "Result",
]
