"""
Promotion rule compiler.

This package turns a visually built rule graph into the serializable
PromotionRule document consumed by the promotion rules API and the external
evaluation engine.

Key Components:
- compiler: graph -> PromotionRule compilation
- validator: pre-submission checks (at least one condition and one action)
- condition_tree: nested and/or view of a compiled rule per action
- canonicalizer: deterministic JSON output

Design Principles:
- Determinism: same graph and clock produce byte-for-byte identical output
- Explicitness: unknown node types abort compilation instead of vanishing
- Separation: compilation never validates for submission, and never mutates
"""

from promo_builder.compiler.canonicalizer import canonicalize_json, to_canonical_json_string
from promo_builder.compiler.compiler import compile_rule
from promo_builder.compiler.condition_tree import build_condition_tree, build_condition_trees
from promo_builder.compiler.validator import validate_rule

__all__ = [
    "build_condition_tree",
    "build_condition_trees",
    "canonicalize_json",
    "compile_rule",
    "to_canonical_json_string",
    "validate_rule",
]
