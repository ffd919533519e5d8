#!/usr/bin/env python3
"""
Compile a saved rule graph into a promotion rule document.

Reads a graph payload (`{"nodes": [...], "connections": [...]}`, the format
produced by `RuleGraph.to_payload`), compiles and validates it, then prints the
canonical rule JSON. With --submit the rule is also sent to the promotion rules
API configured through API_BASE_URL / API_TOKEN.

Usage:
    uv run python scripts/compile_rule.py graph.json --name "Spring Sale"
    uv run python scripts/compile_rule.py graph.json --tree
    uv run python scripts/compile_rule.py graph.json --salience 50 --submit

Exit codes:
    0  rule compiled (and submitted, with --submit)
    1  the graph or rule is invalid, or the API rejected the rule
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path

from pydantic import ValidationError

# Add the package root to path for imports
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from promo_builder.api.schemas.promotion_rule import RuleMetadata  # noqa: E402
from promo_builder.compiler.canonicalizer import to_canonical_json_pretty  # noqa: E402
from promo_builder.compiler.compiler import compile_rule  # noqa: E402
from promo_builder.compiler.condition_tree import build_condition_trees  # noqa: E402
from promo_builder.compiler.validator import validate_rule  # noqa: E402
from promo_builder.core.config import settings  # noqa: E402
from promo_builder.core.errors import ApiError, PromotionRuleError  # noqa: E402
from promo_builder.core.observability import configure_structured_logging  # noqa: E402
from promo_builder.graph.rule_graph import RuleGraph  # noqa: E402
from promo_builder.services.promotion_rules_client import PromotionRulesClient  # noqa: E402

logger = logging.getLogger("promo_builder.scripts.compile_rule")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compile a saved rule graph into a promotion rule document",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("graph_file", type=Path, help="Path to a graph JSON payload")
    parser.add_argument("--name", default="", help="Rule name (default: Rule_<timestamp>)")
    parser.add_argument(
        "--salience",
        type=int,
        default=settings.default_salience,
        help="Rule priority, higher runs first (default: %(default)s)",
    )
    parser.add_argument(
        "--not-stackable",
        dest="stackable",
        action="store_false",
        help="Do not combine this rule with other promotions",
    )
    parser.add_argument(
        "--inactive", dest="active", action="store_false", help="Submit the rule disabled"
    )
    parser.add_argument("--valid-from", type=date.fromisoformat, default=None, help="YYYY-MM-DD")
    parser.add_argument("--valid-until", type=date.fromisoformat, default=None, help="YYYY-MM-DD")
    parser.add_argument(
        "--tree",
        action="store_true",
        help="Print the nested condition tree of each action instead of the rule",
    )
    parser.add_argument(
        "--submit", action="store_true", help="Send the rule to the promotion rules API"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def load_graph(path: Path) -> RuleGraph:
    """Read and rebuild a graph payload from disk."""
    with path.open(encoding="utf-8") as f:
        payload = json.load(f)
    return RuleGraph.from_payload(payload)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_structured_logging(
        "DEBUG" if args.verbose else settings.app_log_level,
        structured=settings.observability_structured_logs,
    )

    try:
        graph = load_graph(args.graph_file)
        metadata = RuleMetadata(
            name=args.name,
            salience=args.salience,
            stackable=args.stackable,
            active=args.active,
            valid_from=args.valid_from,
            valid_until=args.valid_until,
        )
        rule = compile_rule(graph, metadata)
        validate_rule(rule)

        if args.tree:
            print(to_canonical_json_pretty(build_condition_trees(rule)))
        else:
            print(to_canonical_json_pretty(rule))

        if args.submit:
            with PromotionRulesClient() as client:
                response = client.create_rule(rule)
            print(f"[OK] {response.message or 'Promotion rule submitted'}")
    except (OSError, json.JSONDecodeError) as e:
        print(f"ERROR: Could not read graph file {args.graph_file}: {e}", file=sys.stderr)
        return 1
    except ValidationError as e:
        print(f"ERROR: Invalid graph or metadata:\n{e}", file=sys.stderr)
        return 1
    except ApiError as e:
        print(f"ERROR: {e.message}", file=sys.stderr)
        return 1
    except PromotionRuleError as e:
        logger.debug("Rule rejected: %s", e.details)
        print(f"ERROR: {e.message}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
