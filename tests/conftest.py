"""
Pytest configuration and shared fixtures.

Provides:
- A fixed clock for reproducible compilation
- Reference graphs (product id + discount, two conditions through an AND node)
- A recording httpx.MockTransport and a PromotionRulesClient wired to it
"""

from __future__ import annotations

import json
import sys
from collections.abc import Callable, Generator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[1]

# Add the package root to path for imports
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import httpx  # noqa: E402 (import after path setup)
import pytest  # noqa: E402 (import after path setup)

from promo_builder.api.schemas.promotion_rule import RuleMetadata  # noqa: E402
from promo_builder.graph.nodes import ActionNode, ConditionNode, LogicalNode  # noqa: E402
from promo_builder.graph.rule_graph import RuleGraph  # noqa: E402
from promo_builder.services.promotion_rules_client import PromotionRulesClient  # noqa: E402

TEST_API_BASE_URL = "http://rules.test/api"


@pytest.fixture
def fixed_now() -> datetime:
    """Clock value used as `createdAt` in deterministic compilations."""
    return datetime(2025, 3, 1, 9, 30, tzinfo=UTC)


@pytest.fixture
def spring_sale_metadata() -> RuleMetadata:
    return RuleMetadata(
        name="Spring Sale",
        salience=10,
        stackable=True,
        active=True,
        valid_from=None,
        valid_until=None,
    )


@pytest.fixture
def simple_graph() -> RuleGraph:
    """One product-id condition (42, equals) and one 15% discount, unconnected."""
    graph = RuleGraph()
    graph.add_node(ConditionNode(id="n1", subtype="product_id", operator="equals", value=42))
    graph.add_node(ActionNode(id="n2", subtype="percentage_discount", value=15))
    return graph


@pytest.fixture
def and_graph() -> RuleGraph:
    """Two conditions joined through an AND node feeding a free-units action."""
    graph = RuleGraph()
    graph.add_node(ConditionNode(id="c1", subtype="product_id", value=7))
    graph.add_node(ConditionNode(id="c2", subtype="quantity", operator="greater_than", value=2))
    graph.add_node(LogicalNode(id="and1", subtype="and"))
    graph.add_node(ActionNode(id="act1", subtype="free_units", value=1))
    graph.add_connection("c1", "condition", "and1", "a")
    graph.add_connection("c2", "condition", "and1", "b")
    graph.add_connection("and1", "result", "act1", "condition")
    return graph


class RecordingHandler:
    """MockTransport handler that records requests and replays a canned response."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.body: Any = {"success": True, "message": "Promotion rule created", "data": {"id": 1}}
        self.raw_body: bytes | None = None
        self.error: Callable[[httpx.Request], Exception] | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error(request)
        if self.raw_body is not None:
            return httpx.Response(self.status_code, content=self.raw_body)
        return httpx.Response(self.status_code, json=self.body)

    @property
    def last_json(self) -> Any:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def api_handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def api_client(api_handler: RecordingHandler) -> Generator[PromotionRulesClient, None, None]:
    client = PromotionRulesClient(
        base_url=TEST_API_BASE_URL,
        token="test-token",
        transport=httpx.MockTransport(api_handler),
    )
    yield client
    client.close()
