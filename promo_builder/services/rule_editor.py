"""
Rule editor session.

Owns the rule graph of one editing session and drives it the way the visual
editor does: nodes get unique-per-session ids, edits go through validated
setters, and a rule is compiled, validated and submitted on demand. After
submission the graph stays editable and has no further tie to the submitted
document.
"""

from __future__ import annotations

import itertools
import logging
from datetime import datetime
from typing import Any

from promo_builder.api.schemas.promotion_rule import ApiResponse, PromotionRule, RuleMetadata
from promo_builder.compiler.compiler import compile_rule
from promo_builder.compiler.validator import validate_rule
from promo_builder.core.errors import SocketMismatchError
from promo_builder.core.observability import (
    generate_request_id,
    get_request_id,
    reset_correlation_id,
    set_correlation_id,
)
from promo_builder.domain.enums import (
    ActionSubtype,
    ConditionOperator,
    ConditionSubtype,
    LogicalSubtype,
)
from promo_builder.graph.nodes import ActionNode, ConditionNode, LogicalNode, RuleNode
from promo_builder.graph.rule_graph import Connection, RuleGraph
from promo_builder.services.promotion_rules_client import PromotionRulesClient

logger = logging.getLogger(__name__)


class RuleEditorSession:
    """Single-writer editing session around a RuleGraph."""

    def __init__(self, graph: RuleGraph | None = None) -> None:
        self.graph = graph if graph is not None else RuleGraph()
        self._counter = itertools.count(1)

    def _next_id(self, subtype: str) -> str:
        prefix = subtype.replace("_", "-")
        while True:
            node_id = f"{prefix}-{next(self._counter)}"
            if node_id not in self.graph:
                return node_id

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def add_condition(
        self,
        subtype: ConditionSubtype | str,
        operator: ConditionOperator | str = ConditionOperator.EQUALS,
        value: Any = None,
    ) -> ConditionNode:
        subtype = ConditionSubtype(subtype)
        node = ConditionNode(
            id=self._next_id(subtype.value), subtype=subtype, operator=operator, value=value
        )
        self.graph.add_node(node)
        return node

    def add_action(self, subtype: ActionSubtype | str, value: Any = None) -> ActionNode:
        subtype = ActionSubtype(subtype)
        node = ActionNode(id=self._next_id(subtype.value), subtype=subtype, value=value)
        self.graph.add_node(node)
        return node

    def add_logical(self, subtype: LogicalSubtype | str) -> LogicalNode:
        subtype = LogicalSubtype(subtype)
        node = LogicalNode(id=self._next_id(subtype.value), subtype=subtype)
        self.graph.add_node(node)
        return node

    def set_operator(self, node_id: str, operator: ConditionOperator | str) -> RuleNode:
        return self.graph.update_node(node_id, operator=operator)

    def set_value(self, node_id: str, value: Any) -> RuleNode:
        return self.graph.update_node(node_id, value=value)

    def remove_node(self, node_id: str) -> RuleNode:
        return self.graph.remove_node(node_id)

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def connect(self, source: str, target: str, target_input: str | None = None) -> Connection:
        """
        Connect a node's output to another node's input.

        The source output is the node's only output socket. When `target_input`
        is omitted, the first unconnected input of the target is used.

        Raises:
            UnknownNodeError: If either endpoint is absent
            SocketMismatchError: If the source has no output or the target has
                no free input
            CycleError: If the connection would create a cycle
        """
        source_node = self.graph.get_node(source)
        target_node = self.graph.get_node(target)

        outputs = source_node.sockets.outputs if source_node.sockets else ()
        if not outputs:
            raise SocketMismatchError(
                f"Node '{source}' has no output socket",
                details={"node_id": source},
            )

        if target_input is None:
            target_input = self._first_free_input(target_node)

        return self.graph.add_connection(source, outputs[0], target, target_input)

    def _first_free_input(self, node: RuleNode) -> str:
        inputs = node.sockets.inputs if node.sockets else ()
        taken = {c.target_input for c in self.graph.list_connections() if c.target == node.id}
        for socket in inputs:
            if socket not in taken:
                return socket
        raise SocketMismatchError(
            f"Node '{node.id}' has no free input socket",
            details={"node_id": node.id, "inputs": list(inputs)},
        )

    # ------------------------------------------------------------------
    # Compile / submit
    # ------------------------------------------------------------------

    def compile(
        self, metadata: RuleMetadata | None = None, now: datetime | None = None
    ) -> PromotionRule:
        return compile_rule(self.graph, metadata, now=now)

    def submit(
        self, client: PromotionRulesClient, metadata: RuleMetadata | None = None
    ) -> ApiResponse:
        """
        Compile, validate and submit the current graph.

        Raises:
            UnknownNodeKindError: If a node cannot be compiled
            EmptyConditionsError / EmptyActionsError: If the rule is incomplete
            ApiError: If the API rejects the rule; its message is the server's
        """
        # Scoped to this submission; an id set by the caller is kept
        token = set_correlation_id(get_request_id() or generate_request_id())
        try:
            rule = self.compile(metadata)
            validate_rule(rule)
            response = client.create_rule(rule)
            logger.info(
                "Submitted rule %r (%d conditions, %d actions)",
                rule.name,
                len(rule.conditions),
                len(rule.actions),
            )
            return response
        finally:
            reset_correlation_id(token)
