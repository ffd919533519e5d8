"""
Nested condition trees for compiled promotion rules.

The compiled document is flat: conditions, logical nodes and connections are
separate arrays. This module resolves what feeds each action's `condition`
input back into a nested boolean tree:

    {"and": [
        {"type": "product_id", "operator": "equals", "value": 42},
        {"or": [
            {"type": "customer_tier", "operator": "equals", "value": "gold"},
            {"type": "quantity", "operator": "greater_than", "value": 3}
        ]}
    ]}

An action whose input is not connected gets the implicit AND of every
condition in the rule. That is the same fallback the evaluation engine applies
to rules without logical nodes.
"""

from typing import Any

from promo_builder.api.schemas.promotion_rule import (
    CompiledCondition,
    CompiledLogicalNode,
    PromotionRule,
)
from promo_builder.core.errors import CompilationError, IncompleteGraphError

ACTION_INPUT = "condition"
LOGICAL_INPUTS = ("a", "b")


def build_condition_trees(rule: PromotionRule) -> dict[str, dict[str, Any]]:
    """Condition tree for every action of the rule, keyed by action id."""
    return {action.id: build_condition_tree(rule, action.id) for action in rule.actions}


def build_condition_tree(rule: PromotionRule, action_id: str) -> dict[str, Any]:
    """
    Resolve the condition tree guarding one action.

    Raises:
        CompilationError: If the action does not exist, a connection points at a
            node that is neither a condition nor a logical node, or the
            connections loop
        IncompleteGraphError: If a logical node input is unconnected, or the
            action is unconnected and the rule has no conditions
    """
    if action_id not in {action.id for action in rule.actions}:
        raise CompilationError(
            f"Action '{action_id}' does not exist in rule {rule.name!r}",
            details={"action_id": action_id},
        )

    conditions = {c.id: c for c in rule.conditions}
    logical_nodes = {n.id: n for n in rule.logical_nodes}
    incoming = {(c.target, c.to_input): c.source for c in rule.connections}

    source = incoming.get((action_id, ACTION_INPUT))
    if source is None:
        if not rule.conditions:
            raise IncompleteGraphError(
                f"Action '{action_id}' has no conditions to apply to",
                details={"action_id": action_id},
            )
        return {"and": [_leaf(c) for c in rule.conditions]}

    return _resolve(source, conditions, logical_nodes, incoming, path=(action_id,))


def _resolve(
    node_id: str,
    conditions: dict[str, CompiledCondition],
    logical_nodes: dict[str, CompiledLogicalNode],
    incoming: dict[tuple[str, str], str],
    path: tuple[str, ...],
) -> dict[str, Any]:
    if node_id in path:
        raise CompilationError(
            f"Connections loop back through node '{node_id}'",
            details={"path": [*path, node_id]},
        )

    if node_id in conditions:
        return _leaf(conditions[node_id])

    logical = logical_nodes.get(node_id)
    if logical is None:
        raise CompilationError(
            f"Node '{node_id}' cannot feed a condition input",
            details={"node_id": node_id, "path": list(path)},
        )

    children = []
    for socket in LOGICAL_INPUTS:
        child_id = incoming.get((node_id, socket))
        if child_id is None:
            raise IncompleteGraphError(
                f"Input '{socket}' of {logical.type.value.upper()} node '{node_id}' is not connected",
                details={"node_id": node_id, "socket": socket},
            )
        children.append(
            _resolve(child_id, conditions, logical_nodes, incoming, path=(*path, node_id))
        )

    return {logical.type.value: children}


def _leaf(condition: CompiledCondition) -> dict[str, Any]:
    return {"type": condition.type.value, "operator": condition.operator, "value": condition.value}
