"""
Rule graph model: typed nodes and the connections between them.

Key Components:
- nodes: tagged-union node types and their socket layouts
- rule_graph: the graph container enforcing insertion invariants
"""

from promo_builder.graph.nodes import (
    ActionNode,
    ConditionNode,
    LogicalNode,
    Node,
    RuleNode,
    parse_node,
)
from promo_builder.graph.rule_graph import Connection, RuleGraph

__all__ = [
    "ActionNode",
    "ConditionNode",
    "Connection",
    "LogicalNode",
    "Node",
    "RuleGraph",
    "RuleNode",
    "parse_node",
]
