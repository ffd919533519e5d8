"""
Rule graph compiler.

Turns an editable rule graph into the flat, serializable PromotionRule
document handed to the promotion rules API:
- Classifies every node by its explicit kind/subtype (never by class identity)
- Fails loudly on an unrecognized subtype instead of dropping the node
- Copies connections verbatim, trusting the graph's insertion-time invariants
- Never mutates the graph; the output only varies with `createdAt`

Validation for submission is a separate step (see validator.py) so partial
graphs can be compiled and inspected.
"""

import logging
import time
from datetime import UTC, datetime

from promo_builder.api.schemas.promotion_rule import (
    CompiledAction,
    CompiledCondition,
    CompiledConnection,
    CompiledLogicalNode,
    PromotionRule,
    RuleMetadata,
)
from promo_builder.core.errors import UnknownNodeKindError
from promo_builder.core.observability import metrics
from promo_builder.domain.enums import (
    ActionSubtype,
    CompiledActionType,
    CompiledConditionType,
    ConditionSubtype,
    LogicalSubtype,
    NodeKind,
)
from promo_builder.graph.nodes import RuleNode
from promo_builder.graph.rule_graph import RuleGraph

logger = logging.getLogger(__name__)


# Fixed per-subtype mapping to the compiled `type` field
CONDITION_TYPE_MAP: dict[ConditionSubtype, CompiledConditionType] = {
    ConditionSubtype.PRODUCT_ID: CompiledConditionType.PRODUCT_ID,
    ConditionSubtype.CATEGORY: CompiledConditionType.CATEGORY_ID,
    ConditionSubtype.EMAIL: CompiledConditionType.CUSTOMER_EMAIL,
    ConditionSubtype.QUANTITY: CompiledConditionType.QUANTITY,
    ConditionSubtype.CUSTOMER_TIER: CompiledConditionType.CUSTOMER_TIER,
}

ACTION_TYPE_MAP: dict[ActionSubtype, CompiledActionType] = {
    ActionSubtype.PERCENTAGE_DISCOUNT: CompiledActionType.PERCENTAGE_DISCOUNT,
    ActionSubtype.FREE_UNITS: CompiledActionType.FREE_UNITS,
}

LOGICAL_TYPE_MAP: dict[LogicalSubtype, LogicalSubtype] = {
    LogicalSubtype.AND: LogicalSubtype.AND,
    LogicalSubtype.OR: LogicalSubtype.OR,
}

CompiledNode = CompiledCondition | CompiledAction | CompiledLogicalNode


def compile_rule(
    graph: RuleGraph, metadata: RuleMetadata | None = None, now: datetime | None = None
) -> PromotionRule:
    """
    Compile a rule graph into a PromotionRule document.

    Args:
        graph: The rule graph to compile (left untouched)
        metadata: Rule-level settings; defaults to RuleMetadata()
        now: Timestamp to record as `createdAt`; defaults to the current UTC time.
             Pass a fixed value for reproducible output. A naive value is
             taken as UTC.

    Returns:
        The compiled PromotionRule. A blank name becomes `Rule_<epoch ms>`.

    Raises:
        UnknownNodeKindError: If a node's kind or subtype has no mapping

    Example Output (via `to_payload()`):
        {
            "name": "Spring Sale",
            "salience": 10,
            "stackable": true,
            "active": true,
            "valid_from": null,
            "valid_until": null,
            "conditions": [{"type": "product_id", "operator": "equals", "value": 42, "id": "n1"}],
            "actions": [{"type": "percentage_discount", "value": 15, "id": "n2"}],
            "logicalNodes": [],
            "connections": [],
            "createdAt": "2025-03-01T09:30:00.000Z"
        }
    """
    start_time = time.perf_counter()
    metadata = metadata or RuleMetadata()
    nodes = graph.list_nodes()
    logger.info("Compiling promotion rule %r (%d nodes)", metadata.name or "<unnamed>", len(nodes))

    try:
        conditions: list[CompiledCondition] = []
        actions: list[CompiledAction] = []
        logical_nodes: list[CompiledLogicalNode] = []

        for node in nodes:
            compiled = compile_node(node)
            if isinstance(compiled, CompiledCondition):
                conditions.append(compiled)
            elif isinstance(compiled, CompiledAction):
                actions.append(compiled)
            else:
                logical_nodes.append(compiled)

        connections = [
            CompiledConnection(
                source=c.source,
                target=c.target,
                from_output=c.source_output,
                to_input=c.target_input,
            )
            for c in graph.list_connections()
        ]

        created_at = now or datetime.now(UTC)
        # Naive timestamps are UTC, for both `createdAt` and the default name
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=UTC)
        rule = PromotionRule(
            name=metadata.name or _default_rule_name(created_at),
            salience=metadata.salience,
            stackable=metadata.stackable,
            active=metadata.active,
            valid_from=metadata.valid_from,
            valid_until=metadata.valid_until,
            conditions=conditions,
            actions=actions,
            logical_nodes=logical_nodes,
            connections=connections,
            created_at=created_at,
        )
    except Exception:
        _record_compiler_metrics("error", time.perf_counter() - start_time, len(nodes))
        raise

    duration = time.perf_counter() - start_time
    logger.info(
        "Compiled promotion rule %r: %d conditions, %d actions, %d logical nodes, "
        "%d connections, duration=%.4fs",
        rule.name,
        len(rule.conditions),
        len(rule.actions),
        len(rule.logical_nodes),
        len(rule.connections),
        duration,
    )
    _record_compiler_metrics("success", duration, len(nodes))
    return rule


def compile_node(node: RuleNode) -> CompiledNode:
    """
    Map a single node to its compiled entry.

    Raises:
        UnknownNodeKindError: If the kind or subtype has no mapping
    """
    kind = getattr(node, "kind", None)
    subtype = getattr(node, "subtype", None)

    match kind:
        case NodeKind.CONDITION:
            condition_type = CONDITION_TYPE_MAP.get(subtype)
            if condition_type is None:
                raise _unknown_kind(node, kind, subtype)
            return CompiledCondition(
                type=condition_type,
                operator=_enum_value(node.operator),
                value=node.value,
                id=node.id,
            )
        case NodeKind.ACTION:
            action_type = ACTION_TYPE_MAP.get(subtype)
            if action_type is None:
                raise _unknown_kind(node, kind, subtype)
            return CompiledAction(type=action_type, value=node.value, id=node.id)
        case NodeKind.LOGICAL:
            logical_type = LOGICAL_TYPE_MAP.get(subtype)
            if logical_type is None:
                raise _unknown_kind(node, kind, subtype)
            return CompiledLogicalNode(type=logical_type, id=node.id)
        case _:
            raise _unknown_kind(node, kind, subtype)


def _unknown_kind(node: RuleNode, kind: object, subtype: object) -> UnknownNodeKindError:
    return UnknownNodeKindError(
        f"Node '{node.id}' has an unrecognized type ({_enum_value(kind)}/{_enum_value(subtype)}); "
        "the rule was not compiled",
        details={
            "node_id": node.id,
            "kind": _enum_value(kind),
            "subtype": _enum_value(subtype),
        },
    )


def _enum_value(value: object) -> object:
    return getattr(value, "value", value)


def _default_rule_name(created_at: datetime) -> str:
    return f"Rule_{int(created_at.timestamp() * 1000)}"


def _record_compiler_metrics(status: str, duration: float, node_count: int) -> None:
    """Record compiler metrics to the Prometheus registry."""
    metrics.compiler_compilations_total.labels(status=status).inc()
    metrics.compiler_duration_seconds.observe(duration)
    if status == "success":
        metrics.compiler_nodes_count.observe(node_count)
