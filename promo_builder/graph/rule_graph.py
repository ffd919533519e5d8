"""
In-memory rule graph: the working set of nodes and connections of one
editing session.

Invariants enforced at insertion time:
- Node ids are unique within the graph
- Both endpoints of a connection are present in the graph
- Connections go from an output socket that exists on the source node kind
  to an input socket that exists on the target node kind
- An input socket has at most one incoming connection
- The graph stays acyclic

The compiler trusts these invariants and copies connections verbatim.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict

from promo_builder.core.config import settings
from promo_builder.core.errors import (
    CycleError,
    DuplicateIdError,
    GraphLimitError,
    RuleGraphError,
    SocketMismatchError,
    SocketOccupiedError,
    UnknownNodeError,
    UnknownNodeKindError,
)
from promo_builder.graph.nodes import RuleNode, SocketLayout, parse_node

logger = logging.getLogger(__name__)


class Connection(BaseModel):
    """Directed link from a source node's output socket to a target node's input socket."""

    model_config = ConfigDict(frozen=True)

    source: str
    source_output: str
    target: str
    target_input: str


class RuleGraph:
    """
    Node/connection working set with centralized invariant enforcement.

    Not safe for concurrent mutation; a graph is owned by a single editing
    session at a time.
    """

    def __init__(self, max_nodes: int | None = None) -> None:
        self._nodes: dict[str, RuleNode] = {}
        self._connections: list[Connection] = []
        self._max_nodes = max_nodes if max_nodes is not None else settings.max_graph_nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def add_node(self, node: RuleNode) -> RuleNode:
        """
        Insert a node.

        Raises:
            DuplicateIdError: If a node with the same id is already present
            GraphLimitError: If the graph is full
        """
        if not isinstance(node, RuleNode):
            raise TypeError(f"Expected a RuleNode, got {type(node).__name__}")

        if node.id in self._nodes:
            raise DuplicateIdError(
                f"A node with id '{node.id}' already exists in this rule",
                details={"node_id": node.id},
            )

        if len(self._nodes) >= self._max_nodes:
            raise GraphLimitError(
                f"A rule cannot contain more than {self._max_nodes} nodes",
                details={"node_id": node.id, "max_nodes": self._max_nodes},
            )

        self._nodes[node.id] = node
        logger.debug("Added %s node %s", getattr(node, "kind", "?"), node.id)
        return node

    def get_node(self, node_id: str) -> RuleNode:
        """
        Raises:
            UnknownNodeError: If the id is not present
        """
        try:
            return self._nodes[node_id]
        except KeyError:
            raise UnknownNodeError(
                f"Node '{node_id}' does not exist in this rule", details={"node_id": node_id}
            ) from None

    def update_node(self, node_id: str, **changes: Any) -> RuleNode:
        """
        Replace a node with a re-validated copy carrying `changes`.

        The node keeps its position in insertion order. Its id and kind cannot
        change, so existing connections stay valid.

        Raises:
            UnknownNodeError: If the id is not present
            RuleGraphError: If `changes` touches the id or kind
            pydantic.ValidationError: If the updated node is invalid
        """
        node = self.get_node(node_id)
        frozen = sorted({"id", "kind"} & changes.keys())
        if frozen:
            raise RuleGraphError(
                f"Node {', '.join(frozen)} cannot be changed",
                details={"node_id": node_id, "fields": frozen},
            )

        new_node = node.updated(**changes)
        self._nodes[node_id] = new_node
        logger.debug("Updated node %s: %s", node_id, sorted(changes))
        return new_node

    def remove_node(self, node_id: str) -> RuleNode:
        """
        Remove a node and every connection referencing it.

        Raises:
            UnknownNodeError: If the id is not present
        """
        node = self.get_node(node_id)
        del self._nodes[node_id]

        before = len(self._connections)
        self._connections = [
            c for c in self._connections if c.source != node_id and c.target != node_id
        ]
        logger.debug(
            "Removed node %s and %d connection(s)", node_id, before - len(self._connections)
        )
        return node

    def list_nodes(self) -> tuple[RuleNode, ...]:
        """Read-only snapshot of the nodes in insertion order."""
        return tuple(self._nodes.values())

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def add_connection(
        self, source: str, source_output: str, target: str, target_input: str
    ) -> Connection:
        """
        Connect `source.source_output` to `target.target_input`.

        Raises:
            UnknownNodeError: If either endpoint is absent
            SocketMismatchError: If a socket does not exist on the node kind
            SocketOccupiedError: If the target input is already connected
            CycleError: If the connection would create a cycle
        """
        for endpoint in (source, target):
            if endpoint not in self._nodes:
                raise UnknownNodeError(
                    f"Cannot connect: node '{endpoint}' does not exist in this rule",
                    details={"node_id": endpoint, "source": source, "target": target},
                )

        source_node = self._nodes[source]
        target_node = self._nodes[target]

        if source_output not in _layout(source_node).outputs:
            raise SocketMismatchError(
                f"Node '{source}' ({source_node.kind}) has no output socket '{source_output}'",
                details={
                    "node_id": source,
                    "socket": source_output,
                    "available_outputs": list(_layout(source_node).outputs),
                },
            )

        if target_input not in _layout(target_node).inputs:
            raise SocketMismatchError(
                f"Node '{target}' ({target_node.kind}) has no input socket '{target_input}'",
                details={
                    "node_id": target,
                    "socket": target_input,
                    "available_inputs": list(_layout(target_node).inputs),
                },
            )

        for existing in self._connections:
            if existing.target == target and existing.target_input == target_input:
                raise SocketOccupiedError(
                    f"Input '{target_input}' of node '{target}' is already connected "
                    f"to '{existing.source}'",
                    details={
                        "node_id": target,
                        "socket": target_input,
                        "connected_source": existing.source,
                    },
                )

        if source == target or self._reaches(target, source):
            raise CycleError(
                f"Connecting '{source}' to '{target}' would create a cycle",
                details={"source": source, "target": target},
            )

        connection = Connection(
            source=source, source_output=source_output, target=target, target_input=target_input
        )
        self._connections.append(connection)
        logger.debug("Connected %s.%s -> %s.%s", source, source_output, target, target_input)
        return connection

    def remove_connection(
        self, source: str, source_output: str, target: str, target_input: str
    ) -> Connection:
        """
        Raises:
            RuleGraphError: If no such connection exists
        """
        wanted = Connection(
            source=source, source_output=source_output, target=target, target_input=target_input
        )
        try:
            self._connections.remove(wanted)
        except ValueError:
            raise RuleGraphError(
                f"No connection from '{source}.{source_output}' to '{target}.{target_input}'",
                details=wanted.model_dump(),
            ) from None
        return wanted

    def list_connections(self) -> tuple[Connection, ...]:
        """Read-only snapshot of the connections in insertion order."""
        return tuple(self._connections)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_payload(self) -> dict[str, Any]:
        """
        Serialize the editable graph (nodes and connections) to plain JSON values.

        This is the form stored alongside a submitted rule so it can be
        reopened in the editor. It is not the compiled rule document.
        """
        return {
            "nodes": [node.to_payload() for node in self._nodes.values()],
            "connections": [c.model_dump() for c in self._connections],
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any], max_nodes: int | None = None) -> RuleGraph:
        """
        Rebuild a graph from `to_payload` output.

        Nodes and connections are replayed through `add_node` and
        `add_connection`, so a payload that breaks a graph invariant is
        rejected with the same error as the equivalent edit.

        Raises:
            RuleGraphError: If the payload is malformed or breaks an invariant
            pydantic.ValidationError: If a node or connection is invalid
        """
        nodes = payload.get("nodes", []) if isinstance(payload, dict) else None
        connections = payload.get("connections", []) if isinstance(payload, dict) else None
        if not isinstance(nodes, list) or not isinstance(connections, list):
            raise RuleGraphError(
                "Graph payload must contain 'nodes' and 'connections' lists",
                details={"payload_type": type(payload).__name__},
            )

        graph = cls(max_nodes=max_nodes)
        for raw_node in nodes:
            graph.add_node(parse_node(raw_node))
        for raw_connection in connections:
            connection = Connection.model_validate(raw_connection)
            graph.add_connection(
                connection.source,
                connection.source_output,
                connection.target,
                connection.target_input,
            )
        logger.debug(
            "Loaded graph with %d node(s) and %d connection(s)",
            len(graph),
            len(graph._connections),
        )
        return graph

    def _reaches(self, start: str, goal: str) -> bool:
        """Whether `goal` is reachable from `start` along existing connections."""
        stack = [start]
        seen: set[str] = set()
        while stack:
            current = stack.pop()
            if current == goal:
                return True
            if current in seen:
                continue
            seen.add(current)
            stack.extend(c.target for c in self._connections if c.source == current)
        return False


def _layout(node: RuleNode) -> SocketLayout:
    layout = node.sockets
    if layout is None:
        raise UnknownNodeKindError(
            f"Node '{node.id}' has unrecognized kind '{getattr(node, 'kind', None)}'",
            details={"node_id": node.id, "kind": getattr(node, "kind", None)},
        )
    return layout
