"""
Rule graph node types.

Nodes form a tagged union discriminated by `kind`. Each node also carries an
explicit `subtype` enum, so the compiler classifies nodes by matching on
serializable fields rather than on Python class identity.

Nodes are immutable. Editing goes through `with_operator` / `with_value` /
`updated`, each returning a new, fully re-validated node.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, NamedTuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from promo_builder.domain.enums import (
    ALLOWED_OPERATORS,
    LIST_OPERATORS,
    ActionSubtype,
    ConditionOperator,
    ConditionSubtype,
    LogicalSubtype,
    NodeKind,
)


class SocketLayout(NamedTuple):
    """Named input and output sockets of a node kind."""

    inputs: tuple[str, ...]
    outputs: tuple[str, ...]


# Keyed by the plain string value so lookups work for raw `kind` strings too
SOCKET_LAYOUTS: dict[str, SocketLayout] = {
    NodeKind.CONDITION.value: SocketLayout(inputs=(), outputs=("condition",)),
    NodeKind.ACTION.value: SocketLayout(inputs=("condition",), outputs=()),
    NodeKind.LOGICAL.value: SocketLayout(inputs=("a", "b"), outputs=("result",)),
}

# Initial values used by the editor when a node is dropped onto the canvas
_DEFAULT_CONDITION_VALUES: dict[ConditionSubtype, Any] = {
    ConditionSubtype.PRODUCT_ID: 1,
    ConditionSubtype.CATEGORY: 1,
    ConditionSubtype.QUANTITY: 1,
}

_DEFAULT_ACTION_VALUES: dict[ActionSubtype, Any] = {
    ActionSubtype.PERCENTAGE_DISCOUNT: 10,
    ActionSubtype.FREE_UNITS: 1,
}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _fill_default_value(data: Any, subtype_enum: type, defaults: dict) -> Any:
    if not isinstance(data, dict) or data.get("value") is not None:
        return data
    try:
        subtype = subtype_enum(data.get("subtype"))
    except ValueError:
        # Left for field validation to report
        return data
    if subtype in defaults:
        return {**data, "value": defaults[subtype]}
    return data


class RuleNode(BaseModel):
    """Base class for all rule graph nodes."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1)

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("node id cannot be blank")
        return v

    @property
    def sockets(self) -> SocketLayout | None:
        """Socket layout of this node's kind, or None for an unrecognized kind."""
        return SOCKET_LAYOUTS.get(getattr(self, "kind", None))

    def updated(self, **changes: Any) -> RuleNode:
        """
        Return a re-validated copy of this node with `changes` applied.

        Raises:
            ValueError: If `id` or `kind` is part of the changes
            pydantic.ValidationError: If the resulting node is invalid
        """
        for frozen_field in ("id", "kind"):
            if frozen_field in changes:
                raise ValueError(f"Node '{frozen_field}' cannot be changed")
        return type(self).model_validate({**self.model_dump(), **changes})

    def to_payload(self) -> dict[str, Any]:
        """Serialize the node to plain JSON-compatible values."""
        return self.model_dump(mode="json")


class ConditionNode(RuleNode):
    """A single predicate over cart or customer data."""

    kind: Literal["condition"] = "condition"
    subtype: ConditionSubtype
    operator: ConditionOperator = ConditionOperator.EQUALS
    value: Any = None

    @model_validator(mode="before")
    @classmethod
    def set_default_value(cls, data: Any) -> Any:
        return _fill_default_value(data, ConditionSubtype, _DEFAULT_CONDITION_VALUES)

    @model_validator(mode="after")
    def validate_operator_and_value(self) -> ConditionNode:
        """
        Check the operator is allowed for the subtype and the value matches it.

        IN/NOT_IN take a non-empty list of values; every other operator takes a
        single value.
        """
        allowed = ALLOWED_OPERATORS[self.subtype]
        if self.operator not in allowed:
            raise ValueError(
                f"Operator '{self.operator.value}' is not allowed for "
                f"{self.subtype.value} conditions (allowed: "
                f"{sorted(op.value for op in allowed)})"
            )

        if self.operator in LIST_OPERATORS:
            if not isinstance(self.value, list) or not self.value:
                raise ValueError(
                    f"Operator '{self.operator.value}' requires a non-empty list of values"
                )
            for item in self.value:
                _check_condition_value(self.subtype, item)
        else:
            if isinstance(self.value, list):
                raise ValueError(f"Operator '{self.operator.value}' does not accept lists")
            _check_condition_value(self.subtype, self.value)
        return self

    def with_operator(self, operator: ConditionOperator | str) -> ConditionNode:
        return self.updated(operator=operator)

    def with_value(self, value: Any) -> ConditionNode:
        return self.updated(value=value)


def _check_condition_value(subtype: ConditionSubtype, value: Any) -> None:
    if subtype in (ConditionSubtype.PRODUCT_ID, ConditionSubtype.CATEGORY):
        if not _is_int(value) or value < 1:
            raise ValueError(f"{subtype.value} value must be a positive integer, got {value!r}")
    elif subtype == ConditionSubtype.QUANTITY:
        if not _is_int(value) or value < 0:
            raise ValueError(f"quantity value must be a non-negative integer, got {value!r}")
    elif subtype in (ConditionSubtype.EMAIL, ConditionSubtype.CUSTOMER_TIER):
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"{subtype.value} value must be a non-empty string, got {value!r}")


class ActionNode(RuleNode):
    """An effect applied when the connected conditions hold."""

    kind: Literal["action"] = "action"
    subtype: ActionSubtype
    value: Any = None

    @model_validator(mode="before")
    @classmethod
    def set_default_value(cls, data: Any) -> Any:
        return _fill_default_value(data, ActionSubtype, _DEFAULT_ACTION_VALUES)

    @model_validator(mode="after")
    def validate_magnitude(self) -> ActionNode:
        if self.subtype == ActionSubtype.PERCENTAGE_DISCOUNT:
            if (
                not (_is_int(self.value) or isinstance(self.value, float))
                or not 0 < self.value <= 100
            ):
                raise ValueError(
                    f"percentage_discount value must be a number in (0, 100], got {self.value!r}"
                )
        elif self.subtype == ActionSubtype.FREE_UNITS:
            if not _is_int(self.value) or self.value < 1:
                raise ValueError(
                    f"free_units value must be a positive integer, got {self.value!r}"
                )
        return self

    def with_value(self, value: Any) -> ActionNode:
        return self.updated(value=value)


class LogicalNode(RuleNode):
    """AND/OR combinator over its `a` and `b` inputs."""

    kind: Literal["logical"] = "logical"
    subtype: LogicalSubtype


Node = Annotated[Union[ConditionNode, ActionNode, LogicalNode], Field(discriminator="kind")]

_node_adapter: TypeAdapter[RuleNode] = TypeAdapter(Node)


def parse_node(payload: dict[str, Any]) -> RuleNode:
    """
    Build a node from its serialized form.

    Example:
        >>> parse_node({"id": "n1", "kind": "condition", "subtype": "product_id", "value": 42})
        ConditionNode(id='n1', kind='condition', subtype=<ConditionSubtype.PRODUCT_ID: ...>, ...)

    Raises:
        pydantic.ValidationError: If the kind is unknown or a field is invalid
    """
    return _node_adapter.validate_python(payload)
