"""
Domain enums for promotion rule graphs and compiled rules.

Values are the serialized strings exchanged with the promotion rules API.
"""

from enum import Enum


class NodeKind(str, Enum):
    """Discriminator of a rule graph node."""

    CONDITION = "condition"
    ACTION = "action"
    LOGICAL = "logical"


class ConditionSubtype(str, Enum):
    """Predicate a condition node checks against cart/customer data."""

    PRODUCT_ID = "product_id"
    CATEGORY = "category"
    EMAIL = "email"
    QUANTITY = "quantity"
    CUSTOMER_TIER = "customer_tier"


class ActionSubtype(str, Enum):
    """Effect an action node applies when its conditions hold."""

    PERCENTAGE_DISCOUNT = "percentage_discount"
    FREE_UNITS = "free_units"


class LogicalSubtype(str, Enum):
    """Boolean combinator joining two condition results."""

    AND = "and"
    OR = "or"


class ConditionOperator(str, Enum):
    """Comparison operators available on condition nodes."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_THAN_OR_EQUAL = "greater_than_or_equal"
    LESS_THAN_OR_EQUAL = "less_than_or_equal"
    CONTAINS = "contains"
    IN = "in"
    NOT_IN = "not_in"


class CompiledConditionType(str, Enum):
    """`type` of an entry in a compiled rule's `conditions` array."""

    PRODUCT_ID = "product_id"
    CATEGORY_ID = "category_id"
    CUSTOMER_EMAIL = "customer_email"
    QUANTITY = "quantity"
    CUSTOMER_TIER = "customer_tier"


class CompiledActionType(str, Enum):
    """`type` of an entry in a compiled rule's `actions` array."""

    PERCENTAGE_DISCOUNT = "percentage_discount"
    FREE_UNITS = "free_units"


# Operators whose value is a list of candidates
LIST_OPERATORS = frozenset({ConditionOperator.IN, ConditionOperator.NOT_IN})

_EQUALITY = (
    ConditionOperator.EQUALS,
    ConditionOperator.NOT_EQUALS,
    ConditionOperator.IN,
    ConditionOperator.NOT_IN,
)

_ORDERING = (
    ConditionOperator.GREATER_THAN,
    ConditionOperator.LESS_THAN,
    ConditionOperator.GREATER_THAN_OR_EQUAL,
    ConditionOperator.LESS_THAN_OR_EQUAL,
)

# Numeric ids also take ordering comparisons
ALLOWED_OPERATORS: dict[ConditionSubtype, frozenset[ConditionOperator]] = {
    ConditionSubtype.PRODUCT_ID: frozenset((*_EQUALITY, *_ORDERING)),
    ConditionSubtype.CATEGORY: frozenset((*_EQUALITY, *_ORDERING)),
    ConditionSubtype.EMAIL: frozenset((*_EQUALITY, ConditionOperator.CONTAINS)),
    ConditionSubtype.QUANTITY: frozenset(
        (ConditionOperator.EQUALS, ConditionOperator.NOT_EQUALS, *_ORDERING)
    ),
    ConditionSubtype.CUSTOMER_TIER: frozenset(_EQUALITY),
}
