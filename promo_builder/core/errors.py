"""
Domain-specific exceptions for the promotion rule builder.

All of these represent programmer or user-input errors raised synchronously
from graph mutation, compilation, validation or submission. None of them are
retryable at this layer.
"""

from typing import Any


class PromotionRuleError(Exception):
    """Base exception for all promotion rule builder errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


# =============================================================================
# Rule graph errors
# =============================================================================


class RuleGraphError(PromotionRuleError):
    """Raised when a graph mutation would break the graph's invariants."""

    pass


class DuplicateIdError(RuleGraphError):
    """
    Raised when a node id is already present in the graph.

    Callers must generate distinct ids (e.g. a unique-per-session counter).
    """

    pass


class UnknownNodeError(RuleGraphError):
    """Raised when a connection or lookup references a node id absent from the graph."""

    pass


class SocketMismatchError(RuleGraphError):
    """
    Raised when a named socket does not exist on the referenced node kind.

    Examples:
    - Connecting into an action node's nonexistent second input
    - Using a condition node as a connection target
    """

    pass


class SocketOccupiedError(SocketMismatchError):
    """Raised when an input socket already has an incoming connection."""

    pass


class CycleError(RuleGraphError):
    """Raised when a connection would make the rule graph cyclic."""

    pass


class GraphLimitError(RuleGraphError):
    """Raised when a graph already holds the configured maximum number of nodes."""

    pass


# =============================================================================
# Compilation errors
# =============================================================================


class CompilationError(PromotionRuleError):
    """Raised when a graph or compiled rule cannot be turned into its target shape."""

    pass


class UnknownNodeKindError(CompilationError):
    """
    Raised when a node's kind/subtype is not in the compiler's mapping table.

    Signals a model/compiler version mismatch. Compilation is aborted rather
    than dropping the node.
    """

    pass


class IncompleteGraphError(CompilationError):
    """Raised when a logical node input needed to build a condition tree is unconnected."""

    pass


# =============================================================================
# Pre-submission validation errors
# =============================================================================


class RuleValidationError(PromotionRuleError):
    """Raised by the pre-submission validation step. Messages are display-ready."""

    pass


class EmptyConditionsError(RuleValidationError):
    """Raised when a compiled rule has no condition."""

    pass


class EmptyActionsError(RuleValidationError):
    """Raised when a compiled rule has no action."""

    pass


class InvalidValidityWindowError(RuleValidationError):
    """Raised when valid_from is later than valid_until (only when enforcement is enabled)."""

    pass


# =============================================================================
# External API errors
# =============================================================================


class ApiError(PromotionRuleError):
    """
    Raised when the promotion rules API rejects a request or cannot be reached.

    `message` is the server-provided message when there is one, so callers can
    surface it to the user verbatim.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, details)
