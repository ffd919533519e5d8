from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from promo_builder.core.config import settings
from promo_builder.domain.enums import CompiledActionType, CompiledConditionType, LogicalSubtype


class RuleMetadata(BaseModel):
    """
    Rule-level settings merged into the compiled document.

    Validated for type and range only. Ordering of valid_from/valid_until is
    checked by the pre-submission validator when enforcement is enabled.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="", max_length=255)
    salience: int = Field(
        default_factory=lambda: settings.default_salience,
        ge=1,
        strict=True,
        description="Higher salience is evaluated first by the evaluation engine.",
    )
    stackable: bool = Field(default=True, strict=True)
    active: bool = Field(default=True, strict=True)
    valid_from: date | None = None
    valid_until: date | None = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()


class CompiledCondition(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: CompiledConditionType
    operator: str
    value: Any
    id: str


class CompiledAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: CompiledActionType
    value: int | float
    id: str


class CompiledLogicalNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: LogicalSubtype
    id: str


class CompiledConnection(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source: str = Field(alias="from")
    target: str = Field(alias="to")
    from_output: str = Field(alias="fromOutput")
    to_input: str = Field(alias="toInput")


class PromotionRule(BaseModel):
    """
    Compiled, serializable promotion rule.

    This is the body of `POST /admin/promotion-rules`. Use `to_payload()` to
    get the wire representation (camelCase keys where the API expects them).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    salience: int
    stackable: bool
    active: bool
    valid_from: date | None = None
    valid_until: date | None = None
    conditions: tuple[CompiledCondition, ...] = ()
    actions: tuple[CompiledAction, ...] = ()
    logical_nodes: tuple[CompiledLogicalNode, ...] = Field(default=(), alias="logicalNodes")
    connections: tuple[CompiledConnection, ...] = ()
    created_at: datetime = Field(alias="createdAt")

    @field_serializer("created_at")
    def serialize_created_at(self, value: datetime) -> str:
        # Millisecond precision UTC with a trailing Z, as JavaScript's toISOString()
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def to_payload(self) -> dict[str, Any]:
        """JSON-compatible dict with API field names."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# API envelopes
# =============================================================================


class ApiResponse(BaseModel):
    """`{success, message, data}` envelope returned by the promotion rules API."""

    model_config = ConfigDict(extra="ignore")

    success: bool
    message: str = ""
    data: Any = None


class PromotionRuleRecord(BaseModel):
    """A stored promotion rule as returned by `GET /admin/promotion-rules`."""

    model_config = ConfigDict(extra="ignore")

    id: int
    name: str
    salience: int
    stackable: bool
    active: bool
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    conditions: list[dict[str, Any]] = Field(default_factory=list)
    actions: list[dict[str, Any]] = Field(default_factory=list)
    visual_data: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PromotionRuleList(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data: list[PromotionRuleRecord] = Field(default_factory=list)
    total: int = 0
