from promo_builder.api.schemas.promotion_rule import (
    ApiResponse,
    CompiledAction,
    CompiledCondition,
    CompiledConnection,
    CompiledLogicalNode,
    PromotionRule,
    PromotionRuleList,
    PromotionRuleRecord,
    RuleMetadata,
)

__all__ = [
    # Compiled rule
    "CompiledAction",
    "CompiledCondition",
    "CompiledConnection",
    "CompiledLogicalNode",
    "PromotionRule",
    "RuleMetadata",
    # API envelopes
    "ApiResponse",
    "PromotionRuleList",
    "PromotionRuleRecord",
]
