"""
Services package for the promotion rule builder.

Contains the promotion rules API client and the editing session that ties
graph editing, compilation and submission together.
"""

from promo_builder.services.promotion_rules_client import PromotionRulesClient
from promo_builder.services.rule_editor import RuleEditorSession

__all__ = ["PromotionRulesClient", "RuleEditorSession"]
