"""
Pre-submission validation for compiled promotion rules.

Kept out of `compile_rule` so partial graphs can be compiled and inspected;
callers run it right before sending a rule to the promotion rules API.
Error messages are suitable for direct display to the rule author.
"""

import logging

from promo_builder.api.schemas.promotion_rule import PromotionRule
from promo_builder.core.config import settings
from promo_builder.core.errors import (
    EmptyActionsError,
    EmptyConditionsError,
    InvalidValidityWindowError,
)

logger = logging.getLogger(__name__)


def validate_rule(rule: PromotionRule, enforce_validity_window: bool | None = None) -> None:
    """
    Check that a compiled rule may be submitted.

    Args:
        rule: The compiled rule
        enforce_validity_window: Reject rules whose valid_from is after
            valid_until. Defaults to `settings.enforce_validity_window`.

    Raises:
        EmptyConditionsError: If the rule has no condition (checked first)
        EmptyActionsError: If the rule has no action
        InvalidValidityWindowError: If enforcement is on and the window is inverted
    """
    if not rule.conditions:
        raise EmptyConditionsError(
            "Add at least one condition node before submitting the rule",
            details={"rule_name": rule.name},
        )

    if not rule.actions:
        raise EmptyActionsError(
            "Add at least one action node before submitting the rule",
            details={"rule_name": rule.name},
        )

    if enforce_validity_window is None:
        enforce_validity_window = settings.enforce_validity_window

    if rule.valid_from is not None and rule.valid_until is not None:
        if rule.valid_from > rule.valid_until:
            if enforce_validity_window:
                raise InvalidValidityWindowError(
                    "'Valid from' must not be later than 'Valid until'",
                    details={
                        "rule_name": rule.name,
                        "valid_from": rule.valid_from.isoformat(),
                        "valid_until": rule.valid_until.isoformat(),
                    },
                )
            logger.warning(
                "Rule %r has valid_from %s after valid_until %s; it will never be active",
                rule.name,
                rule.valid_from,
                rule.valid_until,
            )

    if not rule.logical_nodes and len(rule.conditions) > 1:
        logger.debug(
            "Rule %r has %d conditions and no logical nodes; they are implicitly ANDed",
            rule.name,
            len(rule.conditions),
        )
