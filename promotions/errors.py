"""Exception hierarchy for the promotions package.

Rule and cart problems are never raised: the engine reports them in
``CalculationResult.errors``. Exceptions are reserved for engine bugs
(InvariantViolation) and for the commit path, where a usage limit can be
exhausted between preview and order creation.
"""

from typing import Optional


class InvariantViolation(AssertionError):
    """A calculator or the aggregator broke a result invariant.

    This is a bug in rule interpretation, never a caller error.
    """


class PromotionError(Exception):
    """Base class for promotion service errors."""


class UsageLimitExceeded(PromotionError):
    """A rule's usage limit was reached between preview and commit.

    Carries the result recalculated without the exhausted rule so the caller
    can show the customer the new total.
    """

    def __init__(self, rule_id: str, message: str, result=None, code: Optional[str] = None):
        super().__init__(message)
        self.rule_id = rule_id
        self.code = code
        self.result = result


class CouponUnavailableError(UsageLimitExceeded):
    """The customer's coupon code is no longer available."""


class PromotionUnavailableError(UsageLimitExceeded):
    """An automatic promotion ran out while the order was being committed."""
