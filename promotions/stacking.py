"""Stacking resolver: which candidates may apply together.

Candidates arrive in application order. Stackable rules are always
selected; the first non-stackable rule takes the single exclusive slot and
every later non-stackable rule is excluded.
"""

from dataclasses import dataclass, field
from typing import Sequence

from core.observability.logger import get_logger
from promotions.models import DiscountRule

logger = get_logger("stacking")


@dataclass
class StackingSelection:
    """Rules selected to apply, in order, and those pushed out."""

    selected: list[DiscountRule] = field(default_factory=list)
    excluded: list[DiscountRule] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def exclusive_rule(self) -> DiscountRule | None:
        """The non-stackable rule that won, if any."""
        return next((rule for rule in self.selected if not rule.stackable), None)


def resolve_stacking(candidates: Sequence[DiscountRule]) -> StackingSelection:
    """Select the subset of ``candidates`` that may jointly apply."""
    selection = StackingSelection()
    non_stackable_taken = False

    for rule in candidates:
        if rule.stackable:
            selection.selected.append(rule)
        elif not non_stackable_taken:
            selection.selected.append(rule)
            non_stackable_taken = True
        else:
            selection.excluded.append(rule)
            selection.errors.append(
                f"{rule.label}: excluded by a higher-priority exclusive discount"
            )
            logger.debug("Rule %s excluded by exclusive rule", rule.id)

    return selection
