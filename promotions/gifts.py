"""Gift resolver: final policy over the gift lines calculators produced.

Gift lines are zero-priced and never touch the totals. The only policy
today is an optional cap on gift units per order (EngineConfig.max_gift_units);
lines from later rules are trimmed first.
"""

from dataclasses import replace

from core.observability.logger import get_logger
from promotions.config import EngineConfig
from promotions.models import CalculationResult

logger = get_logger("gifts")


def resolve_gifts(result: CalculationResult, config: EngineConfig | None = None) -> CalculationResult:
    """Apply gift policy to ``result`` and return the adjusted result."""
    config = config or EngineConfig.default()
    cap = config.max_gift_units
    if cap is None:
        return result

    total_units = sum(line.quantity for line in result.gift_lines)
    if total_units <= cap:
        return result

    kept = []
    remaining = cap
    for line in result.gift_lines:
        if remaining <= 0:
            break
        if line.quantity <= remaining:
            kept.append(line)
            remaining -= line.quantity
        else:
            kept.append(replace(line, quantity=remaining))
            remaining = 0

    logger.info("Gift units capped at %d (%d earned)", cap, total_units)
    return replace(
        result,
        gift_lines=tuple(kept),
        errors=result.errors + (f"Gift items limited to {cap} per order",),
    )
