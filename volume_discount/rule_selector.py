"""
Per-line rule selection for cart evaluation
"""

import math
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from .models import CartLine, LineDiscount, Rule

MIN_PERCENT_OFF = 1
MAX_PERCENT_OFF = 80

SELECTION_STRATEGY_ALL = "ALL"


def is_rule_usable(rule: Rule, min_percent: float = MIN_PERCENT_OFF, max_percent: float = MAX_PERCENT_OFF) -> bool:
    """A stored rule may discount only with an in-range percentage and at least one product"""
    return (
        math.isfinite(rule.percent_off)
        and min_percent <= rule.percent_off <= max_percent
        and len(rule.products) > 0
    )


def best_rule_for_line(
    rules: Sequence[Rule],
    line: CartLine,
    min_percent: float = MIN_PERCENT_OFF,
    max_percent: float = MAX_PERCENT_OFF,
) -> Optional[Rule]:
    """
    Pick the rule giving the largest discount for one cart line

    Rules never stack. On equal percentages the earlier rule wins.
    """
    if line.product_id is None:
        return None

    best = None
    for rule in rules:
        if line.quantity < rule.min_qty:
            continue
        if line.product_id not in rule.products:
            continue
        if not is_rule_usable(rule, min_percent, max_percent):
            continue
        if best is None or rule.percent_off > best.percent_off:
            best = rule

    return best


def select_discounts(
    rules: Sequence[Rule],
    lines: Sequence[CartLine],
    min_percent: float = MIN_PERCENT_OFF,
    max_percent: float = MAX_PERCENT_OFF,
) -> List[LineDiscount]:
    """
    Decide the discount for every cart line

    Args:
        rules: Parsed rules in stored order
        lines: Cart lines to evaluate
        min_percent: Lowest percentage a rule may apply
        max_percent: Highest percentage a rule may apply

    Returns:
        One LineDiscount per discounted line; empty means no discount action
    """
    discounts = []

    for line in lines:
        rule = best_rule_for_line(rules, line, min_percent, max_percent)
        if rule is None:
            continue

        logger.debug(f"Line {line.id}: {rule.percent_off}% off (min qty {rule.min_qty})")
        discounts.append(LineDiscount(line_id=line.id, percent_off=rule.percent_off))

    return discounts


def build_operations(discounts: Sequence[LineDiscount]) -> List[Dict[str, Any]]:
    """
    Convert line discounts into discount-function operations

    All candidates go into a single ``productDiscountsAdd`` operation so
    every discounted line is applied. No discounts means no operations.
    """
    if not discounts:
        return []

    candidates = [
        {
            'targets': [{'cartLine': {'id': discount.line_id}}],
            'value': {'percentage': {'value': discount.percent_off}},
        }
        for discount in discounts
    ]

    return [
        {
            'productDiscountsAdd': {
                'selectionStrategy': SELECTION_STRATEGY_ALL,
                'candidates': candidates,
            }
        }
    ]
