"""
Admin-side validation for creating and editing volume discounts

These are the checks that produce messages for the merchant. Stored data is
never validated here; see rule_parser for that.
"""

import math
from typing import Any, List, Optional

from .exceptions import ValidationError
from .models import DiscountConfig, DiscountForm, Rule
from .discount_ids import find_stored_rule
from .rule_parser import coerce_number
from .rule_selector import MAX_PERCENT_OFF, MIN_PERCENT_OFF

# Minimum quantity is not a form field; every rule is "buy 2"
DEFAULT_MIN_QTY = 2
DEFAULT_PERCENT_OFF = 10

TITLE_REQUIRED = "Title is required."
PRODUCTS_REQUIRED = "Select at least one product."
DISCOUNT_ID_REQUIRED = "Missing discount ID."


def percent_range_message(min_percent: float = MIN_PERCENT_OFF, max_percent: float = MAX_PERCENT_OFF) -> str:
    return f"Percent off must be between {min_percent:g} and {max_percent:g}."


def validate_form(
    form: DiscountForm,
    min_percent: float = MIN_PERCENT_OFF,
    max_percent: float = MAX_PERCENT_OFF,
) -> List[str]:
    """
    Validate an admin submission

    Returns:
        Messages to show the merchant, in form order; empty when valid
    """
    errors = []

    if not form.title:
        errors.append(TITLE_REQUIRED)

    percent_off = coerce_number(form.percent_off)
    if not math.isfinite(percent_off) or percent_off < min_percent or percent_off > max_percent:
        errors.append(percent_range_message(min_percent, max_percent))

    if not form.products:
        errors.append(PRODUCTS_REQUIRED)

    return errors


def build_rule(
    form: DiscountForm,
    discount_id: Optional[str] = None,
    require_discount_id: bool = False,
    min_qty: int = DEFAULT_MIN_QTY,
    min_percent: float = MIN_PERCENT_OFF,
    max_percent: float = MAX_PERCENT_OFF,
) -> Rule:
    """
    Turn a valid submission into the rule to upsert

    Raises:
        ValidationError: with every message when the submission is invalid
    """
    errors = validate_form(form, min_percent, max_percent)
    if require_discount_id and not discount_id:
        errors.append(DISCOUNT_ID_REQUIRED)

    if errors:
        raise ValidationError(errors)

    return Rule(
        discount_id=discount_id,
        percent_off=coerce_number(form.percent_off),
        products=list(form.products),
        min_qty=min_qty,
    )


def editor_config(
    raw: Any,
    raw_id: Optional[str],
    default_percent_off: float = DEFAULT_PERCENT_OFF,
    default_min_qty: int = DEFAULT_MIN_QTY,
) -> DiscountConfig:
    """Values to prefill the editor with for the discount ``raw_id``"""
    rule = find_stored_rule(raw, raw_id)
    if rule is None:
        return DiscountConfig(percent_off=default_percent_off, products=[], min_qty=default_min_qty)

    return DiscountConfig(percent_off=rule.percent_off, products=list(rule.products), min_qty=rule.min_qty)
