"""
Parsing of stored discount rules

The rules metafield is written by the admin app but read back as opaque JSON,
so nothing about its shape can be trusted. Parsing never raises: anything
that does not look like a rule is dropped and the remaining rules are kept.

Two shapes are accepted:

* ``{"rules": [rule, ...]}`` - the canonical shape, always used for writes
* ``{"percentOff": ..., "products": [...], "minQty": ...}`` - a single bare
  rule written before multiple discounts were supported
"""

import json
import math
import re
from typing import Any, List, Optional

from loguru import logger

from .models import Number, Rule

# Rules below this threshold are invalid, not clamped
MIN_QTY_FLOOR = 2

_DECIMAL_PATTERN = re.compile(r'^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$', re.ASCII)
_PREFIXED_PATTERN = re.compile(r'^0[xXoObB][0-9a-fA-F]+$')
_INFINITY_PATTERN = re.compile(r'^([+-]?)Infinity$')


def coerce_number(value: Any) -> Number:
    """
    Coerce a stored number or numeric string into a number

    Strings follow the same rules the storefront uses when it reads the
    metafield: surrounding whitespace is ignored, an empty string is ``0``
    and anything else unparsable becomes NaN. Booleans are not numbers.

    Args:
        value: Raw value taken from the stored JSON

    Returns:
        An int when the value is integral, otherwise a float (possibly NaN)
    """
    if isinstance(value, bool):
        return math.nan

    if isinstance(value, (int, float)):
        number = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        if _DECIMAL_PATTERN.match(text):
            number = float(text)
        elif _PREFIXED_PATTERN.match(text):
            try:
                number = int(text, 0)
            except ValueError:
                return math.nan
        else:
            infinity = _INFINITY_PATTERN.match(text)
            if not infinity:
                return math.nan
            return -math.inf if infinity.group(1) == '-' else math.inf
    else:
        return math.nan

    if isinstance(number, int):
        try:
            float(number)
        except OverflowError:
            return math.inf if number > 0 else -math.inf
        return number

    if math.isfinite(number) and number.is_integer():
        return int(number)
    return number


def parse_rule(raw: Any) -> Optional[Rule]:
    """
    Validate a single stored rule

    Only finiteness is checked for ``percentOff`` here. Out-of-range values
    are kept so existing data can still be shown and edited; the selector
    decides whether a rule may actually discount anything.

    Returns:
        The parsed Rule, or None when the value is not a usable rule
    """
    if not isinstance(raw, dict):
        return None

    percent_off = coerce_number(raw.get('percentOff'))
    if not math.isfinite(percent_off):
        logger.debug(f"Dropping rule with non-numeric percentOff: {raw.get('percentOff')!r}")
        return None

    products_value = raw.get('products')
    if not isinstance(products_value, (list, tuple)):
        logger.debug(f"Dropping rule whose products is not a list: {products_value!r}")
        return None

    products = [product for product in products_value if isinstance(product, str) and product]

    min_qty = coerce_number(raw.get('minQty'))
    if not math.isfinite(min_qty) or min_qty < MIN_QTY_FLOOR:
        logger.debug(f"Dropping rule with invalid minQty: {raw.get('minQty')!r}")
        return None

    discount_id = raw.get('discountId')

    return Rule(
        discount_id=discount_id if isinstance(discount_id, str) else None,
        percent_off=percent_off,
        products=products,
        min_qty=min_qty,
    )


def _decode(raw: Any) -> Any:
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode('utf-8')
        except UnicodeDecodeError:
            return None

    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except (ValueError, RecursionError):
            logger.debug("Stored discount rules are not valid JSON")
            return None

    return raw


def parse_rule_set(raw: Any) -> List[Rule]:
    """
    Parse the stored rules metafield into validated rules

    Args:
        raw: JSON text, bytes, or an already decoded value

    Returns:
        Valid rules in stored order; empty for anything unusable
    """
    data = _decode(raw)
    if not isinstance(data, dict):
        return []

    rules_value = data.get('rules')
    if isinstance(rules_value, list):
        rules = []
        for item in rules_value:
            rule = parse_rule(item)
            if rule is not None:
                rules.append(rule)

        if len(rules) != len(rules_value):
            logger.debug(f"Kept {len(rules)} of {len(rules_value)} stored rules")
        return rules

    # Bare rule written before the rules list existed
    legacy_rule = parse_rule(data)
    return [legacy_rule] if legacy_rule is not None else []
