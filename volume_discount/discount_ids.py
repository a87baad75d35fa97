"""
Discount identifier handling for the discount editor

The editor route receives discount ids in several forms: a discount node gid,
an automatic app discount gid, or just the numeric id. Rules are stored under
the node gid, while updates are sent to the automatic discount gid.
"""

import re
from typing import Any, NamedTuple, Optional, Sequence
from urllib.parse import unquote

from .models import Rule
from .rule_parser import parse_rule_set

GID_PREFIX = "gid://"
DISCOUNT_NODE_GID = "gid://shopify/DiscountNode/{}"
AUTOMATIC_APP_GID = "gid://shopify/DiscountAutomaticApp/{}"

_NUMERIC_ID = re.compile(r'[0-9]+')


class DiscountIds(NamedTuple):
    node_id: Optional[str]
    update_id: Optional[str]


def normalize_discount_ids(raw_id: Optional[str]) -> DiscountIds:
    """
    Work out the node id (storage key) and update id for a route id

    Examples:
        ``"123"`` -> node ``gid://shopify/DiscountNode/123``,
        update ``gid://shopify/DiscountAutomaticApp/123``
    """
    if not raw_id:
        return DiscountIds(None, None)

    decoded = unquote(raw_id)

    if decoded.startswith(GID_PREFIX):
        if "/DiscountNode/" in decoded:
            return DiscountIds(decoded, decoded)
        if "/DiscountAutomaticApp/" in decoded:
            numeric = decoded.split("/")[-1]
            node_id = DISCOUNT_NODE_GID.format(numeric) if numeric else decoded
            return DiscountIds(node_id, decoded)
        return DiscountIds(decoded, decoded)

    if _NUMERIC_ID.fullmatch(decoded):
        return DiscountIds(DISCOUNT_NODE_GID.format(decoded), AUTOMATIC_APP_GID.format(decoded))

    return DiscountIds(decoded, decoded)


def stored_discount_id(raw_id: Optional[str]) -> Optional[str]:
    """Identifier an edited rule is stored under"""
    ids = normalize_discount_ids(raw_id)
    return ids.node_id or ids.update_id


def find_rule_for_discount(rules: Sequence[Rule], raw_id: Optional[str]) -> Optional[Rule]:
    """
    Find the stored rule for the discount being edited

    Falls back to the only stored rule when it has no discount id, which is
    how data written before discount ids existed looks.
    """
    node_id = normalize_discount_ids(raw_id).node_id

    if raw_id or node_id:
        for rule in rules:
            if rule.discount_id and rule.discount_id in (raw_id, node_id):
                return rule

    if len(rules) == 1 and not rules[0].discount_id:
        return rules[0]

    return None


def find_stored_rule(raw: Any, raw_id: Optional[str]) -> Optional[Rule]:
    """Same as find_rule_for_discount, starting from the stored metafield value"""
    return find_rule_for_discount(parse_rule_set(raw), raw_id)
