"""
Merging an upserted rule into the stored rule set

One metafield holds the rules of every discount created by the app, so a
write must always be read-merge-write. Writing only the edited rule would
delete all of its siblings.

Nothing here is atomic: the caller has to serialize "read, reconcile, write"
against concurrent edits of the same shop, otherwise one edit can be lost.
"""

from typing import Any, List, Sequence

from loguru import logger

from .models import Rule, RuleSet
from .rule_parser import parse_rule_set


def reconcile(existing: Sequence[Rule], upserted: Rule) -> List[Rule]:
    """
    Replace the rule stored for ``upserted.discount_id`` and append the new one

    Rules without a discount id are never removed here. When the upserted
    rule has no id either, it is simply appended, so callers must reconcile
    again once the id is known.

    Args:
        existing: Currently stored rules
        upserted: Rule to write (whole-record replacement)

    Returns:
        New rule list; unrelated rules keep their order and values
    """
    kept = [
        rule for rule in existing
        if not rule.discount_id or rule.discount_id != upserted.discount_id
    ]

    replaced = len(existing) - len(kept)
    if replaced:
        logger.debug(f"Replacing {replaced} stored rule(s) for discount {upserted.discount_id}")
    elif upserted.discount_id is None:
        logger.warning("Appending a rule without a discount id; it cannot be replaced later")

    return kept + [upserted]


def serialize_rule_set(rules: Sequence[Rule]) -> str:
    """Canonical JSON text for the rules metafield"""
    return RuleSet(rules=list(rules)).to_json()


def upsert_rule_json(raw: Any, upserted: Rule) -> str:
    """
    Read the stored value, merge one rule into it and return the text to persist

    Legacy single-rule data is rewritten in the ``{"rules": [...]}`` shape.
    """
    existing = parse_rule_set(raw)
    updated = reconcile(existing, upserted)
    logger.info(f"Rule set updated: {len(existing)} -> {len(updated)} rule(s)")
    return serialize_rule_set(updated)
