"""
Volume Discount Engine

Parses shop-level "buy N, get X% off" rules stored as JSON, picks the best
rule for each cart line, and merges admin edits back into the stored rules.
"""

__version__ = "1.0.0"
__author__ = "Volume Discount Team"

from .core import DiscountEngine
from .models import (
    CartLine,
    DiscountConfig,
    DiscountForm,
    EditorState,
    EvaluationResult,
    LineDiscount,
    Rule,
    RuleSet,
)
from .rule_parser import parse_rule, parse_rule_set
from .rule_selector import build_operations, select_discounts
from .reconciler import reconcile, serialize_rule_set, upsert_rule_json
from .discount_ids import find_rule_for_discount, normalize_discount_ids
from .exceptions import ConfigurationError, DiscountEngineError, MissingDiscountIdError, ValidationError

__all__ = [
    "DiscountEngine",
    "CartLine",
    "DiscountConfig",
    "DiscountForm",
    "EditorState",
    "EvaluationResult",
    "LineDiscount",
    "Rule",
    "RuleSet",
    "parse_rule",
    "parse_rule_set",
    "select_discounts",
    "build_operations",
    "reconcile",
    "serialize_rule_set",
    "upsert_rule_json",
    "find_rule_for_discount",
    "normalize_discount_ids",
    "DiscountEngineError",
    "ValidationError",
    "MissingDiscountIdError",
    "ConfigurationError",
]
