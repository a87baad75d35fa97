"""
Core Volume Discount engine
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd
from loguru import logger

from .admin import build_rule, editor_config
from .config import DiscountEngineConfig, configure_logging, get_config
from .discount_ids import stored_discount_id
from .exceptions import DiscountEngineError, MissingDiscountIdError
from .models import CartLine, DiscountConfig, DiscountForm, EditorState, EvaluationResult, Rule
from .reconciler import upsert_rule_json
from .rule_parser import parse_rule_set
from .rule_selector import build_operations, select_discounts

OUTPUT_COLUMNS = ['percent_off', 'discount_applied', 'processing_error']

LineInput = Union[CartLine, Dict[str, Any]]


class DiscountEngine:
    """
    Entry point for cart evaluation and admin rule upserts

    The engine holds configuration only. Every call works on the values it is
    given, so the caller owns reading and writing the stored rules.
    """

    def __init__(self, config: Optional[DiscountEngineConfig] = None, setup_logging: bool = True):
        """
        Initialize the engine

        Args:
            config: Engine configuration (global configuration when omitted)
            setup_logging: Install the engine's loguru sinks
        """
        self.config = config or get_config()

        if setup_logging:
            configure_logging(
                level=self.config.log_level,
                log_file=self.config.log_file,
                rotation=self.config.log_rotation,
                retention=self.config.log_retention,
            )

        logger.debug(
            f"Discount engine ready for metafield "
            f"{self.config.metafield_namespace}.{self.config.metafield_key}"
        )

    def load_rules(self, raw_rules: Any) -> List[Rule]:
        """Parse the stored rules metafield value"""
        return parse_rule_set(raw_rules)

    def evaluate_cart(self, raw_rules: Any, lines: Sequence[LineInput]) -> EvaluationResult:
        """
        Evaluate one cart against the stored rules

        Args:
            raw_rules: Stored rules metafield value (JSON text or decoded)
            lines: Cart lines, as CartLine objects or function-input dicts

        Returns:
            EvaluationResult with per-line discounts and function operations
        """
        start_time = datetime.now()

        rules = self.load_rules(raw_rules)
        cart_lines = [line if isinstance(line, CartLine) else CartLine.from_input(line) for line in lines]

        discounts = []
        if rules:
            discounts = select_discounts(
                rules,
                cart_lines,
                min_percent=self.config.min_percent_off,
                max_percent=self.config.max_percent_off,
            )

        processing_time = int((datetime.now() - start_time).total_seconds() * 1000)
        logger.debug(f"Cart evaluated: {len(discounts)} of {len(cart_lines)} line(s) discounted")

        return EvaluationResult(
            discounts=discounts,
            operations=build_operations(discounts),
            rules_loaded=len(rules),
            lines_evaluated=len(cart_lines),
            processing_time_ms=processing_time,
        )

    def process_dataframe(self, df: pd.DataFrame, raw_rules: Any) -> pd.DataFrame:
        """
        Evaluate a batch of cart lines held in a DataFrame

        Expects ``line_id``, ``quantity`` and ``product_id`` columns. Input
        columns are preserved; ``percent_off``, ``discount_applied`` and
        ``processing_error`` are appended. A row that cannot be read is
        reported in ``processing_error`` instead of failing the batch.

        Args:
            df: Input DataFrame with one cart line per row
            raw_rules: Stored rules metafield value

        Returns:
            DataFrame with one output row per input row
        """
        logger.info(f"Processing DataFrame with {len(df)} rows")

        rules = self.load_rules(raw_rules)
        results = []
        errors = 0

        for index, row in df.iterrows():
            output_row = row.to_dict()
            output_row.update({'percent_off': None, 'discount_applied': False, 'processing_error': ""})

            try:
                line = self._row_to_cart_line(row)
            except (ValueError, TypeError, OverflowError) as e:
                errors += 1
                output_row['processing_error'] = str(e)
                logger.warning(f"Error reading row {index}: {e}")
                results.append(output_row)
                continue

            discounts = select_discounts(
                rules,
                [line],
                min_percent=self.config.min_percent_off,
                max_percent=self.config.max_percent_off,
            )
            if discounts:
                output_row['percent_off'] = discounts[0].percent_off
                output_row['discount_applied'] = True

            results.append(output_row)

        if not results:
            return pd.DataFrame(columns=[c for c in df.columns if c not in OUTPUT_COLUMNS] + OUTPUT_COLUMNS)

        output_df = pd.DataFrame(results)
        input_cols = [c for c in output_df.columns if c not in OUTPUT_COLUMNS]
        output_df = output_df[input_cols + OUTPUT_COLUMNS]

        logger.info(
            f"Discounted {int(output_df['discount_applied'].sum())} of {len(output_df)} rows "
            f"({errors} error(s))"
        )
        return output_df

    def _row_to_cart_line(self, row: pd.Series) -> CartLine:
        """Convert a DataFrame row into a CartLine"""
        line_id = row.get('line_id')
        if line_id is None or pd.isna(line_id) or str(line_id).strip() == "":
            raise ValueError("line_id is required")

        quantity = row.get('quantity')
        if quantity is None or pd.isna(quantity):
            raise ValueError(f"quantity is required for line {line_id}")
        if float(quantity) != int(float(quantity)):
            raise ValueError(f"quantity must be a whole number for line {line_id}")

        product_id = row.get('product_id')
        if product_id is None or pd.isna(product_id) or str(product_id).strip() == "":
            product_id = None

        return CartLine(
            id=str(line_id),
            quantity=int(float(quantity)),
            product_id=str(product_id) if product_id is not None else None,
        )

    def create_rule(self, raw_rules: Any, form: DiscountForm, discount_id: Optional[str]) -> str:
        """
        Merge the rule for a newly created discount into the stored rules

        Args:
            raw_rules: Current stored rules metafield value
            form: Submitted discount form
            discount_id: Id returned when the discount was created

        Returns:
            JSON text to write back to the metafield

        Raises:
            ValidationError: if the form is invalid
            MissingDiscountIdError: if no discount id came back from creation
        """
        rule = build_rule(
            form,
            min_qty=self.config.default_min_qty,
            min_percent=self.config.min_percent_off,
            max_percent=self.config.max_percent_off,
        )

        if not discount_id:
            raise MissingDiscountIdError("Discount created, but no ID was returned.")

        return upsert_rule_json(raw_rules, rule.model_copy(update={'discount_id': discount_id}))

    def update_rule(self, raw_rules: Any, form: DiscountForm, raw_id: Optional[str]) -> str:
        """
        Replace the stored rule of an existing discount

        ``raw_id`` is the id from the editor route, in any accepted form.

        Raises:
            ValidationError: if the form is invalid or the id is missing
        """
        rule = build_rule(
            form,
            discount_id=stored_discount_id(raw_id),
            require_discount_id=True,
            min_qty=self.config.default_min_qty,
            min_percent=self.config.min_percent_off,
            max_percent=self.config.max_percent_off,
        )
        return upsert_rule_json(raw_rules, rule)

    def load_editor_config(self, raw_rules: Any, raw_id: Optional[str]) -> DiscountConfig:
        """Values to prefill the discount editor with"""
        return editor_config(
            raw_rules,
            raw_id,
            default_percent_off=self.config.default_percent_off,
            default_min_qty=self.config.default_min_qty,
        )

    def load_editor(self, raw_rules: Any, raw_id: Optional[str], title: Optional[str] = None) -> EditorState:
        """
        Editor state for a discount

        Args:
            raw_rules: Stored rules metafield value
            raw_id: Discount id from the editor route
            title: Title of the existing discount, when it could be fetched
        """
        return EditorState(
            title=title or self.config.default_title,
            config=self.load_editor_config(raw_rules, raw_id),
        )

    def metafield_input(self, shop_id: str, value: str) -> Dict[str, Any]:
        """
        Metafield write input for the rules JSON returned by create_rule/update_rule

        Raises:
            DiscountEngineError: if no shop id is available
        """
        if not shop_id:
            raise DiscountEngineError("Unable to resolve shop ID.")

        return {
            'ownerId': shop_id,
            'namespace': self.config.metafield_namespace,
            'key': self.config.metafield_key,
            'type': "json",
            'value': value,
        }
