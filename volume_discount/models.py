"""
Data models for the Volume Discount engine
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Integral values stay ints so stored rules round-trip as written
Number = Union[int, float]


class Rule(BaseModel):
    """A validated discount rule as stored in the shop metafield"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    discount_id: Optional[str] = Field(default=None, alias="discountId")
    percent_off: Number = Field(alias="percentOff")
    products: List[str] = Field(default_factory=list)
    min_qty: Number = Field(alias="minQty")

    def to_json_dict(self) -> Dict[str, Any]:
        """Stored representation; ``discountId`` is omitted when unknown"""
        return self.model_dump(by_alias=True, exclude_none=True)


class RuleSet(BaseModel):
    """Canonical ``{"rules": [...]}`` document"""

    rules: List[Rule] = Field(default_factory=list)

    def to_json(self) -> str:
        payload = {"rules": [rule.to_json_dict() for rule in self.rules]}
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


class CartLine(BaseModel):
    """One line of a cart evaluation request"""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    quantity: int
    # None when the merchandise is not a product (e.g. a custom item)
    product_id: Optional[str] = Field(default=None, alias="productId")

    @classmethod
    def from_input(cls, data: Dict[str, Any]) -> "CartLine":
        """
        Build a cart line from a function-input line or a flat record

        Accepts ``{"id", "quantity", "merchandise": {"product": {"id"}}}``
        and ``{"id", "quantity", "productId"}``.
        """
        product_id = data.get("productId", data.get("product_id"))

        merchandise = data.get("merchandise")
        if isinstance(merchandise, dict):
            product = merchandise.get("product")
            product_id = product.get("id") if isinstance(product, dict) else None

        return cls(id=str(data.get("id", "")), quantity=data.get("quantity", 0), product_id=product_id)


class LineDiscount(BaseModel):
    """Apply ``percent_off`` to the cart line ``line_id``"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    line_id: str = Field(alias="lineId")
    percent_off: Number = Field(alias="percentOff")


class DiscountConfig(BaseModel):
    """Values shown in the discount editor"""

    model_config = ConfigDict(populate_by_name=True)

    percent_off: Number = Field(default=10, alias="percentOff")
    products: List[str] = Field(default_factory=list)
    min_qty: Number = Field(default=2, alias="minQty")


class EditorState(BaseModel):
    """Everything the discount editor is prefilled with"""

    title: str
    config: DiscountConfig


class DiscountForm(BaseModel):
    """Raw admin submission for creating or editing a discount"""

    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    # Kept as text so the form can be echoed back unchanged on errors
    percent_off: str = Field(default="", alias="percentOff")
    products: List[str] = Field(default_factory=list)

    @field_validator('title', 'percent_off', mode='before')
    @classmethod
    def strip_text(cls, v):
        if v is None:
            return ""
        return str(v).strip()

    @field_validator('products', mode='before')
    @classmethod
    def keep_string_products(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v] if v else []
        return [item for item in v if isinstance(item, str) and item]


class EvaluationResult(BaseModel):
    """Outcome of evaluating one cart"""

    discounts: List[LineDiscount] = Field(default_factory=list)
    operations: List[Dict[str, Any]] = Field(default_factory=list)

    # Processing metadata
    rules_loaded: int = 0
    lines_evaluated: int = 0
    processed_at: datetime = Field(default_factory=datetime.now)
    processing_time_ms: Optional[int] = None
