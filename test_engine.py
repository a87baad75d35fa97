"""
End-to-end tests for the DiscountEngine facade, batch processing and config
"""

import json
import tempfile
from pathlib import Path

import pandas as pd
import pytest
from pydantic import ValidationError as PydanticValidationError

from main import main
from volume_discount import (
    ConfigurationError,
    DiscountEngine,
    DiscountEngineError,
    DiscountForm,
    MissingDiscountIdError,
    ValidationError,
)
from volume_discount.rule_parser import parse_rule_set
from volume_discount.config import ConfigManager, DiscountEngineConfig

STORED_RULES = json.dumps({"rules": [
    {"discountId": "gid://shopify/DiscountNode/1", "percentOff": 10, "products": ["gid://shopify/Product/1"], "minQty": 2},
    {"discountId": "gid://shopify/DiscountNode/2", "percentOff": 25, "products": ["gid://shopify/Product/1"], "minQty": 3},
    {"discountId": "gid://shopify/DiscountNode/3", "percentOff": 15, "products": ["gid://shopify/Product/2"], "minQty": 2},
]})


def _engine(**overrides):
    return DiscountEngine(DiscountEngineConfig(**overrides), setup_logging=False)


def test_evaluate_cart_with_function_input_lines():
    """Function-input lines are evaluated into operations"""
    print("\n" + "="*60)
    print("TEST 1: Cart Evaluation")
    print("="*60)

    lines = [
        {"id": "gid://shopify/CartLine/1", "quantity": 3, "merchandise": {"product": {"id": "gid://shopify/Product/1"}}},
        {"id": "gid://shopify/CartLine/2", "quantity": 1, "merchandise": {"product": {"id": "gid://shopify/Product/2"}}},
        {"id": "gid://shopify/CartLine/3", "quantity": 4, "merchandise": {"__typename": "CustomProduct"}},
    ]

    result = _engine().evaluate_cart(STORED_RULES, lines)

    print(f"   Rules loaded: {result.rules_loaded}, discounts: {len(result.discounts)}")
    assert result.rules_loaded == 3
    assert result.lines_evaluated == 3
    assert [(d.line_id, d.percent_off) for d in result.discounts] == [("gid://shopify/CartLine/1", 25)]
    assert result.operations[0]['productDiscountsAdd']['candidates'][0]['value'] == {'percentage': {'value': 25}}
    print("   [PASS] cart evaluated")


def test_evaluate_cart_without_usable_rules():
    lines = [{"id": "L1", "quantity": 5, "productId": "gid://shopify/Product/1"}]

    result = _engine().evaluate_cart("not json", lines)

    assert result.discounts == []
    assert result.operations == []
    assert result.rules_loaded == 0


def test_process_dataframe():
    df = pd.DataFrame({
        'line_id': ["L1", "L2", "L3", "L4", None],
        'quantity': [2, 3, 1, 2, 2],
        'product_id': ["gid://shopify/Product/1", "gid://shopify/Product/1", "gid://shopify/Product/2", None, "gid://shopify/Product/2"],
        'store': ["A", "A", "B", "B", "C"],
    })

    output_df = _engine().process_dataframe(df, STORED_RULES)

    assert len(output_df) == len(df)
    assert list(output_df.columns) == ['line_id', 'quantity', 'product_id', 'store',
                                       'percent_off', 'discount_applied', 'processing_error']
    assert output_df['discount_applied'].tolist() == [True, True, False, False, False]
    assert output_df['percent_off'].iloc[0] == 10
    assert output_df['percent_off'].iloc[1] == 25
    assert output_df['store'].tolist() == ["A", "A", "B", "B", "C"]
    assert output_df['processing_error'].iloc[4] == "line_id is required"
    assert output_df['processing_error'].iloc[:4].tolist() == ["", "", "", ""]


def test_process_empty_dataframe():
    df = pd.DataFrame(columns=['line_id', 'quantity', 'product_id'])

    output_df = _engine().process_dataframe(df, STORED_RULES)

    assert output_df.empty
    assert 'discount_applied' in output_df.columns


def test_create_rule_appends_to_stored_rules():
    form = DiscountForm(title="Buy 2 socks", percent_off="20", products=["gid://shopify/Product/9"])

    text = _engine().create_rule(STORED_RULES, form, "gid://shopify/DiscountNode/4")
    rules = json.loads(text)["rules"]

    assert len(rules) == 4
    assert rules[-1] == {
        "discountId": "gid://shopify/DiscountNode/4",
        "percentOff": 20,
        "products": ["gid://shopify/Product/9"],
        "minQty": 2,
    }


def test_create_rule_requires_returned_id():
    form = DiscountForm(title="t", percent_off="20", products=["P1"])

    with pytest.raises(MissingDiscountIdError):
        _engine().create_rule(STORED_RULES, form, None)


def test_update_rule_replaces_only_that_discount():
    form = DiscountForm(title="t", percent_off="30", products=["gid://shopify/Product/5"])

    text = _engine().update_rule(STORED_RULES, form, "gid://shopify/DiscountAutomaticApp/2")
    rules = json.loads(text)["rules"]

    assert [r["discountId"] for r in rules] == [
        "gid://shopify/DiscountNode/1",
        "gid://shopify/DiscountNode/3",
        "gid://shopify/DiscountNode/2",
    ]
    assert rules[-1]["percentOff"] == 30
    assert rules[0] == json.loads(STORED_RULES)["rules"][0]


def test_update_rule_validation_errors():
    form = DiscountForm(title="", percent_off="30", products=["P1"])

    with pytest.raises(ValidationError) as exc_info:
        _engine().update_rule(STORED_RULES, form, None)

    assert exc_info.value.errors == ["Title is required.", "Missing discount ID."]


def test_load_editor_config_uses_configured_defaults():
    config = _engine(default_percent_off=5).load_editor_config(STORED_RULES, "404")
    assert config.percent_off == 5
    assert config.min_qty == 2

    matched = _engine().load_editor_config(STORED_RULES, "3")
    assert matched.percent_off == 15


def test_load_editor_carries_title():
    state = _engine().load_editor(STORED_RULES, "404")
    assert state.title == "Buy 2 Get % Off"
    assert state.config.percent_off == 10

    state = _engine(default_title="Volume deal").load_editor(STORED_RULES, "2", title="Bulk tees")
    assert state.title == "Bulk tees"
    assert state.config.percent_off == 25


def test_metafield_input_uses_configured_location():
    value = _engine().update_rule(
        STORED_RULES, DiscountForm(title="t", percent_off="30", products=["P1"]), "2"
    )

    metafield = _engine(metafield_key="bulk_rules").metafield_input("gid://shopify/Shop/1", value)

    assert metafield == {
        'ownerId': "gid://shopify/Shop/1",
        'namespace': "custom",
        'key': "bulk_rules",
        'type': "json",
        'value': value,
    }

    with pytest.raises(DiscountEngineError):
        _engine().metafield_input("", value)


def test_config_manager_file_and_environment(tmp_path, monkeypatch):
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({"max_percent_off": 50, "log_level": "DEBUG"}), encoding="utf-8")
    monkeypatch.setenv("VOLUME_DISCOUNT_METAFIELD_KEY", "custom_rules")

    manager = ConfigManager(str(config_file))
    config = manager.get_config()

    assert config.max_percent_off == 50
    assert config.log_level == "DEBUG"
    assert config.metafield_key == "custom_rules"
    assert manager.validate_config()['valid'] is True

    manager.update_config(min_percent_off=60)
    result = manager.validate_config()
    assert result['valid'] is False
    assert "min_percent_off must not exceed max_percent_off" in result['errors']

    manager.reset_to_defaults()
    assert manager.get_config().max_percent_off == 80


def test_config_bounds_drive_selection():
    result = _engine(max_percent_off=20).evaluate_cart(
        STORED_RULES, [{"id": "L1", "quantity": 3, "productId": "gid://shopify/Product/1"}]
    )
    assert [d.percent_off for d in result.discounts] == [10]


def test_min_qty_below_two_is_rejected(tmp_path, monkeypatch):
    """A minimum quantity the parser would drop can never be configured"""
    monkeypatch.setenv("VOLUME_DISCOUNT_DEFAULT_MIN_QTY", "1")

    manager = ConfigManager(str(tmp_path / "missing.json"))
    assert manager.get_config().default_min_qty == 2

    with pytest.raises(ConfigurationError):
        manager.update_config(default_min_qty=1)
    with pytest.raises(ConfigurationError):
        manager.update_config(max_percent_off=120)
    assert manager.get_config().default_min_qty == 2

    with pytest.raises(PydanticValidationError):
        DiscountEngineConfig(default_min_qty=1)

    # Every rule written by an edit must read back
    text = DiscountEngine(manager.get_config(), setup_logging=False).update_rule(
        STORED_RULES, DiscountForm(title="t", percent_off="30", products=["P1"]), "2"
    )
    rules = parse_rule_set(text)
    assert len(rules) == 3
    assert rules[-1].discount_id == "gid://shopify/DiscountNode/2" and rules[-1].min_qty == 2


def test_save_config_round_trip(tmp_path):
    config_file = tmp_path / "saved.json"
    manager = ConfigManager(str(config_file))
    manager.update_config(default_title="Bulk deal", max_percent_off=60)
    manager.save_config()

    reloaded = ConfigManager(str(config_file)).get_config()

    assert reloaded.default_title == "Bulk deal"
    assert reloaded.max_percent_off == 60
    assert reloaded == manager.get_config()


def test_main_reports_unreadable_rules_file(tmp_path):
    input_file = tmp_path / "cart_lines.csv"
    input_file.write_text("line_id,quantity,product_id\nL1,2,P1\n", encoding="utf-8")
    output_file = tmp_path / "out" / "cart_lines.csv"

    # A directory exists but cannot be opened as a file
    assert main(str(input_file), str(tmp_path), str(output_file)) == 1
    assert not output_file.exists()

    rules_file = tmp_path / "rules.json"
    rules_file.write_text(json.dumps({"rules": [{"percentOff": 10, "products": ["P1"], "minQty": 2}]}), encoding="utf-8")
    assert main(str(input_file), str(rules_file), str(output_file)) == 0
    assert pd.read_csv(output_file)['percent_off'].tolist() == [10]


if __name__ == "__main__":
    test_evaluate_cart_with_function_input_lines()
    test_evaluate_cart_without_usable_rules()
    test_process_dataframe()
    test_process_empty_dataframe()
    test_create_rule_appends_to_stored_rules()
    test_create_rule_requires_returned_id()
    test_update_rule_replaces_only_that_discount()
    test_update_rule_validation_errors()
    test_load_editor_config_uses_configured_defaults()
    test_load_editor_carries_title()
    test_metafield_input_uses_configured_location()
    test_config_bounds_drive_selection()
    test_save_config_round_trip(Path(tempfile.mkdtemp()))
    print("\n[PASS] All engine tests passed!")
