from catalog_sync.importer.row_decoder import (
    decode_row,
    is_truthy_status,
    parse_price,
    parse_quantity,
)
from catalog_sync.importer.validation import validate_field


def test_decode_simple_row():
    rec = decode_row({
        "sku": " TS-1-S ",
        "name": "Tee S",
        "product_type": "simple",
        "price": "19.99",
        "qty": "7",
        "status": "1",
        "color": "Black",
    })
    assert rec is not None
    assert rec.sku == "TS-1-S"
    assert rec.kind == "simple"
    assert rec.price == 19.99
    assert rec.quantity == 7
    assert rec.status == "enabled"
    assert rec.attributes == {"color": "Black"}
    assert rec.variations is None


def test_rows_without_sku_or_name_are_rejected():
    assert decode_row({"name": "No sku"}) is None
    assert decode_row({"sku": "X-1"}) is None
    assert decode_row({}) is None
    # product_name is accepted as the display name
    assert decode_row({"sku": "X-1", "product_name": "Fallback"}).name == "Fallback"


def test_unknown_kind_decodes_as_simple():
    assert decode_row({"sku": "D-1", "name": "Ebook", "product_type": "downloadable"}).kind == "simple"
    assert decode_row({"sku": "C-1", "name": "Tee", "product_type": "Configurable"}).kind == "configurable"


def test_status_encodings():
    for value in (True, 1, "1", "Enabled", "enabled", "true"):
        assert is_truthy_status(value)
    for value in (None, "", "2", "0", "Disabled", 2):
        assert not is_truthy_status(value)


def test_price_and_quantity_parsing():
    assert parse_price("") is None
    assert parse_price("abc") is None
    assert parse_price("0") == 0.0
    assert parse_price("-5") == 0.0
    assert parse_price(12) == 12.0
    assert parse_quantity("3.9") == 3
    assert parse_quantity("-2") == 0
    assert parse_quantity("n/a") == 0


def test_qty_falls_back_to_quantity_column():
    rec = decode_row({"sku": "Q-1", "name": "Q", "quantity": "4"})
    assert rec.quantity == 4


def test_bundle_option_rows_carry_option_fields():
    rec = decode_row({"sku": "B-1-A", "name": "Option A", "option_title": "Cable", "is_required": "1"})
    assert rec.attributes["option_title"] == "Cable"
    assert rec.attributes["is_required"] is True


def test_validate_field():
    assert validate_field("sku", "TS-1_S") is None
    assert validate_field("sku", "bad sku!") is not None
    assert validate_field("sku", "  ") is not None
    assert validate_field("name", "") is not None
    assert validate_field("price", "-1") is not None
    assert validate_field("price", "abc") is not None
    assert validate_field("price", "9.5") is None
    assert validate_field("qty", -3) is not None
    assert validate_field("quantity", 0) is None
    # unknown fields are not checked
    assert validate_field("color", "") is None
