from catalog_sync.importer.row_decoder import decode_row
from catalog_sync.importer.tree_builder import build_forest, import_rows
from catalog_sync.importer.variation_parser import (
    encode_variation_field,
    parse_variation_field,
)

TSHIRT_ROWS = [
    {
        "sku": "TS-1",
        "name": "Tee",
        "product_type": "configurable",
        "price": "20",
        "qty": "0",
        "status": "1",
        "configurable_variations": "sku=TS-1-S,color=Black,size=S|sku=TS-1-M,color=Black,size=M",
    },
    {"sku": "TS-1-S", "name": "Tee S", "product_type": "simple", "price": "", "qty": "5", "status": "1"},
    {"sku": "MUG-1", "name": "Mug", "product_type": "simple", "price": "8.5", "qty": "10", "status": "2"},
]


def test_parse_variation_field():
    parsed = parse_variation_field("sku=A,color=Red|color=Blue|sku=B,size=L,note=a=b")
    assert [p.sku for p in parsed] == ["A", "B"]
    assert parsed[0].attribute_map() == {"color": "Red"}
    # the first "=" splits key from value
    assert parsed[1].attribute_map() == {"size": "L", "note": "a=b"}
    assert parse_variation_field("") == []
    assert parse_variation_field(None) == []


def test_encode_variation_field():
    parsed = parse_variation_field("sku=A,color=Red|sku=B,color=Blue")
    assert encode_variation_field(parsed) == "sku=A,color=Red|sku=B,color=Blue"


def test_configurable_adopts_existing_children():
    result = import_rows(TSHIRT_ROWS)
    forest = result.forest
    assert [n.sku for n in forest] == ["TS-1", "MUG-1"]

    parent = forest[0]
    assert [c.sku for c in parent.children] == ["TS-1-S"]
    child = parent.children[0]
    # missing child price falls back to the parent's
    assert child.price == 20.0
    assert child.quantity == 5
    assert child.attributes["color"] == "Black"
    assert child.attributes["size"] == "S"
    assert child.attributes["visibility"] == "Not Visible Individually"
    assert child.parent_ref == parent.id

    assert parent.attributes["visibility"] == "Catalog, Search"
    assert forest[1].status == "disabled"


def test_missing_child_is_reported():
    result = import_rows(TSHIRT_ROWS)
    assert "child_not_found" in result.report.codes()
    assert any(w.sku == "TS-1-M" for w in result.report.warnings)
    assert result.report.children_attached == 1
    assert result.report.top_level == 2


def test_configurable_without_valid_children():
    rows = [
        {"sku": "CFG", "name": "Cfg", "product_type": "configurable", "configurable_variations": "sku=NOPE,size=S"},
    ]
    result = import_rows(rows)
    assert [n.sku for n in result.forest] == ["CFG"]
    assert result.forest[0].children == []
    assert "no_children" in result.report.codes()


def test_children_never_appear_at_top_level():
    rows = [
        {"sku": "A-S", "name": "A small", "price": "3"},
        {"sku": "A", "name": "A", "product_type": "configurable", "configurable_variations": "sku=A-S,size=S"},
        {"sku": "Z", "name": "Zed"},
    ]
    result = import_rows(rows)
    # input order of the remaining top-level rows is kept
    assert [n.sku for n in result.forest] == ["A", "Z"]
    assert result.forest[0].children[0].price == 3.0


def test_explicit_zero_price_is_kept():
    rows = [
        {"sku": "P", "name": "P", "product_type": "configurable", "price": "10", "configurable_variations": "sku=P-FREE"},
        {"sku": "P-FREE", "name": "Free", "price": "0"},
    ]
    child = import_rows(rows).forest[0].children[0]
    assert child.price == 0.0


def test_duplicate_and_reclaimed_children():
    rows = [
        {"sku": "A", "name": "A", "product_type": "configurable", "configurable_variations": "sku=K|sku=A"},
        {"sku": "B", "name": "B", "product_type": "configurable", "configurable_variations": "sku=K"},
        {"sku": "K", "name": "Kid"},
        {"sku": "K", "name": "Kid again"},
    ]
    result = import_rows(rows)
    codes = result.report.codes()
    assert "self_reference" in codes
    assert "child_already_claimed" in codes
    assert "duplicate_sku" in codes
    a, b = result.forest
    assert [c.sku for c in a.children] == ["K"]
    assert b.children == []


def test_invalid_rows_are_counted():
    rows = [{"sku": "", "name": "x"}, {"sku": "OK", "name": "ok"}]
    result = import_rows(rows)
    assert result.report.rows_read == 2
    assert result.report.rows_rejected == 1
    assert [n.sku for n in result.forest] == ["OK"]


def test_shirt_with_two_black_variants():
    rows = [
        {"sku": "TS-1", "name": "Shirt", "product_type": "configurable",
         "configurable_variations": "sku=TS-1-S,color=Black|sku=TS-1-M,color=Black"},
        {"sku": "TS-1-S", "name": "Shirt S"},
        {"sku": "TS-1-M", "name": "Shirt M"},
    ]
    result = import_rows(rows)
    assert len(result.forest) == 1
    shirt = result.forest[0]
    assert shirt.sku == "TS-1"
    assert [c.sku for c in shirt.children] == ["TS-1-S", "TS-1-M"]
    assert all(c.attributes["color"] == "Black" for c in shirt.children)
    assert result.report.warnings == []


def test_token_without_equals_is_skipped():
    parsed = parse_variation_field("sku=A,junk,color=Red|=x,sku=B,size=|sku=C")
    assert [p.sku for p in parsed] == ["A", "B", "C"]
    assert parsed[0].attribute_map() == {"color": "Red"}
    assert parsed[1].attribute_map() == {}


def test_build_forest_from_decoded_records():
    records = [r for r in (decode_row(row) for row in TSHIRT_ROWS) if r is not None]
    forest = build_forest(records)
    assert [n.sku for n in forest] == ["TS-1", "MUG-1"]
    assert [c.sku for c in forest[0].children] == ["TS-1-S"]


def test_adopted_configurable_reports_its_dropped_children():
    rows = [
        {"sku": "KIT", "name": "Kit", "product_type": "configurable", "configurable_variations": "sku=TEE"},
        {"sku": "TEE", "name": "Tee", "product_type": "configurable", "configurable_variations": "sku=TEE-S,size=S"},
        {"sku": "TEE-S", "name": "Tee S"},
    ]
    result = import_rows(rows)
    assert [n.sku for n in result.forest] == ["KIT"]
    assert [c.sku for c in result.forest[0].children] == ["TEE"]
    assert result.forest[0].children[0].children == []
    dropped = [w for w in result.report.warnings if w.code == "children_dropped"]
    assert [w.sku for w in dropped] == ["TEE"]
