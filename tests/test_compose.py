import json
import pathlib

import pytest

import barcode_label_engine.compose
import barcode_label_engine.errors
import barcode_label_engine.symbology
import barcode_label_engine.template_lib


compose = barcode_label_engine.compose
BarcodeSymbology = barcode_label_engine.symbology.BarcodeSymbology
DEFAULT_TEMPLATES = barcode_label_engine.template_lib.DEFAULT_TEMPLATES


#============================================
def build_template(fields: list[str]) -> barcode_label_engine.template_lib.LabelTemplate:
	"""
	Build a small test template with the given fields.
	"""
	return barcode_label_engine.template_lib.parse_template(
		{"id": "test", "size": "50mm x 30mm", "fields": fields}
	)


#============================================
def test_compose_product_fields(sample_products: list) -> None:
	"""
	Every known field resolves from the product record.
	"""
	product = sample_products[0]
	barcode = barcode_label_engine.symbology.encode(product.barcode, BarcodeSymbology.EAN13)
	template = build_template(["name", "price", "sku", "stock", "category", "brand", "barcode"])
	instance = compose.compose(template, product, barcode, repeat_count=3)
	assert instance.template_id == "test"
	assert instance.repeat_count == 3
	assert instance.warnings == ()
	assert dict(instance.resolved_fields) == {
		"name": "iPhone 15 Pro",
		"price": "Rs. 134,900",
		"sku": "APL-IP15P-128",
		"stock": "25",
		"category": "Electronics",
		"brand": "Apple",
		"barcode": "1234567890128",
	}


#============================================
def test_missing_brand_is_empty_without_warning(sample_products: list) -> None:
	product = sample_products[1]
	barcode = barcode_label_engine.symbology.encode(product.barcode, BarcodeSymbology.EAN13)
	instance = compose.compose(DEFAULT_TEMPLATES["template2"], product, barcode)
	assert instance.resolved_fields["brand"] == ""
	assert instance.warnings == ()


#============================================
def test_unknown_field_warns_but_composes(sample_products: list) -> None:
	product = sample_products[2]
	barcode = barcode_label_engine.symbology.encode(product.sku, BarcodeSymbology.CODE128)
	instance = compose.compose(build_template(["name", "supplier"]), product, barcode)
	assert instance.resolved_fields["supplier"] == ""
	assert len(instance.warnings) == 1
	assert "supplier" in instance.warnings[0]


#============================================
def test_custom_text_fields() -> None:
	"""
	Custom text fills name and barcode; product-only fields warn.
	"""
	source = compose.CustomText("SALE 50%")
	barcode = barcode_label_engine.symbology.encode(source.text, BarcodeSymbology.CODE39)
	instance = compose.compose(build_template(["name", "price", "barcode"]), source, barcode)
	assert instance.resolved_fields["name"] == "SALE 50%"
	assert instance.resolved_fields["price"] == ""
	assert instance.resolved_fields["barcode"] == "SALE 50%"
	assert len(instance.warnings) == 1


#============================================
def test_repeat_count_must_be_positive(sample_products: list) -> None:
	barcode = barcode_label_engine.symbology.encode("X", BarcodeSymbology.CODE128)
	with pytest.raises(barcode_label_engine.errors.ValidationError):
		compose.compose(build_template(["name"]), sample_products[0], barcode, repeat_count=0)


#============================================
def test_resolved_fields_are_read_only(sample_products: list) -> None:
	barcode = barcode_label_engine.symbology.encode("X", BarcodeSymbology.CODE128)
	instance = compose.compose(build_template(["name"]), sample_products[0], barcode)
	with pytest.raises(TypeError):
		instance.resolved_fields["name"] = "changed"


#============================================
def test_format_price() -> None:
	assert compose.format_price(134900) == "Rs. 134,900"
	assert compose.format_price(499.5) == "Rs. 499.50"
	assert compose.format_price(0) == "Rs. 0"


#============================================
def test_select_barcode_text_falls_back_to_sku(sample_products: list) -> None:
	assert compose.select_barcode_text(sample_products[0]) == "123456789012"
	assert compose.select_barcode_text(sample_products[2]) == "ACC-USBC-1M"
	assert compose.select_barcode_text(compose.CustomText("HELLO")) == "HELLO"


#============================================
def test_load_products(tmp_path: pathlib.Path) -> None:
	path = tmp_path / "products.json"
	payload = {
		"products": [
			{
				"_id": "abc",
				"name": "Desk Lamp",
				"sku": "LMP-01",
				"barcode": "",
				"sellingPrice": 1299,
				"category": "Home",
				"currentStock": 4,
			}
		]
	}
	path.write_text(json.dumps(payload), encoding="utf-8")
	source = compose.load_products(path)
	product = source.get_product("abc")
	assert product.name == "Desk Lamp"
	assert product.barcode is None
	assert product.current_stock == 4
	assert source.get_product("missing") is None
	assert source.product_ids() == ["abc"]


#============================================
def test_load_products_rejects_bad_files(tmp_path: pathlib.Path) -> None:
	with pytest.raises(barcode_label_engine.errors.ConfigurationError):
		compose.load_products(tmp_path / "missing.json")
	for payload in ("\"p1\"", "{\"products\": \"p1\"}", "42", "[\"p1\"]"):
		path = tmp_path / "bad.json"
		path.write_text(payload, encoding="utf-8")
		with pytest.raises(barcode_label_engine.errors.ConfigurationError):
			compose.load_products(path)
