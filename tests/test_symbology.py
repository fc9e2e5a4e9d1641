import random

import pytest

import barcode_label_engine.errors
import barcode_label_engine.render
import barcode_label_engine.symbology


BarcodeSymbology = barcode_label_engine.symbology.BarcodeSymbology
validate = barcode_label_engine.symbology.validate
encode = barcode_label_engine.symbology.encode


#============================================
def test_ean13_check_digit() -> None:
	"""
	Weights 1,3 from index 0 give check digit 8.
	"""
	assert encode("123456789012", BarcodeSymbology.EAN13).payload == "1234567890128"
	assert encode("400638133393", BarcodeSymbology.EAN13).payload == "4006381333931"


#============================================
def test_upc_check_digit() -> None:
	"""
	Weights 3,1 from index 0 give check digit 2.
	"""
	assert encode("12345678901", BarcodeSymbology.UPC).payload == "123456789012"
	assert encode("03600029145", BarcodeSymbology.UPC).payload == "036000291452"


#============================================
def test_full_length_numeric_passthrough() -> None:
	"""
	Inputs that already carry a check digit are not touched.
	"""
	assert encode("1234567890128", BarcodeSymbology.EAN13).payload == "1234567890128"
	assert encode("036000291452", BarcodeSymbology.UPC).payload == "036000291452"


#============================================
def test_full_length_wrong_check_digit_rejected() -> None:
	with pytest.raises(barcode_label_engine.errors.EncodingError):
		encode("1234567890120", BarcodeSymbology.EAN13)
	with pytest.raises(barcode_label_engine.errors.EncodingError):
		encode("036000291450", BarcodeSymbology.UPC)


#============================================
def test_renderer_rejects_incomplete_payload() -> None:
	"""
	The reportlab widget recomputes the check digit, so a mismatch is refused.
	"""
	renderer = barcode_label_engine.render.ReportlabSymbolRenderer()
	hints = barcode_label_engine.render.SizeHints(width_mm=40.0, height_mm=20.0)
	with pytest.raises(barcode_label_engine.errors.EncodingError):
		renderer.render("1234567890120", BarcodeSymbology.EAN13, hints)


#============================================
def test_short_numeric_input_is_left_padded() -> None:
	encoded = encode("123", BarcodeSymbology.EAN13)
	assert encoded.payload == "0000000001236"
	assert len(encode("42", BarcodeSymbology.UPC).payload) == 12


#============================================
def test_non_numeric_symbologies_pass_through() -> None:
	for symbology in (BarcodeSymbology.CODE128, BarcodeSymbology.CODE39, BarcodeSymbology.QR):
		encoded = encode("ABC-123", symbology)
		assert encoded.payload == "ABC-123"
		assert encoded.display_text == "ABC-123"
		assert encoded.symbology is symbology


#============================================
def test_encode_rejects_non_numeric_ean() -> None:
	with pytest.raises(barcode_label_engine.errors.EncodingError):
		encode("12345ABC9012", BarcodeSymbology.EAN13)
	with pytest.raises(barcode_label_engine.errors.EncodingError):
		encode("12345678901234", BarcodeSymbology.EAN13)


#============================================
def test_ean13_round_trip_stays_valid() -> None:
	"""
	Encoded EAN-13 payloads validate and carry a correct check digit.
	"""
	rng = random.Random(1234)
	samples = ["000000000000", "999999999999", "123456789012"]
	samples += ["".join(rng.choice("0123456789") for _ in range(12)) for _ in range(50)]
	for sample in samples:
		payload = encode(sample, BarcodeSymbology.EAN13).payload
		assert len(payload) == 13
		assert validate(payload, BarcodeSymbology.EAN13).is_valid
		assert barcode_label_engine.symbology.has_valid_check_digit(payload, BarcodeSymbology.EAN13)


#============================================
def test_code39_charset() -> None:
	assert validate("ABC-123", BarcodeSymbology.CODE39).is_valid
	assert validate("PART 7/8+%$.", BarcodeSymbology.CODE39).is_valid
	result = validate("abc123", BarcodeSymbology.CODE39)
	assert not result.is_valid
	assert "uppercase" in result.message


#============================================
def test_numeric_length_rules() -> None:
	assert validate("123456789012", BarcodeSymbology.EAN13).is_valid
	assert validate("1234567890128", BarcodeSymbology.EAN13).is_valid
	assert not validate("12345678901", BarcodeSymbology.EAN13).is_valid
	assert not validate("12345678901A", BarcodeSymbology.EAN13).is_valid
	assert validate("12345678901", BarcodeSymbology.UPC).is_valid
	assert validate("123456789012", BarcodeSymbology.UPC).is_valid
	assert not validate("1234567890123", BarcodeSymbology.UPC).is_valid


#============================================
def test_empty_text_invalid_for_every_symbology() -> None:
	for symbology in BarcodeSymbology:
		result = validate("", symbology)
		assert not result.is_valid
		assert result.message
		assert not validate("   ", symbology).is_valid


#============================================
def test_valid_result_is_normalized() -> None:
	result = validate("  hello world  ", BarcodeSymbology.QR)
	assert result.is_valid
	assert result.normalized_text == "hello world"
	assert result.message == "Valid QR Code barcode"


#============================================
def test_parse_symbology_aliases() -> None:
	parse = barcode_label_engine.symbology.parse_symbology
	assert parse("ean-13") is BarcodeSymbology.EAN13
	assert parse("UPC-A") is BarcodeSymbology.UPC
	assert parse("code 128") is BarcodeSymbology.CODE128
	assert parse(BarcodeSymbology.QR) is BarcodeSymbology.QR
	with pytest.raises(barcode_label_engine.errors.ConfigurationError):
		parse("PDF417")


#============================================
def test_validate_and_encode_request() -> None:
	request = barcode_label_engine.symbology.BarcodeRequest("12345678901", BarcodeSymbology.UPC)
	result, encoded = barcode_label_engine.symbology.validate_and_encode(request)
	assert result.is_valid
	assert encoded.payload == "123456789012"

	bad = barcode_label_engine.symbology.BarcodeRequest("abc", BarcodeSymbology.CODE39)
	result, encoded = barcode_label_engine.symbology.validate_and_encode(bad)
	assert not result.is_valid
	assert encoded is None
