"""
Barcode symbology validation and checksum encoding.
"""

# Standard Library
import dataclasses
import enum
import re

# local repo modules
import barcode_label_engine as ble
import barcode_label_engine.errors


ConfigurationError = ble.errors.ConfigurationError
EncodingError = ble.errors.EncodingError

CODE39_PATTERN = re.compile(r"^[A-Z0-9\-. $/+%]+$")


class BarcodeSymbology(enum.Enum):
	CODE128 = "CODE128"
	CODE39 = "CODE39"
	EAN13 = "EAN13"
	UPC = "UPC"
	QR = "QR"

	@property
	def label(self) -> str:
		return SYMBOLOGY_LABELS[self]

	@property
	def is_linear(self) -> bool:
		return self is not BarcodeSymbology.QR


SYMBOLOGY_LABELS = {
	BarcodeSymbology.CODE128: "Code 128",
	BarcodeSymbology.CODE39: "Code 39",
	BarcodeSymbology.EAN13: "EAN-13",
	BarcodeSymbology.UPC: "UPC-A",
	BarcodeSymbology.QR: "QR Code",
}

SYMBOLOGY_ALIASES = {
	"CODE128": BarcodeSymbology.CODE128,
	"CODE 128": BarcodeSymbology.CODE128,
	"CODE39": BarcodeSymbology.CODE39,
	"CODE 39": BarcodeSymbology.CODE39,
	"EAN13": BarcodeSymbology.EAN13,
	"EAN-13": BarcodeSymbology.EAN13,
	"UPC": BarcodeSymbology.UPC,
	"UPCA": BarcodeSymbology.UPC,
	"UPC-A": BarcodeSymbology.UPC,
	"QR": BarcodeSymbology.QR,
	"QR CODE": BarcodeSymbology.QR,
}

# (base length without check digit, weight for even positions, weight for odd positions)
CHECKSUM_RULES = {
	BarcodeSymbology.EAN13: (12, 1, 3),
	BarcodeSymbology.UPC: (11, 3, 1),
}


@dataclasses.dataclass(frozen=True)
class ValidationResult:
	is_valid: bool
	normalized_text: str
	message: str


@dataclasses.dataclass(frozen=True)
class EncodedBarcode:
	symbology: BarcodeSymbology
	payload: str
	display_text: str


@dataclasses.dataclass(frozen=True)
class BarcodeRequest:
	text: str
	symbology: BarcodeSymbology


#============================================
def parse_symbology(value: "BarcodeSymbology | str") -> BarcodeSymbology:
	"""
	Resolve a symbology from an enum member, wire string or alias.

	Args:
		value: Symbology enum or name like "EAN13", "ean-13", "UPC-A".

	Returns:
		BarcodeSymbology.

	Raises:
		ConfigurationError: If the name is not a known symbology.
	"""
	if isinstance(value, BarcodeSymbology):
		return value
	key = str(value or "").strip().upper()
	symbology = SYMBOLOGY_ALIASES.get(key)
	if symbology is None:
		raise ConfigurationError(f"Unknown barcode symbology: {value!r}")
	return symbology


#============================================
def validate(text: str, symbology: BarcodeSymbology) -> ValidationResult:
	"""
	Check raw text against the grammar of a symbology.

	Args:
		text: Raw barcode text.
		symbology: Target symbology.

	Returns:
		ValidationResult; never raises for bad text.
	"""
	normalized = (text or "").strip()
	if not normalized:
		return ValidationResult(False, normalized, "Barcode text cannot be empty")

	if symbology is BarcodeSymbology.EAN13:
		if not (normalized.isdigit() and normalized.isascii() and len(normalized) in (12, 13)):
			return ValidationResult(False, normalized, "EAN-13 requires exactly 12 or 13 digits")
	elif symbology is BarcodeSymbology.UPC:
		if not (normalized.isdigit() and normalized.isascii() and len(normalized) in (11, 12)):
			return ValidationResult(False, normalized, "UPC-A requires exactly 11 or 12 digits")
	elif symbology is BarcodeSymbology.CODE39:
		if not CODE39_PATTERN.match(normalized):
			return ValidationResult(
				False,
				normalized,
				"Code 39 only supports uppercase letters, numbers, and limited symbols",
			)

	return ValidationResult(True, normalized, f"Valid {symbology.label} barcode")


#============================================
def compute_check_digit(base: str, symbology: BarcodeSymbology) -> str:
	"""
	Compute the weighted modulo-10 check digit for EAN-13 or UPC-A.

	Args:
		base: Digits without the check digit (12 for EAN-13, 11 for UPC-A).
		symbology: EAN13 or UPC.

	Returns:
		Single check digit as a string.

	Raises:
		EncodingError: If the base is not numeric or has the wrong length.
	"""
	if symbology not in CHECKSUM_RULES:
		raise EncodingError(f"{symbology.label} has no modulo-10 check digit")
	base_length, even_weight, odd_weight = CHECKSUM_RULES[symbology]
	if len(base) != base_length or not (base.isdigit() and base.isascii()):
		raise EncodingError(
			f"{symbology.label} checksum needs {base_length} digits, got {base!r}"
		)
	total = 0
	for index, char in enumerate(base):
		weight = even_weight if index % 2 == 0 else odd_weight
		total += int(char) * weight
	return str((10 - (total % 10)) % 10)


#============================================
def has_valid_check_digit(payload: str, symbology: BarcodeSymbology) -> bool:
	"""
	Check whether a full EAN-13 or UPC-A payload carries a correct check digit.

	Args:
		payload: Full payload including check digit.
		symbology: EAN13 or UPC.

	Returns:
		True if the final digit matches the computed check digit.
	"""
	base_length = CHECKSUM_RULES[symbology][0]
	if len(payload) != base_length + 1:
		return False
	try:
		return compute_check_digit(payload[:-1], symbology) == payload[-1]
	except EncodingError:
		return False


#============================================
def encode(text: str, symbology: BarcodeSymbology) -> EncodedBarcode:
	"""
	Build the checksum-complete payload for validated text.

	EAN-13 and UPC-A bases are left-padded with zeros and get a check digit
	appended; full-length input is passed through unchanged when its check
	digit is correct. Other symbologies pass the normalized text through.

	Args:
		text: Validated barcode text.
		symbology: Target symbology.

	Returns:
		EncodedBarcode.

	Raises:
		EncodingError: If a numeric symbology receives non-conforming input or a
			full-length payload with a wrong check digit.
	"""
	normalized = (text or "").strip()
	if symbology not in CHECKSUM_RULES:
		return EncodedBarcode(symbology, normalized, normalized)

	base_length = CHECKSUM_RULES[symbology][0]
	if not (normalized.isdigit() and normalized.isascii()):
		raise EncodingError(f"{symbology.label} payload must be numeric, got {normalized!r}")
	if len(normalized) == base_length + 1:
		if not has_valid_check_digit(normalized, symbology):
			raise EncodingError(
				f"{symbology.label} payload {normalized!r} has a wrong check digit, "
				f"expected {compute_check_digit(normalized[:-1], symbology)}"
			)
		payload = normalized
	elif len(normalized) <= base_length:
		base = normalized.rjust(base_length, "0")
		payload = base + compute_check_digit(base, symbology)
	else:
		raise EncodingError(
			f"{symbology.label} payload is too long ({len(normalized)} digits)"
		)
	return EncodedBarcode(symbology, payload, payload)


#============================================
def validate_and_encode(request: BarcodeRequest) -> tuple[ValidationResult, EncodedBarcode | None]:
	"""
	Run a single barcode request through validation and encoding.

	Args:
		request: BarcodeRequest.

	Returns:
		Tuple of (validation result, encoded barcode or None when invalid).

	Raises:
		EncodingError: If valid text still cannot be encoded, such as a
			full-length EAN-13 with a wrong check digit.
	"""
	result = validate(request.text, request.symbology)
	if not result.is_valid:
		return (result, None)
	return (result, encode(result.normalized_text, request.symbology))
