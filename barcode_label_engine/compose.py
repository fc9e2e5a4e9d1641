"""
Label composition: resolve template fields against a data source.
"""

# Standard Library
import dataclasses
import json
import pathlib
import types

# local repo modules
import barcode_label_engine as ble
import barcode_label_engine.config
import barcode_label_engine.errors
import barcode_label_engine.symbology
import barcode_label_engine.template_lib


EncodedBarcode = ble.symbology.EncodedBarcode
LabelTemplate = ble.template_lib.LabelTemplate
ValidationError = ble.errors.ValidationError
ConfigurationError = ble.errors.ConfigurationError

CURRENCY_PREFIX = ble.config.CURRENCY_PREFIX


@dataclasses.dataclass(frozen=True)
class ProductRecord:
	product_id: str
	name: str
	sku: str
	selling_price: float
	category: str
	current_stock: int = 0
	barcode: str | None = None
	brand: str | None = None


@dataclasses.dataclass(frozen=True)
class CustomText:
	text: str


@dataclasses.dataclass(frozen=True)
class LabelInstance:
	template_id: str
	resolved_fields: types.MappingProxyType
	barcode: EncodedBarcode
	repeat_count: int = 1
	warnings: tuple[str, ...] = ()


#============================================
def format_price(value: float) -> str:
	"""
	Format a selling price for a label.

	Args:
		value: Price value.

	Returns:
		Price string, "Rs. 134,900" for whole prices and "Rs. 19.99" otherwise.
	"""
	amount = float(value)
	if amount.is_integer():
		return f"{CURRENCY_PREFIX}{int(amount):,}"
	return f"{CURRENCY_PREFIX}{amount:,.2f}"


#============================================
def format_stock(value: int) -> str:
	return str(int(value))


def _product_only(getter):
	def resolve(source, barcode):
		if not isinstance(source, ProductRecord):
			return None
		return getter(source)
	return resolve


def _resolve_name(source, barcode):
	if isinstance(source, CustomText):
		return source.text
	return source.name


# name -> resolver(source, barcode); None means inapplicable to the source
FIELD_RESOLVERS = {
	"name": _resolve_name,
	"price": _product_only(lambda product: format_price(product.selling_price)),
	"sku": _product_only(lambda product: product.sku),
	"stock": _product_only(lambda product: format_stock(product.current_stock)),
	"category": _product_only(lambda product: product.category),
	"brand": _product_only(lambda product: product.brand or ""),
	"barcode": lambda source, barcode: barcode.display_text,
}


#============================================
def select_barcode_text(source: "ProductRecord | CustomText") -> str:
	"""
	Pick the raw barcode text for a source.

	Products use their stored barcode and fall back to the SKU.

	Args:
		source: ProductRecord or CustomText.

	Returns:
		Raw barcode text.
	"""
	if isinstance(source, CustomText):
		return source.text
	return source.barcode or source.sku


#============================================
def compose(
	template: LabelTemplate,
	source: "ProductRecord | CustomText",
	barcode: EncodedBarcode,
	repeat_count: int = 1,
) -> LabelInstance:
	"""
	Resolve every template field into a LabelInstance.

	Unknown or inapplicable fields resolve to "" and add a warning; they never
	fail the composition.

	Args:
		template: Label template.
		source: ProductRecord or CustomText.
		barcode: Encoded barcode for the source.
		repeat_count: Copies of this label to print.

	Returns:
		LabelInstance.

	Raises:
		ValidationError: If repeat_count is below 1.
	"""
	if repeat_count < 1:
		raise ValidationError(f"repeat count must be at least 1, got {repeat_count}")

	resolved: dict[str, str] = {}
	warnings: list[str] = []
	for field_name in template.fields:
		resolver = FIELD_RESOLVERS.get(field_name)
		if resolver is None:
			resolved[field_name] = ""
			warnings.append(f"Unknown field {field_name!r} in template {template.id}")
			continue
		value = resolver(source, barcode)
		if value is None:
			resolved[field_name] = ""
			warnings.append(
				f"Field {field_name!r} does not apply to {type(source).__name__}"
			)
			continue
		resolved[field_name] = value

	return LabelInstance(
		template_id=template.id,
		resolved_fields=types.MappingProxyType(resolved),
		barcode=barcode,
		repeat_count=repeat_count,
		warnings=tuple(warnings),
	)


#============================================
def parse_product(data: dict) -> ProductRecord:
	"""
	Parse a product object as served by the products API.

	Args:
		data: Product dict with _id, name, sku, sellingPrice, ...

	Returns:
		ProductRecord.
	"""
	product_id = str(data.get("_id") or data.get("id") or data.get("sku") or "").strip()
	if not product_id:
		raise ValueError(f"Product has no id or sku: {data!r}")
	return ProductRecord(
		product_id=product_id,
		name=str(data.get("name") or ""),
		sku=str(data.get("sku") or ""),
		selling_price=float(data.get("sellingPrice") or 0),
		category=str(data.get("category") or ""),
		current_stock=int(data.get("currentStock") or 0),
		barcode=data.get("barcode") or None,
		brand=data.get("brand") or None,
	)


class InMemoryProductSource:
	"""
	Read-only product lookup keyed by product id.
	"""

	def __init__(self, products) -> None:
		self._products = {product.product_id: product for product in products}

	def get_product(self, product_id: str) -> ProductRecord | None:
		return self._products.get(product_id)

	def product_ids(self) -> list[str]:
		return list(self._products)


#============================================
def load_products(path: pathlib.Path) -> InMemoryProductSource:
	"""
	Load a product JSON file into a product source.

	Args:
		path: JSON file holding a list or {"products": [...]}.

	Returns:
		InMemoryProductSource.

	Raises:
		ConfigurationError: If the file is unreadable or not valid product JSON.
	"""
	try:
		text = path.read_text(encoding="utf-8")
	except (OSError, UnicodeDecodeError) as error:
		raise ConfigurationError(f"Cannot read product file {path}: {error}") from error
	try:
		data = json.loads(text)
		if isinstance(data, dict):
			data = data.get("products", [])
		if not isinstance(data, list):
			raise ConfigurationError(
				f"Product file {path} must hold a list of products, got {type(data).__name__}"
			)
		return InMemoryProductSource([parse_product(entry) for entry in data])
	except (AttributeError, TypeError, ValueError) as error:
		raise ConfigurationError(f"Invalid product file {path}: {error}") from error
