"""
Label template model and JSON parsing.
"""

# Standard Library
import dataclasses
import enum
import json
import pathlib
import re

# local repo modules
import barcode_label_engine as ble
import barcode_label_engine.config
import barcode_label_engine.errors


ConfigurationError = ble.errors.ConfigurationError

MM_PER_INCH = ble.config.MM_PER_INCH
DEFAULT_TEXT_SIZE = ble.config.DEFAULT_TEXT_SIZE
DEFAULT_PADDING_MM = ble.config.DEFAULT_PADDING_MM

ALIGNMENTS = ("LEFT", "CENTER", "RIGHT")
TRUE_STRINGS = ("true", "yes", "on", "1")
FALSE_STRINGS = ("false", "no", "off", "0")

# 2" x 1", 50mm x 30mm, 5 x 3 cm
SIZE_PATTERN = re.compile(
	r"^\s*(?P<width>\d+(?:\.\d+)?)\s*(?P<wunit>\"|in|mm|cm)?\s*[xX\u00d7]\s*"
	r"(?P<height>\d+(?:\.\d+)?)\s*(?P<hunit>\"|in|mm|cm)?\s*$"
)
UNIT_TO_MM = {
	"\"": MM_PER_INCH,
	"in": MM_PER_INCH,
	"mm": 1.0,
	"cm": 10.0,
}


class LayoutMode(enum.Enum):
	SINGLE = "single"
	GRID = "grid"


@dataclasses.dataclass(frozen=True)
class LabelStyle:
	font_size: float = DEFAULT_TEXT_SIZE
	font_family: str = "Arial"
	background_color: str = "#ffffff"
	text_color: str = "#000000"
	show_border: bool = True
	padding_mm: float = DEFAULT_PADDING_MM
	alignment: str = "CENTER"
	border_color: str = "#000000"


@dataclasses.dataclass(frozen=True)
class LabelTemplate:
	id: str
	name: str
	width_mm: float
	height_mm: float
	fields: tuple[str, ...]
	layout: LayoutMode = LayoutMode.SINGLE
	style: LabelStyle = LabelStyle()


#============================================
def parse_size(value: object) -> tuple[float, float]:
	"""
	Parse a template size into millimetres.

	Accepts {"widthMm": .., "heightMm": ..} or the free-text form used by the
	stock templates, such as '2" x 1"' or "50mm x 30mm". Unitless text is
	read as inches.

	Args:
		value: Size dict or string.

	Returns:
		Tuple of (width_mm, height_mm).
	"""
	if isinstance(value, dict):
		try:
			width = float(value["widthMm"])
			height = float(value["heightMm"])
		except (KeyError, TypeError, ValueError) as error:
			raise ConfigurationError(f"Invalid template size: {value!r}") from error
	elif isinstance(value, str):
		match = SIZE_PATTERN.match(value)
		if match is None:
			raise ConfigurationError(f"Invalid template size: {value!r}")
		width_unit = match.group("wunit") or match.group("hunit") or "in"
		height_unit = match.group("hunit") or width_unit
		width = float(match.group("width")) * UNIT_TO_MM[width_unit]
		height = float(match.group("height")) * UNIT_TO_MM[height_unit]
	else:
		raise ConfigurationError(f"Invalid template size: {value!r}")
	if width <= 0.0 or height <= 0.0:
		raise ConfigurationError(f"Template size must be positive: {value!r}")
	return (width, height)


#============================================
def parse_flag(value: object, name: str) -> bool:
	"""
	Parse a JSON boolean setting, accepting the usual string spellings.

	Args:
		value: Raw setting value.
		name: Setting name for error messages.

	Returns:
		Boolean value.
	"""
	if isinstance(value, bool):
		return value
	if isinstance(value, int) and value in (0, 1):
		return bool(value)
	if isinstance(value, str):
		key = value.strip().lower()
		if key in TRUE_STRINGS:
			return True
		if key in FALSE_STRINGS:
			return False
	raise ConfigurationError(f"Setting {name} must be true or false, got {value!r}")


#============================================
def parse_style(settings: dict | None) -> LabelStyle:
	"""
	Parse template settings into a LabelStyle.

	Args:
		settings: Settings dict from template JSON, may be None.

	Returns:
		LabelStyle with defaults for missing keys.
	"""
	if not settings:
		return LabelStyle()
	defaults = LabelStyle()
	padding = settings.get("paddingMm", settings.get("padding", defaults.padding_mm))
	alignment = str(settings.get("alignment", defaults.alignment)).strip().upper()
	if alignment not in ALIGNMENTS:
		raise ConfigurationError(f"Unknown alignment: {settings.get('alignment')!r}")
	try:
		return LabelStyle(
			font_size=float(settings.get("fontSize", defaults.font_size)),
			font_family=str(settings.get("fontFamily", defaults.font_family)),
			background_color=str(settings.get("backgroundColor", defaults.background_color)),
			text_color=str(settings.get("textColor", defaults.text_color)),
			show_border=parse_flag(settings.get("showBorder", defaults.show_border), "showBorder"),
			padding_mm=float(padding),
			alignment=alignment,
			border_color=str(settings.get("borderColor", defaults.border_color)),
		)
	except (TypeError, ValueError) as error:
		raise ConfigurationError(f"Invalid template settings: {error}") from error


#============================================
def parse_template(data: dict) -> LabelTemplate:
	"""
	Parse a JSON-shaped template definition.

	Args:
		data: Template dict with id, name, size, fields, layout, settings.

	Returns:
		LabelTemplate.

	Raises:
		ConfigurationError: If required keys are missing or malformed.
	"""
	if not isinstance(data, dict):
		raise ConfigurationError(f"Template definition must be an object, got {type(data).__name__}")
	template_id = str(data.get("id") or "").strip()
	if not template_id:
		raise ConfigurationError("Template definition is missing an id")
	width_mm, height_mm = parse_size(data.get("size"))

	fields = data.get("fields") or []
	if not isinstance(fields, (list, tuple)):
		raise ConfigurationError(f"Template {template_id} fields must be a list")

	layout_value = str(data.get("layout") or LayoutMode.SINGLE.value).strip().lower()
	try:
		layout = LayoutMode(layout_value)
	except ValueError as error:
		raise ConfigurationError(f"Template {template_id} has unknown layout {layout_value!r}") from error

	return LabelTemplate(
		id=template_id,
		name=str(data.get("name") or template_id),
		width_mm=width_mm,
		height_mm=height_mm,
		fields=tuple(str(field).strip().lower() for field in fields),
		layout=layout,
		style=parse_style(data.get("settings")),
	)


#============================================
def template_to_dict(template: LabelTemplate) -> dict:
	"""
	Serialize a template back to its JSON shape.

	Args:
		template: LabelTemplate.

	Returns:
		JSON-ready dict.
	"""
	style = template.style
	return {
		"id": template.id,
		"name": template.name,
		"size": {"widthMm": template.width_mm, "heightMm": template.height_mm},
		"fields": list(template.fields),
		"layout": template.layout.value,
		"settings": {
			"fontSize": style.font_size,
			"fontFamily": style.font_family,
			"backgroundColor": style.background_color,
			"textColor": style.text_color,
			"showBorder": style.show_border,
			"paddingMm": style.padding_mm,
			"alignment": style.alignment.lower(),
			"borderColor": style.border_color,
		},
	}


#============================================
def load_templates(path: pathlib.Path) -> dict[str, LabelTemplate]:
	"""
	Load templates from a JSON file.

	The file may hold one template object, a list, or {"templates": [...]}.

	Args:
		path: JSON path.

	Returns:
		Dict of templates keyed by id.

	Raises:
		ConfigurationError: If the file is unreadable or malformed.
	"""
	try:
		text = path.read_text(encoding="utf-8")
	except (OSError, UnicodeDecodeError) as error:
		raise ConfigurationError(f"Cannot read template file {path}: {error}") from error
	try:
		data = json.loads(text)
	except json.JSONDecodeError as error:
		raise ConfigurationError(f"Template file {path} is not valid JSON: {error}") from error
	if isinstance(data, dict) and "templates" in data:
		data = data["templates"]
	if isinstance(data, dict):
		data = [data]
	if not isinstance(data, list):
		raise ConfigurationError(
			f"Template file {path} must hold an object or a list, got {type(data).__name__}"
		)
	return build_template_index(parse_template(entry) for entry in data)


#============================================
def build_template_index(templates) -> dict[str, LabelTemplate]:
	"""
	Index templates by id.

	Args:
		templates: Iterable of LabelTemplate.

	Returns:
		Dict keyed by template id; later duplicates replace earlier ones.
	"""
	index: dict[str, LabelTemplate] = {}
	for template in templates:
		index[template.id] = template
	return index


#============================================
def lookup_template(templates: dict[str, LabelTemplate], template_id: str) -> LabelTemplate:
	"""
	Resolve a template by id.

	Args:
		templates: Templates keyed by id.
		template_id: Requested id.

	Returns:
		LabelTemplate.

	Raises:
		ConfigurationError: If the id is unknown.
	"""
	template = templates.get(template_id)
	if template is None:
		raise ConfigurationError(f"Unknown label template: {template_id!r}")
	return template


DEFAULT_TEMPLATES = build_template_index(
	parse_template(entry)
	for entry in (
		{
			"id": "template1",
			"name": "Professional Product Label",
			"size": "2\" x 1\"",
			"fields": ["name", "price", "sku", "barcode"],
			"layout": "single",
			"settings": {
				"fontSize": 10,
				"fontFamily": "Arial",
				"backgroundColor": "#ffffff",
				"textColor": "#000000",
				"showBorder": True,
			},
		},
		{
			"id": "template2",
			"name": "Premium Price Tag",
			"size": "3\" x 2\"",
			"fields": ["name", "price", "category", "brand", "barcode"],
			"layout": "single",
			"settings": {
				"fontSize": 12,
				"fontFamily": "Arial",
				"backgroundColor": "#ffffff",
				"textColor": "#000000",
				"showBorder": True,
			},
		},
		{
			"id": "template3",
			"name": "Inventory Label",
			"size": "2\" x 1\"",
			"fields": ["name", "sku", "stock", "barcode"],
			"layout": "single",
			"settings": {
				"fontSize": 9,
				"fontFamily": "Arial",
				"backgroundColor": "#ffffff",
				"textColor": "#000000",
				"showBorder": True,
			},
		},
	)
)
