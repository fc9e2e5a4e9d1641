"""
Shared configuration and constants.
"""

import dataclasses


POINTS_PER_INCH = 72.0
MM_PER_INCH = 25.4
POINTS_PER_MM = POINTS_PER_INCH / MM_PER_INCH

PAGE_SIZES_MM = {
	"A4": (210.0, 297.0),
	"LETTER": (215.9, 279.4),
}
DEFAULT_PAGE_SIZE = "A4"
DEFAULT_MARGIN_MM = 10.0

DEFAULT_FONT_REGULAR = "Helvetica"
DEFAULT_FONT_BOLD = "Helvetica-Bold"
FONT_FAMILY_MAP = {
	"ARIAL": ("Helvetica", "Helvetica-Bold"),
	"HELVETICA": ("Helvetica", "Helvetica-Bold"),
	"SANS-SERIF": ("Helvetica", "Helvetica-Bold"),
	"TIMES": ("Times-Roman", "Times-Bold"),
	"TIMES NEW ROMAN": ("Times-Roman", "Times-Bold"),
	"SERIF": ("Times-Roman", "Times-Bold"),
	"COURIER": ("Courier", "Courier-Bold"),
	"COURIER NEW": ("Courier", "Courier-Bold"),
	"MONOSPACE": ("Courier", "Courier-Bold"),
}
DEFAULT_TEXT_SIZE = 10.0
DEFAULT_TEXT_MIN_SIZE = 5.0
TEXT_LEADING_FACTOR = 1.2
BARCODE_AREA_RATIO = 0.55
QR_AREA_RATIO = 0.6

DEFAULT_PADDING_MM = 1.5

DEFAULT_RENDER_TIMEOUT = 5.0
DEFAULT_MAX_WORKERS = 4
PREVIEW_DPI = 150

CURRENCY_PREFIX = "Rs. "
FIELD_PREFIXES = {
	"sku": "SKU: ",
	"stock": "Stock: ",
}

PROGRESS_BAR_WIDTH = 20
PROGRESS_UPDATE_EVERY = 10


@dataclasses.dataclass
class PageConfig:
	page_width_mm: float
	page_height_mm: float
	margin_mm: float
	draw_outlines: bool = False


@dataclasses.dataclass
class PipelineConfig:
	max_workers: int = DEFAULT_MAX_WORKERS
	render_timeout: float = DEFAULT_RENDER_TIMEOUT
	verbose: bool = False


#============================================
def mm_to_points(value: float) -> float:
	"""
	Convert millimetres to points.

	Args:
		value: Millimetres value.

	Returns:
		Points value.
	"""
	return value * POINTS_PER_MM


#============================================
def build_page_config(
	page_size: str = DEFAULT_PAGE_SIZE,
	margin_mm: float = DEFAULT_MARGIN_MM,
	draw_outlines: bool = False,
) -> PageConfig:
	"""
	Build a page config from a named page size.

	Args:
		page_size: Page size name such as "A4" or "LETTER".
		margin_mm: Page margin in millimetres.
		draw_outlines: Whether to draw cell outlines.

	Returns:
		PageConfig.
	"""
	key = page_size.strip().upper()
	if key not in PAGE_SIZES_MM:
		raise ValueError(f"Unknown page size: {page_size}")
	width, height = PAGE_SIZES_MM[key]
	return PageConfig(
		page_width_mm=width,
		page_height_mm=height,
		margin_mm=margin_mm,
		draw_outlines=draw_outlines,
	)
