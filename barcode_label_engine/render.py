"""
Rendering: symbol drawing, label tiles, previews and document imposition.
"""

# Standard Library
import base64
import dataclasses
import io
import unicodedata

# PIP3 modules
import fitz
import PIL.Image
import pypdf
import reportlab.graphics.barcode
import reportlab.graphics.renderPDF
import reportlab.graphics.shapes
import reportlab.pdfbase.pdfmetrics
import reportlab.pdfgen.canvas

# local repo modules
import barcode_label_engine as ble
import barcode_label_engine.assemble
import barcode_label_engine.compose
import barcode_label_engine.config
import barcode_label_engine.errors
import barcode_label_engine.symbology
import barcode_label_engine.template_lib


BarcodeSymbology = ble.symbology.BarcodeSymbology
LabelInstance = ble.compose.LabelInstance
LabelTemplate = ble.template_lib.LabelTemplate
PrintPage = ble.assemble.PrintPage
PageConfig = ble.config.PageConfig
mm_to_points = ble.config.mm_to_points
EncodingError = ble.errors.EncodingError

DEFAULT_FONT_REGULAR = ble.config.DEFAULT_FONT_REGULAR
DEFAULT_FONT_BOLD = ble.config.DEFAULT_FONT_BOLD
FONT_FAMILY_MAP = ble.config.FONT_FAMILY_MAP
DEFAULT_TEXT_MIN_SIZE = ble.config.DEFAULT_TEXT_MIN_SIZE
TEXT_LEADING_FACTOR = ble.config.TEXT_LEADING_FACTOR
BARCODE_AREA_RATIO = ble.config.BARCODE_AREA_RATIO
QR_AREA_RATIO = ble.config.QR_AREA_RATIO
FIELD_PREFIXES = ble.config.FIELD_PREFIXES
PREVIEW_DPI = ble.config.PREVIEW_DPI
POINTS_PER_INCH = ble.config.POINTS_PER_INCH
PROGRESS_BAR_WIDTH = ble.config.PROGRESS_BAR_WIDTH

# reportlab widget names; EAN and UPC widgets append their own check digit
WIDGET_NAMES = {
	BarcodeSymbology.CODE128: "Code128",
	BarcodeSymbology.CODE39: "Standard39",
	BarcodeSymbology.EAN13: "EAN13",
	BarcodeSymbology.UPC: "UPCA",
	BarcodeSymbology.QR: "QR",
}


@dataclasses.dataclass(frozen=True)
class SizeHints:
	width_mm: float
	height_mm: float


class SymbolRenderer:
	"""
	Port for drawing a barcode symbol.

	Implementations receive only validated, checksum-complete payloads and
	return a reportlab Drawing sized to the hints.
	"""

	def render(
		self,
		payload: str,
		symbology: BarcodeSymbology,
		size_hints: SizeHints,
	) -> reportlab.graphics.shapes.Drawing:
		raise NotImplementedError


class ReportlabSymbolRenderer(SymbolRenderer):
	"""
	Symbol renderer backed by reportlab.graphics.barcode widgets.
	"""

	def render(
		self,
		payload: str,
		symbology: BarcodeSymbology,
		size_hints: SizeHints,
	) -> reportlab.graphics.shapes.Drawing:
		width = mm_to_points(size_hints.width_mm)
		height = mm_to_points(size_hints.height_mm)
		options = {"width": width, "height": height}
		if symbology is BarcodeSymbology.QR:
			options["value"] = payload
			options["barBorder"] = 2
		elif symbology in (BarcodeSymbology.EAN13, BarcodeSymbology.UPC):
			# the widget appends its own check digit, which must match ours
			if not ble.symbology.has_valid_check_digit(payload, symbology):
				raise EncodingError(f"{symbology.label} payload {payload!r} is not checksum-complete")
			options["value"] = payload[:-1]
			options["humanReadable"] = 1
		elif symbology is BarcodeSymbology.CODE39:
			options["value"] = payload
			options["checksum"] = 0
			options["humanReadable"] = 1
		else:
			options["value"] = payload
			options["humanReadable"] = 1
		return reportlab.graphics.barcode.createBarcodeDrawing(
			WIDGET_NAMES[symbology],
			**options,
		)


#============================================
def normalize_text(value: str) -> str:
	"""
	Normalize label text to ASCII for the standard PDF fonts.

	Args:
		value: Input text.

	Returns:
		Normalized text.
	"""
	if not value:
		return value
	replacements = {
		"\u20b9": "Rs.",
		"\u20ac": "EUR",
		"\u00a3": "GBP",
		"\u00d7": "x",
		"\u00b0": "deg",
		"\u2122": "TM",
		"\u00ae": "R",
		"\u00a0": " ",
	}
	for old, new in replacements.items():
		value = value.replace(old, new)
	value = unicodedata.normalize("NFKD", value)
	value = value.encode("ascii", "ignore").decode("ascii")
	return value


#============================================
def parse_hex_color(value: str) -> tuple[float, float, float]:
	"""
	Parse a hex color string into RGB floats.

	Args:
		value: Color string like "#AABBCC" or "#abc".

	Returns:
		Tuple of (r, g, b) in 0.0-1.0 range; black when unparseable.
	"""
	if not value or not value.startswith("#"):
		return (0.0, 0.0, 0.0)
	digits = value[1:]
	if len(digits) == 3:
		digits = "".join(char * 2 for char in digits)
	if len(digits) != 6:
		return (0.0, 0.0, 0.0)
	try:
		red = int(digits[0:2], 16) / 255.0
		green = int(digits[2:4], 16) / 255.0
		blue = int(digits[4:6], 16) / 255.0
	except ValueError:
		return (0.0, 0.0, 0.0)
	return (red, green, blue)


#============================================
def map_font_name(font_family: str, bold: bool) -> str:
	"""
	Map a template font family to a standard PDF font name.

	Args:
		font_family: Family name from template settings.
		bold: Whether the bold face is wanted.

	Returns:
		ReportLab font name.
	"""
	regular, heavy = FONT_FAMILY_MAP.get(
		(font_family or "").strip().upper(),
		(DEFAULT_FONT_REGULAR, DEFAULT_FONT_BOLD),
	)
	if bold:
		return heavy
	return regular


#============================================
def compute_align_offset(available: float, used: float, align: str) -> float:
	"""
	Compute a horizontal alignment offset.

	Args:
		available: Available width.
		used: Width of the content.
		align: LEFT, CENTER or RIGHT.

	Returns:
		Offset in points.
	"""
	normalized = align.strip().upper()
	if normalized == "LEFT":
		return 0.0
	if normalized == "RIGHT":
		return max(0.0, available - used)
	return max(0.0, (available - used) / 2.0)


#============================================
def fit_font_size(
	text: str,
	font_name: str,
	font_size: float,
	max_width: float,
	min_font_size: float = DEFAULT_TEXT_MIN_SIZE,
) -> tuple[float, bool]:
	"""
	Shrink a font size until the text fits the width.

	Args:
		text: Text line.
		font_name: ReportLab font name.
		font_size: Preferred size.
		max_width: Available width in points.
		min_font_size: Lower bound for shrinking.

	Returns:
		Tuple of (font size, clamped) where clamped means the text still
		overflows at the minimum size.
	"""
	width = reportlab.pdfbase.pdfmetrics.stringWidth(text, font_name, font_size)
	if width <= max_width or width <= 0.0:
		return (font_size, False)
	target_size = font_size * max_width / width
	if target_size < min_font_size:
		return (min_font_size, True)
	return (target_size, False)


#============================================
def compute_symbol_size(template: LabelTemplate, symbology: BarcodeSymbology) -> SizeHints:
	"""
	Compute the symbol box for a template.

	Linear symbols take the full inner width and the lower part of the label;
	QR symbols are square.

	Args:
		template: Label template.
		symbology: Barcode symbology.

	Returns:
		SizeHints in millimetres.
	"""
	inner_width = max(1.0, template.width_mm - 2.0 * template.style.padding_mm)
	inner_height = max(1.0, template.height_mm - 2.0 * template.style.padding_mm)
	text_fields = [field for field in template.fields if field != "barcode"]
	if not text_fields:
		ratio = 1.0
	elif not symbology.is_linear:
		ratio = QR_AREA_RATIO
	else:
		ratio = BARCODE_AREA_RATIO
	height = inner_height * ratio
	if not symbology.is_linear:
		side = min(inner_width, height)
		return SizeHints(width_mm=side, height_mm=side)
	return SizeHints(width_mm=inner_width, height_mm=height)


#============================================
def build_text_lines(instance: LabelInstance, template: LabelTemplate) -> list[tuple[str, str]]:
	"""
	Collect the printable text lines of an instance.

	Args:
		instance: Label instance.
		template: Label template.

	Returns:
		List of (field name, text) in template field order.
	"""
	lines: list[tuple[str, str]] = []
	for field_name in template.fields:
		if field_name == "barcode":
			continue
		value = instance.resolved_fields.get(field_name, "")
		if not value:
			continue
		prefix = FIELD_PREFIXES.get(field_name, "")
		lines.append((field_name, normalize_text(prefix + value)))
	return lines


#============================================
def draw_label_tile(
	pdf: reportlab.pdfgen.canvas.Canvas,
	instance: LabelInstance,
	template: LabelTemplate,
	symbol: reportlab.graphics.shapes.Drawing | None,
) -> int:
	"""
	Draw one label onto a tile-sized canvas.

	Args:
		pdf: ReportLab canvas sized to the label.
		instance: Label instance.
		template: Label template.
		symbol: Rendered barcode symbol or None.

	Returns:
		Number of text lines clamped at the minimum font size.
	"""
	style = template.style
	tile_width = mm_to_points(template.width_mm)
	tile_height = mm_to_points(template.height_mm)
	padding = mm_to_points(style.padding_mm)
	inner_width = max(1.0, tile_width - 2.0 * padding)

	background = parse_hex_color(style.background_color)
	pdf.setFillColorRGB(background[0], background[1], background[2])
	pdf.rect(0, 0, tile_width, tile_height, stroke=0, fill=1)
	if style.show_border:
		border = parse_hex_color(style.border_color)
		pdf.setStrokeColorRGB(border[0], border[1], border[2])
		pdf.setLineWidth(0.5)
		pdf.rect(0.25, 0.25, tile_width - 0.5, tile_height - 0.5, stroke=1, fill=0)

	symbol_height = 0.0
	if symbol is not None and "barcode" in template.fields:
		symbol_height = symbol.height
		symbol_x = padding + compute_align_offset(inner_width, symbol.width, style.alignment)
		reportlab.graphics.renderPDF.draw(symbol, pdf, symbol_x, padding)

	lines = build_text_lines(instance, template)
	if not lines:
		return 0
	text_height = tile_height - 2.0 * padding - symbol_height
	font_size = style.font_size
	if text_height > 0.0:
		font_size = min(font_size, text_height / (len(lines) * TEXT_LEADING_FACTOR))
	font_size = max(font_size, DEFAULT_TEXT_MIN_SIZE)

	text_color = parse_hex_color(style.text_color)
	pdf.setFillColorRGB(text_color[0], text_color[1], text_color[2])
	clamp_count = 0
	baseline = tile_height - padding - font_size
	for index, (field_name, text) in enumerate(lines):
		font_name = map_font_name(style.font_family, bold=(index == 0 and field_name == "name"))
		line_size, clamped = fit_font_size(text, font_name, font_size, inner_width)
		if clamped:
			clamp_count += 1
		pdf.setFont(font_name, line_size)
		line_width = pdf.stringWidth(text, font_name, line_size)
		text_x = padding + compute_align_offset(inner_width, line_width, style.alignment)
		pdf.drawString(text_x, baseline, text)
		baseline -= font_size * TEXT_LEADING_FACTOR
	return clamp_count


#============================================
def render_label_tile(
	instance: LabelInstance,
	template: LabelTemplate,
	symbol: reportlab.graphics.shapes.Drawing | None,
) -> bytes:
	"""
	Render a single label tile PDF in memory.

	Args:
		instance: Label instance.
		template: Label template.
		symbol: Rendered barcode symbol or None.

	Returns:
		PDF bytes of a one-page document sized to the label.
	"""
	buffer = io.BytesIO()
	pdf = reportlab.pdfgen.canvas.Canvas(
		buffer,
		pagesize=(mm_to_points(template.width_mm), mm_to_points(template.height_mm)),
	)
	draw_label_tile(pdf, instance, template, symbol)
	pdf.save()
	return buffer.getvalue()


#============================================
def render_pdf_first_page(pdf_bytes: bytes, dpi: int = PREVIEW_DPI) -> PIL.Image.Image:
	"""
	Rasterize the first page of a PDF.

	Args:
		pdf_bytes: PDF document bytes.
		dpi: Output resolution.

	Returns:
		PIL image.
	"""
	document = fitz.open(stream=pdf_bytes, filetype="pdf")
	try:
		page = document[0]
		scale = dpi / POINTS_PER_INCH
		matrix = fitz.Matrix(scale, scale)
		pixmap = page.get_pixmap(matrix=matrix, alpha=False)
		image = PIL.Image.frombytes("RGB", [pixmap.width, pixmap.height], pixmap.samples)
	finally:
		document.close()
	return image


#============================================
def render_preview(tile_pdf: bytes, dpi: int = PREVIEW_DPI) -> str:
	"""
	Build a base64 PNG data URL preview for a label tile.

	Args:
		tile_pdf: Tile PDF bytes.
		dpi: Output resolution.

	Returns:
		String like "data:image/png;base64,...".
	"""
	image = render_pdf_first_page(tile_pdf, dpi)
	buffer = io.BytesIO()
	image.save(buffer, format="PNG")
	encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
	return f"data:image/png;base64,{encoded}"


#============================================
def cell_origin_points(cell, page_height_mm: float) -> tuple[float, float]:
	"""
	Convert a top-left millimetre cell origin to a PDF bottom-left origin.

	Args:
		cell: PageCell.
		page_height_mm: Page height.

	Returns:
		Tuple of (x, y) in points.
	"""
	cell_x = mm_to_points(cell.x_mm)
	cell_y = mm_to_points(page_height_mm - cell.y_mm - cell.height_mm)
	return (cell_x, cell_y)


#============================================
def build_outline_overlay(page: PrintPage, page_config: PageConfig) -> pypdf.PageObject:
	"""
	Build a PDF overlay page with outlines of the occupied cells.

	Args:
		page: Print page.
		page_config: Page configuration.

	Returns:
		PDF page object.
	"""
	buffer = io.BytesIO()
	page_width = mm_to_points(page_config.page_width_mm)
	page_height = mm_to_points(page_config.page_height_mm)
	pdf = reportlab.pdfgen.canvas.Canvas(buffer, pagesize=(page_width, page_height))
	pdf.setLineWidth(0.3)
	pdf.setStrokeColorRGB(0.7, 0.7, 0.7)
	for cell in page.cells:
		cell_x, cell_y = cell_origin_points(cell, page_config.page_height_mm)
		pdf.rect(
			cell_x,
			cell_y,
			mm_to_points(cell.width_mm),
			mm_to_points(cell.height_mm),
			stroke=1,
			fill=0,
		)
	pdf.save()
	buffer.seek(0)
	reader = pypdf.PdfReader(buffer)
	return reader.pages[0]


#============================================
def write_document(
	pages,
	tiles: dict[int, bytes],
	page_config: PageConfig,
) -> bytes:
	"""
	Impose label tiles onto pages and return the PDF document.

	Args:
		pages: Sequence of PrintPage descriptors.
		tiles: Tile PDF bytes keyed by source instance index.
		page_config: Page configuration.

	Returns:
		PDF bytes.
	"""
	writer = pypdf.PdfWriter()
	page_width = mm_to_points(page_config.page_width_mm)
	page_height = mm_to_points(page_config.page_height_mm)

	tile_cache: dict[int, pypdf.PageObject] = {}
	for print_page in pages:
		blank = pypdf.PageObject.create_blank_page(width=page_width, height=page_height)
		writer.add_page(blank)
		page = writer.pages[-1]
		for cell in print_page.cells:
			index = cell.source_instance_index
			if index not in tile_cache:
				reader = pypdf.PdfReader(io.BytesIO(tiles[index]))
				tile_cache[index] = reader.pages[0]
			cell_x, cell_y = cell_origin_points(cell, page_config.page_height_mm)
			transform = pypdf.Transformation().translate(cell_x, cell_y)
			page.merge_transformed_page(tile_cache[index], transform)
		if page_config.draw_outlines:
			page.merge_page(build_outline_overlay(print_page, page_config))

	buffer = io.BytesIO()
	writer.write(buffer)
	return buffer.getvalue()


#============================================
def print_progress(prefix: str, current: int, total: int) -> None:
	"""
	Print a simple progress bar.

	Args:
		prefix: Label text.
		current: Current count.
		total: Total count.
	"""
	if total <= 0:
		return
	percent = int(round((current / total) * 100.0))
	filled = int(round(PROGRESS_BAR_WIDTH * percent / 100.0))
	bar = "#" * filled + "-" * (PROGRESS_BAR_WIDTH - filled)
	print(f"{prefix} [{bar}] {current}/{total} ({percent}%)", end="\r")
