import base64
import io

import pypdf
import PIL.Image
import pytest

import barcode_label_engine.compose
import barcode_label_engine.config
import barcode_label_engine.pipeline
import barcode_label_engine.render
import barcode_label_engine.symbology
import barcode_label_engine.template_lib


render = barcode_label_engine.render
BarcodeSymbology = barcode_label_engine.symbology.BarcodeSymbology
mm_to_points = barcode_label_engine.config.mm_to_points

DPI = 72
INK_THRESHOLD = 200
SMOKE_PAYLOADS = {
	BarcodeSymbology.CODE128: "APL-IP15P-128",
	BarcodeSymbology.CODE39: "ABC-123",
	BarcodeSymbology.EAN13: "1234567890128",
	BarcodeSymbology.UPC: "036000291452",
	BarcodeSymbology.QR: "https://example.com/p/1",
}


#============================================
def _count_ink_ratio(gray: PIL.Image.Image, threshold: int) -> float:
	"""
	Compute the ink ratio for a grayscale region.

	Args:
		gray: Grayscale image region.
		threshold: Pixel intensity threshold.

	Returns:
		Ink ratio.
	"""
	pixels = list(gray.getdata())
	if not pixels:
		return 0.0
	ink = sum(1 for value in pixels if value < threshold)
	return ink / len(pixels)


#============================================
def _grid_template() -> barcode_label_engine.template_lib.LabelTemplate:
	return barcode_label_engine.template_lib.parse_template(
		{
			"id": "grid",
			"size": "70mm x 37mm",
			"fields": ["name", "price", "barcode"],
			"layout": "grid",
		}
	)


#============================================
@pytest.mark.parametrize("symbology", list(BarcodeSymbology))
def test_reportlab_renderer_sizes_symbol(symbology: BarcodeSymbology) -> None:
	renderer = render.ReportlabSymbolRenderer()
	hints = render.SizeHints(width_mm=40.0, height_mm=20.0)
	drawing = renderer.render(SMOKE_PAYLOADS[symbology], symbology, hints)
	assert drawing.width == pytest.approx(mm_to_points(40.0), rel=0.01)
	assert drawing.height == pytest.approx(mm_to_points(20.0), rel=0.01)


#============================================
def test_symbol_size_hints() -> None:
	"""
	Linear symbols span the inner width; QR symbols are square.
	"""
	template = _grid_template()
	linear = render.compute_symbol_size(template, BarcodeSymbology.CODE128)
	assert linear.width_mm == pytest.approx(70.0 - 2 * template.style.padding_mm)
	assert linear.height_mm < template.height_mm
	square = render.compute_symbol_size(template, BarcodeSymbology.QR)
	assert square.width_mm == square.height_mm
	assert square.height_mm <= template.height_mm


#============================================
def test_label_tile_page_size(sample_products: list) -> None:
	template = barcode_label_engine.template_lib.DEFAULT_TEMPLATES["template1"]
	product = sample_products[0]
	barcode = barcode_label_engine.symbology.encode(product.sku, BarcodeSymbology.CODE128)
	instance = barcode_label_engine.compose.compose(template, product, barcode)
	symbol = render.ReportlabSymbolRenderer().render(
		barcode.payload,
		barcode.symbology,
		render.compute_symbol_size(template, barcode.symbology),
	)
	tile = render.render_label_tile(instance, template, symbol)
	reader = pypdf.PdfReader(io.BytesIO(tile))
	assert len(reader.pages) == 1
	box = reader.pages[0].mediabox
	assert float(box.width) == pytest.approx(mm_to_points(template.width_mm), abs=0.5)
	assert float(box.height) == pytest.approx(mm_to_points(template.height_mm), abs=0.5)


#============================================
def test_rendered_document_pages_and_ink(sample_products: list) -> None:
	"""
	Smoke test the imposed document: page count, ink in cells, clean margins.
	"""
	templates = dict(barcode_label_engine.template_lib.DEFAULT_TEMPLATES)
	template = _grid_template()
	templates[template.id] = template
	page_config = barcode_label_engine.config.build_page_config("A4", 10.0, draw_outlines=True)
	label_pipeline = barcode_label_engine.pipeline.LabelPipeline(
		templates,
		product_source=barcode_label_engine.compose.InMemoryProductSource(sample_products),
		page_config=page_config,
	)
	request = barcode_label_engine.pipeline.PrintJobRequest(
		template_id="grid",
		products=("p1", "p2", "p3"),
		quantity=7,
	)
	result = label_pipeline.run(request)
	# 2 columns x 7 rows per A4 page, 21 labels
	assert [len(page.cells) for page in result.pages] == [14, 7]

	tiles = barcode_label_engine.pipeline.render_tiles(result)
	pdf_bytes = barcode_label_engine.pipeline.write_pdf(result, tiles)
	reader = pypdf.PdfReader(io.BytesIO(pdf_bytes))
	assert len(reader.pages) == len(result.pages)

	image = render.render_pdf_first_page(pdf_bytes, DPI)
	gray = image.convert("L")
	scale = DPI / barcode_label_engine.config.POINTS_PER_INCH
	margin = int(mm_to_points(page_config.margin_mm) * scale) - 2
	top_margin = gray.crop((0, 0, gray.width, margin))
	left_margin = gray.crop((0, margin, margin, gray.height - margin))
	assert _count_ink_ratio(top_margin, INK_THRESHOLD) == 0.0
	assert _count_ink_ratio(left_margin, INK_THRESHOLD) == 0.0

	cell = result.pages[0].cells[0]
	x0 = int(mm_to_points(cell.x_mm) * scale)
	y0 = int(mm_to_points(cell.y_mm) * scale)
	x1 = int(mm_to_points(cell.x_mm + cell.width_mm) * scale)
	y1 = int(mm_to_points(cell.y_mm + cell.height_mm) * scale)
	assert _count_ink_ratio(gray.crop((x0, y0, x1, y1)), INK_THRESHOLD) > 0.02


#============================================
def test_previews_are_png_data_urls(sample_products: list) -> None:
	templates = barcode_label_engine.template_lib.DEFAULT_TEMPLATES
	label_pipeline = barcode_label_engine.pipeline.LabelPipeline(
		templates,
		product_source=barcode_label_engine.compose.InMemoryProductSource(sample_products),
	)
	request = barcode_label_engine.pipeline.PrintJobRequest(
		template_id="template2",
		products=("p1", "p2"),
		symbology="EAN13",
	)
	result = label_pipeline.run(request)
	previews = barcode_label_engine.pipeline.build_previews(result)
	assert [preview["instanceIndex"] for preview in previews] == [0, 1]
	prefix = "data:image/png;base64,"
	for preview in previews:
		assert preview["image"].startswith(prefix)
		data = base64.b64decode(preview["image"][len(prefix):])
		image = PIL.Image.open(io.BytesIO(data))
		assert image.format == "PNG"
		# 3 x 2 inch tile at the preview resolution
		assert image.width == pytest.approx(3 * barcode_label_engine.config.PREVIEW_DPI, abs=2)
		assert image.height == pytest.approx(2 * barcode_label_engine.config.PREVIEW_DPI, abs=2)
