"""
CLI entry points for barcode checks and label sheet generation.
"""

# Standard Library
import argparse
import json
import pathlib
import sys
import time

# local repo modules
import barcode_label_engine as ble
import barcode_label_engine.compose
import barcode_label_engine.config
import barcode_label_engine.errors
import barcode_label_engine.pipeline
import barcode_label_engine.render
import barcode_label_engine.symbology
import barcode_label_engine.template_lib


PipelineConfig = ble.config.PipelineConfig
PrintJobRequest = ble.pipeline.PrintJobRequest
LabelEngineError = ble.errors.LabelEngineError

DEFAULT_PAGE_SIZE = ble.config.DEFAULT_PAGE_SIZE
DEFAULT_MARGIN_MM = ble.config.DEFAULT_MARGIN_MM
DEFAULT_MAX_WORKERS = ble.config.DEFAULT_MAX_WORKERS
DEFAULT_RENDER_TIMEOUT = ble.config.DEFAULT_RENDER_TIMEOUT
PAGE_SIZES_MM = ble.config.PAGE_SIZES_MM


#============================================
def build_parser() -> argparse.ArgumentParser:
	"""
	Build the command line parser.

	Returns:
		ArgumentParser with barcode and labels subcommands.
	"""
	parser = argparse.ArgumentParser(description="Validate barcodes and lay out printable label sheets.")
	subparsers = parser.add_subparsers(dest="command", required=True)

	barcode_parser = subparsers.add_parser("barcode", help="Validate and encode one barcode.")
	barcode_parser.add_argument("text", help="Raw barcode text.")
	barcode_parser.add_argument("-s", "--symbology", dest="symbology", default="CODE128", help="Barcode symbology.")

	labels_parser = subparsers.add_parser("labels", help="Generate a label PDF.")
	source_group = labels_parser.add_argument_group("Source")
	source_group.add_argument("-t", "--template", dest="template_id", required=True, help="Template id.")
	source_group.add_argument("--templates", dest="templates_path", default=None, help="Template JSON file.")
	source_group.add_argument("-p", "--products", dest="products_path", default=None, help="Products JSON file.")
	source_group.add_argument(
		"-i",
		"--product-id",
		dest="product_ids",
		action="append",
		default=None,
		help="Product id to print (repeatable). Defaults to every product in the file.",
	)
	source_group.add_argument("-x", "--custom-text", dest="custom_text", default=None, help="Custom label text.")
	source_group.add_argument("-s", "--symbology", dest="symbology", default="CODE128", help="Barcode symbology.")
	source_group.add_argument("-q", "--quantity", dest="quantity", type=int, default=1, help="Copies per label.")

	output_group = labels_parser.add_argument_group("Output")
	output_group.add_argument("-o", "--output", dest="output_path", required=True, help="Output PDF path.")
	output_group.add_argument("-r", "--report", dest="report_path", default=None, help="Output job report JSON path.")
	output_group.add_argument("--preview-dir", dest="preview_dir", default=None, help="Directory for PNG previews.")

	layout_group = labels_parser.add_argument_group("Layout")
	layout_group.add_argument(
		"--page-size",
		dest="page_size",
		choices=sorted(PAGE_SIZES_MM),
		type=str.upper,
		default=DEFAULT_PAGE_SIZE,
		help="Page size.",
	)
	layout_group.add_argument("--margin", dest="margin_mm", type=float, default=DEFAULT_MARGIN_MM, help="Page margin in mm.")
	layout_group.add_argument("-d", "--draw-outlines", dest="draw_outlines", action="store_true", help="Draw cell outlines.")
	layout_group.add_argument("-D", "--no-draw-outlines", dest="draw_outlines", action="store_false", help="Disable cell outlines.")

	behavior_group = labels_parser.add_argument_group("Behavior")
	behavior_group.add_argument("-w", "--workers", dest="max_workers", type=int, default=DEFAULT_MAX_WORKERS, help="Worker threads.")
	behavior_group.add_argument(
		"--render-timeout",
		dest="render_timeout",
		type=float,
		default=DEFAULT_RENDER_TIMEOUT,
		help="Seconds allowed per symbol render.",
	)

	labels_parser.set_defaults(draw_outlines=False)
	return parser


#============================================
def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
	"""
	Parse command line arguments.

	Args:
		argv: Argument list, defaults to sys.argv.

	Returns:
		Parsed argparse namespace.
	"""
	parser = build_parser()
	args = parser.parse_args(argv)
	if args.command == "labels" and args.products_path is None and args.custom_text is None:
		parser.error("labels needs --products or --custom-text")
	return args


#============================================
def run_barcode(args: argparse.Namespace) -> int:
	"""
	Validate and encode a single barcode.

	Args:
		args: Parsed argparse namespace.

	Returns:
		Exit status.
	"""
	symbology = ble.symbology.parse_symbology(args.symbology)
	request = ble.symbology.BarcodeRequest(text=args.text, symbology=symbology)
	result, encoded = ble.symbology.validate_and_encode(request)
	print(result.message)
	if encoded is None:
		return 1
	print(f"Payload: {encoded.payload}")
	return 0


#============================================
def load_templates(args: argparse.Namespace) -> dict:
	templates = dict(ble.template_lib.DEFAULT_TEMPLATES)
	if args.templates_path:
		templates.update(ble.template_lib.load_templates(pathlib.Path(args.templates_path)))
	return templates


#============================================
def run_labels(args: argparse.Namespace) -> int:
	"""
	Run the full pipeline from request to PDF.

	Args:
		args: Parsed argparse namespace.

	Returns:
		Exit status.
	"""
	print("Label sheet pipeline")
	print(f"Template: {args.template_id}")
	print(f"Output PDF: {args.output_path}")
	print(f"Page: {args.page_size}, margin {args.margin_mm} mm")

	start_time = time.perf_counter()
	templates = load_templates(args)
	product_source = None
	product_ids: tuple[str, ...] = ()
	if args.products_path:
		product_source = ble.compose.load_products(pathlib.Path(args.products_path))
		product_ids = tuple(args.product_ids or product_source.product_ids())
		print(f"Products selected: {len(product_ids)}")

	request = PrintJobRequest(
		template_id=args.template_id,
		products=product_ids,
		custom_text=args.custom_text if not product_ids else None,
		quantity=args.quantity,
		symbology=args.symbology,
	)
	pipeline = ble.pipeline.LabelPipeline(
		templates,
		product_source=product_source,
		page_config=ble.config.build_page_config(args.page_size, args.margin_mm, args.draw_outlines),
		config=PipelineConfig(
			max_workers=args.max_workers,
			render_timeout=args.render_timeout,
			verbose=True,
		),
	)
	result = pipeline.run(request)
	pipeline_end = time.perf_counter()

	tiles = ble.pipeline.render_tiles(result, show_progress=True)
	output_path = pathlib.Path(args.output_path)
	output_path.write_bytes(ble.pipeline.write_pdf(result, tiles))
	write_end = time.perf_counter()
	print(f"Pages written: {len(result.pages)}")

	if args.preview_dir:
		preview_dir = pathlib.Path(args.preview_dir)
		preview_dir.mkdir(parents=True, exist_ok=True)
		for index, tile in sorted(tiles.items()):
			image = ble.render.render_pdf_first_page(tile)
			image.save(preview_dir / f"label_{index:03d}.png")
		print(f"Previews written: {len(tiles)} to {preview_dir}")

	report = result.report.to_dict()
	for error in report["errors"]:
		print(f"  #{error['instanceIndex']} {error['kind']}: {error['message']}")
	if args.report_path:
		with pathlib.Path(args.report_path).open("w", encoding="utf-8") as handle:
			json.dump(report, handle, indent=2, sort_keys=True)
		print(f"Report written: {args.report_path}")

	print(
		"Timing: pipeline={:.2f}s write={:.2f}s total={:.2f}s".format(
			pipeline_end - start_time,
			write_end - pipeline_end,
			time.perf_counter() - start_time,
		)
	)
	return 0


#============================================
def main(argv: list[str] | None = None) -> int:
	"""
	Main entry point.
	"""
	args = parse_args(argv)
	try:
		if args.command == "barcode":
			return run_barcode(args)
		return run_labels(args)
	except LabelEngineError as error:
		print(f"{error.kind}: {error}", file=sys.stderr)
		return 2
