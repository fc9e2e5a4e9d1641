"""
Print job pipeline: validate, encode, compose and assemble label jobs.
"""

# Standard Library
import concurrent.futures
import dataclasses
import enum
import threading

# local repo modules
import barcode_label_engine as ble
import barcode_label_engine.assemble
import barcode_label_engine.compose
import barcode_label_engine.config
import barcode_label_engine.errors
import barcode_label_engine.render
import barcode_label_engine.symbology
import barcode_label_engine.template_lib


BarcodeSymbology = ble.symbology.BarcodeSymbology
EncodedBarcode = ble.symbology.EncodedBarcode
CustomText = ble.compose.CustomText
LabelInstance = ble.compose.LabelInstance
InstanceFailure = ble.assemble.InstanceFailure
PrintJob = ble.assemble.PrintJob
PrintPage = ble.assemble.PrintPage
JobReport = ble.assemble.JobReport
LabelTemplate = ble.template_lib.LabelTemplate
PageConfig = ble.config.PageConfig
PipelineConfig = ble.config.PipelineConfig
SymbolRenderer = ble.render.SymbolRenderer
SizeHints = ble.render.SizeHints
PROGRESS_UPDATE_EVERY = ble.config.PROGRESS_UPDATE_EVERY

ValidationError = ble.errors.ValidationError
EncodingError = ble.errors.EncodingError
JobCancelledError = ble.errors.JobCancelledError
LabelEngineError = ble.errors.LabelEngineError


class PipelineStage(enum.Enum):
	IDLE = "idle"
	VALIDATING = "validating"
	ENCODING = "encoding"
	COMPOSING = "composing"
	ASSEMBLING = "assembling"
	READY = "ready"
	FAILED = "failed"
	CANCELLED = "cancelled"


@dataclasses.dataclass(frozen=True)
class PrintJobRequest:
	template_id: str
	products: tuple[str, ...] = ()
	custom_text: str | None = None
	quantity: int = 1
	symbology: "BarcodeSymbology | str" = BarcodeSymbology.CODE128
	quantities: dict | None = None


@dataclasses.dataclass(frozen=True)
class WorkItem:
	index: int
	source: object = None
	repeat_count: int = 1
	text: str = ""
	barcode: EncodedBarcode | None = None
	symbol: object = None
	instance: LabelInstance | None = None
	failure: InstanceFailure | None = None


@dataclasses.dataclass(frozen=True)
class PipelineResult:
	stage: PipelineStage
	template: LabelTemplate
	instances: tuple
	symbols: dict
	pages: tuple[PrintPage, ...]
	report: JobReport
	page_config: PageConfig


class CancelToken:
	"""
	Job-level cancellation flag shared between the caller and the pipeline.
	"""

	def __init__(self) -> None:
		self._event = threading.Event()

	def cancel(self) -> None:
		self._event.set()

	@property
	def cancelled(self) -> bool:
		return self._event.is_set()

	def raise_if_cancelled(self) -> None:
		if self._event.is_set():
			raise JobCancelledError("Print job was cancelled")


#============================================
def fail(item: WorkItem, error: LabelEngineError) -> WorkItem:
	return dataclasses.replace(item, failure=InstanceFailure(error.kind, str(error)))


#============================================
def render_with_timeout(
	renderer: SymbolRenderer,
	barcode: EncodedBarcode,
	size_hints: SizeHints,
	timeout: float,
):
	"""
	Render a symbol with a bounded wait.

	Each call runs on its own daemon thread so a hung render never holds up
	later items; the clock starts when that thread starts.

	Args:
		renderer: Symbol renderer.
		barcode: Encoded barcode.
		size_hints: Symbol box.
		timeout: Seconds to wait.

	Returns:
		Rendered symbol.

	Raises:
		EncodingError: On timeout or renderer failure.
	"""
	outcome: dict = {}

	def target() -> None:
		try:
			outcome["symbol"] = renderer.render(barcode.payload, barcode.symbology, size_hints)
		except Exception as error:
			outcome["error"] = error

	worker = threading.Thread(target=target, name=f"render-{barcode.payload}", daemon=True)
	worker.start()
	worker.join(timeout)
	if worker.is_alive():
		raise EncodingError(
			f"Rendering {barcode.symbology.label} symbol {barcode.payload!r} timed out after {timeout:.2f}s"
		)
	error = outcome.get("error")
	if isinstance(error, EncodingError):
		raise error
	if error is not None:
		raise EncodingError(
			f"Rendering {barcode.symbology.label} symbol {barcode.payload!r} failed: {error}"
		) from error
	return outcome["symbol"]


class LabelPipeline:
	"""
	Runs print job requests through the stage sequence
	VALIDATING -> ENCODING -> COMPOSING -> ASSEMBLING -> READY | FAILED.

	Per-item work inside each stage may run on a thread pool; results are
	joined back in request order so pages never depend on worker count.
	"""

	def __init__(
		self,
		templates: dict[str, LabelTemplate],
		renderer: SymbolRenderer | None = None,
		product_source=None,
		page_config: PageConfig | None = None,
		config: PipelineConfig | None = None,
	) -> None:
		self.templates = templates
		self.renderer = renderer or ble.render.ReportlabSymbolRenderer()
		self.product_source = product_source
		self.page_config = page_config or ble.config.build_page_config()
		self.config = config or PipelineConfig()
		self.stage = PipelineStage.IDLE
		self.history: list[PipelineStage] = []

	def _enter(self, stage: PipelineStage) -> None:
		self.stage = stage
		self.history.append(stage)
		if self.config.verbose:
			print(f"Stage: {stage.value}")

	def _map(self, executor, func, items: list[WorkItem], cancel_token: CancelToken) -> list[WorkItem]:
		cancel_token.raise_if_cancelled()

		def guarded(item: WorkItem) -> WorkItem:
			if item.failure is not None:
				return item
			cancel_token.raise_if_cancelled()
			return func(item)

		if executor is None:
			results = [guarded(item) for item in items]
		else:
			results = list(executor.map(guarded, items))
		# executor.map already preserves order; sort keeps the contract explicit
		results.sort(key=lambda item: item.index)
		return results

	#============================================
	def build_items(self, request: PrintJobRequest) -> list[WorkItem]:
		"""
		Turn a request into per-label work items.

		Args:
			request: Print job request.

		Returns:
			Work items in request order.
		"""
		items: list[WorkItem] = []
		if request.custom_text is not None and not request.products:
			items.append(
				WorkItem(index=0, source=CustomText(request.custom_text), repeat_count=request.quantity)
			)
			return items
		quantities = request.quantities or {}
		for index, product_id in enumerate(request.products):
			repeat_count = int(quantities.get(product_id, request.quantity))
			item = WorkItem(index=index, repeat_count=repeat_count)
			product = None
			if self.product_source is not None:
				product = self.product_source.get_product(product_id)
			if product is None:
				item = fail(item, ValidationError(f"Unknown product id {product_id!r}"))
			else:
				item = dataclasses.replace(item, source=product)
			items.append(item)
		return items

	#============================================
	def run(self, request: PrintJobRequest, cancel_token: CancelToken | None = None) -> PipelineResult:
		"""
		Run a print job request to completion.

		Args:
			request: Print job request.
			cancel_token: Optional cancellation token.

		Returns:
			PipelineResult in the READY stage.

		Raises:
			ConfigurationError: Unknown template or symbology.
			EmptyJobError: No label survived to the assembling stage.
			JobCancelledError: The job was cancelled before assembly finished.
		"""
		cancel_token = cancel_token or CancelToken()
		self.history = []
		try:
			return self._run(request, cancel_token)
		except JobCancelledError:
			self._enter(PipelineStage.CANCELLED)
			raise
		except LabelEngineError:
			self._enter(PipelineStage.FAILED)
			raise

	def _run(self, request: PrintJobRequest, cancel_token: CancelToken) -> PipelineResult:
		template = ble.template_lib.lookup_template(self.templates, request.template_id)
		symbology = ble.symbology.parse_symbology(request.symbology)
		size_hints = ble.render.compute_symbol_size(template, symbology)
		timeout = self.config.render_timeout
		items = self.build_items(request)

		def validate_item(item: WorkItem) -> WorkItem:
			text = ble.compose.select_barcode_text(item.source)
			result = ble.symbology.validate(text, symbology)
			if not result.is_valid:
				return fail(item, ValidationError(result.message))
			return dataclasses.replace(item, text=result.normalized_text)

		workers = max(1, self.config.max_workers)
		executor = None
		if workers > 1:
			executor = concurrent.futures.ThreadPoolExecutor(max_workers=workers)

		def encode_item(item: WorkItem) -> WorkItem:
			try:
				barcode = ble.symbology.encode(item.text, symbology)
				symbol = render_with_timeout(self.renderer, barcode, size_hints, timeout)
			except EncodingError as error:
				return fail(item, error)
			return dataclasses.replace(item, barcode=barcode, symbol=symbol)

		def compose_item(item: WorkItem) -> WorkItem:
			try:
				instance = ble.compose.compose(template, item.source, item.barcode, item.repeat_count)
			except ValidationError as error:
				return fail(item, error)
			return dataclasses.replace(item, instance=instance)

		try:
			self._enter(PipelineStage.VALIDATING)
			items = self._map(executor, validate_item, items, cancel_token)
			self._enter(PipelineStage.ENCODING)
			items = self._map(executor, encode_item, items, cancel_token)
			self._enter(PipelineStage.COMPOSING)
			items = self._map(executor, compose_item, items, cancel_token)
		finally:
			if executor is not None:
				executor.shutdown(wait=True)

		cancel_token.raise_if_cancelled()
		self._enter(PipelineStage.ASSEMBLING)
		instances = tuple(item.failure or item.instance for item in items)
		job = PrintJob(
			template_id=template.id,
			instances=instances,
			page_width_mm=self.page_config.page_width_mm,
			page_height_mm=self.page_config.page_height_mm,
			margin_mm=self.page_config.margin_mm,
		)
		assembly = ble.assemble.assemble(job, self.templates)
		cancel_token.raise_if_cancelled()

		symbols = {item.index: item.symbol for item in items if item.failure is None}
		self._enter(PipelineStage.READY)
		if self.config.verbose:
			report = assembly.report
			print(
				f"Labels: {report.succeeded} succeeded, {report.failed} failed, "
				f"{report.skipped} skipped, {len(assembly.pages)} pages"
			)
		return PipelineResult(
			stage=PipelineStage.READY,
			template=template,
			instances=instances,
			symbols=symbols,
			pages=assembly.pages,
			report=assembly.report,
			page_config=self.page_config,
		)


#============================================
def render_tiles(result: PipelineResult, show_progress: bool = False) -> dict[int, bytes]:
	"""
	Render one tile PDF per placed instance.

	Args:
		result: Ready pipeline result.
		show_progress: Print a progress bar while rendering.

	Returns:
		Tile PDF bytes keyed by instance index.
	"""
	placed = sorted({cell.source_instance_index for page in result.pages for cell in page.cells})
	tiles: dict[int, bytes] = {}
	total = len(placed)
	if show_progress:
		ble.render.print_progress("Tiles", 0, total)
	for count, index in enumerate(placed, start=1):
		tiles[index] = ble.render.render_label_tile(
			result.instances[index],
			result.template,
			result.symbols.get(index),
		)
		if show_progress and (count % PROGRESS_UPDATE_EVERY == 0 or count == total):
			ble.render.print_progress("Tiles", count, total)
	if show_progress and total > 0:
		print()
	return tiles


#============================================
def write_pdf(result: PipelineResult, tiles: dict[int, bytes] | None = None) -> bytes:
	"""
	Write the paginated PDF for a ready pipeline result.

	Args:
		result: Ready pipeline result.
		tiles: Pre-rendered tiles, rendered on demand when None.

	Returns:
		PDF bytes.
	"""
	if tiles is None:
		tiles = render_tiles(result)
	return ble.render.write_document(result.pages, tiles, result.page_config)


#============================================
def build_previews(result: PipelineResult, tiles: dict[int, bytes] | None = None) -> list[dict]:
	"""
	Build base64 PNG previews, one per successful instance.

	Args:
		result: Ready pipeline result.
		tiles: Pre-rendered tiles, rendered on demand when None.

	Returns:
		List of {"instanceIndex": int, "image": data URL} dicts.
	"""
	if tiles is None:
		tiles = render_tiles(result)
	previews = []
	for index in sorted(tiles):
		previews.append(
			{
				"instanceIndex": index,
				"image": ble.render.render_preview(tiles[index]),
			}
		)
	return previews
