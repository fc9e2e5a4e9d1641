"""
Print document assembly: pack label instances into pages.
"""

# Standard Library
import dataclasses
import math

# local repo modules
import barcode_label_engine as ble
import barcode_label_engine.compose
import barcode_label_engine.errors
import barcode_label_engine.template_lib


LabelInstance = ble.compose.LabelInstance
LabelTemplate = ble.template_lib.LabelTemplate
LayoutMode = ble.template_lib.LayoutMode
lookup_template = ble.template_lib.lookup_template
EmptyJobError = ble.errors.EmptyJobError

SKIPPED_KIND = "SkippedInstance"


@dataclasses.dataclass(frozen=True)
class InstanceFailure:
	kind: str
	message: str


@dataclasses.dataclass(frozen=True)
class PrintJob:
	template_id: str
	instances: tuple
	page_width_mm: float
	page_height_mm: float
	margin_mm: float


@dataclasses.dataclass(frozen=True)
class PageCell:
	x_mm: float
	y_mm: float
	width_mm: float
	height_mm: float
	source_instance_index: int


@dataclasses.dataclass(frozen=True)
class PrintPage:
	page_index: int
	cells: tuple[PageCell, ...]


@dataclasses.dataclass(frozen=True)
class GridGeometry:
	columns: int
	rows: int
	capacity: int


@dataclasses.dataclass(frozen=True)
class ReportError:
	instance_index: int
	kind: str
	message: str


@dataclasses.dataclass
class JobReport:
	succeeded: int = 0
	failed: int = 0
	skipped: int = 0
	errors: list[ReportError] = dataclasses.field(default_factory=list)

	def to_dict(self) -> dict:
		return {
			"succeeded": self.succeeded,
			"failed": self.failed,
			"skipped": self.skipped,
			"errors": [
				{
					"instanceIndex": error.instance_index,
					"kind": error.kind,
					"message": error.message,
				}
				for error in self.errors
			],
		}


@dataclasses.dataclass(frozen=True)
class AssemblyResult:
	pages: tuple[PrintPage, ...]
	report: JobReport


#============================================
def compute_grid(
	template: LabelTemplate,
	page_width_mm: float,
	page_height_mm: float,
	margin_mm: float,
) -> GridGeometry:
	"""
	Compute how many labels fit on a page.

	Single layout always yields one slot. Grid layout fits whole labels into
	the usable area inside the margins and never drops below one slot.

	Args:
		template: Label template.
		page_width_mm: Page width.
		page_height_mm: Page height.
		margin_mm: Margin on every side.

	Returns:
		GridGeometry.
	"""
	if template.layout is LayoutMode.SINGLE:
		return GridGeometry(columns=1, rows=1, capacity=1)
	usable_width = page_width_mm - 2.0 * margin_mm
	usable_height = page_height_mm - 2.0 * margin_mm
	columns = max(0, math.floor(usable_width / template.width_mm))
	rows = max(0, math.floor(usable_height / template.height_mm))
	if columns * rows == 0:
		# label larger than the usable area: one slot at the margin origin
		return GridGeometry(columns=1, rows=1, capacity=1)
	return GridGeometry(columns=columns, rows=rows, capacity=columns * rows)


#============================================
def compute_cell(
	template: LabelTemplate,
	geometry: GridGeometry,
	slot: int,
	margin_mm: float,
) -> tuple[float, float]:
	"""
	Compute the top-left corner of a slot in page millimetres.

	Args:
		template: Label template.
		geometry: Grid geometry.
		slot: Slot index on the page, row-major.
		margin_mm: Page margin.

	Returns:
		Tuple of (x_mm, y_mm) measured from the top-left page corner.
	"""
	row = slot // geometry.columns
	col = slot % geometry.columns
	cell_x = margin_mm + col * template.width_mm
	cell_y = margin_mm + row * template.height_mm
	return (cell_x, cell_y)


#============================================
def expand_placements(job: PrintJob, report: JobReport) -> list[int]:
	"""
	Expand instances into a flat placement list of instance indexes.

	Failed entries and structurally invalid instances are recorded in the
	report and contribute no placements.

	Args:
		job: Print job.
		report: Report to update.

	Returns:
		Instance indexes, each repeated repeat_count times, in input order.
	"""
	placements: list[int] = []
	for index, entry in enumerate(job.instances):
		if isinstance(entry, InstanceFailure):
			report.failed += 1
			report.errors.append(ReportError(index, entry.kind, entry.message))
			continue
		problem = None
		if not isinstance(entry, LabelInstance):
			problem = f"Unsupported entry type {type(entry).__name__}"
		elif entry.repeat_count < 1:
			problem = f"Repeat count must be at least 1, got {entry.repeat_count}"
		elif entry.template_id != job.template_id:
			problem = f"Instance built for template {entry.template_id!r}, job uses {job.template_id!r}"
		if problem is not None:
			report.skipped += 1
			report.errors.append(ReportError(index, SKIPPED_KIND, problem))
			continue
		report.succeeded += 1
		placements.extend([index] * entry.repeat_count)
	return placements


#============================================
def assemble(job: PrintJob, templates: dict[str, LabelTemplate]) -> AssemblyResult:
	"""
	Lay out a print job onto pages.

	Args:
		job: Print job.
		templates: Templates keyed by id.

	Returns:
		AssemblyResult with pages and the per-instance report.

	Raises:
		ConfigurationError: If the job template is unknown.
		EmptyJobError: If no placements remain after skipping bad instances.
	"""
	template = lookup_template(templates, job.template_id)

	report = JobReport()
	placements = expand_placements(job, report)
	if not placements:
		raise EmptyJobError(
			f"Print job for template {job.template_id!r} has no labels to lay out "
			f"({report.failed} failed, {report.skipped} skipped)"
		)

	geometry = compute_grid(template, job.page_width_mm, job.page_height_mm, job.margin_mm)
	pages: list[PrintPage] = []
	for start in range(0, len(placements), geometry.capacity):
		chunk = placements[start:start + geometry.capacity]
		cells = []
		for slot, instance_index in enumerate(chunk):
			cell_x, cell_y = compute_cell(template, geometry, slot, job.margin_mm)
			cells.append(
				PageCell(
					x_mm=cell_x,
					y_mm=cell_y,
					width_mm=template.width_mm,
					height_mm=template.height_mm,
					source_instance_index=instance_index,
				)
			)
		pages.append(PrintPage(page_index=len(pages), cells=tuple(cells)))

	return AssemblyResult(pages=tuple(pages), report=report)
