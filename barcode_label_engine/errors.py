"""
Error taxonomy for the label engine.

Per-item errors (ValidationError, EncodingError) end up in the job report.
ConfigurationError, EmptyJobError and JobCancelledError abort the whole job.
"""


class LabelEngineError(Exception):
	kind = "LabelEngineError"


class ValidationError(LabelEngineError):
	"""Text breaks the charset or length rules of a symbology."""
	kind = "ValidationError"


class ConfigurationError(LabelEngineError):
	"""Unknown template or symbology, or a malformed template definition."""
	kind = "ConfigurationError"


class EncodingError(LabelEngineError):
	"""Checksum or render step failed for a single item."""
	kind = "EncodingError"


class EmptyJobError(LabelEngineError):
	"""A print job has no placements to lay out."""
	kind = "EmptyJobError"


class JobCancelledError(LabelEngineError):
	kind = "JobCancelledError"
