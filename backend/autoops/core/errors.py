"""
Error taxonomy for incident analysis.

Field-level problems in model output are never raised: the normalizer
coerces them to defaults. Only whole-request failures surface here.
"""


class AnalysisError(Exception):
    """Base class for failures that terminate a single analysis."""


class InputError(AnalysisError):
    """Missing or unusable input, rejected before any external call."""


class UpstreamError(AnalysisError):
    """Model, search or webhook transport failure."""


class MalformedResponseError(AnalysisError):
    """Model text has no parseable JSON payload."""
