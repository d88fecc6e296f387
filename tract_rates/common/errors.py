"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for pipeline failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class StageError(PipelineError):
    """Raised for stage failures that abort the run."""

    error_code = "STAGE_ERROR"


class MalformedInputError(PipelineError):
    """Raised when an input row lacks a usable coordinate."""

    error_code = "MALFORMED_INPUT"


class UnknownCRSError(PipelineError):
    """Raised for a coordinate reference system pyproj cannot resolve."""

    error_code = "UNKNOWN_CRS"


class NetworkFetchError(StageError):
    """Raised when a boundary or denominator fetch fails after retry."""

    error_code = "NETWORK_FETCH_ERROR"


class JoinAmbiguityError(PipelineError):
    """Raised in strict mode when overlapping regions claim the same point."""

    error_code = "JOIN_AMBIGUITY"
