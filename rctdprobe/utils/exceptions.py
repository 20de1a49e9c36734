"""
Exception classes for rctdprobe.

All exceptions in one place. No duplication.
"""


class RCTDProbeError(Exception):
    """Base exception for all rctdprobe errors."""

    pass


class DataError(RCTDProbeError):
    """Data-related errors (missing, invalid format, etc.)."""

    pass


class DataCompatibilityError(DataError):
    """Data format or compatibility issues (shape or label mismatch)."""

    pass


class PreconditionError(DataError):
    """Input violates a deconvolution configuration precondition.

    Raised either by the Python-side check that mirrors the library
    thresholds, or translated from the error raised inside R.
    """

    pass


class InsufficientReplicatesError(PreconditionError):
    """Too few reference instances for at least one cell type."""

    pass


class LowUMIError(PreconditionError):
    """Total count per cell or spot is below the configured minimum."""

    pass


class InsufficientMarkerGenesError(PreconditionError):
    """Too few differentially expressed genes to fit the model."""

    pass


class ParameterError(RCTDProbeError):
    """Invalid parameter errors."""

    pass


class ProcessingError(RCTDProbeError):
    """Errors during analysis processing."""

    pass


class DependencyError(RCTDProbeError):
    """Missing or incompatible dependency."""

    pass
