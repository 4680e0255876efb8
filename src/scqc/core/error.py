"""
Error handling for scqc.

All library failures are raised as ScqcError carrying a numeric code.
Codes are grouped by category so callers can branch on ``err.code``
instead of parsing messages.
"""

from __future__ import annotations

from typing import Optional


# =============================================================================
# Error Codes
# =============================================================================

# Success
SCQC_OK = 0

# General errors (1-9)
SCQC_ERROR_UNKNOWN = 1
SCQC_ERROR_INTERNAL = 2

# Argument errors (10-19)
SCQC_ERROR_INVALID_ARGUMENT = 10
SCQC_ERROR_DIMENSION_MISMATCH = 11
SCQC_ERROR_DOMAIN_ERROR = 12
SCQC_ERROR_RANGE_ERROR = 13
SCQC_ERROR_INDEX_OUT_OF_BOUNDS = 14

# Type errors (20-29)
SCQC_ERROR_TYPE_ERROR = 20
SCQC_ERROR_TYPE_MISMATCH = 21

# I/O errors (30-39)
SCQC_ERROR_IO_ERROR = 30
SCQC_ERROR_FILE_NOT_FOUND = 31

# Feature errors (40-49)
SCQC_ERROR_NOT_IMPLEMENTED = 40
SCQC_ERROR_FEATURE_UNAVAILABLE = 41


_ERROR_MESSAGES = {
    SCQC_OK: "Success",
    SCQC_ERROR_UNKNOWN: "Unknown error",
    SCQC_ERROR_INTERNAL: "Internal error",
    SCQC_ERROR_INVALID_ARGUMENT: "Invalid argument",
    SCQC_ERROR_DIMENSION_MISMATCH: "Dimension mismatch",
    SCQC_ERROR_DOMAIN_ERROR: "Domain error",
    SCQC_ERROR_RANGE_ERROR: "Range error",
    SCQC_ERROR_INDEX_OUT_OF_BOUNDS: "Index out of bounds",
    SCQC_ERROR_TYPE_ERROR: "Type error",
    SCQC_ERROR_TYPE_MISMATCH: "Type mismatch",
    SCQC_ERROR_IO_ERROR: "I/O error",
    SCQC_ERROR_FILE_NOT_FOUND: "File not found",
    SCQC_ERROR_NOT_IMPLEMENTED: "Not implemented",
    SCQC_ERROR_FEATURE_UNAVAILABLE: "Feature unavailable",
}


# =============================================================================
# Exception Class
# =============================================================================

class ScqcError(Exception):
    """
    Base exception for all scqc errors.

    Attributes:
        code: Numeric error code (one of the ``ERROR_*`` constants).
        message: Human readable description.

    Example:
        >>> try:
        ...     calc_top_features(mat, top=[10, 5])
        ... except ScqcError as err:
        ...     assert err.code == ScqcError.ERROR_INVALID_ARGUMENT
    """

    OK = SCQC_OK
    ERROR_UNKNOWN = SCQC_ERROR_UNKNOWN
    ERROR_INTERNAL = SCQC_ERROR_INTERNAL
    ERROR_INVALID_ARGUMENT = SCQC_ERROR_INVALID_ARGUMENT
    ERROR_DIMENSION_MISMATCH = SCQC_ERROR_DIMENSION_MISMATCH
    ERROR_DOMAIN_ERROR = SCQC_ERROR_DOMAIN_ERROR
    ERROR_RANGE_ERROR = SCQC_ERROR_RANGE_ERROR
    ERROR_INDEX_OUT_OF_BOUNDS = SCQC_ERROR_INDEX_OUT_OF_BOUNDS
    ERROR_TYPE_ERROR = SCQC_ERROR_TYPE_ERROR
    ERROR_TYPE_MISMATCH = SCQC_ERROR_TYPE_MISMATCH
    ERROR_IO_ERROR = SCQC_ERROR_IO_ERROR
    ERROR_FILE_NOT_FOUND = SCQC_ERROR_FILE_NOT_FOUND
    ERROR_NOT_IMPLEMENTED = SCQC_ERROR_NOT_IMPLEMENTED
    ERROR_FEATURE_UNAVAILABLE = SCQC_ERROR_FEATURE_UNAVAILABLE

    def __init__(self, code: int, message: Optional[str] = None):
        self.code = code
        if message is None:
            message = _ERROR_MESSAGES.get(code, f"Unknown error (code={code})")
        self.message = message
        super().__init__(f"scqc error {code}: {message}")

    @classmethod
    def from_code(cls, code: int, context: str = "") -> "ScqcError":
        """Create exception from error code with optional context."""
        base_msg = _ERROR_MESSAGES.get(code, "Unknown error")
        msg = f"{context}: {base_msg}" if context else base_msg
        return cls(code, msg)


# =============================================================================
# Checking Helpers
# =============================================================================

def error_message(code: int) -> str:
    """Return the generic message for an error code."""
    return _ERROR_MESSAGES.get(code, f"Unknown error (code={code})")


def check_arg(condition: bool, code: int, message: str) -> None:
    """
    Raise ScqcError with ``code`` unless ``condition`` holds.

    Args:
        condition: Value that must be truthy.
        code: Error code to raise with.
        message: Detailed message.

    Raises:
        ScqcError: If condition is false.
    """
    if not condition:
        raise ScqcError(code, message)


def require_module(name: str, extra: str):
    """
    Import an optional dependency or raise ScqcError.

    Args:
        name: Module name to import.
        extra: Name of the setup extra that installs it.

    Returns:
        The imported module.
    """
    import importlib

    try:
        return importlib.import_module(name)
    except ImportError as exc:
        raise ScqcError(
            SCQC_ERROR_FEATURE_UNAVAILABLE,
            f"{name} is required for this operation "
            f"(install with: pip install scqc[{extra}])",
        ) from exc
