"""
Global configuration for scqc.

Provides:
- Default output precision (real type)
- Block size used when reading matrices row-block by row-block
- Environment variable overrides read at import time:
    SCQC_PRECISION   'f32' or 'f64'
    SCQC_BLOCK_SIZE  positive integer
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from typing import Optional, Union

import numpy as np

from .error import ScqcError

logger = logging.getLogger("scqc.config")


# =============================================================================
# Precision Types
# =============================================================================

class RealType(Enum):
    """Real (floating-point) precision of computed outputs."""
    FLOAT32 = "f32"
    FLOAT64 = "f64"

    @property
    def numpy_dtype(self) -> np.dtype:
        return np.dtype(np.float32) if self == RealType.FLOAT32 else np.dtype(np.float64)

    @classmethod
    def parse(cls, value: Union["RealType", str]) -> "RealType":
        """Parse 'f32', 'f64', 'float32', 'float64' or a RealType."""
        if isinstance(value, RealType):
            return value
        key = str(value).strip().lower()
        if key in ("f32", "float32", "single"):
            return cls.FLOAT32
        if key in ("f64", "float64", "double"):
            return cls.FLOAT64
        raise ScqcError(
            ScqcError.ERROR_INVALID_ARGUMENT,
            f"Unknown precision '{value}', expected 'f32' or 'f64'",
        )


DEFAULT_BLOCK_SIZE = 1024


# =============================================================================
# Global Configuration State
# =============================================================================

class _Config:
    """
    Global configuration singleton.

    Holds the default output precision and the row block size.
    """

    def __init__(self):
        self._default_real = RealType.FLOAT64
        self._block_size = DEFAULT_BLOCK_SIZE

    @property
    def default_real(self) -> RealType:
        """Get default real type."""
        return self._default_real

    @default_real.setter
    def default_real(self, value: Union[RealType, str]):
        self._default_real = RealType.parse(value)

    @property
    def block_size(self) -> int:
        """Rows read per block by matrix readers."""
        return self._block_size

    @block_size.setter
    def block_size(self, value: int):
        try:
            size = int(value)
        except (TypeError, ValueError) as exc:
            raise ScqcError(
                ScqcError.ERROR_INVALID_ARGUMENT,
                f"block_size must be an integer, got {value!r}",
            ) from exc
        if size <= 0:
            raise ScqcError(
                ScqcError.ERROR_INVALID_ARGUMENT,
                f"block_size must be positive, got {size}",
            )
        self._block_size = size

    def load_environment(self, environ: Optional[dict] = None) -> None:
        """Apply SCQC_* environment overrides."""
        if environ is None:
            environ = os.environ

        precision = environ.get("SCQC_PRECISION")
        if precision:
            self.default_real = precision
            logger.debug("precision set from environment: %s", self._default_real.value)

        block_size = environ.get("SCQC_BLOCK_SIZE")
        if block_size:
            self.block_size = block_size
            logger.debug("block size set from environment: %d", self._block_size)

    def reset(self) -> None:
        """Restore defaults."""
        self._default_real = RealType.FLOAT64
        self._block_size = DEFAULT_BLOCK_SIZE


_config = _Config()
_config.load_environment()


# =============================================================================
# Public API
# =============================================================================

def get_config() -> _Config:
    """Get global configuration instance."""
    return _config


def set_precision(real: Union[RealType, str]) -> None:
    """
    Set default precision of computed outputs.

    Args:
        real: Real type ('float32', 'float64', 'f32', 'f64')

    Example:
        >>> scqc.set_precision('float32')
        >>> logcounts = scqc.normalize_counts(counts)  # float32 output
    """
    _config.default_real = real


def get_precision() -> RealType:
    """Get current default precision."""
    return _config.default_real


def set_block_size(size: int) -> None:
    """Set the number of rows read per block."""
    _config.block_size = size


def get_block_size() -> int:
    """Get the number of rows read per block."""
    return _config.block_size


def _get_real_dtype() -> np.dtype:
    """Get NumPy dtype for current default real type."""
    return _config.default_real.numpy_dtype
