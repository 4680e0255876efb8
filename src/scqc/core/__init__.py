"""Core infrastructure: configuration and errors."""

from .config import (
    RealType,
    get_config,
    set_precision,
    get_precision,
    set_block_size,
    get_block_size,
)
from .error import ScqcError, check_arg

__all__ = [
    "RealType",
    "get_config",
    "set_precision",
    "get_precision",
    "set_block_size",
    "get_block_size",
    "ScqcError",
    "check_arg",
]
