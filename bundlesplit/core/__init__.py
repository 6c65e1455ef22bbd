"""Core infrastructure components for bundlesplit."""

from .config import BuildConfig, Config, get_config
from .exceptions import (
    BundleSplitError,
    IncompleteTargetingError,
    InstantSizeExceededError,
    InstantVariantEmptyError,
    MalformedTargetingError,
    NoCompatibleVariantError,
    ValidationError,
)
from .logging import bind_context, clear_context, get_logger, setup_logging
from .types import ServiceResult

__all__ = [
    "BuildConfig",
    "Config",
    "get_config",
    "BundleSplitError",
    "IncompleteTargetingError",
    "InstantSizeExceededError",
    "InstantVariantEmptyError",
    "MalformedTargetingError",
    "NoCompatibleVariantError",
    "ValidationError",
    "bind_context",
    "clear_context",
    "get_logger",
    "setup_logging",
    "ServiceResult",
]
