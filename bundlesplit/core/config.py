"""
Configuration management for bundlesplit.

Provides centralized, type-safe configuration with environment variable overrides
and defaults matching the platform's modular delivery rules.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load .env file if it exists (looks in cwd and parent directories)
load_dotenv()

# Lollipop: first platform release able to install split APKs.
DEFAULT_STANDALONE_SDK_THRESHOLD = 21
DEFAULT_INSTANT_SIZE_CEILING_BYTES = 4 * 1024 * 1024


class BuildConfig(BaseModel):
    """Variant generation settings."""

    standalone_sdk_threshold: int = Field(
        default=DEFAULT_STANDALONE_SDK_THRESHOLD,
        ge=1,
        description="Lowest SDK served split APKs; older platforms get standalone APKs",
    )
    instant_size_ceiling_bytes: int = Field(
        default=DEFAULT_INSTANT_SIZE_CEILING_BYTES,
        ge=1,
        description="Compressed download size every instant module must stay under",
    )
    generate_standalone: bool = Field(
        default=True, description="Emit standalone variants for pre-split platforms"
    )
    generate_instant: bool = Field(
        default=True, description="Emit the instant variant for instant-eligible modules"
    )
    parallel_modules: bool = Field(
        default=True, description="Generate module splits concurrently in worker threads"
    )


class StorageConfig(BaseModel):
    """Storage configuration for build outputs."""

    base_path: Path = Field(default=Path("./output"), description="Base path for local storage")
    toc_name: str = Field(default="toc.json", description="Key of the stored build result")


class Config(BaseModel):
    """Root configuration for bundlesplit."""

    project_name: str = Field(default="bundlesplit", description="Project identifier")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    build: BuildConfig = Field(default_factory=BuildConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    model_config = {"extra": "ignore"}

    @classmethod
    def from_env(cls) -> Config:
        """Create configuration from environment variables."""
        return cls(
            log_level=os.environ.get("BUNDLESPLIT_LOG_LEVEL", "INFO"),  # type: ignore
            build=BuildConfig(
                standalone_sdk_threshold=int(
                    os.environ.get("BUNDLESPLIT_STANDALONE_SDK", str(DEFAULT_STANDALONE_SDK_THRESHOLD))
                ),
                instant_size_ceiling_bytes=int(
                    os.environ.get(
                        "BUNDLESPLIT_INSTANT_CEILING", str(DEFAULT_INSTANT_SIZE_CEILING_BYTES)
                    )
                ),
                parallel_modules=os.environ.get("BUNDLESPLIT_PARALLEL", "true").lower() == "true",
            ),
            storage=StorageConfig(
                base_path=Path(os.environ.get("BUNDLESPLIT_OUTPUT_PATH", "./output")),
            ),
        )


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.from_env()
