"""
Build APKs Service.

Async front door of the engine: plans the variants of a bundle, generates the
APK sets of every (variant, module) pair on worker threads, joins them, runs
the assembler and optionally persists the resulting table of contents.
"""

from __future__ import annotations

import asyncio
import time
import uuid

from pydantic import BaseModel, Field

from ...core.config import BuildConfig
from ...core.exceptions import BundleSplitError
from ...core.logging import bind_context, clear_context, get_logger
from ...core.types import ServiceResult
from ...models.bundle import AppBundle
from ...models.result import ApkSet, BuildApksResult
from ...storage import ArtifactStore
from ..assembly import BuildPlan, VariantAssembler

logger = get_logger(__name__)


class BuildApksInput(BaseModel):
    """Input for the build service."""

    bundle: AppBundle
    build_id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12], description="Identifier bound to logs")


class BuildApksOutput(BaseModel):
    """Output from the build service."""

    result: BuildApksResult
    toc_key: str | None = Field(default=None, description="Storage key of the persisted result")


class BuildApksService:
    """Service turning an app bundle into its variant tree."""

    def __init__(
        self,
        config: BuildConfig | None = None,
        storage: ArtifactStore | None = None,
        toc_key: str = "toc.json",
    ) -> None:
        """Initialize the build service.

        Args:
            config: Build settings.
            storage: Where to persist the result; nothing is written when omitted.
            toc_key: Storage key of the persisted result.
        """
        self.config = config or BuildConfig()
        self.storage = storage
        self.toc_key = toc_key
        self.assembler = VariantAssembler(self.config)

    async def _generate(self, build_plan: BuildPlan) -> dict[tuple[int, str], ApkSet]:
        jobs = build_plan.jobs()
        if not self.config.parallel_modules:
            return {job: self.assembler.generate_module(build_plan, *job) for job in jobs}

        apk_sets = await asyncio.gather(
            *(asyncio.to_thread(self.assembler.generate_module, build_plan, index, module) for index, module in jobs)
        )
        return dict(zip(jobs, apk_sets))

    async def build(self, input_data: BuildApksInput) -> ServiceResult[BuildApksOutput]:
        """Build the variant tree of a bundle.

        Args:
            input_data: Bundle to build.

        Returns:
            ServiceResult containing BuildApksOutput; dropped instant modules
            are reported as warnings.
        """
        start_time = time.perf_counter()
        bind_context(build_id=input_data.build_id)

        try:
            package = input_data.bundle.metadata.package_name
            logger.info(
                "Starting build",
                package=package,
                modules=len(input_data.bundle.modules),
                parallel=self.config.parallel_modules,
            )

            build_plan = self.assembler.plan(input_data.bundle)
            module_sets = await self._generate(build_plan)
            assembly = self.assembler.assemble(build_plan, module_sets)

            toc_key = None
            if self.storage is not None:
                toc_key = await self.storage.store_model(
                    self.toc_key,
                    assembly.result,
                    {"build_id": input_data.build_id, "package_name": package},
                )

            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                "Build completed",
                variants=len(assembly.result.variants),
                warnings=len(assembly.warnings),
                duration_ms=duration_ms,
            )

            output = BuildApksOutput(result=assembly.result, toc_key=toc_key)
            result = ServiceResult.with_warnings(
                output,
                [str(w) for w in assembly.warnings],
                build_id=input_data.build_id,
                dropped_instant_modules=[w.module_name for w in assembly.warnings],
            )
            result.duration_ms = duration_ms
            return result

        except BundleSplitError as e:
            logger.error("Build failed", error=str(e), error_type=type(e).__name__)
            result = ServiceResult.fail(
                str(e),
                build_id=input_data.build_id,
                error_type=type(e).__name__,
                module=getattr(e, "module_name", None),
                dimension=getattr(e, "dimension", None),
            )
            result.duration_ms = (time.perf_counter() - start_time) * 1000
            return result

        finally:
            clear_context()
