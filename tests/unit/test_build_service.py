"""Unit tests for the async build service and configuration."""

import pytest

from bundlesplit.core.config import BuildConfig, Config
from bundlesplit.models.result import BuildApksResult, VariantKind
from bundlesplit.services.assembly import VariantAssembler
from bundlesplit.services.build import BuildApksInput, BuildApksService


@pytest.mark.asyncio
class TestBuildApksService:
    """Tests for BuildApksService."""

    async def test_build_success(self, legacy_bundle, build_config):
        service = BuildApksService(build_config)
        result = await service.build(BuildApksInput(bundle=legacy_bundle, build_id="b1"))

        assert result.success
        assert result.error is None
        assert result.warnings == []
        assert result.metadata["build_id"] == "b1"
        assert result.duration_ms >= 0
        assert result.data.toc_key is None
        assert len(result.data.result.variants) == 3

    async def test_parallel_matches_sequential(self, legacy_bundle):
        """Test that threaded generation produces the same tree as the sequential path."""
        parallel = await BuildApksService(BuildConfig(parallel_modules=True)).build(
            BuildApksInput(bundle=legacy_bundle)
        )
        sequential = VariantAssembler(BuildConfig(parallel_modules=False)).build(legacy_bundle)

        assert parallel.data.result.to_json() == sequential.result.to_json()

    async def test_instant_drop_reported_as_warning(self, instant_bundle):
        config = BuildConfig(instant_size_ceiling_bytes=1000)
        result = await BuildApksService(config).build(BuildApksInput(bundle=instant_bundle))

        assert result.success
        assert len(result.warnings) == 1
        assert "levels" in result.warnings[0]
        assert result.metadata["dropped_instant_modules"] == ["levels"]
        instant = [v for v in result.data.result.variants if v.kind == VariantKind.INSTANT]
        assert [s.module_name for s in instant[0].apk_sets] == ["base"]

    async def test_failure_carries_error_details(self, make_bundle, build_config):
        bundle = make_bundle({"base": [("lib/sparc/x.so", {"abi": "sparc"}, 1)]})
        result = await BuildApksService(build_config).build(BuildApksInput(bundle=bundle))

        assert not result.success
        assert result.data is None
        assert result.metadata["error_type"] == "MalformedTargetingError"
        assert result.metadata["module"] == "base"
        assert result.metadata["dimension"] == "abi"
        assert "sparc" in result.error

    async def test_validation_failure(self, make_bundle, build_config):
        bundle = make_bundle({"feature": [("a", {}, 1)]})
        result = await BuildApksService(build_config).build(BuildApksInput(bundle=bundle))

        assert not result.success
        assert result.metadata["error_type"] == "ValidationError"

    async def test_result_persisted(self, abi_bundle, build_config, store):
        service = BuildApksService(build_config, storage=store, toc_key="toc.json")
        result = await service.build(BuildApksInput(bundle=abi_bundle, build_id="b2"))

        assert result.data.toc_key == "toc.json"
        stored = await store.load_model("toc.json", BuildApksResult)
        assert stored.to_json() == result.data.result.to_json()
        meta = await store.get_metadata("toc.json")
        assert meta["build_id"] == "b2"


class TestConfig:
    """Tests for configuration loading."""

    def test_defaults(self):
        config = Config()
        assert config.build.standalone_sdk_threshold == 21
        assert config.build.instant_size_ceiling_bytes == 4 * 1024 * 1024
        assert config.storage.toc_name == "toc.json"

    def test_from_env(self, monkeypatch, temp_dir):
        monkeypatch.setenv("BUNDLESPLIT_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("BUNDLESPLIT_STANDALONE_SDK", "19")
        monkeypatch.setenv("BUNDLESPLIT_INSTANT_CEILING", "2048")
        monkeypatch.setenv("BUNDLESPLIT_PARALLEL", "false")
        monkeypatch.setenv("BUNDLESPLIT_OUTPUT_PATH", str(temp_dir))

        config = Config.from_env()
        assert config.log_level == "DEBUG"
        assert config.build.standalone_sdk_threshold == 19
        assert config.build.instant_size_ceiling_bytes == 2048
        assert not config.build.parallel_modules
        assert config.storage.base_path == temp_dir

    def test_threshold_moves_standalone_boundary(self, legacy_bundle):
        config = BuildConfig(standalone_sdk_threshold=16, parallel_modules=False)
        result = VariantAssembler(config).build(legacy_bundle).result
        assert [v.kind for v in result.variants] == [VariantKind.SPLIT]
