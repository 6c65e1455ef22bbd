"""Unit tests for the Variant Assembler."""

import pytest

from bundlesplit.core.config import BuildConfig
from bundlesplit.core.exceptions import (
    IncompleteTargetingError,
    InstantVariantEmptyError,
    MalformedTargetingError,
    ValidationError,
)
from bundlesplit.models.result import ApkDescription, ApkSet, VariantKind
from bundlesplit.models.targeting import ApkTargeting, TargetingDimension, TargetingUniverse, TargetingValue
from bundlesplit.services.assembly import VariantAssembler, instant_download_size, validate_apk_set


def paths(variant):
    return [d.path for s in variant.apk_sets for d in s.apk_descriptions]


class TestSplitVariants:
    """Tests for split variant assembly."""

    def test_single_split_variant(self, abi_bundle, build_config):
        """Test that a bundle without SDK buckets yields one split variant."""
        result = VariantAssembler(build_config).build(abi_bundle).result

        (variant,) = result.variants
        assert variant.kind == VariantKind.SPLIT
        assert variant.variant_number == 0
        assert variant.targeting.min_sdk == 21
        assert variant.targeting.sdk_version.alternatives == frozenset()
        assert variant.targeting.abi is None
        assert paths(variant) == [
            "splits/base-master.apk",
            "splits/base-arm64-v8a.apk",
            "splits/base-x86.apk",
        ]
        assert result.package_name == "com.example.game"

    def test_sdk_buckets_ordered_highest_first(self, make_bundle, build_config):
        bundle = make_bundle(
            {
                "base": [
                    ("classes.dex", {}, 100),
                    ("lib/vulkan.so", {"sdk_version": 24}, 30),
                ]
            },
            min_sdk=21,
        )
        result = VariantAssembler(build_config).build(bundle).result

        assert [v.targeting.min_sdk for v in result.variants] == [24, 21]
        assert result.variants[0].targeting.sdk_version.alternatives == frozenset({21})
        assert result.variants[0].apk_sets[0].master.entries == ("classes.dex", "lib/vulkan.so")
        assert result.variants[1].apk_sets[0].master.entries == ("classes.dex",)
        assert result.variants[1].apk_sets[0].master.path == "splits/base-master_2.apk"

    def test_base_module_first(self, make_bundle, build_config):
        bundle = make_bundle({"alpha": [("a.dex", {}, 1)], "base": [("classes.dex", {}, 1)]})
        (variant,) = VariantAssembler(build_config).build(bundle).result.variants
        assert [s.module_name for s in variant.apk_sets] == ["base", "alpha"]


class TestStandaloneVariants:
    """Tests for standalone variants served to pre-split platforms."""

    def test_standalone_and_split_never_share_a_bucket(self, legacy_bundle, build_config):
        result = VariantAssembler(build_config).build(legacy_bundle).result

        kinds = [(v.kind, v.targeting.min_sdk) for v in result.variants]
        assert kinds == [
            (VariantKind.SPLIT, 21),
            (VariantKind.STANDALONE, 16),
            (VariantKind.STANDALONE, 16),
        ]

    def test_one_standalone_per_abi(self, legacy_bundle, build_config):
        """Test that standalone variants are split by ABI and flattened to one APK."""
        result = VariantAssembler(build_config).build(legacy_bundle).result
        arm, x86 = result.variants[1], result.variants[2]

        assert arm.targeting.abi.value == "arm64-v8a"
        assert arm.targeting.abi.alternatives == frozenset({"x86"})
        assert x86.targeting.abi.value == "x86"

        (apk_set,) = x86.apk_sets
        (apk,) = apk_set.apk_descriptions
        assert apk_set.module_name == "base"
        assert apk.is_master_split
        assert apk.path == "standalones/standalone-x86.apk"
        assert set(apk.entries) == {
            "classes.dex",
            "lib/x86/libgame.so",
            "res/values-fr/strings.xml",
            "maps.dex",
        }
        assert apk.size_bytes == 100 + 50 + 5 + 40
        assert apk.targeting.abi.value == "x86"

    def test_universal_standalone_without_native_code(self, make_bundle, build_config):
        bundle = make_bundle({"base": [("classes.dex", {}, 100)]}, min_sdk=19)
        result = VariantAssembler(build_config).build(bundle).result

        standalone = result.variants[-1]
        assert standalone.kind == VariantKind.STANDALONE
        assert standalone.targeting.abi is None
        assert paths(standalone) == ["standalones/standalone.apk"]

    def test_standalone_takes_default_texture(self, make_bundle, build_config):
        bundle = make_bundle(
            {
                "base": [
                    ("tex/etc2.ktx", {"texture_compression": "etc2"}, 10),
                    ("tex/astc.ktx", {"texture_compression": "astc"}, 10),
                ]
            },
            min_sdk=19,
            default_values={"texture_compression": "etc2"},
        )
        result = VariantAssembler(build_config).build(bundle).result

        standalone = result.variants[-1]
        assert standalone.apk_sets[0].master.entries == ("tex/etc2.ktx",)
        split = result.variants[0]
        assert [d.path for d in split.apk_sets[0].splits] == ["splits/base-astc.apk"]

    def test_standalone_generation_disabled(self, legacy_bundle):
        config = BuildConfig(generate_standalone=False, parallel_modules=False)
        result = VariantAssembler(config).build(legacy_bundle).result
        assert [v.kind for v in result.variants] == [VariantKind.SPLIT]


class TestDeviceTierVariants:
    """Tests for the device tier axis."""

    def test_one_variant_per_tier(self, tiered_bundle, build_config):
        result = VariantAssembler(build_config).build(tiered_bundle).result

        assert [v.targeting.device_tier.value for v in result.variants] == [1, 0]
        high, low = result.variants
        assert high.apk_sets[0].master.entries == ("classes.dex", "assets/textures#tier_1/hero.ktx")
        assert low.apk_sets[0].master.entries == ("classes.dex", "assets/textures#tier_0/hero.ktx")
        assert high.targeting.device_tier.alternatives == frozenset({0})
        assert low.apk_sets[0].master.path == "splits/base-master_2.apk"

    def test_module_without_tier_content_uses_lower_tier(self, make_bundle, build_config):
        bundle = make_bundle(
            {
                "base": [("classes.dex", {}, 1), ("hi.ktx", {"device_tier": 2}, 1)],
                "extra": [("lo.ktx", {"device_tier": 0}, 1), ("mid.ktx", {"device_tier": 1}, 1)],
            },
            device_tiers=(0, 1, 2),
        )
        result = VariantAssembler(build_config).build(bundle).result

        top = result.variants[0]
        assert top.targeting.device_tier.value == 2
        assert top.apk_set("extra").master.entries == ("mid.ktx",)

    def test_undeclared_tier_is_malformed(self, make_bundle, build_config):
        bundle = make_bundle({"base": [("a", {"device_tier": 3}, 1)]})
        with pytest.raises(MalformedTargetingError):
            VariantAssembler(build_config).build(bundle)


class TestInstantVariants:
    """Tests for instant variant assembly."""

    def test_oversized_module_dropped_with_warning(self, instant_bundle):
        config = BuildConfig(instant_size_ceiling_bytes=1000, parallel_modules=False)
        assembly = VariantAssembler(config).build(instant_bundle)

        split, instant = assembly.result.variants
        assert split.kind == VariantKind.SPLIT
        assert [s.module_name for s in split.apk_sets] == ["base", "levels"]
        assert instant.kind == VariantKind.INSTANT
        assert [s.module_name for s in instant.apk_sets] == ["base"]
        assert instant.apk_sets[0].master.path == "instant/instant-base-master.apk"

        (warning,) = assembly.warnings
        assert warning.module_name == "levels"
        assert warning.size_bytes == 5000
        assert warning.ceiling_bytes == 1000

    def test_module_at_exact_ceiling_dropped(self, instant_bundle):
        """Test that a module must stay strictly under the ceiling."""
        config = BuildConfig(instant_size_ceiling_bytes=5000, parallel_modules=False)
        assembly = VariantAssembler(config).build(instant_bundle)

        instant = assembly.result.variants[-1]
        assert [s.module_name for s in instant.apk_sets] == ["base"]
        (warning,) = assembly.warnings
        assert warning.module_name == "levels"
        assert warning.size_bytes == warning.ceiling_bytes == 5000

    def test_module_just_under_ceiling_kept(self, instant_bundle):
        config = BuildConfig(instant_size_ceiling_bytes=5001, parallel_modules=False)
        assembly = VariantAssembler(config).build(instant_bundle)

        instant = assembly.result.variants[-1]
        assert [s.module_name for s in instant.apk_sets] == ["base", "levels"]
        assert assembly.warnings == []

    def test_base_too_large_is_fatal(self, instant_bundle):
        config = BuildConfig(instant_size_ceiling_bytes=100, parallel_modules=False)
        with pytest.raises(InstantVariantEmptyError) as exc_info:
            VariantAssembler(config).build(instant_bundle)
        assert "base" in exc_info.value.dropped_modules

    def test_base_not_instant_eligible(self, make_bundle, build_config):
        bundle = make_bundle(
            {"base": [("a", {}, 1)], "levels": [("b", {}, 1)]},
            instant_modules=("levels",),
        )
        with pytest.raises(InstantVariantEmptyError):
            VariantAssembler(build_config).build(bundle)

    def test_instant_disabled(self, instant_bundle):
        config = BuildConfig(generate_instant=False, parallel_modules=False)
        result = VariantAssembler(config).build(instant_bundle).result
        assert all(v.kind != VariantKind.INSTANT for v in result.variants)

    def test_download_size_counts_largest_split_per_group(self, abi_bundle, build_config):
        result = VariantAssembler(build_config).build(abi_bundle).result
        assert instant_download_size(result.variants[0].apk_sets[0]) == 100 + 60


class TestBundleValidation:
    """Tests for bundle-level validation."""

    def test_missing_base_module(self, make_bundle, build_config):
        bundle = make_bundle({"feature": [("a", {}, 1)]})
        with pytest.raises(ValidationError) as exc_info:
            VariantAssembler(build_config).build(bundle)
        assert exc_info.value.field_name == "base_module"

    def test_unknown_instant_module(self, make_bundle, build_config):
        bundle = make_bundle({"base": [("a", {}, 1)]}, instant_modules=("base", "ghost"))
        with pytest.raises(ValidationError) as exc_info:
            VariantAssembler(build_config).build(bundle)
        assert exc_info.value.field_name == "instant_modules"

    def test_build_is_deterministic(self, legacy_bundle, build_config):
        first = VariantAssembler(build_config).build(legacy_bundle).result
        second = VariantAssembler(build_config).build(legacy_bundle).result
        assert first.to_json() == second.to_json()


class TestValidateApkSet:
    """Tests for ApkSet completeness validation."""

    @staticmethod
    def _apk_set(*splits):
        descriptions = [ApkDescription(path="splits/base-master.apk", is_master_split=True)]
        for value, alternatives in splits:
            descriptions.append(
                ApkDescription(
                    targeting=ApkTargeting(abi=TargetingValue.of(TargetingDimension.ABI, value, alternatives)),
                    path=f"splits/base-{value}.apk",
                )
            )
        return ApkSet(module_name="base", apk_descriptions=tuple(descriptions))

    def test_gap_in_coverage(self):
        apk_set = self._apk_set(("x86", ["arm64-v8a"]), ("arm64-v8a", ["x86"]))
        with pytest.raises(IncompleteTargetingError) as exc_info:
            validate_apk_set(apk_set, TargetingUniverse())
        assert exc_info.value.dimension == "abi"
        assert "mips" in exc_info.value.missing_values

    def test_duplicate_values(self):
        apk_set = self._apk_set(("x86", []), ("x86", []))
        with pytest.raises(MalformedTargetingError):
            validate_apk_set(apk_set, TargetingUniverse())


class TestClassifiedBuilds:
    """Tests classifying freshly assembled results."""

    def test_master_only_bundle(self, make_bundle, build_config):
        """Test that a master-only bundle yields one split variant with one master APK."""
        from bundlesplit.services.classification import (
            is_instant_apk_variant,
            is_split_apk_variant,
            is_standalone_apk_variant,
        )

        bundle = make_bundle({"base": [("classes.dex", {}, 100)]}, min_sdk=21)
        (variant,) = VariantAssembler(build_config).build(bundle).result.variants

        assert len(variant.apk_sets) == 1
        assert len(variant.apk_sets[0].apk_descriptions) == 1
        assert is_split_apk_variant(variant)
        assert not is_standalone_apk_variant(variant)
        assert not is_instant_apk_variant(variant)

    def test_min_sdk_below_threshold(self, make_bundle, build_config):
        """Test that min SDK 19 yields one standalone and one split variant."""
        from bundlesplit.services.classification import split_apk_variants, standalone_apk_variants

        bundle = make_bundle({"base": [("classes.dex", {}, 100)]}, min_sdk=19)
        result = VariantAssembler(build_config).build(bundle).result

        (standalone,) = standalone_apk_variants(result)
        (split,) = split_apk_variants(result)
        assert standalone.targeting.min_sdk == 19
        assert split.targeting.min_sdk == 21
