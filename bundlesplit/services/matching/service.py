"""
Device Matcher.

Resolves a BuildApksResult against a concrete device: picks the first variant
(in priority order) whose targeting the device satisfies, then within every
APK set of that variant picks the master plus at most one split per group of
splits targeted on the same dimensions.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from ...core.exceptions import IncompleteTargetingError, NoCompatibleVariantError, ValidationError
from ...core.logging import get_logger
from ...models.device import DeviceSpec
from ...models.result import ApkDescription, ApkSet, BuildApksResult, Variant, VariantKind
from ...models.targeting import (
    TargetingDimension,
    TargetingScalar,
    TargetingValue,
    density_bucket_for_dpi,
    select_density,
)

logger = get_logger(__name__)

ABI = TargetingDimension.ABI
DENSITY = TargetingDimension.SCREEN_DENSITY
LANGUAGE = TargetingDimension.LANGUAGE
TEXTURE = TargetingDimension.TEXTURE_COMPRESSION


@dataclass(frozen=True)
class MatchedApks:
    """The variant chosen for a device and the APKs to install from it."""

    variant: Variant
    apks: tuple[ApkDescription, ...]

    @property
    def paths(self) -> tuple[str, ...]:
        return tuple(d.path for d in self.apks)


def _sdk_matches(targeting: TargetingValue, sdk_version: int) -> bool:
    floor = int(targeting.value)
    if floor > sdk_version:
        return False
    return not any(floor < int(alt) <= sdk_version for alt in targeting.alternatives)


def _abi_matches(targeting: TargetingValue, device_abis: Sequence[str]) -> bool:
    if targeting.value not in device_abis:
        return False
    rank = device_abis.index(str(targeting.value))
    return not any(alt in device_abis[:rank] for alt in targeting.alternatives)


def _tier_matches(targeting: TargetingValue, device_tier: int) -> bool:
    tier = int(targeting.value)
    if tier > device_tier:
        return False
    return not any(tier < int(alt) <= device_tier for alt in targeting.alternatives)


def variant_matches(variant: Variant, device: DeviceSpec, *, ignore_abi: bool = False) -> bool:
    """Whether every populated variant-level dimension accepts the device."""
    targeting = variant.targeting
    if not _sdk_matches(targeting.sdk_version, device.sdk_version):
        return False
    if not ignore_abi and targeting.abi is not None and not _abi_matches(targeting.abi, device.supported_abis):
        return False
    if targeting.device_tier is not None and not _tier_matches(targeting.device_tier, device.device_tier):
        return False
    return True


class DeviceMatcher:
    """Selects the APKs a device should install from a build result.

    The result is never mutated; one matcher can serve any number of devices
    concurrently.
    """

    def __init__(self, result: BuildApksResult) -> None:
        self.result = result

    def select_variant(self, device: DeviceSpec, *, instant: bool = False) -> Variant:
        """Return the first variant, in priority order, that serves the device.

        Args:
            device: Device to resolve for.
            instant: Consider only instant variants (True) or only installable ones.

        Raises:
            NoCompatibleVariantError: If no variant accepts the device.
        """
        candidates = [v for v in self.result.variants if (v.kind == VariantKind.INSTANT) == instant]
        for variant in candidates:
            if variant_matches(variant, device):
                logger.debug(
                    "Selected variant",
                    variant_number=variant.variant_number,
                    kind=variant.kind.value,
                    device=device.describe(),
                )
                return variant

        # Devices reporting none of the shipped ABIs still get their SDK bucket,
        # using the first ABI variant of that bucket in canonical ABI order.
        for variant in candidates:
            if variant.targeting.abi is not None and variant_matches(variant, device, ignore_abi=True):
                logger.warning(
                    "No variant built for device ABIs, using bucket fallback",
                    variant_number=variant.variant_number,
                    abi=variant.targeting.abi.value,
                    device=device.describe(),
                )
                return variant

        floors = sorted({v.targeting.min_sdk for v in candidates})
        if not candidates:
            reason = "build has no instant variant" if instant else "build has no installable variant"
        elif floors and device.sdk_version < floors[0]:
            reason = f"lowest supported SDK is {floors[0]}"
        else:
            reason = "no variant accepts the device tier"
        raise NoCompatibleVariantError(
            message=f"cannot serve device ({device.describe()})",
            sdk_version=device.sdk_version,
            reason=reason,
        )

    @staticmethod
    def _device_values(device: DeviceSpec, dimension: TargetingDimension) -> Sequence[TargetingScalar]:
        if dimension == ABI:
            return device.supported_abis
        if dimension == LANGUAGE:
            return device.languages
        if dimension == TEXTURE:
            return device.supported_texture_compressions
        return (density_bucket_for_dpi(device.screen_density),)

    def _choose_value(
        self,
        apk_set: ApkSet,
        dimension: TargetingDimension,
        descriptions: Iterable[ApkDescription],
        device: DeviceSpec,
    ) -> TargetingScalar | None:
        """Device's value for one dimension among the splits of a group, or None for master."""
        targets = [d.targeting.get(dimension) for d in descriptions]
        available = [t.value for t in targets if t is not None]
        covered: set[TargetingScalar] = set()
        for target in targets:
            if target is not None:
                covered |= target.covered_values

        device_values = self._device_values(device, dimension)
        if dimension != LANGUAGE and device_values and not any(v in covered for v in device_values):
            raise IncompleteTargetingError(
                message="device value is outside every split's targeting",
                module_name=apk_set.module_name,
                dimension=dimension.value,
                missing_values=list(device_values),
            )

        if dimension == DENSITY:
            return select_density(device.screen_density, [str(v) for v in available])
        return next((v for v in device_values if v in available), None)

    def _select_apks(self, apk_set: ApkSet, device: DeviceSpec) -> list[ApkDescription]:
        groups: dict[tuple[TargetingDimension, ...], list[ApkDescription]] = defaultdict(list)
        for description in apk_set.splits:
            groups[description.targeting.dimensions].append(description)

        selected = [apk_set.master]
        for dims, descriptions in groups.items():
            wanted = tuple(self._choose_value(apk_set, dim, descriptions, device) for dim in dims)
            if any(value is None for value in wanted):
                continue
            for description in descriptions:
                if tuple(description.targeting.get(dim).value for dim in dims) == wanted:
                    selected.append(description)
                    break
        return selected

    def get_matching_apks(
        self,
        device: DeviceSpec,
        *,
        modules: Iterable[str] | None = None,
        instant: bool = False,
    ) -> MatchedApks:
        """Resolve the APKs to install on a device.

        Args:
            device: Device to resolve for.
            modules: Restrict split variants to these modules; the base module
                (first APK set) is always included.
            instant: Resolve against the instant variant.

        Returns:
            The chosen variant and its APKs, master first within each module.

        Raises:
            NoCompatibleVariantError: If no variant accepts the device.
            IncompleteTargetingError: If a split dimension does not cover the device.
            ValidationError: If a requested module is not in the chosen variant.
        """
        variant = self.select_variant(device, instant=instant)
        apk_sets = list(variant.apk_sets)

        if modules is not None and variant.kind != VariantKind.STANDALONE:
            requested = set(modules)
            unknown = sorted(requested - {s.module_name for s in apk_sets})
            if unknown:
                raise ValidationError(
                    message=f"modules not present in variant {variant.variant_number}: {unknown}",
                    field_name="modules",
                )
            apk_sets = [s for i, s in enumerate(apk_sets) if i == 0 or s.module_name in requested]

        if variant.kind == VariantKind.STANDALONE:
            apks = [apk_sets[0].master]
        else:
            apks = [d for apk_set in apk_sets for d in self._select_apks(apk_set, device)]

        logger.info(
            "Resolved device APKs",
            variant_number=variant.variant_number,
            kind=variant.kind.value,
            apks=len(apks),
        )
        return MatchedApks(variant=variant, apks=tuple(apks))

    def resolve_paths(
        self,
        device: DeviceSpec,
        *,
        modules: Iterable[str] | None = None,
        instant: bool = False,
    ) -> tuple[str, ...]:
        return self.get_matching_apks(device, modules=modules, instant=instant).paths
