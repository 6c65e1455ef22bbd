"""
Split Generator.

Partitions the content of one module into a master APK and configuration
splits. Entries that are untargeted, or targeted at the bundle's default value
of a dimension, stay in the master; every other combination of split-dimension
values gets its own split whose targeting records the rest of the dimension's
value space as alternatives.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from ...core.logging import get_logger
from ...models.bundle import ContentEntry
from ...models.result import ApkDescription, ApkSet
from ...models.targeting import (
    SPLIT_DIMENSIONS,
    ApkTargeting,
    TargetingDimension,
    TargetingScalar,
    TargetingUniverse,
    TargetingValue,
    value_rank,
)

logger = get_logger(__name__)

SplitKey = tuple[tuple[TargetingDimension, TargetingScalar], ...]


@dataclass(frozen=True)
class ApkNaming:
    """Where the APKs of one variant are written.

    The first variant of a family uses bare names; later ones get a ``_<n>``
    ordinal so every path in a build is unique.
    """

    directory: str = "splits"
    prefix: str = ""
    ordinal: int = 1

    def path(self, module_name: str, suffix: str) -> str:
        tail = f"_{self.ordinal}" if self.ordinal > 1 else ""
        return f"{self.directory}/{self.prefix}{module_name}-{suffix}{tail}.apk"


def _split_sort_key(key: SplitKey) -> tuple:
    return (
        len(key),
        tuple((SPLIT_DIMENSIONS.index(dim), value_rank(dim, value)) for dim, value in key),
    )


def _describe(
    targeting: ApkTargeting, path: str, entries: list[ContentEntry], *, is_master: bool
) -> ApkDescription:
    return ApkDescription(
        targeting=targeting,
        path=path,
        is_master_split=is_master,
        entries=tuple(e.relative_path for e in entries),
        size_bytes=sum(e.size_bytes for e in entries),
    )


class SplitGenerator:
    """Generates the APK set of a single module.

    Variant-level tags (SDK version, device tier) must already be resolved by
    the caller's entry filter; they are validated here but do not split.
    """

    def __init__(self, universe: TargetingUniverse) -> None:
        """Initialize the generator.

        Args:
            universe: Value spaces and default values of the bundle being built.
        """
        self.universe = universe

    def split_key(self, module_name: str, entry: ContentEntry) -> SplitKey:
        """Return the split an entry belongs to; the empty key is the master.

        Raises:
            MalformedTargetingError: If the entry's tags cannot be parsed.
        """
        tags = self.universe.parse_tags(module_name, entry.targeting_tags)
        return tuple(
            (dim, tags[dim])
            for dim in SPLIT_DIMENSIONS
            if dim in tags and tags[dim] != self.universe.default_for(dim)
        )

    def alternatives(self, dimension: TargetingDimension, value: TargetingScalar) -> frozenset[TargetingScalar]:
        space = self.universe.space(dimension) or frozenset()
        return space - {value}

    def generate(
        self,
        module_name: str,
        entries: Iterable[ContentEntry],
        naming: ApkNaming | None = None,
    ) -> ApkSet:
        """Partition a module's entries into master and splits.

        Args:
            module_name: Name of the module.
            entries: The module's entries, already filtered for the variant.
            naming: Path scheme of the variant being generated.

        Returns:
            ApkSet with the master first, then splits in canonical order.

        Raises:
            MalformedTargetingError: If any entry carries an invalid tag.
        """
        naming = naming or ApkNaming()
        buckets: dict[SplitKey, list[ContentEntry]] = {(): []}
        for entry in entries:
            buckets.setdefault(self.split_key(module_name, entry), []).append(entry)

        descriptions = [
            _describe(ApkTargeting(), naming.path(module_name, "master"), buckets.pop(()), is_master=True)
        ]
        for key in sorted(buckets, key=_split_sort_key):
            targeting = ApkTargeting.from_values(
                TargetingValue.of(dim, value, self.alternatives(dim, value)) for dim, value in key
            )
            descriptions.append(
                _describe(targeting, naming.path(module_name, targeting.suffix), buckets[key], is_master=False)
            )

        logger.debug(
            "Generated module splits",
            module=module_name,
            splits=len(descriptions) - 1,
            dimensions=sorted({dim.value for key in buckets for dim, _ in key}),
        )
        return ApkSet(module_name=module_name, apk_descriptions=tuple(descriptions))
