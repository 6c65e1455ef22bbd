"""Test configuration for bundlesplit."""

import tempfile
from pathlib import Path

import pytest

from bundlesplit.core.config import BuildConfig
from bundlesplit.models.bundle import AppBundle, BundleMetadata, ContentEntry


def _entry(path, tags=None, size=10):
    return ContentEntry(relative_path=path, targeting_tags=tags or {}, size_bytes=size)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests.

    Yields:
        Path: A Path object pointing to the temporary directory.
            The directory is automatically cleaned up after the test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store(temp_dir):
    """Create an artifact store rooted in the temporary directory."""
    from bundlesplit.storage import LocalArtifactStore

    return LocalArtifactStore(temp_dir)


@pytest.fixture
def build_config():
    """Build settings with worker threads disabled."""
    return BuildConfig(parallel_modules=False)


@pytest.fixture
def make_bundle():
    """Factory building an AppBundle from compact entry tuples.

    Modules map to lists of ``(relative_path, tags, size_bytes)`` tuples;
    keyword arguments go to BundleMetadata.

    Returns:
        Callable returning an AppBundle.
    """

    def factory(modules, **metadata):
        metadata.setdefault("package_name", "com.example.game")
        return AppBundle(
            metadata=BundleMetadata(**metadata),
            modules={
                name: tuple(_entry(*spec) for spec in entries)
                for name, entries in modules.items()
            },
        )

    return factory


@pytest.fixture
def abi_bundle(make_bundle):
    """Bundle whose base module ships native code for two ABIs."""
    return make_bundle(
        {
            "base": [
                ("classes.dex", {}, 100),
                ("lib/x86/libgame.so", {"abi": "x86"}, 50),
                ("lib/arm64-v8a/libgame.so", {"abi": "arm64-v8a"}, 60),
            ]
        },
        min_sdk=21,
    )


@pytest.fixture
def legacy_bundle(make_bundle):
    """Bundle supporting pre-split platforms, with ABI and language content."""
    return make_bundle(
        {
            "base": [
                ("classes.dex", {}, 100),
                ("lib/x86/libgame.so", {"abi": "x86"}, 50),
                ("lib/arm64-v8a/libgame.so", {"abi": "arm64-v8a"}, 60),
                ("res/values-fr/strings.xml", {"language": "fr"}, 5),
            ],
            "maps": [
                ("maps.dex", {}, 40),
            ],
        },
        min_sdk=16,
    )


@pytest.fixture
def tiered_bundle(make_bundle):
    """Bundle with textures for two device tiers."""
    return make_bundle(
        {
            "base": [
                ("classes.dex", {}, 100),
                ("assets/textures#tier_0/hero.ktx", {"device_tier": 0}, 20),
                ("assets/textures#tier_1/hero.ktx", {"device_tier": 1}, 40),
            ]
        },
        min_sdk=21,
        device_tiers=(0, 1),
    )


@pytest.fixture
def instant_bundle(make_bundle):
    """Bundle with two instant-eligible modules, one of them oversized."""
    return make_bundle(
        {
            "base": [
                ("classes.dex", {}, 100),
                ("lib/x86/libgame.so", {"abi": "x86"}, 50),
                ("lib/arm64-v8a/libgame.so", {"abi": "arm64-v8a"}, 60),
            ],
            "levels": [
                ("assets/levels.bin", {}, 5000),
            ],
        },
        min_sdk=21,
        instant_modules=("base", "levels"),
    )
