"""
bundlesplit CLI.

Command-line interface for building variant trees and resolving them against
device specifications.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .core.config import get_config
from .core.exceptions import BundleSplitError
from .core.logging import setup_logging
from .models.bundle import AppBundle
from .models.device import DeviceSpec
from .models.result import BuildApksResult, Variant, VariantKind
from .services.build import BuildApksInput, BuildApksService
from .services.classification import apk_paths, variants_by_kind
from .services.matching import DeviceMatcher
from .storage import LocalArtifactStore

app = typer.Typer(
    name="bundlesplit",
    help="Split app bundles into device-targeted APK variants",
    add_completion=False,
)

console = Console()


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        from . import __version__

        console.print(f"bundlesplit v{__version__}")
        raise typer.Exit()


@app.callback()
def callback(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """bundlesplit: app bundle to installable APK variants."""


def _targeting_label(variant: Variant) -> str:
    targeting = variant.targeting
    parts = [f"sdk>={targeting.min_sdk}"]
    if targeting.abi is not None:
        parts.append(f"abi={targeting.abi.value}")
    if targeting.device_tier is not None:
        parts.append(f"tier={targeting.device_tier.value}")
    return " ".join(parts)


def _variant_table(variants: list[Variant], title: str) -> Table:
    table = Table(title=title)
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Kind")
    table.add_column("Targeting")
    table.add_column("Modules")
    table.add_column("APKs", justify="right")
    for variant in variants:
        table.add_row(
            str(variant.variant_number),
            variant.kind.value,
            _targeting_label(variant),
            ", ".join(s.module_name for s in variant.apk_sets),
            str(len(apk_paths(variant))),
        )
    return table


def _load_toc(toc_dir: Path) -> BuildApksResult:
    store = LocalArtifactStore(toc_dir)
    try:
        return asyncio.run(store.load_model(get_config().storage.toc_name, BuildApksResult))
    except FileNotFoundError:
        console.print(f"[red]No build result found in {toc_dir}[/red]")
        raise typer.Exit(1) from None
    except PydanticValidationError as e:
        console.print(f"[red]Unreadable build result in {toc_dir}:[/red] {e.error_count()} validation error(s)")
        raise typer.Exit(1) from None


@app.command()
def build(
    bundle_json: Path = typer.Argument(
        ...,
        help="Bundle descriptor (JSON) produced by the bundle reader",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Directory for the build result (defaults to the configured storage path)",
    ),
    no_standalone: bool = typer.Option(False, "--no-standalone", help="Skip standalone variants"),
    no_instant: bool = typer.Option(False, "--no-instant", help="Skip the instant variant"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Render log lines as JSON"),
) -> None:
    """Build the variant tree of a bundle and store its table of contents."""
    config = get_config()
    if verbose:
        config = config.model_copy(update={"log_level": "DEBUG"})
    setup_logging(config, json_output=json_logs or None)

    build_config = config.build.model_copy(
        update={
            "generate_standalone": config.build.generate_standalone and not no_standalone,
            "generate_instant": config.build.generate_instant and not no_instant,
        }
    )
    output_dir = output or config.storage.base_path

    try:
        bundle = AppBundle.model_validate_json(bundle_json.read_text(encoding="utf-8"))
    except PydanticValidationError as e:
        console.print(f"[red]Invalid bundle descriptor:[/red] {e}")
        raise typer.Exit(1) from None

    console.print(Panel.fit(
        f"[bold blue]bundlesplit[/bold blue]\n{bundle.metadata.package_name or bundle_json.name}",
        border_style="blue",
    ))

    service = BuildApksService(
        build_config,
        storage=LocalArtifactStore(output_dir),
        toc_key=config.storage.toc_name,
    )
    result = asyncio.run(service.build(BuildApksInput(bundle=bundle)))

    if not result.success:
        console.print("\n[bold red]✗ Build failed![/bold red]")
        console.print(f"Error: {result.error}")
        if result.metadata.get("module"):
            console.print(f"Module: {result.metadata['module']}")
        raise typer.Exit(1)

    console.print(_variant_table(list(result.data.result.variants), "Variants"))
    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")
    console.print(f"\n[bold green]✓ Built in {result.duration_ms:.0f} ms[/bold green]")
    console.print(f"[bold]Table of contents:[/bold] {output_dir / result.data.toc_key}")


@app.command()
def select(
    toc_dir: Path = typer.Argument(
        ...,
        help="Directory holding a build result",
        exists=True,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
    device_spec: Path = typer.Option(
        ...,
        "--device-spec",
        "-d",
        help="Device specification JSON",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    modules: Optional[str] = typer.Option(
        None,
        "--modules",
        "-m",
        help="Comma-separated modules to resolve in addition to the base",
    ),
    instant: bool = typer.Option(False, "--instant", help="Resolve against the instant variant"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Render log lines as JSON"),
) -> None:
    """Print the APK paths a device should install."""
    setup_logging(get_config(), json_output=json_logs or None)
    toc = _load_toc(toc_dir)

    try:
        device = DeviceSpec.model_validate(json.loads(device_spec.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, PydanticValidationError) as e:
        console.print(f"[red]Invalid device spec:[/red] {e}")
        raise typer.Exit(1) from None

    requested = [m.strip() for m in modules.split(",") if m.strip()] if modules else None
    try:
        matched = DeviceMatcher(toc).get_matching_apks(device, modules=requested, instant=instant)
    except BundleSplitError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from None

    console.print(
        f"[dim]Variant {matched.variant.variant_number} ({matched.variant.kind.value}, "
        f"{_targeting_label(matched.variant)})[/dim]"
    )
    for path in matched.paths:
        console.print(path)


@app.command()
def variants(
    toc_dir: Path = typer.Argument(
        ...,
        help="Directory holding a build result",
        exists=True,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
    family: Optional[VariantKind] = typer.Option(
        None,
        "--family",
        "-f",
        case_sensitive=False,
        help="Only list variants of this family",
    ),
    json_logs: bool = typer.Option(False, "--json-logs", help="Render log lines as JSON"),
) -> None:
    """List the variants of a build result."""
    setup_logging(get_config(), json_output=json_logs or None)
    toc = _load_toc(toc_dir)
    grouped = variants_by_kind(toc)
    kinds = [family] if family else list(VariantKind)
    for kind in kinds:
        if grouped[kind]:
            console.print(_variant_table(grouped[kind], f"{kind.value.capitalize()} variants"))
        else:
            console.print(f"[dim]No {kind.value} variants[/dim]")


@app.command()
def config() -> None:
    """Show the effective configuration."""
    cfg = get_config()

    table = Table(title="Current Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Log Level", cfg.log_level)
    table.add_row("Standalone SDK Threshold", str(cfg.build.standalone_sdk_threshold))
    table.add_row("Instant Size Ceiling", f"{cfg.build.instant_size_ceiling_bytes:,} bytes")
    table.add_row("Generate Standalone", str(cfg.build.generate_standalone))
    table.add_row("Generate Instant", str(cfg.build.generate_instant))
    table.add_row("Parallel Modules", str(cfg.build.parallel_modules))
    table.add_row("Storage Path", str(cfg.storage.base_path))
    table.add_row("TOC Name", cfg.storage.toc_name)

    console.print(table)

    console.print("\n[dim]Configure via environment variables:[/dim]")
    console.print("  BUNDLESPLIT_LOG_LEVEL, BUNDLESPLIT_STANDALONE_SDK, BUNDLESPLIT_INSTANT_CEILING")
    console.print("  BUNDLESPLIT_OUTPUT_PATH, BUNDLESPLIT_PARALLEL")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
