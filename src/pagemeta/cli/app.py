"""Command line interface for Pagemeta."""

from __future__ import annotations

import asyncio
import json
import logging
import pathlib
from typing import List, Optional

import typer
import yaml
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table, box

from pagemeta import get_version
from pagemeta.config import Config, load_config
from pagemeta.core import FragmentCache, FragmentRecord, build_fragment_cache
from pagemeta.errors import ExtractionFailure, ManifestMalformed
from pagemeta.hints import ManifestLoader, generate_hints, resolve_predicate
from pagemeta.logging import configure_from_settings

app = typer.Typer(
    name="pagemeta",
    help="Compose cached document metadata fragments for server-rendered pages.",
    no_args_is_help=True,
    add_completion=False,
)

config_app = typer.Typer(help="Configuration utilities.", no_args_is_help=True)
app.add_typer(config_app, name="config")


def _load_environment(env_file: Optional[pathlib.Path]) -> None:
    """Load environment variables from .env files."""

    if env_file is not None:
        load_dotenv(dotenv_path=env_file, override=True)
    else:
        load_dotenv(override=False)


def _manifest_loader(config: Config, manifest: Optional[pathlib.Path]) -> ManifestLoader:
    if manifest is None:
        return ManifestLoader.from_settings(config.manifest)
    settings = config.manifest.model_copy(update={"path": manifest, "url": None})
    return ManifestLoader.from_settings(settings)


def _version_callback(value: bool) -> None:
    """Print the package version and exit when requested."""

    if value:
        typer.echo(get_version())
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[pathlib.Path] = typer.Option(
        None,
        "--config",
        metavar="PATH",
        help="Path to YAML configuration file (used exclusively).",
    ),
    env_file: Optional[pathlib.Path] = typer.Option(
        None,
        "--env-file",
        metavar="PATH",
        help="Load environment variables from .env-style file before execution.",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        metavar="LEVEL",
        help="Override the configured log level (debug, info, warn, error).",
    ),
    log_path: Optional[pathlib.Path] = typer.Option(
        None,
        "--log-path",
        metavar="PATH",
        help="Override the base directory or file for log output.",
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show Pagemeta version and exit.",
    ),
) -> None:
    """CLI root; loads configuration, logging, and shared context."""

    ctx.ensure_object(dict)

    _load_environment(env_file)

    try:
        config_obj = load_config(config)
    except (FileNotFoundError, ValueError) as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc

    try:
        logger = configure_from_settings(config_obj.logging, log_path=log_path, level=log_level)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--log-level") from exc

    ctx.obj.update(
        {
            "config": config_obj,
            "config_path": config,
            "logger": logger,
        }
    )


@config_app.command("show")
def config_show(
    ctx: typer.Context,
    format: str = typer.Option(
        "yaml",
        "--format",
        help="Output format (yaml or json).",
    ),
    paths: bool = typer.Option(
        False,
        "--paths",
        help="Explain configuration precedence and selected inputs.",
    ),
) -> None:
    """Show the effective configuration for this invocation."""

    config: Config = ctx.obj["config"]
    config_path: Optional[pathlib.Path] = ctx.obj.get("config_path")

    normalized_format = format.strip().lower()
    if normalized_format not in {"yaml", "json"}:
        raise typer.BadParameter("Format must be 'yaml' or 'json'.", param_hint="--format")

    if paths:
        if config.loaded_from:
            typer.echo("Loaded configuration from:", err=True)
            for entry in config.loaded_from:
                typer.echo(f"- {entry}", err=True)
        if config_path is not None:
            typer.echo("Mode: replace-by-default", err=True)
        else:
            typer.echo("Config precedence (when --config is not provided):", err=True)
            typer.echo("1) ./config/default.yaml (or packaged default if missing)", err=True)
            typer.echo("2) ./config/local.yaml (optional)", err=True)

    data = config.model_dump()
    if normalized_format == "json":
        typer.echo(json.dumps(data, indent=2))
    else:
        typer.echo(yaml.safe_dump(data, sort_keys=False))


@app.command()
def render(
    ctx: typer.Context,
    urls: Optional[List[str]] = typer.Argument(
        None,
        metavar="URL...",
        help="Page identifiers to render (defaults to '/').",
    ),
    manifest: Optional[pathlib.Path] = typer.Option(
        None,
        "--manifest",
        metavar="PATH",
        help="Client manifest JSON file (overrides manifest.path/manifest.url).",
    ),
    no_hints: bool = typer.Option(
        False,
        "--no-hints",
        help="Disable preload/prefetch resource hints.",
    ),
    format: str = typer.Option(
        "text",
        "--format",
        help="Output format (text or json).",
    ),
) -> None:
    """Render document fragments for one or more pages."""

    config: Config = ctx.obj["config"]
    logger: logging.Logger = ctx.obj["logger"]

    normalized_format = format.strip().lower()
    if normalized_format not in {"text", "json"}:
        raise typer.BadParameter("Format must be 'text' or 'json'.", param_hint="--format")

    if no_hints:
        config.model.render.resource_hints = False

    try:
        cache = build_fragment_cache(
            config,
            manifest=_manifest_loader(config, manifest) if manifest is not None else None,
            logger=logger,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    targets = list(urls or ["/"])
    try:
        records = asyncio.run(_render_all(cache, targets))
    except ExtractionFailure as exc:
        typer.echo(f"Metadata extraction failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    logger.info(
        "Rendered %s page(s): hits=%s misses=%s coalesced=%s",
        len(targets),
        cache.stats.hits,
        cache.stats.misses,
        cache.stats.coalesced,
    )

    if normalized_format == "json":
        payload = {url: record.as_template_vars() for url, record in zip(targets, records)}
        typer.echo(json.dumps(payload, indent=2))
        return

    for url, record in zip(targets, records):
        typer.echo(f"# {url}")
        for name, value in record.as_template_vars().items():
            typer.echo(f"{name}: {value}")
        typer.echo("")


async def _render_all(cache: FragmentCache, urls: list[str]) -> list[FragmentRecord]:
    return list(await asyncio.gather(*(cache.render(url) for url in urls)))


@app.command()
def hints(
    ctx: typer.Context,
    manifest: Optional[pathlib.Path] = typer.Option(
        None,
        "--manifest",
        metavar="PATH",
        help="Client manifest JSON file (overrides manifest.path/manifest.url).",
    ),
) -> None:
    """Show the preload files and hint tags derived from the client manifest."""

    config: Config = ctx.obj["config"]
    loader = _manifest_loader(config, manifest)
    if not loader.configured:
        raise typer.BadParameter(
            "No client manifest configured; pass --manifest or set manifest.path/url.",
            param_hint="--manifest",
        )

    try:
        manifest_data = asyncio.run(loader.load())
        resource_hints = generate_hints(
            manifest_data,
            resolve_predicate(config.render.should_preload),
            resolve_predicate(config.render.should_prefetch),
            enabled=config.render.resource_hints,
        )
    except (ManifestMalformed, ValueError) as exc:
        typer.echo(f"Unable to build resource hints: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    table = Table(title="Preload files", box=box.SIMPLE_HEAVY)
    table.add_column("#", justify="right")
    table.add_column("File")
    table.add_column("Type")
    table.add_column("Ext")
    for index, descriptor in enumerate(resource_hints.preload_files(), start=1):
        table.add_row(str(index), descriptor.file, descriptor.asset_type, descriptor.extension)

    console = Console(soft_wrap=True)
    console.print(table)
    console.print(
        f"preload={len(resource_hints.preload_tags)} prefetch={len(resource_hints.prefetch_tags)}"
    )
    typer.echo(resource_hints.text)
