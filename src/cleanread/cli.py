"""Command-line interface for cleanread."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import click
import structlog
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from cleanread import __version__
from cleanread.config import Config, MonitoringConfig, find_config_file
from cleanread.config.config import OUTPUT_KINDS
from cleanread.container import DependencyContainer
from cleanread.errors import ExtractionError
from cleanread.observability import configure_logging
from cleanread.protocols import ExtractedContent, ExtractionOptions, ExtractionProgress
from cleanread.utils.urls import is_http_url

# Status output goes to stderr so extracted bodies can be piped
console = Console(stderr=True)
logger = structlog.get_logger(__name__)


def _load_config(config_path: Optional[Path]) -> Config:
    path = config_path or find_config_file()
    if path:
        return Config.from_yaml(path)
    return Config()


def _build_options(
    container: DependencyContainer,
    output_format: Optional[str],
    min_length: Optional[int],
    aggressive: bool,
    no_cache: bool,
    concurrency: Optional[int] = None,
    **extra: Any,
) -> ExtractionOptions:
    overrides: Dict[str, Any] = dict(extra)
    if output_format:
        overrides["output_kind"] = OUTPUT_KINDS[output_format]
    if min_length is not None:
        overrides["min_content_length"] = min_length
    if aggressive:
        overrides["aggressive_noise_removal"] = True
    if no_cache:
        overrides["cache_enabled"] = False
    if concurrency is not None:
        overrides["max_concurrency"] = concurrency
    return container.default_options(**overrides)


def _read_input(source: str) -> str:
    """A URL is returned as is; ``-`` reads stdin; anything else is a file path."""
    if is_http_url(source):
        return source
    if source == "-":
        return sys.stdin.read()
    path = Path(source)
    if not path.is_file():
        raise click.BadParameter(f"not a URL or a readable file: {source}", param_hint="INPUT")
    return path.read_text(encoding="utf-8", errors="replace")


def _print_result(result: ExtractedContent, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
        return
    meta = result.metadata
    console.print(
        Panel.fit(
            f"[bold]{result.title}[/bold]\n"
            f"Method: {meta.extraction_method.value}  Quality: {meta.source_quality.value}\n"
            f"Words: {meta.word_count}  Reading time: {meta.reading_time_minutes} min  "
            f"Images: {meta.image_count}  Links: {meta.link_count}  Code blocks: {meta.code_block_count}",
            title="Extracted",
            border_style="green",
        )
    )
    click.echo(result.body)


_common_options = [
    click.option(
        "--format",
        "output_format",
        type=click.Choice(sorted(OUTPUT_KINDS)),
        default=None,
        help="Output format (defaults to the configured one).",
    ),
    click.option("--min-length", type=click.IntRange(min=0), default=None, help="Minimum main-content length."),
    click.option("--aggressive", is_flag=True, help="Enable aggressive noise removal."),
    click.option("--no-cache", is_flag=True, help="Bypass the result cache."),
    click.option("--json", "as_json", is_flag=True, help="Print results as JSON."),
]


def common_options(func: Any) -> Any:
    for option in reversed(_common_options):
        func = option(func)
    return func


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", type=click.Path(exists=True, path_type=Path), help="Configuration file path")
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level",
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[Path], log_level: str) -> None:
    """cleanread - extract the readable content of web pages."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = _load_config(config)
    ctx.obj["config_path"] = config

    monitoring = ctx.obj["config"].monitoring
    configure_logging(MonitoringConfig(log_level=log_level, log_file=monitoring.log_file))


@cli.command()
@click.argument("source", metavar="INPUT")
@click.option("--base-url", default=None, help="Base URL for resolving links in file or stdin input.")
@common_options
@click.pass_context
def extract(
    ctx: click.Context,
    source: str,
    base_url: Optional[str],
    output_format: Optional[str],
    min_length: Optional[int],
    aggressive: bool,
    no_cache: bool,
    as_json: bool,
) -> None:
    """Extract one URL, HTML file, or stdin (-)."""
    payload = _read_input(source)

    async def run() -> ExtractedContent:
        container = DependencyContainer(config=ctx.obj["config"], config_path=ctx.obj["config_path"])
        async with container.lifecycle():
            options = _build_options(container, output_format, min_length, aggressive, no_cache)
            manager = await container.get_manager()
            if is_http_url(payload):
                return await manager.extract_from_url(payload, options)
            return await manager.extract_from_html(payload, url=base_url, options=options)

    try:
        result = asyncio.run(run())
    except ExtractionError as e:
        console.print(f"[red]Extraction failed ({e.code.value}): {e.message}[/red]")
        sys.exit(1)

    _print_result(result, as_json)


@cli.command()
@click.argument("url_file", metavar="FILE", type=click.File("r"))
@click.option("--concurrency", type=click.IntRange(min=1), default=None, help="Maximum concurrent extractions.")
@common_options
@click.pass_context
def batch(
    ctx: click.Context,
    url_file: Any,
    concurrency: Optional[int],
    output_format: Optional[str],
    min_length: Optional[int],
    aggressive: bool,
    no_cache: bool,
    as_json: bool,
) -> None:
    """Extract every URL listed in FILE (one per line, # for comments)."""
    urls: List[str] = [line.strip() for line in url_file if line.strip() and not line.strip().startswith("#")]
    if not urls:
        console.print("[red]Error: no URLs provided[/red]")
        sys.exit(1)

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TimeElapsedColumn(),
        console=console,
        disable=as_json,
    )
    task_id = progress.add_task("Extracting", total=100)

    def on_progress(update: ExtractionProgress) -> None:
        progress.update(task_id, completed=update.percent, description=update.message or "Extracting")

    async def run():
        container = DependencyContainer(config=ctx.obj["config"], config_path=ctx.obj["config_path"])
        async with container.lifecycle():
            options = _build_options(
                container, output_format, min_length, aggressive, no_cache, concurrency, on_progress=on_progress
            )
            manager = await container.get_manager()
            return await manager.extract_batch(urls, options)

    with progress:
        result = asyncio.run(run())

    if as_json:
        click.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    else:
        table = Table(title=f"Batch results ({result.total_elapsed_ms} ms)")
        table.add_column("Title", style="cyan")
        table.add_column("Method", style="magenta")
        table.add_column("Quality")
        table.add_column("Words", justify="right")
        for item in result.successful:
            table.add_row(
                item.title,
                item.metadata.extraction_method.value,
                item.metadata.source_quality.value,
                str(item.metadata.word_count),
            )
        console.print(table)

        if result.failed:
            failures = Table(title="Failed", style="red")
            failures.add_column("Input")
            failures.add_column("Error")
            for failure in result.failed:
                failures.add_row(failure.input, f"{failure.error.code.value}: {failure.error.message}")
            console.print(failures)

    if result.failed and not result.successful:
        sys.exit(1)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
