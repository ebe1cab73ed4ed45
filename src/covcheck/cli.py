"""covcheck CLI — top-level command group."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click
import yaml
from rich.logging import RichHandler

from covcheck import __version__
from covcheck.adapters.coverage.llvm_cov import LlvmCovAdapter, parse_report_text
from covcheck.agents.analyzers.coverage import evaluate_report
from covcheck.agents.reporters.terminal import (
    EXIT_CONFIG_ERROR,
    EXIT_UNEVALUATED,
    err_console,
    exit_status,
    reporter,
    verdict_to_dict,
)
from covcheck.config import load_config, resolve_thresholds, validate_config
from covcheck.errors import ConfigurationError, ParseError, ToolError

if TYPE_CHECKING:
    from collections.abc import Callable

    from covcheck.config import CovcheckConfig
    from covcheck.models.coverage import Thresholds

logger = logging.getLogger(__name__)

_PACKAGE_LOGGER = "covcheck"


def _configure_logging(*, verbose: bool) -> None:
    """Route covcheck log records to stderr through rich."""
    package_logger = logging.getLogger(_PACKAGE_LOGGER)
    for handler in list(package_logger.handlers):
        if isinstance(handler, RichHandler):
            package_logger.removeHandler(handler)
    package_logger.addHandler(RichHandler(console=err_console, show_path=False))
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


_EVALUATION_OPTIONS = (
    click.option(
        "--min-line-coverage",
        type=float,
        default=None,
        help="Minimum line coverage ratio, 0.0 to 1.0 (default: 1.0).",
    ),
    click.option(
        "--min-branch-coverage",
        type=float,
        default=None,
        help="Minimum branch coverage ratio, 0.0 to 1.0 (default: 1.0).",
    ),
    click.option(
        "--table",
        "as_table",
        is_flag=True,
        help="Render the parsed coverage as a table instead of echoing the tool's output.",
    ),
    click.option(
        "--json-output",
        "as_json",
        is_flag=True,
        help="Output the verdict as JSON.",
    ),
)


def _evaluation_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the options shared by every command that produces a verdict."""
    for option in reversed(_EVALUATION_OPTIONS):
        func = option(func)
    return func


def _prepare(path: str, options: dict[str, Any]) -> tuple[CovcheckConfig, Thresholds]:
    """Load config and thresholds, exiting with the configuration status on error."""
    ctx = click.get_current_context()
    try:
        config = load_config(
            path,
            min_line_coverage=options.get("min_line_coverage"),
            min_branch_coverage=options.get("min_branch_coverage"),
        )
    except ConfigurationError as e:
        reporter.print_error(f"Configuration error: {e}")
        ctx.exit(EXIT_CONFIG_ERROR)

    errors = validate_config(config)
    if errors:
        for error in errors:
            reporter.print_error(f"Configuration error: {error}")
        ctx.exit(EXIT_CONFIG_ERROR)

    try:
        thresholds = resolve_thresholds(
            config,
            min_line_coverage=options.get("min_line_coverage"),
            min_branch_coverage=options.get("min_branch_coverage"),
        )
    except ConfigurationError as e:
        reporter.print_error(f"Configuration error: {e}")
        ctx.exit(EXIT_CONFIG_ERROR)

    logger.debug(
        "Thresholds: line=%s branch=%s",
        thresholds.min_line_coverage,
        thresholds.min_branch_coverage,
    )
    return config, thresholds


def _evaluate_text(
    text: str,
    thresholds: Thresholds,
    *,
    stderr: str = "",
    as_table: bool = False,
    as_json: bool = False,
) -> int:
    """Parse, evaluate and render one report; return the exit status."""
    try:
        report = parse_report_text(text)
    except ParseError as e:
        if not as_json:
            reporter.print_raw_report(text, stderr)
        reporter.print_error(f"Could not parse coverage report: {e}")
        return EXIT_UNEVALUATED

    verdict = evaluate_report(report, thresholds)

    if as_json:
        click.echo(json.dumps(verdict_to_dict(verdict, report), indent=2))
    else:
        if as_table:
            reporter.print_coverage_table(report, verdict)
        else:
            reporter.print_raw_report(text, stderr)
        reporter.print_verdict(verdict)

    return exit_status(verdict)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging on stderr.")
@click.version_option(version=__version__, prog_name="covcheck")
def cli(*, verbose: bool) -> None:
    """covcheck — fail the build when line or branch coverage is too low."""
    _configure_logging(verbose=verbose)


@cli.command()
@click.argument(
    "project_dir",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
)
@_evaluation_options
def run(project_dir: str, **options: Any) -> None:
    """Run instrumented tests in PROJECT_DIR and check the coverage.

    PROJECT_DIR is the Cargo project to test (default: current directory).

    Exit status: 0 when both metrics meet their thresholds, 1 when at least
    one falls short, 2 when coverage could not be evaluated, 3 on a
    configuration error.
    """
    ctx = click.get_current_context()
    as_json: bool = options["as_json"]
    config, thresholds = _prepare(project_dir, options)

    project_path = Path(project_dir)
    adapter = LlvmCovAdapter(
        cargo=config.tools.cargo,
        profdata_tool=config.tools.profdata,
        cov_tool=config.tools.cov,
        ignore_filename_regex=config.report.ignore_filename_regex,
        use_color=config.report.use_color and not as_json,
    )
    if not adapter.detect(project_path):
        reporter.print_error(f"No Cargo.toml found in {project_path}")
        ctx.exit(EXIT_UNEVALUATED)

    if not as_json:
        reporter.print_info("Running tests with coverage instrumentation...")

    try:
        coverage_run = asyncio.run(
            adapter.run_coverage(project_path, timeout=config.report.timeout)
        )
    except ToolError as e:
        reporter.print_error(str(e))
        ctx.exit(EXIT_UNEVALUATED)

    ctx.exit(
        _evaluate_text(
            coverage_run.report_text,
            thresholds,
            stderr=coverage_run.stderr,
            as_table=options["as_table"],
            as_json=as_json,
        )
    )


@cli.command()
@click.argument(
    "report_file", type=click.File("r", encoding="utf-8", errors="replace"), default="-"
)
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root holding .covcheck.yml.",
)
@_evaluation_options
def check(report_file: Any, path: str, **options: Any) -> None:
    """Check an already captured ``llvm-cov report`` table.

    REPORT_FILE defaults to standard input.
    """
    ctx = click.get_current_context()
    _, thresholds = _prepare(path, options)

    text = report_file.read()
    ctx.exit(
        _evaluate_text(
            text,
            thresholds,
            as_table=options["as_table"],
            as_json=options["as_json"],
        )
    )


@cli.group("config")
def config_group() -> None:
    """Inspect `.covcheck.yml` configuration."""


@config_group.command("show")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
def config_show(path: str) -> None:
    """Display the resolved configuration."""
    try:
        config = load_config(path)
    except ConfigurationError as e:
        reporter.print_error(f"Failed to load configuration: {e}")
        click.get_current_context().exit(EXIT_CONFIG_ERROR)

    config_dict = asdict(config)
    config_dict.pop("raw", None)
    click.echo(yaml.safe_dump(config_dict, sort_keys=False, default_flow_style=False))


@config_group.command("validate")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
def config_validate(path: str) -> None:
    """Validate `.covcheck.yml` settings."""
    ctx = click.get_current_context()
    try:
        config = load_config(path)
    except ConfigurationError as e:
        reporter.print_error(f"Failed to load configuration: {e}")
        ctx.exit(EXIT_CONFIG_ERROR)

    errors = validate_config(config)
    if not errors:
        reporter.print_success("Configuration is valid!")
        return

    reporter.print_error(f"Found {len(errors)} configuration error(s):")
    for idx, error in enumerate(errors, start=1):
        reporter.print_error(f"  {idx}. {error}")
    ctx.exit(EXIT_CONFIG_ERROR)
