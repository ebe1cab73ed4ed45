"""Configuration parsing from ``.covcheck.yml``."""

from __future__ import annotations

import logging
import math
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from covcheck.adapters.coverage.llvm_cov import (
    DEFAULT_CARGO,
    DEFAULT_COV_TOOL,
    DEFAULT_IGNORE_FILENAME_REGEX,
    DEFAULT_PROFDATA_TOOL,
)
from covcheck.errors import ConfigurationError
from covcheck.models.coverage import (
    DEFAULT_MIN_BRANCH_COVERAGE,
    DEFAULT_MIN_LINE_COVERAGE,
    Thresholds,
)

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".covcheck.yml"

ENV_MIN_LINE_COVERAGE = "COVCHECK_MIN_LINE_COVERAGE"
ENV_MIN_BRANCH_COVERAGE = "COVCHECK_MIN_BRANCH_COVERAGE"

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")

_DEFAULT_TIMEOUT = 600.0


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _resolve_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively resolve environment variables in a dictionary."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            result[key] = _resolve_env_vars(value)
        elif isinstance(value, dict):
            result[key] = _resolve_dict(value)
        elif isinstance(value, list):
            result[key] = [
                _resolve_env_vars(item) if isinstance(item, str) else item for item in value
            ]
        else:
            result[key] = value
    return result


@dataclass
class ThresholdsConfig:
    """Minimum coverage ratios."""

    min_line_coverage: float = DEFAULT_MIN_LINE_COVERAGE
    """Minimum line coverage ratio, 0.0 to 1.0 (default: 1.0)."""

    min_branch_coverage: float = DEFAULT_MIN_BRANCH_COVERAGE
    """Minimum branch coverage ratio, 0.0 to 1.0 (default: 1.0)."""


@dataclass
class ToolsConfig:
    """Executables used to collect coverage."""

    cargo: str = DEFAULT_CARGO
    """Cargo executable."""

    profdata: str = DEFAULT_PROFDATA_TOOL
    """Raw profile merger (``llvm-profdata`` compatible)."""

    cov: str = DEFAULT_COV_TOOL
    """Report generator (``llvm-cov`` compatible)."""


@dataclass
class ReportConfig:
    """Options passed to the report generator."""

    ignore_filename_regex: str = DEFAULT_IGNORE_FILENAME_REGEX
    """Source files matching this regex are left out of the report."""

    use_color: bool = True
    """Ask the report generator for ANSI-coloured output."""

    timeout: float = _DEFAULT_TIMEOUT
    """Timeout in seconds for each external tool invocation."""


@dataclass
class CovcheckConfig:
    """Top-level covcheck configuration."""

    root: str
    thresholds: ThresholdsConfig = field(default_factory=ThresholdsConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    report: ReportConfig = field(default_factory=ReportConfig)
    raw: dict[str, Any] = field(default_factory=dict)


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    section = raw.get(name, {})
    if not isinstance(section, dict):
        return {}
    return section


def _float_setting(value: Any, key: str) -> float:
    if isinstance(value, bool):
        raise ConfigurationError(f"{key} must be a number (got: {value!r})", value=value)
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{key} must be a number (got: {value!r})", value=value) from e


def _bool_setting(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes"}
    return bool(value)


def _threshold_setting(
    thresholds_raw: dict[str, Any],
    key: str,
    env_name: str,
    default: float,
    override: float | None,
) -> float:
    if key in thresholds_raw:
        return _float_setting(thresholds_raw[key], f"thresholds.{key}")
    if override is not None:
        # Set on the command line; the environment fallback is not read.
        return default
    env_value = os.environ.get(env_name)
    if env_value is None:
        return default
    return _float_setting(env_value, env_name)


def _parse_thresholds_config(
    raw: dict[str, Any],
    *,
    min_line_coverage: float | None = None,
    min_branch_coverage: float | None = None,
) -> ThresholdsConfig:
    thresholds_raw = _section(raw, "thresholds")
    return ThresholdsConfig(
        min_line_coverage=_threshold_setting(
            thresholds_raw,
            "min_line_coverage",
            ENV_MIN_LINE_COVERAGE,
            DEFAULT_MIN_LINE_COVERAGE,
            min_line_coverage,
        ),
        min_branch_coverage=_threshold_setting(
            thresholds_raw,
            "min_branch_coverage",
            ENV_MIN_BRANCH_COVERAGE,
            DEFAULT_MIN_BRANCH_COVERAGE,
            min_branch_coverage,
        ),
    )


def load_config(
    root: str | Path,
    *,
    min_line_coverage: float | None = None,
    min_branch_coverage: float | None = None,
) -> CovcheckConfig:
    """Load and parse ``.covcheck.yml`` from *root*.

    Falls back to environment variables and defaults when the file is
    missing or incomplete.  A threshold passed as *min_line_coverage* or
    *min_branch_coverage* (a command-line value) takes precedence over the
    environment, so the matching ``COVCHECK_MIN_*`` variable is not read.
    The returned config holds file, environment and default values only;
    apply the command-line values with :func:`resolve_thresholds`.

    Raises:
        ConfigurationError: If the file is not valid YAML or a numeric
            setting is not a number.
    """
    root_path = Path(root).resolve()
    config_file = root_path / CONFIG_FILE_NAME

    raw: dict[str, Any] = {}
    if config_file.is_file():
        try:
            parsed = yaml.safe_load(config_file.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigurationError(f"{config_file} is not valid YAML: {e}") from e
        if isinstance(parsed, dict):
            raw = _resolve_dict(parsed)
        elif parsed is not None:
            logger.warning("Ignoring %s: top level is not a mapping", config_file)

    tools_raw = _section(raw, "tools")
    tools = ToolsConfig(
        cargo=str(tools_raw.get("cargo", DEFAULT_CARGO)),
        profdata=str(tools_raw.get("profdata", DEFAULT_PROFDATA_TOOL)),
        cov=str(tools_raw.get("cov", DEFAULT_COV_TOOL)),
    )

    report_raw = _section(raw, "report")
    report = ReportConfig(
        ignore_filename_regex=str(
            report_raw.get("ignore_filename_regex", DEFAULT_IGNORE_FILENAME_REGEX)
        ),
        use_color=_bool_setting(report_raw.get("use_color", True)),
        timeout=_float_setting(report_raw.get("timeout", _DEFAULT_TIMEOUT), "report.timeout"),
    )

    return CovcheckConfig(
        root=str(root_path),
        thresholds=_parse_thresholds_config(
            raw,
            min_line_coverage=min_line_coverage,
            min_branch_coverage=min_branch_coverage,
        ),
        tools=tools,
        report=report,
        raw=raw,
    )


def _validate_ratio(value: float, key: str) -> list[str]:
    if math.isnan(value) or not 0.0 <= value <= 1.0:
        return [f"{key} must be between 0.0 and 1.0 (got: {value})"]
    return []


def validate_config(config: CovcheckConfig) -> list[str]:
    """Validate the configuration and return a list of error messages.

    Returns an empty list if the configuration is valid.
    """
    errors: list[str] = []

    errors.extend(
        _validate_ratio(config.thresholds.min_line_coverage, "thresholds.min_line_coverage")
    )
    errors.extend(
        _validate_ratio(config.thresholds.min_branch_coverage, "thresholds.min_branch_coverage")
    )

    for key in ("cargo", "profdata", "cov"):
        if not getattr(config.tools, key).strip():
            errors.append(f"tools.{key} must not be empty")

    if config.report.ignore_filename_regex:
        try:
            re.compile(config.report.ignore_filename_regex)
        except re.error as e:
            errors.append(f"report.ignore_filename_regex is not a valid regex ({e})")

    if not config.report.timeout > 0:
        errors.append(f"report.timeout must be positive (got: {config.report.timeout})")

    return errors


def resolve_thresholds(
    config: CovcheckConfig,
    *,
    min_line_coverage: float | None = None,
    min_branch_coverage: float | None = None,
) -> Thresholds:
    """Merge command-line overrides with *config* into validated Thresholds.

    Raises:
        ConfigurationError: If either resulting ratio is outside [0.0, 1.0].
    """
    line = (
        config.thresholds.min_line_coverage if min_line_coverage is None else min_line_coverage
    )
    branch = (
        config.thresholds.min_branch_coverage
        if min_branch_coverage is None
        else min_branch_coverage
    )
    return Thresholds(min_line_coverage=line, min_branch_coverage=branch)
