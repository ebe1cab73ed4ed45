"""llvm-cov coverage adapter for Rust projects.

Builds and runs ``cargo test`` with ``-C instrument-coverage``, merges the
raw profiles, and parses the column-aligned table printed by
``llvm-cov report`` into the unified CoverageReport.
"""

from __future__ import annotations

import json
import logging
import re
import shutil
from dataclasses import dataclass
from pathlib import Path

from covcheck.adapters.coverage.base import CoverageAdapter, CoverageRun
from covcheck.errors import ParseError, ToolError
from covcheck.models.coverage import (
    TOTALS_ROW_NAME,
    CoverageRatio,
    CoverageReport,
    CoverageUnit,
)
from covcheck.utils.subprocess_runner import SubprocessError, SubprocessResult, run_subprocess

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────

_CARGO_TOML = "Cargo.toml"
_DEFAULT_TIMEOUT = 600.0

PROFDATA_DIR = ".profdata"
PROFDATA_FILE = "unittest.profdata"
_PROFRAW_GLOB = "default*.profraw"
_INSTRUMENT_ENV = {"RUSTFLAGS": "-C instrument-coverage"}

DEFAULT_CARGO = "cargo"
DEFAULT_PROFDATA_TOOL = "rust-profdata"
DEFAULT_COV_TOOL = "rust-cov"
DEFAULT_IGNORE_FILENAME_REGEX = "/.cargo/registry"

# Report table layout
_ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")
_PERCENT_RE = re.compile(r"^\d+(?:\.\d+)?%$")
_NAME_HEADER = "Filename"
_MISSED_PREFIX = "Missed"
_GROUPS = ("Regions", "Functions", "Instantiations", "Lines", "Branches")
# llvm-cov abbreviates some "Missed" column titles
_MISSED_ALIASES = {"Insts.": "Instantiations"}
_PERCENT_HEADERS = ("Cover", "Executed")
_REQUIRED_GROUPS = ("Lines", "Branches")
_NO_PERCENT = "-"

_COUNT = "count"
_MISSED = "missed"
_PERCENT = "percent"


@dataclass(frozen=True)
class _Column:
    group: str
    kind: str


# ── Report parsing ───────────────────────────────────────────────


def strip_ansi(text: str) -> str:
    """Remove ANSI colour escape sequences from *text*."""
    return _ANSI_RE.sub("", text)


def _is_separator(line: str) -> bool:
    return bool(line) and set(line) <= {"-", "="}


def _is_caption(line: str) -> bool:
    # e.g. "Files which contain no functions:"
    return line.endswith(":") and not any(ch.isdigit() for ch in line)


def _parse_header(tokens: list[str], line_number: int, line: str) -> list[_Column]:
    columns: list[_Column] = []
    current_group: str | None = None
    idx = 1
    while idx < len(tokens):
        token = tokens[idx]
        if token == _MISSED_PREFIX:
            label = tokens[idx + 1] if idx + 1 < len(tokens) else ""
            group = _MISSED_ALIASES.get(label, label)
            if group not in _GROUPS:
                raise ParseError(
                    f"unknown header column '{_MISSED_PREFIX} {label}'",
                    line_number=line_number,
                    line=line,
                )
            columns.append(_Column(group, _MISSED))
            idx += 2
            continue
        if token in _GROUPS:
            columns.append(_Column(token, _COUNT))
            current_group = token
        elif token in _PERCENT_HEADERS and current_group is not None:
            columns.append(_Column(current_group, _PERCENT))
        else:
            raise ParseError(
                f"unknown header column '{token}'", line_number=line_number, line=line
            )
        idx += 1

    if len(set(columns)) != len(columns):
        raise ParseError("duplicate header column", line_number=line_number, line=line)

    present = set(columns)
    for group in _REQUIRED_GROUPS:
        for kind in (_COUNT, _MISSED):
            if _Column(group, kind) not in present:
                label = group if kind == _COUNT else f"{_MISSED_PREFIX} {group}"
                raise ParseError(
                    f"header is missing the '{label}' column", line_number=line_number, line=line
                )
    return columns


def _parse_count(cell: str, column: _Column, line_number: int, line: str) -> int:
    if not cell.isdigit():
        raise ParseError(
            f"expected an integer in the {column.group} {column.kind} column, got '{cell}'",
            line_number=line_number,
            line=line,
        )
    return int(cell)


def _parse_row(
    text: str, columns: list[_Column], line_number: int, line: str
) -> CoverageUnit:
    parts = text.rsplit(maxsplit=len(columns))
    if len(parts) != len(columns) + 1:
        raise ParseError(
            f"expected a name and {len(columns)} fields, got {len(parts)} tokens",
            line_number=line_number,
            line=line,
        )
    name = parts[0].rstrip(":").strip()
    if not name:
        raise ParseError("row has no unit name", line_number=line_number, line=line)

    counts: dict[str, int] = {}
    missed: dict[str, int] = {}
    for column, cell in zip(columns, parts[1:], strict=True):
        if column.kind == _PERCENT:
            if cell != _NO_PERCENT and not _PERCENT_RE.match(cell):
                raise ParseError(
                    f"expected a percentage in the {column.group} cover column, got '{cell}'",
                    line_number=line_number,
                    line=line,
                )
        elif column.kind == _COUNT:
            counts[column.group] = _parse_count(cell, column, line_number, line)
        else:
            missed[column.group] = _parse_count(cell, column, line_number, line)

    ratios: dict[str, CoverageRatio] = {}
    for group, total in counts.items():
        group_missed = missed.get(group, 0)
        if group_missed > total:
            raise ParseError(
                f"missed {group.lower()} ({group_missed}) exceed the total ({total})",
                line_number=line_number,
                line=line,
            )
        ratios[group] = CoverageRatio(covered=total - group_missed, total=total)

    return CoverageUnit(
        name=name,
        lines=ratios["Lines"],
        branches=ratios["Branches"],
        functions=ratios.get("Functions"),
        regions=ratios.get("Regions"),
        instantiations=ratios.get("Instantiations"),
    )


def _check_totals(
    units: list[CoverageUnit], aggregate: CoverageUnit, line_number: int, line: str
) -> None:
    for unit in units:
        for label, unit_ratio, total_ratio in (
            ("lines", unit.lines, aggregate.lines),
            ("branches", unit.branches, aggregate.branches),
        ):
            if unit_ratio.total > total_ratio.total or unit_ratio.covered > total_ratio.covered:
                raise ParseError(
                    f"totals row has fewer {label} than '{unit.name}' "
                    f"({total_ratio.covered}/{total_ratio.total} < "
                    f"{unit_ratio.covered}/{unit_ratio.total})",
                    line_number=line_number,
                    line=line,
                )


def parse_report_text(text: str) -> CoverageReport:
    """Parse the table printed by ``llvm-cov report`` into a CoverageReport.

    Columns are located by header name, so the table may include or omit
    the region, function and instantiation summaries.  Text before the
    header and after the ``TOTAL`` row is ignored.

    Raises:
        ParseError: If the header or ``TOTAL`` row is missing, any row
            between them cannot be parsed, or a unit row counts more lines
            or branches than the ``TOTAL`` row.
    """
    columns: list[_Column] | None = None
    units: list[CoverageUnit] = []
    aggregate: CoverageUnit | None = None
    aggregate_line_number = 0
    aggregate_line = ""

    for line_number, raw_line in enumerate(text.splitlines(), start=1):
        line = strip_ansi(raw_line).strip()
        if aggregate is not None:
            break
        if columns is None:
            tokens = line.split()
            if tokens and tokens[0] == _NAME_HEADER:
                columns = _parse_header(tokens, line_number, raw_line)
            elif line:
                logger.debug("Skipping preamble line %d: %s", line_number, line)
            continue
        if not line or _is_separator(line) or _is_caption(line):
            continue

        unit = _parse_row(line, columns, line_number, raw_line)
        if unit.name == TOTALS_ROW_NAME:
            aggregate = unit
            aggregate_line_number, aggregate_line = line_number, raw_line
        else:
            units.append(unit)

    if columns is None:
        raise ParseError(f"missing header line (no line starts with '{_NAME_HEADER}')")
    if aggregate is None:
        raise ParseError(f"missing totals row ('{TOTALS_ROW_NAME}')")
    _check_totals(units, aggregate, aggregate_line_number, aggregate_line)

    logger.debug("Parsed %d unit rows plus totals", len(units))
    return CoverageReport(units=tuple(units), aggregate=aggregate)


# ── Adapter ──────────────────────────────────────────────────────


class LlvmCovAdapter(CoverageAdapter):
    """Rust coverage adapter using source-based coverage and ``llvm-cov report``."""

    def __init__(
        self,
        *,
        cargo: str = DEFAULT_CARGO,
        profdata_tool: str = DEFAULT_PROFDATA_TOOL,
        cov_tool: str = DEFAULT_COV_TOOL,
        ignore_filename_regex: str = DEFAULT_IGNORE_FILENAME_REGEX,
        use_color: bool = True,
    ) -> None:
        """Initialize with the executables and report options to use."""
        self.cargo = cargo
        self.profdata_tool = profdata_tool
        self.cov_tool = cov_tool
        self.ignore_filename_regex = ignore_filename_regex
        self.use_color = use_color

    @property
    def name(self) -> str:
        return "llvm-cov"

    @property
    def language(self) -> str:
        return "rust"

    def detect(self, project_path: Path) -> bool:
        """Return True when Cargo.toml exists (Rust project)."""
        return (project_path / _CARGO_TOML).is_file()

    def parse_report(self, text: str) -> CoverageReport:
        return parse_report_text(text)

    async def run_coverage(
        self, project_path: Path, *, timeout: float = _DEFAULT_TIMEOUT
    ) -> CoverageRun:
        """Run instrumented tests, merge profiles and capture ``llvm-cov report``."""
        await self._run_tests(project_path, timeout)
        profdata = await self._merge_profiles(project_path, timeout)
        objects = await self._find_test_objects(project_path, timeout)
        result = await self._run(
            self.report_command(profdata.relative_to(project_path), objects),
            "llvm-cov report failed",
            project_path,
            timeout,
        )
        return CoverageRun(report_text=result.stdout, stderr=result.stderr)

    def report_command(self, profdata: Path, objects: list[str]) -> list[str]:
        """Build the ``llvm-cov report`` command line."""
        cmd = [self.cov_tool, "report"]
        if self.use_color:
            cmd.append("--use-color")
        cmd.append("--show-region-summary=false")
        if self.ignore_filename_regex:
            cmd.append(f"--ignore-filename-regex={self.ignore_filename_regex}")
        cmd.extend(["-instr-profile", str(profdata)])
        for obj in objects:
            cmd.extend(["--object", obj])
        return cmd

    async def _run(
        self,
        command: list[str],
        failure: str,
        project_path: Path,
        timeout: float,
        env: dict[str, str] | None = None,
    ) -> SubprocessResult:
        try:
            return await run_subprocess(
                command, cwd=project_path, timeout=timeout, env=env, check=True
            )
        except SubprocessError as e:
            raise ToolError(
                f"{failure}: {e}", stdout=e.result.stdout, stderr=e.result.stderr
            ) from e

    async def _run_tests(self, project_path: Path, timeout: float) -> None:
        await self._run(
            [self.cargo, "test"], "cargo test failed", project_path, timeout, _INSTRUMENT_ENV
        )

    async def _merge_profiles(self, project_path: Path, timeout: float) -> Path:
        profdata_dir = project_path / PROFDATA_DIR
        if profdata_dir.exists():
            shutil.rmtree(profdata_dir)
        profdata_dir.mkdir()

        profraws = sorted(project_path.glob(_PROFRAW_GLOB))
        if not profraws:
            raise ToolError(f"no {_PROFRAW_GLOB} files found in {project_path}")

        out_path = profdata_dir / PROFDATA_FILE
        cmd = [self.profdata_tool, "merge", "-sparse", *(p.name for p in profraws)]
        cmd.extend(["-o", str(out_path.relative_to(project_path))])
        await self._run(cmd, "profile merge failed", project_path, timeout)

        for profraw in profraws:
            profraw.unlink()
        logger.debug("Merged %d raw profiles into %s", len(profraws), out_path)
        return out_path

    async def _find_test_objects(self, project_path: Path, timeout: float) -> list[str]:
        result = await self._run(
            [self.cargo, "test", "--no-run", "--message-format=json"],
            "cargo test --no-run failed",
            project_path,
            timeout,
            _INSTRUMENT_ENV,
        )
        return parse_test_objects(result.stdout)


def parse_test_objects(cargo_json: str) -> list[str]:
    """Extract test binary paths from ``cargo --message-format=json`` output."""
    objects: list[str] = []
    for line in cargo_json.splitlines():
        if not line.strip():
            continue
        try:
            message = json.loads(line)
        except json.JSONDecodeError as e:
            raise ToolError(f"unable to parse cargo output as JSON: {line!r}") from e
        profile = message.get("profile") if isinstance(message, dict) else None
        if not isinstance(profile, dict) or profile.get("test") is not True:
            continue
        filenames = message.get("filenames")
        if not isinstance(filenames, list):
            raise ToolError(f"cargo artifact 'filenames' is not a list: {line!r}")
        objects.extend(str(name) for name in filenames)
    return objects
