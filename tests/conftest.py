"""Shared fixtures: captured ``llvm-cov report`` tables."""

from __future__ import annotations

import pytest

# Captured from `rust-cov report --use-color --show-region-summary=false ...`
# on a small crate.  Percent cells carry ANSI colour codes.
LLVM_COV_COLOR_REPORT = (
    "Filename                      Functions  Missed Functions  Executed       Lines      "
    "Missed Lines     Cover    Branches   Missed Branches     Cover\n"
    "-----------------------------------------------------------------------------------------"
    "----------------------------------------------------------\n"
    "src/lib.rs                            6                 1\x1b[0;33m    83.33%\x1b[0m"
    "          40                 4\x1b[0;32m    90.00%\x1b[0m          10                 3"
    "\x1b[0;33m    70.00%\x1b[0m\n"
    "src/main.rs                           2                 0\x1b[0;32m   100.00%\x1b[0m"
    "          12                 0\x1b[0;32m   100.00%\x1b[0m           0                 0"
    "         -\n"
    "-----------------------------------------------------------------------------------------"
    "----------------------------------------------------------\n"
    "TOTAL                                 8                 1\x1b[0;32m    87.50%\x1b[0m"
    "          52                 4\x1b[0;32m    92.31%\x1b[0m          10                 3"
    "\x1b[0;33m    70.00%\x1b[0m\n"
)

# Full default layout, including the region summary.
LLVM_COV_FULL_REPORT = """\
Filename                      Regions    Missed Regions     Cover   Functions  Missed Functions  Executed       Lines      Missed Lines     Cover    Branches   Missed Branches     Cover
--------------------------------------------------------------------------------------------------------------------------------------------------------------------------------------
src/parser.rs                      120                12    90.00%          14                 1    92.86%         200                10    95.00%          40                 2    95.00%
src/eval.rs                         30                 0   100.00%           5                 0   100.00%          50                 0   100.00%          12                 0   100.00%

Files which contain no functions:
src/empty.rs                         0                 0         -           0                 0         -           0                 0         -           0                 0         -
--------------------------------------------------------------------------------------------------------------------------------------------------------------------------------------
TOTAL                              150                12    92.00%          19                 1    94.74%         250                10    96.00%          52                 2    96.15%
"""

# Minimal table: line and branch columns only.
MINIMAL_REPORT = """\
Filename  Lines  Missed Lines  Cover  Branches  Missed Branches  Cover
src/main:  10  2  80.00%  20  5  75.00%
TOTAL: 10 2 80.00% 20 5 75.00%
"""

# `--show-instantiation-summary` layout; llvm-cov titles the missed column "Missed Insts.".
LLVM_COV_INSTANTIATION_REPORT = """\
Filename                      Functions  Missed Functions  Executed  Instantiations   Missed Insts.  Executed       Lines      Missed Lines     Cover    Branches   Missed Branches     Cover
-------------------------------------------------------------------------------------------------------------------------------------------------------------------------------------
src/generic.rs                        4                 1    75.00%               9               2    77.78%          30                 3    90.00%           8                 2    75.00%
-------------------------------------------------------------------------------------------------------------------------------------------------------------------------------------
TOTAL                                 4                 1    75.00%               9               2    77.78%          30                 3    90.00%           8                 2    75.00%
"""

FULLY_COVERED_REPORT = """\
Filename  Lines  Missed Lines  Cover  Branches  Missed Branches  Cover
src/lib.rs  25  0  100.00%  6  0  100.00%
TOTAL  25  0  100.00%  6  0  100.00%
"""


@pytest.fixture
def color_report() -> str:
    return LLVM_COV_COLOR_REPORT


@pytest.fixture
def full_report() -> str:
    return LLVM_COV_FULL_REPORT


@pytest.fixture
def minimal_report() -> str:
    return MINIMAL_REPORT


@pytest.fixture
def fully_covered_report() -> str:
    return FULLY_COVERED_REPORT


@pytest.fixture
def instantiation_report() -> str:
    return LLVM_COV_INSTANTIATION_REPORT
