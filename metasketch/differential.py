"""Differential abundance results and multiple-testing correction."""

from __future__ import annotations

from dataclasses import dataclass
from typing import MutableSequence


@dataclass
class DifferentialResult:
    """Outcome of a differential abundance test for one feature."""

    feature_id: str
    base_mean: float
    log2_fold_change: float | None = None
    std_error: float | None = None
    statistic: float | None = None
    p_value: float | None = None
    p_adjusted: float | None = None


def adjust_pvalues_bh(results: MutableSequence[DifferentialResult]) -> None:
    """Set ``p_adjusted`` on each result by the Benjamini-Hochberg procedure, in place.

    Results without a p-value are not counted as tests and get no adjusted value.
    Adjusted values are capped at 1.0 and never decrease with the raw p-value.
    """
    tested = sorted(
        (result for result in results if result.p_value is not None),
        key=lambda result: result.p_value,
    )
    for result in results:
        if result.p_value is None:
            result.p_adjusted = None

    m = len(tested)
    last_padj = 1.0
    for rank, result in zip(range(m, 0, -1), reversed(tested)):
        padj = min(result.p_value * m / rank, last_padj, 1.0)
        result.p_adjusted = padj
        last_padj = padj