"""Read quality control and accumulation of reads into a sample signature."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Iterable

from metasketch.genomic import MultiResolutionSignature
from metasketch.sequences import SequenceRecord

logger = logging.getLogger(__name__)

PHRED_OFFSET = 33


@dataclass(frozen=True)
class QualityControlParams:
    """Thresholds applied to each read before it enters a signature."""

    min_avg_quality: float = 20.0
    min_length: int = 50
    trim_quality: int = 15
    max_n_percent: float = 5.0


@dataclass
class ProcessingMetrics:
    """Counts of reads and bases seen and kept during processing."""

    total_reads: int = 0
    passed_reads: int = 0
    total_bases: int = 0
    passed_bases: int = 0
    avg_read_length: float = 0.0
    processing_time_seconds: float = 0.0

    @property
    def passed_percent(self) -> float:
        """Percentage of reads that passed quality control."""
        return 100.0 * self.passed_reads / max(self.total_reads, 1)


def apply_quality_control(
    seq: bytes, qual: bytes | None, params: QualityControlParams | None = None
) -> bytes | None:
    """Return the quality-trimmed read, or None if it fails quality control.

    Reads shorter than ``min_length`` or with more than ``max_n_percent`` N
    bases are rejected. With quality scores, reads whose mean Phred score is
    below ``min_avg_quality`` are rejected and both ends are trimmed back to
    the first and last base scoring at least ``trim_quality``.
    """
    params = params or QualityControlParams()
    seq = bytes(seq)

    if len(seq) < params.min_length:
        return None

    if seq:
        n_percent = 100.0 * seq.count(b"N") / len(seq)
        if n_percent > params.max_n_percent:
            return None

    if qual is None:
        return seq

    scores = [q - PHRED_OFFSET for q in bytes(qual)]
    if scores and sum(scores) / len(scores) < params.min_avg_quality:
        return None

    good = [i for i, score in enumerate(scores) if score >= params.trim_quality]
    trim_start, trim_end = (good[0], good[-1] + 1) if good else (0, len(seq))

    if trim_end - trim_start < params.min_length:
        return None
    return seq[trim_start:trim_end]


def process_reads(
    reads: Iterable[SequenceRecord],
    params: QualityControlParams | None = None,
    signature: MultiResolutionSignature | None = None,
) -> ProcessingMetrics:
    """Quality-control every read, add passing reads to the signature and return metrics.

    Errors raised by the signature (for example on invalid bases) propagate.
    """
    params = params or QualityControlParams()
    metrics = ProcessingMetrics()
    start = time.perf_counter()

    for record in reads:
        metrics.total_reads += 1
        metrics.total_bases += len(record.seq)
        processed = apply_quality_control(record.seq, record.qual, params)
        if processed is None:
            continue
        metrics.passed_reads += 1
        metrics.passed_bases += len(processed)
        if signature is not None:
            signature.add_sequence(processed)

    if metrics.passed_reads > 0:
        metrics.avg_read_length = metrics.passed_bases / metrics.passed_reads
    metrics.processing_time_seconds = time.perf_counter() - start

    logger.info(
        "Reads: %d/%d passed QC (%.1f%%)",
        metrics.passed_reads,
        metrics.total_reads,
        metrics.passed_percent,
    )
    return metrics