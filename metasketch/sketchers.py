"""Sequence sketchers, a sketch-based classifier and a multi-level signature builder."""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from os import PathLike
from typing import Iterable

from metasketch.sequences import SequenceRecord, canonical_kmers, hash_kmer, read_fastx
from metasketch.signature import MultiResolutionSignature, Signature

MAX_HASH = 2**64 - 1
MAX_LEVEL_KMER_SIZE = 63


class Sketcher(abc.ABC):
    """Common interface of sequence sketchers."""

    @abc.abstractmethod
    def sketch_sequence(self, record: SequenceRecord) -> Signature:
        """Return the signature of one sequence record."""

    def sketch_sequences(self, records: Iterable[SequenceRecord]) -> list[Signature]:
        """Return the signature of every record, in order."""
        return [self.sketch_sequence(record) for record in records]


@dataclass(frozen=True)
class MinHashSketcher(Sketcher):
    """Bottom-k MinHash: keeps the smallest ``num_hashes`` distinct k-mer hashes."""

    num_hashes: int
    kmer_size: int

    def __post_init__(self) -> None:
        if self.num_hashes <= 0:
            raise ValueError("Number of hashes (sketch size) must be greater than 0.")
        if self.kmer_size <= 0:
            raise ValueError("K-mer size must be greater than 0.")

    def sketch_sequence(self, record: SequenceRecord) -> Signature:
        unique = sorted({hash_kmer(kmer) for kmer in canonical_kmers(record.seq, self.kmer_size)})
        return Signature(
            "minhash",
            self.kmer_size,
            self.num_hashes,
            name=record.id,
            hashes=unique[: self.num_hashes],
        )


@dataclass(frozen=True)
class AdaptiveSketcher(Sketcher):
    """Scaled MinHash: keeps every distinct hash below ``MAX_HASH // scaling_factor``."""

    scaling_factor: int
    kmer_size: int

    def __post_init__(self) -> None:
        if self.scaling_factor <= 0:
            raise ValueError("Scaling factor must be greater than 0.")
        if self.kmer_size <= 0:
            raise ValueError("K-mer size must be greater than 0.")

    @property
    def threshold(self) -> int:
        return MAX_HASH // self.scaling_factor

    def sketch_sequence(self, record: SequenceRecord) -> Signature:
        threshold = self.threshold
        kept = sorted(
            {
                value
                for value in map(hash_kmer, canonical_kmers(record.seq, self.kmer_size))
                if value < threshold
            }
        )
        return Signature(
            "scaled_minhash",
            self.kmer_size,
            len(kept),
            name=record.id,
            hashes=kept,
        )


@dataclass
class AdaptiveClassifier:
    """Ranks reference signatures by Jaccard similarity to a query."""

    scaling_factor: int
    min_similarity: float
    reference_sketches: dict[str, Signature] = field(default_factory=dict)

    def add_reference(self, reference_id: str, signature: Signature) -> None:
        """Add or replace a reference signature."""
        self.reference_sketches[reference_id] = signature

    def classify(self, query_signature: Signature) -> list[tuple[str, float]]:
        """Return (reference id, similarity) pairs at or above the threshold, best first."""
        matches = [
            (ref_id, query_signature.jaccard_similarity(ref_sig))
            for ref_id, ref_sig in self.reference_sketches.items()
        ]
        matches = [pair for pair in matches if pair[1] >= self.min_similarity]
        matches.sort(key=lambda pair: pair[1], reverse=True)
        return matches

    def __len__(self) -> int:
        return len(self.reference_sketches)


@dataclass(frozen=True)
class LevelSignatureBuilder:
    """Builds hierarchical signatures with k-mer sizes from ``kmer_size`` down to ``min_kmer_size``."""

    kmer_size: int
    min_kmer_size: int
    sketch_size: int
    levels: int

    def __post_init__(self) -> None:
        if self.kmer_size < self.min_kmer_size:
            raise ValueError("kmer_size must be >= min_kmer_size")
        if self.kmer_size > MAX_LEVEL_KMER_SIZE:
            raise ValueError(f"kmer_size must be <= {MAX_LEVEL_KMER_SIZE}")
        if self.levels <= 0:
            raise ValueError("levels must be > 0")

    @property
    def level_kmer_sizes(self) -> list[int]:
        """K-mer size of each level, largest (coarsest) first."""
        if self.levels == 1:
            return [max(1, self.kmer_size)]
        span = self.kmer_size - self.min_kmer_size
        return [
            max(1, round(self.kmer_size - step * span / (self.levels - 1)))
            for step in range(self.levels)
        ]

    def build_from_file(
        self,
        file_path: str | PathLike[str],
        taxon_id: str,
        lineage: Iterable[str] = (),
    ) -> MultiResolutionSignature:
        """Sketch every sequence of a FASTA/FASTQ file at each level."""
        sizes = self.level_kmer_sizes
        level_hashes: list[set[int]] = [set() for _ in sizes]
        for record in read_fastx(file_path):
            for k, hashes in zip(sizes, level_hashes):
                hashes.update(hash_kmer(kmer) for kmer in canonical_kmers(record.seq, k))

        levels = [
            Signature(
                "minhash",
                k,
                self.sketch_size,
                name=taxon_id,
                hashes=sorted(hashes)[: self.sketch_size],
            )
            for k, hashes in zip(sizes, level_hashes)
        ]
        return MultiResolutionSignature(
            taxon_id,
            list(lineage),
            levels,
            macro_signature=levels[0],
            meso_signature=levels[len(levels) // 2],
            micro_signature=levels[-1],
        )

    def build_batch(
        self, files: Iterable[tuple[str | PathLike[str], str, Iterable[str]]]
    ) -> list[MultiResolutionSignature]:
        """Build one signature per (path, taxon_id, lineage) entry, in order."""
        return [
            self.build_from_file(path, taxon_id, lineage) for path, taxon_id, lineage in files
        ]