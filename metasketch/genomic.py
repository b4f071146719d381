"""Multi-resolution genomic signatures built from canonical ntHash MinHash sketches."""

from __future__ import annotations

import bisect
import enum
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from os import PathLike
from typing import Iterable, Iterator, Sequence

from metasketch.sequences import read_fastx

MIN_KMER_SIZE = 3
MAX_KMER_SIZE = 31
DEFAULT_WEIGHTS = {"macro": 0.3, "meso": 0.4, "micro": 0.3}

_MASK64 = (1 << 64) - 1
_SEEDS = {
    ord("A"): 0x3C8BFBB395C60474,
    ord("C"): 0x3193C18562A02B4C,
    ord("G"): 0x20323ED082572324,
    ord("T"): 0x295549F54BE24456,
    ord("N"): 0,
}
_COMPLEMENT_SEEDS = {
    ord("A"): _SEEDS[ord("T")],
    ord("C"): _SEEDS[ord("G")],
    ord("G"): _SEEDS[ord("C")],
    ord("T"): _SEEDS[ord("A")],
    ord("N"): 0,
}
_ALLOWED_BASES = frozenset(_SEEDS)


class SignatureError(Exception):
    """Base error for signature construction."""


class InvalidKmerSizeError(SignatureError):
    """Raised when a k-mer size lies outside the supported range."""

    def __init__(self, k: int) -> None:
        super().__init__(f"Invalid k-mer size: {k}")
        self.k = k


class SequenceFormatError(SignatureError):
    """Raised when a sequence holds characters other than A, C, G, T or N."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Invalid sequence format: {message}")


class ResolutionLevel(enum.Enum):
    """Resolution at which two signatures are compared."""

    MACRO = "macro"
    MESO = "meso"
    MICRO = "micro"


def _rol(value: int, shift: int) -> int:
    shift %= 64
    if shift == 0:
        return value
    return ((value << shift) | (value >> (64 - shift))) & _MASK64


def _canonical_nthashes(sequence: bytes, k: int) -> Iterator[int]:
    """Yield the canonical ntHash (minimum of both strands) of every k-mer."""
    for start in range(len(sequence) - k + 1):
        window = sequence[start : start + k]
        forward = 0
        reverse = 0
        for offset, base in enumerate(window):
            forward ^= _rol(_SEEDS[base], k - 1 - offset)
            reverse ^= _rol(_COMPLEMENT_SEEDS[base], offset)
        yield min(forward, reverse)


def _as_bytes(sequence: bytes | str) -> bytes:
    if isinstance(sequence, str):
        return sequence.encode("ascii", errors="replace")
    return bytes(sequence)


def _check_kmer_size(k: int) -> None:
    if not MIN_KMER_SIZE <= k <= MAX_KMER_SIZE:
        raise InvalidKmerSizeError(k)


@dataclass
class KmerSignature:
    """Bottom-k MinHash sketch of canonical k-mer hashes."""

    k: int
    sketch_size: int
    sketch: list[int] = field(default_factory=list)
    total_kmers: int = 0

    def __post_init__(self) -> None:
        _check_kmer_size(self.k)

    def add_sequence(self, sequence: bytes | str) -> None:
        """Add every k-mer of the sequence to the sketch.

        Raises SequenceFormatError if the sequence holds anything but A, C, G, T, N.
        """
        data = _as_bytes(sequence)
        if not set(data) <= _ALLOWED_BASES:
            raise SequenceFormatError("Sequence contains invalid characters")
        for value in _canonical_nthashes(data, self.k):
            self.total_kmers += 1
            if self.sketch_size <= 0:
                continue
            if len(self.sketch) < self.sketch_size:
                bisect.insort(self.sketch, value)
            elif value < self.sketch[-1]:
                self.sketch.pop()
                bisect.insort(self.sketch, value)

    def jaccard_similarity(self, other: KmerSignature) -> float:
        """Estimate Jaccard similarity of the two sketches; 0.0 if k differs."""
        if self.k != other.k:
            return 0.0
        if not self.sketch and not other.sketch:
            return 1.0
        shared = sum((Counter(self.sketch) & Counter(other.sketch)).values())
        union = len(self.sketch) + len(other.sketch) - shared
        return shared / union


@dataclass
class VariantProfile:
    """Observed nucleotide and its coverage at each position."""

    variants: dict[int, int] = field(default_factory=dict)
    coverage: dict[int, int] = field(default_factory=dict)

    def add_variant(self, position: int, nucleotide: int, count: int) -> None:
        """Record a nucleotide at a position unless a better-covered one is already there."""
        current = self.coverage.get(position)
        if current is None or count > current:
            self.variants[position] = nucleotide
            self.coverage[position] = count

    def similarity(self, other: VariantProfile) -> float:
        """Fraction of shared positions carrying the same nucleotide; 0.0 if none are shared."""
        shared = self.variants.keys() & other.variants.keys()
        if not shared:
            return 0.0
        matching = sum(1 for pos in shared if self.variants[pos] == other.variants[pos])
        return matching / len(shared)


@dataclass
class MultiResolutionSignature:
    """Species, strain-group and strain-level signatures of one taxon."""

    taxon_id: str
    lineage: list[str]
    macro_signature: KmerSignature
    meso_signature: KmerSignature
    micro_signature: VariantProfile = field(default_factory=VariantProfile)
    weights: dict[ResolutionLevel, float] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        taxon_id: str,
        lineage: Iterable[str],
        macro_k: int,
        meso_k: int,
        macro_sketch_size: int,
        meso_sketch_size: int,
    ) -> MultiResolutionSignature:
        """Make an empty signature with the given k-mer and sketch sizes."""
        return cls(
            taxon_id,
            list(lineage),
            KmerSignature(macro_k, macro_sketch_size),
            KmerSignature(meso_k, meso_sketch_size),
        )

    def add_sequence(self, sequence: bytes | str) -> None:
        """Add a sequence to the macro and meso sketches."""
        self.macro_signature.add_sequence(sequence)
        self.meso_signature.add_sequence(sequence)

    def _level_similarities(self, other: MultiResolutionSignature) -> tuple[float, float, float]:
        return (
            self.macro_signature.jaccard_similarity(other.macro_signature),
            self.meso_signature.jaccard_similarity(other.meso_signature),
            self.micro_signature.similarity(other.micro_signature),
        )

    def similarity(
        self, other: MultiResolutionSignature, level: ResolutionLevel | None = None
    ) -> float:
        """Similarity at one level, or the weighted mean of all three when level is None."""
        if level is ResolutionLevel.MACRO:
            return self.macro_signature.jaccard_similarity(other.macro_signature)
        if level is ResolutionLevel.MESO:
            return self.meso_signature.jaccard_similarity(other.meso_signature)
        if level is ResolutionLevel.MICRO:
            return self.micro_signature.similarity(other.micro_signature)

        sims = self._level_similarities(other)
        weights = tuple(
            self.weights.get(lvl, DEFAULT_WEIGHTS[lvl.value]) for lvl in ResolutionLevel
        )
        total = sum(weights)
        if total > 0.0:
            return sum(s * w for s, w in zip(sims, weights)) / total
        return sum(sims) / 3.0

    def calculate_weights(self, references: Sequence[MultiResolutionSignature]) -> None:
        """Set per-level weights from the mean dissimilarity to other taxa, normalised to 1."""
        differences: list[tuple[float, float, float]] = [
            tuple(1.0 - s for s in self._level_similarities(ref))
            for ref in references
            if ref.taxon_id != self.taxon_id
        ]
        if differences:
            averages = [sum(column) / len(differences) for column in zip(*differences)]
        else:
            averages = [DEFAULT_WEIGHTS[lvl.value] for lvl in ResolutionLevel]

        total = sum(averages)
        if total > 0.0:
            self.weights = {lvl: avg / total for lvl, avg in zip(ResolutionLevel, averages)}
        else:
            self.weights = {lvl: DEFAULT_WEIGHTS[lvl.value] for lvl in ResolutionLevel}


@dataclass(frozen=True)
class GenomeSignatureBuilder:
    """Builds multi-resolution signatures from genome FASTA/FASTQ files."""

    macro_k: int
    meso_k: int
    sketch_size: int
    threads: int = 1

    def __post_init__(self) -> None:
        _check_kmer_size(self.macro_k)
        _check_kmer_size(self.meso_k)
        object.__setattr__(self, "threads", max(1, self.threads))

    def build_from_file(
        self,
        file_path: str | PathLike[str],
        taxon_id: str,
        lineage: Iterable[str] = (),
    ) -> MultiResolutionSignature:
        """Sketch every sequence in a file into a new signature."""
        signature = MultiResolutionSignature.create(
            taxon_id, lineage, self.macro_k, self.meso_k, self.sketch_size, self.sketch_size
        )
        try:
            for record in read_fastx(file_path):
                signature.add_sequence(record.seq)
        except SignatureError:
            raise
        except (OSError, ValueError) as exc:
            raise SignatureError(f"IO error: {exc}") from exc
        return signature

    def build_batch(
        self, files: Iterable[tuple[str | PathLike[str], str, Iterable[str]]]
    ) -> list[MultiResolutionSignature]:
        """Build signatures in parallel, then weight each against all the others."""
        entries = [(path, taxon_id, list(lineage)) for path, taxon_id, lineage in files]
        with ThreadPoolExecutor(max_workers=self.threads) as pool:
            futures = [pool.submit(self.build_from_file, *entry) for entry in entries]
            signatures = [future.result() for future in futures]

        for index, signature in enumerate(signatures):
            others = signatures[:index] + signatures[index + 1 :]
            signature.calculate_weights(others)
        return signatures