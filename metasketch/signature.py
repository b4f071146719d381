"""Hash-set signatures of sequences and their multi-resolution combination."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

_SMALL_SIGNATURE = 100
DEFAULT_LEVEL_WEIGHTS = (0.2, 0.3, 0.5)


@dataclass
class Signature:
    """A sketch of a sequence: the hash values kept by some algorithm."""

    algorithm: str
    kmer_size: int
    num_hashes: int
    name: str | None = None
    filename: str | None = None
    path: Path | None = None
    hashes: list[int] = field(default_factory=list)

    def jaccard_similarity(self, other: Signature) -> float:
        """Estimate Jaccard similarity as shared hashes over the smaller sketch size.

        Signatures made with a different algorithm or k-mer size score 0.0.
        """
        if self.algorithm != other.algorithm or self.kmer_size != other.kmer_size:
            return 0.0
        min_num_hashes = min(self.num_hashes, other.num_hashes)
        if min_num_hashes == 0 or not self.hashes or not other.hashes:
            return 0.0
        if len(self.hashes) <= _SMALL_SIGNATURE and len(other.hashes) <= _SMALL_SIGNATURE:
            other_set = set(other.hashes)
            intersection = sum(1 for h in self.hashes if h in other_set)
        else:
            self_set = set(self.hashes)
            intersection = sum(1 for h in other.hashes if h in self_set)
        return intersection / min_num_hashes


def _empty_signature() -> Signature:
    return Signature("empty", 0, 0)


@dataclass
class MultiResolutionSignature:
    """Signatures of one taxon at coarse, medium and fine resolution."""

    taxon_id: str
    lineage: list[str] = field(default_factory=list)
    levels: list[Signature] = field(default_factory=list)
    macro_signature: Signature = field(default_factory=_empty_signature)
    meso_signature: Signature = field(default_factory=_empty_signature)
    micro_signature: Signature = field(default_factory=_empty_signature)

    def similarity(
        self, other: MultiResolutionSignature, weights: Sequence[float] | None = None
    ) -> float:
        """Weighted sum of macro, meso and micro Jaccard similarities."""
        chosen = DEFAULT_LEVEL_WEIGHTS if weights is None else tuple(weights)
        if len(chosen) < 3:
            raise ValueError("three weights are needed: macro, meso and micro")
        macro_w, meso_w, micro_w = chosen[:3]
        return (
            macro_w * self.macro_signature.jaccard_similarity(other.macro_signature)
            + meso_w * self.meso_signature.jaccard_similarity(other.meso_signature)
            + micro_w * self.micro_signature.jaccard_similarity(other.micro_signature)
        )


@dataclass(frozen=True)
class SignatureBuilder:
    """Makes empty signatures sharing one algorithm, k-mer size and sketch size."""

    algorithm: str
    kmer_size: int
    num_hashes: int

    def build(self) -> Signature:
        return Signature(self.algorithm, self.kmer_size, self.num_hashes)

    def build_with_name(self, name: str) -> Signature:
        return Signature(self.algorithm, self.kmer_size, self.num_hashes, name=name)