"""FASTA/FASTQ reading and k-mer helpers shared by the sketchers."""

from __future__ import annotations

import bz2
import gzip
import hashlib
from dataclasses import dataclass
from os import PathLike
from typing import BinaryIO, IO, Iterable, Iterator

_COMPLEMENT = bytes.maketrans(b"ACGTacgt", b"TGCAtgca")
_VALID_BASES = frozenset(b"ACGTacgt")
_GZIP_MAGIC = b"\x1f\x8b"
_BZIP2_MAGIC = b"BZh"


@dataclass(frozen=True)
class SequenceRecord:
    """One record of a FASTA or FASTQ file."""

    id: str
    seq: bytes
    qual: bytes | None = None

    def __len__(self) -> int:
        return len(self.seq)


def _lines(handle: Iterable[bytes | str]) -> Iterator[bytes]:
    for raw in handle:
        if isinstance(raw, str):
            raw = raw.encode("ascii")
        line = raw.rstrip(b"\r\n")
        if line:
            yield line


def parse_fastx(handle: Iterable[bytes | str]) -> Iterator[SequenceRecord]:
    """Yield records from an iterable of FASTA or FASTQ lines.

    The format is chosen per record from its first character ('>' or '@').
    Raises ValueError on malformed input.
    """
    lines = _lines(handle)
    line = next(lines, None)
    while line is not None:
        marker = line[:1]
        header = line[1:].decode("utf-8", errors="replace")
        if marker == b">":
            chunks: list[bytes] = []
            line = next(lines, None)
            while line is not None and not line.startswith(b">"):
                chunks.append(line.strip())
                line = next(lines, None)
            yield SequenceRecord(header, b"".join(chunks))
        elif marker == b"@":
            chunks = []
            line = next(lines, None)
            while line is not None and not line.startswith(b"+"):
                chunks.append(line.strip())
                line = next(lines, None)
            if line is None:
                raise ValueError(f"FASTQ record {header!r} has no '+' separator")
            seq = b"".join(chunks)
            qual_parts: list[bytes] = []
            total = 0
            while total < len(seq):
                line = next(lines, None)
                if line is None:
                    raise ValueError(f"FASTQ record {header!r} is truncated")
                qual_parts.append(line)
                total += len(line)
            qual = b"".join(qual_parts)
            if len(qual) != len(seq):
                raise ValueError(
                    f"FASTQ record {header!r}: quality length {len(qual)} "
                    f"differs from sequence length {len(seq)}"
                )
            yield SequenceRecord(header, seq, qual)
            line = next(lines, None)
        else:
            raise ValueError(f"unexpected line start {line[:20]!r}; expected '>' or '@'")


def _open_maybe_compressed(path: str | PathLike[str]) -> IO[bytes]:
    with open(path, "rb") as probe:
        magic = probe.read(3)
    if magic.startswith(_GZIP_MAGIC):
        return gzip.open(path, "rb")
    if magic.startswith(_BZIP2_MAGIC):
        return bz2.open(path, "rb")
    return open(path, "rb")


def read_fastx(path: str | PathLike[str]) -> Iterator[SequenceRecord]:
    """Yield records from a FASTA/FASTQ file, plain, gzip or bzip2 compressed."""
    handle: BinaryIO
    with _open_maybe_compressed(path) as handle:
        yield from parse_fastx(handle)


def is_valid_base(base: int | bytes | str) -> bool:
    """Return True if the base is one of A, C, G, T (either case)."""
    if isinstance(base, str):
        base = base.encode("ascii", errors="replace")
    if isinstance(base, (bytes, bytearray)):
        if len(base) != 1:
            return False
        base = base[0]
    return base in _VALID_BASES


def reverse_complement(seq: bytes) -> bytes:
    """Return the reverse complement of a nucleotide sequence."""
    return bytes(seq).translate(_COMPLEMENT)[::-1]


def canonical_kmers(seq: bytes, k: int) -> Iterator[bytes]:
    """Yield the canonical form of every k-mer made only of valid bases.

    The canonical form is the lexicographically smaller of the k-mer and its
    reverse complement. Sequences shorter than k yield nothing.
    """
    if k <= 0:
        raise ValueError("k-mer size must be greater than 0")
    seq = bytes(seq)
    for start in range(len(seq) - k + 1):
        kmer = seq[start : start + k]
        if not all(base in _VALID_BASES for base in kmer):
            continue
        rc = reverse_complement(kmer)
        yield kmer if kmer < rc else rc


def hash_kmer(kmer: bytes) -> int:
    """Return a deterministic unsigned 64-bit hash of a k-mer."""
    digest = hashlib.blake2b(bytes(kmer), digest_size=8).digest()
    return int.from_bytes(digest, "little")