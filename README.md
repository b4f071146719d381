# metasketch

A library of tools for working with metagenomic sequence data:

- FASTA/FASTQ parsing and canonical k-mer hashing (`metasketch.sequences`)
- hash-set signatures and Jaccard comparison (`metasketch.signature`)
- bottom-k MinHash and scaled ("adaptive") sketching, a simple reference
  classifier and a multi-level signature builder (`metasketch.sketchers`)
- multi-resolution genome signatures with MinHash k-mer sketches and
  variant profiles (`metasketch.genomic`)
- read quality control and trimming (`metasketch.quality`)
- strain abundance estimation by MCMC mixture modelling and projected
  gradient descent (`metasketch.deconvolution`)
- chunked parallel processing helpers (`metasketch.parallel`)
- Benjamini–Hochberg p-value adjustment (`metasketch.differential`)

The only runtime dependency is `numpy`. Python 3.10 or newer is required.

## Reading sequences

`read_fastx(path)` yields `SequenceRecord` objects from a FASTA or FASTQ
file. The file may be plain, gzip or bzip2 compressed. `parse_fastx(handle)`
does the same for any iterable of lines. Malformed input raises
`ValueError`.

## Sketching sequences

```python
from metasketch.sequences import read_fastx
from metasketch.sketchers import MinHashSketcher, AdaptiveSketcher

minhash = MinHashSketcher(1000, 21)       # sketch size, k-mer size
scaled = AdaptiveSketcher(100, 21)        # scaling factor, k-mer size

records = list(read_fastx("genome.fasta"))
signatures = minhash.sketch_sequences(records)
print(signatures[0].jaccard_similarity(signatures[1]))
```

Sketches are built from canonical k-mers. A k-mer that holds anything
other than `A`, `C`, `G` or `T` is skipped. `MinHashSketcher` keeps the
smallest distinct hashes up to the sketch size. `AdaptiveSketcher` keeps
every distinct hash below `2**64 - 1` divided by the scaling factor.

`LevelSignatureBuilder(kmer_size, min_kmer_size, sketch_size, levels)`
sketches a whole file at several k-mer sizes, from `kmer_size` down to
`min_kmer_size`, and returns a `metasketch.signature.MultiResolutionSignature`.

## Classifying against references

```python
from metasketch.sketchers import AdaptiveClassifier

classifier = AdaptiveClassifier(100, 0.1)   # scaling factor, min similarity
classifier.add_reference("ref_a", ref_a_signature)
classifier.add_reference("ref_b", ref_b_signature)

for reference_id, similarity in classifier.classify(query_signature):
    print(reference_id, similarity)
```

Matches below the minimum similarity are dropped. The rest are returned
in descending order of similarity. `len(classifier)` is the number of
references.

## Multi-resolution genome signatures

`metasketch.genomic.GenomeSignatureBuilder(macro_k, meso_k, sketch_size, threads)`
builds a `MultiResolutionSignature` for each genome file. Each signature
holds a macro-level and a meso-level MinHash sketch and a variant profile.

`build_batch` builds its signatures on a thread pool. It then sets the
weight of each level by how well that level tells the genome apart from
the other genomes in the batch.

K-mer sizes must lie between 3 and 31. Any other size raises
`InvalidKmerSizeError`. A sequence that holds characters other than `A`,
`C`, `G`, `T` or `N` raises `SequenceFormatError`.

## Read quality control

```python
from metasketch.quality import QualityControlParams, apply_quality_control

params = QualityControlParams(min_avg_quality=20.0, min_length=50)
trimmed = apply_quality_control(sequence, qualities, params)
if trimmed is None:
    print("read rejected")
```

A read is rejected in any of these cases:

- it is too short;
- it has too many `N` bases;
- its average Phred+33 quality is too low.

A read that passes is trimmed from both ends at the trim-quality threshold.

`process_reads(reads, params, signature)` runs the same checks on many
reads. It adds each read that passes to the signature, if one is given,
and returns `ProcessingMetrics`.

## Strain abundance estimation

```python
import numpy as np
from metasketch.deconvolution import StrainDeconvolution, StrainMixtureModel

references = [np.array([1.0, 0.0, 0.5]), np.array([0.0, 1.0, 0.5])]
deconv = StrainDeconvolution(references, ["strain_1", "strain_2"])
print(deconv.estimate_abundances(np.array([0.7, 0.3, 0.5])))

model = StrainMixtureModel(np.column_stack(references), ["strain_1", "strain_2"], seed=42)
result = model.estimate_abundances(np.array([7.0, 3.0, 5.0]))
print(result.abundances, result.goodness_of_fit)
```

`StrainDeconvolution` returns only the strains whose abundance is at or
above `min_abundance`, which defaults to 0.01.

`StrainMixtureModel` reports two values for each strain: its mean
abundance and the width of its 95% credible interval.

Inputs whose sizes do not match raise `DimensionMismatchError`.

## Parallel processing

`parallel_process(items, processor, config)` applies a function to each
item on a thread pool and returns the results in input order. If an item
fails, the first such exception is raised. With
`ParallelConfig(continue_on_error=True)` failures are instead logged and
left out of the results.

`process_in_batches` runs the function once per batch of items.
`ParallelExecutor` reuses a single pool, and can be used as a context
manager.

## Multiple testing correction

```python
from metasketch.differential import DifferentialResult, adjust_pvalues_bh

results = [
    DifferentialResult(feature_id="F1", base_mean=10.0, p_value=0.01),
    DifferentialResult(feature_id="F2", base_mean=12.0, p_value=0.04),
    DifferentialResult(feature_id="F3", base_mean=8.0, p_value=None),
]
adjust_pvalues_bh(results)
print([r.p_adjusted for r in results])
```

Features with no p-value get no adjusted p-value. The adjusted values
never decrease as the raw p-value increases, and they are capped at 1.

## What this package does not do

This package does not provide:

- a command-line tool;
- an end-to-end sample classification pipeline that writes result files
  or reports;
- any charts or visualisation;
- a differential abundance test. `DifferentialResult` only holds results
  that you compute yourself, and `adjust_pvalues_bh` only corrects their
  p-values.