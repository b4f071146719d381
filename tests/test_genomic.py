import pytest

from metasketch.genomic import (
    GenomeSignatureBuilder,
    InvalidKmerSizeError,
    KmerSignature,
    MultiResolutionSignature,
    ResolutionLevel,
    SequenceFormatError,
    SignatureError,
    VariantProfile,
)
from metasketch.sequences import reverse_complement

SEQ_A = b"ACGTTGCATGCATGCCGATAGCTAGCTAGGATCCGATCGATCGTAGCTAGCATCGA"
SEQ_B = b"TTTTGGGGCCCCAAAATTTGGGCCCAAATTGGCCAATGCATGCAACGTACGTTTAA"


def _signature(taxon, seq, lineage=()):
    sig = MultiResolutionSignature.create(taxon, lineage, 11, 7, 50, 50)
    sig.add_sequence(seq)
    return sig


@pytest.mark.parametrize("k", [2, 32, 0])
def test_kmer_signature_rejects_bad_k(k):
    with pytest.raises(InvalidKmerSizeError) as info:
        KmerSignature(k, 10)
    assert info.value.k == k


def test_kmer_signature_accepts_bounds():
    assert KmerSignature(3, 10).k == 3
    assert KmerSignature(31, 10).k == 31


def test_add_sequence_counts_and_sorts():
    sig = KmerSignature(5, 10)
    sig.add_sequence(SEQ_A)
    assert sig.total_kmers == len(SEQ_A) - 5 + 1
    assert len(sig.sketch) == 10
    assert sig.sketch == sorted(sig.sketch)
    assert all(0 <= h < 2**64 for h in sig.sketch)


def test_short_sequence_adds_nothing():
    sig = KmerSignature(7, 10)
    sig.add_sequence(b"ACGT")
    assert sig.total_kmers == 0
    assert sig.sketch == []


def test_invalid_characters_raise():
    sig = KmerSignature(5, 10)
    with pytest.raises(SequenceFormatError):
        sig.add_sequence(b"ACGTXACGT")
    with pytest.raises(SignatureError):
        sig.add_sequence(b"acgtacgt")


def test_n_bases_are_accepted():
    sig = KmerSignature(3, 10)
    sig.add_sequence(b"ACNNGT")
    assert sig.total_kmers == 4


def test_canonical_hash_matches_reverse_complement():
    forward = KmerSignature(9, 100)
    forward.add_sequence(SEQ_A)
    backward = KmerSignature(9, 100)
    backward.add_sequence(reverse_complement(SEQ_A))
    assert forward.sketch == backward.sketch
    assert forward.jaccard_similarity(backward) == 1.0


def test_sketch_keeps_smallest_hashes():
    small = KmerSignature(7, 5)
    small.add_sequence(SEQ_A)
    full = KmerSignature(7, 1000)
    full.add_sequence(SEQ_A)
    assert small.sketch == full.sketch[:5]


def test_jaccard_identical_and_different_k():
    a = KmerSignature(7, 20)
    a.add_sequence(SEQ_A)
    b = KmerSignature(7, 20)
    b.add_sequence(SEQ_A)
    c = KmerSignature(9, 20)
    c.add_sequence(SEQ_A)
    assert a.jaccard_similarity(b) == 1.0
    assert a.jaccard_similarity(c) == 0.0


def test_jaccard_empty_cases():
    empty1 = KmerSignature(7, 20)
    empty2 = KmerSignature(7, 20)
    assert empty1.jaccard_similarity(empty2) == 1.0
    filled = KmerSignature(7, 20)
    filled.add_sequence(SEQ_A)
    assert empty1.jaccard_similarity(filled) == 0.0


def test_jaccard_is_symmetric_and_bounded():
    a = KmerSignature(5, 30)
    a.add_sequence(SEQ_A)
    b = KmerSignature(5, 30)
    b.add_sequence(SEQ_B)
    assert a.jaccard_similarity(b) == b.jaccard_similarity(a)
    assert 0.0 <= a.jaccard_similarity(b) < 1.0


def test_variant_profile_keeps_higher_coverage():
    profile = VariantProfile()
    profile.add_variant(10, ord("A"), 5)
    profile.add_variant(10, ord("G"), 3)
    assert profile.variants[10] == ord("A")
    assert profile.coverage[10] == 5
    profile.add_variant(10, ord("T"), 8)
    assert profile.variants[10] == ord("T")
    assert profile.coverage[10] == 8


def test_variant_profile_similarity():
    p1 = VariantProfile()
    p2 = VariantProfile()
    assert p1.similarity(p2) == 0.0
    p1.add_variant(1, ord("A"), 1)
    p1.add_variant(2, ord("C"), 1)
    p1.add_variant(3, ord("G"), 1)
    p2.add_variant(1, ord("A"), 1)
    p2.add_variant(2, ord("T"), 1)
    assert p1.similarity(p2) == pytest.approx(0.5)
    assert p1.similarity(p1) == 1.0


def test_multi_resolution_levels():
    a = _signature("t1", SEQ_A)
    b = _signature("t2", SEQ_A)
    assert a.similarity(b, ResolutionLevel.MACRO) == 1.0
    assert a.similarity(b, ResolutionLevel.MESO) == 1.0
    assert a.similarity(b, ResolutionLevel.MICRO) == 0.0


def test_multi_resolution_default_weighting():
    a = _signature("t1", SEQ_A)
    b = _signature("t2", SEQ_A)
    # micro profiles are empty, so only macro (0.3) and meso (0.4) contribute
    assert a.similarity(b) == pytest.approx(0.7)


def test_multi_resolution_custom_weights():
    a = _signature("t1", SEQ_A)
    b = _signature("t2", SEQ_A)
    a.weights = {
        ResolutionLevel.MACRO: 0.0,
        ResolutionLevel.MESO: 0.0,
        ResolutionLevel.MICRO: 0.0,
    }
    # zero weights fall back to an unweighted mean
    assert a.similarity(b) == pytest.approx(2.0 / 3.0)


def test_calculate_weights_without_references_uses_defaults():
    sig = _signature("t1", SEQ_A)
    sig.calculate_weights([sig])
    assert sig.weights[ResolutionLevel.MACRO] == pytest.approx(0.3)
    assert sig.weights[ResolutionLevel.MESO] == pytest.approx(0.4)
    assert sig.weights[ResolutionLevel.MICRO] == pytest.approx(0.3)


def test_calculate_weights_normalised():
    a = _signature("t1", SEQ_A)
    b = _signature("t2", SEQ_B)
    a.calculate_weights([a, b])
    assert sum(a.weights.values()) == pytest.approx(1.0)
    assert all(w >= 0.0 for w in a.weights.values())


def test_create_rejects_bad_k():
    with pytest.raises(InvalidKmerSizeError):
        MultiResolutionSignature.create("t", [], 40, 21, 10, 10)


def test_builder_rejects_bad_k():
    with pytest.raises(InvalidKmerSizeError) as info:
        GenomeSignatureBuilder(31, 2, 100)
    assert info.value.k == 2
    with pytest.raises(InvalidKmerSizeError) as info:
        GenomeSignatureBuilder(50, 2, 100)
    assert info.value.k == 50


def test_builder_threads_at_least_one():
    assert GenomeSignatureBuilder(11, 7, 10, threads=0).threads == 1


def test_build_from_file(tmp_path):
    path = tmp_path / "genome.fa"
    path.write_text(">c1\n" + SEQ_A.decode() + "\n>c2\n" + SEQ_B.decode() + "\n")
    builder = GenomeSignatureBuilder(11, 7, 50)
    sig = builder.build_from_file(path, "tax1", ["Bacteria", "tax1"])
    assert sig.taxon_id == "tax1"
    assert sig.lineage == ["Bacteria", "tax1"]
    assert sig.macro_signature.total_kmers == (len(SEQ_A) - 10) + (len(SEQ_B) - 10)
    direct = _signature("x", SEQ_A)
    direct.add_sequence(SEQ_B)
    assert sig.macro_signature.sketch == direct.macro_signature.sketch


def test_build_from_file_invalid_sequence(tmp_path):
    path = tmp_path / "bad.fa"
    path.write_text(">c1\nacgtacgtacgt\n")
    with pytest.raises(SequenceFormatError):
        GenomeSignatureBuilder(5, 3, 10).build_from_file(path, "t")


def test_build_from_missing_file(tmp_path):
    with pytest.raises(SignatureError):
        GenomeSignatureBuilder(5, 3, 10).build_from_file(tmp_path / "none.fa", "t")


def test_build_batch(tmp_path):
    p1 = tmp_path / "a.fa"
    p1.write_text(">a\n" + SEQ_A.decode() + "\n")
    p2 = tmp_path / "b.fa"
    p2.write_text(">b\n" + SEQ_B.decode() + "\n")
    builder = GenomeSignatureBuilder(11, 7, 50, threads=2)
    sigs = builder.build_batch([(p1, "A", ["root"]), (p2, "B", ["root"])])
    assert [s.taxon_id for s in sigs] == ["A", "B"]
    for sig in sigs:
        assert set(sig.weights) == set(ResolutionLevel)
        assert sum(sig.weights.values()) == pytest.approx(1.0)
    assert sigs[0].similarity(sigs[0], ResolutionLevel.MACRO) == 1.0


def test_build_batch_propagates_errors(tmp_path):
    good = tmp_path / "a.fa"
    good.write_text(">a\n" + SEQ_A.decode() + "\n")
    bad = tmp_path / "b.fa"
    bad.write_text(">b\nACGTZZ\n")
    with pytest.raises(SequenceFormatError):
        GenomeSignatureBuilder(5, 3, 10).build_batch([(good, "A", []), (bad, "B", [])])