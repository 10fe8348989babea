import os.path as op
import random

import pytest

from Bio import SeqIO

from bioglue.formats.vcf import VariantRecord
from bioglue.variation.consensus import (
    MutationContext,
    MutationRateError,
    VariantApplier,
    build_consensus,
    expand_ambiguity,
    mutate,
    sampling_probability,
    should_apply,
    snp_candidates,
)


def write_inputs(tmp_path, fasta, variants):
    fastafile = tmp_path / "ref.fasta"
    fastafile.write_text(fasta)
    variantsfile = tmp_path / "variants.tsv"
    variantsfile.write_text(variants)
    return str(fastafile), str(variantsfile)


def read_output(outfile):
    return [(rec.id, str(rec.seq)) for rec in SeqIO.parse(outfile, "fasta")]


def test_snp(tmp_path):
    fastafile, variantsfile = write_inputs(tmp_path, ">chr1\nACGTACGT\n", "chr1\t3\tG\tT\n")
    outfile = str(tmp_path / "out.fasta")
    napplied = build_consensus(fastafile, variantsfile, outfile=outfile)
    assert napplied == 1
    assert read_output(outfile) == [("chr1", "ACTTACGT")]


def test_deletion_shifts_later_positions(tmp_path):
    variants = "chr1\t3\tGTA\tG\nchr1\t4\tT\tC\nchr1\t7\tG\tT\n"
    fastafile, variantsfile = write_inputs(tmp_path, ">chr1\nACGTACGT\n", variants)
    outfile = str(tmp_path / "out.fasta")
    napplied = build_consensus(fastafile, variantsfile, outfile=outfile)
    # Position 4 falls in the deleted span, position 7 is read through the offset
    assert napplied == 2
    assert read_output(outfile) == [("chr1", "ACGCTT")]


def test_deletion_context():
    context = MutationContext("chr1", "ACGTACGT")
    delta = context.replace(3, "GTA", "G")
    assert delta == -2
    assert context.offset == -2
    assert len(context) == 6
    assert context.sequence == "ACGCGT"
    assert context.is_shadowed(4)
    assert context.is_shadowed(5)
    assert not context.is_shadowed(6)


def test_insertion_context():
    context = MutationContext("chr1", "ACGTACGT")
    delta = context.replace(2, "C", "CAAA")
    assert delta == 3
    assert context.sequence == "ACAAAGTACGT"
    assert context.index(3) == 5
    assert not context.is_shadowed(3)


def test_shadowed_position_takes_no_draw():
    context = MutationContext("chr1", "ACGTACGT")
    context.replace(3, "GTA", "G")
    rng = random.Random(42)
    state = rng.getstate()
    applier = VariantApplier(rng=rng)
    assert not applier.apply(context, [VariantRecord("chr1", 4, "T", ["C"])])
    assert applier.nskipped == 1
    assert rng.getstate() == state


def test_no_variants_is_identity(tmp_path):
    fasta = ">chr2\nAACCGGTT\n>chr1\n" + "ACGT" * 30 + "\n"
    fastafile, variantsfile = write_inputs(tmp_path, fasta, "")
    outfile = str(tmp_path / "out.fasta")
    assert build_consensus(fastafile, variantsfile, outfile=outfile) == 0
    assert read_output(outfile) == [("chr1", "ACGT" * 30), ("chr2", "AACCGGTT")]


def test_output_wrapped_at_80_columns(tmp_path):
    fastafile, variantsfile = write_inputs(tmp_path, ">chr1\n" + "A" * 100 + "\n", "")
    outfile = tmp_path / "out.fasta"
    build_consensus(fastafile, variantsfile, outfile=str(outfile))
    lines = outfile.read_text().splitlines()
    assert lines == [">chr1", "A" * 80, "A" * 20]


def test_every_id_once(tmp_path):
    fasta = ">chr3\nAAAA\n>chr1\nCCCC\n>chr2\nGGGG\n"
    fastafile, variantsfile = write_inputs(tmp_path, fasta, "chr2\t1\tG\tA\n")
    outfile = str(tmp_path / "out.fasta")
    build_consensus(fastafile, variantsfile, outfile=outfile)
    assert read_output(outfile) == [("chr2", "AGGG"), ("chr1", "CCCC"), ("chr3", "AAAA")]


def test_snp_never_reference(tmp_path):
    seq = "ACGTACGTAC"
    variants = "".join(
        "chr1\t{0}\t{1}\tN\n".format(i + 1, base) for i, base in enumerate(seq)
    )
    fastafile, variantsfile = write_inputs(tmp_path, ">chr1\n" + seq + "\n", variants)
    outfile = str(tmp_path / "out.fasta")
    assert build_consensus(fastafile, variantsfile, outfile=outfile, seed=7) == len(seq)
    ((_, mutated),) = read_output(outfile)
    assert len(mutated) == len(seq)
    assert all(a != b for a, b in zip(seq, mutated))


def test_fixed_seed_is_deterministic(tmp_path):
    seq = "ACGT" * 50
    variants = "".join(
        "chr1\t{0}\t{1}\tN\n".format(i + 1, seq[i]) for i in range(0, len(seq), 2)
    )
    fastafile, variantsfile = write_inputs(tmp_path, ">chr1\n" + seq + "\n", variants)
    out1 = str(tmp_path / "out1.fasta")
    out2 = str(tmp_path / "out2.fasta")
    build_consensus(fastafile, variantsfile, outfile=out1, rate=10, seed=123)
    build_consensus(fastafile, variantsfile, outfile=out2, rate=10, seed=123)
    assert read_output(out1) == read_output(out2)


def test_rate_too_fine_fails_before_output(tmp_path):
    fastafile, variantsfile = write_inputs(tmp_path, ">chr1\nACGTACGT\n", "chr1\t3\tG\tT\n")
    outfile = str(tmp_path / "out.fasta")
    with pytest.raises(MutationRateError):
        build_consensus(fastafile, variantsfile, outfile=outfile, rate=2)
    assert not op.exists(outfile)


def test_unknown_sequence(tmp_path):
    fastafile, variantsfile = write_inputs(tmp_path, ">chr1\nACGTACGT\n", "chrX\t3\tG\tT\n")
    with pytest.raises(KeyError):
        build_consensus(fastafile, variantsfile, outfile=str(tmp_path / "out.fasta"))


@pytest.mark.parametrize(
    "variants",
    [
        "chr1\t3\tG\tT\nchr2\t1\tA\tC\nchr1\t5\tA\tC\n",
        "chr1\t5\tA\tC\nchr1\t3\tG\tT\n",
    ],
)
def test_unsorted_variants(tmp_path, variants):
    fasta = ">chr1\nACGTACGT\n>chr2\nACGTACGT\n"
    fastafile, variantsfile = write_inputs(tmp_path, fasta, variants)
    with pytest.raises(ValueError):
        build_consensus(fastafile, variantsfile, outfile=str(tmp_path / "out.fasta"))


def test_position_beyond_end(tmp_path):
    fastafile, variantsfile = write_inputs(tmp_path, ">chr1\nACGTACGT\n", "chr1\t20\tG\tT\n")
    outfile = str(tmp_path / "out.fasta")
    assert build_consensus(fastafile, variantsfile, outfile=outfile) == 0
    assert read_output(outfile) == [("chr1", "ACGTACGT")]


def test_symbolic_alleles_skipped(tmp_path):
    variants = "chr1\t3\tG\t<DEL>\nchr1\t5\tAC\t*\n"
    fastafile, variantsfile = write_inputs(tmp_path, ">chr1\nACGTACGT\n", variants)
    outfile = str(tmp_path / "out.fasta")
    assert build_consensus(fastafile, variantsfile, outfile=outfile) == 0
    assert read_output(outfile) == [("chr1", "ACGTACGT")]


def test_unknown_reference_base_skipped(tmp_path):
    fastafile, variantsfile = write_inputs(tmp_path, ">chr1\nACGTACGT\n", "chr1\t3\tX\tT\n")
    outfile = str(tmp_path / "out.fasta")
    assert build_consensus(fastafile, variantsfile, outfile=outfile) == 0
    assert read_output(outfile) == [("chr1", "ACGTACGT")]


def test_unknown_reference_base_counted():
    applier = VariantApplier(rng=random.Random(1))
    context = MutationContext("chr1", "ACGTACGT")
    assert not applier.apply(context, [VariantRecord("chr1", 3, "X", ["T"])])
    assert applier.nskipped == 1
    assert context.sequence == "ACGTACGT"


def test_variants_from_stdin(tmp_path, monkeypatch):
    import io

    fastafile, _ = write_inputs(tmp_path, ">chr1\nACGTACGT\n", "")
    monkeypatch.setattr("sys.stdin", io.StringIO("#CHROM\nchr1\t3\tG\tT\n"))
    outfile = str(tmp_path / "out.fasta")
    assert build_consensus(fastafile, "-", outfile=outfile) == 1
    assert read_output(outfile) == [("chr1", "ACTTACGT")]


def test_one_record_per_position():
    context = MutationContext("chr1", "ACGTACGT")
    records = [
        VariantRecord("chr1", 3, "G", ["T"]),
        VariantRecord("chr1", 3, "G", ["C"]),
    ]
    applier = VariantApplier(rng=random.Random(1))
    assert applier.apply(context, records)
    assert context.napplied == 1
    assert context.sequence[2] in "TC"


@pytest.mark.parametrize(
    "draw,probability,output",
    [(0.5, 0.5, True), (0.51, 0.5, False), (0.0, 1.0, True), (0.99, 1.0, True)],
)
def test_should_apply(draw, probability, output):
    assert should_apply(draw, probability) == output


@pytest.mark.parametrize(
    "reflen,nvariants,rate,output",
    [(1000, 10, None, 1.0), (1000, 10, 200, 0.5), (1000, 10, 100, 1.0)],
)
def test_sampling_probability(reflen, nvariants, rate, output):
    assert sampling_probability(reflen, nvariants, rate) == pytest.approx(output)


@pytest.mark.parametrize("rate", [50, 0, -1])
def test_sampling_probability_error(rate):
    with pytest.raises(MutationRateError):
        sampling_probability(1000, 10, rate)


@pytest.mark.parametrize(
    "ref,alts,output",
    [
        ("A", ["R"], ["G"]),
        ("A", ["N"], ["C", "G", "T"]),
        ("A", ["A"], []),
        ("a", ["r"], ["g"]),
        ("C", ["T", "G"], ["G", "T"]),
        ("A", ["X"], []),
    ],
)
def test_snp_candidates(ref, alts, output):
    assert snp_candidates(ref, alts) == output


def test_expand_ambiguity():
    assert expand_ambiguity("N") == set("ACGT")
    assert expand_ambiguity("n") == set("acgt")
    assert expand_ambiguity("U") == {"T"}
    assert expand_ambiguity("-") == set()


def test_mutate(tmp_path):
    fastafile, variantsfile = write_inputs(tmp_path, ">chr1\nACGTACGT\n", "chr1\t3\tG\tT\n")
    outfile = str(tmp_path / "out.fasta")
    assert mutate([fastafile, variantsfile, "-o", outfile, "--seed", "1"]) == 1
    assert read_output(outfile) == [("chr1", "ACTTACGT")]


def test_mutate_bcf(tmp_path, monkeypatch):
    from unittest.mock import patch

    monkeypatch.chdir(tmp_path)
    fastafile, _ = write_inputs(tmp_path, ">chr1\nACGTACGT\n", "")
    outfile = str(tmp_path / "out.fasta")

    def fake_query(vcffile, outfile, include=None, regions=None):
        with open(outfile, "w") as fw:
            fw.write("chr1\t1\tA\tG\n")
        return outfile

    with patch("bioglue.formats.vcf.query_variants", side_effect=fake_query) as q:
        mutate([fastafile, "calls.bcf", "-o", outfile, "--include", "QUAL>30"])

    q.assert_called_once_with(
        "calls.bcf", op.join("consensus_work", "calls.variants.tsv"), include="QUAL>30"
    )
    assert read_output(outfile) == [("chr1", "GCGTACGT")]


def test_mutate_rate_too_fine(tmp_path):
    fastafile, variantsfile = write_inputs(tmp_path, ">chr1\nACGTACGT\n", "chr1\t3\tG\tT\n")
    with pytest.raises(SystemExit):
        mutate([fastafile, variantsfile, "--rate", "2", "-o", str(tmp_path / "o.fa")])
