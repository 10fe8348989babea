from unittest.mock import patch

import pytest

from Bio import SeqIO

from bioglue.assembly.fixstart import ExonerateHit, fixstart, parse_hits, rotate

EXONERATE = """Command line: [exonerate --model affine:local dnaA.fasta assembly.fasta]
Hostname: [localhost]
ctg1\t4\t10\t+\t30
ctg1\t0\t6\t+\t12
ctg2\t6\t0\t-\t30
-- completed exonerate analysis
"""

ASSEMBLY = """>ctg1
AACCGGTTAC
>ctg2
AACCGGTT
>ctg3
TTTT
"""


@pytest.mark.parametrize(
    "seq,tab,strand,output",
    [
        ("AACCGGTT", 4, "+", "GGTTAACC"),
        ("AACCGGTT", 0, "+", "AACCGGTT"),
        ("AACCGGTT", 8, "+", "AACCGGTT"),
        ("AAACCCGT", 3, "-", "TTTACGGG"),
        ("AACCGGTT", 4, "-", "GGTTAACC"),
    ],
)
def test_rotate(seq, tab, strand, output):
    assert rotate(seq, tab, strand) == output


def test_hit():
    h = ExonerateHit("ctg2\t6\t0\t-\t30\n")
    assert (h.target, h.tab, h.tae, h.strand, h.score) == ("ctg2", 6, 0, "-", 30)
    with pytest.raises(ValueError):
        ExonerateHit("ctg2\t6\t0")


def test_parse_hits(tmp_path):
    hitsfile = tmp_path / "hits.exonerate"
    hitsfile.write_text(EXONERATE)
    hits = parse_hits(str(hitsfile))
    assert sorted(hits) == ["ctg1", "ctg2"]
    assert hits["ctg1"].tab == 4
    assert str(hits["ctg2"]) == "ctg2\t6\t0\t-\t30"


def test_fixstart(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assembly = tmp_path / "assembly.fasta"
    assembly.write_text(ASSEMBLY)

    def fake_exonerate(infile=None, outfile=None, query=None, model=None):
        with open(outfile, "w") as fw:
            fw.write(EXONERATE)
        return outfile

    with patch(
        "bioglue.assembly.fixstart.run_exonerate", side_effect=fake_exonerate
    ) as run:
        outfile = fixstart([str(assembly), "dnaA.fasta", "--model", "protein2genome"])

    run.assert_called_once_with(
        infile=str(assembly),
        outfile="assembly.dnaA.exonerate",
        query="dnaA.fasta",
        model="protein2genome",
    )
    assert outfile == "assembly.fixstart.fasta"
    seqs = [(r.id, str(r.seq)) for r in SeqIO.parse(outfile, "fasta")]
    # ctg2 hit runs leftwards from 6 on the minus strand: rc is AACCGGTT, start 2
    assert seqs == [
        ("ctg1", "GGTTACAACC"),
        ("ctg2", "CCGGTTAA"),
        ("ctg3", "TTTT"),
    ]


def test_run_exonerate(tmp_path):
    from bioglue.assembly.fixstart import run_exonerate

    assembly = tmp_path / "assembly.fasta"
    assembly.write_text(ASSEMBLY)
    outfile = str(tmp_path / "hits.exonerate")

    def fake_sh(cmd, outfile=None, check=False):
        with open(outfile, "w") as fw:
            fw.write(EXONERATE)

    with patch("bioglue.assembly.fixstart.getpath", return_value="exonerate"), patch(
        "bioglue.assembly.fixstart.sh", side_effect=fake_sh
    ) as sh:
        assert run_exonerate(
            infile=str(assembly), outfile=outfile, query="dnaA.fasta"
        ) == outfile
        # Second call finds an up-to-date output
        run_exonerate(infile=str(assembly), outfile=outfile, query="dnaA.fasta")

    cmd = sh.call_args[0][0]
    assert cmd.startswith("exonerate --model affine:local --showvulgar no")
    assert r"--ryo '%ti\t%tab\t%tae\t%tS\t%s\n'" in cmd
    assert cmd.endswith("dnaA.fasta {0}".format(assembly))
    assert sh.call_count == 1
