from unittest.mock import call, patch

import pytest

from bioglue.formats.chain import Chain, lift_gff, liftover, psl_to_chain, run_blat

CHAIN = """#comment
chain 4900 chrY 58368225 + 25985403 25985638 chr5 151006098 - 43257292 43257528 1
9\t1\t0
10\t0\t5
48

chain 300 chr1 1000 + 0 100 chr1 1000 + 0 100 2
100

"""


@pytest.fixture
def genomes(tmp_path):
    oldfasta = tmp_path / "old.fasta"
    oldfasta.write_text(">chr1\nACGTACGTAC\n")
    newfasta = tmp_path / "new.fasta"
    newfasta.write_text(">chr1\nACGTACGTACGG\n")
    return str(oldfasta), str(newfasta)


def test_chain(tmp_path):
    chainfile = tmp_path / "test.chain"
    chainfile.write_text(CHAIN)
    chain = Chain(str(chainfile))
    assert len(chain) == 2
    assert chain.chains[0].ungapped == 67
    assert chain.chains[0].dt == 1
    assert chain.chains[0].dq == 5
    assert chain.ungapped == 167


def test_run_blat(genomes, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    oldfasta, newfasta = genomes
    with patch("bioglue.formats.chain.which", return_value=None), patch(
        "bioglue.formats.chain.sh"
    ) as sh:
        pslfile = run_blat(oldfasta, newfasta, minscore=50, minid=95)

    oldtwobit = oldfasta.rsplit(".", 1)[0] + ".2bit"
    newtwobit = newfasta.rsplit(".", 1)[0] + ".2bit"
    assert pslfile == "new.old.psl"
    assert sh.call_args_list == [
        call("faToTwoBit {0} {1}".format(oldfasta, oldtwobit), check=True),
        call("faToTwoBit {0} {1}".format(newfasta, newtwobit), check=True),
        call(
            "blat {0} {1} -tileSize=12 -minScore=50 -minIdentity=95 new.old.psl".format(
                oldtwobit, newfasta
            ),
            check=True,
        ),
    ]


def test_psl_to_chain(genomes):
    oldfasta, newfasta = genomes
    pf = oldfasta.rsplit(".", 1)[0]
    with patch("bioglue.formats.chain.sh") as sh:
        liftoverfile = psl_to_chain("new.old.psl", oldfasta, newfasta)

    assert liftoverfile == pf + ".liftover.chain"
    cmds = [c[0][0].split()[0] for c in sh.call_args_list]
    assert cmds == [
        "faToTwoBit",
        "faToTwoBit",
        "axtChain",
        "chainSort",
        "chainNet",
        "netChainSubset",
    ]
    chainnet = sh.call_args_list[4][0][0]
    assert chainnet == "chainNet {0}.sorted.chain {1}.sizes {2}.sizes {0}.net /dev/null".format(
        pf, oldfasta, newfasta
    )


def test_lift_gff():
    with patch("bioglue.formats.chain.sh") as sh:
        lifted, unmapped = lift_gff("genes.gff", "old.liftover.chain", minmatch=0.9)
    assert (lifted, unmapped) == ("genes.lifted.gff", "genes.unmapped")
    sh.assert_called_once_with(
        "liftOver -gff -minMatch=0.9 genes.gff old.liftover.chain"
        " genes.lifted.gff genes.unmapped",
        check=True,
    )


def test_liftover(genomes, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    oldfasta, newfasta = genomes
    gfffile = str(tmp_path / "genes.gff")
    with patch("bioglue.formats.chain.which", return_value=None), patch(
        "bioglue.formats.chain.sh"
    ) as sh:
        liftedfile = liftover([oldfasta, newfasta, gfffile])

    assert liftedfile == str(tmp_path / "genes.lifted.gff")
    last = sh.call_args_list[-1][0][0]
    assert last.startswith("liftOver -gff {0} ".format(gfffile))
    assert "old.liftover.chain" in last


def test_summary(genomes, tmp_path, capsys):
    from bioglue.formats.chain import summary

    oldfasta, newfasta = genomes
    chainfile = tmp_path / "test.chain"
    chainfile.write_text("chain 300 chr1 10 + 0 8 chr1 12 + 0 8 1\n8\n")
    chain = summary([str(chainfile), oldfasta, newfasta])
    assert chain.ungapped == 8
    err = capsys.readouterr().err
    assert "8 of 10 (80.0%)" in err
    assert "8 of 12 (66.7%)" in err
