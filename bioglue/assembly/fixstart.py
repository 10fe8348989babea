#!/usr/bin/env python
# -*- coding: UTF-8 -*-

"""
Reset the start of circular contigs (plasmids, organelles, small bacterial
chromosomes) to a known gene, such as dnaA or repA.

The start gene is aligned to the assembly with `exonerate`; every contig is
rotated so that the best hit begins at base 1, on the forward strand.
"""
import os.path as op
import sys
import logging

from Bio import SeqIO
from Bio.Seq import Seq, reverse_complement

from bioglue.formats.base import must_open
from bioglue.apps.base import OptionParser, ActionDispatcher, getpath, sh
from bioglue.utils.cbook import depends


EXONERATE_URL = "https://www.ebi.ac.uk/about/vertebrate-genomics/software/exonerate"
# target, target start, target end, target strand, raw score
RYO_FORMAT = r"%ti\t%tab\t%tae\t%tS\t%s\n"


class ExonerateHit(object):
    def __init__(self, row):
        atoms = row.rstrip("\r\n").split("\t")
        if len(atoms) != 5:
            raise ValueError("Expect 5 columns in exonerate hit: {0}".format(row))
        self.target = atoms[0]
        # `%tab` and `%tae` are 0-based boundaries, start > end on minus strand
        self.tab = int(atoms[1])
        self.tae = int(atoms[2])
        self.strand = atoms[3]
        self.score = int(atoms[4])

    def __str__(self):
        return "\t".join(
            str(x) for x in (self.target, self.tab, self.tae, self.strand, self.score)
        )


@depends
def run_exonerate(infile=None, outfile=None, query=None, model="affine:local"):
    exonerate = getpath("exonerate", url=EXONERATE_URL)
    cmd = "{0} --model {1} --showvulgar no --showalignment no".format(
        exonerate, model
    )
    cmd += " --ryo '{0}'".format(RYO_FORMAT)
    cmd += " {0} {1}".format(query, infile)
    sh(cmd, outfile=outfile, check=True)


def parse_hits(filename):
    """
    Best scoring hit per target, from the `--ryo` lines of the exonerate
    output. Other lines (such as the command line echo) are ignored.
    """
    best = {}
    fp = must_open(filename)
    for row in fp:
        if row.count("\t") != 4:
            continue
        h = ExonerateHit(row)
        if h.target not in best or h.score > best[h.target].score:
            best[h.target] = h
    fp.close()
    return best


def rotate(seq, tab, strand="+"):
    """
    Rotate circular `seq` so that the 0-based boundary `tab` becomes base 1.
    On the minus strand the hit runs leftwards from `tab`, so the sequence is
    reverse complemented first.

    >>> rotate("AACCGGTT", 4)
    'GGTTAACC'
    >>> rotate("AACCGGTT", 4, "-")
    'GGTTAACC'
    """
    size = len(seq)
    if strand == "-":
        seq = reverse_complement(seq)
        tab = size - tab
    tab %= size if size else 1
    return seq[tab:] + seq[:tab]


def main():

    actions = (("fixstart", "rotate circular contigs to start at a given gene"),)
    p = ActionDispatcher(actions)
    p.dispatch(globals())


def fixstart(args):
    """
    %prog fixstart assembly.fasta start.fasta

    Rotate each contig in the assembly so that it starts at the best exonerate
    hit of the start gene. Use --model protein2genome for protein queries.
    Contigs without hit are written unchanged.
    """
    p = OptionParser(fixstart.__doc__)
    p.add_option(
        "--model",
        default="affine:local",
        help="Alignment model passed to exonerate",
    )
    p.set_outfile(outfile=None)
    opts, args = p.parse_args(args)

    if len(args) != 2:
        sys.exit(not p.print_help())

    fastafile, startfile = args
    pf = op.basename(fastafile).rsplit(".", 1)[0]
    hitsfile = "{0}.{1}.exonerate".format(
        pf, op.basename(startfile).rsplit(".", 1)[0]
    )
    outfile = opts.outfile or pf + ".fixstart.fasta"

    run_exonerate(
        infile=fastafile, outfile=hitsfile, query=startfile, model=opts.model
    )
    hits = parse_hits(hitsfile)

    fw = must_open(outfile, "w")
    nrotated = ncontigs = 0
    for rec in SeqIO.parse(fastafile, "fasta"):
        h = hits.get(rec.id)
        if h is None:
            logging.debug("No hit found on `{0}`, kept as is".format(rec.id))
        else:
            rec.seq = Seq(rotate(str(rec.seq), h.tab, h.strand))
            logging.debug(
                "Rotate `{0}` to start at {1} ({2})".format(rec.id, h.tab + 1, h.strand)
            )
            nrotated += 1
        SeqIO.write([rec], fw, "fasta")
        ncontigs += 1
    fw.close()

    logging.debug(
        "{0} of {1} contigs rotated, written to `{2}`.".format(
            nrotated, ncontigs, outfile
        )
    )
    return outfile


if __name__ == "__main__":
    main()
