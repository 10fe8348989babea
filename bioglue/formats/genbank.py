#!/usr/bin/env python
# -*- coding: UTF-8 -*-

"""
Genbank record conversions. GFF3 is produced by EMBOSS `seqret`, FASTA by
biopython Bio.SeqIO
https://github.com/biopython/biopython/blob/master/Bio/SeqIO/InsdcIO.py
"""
import sys
import logging

from Bio import SeqIO

from bioglue.formats.base import must_open
from bioglue.apps.base import OptionParser, ActionDispatcher, cleanup, getpath, sh


EMBOSS_URL = "http://emboss.sourceforge.net/"
FASTA_DIRECTIVE = "##FASTA"


def main():

    actions = (
        ("gff", "convert Genbank file to GFF3 file with seqret"),
        ("tofasta", "generate fasta file for multiple gb records"),
    )

    p = ActionDispatcher(actions)
    p.dispatch(globals())


def run_seqret(gbkfile, gfffile):
    seqret = getpath("seqret", name="emboss", url=EMBOSS_URL)
    cmd = "{0} -sequence {1} -sformat1 genbank -feature".format(seqret, gbkfile)
    cmd += " -osformat2 gff3 -outseq {0} -auto".format(gfffile)
    sh(cmd, check=True)
    return gfffile


def strip_fasta(gfffile, outfile):
    """
    Copy `gfffile` to `outfile` up to the ##FASTA directive.
    """
    fp = must_open(gfffile)
    fw = must_open(outfile, "w")
    nlines = 0
    for row in fp:
        if row.startswith(FASTA_DIRECTIVE):
            break
        fw.write(row)
        nlines += 1
    fp.close()
    if fw is not sys.stdout:
        fw.close()
    return nlines


def gff(args):
    """
    %prog gff seq.gbk

    Convert Genbank file to GFF3 with EMBOSS seqret. The Genbank file can
    contain multiple records. The sequences are appended after ##FASTA unless
    --nofasta.
    """
    p = OptionParser(gff.__doc__)
    p.add_option(
        "--nofasta",
        default=False,
        action="store_true",
        help="Drop the ##FASTA section from the output",
    )
    p.set_outfile(outfile=None)
    opts, args = p.parse_args(args)

    if len(args) != 1:
        sys.exit(not p.print_help())

    (gbkfile,) = args
    gfffile = opts.outfile or gbkfile.rsplit(".", 1)[0] + ".gff3"
    if not opts.nofasta:
        run_seqret(gbkfile, gfffile)
    else:
        tmpfile = gfffile + ".tmp"
        run_seqret(gbkfile, tmpfile)
        nlines = strip_fasta(tmpfile, gfffile)
        cleanup(tmpfile)
        logging.debug("{0} lines written to `{1}`.".format(nlines, gfffile))

    return gfffile


def tofasta(args):
    """
    %prog tofasta seq.gbk

    Write the sequences of all Genbank records to one fasta file.
    """
    p = OptionParser(tofasta.__doc__)
    p.set_outfile(outfile=None)
    opts, args = p.parse_args(args)

    if len(args) != 1:
        sys.exit(not p.print_help())

    (gbkfile,) = args
    fastafile = opts.outfile or gbkfile.rsplit(".", 1)[0] + ".fasta"
    nrecs = SeqIO.convert(gbkfile, "genbank", fastafile, "fasta")
    logging.debug("A total of {0} records written to `{1}`.".format(nrecs, fastafile))
    return fastafile


if __name__ == "__main__":
    main()
