#!/usr/bin/env python
# -*- coding: UTF-8 -*-

"""
Variant call format. Records are pulled out of VCF/BCF with `bcftools query`
as four columns: CHROM, POS, REF, ALT.
"""
import sys
import logging

from more_itertools import ilen

from bioglue.formats.base import must_open
from bioglue.apps.base import OptionParser, ActionDispatcher, getpath, sh, need_update


QUERY_FORMAT = r"%CHROM\t%POS\t%REF\t%ALT\n"


class VariantRecord(object):
    __slots__ = ("seqid", "pos", "ref", "alts")

    def __init__(self, seqid, pos, ref, alts):
        self.seqid = seqid
        self.pos = int(pos)
        self.ref = ref
        self.alts = alts

    def __str__(self):
        return "\t".join((self.seqid, str(self.pos), self.ref, ",".join(self.alts)))

    def __repr__(self):
        return "VariantRecord({0})".format(str(self).replace("\t", " "))

    def __eq__(self, other):
        return str(self) == str(other)

    @property
    def is_snp(self):
        return len(self.ref) == 1 and len(self.alts[0]) == 1


def parse_variant(row):
    """
    Parse one line, either `bcftools query` output (CHROM POS REF ALT) or a
    full VCF data line (CHROM POS ID REF ALT ...), told apart by the number of
    columns.

    >>> parse_variant("chr1\\t3\\tG\\tT,C")
    VariantRecord(chr1 3 G T,C)
    """
    atoms = row.rstrip("\r\n").split("\t")
    if len(atoms) == 4:
        seqid, pos, ref, alt = atoms
    elif len(atoms) >= 5:
        seqid, pos, _, ref, alt = atoms[:5]
    else:
        raise ValueError("Expect 4 or >= 5 columns: {0}".format(row.rstrip()))
    return VariantRecord(seqid, pos, ref, alt.split(","))


def iter_variants(filename):
    fp = must_open(filename)
    for row in fp:
        if row[0] == "#" or not row.strip():
            continue
        yield parse_variant(row)
    if fp is not sys.stdin:
        fp.close()


def count_variants(filename):
    return ilen(iter_variants(filename))


def query_variants(vcffile, outfile, include=None, regions=None):
    """
    Dump the CHROM, POS, REF, ALT columns of a VCF/BCF file with bcftools.
    """
    if not need_update(vcffile, outfile):
        logging.debug("File `{0}` exists. Query skipped.".format(outfile))
        return outfile

    bcftools = getpath("bcftools", url="https://samtools.github.io/bcftools/")
    cmd = "{0} query -f '{1}'".format(bcftools, QUERY_FORMAT)
    if include:
        cmd += " -i '{0}'".format(include)
    if regions:
        cmd += " -r {0}".format(regions)
    cmd += " {0}".format(vcffile)
    sh(cmd, outfile=outfile, check=True)
    return outfile


def main():

    actions = (("query", "extract CHROM, POS, REF, ALT columns with bcftools"),)
    p = ActionDispatcher(actions)
    p.dispatch(globals())


def query(args):
    """
    %prog query variants.bcf

    Extract CHROM, POS, REF, ALT columns into a tab-delimited file.
    """
    p = OptionParser(query.__doc__)
    p.add_option("--include", help="bcftools filtering expression, e.g. 'QUAL>30'")
    p.add_option("--regions", help="Restrict to comma-separated list of regions")
    p.set_outfile(outfile=None)
    opts, args = p.parse_args(args)

    if len(args) != 1:
        sys.exit(not p.print_help())

    (vcffile,) = args
    outfile = opts.outfile or vcffile.rsplit(".", 1)[0] + ".variants.tsv"
    query_variants(vcffile, outfile, include=opts.include, regions=opts.regions)
    logging.debug(
        "A total of {0} variants written to `{1}`.".format(
            count_variants(outfile), outfile
        )
    )
    return outfile


if __name__ == "__main__":
    main()
