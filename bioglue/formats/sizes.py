#!/usr/bin/env python
# -*- coding: UTF-8 -*-

"""
Two-column tables of sequence lengths (seqid, size), as used by the UCSC
chain tools. Built from the FASTA index (`.fai`) when given a FASTA file.
"""
import os.path as op
import sys
import logging

from pyfaidx import Fasta

from bioglue.formats.base import DictFile, FastaExt, must_open
from bioglue.apps.base import OptionParser, ActionDispatcher, need_update


def is_fasta(filename):
    filename = filename[:-3] if filename.endswith(".gz") else filename
    return filename.rsplit(".", 1)[-1] in FastaExt


def write_sizes(fastafile, sizesfile):
    """
    Index `fastafile` with pyfaidx (creates `fastafile.fai` on demand) and
    write the seqid and length columns to `sizesfile`.
    """
    fa = Fasta(fastafile)
    fw = must_open(sizesfile, "w")
    for name in fa.keys():
        print("\t".join((name, str(len(fa[name])))), file=fw)
    fw.close()
    fa.close()
    logging.debug("Sizes file written to `{0}`.".format(sizesfile))
    return sizesfile


class Sizes(DictFile):
    """
    Mapping from seqid to sequence length, in the order of the input file.
    """

    def __init__(self, filename):
        assert op.exists(filename), "File `{0}` not found".format(filename)

        self.fastafile = None
        if is_fasta(filename):
            self.fastafile = filename
            sizesfile = filename + ".sizes"
            if need_update(filename, sizesfile):
                write_sizes(filename, sizesfile)
            filename = sizesfile

        super(Sizes, self).__init__(filename, delimiter="\t", cast=int)

    @property
    def mapping(self):
        return dict(self)

    @property
    def totalsize(self):
        return sum(self.values())

    def iter_names(self):
        for name in self.keys():
            yield name

    def iter_sizes(self):
        for name, size in self.items():
            yield name, size

    def get_size(self, ctg):
        return self[ctg]


def main():

    actions = (("extract", "report length for each sequence in fasta file"),)
    p = ActionDispatcher(actions)
    p.dispatch(globals())


def extract(args):
    """
    %prog extract fastafile

    Report length for each sequence in the FASTA file, writes `fastafile.sizes`.
    """
    p = OptionParser(extract.__doc__)
    opts, args = p.parse_args(args)

    if len(args) != 1:
        sys.exit(not p.print_help())

    (fastafile,) = args
    s = Sizes(fastafile)
    logging.debug(
        "A total of {0} sequences ({1} bp) in `{2}`.".format(
            len(s), s.totalsize, s.filename
        )
    )
    return s


if __name__ == "__main__":
    main()
