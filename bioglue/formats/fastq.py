#!/usr/bin/env python
# -*- coding: UTF-8 -*-

"""
Processing paired-end FASTQ files, interleaved (shuffled) or as two files.
"""
import os.path as op
import sys
import logging

from Bio.SeqIO.QualityIO import FastqGeneralIterator
from more_itertools import chunked

from bioglue.formats.base import must_open
from bioglue.apps.base import OptionParser, ActionDispatcher


def main():

    actions = (
        ("shuffle", "shuffle paired end reads into interleaved format"),
        ("split", "split interleaved pairs into two files"),
    )
    p = ActionDispatcher(actions)
    p.dispatch(globals())


def pairspf(pp):
    return op.basename(op.commonprefix(pp).rstrip("._-"))


def mate_name(title):
    """
    Read name without the description and the /1 or /2 suffix.

    >>> mate_name("r1/2 length=100")
    'r1'
    """
    name = title.split(None, 1)[0] if title.strip() else ""
    if name[-2:] in ("/1", "/2"):
        name = name[:-2]
    return name


def write_record(fw, title, seq, qual):
    fw.write("@{0}\n{1}\n+\n{2}\n".format(title, seq, qual))


def split_pairs(pairsfastq, p1, p2):
    """
    Write alternate records of `pairsfastq` to `p1` and `p2`, returning the
    number of pairs. Mates must share the same name.
    """
    fp = must_open(pairsfastq)
    p1fw = must_open(p1, "w")
    p2fw = must_open(p2, "w")
    npairs = 0
    try:
        for pair in chunked(FastqGeneralIterator(fp), 2):
            if len(pair) != 2:
                raise ValueError(
                    "Odd number of records in `{0}`, last read `{1}` has no mate".format(
                        pairsfastq, pair[0][0]
                    )
                )
            a, b = pair
            if mate_name(a[0]) != mate_name(b[0]):
                raise ValueError(
                    "Mate names `{0}` and `{1}` do not match".format(a[0], b[0])
                )
            write_record(p1fw, *a)
            write_record(p2fw, *b)
            npairs += 1
    finally:
        fp.close()
        p1fw.close()
        p2fw.close()
    return npairs


def split(args):
    """
    %prog split pairs.fastq

    Split shuffled pairs into `.1.fastq` and `.2.fastq`. Can work on gzipped
    file, in which case the outputs are gzipped as well.
    """
    p = OptionParser(split.__doc__)
    opts, args = p.parse_args(args)

    if len(args) != 1:
        sys.exit(not p.print_help())

    (pairsfastq,) = args
    gz = pairsfastq.endswith(".gz")
    pf = pairsfastq.replace(".gz", "").rsplit(".", 1)[0]
    p1 = pf + ".1.fastq"
    p2 = pf + ".2.fastq"
    if gz:
        p1 += ".gz"
        p2 += ".gz"

    try:
        npairs = split_pairs(pairsfastq, p1, p2)
    except ValueError as e:
        logging.error(e)
        sys.exit(1)

    logging.debug(
        "A total of {0} pairs written to `{1}` and `{2}`.".format(npairs, p1, p2)
    )
    return p1, p2


def shuffle(args):
    """
    %prog shuffle p1.fastq p2.fastq

    Shuffle pairs into interleaved format.
    """
    p = OptionParser(shuffle.__doc__)
    p.set_tag()
    p.set_outfile(outfile=None)
    opts, args = p.parse_args(args)

    if len(args) != 2:
        sys.exit(not p.print_help())

    p1, p2 = args
    pairsfastq = opts.outfile or pairspf((p1, p2)) + ".fastq"
    tag = opts.tag

    p1fp = must_open(p1)
    p2fp = must_open(p2)
    pairsfw = must_open(pairsfastq, "w")
    nreads = 0
    it2 = FastqGeneralIterator(p2fp)
    for a in FastqGeneralIterator(p1fp):
        b = next(it2, None)
        if b is None:
            logging.error("`{0}` has fewer reads than `{1}`".format(p2, p1))
            sys.exit(1)
        if tag:
            name = a[0].split(None, 1)[0]
            a = (name + "/1",) + a[1:]
            b = (name + "/2",) + b[1:]

        write_record(pairsfw, *a)
        write_record(pairsfw, *b)
        nreads += 2

    if next(it2, None) is not None:
        logging.error("`{0}` has more reads than `{1}`".format(p2, p1))
        sys.exit(1)

    p1fp.close()
    p2fp.close()
    pairsfw.close()

    logging.debug("File `{0}` written with {1} reads.".format(pairsfastq, nreads))
    return pairsfastq


if __name__ == "__main__":
    main()
