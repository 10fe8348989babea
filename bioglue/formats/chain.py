#!/usr/bin/env python
# -*- coding: UTF-8 -*-

"""
Create the UCSC chain file which is needed to lift over from one coordinate
system to another, and lift GFF annotations with it.

File format:
<http://genome.ucsc.edu/goldenPath/help/chain.html>

chain 4900 chrY 58368225 + 25985403 25985638 chr5 151006098 - 43257292 43257528 1
  9       1       0
  10      0       5
  48

Header Line:
 chain score tName tSize tStrand tStart tEnd qName qSize qStrand qStart qEnd id
Alignment Data Lines
 size dt dq

NOTE: The last line of the alignment section contains only one number: the ungapped
alignment size of the last block.
"""
import os.path as op
import sys
import logging

from bioglue.formats.base import BaseFile, read_block
from bioglue.formats.sizes import Sizes
from bioglue.apps.base import OptionParser, ActionDispatcher, sh, need_update, which


class ChainLine(object):
    def __init__(self, chain, lines):
        self.chain = chain
        self.blocks = []
        for line in lines:
            atoms = line.split()
            if len(atoms) == 1:
                atoms += [0, 0]
            if len(atoms) == 0:
                continue

            self.blocks.append([int(x) for x in atoms])

        self.ungapped, self.dt, self.dq = zip(*self.blocks)
        self.ungapped = sum(self.ungapped)
        self.dt = sum(self.dt)
        self.dq = sum(self.dq)


class Chain(BaseFile):
    def __init__(self, filename):
        super(Chain, self).__init__(filename)
        self.chains = list(self.iter_chain())

        self.ungapped = sum(x.ungapped for x in self.chains)
        self.dt = sum(x.dt for x in self.chains)
        self.dq = sum(x.dq for x in self.chains)

    def __len__(self):
        return len(self.chains)

    def iter_chain(self):
        fp = open(self.filename)
        for chain, lines in read_block(fp, "chain"):
            if chain is None:
                continue
            yield ChainLine(chain, lines)
        fp.close()


def main():

    actions = (
        ("blat", "generate PSL file using BLAT"),
        ("frompsl", "generate chain file from PSL format"),
        ("liftover", "lift GFF annotations from old to new assembly"),
        ("summary", "provide stats of the chain file"),
    )
    p = ActionDispatcher(actions)
    p.dispatch(globals())


def summary(args):
    """
    %prog summary old.new.chain old.fasta new.fasta

    Provide stats of the chain file.
    """
    from bioglue.utils.cbook import percentage, human_size

    p = OptionParser(summary.__doc__)
    opts, args = p.parse_args(args)

    if len(args) != 3:
        sys.exit(not p.print_help())

    chainfile, oldfasta, newfasta = args
    chain = Chain(chainfile)
    ungapped, dt, dq = chain.ungapped, chain.dt, chain.dq
    print(
        "File `{0}` contains {1} chains.".format(chainfile, len(chain)), file=sys.stderr
    )
    print(
        "ungapped={0} dt={1} dq={2}".format(
            human_size(ungapped), human_size(dt), human_size(dq)
        ),
        file=sys.stderr,
    )

    oldreal = Sizes(oldfasta).totalsize
    print(
        "Old fasta (`{0}`) mapped: {1}".format(oldfasta, percentage(ungapped, oldreal)),
        file=sys.stderr,
    )

    newreal = Sizes(newfasta).totalsize
    print(
        "New fasta (`{0}`) mapped: {1}".format(newfasta, percentage(ungapped, newreal)),
        file=sys.stderr,
    )
    return chain


def faToTwoBit(fastafile):
    twobitfile = fastafile.rsplit(".", 1)[0] + ".2bit"
    cmd = "faToTwoBit {0} {1}".format(fastafile, twobitfile)
    if need_update(fastafile, twobitfile):
        sh(cmd, check=True)
    return twobitfile


def run_blat(oldfasta, newfasta, minscore=100, minid=98, cpus=1):
    """
    Align the new assembly (query) onto the old one (target), returns the
    name of the PSL file.
    """
    oldtwobit = faToTwoBit(oldfasta)
    faToTwoBit(newfasta)

    pslfile = "{0}.{1}.psl".format(
        *(op.basename(x).split(".")[0] for x in (newfasta, oldfasta))
    )
    if not need_update((oldfasta, newfasta), pslfile):
        logging.debug("File `{0}` exists. Alignment skipped.".format(pslfile))
        return pslfile

    cmd = "pblat -threads={0}".format(cpus) if which("pblat") else "blat"
    cmd += " {0} {1}".format(oldtwobit, newfasta)
    cmd += " -tileSize=12 -minScore={0} -minIdentity={1} ".format(minscore, minid)
    cmd += pslfile
    sh(cmd, check=True)
    return pslfile


def psl_to_chain(pslfile, oldfasta, newfasta):
    """
    Minimal steps for liftOver:
    <http://genomewiki.ucsc.edu/index.php/Minimal_Steps_For_LiftOver>
    """
    pf = oldfasta.rsplit(".", 1)[0]

    # Chain together alignments from using axtChain
    chainfile = pf + ".chain"
    oldtwobit = faToTwoBit(oldfasta)
    newtwobit = faToTwoBit(newfasta)

    if need_update(pslfile, chainfile):
        cmd = "axtChain -linearGap=medium -psl {0}".format(pslfile)
        cmd += " {0} {1} {2}".format(oldtwobit, newtwobit, chainfile)
        sh(cmd, check=True)

    # Sort chain files
    sortedchain = pf + ".sorted.chain"
    if need_update(chainfile, sortedchain):
        cmd = "chainSort {0} {1}".format(chainfile, sortedchain)
        sh(cmd, check=True)

    # Make alignment nets from chains
    netfile = pf + ".net"
    oldsizes = Sizes(oldfasta).filename
    newsizes = Sizes(newfasta).filename
    if need_update((sortedchain, oldsizes, newsizes), netfile):
        cmd = "chainNet {0} {1} {2}".format(sortedchain, oldsizes, newsizes)
        cmd += " {0} /dev/null".format(netfile)
        sh(cmd, check=True)

    # Create liftOver chain file
    liftoverfile = pf + ".liftover.chain"
    if need_update((netfile, sortedchain), liftoverfile):
        cmd = "netChainSubset {0} {1} {2}".format(netfile, sortedchain, liftoverfile)
        sh(cmd, check=True)

    return liftoverfile


def lift_gff(gfffile, chainfile, minmatch=None):
    """
    Run `liftOver -gff`, returns the lifted and the unmapped file names.
    """
    pf = gfffile.rsplit(".", 1)[0]
    liftedfile = pf + ".lifted.gff"
    unmappedfile = pf + ".unmapped"
    if need_update((gfffile, chainfile), liftedfile):
        cmd = "liftOver -gff"
        if minmatch:
            cmd += " -minMatch={0}".format(minmatch)
        cmd += " {0} {1} {2} {3}".format(gfffile, chainfile, liftedfile, unmappedfile)
        sh(cmd, check=True)
    return liftedfile, unmappedfile


def set_blat_options(p):
    p.add_option(
        "--minscore",
        default=100,
        type="int",
        help="Matches minus mismatches gap penalty",
    )
    p.add_option(
        "--minid",
        default=98,
        type="int",
        help="Minimum sequence identity",
    )
    p.set_cpus()


def blat(args):
    """
    %prog blat old.fasta new.fasta

    Generate psl file using blat.
    """
    p = OptionParser(blat.__doc__)
    set_blat_options(p)
    opts, args = p.parse_args(args)

    if len(args) != 2:
        sys.exit(not p.print_help())

    oldfasta, newfasta = args
    return run_blat(
        oldfasta, newfasta, minscore=opts.minscore, minid=opts.minid, cpus=opts.cpus
    )


def frompsl(args):
    """
    %prog frompsl old.new.psl old.fasta new.fasta

    Generate chain file from psl file. The pipeline is describe in:
    <http://genomewiki.ucsc.edu/index.php/Minimal_Steps_For_LiftOver>
    """
    p = OptionParser(frompsl.__doc__)
    opts, args = p.parse_args(args)

    if len(args) != 3:
        sys.exit(not p.print_help())

    pslfile, oldfasta, newfasta = args
    return psl_to_chain(pslfile, oldfasta, newfasta)


def liftover(args):
    """
    %prog liftover old.fasta new.fasta old.gff

    Lift the GFF annotations of the old assembly onto the new assembly: blat,
    build the chain file, then liftOver. Features that cannot be lifted are
    written to `old.unmapped`.
    """
    p = OptionParser(liftover.__doc__)
    set_blat_options(p)
    p.add_option(
        "--minmatch",
        type="float",
        help="Minimum ratio of bases that must remap, passed to liftOver",
    )
    opts, args = p.parse_args(args)

    if len(args) != 3:
        sys.exit(not p.print_help())

    oldfasta, newfasta, gfffile = args
    pslfile = run_blat(
        oldfasta, newfasta, minscore=opts.minscore, minid=opts.minid, cpus=opts.cpus
    )
    chainfile = psl_to_chain(pslfile, oldfasta, newfasta)
    liftedfile, unmappedfile = lift_gff(gfffile, chainfile, minmatch=opts.minmatch)
    logging.debug(
        "Lifted features written to `{0}`, unmapped to `{1}`.".format(
            liftedfile, unmappedfile
        )
    )
    return liftedfile


if __name__ == "__main__":
    main()
