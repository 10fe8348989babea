#!/usr/bin/env python
# -*- coding: UTF-8 -*-

"""
Introduce variants from a VCF/BCF file into a reference genome.

Variants are streamed in coordinate order. One candidate is applied per
position, optionally sub-sampled to reach a target mutation rate of 1 in N
bases. Sequences are mutated one at a time and written as soon as the
variants move on to the next sequence; reference sequences without any
variant are written unchanged at the end.
"""
import os.path as op
import sys
import logging
import random

from itertools import groupby
from typing import Iterable, List, Optional

from bioglue.formats.base import must_open
from bioglue.formats.fasta import Fasta, write_fasta
from bioglue.formats.vcf import VariantRecord, count_variants, iter_variants
from bioglue.apps.base import OptionParser, ActionDispatcher, mkdir
from bioglue.utils.cbook import thousands


IUPAC = {
    "A": "A",
    "C": "C",
    "G": "G",
    "T": "T",
    "U": "T",
    "R": "AG",
    "Y": "CT",
    "S": "CG",
    "W": "AT",
    "K": "GT",
    "M": "AC",
    "B": "CGT",
    "D": "AGT",
    "H": "ACT",
    "V": "ACG",
    "N": "ACGT",
}
IUPAC.update({k.lower(): v.lower() for k, v in list(IUPAC.items())})


class MutationRateError(ValueError):
    pass


def expand_ambiguity(base):
    """
    Concrete bases represented by one IUPAC code, empty for anything else.

    >>> sorted(expand_ambiguity("R"))
    ['A', 'G']
    """
    return set(IUPAC.get(base, ""))


def sampling_probability(reflen, nvariants, rate=None):
    """
    Fraction of variant positions to apply so that about one base in `rate`
    gets mutated. Without a rate every position is applied.
    """
    if rate is None:
        return 1.0
    if rate <= 0:
        raise MutationRateError("Mutation rate must be positive, got {0}".format(rate))
    if nvariants == 0:
        raise MutationRateError("No variants available to reach 1 in {0}".format(rate))

    density = reflen / nvariants
    probability = density / rate
    if probability > 1:
        raise MutationRateError(
            "Rate 1 in {0} is finer than the variant density (1 in {1:.1f})".format(
                rate, density
            )
        )
    return probability


def should_apply(draw, probability):
    return draw <= probability


def snp_candidates(ref, alts):
    """
    Bases that an alternate allele could put in place of `ref`, sorted.

    >>> snp_candidates("A", ["R"])
    ['G']
    """
    bases = set()
    for alt in alts:
        bases |= expand_ambiguity(alt)
    bases.discard(ref)
    return sorted(bases)


def is_nucleotide(allele):
    return bool(allele) and all(x in IUPAC for x in allele)


class MutationContext(object):
    """
    The single sequence being mutated, with the offset between reference
    coordinates and positions in the edited buffer.
    """

    def __init__(self, seqid, sequence):
        self.seqid = seqid
        self.buffer = bytearray(sequence, "ascii")
        self.offset = 0
        # Last reference position removed by an applied deletion
        self.shadow_end = 0
        self.napplied = 0

    def __len__(self):
        return len(self.buffer)

    @property
    def sequence(self):
        return self.buffer.decode("ascii")

    def index(self, pos):
        return pos - 1 + self.offset

    def is_shadowed(self, pos):
        return pos <= self.shadow_end

    def substitute(self, pos, base):
        i = self.index(pos)
        self.buffer[i : i + 1] = base.encode("ascii")
        self.napplied += 1

    def replace(self, pos, ref, alt):
        i = self.index(pos)
        self.buffer[i : i + len(ref)] = alt.encode("ascii")
        delta = len(alt) - len(ref)
        self.offset += delta
        if delta < 0:
            self.shadow_end = max(self.shadow_end, pos + len(ref) - 1)
        self.napplied += 1
        return delta


class VariantApplier(object):
    """
    Decide whether and how a group of records at one position mutates the
    working sequence.
    """

    def __init__(self, probability=1.0, rng=None):
        self.probability = probability
        self.rng = rng or random.Random()
        self.nskipped = 0

    def apply(self, context: MutationContext, records: List[VariantRecord]) -> bool:
        pos = records[0].pos
        if context.is_shadowed(pos):
            logging.debug("{0}:{1} falls in a deleted span".format(context.seqid, pos))
            self.nskipped += 1
            return False

        if not should_apply(self.rng.random(), self.probability):
            return False

        v = self.rng.choice(records)
        if context.index(pos) >= len(context):
            logging.debug("{0}:{1} beyond sequence end".format(context.seqid, pos))
            self.nskipped += 1
            return False

        if v.is_snp:
            if not is_nucleotide(v.ref):
                logging.debug(
                    "{0}:{1} has an unknown reference base".format(context.seqid, pos)
                )
                self.nskipped += 1
                return False
            bases = snp_candidates(v.ref, v.alts)
            if not bases:
                self.nskipped += 1
                return False
            context.substitute(pos, self.rng.choice(bases))
            return True

        alts = [x for x in v.alts if is_nucleotide(x)]
        if not alts or not is_nucleotide(v.ref):
            logging.debug("{0}:{1} has no usable allele".format(context.seqid, pos))
            self.nskipped += 1
            return False
        context.replace(pos, v.ref, self.rng.choice(alts))
        return True


class ConsensusBuilder(object):
    """
    Keep at most one working sequence alive, flush it when the variants move
    to another sequence, then write all untouched sequences.
    """

    def __init__(self, store: Fasta, fw, applier: VariantApplier):
        self.store = store
        self.fw = fw
        self.applier = applier
        self.context: Optional[MutationContext] = None
        self.emitted = set()

    def activate(self, seqid):
        self.flush()
        if seqid in self.emitted:
            raise ValueError(
                "Variants on `{0}` are not contiguous, sort the input".format(seqid)
            )
        self.context = MutationContext(seqid, self.store.fetch(seqid))

    def flush(self):
        context = self.context
        if context is None:
            return
        write_fasta(self.fw, context.seqid, context.sequence)
        logging.debug(
            "{0}: {1} variants applied, {2} bp -> {3} bp".format(
                context.seqid,
                context.napplied,
                self.store.length(context.seqid),
                len(context),
            )
        )
        self.emitted.add(context.seqid)
        self.context = None

    def run(self, variants: Iterable[VariantRecord]):
        napplied = 0
        lastpos = 0
        for (seqid, pos), records in groupby(variants, key=lambda v: (v.seqid, v.pos)):
            if self.context is None or self.context.seqid != seqid:
                self.activate(seqid)
                lastpos = 0
            if pos < lastpos:
                raise ValueError(
                    "Variants on `{0}` are not sorted at {1}".format(seqid, pos)
                )
            lastpos = pos
            napplied += self.applier.apply(self.context, list(records))
        self.flush()

        nuntouched = 0
        for seqid in self.store.keys():
            if seqid in self.emitted:
                continue
            write_fasta(self.fw, seqid, self.store.fetch(seqid))
            self.emitted.add(seqid)
            nuntouched += 1

        logging.debug(
            "{0} positions mutated, {1} sequences written unchanged".format(
                napplied, nuntouched
            )
        )
        return napplied


def build_consensus(fastafile, variantsfile, outfile="stdout", rate=None, seed=None):
    """
    Apply the variants listed in `variantsfile` (CHROM POS REF ALT, or VCF)
    to `fastafile` and write the result to `outfile`.
    """
    store = Fasta(fastafile)
    # Streams cannot be read twice, count and apply from one pass
    if str(variantsfile) in ("-", "stdin"):
        variants = list(iter_variants(variantsfile))
        nvariants = len(variants)
    else:
        variants = None
        nvariants = count_variants(variantsfile)
    probability = sampling_probability(store.totalsize, nvariants, rate=rate)
    logging.debug(
        "{0} variants over {1} bp, sampling probability {2:.4g}".format(
            thousands(nvariants), thousands(store.totalsize), probability
        )
    )
    if variants is None:
        variants = iter_variants(variantsfile)

    applier = VariantApplier(probability=probability, rng=random.Random(seed))
    fw = must_open(outfile, "w")
    try:
        builder = ConsensusBuilder(store, fw, applier)
        napplied = builder.run(variants)
    finally:
        if fw is not sys.stdout:
            fw.close()
        store.close()
    return napplied


def main():

    actions = (("mutate", "introduce variants from VCF/BCF into reference fasta"),)
    p = ActionDispatcher(actions)
    p.dispatch(globals())


def mutate(args):
    """
    %prog mutate reference.fasta variants.bcf

    Introduce variants into the reference. Variants are pulled from the VCF/BCF
    file with `bcftools query`, a four-column file (CHROM POS REF ALT) is also
    accepted. Use --rate to sub-sample variants to mutate about one base in N.
    """
    from bioglue.formats.vcf import query_variants

    p = OptionParser(mutate.__doc__)
    p.add_option(
        "--rate",
        type="int",
        help="Target mutation rate, one mutation per N bases "
        "[default: apply every variant]",
    )
    p.add_option("--include", help="bcftools filtering expression, e.g. 'QUAL>30'")
    p.set_seed()
    p.set_tmpdir(tmpdir="consensus_work")
    p.set_outfile()
    opts, args = p.parse_args(args)

    if len(args) != 2:
        sys.exit(not p.print_help())

    fastafile, vcffile = args
    if vcffile.endswith((".vcf", ".vcf.gz", ".bcf")):
        mkdir(opts.tmpdir)
        pf = op.basename(vcffile).split(".")[0]
        variantsfile = op.join(opts.tmpdir, pf + ".variants.tsv")
        query_variants(vcffile, variantsfile, include=opts.include)
    else:
        variantsfile = vcffile

    try:
        napplied = build_consensus(
            fastafile,
            variantsfile,
            outfile=opts.outfile,
            rate=opts.rate,
            seed=opts.seed,
        )
    except MutationRateError as e:
        logging.error(e)
        sys.exit(1)

    logging.debug("Consensus written to `{0}`.".format(opts.outfile))
    return napplied


if __name__ == "__main__":
    main()
