#!/usr/bin/env python
# -*- coding: UTF-8 -*-

"""
Predict tRNA and tmRNA genes with ARAGORN, and convert its batch output
(`-w`) to GFF3, TSV or FASTA.

Batch output looks like:

>contig_1
2 genes found
1   tRNA-Ala               [1023,1098]      34      (tgc)
2   tmRNA                 c[5210,5572]      90,125  ANDENYALAA*
"""
import os.path as op
import re
import sys
import logging

from Bio.Seq import reverse_complement

from bioglue.formats.base import must_open, read_block
from bioglue.formats.fasta import Fasta, write_fasta
from bioglue.formats.sizes import Sizes
from bioglue.apps.base import OptionParser, ActionDispatcher, getpath, sh, need_update


ARAGORN_URL = "http://www.ansikte.se/ARAGORN/"
TSV_FIELDS = (
    "gene_id",
    "seqid",
    "start",
    "end",
    "strand",
    "type",
    "amino_acid",
    "anticodon_or_tag",
    "length",
)

location = r"(c?)\[(-?\d+),(\d+)\]"
trna_pat = re.compile(r"^\d+\s+(m?tRNA)-(\S+)\s+" + location + r"\s+\S+\s+\(([^)]+)\)")
tmrna_pat = re.compile(r"^\d+\s+(tmRNA\*?)\s+" + location + r"\s+\S+\s+(\S+)")


class TrnaFeature(object):
    def __init__(self, seqid, idx, type, strand, start, end, aa, anticodon):
        self.seqid = seqid
        self.idx = idx
        self.type = type
        self.strand = strand
        self.start = start
        self.end = end
        self.aa = aa
        # Anticodon for tRNA, tag peptide for tmRNA
        self.anticodon = anticodon

    def __str__(self):
        return "\t".join(str(x) for x in self.tsv_row)

    def __len__(self):
        return self.end - self.start + 1

    @property
    def gene_id(self):
        return "{0}_{1}_{2}".format(self.seqid, self.type, self.idx)

    @property
    def name(self):
        return "{0}-{1}".format(self.type, self.aa) if self.aa else self.type

    @property
    def tsv_row(self):
        return (
            self.gene_id,
            self.seqid,
            self.start,
            self.end,
            self.strand,
            self.type,
            self.aa,
            self.anticodon,
            len(self),
        )

    def gffline(self, size=None):
        """
        GFF3 line of the feature. A feature across the origin of a circular
        sequence of length `size` starts near the end and runs past `size`;
        without `size` its start is clamped to 1.
        """
        start, end = self.start, self.end
        if start < 1:
            if size:
                start, end = start + size, end + size
            else:
                logging.warning(
                    "{0} spans the origin, start clamped to 1".format(self.gene_id)
                )
                start = 1
        attributes = "ID={0};Name={1}".format(self.gene_id, self.name)
        if self.type == "tmRNA":
            attributes += ";tag_peptide={0}".format(self.anticodon)
        else:
            attributes += ";anticodon={0}".format(self.anticodon)
        return "\t".join(
            str(x)
            for x in (
                self.seqid,
                "aragorn",
                self.type,
                start,
                end,
                ".",
                self.strand,
                ".",
                attributes,
            )
        )


def parse_line(seqid, row):
    """
    Parse one gene line of ARAGORN batch output, returns None if the line
    does not describe a gene.

    >>> f = parse_line("chr1", "1   tRNA-Ala   c[10,82]   34   (tgc)")
    >>> f.strand, f.start, f.end, f.aa, f.anticodon
    ('-', 10, 82, 'Ala', 'tgc')
    """
    row = row.strip()
    m = trna_pat.match(row)
    if m:
        type, aa, c, start, end, anticodon = m.groups()
        tag = anticodon
    else:
        m = tmrna_pat.match(row)
        if not m:
            return None
        type, c, start, end, tag = m.groups()
        type, aa = "tmRNA", ""
        tag = tag.rstrip("*")

    idx = int(row.split()[0])
    strand = "-" if c == "c" else "+"
    return TrnaFeature(seqid, idx, type, strand, int(start), int(end), aa, tag)


def iter_aragorn(filename):
    fp = must_open(filename)
    for header, lines in read_block(fp, ">"):
        if header is None:
            continue
        seqid = header[1:].split()[0]
        for row in lines:
            f = parse_line(seqid, row)
            if f is not None:
                yield f
    fp.close()


def feature_sequence(fasta, f):
    """
    Sequence of one feature, on the strand of the feature. ARAGORN reports
    features spanning the origin of circular sequences with start < 1.
    """
    if f.start < 1:
        size = fasta.length(f.seqid)
        seq = fasta.subseq(f.seqid, size + f.start, size) + fasta.subseq(
            f.seqid, 1, f.end
        )
    else:
        seq = fasta.subseq(f.seqid, f.start, f.end)
    if f.strand == "-":
        seq = reverse_complement(seq)
    return seq


def write_features(features, outfile, format="gff", sizes=None):
    sizes = sizes or {}
    fw = must_open(outfile, "w")
    if format == "gff":
        print("##gff-version 3", file=fw)
        for f in features:
            print(f.gffline(size=sizes.get(f.seqid)), file=fw)
    else:
        print("\t".join(TSV_FIELDS), file=fw)
        for f in features:
            print(f, file=fw)
    if fw is not sys.stdout:
        fw.close()
    logging.debug(
        "A total of {0} features written to `{1}`.".format(len(features), outfile)
    )
    return len(features)


def write_sequences(features, fastafile, outfile):
    fasta = Fasta(fastafile)
    fw = must_open(outfile, "w")
    for f in features:
        write_fasta(fw, f.gene_id, feature_sequence(fasta, f))
    fw.close()
    fasta.close()
    return outfile


def main():

    actions = (
        ("aragorn", "predict tRNA and tmRNA genes with ARAGORN"),
        ("extract", "convert ARAGORN batch output to GFF3/TSV/FASTA"),
    )
    p = ActionDispatcher(actions)
    p.dispatch(globals())


def set_extract_options(p):
    p.add_option(
        "--format",
        default="gff",
        choices=("gff", "tsv"),
        help="Output format",
    )
    p.add_option("--fasta", help="Write the gene sequences to this fasta file")


def run_aragorn(fastafile, outfile, tmrna=False, gcode=11):
    if not need_update(fastafile, outfile):
        logging.debug("File `{0}` exists. ARAGORN skipped.".format(outfile))
        return outfile

    aragorn = getpath("aragorn", url=ARAGORN_URL)
    cmd = "{0} -t".format(aragorn)
    if tmrna:
        cmd += " -m"
    cmd += " -gc{0} -w {1}".format(gcode, fastafile)
    sh(cmd, outfile=outfile, check=True)
    return outfile


def aragorn(args):
    """
    %prog aragorn genome.fasta

    Run ARAGORN on the genome and convert the predictions to GFF3. Writes the
    raw batch output to `genome.aragorn`.
    """
    p = OptionParser(aragorn.__doc__)
    p.add_option(
        "--tmrna",
        default=False,
        action="store_true",
        help="Also search tmRNA genes",
    )
    p.add_option("--gcode", default=11, type="int", help="Genetic code table")
    set_extract_options(p)
    p.set_outfile(outfile=None)
    opts, args = p.parse_args(args)

    if len(args) != 1:
        sys.exit(not p.print_help())

    (fastafile,) = args
    pf = op.basename(fastafile).rsplit(".", 1)[0]
    aragornfile = pf + ".aragorn"
    run_aragorn(fastafile, aragornfile, tmrna=opts.tmrna, gcode=opts.gcode)

    ext = "gff3" if opts.format == "gff" else "tsv"
    outfile = opts.outfile or "{0}.trna.{1}".format(pf, ext)
    features = list(iter_aragorn(aragornfile))
    write_features(
        features, outfile, format=opts.format, sizes=Sizes(fastafile).mapping
    )
    if opts.fasta:
        write_sequences(features, fastafile, opts.fasta)
    return outfile


def extract(args):
    """
    %prog extract genome.aragorn

    Convert ARAGORN batch output (-w) to GFF3 or TSV. With --fasta, the
    gene sequences are cut from the genome given with --genome.
    """
    p = OptionParser(extract.__doc__)
    set_extract_options(p)
    p.add_option("--genome", help="Genome fasta file that ARAGORN was run on")
    p.set_outfile()
    opts, args = p.parse_args(args)

    if len(args) != 1:
        sys.exit(not p.print_help())

    (aragornfile,) = args
    if opts.fasta and not opts.genome:
        logging.error("--fasta requires --genome")
        sys.exit(1)

    features = list(iter_aragorn(aragornfile))
    sizes = Sizes(opts.genome).mapping if opts.genome else None
    write_features(features, opts.outfile, format=opts.format, sizes=sizes)
    if opts.fasta:
        write_sequences(features, opts.genome, opts.fasta)
    return features


if __name__ == "__main__":
    main()
