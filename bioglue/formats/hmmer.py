#!/usr/bin/env python
# -*- coding: UTF-8 -*-

"""
HMMER tabular output (--tblout and --domtblout), as written by hmmsearch and
hmmscan. Fields are whitespace delimited, the last field (description) may
contain spaces.
"""
import os.path as op
import sys
import logging

from bioglue.formats.base import LineFile, is_number, must_open
from bioglue.apps.base import OptionParser, ActionDispatcher, getpath, sh, need_update


TBLOUT_FIELDS = (
    "target_name",
    "target_accession",
    "query_name",
    "query_accession",
    "full_evalue",
    "full_score",
    "full_bias",
    "best_evalue",
    "best_score",
    "best_bias",
    "exp",
    "reg",
    "clu",
    "ov",
    "env",
    "dom",
    "rep",
    "inc",
    "description",
)

DOMTBLOUT_FIELDS = (
    "target_name",
    "target_accession",
    "target_len",
    "query_name",
    "query_accession",
    "query_len",
    "full_evalue",
    "full_score",
    "full_bias",
    "dom_num",
    "dom_of",
    "c_evalue",
    "i_evalue",
    "dom_score",
    "dom_bias",
    "hmm_from",
    "hmm_to",
    "ali_from",
    "ali_to",
    "env_from",
    "env_to",
    "acc",
    "description",
)

# Field used for --evalue and --best, per format
EVALUE_FIELD = {"tblout": "full_evalue", "domtblout": "i_evalue"}
SCORE_FIELD = {"tblout": "full_score", "domtblout": "dom_score"}


def guess_format(row):
    """
    A domtblout row has at least 22 columns, with sequence lengths in columns
    3 and 6 and the six coordinates in columns 16-21. Anything else is taken
    as a tblout row.
    """
    atoms = row.split()
    if len(atoms) < len(DOMTBLOUT_FIELDS) - 1:
        return "tblout"
    ints = [atoms[2], atoms[5]] + atoms[15:21]
    if all(is_number(x, cast=int) for x in ints):
        return "domtblout"
    return "tblout"


class HmmerLine(object):
    def __init__(self, row, format="tblout"):
        fields = DOMTBLOUT_FIELDS if format == "domtblout" else TBLOUT_FIELDS
        nfields = len(fields)
        atoms = row.rstrip("\r\n").split(None, nfields - 1)
        if len(atoms) < nfields - 1:
            raise ValueError(
                "Expect >= {0} columns in {1}: {2}".format(nfields - 1, format, row)
            )
        if len(atoms) == nfields - 1:
            atoms.append("-")

        self.format = format
        self.fields = fields
        self.atoms = [x.strip() for x in atoms]

    def __getattr__(self, name):
        fields = self.__dict__.get("fields", ())
        if name in fields:
            return self.atoms[fields.index(name)]
        raise AttributeError(name)

    def __str__(self):
        return "\t".join(self.atoms)

    @property
    def evalue(self):
        return float(getattr(self, EVALUE_FIELD[self.format]))

    @property
    def score(self):
        return float(getattr(self, SCORE_FIELD[self.format]))


class HmmerTable(LineFile):
    """
    Parse a --tblout or --domtblout file, format guessed from the first
    data line unless specified.
    """

    def __init__(self, filename, format=None):
        super(HmmerTable, self).__init__(filename)
        self.format = format
        fp = must_open(filename)
        for row in fp:
            if row[0] == "#" or not row.strip():
                continue
            if self.format is None:
                self.format = guess_format(row)
                logging.debug("Guessed format `{0}` for `{1}`".format(self.format, filename))
            self.append(HmmerLine(row, format=self.format))
        fp.close()
        self.format = self.format or "tblout"

    @property
    def fields(self):
        return DOMTBLOUT_FIELDS if self.format == "domtblout" else TBLOUT_FIELDS

    def filter(self, evalue=None, best=False):
        hits = [x for x in self if evalue is None or x.evalue <= evalue]
        if not best:
            return hits

        bestscores = {}
        order = []
        for h in hits:
            key = h.target_name
            if key not in bestscores:
                order.append(key)
                bestscores[key] = h
            elif h.score > bestscores[key].score:
                bestscores[key] = h
        return [bestscores[k] for k in order]


def write_tsv(table, outfile, evalue=None, best=False):
    hits = table.filter(evalue=evalue, best=best)
    fw = must_open(outfile, "w")
    print("\t".join(table.fields), file=fw)
    for h in hits:
        print(h, file=fw)
    if fw is not sys.stdout:
        fw.close()
    logging.debug(
        "{0} of {1} hits written to `{2}`.".format(len(hits), len(table), outfile)
    )
    return len(hits)


def main():

    actions = (
        ("totsv", "convert --tblout/--domtblout to TSV with header"),
        ("search", "run hmmsearch and convert the table to TSV"),
    )
    p = ActionDispatcher(actions)
    p.dispatch(globals())


def set_tsv_options(p):
    p.add_option("--evalue", type="float", help="Maximum E-value to report")
    p.add_option(
        "--best",
        default=False,
        action="store_true",
        help="Keep only the best scoring hit per target",
    )


def totsv(args):
    """
    %prog totsv hmmsearch.tbl

    Convert HMMER --tblout or --domtblout file to TSV with a header row. The
    format is detected from the number of columns.
    """
    p = OptionParser(totsv.__doc__)
    p.add_option(
        "--format",
        choices=("tblout", "domtblout"),
        help="Input table format",
    )
    set_tsv_options(p)
    p.set_outfile()
    opts, args = p.parse_args(args)

    if len(args) != 1:
        sys.exit(not p.print_help())

    (tblfile,) = args
    table = HmmerTable(tblfile, format=opts.format)
    return write_tsv(table, opts.outfile, evalue=opts.evalue, best=opts.best)


def search(args):
    """
    %prog search profile.hmm proteins.fasta

    Run hmmsearch, then convert the per-sequence (or per-domain with
    --domains) table to TSV.
    """
    p = OptionParser(search.__doc__)
    p.add_option(
        "--domains",
        default=False,
        action="store_true",
        help="Report per-domain hits (--domtblout)",
    )
    set_tsv_options(p)
    p.set_cpus()
    p.set_params(prog="hmmsearch")
    p.set_outfile(outfile=None)
    opts, args = p.parse_args(args)

    if len(args) != 2:
        sys.exit(not p.print_help())

    hmmfile, fastafile = args
    format = "domtblout" if opts.domains else "tblout"
    pf = "{0}.{1}".format(
        op.basename(fastafile).rsplit(".", 1)[0], op.basename(hmmfile).rsplit(".", 1)[0]
    )
    tblfile = "{0}.{1}".format(pf, format)
    outfile = opts.outfile or pf + ".tsv"

    if need_update((hmmfile, fastafile), tblfile):
        hmmsearch = getpath("hmmsearch", url="http://hmmer.org/")
        cmd = "{0} --cpu {1} --{2} {3}".format(hmmsearch, opts.cpus, format, tblfile)
        if opts.extra:
            cmd += " {0}".format(opts.extra)
        cmd += " {0} {1}".format(hmmfile, fastafile)
        sh(cmd, outfile="/dev/null", check=True)

    table = HmmerTable(tblfile, format=format)
    write_tsv(table, outfile, evalue=opts.evalue, best=opts.best)
    return outfile


if __name__ == "__main__":
    main()
