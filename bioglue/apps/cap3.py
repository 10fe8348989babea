#!/usr/bin/env python
# -*- coding: UTF-8 -*-

"""
Run cap3 command
The whole pipeline is following CAP3 documentation at
<http://deepc2.psi.iastate.edu/aat/cap/capdoc.html>

CAP3 writes `<input>.<ext>.contigs` and `<input>.<ext>.singlets` next to
the input (ext set by `-x`); the action `assemble --merge` collects both into one FASTA file.
"""
import os
import os.path as op
import sys
import logging

from Bio import SeqIO

from bioglue.formats.base import must_open
from bioglue.apps.base import OptionParser, OptionGroup, ActionDispatcher, getpath, sh


CAP3_URL = "http://seq.cs.iastate.edu/cap3.html"


def main():

    actions = (("assemble", "wraps the cap3 assembly command"),)
    p = ActionDispatcher(actions)
    p.dispatch(globals())


def get_file_list(input_file=None, input_folder=None, input_file_list=None):
    """
    Resolve the three ways of specifying inputs into a list of FASTA files.
    """
    file_list = []
    if input_file_list:
        if not op.isfile(input_file_list):
            logging.error("Input file list {0} does not exist".format(input_file_list))
            sys.exit(1)
        with open(input_file_list, "r") as f:
            file_list = [x.strip() for x in f.read().splitlines() if x.strip()]
    elif input_folder:
        if not op.isdir(input_folder):
            logging.error("Input folder {0} does not exist".format(input_folder))
            sys.exit(1)

        folder = input_folder.rstrip("/")
        file_list = [
            folder + "/" + file
            for file in sorted(os.listdir(input_folder))
            if file.lower().endswith((".fa", ".fasta"))
        ]
    elif input_file:
        file_list.append(input_file)

    return file_list


def merge_outputs(fastafile, prefix="cap3"):
    """
    Concatenate contigs and singlets of one CAP3 run, renaming the contigs
    after the input so that several runs can be pooled.
    """
    pf = op.basename(fastafile).rsplit(".", 1)[0]
    contigsfile = "{0}.{1}.contigs".format(fastafile, prefix)
    singletsfile = "{0}.{1}.singlets".format(fastafile, prefix)
    outfile = "{0}.{1}.fasta".format(fastafile.rsplit(".", 1)[0], prefix)

    if not (op.exists(contigsfile) or op.exists(singletsfile)):
        logging.warning(
            "No CAP3 output found for `{0}`, see `{0}.{1}.log`".format(
                fastafile, prefix
            )
        )

    fw = must_open(outfile, "w")
    ncontigs = nsinglets = 0
    if op.exists(contigsfile):
        for rec in SeqIO.parse(contigsfile, "fasta"):
            rec.id = "{0}.{1}".format(pf, rec.id)
            rec.description = ""
            SeqIO.write([rec], fw, "fasta")
            ncontigs += 1
    if op.exists(singletsfile):
        for rec in SeqIO.parse(singletsfile, "fasta"):
            rec.description = ""
            SeqIO.write([rec], fw, "fasta")
            nsinglets += 1
    fw.close()

    logging.debug(
        "{0} contigs and {1} singlets written to `{2}`.".format(
            ncontigs, nsinglets, outfile
        )
    )
    return outfile


def assemble(args):
    """
    %prog assemble --input_file reads.fasta

    Run `cap3` on a single multi FASTA file containing reads or a folder containing several
    multi FASTA files. Allows for tweaking of `cap3` parameters max_gap_len, ovl_pct_id, etc.
    """
    p = OptionParser(assemble.__doc__)
    g1 = OptionGroup(
        p,
        "Input file options (required)",
        "Note: Please choose from and provide values for one of the following parameters",
    )
    g1.add_option("--input_file", default=None, help="input file of reads")
    g1.add_option(
        "--input_folder",
        default=None,
        help="input folder containing multi FASTA files of reads",
    )
    g1.add_option(
        "--input_file_list",
        default=None,
        help="list file containing paths to multi FASTA files of reads",
    )
    p.add_option_group(g1)

    g2 = OptionGroup(
        p, "Optional parameters", "Note: If not specified, `cap3` defaults will be used"
    )
    g2.add_option(
        "-f",
        "--max_gap_len",
        default=20,
        type="int",
        help="maximum gap length in any overlap\n" + "Same as cap3 `-f` parameter.",
    )
    g2.add_option(
        "-p",
        "--ovl_pct_id",
        default=90,
        type="int",
        help="overlap percent identity cutoff\n" + "Same as cap3 `-p` parameter.",
    )
    g2.add_option(
        "-s",
        "--ovl_sim_score",
        default=900,
        type="int",
        help="overlap similarity score cutoff\n" + "Same as cap3 `-s` parameter.",
    )
    g2.add_option(
        "-x",
        "--prefix",
        dest="prefix",
        default="cap3",
        help="prefix string for output file name",
    )
    g2.add_option(
        "--merge",
        default=False,
        action="store_true",
        help="collect contigs and singlets into `<input>.<prefix>.fasta`",
    )
    p.add_option_group(g2)

    p.set_params(prog="cap3")

    opts, args = p.parse_args(args)

    if opts.max_gap_len and opts.max_gap_len <= 1:
        logging.error("--max_gap_len should be > 1")
        sys.exit(1)
    elif opts.ovl_pct_id and opts.ovl_pct_id <= 65:
        logging.error("--ovl_pct_id should be > 65")
        sys.exit(1)
    elif opts.ovl_sim_score and opts.ovl_sim_score <= 250:
        logging.error("--ovl_sim_score should be > 250")
        sys.exit(1)

    if not (opts.input_file or opts.input_folder or opts.input_file_list):
        logging.error("Please specify one of the options for input files")
        sys.exit(not p.print_help())

    file_list = get_file_list(
        input_file=opts.input_file,
        input_folder=opts.input_folder,
        input_file_list=opts.input_file_list,
    )
    if len(file_list) == 0:
        logging.warning("List of files to process is empty. Please check your input!")
        sys.exit(1)

    cap3 = getpath("cap3", url=CAP3_URL)
    outfiles = []
    for file in file_list:
        if not op.isfile(file):
            logging.warning("Input file {0} does not exist".format(file))
            continue

        cmd = "{0} {1} -f {2} -p {3} -s {4} -x {5}".format(
            cap3,
            file,
            opts.max_gap_len,
            opts.ovl_pct_id,
            opts.ovl_sim_score,
            opts.prefix,
        )
        if opts.extra:
            cmd += " {0}".format(opts.extra)
        logfile = "{0}.{1}.log".format(file, opts.prefix)

        sh(cmd, outfile=logfile, check=True)
        if opts.merge:
            outfiles.append(merge_outputs(file, prefix=opts.prefix))

    return outfiles


if __name__ == "__main__":
    main()
