#!/usr/bin/env python
# -*- coding: UTF-8 -*-

import sys
import logging

from collections import OrderedDict
from itertools import groupby

from bioglue.apps.base import popen


FastaExt = ("fasta", "fa", "fna", "cds", "pep", "faa", "fsa", "seq", "nt", "aa")


class BaseFile(object):
    def __init__(self, filename):

        self.filename = filename
        if filename:
            logging.debug("Load file `{0}`".format(filename))


class LineFile(BaseFile, list):
    """
    Generic file parser for line-based files
    """

    def __init__(self, filename):

        super(LineFile, self).__init__(filename)


class DictFile(BaseFile, OrderedDict):
    """
    Generic file parser for multi-column files, keyed by a particular index.
    """

    def __init__(
        self,
        filename,
        keypos=0,
        valuepos=1,
        delimiter=None,
        strict=True,
        keycast=None,
        cast=None,
    ):

        BaseFile.__init__(self, filename)
        OrderedDict.__init__(self)
        self.keypos = keypos

        fp = must_open(filename)
        ncols = (max(keypos, valuepos) if valuepos else keypos) + 1
        thiscols = 0
        for lineno, row in enumerate(fp):
            row = row.rstrip()
            atoms = row.split(delimiter)
            atoms = [x.strip() for x in atoms]
            thiscols = len(atoms)
            if thiscols < ncols:
                action = "Aborted" if strict else "Skipped"

                msg = "Must contain >= {0} columns.  {1}.\n".format(ncols, action)
                msg += "  --> Line {0}: {1}".format(lineno + 1, row)
                logging.error(msg)
                if strict:
                    sys.exit(1)
                else:
                    continue

            key = atoms[keypos]
            value = atoms[valuepos] if (valuepos is not None) else atoms
            if keycast:
                key = keycast(key)
            if cast:
                value = cast(value)
            self[key] = value

        assert thiscols, "File empty"
        self.ncols = thiscols
        logging.debug("Imported {0} records from `{1}`.".format(len(self), filename))


def must_open(filename, mode="r"):
    """
    Accepts filename and returns filehandle.

    Checks on stdin/stdout/stderr, .gz or .bz2 file.
    """
    filename = str(filename)
    if filename in ("-", "stdin"):
        assert "r" in mode
        fp = sys.stdin

    elif filename == "stdout":
        assert "w" in mode
        fp = sys.stdout

    elif filename == "stderr":
        assert "w" in mode
        fp = sys.stderr

    elif filename == "tmp" and mode == "w":
        from tempfile import NamedTemporaryFile

        fp = NamedTemporaryFile(mode=mode, delete=False)

    elif filename.endswith(".gz"):
        import gzip

        fp = gzip.open(filename, mode + "t")

    elif filename.endswith(".bz2"):
        if "r" in mode:
            cmd = "bzcat {0}".format(filename)
            fp = popen(cmd, debug=False)
        elif "w" in mode:
            import bz2

            fp = bz2.open(filename, mode + "t")

    else:
        fp = open(filename, mode)

    return fp


def write_file(filename, contents, append=False):
    fw = must_open(filename, "a" if append else "w")
    print(contents.strip(), file=fw)
    fw.close()

    fileop = "appended" if append else "written"
    logging.debug("File {0} to `{1}`.".format(fileop, filename))


def read_block(handle, signal):
    """
    Useful for reading block-like file formats, for example FASTA or ARAGORN
    batch output, such file usually startswith some signal, and in-between
    the signals are a record
    """
    signal_len = len(signal)
    it = (
        x[1]
        for x in groupby(handle, key=lambda row: row.strip()[:signal_len] == signal)
    )
    found_signal = False
    for header in it:
        header = list(header)
        for h in header[:-1]:
            h = h.strip()
            if h[:signal_len] != signal:
                continue
            yield h, []  # Header only, no contents
        header = header[-1].strip()
        if header[:signal_len] != signal:
            continue
        found_signal = True
        seq = list(s.strip() for s in next(it, []))
        yield header, seq

    if not found_signal:
        handle.seek(0)
        seq = list(s.strip() for s in handle)
        yield None, seq


def is_number(s, cast=float):
    """
    Check if a string is a number. Use cast=int to check if s is an integer.
    """
    try:
        cast(s)  # for int, long and float
    except ValueError:
        return False

    return True
