"""
Random access to indexed FASTA files (pyfaidx), and wrapped FASTA output
"""
import logging

from Bio.Seq import Seq
from Bio.SeqIO.FastaIO import FastaWriter
from Bio.SeqRecord import SeqRecord
from pyfaidx import Fasta as FaidxFasta

from bioglue.formats.base import BaseFile
from bioglue.formats.sizes import Sizes


FASTA_WIDTH = 80


class Fasta(BaseFile):
    """
    Read-only sequence store backed by `filename.fai`. Lengths come from the
    index, sequences are fetched on demand.
    """

    def __init__(self, filename):
        super(Fasta, self).__init__(filename)
        self.sizes = Sizes(filename)
        self.index = FaidxFasta(filename, as_raw=True)

    def __len__(self):
        return len(self.sizes)

    def __contains__(self, key):
        return key in self.sizes

    def keys(self):
        """
        Sequence ids in lexicographic order.
        """
        return sorted(self.sizes.keys())

    def length(self, key):
        return self.sizes[key]

    def fetch(self, key):
        if key not in self:
            raise KeyError("Sequence `{0}` not found in `{1}`".format(key, self.filename))
        return self.index[key][:]

    def subseq(self, key, start, end):
        """
        1-based, inclusive coordinates.
        """
        return self.index[key][start - 1 : end]

    @property
    def totalsize(self):
        return self.sizes.totalsize

    def close(self):
        self.index.close()


def write_fasta(fw, name, seq, width=FASTA_WIDTH):
    """
    Write one record with the sequence wrapped at `width` columns.
    """
    rec = SeqRecord(Seq(seq), id=name, description="")
    FastaWriter(fw, wrap=width).write_record(rec)
    logging.debug("Write `{0}` ({1} bp)".format(name, len(seq)))
