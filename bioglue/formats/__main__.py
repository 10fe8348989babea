#!/usr/bin/env python
# -*- coding: UTF-8 -*-
"""
Converters between bioinformatics file formats: HMMER tables, GenBank, FASTQ, chain, VCF, etc.
"""

from bioglue.apps.base import dmain


if __name__ == "__main__":
    dmain(__file__)
