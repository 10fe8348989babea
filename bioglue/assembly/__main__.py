#!/usr/bin/env python
# -*- coding: UTF-8 -*-
"""
Post-processing of genome assemblies, such as fixing the start of circular contigs.
"""

from bioglue.apps.base import dmain


if __name__ == "__main__":
    dmain(__file__)
