#!/usr/bin/env python
# -*- coding: UTF-8 -*-
"""
Set of scripts relating to variation studies, such as building consensus genomes from variant calls.
"""

from bioglue.apps.base import dmain


if __name__ == "__main__":
    dmain(__file__)
