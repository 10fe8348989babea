#!/usr/bin/env python
# -*- coding: UTF-8 -*-
"""
Collection of scripts to run and parse non-coding RNA gene predictors.
"""

from bioglue.apps.base import dmain


if __name__ == "__main__":
    dmain(__file__)
