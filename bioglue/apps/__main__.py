#!/usr/bin/env python
# -*- coding: UTF-8 -*-
"""
Wrappers for command-line assemblers and the shared script scaffolding.
"""

from bioglue.apps.base import dmain


if __name__ == "__main__":
    dmain(__file__)
