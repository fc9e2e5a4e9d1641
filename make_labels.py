#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Validate barcodes and generate printable label sheets.
"""

import sys

import barcode_label_engine.cli


if __name__ == "__main__":
	sys.exit(barcode_label_engine.cli.main())
