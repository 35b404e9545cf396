#!/usr/bin/env python3
"""
Wrapper script for the mosaic panorama tools.
Makes it easier to run without the -m flag.

Usage:
    python mosaic_panorama.py warp input.png warped.png 595
    python mosaic_panorama.py script panorama.cmd
"""

import sys
from mosaic.cli import main

if __name__ == '__main__':
    sys.exit(main())
