#!/usr/bin/env python3
"""
Contract Compiler entry point.

Usage: python contractc.py program.json [-o output.bin] [-d debug.json]
"""

from contractc.compiler import main

if __name__ == '__main__':
    main()
