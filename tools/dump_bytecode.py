#!/usr/bin/env python3
"""
Compiled script analyzer.
Lists instructions, optionally grouped by the methods of a debug document.
"""

import sys
import json
from collections import Counter
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from contractc.vm.disasm import disassemble


def load_methods(debug_path):
    """Read (name, start, end) triples from a debug document."""
    with open(debug_path, 'r', encoding='utf-8') as f:
        debug = json.load(f)
    methods = []
    for m in debug.get('methods', []):
        start, end = (int(x) for x in m['range'].split('-'))
        methods.append((m['name'], start, end))
    return sorted(methods, key=lambda m: m[1])


def print_listing(instructions, methods):
    """Print every instruction, with a banner at each method start."""
    starts = {start: (name, end) for name, start, end in methods}
    for ins in instructions:
        if ins.offset in starts:
            name, end = starts[ins.offset]
            print(f"\n{name}  [{ins.offset}-{end}]")
        print(f"  {ins}")


def print_summary(data, instructions, methods):
    print(f"\n{'='*70}")
    print("SUMMARY")
    print(f"{'='*70}")
    print(f"  Script size:    {len(data):,} bytes")
    print(f"  Instructions:   {len(instructions):,}")
    if methods:
        print(f"  Methods:        {len(methods)}")
    jumps = [ins for ins in instructions if ins.jump_target() is not None]
    print(f"  Jumps/calls:    {len(jumps)}")

    print(f"\nMost used opcodes:")
    for name, count in Counter(ins.name for ins in instructions).most_common(10):
        print(f"  {name:<12} {count}")


def main():
    if len(sys.argv) < 2:
        print("Usage: python3 dump_bytecode.py <script.bin> [debug.json]")
        print("\nLists the instructions of a compiled script.")
        sys.exit(1)

    filename = sys.argv[1]

    with open(filename, 'rb') as f:
        data = f.read()

    methods = load_methods(sys.argv[2]) if len(sys.argv) > 2 else []

    print(f"File: {filename}")
    try:
        instructions = disassemble(data)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print_listing(instructions, methods)
    print_summary(data, instructions, methods)


if __name__ == '__main__':
    main()
