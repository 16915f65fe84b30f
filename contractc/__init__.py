"""
Contract Compiler (contractc) - Compiles typed contract programs to VM bytecode.

This package provides the compilation-orchestration layer of a smart-contract
compiler: reachability analysis, module initialization planning, global slot
allocation, bytecode assembly and debug metadata generation.
"""

__version__ = "0.1.0"
__author__ = "Contract Compiler Project"
