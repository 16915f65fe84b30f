"""
Main contract compiler.

Coordinates module ordering, reachability analysis, slot allocation, code
emission, jump resolution and debug metadata generation.
"""

import sys
import json
from dataclasses import dataclass
from typing import List, Optional
from pathlib import Path

from .ir import Program as IRProgram, load_file
from .analysis import ReachabilityAnalyzer
from .codegen import InitPlanner, CodePlan, module_order
from .debug import DebugInfo, DebugInfoBuilder
from .vm import Program
from .errors import CompileError


@dataclass
class CompilationResult:
    """Finalized script and its debug document."""
    bytecode: bytes
    debug_info: DebugInfo
    plan: CodePlan


class ContractCompiler:
    """Main contract compiler class."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.warnings: List[str] = []  # Compilation warnings

    def log(self, message: str):
        """Print log message if verbose mode is enabled."""
        if self.verbose:
            print(f"[contractc] {message}", file=sys.stderr)

    def warn(self, code: str, message: str):
        """Add a compilation warning with a code."""
        warning = f"{code}: {message}"
        self.warnings.append(warning)
        if self.verbose:
            print(f"[contractc] Warning: {warning}", file=sys.stderr)

    def get_warnings(self) -> List[str]:
        """Get all warnings generated during compilation."""
        return self.warnings.copy()

    def compile_program(self, program: IRProgram) -> CompilationResult:
        """
        Compile a typed program.

        Args:
            program: Program IR produced by the front end

        Returns:
            CompilationResult with the finalized bytecode and debug info

        Raises:
            CompileError: On any problem in the compiled program
        """
        self.warnings = []

        order = module_order(program)
        self.log(f"Module order: {', '.join(order)}")

        analyzer = ReachabilityAnalyzer(verbose=self.verbose)
        reach = analyzer.run(program, order)
        for name in reach.unused_functions():
            entry = reach.functions[name]
            if not (entry.ctx.module == program.root and entry.decl.is_exported):
                self.warn("W0100", f"function {name} is never used and was removed")
        for name in reach.discarded_globals():
            self.warn("W0101", f"global {name} is never used and was discarded")

        documents = [f.path for path in order for f in program.modules[path].files]
        doc_index = {path: i for i, path in enumerate(documents)}

        prog = Program()
        planner = InitPlanner(program, reach, order, verbose=self.verbose)
        plan = planner.plan(prog, doc_index)
        prog.check()

        prog.finalize()
        prog.check()
        bytecode = prog.bytes()
        self.log(f"Script is {len(bytecode)} bytes")

        debug_info = DebugInfoBuilder(program, reach).build(bytecode, plan, documents)
        self.log(f"Debug info: {len(debug_info.methods)} methods, "
                 f"{len(debug_info.events)} events")
        return CompilationResult(bytecode, debug_info, plan)

    def compile_file(self, input_path: str, output_path: Optional[str] = None,
                     debug_path: Optional[str] = None) -> bool:
        """
        Compile an IR document to a bytecode file.

        Args:
            input_path: Path to the .json IR document
            output_path: Path to the output script (input with .bin suffix if None)
            debug_path: Where to write the debug document, if anywhere

        Returns:
            True if compilation succeeded, False otherwise
        """
        if output_path is None:
            output_path = str(Path(input_path).with_suffix('.bin'))

        try:
            self.log(f"Reading {input_path}...")
            program = load_file(input_path)

            result = self.compile_program(program)

            self.log(f"Writing {output_path}...")
            with open(output_path, 'wb') as f:
                f.write(result.bytecode)

            if debug_path is not None:
                self.log(f"Writing {debug_path}...")
                with open(debug_path, 'w', encoding='utf-8') as f:
                    json.dump(result.debug_info.to_dict(), f, indent=2)

            self.log(f"Compilation successful: {len(result.bytecode)} bytes")
            return True

        except FileNotFoundError:
            print(f"Error: File not found: {input_path}", file=sys.stderr)
            return False
        except CompileError as e:
            print(f"Compilation error: {e}", file=sys.stderr)
            return False
        except Exception as e:
            print(f"Internal compiler error: {e}", file=sys.stderr)
            if self.verbose:
                import traceback
                traceback.print_exc()
            return False


def main():
    """Command-line interface for the compiler."""
    import argparse

    parser = argparse.ArgumentParser(
        description='Contract Compiler - Compile typed contract IR to VM bytecode'
    )
    parser.add_argument('input', help='Input .json program IR')
    parser.add_argument('-o', '--output', help='Output script file (default: INPUT.bin)')
    parser.add_argument('-d', '--debug', help='Write debug information to this file')
    parser.add_argument('--verbose', action='store_true',
                        help='Verbose output')

    args = parser.parse_args()

    compiler = ContractCompiler(verbose=args.verbose)
    success = compiler.compile_file(args.input, args.output, args.debug)

    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
