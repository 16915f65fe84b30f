"""
Initialization planner - orders modules, assigns global slots and lays out
the script.

Script layout:

    _initialize   INITSSLOT n; INITSLOT locals,0; global initializers;
                  init() bodies; RET
    _deploy       INITSLOT locals,2; _deploy() bodies; RET
    functions     every other live function, in module order

Imported modules always come before their importers, so a module's globals
are initialized before the code that depends on them runs.
"""

import sys
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Tuple

from ..ir.nodes import (
    Program as IRProgram, TypeRef, FuncDecl, GlobalDecl, ConstDecl, contains_call,
)
from ..analysis.reachability import Reachability, ScanContext
from ..vm.assembler import Program
from ..vm.opcodes import Opcode
from ..errors import ImportCycleError, UnknownModuleError, InternalCompilerError
from .slots import SlotTable
from .emitter import FunctionEmitter, FunctionRecord, SequencePoint, MAX_LOCALS, has_defer


INITIALIZE_METHOD = '_initialize'
DEPLOY_METHOD = '_deploy'

# Module visiting states
VISITING = 1
DONE = 2


def module_order(program: IRProgram) -> List[str]:
    """
    Order modules so that every module follows all of its imports.

    Raises:
        ImportCycleError: If a module imports one still being visited
        UnknownModuleError: If an import names a missing module
    """
    state: Dict[str, int] = {}
    order: List[str] = []

    def visit(path: str):
        state[path] = VISITING
        for imported in program.modules[path].imports:
            if imported not in program.modules:
                raise UnknownModuleError(path, imported)
            mark = state.get(imported)
            if mark == VISITING:
                raise ImportCycleError(path, imported)
            if mark is None:
                visit(imported)
        state[path] = DONE
        order.append(path)

    visit(program.root)
    return order


@dataclass
class CodePlan:
    """Everything the planner produced for one compilation."""
    order: List[str]
    slots: SlotTable
    initialize: Optional[FunctionRecord] = None
    deploy: Optional[FunctionRecord] = None
    functions: List[FunctionRecord] = field(default_factory=list)
    events: Dict[str, list] = field(default_factory=dict)


class InitPlanner:
    """Lays out a program's code in a single pass over its modules."""

    def __init__(self, program: IRProgram, reach: Reachability, order: List[str],
                 verbose: bool = False):
        self.program = program
        self.reach = reach
        self.order = order
        self.verbose = verbose

    def log(self, message: str):
        """Log message if verbose mode enabled."""
        if self.verbose:
            print(f"[contractc] {message}", file=sys.stderr)

    def _decls(self):
        """Yield (module path, file path, decl) in visiting order."""
        for path in self.order:
            for f in self.program.modules[path].files:
                for decl in f.decls:
                    yield path, f.path, decl

    def _live_funcs(self):
        for path, file_path, decl in self._decls():
            if isinstance(decl, FuncDecl) and self.reach.is_live_func(path, decl):
                yield path, file_path, decl

    # -- slots --------------------------------------------------------------

    def allocate_slots(self) -> SlotTable:
        """
        Assign static slots to live globals.

        Raises:
            CapacityError: If more than 255 slots are needed
        """
        slots = SlotTable()
        for path, _, decl in self._decls():
            if isinstance(decl, GlobalDecl) and self.reach.is_live_global(path, decl):
                slots.allocate(f"{path}.{decl.name}")
            elif isinstance(decl, ConstDecl) and self.reach.is_live_global(path, decl):
                slots.add_constant()
        if any(decl.body is not None and has_defer(decl.body)
               for _, _, decl in self._live_funcs()):
            slots.reserve_fault_slot()
        self.log(f"Allocated {slots.total} global slots ({slots.constants} constants inlined)")
        slots.check_capacity()
        return slots

    # -- code ---------------------------------------------------------------

    def plan(self, prog: Program, documents: Dict[str, int]) -> CodePlan:
        """Allocate slots and emit the whole script into `prog`."""
        slots = self.allocate_slots()
        emitter = FunctionEmitter(prog, self.program, self.reach, slots, documents)
        result = CodePlan(self.order, slots)
        result.initialize = self.emit_initialize(prog, emitter, slots, documents)
        result.deploy = self.emit_deploy(prog, emitter, documents)
        result.functions = self.emit_functions(emitter)
        result.events = emitter.events
        return result

    def _clear_locals(self, prog: Program, count: int):
        for i in range(count):
            prog.emit(Opcode.PUSHNULL)
            prog.emit(Opcode.STLOC, bytes([i]))

    def _patch_locals(self, prog: Program, offset: int, count: int):
        """Set the local count of an INITSLOT emitted before its bodies."""
        if count > MAX_LOCALS:
            raise InternalCompilerError(f"local count {count} does not fit INITSLOT")
        prog.patch_byte(offset + 1, count)

    def emit_initialize(self, prog: Program, emitter: FunctionEmitter, slots: SlotTable,
                        documents: Dict[str, int]) -> Optional[FunctionRecord]:
        """
        Emit the module-initialization routine at the start of the script.

        Returns None if the program needs neither static slots nor any
        initialization code.
        """
        if slots.total > 0:
            prog.emit(Opcode.INITSSLOT, bytes([slots.total]))
        init_offset = prog.length()
        prog.emit(Opcode.INITSLOT, bytes([0, 0]))
        seq_points: List[SequencePoint] = []

        for path, file_path, decl in self._decls():
            if not isinstance(decl, GlobalDecl):
                continue
            if self.reach.is_live_global(path, decl):
                ctx = self.reach.globals[f"{path}.{decl.name}"].ctx
                self._global_point(prog, decl, documents.get(file_path, 0), seq_points)
                emitter.emit_global_value(decl.value, decl.type, ctx)
                prog.emit(Opcode.STSFLD, bytes([slots.get(f"{path}.{decl.name}")]))
            elif decl.value is not None and contains_call(decl.value):
                # Value is unused but the call may have side effects.
                ctx = self._file_ctx(path, file_path)
                self._global_point(prog, decl, documents.get(file_path, 0), seq_points)
                emitter.emit_global_value(decl.value, decl.type, ctx)
                prog.emit(Opcode.DROP)

        max_locals = 0
        prev_locals = 0
        variables: List[Tuple[str, TypeRef]] = []
        for path, file_path, decl in self._live_funcs():
            if not decl.is_init():
                continue
            self._clear_locals(prog, prev_locals)
            entry = self.reach.functions[self.reach.func_key(path, decl)]
            prev_locals = emitter.emit_inline_body(entry, file_path, seq_points=seq_points,
                                                   variables=variables)
            max_locals = max(max_locals, prev_locals)

        has_code = prog.length() != init_offset + 3
        if not has_code:
            prog.truncate(init_offset)
        if init_offset == 0 and not has_code:
            self.log("No initialization routine needed")
            return None
        if has_code:
            self._patch_locals(prog, init_offset, max_locals)
        prog.emit(Opcode.RET)
        return FunctionRecord(INITIALIZE_METHOD, None, self.program.root, 0,
                              prog.length() - 1, seq_points, variables)

    def _global_point(self, prog: Program, decl: GlobalDecl, document: int,
                      seq_points: List[SequencePoint]):
        if decl.line > 0:
            seq_points.append(SequencePoint(prog.length(), document, decl.line, decl.column,
                                            decl.end_line or decl.line, decl.end_column))

    def _file_ctx(self, path: str, file_path: str) -> ScanContext:
        for f in self.program.modules[path].files:
            if f.path == file_path:
                return ScanContext(path, dict(f.imports))
        return ScanContext(path)

    def emit_deploy(self, prog: Program, emitter: FunctionEmitter,
                    documents: Dict[str, int]) -> Optional[FunctionRecord]:
        """Emit the deploy routine if any live _deploy function exists."""
        deploys = [(path, file_path, decl) for path, file_path, decl in self._live_funcs()
                   if decl.is_deploy()]
        if not deploys:
            return None
        start = prog.length()
        prog.emit(Opcode.INITSLOT, bytes([0, 2]))
        seq_points: List[SequencePoint] = []
        variables: List[Tuple[str, TypeRef]] = []
        max_locals = 0
        prev_locals = 0
        for path, file_path, decl in deploys:
            self._clear_locals(prog, prev_locals)
            entry = self.reach.functions[self.reach.func_key(path, decl)]
            args = {p.name: i for i, p in enumerate(decl.params) if p.name and p.name != '_'}
            prev_locals = emitter.emit_inline_body(entry, file_path, args, seq_points, variables)
            max_locals = max(max_locals, prev_locals)
        self._patch_locals(prog, start, max_locals)
        prog.emit(Opcode.RET)
        self.log(f"Deploy routine at {start}")
        return FunctionRecord(DEPLOY_METHOD, None, self.program.root, start,
                              prog.length() - 1, seq_points, variables)

    def emit_functions(self, emitter: FunctionEmitter) -> List[FunctionRecord]:
        """Emit every live function that is not part of a synthesized routine."""
        records = []
        for path, file_path, decl in self._live_funcs():
            if decl.is_init() or decl.is_deploy():
                continue
            entry = self.reach.functions[self.reach.func_key(path, decl)]
            records.append(emitter.emit_function(entry, file_path))
        self.log(f"Emitted {len(records)} functions")
        return records
