"""
Reachability analysis - decides which functions and globals are live.

The analysis runs before any code is emitted. It starts from a seed set
(exported functions of the root module, module init functions, the deploy
hook and every function called from a global initializer) and alternates
between two frontiers until both are empty:

- the function frontier: callees found in the bodies of used functions
- the global frontier: globals referenced from used function bodies and
  from the initializers of used globals

Declarations are never modified; callers ask the result whether a name is
live. Program validity checks that must see every declaration (generics,
exported signatures) run during the same pass.
"""

import sys
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Callable, Mapping, Union

from ..ir.nodes import (
    NodeType, IRNode, Program, SourceFile,
    FuncDecl, GlobalDecl, ConstDecl, TypeDecl, CallExpr,
    walk, inspect, contains_call,
)
from ..errors import (
    GenericsUnsupportedError, MissingParamNameError, InvalidReturnCountError,
)


@dataclass(frozen=True)
class ScanContext:
    """Name resolution context of one source file."""
    module: str
    imports: Mapping[str, str] = field(default_factory=dict)

    def qualify(self, name: str) -> str:
        return f"{self.module}.{name}"

    def resolve(self, alias: str, name: str) -> str:
        """Qualify a name selected from an imported module alias."""
        return f"{self.imports.get(alias, alias)}.{name}"


@dataclass
class FuncEntry:
    decl: FuncDecl
    ctx: ScanContext


@dataclass
class GlobalEntry:
    decl: Union[GlobalDecl, ConstDecl]
    ctx: ScanContext


@dataclass
class Reachability:
    """Result of the analysis. Used-name dicts keep insertion order."""
    functions: Dict[str, FuncEntry] = field(default_factory=dict)
    globals: Dict[str, GlobalEntry] = field(default_factory=dict)
    used_functions: Dict[str, bool] = field(default_factory=dict)
    used_globals: Dict[str, bool] = field(default_factory=dict)
    # A module may declare several init functions, so each gets its own key.
    init_keys: Dict[FuncDecl, str] = field(default_factory=dict)

    def function_used(self, name: str) -> bool:
        return name in self.used_functions

    def global_used(self, name: str) -> bool:
        return name in self.used_globals

    def func_key(self, module: str, decl: FuncDecl) -> str:
        """Name a function is tracked under: "mod.init#N" for init functions."""
        key = self.init_keys.get(decl)
        return key if key is not None else decl.qualified_name(module)

    def is_live_func(self, module: str, decl: FuncDecl) -> bool:
        return self.func_key(module, decl) in self.used_functions

    def is_live_global(self, module: str, decl: Union[GlobalDecl, ConstDecl]) -> bool:
        """Named and reached. Dead globals are treated as if named "_"."""
        return decl.name != '_' and f"{module}.{decl.name}" in self.used_globals

    def unused_functions(self) -> List[str]:
        return [name for name in self.functions if name not in self.used_functions]

    def discarded_globals(self) -> List[str]:
        return [name for name, entry in self.globals.items()
                if name not in self.used_globals and isinstance(entry.decl, GlobalDecl)]


def callee_name(call: CallExpr, ctx: ScanContext) -> Optional[str]:
    """Qualified name of the function a call invokes, if it is a named one."""
    fun = call.fun
    if fun.node_type == NodeType.IDENT:
        return ctx.qualify(fun.name)
    if fun.node_type == NodeType.SELECTOR:
        if fun.is_selection:
            return fun.method
        if fun.x.node_type == NodeType.IDENT:
            return ctx.resolve(fun.x.name, fun.sel)
    return None


class ReachabilityAnalyzer:
    """Computes used functions and globals of a program."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.stats = {}

    def log(self, message: str):
        """Log message if verbose mode enabled."""
        if self.verbose:
            print(f"[reach] {message}", file=sys.stderr)

    def run(self, program: Program, modules: Optional[List[str]] = None) -> Reachability:
        """
        Analyze a program.

        Args:
            program: The program to analyze
            modules: Paths of the modules taking part in the compilation,
                all modules of the program if None

        Raises:
            GenericsUnsupportedError: On any parametric declaration
            MissingParamNameError: Exported root function with an unnamed parameter
            InvalidReturnCountError: Exported root function with several results
        """
        result = Reachability()
        diff: Dict[str, bool] = {}
        globals_diff: Dict[str, bool] = {}
        scheduled: List[Tuple[IRNode, ScanContext]] = []

        paths = modules if modules is not None else list(program.modules)
        for path in paths:
            module = program.modules[path]
            is_root = module.path == program.root
            for f in module.files:
                ctx = ScanContext(module.path, dict(f.imports))
                self._collect_file(f, ctx, is_root, result, diff, scheduled)

        self._pick_vars(scheduled, lambda name: self._mark_global(result, globals_diff, name))

        iterations = 0
        while diff or globals_diff:
            iterations += 1
            next_diff: Dict[str, bool] = {}
            next_globals_diff: Dict[str, bool] = {}
            scheduled = []

            for name in diff:
                entry = result.functions.get(name)
                if entry is None or name in result.used_functions:
                    continue
                result.used_functions[name] = True
                for node in walk(entry.decl):
                    if node.node_type == NodeType.CALL:
                        callee = callee_name(node, entry.ctx)
                        if callee is not None:
                            next_diff[callee] = True
                if entry.decl.body is not None:
                    scheduled.append((entry.decl.body, entry.ctx))

            # Globals are handled after functions so that only names reached
            # through used code are scanned.
            for name in globals_diff:
                entry = result.globals.get(name)
                if entry is None or name in result.used_globals:
                    continue
                result.used_globals[name] = True
                if entry.decl.value is not None:
                    scheduled.append((entry.decl.value, entry.ctx))

            self._pick_vars(scheduled,
                            lambda name: self._mark_global(result, next_globals_diff, name))
            diff = next_diff
            globals_diff = next_globals_diff

        discarded = result.discarded_globals()
        for name in discarded:
            self.log(f"Discarding unused global {name}")

        self.stats = {
            'used_functions': len(result.used_functions),
            'unused_functions': len(result.unused_functions()),
            'used_globals': len(result.used_globals),
            'discarded_globals': len(discarded),
            'iterations': iterations,
        }
        self.log(f"{self.stats['used_functions']} functions and "
                 f"{self.stats['used_globals']} globals used after {iterations} iterations")
        return result

    def _mark_global(self, result: Reachability, frontier: Dict[str, bool], name: str):
        if name in result.globals:
            frontier[name] = True

    def _collect_file(self, f: SourceFile, ctx: ScanContext, is_root: bool,
                      result: Reachability, diff: Dict[str, bool],
                      scheduled: List[Tuple[IRNode, ScanContext]]):
        """Cache declarations, validate them and seed the function frontier."""
        for decl in f.decls:
            if isinstance(decl, FuncDecl):
                name = decl.qualified_name(ctx.module)
                self._check_generic_func(decl, name)
                if decl.is_init():
                    prefix = f"{name}#"
                    name = f"{prefix}{sum(1 for k in result.functions if k.startswith(prefix))}"
                    result.init_keys[decl] = name
                if (is_root and decl.is_exported) or decl.is_init() or decl.is_deploy():
                    diff[name] = True
                if is_root and decl.is_exported and not decl.is_method:
                    self._check_exported_signature(decl)
                result.functions[name] = FuncEntry(decl, ctx)

            elif isinstance(decl, TypeDecl):
                if decl.type_params:
                    raise GenericsUnsupportedError(ctx.qualify(decl.name), "type parameters")

            elif isinstance(decl, (GlobalDecl, ConstDecl)):
                if decl.name != '_':
                    result.globals[ctx.qualify(decl.name)] = GlobalEntry(decl, ctx)
                if decl.value is None:
                    continue
                # Functions called from any initializer are live, even when
                # the global itself is never read.
                for node in walk(decl.value):
                    if node.node_type == NodeType.CALL:
                        callee = callee_name(node, ctx)
                        if callee is not None:
                            diff[callee] = True
                if contains_call(decl.value):
                    scheduled.append((decl.value, ctx))

    def _check_generic_func(self, decl: FuncDecl, name: str):
        detail = None
        if decl.receiver is not None and decl.receiver.type.type_args:
            if decl.receiver.type.pointer:
                detail = "generic pointer function receiver"
            else:
                detail = "generic function receiver"
        if decl.type_params:
            detail = "function type parameters"
        if detail is not None:
            raise GenericsUnsupportedError(name, detail)

    def _check_exported_signature(self, decl: FuncDecl):
        for i, param in enumerate(decl.params):
            if param.name is None or param.name == '_':
                raise MissingParamNameError(decl.name, i)
        if len(decl.results) > 1:
            raise InvalidReturnCountError(decl.name, len(decl.results))

    def _pick_vars(self, nodes: List[Tuple[IRNode, ScanContext]], mark: Callable[[str], None]):
        """
        Find globals referenced from the given expressions.

        Walks each node, calling mark() with the qualified name of every
        identifier or cross-module selector that may denote a global. Nested
        operands are queued and walked in later rounds.
        """
        while nodes:
            next_nodes: List[Tuple[IRNode, ScanContext]] = []
            for root, ctx in nodes:

                def visit(n: IRNode, ctx=ctx) -> bool:
                    t = n.node_type
                    if t == NodeType.KEY_VALUE:
                        next_nodes.append((n.value, ctx))
                        return False
                    if t == NodeType.CALL:
                        # Plain function names are handled by the function frontier.
                        if n.fun.node_type == NodeType.SELECTOR:
                            next_nodes.append((n.fun, ctx))
                        for arg in n.args:
                            if arg.node_type != NodeType.LITERAL:
                                next_nodes.append((arg, ctx))
                        return False
                    if t == NodeType.SELECTOR:
                        if n.is_selection:
                            if n.x.node_type in (NodeType.IDENT, NodeType.COMPOSITE,
                                                 NodeType.SELECTOR):
                                next_nodes.append((n.x, ctx))
                        elif n.x.node_type == NodeType.IDENT:
                            mark(ctx.resolve(n.x.name, n.sel))
                        return False
                    if t == NodeType.COMPOSITE:
                        for e in n.elts:
                            if e.node_type != NodeType.LITERAL:
                                next_nodes.append((e, ctx))
                        return False
                    if t == NodeType.IDENT:
                        mark(ctx.qualify(n.name))
                        return False
                    if t == NodeType.DEFER:
                        next_nodes.append((n.call, ctx))
                        return False
                    if t == NodeType.LITERAL:
                        return False
                    return True

                inspect(root, visit)
            nodes = next_nodes
