"""
Function body emitter - lowers IR statements and expressions to VM code.

The emitter appends opcodes to a shared Program buffer. The planner calls
emit_function() once per live function, and uses emit_expr() and
emit_inline_body() to build the synthesized init and deploy routines.

Calling convention: arguments are pushed in reverse so that the first one
(the receiver, for methods) ends up on top of the stack, where INITSLOT
picks it up as argument 0.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Tuple

from ..ir.nodes import (
    NodeType, TypeKind, TypeRef, IRNode, Expr, Stmt, BlockStmt, CallExpr,
    FuncDecl, ConstDecl, TypeDecl, Program as IRProgram, walk,
)
from ..analysis.reachability import Reachability, ScanContext, FuncEntry, callee_name
from ..vm.assembler import Program
from ..vm.opcodes import Opcode
from ..errors import UnsupportedError, InternalCompilerError, CompileError
from .slots import SlotTable


MAX_LOCALS = 255

NOTIFY_SYSCALL = 'System.Runtime.Notify'

BUILTINS = ('len', 'panic', 'append', 'recover')

ARITHMETIC_OPS = {
    '+': Opcode.ADD,
    '-': Opcode.SUB,
    '*': Opcode.MUL,
    '/': Opcode.DIV,
    '%': Opcode.MOD,
    '&': Opcode.AND,
    '|': Opcode.OR,
    '^': Opcode.XOR,
    '<<': Opcode.SHL,
    '>>': Opcode.SHR,
    '<': Opcode.LT,
    '>': Opcode.GT,
    '<=': Opcode.LTE,
    '>=': Opcode.GTE,
}

UNARY_OPS = {
    '-': Opcode.NEGATE,
    '!': Opcode.NOT,
    '^': Opcode.INVERT,
}


@dataclass
class SequencePoint:
    """Maps a bytecode offset to a source range."""
    opcode: int
    document: int
    start_line: int
    start_col: int
    end_line: int
    end_col: int


@dataclass
class FunctionRecord:
    """What emitting one function produced."""
    name: str
    decl: Optional[FuncDecl]
    module: str
    start: int
    end: int
    seq_points: List[SequencePoint] = field(default_factory=list)
    variables: List[Tuple[str, TypeRef]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """No byte was emitted. Ranges are inclusive, so end precedes start."""
        return self.end < self.start


@dataclass
class DeferFrame:
    catch_label: int
    finally_label: int
    flag: int           # local set once the TRY frame is open
    call: CallExpr


class FuncScope:
    """Variable scopes, loop labels and defers of the code being emitted."""

    def __init__(self, ctx: ScanContext, document: int = 0,
                 args: Optional[Dict[str, int]] = None,
                 results: Optional[List[TypeRef]] = None):
        self.ctx = ctx
        self.document = document
        self.args = args or {}
        self.results = results or []
        self.blocks: List[Dict[str, int]] = [{}]
        self.local_count = 0
        self.loops: List[Tuple[int, int]] = []      # (break label, continue label)
        self.defers: List[DeferFrame] = []
        self.return_label: Optional[int] = None
        self.variables: List[Tuple[str, TypeRef]] = []
        self.seq_points: List[SequencePoint] = []

    def new_local(self, name: str, typ: Optional[TypeRef]) -> int:
        index = self.local_count
        self.local_count += 1
        if name and name != '_':
            self.blocks[-1][name] = index
            self.variables.append((name, typ))
        return index

    def lookup(self, name: str) -> Optional[Tuple[str, int]]:
        for block in reversed(self.blocks):
            if name in block:
                return ('local', block[name])
        if name in self.args:
            return ('arg', self.args[name])
        return None

    def push_block(self):
        self.blocks.append({})

    def pop_block(self):
        self.blocks.pop()


def count_locals(body: Optional[BlockStmt]) -> int:
    """Number of local slots a body allocates: one per definition and per defer."""
    if body is None:
        return 0
    count = 0
    for node in walk(body):
        if node.node_type == NodeType.ASSIGN and node.define:
            count += 1
        elif node.node_type == NodeType.DEFER:
            count += 1
    return count


def has_defer(node: IRNode) -> bool:
    return any(n.node_type == NodeType.DEFER for n in walk(node))


class FunctionEmitter:
    """Lowers function bodies into a Program buffer."""

    def __init__(self, prog: Program, program: IRProgram, reach: Reachability,
                 slots: SlotTable, documents: Dict[str, int]):
        self.prog = prog
        self.program = program
        self.reach = reach
        self.slots = slots
        self.documents = documents
        self.func_labels: Dict[str, int] = {}
        # event name -> parameter types, in first-emission order
        self.events: Dict[str, List[Optional[TypeRef]]] = {}
        self.type_decls: Dict[str, TypeRef] = {}
        for module in program.modules.values():
            for _, decl in module.iter_decls():
                if isinstance(decl, TypeDecl):
                    self.type_decls[f"{module.path}.{decl.name}"] = decl.type

    def func_label(self, name: str) -> int:
        if name not in self.func_labels:
            self.func_labels[name] = self.prog.new_label()
        return self.func_labels[name]

    # -- functions ----------------------------------------------------------

    def emit_function(self, entry: FuncEntry, file_path: str) -> FunctionRecord:
        """Emit one function and return its byte range and debug data."""
        decl = entry.decl
        name = decl.qualified_name(entry.ctx.module)
        start = self.prog.length()
        if decl.syscall is not None or decl.body is None:
            return FunctionRecord(name, decl, entry.ctx.module, start, start - 1)

        self.prog.define_label(self.func_label(name))
        params = ([decl.receiver] if decl.receiver is not None else []) + decl.params
        args = {p.name: i for i, p in enumerate(params) if p.name and p.name != '_'}
        scope = FuncScope(entry.ctx, self.documents.get(file_path, 0), args, decl.results)

        n_locals = count_locals(decl.body)
        if n_locals > MAX_LOCALS or len(params) > MAX_LOCALS:
            self._too_many_locals(name)
            return FunctionRecord(name, decl, entry.ctx.module, start, start - 1)
        if n_locals or params:
            self.prog.emit(Opcode.INITSLOT, bytes([n_locals, len(params)]))

        deferring = has_defer(decl.body)
        if deferring:
            scope.return_label = self.prog.new_label()
        self._body(decl.body, scope)
        stmts = decl.body.stmts
        if deferring or not stmts or stmts[-1].node_type != NodeType.RETURN:
            self.prog.emit(Opcode.RET)

        return FunctionRecord(name, decl, entry.ctx.module, start, self.prog.length() - 1,
                              scope.seq_points, scope.variables)

    def emit_inline_body(self, entry: FuncEntry, file_path: str,
                         args: Optional[Dict[str, int]] = None,
                         seq_points: Optional[List[SequencePoint]] = None,
                         variables: Optional[List[Tuple[str, TypeRef]]] = None) -> int:
        """
        Emit a function body in place, inside a synthesized routine.

        Return statements jump to the end of the body instead of leaving
        the routine.
        Returns the number of locals the body used. Sequence points and
        named locals are appended to the given lists.
        """
        if count_locals(entry.decl.body) > MAX_LOCALS:
            self._too_many_locals(entry.decl.qualified_name(entry.ctx.module))
            return 0
        scope = FuncScope(entry.ctx, self.documents.get(file_path, 0), args)
        scope.return_label = self.prog.new_label()
        self._body(entry.decl.body, scope)
        if seq_points is not None:
            seq_points.extend(scope.seq_points)
        if variables is not None:
            variables.extend(scope.variables)
        return scope.local_count

    def _too_many_locals(self, name: str):
        self.prog.fail(CompileError(f"{name}: maximum of {MAX_LOCALS} local variables is allowed"))

    def emit_global_value(self, value: Optional[Expr], typ: Optional[TypeRef],
                          ctx: ScanContext):
        """Push a global initializer, or the default of its type."""
        if value is None:
            self.emit_default(typ, ctx)
        else:
            self.emit_expr(value, FuncScope(ctx))

    def _body(self, body: BlockStmt, scope: FuncScope):
        for stmt in body.stmts:
            self._stmt(stmt, scope)
        if scope.return_label is not None:
            self.prog.define_label(scope.return_label)
            self._emit_defers(scope)

    def _emit_defers(self, scope: FuncScope):
        """
        Close every TRY frame opened by a defer, innermost first.

        The catch block saves the fault for recover() and, since a fault
        leaves no return value on the stack, pushes the zero values of the
        function's results. The deferred call itself runs in the finally
        block, so it runs once on both paths.
        """
        fault = self.slots.fault_slot
        for frame in reversed(scope.defers):
            if fault is None:
                raise InternalCompilerError("defer without a reserved fault slot")
            after = self.prog.new_label()
            skip = self.prog.new_label()
            self.prog.emit(Opcode.LDLOC, bytes([frame.flag]))
            self.prog.emit_jump(Opcode.JMPIFNOT, skip)
            self.prog.emit_jump(Opcode.ENDTRY, after)
            self.prog.define_label(frame.catch_label)
            self.prog.emit(Opcode.STSFLD, bytes([fault]))
            for typ in reversed(scope.results):
                self.emit_default(typ, scope.ctx)
            self.prog.emit_jump(Opcode.ENDTRY, after)
            self.prog.define_label(frame.finally_label)
            self._call_stmt(frame.call, scope)
            self.prog.emit(Opcode.ENDFINALLY)
            self.prog.define_label(after)
            self.prog.define_label(skip)

    # -- statements ---------------------------------------------------------

    def _sequence_point(self, node: IRNode, scope: FuncScope):
        if node.line <= 0:
            return
        scope.seq_points.append(SequencePoint(
            self.prog.length(), scope.document,
            node.line, node.column, node.end_line or node.line, node.end_column))

    def _stmt(self, s: Stmt, scope: FuncScope):
        t = s.node_type
        if t != NodeType.BLOCK:
            self._sequence_point(s, scope)

        if t == NodeType.BLOCK:
            scope.push_block()
            for stmt in s.stmts:
                self._stmt(stmt, scope)
            scope.pop_block()
        elif t == NodeType.EXPR_STMT:
            if s.x.node_type == NodeType.CALL:
                self._call_stmt(s.x, scope)
            else:
                self.emit_expr(s.x, scope)
                self.prog.emit(Opcode.DROP)
        elif t == NodeType.ASSIGN:
            self._assign(s, scope)
        elif t == NodeType.RETURN:
            if s.value is not None:
                self.emit_expr(s.value, scope)
            if scope.return_label is not None:
                self.prog.emit_jump(Opcode.JMP, scope.return_label)
            else:
                self.prog.emit(Opcode.RET)
        elif t == NodeType.IF:
            else_label = self.prog.new_label()
            self.emit_expr(s.cond, scope)
            self.prog.emit_jump(Opcode.JMPIFNOT, else_label)
            self._stmt(s.body, scope)
            if s.else_ is not None:
                end = self.prog.new_label()
                self.prog.emit_jump(Opcode.JMP, end)
                self.prog.define_label(else_label)
                self._stmt(s.else_, scope)
                self.prog.define_label(end)
            else:
                self.prog.define_label(else_label)
        elif t == NodeType.FOR:
            self._for(s, scope)
        elif t == NodeType.BRANCH:
            if not scope.loops:
                raise UnsupportedError(f"{s.tok} outside of a loop at line {s.line}")
            brk, cont = scope.loops[-1]
            self.prog.emit_jump(Opcode.JMP, brk if s.tok == 'break' else cont)
        elif t == NodeType.DEFER:
            frame = DeferFrame(self.prog.new_label(), self.prog.new_label(),
                               scope.new_local('', None), s.call)
            self.prog.emit_try(frame.catch_label, frame.finally_label)
            self.prog.emit_bool(True)
            self.prog.emit(Opcode.STLOC, bytes([frame.flag]))
            scope.defers.append(frame)
        else:
            raise UnsupportedError(f"unsupported statement {t.name.lower()} at line {s.line}")

    def _for(self, s: Stmt, scope: FuncScope):
        scope.push_block()
        if s.init is not None:
            self._stmt(s.init, scope)
        start = self.prog.new_label()
        post = self.prog.new_label()
        end = self.prog.new_label()
        self.prog.define_label(start)
        if s.cond is not None:
            self.emit_expr(s.cond, scope)
            self.prog.emit_jump(Opcode.JMPIFNOT, end)
        scope.loops.append((end, post))
        self._stmt(s.body, scope)
        scope.loops.pop()
        self.prog.define_label(post)
        if s.post is not None:
            self._stmt(s.post, scope)
        self.prog.emit_jump(Opcode.JMP, start)
        self.prog.define_label(end)
        scope.pop_block()

    def _assign(self, s: Stmt, scope: FuncScope):
        target = s.target
        if s.define:
            if s.value is None:
                self.emit_default(s.type or target.type, scope.ctx)
            else:
                self.emit_expr(s.value, scope)
            name = target.name if target.node_type == NodeType.IDENT else ''
            index = scope.new_local(name, s.type or target.type or (s.value.type if s.value else None))
            self.prog.emit(Opcode.STLOC, bytes([index]))
            return

        if target.node_type == NodeType.INDEX:
            self.emit_expr(target.x, scope)
            self.emit_expr(target.index, scope)
            self.emit_expr(s.value, scope)
            self.prog.emit(Opcode.SETITEM)
            return
        if target.node_type == NodeType.SELECTOR and target.is_selection:
            self.emit_expr(target.x, scope)
            self.prog.emit_int(self._field_index(target, scope))
            self.emit_expr(s.value, scope)
            self.prog.emit(Opcode.SETITEM)
            return

        self.emit_expr(s.value, scope)
        if target.node_type == NodeType.IDENT and target.name == '_':
            self.prog.emit(Opcode.DROP)
            return
        if target.node_type == NodeType.IDENT:
            where = scope.lookup(target.name)
            if where is not None:
                op = Opcode.STLOC if where[0] == 'local' else Opcode.STARG
                self.prog.emit(op, bytes([where[1]]))
                return
            qualified = scope.ctx.qualify(target.name)
        elif target.node_type == NodeType.SELECTOR and target.x.node_type == NodeType.IDENT:
            qualified = scope.ctx.resolve(target.x.name, target.sel)
        else:
            raise UnsupportedError(f"cannot assign to {target!r} at line {s.line}")
        slot = self.slots.get(qualified)
        if slot is None:
            raise UnsupportedError(f"cannot assign to {qualified}")
        self.prog.emit(Opcode.STSFLD, bytes([slot]))

    def _call_stmt(self, call: CallExpr, scope: FuncScope):
        """Emit a call whose result, if any, is discarded."""
        if self.emit_call(call, scope, void=True):
            self.prog.emit(Opcode.DROP)

    # -- expressions --------------------------------------------------------

    def emit_default(self, typ: Optional[TypeRef], ctx: ScanContext):
        """Push the zero value of a type."""
        kind = typ.kind if typ is not None else TypeKind.ANY
        if typ is not None and typ.pointer:
            self.prog.emit(Opcode.PUSHNULL)
        elif kind == TypeKind.INT:
            self.prog.emit_int(0)
        elif kind == TypeKind.BOOL:
            self.prog.emit_bool(False)
        elif kind in (TypeKind.STRING, TypeKind.BYTES):
            self.prog.emit_bytes(b'')
        elif kind == TypeKind.STRUCT:
            fields = self._struct_fields(typ, ctx)
            self.prog.emit_int(len(fields))
            self.prog.emit(Opcode.NEWSTRUCT)
            for i, (_, ftype) in enumerate(fields):
                self.prog.emit(Opcode.DUP)
                self.prog.emit_int(i)
                self.emit_default(ftype, ctx)
                self.prog.emit(Opcode.SETITEM)
        else:
            self.prog.emit(Opcode.PUSHNULL)

    def emit_expr(self, e: Expr, scope: FuncScope):
        t = e.node_type
        if t == NodeType.LITERAL:
            self._literal(e.value)
        elif t == NodeType.IDENT:
            where = scope.lookup(e.name)
            if where is not None:
                op = Opcode.LDLOC if where[0] == 'local' else Opcode.LDARG
                self.prog.emit(op, bytes([where[1]]))
            else:
                self._load_global(scope.ctx.qualify(e.name), e)
        elif t == NodeType.SELECTOR:
            if e.is_selection:
                self.emit_expr(e.x, scope)
                self.prog.emit_int(self._field_index(e, scope))
                self.prog.emit(Opcode.PICKITEM)
            elif e.x.node_type == NodeType.IDENT:
                self._load_global(scope.ctx.resolve(e.x.name, e.sel), e)
            else:
                raise UnsupportedError(f"unsupported selector {e!r} at line {e.line}")
        elif t == NodeType.CALL:
            if not self.emit_call(e, scope):
                raise UnsupportedError(f"call without result used as value at line {e.line}")
        elif t == NodeType.COMPOSITE:
            self._composite(e, scope)
        elif t == NodeType.BINARY:
            self._binary(e, scope)
        elif t == NodeType.UNARY:
            self.emit_expr(e.x, scope)
            if e.op != '+':
                op = UNARY_OPS.get(e.op)
                if op is None:
                    raise UnsupportedError(f"unsupported unary operator {e.op!r}")
                self.prog.emit(op)
        elif t == NodeType.INDEX:
            self.emit_expr(e.x, scope)
            self.emit_expr(e.index, scope)
            self.prog.emit(Opcode.PICKITEM)
        else:
            raise UnsupportedError(f"unsupported expression {t.name.lower()} at line {e.line}")

    def _literal(self, value):
        if value is None:
            self.prog.emit(Opcode.PUSHNULL)
        elif isinstance(value, bool):
            self.prog.emit_bool(value)
        elif isinstance(value, int):
            self.prog.emit_int(value)
        elif isinstance(value, str):
            self.prog.emit_string(value)
        elif isinstance(value, (bytes, bytearray)):
            self.prog.emit_bytes(bytes(value))
        else:
            raise UnsupportedError(f"unsupported literal {value!r}")

    def _load_global(self, qualified: str, node: IRNode):
        slot = self.slots.get(qualified)
        if slot is not None:
            self.prog.emit(Opcode.LDSFLD, bytes([slot]))
            return
        entry = self.reach.globals.get(qualified)
        if entry is not None and isinstance(entry.decl, ConstDecl):
            # Constants are inlined at each use.
            self.emit_expr(entry.decl.value, FuncScope(entry.ctx))
            return
        raise UnsupportedError(f"unknown identifier {qualified} at line {node.line}")

    def _struct_fields(self, typ: TypeRef, ctx: ScanContext) -> List[Tuple[str, TypeRef]]:
        if typ.fields:
            return typ.fields
        if typ.name:
            decl_type = (self.type_decls.get(typ.name)
                         or self.type_decls.get(ctx.qualify(typ.name)))
            if decl_type is not None and decl_type.fields:
                return decl_type.fields
        return []

    def _field_index(self, sel: Expr, scope: FuncScope) -> int:
        typ = sel.x.type
        if typ is None:
            raise UnsupportedError(f"untyped field selection .{sel.sel} at line {sel.line}")
        for i, (name, _) in enumerate(self._struct_fields(typ, scope.ctx)):
            if name == sel.sel:
                return i
        raise UnsupportedError(f"unknown field {sel.sel} of {typ} at line {sel.line}")

    def _composite(self, e: Expr, scope: FuncScope):
        typ = e.type
        if typ.kind == TypeKind.MAP:
            self.prog.emit(Opcode.NEWMAP)
            for elt in e.elts:
                if elt.node_type != NodeType.KEY_VALUE:
                    raise UnsupportedError(f"map literal element without key at line {elt.line}")
                self.prog.emit(Opcode.DUP)
                self.emit_expr(elt.key, scope)
                self.emit_expr(elt.value, scope)
                self.prog.emit(Opcode.SETITEM)
        elif typ.kind == TypeKind.STRUCT:
            fields = self._struct_fields(typ, scope.ctx)
            values: Dict[int, Expr] = {}
            for i, elt in enumerate(e.elts):
                if elt.node_type == NodeType.KEY_VALUE:
                    names = [name for name, _ in fields]
                    if elt.key.node_type != NodeType.IDENT or elt.key.name not in names:
                        raise UnsupportedError(f"unknown field in literal of {typ} at line {elt.line}")
                    values[names.index(elt.key.name)] = elt.value
                else:
                    values[i] = elt
            self.prog.emit_int(len(fields))
            self.prog.emit(Opcode.NEWSTRUCT)
            for i, (_, ftype) in enumerate(fields):
                self.prog.emit(Opcode.DUP)
                self.prog.emit_int(i)
                if i in values:
                    self.emit_expr(values[i], scope)
                else:
                    self.emit_default(ftype, scope.ctx)
                self.prog.emit(Opcode.SETITEM)
        elif typ.kind in (TypeKind.ARRAY, TypeKind.BYTES):
            for elt in reversed(e.elts):
                self.emit_expr(elt, scope)
            self.prog.emit_int(len(e.elts))
            self.prog.emit(Opcode.PACK)
        else:
            raise UnsupportedError(f"unsupported composite literal of {typ}")

    def _binary(self, e: Expr, scope: FuncScope):
        if e.op in ('&&', '||'):
            end = self.prog.new_label()
            self.emit_expr(e.x, scope)
            self.prog.emit(Opcode.DUP)
            self.prog.emit_jump(Opcode.JMPIFNOT if e.op == '&&' else Opcode.JMPIF, end)
            self.prog.emit(Opcode.DROP)
            self.emit_expr(e.y, scope)
            self.prog.define_label(end)
            return

        self.emit_expr(e.x, scope)
        self.emit_expr(e.y, scope)
        kind = e.x.type.kind if e.x.type is not None else TypeKind.ANY
        numeric = kind in (TypeKind.INT, TypeKind.BOOL)
        if e.op == '==':
            self.prog.emit(Opcode.NUMEQUAL if numeric else Opcode.EQUAL)
        elif e.op == '!=':
            if numeric:
                self.prog.emit(Opcode.NUMNOTEQUAL)
            else:
                self.prog.emit_opcodes(Opcode.EQUAL, Opcode.NOT)
        elif e.op == '+' and kind in (TypeKind.STRING, TypeKind.BYTES):
            self.prog.emit(Opcode.CAT)
        elif e.op in ARITHMETIC_OPS:
            self.prog.emit(ARITHMETIC_OPS[e.op])
        else:
            raise UnsupportedError(f"unsupported binary operator {e.op!r} at line {e.line}")

    # -- calls --------------------------------------------------------------

    def emit_call(self, call: CallExpr, scope: FuncScope, void: bool = False) -> bool:
        """
        Emit a call. Returns True if it leaves a result on the stack.
        With `void` set, builtins may skip producing a result nobody reads.

        Raises:
            UnsupportedError: If the callee cannot be resolved
        """
        name = callee_name(call, scope.ctx)
        entry = self.reach.functions.get(name) if name is not None else None

        if entry is None and call.fun.node_type == NodeType.IDENT and call.fun.name in BUILTINS:
            return self._builtin(call.fun.name, call, scope, void)
        if entry is None:
            raise UnsupportedError(f"call to unknown function {name or call.fun!r} at line {call.line}")

        decl = entry.decl
        for arg in reversed(call.args):
            self.emit_expr(arg, scope)
        if decl.syscall is not None:
            if decl.syscall == NOTIFY_SYSCALL and call.args:
                self._record_event(call)
            self.prog.emit_syscall(decl.syscall)
        elif decl.body is None:
            raise UnsupportedError(f"call to function {name} without body at line {call.line}")
        else:
            if decl.receiver is not None:
                # Receiver is argument 0.
                self.emit_expr(call.fun.x, scope)
            self.prog.emit_call(self.func_label(name))
        return bool(decl.results)

    def _builtin(self, name: str, call: CallExpr, scope: FuncScope, void: bool) -> bool:
        if name == 'len':
            arg = call.args[0]
            self.emit_expr(arg, scope)
            kind = arg.type.kind if arg.type is not None else TypeKind.ANY
            if kind in (TypeKind.ARRAY, TypeKind.MAP, TypeKind.STRUCT):
                self.prog.emit(Opcode.ARRAYSIZE)
            else:
                self.prog.emit(Opcode.SIZE)
            return True
        if name == 'panic':
            if call.args:
                self.emit_expr(call.args[0], scope)
            else:
                self.prog.emit(Opcode.PUSHNULL)
            self.prog.emit(Opcode.THROW)
            return False
        if name == 'recover':
            return self._recover(void)
        # append(arr, v...) mutates arr in place and yields it.
        self.emit_expr(call.args[0], scope)
        for arg in call.args[1:]:
            self.prog.emit(Opcode.DUP)
            self.emit_expr(arg, scope)
            self.prog.emit(Opcode.APPEND)
        return True

    def _record_event(self, call: CallExpr):
        first = call.args[0]
        if first.node_type != NodeType.LITERAL or not isinstance(first.value, str):
            return
        self.events.setdefault(first.value, [arg.type for arg in call.args[1:]])

    def _recover(self, void: bool) -> bool:
        """Yield the pending fault, or null, and clear it."""
        fault = self.slots.fault_slot
        if fault is None:
            # Without a defer no fault is ever caught.
            if not void:
                self.prog.emit(Opcode.PUSHNULL)
            return not void
        if not void:
            self.prog.emit(Opcode.LDSFLD, bytes([fault]))
        self.prog.emit(Opcode.PUSHNULL)
        self.prog.emit(Opcode.STSFLD, bytes([fault]))
        return not void
