"""
Typed intermediate representation consumed by the compiler.

A front end (parser plus type checker) produces a Program: modules with their
import graph, source files, declarations and fully typed expression trees.
Every expression carries its semantic type as a TypeRef, which is all the
type information the compiler needs.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Any, Dict, Tuple, Iterator, Callable
from enum import Enum, auto


Position = Tuple[int, int, int, int]
NO_POS: Position = (0, 0, 0, 0)


class NodeType(Enum):
    """IR node types."""
    # Expressions
    LITERAL = auto()
    IDENT = auto()
    SELECTOR = auto()      # x.sel (field/method selection or module-qualified name)
    CALL = auto()
    COMPOSITE = auto()     # T{a, b} / T{k: v}
    KEY_VALUE = auto()
    BINARY = auto()
    UNARY = auto()
    INDEX = auto()

    # Statements
    BLOCK = auto()
    EXPR_STMT = auto()
    ASSIGN = auto()
    RETURN = auto()
    IF = auto()
    FOR = auto()
    BRANCH = auto()        # break / continue
    DEFER = auto()

    # Declarations
    FUNC = auto()
    GLOBAL = auto()
    CONST = auto()
    TYPE = auto()


class TypeKind(Enum):
    """Semantic type categories."""
    INT = auto()
    BOOL = auto()
    STRING = auto()
    BYTES = auto()
    ARRAY = auto()
    MAP = auto()
    STRUCT = auto()
    INTEROP = auto()       # Opaque library type, identified by name
    ANY = auto()


@dataclass
class TypeRef:
    """
    Semantic type of an expression or declaration.

    `name` identifies named types: the declared struct name, or the qualified
    library name of an interop type (e.g. "interop.Hash160").
    """
    kind: TypeKind
    name: Optional[str] = None
    elem: Optional['TypeRef'] = None
    key: Optional['TypeRef'] = None
    fields: List[Tuple[str, 'TypeRef']] = field(default_factory=list)
    type_args: List['TypeRef'] = field(default_factory=list)
    pointer: bool = False

    def __str__(self):
        if self.kind == TypeKind.ARRAY:
            return f"[]{self.elem}"
        if self.kind == TypeKind.MAP:
            return f"map[{self.key}]{self.elem}"
        prefix = '*' if self.pointer else ''
        if self.name:
            return prefix + self.name
        return prefix + self.kind.name.lower()


INT = TypeRef(TypeKind.INT)
BOOL = TypeRef(TypeKind.BOOL)
STRING = TypeRef(TypeKind.STRING)
BYTES = TypeRef(TypeKind.BYTES)
ANY = TypeRef(TypeKind.ANY)


@dataclass(eq=False)
class IRNode:
    """Base class for all IR nodes. Nodes compare by identity."""
    node_type: NodeType
    line: int = 0
    column: int = 0
    end_line: int = 0
    end_column: int = 0

    @property
    def pos(self) -> Position:
        return (self.line, self.column, self.end_line, self.end_column)

    def __repr__(self):
        return f"{self.__class__.__name__}(...)"


# ----------------------------------------------------------------------------
# Expressions

class Expr(IRNode):
    """Base class for expressions."""
    type: Optional[TypeRef] = None


class Literal(Expr):
    """Basic literal: int, bool, str, bytes or None (nil)."""
    def __init__(self, value: Any, type: Optional[TypeRef] = None, pos: Position = NO_POS):
        super().__init__(NodeType.LITERAL, *pos)
        self.value = value
        self.type = type or _literal_type(value)

    def __repr__(self):
        return f"Literal({self.value!r})"


def _literal_type(value: Any) -> TypeRef:
    if isinstance(value, bool):
        return BOOL
    if isinstance(value, int):
        return INT
    if isinstance(value, str):
        return STRING
    if isinstance(value, (bytes, bytearray)):
        return BYTES
    return ANY


class Ident(Expr):
    """Unqualified name: local, parameter, global, constant or function."""
    def __init__(self, name: str, type: Optional[TypeRef] = None, pos: Position = NO_POS):
        super().__init__(NodeType.IDENT, *pos)
        self.name = name
        self.type = type

    def __repr__(self):
        return f"Ident({self.name})"


class SelectorExpr(Expr):
    """
    x.sel

    With is_selection=False, x is an imported module alias and the selector
    is a cross-module reference. Otherwise it selects a field or method of a
    value; for method calls `method` holds the resolved qualified name.
    """
    def __init__(self, x: Expr, sel: str, is_selection: bool = False,
                 method: Optional[str] = None, type: Optional[TypeRef] = None,
                 pos: Position = NO_POS):
        super().__init__(NodeType.SELECTOR, *pos)
        self.x = x
        self.sel = sel
        self.is_selection = is_selection
        self.method = method
        self.type = type

    def __repr__(self):
        return f"Selector({self.x!r}.{self.sel})"


class CallExpr(Expr):
    def __init__(self, fun: Expr, args: Optional[List[Expr]] = None,
                 type: Optional[TypeRef] = None, pos: Position = NO_POS):
        super().__init__(NodeType.CALL, *pos)
        self.fun = fun
        self.args = args or []
        self.type = type

    def __repr__(self):
        return f"Call({self.fun!r}, {len(self.args)} args)"


class CompositeLit(Expr):
    """Composite literal of an array, map or struct type."""
    def __init__(self, type: TypeRef, elts: Optional[List[Expr]] = None, pos: Position = NO_POS):
        super().__init__(NodeType.COMPOSITE, *pos)
        self.type = type
        self.elts = elts or []

    def __repr__(self):
        return f"Composite({self.type}, {len(self.elts)} elts)"


class KeyValueExpr(Expr):
    def __init__(self, key: Expr, value: Expr, pos: Position = NO_POS):
        super().__init__(NodeType.KEY_VALUE, *pos)
        self.key = key
        self.value = value


class BinaryExpr(Expr):
    def __init__(self, op: str, x: Expr, y: Expr, type: Optional[TypeRef] = None,
                 pos: Position = NO_POS):
        super().__init__(NodeType.BINARY, *pos)
        self.op = op
        self.x = x
        self.y = y
        self.type = type

    def __repr__(self):
        return f"Binary({self.x!r} {self.op} {self.y!r})"


class UnaryExpr(Expr):
    def __init__(self, op: str, x: Expr, type: Optional[TypeRef] = None, pos: Position = NO_POS):
        super().__init__(NodeType.UNARY, *pos)
        self.op = op
        self.x = x
        self.type = type


class IndexExpr(Expr):
    def __init__(self, x: Expr, index: Expr, type: Optional[TypeRef] = None, pos: Position = NO_POS):
        super().__init__(NodeType.INDEX, *pos)
        self.x = x
        self.index = index
        self.type = type


# ----------------------------------------------------------------------------
# Statements

class Stmt(IRNode):
    """Base class for statements."""


class BlockStmt(Stmt):
    def __init__(self, stmts: Optional[List[Stmt]] = None, pos: Position = NO_POS):
        super().__init__(NodeType.BLOCK, *pos)
        self.stmts = stmts or []

    def __repr__(self):
        return f"Block({len(self.stmts)} stmts)"


class ExprStmt(Stmt):
    def __init__(self, x: Expr, pos: Position = NO_POS):
        super().__init__(NodeType.EXPR_STMT, *pos)
        self.x = x


class AssignStmt(Stmt):
    """
    target = value, or a local definition when `define` is set.

    A definition without a value declares the local with its type's default.
    """
    def __init__(self, target: Expr, value: Optional[Expr], define: bool = False,
                 type: Optional[TypeRef] = None, pos: Position = NO_POS):
        super().__init__(NodeType.ASSIGN, *pos)
        self.target = target
        self.value = value
        self.define = define
        self.type = type

    def __repr__(self):
        op = ':=' if self.define else '='
        return f"Assign({self.target!r} {op} {self.value!r})"


class ReturnStmt(Stmt):
    def __init__(self, value: Optional[Expr] = None, pos: Position = NO_POS):
        super().__init__(NodeType.RETURN, *pos)
        self.value = value


class IfStmt(Stmt):
    def __init__(self, cond: Expr, body: BlockStmt, else_: Optional[Stmt] = None,
                 pos: Position = NO_POS):
        super().__init__(NodeType.IF, *pos)
        self.cond = cond
        self.body = body
        self.else_ = else_


class ForStmt(Stmt):
    def __init__(self, init: Optional[Stmt], cond: Optional[Expr], post: Optional[Stmt],
                 body: BlockStmt, pos: Position = NO_POS):
        super().__init__(NodeType.FOR, *pos)
        self.init = init
        self.cond = cond
        self.post = post
        self.body = body


class BranchStmt(Stmt):
    """break or continue of the innermost loop."""
    def __init__(self, tok: str, pos: Position = NO_POS):
        super().__init__(NodeType.BRANCH, *pos)
        self.tok = tok


class DeferStmt(Stmt):
    def __init__(self, call: CallExpr, pos: Position = NO_POS):
        super().__init__(NodeType.DEFER, *pos)
        self.call = call


# ----------------------------------------------------------------------------
# Declarations

@dataclass
class Param:
    """Function parameter or receiver. `name` is None when unnamed."""
    name: Optional[str]
    type: TypeRef = field(default_factory=lambda: ANY)


class Decl(IRNode):
    """Base class for top-level declarations."""
    name: str = ''

    @property
    def is_exported(self) -> bool:
        return bool(self.name) and self.name[0].isupper()


class FuncDecl(Decl):
    """
    Function or method declaration.

    A declaration with `syscall` set is a stub for an external call: it has
    no body and every call to it compiles to a SYSCALL.
    """
    def __init__(self, name: str, params: Optional[List[Param]] = None,
                 results: Optional[List[TypeRef]] = None, body: Optional[BlockStmt] = None,
                 receiver: Optional[Param] = None, type_params: Optional[List[str]] = None,
                 syscall: Optional[str] = None, pos: Position = NO_POS):
        super().__init__(NodeType.FUNC, *pos)
        self.name = name
        self.params = params or []
        self.results = results or []
        self.body = body
        self.receiver = receiver
        self.type_params = type_params or []
        self.syscall = syscall

    @property
    def is_method(self) -> bool:
        return self.receiver is not None

    def qualified_name(self, module_path: str) -> str:
        if self.receiver is not None:
            recv = self.receiver.type.name or self.receiver.type.kind.name.lower()
            return f"{module_path}.{recv.rsplit('.', 1)[-1]}.{self.name}"
        return f"{module_path}.{self.name}"

    def is_init(self) -> bool:
        return (self.name == 'init' and self.receiver is None
                and not self.params and not self.results)

    def is_deploy(self) -> bool:
        return (self.name == '_deploy' and self.receiver is None
                and len(self.params) == 2 and self.params[1].type.kind == TypeKind.BOOL
                and not self.results)

    def __repr__(self):
        return f"Func({self.name}, {len(self.params)} params)"


class GlobalDecl(Decl):
    """Module-level variable. The name "_" declares an anonymous value."""
    def __init__(self, name: str, value: Optional[Expr] = None,
                 type: Optional[TypeRef] = None, pos: Position = NO_POS):
        super().__init__(NodeType.GLOBAL, *pos)
        self.name = name
        self.value = value
        self.type = type or (value.type if value is not None else None) or ANY

    def __repr__(self):
        return f"Global({self.name})"


class ConstDecl(Decl):
    """Named constant. Inlined at every use, never stored."""
    def __init__(self, name: str, value: Expr, type: Optional[TypeRef] = None,
                 pos: Position = NO_POS):
        super().__init__(NodeType.CONST, *pos)
        self.name = name
        self.value = value
        self.type = type or value.type or ANY

    def __repr__(self):
        return f"Const({self.name})"


class TypeDecl(Decl):
    def __init__(self, name: str, type: TypeRef, type_params: Optional[List[str]] = None,
                 pos: Position = NO_POS):
        super().__init__(NodeType.TYPE, *pos)
        self.name = name
        self.type = type
        self.type_params = type_params or []


# ----------------------------------------------------------------------------
# Program structure

@dataclass
class SourceFile:
    """One source document. `imports` maps local alias -> module path."""
    path: str
    decls: List[Decl] = field(default_factory=list)
    imports: Dict[str, str] = field(default_factory=dict)


@dataclass
class Module:
    """A compilation unit: one or more files sharing a namespace."""
    path: str
    name: str = ''
    files: List[SourceFile] = field(default_factory=list)

    def __post_init__(self):
        if not self.name:
            self.name = self.path.rsplit('/', 1)[-1]

    @property
    def imports(self) -> List[str]:
        """Imported module paths in first-import order."""
        seen: Dict[str, None] = {}
        for f in self.files:
            for path in f.imports.values():
                seen.setdefault(path, None)
        return list(seen)

    def iter_decls(self) -> Iterator[Tuple[SourceFile, Decl]]:
        for f in self.files:
            for decl in f.decls:
                yield f, decl


@dataclass
class Program:
    """The whole program. `modules` is keyed by module path."""
    modules: Dict[str, Module]
    root: str

    @property
    def root_module(self) -> Module:
        return self.modules[self.root]


# ----------------------------------------------------------------------------
# Traversal

def iter_child_nodes(node: IRNode) -> Iterator[IRNode]:
    """Yield the direct children of a node in source order."""
    t = node.node_type
    if t in (NodeType.LITERAL, NodeType.IDENT, NodeType.BRANCH, NodeType.TYPE):
        return
    if t == NodeType.SELECTOR:
        yield node.x
    elif t == NodeType.CALL:
        yield node.fun
        yield from node.args
    elif t == NodeType.COMPOSITE:
        yield from node.elts
    elif t == NodeType.KEY_VALUE:
        yield node.key
        yield node.value
    elif t == NodeType.BINARY:
        yield node.x
        yield node.y
    elif t == NodeType.UNARY:
        yield node.x
    elif t == NodeType.INDEX:
        yield node.x
        yield node.index
    elif t == NodeType.BLOCK:
        yield from node.stmts
    elif t == NodeType.EXPR_STMT:
        yield node.x
    elif t == NodeType.ASSIGN:
        yield node.target
        if node.value is not None:
            yield node.value
    elif t == NodeType.RETURN:
        if node.value is not None:
            yield node.value
    elif t == NodeType.IF:
        yield node.cond
        yield node.body
        if node.else_ is not None:
            yield node.else_
    elif t == NodeType.FOR:
        for child in (node.init, node.cond, node.post, node.body):
            if child is not None:
                yield child
    elif t == NodeType.DEFER:
        yield node.call
    elif t == NodeType.FUNC:
        if node.body is not None:
            yield node.body
    elif t in (NodeType.GLOBAL, NodeType.CONST):
        if node.value is not None:
            yield node.value


def walk(node: IRNode) -> Iterator[IRNode]:
    """Yield node and all of its descendants, depth first."""
    stack = [node]
    while stack:
        n = stack.pop()
        yield n
        stack.extend(reversed(list(iter_child_nodes(n))))


def inspect(node: IRNode, fn: Callable[[IRNode], bool]):
    """
    Visit node depth first, calling fn on every node.

    Children of a node are skipped when fn returns False for it.
    """
    if not fn(node):
        return
    for child in iter_child_nodes(node):
        inspect(child, fn)


def contains_call(node: IRNode) -> bool:
    return any(n.node_type == NodeType.CALL for n in walk(node))
